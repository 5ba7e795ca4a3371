class AQPError(Exception):
    """Base class for errors raised by the approximate query engine."""


class NotReadyError(AQPError):
    """A query reached a structure that has not seen any data yet."""


class UnknownColumnError(AQPError, LookupError):
    """A query or stratum named a column the captured header does not have."""

    def __init__(self, column: str):
        super().__init__(f"Column not found: {column}")
        self.column = column


class ConfigurationError(AQPError, ValueError):
    """A structure was created with parameters outside their valid range."""


class SourceUnavailableError(AQPError):
    """The historical source could not be read during build or rebuild."""
