from __future__ import annotations
from typing import Sequence, Union

from .errors import NotReadyError, UnknownColumnError

DELIMITER = ","

Row = list[str]
RowOrLine = Union[Sequence[str], str]


def parse_line(line: str) -> Row:
    return [s.strip() for s in line.split(DELIMITER)]


def as_row(row_or_line: RowOrLine) -> Row:
    if isinstance(row_or_line, str):
        return parse_line(row_or_line)
    return list(row_or_line)


class Schema:
    """Captured header; resolves column names to row positions."""

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)
        self._index = {}
        for i, c in enumerate(self.columns):
            self._index.setdefault(c, i)

    @classmethod
    def require(cls, schema: Schema | None) -> Schema:
        if schema is None:
            raise NotReadyError("Header unknown. Build from a source or ingest a header first.")
        return schema

    def index(self, column: str) -> int:
        try:
            return self._index[column]
        except KeyError:
            raise UnknownColumnError(column) from None

    def __contains__(self, column: str) -> bool:
        return column in self._index

    def __len__(self) -> int:
        return len(self.columns)

    def __eq__(self, other) -> bool:
        return isinstance(other, Schema) and self.columns == other.columns

    def __repr__(self) -> str:
        return f"Schema({self.columns!r})"
