"""Approximate aggregate queries over continuously updated stream summaries."""

import logging

from .engine import EngineConfig, QueryEngine
from .errors import (
    AQPError,
    ConfigurationError,
    NotReadyError,
    SourceUnavailableError,
    UnknownColumnError,
)
from .sampling import BlockSampler, ReservoirSampler, StratifiedSampler
from .schema import Schema, parse_line
from .sketches import CountMinSketch, HyperLogLog

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AQPError",
    "BlockSampler",
    "ConfigurationError",
    "CountMinSketch",
    "EngineConfig",
    "HyperLogLog",
    "NotReadyError",
    "QueryEngine",
    "ReservoirSampler",
    "Schema",
    "SourceUnavailableError",
    "StratifiedSampler",
    "UnknownColumnError",
    "parse_line",
]
