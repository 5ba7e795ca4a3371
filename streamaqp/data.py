import logging
from pathlib import Path
from typing import Iterator

import pandas as pd

from .errors import SourceUnavailableError
from .schema import DELIMITER

logger = logging.getLogger(__name__)


def read_lines(path) -> Iterator[str]:
    """Yield the non-blank, trimmed lines of a historical source file."""
    p = Path(path)
    if not p.is_file():
        raise SourceUnavailableError(f"File not found: {p}")
    try:
        with p.open(encoding="utf-8", newline="") as f:
            for raw in f:
                line = raw.strip()
                if line:
                    yield line
    except (OSError, UnicodeDecodeError) as e:
        raise SourceUnavailableError(f"Cannot read {p}: {e}") from e


def load_csv(path, columns=None) -> pd.DataFrame:
    """Load the whole source for exact (ground truth) aggregation."""
    p = Path(path)
    if not p.is_file():
        raise SourceUnavailableError(f"File not found: {p}")
    logger.debug("loading %s for exact aggregation", p)
    return pd.read_csv(p, usecols=columns, sep=DELIMITER, skipinitialspace=True)
