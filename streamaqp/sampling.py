from __future__ import annotations
import logging
import math
import random
from typing import Iterator, Optional

import numpy as np
import pandas as pd

from .data import read_lines
from .errors import ConfigurationError, NotReadyError, SourceUnavailableError
from .schema import Row, RowOrLine, Schema, as_row, parse_line

logger = logging.getLogger(__name__)


def _check_fraction(fraction: float) -> None:
    if not 0 < fraction < 1:
        raise ConfigurationError(f"fraction must be between 0 and 1 (exclusive), got {fraction}")


def _target(count: int, fraction: float) -> int:
    return max(1, math.ceil(count * fraction))


def _scan(source) -> tuple[Optional[Schema], int]:
    """First pass over a source: header and number of data rows."""
    header = None
    total = 0
    for line in read_lines(source):
        if header is None:
            header = Schema(parse_line(line))
            continue
        total += 1
    return header, total


def _data_rows(source) -> Iterator[Row]:
    lines = read_lines(source)
    next(lines, None)
    for line in lines:
        yield parse_line(line)


def _raw(rows: list[Row], idx: int) -> pd.Series:
    return pd.Series([r[idx] if idx < len(r) else None for r in rows], dtype=object)


def _numeric(rows: list[Row], idx: int) -> pd.Series:
    """One column as floats; non-numeric or missing fields become NaN."""
    vals = pd.to_numeric(_raw(rows, idx), errors="coerce").astype("float64")
    return vals.where(np.isfinite(vals))


def _group_sums(rows: list[Row], g_idx: int, a_idx: int) -> tuple[dict, int]:
    frame = pd.DataFrame({"key": _raw(rows, g_idx), "val": _numeric(rows, a_idx)})
    frame = frame.dropna(subset=["val"])
    if frame.empty:
        return {}, 0
    sums = frame.groupby("key", sort=False, dropna=False)["val"].sum()
    return {k: float(v) for k, v in sums.items()}, len(frame)


class _ScaledAggregates:
    """Sum / avg / group-by over sampled rows, projected onto `n` population rows."""

    n: int
    header: Optional[Schema]

    def _sampled_rows(self) -> list[Row]:
        raise NotImplementedError

    def _ready(self) -> tuple[list[Row], Schema]:
        rows = self._sampled_rows()
        if not rows:
            raise NotReadyError(f"{type(self).__name__} sample is empty.")
        return rows, Schema.require(self.header)

    def approx_sum(self, column: str) -> float:
        rows, schema = self._ready()
        vals = _numeric(rows, schema.index(column)).dropna()
        if vals.empty:
            return 0.0
        return float(vals.mean()) * self.n

    def approx_avg(self, column: str) -> Optional[float]:
        rows, schema = self._ready()
        vals = _numeric(rows, schema.index(column)).dropna()
        return None if vals.empty else float(vals.mean())

    def approx_group_by(self, group_column: str, agg_column: str) -> dict:
        rows, schema = self._ready()
        sums, count = _group_sums(rows, schema.index(group_column), schema.index(agg_column))
        if count == 0:
            return {}
        factor = self.n / count
        return {k: v * factor for k, v in sums.items()}


class ReservoirSampler(_ScaledAggregates):
    """Uniform row sample whose target size K tracks ceil(N * fraction)."""

    def __init__(self, fraction: float = 0.1, seed: int | None = None):
        _check_fraction(fraction)
        self.fraction = fraction
        self.n = 0
        self.res: list[Row] = []
        self.header: Optional[Schema] = None
        self.source = None
        self.rand = random.Random(seed)

    def target_size(self) -> int:
        return _target(self.n, self.fraction)

    def build(self, source) -> dict:
        """Two passes: count the rows to fix K, then replay with Algorithm R."""
        header, total = _scan(source)
        k = _target(total, self.fraction)
        res: list[Row] = []
        i = 0
        for row in _data_rows(source):
            i += 1
            if len(res) < k:
                res.append(row)
            else:
                j = self.rand.randrange(i)
                if j < k:
                    res[self.rand.randrange(k)] = row
        # the source may have shrunk between the two passes
        if len(res) > _target(i, self.fraction):
            res = self.rand.sample(res, _target(i, self.fraction))

        self.header, self.n, self.res, self.source = header, i, res, source
        logger.info("reservoir built from %s: N=%d K=%d", source, self.n, len(res))
        return {"N": self.n, "K": k, "header": header.columns if header else None}

    def rebuild(self) -> dict:
        if self.source is None:
            raise SourceUnavailableError("No source known. Call build(source) first.")
        return self.build(self.source)

    def ingest(self, row_or_line: RowOrLine) -> dict:
        row = as_row(row_or_line)
        if self.header is None:
            self.header = Schema(row)
            return {"action": "set-header", "header": self.header.columns}

        self.n += 1
        k = self.target_size()
        if len(self.res) < k:
            self.res.append(row)
            return {"action": "push", "N": self.n, "K": k, "reservoir_size": len(self.res)}

        j = self.rand.randrange(self.n)
        if j < k:
            idx = self.rand.randrange(k)
            self.res[idx] = row
            return {"action": "replace", "replace_idx": idx, "N": self.n, "K": k}
        return {"action": "skip", "N": self.n, "K": k}

    def _sampled_rows(self) -> list[Row]:
        return self.res

    @property
    def sample_size(self) -> int:
        return len(self.res)

    def status(self) -> dict:
        return {
            "N": self.n,
            "K": self.target_size(),
            "sample_size": len(self.res),
            "header": self.header.columns if self.header else None,
        }


class BlockSampler(_ScaledAggregates):
    """Reservoir over complete blocks of `block_size` consecutive rows.

    Rows wait in a partial buffer until a block fills up; a trailing partial
    block is kept but never sampled. Estimates still scale by row count N.
    """

    def __init__(self, fraction: float = 0.1, block_size: int = 100, seed: int | None = None):
        _check_fraction(fraction)
        if isinstance(block_size, bool) or not isinstance(block_size, int) or block_size <= 0:
            raise ConfigurationError(f"block_size must be a positive integer, got {block_size!r}")
        self.fraction = fraction
        self.block_size = block_size
        self.n = 0
        self.blocks_seen = 0
        self.partial: list[Row] = []
        self.res: list[list[Row]] = []
        self.header: Optional[Schema] = None
        self.source = None
        self.rand = random.Random(seed)

    def target_blocks(self) -> int:
        return _target(self.blocks_seen, self.fraction)

    def build(self, source) -> dict:
        header, total = _scan(source)
        k = _target(total // self.block_size, self.fraction)
        blocks: list[list[Row]] = []
        current: list[Row] = []
        seen = 0
        n = 0
        for row in _data_rows(source):
            n += 1
            current.append(row)
            if len(current) < self.block_size:
                continue
            seen += 1
            if len(blocks) < k:
                blocks.append(current)
            else:
                j = self.rand.randrange(seen)
                if j < k:
                    blocks[self.rand.randrange(k)] = current
            current = []
        if len(blocks) > _target(seen, self.fraction):
            blocks = self.rand.sample(blocks, _target(seen, self.fraction))

        self.header, self.source = header, source
        self.n, self.blocks_seen, self.partial, self.res = n, seen, current, blocks
        logger.info(
            "block sampler built from %s: N=%d blocks=%d K=%d partial=%d",
            source, n, seen, len(blocks), len(current),
        )
        return {"N": self.n, "blocks_seen": seen, "K": k, "header": header.columns if header else None}

    def rebuild(self) -> dict:
        if self.source is None:
            raise SourceUnavailableError("No source known. Call build(source) first.")
        return self.build(self.source)

    def ingest(self, row_or_line: RowOrLine) -> dict:
        row = as_row(row_or_line)
        if self.header is None:
            self.header = Schema(row)
            return {"action": "set-header", "header": self.header.columns}

        self.n += 1
        self.partial.append(row)
        if len(self.partial) < self.block_size:
            return {"action": "buffer_row", "N": self.n, "partial_size": len(self.partial)}

        block = self.partial[:self.block_size]
        self.partial = self.partial[self.block_size:]
        self.blocks_seen += 1
        k = self.target_blocks()

        if len(self.res) < k:
            self.res.append(block)
            return {"action": "push_block", "blocks_seen": self.blocks_seen, "K": k,
                    "reservoir_blocks": len(self.res)}
        j = self.rand.randrange(self.blocks_seen)
        if j < k:
            idx = self.rand.randrange(k)
            self.res[idx] = block
            return {"action": "replace_block", "replace_idx": idx, "blocks_seen": self.blocks_seen, "K": k}
        return {"action": "skip_block", "blocks_seen": self.blocks_seen, "K": k}

    def _sampled_rows(self) -> list[Row]:
        return [row for block in self.res for row in block]

    @property
    def reservoir_blocks(self) -> int:
        return len(self.res)

    def status(self) -> dict:
        return {
            "N": self.n,
            "blocks_seen": self.blocks_seen,
            "K": self.target_blocks(),
            "reservoir_blocks": len(self.res),
            "partial_size": len(self.partial),
            "header": self.header.columns if self.header else None,
        }


class StratifiedSampler:
    """Bernoulli sample per stratum of `strat_column`.

    Every row is admitted independently with probability `fraction`, so one
    global 1/fraction scale applies to every stratum.
    """

    def __init__(self, strat_column: str = "city", fraction: float = 0.1, seed: int | None = None):
        _check_fraction(fraction)
        self.strat_column = strat_column
        self.fraction = fraction
        self.strata: dict[str, list[Row]] = {}
        self.seen: dict[str, int] = {}
        self.total_rows = 0
        self.header: Optional[Schema] = None
        self.source = None
        self.rand = random.Random(seed)

    def build(self, source) -> dict:
        fresh = StratifiedSampler(self.strat_column, self.fraction)
        fresh.rand = self.rand
        for line in read_lines(source):
            fresh.ingest(line)

        self.header, self.source = fresh.header, source
        self.strata, self.seen, self.total_rows = fresh.strata, fresh.seen, fresh.total_rows
        logger.info("stratified sampler built from %s: rows=%d strata=%d",
                    source, self.total_rows, len(self.strata))
        return {"total_rows": self.total_rows, "strata_count": len(self.strata)}

    def rebuild(self) -> dict:
        if self.source is None:
            raise SourceUnavailableError("No source known. Call build(source) first.")
        return self.build(self.source)

    def ingest(self, row_or_line: RowOrLine) -> dict:
        row = as_row(row_or_line)
        if self.header is None:
            self.header = self.check_header(row)
            return {"action": "set-header", "header": self.header.columns}

        idx = self.header.index(self.strat_column)
        key = row[idx] if idx < len(row) else ""
        rows = self.strata.setdefault(key, [])
        self.seen[key] = self.seen.get(key, 0) + 1
        self.total_rows += 1

        if self.rand.random() < self.fraction:
            rows.append(row)
            return {"action": "sample", "stratum": key, "sampled": len(rows)}
        return {"action": "skip", "stratum": key, "sampled": len(rows)}

    def check_header(self, row: Row) -> Schema:
        """Schema for `row`, which must name the stratum column."""
        schema = Schema(row)
        schema.index(self.strat_column)
        return schema

    def _ready(self) -> tuple[list[Row], Schema]:
        schema = Schema.require(self.header)
        if self.total_rows == 0:
            raise NotReadyError("StratifiedSampler has not seen any rows.")
        return [r for rows in self.strata.values() for r in rows], schema

    def approx_sum(self, column: str) -> float:
        rows, schema = self._ready()
        vals = _numeric(rows, schema.index(column)).dropna()
        return float(vals.sum()) / self.fraction

    def approx_avg(self, column: str) -> Optional[float]:
        rows, schema = self._ready()
        vals = _numeric(rows, schema.index(column)).dropna()
        if vals.empty:
            return None
        # both scale factors cancel: this is the plain sample mean
        return (float(vals.sum()) / self.fraction) / (len(vals) / self.fraction)

    def approx_group_by(self, group_column: str, agg_column: str) -> dict:
        rows, schema = self._ready()
        sums, _ = _group_sums(rows, schema.index(group_column), schema.index(agg_column))
        return {k: v / self.fraction for k, v in sums.items()}

    @property
    def sample_size(self) -> int:
        return sum(len(rows) for rows in self.strata.values())

    def strata_info(self) -> dict:
        return {k: {"sampled": len(rows), "seen": self.seen.get(k, 0)} for k, rows in self.strata.items()}

    def status(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "sample_size": self.sample_size,
            "strata": self.strata_info(),
            "header": self.header.columns if self.header else None,
        }
