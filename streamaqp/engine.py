from __future__ import annotations
import logging
import threading
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Optional, Dict, Any, Iterator

import pandas as pd

from .data import load_csv, read_lines
from .errors import ConfigurationError, NotReadyError, SourceUnavailableError, UnknownColumnError
from .parser import ParsedQuery, parse
from .sampling import BlockSampler, ReservoirSampler, StratifiedSampler
from .schema import RowOrLine, Schema, as_row, parse_line
from .sketches import CountMinSketch, HyperLogLog

logger = logging.getLogger(__name__)

SAMPLERS = ("reservoir", "block", "stratified")


@dataclass
class EngineConfig:
    source: Optional[str] = None
    fraction: float = 0.1
    block_size: int = 100
    strat_column: str = "city"
    cms_width: int = 1000
    cms_depth: int = 5
    cms_columns: tuple = ("name", "city")
    hll_bits: int = 10
    distinct_columns: tuple = ("name", "city")
    seed: Optional[int] = None


class Guarded:
    """Exclusive owner of one summary structure.

    Every mutation and every read goes through `locked()`, so no caller ever
    sees a structure mid-update. `rebuilding()` swaps in a freshly built value.
    """

    def __init__(self, value):
        self._value = value
        self._lock = threading.Lock()

    @contextmanager
    def locked(self) -> Iterator[Any]:
        with self._lock:
            yield self._value

    @contextmanager
    def rebuilding(self) -> Iterator[Any]:
        """Hold the lock for a whole rebuild; the caller assigns `.result` to commit."""
        with self._lock:
            slot = _Slot(self._value)
            yield slot
            if slot.result is not None:
                self._value = slot.result


class _Slot:
    def __init__(self, current):
        self.current = current
        self.result = None


class _Sketches:
    """Count-Min and HyperLogLog summaries fed from selected columns."""

    def __init__(self, cfg: EngineConfig):
        self.cfg = cfg
        self.header: Optional[Schema] = None
        self.cms = CountMinSketch(cfg.cms_width, cfg.cms_depth)
        self.hll = {c: HyperLogLog(cfg.hll_bits) for c in cfg.distinct_columns}

    def ingest(self, row_or_line: RowOrLine) -> dict:
        row = as_row(row_or_line)
        if self.header is None:
            self.header = Schema(row)
            return {"action": "set-header", "header": self.header.columns}
        for col in self.cfg.cms_columns:
            v = _field(row, self.header, col)
            if v is not None:
                self.cms.add(v)
        for col, hll in self.hll.items():
            v = _field(row, self.header, col)
            if v is not None:
                hll.add(v)
        return {"action": "added", "total_items": self.cms.total_items}

    def status(self) -> dict:
        return {
            "total_items": self.cms.total_items,
            "width": self.cms.width,
            "depth": self.cms.depth,
            "distinct_columns": list(self.hll),
            "header": self.header.columns if self.header else None,
        }


def _field(row, header: Schema, col: str):
    if col not in header:
        return None
    idx = header.index(col)
    return row[idx] if idx < len(row) else None


class QueryEngine:

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._handles: Dict[str, Guarded] = {name: Guarded(self._fresh(name)) for name in SAMPLERS + ("sketches",)}
        self._source: Optional[str] = None

    def _fresh(self, name: str):
        cfg = self.config
        if name == "reservoir":
            return ReservoirSampler(cfg.fraction, seed=cfg.seed)
        if name == "block":
            return BlockSampler(cfg.fraction, cfg.block_size, seed=cfg.seed)
        if name == "stratified":
            return StratifiedSampler(cfg.strat_column, cfg.fraction, seed=cfg.seed)
        if name == "sketches":
            return _Sketches(cfg)
        raise ConfigurationError(f"Unknown structure: {name}")

    def _handle(self, name: str) -> Guarded:
        try:
            return self._handles[name]
        except KeyError:
            raise ValueError(f"Unknown method: {name}") from None

    # building

    def build(self, source=None, names=None) -> Dict[str, Any]:
        """Build `names` (default: every structure) from `source`.

        Either every requested structure is replaced or none is; on failure
        the engine keeps its previous structures and source.
        """
        source = source or self.config.source
        if source is None:
            raise SourceUnavailableError("No source given.")
        names = list(names) if names else list(self._handles)
        prev, self._source = self._source, str(source)
        try:
            return self._rebuild_all(names)
        except BaseException:
            self._source = prev
            raise

    def rebuild(self, name: str | None = None) -> Dict[str, Any]:
        """Re-derive state from the historical source, all or nothing."""
        if self._source is None:
            raise SourceUnavailableError("No source known. Call build(source) first.")
        return self._rebuild_all([name] if name else list(self._handles))

    def _rebuild_all(self, names) -> Dict[str, Any]:
        for n in names:
            self._handle(n)
        handles = [(n, h) for n, h in self._handles.items() if n in names]

        t0 = time.time()
        # locks are taken in handle order, the same order ingest uses
        with ExitStack() as stack:
            slots = {n: stack.enter_context(h.rebuilding()) for n, h in handles}
            built, info = {}, {}
            for n, slot in slots.items():
                fresh = self._fresh(n)
                if isinstance(fresh, (ReservoirSampler, BlockSampler, StratifiedSampler)):
                    fresh.rand.setstate(slot.current.rand.getstate())
                try:
                    info[n] = self._load(fresh, self._source)
                except Exception as e:
                    logger.warning("rebuild of %s from %s failed: %s", n, self._source, e)
                    raise
                built[n] = fresh
            for n, slot in slots.items():
                slot.result = built[n]
        logger.info("%s rebuilt in %.3fs", ", ".join(slots), time.time() - t0)
        return info

    @staticmethod
    def _load(structure, source) -> Dict[str, Any]:
        if isinstance(structure, _Sketches):
            for line in read_lines(source):
                structure.ingest(line)
            return structure.status()
        return structure.build(source)

    # ingestion

    def ingest(self, row_or_line: RowOrLine) -> Dict[str, Any]:
        """Feed one record to every structure; the first one seen is the header.

        A record is applied to all structures or, if rejected, to none.
        """
        row = parse_line(row_or_line) if isinstance(row_or_line, str) else list(row_or_line)
        with ExitStack() as stack:
            structures = {n: stack.enter_context(h.locked()) for n, h in self._handles.items()}
            strat = structures["stratified"]
            if strat.header is None:
                strat.check_header(row)
            out = {name: s.ingest(row) for name, s in structures.items()}
        logger.debug("ingested row: %s", {k: v.get("action") for k, v in out.items()})
        return out

    # queries

    def sum(self, column: str, method: str = "reservoir") -> float:
        with self._sampler(method) as s:
            return s.approx_sum(column)

    def average(self, column: str, method: str = "reservoir") -> Optional[float]:
        with self._sampler(method) as s:
            return s.approx_avg(column)

    def group_by(self, group_column: str, agg_column: str, method: str = "reservoir") -> dict:
        with self._sampler(method) as s:
            return s.approx_group_by(group_column, agg_column)

    def frequency(self, item: str) -> int:
        with self._handles["sketches"].locked() as sk:
            if sk.cms.total_items == 0:
                raise NotReadyError("CMS not ready yet. No items added.")
            return sk.cms.query(item)

    def distinct_count(self, column: str) -> int:
        with self._handles["sketches"].locked() as sk:
            if column not in sk.hll:
                raise ConfigurationError(f"No distinct-count sketch for column: {column}")
            if sk.header is None:
                raise NotReadyError("Distinct-count sketch has not seen a header yet.")
            if column not in sk.header:
                raise UnknownColumnError(column)
            return sk.hll[column].count()

    @contextmanager
    def _sampler(self, method: str):
        if method not in SAMPLERS:
            raise ValueError("Unknown method: " + method)
        with self._handles[method].locked() as s:
            yield s

    def status(self) -> Dict[str, Any]:
        out = {"source": self._source}
        for name, handle in self._handles.items():
            with handle.locked() as s:
                out[name] = s.status()
        return out

    # SQL-like front end

    def run(
        self,
        sql: str,
        method: str = "reservoir",
        return_exact: bool = False,
    ) -> Dict[str, Any]:
        q = parse(sql)
        t0 = time.time()

        if method == "exact":
            exact = self._run_exact(q)
            return {"mode": "exact", "time_sec": time.time() - t0, "result": exact}

        if method not in SAMPLERS:
            raise ValueError("Unknown method: " + method)
        self._ensure_built(q.source)
        t0 = time.time()
        res = self._run_approx(q, method)
        out = {"mode": method, "time_sec": time.time() - t0, "result": res}
        if return_exact:
            et0 = time.time()
            exact = self._run_exact(q)
            out["exact"] = {"time_sec": time.time() - et0, "result": exact}
        return out

    def _ensure_built(self, source: str) -> None:
        if self._source is None:
            self.build(source)
        elif source != self._source:
            raise ValueError(f"Engine is built from {self._source}, query reads {source}")

    def _run_approx(self, q: ParsedQuery, method: str):
        if q.group_by:
            groups = self.group_by(q.group_by, q.agg_col, method=method)
            return [{q.group_by: k, q.label: float(v)} for k, v in groups.items()]
        if q.agg == "SUM":
            return [{q.label: self.sum(q.agg_col, method=method)}]
        return [{q.label: self.average(q.agg_col, method=method)}]

    def _run_exact(self, q: ParsedQuery):
        df = load_csv(q.source)
        return _aggregate(df, q)


def _aggregate(df: pd.DataFrame, q: ParsedQuery):
    col = q.agg_col
    for c in (col, q.group_by):
        if c and c not in df.columns:
            raise UnknownColumnError(c)
    vals = pd.to_numeric(df[col], errors="coerce")

    if not q.group_by:
        if q.agg == "SUM":
            return [{q.label: float(vals.sum())}]
        return [{q.label: float(vals.mean())}]

    g = vals.groupby(df[q.group_by].astype(str), dropna=False).sum()
    return [{q.group_by: k, q.label: float(v)} for k, v in g.items()]
