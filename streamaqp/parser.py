import re
from dataclasses import dataclass
from typing import Optional

AGG_RE = r"(?P<agg>SUM|AVG)\((?P<col>[^)]+)\)"


@dataclass
class ParsedQuery:
    agg: str
    agg_col: str
    source: str
    group_by: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.agg}({self.agg_col})"


def parse(sql: str) -> ParsedQuery:

    s = re.sub(r"\s+", " ", sql.strip())

    m = re.match(r"SELECT (?P<select>.+?) FROM (?P<src>[^ ;]+)(?: GROUP BY (?P<gby>[^;]+?))? ?;?\Z", s, re.IGNORECASE)
    if not m:
        raise ValueError("Unsupported SQL. Examples: SELECT SUM(salary) FROM data.csv; "
                         "SELECT city, SUM(salary) FROM data.csv GROUP BY city")
    src = m.group('src').strip()
    gby = m.group('gby').strip() if m.group('gby') else None

    parts = [p.strip() for p in m.group('select').split(',')]

    am = re.fullmatch(AGG_RE, parts[-1], re.IGNORECASE)
    if not am:
        raise ValueError("SELECT must end with an aggregate like SUM(x) or AVG(x)")
    agg = am.group('agg').upper()
    agg_col = am.group('col').strip()

    select_cols = parts[:-1]
    if len(select_cols) > 1 or (gby and ',' in gby):
        raise ValueError("Only a single GROUP BY column is supported.")
    if select_cols and not gby:
        raise ValueError("Non-aggregate SELECT columns require GROUP BY.")
    if gby and (not select_cols or select_cols[0].lower() != gby.lower()):
        raise ValueError("GROUP BY column must match the non-aggregate SELECT column.")
    if gby and agg != "SUM":
        raise ValueError("Grouped queries support SUM only.")

    return ParsedQuery(agg=agg, agg_col=agg_col, source=src, group_by=gby)
