"""Compile loosely-typed history filters into a parameterized query plan.

Predicate text only ever comes from the fixed templates below; user values
are always bound through ``?`` placeholders, in emission order:

    lower time bound, upper time bound, locale, keyword (title OR url)

Unknown sort fields, sort directions and time-range tokens fall back to the
defaults instead of raising.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

SECONDS_PER_DAY = 86400

TIME_BUCKETS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}

SORT_FIELDS = ("title", "num_visits", "last_visited_time")
DEFAULT_SORT_FIELD = "last_visited_time"
SORT_ORDERS = {"asc": "ASC", "desc": "DESC"}
DEFAULT_SORT_ORDER = "desc"

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1
_EPOCH_RE = re.compile(r"[+-]?[0-9]+")


class FilterSpec(BaseModel):
    """Raw filter input as sent by the caller."""

    keyword: Optional[str] = None
    time_range: Optional[str] = None  # 7d / 30d / 90d / all / "<start>-<end>"
    locale: Optional[str] = None
    sort_by: Optional[str] = None  # title, num_visits, last_visited_time
    sort_order: Optional[str] = None  # asc, desc


@dataclass(frozen=True)
class Predicate:
    sql: str
    params: tuple = ()


@dataclass(frozen=True)
class CompiledPlan:
    """Ordered predicates, their bound values, and the resolved ORDER BY."""

    predicates: tuple = field(default_factory=tuple)
    order_by: str = f"ORDER BY {DEFAULT_SORT_FIELD} DESC"
    time_lower: Optional[int] = None
    time_upper: Optional[int] = None

    @property
    def where_sql(self) -> str:
        """
        >>> CompiledPlan().where_sql
        ''
        >>> CompiledPlan(predicates=(Predicate("locale = ?", ("en-us",)),)).where_sql
        ' WHERE locale = ?'
        """
        if not self.predicates:
            return ""
        return " WHERE " + " AND ".join(p.sql for p in self.predicates)

    @property
    def params(self) -> list:
        return [value for p in self.predicates for value in p.params]

    @property
    def placeholder_count(self) -> int:
        return sum(p.sql.count("?") for p in self.predicates)


def _parse_epoch(text: str) -> Optional[int]:
    """Parse a signed 64-bit integer; anything else yields None.

    >>> _parse_epoch("100")
    100
    >>> _parse_epoch("-5")
    -5
    >>> _parse_epoch(" 7") is None
    True
    >>> _parse_epoch("") is None
    True
    """
    if not _EPOCH_RE.fullmatch(text):
        return None
    value = int(text)
    if value < _INT64_MIN or value > _INT64_MAX:
        return None
    return value


def resolve_time_range(
    time_range: Optional[str], now: Optional[int] = None
) -> tuple[Optional[int], Optional[int]]:
    """Resolve a time-range token into (lower, upper) epoch-second bounds.

    >>> resolve_time_range("7d", now=1_000_000)
    (395200, None)
    >>> resolve_time_range("100-200")
    (100, 200)
    >>> resolve_time_range("abc-200")
    (None, 200)
    >>> resolve_time_range("bogus")
    (None, None)
    >>> resolve_time_range("all")
    (None, None)
    """
    if time_range is None or time_range == "all":
        return None, None

    if time_range in TIME_BUCKETS:
        if now is None:
            now = int(time.time())
        return now - TIME_BUCKETS[time_range] * SECONDS_PER_DAY, None

    if "-" not in time_range:
        return None, None

    start, _, end = time_range.partition("-")
    return _parse_epoch(start), _parse_epoch(end)


def build_order_clause(sort_by: Optional[str], sort_order: Optional[str]) -> str:
    """Pick ORDER BY field and direction from fixed whitelists.

    >>> build_order_clause("num_visits", "asc")
    'ORDER BY num_visits ASC'
    >>> build_order_clause("url; DROP TABLE x", "sideways")
    'ORDER BY last_visited_time DESC'
    """
    sort_field = sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT_FIELD
    direction = SORT_ORDERS.get(sort_order or "", SORT_ORDERS[DEFAULT_SORT_ORDER])
    return f"ORDER BY {sort_field} {direction}"


def compile_filters(spec: FilterSpec, now: Optional[int] = None) -> CompiledPlan:
    """Compile a FilterSpec into a CompiledPlan. Never raises.

    >>> plan = compile_filters(FilterSpec(time_range="100-200", locale="en-us", keyword="news"))
    >>> plan.where_sql
    ' WHERE last_visited_time >= ? AND last_visited_time <= ? AND locale = ? AND (title LIKE ? OR url LIKE ?)'
    >>> plan.params
    [100, 200, 'en-us', '%news%', '%news%']
    """
    lower, upper = resolve_time_range(spec.time_range, now=now)
    predicates: list[Predicate] = []

    if lower is not None:
        predicates.append(Predicate("last_visited_time >= ?", (lower,)))
    if upper is not None:
        predicates.append(Predicate("last_visited_time <= ?", (upper,)))
    if spec.locale:
        predicates.append(Predicate("locale = ?", (spec.locale,)))
    if spec.keyword:
        pattern = f"%{spec.keyword}%"
        predicates.append(Predicate("(title LIKE ? OR url LIKE ?)", (pattern, pattern)))

    return CompiledPlan(
        predicates=tuple(predicates),
        order_by=build_order_clause(spec.sort_by, spec.sort_order),
        time_lower=lower,
        time_upper=upper,
    )
