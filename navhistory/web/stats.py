"""Visit statistics: totals, distinct sites, and top sites by visit volume."""

import logging
import sqlite3
from typing import Optional

from navhistory.config import DEFAULT_TOP_SITES, MAX_TOP_SITES, MIN_TOP_SITES
from navhistory.errors import InvalidArgumentError
from navhistory.web.connection import HISTORY_TABLE, ConnectionManager
from navhistory.web.filters import FilterSpec, compile_filters
from navhistory.web.models import OverviewStats

logger = logging.getLogger(__name__)

_SCHEMES = ("http://", "https://")


def extract_host(url: str) -> str:
    """Derive the site name from a URL by stripping scheme and path.

    Only http/https are recognized; any other URL is returned verbatim.

    >>> extract_host("https://a.example.com/x/y")
    'a.example.com'
    >>> extract_host("http://b.example.com")
    'b.example.com'
    >>> extract_host("ftp://c.example.com/z")
    'ftp://c.example.com/z'
    >>> extract_host("https:///path")
    ''
    """
    for scheme in _SCHEMES:
        if url.startswith(scheme):
            rest = url[len(scheme):]
            return rest.split("/", 1)[0]
    return url


def rank_sites(rows, top_n: int) -> tuple[list[str], int]:
    """Group (url, visits) rows by host; return (top hosts, distinct count).

    Ties keep first-seen order.

    >>> rank_sites([("https://a.com/1", 2), ("https://b.com", 5), ("https://a.com/2", 4)], 1)
    (['a.com'], 2)
    """
    totals: dict[str, int] = {}
    for url, visits in rows:
        host = extract_host(url or "")
        if not host:
            continue
        totals[host] = totals.get(host, 0) + (visits or 0)

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [host for host, _ in ranked[:top_n]], len(totals)


class StatsAggregator:
    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    def overview(
        self, time_range: Optional[str] = None, top_n: int = DEFAULT_TOP_SITES
    ) -> OverviewStats:
        """Total visits, distinct sites and top ``top_n`` sites in the time range."""
        if not MIN_TOP_SITES <= top_n <= MAX_TOP_SITES:
            raise InvalidArgumentError(
                f"top_n must be between {MIN_TOP_SITES} and {MAX_TOP_SITES}"
            )

        plan = compile_filters(FilterSpec(time_range=time_range))
        where = plan.where_sql
        params = plan.params

        def _collect(conn: sqlite3.Connection) -> OverviewStats:
            total = conn.execute(
                f"SELECT COALESCE(SUM(num_visits), 0) FROM {HISTORY_TABLE}{where}",
                params,
            ).fetchone()[0]
            cursor = conn.execute(
                f"SELECT url, num_visits FROM {HISTORY_TABLE}{where}", params
            )
            top_sites, distinct = rank_sites(
                ((row[0], row[1]) for row in cursor), top_n
            )
            return OverviewStats(
                total_visits=total,
                distinct_site_count=distinct,
                top_sites=top_sites,
            )

        return self.manager.with_handle(_collect)
