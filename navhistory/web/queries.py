"""Paginated history listing over a compiled filter plan."""

import logging
import sqlite3

from pydantic import ValidationError

from navhistory.errors import DatabaseError, InvalidArgumentError
from navhistory.web.connection import HISTORY_TABLE, ConnectionManager
from navhistory.web.filters import CompiledPlan
from navhistory.web.models import HistoryRecord, Page

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500

ITEM_COLUMNS = (
    "url, title, last_visited_time, num_visits, locale, product_entity_id AS entity_tag"
)


class QueryExecutor:
    """Run the page SELECT and the matching COUNT through the shared handle.

    The two queries take the lock separately and are not wrapped in one
    transaction, so a concurrent writer can make ``total`` and ``items``
    disagree by the number of intervening writes.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    def list(self, plan: CompiledPlan, page: int, page_size: int) -> Page:
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise InvalidArgumentError("page_size out of range")
        page = max(page, 1)
        offset = (page - 1) * page_size

        where = plan.where_sql
        params = plan.params
        sql_items = (
            f"SELECT {ITEM_COLUMNS} FROM {HISTORY_TABLE}{where} {plan.order_by} "
            "LIMIT ? OFFSET ?"
        )
        sql_count = f"SELECT COUNT(*) FROM {HISTORY_TABLE}{where}"

        def _items(conn: sqlite3.Connection) -> list[HistoryRecord]:
            cursor = conn.execute(sql_items, params + [page_size, offset])
            try:
                return [HistoryRecord(**dict(row)) for row in cursor.fetchall()]
            except ValidationError as e:
                raise DatabaseError(f"Unreadable history row: {e}") from e

        def _total(conn: sqlite3.Connection) -> int:
            return conn.execute(sql_count, params).fetchone()[0]

        items = self.manager.with_handle(_items)
        total = self.manager.with_handle(_total)
        logger.debug("Listed %d of %d history rows (page=%d)", len(items), total, page)
        return Page(items=items, total=total, page=page, page_size=page_size)
