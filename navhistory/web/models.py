"""Pydantic v2 result models for history queries and stats."""

from typing import Optional

from pydantic import BaseModel


class HistoryRecord(BaseModel):
    """Pydantic v2 model for a navigation_history row."""

    url: str
    title: Optional[str] = None
    last_visited_time: int
    num_visits: int
    locale: Optional[str] = None
    entity_tag: Optional[str] = None


class Page(BaseModel):
    """One page of history plus the filtered total, ignoring pagination."""

    items: list[HistoryRecord] = []
    total: int = 0
    page: int = 1
    page_size: int = 0


class OverviewStats(BaseModel):
    total_visits: int = 0
    distinct_site_count: int = 0
    top_sites: list[str] = []
