"""Shared fixtures for navhistory tests."""

import sqlite3

import pytest

from navhistory.commands import HistoryService
from navhistory.config import ConfigStore
from navhistory.web.connection import SCHEMA_SQL, ConnectionManager

BASE_TS = 1_700_000_000


@pytest.fixture(autouse=True)
def app_home(tmp_path, monkeypatch):
    """Point the per-user app directory at a temp dir for every test."""
    home = tmp_path / "app"
    monkeypatch.setenv("NAVHISTORY_HOME", str(home))
    return home


@pytest.fixture
def config_store(app_home):
    return ConfigStore(app_home)


@pytest.fixture
def manager(config_store):
    mgr = ConnectionManager(config_store)
    yield mgr
    mgr.close()


@pytest.fixture
def service(config_store, manager):
    return HistoryService(config_store, manager)


@pytest.fixture
def make_history_db(tmp_path):
    """Factory for a navigation_history database file with given rows.

    Rows are (url, title, last_visited_time, num_visits, locale, product_entity_id);
    trailing fields may be omitted.
    """
    def _create(name="history.db", rows=()):
        path = tmp_path / name
        conn = sqlite3.connect(path)
        conn.executescript(SCHEMA_SQL)
        for row in rows:
            row = tuple(row) + (None,) * (6 - len(row))
            conn.execute(
                "INSERT INTO navigation_history"
                "(url, title, last_visited_time, num_visits, locale, product_entity_id)"
                " VALUES (?,?,?,?,?,?)",
                row,
            )
        conn.commit()
        conn.close()
        return path
    return _create


@pytest.fixture
def synthetic_rows():
    """50 rows, visits 1-7, timestamps one hour apart."""
    return [
        (
            f"https://site{i % 5}.example.com/page{i}",
            f"Page {i}",
            BASE_TS - i * 3600,
            i % 7 + 1,
            "en-us" if i % 2 == 0 else "zh-cn",
        )
        for i in range(50)
    ]


@pytest.fixture
def loose_history_db(tmp_path):
    """A navigation_history file without NOT NULL constraints, one row per tuple."""
    def _create(rows, name="loose.db"):
        path = tmp_path / name
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE navigation_history (url TEXT, title TEXT, last_visited_time INTEGER,"
            " num_visits INTEGER, locale TEXT, product_entity_id TEXT)"
        )
        conn.executemany("INSERT INTO navigation_history VALUES (?,?,?,?,?,?)", rows)
        conn.commit()
        conn.close()
        return path
    return _create
