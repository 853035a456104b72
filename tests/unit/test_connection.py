"""Tests for ConnectionManager: lazy open, demo bootstrap, reset, locking."""

import logging
import sqlite3
import threading

import pytest

from navhistory.errors import DatabaseError
from navhistory.web import connection as connection_module
from navhistory.web.connection import ConnectionManager


def _count(conn):
    return conn.execute("SELECT COUNT(*) FROM navigation_history").fetchone()[0]


def test_lazy_open_uses_seeded_fallback(manager, app_home):
    """No configured path: demo database is created and seeded once."""
    assert manager.active_path is None
    conn = manager.acquire()
    assert manager.active_path == str(app_home / "history_demo.db")
    assert _count(conn) == 50
    assert manager.acquire() is conn


def test_fallback_seed_is_not_duplicated(config_store):
    first = ConnectionManager(config_store)
    first.acquire()
    first.close()

    second = ConnectionManager(config_store)
    assert _count(second.acquire()) == 50
    second.close()


def test_pragmas_applied(manager):
    conn = manager.acquire()
    assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"


class _PragmaRefusingConnection(sqlite3.Connection):
    def execute(self, sql, *args):
        if sql.startswith("PRAGMA") and "=" in sql:
            raise sqlite3.OperationalError("attempt to write a readonly database")
        return super().execute(sql, *args)


def test_refused_pragmas_are_not_fatal(manager, monkeypatch, caplog):
    real_connect = sqlite3.connect
    monkeypatch.setattr(
        sqlite3, "connect",
        lambda *a, **kw: real_connect(*a, factory=_PragmaRefusingConnection, **kw),
    )

    with caplog.at_level(logging.DEBUG, logger="navhistory.web.connection"):
        conn = manager.acquire()

    assert _count(conn) == 50
    assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() != "wal"
    assert "PRAGMA journal_mode=WAL failed (non-fatal)" in caplog.text
    assert "PRAGMA synchronous=NORMAL failed (non-fatal)" in caplog.text


def test_failed_demo_seed_closes_new_handle(manager, monkeypatch):
    opened = []
    real_open = connection_module._open

    def _tracking_open(path):
        conn = real_open(path)
        opened.append(conn)
        return conn

    def _broken_seed(conn):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(connection_module, "_open", _tracking_open)
    monkeypatch.setattr(connection_module, "init_demo_schema", _broken_seed)

    with pytest.raises(DatabaseError, match="database is locked"):
        manager.acquire()

    assert manager.active_path is None
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")


def test_configured_path_is_not_bootstrapped(config_store, make_history_db, app_home):
    """A user-supplied database is opened as-is, never seeded."""
    path = make_history_db(rows=[("https://a.com/", "A", 1, 1)])
    config_store.set_db_path(str(path))

    mgr = ConnectionManager(config_store)
    assert _count(mgr.acquire()) == 1
    assert mgr.active_path == str(path)
    assert not (app_home / "history_demo.db").exists()
    mgr.close()


def test_missing_configured_path_falls_back(config_store, make_history_db, app_home):
    path = make_history_db(rows=[("https://a.com/", "A", 1, 1)])
    config_store.set_db_path(str(path))
    path.unlink()

    mgr = ConnectionManager(config_store)
    assert mgr.resolve_path() == (str(app_home / "history_demo.db"), True)
    mgr.close()


def test_reset_switches_handle(manager, make_history_db):
    old = manager.acquire()
    path = make_history_db(rows=[("https://a.com/", "A", 1, 1), ("https://b.com/", "B", 2, 2)])

    manager.reset(str(path))

    new = manager.acquire()
    assert new is not old
    assert manager.active_path == str(path)
    assert _count(new) == 2


def test_failed_reset_keeps_previous_handle(manager, tmp_path):
    conn = manager.acquire()
    garbage = tmp_path / "garbage.db"
    garbage.write_bytes(b"not a database at all, just text" * 10)

    with pytest.raises(DatabaseError):
        manager.reset(str(garbage))

    assert manager.acquire() is conn
    assert _count(conn) == 50


def test_reset_to_unopenable_path(manager, tmp_path):
    with pytest.raises(DatabaseError):
        manager.reset(str(tmp_path / "no" / "such" / "dir" / "x.db"))


def test_close_then_acquire_reopens_configured(manager):
    first = manager.acquire()
    manager.close()
    assert manager.active_path is None
    assert manager.acquire() is not first


def test_with_handle_releases_lock_on_error(manager):
    def _boom(conn):
        raise RuntimeError("inside")

    with pytest.raises(RuntimeError):
        manager.with_handle(_boom)

    # Lock is free again
    assert manager.with_handle(_count) == 50


def test_with_handle_wraps_sqlite_errors(manager):
    with pytest.raises(DatabaseError):
        manager.with_handle(lambda conn: conn.execute("SELECT * FROM missing_table"))
    assert manager.with_handle(_count) == 50


def test_concurrent_access_during_reset(manager, make_history_db):
    """Readers never see a half-replaced handle while resets run."""
    path_a = make_history_db("a.db", rows=[("https://a.com/", "A", 1, 1)])
    path_b = make_history_db("b.db", rows=[("https://b.com/", "B", 1, 1), ("https://c.com/", "C", 1, 1)])
    manager.acquire()
    errors = []

    def reader():
        try:
            for _ in range(200):
                assert manager.with_handle(_count) in (1, 2, 50)
        except Exception as e:  # collected for the main thread
            errors.append(e)

    def switcher():
        try:
            for i in range(50):
                manager.reset(str(path_a if i % 2 == 0 else path_b))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads.append(threading.Thread(target=switcher))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
