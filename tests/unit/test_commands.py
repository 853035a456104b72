"""Tests for HistoryService: path switching round-trip and file housekeeping."""

from unittest import mock

import pytest

from navhistory.errors import DatabaseError, InternalError, InvalidArgumentError
from navhistory.web.filters import FilterSpec


def test_demo_database_on_first_run(service):
    page = service.list_history(1, 10, FilterSpec())
    assert page.total == 50
    assert page.items[0].url == "https://example.com/page0"


def test_set_db_path_round_trip(service, make_history_db):
    """set_db_path is reflected in get_config and later queries read the new file."""
    service.list_history(1, 10, FilterSpec())
    path = make_history_db(rows=[("https://only.example.com/", "Only", 10, 3)])

    message = service.set_db_path(str(path))

    assert message
    assert service.get_config().db_path == str(path)
    page = service.list_history(1, 10, FilterSpec())
    assert page.total == 1
    assert page.items[0].url == "https://only.example.com/"
    assert service.stats_overview().top_sites == ["only.example.com"]


def test_set_db_path_rejects_non_sqlite(service, tmp_path):
    fake = tmp_path / "fake.db"
    fake.write_text("definitely not sqlite, but long enough", encoding="utf-8")

    with pytest.raises(InvalidArgumentError, match="validation failed"):
        service.set_db_path(str(fake))
    assert service.get_config().db_path is None


def test_failed_reset_keeps_config(service, make_history_db):
    service.list_history(1, 1, FilterSpec())
    path = make_history_db()

    with mock.patch.object(service.manager, "reset", side_effect=DatabaseError("locked")):
        with pytest.raises(DatabaseError):
            service.set_db_path(str(path))

    assert service.get_config().db_path is None
    assert service.list_history(1, 1, FilterSpec()).total == 50


def test_stats_overview_uses_configured_top_n(service, make_history_db):
    rows = [(f"https://s{i}.example.com/", "t", 1, i + 1) for i in range(10)]
    service.set_db_path(str(make_history_db(rows=rows)))
    service.set_top_sites_count(3)

    stats = service.stats_overview()
    assert stats.top_sites == ["s9.example.com", "s8.example.com", "s7.example.com"]
    assert stats.distinct_site_count == 10


def test_set_browser_db_path(service, make_history_db, tmp_path):
    path = make_history_db("browser.db")
    service.set_browser_db_path(str(path))
    assert service.get_config().browser_db_path == str(path)
    # Browser source does not replace the active database
    assert service.get_config().db_path is None

    with pytest.raises(InvalidArgumentError):
        service.set_browser_db_path(str(tmp_path / "missing"))


def test_copy_browser_db_to_app(service, make_history_db, app_home):
    source = make_history_db("browser.db", rows=[("https://a.com/", "A", 1, 1)])
    target = service.copy_browser_db_to_app(str(source))

    assert target.startswith(str(app_home))
    assert target.endswith(".db")
    assert service.validate_db_path(target) is True


def test_copy_browser_db_missing_source(service, tmp_path):
    with pytest.raises(InvalidArgumentError):
        service.copy_browser_db_to_app(str(tmp_path / "missing.db"))


def test_copy_rejects_non_sqlite_source(service, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("just some notes that are not a db", encoding="utf-8")
    with pytest.raises(InvalidArgumentError, match="Copied database file is invalid"):
        service.copy_browser_db_to_app(str(source))


def test_cleanup_old_dbs(service, make_history_db, tmp_path):
    active = make_history_db("active.db")
    make_history_db("old1.db")
    make_history_db("old2.db")
    (tmp_path / "keep.txt").write_text("x", encoding="utf-8")
    service.set_db_path(str(active))

    message = service.cleanup_old_dbs()

    assert "2" in message
    assert active.exists()
    assert not (tmp_path / "old1.db").exists()
    assert not (tmp_path / "old2.db").exists()
    assert (tmp_path / "keep.txt").exists()


def test_cleanup_without_configured_path(service):
    with pytest.raises(InvalidArgumentError):
        service.cleanup_old_dbs()


def test_open_db_directory(service, make_history_db):
    path = make_history_db()
    service.set_db_path(str(path))

    with mock.patch("navhistory.commands.subprocess.Popen") as popen:
        service.open_db_directory()

    args = popen.call_args[0][0]
    assert args[-1] == str(path.parent)
    assert args[0] in ("explorer", "open", "xdg-open")


def test_open_db_directory_launch_failure(service, make_history_db):
    from navhistory.errors import InternalError

    service.set_db_path(str(make_history_db()))
    with mock.patch("navhistory.commands.subprocess.Popen", side_effect=OSError("no opener")):
        with pytest.raises(InternalError):
            service.open_db_directory()


def test_unreadable_row_is_a_db_error(service, loose_history_db):
    path = loose_history_db([("https://a.com/", "A", 5, None, "en-us", None)])
    service.set_db_path(str(path))

    with pytest.raises(DatabaseError, match="Unreadable history row"):
        service.list_history(1, 10, FilterSpec())
    # NULL visits still count as zero in the overview
    assert service.stats_overview().top_sites == ["a.com"]


def test_set_db_path_persist_failure_closes_new_handle(service, make_history_db, app_home):
    service.list_history(1, 1, FilterSpec())
    path = make_history_db(rows=[("https://a.com/", "A", 1, 1)])

    with mock.patch.object(
        service.config_store, "set_db_path", side_effect=InternalError("disk full")
    ):
        with pytest.raises(InternalError):
            service.set_db_path(str(path))

    assert service.manager.active_path is None
    assert service.list_history(1, 1, FilterSpec()).total == 50
    assert service.manager.active_path == str(app_home / "history_demo.db")
