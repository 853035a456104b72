"""Single shared SQLite handle for the history database.

Exactly one connection is alive at a time. It is opened lazily from the
configured path (or the demo database in the app directory), and can be
swapped to another file at runtime with ``reset()``. One lock guards every
access, so callers see a reset as an atomic switch from the old handle to
the new one.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from navhistory.config import ConfigStore
from navhistory.errors import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

HISTORY_TABLE = "navigation_history"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS navigation_history (
    url TEXT PRIMARY KEY,
    id INTEGER,
    title TEXT,
    metadata TEXT,
    last_visited_time INTEGER NOT NULL DEFAULT 0,
    num_visits INTEGER NOT NULL DEFAULT 1,
    product_entity_id TEXT,
    locale TEXT,
    titledata TEXT,
    urldata TEXT,
    page_profile TEXT
);
CREATE INDEX IF NOT EXISTS idx_nav_last_time ON navigation_history(last_visited_time DESC);
"""

DEMO_ROW_COUNT = 50


def demo_rows(now: int, count: int = DEMO_ROW_COUNT) -> list[tuple]:
    """Deterministic sample rows: one per hour going back from ``now``.

    >>> demo_rows(10_000, count=2)
    [('https://example.com/page0', 0, 'Demo page 0', 10000, 1, 'en-us'), ('https://example.com/page1', 1, 'Demo page 1', 6400, 2, 'zh-cn')]
    """
    return [
        (
            f"https://example.com/page{i}",
            i,
            f"Demo page {i}",
            now - i * 3600,
            i % 7 + 1,
            "en-us" if i % 2 == 0 else "zh-cn",
        )
        for i in range(count)
    ]


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # Performance hints only; a read-only or exotic file may refuse them.
    for pragma in ("PRAGMA journal_mode=WAL", "PRAGMA synchronous=NORMAL"):
        try:
            conn.execute(pragma)
        except sqlite3.DatabaseError as e:
            logger.debug("%s failed (non-fatal): %s", pragma, e)


def _open(path: str) -> sqlite3.Connection:
    """Open ``path`` and touch the schema so bad files fail here, not later."""
    conn = sqlite3.connect(path, timeout=30.0, check_same_thread=False)
    try:
        conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
    except sqlite3.Error:
        conn.close()
        raise
    conn.row_factory = sqlite3.Row
    _apply_pragmas(conn)
    return conn


def init_demo_schema(conn: sqlite3.Connection, now: Optional[int] = None) -> None:
    """Create the demo table and seed it if empty."""
    conn.executescript(SCHEMA_SQL)
    count = conn.execute(f"SELECT COUNT(*) FROM {HISTORY_TABLE}").fetchone()[0]
    if count == 0:
        rows = demo_rows(int(time.time()) if now is None else now)
        conn.executemany(
            f"INSERT OR REPLACE INTO {HISTORY_TABLE}"
            "(url, id, title, last_visited_time, num_visits, locale) VALUES (?,?,?,?,?,?)",
            rows,
        )
        logger.info("Seeded demo history with %d rows", len(rows))
    conn.commit()


class ConnectionManager:
    """Owner of the one live database handle.

    >>> import tempfile
    >>> from pathlib import Path
    >>> manager = ConnectionManager(ConfigStore(Path(tempfile.mkdtemp())))
    >>> manager.active_path is None
    True
    """

    def __init__(self, config_store: ConfigStore, data_dir: Optional[Path] = None):
        self.config_store = config_store
        self.data_dir = Path(data_dir) if data_dir is not None else config_store.app_dir
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._path: Optional[str] = None

    @property
    def fallback_path(self) -> Path:
        return self.data_dir / self.config_store.demo_db_path.name

    @property
    def active_path(self) -> Optional[str]:
        with self._lock:
            return self._path

    def resolve_path(self) -> tuple[str, bool]:
        """Return (path, is_fallback) for the next lazy open."""
        configured = self.config_store.load().db_path
        if configured and Path(configured).is_file():
            return configured, False
        if configured:
            logger.warning("Configured database %s not found, using demo database", configured)
        return str(self.fallback_path), True

    # ------------------------------------------------------------------
    # Handle lifecycle
    # ------------------------------------------------------------------

    def _ensure_open(self) -> sqlite3.Connection:
        """Open the handle if needed. Caller must hold ``self._lock``."""
        if self._conn is not None:
            return self._conn

        path, is_fallback = self.resolve_path()
        conn = None
        try:
            if is_fallback:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            conn = _open(path)
            if is_fallback:
                init_demo_schema(conn)
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            raise DatabaseError(f"Cannot open database {path}: {e}") from e

        self._conn = conn
        self._path = path
        logger.info("Opened history database %s", path)
        return conn

    def acquire(self) -> sqlite3.Connection:
        """Return the live handle, opening it first if none exists.

        The handle is returned after the lock is released, so a concurrent
        ``reset()`` may close it. Use it for identity checks only and run
        queries through ``with_handle()`` or ``connection()``.
        """
        with self._lock:
            return self._ensure_open()

    def reset(self, new_path: str) -> None:
        """Point the manager at ``new_path``.

        The new file is opened before the old handle is closed, so a failure
        leaves the previous handle in place.
        """
        with self._lock:
            try:
                conn = _open(new_path)
            except sqlite3.Error as e:
                raise DatabaseError(f"Cannot open database {new_path}: {e}") from e

            old = self._conn
            self._conn = conn
            self._path = new_path
            if old is not None:
                old.close()
        logger.info("Switched history database to %s", new_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._path = None

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock and yield the live handle for the block's duration."""
        with self._lock:
            yield self._ensure_open()

    def with_handle(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn`` against the live handle under the lock."""
        with self.connection() as conn:
            try:
                return fn(conn)
            except sqlite3.Error as e:
                raise DatabaseError(str(e)) from e
