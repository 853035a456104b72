"""Persisted application configuration.

Holds the active database path, the browser source path, and the top-sites
count, stored as JSON under the per-user app directory:

    ~/.navhistory/config.json   (or $NAVHISTORY_HOME/config.json)

The loaded config is cached in memory; every write goes through to disk and
the cache together.
"""

import json
import logging
import os
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from navhistory.errors import InternalError, InvalidArgumentError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
DEMO_DB_FILENAME = "history_demo.db"
SQLITE_HEADER = b"SQLite format 3\x00"

DEFAULT_TOP_SITES = 6
MIN_TOP_SITES = 1
MAX_TOP_SITES = 50


def get_app_dir() -> Path:
    """Return the per-user app directory (config + data files).

    >>> isinstance(get_app_dir(), Path)
    True
    """
    override = os.environ.get("NAVHISTORY_HOME")
    if override:
        return Path(override)
    return Path.home() / ".navhistory"


class AppConfig(BaseModel):
    """Pydantic v2 model for the persisted config record."""

    db_path: Optional[str] = None
    browser_db_path: Optional[str] = None
    top_sites_count: int = DEFAULT_TOP_SITES
    last_updated: int = Field(default_factory=lambda: int(time.time()))


def validate_db_path(path: str) -> bool:
    """Check that ``path`` is an existing SQLite 3 database file.

    Only the 16-byte header is read. Raises InvalidArgumentError with the
    reason on failure.

    >>> validate_db_path("/definitely/not/here.db")
    Traceback (most recent call last):
    ...
    navhistory.errors.InvalidArgumentError: File does not exist: /definitely/not/here.db
    """
    db_path = Path(path)
    if not db_path.exists():
        raise InvalidArgumentError(f"File does not exist: {path}")
    if not db_path.is_file():
        raise InvalidArgumentError(f"Path is not a file: {path}")

    try:
        with open(db_path, "rb") as f:
            header = f.read(len(SQLITE_HEADER))
    except OSError as e:
        raise InvalidArgumentError(f"Cannot read file: {e}") from e

    if len(header) < len(SQLITE_HEADER):
        raise InvalidArgumentError("File too small to be a database file")
    if header != SQLITE_HEADER:
        raise InvalidArgumentError("Not a valid SQLite database file")
    return True


def _safe_replace(src: str, dst: str, *, retries: int = 3, delay: float = 0.1):
    """os.replace() with retry for Windows PermissionError."""
    for attempt in range(retries):
        try:
            os.replace(src, dst)
            return
        except PermissionError:
            if sys.platform != "win32" or attempt == retries - 1:
                raise
            time.sleep(delay * (2 ** attempt))


class ConfigStore:
    """Load/save AppConfig with an in-memory cache.

    >>> import tempfile
    >>> store = ConfigStore(Path(tempfile.mkdtemp()))
    >>> store.load().top_sites_count
    6
    """

    def __init__(self, app_dir: Optional[Path] = None):
        self.app_dir = Path(app_dir) if app_dir is not None else get_app_dir()
        self._cache: Optional[AppConfig] = None
        self._lock = threading.Lock()

    @property
    def config_path(self) -> Path:
        return self.app_dir / CONFIG_FILENAME

    @property
    def demo_db_path(self) -> Path:
        return self.app_dir / DEMO_DB_FILENAME

    def load(self) -> AppConfig:
        """Return the cached config, reading (or creating) the file on first use."""
        with self._lock:
            if self._cache is None:
                self._cache = self._read()
            return self._cache.model_copy()

    def reload(self) -> AppConfig:
        """Drop the cache and read the file again."""
        with self._lock:
            self._cache = None
        return self.load()

    def save(self, config: AppConfig) -> None:
        with self._lock:
            self._write(config)
            self._cache = config.model_copy()

    def _read(self) -> AppConfig:
        path = self.config_path
        if not path.exists():
            config = AppConfig()
            self._write(config)
            logger.info("Created default config at %s", path)
            return config

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return AppConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise InternalError(f"Failed to load config {path}: {e}") from e

    def _write(self, config: AppConfig) -> None:
        path = self.config_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=str(path.parent), prefix=".config_tmp_", suffix=".json"
            )
        except OSError as e:
            raise InternalError(f"Failed to save config {path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(config.model_dump_json(indent=2))
            _safe_replace(tmp, str(path))
        except OSError as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise InternalError(f"Failed to save config {path}: {e}") from e

    # ------------------------------------------------------------------
    # Field setters (write-through)
    # ------------------------------------------------------------------

    def set_db_path(self, path: str) -> AppConfig:
        if not Path(path).exists():
            raise InvalidArgumentError(f"Database file does not exist: {path}")
        config = self.load()
        config.db_path = path
        config.last_updated = int(time.time())
        self.save(config)
        return config

    def set_browser_db_path(self, path: str) -> AppConfig:
        config = self.load()
        config.browser_db_path = path
        config.last_updated = int(time.time())
        self.save(config)
        return config

    def set_top_sites_count(self, count: int) -> AppConfig:
        if not MIN_TOP_SITES <= count <= MAX_TOP_SITES:
            raise InvalidArgumentError(
                f"top_sites_count must be between {MIN_TOP_SITES} and {MAX_TOP_SITES}"
            )
        config = self.load()
        config.top_sites_count = count
        config.last_updated = int(time.time())
        self.save(config)
        return config
