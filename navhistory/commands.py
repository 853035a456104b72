"""Command surface shared by the HTTP API and the CLI.

Every command either returns a result model / status string or raises an
``AppError`` subclass; the callers turn those into JSON envelopes or
console messages.
"""

import logging
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from navhistory.config import AppConfig, ConfigStore, validate_db_path
from navhistory.errors import AppError, InternalError, InvalidArgumentError
from navhistory.web.connection import ConnectionManager
from navhistory.web.filters import FilterSpec, compile_filters
from navhistory.web.models import OverviewStats, Page
from navhistory.web.queries import QueryExecutor
from navhistory.web.stats import StatsAggregator

logger = logging.getLogger(__name__)


def _open_directory_command(directory: Path) -> list[str]:
    """Platform command that opens ``directory`` in the file manager."""
    if sys.platform == "win32":
        return ["explorer", str(directory)]
    if sys.platform == "darwin":
        return ["open", str(directory)]
    return ["xdg-open", str(directory)]


class HistoryService:
    """Glue between the config store, the shared connection and the engines.

    >>> import tempfile
    >>> service = HistoryService(ConfigStore(Path(tempfile.mkdtemp())))
    >>> service.list_history(1, 5, FilterSpec()).total
    50
    """

    def __init__(
        self,
        config_store: Optional[ConfigStore] = None,
        manager: Optional[ConnectionManager] = None,
    ):
        self.config_store = config_store or ConfigStore()
        self.manager = manager or ConnectionManager(self.config_store)
        self.queries = QueryExecutor(self.manager)
        self.stats = StatsAggregator(self.manager)

    def close(self) -> None:
        self.manager.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_history(self, page: int, page_size: int, filters: FilterSpec) -> Page:
        return self.queries.list(compile_filters(filters), page, page_size)

    def stats_overview(self, time_range: Optional[str] = None) -> OverviewStats:
        top_n = self.config_store.load().top_sites_count
        return self.stats.overview(time_range, top_n=top_n)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> AppConfig:
        return self.config_store.load()

    def validate_db_path(self, path: str) -> bool:
        return validate_db_path(path)

    def set_db_path(self, path: str) -> str:
        """Validate, switch the live connection, then persist the new path.

        The config is only written once the reset succeeded, so a failed
        switch keeps the previously configured database. If persisting
        fails, the new handle is closed and the next query reopens whatever
        the config still names.
        """
        try:
            validate_db_path(path)
        except InvalidArgumentError as e:
            raise InvalidArgumentError(f"Database path validation failed: {e}") from e

        self.manager.reset(path)
        try:
            self.config_store.set_db_path(path)
        except AppError:
            logger.warning("Could not persist database path %s, closing its handle", path)
            self.manager.close()
            raise
        logger.info("Active database set to %s", path)
        return "Database path updated"

    def set_browser_db_path(self, path: str) -> str:
        if not Path(path).exists():
            raise InvalidArgumentError("Browser database file does not exist")
        self.config_store.set_browser_db_path(path)
        return "Browser database path saved"

    def set_top_sites_count(self, count: int) -> str:
        self.config_store.set_top_sites_count(count)
        return f"Top sites count set to {count}"

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def copy_browser_db_to_app(self, source_path: str) -> str:
        """Copy a browser history database into the app directory.

        Returns the path of the timestamped copy.
        """
        if not Path(source_path).exists():
            raise InvalidArgumentError("Source database file does not exist")

        app_dir = self.config_store.app_dir
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = app_dir / f"history_{timestamp}.db"
        try:
            app_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_path, target)
        except OSError as e:
            raise InternalError(f"Failed to copy database file: {e}") from e

        try:
            validate_db_path(str(target))
        except InvalidArgumentError as e:
            raise InvalidArgumentError(f"Copied database file is invalid: {e}") from e
        logger.info("Copied %s to %s", source_path, target)
        return str(target)

    def _active_db_file(self) -> Path:
        db_path = self.config_store.load().db_path
        if not db_path:
            raise InvalidArgumentError("No database path configured")
        return Path(db_path)

    def open_db_directory(self) -> str:
        directory = self._active_db_file().parent
        try:
            subprocess.Popen(_open_directory_command(directory))
        except OSError as e:
            raise InternalError(f"Failed to open directory: {e}") from e
        return "Directory opened"

    def cleanup_old_dbs(self) -> str:
        """Delete sibling ``*.db`` files other than the active database."""
        current = self._active_db_file()
        directory = current.parent
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            raise InternalError(f"Failed to read directory: {e}") from e

        deleted = 0
        for entry in entries:
            if entry.suffix != ".db" or entry.name == current.name or not entry.is_file():
                continue
            try:
                entry.unlink()
                deleted += 1
            except OSError as e:
                logger.warning("Failed to delete %s: %s", entry, e)

        logger.info("Cleaned up %d old database file(s) in %s", deleted, directory)
        return f"Removed {deleted} old database file(s)"
