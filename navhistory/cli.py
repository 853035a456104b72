"""
CLI for navhistory.

Provides command-line access to the history listing, overview stats,
database path configuration, and the local dashboard server.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from navhistory.errors import AppError
from navhistory.web.filters import SORT_FIELDS, FilterSpec


console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_service():
    from navhistory.commands import HistoryService

    return HistoryService()


def _fail(e: AppError):
    console.print(f"[red]Error:[/red] {escape(str(e))}")
    sys.exit(1)


def _format_ts(ts: int) -> str:
    try:
        return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return str(ts)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def main(verbose: bool):
    """navhistory - Browse and analyze local navigation history."""
    setup_logging(verbose)


@main.command()
@click.option("--host", default=lambda: os.environ.get("NAVHISTORY_HOST", "127.0.0.1"), help="Bind address")
@click.option("--port", "-p", default=lambda: int(os.environ.get("NAVHISTORY_PORT", "8765")), type=int, help="Port")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str, port: int, reload: bool):
    """Run the local dashboard API."""
    import uvicorn

    os.environ["NAVHISTORY_HOST"] = host
    os.environ["NAVHISTORY_PORT"] = str(port)
    if host == "0.0.0.0":
        console.print("[yellow]Warning:[/yellow] dashboard exposed to the network")
    console.print(f"[green]Serving on http://{host}:{port}[/green]")
    uvicorn.run("navhistory.api.main:app", host=host, port=port, reload=reload)


@main.command(name="list")
@click.option("--page", default=1, help="Page number (1-based)")
@click.option("--page-size", "-n", default=20, help="Rows per page (1-500)")
@click.option("--keyword", "-k", help="Substring match on title or URL")
@click.option("--time-range", "-t", help="7d, 30d, 90d, all, or START-END epoch seconds")
@click.option("--locale", "-l", help="Exact locale match")
@click.option("--sort-by", "-s", help="Sort field: " + ", ".join(SORT_FIELDS) + " (others fall back to the default)")
@click.option("--asc", is_flag=True, help="Sort ascending (default descending)")
def list_history(
    page: int,
    page_size: int,
    keyword: Optional[str],
    time_range: Optional[str],
    locale: Optional[str],
    sort_by: Optional[str],
    asc: bool,
):
    """List navigation history with filters and pagination."""
    service = get_service()
    filters = FilterSpec(
        keyword=keyword,
        time_range=time_range,
        locale=locale,
        sort_by=sort_by,
        sort_order="asc" if asc else "desc",
    )
    try:
        result = service.list_history(page, page_size, filters)
    except AppError as e:
        _fail(e)

    if not result.items:
        console.print(f"[yellow]No history found[/yellow] (total {result.total})")
        return

    table = Table(title=f"History (page {result.page}, {result.total} total)", show_header=True)
    table.add_column("Last visited", style="dim")
    table.add_column("Visits", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("URL", style="magenta")
    table.add_column("Locale", style="green")

    for item in result.items:
        table.add_row(
            _format_ts(item.last_visited_time),
            str(item.num_visits),
            item.title or "",
            item.url,
            item.locale or "",
        )

    console.print(table)


@main.command()
@click.option("--time-range", "-t", help="7d, 30d, 90d, all, or START-END epoch seconds")
def stats(time_range: Optional[str]):
    """Show total visits, distinct sites and top sites."""
    service = get_service()
    try:
        overview = service.stats_overview(time_range)
    except AppError as e:
        _fail(e)

    console.print(f"[bold]Total visits:[/bold] {overview.total_visits}")
    console.print(f"[bold]Distinct sites:[/bold] {overview.distinct_site_count}")
    if overview.top_sites:
        console.print("\n[bold]Top sites:[/bold]")
        for i, site in enumerate(overview.top_sites, 1):
            console.print(f"  {i}. {site}")


@main.group()
def config():
    """Show or change the persisted configuration."""


@config.command(name="show")
def config_show():
    """Show current configuration."""
    service = get_service()
    try:
        cfg = service.get_config()
    except AppError as e:
        _fail(e)

    console.print(f"[bold]Config file:[/bold] {service.config_store.config_path}")
    console.print(f"  Database:         {cfg.db_path or '[dim](demo database)[/dim]'}")
    console.print(f"  Browser database: {cfg.browser_db_path or '[dim](not set)[/dim]'}")
    console.print(f"  Top sites count:  {cfg.top_sites_count}")
    console.print(f"  Last updated:     {_format_ts(cfg.last_updated)}")


@config.command(name="set-db")
@click.argument("path", type=click.Path())
def config_set_db(path: str):
    """Use PATH as the active history database."""
    service = get_service()
    try:
        message = service.set_db_path(path)
    except AppError as e:
        _fail(e)
    console.print(f"[green]{message}[/green]")


@config.command(name="set-browser-db")
@click.argument("path", type=click.Path())
def config_set_browser_db(path: str):
    """Remember PATH as the browser history source."""
    service = get_service()
    try:
        message = service.set_browser_db_path(path)
    except AppError as e:
        _fail(e)
    console.print(f"[green]{message}[/green]")


@config.command(name="set-top-sites")
@click.argument("count", type=int)
def config_set_top_sites(count: int):
    """Number of sites shown in the overview (1-50)."""
    service = get_service()
    try:
        message = service.set_top_sites_count(count)
    except AppError as e:
        _fail(e)
    console.print(f"[green]{message}[/green]")


@main.command()
@click.argument("path", type=click.Path())
def validate(path: str):
    """Check that PATH is a SQLite database file."""
    service = get_service()
    try:
        service.validate_db_path(path)
    except AppError as e:
        _fail(e)
    console.print(f"[green]Valid SQLite database:[/green] {path}")


@main.command(name="copy-browser-db")
@click.argument("source", required=False, type=click.Path())
@click.option("--use", "use_copy", is_flag=True, help="Switch to the copy after copying")
def copy_browser_db(source: Optional[str], use_copy: bool):
    """Copy a browser history database into the app directory.

    SOURCE defaults to the configured browser database path.
    """
    service = get_service()
    try:
        source = source or service.get_config().browser_db_path
        if not source:
            console.print("[red]Error:[/red] no SOURCE given and no browser database configured")
            sys.exit(1)
        target = service.copy_browser_db_to_app(source)
        console.print(f"[green]Copied to[/green] {target}")
        if use_copy:
            console.print(f"[green]{service.set_db_path(target)}[/green]")
    except AppError as e:
        _fail(e)


@main.command(name="open-dir")
def open_dir():
    """Open the directory holding the active database."""
    service = get_service()
    try:
        console.print(service.open_db_directory())
    except AppError as e:
        _fail(e)


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def cleanup(yes: bool):
    """Delete other .db files next to the active database."""
    service = get_service()
    if not yes:
        if not click.confirm("Delete all other .db files in the database directory?"):
            console.print("Cancelled")
            return
    try:
        console.print(f"[green]{service.cleanup_old_dbs()}[/green]")
    except AppError as e:
        _fail(e)


if __name__ == "__main__":
    main()
