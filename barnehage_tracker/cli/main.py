"""Barnehage Tracker CLI using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from barnehage_tracker import __version__

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

console = Console()
log_console = Console(stderr=True)

app = typer.Typer(
    name="barnehage-tracker",
    help="Barnehage Tracker - open kindergarten spots in Oslo, tracked over time",
    add_completion=False,
)
sources_app = typer.Typer(help="Source configuration commands")
jobs_app = typer.Typer(help="Queued job commands")

app.add_typer(sources_app, name="sources")
app.add_typer(jobs_app, name="jobs")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=log_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _open_database():
    from barnehage_tracker.db.engine import Database

    database = Database.from_path()
    database.open()
    database.create_all()
    return database


@app.command()
def init_db(
    migrate: bool = typer.Option(
        False, "--migrate", help="Run Alembic migrations instead of creating tables directly"
    ),
) -> None:
    """Initialize the database."""
    from barnehage_tracker.db.engine import Database, run_migrations

    database = Database.from_path()
    typer.echo(f"Initializing database at {database.url}...")
    if migrate:
        run_migrations(database.url)
    else:
        with database:
            database.create_all()
    typer.echo("Database initialized successfully!")


@app.command()
def bootstrap(
    enqueue: bool = typer.Option(False, "--enqueue", help="Queue the job for the worker"),
) -> None:
    """
    Populate the kindergarten registry from barnehagefakta.no.

    Existing kindergartens are updated by orgnr; their spot history is kept.
    """
    from barnehage_tracker.ingestion.jobs import JobStatus, run_bootstrap

    if enqueue:
        _enqueue("bootstrap_registry")
        return

    database = _open_database()
    try:
        with console.status("[bold blue]Bootstrapping registry...[/bold blue]"):
            result = asyncio.run(run_bootstrap(database))
    finally:
        database.close()

    _display_job_result(result.to_dict())
    if result.status == JobStatus.FAILED:
        raise typer.Exit(1)


@app.command()
def scrape(
    html_file: Optional[Path] = typer.Option(
        None, "--html-file", "-f", exists=True, dir_okay=False, help="Use a saved page instead of fetching"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Parse only; leave the registry untouched"),
    enqueue: bool = typer.Option(False, "--enqueue", help="Queue the job for the worker"),
) -> None:
    """
    Scrape the availability page and reconcile it against the registry.

    Examples:
        barnehage-tracker scrape
        barnehage-tracker scrape --html-file snapshot.html --dry-run
    """
    from barnehage_tracker.ingestion.jobs import JobStatus, run_scrape

    html = html_file.read_text(encoding="utf-8") if html_file else None

    if enqueue:
        _enqueue("scrape_availability", *([html] if html else []))
        return

    database = _open_database()
    try:
        with console.status("[bold blue]Scraping...[/bold blue]"):
            result = asyncio.run(run_scrape(database, html=html, dry_run=dry_run))
    finally:
        database.close()

    _display_job_result(result.to_dict())
    if result.status == JobStatus.FAILED:
        raise typer.Exit(1)


@app.command()
def parse(
    html_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved availability page"),
    year: Optional[int] = typer.Option(None, "--year", help="Year for dates that carry none"),
) -> None:
    """Parse a saved page and print observations and errors as JSON."""
    from barnehage_tracker.ingestion.parser import parse_availability_page

    result = parse_availability_page(html_file.read_text(encoding="utf-8"), default_year=year)
    typer.echo(
        json.dumps(
            {
                "data": [o.to_dict() for o in result.observations],
                "errors": [e.to_dict() for e in result.errors],
            },
            indent=2,
            ensure_ascii=False,
        )
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the query API server."""
    import uvicorn

    typer.echo(f"Starting Barnehage Tracker API on http://{host}:{port}")
    typer.echo("Press Ctrl+C to stop the server")

    uvicorn.run(
        "barnehage_tracker.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the job worker.

    The worker runs queued jobs and the periodic scrape, one at a time.
    """
    from arq import run_worker

    from barnehage_tracker.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")

    try:
        run_worker(WorkerSettings, burst=burst)
    except OSError as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show the Barnehage Tracker version."""
    typer.echo(f"Barnehage Tracker v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from barnehage_tracker.db.engine import get_database_url
    from barnehage_tracker.ingestion.errors import ConfigurationError
    from barnehage_tracker.ingestion.registry import (
        API_SOURCE,
        PAGE_SOURCE,
        get_default_registry,
    )

    typer.echo("Barnehage Tracker Configuration")
    typer.echo("=" * 40)

    env_path = next((p for p in _env_paths if p.exists()), None)
    typer.echo(f"  .env file: {env_path or 'Not found'}")
    typer.echo(f"  Database: {get_database_url()}")

    registry = get_default_registry()
    typer.echo(f"  Sources config: {registry.config_path or 'Not found'}")
    typer.echo(f"  User agent: {registry.global_config.user_agent}")
    typer.echo(f"  Snapshots: {registry.global_config.snapshot_storage_path}")

    problems = []
    for name in (PAGE_SOURCE, API_SOURCE):
        try:
            source = registry.require_source(name)
            typer.echo(f"  {name}: {source.url}")
        except ConfigurationError as e:
            problems.append(str(e))

    for problem in problems:
        rprint(f"  [red]Error:[/red] {problem}")
    if problems:
        raise typer.Exit(1)


# Sources subcommands


@sources_app.command("list")
def list_sources(
    all_sources: bool = typer.Option(False, "--all", "-a", help="Show disabled sources too"),
) -> None:
    """List configured sources."""
    from barnehage_tracker.ingestion.registry import get_default_registry

    registry = get_default_registry()
    sources = registry.list_sources() if all_sources else registry.list_enabled_sources()

    if not sources:
        rprint("[yellow]No sources configured[/yellow]")
        return

    table = Table(title="Sources")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("URL")
    table.add_column("Rate Limit")
    table.add_column("Status")

    for source in sources:
        status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"
        table.add_row(
            source.name,
            source.kind,
            source.url,
            f"{source.rate_limit.requests_per_second}/s (burst {source.rate_limit.burst_limit})",
            status,
        )

    console.print(table)


# Jobs subcommands


@jobs_app.command("status")
def job_status(job_id: str = typer.Argument(..., help="Job ID to check")) -> None:
    """Check the status of a queued job."""
    from barnehage_tracker.ingestion.jobs import get_job_status

    try:
        result = asyncio.run(get_job_status(job_id))
    except OSError as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Status: {result.get('status', 'unknown')}")
    if isinstance(result.get("result"), dict):
        _display_job_result(result["result"])


def _enqueue(function_name: str, *args: str) -> None:
    from barnehage_tracker.ingestion.jobs import enqueue

    try:
        job_id = asyncio.run(enqueue(function_name, *args))
    except OSError as e:
        rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    rprint("\n[green]Job enqueued successfully![/green]")
    rprint(f"Job ID: [bold]{job_id}[/bold]")
    rprint("\nCheck status with:")
    rprint(f"  barnehage-tracker jobs status {job_id}")


def _display_job_result(result: dict) -> None:
    """Display job result in a formatted summary."""
    status = result.get("status", "unknown")
    status_color = {
        "completed": "green",
        "running": "blue",
        "pending": "yellow",
        "failed": "red",
    }.get(status, "white")

    rprint(f"\n[bold]Results ({result.get('job_type', 'job')}):[/bold]")
    rprint(f"  Status: [{status_color}]{status}[/{status_color}]")
    if result.get("duration_seconds"):
        rprint(f"  Duration: {result['duration_seconds']:.1f}s")

    rprint("\n[bold]Statistics:[/bold]")
    if result.get("job_type") == "bootstrap":
        rprint(f"  Kindergartens upserted: {result.get('kindergartens_upserted', 0)}")
    else:
        rprint(f"  Observations: {result.get('observations', 0)}")
        rprint(f"  New spots: {result.get('new_spots', 0)}")
        rprint(f"  Refreshed spots: {result.get('refreshed_spots', 0)}")
        rprint(f"  Taken spots: {result.get('taken_spots', 0)}")
        rprint(f"  Kindergartens saved: {result.get('kindergartens_saved', 0)}")
        rprint(f"  Notifications: {result.get('notifications', 0)}")

    diagnostics = result.get("parse_errors", []) + result.get("mapping_errors", [])
    if diagnostics:
        rprint(f"\n[bold yellow]Diagnostics ({len(diagnostics)}):[/bold yellow]")
        for diagnostic in diagnostics[:10]:
            rprint(f"  • {diagnostic.get('type')}: {diagnostic.get('message')}")
        if len(diagnostics) > 10:
            rprint(f"  ... and {len(diagnostics) - 10} more")

    errors = result.get("errors", [])
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:
            rprint(f"  • {error}")


if __name__ == "__main__":
    app()
