"""
Media migration commands.
"""
from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from spacesync.cli.commands.utils import confirm_action
from spacesync.cli.logging import setup_cli_logging
from spacesync.core.config import settings
from spacesync.core.database import engine
from spacesync.core.exceptions import MediaNotFoundError, StateConflictError
from spacesync.models.enums import MigrationStatus, RewriteStrategy
from spacesync.schemas.migration import MigrationProgress
from spacesync.services.chunk_worker import ChunkWorker
from spacesync.services.job_scheduler import InlineJobScheduler
from spacesync.services.migration_service import (
    OFFLOAD_MEDIA_TASK,
    PROCESS_CHUNK_TASK,
    MigrationService,
    build_migration_service,
)
from spacesync.services.migration_state_store import MigrationStateStore

app = typer.Typer(help="Media migration commands")
console = Console()


def _inline_scheduler() -> InlineJobScheduler:
    worker = ChunkWorker(engine, MigrationStateStore(engine), settings=settings)

    def run_chunk(chunk: List[str], index: int, run_id: Optional[str] = None):
        report = worker.process_chunk(chunk, index, run_id)
        console.print(
            f"  chunk #{index}: {report.processed} processed, "
            f"[{'red' if report.errors else 'green'}]{report.errors} error(s)[/]"
        )
        return report

    def run_offload(media_id: str):
        outcome = worker.offload_item(media_id)
        console.print(f"  media {media_id}: {outcome.value}")
        return outcome

    return InlineJobScheduler({PROCESS_CHUNK_TASK: run_chunk, OFFLOAD_MEDIA_TASK: run_offload})


def _render_progress(progress: MigrationProgress) -> None:
    if progress.status == MigrationStatus.NOT_STARTED:
        console.print("[yellow]No migration initiated.[/yellow]")
        return

    table = Table(title="Migration Progress")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Run", progress.run_id or "-")
    table.add_row("Status", progress.status.value)
    table.add_row("Strategy", progress.strategy.value if progress.strategy else "-")
    table.add_row("Processed", f"{progress.completed} / {progress.total} ({progress.percent:.2f}%)")
    table.add_row("Errors", str(progress.errors))
    console.print(table)


@app.command("scan")
def scan_tables(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Scan the database for tables that reference local media files.

    Core content tables and SpaceSync's own tables are skipped; the result
    replaces the previous scan.
    """
    logger = setup_cli_logging("scan", verbose=verbose)
    logger.info(f"Scanning with patterns: {settings.scan_patterns}")

    service: MigrationService = build_migration_service()
    try:
        result = service.scan_tables()
    except (SQLAlchemyError, StateConflictError) as exc:
        logger.error(f"Scan failed: {exc}")
        console.print(f"[red]Scan failed: {exc}[/red]")
        raise typer.Exit(code=1)

    if not result.tables:
        console.print("[green]No additional tables reference local media.[/green]")
        raise typer.Exit(code=0)

    table = Table(title="Tables Referencing Local Media")
    table.add_column("Table", style="cyan")
    table.add_column("Matching rows", style="white", justify="right")
    for name, count in sorted(result.tables.items()):
        table.add_row(name, str(count))
    console.print(table)
    console.print("Pass tables to [bold]migrate start --table NAME[/bold] to rewrite them too.")


@app.command("start")
def start_migration(
    tables: Optional[List[str]] = typer.Option(
        None, "--table", "-t", help="Additional table to rewrite (repeatable)"
    ),
    strategy: Optional[RewriteStrategy] = typer.Option(
        None, "--strategy", "-s", case_sensitive=False,
        help="naive (bulk REPLACE) or advanced (serialization aware)",
    ),
    inline: bool = typer.Option(False, "--inline", help="Process chunks in this process instead of Celery"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Upload every media item to Spaces and rewrite references to it.

    Starting while a previous run is unfinished supersedes that run.
    """
    logger = setup_cli_logging("start", verbose=verbose)
    selected = list(tables or [])
    chosen = strategy or settings.default_rewrite_strategy

    missing = settings.missing_spaces_settings()
    if missing:
        console.print(f"[yellow]⚠ Spaces settings missing: {', '.join(missing)}. Every upload will fail.[/yellow]")

    header = Table(title="Media Migration")
    header.add_column("Setting", style="cyan")
    header.add_column("Value", style="white")
    header.add_row("Strategy", chosen.value)
    header.add_row("Tables", ", ".join([*settings.core_tables, *selected]))
    header.add_row("Chunk size", str(settings.migration_chunk_size))
    header.add_row("Mode", "INLINE" if inline else f"CELERY ({settings.migration_queue})")
    console.print(header)

    if not force and not confirm_action("\n⚠ This rewrites stored URLs in the tables above. Continue?", default=False):
        logger.info("Migration cancelled by user")
        console.print("[yellow]Migration cancelled[/yellow]")
        raise typer.Exit(code=0)

    scheduler = _inline_scheduler() if inline else None
    service = build_migration_service(scheduler=scheduler)
    try:
        job_count = service.start_migration(selected, chosen)
    except (SQLAlchemyError, StateConflictError) as exc:
        logger.error(f"Migration failed to start: {exc}")
        console.print(f"[red]Migration failed to start: {exc}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Scheduled {job_count} chunk(s) for migration[/green]")
    if inline:
        _render_progress(service.get_progress())


@app.command("progress")
def show_progress():
    """Show counters of the current migration run."""
    service = build_migration_service()
    _render_progress(service.get_progress())


@app.command("offload")
def offload_media(
    media_id: str = typer.Argument(..., help="Id of the media item to offload"),
    inline: bool = typer.Option(False, "--inline", help="Offload in this process instead of Celery"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Upload one newly added media item and rewrite references to it."""
    logger = setup_cli_logging("offload", verbose=verbose)

    scheduler = _inline_scheduler() if inline else None
    service = build_migration_service(scheduler=scheduler)
    try:
        service.schedule_offload(media_id)
    except MediaNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    except SQLAlchemyError as exc:
        logger.error(f"Offload failed to start: {exc}")
        console.print(f"[red]Offload failed to start: {exc}[/red]")
        raise typer.Exit(code=1)

    if not inline:
        console.print(f"[green]✓ Queued media {media_id} for offloading[/green]")
