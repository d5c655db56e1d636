"""
CLI utility helpers: output formatting, database and logging setup.
"""

from __future__ import annotations

import json
import sys

import typer
from rich.console import Console
from rich.table import Table

from transit_spine.core.config import get_settings
from transit_spine.core.errors import RunCancelledError, RunFailedError, TransitSpineError
from transit_spine.core.logging import configure_logging
from transit_spine.diff.report import RunReport
from transit_spine.storage.database import Database

console = Console()
err_console = Console(stderr=True)


# ── Setup helpers ────────────────────────────────────────────────────────


def setup_logging() -> None:
    """Configure logging from settings; logs go to stderr so stdout stays parseable."""
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.json_logs,
        service=settings.service_name,
        stream=sys.stderr,
        cache_loggers=False,
    )


def open_database(database: str | None = None) -> Database:
    """Open the database; defaults to ``TRANSIT_SPINE_DATABASE_PATH``."""
    return Database(database or get_settings().database_path)


# ── Output helpers ───────────────────────────────────────────────────────


def print_counts(counts: dict[str, int], *, title: str = "") -> None:
    table = Table(title=title or None, pad_edge=False)
    table.add_column("record_type")
    table.add_column("count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


def print_report(report: RunReport, *, as_json: bool = False) -> None:
    """Render a run report; an empty report is a valid result."""
    if as_json:
        console.print_json(json.dumps(report.to_dict(), default=str))
        return

    downloaded = report.downloaded()
    if downloaded:
        console.print(
            "[bold]Downloaded[/bold]: "
            + ", ".join(f"{count} {kind}" for kind, count in downloaded.items())
        )

    if report.is_empty:
        console.print(f"[dim]Run {report.run_id}: no partitions diffed.[/dim]")
        return

    table = Table(title=f"Run {report.run_id}", pad_edge=False)
    for col in ("record_type", "region", "agency", "added", "updated", "deleted", "resurrected"):
        table.add_column(col, justify="right" if col not in ("record_type", "region", "agency") else "left")
    for e in report.entries:
        table.add_row(
            e.record_type.value,
            e.region_id,
            e.agency_id or "-",
            str(e.added_count),
            str(e.updated_count),
            str(e.deleted_count),
            str(e.resurrected_count),
        )
    console.print(table)
    totals = report.totals()
    console.print(
        f"[bold]Total[/bold]: {totals['added']} added, {totals['updated']} updated, "
        f"{totals['deleted']} deleted, {totals['resurrected']} resurrected"
    )
    if report.published:
        published = report.published_totals()
        console.print(
            f"[bold]Published[/bold]: {published['added']} added, {published['updated']} updated, "
            f"{published['deleted']} deleted, {published['resurrected']} resurrected"
        )


def fail(error: TransitSpineError) -> None:
    """Print ``error`` (and every partition failure it carries) and exit 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    if isinstance(error, RunFailedError):
        table = Table(title="Failed partitions", pad_edge=False)
        for col in ("record_type", "partition", "error_type", "error"):
            table.add_column(col, overflow="fold")
        for f in error.failures:
            table.add_row(
                str(f.get("record_type")),
                str(f.get("partition")),
                str(f.get("error_type")),
                str(f.get("error")),
            )
        err_console.print(table)
        hint = "safe to re-run" if error.retryable else "fix the input before re-running"
        err_console.print(f"[dim]Run {error.run_id}: {hint}.[/dim]")
    elif isinstance(error, RunCancelledError):
        err_console.print(f"[dim]{error.cancelled} partition(s) were not started.[/dim]")
    raise typer.Exit(code=1)
