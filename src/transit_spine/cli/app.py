"""
Root Typer application for the transit-spine CLI.

One run goes through the commands in order::

    transit-spine ingest snapshot.json        # prints the new run id
    transit-spine diff <run-id>
    transit-spine publish <run-id> --endpoint https://topics.example.org
    transit-spine report <run-id>
    transit-spine purge <run-id> --downloads
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from transit_spine import __version__
from transit_spine.cli.utils import (
    console,
    err_console,
    fail,
    open_database,
    print_counts,
    print_report,
    setup_logging,
)
from transit_spine.core.config import get_settings
from transit_spine.core.errors import TransitSpineError
from transit_spine.core.run_id import generate_run_id, validate_run_id
from transit_spine.domain.enums import TableType

app = Typer(
    name="transit-spine",
    help="transit-spine: mirror transit schedules into discussion topics.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"transit-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """transit-spine CLI: ingest, diff, publish and report runs."""
    setup_logging()


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def ingest(
    snapshot: Path = typer.Argument(..., help="Snapshot JSON document"),
    run_id: str | None = typer.Option(None, "--run-id", "-r", help="Run id (default: now)"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Load a downloaded snapshot into a new run's download table."""
    from transit_spine.ingest import ingest_snapshot, load_snapshot
    from transit_spine.storage.manager import StorageManager

    try:
        run_id = validate_run_id(run_id or generate_run_id())
        document = load_snapshot(snapshot)
        with open_database(database) as db:
            counts = ingest_snapshot(document, StorageManager(db, TableType.DOWNLOAD, run_id))
    except TransitSpineError as e:
        fail(e)
        return

    print_counts(counts, title=f"Downloaded {run_id}")
    console.print(run_id)


@app.command()
def diff(
    run_id: str = typer.Argument(..., help="Run id"),
    max_concurrency: int | None = typer.Option(None, "--max-concurrency", "-c", min=1),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Diff a run's downloads against the published snapshot."""
    from transit_spine.diff.manager import DiffManager

    settings = get_settings()
    try:
        with open_database(database) as db:
            manager = DiffManager(
                db,
                validate_run_id(run_id),
                max_concurrency=max_concurrency or settings.max_concurrency,
            )
            result = asyncio.run(manager.diff_and_store())
    except TransitSpineError as e:
        fail(e)
        return

    print_report(result.report, as_json=json_out)


@app.command()
def publish(
    run_id: str = typer.Argument(..., help="Run id"),
    endpoint: str | None = typer.Option(None, "--endpoint", "-e", help="Topic webhook base URL"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show topic calls without making them"),
    max_concurrency: int | None = typer.Option(None, "--max-concurrency", "-c", min=1),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Apply a run's diff to the discussion platform."""
    from transit_spine.publish.client import RecordingTopicClient, WebhookTopicClient
    from transit_spine.publish.manager import PublishManager

    settings = get_settings()
    endpoint = endpoint or settings.topic_endpoint
    if not dry_run and not endpoint:
        err_console.print("[bold red]Error[/bold red]: --endpoint or TRANSIT_SPINE_TOPIC_ENDPOINT is required")
        raise typer.Exit(code=2)

    client = RecordingTopicClient() if dry_run else WebhookTopicClient(endpoint)  # type: ignore[arg-type]
    try:
        with open_database(database) as db:
            manager = PublishManager(
                db,
                validate_run_id(run_id),
                client,
                deleted_prefix=settings.deleted_topic_prefix,
                max_concurrency=max_concurrency or settings.max_concurrency,
            )
            if dry_run:
                calls = manager.plan()
                for call in calls:
                    console.print(f"{call.action:6} {call.topic.name}  {call.topic.title}", markup=False)
                console.print(f"[dim]{len(calls)} topic call(s); nothing was published.[/dim]")
                return
            published = asyncio.run(manager.publish_and_store())
    except TransitSpineError as e:
        fail(e)
        return

    totals = {"added": 0, "updated": 0, "deleted": 0, "resurrected": 0}
    for entry in published:
        totals["added"] += entry.added_count
        totals["updated"] += entry.updated_count
        totals["deleted"] += entry.deleted_count
        totals["resurrected"] += entry.resurrected_count
    print_counts(totals, title=f"Published {run_id}")


@app.command()
def report(
    run_id: str = typer.Argument(..., help="Run id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show what a run downloaded, changed and published."""
    from transit_spine.diff.manager import DiffManager

    try:
        with open_database(database) as db:
            run_report = DiffManager(db, validate_run_id(run_id)).report()
    except TransitSpineError as e:
        fail(e)
        return

    print_report(run_report, as_json=json_out)


@app.command()
def purge(
    run_id: str = typer.Argument(..., help="Run id"),
    downloads: bool = typer.Option(False, "--downloads", help="Also drop the download table and counts"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete a run's diff and diff metadata."""
    from transit_spine.diff.manager import DiffManager
    from transit_spine.ingest import delete_download

    try:
        with open_database(database) as db:
            DiffManager(db, validate_run_id(run_id)).delete_diff()
            if downloads:
                delete_download(db, run_id)
    except TransitSpineError as e:
        fail(e)
        return

    console.print(f"Purged run {run_id}" + (" (including downloads)" if downloads else ""))
