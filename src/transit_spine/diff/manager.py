"""Storage-backed wiring of a diff run.

``DiffManager`` builds the coordinator from a run's download tables, the
shared publish table and the diff sink, the way the service runs it:
routes first, then stops.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from transit_spine.core.logging import get_logger
from transit_spine.diff.coordinator import DEFAULT_RECORD_TYPES, DiffRunCoordinator, DiffRunResult
from transit_spine.diff.report import RunReport
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.storage.database import Database
from transit_spine.storage.manager import StorageDiffSink, StorageManager

logger = get_logger(__name__)


class DiffManager:
    """Diff a run's downloads against the published snapshot and store the result."""

    def __init__(
        self,
        db: Database,
        run_id: str,
        *,
        max_concurrency: int = 10,
        cancel_event: Any = None,
    ) -> None:
        self.run_id = run_id
        self.download_storage = StorageManager(db, TableType.DOWNLOAD, run_id)
        self.publish_storage = StorageManager(db, TableType.PUBLISH)
        self.diff_storage = StorageManager(db, TableType.DIFF, run_id)
        self.diff_metadata_storage = StorageManager(db, TableType.DIFF_METADATA)
        self.download_metadata_storage = StorageManager(db, TableType.DOWNLOAD_METADATA)
        self.publish_metadata_storage = StorageManager(db, TableType.PUBLISH_METADATA)
        self.sink = StorageDiffSink(self.diff_storage, self.diff_metadata_storage)
        self.coordinator = DiffRunCoordinator(
            catalog=self.download_storage,
            current_source=self.download_storage,
            previous_source=self.publish_storage,
            sink=self.sink,
            run_id=run_id,
            max_concurrency=max_concurrency,
            cancel_event=cancel_event,
        )

    def initialize_storage(self) -> None:
        """Create the diff, diff metadata and publish tables if missing."""
        self.diff_storage.create_tables()
        self.diff_metadata_storage.create_tables()
        self.publish_storage.create_tables()

    async def diff_and_store(
        self,
        record_types: Iterable[RecordType] = DEFAULT_RECORD_TYPES,
    ) -> DiffRunResult:
        """Run the diff; raises ``RunFailedError`` after all partitions finish."""
        self.initialize_storage()
        result = await self.coordinator.run_all(record_types)
        logger.info(
            "diff.stored",
            run_id=self.run_id,
            succeeded=result.succeeded,
            failed=result.failed,
            **result.report.totals(),
        )
        result.raise_for_failures()
        return result

    def report(self) -> RunReport:
        """Run report from the persisted download, diff and publish metadata."""
        for storage in (
            self.download_metadata_storage,
            self.diff_metadata_storage,
            self.publish_metadata_storage,
        ):
            storage.create_tables()
        return RunReport.from_entries(
            self.run_id,
            self.sink.read_metadata(self.run_id),
            downloads=self.download_metadata_storage.metadata.query_run(self.run_id),  # type: ignore[union-attr,arg-type]
            published=self.publish_metadata_storage.metadata.query_run(self.run_id),  # type: ignore[union-attr,arg-type]
        )

    def delete_diff(self) -> None:
        """Purge this run's diff table and diff metadata."""
        self.diff_metadata_storage.create_tables()
        self.sink.purge(self.run_id)
        logger.info("diff.purged", run_id=self.run_id)


__all__ = ["DiffManager"]
