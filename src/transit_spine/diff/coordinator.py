"""Diff Run Coordinator: fan the diff engine out over partitions.

WHY
───
A run diffs every region's stops and every region + agency's routes. The
partitions are independent: no shared state, no ordering, and the only
shared resource is the keyed store, where each worker writes its own
partition. Running them concurrently keeps a run short when the store is
remote, and collecting per-partition results keeps one bad partition from
hiding the others.

ARCHITECTURE
────────────
::

    DiffRunCoordinator.run(record_type)
      ├── catalog.partitions(record_type)          ─ what to diff
      ├── asyncio.gather + Semaphore               ─ one task per partition
      │     └── asyncio.to_thread(_diff_partition)
      │           ├── current_source.fetch()       ─ download snapshot
      │           ├── previous_source.fetch()      ─ published snapshot
      │           ├── diff_snapshots()             ─ pure, in memory
      │           └── sink.write(output, metadata) ─ atomic per partition
      └── DiffRunResult                            ─ per-partition status
            ├── .report                            ─ RunReport of completed
            └── .raise_for_failures()              ─ RunFailedError (all)

    Cancellation is cooperative: a set ``cancel_event`` is checked before a
    partition starts; partitions already in flight run to completion.

Example::

    coordinator = DiffRunCoordinator(catalog, downloads, published, sink, run_id)
    result = await coordinator.run_all()
    result.raise_for_failures()
    print(result.report.totals())
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from transit_spine.core.errors import RunCancelledError, RunFailedError, TransitSpineError
from transit_spine.core.logging import LogContext, get_logger
from transit_spine.core.run_id import validate_run_id
from transit_spine.diff.engine import diff_snapshots
from transit_spine.diff.protocols import DiffSink, Partition, PartitionCatalog, SnapshotSource
from transit_spine.diff.report import RunReport
from transit_spine.domain.comparators import comparator_for
from transit_spine.domain.entities import ChangeMetadata, DiffMetadataEntity
from transit_spine.domain.enums import RecordType

logger = get_logger(__name__)

DEFAULT_RECORD_TYPES: tuple[RecordType, ...] = (RecordType.ROUTE, RecordType.STOP)


class _CancelFlag(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class PartitionResult:
    """Outcome of diffing one partition of one kind."""

    record_type: RecordType
    partition: Partition
    status: str = "pending"
    metadata: ChangeMetadata | None = None
    error: str | None = None
    error_type: str | None = None
    retryable: bool = True
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def failure(self, run_id: str) -> dict[str, Any]:
        """Enough detail to find and safely re-run the partition."""
        return {
            "run_id": run_id,
            "record_type": self.record_type.value,
            "partition": self.partition.label,
            "region_id": self.partition.region_id,
            "agency_id": self.partition.agency_id,
            "error_type": self.error_type,
            "error": self.error,
            "retryable": self.retryable,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_type": self.record_type.value,
            "partition": self.partition.label,
            "status": self.status,
            "counts": (
                {
                    "added": self.metadata.added_count,
                    "updated": self.metadata.updated_count,
                    "deleted": self.metadata.deleted_count,
                    "resurrected": self.metadata.resurrected_count,
                }
                if self.metadata
                else None
            ),
            "duration_seconds": self.duration_seconds,
            "error": self.error,
        }


@dataclass
class DiffRunResult:
    """Aggregate result of a diff run over one or more record types."""

    run_id: str
    results: list[PartitionResult] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count("completed")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def cancelled(self) -> int:
        return self._count("cancelled")

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.cancelled == 0

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def failures(self) -> list[dict[str, Any]]:
        return [r.failure(self.run_id) for r in self.results if r.status == "failed"]

    @property
    def report(self) -> RunReport:
        """Report over the partitions that completed; failed ones are absent."""
        return RunReport.from_entries(
            self.run_id,
            (r.metadata for r in self.results if r.status == "completed" and r.metadata),
        )

    def merge(self, other: DiffRunResult) -> None:
        self.results.extend(other.results)
        if other.started_at and (self.started_at is None or other.started_at < self.started_at):
            self.started_at = other.started_at
        if other.completed_at and (self.completed_at is None or other.completed_at > self.completed_at):
            self.completed_at = other.completed_at

    def raise_for_failures(self) -> None:
        """Raise if any partition failed or was cancelled.

        Raises:
            RunFailedError: Carries every failed partition, not just the first.
            RunCancelledError: No failures, but partitions were never started.
        """
        failures = self.failures
        if failures:
            raise RunFailedError(
                self.run_id,
                failures,
                retryable=all(f["retryable"] for f in failures),
            )
        if self.cancelled:
            raise RunCancelledError(self.run_id, self.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "duration_seconds": self.duration_seconds,
            "totals": self.report.totals(),
            "partitions": [r.to_dict() for r in self.results],
        }


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, TransitSpineError):
        return exc.retryable
    # ValueError covers InvalidTransitionError and malformed keys
    return not isinstance(exc, ValueError)


class DiffRunCoordinator:
    """Run the diff engine for every partition of a record type concurrently.

    Parameters
    ----------
    catalog : PartitionCatalog
        Enumerates partitions (from the download region/agency catalog).
    current_source : SnapshotSource
        The run's download snapshots.
    previous_source : SnapshotSource
        The last published snapshots.
    sink : DiffSink
        Receives each partition's diff and metadata.
    run_id : str
        Run identifier; stamped on every metadata record.
    max_concurrency : int
        Maximum partitions in flight (default 10).
    cancel_event : object with ``is_set()``, optional
        ``threading.Event`` or ``asyncio.Event`` checked before each partition.
    """

    def __init__(
        self,
        catalog: PartitionCatalog,
        current_source: SnapshotSource,
        previous_source: SnapshotSource,
        sink: DiffSink,
        run_id: str,
        *,
        max_concurrency: int = 10,
        cancel_event: _CancelFlag | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._catalog = catalog
        self._current = current_source
        self._previous = previous_source
        self._sink = sink
        self._run_id = validate_run_id(run_id)
        self._max_concurrency = max_concurrency
        self._cancel_event: _CancelFlag = cancel_event or threading.Event()

    @property
    def run_id(self) -> str:
        return self._run_id

    def cancel(self) -> None:
        """Stop starting new partitions; in-flight ones complete."""
        if isinstance(self._cancel_event, (threading.Event, asyncio.Event)):
            self._cancel_event.set()
        else:
            raise TypeError("cancel() needs a threading.Event or asyncio.Event")

    # ── Per-partition work (runs in a worker thread) ─────────────────

    def _diff_partition(self, record_type: RecordType, partition: Partition) -> DiffMetadataEntity:
        with LogContext(run_id=self._run_id, record_type=record_type.value, partition=partition.label):
            comparator = comparator_for(record_type)
            current = self._current.fetch(record_type, partition)
            previous = self._previous.fetch(record_type, partition)
            output = diff_snapshots(current, previous, comparator)
            metadata = DiffMetadataEntity(
                run_id=self._run_id,
                region_id=partition.region_id,
                agency_id=partition.agency_id or "",
                record_type=record_type,
                added_count=output.added_count,
                updated_count=output.updated_count,
                deleted_count=output.deleted_count,
                resurrected_count=output.resurrected_count,
            )
            self._sink.write(record_type, partition, output, metadata)
            logger.info("diff.partition.complete", **output.counts())
            return metadata

    # ── Execution ────────────────────────────────────────────────────

    async def run(self, record_type: RecordType) -> DiffRunResult:
        """Diff every partition of ``record_type``.

        Never raises for a partition failure; inspect the result or call
        :meth:`DiffRunResult.raise_for_failures`.
        """
        record_type = RecordType(record_type)
        partitions = await asyncio.to_thread(self._catalog.partitions, record_type)
        results = [PartitionResult(record_type=record_type, partition=p) for p in partitions]
        sem = asyncio.Semaphore(self._max_concurrency)
        started_at = datetime.now(UTC)

        logger.info(
            "diff.run.start",
            run_id=self._run_id,
            record_type=record_type.value,
            partitions=len(results),
            max_concurrency=self._max_concurrency,
        )

        async def _run_one(item: PartitionResult) -> PartitionResult:
            async with sem:
                if self._cancel_event.is_set():
                    item.status = "cancelled"
                    return item
                item.started_at = datetime.now(UTC)
                item.status = "running"
                try:
                    item.metadata = await asyncio.to_thread(
                        self._diff_partition, record_type, item.partition
                    )
                    item.status = "completed"
                except Exception as e:
                    item.status = "failed"
                    item.error = str(e)
                    item.error_type = type(e).__name__
                    item.retryable = is_retryable(e)
                    logger.warning(
                        "diff.partition.failed",
                        run_id=self._run_id,
                        record_type=record_type.value,
                        partition=item.partition.label,
                        error_type=item.error_type,
                        error=item.error,
                    )
                item.completed_at = datetime.now(UTC)
                return item

        await asyncio.gather(*[_run_one(item) for item in results])

        result = DiffRunResult(
            run_id=self._run_id,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(UTC),
        )
        logger.info(
            "diff.run.complete",
            run_id=self._run_id,
            record_type=record_type.value,
            succeeded=result.succeeded,
            failed=result.failed,
            cancelled=result.cancelled,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def run_all(
        self,
        record_types: Iterable[RecordType] = DEFAULT_RECORD_TYPES,
    ) -> DiffRunResult:
        """Run each record type in turn and merge the results."""
        combined = DiffRunResult(run_id=self._run_id)
        for record_type in record_types:
            combined.merge(await self.run(record_type))
        return combined


__all__ = [
    "DEFAULT_RECORD_TYPES",
    "DiffRunCoordinator",
    "DiffRunResult",
    "PartitionResult",
    "is_retryable",
]
