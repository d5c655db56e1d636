"""Publish stage: apply a run's diff to the discussion platform.

WHY
───
The diff engine only tags entities. Publishing turns each tag into one
topic call and then advances the published snapshot, so the next run diffs
against what the platform actually shows:

    Create     → create topic,              insert published row
    Update     → update topic,              replace published row
    Delete     → update topic (title prefixed "DELETED: "), replace row
    Resurrect  → update topic (plain title), replace row

ARCHITECTURE
────────────
::

    PublishManager.publish_and_store()
      ├── DiffMetadata(run_id)                  ─ partitions with changes
      ├── asyncio.gather + Semaphore            ─ one task per partition
      │     └── asyncio.to_thread(_publish_partition)
      │           ├── diff table rows           ─ tagged entities
      │           ├── TopicClient call          ─ per entity
      │           ├── Publish table write       ─ per entity, after the call
      │           └── PublishMetadata counts
      └── RunFailedError listing every failed partition

A row already published exactly as diffed is skipped, so re-publishing a
run after a partial failure does not repeat topic calls.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from transit_spine.core.errors import PreconditionError, RunFailedError
from transit_spine.core.logging import LogContext, get_logger
from transit_spine.core.run_id import validate_run_id
from transit_spine.diff.coordinator import DEFAULT_RECORD_TYPES, PartitionResult, is_retryable
from transit_spine.diff.protocols import Partition
from transit_spine.domain.entities import ChangeMetadata, PublishMetadataEntity
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.domain.lifecycle import RowState
from transit_spine.publish.client import TopicCall, TopicClient
from transit_spine.publish.topics import Topic, route_topic, stop_topic
from transit_spine.storage.database import Database
from transit_spine.storage.manager import StorageManager

logger = get_logger(__name__)

DEFAULT_DELETED_PREFIX = "DELETED: "

_RENDERERS = {
    RecordType.ROUTE: route_topic,
    RecordType.STOP: stop_topic,
}

_COUNTERS = {
    RowState.CREATE: "added_count",
    RowState.UPDATE: "updated_count",
    RowState.DELETE: "deleted_count",
    RowState.RESURRECT: "resurrected_count",
}


class PublishManager:
    """Publish one run's diff through a :class:`TopicClient`."""

    def __init__(
        self,
        db: Database,
        run_id: str,
        client: TopicClient,
        *,
        deleted_prefix: str = DEFAULT_DELETED_PREFIX,
        max_concurrency: int = 10,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.run_id = validate_run_id(run_id)
        self.client = client
        self.deleted_prefix = deleted_prefix
        self.max_concurrency = max_concurrency
        self.diff_storage = StorageManager(db, TableType.DIFF, run_id)
        self.diff_metadata_storage = StorageManager(db, TableType.DIFF_METADATA)
        self.publish_storage = StorageManager(db, TableType.PUBLISH)
        self.publish_metadata_storage = StorageManager(db, TableType.PUBLISH_METADATA)

    def initialize_storage(self) -> None:
        self.publish_storage.create_tables()
        self.publish_metadata_storage.create_tables()
        self.diff_metadata_storage.create_tables()

    # ── Per-partition work (runs in a worker thread) ─────────────────

    def _topic_call(self, state: RowState, topic: Topic) -> TopicCall:
        """Map a lifecycle tag to the topic call that applies it."""
        if state is RowState.CREATE:
            return TopicCall("create", topic)
        if state is RowState.DELETE:
            return TopicCall(
                "update", dataclasses.replace(topic, title=self.deleted_prefix + topic.title)
            )
        if state in (RowState.UPDATE, RowState.RESURRECT):
            return TopicCall("update", topic)
        raise PreconditionError(
            f"diff row {topic.name} carries {state.value}",
            field="row_state",
            value=state.value,
        )

    def _apply(self, state: RowState, topic: Topic, counts: PublishMetadataEntity) -> None:
        call = self._topic_call(state, topic)
        if call.action == "create":
            self.client.create_topic(call.topic)
        else:
            self.client.update_topic(call.topic)
        counter = _COUNTERS[state]
        setattr(counts, counter, getattr(counts, counter) + 1)

    def _publish_partition(self, entry: ChangeMetadata) -> PublishMetadataEntity:
        record_type = entry.record_type
        partition = Partition(entry.region_id, entry.agency_id or None)
        render = _RENDERERS[record_type]
        published = self.publish_storage.store_for(record_type)
        counts = PublishMetadataEntity(
            run_id=self.run_id,
            region_id=entry.region_id,
            agency_id=entry.agency_id,
            record_type=record_type,
        )

        with LogContext(run_id=self.run_id, record_type=record_type.value, partition=partition.label):
            skipped = 0
            for entity in self.diff_storage.fetch(record_type, partition):
                existing = published.get(entity.partition_key, entity.row_key)
                if existing == entity:
                    skipped += 1
                    continue
                self._apply(entity.row_state, render(entity), counts)
                if entity.row_state is RowState.CREATE and existing is None:
                    published.insert([entity])
                else:
                    published.replace([entity])

            self.publish_metadata_storage.metadata.replace([counts])  # type: ignore[union-attr]
            logger.info(
                "publish.partition.complete",
                added=counts.added_count,
                updated=counts.updated_count,
                deleted=counts.deleted_count,
                resurrected=counts.resurrected_count,
                skipped=skipped,
            )
        return counts

    def plan(self, record_types: Iterable[RecordType] = DEFAULT_RECORD_TYPES) -> list[TopicCall]:
        """Topic calls a publish would make, without calling the client or writing."""
        self.diff_metadata_storage.create_tables()
        calls: list[TopicCall] = []
        for record_type in record_types:
            record_type = RecordType(record_type)
            render = _RENDERERS[record_type]
            for entry in self.diff_metadata_storage.metadata.query_run(self.run_id, record_type):  # type: ignore[union-attr]
                if not entry.total:
                    continue
                partition = Partition(entry.region_id, entry.agency_id or None)
                calls.extend(
                    self._topic_call(entity.row_state, render(entity))
                    for entity in self.diff_storage.fetch(record_type, partition)
                )
        return calls

    # ── Execution ────────────────────────────────────────────────────

    async def publish(self, record_type: RecordType) -> list[PartitionResult]:
        """Publish every partition of ``record_type`` that has changes."""
        record_type = RecordType(record_type)
        if record_type not in _RENDERERS:
            raise PreconditionError(f"{record_type.value} records are not published")

        entries = await asyncio.to_thread(
            self.diff_metadata_storage.metadata.query_run,  # type: ignore[union-attr]
            self.run_id,
            record_type,
        )
        work = [
            (
                entry,
                PartitionResult(
                    record_type=record_type,
                    partition=Partition(entry.region_id, entry.agency_id or None),
                ),
            )
            for entry in entries
            if entry.total
        ]
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _run_one(entry: ChangeMetadata, item: PartitionResult) -> PartitionResult:
            async with sem:
                item.started_at = datetime.now(UTC)
                item.status = "running"
                try:
                    item.metadata = await asyncio.to_thread(self._publish_partition, entry)
                    item.status = "completed"
                except Exception as e:
                    item.status = "failed"
                    item.error = str(e)
                    item.error_type = type(e).__name__
                    item.retryable = is_retryable(e)
                    logger.warning(
                        "publish.partition.failed",
                        run_id=self.run_id,
                        record_type=record_type.value,
                        partition=item.partition.label,
                        error_type=item.error_type,
                        error=item.error,
                    )
                item.completed_at = datetime.now(UTC)
                return item

        return list(await asyncio.gather(*[_run_one(e, i) for e, i in work]))

    async def publish_and_store(
        self,
        record_types: Iterable[RecordType] = DEFAULT_RECORD_TYPES,
    ) -> list[PublishMetadataEntity]:
        """Publish routes, then stops.

        Raises:
            RunFailedError: After every partition ran, if any of them failed.
        """
        self.initialize_storage()
        results: list[PartitionResult] = []
        for record_type in record_types:
            results.extend(await self.publish(record_type))

        failures = [r.failure(self.run_id) for r in results if r.status == "failed"]
        published = [r.metadata for r in results if r.status == "completed"]
        logger.info(
            "publish.run.complete",
            run_id=self.run_id,
            partitions=len(results),
            failed=len(failures),
        )
        if failures:
            raise RunFailedError(
                self.run_id,
                failures,
                retryable=all(f["retryable"] for f in failures),
            )
        return published  # type: ignore[return-value]

    def read_metadata(self) -> list[Any]:
        self.publish_metadata_storage.create_tables()
        return self.publish_metadata_storage.metadata.query_run(self.run_id)  # type: ignore[union-attr]


__all__ = ["DEFAULT_DELETED_PREFIX", "PublishManager"]
