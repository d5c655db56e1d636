"""
Collaborator contracts of the diff run.

Manifesto:
    The coordinator does not know where snapshots come from or where diffs
    go. It depends on three shapes:

    - **PartitionCatalog:** which partitions exist for a record type
    - **SnapshotSource:** the entities of one partition (download or published)
    - **DiffSink:** where a partition's diff and its metadata are written

    The SQLite-backed implementations live in :mod:`transit_spine.storage`;
    tests use in-memory fakes that match the same shape.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── Partition          region, or region + agency (routes)
        ├── PartitionCatalog   partitions(record_type)
        ├── SnapshotSource     fetch(record_type, partition)
        └── DiffSink           write / read_metadata / purge

Guardrails:
    ❌ DON'T: Make these methods async
    ✅ DO: Keep them sync; the coordinator runs each partition in a thread

    ❌ DON'T: Let ``DiffSink.write`` leave a half-written partition
    ✅ DO: Write entities and metadata in one transaction

Tags:
    protocol, diff, partition, transit-spine
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from transit_spine.domain.entities import DiffMetadataEntity
from transit_spine.domain.enums import RecordType


@dataclass(frozen=True, order=True)
class Partition:
    """Unit of independent diffing: a region, or a region + agency for routes."""

    region_id: str
    agency_id: str | None = None

    @property
    def label(self) -> str:
        if self.agency_id is None:
            return self.region_id
        return f"{self.region_id}/{self.agency_id}"

    def __str__(self) -> str:
        return self.label


@runtime_checkable
class PartitionCatalog(Protocol):
    """Enumerates the partitions to diff for a record type."""

    def partitions(self, record_type: RecordType) -> list[Partition]:
        """Stops → one per region; routes → one per region + agency pair."""
        ...


@runtime_checkable
class SnapshotSource(Protocol):
    """Supplies the snapshot of one kind for one partition."""

    def fetch(self, record_type: RecordType, partition: Partition) -> Sequence[Any]:
        ...


@runtime_checkable
class DiffSink(Protocol):
    """Persists diff output; append-only for a given run id."""

    def write(
        self,
        record_type: RecordType,
        partition: Partition,
        output: Any,
        metadata: DiffMetadataEntity,
    ) -> None:
        """Write the tagged entities and the metadata atomically."""
        ...

    def read_metadata(self, run_id: str) -> list[DiffMetadataEntity]:
        """All metadata entries for ``run_id``; empty is valid."""
        ...

    def purge(self, run_id: str) -> None:
        """Delete a run's diff entities and metadata."""
        ...


__all__ = ["DiffSink", "Partition", "PartitionCatalog", "SnapshotSource"]
