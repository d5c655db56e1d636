"""
Storage managers: one per logical table, plus the diff sink.

``StorageManager`` owns the typed stores of one table type (and run, for the
per-run tables) and doubles as the coordinator's ``PartitionCatalog`` and
``SnapshotSource``:

- the *download* manager of a run is the partition catalog and the current
  snapshot source
- the *publish* manager is the previous snapshot source

``StorageDiffSink`` writes a partition's diff entities and its metadata in a
single transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from transit_spine.core.errors import ConfigError
from transit_spine.core.logging import get_logger
from transit_spine.diff.protocols import Partition
from transit_spine.domain.entities import DiffMetadataEntity
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.storage.database import Database
from transit_spine.storage.tables import (
    AgencyStore,
    DiffMetadataStore,
    DownloadMetadataStore,
    EntityStore,
    KeyedTable,
    PublishMetadataStore,
    RegionStore,
    RouteStore,
    StopStore,
    table_name,
)

logger = get_logger(__name__)

_ENTITY_TABLES = frozenset({TableType.DOWNLOAD, TableType.DIFF, TableType.PUBLISH})


class StorageManager:
    """Typed access to one table type.

    Entity tables (download, diff, publish) expose ``regions``, ``agencies``,
    ``routes`` and ``stops``; metadata tables expose ``metadata``.
    """

    def __init__(self, db: Database, table_type: TableType, run_id: str | None = None) -> None:
        self.db = db
        self.table_type = TableType(table_type)
        self.run_id = run_id
        self.table = KeyedTable(db, table_name(self.table_type, run_id))

        self.regions: RegionStore | None = None
        self.agencies: AgencyStore | None = None
        self.routes: RouteStore | None = None
        self.stops: StopStore | None = None
        self.metadata: DownloadMetadataStore | DiffMetadataStore | PublishMetadataStore | None = None

        if self.table_type in _ENTITY_TABLES:
            self.regions = RegionStore(self.table)
            self.agencies = AgencyStore(self.table)
            self.routes = RouteStore(self.table)
            self.stops = StopStore(self.table)
        elif self.table_type is TableType.DOWNLOAD_METADATA:
            self.metadata = DownloadMetadataStore(self.table)
        elif self.table_type is TableType.DIFF_METADATA:
            self.metadata = DiffMetadataStore(self.table)
        else:
            self.metadata = PublishMetadataStore(self.table)

    # ── Lifecycle ────────────────────────────────────────────────────

    def create_tables(self) -> None:
        self.table.create()
        logger.debug("storage.table_created", table=self.table.name)

    def delete_tables(self) -> None:
        self.table.drop()
        logger.info("storage.table_dropped", table=self.table.name)

    def exists(self) -> bool:
        return self.table.exists()

    def store_for(self, record_type: RecordType) -> EntityStore[Any]:
        stores = {
            RecordType.REGION: self.regions,
            RecordType.AGENCY: self.agencies,
            RecordType.ROUTE: self.routes,
            RecordType.STOP: self.stops,
        }
        store = stores.get(RecordType(record_type))
        if store is None:
            raise ConfigError(
                f"{self.table.name} holds no {RecordType(record_type).value} records"
            )
        return store

    # ── PartitionCatalog ─────────────────────────────────────────────

    def partitions(self, record_type: RecordType) -> list[Partition]:
        """Partitions from the region and agency catalog held in this table.

        Routes are diffed per region + agency, stops and agencies per region.
        """
        record_type = RecordType(record_type)
        if record_type is RecordType.ROUTE:
            return sorted(
                Partition(a.region_id, a.id) for a in self.store_for(RecordType.AGENCY).query_all()
            )
        if record_type in (RecordType.STOP, RecordType.AGENCY):
            return sorted(Partition(r.id) for r in self.store_for(RecordType.REGION).query_all())
        raise ConfigError(f"{record_type.value} records are not diffed per partition")

    # ── SnapshotSource ───────────────────────────────────────────────

    def fetch(self, record_type: RecordType, partition: Partition) -> Sequence[Any]:
        record_type = RecordType(record_type)
        if record_type is RecordType.ROUTE:
            if partition.agency_id is None:
                raise ConfigError("route partitions need an agency id")
            return self.store_for(record_type).query_partition(
                partition.region_id, agency_id=partition.agency_id
            )
        return self.store_for(record_type).query_partition(partition.region_id)

    def __repr__(self) -> str:
        return f"StorageManager({self.table.name!r})"


class StorageDiffSink:
    """``DiffSink`` over a run's diff table and the shared diff metadata table."""

    def __init__(self, diff_storage: StorageManager, diff_metadata_storage: StorageManager) -> None:
        if diff_storage.table_type is not TableType.DIFF:
            raise ConfigError("diff_storage must manage a Diff table")
        if diff_metadata_storage.table_type is not TableType.DIFF_METADATA:
            raise ConfigError("diff_metadata_storage must manage the DiffMetadata table")
        self.diff_storage = diff_storage
        self.metadata_storage = diff_metadata_storage

    def write(
        self,
        record_type: RecordType,
        partition: Partition,
        output: Any,
        metadata: DiffMetadataEntity,
    ) -> None:
        store = self.diff_storage.store_for(record_type)
        # replace, not insert: re-running a run id rewrites the same rows
        with self.diff_storage.db.transaction():
            store.replace(output.entities())
            self.metadata_storage.metadata.replace([metadata])  # type: ignore[union-attr]

    def read_metadata(self, run_id: str) -> list[DiffMetadataEntity]:
        return self.metadata_storage.metadata.query_run(run_id)  # type: ignore[union-attr,return-value]

    def purge(self, run_id: str) -> None:
        with self.diff_storage.db.transaction():
            self.diff_storage.delete_tables()
            self.metadata_storage.metadata.delete_run(run_id)  # type: ignore[union-attr]


__all__ = ["StorageDiffSink", "StorageManager"]
