"""
Partition/row keyed tables on SQLite.

Manifesto:
    The service stores everything in a partition/row keyed table store:
    entities are partitioned by region, bookkeeping by run id. This module
    gives that model a single generic shape so the rest of the code never
    writes SQL:

    - **KeyedTable:** create / drop / insert / replace / query by partition
    - **Typed stores:** map entities to and from keyed rows
    - **table_name:** per-run tables carry the run id as a suffix

Architecture:
    ::

        table_name(TableType.DIFF, "20250101120000000") → "Diff20250101120000000"

        KeyedTable(db, name)
        ├── partition_key   TEXT  ─┐ primary key
        ├── row_key         TEXT  ─┘
        ├── record_type     TEXT     Route / Stop / Agency / Region
        ├── agency_id       TEXT     routes and metadata; "" otherwise
        ├── row_state       TEXT     lifecycle state ("" for metadata)
        └── body            TEXT     JSON of the entity's to_dict()

        EntityStore[E](table, entity_type)
        ├── RegionStore / AgencyStore / RouteStore / StopStore
        └── Download- / Diff- / PublishMetadataStore

Guardrails:
    ❌ DON'T: Interpolate values into SQL
    ✅ DO: Bind parameters; only validated table names are interpolated

    ❌ DON'T: Use ``insert`` to advance a published row
    ✅ DO: ``insert`` is for first writes (duplicates raise), ``replace`` upserts

Tags:
    storage, sqlite, keyed-table, transit-spine
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from transit_spine.core.errors import ConfigError, TableNotFoundError
from transit_spine.core.run_id import validate_run_id
from transit_spine.domain.entities import (
    AgencyEntity,
    DiffMetadataEntity,
    DownloadMetadataEntity,
    PublishMetadataEntity,
    RegionEntity,
    RouteEntity,
    RunMetadata,
    StopEntity,
)
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.storage.database import Database

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{0,127}$")

PER_RUN_TABLES = frozenset({TableType.DOWNLOAD, TableType.DIFF})

_FILTER_COLUMNS = ("record_type", "agency_id", "row_state")


def table_name(table_type: TableType, run_id: str | None = None) -> str:
    """Physical table name for ``table_type``.

    Download and Diff tables are per run and need ``run_id``; the metadata
    and publish tables are shared.
    """
    table_type = TableType(table_type)
    if table_type in PER_RUN_TABLES:
        if not run_id:
            raise ConfigError(f"{table_type.value} tables need a run id")
        return f"{table_type.value}{validate_run_id(run_id)}"
    return table_type.value


class KeyedTable:
    """One partition/row keyed table."""

    def __init__(self, db: Database, name: str) -> None:
        if not _TABLE_NAME_PATTERN.match(name):
            raise ConfigError(f"Invalid table name {name!r}")
        self.db = db
        self.name = name

    def create(self) -> None:
        self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS "{self.name}" (
                partition_key TEXT NOT NULL,
                row_key TEXT NOT NULL,
                record_type TEXT NOT NULL,
                agency_id TEXT NOT NULL DEFAULT '',
                row_state TEXT NOT NULL DEFAULT '',
                body TEXT NOT NULL,
                PRIMARY KEY (partition_key, row_key)
            )
            """
        )

    def drop(self) -> None:
        self.db.execute(f'DROP TABLE IF EXISTS "{self.name}"')

    def exists(self) -> bool:
        rows = self.db.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.name,),
        )
        return bool(rows)

    @staticmethod
    def _params(row: dict[str, Any]) -> tuple:
        return (
            row["partition_key"],
            row["row_key"],
            row["record_type"],
            row.get("agency_id") or "",
            row.get("row_state") or "",
            json.dumps(row["body"], sort_keys=True),
        )

    def insert(self, rows: Iterable[dict[str, Any]]) -> int:
        """Insert new rows; raises ``DuplicateRowError`` if a key exists."""
        params = [self._params(r) for r in rows]
        if params:
            self.db.executemany(f'INSERT INTO "{self.name}" VALUES (?, ?, ?, ?, ?, ?)', params)
        return len(params)

    def replace(self, rows: Iterable[dict[str, Any]]) -> int:
        """Insert or overwrite rows by key."""
        params = [self._params(r) for r in rows]
        if params:
            self.db.executemany(
                f'INSERT OR REPLACE INTO "{self.name}" VALUES (?, ?, ?, ?, ?, ?)', params
            )
        return len(params)

    def _select(self, where: dict[str, Any]) -> list[dict[str, Any]]:
        for column in where:
            if column not in ("partition_key", "row_key", *_FILTER_COLUMNS):
                raise ValueError(f"Cannot filter {self.name} on {column!r}")
        sql = f'SELECT * FROM "{self.name}"'
        if where:
            sql += " WHERE " + " AND ".join(f"{c} = ?" for c in where)
        sql += " ORDER BY partition_key, row_key"
        try:
            rows = self.db.query(sql, tuple(where.values()))
        except TableNotFoundError as e:
            raise e.with_context(table=self.name)
        for row in rows:
            row["body"] = json.loads(row["body"])
        return rows

    def query(self, **filters: Any) -> list[dict[str, Any]]:
        return self._select(filters)

    def query_partition(self, partition_key: str, **filters: Any) -> list[dict[str, Any]]:
        return self._select({"partition_key": partition_key, **filters})

    def get(self, partition_key: str, row_key: str) -> dict[str, Any] | None:
        rows = self._select({"partition_key": partition_key, "row_key": row_key})
        return rows[0] if rows else None

    def delete_partition(self, partition_key: str) -> int:
        return self.db.execute(
            f'DELETE FROM "{self.name}" WHERE partition_key = ?', (partition_key,)
        )

    def __repr__(self) -> str:
        return f"KeyedTable({self.name!r})"


# =============================================================================
# Typed stores
# =============================================================================

E = TypeVar("E")


class EntityStore(Generic[E]):
    """Maps one entity type onto a :class:`KeyedTable`."""

    entity_type: type
    record_type: RecordType

    def __init__(self, table: KeyedTable) -> None:
        self.table = table

    def to_row(self, entity: E) -> dict[str, Any]:
        return {
            "partition_key": entity.partition_key,  # type: ignore[attr-defined]
            "row_key": entity.row_key,  # type: ignore[attr-defined]
            "record_type": self.record_type.value,
            "agency_id": getattr(entity, "agency_id", "") or "",
            "row_state": entity.row_state.value,  # type: ignore[attr-defined]
            "body": entity.to_dict(),  # type: ignore[attr-defined]
        }

    def from_row(self, row: dict[str, Any]) -> E:
        return self.entity_type.from_dict(row["body"])

    def insert(self, entities: Iterable[E]) -> int:
        return self.table.insert(self.to_row(e) for e in entities)

    def replace(self, entities: Iterable[E]) -> int:
        return self.table.replace(self.to_row(e) for e in entities)

    def query_partition(self, partition_key: str, **filters: Any) -> list[E]:
        rows = self.table.query_partition(
            partition_key, record_type=self.record_type.value, **filters
        )
        return [self.from_row(r) for r in rows]

    def query_all(self, **filters: Any) -> list[E]:
        rows = self.table.query(record_type=self.record_type.value, **filters)
        return [self.from_row(r) for r in rows]

    def get(self, partition_key: str, row_key: str) -> E | None:
        row = self.table.get(partition_key, row_key)
        if row is None or row["record_type"] != self.record_type.value:
            return None
        return self.from_row(row)


class RegionStore(EntityStore[RegionEntity]):
    entity_type = RegionEntity
    record_type = RecordType.REGION


class AgencyStore(EntityStore[AgencyEntity]):
    entity_type = AgencyEntity
    record_type = RecordType.AGENCY


class RouteStore(EntityStore[RouteEntity]):
    entity_type = RouteEntity
    record_type = RecordType.ROUTE


class StopStore(EntityStore[StopEntity]):
    entity_type = StopEntity
    record_type = RecordType.STOP


class _MetadataStore(EntityStore[RunMetadata]):
    """Metadata rows share one table per table type; record_type is per row."""

    def to_row(self, entity: RunMetadata) -> dict[str, Any]:
        return {
            "partition_key": entity.partition_key,
            "row_key": entity.row_key,
            "record_type": entity.record_type.value,
            "agency_id": entity.agency_id,
            "row_state": "",
            "body": entity.to_dict(),
        }

    def query_run(self, run_id: str, record_type: RecordType | None = None) -> list[RunMetadata]:
        filters = {} if record_type is None else {"record_type": RecordType(record_type).value}
        rows = self.table.query_partition(run_id, **filters)
        return [self.from_row(r) for r in rows]

    def get(self, partition_key: str, row_key: str) -> RunMetadata | None:
        row = self.table.get(partition_key, row_key)
        return None if row is None else self.from_row(row)

    def delete_run(self, run_id: str) -> int:
        return self.table.delete_partition(run_id)


class DownloadMetadataStore(_MetadataStore):
    entity_type = DownloadMetadataEntity


class DiffMetadataStore(_MetadataStore):
    entity_type = DiffMetadataEntity


class PublishMetadataStore(_MetadataStore):
    entity_type = PublishMetadataEntity


__all__ = [
    "AgencyStore",
    "DiffMetadataStore",
    "DownloadMetadataStore",
    "EntityStore",
    "KeyedTable",
    "PER_RUN_TABLES",
    "PublishMetadataStore",
    "RegionStore",
    "RouteStore",
    "StopStore",
    "table_name",
]
