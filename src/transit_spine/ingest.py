"""Snapshot ingest: load a downloaded snapshot document into a run's tables.

The upstream fetch client is a separate process; what it hands over is a
JSON document describing one complete download::

    {
      "regions": [
        {
          "id": "1",
          "name": "Puget Sound",
          "oba_base_url": "https://api.pugetsound.onebusaway.org/",
          "agencies": [
            {"id": "1", "name": "Metro Transit", "url": "...", "phone": "...",
             "routes": [{"id": "1_100", "short_name": "8", "long_name": "..."}]}
          ],
          "stops": [{"id": "1_75403", "name": "Pine St & 3rd Ave", "direction": "E",
                     "lat": "47.6101", "lon": "-122.3378"}]
        }
      ]
    }

Usage::

    document = load_snapshot("snapshot.json")
    download = StorageManager(db, TableType.DOWNLOAD, run_id)
    download.create_tables()
    counts = ingest_snapshot(document, download)   # {"Region": 1, "Agency": 1, ...}

Per-partition counts land in the DownloadMetadata table next to the run's
diff and publish metadata; ``delete_download`` drops both for a run.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transit_spine.core.errors import ValidationError
from transit_spine.core.logging import get_logger
from transit_spine.core.run_id import validate_run_id
from transit_spine.domain.entities import (
    AgencyEntity,
    DownloadMetadataEntity,
    RegionEntity,
    RouteEntity,
    StopEntity,
)
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.storage.database import Database
from transit_spine.storage.manager import StorageManager

logger = get_logger(__name__)


def _unique_ids(items: list, what: str) -> list:
    ids = [item.id for item in items]
    duplicates = {i for i in ids if ids.count(i) > 1}
    if duplicates:
        raise ValueError(f"Duplicate {what} ids: {sorted(duplicates)}")
    return items


class RouteDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    short_name: str = ""
    long_name: str = ""
    description: str = ""
    url: str = ""


class StopDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    direction: str = ""
    code: str = ""
    lat: Decimal | None = None
    lon: Decimal | None = None


class AgencyDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    url: str = ""
    phone: str = ""
    routes: list[RouteDoc] = Field(default_factory=list)

    @field_validator("routes")
    @classmethod
    def validate_unique_routes(cls, v: list[RouteDoc]) -> list[RouteDoc]:
        return _unique_ids(v, "route")


class RegionDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    oba_base_url: str = ""
    agencies: list[AgencyDoc] = Field(default_factory=list)
    stops: list[StopDoc] = Field(default_factory=list)

    @field_validator("agencies")
    @classmethod
    def validate_unique_agencies(cls, v: list[AgencyDoc]) -> list[AgencyDoc]:
        return _unique_ids(v, "agency")


class SnapshotDocument(BaseModel):
    """A complete download: every region with its agencies, routes and stops."""

    model_config = ConfigDict(extra="ignore")

    regions: list[RegionDoc] = Field(default_factory=list)

    @field_validator("regions")
    @classmethod
    def validate_unique_regions(cls, v: list[RegionDoc]) -> list[RegionDoc]:
        return _unique_ids(v, "region")


def load_snapshot(path: str | Path) -> SnapshotDocument:
    """Read and validate a snapshot document.

    Raises:
        ValidationError: The file is missing or does not match the schema.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read snapshot {path}: {e}", cause=e) from e
    try:
        return SnapshotDocument.model_validate_json(content)
    except ValueError as e:
        raise ValidationError(f"Invalid snapshot {path}: {e}", cause=e) from e


def _entities(document: SnapshotDocument):
    regions, agencies, routes, stops = [], [], [], []
    for region in document.regions:
        regions.append(
            RegionEntity(
                id=region.id,
                region_name=region.name,
                oba_base_url=region.oba_base_url,
                raw_content=region.model_dump_json(exclude={"agencies", "stops"}),
            )
        )
        for agency in region.agencies:
            agencies.append(
                AgencyEntity(
                    id=agency.id,
                    region_id=region.id,
                    name=agency.name,
                    url=agency.url,
                    phone=agency.phone,
                    raw_content=agency.model_dump_json(exclude={"routes"}),
                )
            )
            routes.extend(
                RouteEntity(
                    id=route.id,
                    region_id=region.id,
                    agency_id=agency.id,
                    short_name=route.short_name,
                    long_name=route.long_name,
                    description=route.description,
                    url=route.url,
                    raw_content=route.model_dump_json(),
                )
                for route in agency.routes
            )
        # stops are listed per route upstream, so repeats are expected; first wins
        seen: set[str] = set()
        for stop in region.stops:
            if stop.id in seen:
                continue
            seen.add(stop.id)
            stops.append(
                StopEntity(
                    id=stop.id,
                    region_id=region.id,
                    lat=stop.lat,
                    lon=stop.lon,
                    direction=stop.direction,
                    name=stop.name,
                    code=stop.code,
                    raw_content=stop.model_dump_json(),
                )
            )
    return regions, agencies, routes, stops


def _download_metadata(run_id: str, regions, agencies, routes, stops) -> list[DownloadMetadataEntity]:
    agencies_per_region = Counter(a.region_id for a in agencies)
    stops_per_region = Counter(s.region_id for s in stops)
    routes_per_agency = Counter((r.region_id, r.agency_id) for r in routes)

    entries = [DownloadMetadataEntity(run_id, "", "", RecordType.REGION, count=len(regions))]
    for region in regions:
        entries.append(
            DownloadMetadataEntity(
                run_id, region.id, "", RecordType.AGENCY, count=agencies_per_region[region.id]
            )
        )
        entries.append(
            DownloadMetadataEntity(
                run_id, region.id, "", RecordType.STOP, count=stops_per_region[region.id]
            )
        )
    for agency in agencies:
        entries.append(
            DownloadMetadataEntity(
                run_id,
                agency.region_id,
                agency.id,
                RecordType.ROUTE,
                count=routes_per_agency[(agency.region_id, agency.id)],
            )
        )
    return entries


def ingest_snapshot(
    document: SnapshotDocument,
    download_storage: StorageManager,
    metadata_storage: StorageManager | None = None,
) -> dict[str, int]:
    """Write every entity of ``document`` into a run's download table.

    All rows carry ``RowState.Default``. Per-partition counts go to the
    download metadata table. Writes happen in one transaction, so a failed
    ingest leaves both tables without rows for the run.
    """
    if download_storage.table_type is not TableType.DOWNLOAD:
        raise ValidationError("snapshots are ingested into a Download table")
    if metadata_storage is None:
        metadata_storage = StorageManager(download_storage.db, TableType.DOWNLOAD_METADATA)
    if metadata_storage.table_type is not TableType.DOWNLOAD_METADATA:
        raise ValidationError("download counts are stored in the DownloadMetadata table")

    run_id = download_storage.run_id
    regions, agencies, routes, stops = _entities(document)
    with download_storage.db.transaction():
        download_storage.create_tables()
        metadata_storage.create_tables()
        counts = {
            RecordType.REGION.value: download_storage.store_for(RecordType.REGION).insert(regions),
            RecordType.AGENCY.value: download_storage.store_for(RecordType.AGENCY).insert(agencies),
            RecordType.ROUTE.value: download_storage.store_for(RecordType.ROUTE).insert(routes),
            RecordType.STOP.value: download_storage.store_for(RecordType.STOP).insert(stops),
        }
        metadata_storage.metadata.insert(  # type: ignore[union-attr]
            _download_metadata(run_id, regions, agencies, routes, stops)
        )
    logger.info("ingest.complete", run_id=run_id, **counts)
    return counts


def delete_download(db: Database, run_id: str) -> None:
    """Drop a run's download table and its download metadata."""
    download_storage = StorageManager(db, TableType.DOWNLOAD, validate_run_id(run_id))
    metadata_storage = StorageManager(db, TableType.DOWNLOAD_METADATA)
    metadata_storage.create_tables()
    with db.transaction():
        download_storage.delete_tables()
        metadata_storage.metadata.delete_run(run_id)  # type: ignore[union-attr]
    logger.info("download.purged", run_id=run_id)


__all__ = [
    "AgencyDoc",
    "RegionDoc",
    "RouteDoc",
    "SnapshotDocument",
    "StopDoc",
    "delete_download",
    "ingest_snapshot",
    "load_snapshot",
]
