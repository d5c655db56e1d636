"""Stored entity records.

These are the rows of the download, diff and publish tables. Each entity
knows its own partition key (the region) and row key; the content that the
diff engine compares is selected by the per-kind comparators in
:mod:`transit_spine.domain.comparators`, not by the entities themselves.

``raw_content`` is the original upstream representation, carried unchanged
for audit and display. It never takes part in a comparison.

Example:
    >>> route = RouteEntity(id="100", region_id="1", agency_id="KCM", short_name="8")
    >>> route.row_key
    'Route_1_KCM_100'
    >>> RouteEntity.from_dict(route.to_dict()) == route
    True
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, ClassVar, TypeVar

from transit_spine.core.keys import string_to_table_key
from transit_spine.domain.enums import RecordType
from transit_spine.domain.lifecycle import RowState, parse_row_state

E = TypeVar("E", bound="BaseEntity")


class BaseEntity:
    """Serialisation and keying shared by every stored entity dataclass."""

    RECORD_TYPE: ClassVar[RecordType]

    @property
    def record_type(self) -> RecordType:
        return self.RECORD_TYPE

    @property
    def partition_key(self) -> str:
        return self.region_id  # type: ignore[attr-defined]

    @property
    def row_key(self) -> str:
        return string_to_table_key(
            f"{self.RECORD_TYPE.value}_{self.region_id}_{self.id}"  # type: ignore[attr-defined]
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-safe dict; decimals become strings, states their values."""
        result: dict[str, Any] = {"record_type": self.RECORD_TYPE.value}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, RowState):
                value = value.value
            elif isinstance(value, Decimal):
                value = str(value)
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls: type[E], data: dict[str, Any]) -> E:
        kwargs: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name == "row_state":
                value = parse_row_state(value)
            elif f.type in ("Decimal", "Decimal | None") and value is not None:
                value = Decimal(str(value))
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class RegionEntity(BaseEntity):
    """A region served by its own upstream server."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.REGION

    id: str
    region_name: str = ""
    oba_base_url: str = ""
    row_state: RowState = RowState.DEFAULT
    raw_content: str = ""

    @property
    def region_id(self) -> str:
        return self.id

    @property
    def partition_key(self) -> str:
        return self.id

    @property
    def row_key(self) -> str:
        return string_to_table_key(f"{self.RECORD_TYPE.value}_{self.id}")


@dataclass
class AgencyEntity(BaseEntity):
    """A transit agency within a region."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.AGENCY

    id: str
    region_id: str
    name: str = ""
    url: str = ""
    phone: str = ""
    row_state: RowState = RowState.DEFAULT
    raw_content: str = ""


@dataclass
class RouteEntity(BaseEntity):
    """A route run by one agency in one region."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.ROUTE

    id: str
    region_id: str
    agency_id: str
    short_name: str = ""
    long_name: str = ""
    description: str = ""
    url: str = ""
    row_state: RowState = RowState.DEFAULT
    raw_content: str = ""

    @property
    def row_key(self) -> str:
        # route ids are only unique per agency
        return string_to_table_key(
            f"{self.RECORD_TYPE.value}_{self.region_id}_{self.agency_id}_{self.id}"
        )


@dataclass
class StopEntity(BaseEntity):
    """A stop in a region; stops are shared across agencies."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.STOP

    id: str
    region_id: str
    lat: Decimal | None = None
    lon: Decimal | None = None
    direction: str = ""
    name: str = ""
    code: str = ""
    row_state: RowState = RowState.DEFAULT
    raw_content: str = ""


Entity = RegionEntity | AgencyEntity | RouteEntity | StopEntity


# =============================================================================
# Bookkeeping records
# =============================================================================


@dataclass
class RunMetadata:
    """Keying shared by the per-run bookkeeping rows.

    Partitioned by run id so a whole run can be listed or purged at once.
    Partitions without an agency (stops, agencies, regions) use ``""``.
    """

    run_id: str
    region_id: str
    agency_id: str
    record_type: RecordType

    @property
    def partition_key(self) -> str:
        return self.run_id

    @property
    def row_key(self) -> str:
        return string_to_table_key(
            f"{self.record_type.value}_{self.region_id}_{self.agency_id}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "region_id": self.region_id,
            "agency_id": self.agency_id,
            "record_type": self.record_type.value,
        }


@dataclass
class DownloadMetadataEntity(RunMetadata):
    """Number of records of one kind downloaded for one partition.

    Regions are counted once per run (``region_id == ""``), agencies and
    stops per region, routes per region + agency.
    """

    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "count": self.count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls(
            run_id=data["run_id"],
            region_id=data.get("region_id") or "",
            agency_id=data.get("agency_id") or "",
            record_type=RecordType(data["record_type"]),
            count=int(data.get("count", 0)),
        )


@dataclass
class ChangeMetadata(RunMetadata):
    """Per-partition change counts for one record type in one run.

    Stops are partitioned by region only; their ``agency_id`` is ``""``.
    """

    added_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    resurrected_count: int = 0

    @property
    def total(self) -> int:
        return self.added_count + self.updated_count + self.deleted_count + self.resurrected_count

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "added_count": self.added_count,
            "updated_count": self.updated_count,
            "deleted_count": self.deleted_count,
            "resurrected_count": self.resurrected_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls(
            run_id=data["run_id"],
            region_id=data["region_id"],
            agency_id=data.get("agency_id") or "",
            record_type=RecordType(data["record_type"]),
            added_count=int(data.get("added_count", 0)),
            updated_count=int(data.get("updated_count", 0)),
            deleted_count=int(data.get("deleted_count", 0)),
            resurrected_count=int(data.get("resurrected_count", 0)),
        )


@dataclass
class DiffMetadataEntity(ChangeMetadata):
    """Counts of what the diff engine found for one partition."""


@dataclass
class PublishMetadataEntity(ChangeMetadata):
    """Counts of what the publish stage applied for one partition."""
