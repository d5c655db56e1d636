"""Transit domain model: record kinds, lifecycle states, entities, comparators."""

from .comparators import (
    AGENCY_COMPARATOR,
    REGION_COMPARATOR,
    ROUTE_COMPARATOR,
    STOP_COMPARATOR,
    EntityComparator,
    comparator_for,
)
from .entities import (
    AgencyEntity,
    ChangeMetadata,
    DiffMetadataEntity,
    DownloadMetadataEntity,
    Entity,
    PublishMetadataEntity,
    RegionEntity,
    RouteEntity,
    RunMetadata,
    StopEntity,
)
from .enums import RecordType, TableType
from .lifecycle import (
    PUBLISHED_STATES,
    ROW_STATE_TRANSITIONS,
    RowState,
    is_live,
    validate_row_state_transition,
)

__all__ = [
    "AGENCY_COMPARATOR",
    "PUBLISHED_STATES",
    "REGION_COMPARATOR",
    "ROUTE_COMPARATOR",
    "ROW_STATE_TRANSITIONS",
    "STOP_COMPARATOR",
    "AgencyEntity",
    "ChangeMetadata",
    "DiffMetadataEntity",
    "DownloadMetadataEntity",
    "Entity",
    "EntityComparator",
    "PublishMetadataEntity",
    "RecordType",
    "RegionEntity",
    "RouteEntity",
    "RunMetadata",
    "RowState",
    "StopEntity",
    "TableType",
    "comparator_for",
    "is_live",
    "validate_row_state_transition",
]
