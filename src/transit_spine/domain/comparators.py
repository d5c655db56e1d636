"""
Per-kind identity and fingerprint strategies.

The diff engine is generic over entity kind. Everything kind-specific it
needs, how to build the identity key and which fields to fingerprint, comes
in as an ``EntityComparator`` argument. There is no process-wide registry;
``comparator_for`` is a plain lookup over the four module constants.

Fingerprint fields are the ones the publisher renders into a topic. Routes
and stops also fingerprint their row key, so two different entities only
share a fingerprint on a real SHA-256 collision.

Example:
    >>> comparator = comparator_for(RecordType.ROUTE)
    >>> comparator.identity_key_of(RouteEntity(id="100", region_id="1", agency_id="KCM"))
    IdentityKey(region_id='1', agency_id='KCM', local_id='100')
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from transit_spine.core.errors import PreconditionError
from transit_spine.core.hashing import fingerprint
from transit_spine.core.keys import IdentityKey
from transit_spine.domain.entities import (
    AgencyEntity,
    RegionEntity,
    RouteEntity,
    StopEntity,
)
from transit_spine.domain.enums import RecordType


@dataclass(frozen=True)
class EntityComparator:
    """Identity and content strategy for one entity kind."""

    kind: RecordType
    entity_type: type
    identity_key_of: Callable[[Any], IdentityKey]
    fingerprint_of: Callable[[Any], str]


def _require(entity: Any, field: str) -> str:
    value = getattr(entity, field, None)
    if value is None or not str(value).strip():
        raise PreconditionError(
            f"{type(entity).__name__} has no {field}",
            field=field,
            value=value,
        )
    return str(value)


def _route_key(route: RouteEntity) -> IdentityKey:
    return IdentityKey(
        _require(route, "region_id"),
        _require(route, "agency_id"),
        _require(route, "id"),
    )


def _regional_key(entity: Any) -> IdentityKey:
    return IdentityKey(_require(entity, "region_id"), None, _require(entity, "id"))


def _region_key(region: RegionEntity) -> IdentityKey:
    region_id = _require(region, "id")
    return IdentityKey(region_id, None, region_id)


ROUTE_COMPARATOR = EntityComparator(
    kind=RecordType.ROUTE,
    entity_type=RouteEntity,
    identity_key_of=_route_key,
    fingerprint_of=lambda r: fingerprint(r.row_key, r.short_name, r.long_name),
)

STOP_COMPARATOR = EntityComparator(
    kind=RecordType.STOP,
    entity_type=StopEntity,
    identity_key_of=_regional_key,
    fingerprint_of=lambda s: fingerprint(s.row_key, s.name, s.direction),
)

AGENCY_COMPARATOR = EntityComparator(
    kind=RecordType.AGENCY,
    entity_type=AgencyEntity,
    identity_key_of=_regional_key,
    fingerprint_of=lambda a: fingerprint(a.name, a.phone, a.url),
)

REGION_COMPARATOR = EntityComparator(
    kind=RecordType.REGION,
    entity_type=RegionEntity,
    identity_key_of=_region_key,
    fingerprint_of=lambda r: fingerprint(r.region_name, r.oba_base_url),
)

_COMPARATORS = {
    c.kind: c
    for c in (ROUTE_COMPARATOR, STOP_COMPARATOR, AGENCY_COMPARATOR, REGION_COMPARATOR)
}


def comparator_for(record_type: RecordType) -> EntityComparator:
    """Return the comparator for ``record_type``."""
    return _COMPARATORS[RecordType(record_type)]
