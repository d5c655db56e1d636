"""
Diff engine: reconcile a fresh download against the last published snapshot.

Manifesto:
    Publishing is incremental. A topic is created once, updated when what it
    shows changes, relabeled when its route or stop disappears, and restored
    when it comes back. The engine decides which of those applies to every
    entity of one partition, and nothing else:

    - **Pure:** no I/O, no clock, no global state; the same two snapshots
      always give the same output, so a failed run is repaired by re-running
    - **Generic:** the kind-specific parts arrive as an ``EntityComparator``
    - **Disjoint:** every identity key lands in exactly one bucket
    - **Relative to published state:** Delete and Resurrect are decided
      from the previous snapshot's tags, never from the download

Architecture:
    ::

        current (download, Default)      previous (published, tagged)
                 │                                  │
                 └──────────────┬───────────────────┘
                                ▼
        1. unchanged   same key, same fingerprint, previous not Delete
        2. new         key only in current                  → Create
        3. deleted     key only in previous, not Delete     → Delete
        4. resurrected key in both, previous Delete         → Resurrect
        5. updated     key in both, fingerprint differs     → Update
        6. (rest)      nothing emitted
                                │
                                ▼
                  DiffOutput(new, updated, deleted, resurrected, unchanged)

    Steps run in that order; a key claimed by an earlier step is never
    considered by a later one, so Resurrect always wins over Update.

Guardrails:
    ❌ DON'T: Mutate the input entities to set their state
    ✅ DO: Emit ``dataclasses.replace`` copies carrying the new tag

    ❌ DON'T: Re-delete a key that is already Delete and still absent
    ✅ DO: Treat it as unchanged; nothing is emitted

Tags:
    diff, reconciliation, lifecycle, transit-spine
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from transit_spine.core.errors import KindMismatchError, PreconditionError
from transit_spine.core.keys import IdentityKey
from transit_spine.core.logging import get_logger
from transit_spine.domain.comparators import EntityComparator
from transit_spine.domain.enums import RecordType
from transit_spine.domain.lifecycle import (
    PUBLISHED_STATES,
    RowState,
    validate_row_state_transition,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiffOutput:
    """
    Result of diffing one partition of one kind.

    ``new``, ``updated``, ``deleted`` and ``resurrected`` hold fresh copies
    tagged ``Create``, ``Update``, ``Delete`` and ``Resurrect``. Deleted
    copies carry the previously published content (there is no current
    content); the others carry the current content.

    ``unchanged`` holds the identity keys that need no action: same content
    as published, or already deleted and still absent.
    """

    record_type: RecordType
    new: tuple[Any, ...] = ()
    updated: tuple[Any, ...] = ()
    deleted: tuple[Any, ...] = ()
    resurrected: tuple[Any, ...] = ()
    unchanged: frozenset[IdentityKey] = field(default_factory=frozenset)

    @property
    def added_count(self) -> int:
        return len(self.new)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def resurrected_count(self) -> int:
        return len(self.resurrected)

    @property
    def is_empty(self) -> bool:
        return not (self.new or self.updated or self.deleted or self.resurrected)

    def entities(self) -> Iterator[Any]:
        """Every emitted entity: new, updated, deleted, then resurrected."""
        yield from self.new
        yield from self.updated
        yield from self.deleted
        yield from self.resurrected

    def counts(self) -> dict[str, int]:
        return {
            "added": self.added_count,
            "updated": self.updated_count,
            "deleted": self.deleted_count,
            "resurrected": self.resurrected_count,
        }


def _index(
    entities: Iterable[Any],
    comparator: EntityComparator,
    side: str,
) -> dict[IdentityKey, Any]:
    """Check kind and key uniqueness and index ``entities`` by identity key."""
    indexed: dict[IdentityKey, Any] = {}
    for entity in entities:
        if not isinstance(entity, comparator.entity_type):
            raise KindMismatchError(
                f"{side} snapshot holds {type(entity).__name__}, "
                f"expected {comparator.entity_type.__name__}",
                field="record_type",
                value=type(entity).__name__,
            )
        key = comparator.identity_key_of(entity)
        if key in indexed:
            raise PreconditionError(
                f"duplicate identity key {key} in {side} snapshot",
                field="identity_key",
                value=str(key),
            )
        indexed[key] = entity
    return indexed


def _check_states(current: dict[IdentityKey, Any], previous: dict[IdentityKey, Any]) -> None:
    for key, entity in current.items():
        if entity.row_state in (RowState.DELETE, RowState.RESURRECT):
            raise PreconditionError(
                f"current snapshot entity {key} carries {entity.row_state.value}; "
                "downloads never carry Delete or Resurrect",
                field="row_state",
                value=entity.row_state.value,
            )
    for key, entity in previous.items():
        if entity.row_state not in PUBLISHED_STATES:
            raise PreconditionError(
                f"previous snapshot entity {key} carries {entity.row_state.value}; "
                "published records must carry a diffed state",
                field="row_state",
                value=entity.row_state.value,
            )


def _tag(entity: Any, previous_state: RowState | None, target: RowState) -> Any:
    validate_row_state_transition(previous_state, target)
    return dataclasses.replace(entity, row_state=target)


def diff_snapshots(
    current: Sequence[Any],
    previous: Sequence[Any],
    comparator: EntityComparator,
) -> DiffOutput:
    """
    Diff ``current`` (fresh download) against ``previous`` (last published).

    Both snapshots must be of the comparator's kind and the same partition.

    Raises:
        KindMismatchError: An entity is not of ``comparator.entity_type``.
        PreconditionError: Missing identity fields, a duplicate identity key
            within one snapshot, a Delete/Resurrect entity in ``current`` or
            an undiffed entity in ``previous``.

    Example:
        >>> out = diff_snapshots([route], [], ROUTE_COMPARATOR)
        >>> [r.row_state for r in out.new]
        [<RowState.CREATE: 'Create'>]
    """
    current_by_key = _index(current, comparator, "current")
    previous_by_key = _index(previous, comparator, "previous")
    _check_states(current_by_key, previous_by_key)

    fingerprint_of = comparator.fingerprint_of
    previous_fingerprints = {
        key: fingerprint_of(entity)
        for key, entity in previous_by_key.items()
        if entity.row_state is not RowState.DELETE
    }

    # 1. unchanged fast-path
    unchanged = {
        key
        for key, entity in current_by_key.items()
        if previous_fingerprints.get(key) == fingerprint_of(entity)
    }
    remaining_current = {k: v for k, v in current_by_key.items() if k not in unchanged}
    remaining_previous = {k: v for k, v in previous_by_key.items() if k not in unchanged}

    # 2. new
    new = [
        _tag(entity, None, RowState.CREATE)
        for key, entity in remaining_current.items()
        if key not in remaining_previous
    ]

    # 3. deleted; already-deleted keys that stay absent are no-ops
    deleted = []
    for key, entity in remaining_previous.items():
        if key in remaining_current:
            continue
        if entity.row_state is RowState.DELETE:
            unchanged.add(key)
        else:
            deleted.append(_tag(entity, entity.row_state, RowState.DELETE))

    # 4. resurrected, then 5. updated
    resurrected = []
    updated = []
    for key, entity in remaining_current.items():
        published = remaining_previous.get(key)
        if published is None:
            continue
        if published.row_state is RowState.DELETE:
            resurrected.append(_tag(entity, RowState.DELETE, RowState.RESURRECT))
        elif fingerprint_of(entity) != previous_fingerprints[key]:
            updated.append(_tag(entity, published.row_state, RowState.UPDATE))
        else:
            # 6. only reachable if the fast-path is skipped
            unchanged.add(key)

    output = DiffOutput(
        record_type=comparator.kind,
        new=tuple(new),
        updated=tuple(updated),
        deleted=tuple(deleted),
        resurrected=tuple(resurrected),
        unchanged=frozenset(unchanged),
    )
    logger.debug(
        "diff.computed",
        record_type=comparator.kind.value,
        current=len(current_by_key),
        previous=len(previous_by_key),
        **output.counts(),
    )
    return output


__all__ = ["DiffOutput", "diff_snapshots"]
