"""Entity lifecycle state machine.

Every route and stop row carries a ``RowState``. Raw downloads are
``Default``; the diff engine tags what it emits with ``Create``, ``Update``,
``Delete`` or ``Resurrect``; the publish stage switches on that tag to pick
a topic action and stores the row, tag included, as the new published
record. On the next run those published tags are the "previous" states the
engine transitions from.

Valid transition graph (``None`` = never published)::

    None                       → Create
    Create | Update | Resurrect → Update | Delete
    Delete                     → Resurrect
    Default                    → (never a previous state)

``Delete`` staying ``Delete`` while the entity is still absent is a no-op,
not a transition: nothing is emitted. There is no terminal state; a route
that is discontinued and later reinstated cycles Delete → Resurrect.
"""

from __future__ import annotations

from enum import Enum

from transit_spine.core.errors import InvalidTransitionError


class RowState(str, Enum):
    """State of a row in the download, diff or publish table."""

    DEFAULT = "Default"  # download table only; never diffed
    CREATE = "Create"  # new entity / topic created
    UPDATE = "Update"  # content changed / topic updated
    DELETE = "Delete"  # gone upstream / topic relabeled as deleted
    RESURRECT = "Resurrect"  # back upstream after a delete / topic restored


PUBLISHED_STATES: frozenset[RowState] = frozenset({
    RowState.CREATE,
    RowState.UPDATE,
    RowState.DELETE,
    RowState.RESURRECT,
})


# --- RowState transition rules ---

ROW_STATE_TRANSITIONS: dict[RowState | None, frozenset[RowState]] = {
    None: frozenset({RowState.CREATE}),
    RowState.CREATE: frozenset({RowState.UPDATE, RowState.DELETE}),
    RowState.UPDATE: frozenset({RowState.UPDATE, RowState.DELETE}),
    RowState.RESURRECT: frozenset({RowState.UPDATE, RowState.DELETE}),
    RowState.DELETE: frozenset({RowState.RESURRECT}),
    RowState.DEFAULT: frozenset(),
}


def validate_row_state_transition(
    previous: RowState | None,
    target: RowState,
) -> None:
    """Raise :class:`InvalidTransitionError` if *previous → target* is illegal.

    Args:
        previous: State of the last published record, or ``None`` if the
            entity was never published.
        target: State the diff engine wants to emit.

    Example:
        >>> validate_row_state_transition(RowState.DELETE, RowState.RESURRECT)
        >>> validate_row_state_transition(RowState.DELETE, RowState.UPDATE)
        InvalidTransitionError: Invalid RowState transition: Delete → Update
    """
    allowed = ROW_STATE_TRANSITIONS.get(previous, frozenset())
    if target not in allowed:
        current = previous.value if previous is not None else "(absent)"
        raise InvalidTransitionError(current, target.value, "RowState")


def is_live(state: RowState) -> bool:
    """True for published states whose topic is currently shown as active."""
    return state in PUBLISHED_STATES and state is not RowState.DELETE


def parse_row_state(value: str | RowState) -> RowState:
    """Coerce a stored string to ``RowState``; raises ``ValueError`` if unknown."""
    if isinstance(value, RowState):
        return value
    return RowState(value)
