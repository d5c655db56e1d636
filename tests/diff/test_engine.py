"""
Tests for the diff engine.

Tests cover:
- The create / unchanged / update / delete / resurrect scenarios
- Partition property: every key lands in exactly one bucket
- No double delete, resurrect precedence, input non-mutation
- Precondition failures: kind mismatch, duplicate keys, illegal input states
"""

import dataclasses

import pytest

from transit_spine.core.errors import KindMismatchError, PreconditionError
from transit_spine.core.keys import IdentityKey
from transit_spine.diff.engine import DiffOutput, diff_snapshots
from transit_spine.domain.comparators import ROUTE_COMPARATOR, STOP_COMPARATOR
from transit_spine.domain.enums import RecordType
from transit_spine.domain.lifecycle import RowState

from conftest import make_route, make_stop


def _keys(entities) -> set[IdentityKey]:
    return {ROUTE_COMPARATOR.identity_key_of(e) for e in entities}


def _published(route, state=RowState.CREATE):
    return dataclasses.replace(route, row_state=state)


# ── Scenarios ────────────────────────────────────────────────────────────


class TestScenarios:
    """The single-entity scenarios, one run each."""

    def test_create(self):
        a = make_route("1")
        out = diff_snapshots([a], [], ROUTE_COMPARATOR)

        assert [r.row_state for r in out.new] == [RowState.CREATE]
        assert out.new[0].id == "1"
        assert out.counts() == {"added": 1, "updated": 0, "deleted": 0, "resurrected": 0}

    def test_unchanged(self):
        a = make_route("1")
        out = diff_snapshots([a], [_published(a)], ROUTE_COMPARATOR)

        assert out.is_empty
        assert out.unchanged == {IdentityKey("1", "KCM", "1")}

    def test_update(self):
        out = diff_snapshots(
            [make_route("1", long_name="Y")],
            [_published(make_route("1", long_name="X"))],
            ROUTE_COMPARATOR,
        )

        assert [r.row_state for r in out.updated] == [RowState.UPDATE]
        assert out.updated[0].long_name == "Y"
        assert not (out.new or out.deleted or out.resurrected)

    def test_update_when_text_moves_across_delimiter(self):
        out = diff_snapshots(
            [make_route("1", short_name="8", long_name="Express|Rainier")],
            [_published(make_route("1", short_name="8|Express", long_name="Rainier"))],
            ROUTE_COMPARATOR,
        )

        assert [r.long_name for r in out.updated] == ["Express|Rainier"]
        assert not out.unchanged

    def test_delete_carries_published_content(self):
        published = _published(make_route("1", long_name="Old"), RowState.UPDATE)
        out = diff_snapshots([], [published], ROUTE_COMPARATOR)

        [deleted] = out.deleted
        assert deleted.row_state is RowState.DELETE
        assert deleted.long_name == "Old"

    def test_delete_then_resurrect_across_runs(self):
        a = make_route("1")

        run1 = diff_snapshots([a], [], ROUTE_COMPARATOR)
        assert [r.row_state for r in run1.new] == [RowState.CREATE]

        run2 = diff_snapshots([], list(run1.new), ROUTE_COMPARATOR)
        assert [r.row_state for r in run2.deleted] == [RowState.DELETE]

        run3 = diff_snapshots([a], list(run2.deleted), ROUTE_COMPARATOR)
        assert [r.row_state for r in run3.resurrected] == [RowState.RESURRECT]
        assert not run3.updated

    def test_resurrected_then_updated(self):
        a = make_route("1", long_name="A")
        resurrected = _published(a, RowState.RESURRECT)
        out = diff_snapshots([make_route("1", long_name="B")], [resurrected], ROUTE_COMPARATOR)

        assert [r.row_state for r in out.updated] == [RowState.UPDATE]

    def test_empty_partition(self):
        out = diff_snapshots([], [], STOP_COMPARATOR)
        assert out.is_empty
        assert out.unchanged == frozenset()
        assert out.record_type is RecordType.STOP


# ── Properties ───────────────────────────────────────────────────────────


class TestProperties:
    def _mixed(self):
        previous = [
            _published(make_route("same")),
            _published(make_route("changed", long_name="old")),
            _published(make_route("gone")),
            _published(make_route("dormant"), RowState.DELETE),
            _published(make_route("back", long_name="before"), RowState.DELETE),
        ]
        current = [
            make_route("same"),
            make_route("changed", long_name="new"),
            make_route("back", long_name="after"),
            make_route("fresh"),
        ]
        return current, previous

    def test_partition_property(self):
        current, previous = self._mixed()
        out = diff_snapshots(current, previous, ROUTE_COMPARATOR)

        buckets = [
            _keys(out.new),
            _keys(out.updated),
            _keys(out.deleted),
            _keys(out.resurrected),
            set(out.unchanged),
        ]
        all_keys = _keys(current) | _keys(previous)
        for key in all_keys:
            assert sum(key in b for b in buckets) == 1, key
        assert set().union(*buckets) == all_keys

    def test_mixed_classification(self):
        current, previous = self._mixed()
        out = diff_snapshots(current, previous, ROUTE_COMPARATOR)

        assert [r.id for r in out.new] == ["fresh"]
        assert [r.id for r in out.updated] == ["changed"]
        assert [r.id for r in out.deleted] == ["gone"]
        assert [r.id for r in out.resurrected] == ["back"]
        assert {k.local_id for k in out.unchanged} == {"same", "dormant"}

    def test_no_double_delete(self):
        dormant = _published(make_route("1"), RowState.DELETE)
        out = diff_snapshots([], [dormant], ROUTE_COMPARATOR)

        assert out.deleted == ()
        assert out.is_empty

    def test_resurrect_precedence(self):
        """A key Delete in previous with different content is Resurrect, not Update."""
        deleted = _published(make_route("1", long_name="before"), RowState.DELETE)
        out = diff_snapshots([make_route("1", long_name="after")], [deleted], ROUTE_COMPARATOR)

        assert [r.row_state for r in out.resurrected] == [RowState.RESURRECT]
        assert out.resurrected[0].long_name == "after"
        assert out.updated == ()

    def test_resurrect_with_same_content(self):
        """Fast-path skips Delete records, so same content still resurrects."""
        a = make_route("1")
        out = diff_snapshots([a], [_published(a, RowState.DELETE)], ROUTE_COMPARATOR)

        assert len(out.resurrected) == 1

    def test_deterministic(self):
        current, previous = self._mixed()
        assert diff_snapshots(current, previous, ROUTE_COMPARATOR) == diff_snapshots(
            current, previous, ROUTE_COMPARATOR
        )

    def test_inputs_not_mutated(self):
        current, previous = self._mixed()
        before = ([dataclasses.replace(e) for e in current], [dataclasses.replace(e) for e in previous])

        out = diff_snapshots(current, previous, ROUTE_COMPARATOR)

        assert (current, previous) == before
        assert all(e.row_state is RowState.DEFAULT for e in current)
        assert out.new[0] is not current[-1]

    def test_same_route_id_different_agencies(self):
        a = make_route("100", agency_id="KCM")
        b = make_route("100", agency_id="ST")
        out = diff_snapshots([a, b], [_published(a)], ROUTE_COMPARATOR)

        assert [r.agency_id for r in out.new] == ["ST"]

    def test_entities_order(self):
        current, previous = self._mixed()
        out = diff_snapshots(current, previous, ROUTE_COMPARATOR)

        states = [e.row_state for e in out.entities()]
        assert states == [RowState.CREATE, RowState.UPDATE, RowState.DELETE, RowState.RESURRECT]


# ── Preconditions ────────────────────────────────────────────────────────


class TestPreconditions:
    def test_kind_mismatch(self):
        with pytest.raises(KindMismatchError):
            diff_snapshots([make_stop()], [], ROUTE_COMPARATOR)

    def test_kind_mismatch_in_previous(self):
        with pytest.raises(KindMismatchError):
            diff_snapshots([], [make_route(row_state=RowState.CREATE)], STOP_COMPARATOR)

    def test_missing_identity_field(self):
        with pytest.raises(PreconditionError):
            diff_snapshots([make_route("")], [], ROUTE_COMPARATOR)

    def test_duplicate_key(self):
        with pytest.raises(PreconditionError, match="duplicate"):
            diff_snapshots([make_route("1"), make_route("1", long_name="x")], [], ROUTE_COMPARATOR)

    @pytest.mark.parametrize("state", [RowState.DELETE, RowState.RESURRECT])
    def test_current_with_diff_state(self, state):
        with pytest.raises(PreconditionError):
            diff_snapshots([make_route(row_state=state)], [], ROUTE_COMPARATOR)

    def test_previous_with_default_state(self):
        with pytest.raises(PreconditionError):
            diff_snapshots([], [make_route()], ROUTE_COMPARATOR)


class TestDiffOutput:
    def test_counts(self):
        out = DiffOutput(record_type=RecordType.ROUTE, new=(1, 2), deleted=(3,))
        assert out.added_count == 2
        assert out.deleted_count == 1
        assert not out.is_empty
        assert list(out.entities()) == [1, 2, 3]
