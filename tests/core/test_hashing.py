"""
Tests for transit_spine.core.hashing.

Tests cover:
- Deterministic hash computation
- Hash length options
- Fingerprint treatment of None and empty strings
- Fingerprint fields containing the delimiter
"""

from decimal import Decimal

from transit_spine.core.hashing import compute_hash, fingerprint


class TestComputeHash:
    """Tests for compute_hash function."""

    def test_hash_default_length(self):
        result = compute_hash("Route_1_KCM_100")

        assert isinstance(result, str)
        assert len(result) == 32

    def test_hash_deterministic(self):
        """Same inputs produce the same hash."""
        assert compute_hash("a", "b", "c") == compute_hash("a", "b", "c")

    def test_hash_different_inputs(self):
        assert compute_hash("a", "b", "c") != compute_hash("a", "b", "d")

    def test_hash_order_matters(self):
        assert compute_hash("a", "b") != compute_hash("b", "a")

    def test_hash_custom_length(self):
        assert len(compute_hash("value", length=16)) == 16
        assert len(compute_hash("value", length=64)) == 64

    def test_hash_is_hex(self):
        int(compute_hash("x", 1, 2.5, None), 16)

    def test_delimiter_separates_values(self):
        """("ab", "c") and ("a", "bc") must not collide."""
        assert compute_hash("ab", "c") != compute_hash("a", "bc")


class TestFingerprint:
    """Tests for the content fingerprint."""

    def test_none_and_empty_are_equal(self):
        assert fingerprint("Route_1_KCM_100", None, "Long") == fingerprint("Route_1_KCM_100", "", "Long")

    def test_changed_field_changes_fingerprint(self):
        assert fingerprint("k", "8", "Rainier") != fingerprint("k", "8", "Rainier Ave")

    def test_delimiter_inside_field(self):
        """Moving text across a ``|`` inside a field is still a change."""
        assert fingerprint("k", "8|Express", "Rainier") != fingerprint("k", "8", "Express|Rainier")
        assert fingerprint("a|", "b") != fingerprint("a", "|b")

    def test_quotes_and_unicode(self):
        assert fingerprint('a", "b') != fingerprint("a", "b")
        assert fingerprint("Café") != fingerprint("Cafe")

    def test_default_length(self):
        assert len(fingerprint("k", "a")) == 32

    def test_values_compared_as_text(self):
        assert fingerprint(Decimal("47.6101")) == fingerprint("47.6101")
