"""
Deterministic hashing for content fingerprints.

Manifesto:
    The diff engine decides "same thing, changed" by comparing fingerprints
    of the fields the publisher renders. Fingerprints must be:

    - **Deterministic:** same field values → same digest, across processes
      and runs (no ``hash()`` salting)
    - **Order-dependent:** (a, b) ≠ (b, a)
    - **Unambiguous:** fields are JSON-encoded, so no split of the same
      text across fields yields the same digest
    - **Wide enough:** 128 bits by default; a collision is a missed Update
      that self-corrects on a later run, so cryptographic strength is not
      required, only a negligible collision rate

Architecture:
    ::

        Content fingerprint (change detection):
        ┌────────────────────────────────────────────────────────────┐
        │ fingerprint(row_key, short_name, long_name)                │
        │                                                            │
        │ Same route + same names      → same digest                 │
        │ Same route + renamed         → new digest (Update)         │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> compute_hash("Route_1_100", "8", "Rainier Ave") == compute_hash("Route_1_100", "8", "Rainier Ave")
    True
    >>> len(compute_hash("x", length=16))
    16

Tags:
    hashing, fingerprint, change-detection, transit-spine
"""

import hashlib
import json
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute deterministic hash from values.

    Concatenates the string form of every value with a ``|`` delimiter and
    takes a SHA-256 hex digest truncated to ``length`` characters.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def fingerprint(*fields: Any) -> str:
    """
    Content fingerprint over an entity's comparator-relevant fields.

    ``None`` and ``""`` are treated alike: the upstream feed omits empty
    elements, so a field going from absent to empty is not a change.

    Fields are JSON-encoded as a list before hashing, so a field containing
    the ``|`` delimiter cannot shift text into its neighbour:
    ``("8|Express", "Rainier")`` and ``("8", "Express|Rainier")`` differ.
    """
    content = json.dumps(["" if f is None else str(f) for f in fields], ensure_ascii=False)
    return compute_hash(content)
