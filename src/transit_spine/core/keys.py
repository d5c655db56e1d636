"""
Identity keys and table-safe key encoding.

``IdentityKey`` is the natural key that correlates one logical entity across
snapshots: region, optional agency (routes only) and the upstream local id.

``string_to_table_key`` turns arbitrary upstream ids into strings that are
legal as partition/row keys and topic names. Disallowed characters are
replaced by the base64 of their UTF-8 bytes; safe characters are kept so the
keys stay human readable.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass

MAX_TABLE_KEY_LENGTH = 1024

_DISALLOWED_KEY_CHARS = re.compile(r"[\\#%+/?\u0000-\u001F\u007F-\u009F]")


@dataclass(frozen=True, order=True)
class IdentityKey:
    """Stable natural key of an entity within its kind."""

    region_id: str
    agency_id: str | None
    local_id: str

    def __str__(self) -> str:
        if self.agency_id is None:
            return f"{self.region_id}/{self.local_id}"
        return f"{self.region_id}/{self.agency_id}/{self.local_id}"


def _encode_char(c: str) -> str:
    encoded = base64.b64encode(c.encode("utf-8")).decode("ascii")
    # the base64 alphabet itself contains two disallowed characters
    return encoded.replace("/", "_").replace("+", "-")


def string_to_table_key(value: str) -> str:
    """Encode ``value`` so it is safe as a table partition/row key.

    Raises:
        ValueError: If ``value`` is empty or the encoded key exceeds 1 KB.
    """
    if not value:
        raise ValueError("table key source string must not be empty")

    safe = "".join(
        _encode_char(c) if _DISALLOWED_KEY_CHARS.match(c) else c for c in value
    )

    if len(safe) > MAX_TABLE_KEY_LENGTH:
        raise ValueError(
            f"table keys can be up to {MAX_TABLE_KEY_LENGTH} characters, got {len(safe)}"
        )
    return safe
