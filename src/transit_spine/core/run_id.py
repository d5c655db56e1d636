"""Run identifiers.

A run id names one download → diff → publish execution. It is a local
timestamp with millisecond precision, and it becomes the suffix of the run's
download and diff table names, so it must stay alphanumeric.
"""

from __future__ import annotations

import re
from datetime import datetime

from transit_spine.core.errors import ConfigError

_RUN_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{1,64}$")


def generate_run_id(now: datetime | None = None) -> str:
    """Return ``yyyyMMddHHmmssfff`` for ``now`` (default: local time)."""
    now = now or datetime.now()
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"


def generate_test_run_id(now: datetime | None = None) -> str:
    """Run id for tests; the ``Test`` prefix keeps them out of production listings."""
    return "Test" + generate_run_id(now)


def validate_run_id(run_id: str) -> str:
    """Return ``run_id`` unchanged, or raise :class:`ConfigError` if it is unsafe."""
    if not isinstance(run_id, str) or not _RUN_ID_PATTERN.match(run_id):
        raise ConfigError(f"Invalid run id {run_id!r}: expected 1-64 alphanumeric characters")
    return run_id
