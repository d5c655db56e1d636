"""
Shared pytest fixtures for transit-spine tests.

This module provides:
- An in-memory ``Database`` per test
- Entity factories with sensible defaults
- Settings cache isolation
- Fake catalog / source / sink for coordinator tests
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from typing import Any

import pytest

from transit_spine.core.config import clear_settings_cache
from transit_spine.diff.protocols import Partition
from transit_spine.domain.entities import (
    AgencyEntity,
    DiffMetadataEntity,
    RegionEntity,
    RouteEntity,
    StopEntity,
)
from transit_spine.domain.enums import RecordType
from transit_spine.domain.lifecycle import RowState
from transit_spine.storage.database import Database

TEST_RUN_ID = "Test20250101120000000"


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Every test starts from default settings, independent of the host env."""
    for name in (
        "TRANSIT_SPINE_DATABASE_PATH",
        "TRANSIT_SPINE_MAX_CONCURRENCY",
        "TRANSIT_SPINE_TOPIC_ENDPOINT",
        "TRANSIT_SPINE_DELETED_TOPIC_PREFIX",
        "TRANSIT_SPINE_LOG_LEVEL",
        "TRANSIT_SPINE_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def run_id() -> str:
    return TEST_RUN_ID


# =============================================================================
# Entity factories
# =============================================================================


def make_route(
    id: str = "100",
    *,
    region_id: str = "1",
    agency_id: str = "KCM",
    short_name: str = "8",
    long_name: str = "Seattle Center - Rainier Beach",
    row_state: RowState = RowState.DEFAULT,
    **kwargs: Any,
) -> RouteEntity:
    return RouteEntity(
        id=id,
        region_id=region_id,
        agency_id=agency_id,
        short_name=short_name,
        long_name=long_name,
        row_state=row_state,
        **kwargs,
    )


def make_stop(
    id: str = "75403",
    *,
    region_id: str = "1",
    name: str = "Pine St & 3rd Ave",
    direction: str = "E",
    row_state: RowState = RowState.DEFAULT,
    **kwargs: Any,
) -> StopEntity:
    return StopEntity(
        id=id,
        region_id=region_id,
        name=name,
        direction=direction,
        row_state=row_state,
        **kwargs,
    )


def make_agency(id: str = "KCM", *, region_id: str = "1", **kwargs: Any) -> AgencyEntity:
    kwargs.setdefault("name", "King County Metro")
    return AgencyEntity(id=id, region_id=region_id, **kwargs)


def make_region(id: str = "1", **kwargs: Any) -> RegionEntity:
    kwargs.setdefault("region_name", "Puget Sound")
    kwargs.setdefault("oba_base_url", "https://api.pugetsound.onebusaway.org/")
    return RegionEntity(id=id, **kwargs)


@pytest.fixture
def fake_route():
    return make_route


@pytest.fixture
def fake_stop():
    return make_stop


@pytest.fixture
def fake_agency():
    return make_agency


@pytest.fixture
def fake_region():
    return make_region


# =============================================================================
# In-memory collaborators for the coordinator
# =============================================================================


class FakeCatalog:
    def __init__(self, partitions: dict[RecordType, list[Partition]]) -> None:
        self._partitions = partitions

    def partitions(self, record_type: RecordType) -> list[Partition]:
        return list(self._partitions.get(record_type, []))


class FakeSource:
    """Snapshots keyed by (record_type, partition); ``fail`` raises for a partition."""

    def __init__(
        self,
        snapshots: dict[tuple[RecordType, Partition], list[Any]] | None = None,
        fail: dict[Partition, Exception] | None = None,
    ) -> None:
        self.snapshots = snapshots or {}
        self.fail = fail or {}
        self.fetched: list[tuple[RecordType, Partition]] = []
        self._lock = threading.Lock()

    def fetch(self, record_type: RecordType, partition: Partition) -> list[Any]:
        with self._lock:
            self.fetched.append((record_type, partition))
        if partition in self.fail:
            raise self.fail[partition]
        return list(self.snapshots.get((record_type, partition), []))


class FakeSink:
    def __init__(self) -> None:
        self.outputs: dict[tuple[RecordType, Partition], Any] = {}
        self.metadata: list[DiffMetadataEntity] = []
        self._lock = threading.Lock()

    def write(self, record_type, partition, output, metadata) -> None:
        with self._lock:
            self.outputs[(record_type, partition)] = output
            self.metadata.append(metadata)

    def read_metadata(self, run_id: str) -> list[DiffMetadataEntity]:
        return [m for m in self.metadata if m.run_id == run_id]

    def purge(self, run_id: str) -> None:
        self.metadata = [m for m in self.metadata if m.run_id != run_id]
        self.outputs.clear()
