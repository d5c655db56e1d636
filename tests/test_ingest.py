"""Tests for snapshot loading and ingest."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from transit_spine.core.errors import DuplicateRowError, ValidationError
from transit_spine.domain.entities import DownloadMetadataEntity
from transit_spine.domain.enums import RecordType, TableType
from transit_spine.domain.lifecycle import RowState
from transit_spine.ingest import SnapshotDocument, delete_download, ingest_snapshot, load_snapshot
from transit_spine.storage.manager import StorageManager

SNAPSHOT = Path(__file__).parent / "fixtures" / "snapshot.json"


class TestLoadSnapshot:
    def test_load_fixture(self):
        document = load_snapshot(SNAPSHOT)
        [region] = document.regions
        assert region.name == "Puget Sound"
        assert [a.id for a in region.agencies] == ["1", "40"]
        assert region.stops[0].lat == Decimal("47.6101")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="Cannot read"):
            load_snapshot(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationError, match="Invalid snapshot"):
            load_snapshot(path)

    def test_duplicate_routes_rejected(self, tmp_path):
        path = tmp_path / "dup.json"
        path.write_text(
            json.dumps({
                "regions": [{
                    "id": "1",
                    "agencies": [{"id": "A", "routes": [{"id": "r"}, {"id": "r"}]}],
                }]
            }),
            encoding="utf-8",
        )
        with pytest.raises(ValidationError, match="Duplicate route ids"):
            load_snapshot(path)

    def test_unknown_fields_ignored(self):
        document = SnapshotDocument.model_validate({"regions": [{"id": "1", "timezone": "PST"}]})
        assert document.regions[0].id == "1"


class TestIngest:
    def test_counts_and_rows(self, db, run_id):
        download = StorageManager(db, TableType.DOWNLOAD, run_id)

        counts = ingest_snapshot(load_snapshot(SNAPSHOT), download)

        assert counts == {"Region": 1, "Agency": 2, "Route": 3, "Stop": 2}
        routes = download.routes.query_all()
        assert {r.row_state for r in routes} == {RowState.DEFAULT}
        assert {(r.agency_id, r.id) for r in routes} == {("1", "1_100"), ("1", "1_102"), ("40", "40_100479")}

    def test_raw_content_kept(self, db, run_id):
        download = StorageManager(db, TableType.DOWNLOAD, run_id)
        ingest_snapshot(load_snapshot(SNAPSHOT), download)

        [region] = download.regions.query_all()
        assert json.loads(region.raw_content)["name"] == "Puget Sound"
        assert "agencies" not in json.loads(region.raw_content)

    def test_requires_download_table(self, db):
        with pytest.raises(ValidationError):
            ingest_snapshot(SnapshotDocument(), StorageManager(db, TableType.PUBLISH))

    def test_reingest_rolls_back(self, db, run_id):
        download = StorageManager(db, TableType.DOWNLOAD, run_id)
        ingest_snapshot(load_snapshot(SNAPSHOT), download)

        with pytest.raises(DuplicateRowError):
            ingest_snapshot(load_snapshot(SNAPSHOT), download)
        assert len(download.routes.query_all()) == 3


class TestDownloadMetadata:
    @pytest.fixture
    def metadata(self, db):
        return StorageManager(db, TableType.DOWNLOAD_METADATA)

    def test_counts_per_partition(self, db, run_id, metadata):
        ingest_snapshot(load_snapshot(SNAPSHOT), StorageManager(db, TableType.DOWNLOAD, run_id))

        entries = metadata.metadata.query_run(run_id)
        assert {(e.record_type, e.region_id, e.agency_id, e.count) for e in entries} == {
            (RecordType.REGION, "", "", 1),
            (RecordType.AGENCY, "1", "", 2),
            (RecordType.STOP, "1", "", 2),
            (RecordType.ROUTE, "1", "1", 2),
            (RecordType.ROUTE, "1", "40", 1),
        }

    def test_agency_without_routes_counted(self, db, run_id, metadata):
        document = SnapshotDocument.model_validate({"regions": [{"id": "1", "agencies": [{"id": "A"}]}]})
        ingest_snapshot(document, StorageManager(db, TableType.DOWNLOAD, run_id))

        [route_entry] = metadata.metadata.query_run(run_id, RecordType.ROUTE)
        assert (route_entry.agency_id, route_entry.count) == ("A", 0)

    def test_failed_metadata_write_rolls_back_downloads(self, db, run_id, metadata):
        metadata.create_tables()
        metadata.metadata.insert([DownloadMetadataEntity(run_id, "", "", RecordType.REGION, count=9)])
        download = StorageManager(db, TableType.DOWNLOAD, run_id)

        with pytest.raises(DuplicateRowError):
            ingest_snapshot(load_snapshot(SNAPSHOT), download)

        assert not download.exists() or download.routes.query_all() == []
        [entry] = metadata.metadata.query_run(run_id)
        assert entry.count == 9

    def test_requires_metadata_table(self, db, run_id):
        with pytest.raises(ValidationError):
            ingest_snapshot(
                SnapshotDocument(),
                StorageManager(db, TableType.DOWNLOAD, run_id),
                StorageManager(db, TableType.DIFF_METADATA),
            )

    def test_delete_download(self, db, run_id, metadata):
        download = StorageManager(db, TableType.DOWNLOAD, run_id)
        ingest_snapshot(load_snapshot(SNAPSHOT), download)

        delete_download(db, run_id)

        assert not download.exists()
        assert metadata.metadata.query_run(run_id) == []

    def test_delete_download_keeps_other_runs(self, db, run_id, metadata):
        other = "Test20250102120000000"
        ingest_snapshot(load_snapshot(SNAPSHOT), StorageManager(db, TableType.DOWNLOAD, run_id))
        ingest_snapshot(load_snapshot(SNAPSHOT), StorageManager(db, TableType.DOWNLOAD, other))

        delete_download(db, run_id)

        assert len(metadata.metadata.query_run(other)) == 5

    def test_reingest_after_delete(self, db, run_id):
        download = StorageManager(db, TableType.DOWNLOAD, run_id)
        ingest_snapshot(load_snapshot(SNAPSHOT), download)
        delete_download(db, run_id)

        counts = ingest_snapshot(load_snapshot(SNAPSHOT), download)

        assert counts["Route"] == 3
