"""Tests for stored entity records and their keys."""

from decimal import Decimal

from transit_spine.domain.entities import (
    ChangeMetadata,
    DiffMetadataEntity,
    DownloadMetadataEntity,
    RouteEntity,
    StopEntity,
)
from transit_spine.domain.enums import RecordType
from transit_spine.domain.lifecycle import RowState

from conftest import make_agency, make_region, make_route, make_stop


class TestKeys:
    def test_route_keys(self):
        route = make_route("100", region_id="1", agency_id="KCM")
        assert route.partition_key == "1"
        assert route.row_key == "Route_1_KCM_100"

    def test_route_row_key_includes_agency(self):
        assert make_route("100", agency_id="KCM").row_key != make_route("100", agency_id="ST").row_key

    def test_stop_keys(self):
        stop = make_stop("75403", region_id="1")
        assert stop.partition_key == "1"
        assert stop.row_key == "Stop_1_75403"

    def test_agency_keys(self):
        assert make_agency("KCM", region_id="1").row_key == "Agency_1_KCM"

    def test_region_keys(self):
        region = make_region("3")
        assert region.partition_key == "3"
        assert region.region_id == "3"
        assert region.row_key == "Region_3"

    def test_unsafe_ids_are_encoded(self):
        assert "/" not in make_route("1/100").row_key

    def test_record_type(self):
        assert make_route().record_type is RecordType.ROUTE
        assert make_stop().record_type is RecordType.STOP


class TestSerialisation:
    def test_route_round_trip(self):
        route = make_route(row_state=RowState.UPDATE, description="Express", raw_content="{}")
        data = route.to_dict()

        assert data["record_type"] == "Route"
        assert data["row_state"] == "Update"
        assert RouteEntity.from_dict(data) == route

    def test_stop_decimals(self):
        stop = make_stop(lat=Decimal("47.6101"), lon=Decimal("-122.3378"))
        data = stop.to_dict()

        assert data["lat"] == "47.6101"
        restored = StopEntity.from_dict(data)
        assert restored.lat == Decimal("47.6101")
        assert isinstance(restored.lon, Decimal)

    def test_missing_coordinates(self):
        assert StopEntity.from_dict(make_stop().to_dict()).lat is None

    def test_from_dict_ignores_unknown_keys(self):
        data = make_route().to_dict() | {"color": "blue"}
        assert RouteEntity.from_dict(data) == make_route()


class TestChangeMetadata:
    def test_keys_and_total(self):
        meta = DiffMetadataEntity(
            run_id="Test1",
            region_id="1",
            agency_id="KCM",
            record_type=RecordType.ROUTE,
            added_count=2,
            deleted_count=1,
        )
        assert meta.partition_key == "Test1"
        assert meta.row_key == "Route_1_KCM"
        assert meta.total == 3

    def test_round_trip(self):
        meta = DiffMetadataEntity("Test1", "1", "", RecordType.STOP, resurrected_count=4)
        assert DiffMetadataEntity.from_dict(meta.to_dict()) == meta

    def test_from_dict_defaults(self):
        meta = ChangeMetadata.from_dict(
            {"run_id": "r", "region_id": "1", "agency_id": None, "record_type": "Stop"}
        )
        assert meta.agency_id == ""
        assert meta.total == 0


class TestDownloadMetadata:
    def test_keys(self):
        meta = DownloadMetadataEntity("Test1", "1", "KCM", RecordType.ROUTE, count=12)
        assert meta.partition_key == "Test1"
        assert meta.row_key == "Route_1_KCM"

    def test_region_row_has_no_region(self):
        meta = DownloadMetadataEntity("Test1", "", "", RecordType.REGION, count=1)
        assert meta.row_key == "Region__"

    def test_round_trip(self):
        meta = DownloadMetadataEntity("Test1", "1", "", RecordType.STOP, count=40)
        assert meta.to_dict()["count"] == 40
        assert DownloadMetadataEntity.from_dict(meta.to_dict()) == meta

    def test_not_a_change_record(self):
        assert not isinstance(DownloadMetadataEntity("Test1", "1", "", RecordType.STOP), ChangeMetadata)
