"""Unit tests for Shipment DTOs."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.shipments.dtos import (
    AppendStatusDTO,
    CreateShipmentDTO,
    EditMetadataDTO,
    ShipmentRecord,
    TrackingEventDTO,
    format_delivery_date,
    format_event_timestamp,
)

pytestmark = pytest.mark.unit


def test_format_delivery_date():
    assert format_delivery_date(date(2025, 10, 25)) == "25 Oct, 2025"
    assert format_delivery_date(date(2025, 3, 4)) == "4 Mar, 2025"


def test_format_event_timestamp_is_utc():
    moment = datetime(2024, 7, 21, 17, 0, 5, tzinfo=timezone(timedelta(hours=7)))
    assert format_event_timestamp(moment) == "21/07/2024, 10:00:05 GMT"


class TestShipmentRecord:
    def test_history_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            ShipmentRecord(
                tracking_number="OM123456789",
                current_status="Order Created",
                estimated_delivery="25 Jul, 2024",
                origin="A",
                destination="B",
                history=[],
            )

    def test_status_must_mirror_newest_event(self, make_record):
        record = make_record()
        with pytest.raises(ValidationError):
            ShipmentRecord(**{**record.model_dump(), "current_status": "Delivered"})

    def test_with_event_prepends_and_bumps_version(self, make_record):
        record = make_record()
        event = TrackingEventDTO(status="In Transit", location="Bangkok, TH", timestamp="x")
        updated = record.with_event(event)

        assert updated.current_status == "In Transit"
        assert updated.history[0] == event
        assert updated.history[1:] == record.history
        assert updated.version == record.version + 1
        assert record.current_status == "Order Created"

    def test_with_metadata_keeps_history(self, make_record):
        record = make_record()
        updated = record.with_metadata({"origin": "Mandalay, Myanmar"})
        assert updated.origin == "Mandalay, Myanmar"
        assert updated.history == record.history
        assert updated.current_status == record.current_status


class TestCreateShipmentDTO:
    def test_valid_input_builds_seeded_record(self, create_dto):
        dto = create_dto(weight=Decimal("2.5"), piece_count=2)
        record = dto.to_record("OM555000111")

        assert record.tracking_number == "OM555000111"
        assert record.current_status == "Order Created"
        assert record.shipment_type == "Parcel"
        assert len(record.history) == 1
        first = record.history[0]
        assert first.status == "Order Created"
        assert first.location == "Kuala Lumpur, Malaysia"
        assert first.details == "Shipment information received"
        assert first.timestamp.endswith(" GMT")

    def test_rejects_same_origin_and_destination(self, create_dto):
        with pytest.raises(ValidationError, match="Origin and destination must be different"):
            create_dto(origin="Yangon", destination="  yangon ")

    def test_rejects_past_delivery_date(self, create_dto):
        with pytest.raises(ValidationError, match="cannot be in the past"):
            create_dto(estimated_delivery=date.today() - timedelta(days=1))

    def test_today_is_allowed(self, create_dto):
        assert create_dto(estimated_delivery=date.today()).estimated_delivery == date.today()

    @pytest.mark.parametrize("weight", [Decimal("0"), Decimal("-1")])
    def test_rejects_non_positive_weight(self, create_dto, weight):
        with pytest.raises(ValidationError):
            create_dto(weight=weight)

    def test_rejects_zero_pieces(self, create_dto):
        with pytest.raises(ValidationError):
            create_dto(piece_count=0)

    def test_blank_origin_is_rejected(self, create_dto):
        with pytest.raises(ValidationError):
            create_dto(origin="   ")

    def test_blank_tracking_number_means_generated(self, create_dto):
        assert create_dto(tracking_number="  ").tracking_number is None


class TestAppendStatusDTO:
    def test_to_event(self):
        dto = AppendStatusDTO(status="In Transit", location=" Bangkok, TH ")
        event = dto.to_event(datetime(2024, 7, 22, 19, 30, tzinfo=timezone.utc))
        assert event.status == "In Transit"
        assert event.location == "Bangkok, TH"
        assert event.timestamp == "22/07/2024, 19:30:00 GMT"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            AppendStatusDTO(status="Teleported", location="Mars")

    def test_location_is_required(self):
        with pytest.raises(ValidationError):
            AppendStatusDTO(status="In Transit", location="")


class TestEditMetadataDTO:
    def test_changes_only_include_provided_fields(self):
        dto = EditMetadataDTO(destination="Mandalay, Myanmar", shipment_type="Pallet")
        assert dto.changes() == {"destination": "Mandalay, Myanmar", "shipment_type": "Pallet"}

    def test_estimated_delivery_is_formatted(self):
        dto = EditMetadataDTO(estimated_delivery=date(2025, 10, 25))
        assert dto.changes() == {"estimated_delivery": "25 Oct, 2025"}

    def test_explicit_null_clears_optional_fields(self):
        dto = EditMetadataDTO(weight=None, dimensions=None)
        assert dto.changes() == {"weight": None, "dimensions": None}

    def test_same_origin_and_destination_rejected(self):
        with pytest.raises(ValidationError):
            EditMetadataDTO(origin="Yangon", destination="YANGON")
