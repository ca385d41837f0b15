"""Shipment DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are
the contracts between the API layer (DRF serializers), the sessions and
the store.  DTOs are immutable (``frozen=True``).

- ``TrackingEventDTO``: one history entry.
- ``ShipmentRecord``: the canonical shipment as the reconciler sees it.
- ``CreateShipmentDTO``: admin input for shipment creation.
- ``AppendStatusDTO``: admin input for a status event.
- ``EditMetadataDTO``: admin input for a metadata edit.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.shipments.constants import (
    INITIAL_EVENT_DETAILS,
    ShipmentStatus,
    ShipmentType,
)

if TYPE_CHECKING:
    from modules.shipments.models import Shipment, TrackingEvent


def format_delivery_date(value: date) -> str:
    """Render a delivery date the way it is displayed: ``25 Oct, 2025``."""
    return f"{value.day} {value:%b}, {value.year}"


def format_event_timestamp(moment: Optional[datetime] = None) -> str:
    """Render an event timestamp in UTC: ``21/07/2024, 10:00:00 GMT``."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return f"{moment:%d/%m/%Y, %H:%M:%S} GMT"


def _same_place(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


class TrackingEventDTO(BaseModel):
    """Immutable history entry."""

    model_config = ConfigDict(frozen=True)

    status: str
    location: str
    timestamp: str
    details: str = ""

    @classmethod
    def from_entity(cls, event: TrackingEvent) -> TrackingEventDTO:
        return cls(
            status=event.status,
            location=event.location,
            timestamp=event.timestamp,
            details=event.details,
        )


class ShipmentRecord(BaseModel):
    """Immutable snapshot of a shipment and its history (newest first).

    Validates that history is never empty and
    ``current_status`` mirrors the newest event.
    """

    model_config = ConfigDict(frozen=True)

    tracking_number: str
    current_status: str
    estimated_delivery: str
    origin: str
    destination: str
    weight: Optional[Decimal] = None
    dimensions: Optional[str] = None
    piece_count: Optional[int] = None
    shipment_type: Optional[str] = None
    history: List[TrackingEventDTO]
    version: int = 1

    @model_validator(mode="after")
    def status_mirrors_latest_event(self):
        if not self.history:
            raise ValueError("A shipment must have at least one tracking event.")
        if self.history[0].status != self.current_status:
            raise ValueError(
                "current_status must equal the status of the newest event."
            )
        return self

    @classmethod
    def from_entity(cls, shipment: Shipment) -> ShipmentRecord:
        """Build a record from a Shipment model instance.

        Assumes ``history`` is prefetched (newest first).
        """
        return cls(
            tracking_number=shipment.tracking_number,
            current_status=shipment.current_status,
            estimated_delivery=shipment.estimated_delivery,
            origin=shipment.origin,
            destination=shipment.destination,
            weight=shipment.weight,
            dimensions=shipment.dimensions,
            piece_count=shipment.piece_count,
            shipment_type=shipment.shipment_type,
            history=[TrackingEventDTO.from_entity(e) for e in shipment.history.all()],
            version=shipment.version,
        )

    def with_event(self, event: TrackingEventDTO) -> ShipmentRecord:
        """Return a copy with ``event`` prepended and the status replaced."""
        return self.model_copy(
            update={
                "current_status": event.status,
                "history": [event, *self.history],
                "version": self.version + 1,
            }
        )

    def with_metadata(self, fields: Dict[str, Any]) -> ShipmentRecord:
        """Return a copy with descriptive fields replaced (history untouched)."""
        return self.model_copy(update={**fields, "version": self.version + 1})


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateShipmentDTO(BaseModel):
    """Immutable DTO for shipment creation requests.

    Validates:
    - ``origin`` and ``destination`` are present and differ.
    - ``estimated_delivery`` is not in the past.
    - ``weight`` is positive and ``piece_count`` a positive integer when given.

    ``tracking_number`` is an optional admin-chosen identifier; the session
    validates it with the codec and checks it is free.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    origin: str
    destination: str
    estimated_delivery: date
    weight: Optional[Decimal] = None
    dimensions: Optional[str] = None
    piece_count: Optional[int] = None
    shipment_type: ShipmentType = ShipmentType.PARCEL
    tracking_number: Optional[str] = None

    @field_validator("origin", "destination")
    @classmethod
    def place_must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("This field is required.")
        return v

    @field_validator("estimated_delivery")
    @classmethod
    def delivery_must_not_be_past(cls, v: date) -> date:
        if v < date.today():
            raise ValueError("Estimated delivery date cannot be in the past.")
        return v

    @field_validator("weight")
    @classmethod
    def weight_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Weight must be greater than zero.")
        return v

    @field_validator("piece_count")
    @classmethod
    def piece_count_must_be_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Piece count must be at least 1.")
        return v

    @field_validator("dimensions", "tracking_number")
    @classmethod
    def blank_means_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def origin_differs_from_destination(self):
        if _same_place(self.origin, self.destination):
            raise ValueError("Origin and destination must be different.")
        return self

    def to_record(self, tracking_number: str, now: Optional[datetime] = None) -> ShipmentRecord:
        """Build the initial record, seeded with the ``Order Created`` event."""
        first_event = TrackingEventDTO(
            status=ShipmentStatus.ORDER_CREATED.value,
            location=self.origin,
            timestamp=format_event_timestamp(now),
            details=INITIAL_EVENT_DETAILS,
        )
        return ShipmentRecord(
            tracking_number=tracking_number,
            current_status=ShipmentStatus.ORDER_CREATED.value,
            estimated_delivery=format_delivery_date(self.estimated_delivery),
            origin=self.origin,
            destination=self.destination,
            weight=self.weight,
            dimensions=self.dimensions,
            piece_count=self.piece_count,
            shipment_type=self.shipment_type.value,
            history=[first_event],
        )


class AppendStatusDTO(BaseModel):
    """Immutable DTO for a status update (one new history event)."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    status: ShipmentStatus
    location: str
    details: str = ""

    @field_validator("location")
    @classmethod
    def location_must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Location is required.")
        return v

    def to_event(self, now: Optional[datetime] = None) -> TrackingEventDTO:
        return TrackingEventDTO(
            status=self.status.value,
            location=self.location,
            timestamp=format_event_timestamp(now),
            details=self.details,
        )


class EditMetadataDTO(BaseModel):
    """Immutable DTO for metadata edits.

    Only fields explicitly provided are applied (see ``changes``); status
    and history are not editable here.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    origin: Optional[str] = None
    destination: Optional[str] = None
    estimated_delivery: Optional[date] = None
    weight: Optional[Decimal] = None
    dimensions: Optional[str] = None
    piece_count: Optional[int] = None
    shipment_type: Optional[ShipmentType] = None

    @field_validator("origin", "destination")
    @classmethod
    def place_must_not_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v:
            raise ValueError("This field cannot be blank.")
        return v

    @field_validator("weight")
    @classmethod
    def weight_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Weight must be greater than zero.")
        return v

    @field_validator("piece_count")
    @classmethod
    def piece_count_must_be_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Piece count must be at least 1.")
        return v

    @model_validator(mode="after")
    def origin_differs_from_destination(self):
        if self.origin and self.destination and _same_place(self.origin, self.destination):
            raise ValueError("Origin and destination must be different.")
        return self

    def changes(self) -> Dict[str, Any]:
        """Return the explicitly provided fields, ready for the store."""
        data = self.model_dump(exclude_unset=True)
        if "estimated_delivery" in data:
            if data["estimated_delivery"] is None:
                del data["estimated_delivery"]
            else:
                data["estimated_delivery"] = format_delivery_date(
                    data["estimated_delivery"]
                )
        for required in ("origin", "destination", "shipment_type"):
            if required in data and data[required] is None:
                del data[required]
        if "shipment_type" in data:
            data["shipment_type"] = str(data["shipment_type"])
        return data
