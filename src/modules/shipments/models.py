"""Shipment and TrackingEvent models.

Business rules implemented:
- ``tracking_number`` is the natural primary key (``OM`` + 9 digits) and
  never changes after creation.
- ``current_status`` always mirrors the newest TrackingEvent; both are
  written together by the repository.
- TrackingEvent rows are append-only and ordered newest first.
- ``version`` is bumped on every write so consumers can discard stale
  change events.
- Origin and destination must differ (``clean``; the DTOs enforce it
  before the store is touched).
"""

from __future__ import annotations

from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from modules.core.models import BaseModel
from modules.shipments.constants import (
    TRACKING_DIGITS,
    TRACKING_NUMBER_LENGTH,
    TRACKING_PREFIX,
    ShipmentStatus,
    ShipmentType,
)


class Shipment(models.Model):
    """Shipment aggregate root.

    ``estimated_delivery`` is stored pre-formatted for display
    (``25 Oct, 2025``), the way it is shown to the public.
    """

    tracking_number: models.CharField = models.CharField(
        max_length=TRACKING_NUMBER_LENGTH,
        primary_key=True,
        editable=False,
        validators=[RegexValidator(rf"^{TRACKING_PREFIX}[0-9]{{{TRACKING_DIGITS}}}\Z")],
    )
    current_status: models.CharField = models.CharField(
        max_length=40,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.ORDER_CREATED,
    )
    estimated_delivery: models.CharField = models.CharField(max_length=40)
    origin: models.CharField = models.CharField(max_length=120)
    destination: models.CharField = models.CharField(max_length=120)
    weight: models.DecimalField = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    dimensions: models.CharField = models.CharField(  # noqa: DJ01
        max_length=60, null=True, blank=True
    )
    piece_count: models.PositiveIntegerField = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
    )
    shipment_type: models.CharField = models.CharField(
        max_length=20,
        choices=ShipmentType.choices,
        default=ShipmentType.PARCEL,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shipments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["current_status"], name="shipments_status_idx"),
            models.Index(fields=["-created_at"], name="shipments_created_idx"),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if (
            self.origin
            and self.destination
            and self.origin.strip().casefold() == self.destination.strip().casefold()
        ):
            raise ValidationError(
                {"destination": "Origin and destination must be different."}
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.tracking_number} ({self.current_status})"


class TrackingEvent(BaseModel):
    """Append-only history entry of a shipment.

    ``timestamp`` is the display string captured when the event was
    recorded (UTC, ``GMT`` suffix).  The UUIDv7 primary key is time
    ordered, so ``-id`` breaks ties between events created in the same
    instant.
    """

    shipment: models.ForeignKey = models.ForeignKey(
        "shipments.Shipment",
        on_delete=models.CASCADE,
        related_name="history",
    )
    status: models.CharField = models.CharField(
        max_length=40,
        choices=ShipmentStatus.choices,
    )
    location: models.CharField = models.CharField(max_length=120)
    timestamp: models.CharField = models.CharField(max_length=40)
    details: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "shipment_tracking_events"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["shipment", "-created_at"],
                name="ste_shipment_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.shipment_id} : {self.status} @ {self.location}"
