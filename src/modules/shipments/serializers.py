"""Shipment DRF serializers for API input/output.

Input serializers only check shape and types; business rules live in
the Pydantic DTOs from ``dtos.py`` and in the sessions.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.core.models import ChangeLogEntry
from modules.shipments.constants import (
    DEFAULT_SORT_KEY,
    FILTER_ALL,
    FILTER_TYPES,
    SORT_KEYS,
    ShipmentStatus,
    ShipmentType,
)

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class AdminLoginSerializer(serializers.Serializer):
    password = serializers.CharField(trim_whitespace=False)


class CreateShipmentSerializer(serializers.Serializer):
    """Validates the shipment creation request payload."""

    origin = serializers.CharField(max_length=120)
    destination = serializers.CharField(max_length=120)
    estimated_delivery = serializers.DateField()
    weight = serializers.DecimalField(
        max_digits=8, decimal_places=2, required=False, allow_null=True
    )
    dimensions = serializers.CharField(
        max_length=60, required=False, allow_blank=True, allow_null=True
    )
    piece_count = serializers.IntegerField(required=False, allow_null=True)
    shipment_type = serializers.ChoiceField(
        choices=ShipmentType.choices, default=ShipmentType.PARCEL
    )
    tracking_number = serializers.CharField(
        max_length=20, required=False, allow_blank=True, allow_null=True
    )


class AppendStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ShipmentStatus.choices)
    location = serializers.CharField(max_length=120)
    details = serializers.CharField(required=False, default="", allow_blank=True)


class EditMetadataSerializer(serializers.Serializer):
    """All fields optional; only the ones sent are applied."""

    origin = serializers.CharField(max_length=120, required=False)
    destination = serializers.CharField(max_length=120, required=False)
    estimated_delivery = serializers.DateField(required=False)
    weight = serializers.DecimalField(
        max_digits=8, decimal_places=2, required=False, allow_null=True
    )
    dimensions = serializers.CharField(
        max_length=60, required=False, allow_blank=True, allow_null=True
    )
    piece_count = serializers.IntegerField(required=False, allow_null=True)
    shipment_type = serializers.ChoiceField(choices=ShipmentType.choices, required=False)


class ShipmentSearchSerializer(serializers.Serializer):
    q = serializers.CharField(required=False, default="", allow_blank=True)
    filter = serializers.ChoiceField(choices=FILTER_TYPES, default=FILTER_ALL)
    sort = serializers.ChoiceField(choices=list(SORT_KEYS), default=DEFAULT_SORT_KEY)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class TrackingEventSerializer(serializers.Serializer):
    status = serializers.CharField(read_only=True)
    location = serializers.CharField(read_only=True)
    timestamp = serializers.CharField(read_only=True)
    details = serializers.CharField(read_only=True)


class ShipmentRecordSerializer(serializers.Serializer):
    """Read serializer for ``ShipmentRecord`` snapshots."""

    tracking_number = serializers.CharField(read_only=True)
    current_status = serializers.CharField(read_only=True)
    estimated_delivery = serializers.CharField(read_only=True)
    origin = serializers.CharField(read_only=True)
    destination = serializers.CharField(read_only=True)
    weight = serializers.DecimalField(max_digits=8, decimal_places=2, read_only=True)
    dimensions = serializers.CharField(read_only=True)
    piece_count = serializers.IntegerField(read_only=True)
    shipment_type = serializers.CharField(read_only=True)
    version = serializers.IntegerField(read_only=True)
    history = TrackingEventSerializer(many=True, read_only=True)


class ChangeLogEntrySerializer(serializers.ModelSerializer):
    """Read serializer for change feed entries."""

    class Meta:
        model = ChangeLogEntry
        fields = [
            "id",
            "sequence",
            "kind",
            "aggregate_id",
            "version",
            "payload",
            "created_at",
        ]
        read_only_fields = fields
