"""Shipment domain constants.

Defines the status vocabulary offered by the status-update form, the
package types, and the tracking-number grammar (``OM`` + 9 digits).
"""

from django.db import models


class ShipmentStatus(models.TextChoices):
    ORDER_CREATED = "Order Created", "Order Created"
    PICKED_UP = "Shipment Picked Up", "Shipment Picked Up"
    ARRIVED_AT_HUB = "Arrived at Hub", "Arrived at Hub"
    DEPARTED_FROM_HUB = "Departed from Hub", "Departed from Hub"
    IN_TRANSIT = "In Transit", "In Transit"
    ARRIVED_AT_DESTINATION = (
        "Arrived at Destination Facility",
        "Arrived at Destination Facility",
    )
    OUT_FOR_DELIVERY = "Out for Delivery", "Out for Delivery"
    DELIVERED = "Delivered", "Delivered"
    ON_HOLD = "On Hold", "On Hold"


class ShipmentType(models.TextChoices):
    PARCEL = "Parcel", "Parcel"
    DOCUMENT = "Document", "Document"
    PALLET = "Pallet", "Pallet"
    CONTAINER = "Container", "Container"


class ChangeKind(models.TextChoices):
    INSERT = "insert", "Insert"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"


TRACKING_PREFIX = "OM"
TRACKING_DIGITS = 9
TRACKING_NUMBER_LENGTH = len(TRACKING_PREFIX) + TRACKING_DIGITS
TRACKING_NUMBER_MIN = 10 ** (TRACKING_DIGITS - 1)
TRACKING_NUMBER_MAX = 10**TRACKING_DIGITS - 1

# Store-side collisions on generated ids (another admin won the race).
TRACKING_NUMBER_MAX_RETRIES = 5

INITIAL_EVENT_DETAILS = "Shipment information received"

# Metadata fields an admin may edit after creation.
EDITABLE_FIELDS: tuple[str, ...] = (
    "origin",
    "destination",
    "estimated_delivery",
    "weight",
    "dimensions",
    "piece_count",
    "shipment_type",
)

# Search / listing
FILTER_ALL = "all"
FILTER_ACTIVE = "active"
FILTER_DELIVERED = "delivered"
FILTER_ON_HOLD = "on_hold"
FILTER_TYPES: tuple[str, ...] = (
    FILTER_ALL,
    FILTER_ACTIVE,
    FILTER_DELIVERED,
    FILTER_ON_HOLD,
)

SORT_KEYS: dict[str, str] = {
    "tracking_number": "tracking_number",
    "status": "current_status",
    "origin": "origin",
    "destination": "destination",
}
DEFAULT_SORT_KEY = "tracking_number"

FUZZY_MAX_DISTANCE = 2
FUZZY_MIN_QUERY_LENGTH = 3

# Reconciler marker windows (seconds); overridable via settings.
HIGHLIGHT_WINDOW_SECONDS = 3.0
TOAST_WINDOW_SECONDS = 5.0
SELF_CREATED_TTL_SECONDS = 10.0
NOTIFICATION_LOG_SIZE = 50
