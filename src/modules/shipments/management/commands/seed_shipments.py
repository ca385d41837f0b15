from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from django.core.management.base import BaseCommand

from modules.shipments.dtos import ShipmentRecord, TrackingEventDTO
from modules.shipments.exceptions import DuplicateTrackingNumber
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository


def _event(status: str, location: str, timestamp: str, details: str) -> Dict[str, str]:
    return {"status": status, "location": location, "timestamp": timestamp, "details": details}


# Newest event first, as displayed.
DEMO_SHIPMENTS: List[Dict[str, Any]] = [
    {
        "tracking_number": "OM123456789",
        "estimated_delivery": "25 Jul, 2024",
        "origin": "Yangon, Myanmar",
        "destination": "Singapore, Singapore",
        "weight": Decimal("4.50"),
        "dimensions": "40x30x20 cm",
        "piece_count": 1,
        "shipment_type": "Parcel",
        "history": [
            _event("Delivered", "Singapore, SG", "25/07/2024, 14:30:00 GMT", "Successfully delivered and signed."),
            _event("Out for Delivery", "Singapore, SG", "25/07/2024, 08:15:00 GMT", "Onboard for delivery."),
            _event("Arrived at Destination Facility", "Singapore, SG", "24/07/2024, 22:45:00 GMT", "Processed at sorting facility."),
            _event("Departed from Hub", "Bangkok, TH", "23/07/2024, 11:00:00 GMT", "In transit to destination country."),
            _event("Arrived at Hub", "Bangkok, TH", "22/07/2024, 19:30:00 GMT", "Package arrived at transit hub."),
            _event("Shipment Picked Up", "Yangon, MM", "21/07/2024, 16:00:00 GMT", "Package received from shipper."),
            _event("Order Created", "Yangon, MM", "21/07/2024, 10:00:00 GMT", "Shipment information received"),
        ],
    },
    {
        "tracking_number": "OM482913570",
        "estimated_delivery": "3 Aug, 2024",
        "origin": "Kuala Lumpur, Malaysia",
        "destination": "Mandalay, Myanmar",
        "weight": Decimal("120.00"),
        "dimensions": "120x100x80 cm",
        "piece_count": 4,
        "shipment_type": "Pallet",
        "history": [
            _event("In Transit", "Penang, MY", "29/07/2024, 09:20:00 GMT", "Line haul to border crossing."),
            _event("Shipment Picked Up", "Kuala Lumpur, MY", "28/07/2024, 15:05:00 GMT", "Collected from shipper warehouse."),
            _event("Order Created", "Kuala Lumpur, Malaysia", "28/07/2024, 08:40:00 GMT", "Shipment information received"),
        ],
    },
    {
        "tracking_number": "OM905117342",
        "estimated_delivery": "10 Aug, 2024",
        "origin": "Johor Bahru, Malaysia",
        "destination": "Yangon, Myanmar",
        "weight": Decimal("0.40"),
        "dimensions": None,
        "piece_count": 1,
        "shipment_type": "Document",
        "history": [
            _event("On Hold", "Johor Bahru, MY", "02/08/2024, 11:10:00 GMT", "Awaiting customs documents."),
            _event("Order Created", "Johor Bahru, Malaysia", "01/08/2024, 17:30:00 GMT", "Shipment information received"),
        ],
    },
]


class Command(BaseCommand):
    help = "Seed the database with demo shipments."

    def handle(self, *args, **options):
        self.stdout.write("Seeding demo shipments...")
        repository = ShipmentDjangoRepository()
        created = 0
        for data in DEMO_SHIPMENTS:
            history = [TrackingEventDTO(**event) for event in data["history"]]
            record = ShipmentRecord(
                **{**data, "history": history},
                current_status=history[0].status,
            )
            try:
                repository.insert(record)
            except DuplicateTrackingNumber:
                self.stdout.write(f"  {record.tracking_number} already present, skipped")
                continue
            created += 1

        self.stdout.write(self.style.SUCCESS(f"Seed completed: shipments={created}"))
