"""Change events for the Shipments bounded context.

These are what the change notifier delivers and what the change log
stores: either a full record snapshot (insert/update) or a removal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from modules.shipments.constants import ChangeKind
from modules.shipments.dtos import ShipmentRecord
from shared.domain.events import DomainEvent

SHIPMENTS_TOPIC = "shipments"


@dataclass(frozen=True, kw_only=True)
class ShipmentUpserted(DomainEvent):
    """Raised when a shipment is inserted or updated."""

    record: ShipmentRecord
    kind: str = ChangeKind.UPDATE.value

    @property
    def tracking_number(self) -> str:
        return self.record.tracking_number


@dataclass(frozen=True, kw_only=True)
class ShipmentRemoved(DomainEvent):
    """Raised when a shipment is deleted."""

    kind: str = ChangeKind.DELETE.value

    @property
    def tracking_number(self) -> str:
        return self.aggregate_id


ShipmentChange = Union[ShipmentUpserted, ShipmentRemoved]


def upserted(record: ShipmentRecord, kind: str = ChangeKind.UPDATE.value) -> ShipmentUpserted:
    return ShipmentUpserted(aggregate_id=record.tracking_number, record=record, kind=kind)


def removed(tracking_number: str) -> ShipmentRemoved:
    return ShipmentRemoved(aggregate_id=tracking_number)


def to_payload(event: ShipmentChange) -> Optional[Dict[str, Any]]:
    """JSON-safe payload stored in the change log."""
    if isinstance(event, ShipmentUpserted):
        return event.record.model_dump(mode="json")
    return None


def from_payload(kind: str, aggregate_id: str, payload: Optional[Dict[str, Any]]) -> ShipmentChange:
    """Rebuild a change event from a change-log row."""
    if kind == ChangeKind.DELETE or payload is None:
        return removed(aggregate_id)
    return upserted(ShipmentRecord.model_validate(payload), kind=kind)
