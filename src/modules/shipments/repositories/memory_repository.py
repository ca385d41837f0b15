"""In-memory implementation of the Shipment repository.

Keeps records in a dict and publishes change events synchronously after
each successful write.  Used for local development without a database
and as the store double in session tests.  ``fail_next`` makes the next
call raise ``StoreError`` to exercise failure paths.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from modules.shipments.constants import EDITABLE_FIELDS, ChangeKind
from modules.shipments.dtos import ShipmentRecord, TrackingEventDTO
from modules.shipments.events import removed, upserted
from modules.shipments.exceptions import (
    DuplicateTrackingNumber,
    ShipmentNotFound,
    ShipmentValidationError,
    StoreError,
)
from modules.shipments.repositories.interfaces import IShipmentRepository
from shared.domain.bus import IChangeNotifier

logger = structlog.get_logger(__name__)


class ShipmentMemoryRepository(IShipmentRepository):
    """Dict-backed Shipment repository."""

    def __init__(self, notifier: Optional[IChangeNotifier] = None) -> None:
        self._records: Dict[str, ShipmentRecord] = {}
        self._notifier = notifier
        self._failures: List[str] = []
        self.calls: List[str] = []

    def fail_next(self, message: str = "Store unavailable.") -> None:
        self._failures.append(message)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self._failures:
            raise StoreError(self._failures.pop(0))

    def _publish(self, event) -> None:
        if self._notifier is not None:
            self._notifier.publish(event)

    # ------------------------------------------------------------------
    # IShipmentRepository
    # ------------------------------------------------------------------

    def list(self) -> List[ShipmentRecord]:
        self._enter("list")
        return list(self._records.values())

    def get_by_key(self, key: str) -> Optional[ShipmentRecord]:
        self._enter("get_by_key")
        return self._records.get(key)

    def insert(self, record: ShipmentRecord) -> ShipmentRecord:
        self._enter("insert")
        if record.tracking_number in self._records:
            raise DuplicateTrackingNumber(
                f"Tracking number {record.tracking_number} already exists."
            )
        stored = record.model_copy(update={"version": 1})
        self._records[stored.tracking_number] = stored
        logger.info("shipment.inserted", tracking_number=stored.tracking_number, store="memory")
        self._publish(upserted(stored, kind=ChangeKind.INSERT.value))
        return stored

    def update_status(self, key: str, event: TrackingEventDTO) -> ShipmentRecord:
        self._enter("update_status")
        current = self._require(key)
        stored = current.with_event(event)
        self._records[key] = stored
        self._publish(upserted(stored))
        return stored

    def update_metadata(self, key: str, fields: Dict[str, Any]) -> ShipmentRecord:
        self._enter("update_metadata")
        current = self._require(key)
        changes = {name: value for name, value in fields.items() if name in EDITABLE_FIELDS}
        stored = current.with_metadata(changes)
        if stored.origin.strip().casefold() == stored.destination.strip().casefold():
            raise ShipmentValidationError("Origin and destination must be different.")
        self._records[key] = stored
        self._publish(upserted(stored))
        return stored

    def delete(self, key: str) -> bool:
        self._enter("delete")
        if self._records.pop(key, None) is None:
            return False
        logger.info("shipment.deleted", tracking_number=key, store="memory")
        self._publish(removed(key))
        return True

    def _require(self, key: str) -> ShipmentRecord:
        record = self._records.get(key)
        if record is None:
            raise ShipmentNotFound(f"Shipment {key} not found.")
        return record
