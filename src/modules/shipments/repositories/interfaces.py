"""Shipment repository interface.

Extends ``IRepository[ShipmentRecord]`` with the write operations the
admin console needs: insert, status append and metadata edit.

The sessions depend exclusively on this contract (DIP).  Implementations
report backend failures as ``StoreError`` and must leave the stored
record untouched when a write fails.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.shipments.dtos import ShipmentRecord, TrackingEventDTO


class IShipmentRepository(IRepository["ShipmentRecord"]):
    """Repository contract for the Shipment aggregate root."""

    @abstractmethod
    def list(self) -> List[ShipmentRecord]:
        """Return every shipment with its history."""

    @abstractmethod
    def get_by_key(self, key: str) -> Optional[ShipmentRecord]:
        """Point lookup by tracking number."""

    @abstractmethod
    def insert(self, record: ShipmentRecord) -> ShipmentRecord:
        """Persist a new shipment with its seeded history.

        Raises:
            DuplicateTrackingNumber: the tracking number already exists.
            StoreError: backend failure.
        """

    @abstractmethod
    def update_status(self, key: str, event: TrackingEventDTO) -> ShipmentRecord:
        """Prepend ``event`` to the history and replace ``current_status``.

        Raises:
            ShipmentNotFound: no shipment with that key.
            StoreError: backend failure.
        """

    @abstractmethod
    def update_metadata(self, key: str, fields: Dict[str, Any]) -> ShipmentRecord:
        """Replace descriptive fields only; history and status are untouched.

        Raises:
            ShipmentNotFound: no shipment with that key.
            StoreError: backend failure.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a shipment and its history."""
