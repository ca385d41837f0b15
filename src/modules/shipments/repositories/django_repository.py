"""Django ORM implementation of the Shipment repository.

Satisfies ``IShipmentRepository`` using Django's QuerySet API.
Every write runs in ``transaction.atomic()`` and, in the same transaction,
appends a ``ChangeLogEntry`` (transactional outbox).  The matching change
event is handed to the in-process notifier with ``transaction.on_commit``,
so subscribers see changes in commit order and never see a rolled-back
write.

Concurrency control on writes uses ``select_for_update()``; ``version``
is bumped on every write.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction

from modules.core.models import ChangeLogEntry
from modules.shipments.constants import EDITABLE_FIELDS, ChangeKind, ShipmentType
from modules.shipments.dtos import ShipmentRecord, TrackingEventDTO
from modules.shipments.events import (
    SHIPMENTS_TOPIC,
    ShipmentChange,
    ShipmentUpserted,
    removed,
    to_payload,
    upserted,
)
from modules.shipments.exceptions import (
    DuplicateTrackingNumber,
    ShipmentNotFound,
    ShipmentValidationError,
    StoreError,
)
from modules.shipments.models import Shipment, TrackingEvent
from modules.shipments.repositories.interfaces import IShipmentRepository
from shared.domain.bus import IChangeNotifier
from shared.infrastructure.bus import change_notifier

logger = structlog.get_logger(__name__)


class ShipmentDjangoRepository(IShipmentRepository):
    """Concrete Shipment repository backed by Django ORM."""

    def __init__(self, notifier: Optional[IChangeNotifier] = None) -> None:
        self._notifier = notifier or change_notifier

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self) -> List[ShipmentRecord]:
        """List every shipment with its history prefetched (no N+1)."""
        try:
            queryset = Shipment.objects.prefetch_related("history")
            return [ShipmentRecord.from_entity(s) for s in queryset]
        except DatabaseError as exc:
            logger.error("shipment.list_failed", error=str(exc))
            raise StoreError("Could not load shipments.") from exc

    def get_by_key(self, key: str) -> Optional[ShipmentRecord]:
        """Retrieve a shipment by tracking number; ``None`` when absent."""
        try:
            return self._load(key)
        except DatabaseError as exc:
            logger.error("shipment.lookup_failed", tracking_number=key, error=str(exc))
            raise StoreError(f"Could not load shipment {key}.") from exc

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert(self, record: ShipmentRecord) -> ShipmentRecord:
        """Create the shipment and its seeded history atomically."""
        key = record.tracking_number
        log = logger.bind(tracking_number=key)
        try:
            with transaction.atomic():
                if Shipment.objects.filter(tracking_number=key).exists():
                    raise DuplicateTrackingNumber(f"Tracking number {key} already exists.")

                shipment = Shipment.objects.create(
                    tracking_number=key,
                    current_status=record.current_status,
                    estimated_delivery=record.estimated_delivery,
                    origin=record.origin,
                    destination=record.destination,
                    weight=record.weight,
                    dimensions=record.dimensions,
                    piece_count=record.piece_count,
                    shipment_type=record.shipment_type or ShipmentType.PARCEL,
                    version=1,
                )
                # Oldest first so creation order matches the history order.
                for event in reversed(record.history):
                    self._add_event(shipment, event)

                stored = self._require(key)
                self._record_change(upserted(stored, kind=ChangeKind.INSERT.value))
        except IntegrityError as exc:
            log.warning("shipment.insert_conflict")
            raise DuplicateTrackingNumber(f"Tracking number {key} already exists.") from exc
        except DatabaseError as exc:
            log.error("shipment.insert_failed", error=str(exc))
            raise StoreError(f"Could not create shipment {key}.") from exc

        log.info("shipment.inserted", event_count=len(stored.history))
        return stored

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_status(self, key: str, event: TrackingEventDTO) -> ShipmentRecord:
        """Append a history event and mirror its status on the shipment."""
        log = logger.bind(tracking_number=key, new_status=event.status)
        try:
            with transaction.atomic():
                shipment = self._lock(key)
                self._add_event(shipment, event)
                shipment.current_status = event.status
                shipment.version += 1
                shipment.save(update_fields=["current_status", "version"])

                stored = self._require(key)
                self._record_change(upserted(stored))
        except DatabaseError as exc:
            log.error("shipment.status_update_failed", error=str(exc))
            raise StoreError(f"Could not update shipment {key}.") from exc

        log.info("shipment.status_updated", version=stored.version)
        return stored

    def update_metadata(self, key: str, fields: Dict[str, Any]) -> ShipmentRecord:
        """Replace editable descriptive fields; status and history untouched."""
        changes = {name: value for name, value in fields.items() if name in EDITABLE_FIELDS}
        log = logger.bind(tracking_number=key, fields=sorted(changes))
        try:
            with transaction.atomic():
                shipment = self._lock(key)
                for name, value in changes.items():
                    setattr(shipment, name, value)
                try:
                    shipment.clean()
                except ValidationError as exc:
                    raise ShipmentValidationError(
                        "; ".join(exc.messages)
                    ) from exc
                shipment.version += 1
                shipment.save(update_fields=[*changes, "version"])

                stored = self._require(key)
                self._record_change(upserted(stored))
        except DatabaseError as exc:
            log.error("shipment.metadata_update_failed", error=str(exc))
            raise StoreError(f"Could not update shipment {key}.") from exc

        log.info("shipment.metadata_updated", version=stored.version)
        return stored

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, key: str) -> bool:
        """Hard-delete a shipment; its history goes with it (CASCADE)."""
        try:
            with transaction.atomic():
                deleted, _ = Shipment.objects.filter(tracking_number=key).delete()
                if deleted:
                    self._record_change(removed(key))
        except DatabaseError as exc:
            logger.error("shipment.delete_failed", tracking_number=key, error=str(exc))
            raise StoreError(f"Could not delete shipment {key}.") from exc

        logger.info("shipment.deleted", tracking_number=key, existed=bool(deleted))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load(key: str) -> Optional[ShipmentRecord]:
        shipment = Shipment.objects.prefetch_related("history").filter(tracking_number=key).first()
        return ShipmentRecord.from_entity(shipment) if shipment else None

    def _require(self, key: str) -> ShipmentRecord:
        record = self._load(key)
        if record is None:
            raise ShipmentNotFound(f"Shipment {key} not found.")
        return record

    @staticmethod
    def _lock(key: str) -> Shipment:
        shipment = Shipment.objects.select_for_update().filter(tracking_number=key).first()
        if not shipment:
            raise ShipmentNotFound(f"Shipment {key} not found.")
        return shipment

    @staticmethod
    def _add_event(shipment: Shipment, event: TrackingEventDTO) -> TrackingEvent:
        return TrackingEvent.objects.create(
            shipment=shipment,
            status=event.status,
            location=event.location,
            timestamp=event.timestamp,
            details=event.details,
        )

    def _record_change(self, event: ShipmentChange) -> None:
        """Append to the change log and publish once the transaction commits."""
        ChangeLogEntry.objects.create(
            topic=SHIPMENTS_TOPIC,
            kind=event.kind,
            aggregate_id=event.aggregate_id,
            version=event.record.version if isinstance(event, ShipmentUpserted) else 0,
            payload=to_payload(event),
        )
        transaction.on_commit(partial(self._notifier.publish, event))
