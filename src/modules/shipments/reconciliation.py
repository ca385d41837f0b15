"""Local view of the shipment table, kept convergent with the store.

The reconciler owns two maps keyed by tracking number:

* ``current`` - what the sessions render;
* ``previous`` - the last record seen per key from the store, used to
  classify incoming change events.

Change events are classified (New / StatusChanged / Unchanged / Deleted /
Stale), applied, and turned into highlight markers and toast
notifications.  Listeners are called after the state is updated, so they
always read the latest ``current``.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional

import structlog

from modules.shipments.constants import (
    HIGHLIGHT_WINDOW_SECONDS,
    NOTIFICATION_LOG_SIZE,
    SELF_CREATED_TTL_SECONDS,
    TOAST_WINDOW_SECONDS,
)
from modules.shipments.dtos import ShipmentRecord
from modules.shipments.events import ShipmentChange, ShipmentRemoved, ShipmentUpserted
from modules.shipments.markers import Clock, MarkerBoard, SyncIndicator, Toast

logger = structlog.get_logger(__name__)


class Classification(str, Enum):
    NEW = "new"
    STATUS_CHANGED = "status_changed"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    STALE = "stale"


@dataclass(frozen=True)
class ChangeOutcome:
    tracking_number: str
    classification: Classification
    record: Optional[ShipmentRecord] = None
    notification: Optional[Toast] = None

    @property
    def removed(self) -> bool:
        return self.classification is Classification.DELETED


Listener = Callable[[ChangeOutcome], None]


def new_shipment_message(record: ShipmentRecord) -> str:
    return (
        f"New shipment {record.tracking_number} created "
        f"({record.origin} → {record.destination})"
    )


def status_changed_message(record: ShipmentRecord) -> str:
    return f"Shipment {record.tracking_number} is now {record.current_status}"


class ShipmentReconciler:
    """Applies bulk loads, confirmed creates and change events."""

    def __init__(
        self,
        *,
        highlight_window: float = HIGHLIGHT_WINDOW_SECONDS,
        toast_window: float = TOAST_WINDOW_SECONDS,
        self_created_ttl: float = SELF_CREATED_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.current: Dict[str, ShipmentRecord] = {}
        self.previous: Dict[str, ShipmentRecord] = {}
        self.highlights: MarkerBoard[str] = MarkerBoard(highlight_window, clock)
        self.toasts: MarkerBoard[Toast] = MarkerBoard(toast_window, clock)
        self._self_created: MarkerBoard[None] = MarkerBoard(self_created_ttl, clock)
        self.notifications: Deque[Toast] = deque(maxlen=NOTIFICATION_LOG_SIZE)
        self.sync = SyncIndicator()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable removes it."""
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify(self, outcome: ChangeOutcome) -> None:
        for listener in list(self._listeners):
            try:
                listener(outcome)
            except Exception:
                logger.exception(
                    "reconciler.listener_failed",
                    tracking_number=outcome.tracking_number,
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> List[ShipmentRecord]:
        """Copy of ``current`` taken under the lock; safe to iterate.

        Change events may be applied from another thread at any time.
        """
        with self._lock:
            return list(self.current.values())

    def get(self, tracking_number: str) -> Optional[ShipmentRecord]:
        with self._lock:
            return self.current.get(tracking_number)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def apply_bulk_load(self, records: Iterable[ShipmentRecord]) -> None:
        """Replace both maps with a fresh snapshot; no notifications."""
        with self._lock:
            snapshot = {record.tracking_number: record for record in records}
            self.current = dict(snapshot)
            self.previous = dict(snapshot)
            self.highlights.clear()
            self.toasts.clear()
            self._self_created.clear()
            self.sync.synced()
        logger.info("reconciler.bulk_loaded", count=len(snapshot))

    def expect_create(self, tracking_number: str) -> None:
        """Remember a key this process is about to create.

        Its first change event is then applied without a "new shipment"
        notification.
        """
        with self._lock:
            self._self_created.mark(tracking_number, None)

    def forget_expected(self, tracking_number: str) -> None:
        with self._lock:
            self._self_created.cancel(tracking_number)

    def apply_confirmed_create(self, record: ShipmentRecord) -> None:
        """Show a store-confirmed create before its change event arrives.

        Only ``current`` is touched; ``previous`` is left to the change
        event so it can still be classified.
        """
        with self._lock:
            key = record.tracking_number
            held = self.current.get(key)
            if held is None or held.version <= record.version:
                self.current[key] = record
            if key not in self.previous:
                self._self_created.mark(key, None)
        logger.debug("reconciler.confirmed_create", tracking_number=record.tracking_number)

    def apply_change_event(self, event: ShipmentChange) -> ChangeOutcome:
        with self._lock:
            if isinstance(event, ShipmentRemoved):
                outcome = self._apply_removal(event.tracking_number)
            else:
                outcome = self._apply_upsert(event)
            if outcome.classification is not Classification.STALE:
                self.sync.synced(applied=1)

        logger.debug(
            "reconciler.change_applied",
            tracking_number=outcome.tracking_number,
            classification=outcome.classification.value,
        )
        self._notify(outcome)
        return outcome

    def is_self_created(self, tracking_number: str) -> bool:
        return tracking_number in self._self_created

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply_upsert(self, event: ShipmentUpserted) -> ChangeOutcome:
        record = event.record
        key = record.tracking_number

        held = self.current.get(key)
        if held is not None and record.version < held.version:
            return ChangeOutcome(key, Classification.STALE, held)

        before = self.previous.get(key)
        if before is None:
            classification = Classification.NEW
        elif before.current_status != record.current_status:
            classification = Classification.STATUS_CHANGED
        else:
            classification = Classification.UNCHANGED

        self.current[key] = record
        self.previous[key] = record

        toast = None
        if classification is Classification.NEW and self.is_self_created(key):
            self._self_created.cancel(key)
        elif classification is Classification.NEW:
            toast = Toast(key, new_shipment_message(record), classification.value)
        elif classification is Classification.STATUS_CHANGED:
            toast = Toast(key, status_changed_message(record), classification.value)

        if toast is not None:
            self.highlights.mark(key, classification.value)
            self.toasts.mark(key, toast)
            self.notifications.appendleft(toast)

        return ChangeOutcome(key, classification, record, toast)

    def _apply_removal(self, key: str) -> ChangeOutcome:
        self.current.pop(key, None)
        self.previous.pop(key, None)
        self.highlights.cancel(key)
        self.toasts.cancel(key)
        self._self_created.cancel(key)
        return ChangeOutcome(key, Classification.DELETED)
