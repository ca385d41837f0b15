"""Tracking and admin sessions.

``TrackingSession`` is the public lookup flow: validate the code, ask
the store once, then follow the focused shipment through live change
events.  ``AdminSession`` is the admin console: it keeps the local table
convergent through a ``ShipmentReconciler`` fed by the change notifier
and issues writes against the store.

Both receive their collaborators via constructor injection (DIP).
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from itertools import count
from typing import TYPE_CHECKING, Callable, List, Optional

import structlog

from modules.shipments import codec
from modules.shipments.access import AdminCapability, AdminGate
from modules.shipments.constants import (
    DEFAULT_SORT_KEY,
    FILTER_ALL,
    TRACKING_NUMBER_MAX_RETRIES,
)
from modules.shipments.exceptions import (
    DuplicateTrackingNumber,
    InvalidTrackingNumber,
    ShipmentNotFound,
    ShipmentValidationError,
    StoreError,
)
from modules.shipments.reconciliation import ChangeOutcome, Classification, ShipmentReconciler
from modules.shipments.search import search_records
from shared.domain.bus import IChangeNotifier, ISubscription

if TYPE_CHECKING:
    from modules.shipments.dtos import (
        AppendStatusDTO,
        CreateShipmentDTO,
        EditMetadataDTO,
        ShipmentRecord,
    )
    from modules.shipments.events import ShipmentChange
    from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "Tracking number not found. Please check details and try again."
LOOKUP_ERROR_MESSAGE = "Something went wrong while looking up your shipment. Please try again."


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


class TrackingOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    INVALID_FORMAT = "invalid_format"
    ERROR = "error"


@dataclass(frozen=True)
class TrackingResult:
    outcome: TrackingOutcome
    tracking_number: str
    record: Optional[ShipmentRecord] = None
    message: str = ""
    issue: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.outcome is TrackingOutcome.FOUND


@dataclass(frozen=True)
class LookupTicket:
    """One lookup request; only the newest ticket may set the result."""

    number: int
    tracking_number: str
    resolved: Optional[TrackingResult] = None


class TrackingSession:
    """Public tracking flow for a single focused shipment.

    Every lookup is tagged with an increasing ticket; a response whose
    ticket has been superseded by a newer lookup is discarded.  When a
    reconciler (or a notifier, which gets a private reconciler holding
    only the focused key) is supplied, the displayed result follows live
    changes to the focused key.
    """

    def __init__(
        self,
        store: IShipmentRepository,
        *,
        reconciler: Optional[ShipmentReconciler] = None,
        notifier: Optional[IChangeNotifier] = None,
    ) -> None:
        self._store = store
        self._tickets = count(1)
        self._latest = 0
        self._result: Optional[TrackingResult] = None
        self._focus: Optional[str] = None
        self._subscription: Optional[ISubscription] = None

        # A private reconciler only ever holds the focused shipment.
        self._private = reconciler is None and notifier is not None
        if self._private:
            reconciler = ShipmentReconciler()
        self._reconciler = reconciler
        self._remove_listener: Optional[Callable[[], None]] = None
        if reconciler is not None:
            self._remove_listener = reconciler.add_listener(self._on_change)
        if notifier is not None and reconciler is not None:
            handler = self._apply_focused if self._private else reconciler.apply_change_event
            self._subscription = notifier.subscribe(handler)

    @property
    def result(self) -> Optional[TrackingResult]:
        return self._result

    @property
    def reconciler(self) -> Optional[ShipmentReconciler]:
        return self._reconciler

    def track(self, raw: str) -> Optional[TrackingResult]:
        """Validate and look up ``raw`` in one step.

        Returns ``None`` only if another thread started a newer lookup
        on this session meanwhile.
        """
        return self.lookup(self.begin(raw))

    def begin(self, raw: str) -> LookupTicket:
        """Validate ``raw`` and open a new lookup ticket.

        Invalid input resolves the ticket immediately and never reaches
        the store.
        """
        number = next(self._tickets)
        self._latest = number
        normalized = codec.normalize(raw)
        if self._private and normalized != self._focus:
            self._reconciler.apply_bulk_load([])
        self._focus = normalized
        try:
            codec.validate(normalized)
        except InvalidTrackingNumber as exc:
            result = TrackingResult(
                outcome=TrackingOutcome.INVALID_FORMAT,
                tracking_number=normalized,
                message=exc.message,
                issue=exc.issue,
            )
            self._result = result
            return LookupTicket(number, normalized, resolved=result)
        return LookupTicket(number, normalized)

    def lookup(self, ticket: LookupTicket) -> Optional[TrackingResult]:
        """Run the single store read for ``ticket``."""
        if ticket.resolved is not None:
            return ticket.resolved if ticket.number == self._latest else None
        log = logger.bind(tracking_number=ticket.tracking_number, ticket=ticket.number)
        try:
            record = self._store.get_by_key(ticket.tracking_number)
        except StoreError as exc:
            log.warning("tracking.lookup_failed", error=str(exc))
            return self.complete(ticket, error=exc)
        except Exception as exc:
            log.exception("tracking.lookup_crashed")
            return self.complete(ticket, error=exc)
        return self.complete(ticket, record=record)

    def complete(
        self,
        ticket: LookupTicket,
        record: Optional[ShipmentRecord] = None,
        error: Optional[BaseException] = None,
    ) -> Optional[TrackingResult]:
        """Settle ``ticket``; returns ``None`` if a newer lookup superseded it."""
        if ticket.number != self._latest:
            logger.debug(
                "tracking.stale_response_discarded",
                tracking_number=ticket.tracking_number,
                ticket=ticket.number,
                latest=self._latest,
            )
            return None
        if error is not None:
            result = TrackingResult(
                TrackingOutcome.ERROR, ticket.tracking_number, message=LOOKUP_ERROR_MESSAGE
            )
        elif record is None:
            result = TrackingResult(
                TrackingOutcome.NOT_FOUND, ticket.tracking_number, message=NOT_FOUND_MESSAGE
            )
        else:
            if self._private:
                held = self._reconciler.get(record.tracking_number)
                if held is not None and held.version > record.version:
                    record = held
                else:
                    self._reconciler.apply_bulk_load([record])
            result = TrackingResult(TrackingOutcome.FOUND, ticket.tracking_number, record=record)
        self._result = result
        return result

    def _apply_focused(self, event: ShipmentChange) -> None:
        if event.tracking_number != self._focus:
            return
        self._reconciler.apply_change_event(event)

    def _on_change(self, outcome: ChangeOutcome) -> None:
        result = self._result
        if result is None or result.tracking_number != outcome.tracking_number:
            return
        if outcome.removed:
            if result.found:
                self._result = TrackingResult(
                    TrackingOutcome.NOT_FOUND, result.tracking_number, message=NOT_FOUND_MESSAGE
                )
            return
        if outcome.classification is Classification.STALE or outcome.record is None:
            return
        if result.record is not None and outcome.record.version < result.record.version:
            return
        self._result = replace(
            result, outcome=TrackingOutcome.FOUND, record=outcome.record, message=""
        )

    def close(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

    def __enter__(self) -> TrackingSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AdminSession:
    """Admin console over the shipment store.

    Writes go to the store; the local table only changes through the
    reconciler (bulk load, confirmed create, change events).
    """

    def __init__(
        self,
        capability: AdminCapability,
        store: IShipmentRepository,
        notifier: IChangeNotifier,
        *,
        reconciler: Optional[ShipmentReconciler] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._capability = AdminGate.check(capability)
        self._store = store
        self._notifier = notifier
        self._reconciler = reconciler or ShipmentReconciler()
        self._rng = rng
        self._subscription: Optional[ISubscription] = None

    @property
    def reconciler(self) -> ShipmentReconciler:
        return self._reconciler

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self) -> None:
        """Subscribe to changes, then load the full table.

        Subscribing first means no change committed after the snapshot
        is missed; version checks discard anything older.
        """
        if self.active:
            return
        subscription = self._notifier.subscribe(self._reconciler.apply_change_event)
        try:
            records = self._store.list()
        except StoreError:
            subscription.dispose()
            raise
        self._subscription = subscription
        self._reconciler.apply_bulk_load(records)
        self._reconciler.sync.connected()
        logger.info("admin_session.activated", shipments=len(records))

    def deactivate(self) -> None:
        if self._subscription is None:
            return
        self._subscription.dispose()
        self._subscription = None
        self._reconciler.sync.disconnected()
        logger.info("admin_session.deactivated")

    def __enter__(self) -> AdminSession:
        self.activate()
        return self

    def __exit__(self, *exc_info) -> None:
        self.deactivate()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def shipments(self) -> List[ShipmentRecord]:
        return search_records(self._reconciler.snapshot())

    def search(
        self,
        query: str = "",
        filter_type: str = FILTER_ALL,
        sort_key: str = DEFAULT_SORT_KEY,
    ) -> List[ShipmentRecord]:
        return search_records(self._reconciler.snapshot(), query, filter_type, sort_key)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, dto: CreateShipmentDTO) -> str:
        """Create a shipment and return its tracking number."""
        return self.create_record(dto).tracking_number

    def create_record(self, dto: CreateShipmentDTO) -> ShipmentRecord:
        """Create a shipment and return the record the store confirmed.

        Raises:
            InvalidTrackingNumber: custom identifier fails the grammar.
            DuplicateTrackingNumber: custom identifier taken, or generated
                identifiers kept colliding in the store.
            StoreError: backend failure.
        """
        if dto.tracking_number:
            key = codec.parse(dto.tracking_number)
            if self._reconciler.get(key) is not None or self._store.get_by_key(key) is not None:
                raise DuplicateTrackingNumber(f"Tracking number {key} already exists.")
            stored = self._insert(dto.to_record(key))
        else:
            stored = self._insert_generated(dto)

        self._reconciler.apply_confirmed_create(stored)
        logger.info(
            "shipment.created",
            tracking_number=stored.tracking_number,
            custom_id=bool(dto.tracking_number),
        )
        return stored

    def _insert_generated(self, dto: CreateShipmentDTO) -> ShipmentRecord:
        for attempt in range(1, TRACKING_NUMBER_MAX_RETRIES + 1):
            taken = {record.tracking_number for record in self._reconciler.snapshot()}
            key = codec.generate(taken, self._rng)
            try:
                return self._insert(dto.to_record(key))
            except DuplicateTrackingNumber:
                logger.warning("shipment.generated_id_collision", tracking_number=key, attempt=attempt)
        raise DuplicateTrackingNumber(
            f"Could not allocate a free tracking number after {TRACKING_NUMBER_MAX_RETRIES} attempts."
        )

    def _insert(self, record: ShipmentRecord) -> ShipmentRecord:
        key = record.tracking_number
        # The store may publish the change before insert returns.
        self._reconciler.expect_create(key)
        try:
            return self._store.insert(record)
        except (DuplicateTrackingNumber, StoreError):
            self._reconciler.forget_expected(key)
            raise

    def append_status(self, tracking_number: str, dto: AppendStatusDTO) -> ShipmentRecord:
        """Append a status event timestamped now (UTC).

        The local table is updated by the resulting change event.
        """
        key = self._require_known(tracking_number).tracking_number
        stored = self._store.update_status(key, dto.to_event())
        logger.info("shipment.status_appended", tracking_number=key, status=dto.status.value)
        return stored

    def edit_metadata(self, tracking_number: str, dto: EditMetadataDTO) -> ShipmentRecord:
        """Replace descriptive fields; history and status are untouched."""
        current = self._require_known(tracking_number)
        key = current.tracking_number
        changes = dto.changes()
        if not changes:
            return current

        origin = changes.get("origin", current.origin)
        destination = changes.get("destination", current.destination)
        if origin.strip().casefold() == destination.strip().casefold():
            raise ShipmentValidationError("Origin and destination must be different.")

        stored = self._store.update_metadata(key, changes)
        logger.info("shipment.metadata_edited", tracking_number=key, fields=sorted(changes))
        return stored

    def delete(self, tracking_number: str) -> bool:
        key = codec.normalize(tracking_number)
        deleted = self._store.delete(key)
        logger.info("shipment.delete_requested", tracking_number=key, deleted=deleted)
        return deleted

    def _require_known(self, tracking_number: str) -> ShipmentRecord:
        key = codec.normalize(tracking_number)
        record = self._reconciler.get(key)
        if record is None:
            raise ShipmentNotFound(f"Shipment {key} not found.")
        return record
