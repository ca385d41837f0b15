"""Unit tests for tracking and admin sessions (in-memory store)."""

from __future__ import annotations

import random
import threading

import pytest

from modules.shipments.constants import TRACKING_NUMBER_MAX, TRACKING_NUMBER_MIN
from modules.shipments.dtos import AppendStatusDTO, EditMetadataDTO
from modules.shipments.events import removed, upserted
from modules.shipments.exceptions import (
    AdminAccessDenied,
    DuplicateTrackingNumber,
    InvalidTrackingNumber,
    ShipmentNotFound,
    ShipmentValidationError,
    StoreError,
)
from modules.shipments.reconciliation import Classification, ShipmentReconciler
from modules.shipments.sessions import AdminSession, TrackingOutcome, TrackingSession

pytestmark = pytest.mark.unit


@pytest.fixture()
def seeded_store(memory_store, make_record):
    memory_store.insert(make_record("OM123456789"))
    memory_store.calls.clear()
    return memory_store


@pytest.fixture()
def admin(capability, seeded_store, notifier, reconciler, rng):
    session = AdminSession(capability, seeded_store, notifier, reconciler=reconciler, rng=rng)
    session.activate()
    yield session
    session.deactivate()


# ===========================================================================
# Tracking
# ===========================================================================


class TestTrackingSession:
    def test_found(self, seeded_store):
        result = TrackingSession(seeded_store).track(" om123456789 ")

        assert result.outcome is TrackingOutcome.FOUND
        assert result.record.tracking_number == "OM123456789"
        assert seeded_store.calls == ["get_by_key"]

    def test_invalid_format_never_reaches_store(self, seeded_store):
        result = TrackingSession(seeded_store).track("OM12")

        assert result.outcome is TrackingOutcome.INVALID_FORMAT
        assert result.message == "Invalid length. Expected 9 digits after 'OM', but found 2."
        assert result.issue == "wrong_length"
        assert seeded_store.calls == []

    def test_not_found(self, seeded_store):
        result = TrackingSession(seeded_store).track("OM000000000")

        assert result.outcome is TrackingOutcome.NOT_FOUND
        assert result.message == "Tracking number not found. Please check details and try again."

    def test_store_error_gives_generic_error_without_retry(self, seeded_store):
        seeded_store.fail_next("connection reset")
        result = TrackingSession(seeded_store).track("OM123456789")

        assert result.outcome is TrackingOutcome.ERROR
        assert "connection reset" not in result.message
        assert seeded_store.calls == ["get_by_key"]

    def test_superseded_lookup_is_discarded(self, seeded_store, make_record):
        session = TrackingSession(seeded_store)
        slow = session.begin("OM123456789")
        fast = session.begin("OM000000000")

        assert session.lookup(fast).outcome is TrackingOutcome.NOT_FOUND
        assert session.complete(slow, record=make_record("OM123456789")) is None
        assert session.result.outcome is TrackingOutcome.NOT_FOUND
        assert session.result.tracking_number == "OM000000000"

    def test_follows_live_updates_of_focused_key(self, seeded_store, notifier):
        with TrackingSession(seeded_store, notifier=notifier) as session:
            session.track("OM123456789")
            current = seeded_store.get_by_key("OM123456789")
            seeded_store.update_status(
                "OM123456789",
                AppendStatusDTO(status="In Transit", location="Bangkok, TH").to_event(),
            )
            assert session.result.record.current_status == "In Transit"
            assert session.result.record.version == current.version + 1

    def test_ignores_other_keys(self, seeded_store, notifier, make_record):
        with TrackingSession(seeded_store, notifier=notifier) as session:
            session.track("OM123456789")
            seeded_store.insert(make_record("OM000000001", status="On Hold"))
            assert session.result.record.tracking_number == "OM123456789"

    def test_removal_turns_result_into_not_found(self, seeded_store, notifier):
        with TrackingSession(seeded_store, notifier=notifier) as session:
            session.track("OM123456789")
            seeded_store.delete("OM123456789")
            assert session.result.outcome is TrackingOutcome.NOT_FOUND

    def test_private_reconciler_holds_only_focused_key(self, seeded_store, notifier, make_record):
        with TrackingSession(seeded_store, notifier=notifier) as session:
            session.track("OM123456789")
            seeded_store.insert(make_record("OM000000001"))
            seeded_store.insert(make_record("OM000000002"))

            assert set(session.reconciler.current) == {"OM123456789"}
            assert list(session.reconciler.notifications) == []

    def test_private_reconciler_follows_new_focus(self, seeded_store, notifier, make_record):
        seeded_store.insert(make_record("OM000000001"))
        with TrackingSession(seeded_store, notifier=notifier) as session:
            session.track("OM123456789")
            session.track("OM000000001")

            assert set(session.reconciler.current) == {"OM000000001"}

    def test_shared_reconciler_is_not_filtered(self, seeded_store, notifier, reconciler, make_record):
        with TrackingSession(seeded_store, reconciler=reconciler, notifier=notifier) as session:
            session.track("OM123456789")
            seeded_store.insert(make_record("OM000000001"))

            assert "OM000000001" in reconciler.current

    def test_close_detaches(self, seeded_store, notifier):
        session = TrackingSession(seeded_store, notifier=notifier)
        session.track("OM123456789")
        session.close()
        seeded_store.delete("OM123456789")
        assert session.result.outcome is TrackingOutcome.FOUND
        assert notifier.subscriber_count == 0


# ===========================================================================
# Admin
# ===========================================================================


class TestAdminLifecycle:
    def test_requires_capability(self, seeded_store, notifier):
        with pytest.raises(AdminAccessDenied):
            AdminSession(object(), seeded_store, notifier)

    def test_activate_loads_and_subscribes(self, admin, notifier):
        assert set(admin.reconciler.current) == {"OM123456789"}
        assert admin.active
        assert notifier.subscriber_count == 1
        assert admin.reconciler.sync.state == "live"

    def test_deactivate_unsubscribes(self, admin, notifier):
        admin.deactivate()
        assert not admin.active
        assert notifier.subscriber_count == 0
        assert admin.reconciler.sync.state == "offline"

    def test_failed_load_leaves_state_untouched(self, capability, seeded_store, notifier, reconciler):
        session = AdminSession(capability, seeded_store, notifier, reconciler=reconciler)
        seeded_store.fail_next()
        with pytest.raises(StoreError):
            session.activate()
        assert reconciler.current == {}
        assert notifier.subscriber_count == 0


class TestAdminCreate:
    def test_generated_tracking_number(self, admin, create_dto):
        key = admin.create(create_dto())

        assert key.startswith("OM") and len(key) == 11
        assert admin.reconciler.current[key].current_status == "Order Created"

    def test_create_record_returns_stored_record(self, admin, create_dto):
        record = admin.create_record(create_dto(tracking_number="OM555000111"))

        assert record.tracking_number == "OM555000111"
        assert record.current_status == "Order Created"
        assert admin.reconciler.get("OM555000111") == record

    def test_own_create_is_not_announced(self, admin, create_dto):
        key = admin.create(create_dto())

        assert list(admin.reconciler.notifications) == []
        assert key in admin.reconciler.previous

    def test_other_admins_create_is_announced(self, admin, seeded_store, make_record):
        seeded_store.insert(make_record("OM000000001"))

        toast = admin.reconciler.notifications[0]
        assert toast.message.startswith("New shipment OM000000001 created")

    def test_custom_tracking_number(self, admin, create_dto):
        assert admin.create(create_dto(tracking_number="om555000111")) == "OM555000111"

    def test_invalid_custom_tracking_number(self, admin, create_dto, seeded_store):
        with pytest.raises(InvalidTrackingNumber):
            admin.create(create_dto(tracking_number="ZC555000111"))
        assert "insert" not in seeded_store.calls

    def test_duplicate_custom_tracking_number(self, admin, create_dto, seeded_store):
        with pytest.raises(DuplicateTrackingNumber):
            admin.create(create_dto(tracking_number="OM123456789"))
        assert "insert" not in seeded_store.calls

    def test_generated_collision_is_retried(
        self, capability, seeded_store, notifier, reconciler, create_dto, make_record
    ):
        # Pre-compute the first draw and occupy it behind the session's back.
        taken = f"OM{random.Random(99).randint(TRACKING_NUMBER_MIN, TRACKING_NUMBER_MAX)}"
        session = AdminSession(
            capability, seeded_store, notifier, reconciler=reconciler, rng=random.Random(99)
        )
        session.activate()
        session.deactivate()
        seeded_store.insert(make_record(taken))

        key = session.create(create_dto())

        assert key != taken
        assert seeded_store.calls.count("insert") == 3

    def test_store_failure_leaves_table_untouched(self, admin, create_dto, seeded_store):
        seeded_store.fail_next()
        with pytest.raises(StoreError):
            admin.create(create_dto())
        assert set(admin.reconciler.current) == {"OM123456789"}


class TestAdminUpdates:
    def test_append_status_flows_back_through_change_event(self, admin):
        outcomes = []
        admin.reconciler.add_listener(outcomes.append)

        stored = admin.append_status(
            "OM123456789", AppendStatusDTO(status="Shipment Picked Up", location="Yangon, MM")
        )

        assert stored.history[0].status == "Shipment Picked Up"
        assert outcomes[0].classification is Classification.STATUS_CHANGED
        assert admin.reconciler.current["OM123456789"].current_status == "Shipment Picked Up"

    def test_append_status_unknown_key(self, admin, seeded_store):
        with pytest.raises(ShipmentNotFound):
            admin.append_status("OM000000000", AppendStatusDTO(status="Delivered", location="X"))
        assert "update_status" not in seeded_store.calls

    def test_edit_metadata(self, admin):
        stored = admin.edit_metadata("OM123456789", EditMetadataDTO(piece_count=3))

        assert stored.piece_count == 3
        assert stored.history == admin.reconciler.previous["OM123456789"].history
        assert admin.reconciler.current["OM123456789"].piece_count == 3

    def test_edit_metadata_checks_merged_places(self, admin, seeded_store):
        with pytest.raises(ShipmentValidationError):
            admin.edit_metadata("OM123456789", EditMetadataDTO(destination="yangon, myanmar"))
        assert "update_metadata" not in seeded_store.calls

    def test_edit_without_changes_skips_store(self, admin, seeded_store):
        admin.edit_metadata("OM123456789", EditMetadataDTO())
        assert "update_metadata" not in seeded_store.calls

    def test_delete(self, admin):
        assert admin.delete("OM123456789") is True
        assert admin.reconciler.current == {}
        assert admin.delete("OM123456789") is False


class TestAdminStoreFailures:
    """A failed write leaves the local table exactly as it was."""

    @pytest.fixture()
    def before(self, admin):
        return dict(admin.reconciler.current), dict(admin.reconciler.previous)

    def _assert_untouched(self, admin, before):
        assert (admin.reconciler.current, admin.reconciler.previous) == before
        assert list(admin.reconciler.notifications) == []

    def test_append_status(self, admin, seeded_store, before):
        seeded_store.fail_next()
        with pytest.raises(StoreError):
            admin.append_status(
                "OM123456789", AppendStatusDTO(status="In Transit", location="Bangkok, TH")
            )
        assert seeded_store.calls == ["list", "update_status"]
        self._assert_untouched(admin, before)

    def test_edit_metadata(self, admin, seeded_store, before):
        seeded_store.fail_next()
        with pytest.raises(StoreError):
            admin.edit_metadata("OM123456789", EditMetadataDTO(piece_count=4))
        assert seeded_store.calls == ["list", "update_metadata"]
        self._assert_untouched(admin, before)

    def test_delete(self, admin, seeded_store, before):
        seeded_store.fail_next()
        with pytest.raises(StoreError):
            admin.delete("OM123456789")
        assert seeded_store.calls == ["list", "delete"]
        self._assert_untouched(admin, before)
        assert seeded_store.get_by_key("OM123456789") is not None


class TestConcurrentChanges:
    def test_search_while_change_events_arrive(self, admin, make_record):
        admin.reconciler.apply_bulk_load(
            [make_record(f"OM{n:09d}") for n in range(1, 301)]
        )
        errors = []
        stop = threading.Event()

        def churn():
            n = 0
            while not stop.is_set():
                key = f"OM9{n % 50:08d}"
                admin.reconciler.apply_change_event(upserted(make_record(key)))
                admin.reconciler.apply_change_event(removed(key))
                n += 1

        worker = threading.Thread(target=churn)
        worker.start()
        try:
            for _ in range(200):
                try:
                    admin.search()
                    admin.search("Yangon", sort_key="tracking_number")
                except RuntimeError as exc:
                    errors.append(exc)
        finally:
            stop.set()
            worker.join()

        assert errors == []
        assert len(admin.shipments) >= 300


class TestEndToEnd:
    def test_create_then_append_status_reaches_tracking(
        self, capability, memory_store, notifier, create_dto
    ):
        with AdminSession(capability, memory_store, notifier, reconciler=ShipmentReconciler()) as admin:
            key = admin.create(create_dto())
            admin.append_status(key, AppendStatusDTO(status="In Transit", location="Penang, MY"))

        result = TrackingSession(memory_store).track(key)

        assert result.outcome is TrackingOutcome.FOUND
        assert [e.status for e in result.record.history] == ["In Transit", "Order Created"]
        assert result.record.current_status == "In Transit"

    def test_search_runs_over_reconciled_table(self, admin, make_record, seeded_store):
        seeded_store.insert(
            make_record("OM000000001", origin="Kuala Lumpur, Malaysia", destination="Penang, Malaysia")
        )
        assert [r.tracking_number for r in admin.search("KL")] == ["OM000000001"]
        assert [r.tracking_number for r in admin.search("Yangn")] == ["OM123456789"]
