"""Unit tests for change-event reconciliation."""

from __future__ import annotations

import pytest

from modules.shipments.dtos import TrackingEventDTO
from modules.shipments.events import removed, upserted
from modules.shipments.reconciliation import Classification

pytestmark = pytest.mark.unit


def _advance(record, status="In Transit"):
    return record.with_event(
        TrackingEventDTO(status=status, location="Bangkok, TH", timestamp="22/07/2024, 19:30:00 GMT")
    )


@pytest.fixture()
def loaded(reconciler, make_record):
    reconciler.apply_bulk_load([make_record("OM000000001"), make_record("OM000000002")])
    return reconciler


class TestBulkLoad:
    def test_replaces_both_maps_without_notifications(self, reconciler, make_record):
        reconciler.apply_bulk_load([make_record("OM000000001")])
        reconciler.apply_bulk_load([make_record("OM000000002")])

        assert set(reconciler.current) == {"OM000000002"}
        assert set(reconciler.previous) == {"OM000000002"}
        assert reconciler.toasts.active() == []
        assert list(reconciler.notifications) == []

    def test_clears_markers(self, loaded, make_record):
        loaded.apply_change_event(upserted(make_record("OM000000003")))
        loaded.apply_bulk_load([])
        assert loaded.highlights.active() == []
        assert loaded.toasts.active() == []


class TestClassification:
    def test_unknown_key_is_new(self, loaded, make_record):
        outcome = loaded.apply_change_event(upserted(make_record("OM000000003")))

        assert outcome.classification is Classification.NEW
        assert "OM000000003" in loaded.current
        assert "OM000000003" in loaded.previous
        assert outcome.notification.message == (
            "New shipment OM000000003 created (Yangon, Myanmar → Singapore, Singapore)"
        )
        assert "OM000000003" in loaded.highlights

    def test_status_change(self, loaded):
        record = _advance(loaded.current["OM000000001"])
        outcome = loaded.apply_change_event(upserted(record))

        assert outcome.classification is Classification.STATUS_CHANGED
        assert outcome.notification.message == "Shipment OM000000001 is now In Transit"
        assert loaded.current["OM000000001"].current_status == "In Transit"
        assert loaded.previous["OM000000001"].current_status == "In Transit"

    def test_same_status_is_unchanged(self, loaded):
        record = loaded.current["OM000000001"].with_metadata({"dimensions": "10x10x10"})
        outcome = loaded.apply_change_event(upserted(record))

        assert outcome.classification is Classification.UNCHANGED
        assert outcome.notification is None
        assert loaded.current["OM000000001"].dimensions == "10x10x10"
        assert "OM000000001" not in loaded.highlights

    def test_removal(self, loaded):
        loaded.apply_change_event(upserted(_advance(loaded.current["OM000000001"])))
        outcome = loaded.apply_change_event(removed("OM000000001"))

        assert outcome.classification is Classification.DELETED
        assert "OM000000001" not in loaded.current
        assert "OM000000001" not in loaded.previous
        assert "OM000000001" not in loaded.highlights
        assert "OM000000001" not in loaded.toasts

    def test_removal_of_unknown_key_is_harmless(self, loaded):
        outcome = loaded.apply_change_event(removed("OM999999999"))
        assert outcome.classification is Classification.DELETED
        assert set(loaded.current) == {"OM000000001", "OM000000002"}

    def test_older_version_is_stale(self, loaded):
        original = loaded.current["OM000000001"]
        newer = _advance(_advance(original), "Delivered")
        loaded.apply_change_event(upserted(newer))

        outcome = loaded.apply_change_event(upserted(_advance(original)))

        assert outcome.classification is Classification.STALE
        assert loaded.current["OM000000001"].current_status == "Delivered"


class TestSelfCreated:
    def test_confirmed_create_updates_current_only(self, loaded, make_record):
        loaded.apply_confirmed_create(make_record("OM000000009"))
        assert "OM000000009" in loaded.current
        assert "OM000000009" not in loaded.previous

    def test_echo_of_own_create_is_not_announced(self, loaded, make_record):
        record = make_record("OM000000009")
        loaded.apply_confirmed_create(record)

        outcome = loaded.apply_change_event(upserted(record))

        assert outcome.classification is Classification.NEW
        assert outcome.notification is None
        assert list(loaded.notifications) == []
        assert not loaded.is_self_created("OM000000009")

    def test_echo_arriving_before_confirmation(self, loaded, make_record):
        record = make_record("OM000000009")
        loaded.expect_create("OM000000009")

        outcome = loaded.apply_change_event(upserted(record))
        loaded.apply_confirmed_create(record)

        assert outcome.notification is None
        assert not loaded.is_self_created("OM000000009")
        assert loaded.current["OM000000009"] == record

    def test_self_created_marker_expires(self, loaded, make_record, clock):
        record = make_record("OM000000009")
        loaded.apply_confirmed_create(record)
        clock.advance(11)

        outcome = loaded.apply_change_event(upserted(record))

        assert outcome.notification is not None


class TestMarkersAndListeners:
    def test_highlight_window(self, loaded, make_record, clock):
        loaded.apply_change_event(upserted(make_record("OM000000003")))
        clock.advance(3.5)
        assert "OM000000003" not in loaded.highlights
        assert "OM000000003" in loaded.toasts
        clock.advance(2)
        assert loaded.toasts.active() == []

    def test_listener_sees_updated_state(self, loaded, make_record):
        seen = []
        loaded.add_listener(lambda outcome: seen.append(outcome.tracking_number in loaded.current))
        loaded.apply_change_event(upserted(make_record("OM000000003")))
        assert seen == [True]

    def test_removed_listener_is_not_called(self, loaded):
        seen = []
        remove = loaded.add_listener(seen.append)
        remove()
        loaded.apply_change_event(removed("OM000000001"))
        assert seen == []

    def test_failing_listener_is_isolated(self, loaded):
        seen = []

        def broken(outcome):
            raise RuntimeError("boom")

        loaded.add_listener(broken)
        loaded.add_listener(seen.append)
        loaded.apply_change_event(removed("OM000000001"))
        assert len(seen) == 1

    def test_sync_indicator_counts_applied_events(self, loaded):
        loaded.apply_change_event(removed("OM000000001"))
        assert loaded.sync.events_applied == 1
