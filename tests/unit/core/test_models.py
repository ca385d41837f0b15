"""Unit tests for BaseModel, exercised through ChangeLogEntry.

ChangeLogEntry is the concrete BaseModel that ships with the core app, so
no throwaway tables are needed.
"""

from __future__ import annotations

import uuid

import pytest

from modules.core.models import ChangeLogEntry

pytestmark = pytest.mark.unit


def _entry(**overrides) -> ChangeLogEntry:
    defaults = {
        "topic": "shipments",
        "kind": "insert",
        "aggregate_id": "OM123456789",
        "version": 1,
        "payload": {"tracking_number": "OM123456789"},
    }
    defaults.update(overrides)
    return ChangeLogEntry.objects.create(**defaults)


class TestBaseModel:
    """Tests for UUIDv7 PK and timestamp behaviour."""

    def test_id_is_uuid_version_7(self):
        obj = _entry()
        assert isinstance(obj.id, uuid.UUID)
        assert obj.id.version == 7

    def test_ids_are_time_ordered(self):
        """UUIDv7 encodes timestamp, so sequential creates yield ordered IDs."""
        a = _entry()
        b = _entry(kind="update", version=2)
        assert a.id < b.id

    def test_timestamps_set_on_create(self):
        obj = _entry()
        assert obj.created_at is not None
        assert obj.updated_at is not None

    def test_save_with_update_fields_includes_updated_at(self):
        """The save() guard must inject updated_at into update_fields."""
        obj = _entry()
        original_updated = obj.updated_at
        obj.kind = "update"
        obj.save(update_fields=["kind"])
        obj.refresh_from_db()
        assert obj.updated_at > original_updated
        assert obj.kind == "update"

    def test_id_is_not_editable(self):
        field = ChangeLogEntry._meta.get_field("id")
        assert field.editable is False
