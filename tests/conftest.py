from __future__ import annotations

import random
from datetime import date, timedelta

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.core.authentication import issue_admin_token
from modules.shipments.access import AdminGate
from modules.shipments.dtos import CreateShipmentDTO, ShipmentRecord, TrackingEventDTO
from modules.shipments.reconciliation import ShipmentReconciler
from modules.shipments.repositories.memory_repository import ShipmentMemoryRepository
from shared.infrastructure.bus import InMemoryChangeNotifier

ADMIN_PASSWORD = "orchid-admin"


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test clean."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def notifier():
    return InMemoryChangeNotifier()


@pytest.fixture()
def memory_store(notifier):
    return ShipmentMemoryRepository(notifier=notifier)


@pytest.fixture()
def reconciler(clock):
    return ShipmentReconciler(clock=clock)


@pytest.fixture()
def capability():
    return AdminGate(ADMIN_PASSWORD).unlock(ADMIN_PASSWORD)


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def make_record():
    """Factory for valid ``ShipmentRecord`` snapshots."""

    def _make(
        tracking_number: str = "OM123456789",
        status: str = "Order Created",
        origin: str = "Yangon, Myanmar",
        destination: str = "Singapore, Singapore",
        version: int = 1,
        **extra,
    ) -> ShipmentRecord:
        history = [
            TrackingEventDTO(
                status=status,
                location=origin,
                timestamp="21/07/2024, 10:00:00 GMT",
                details="Shipment information received",
            )
        ]
        return ShipmentRecord(
            tracking_number=tracking_number,
            current_status=status,
            estimated_delivery="25 Jul, 2024",
            origin=origin,
            destination=destination,
            history=history,
            version=version,
            **extra,
        )

    return _make


@pytest.fixture()
def create_dto():
    """Factory for valid ``CreateShipmentDTO`` inputs."""

    def _make(**overrides) -> CreateShipmentDTO:
        data = {
            "origin": "Kuala Lumpur, Malaysia",
            "destination": "Yangon, Myanmar",
            "estimated_delivery": date.today() + timedelta(days=5),
        }
        data.update(overrides)
        return CreateShipmentDTO(**data)

    return _make


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def admin_token(capability):
    return issue_admin_token(capability)


@pytest.fixture()
def admin_client(admin_token):
    """APIClient authenticated with an admin console token."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {admin_token}")
    return client
