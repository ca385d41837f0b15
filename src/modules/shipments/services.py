"""Composition root for the Shipments module.

Builds the sessions with their production collaborators (Django store,
process-wide change notifier, reconciler windows from settings) so the
API layer never wires them by hand.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from django.conf import settings

from modules.shipments.access import AdminCapability, AdminGate
from modules.shipments.reconciliation import ShipmentReconciler
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository
from modules.shipments.repositories.interfaces import IShipmentRepository
from modules.shipments.sessions import AdminSession, TrackingSession
from shared.infrastructure.bus import change_notifier


def reconciler_settings() -> Dict[str, Any]:
    return dict(getattr(settings, "SHIPMENT_RECONCILER", {}))


def build_reconciler() -> ShipmentReconciler:
    options = reconciler_settings()
    return ShipmentReconciler(
        **{
            name: float(options[key])
            for name, key in (
                ("highlight_window", "HIGHLIGHT_WINDOW_SECONDS"),
                ("toast_window", "TOAST_WINDOW_SECONDS"),
                ("self_created_ttl", "SELF_CREATED_TTL_SECONDS"),
            )
            if key in options
        }
    )


def admin_gate() -> AdminGate:
    return AdminGate(settings.ADMIN_PASSWORD)


def open_tracking_session(store: Optional[IShipmentRepository] = None) -> TrackingSession:
    return TrackingSession(store or ShipmentDjangoRepository())


def open_admin_session(
    capability: AdminCapability,
    store: Optional[IShipmentRepository] = None,
) -> AdminSession:
    """Return an inactive admin session; use it as a context manager."""
    return AdminSession(
        capability,
        store or ShipmentDjangoRepository(),
        change_notifier,
        reconciler=build_reconciler(),
    )
