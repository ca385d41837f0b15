"""Shipment URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.shipments.views import (
    AdminSessionView,
    ShipmentViewSet,
    TrackingChangesView,
    TrackingView,
)

router = DefaultRouter(trailing_slash=True)
router.register("shipments", ShipmentViewSet, basename="shipment")

urlpatterns = [
    path("admin/session/", AdminSessionView.as_view(), name="admin_session"),
    path("track/<str:tracking_number>/", TrackingView.as_view(), name="track"),
    path(
        "track/<str:tracking_number>/changes/",
        TrackingChangesView.as_view(),
        name="track_changes",
    ),
    *router.urls,
]
