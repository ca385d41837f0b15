"""Shipment API views.

Public endpoints (tracking lookup, per-shipment change feed) and the
admin console endpoints.  Views go through the sessions built in
``services.py``; domain exceptions are translated by
``modules.core.exceptions.translate`` and rendered in the standard error
envelope.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import structlog
from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.authentication import IsAdminConsole, issue_admin_token
from modules.core.exceptions import (
    DOMAIN_ERRORS,
    ServiceUnavailable,
    from_pydantic,
    translate,
)
from modules.core.models import ChangeLogEntry
from modules.core.pagination import StandardResultsSetPagination
from modules.shipments import codec, services
from modules.shipments.dtos import AppendStatusDTO, CreateShipmentDTO, EditMetadataDTO
from modules.shipments.events import SHIPMENTS_TOPIC
from modules.shipments.filters import ChangeLogFilter
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository
from modules.shipments.serializers import (
    AdminLoginSerializer,
    AppendStatusSerializer,
    ChangeLogEntrySerializer,
    CreateShipmentSerializer,
    EditMetadataSerializer,
    ShipmentRecordSerializer,
    ShipmentSearchSerializer,
)
from modules.shipments.sessions import TrackingOutcome

logger = structlog.get_logger(__name__)

T = TypeVar("T")
D = TypeVar("D", bound=BaseModel)


def _call(operation: Callable[..., T], *args: Any) -> T:
    """Run a domain operation, re-raising domain errors as API errors."""
    try:
        return operation(*args)
    except DOMAIN_ERRORS as exc:
        raise translate(exc) from exc


def _build(dto_class: type[D], data: dict) -> D:
    try:
        return dto_class(**data)
    except PydanticValidationError as exc:
        raise from_pydantic(exc) from exc


# ---------------------------------------------------------------------------
# Admin gate
# ---------------------------------------------------------------------------


class AdminSessionView(APIView):
    """POST /api/v1/admin/session/ - exchange the admin password for a token."""

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "admin_login"

    def post(self, request: Request) -> Response:
        serializer = AdminLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        capability = _call(services.admin_gate().unlock, serializer.validated_data["password"])
        return Response(
            {
                "token": issue_admin_token(capability),
                "expires_in": settings.ADMIN_TOKEN_MAX_AGE,
            },
            status=status.HTTP_201_CREATED,
        )


# ---------------------------------------------------------------------------
# Public tracking
# ---------------------------------------------------------------------------


class TrackingView(APIView):
    """GET /api/v1/track/{tracking_number}/"""

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "tracking_lookup"

    def get(self, request: Request, tracking_number: str) -> Response:
        result = services.open_tracking_session().track(tracking_number)

        if result.outcome is TrackingOutcome.INVALID_FORMAT:
            raise ValidationError({"tracking_number": [result.message]}, code=result.issue)
        if result.outcome is TrackingOutcome.NOT_FOUND:
            raise NotFound(result.message, code="shipment_not_found")
        if result.outcome is TrackingOutcome.ERROR:
            raise ServiceUnavailable(result.message)

        return Response(ShipmentRecordSerializer(result.record).data)


class TrackingChangesView(ListAPIView):
    """GET /api/v1/track/{tracking_number}/changes/?after=<entry sequence>

    Polling feed of committed changes for one shipment, oldest first.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "tracking_lookup"
    serializer_class = ChangeLogEntrySerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = ChangeLogFilter

    def get_queryset(self):
        key = _call(codec.parse, self.kwargs["tracking_number"])
        return ChangeLogEntry.objects.filter(topic=SHIPMENTS_TOPIC, aggregate_id=key)


# ---------------------------------------------------------------------------
# Admin console
# ---------------------------------------------------------------------------


class ShipmentViewSet(GenericViewSet):
    """Admin ViewSet for shipments.

    Every request opens an ``AdminSession`` with the capability carried by
    the admin token.  Does **not** extend ``ModelViewSet``; all ORM access
    goes through the session/repository layer.
    """

    permission_classes = [IsAdminConsole]
    throttle_scope = "shipment_admin"
    lookup_field = "tracking_number"
    lookup_value_regex = "[^/]+"
    pagination_class = StandardResultsSetPagination
    serializer_class = ShipmentRecordSerializer

    def _session(self):
        """Open and activate an admin session for this request."""
        session = services.open_admin_session(self.request.user.capability)
        _call(session.activate)
        return session

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/shipments/?q=&filter=&sort=

        Search, filter and sort run over the reconciled table.
        """
        params = ShipmentSearchSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = params.validated_data

        with self._session() as session:
            records = _call(session.search, query["q"], query["filter"], query["sort"])

        page = self.paginate_queryset(records)
        serializer = ShipmentRecordSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, tracking_number: Optional[str] = None) -> Response:
        """GET /api/v1/shipments/{tracking_number}/"""
        key = _call(codec.parse, tracking_number)
        record = _call(ShipmentDjangoRepository().get_by_key, key)
        if record is None:
            raise NotFound(f"Shipment {key} not found.", code="shipment_not_found")
        return Response(ShipmentRecordSerializer(record).data)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/shipments/

        Omit ``tracking_number`` to have one generated.
        """
        serializer = CreateShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = _build(CreateShipmentDTO, serializer.validated_data)

        with self._session() as session:
            record = _call(session.create_record, dto)

        return Response(ShipmentRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, tracking_number: Optional[str] = None) -> Response:
        """PATCH /api/v1/shipments/{tracking_number}/ - metadata only."""
        key = _call(codec.parse, tracking_number)
        serializer = EditMetadataSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        dto = _build(EditMetadataDTO, serializer.validated_data)

        with self._session() as session:
            record = _call(session.edit_metadata, key, dto)

        return Response(ShipmentRecordSerializer(record).data)

    @action(detail=True, methods=["post"], url_path="events")
    def events(self, request: Request, tracking_number: Optional[str] = None) -> Response:
        """POST /api/v1/shipments/{tracking_number}/events/ - append a status."""
        key = _call(codec.parse, tracking_number)
        serializer = AppendStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = _build(AppendStatusDTO, serializer.validated_data)

        with self._session() as session:
            record = _call(session.append_status, key, dto)

        return Response(ShipmentRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def destroy(self, request: Request, tracking_number: Optional[str] = None) -> Response:
        """DELETE /api/v1/shipments/{tracking_number}/"""
        key = _call(codec.parse, tracking_number)
        with self._session() as session:
            deleted = _call(session.delete, key)
        if not deleted:
            raise NotFound(f"Shipment {key} not found.", code="shipment_not_found")
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"], url_path="changes")
    def changes(self, request: Request) -> Response:
        """GET /api/v1/shipments/changes/?after=<entry sequence>

        Committed changes across all shipments, oldest first.
        """
        queryset = ChangeLogEntry.objects.filter(topic=SHIPMENTS_TOPIC)
        filterset = ChangeLogFilter(request.query_params, queryset=queryset, request=request)
        if not filterset.is_valid():
            raise ValidationError(filterset.errors)

        page = self.paginate_queryset(filterset.qs)
        serializer = ChangeLogEntrySerializer(page, many=True)
        return self.get_paginated_response(serializer.data)
