"""API exceptions and domain-error translation.

Responses are rendered by ``drf_standardized_errors`` in the standard
envelope::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Views raise the DRF exceptions below (or let ``translate`` convert a
domain exception) instead of building error bodies by hand.
"""

from __future__ import annotations

import structlog
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied, ValidationError

from modules.shipments.exceptions import (
    AdminAccessDenied,
    DuplicateTrackingNumber,
    InvalidTrackingNumber,
    ShipmentNotFound,
    ShipmentValidationError,
    StoreError,
)

logger = structlog.get_logger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"


class ServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The shipment store is temporarily unavailable."
    default_code = "store_unavailable"


def translate(exc: Exception, attr: str = "tracking_number") -> APIException:
    """Map a domain exception to the DRF exception that should be raised.

    Only the types in ``DOMAIN_ERRORS`` are mapped.
    """
    if isinstance(exc, InvalidTrackingNumber):
        return ValidationError({attr: [exc.message]}, code=exc.issue)
    if isinstance(exc, ShipmentNotFound):
        return NotFound(str(exc), code="shipment_not_found")
    if isinstance(exc, DuplicateTrackingNumber):
        return Conflict(str(exc), code="duplicate_tracking_number")
    if isinstance(exc, ShipmentValidationError):
        return ValidationError({"non_field_errors": [str(exc)]}, code="invalid")
    if isinstance(exc, AdminAccessDenied):
        return PermissionDenied(str(exc), code="admin_access_denied")
    if isinstance(exc, StoreError):
        logger.error("api.store_unavailable", error=str(exc))
        return ServiceUnavailable()
    raise TypeError(f"No API mapping for {type(exc).__name__}") from exc


DOMAIN_ERRORS = (
    InvalidTrackingNumber,
    ShipmentNotFound,
    DuplicateTrackingNumber,
    ShipmentValidationError,
    AdminAccessDenied,
    StoreError,
)


def from_pydantic(exc) -> ValidationError:
    """Convert a ``pydantic.ValidationError`` raised by a DTO."""
    errors: dict = {}
    for error in exc.errors():
        attr = ".".join(str(part) for part in error["loc"]) or "non_field_errors"
        message = error.get("ctx", {}).get("error") or error["msg"]
        errors.setdefault(attr, []).append(str(message))
    return ValidationError(errors)
