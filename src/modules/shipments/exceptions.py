"""Shipment domain exceptions.

Raised by the codec, the store and the sessions when business rules are
violated.  The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class InvalidTrackingNumber(Exception):
    """Input rejected by the tracking-number grammar before any I/O.

    ``issue`` tells the sub-case apart (``empty``, ``missing_prefix``,
    ``non_digit``, ``wrong_length``) so the UI can show a precise message;
    all of them are the same error kind for the data model.
    """

    def __init__(self, issue: str, message: str) -> None:
        super().__init__(message)
        self.issue = issue
        self.message = message


class ShipmentNotFound(Exception):
    """No shipment exists for a well-formed tracking number."""


class DuplicateTrackingNumber(Exception):
    """A create collided with an existing tracking number."""


class StoreError(Exception):
    """The shipment store failed (transport or backend error)."""


class ShipmentValidationError(Exception):
    """Shipment input failed a business rule (e.g. origin equals destination)."""


class AdminAccessDenied(Exception):
    """The admin capability is missing, invalid or the password was wrong."""
