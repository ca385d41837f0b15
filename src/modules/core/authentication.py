"""Admin token authentication backend for Django REST Framework.

The admin console is unlocked with a shared password (``AdminGate``).
Unlocking issues an ``AdminCapability``; this module turns it into a
signed, time-limited Bearer token and back again.

Tokens are signed with ``django.core.signing.TimestampSigner`` under a
dedicated salt, so they cannot be confused with other signed values.

Security decisions
------------------
* **Fail Closed** - a malformed, tampered or expired token returns 401.
* Requests without an ``Authorization`` header are anonymous; admin
  endpoints reject them via ``IsAdminConsole``.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from django.conf import settings
from django.core import signing

from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import BasePermission

from modules.shipments.access import AdminCapability

logger = structlog.get_logger(__name__)

TOKEN_SALT = "modules.core.authentication.admin-token"


def _signer() -> signing.TimestampSigner:
    return signing.TimestampSigner(salt=TOKEN_SALT)


def issue_admin_token(capability: AdminCapability) -> str:
    """Sign ``capability`` into an opaque Bearer token."""
    return _signer().sign_object(
        {"nonce": capability.nonce, "iat": capability.issued_at.isoformat()}
    )


def read_admin_token(token: str) -> AdminCapability:
    """Verify ``token`` and rebuild the capability it carries.

    Raises:
        AuthenticationFailed: bad signature, expired or malformed token.
    """
    try:
        payload = _signer().unsign_object(token, max_age=settings.ADMIN_TOKEN_MAX_AGE)
    except signing.SignatureExpired as exc:
        logger.info("admin_token.expired")
        raise AuthenticationFailed("Admin token has expired.") from exc
    except signing.BadSignature as exc:
        logger.warning("admin_token.invalid")
        raise AuthenticationFailed("Invalid admin token.") from exc

    try:
        return AdminCapability(
            issued_at=datetime.fromisoformat(payload["iat"]),
            nonce=payload["nonce"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("admin_token.malformed")
        raise AuthenticationFailed("Invalid admin token.") from exc


class AdminUser:
    """Lightweight principal for requests carrying an admin token.

    There is no Django ``User`` row behind it; views read
    ``request.user.capability`` to open an admin session.
    """

    def __init__(self, capability: AdminCapability):
        self.capability = capability

    # DRF checks; every admin shares one throttle identity.
    pk = "admin-console"
    is_authenticated = True
    is_active = True
    is_admin_console = True

    def __str__(self) -> str:  # pragma: no cover
        return "admin-console"


class AdminTokenAuthentication(BaseAuthentication):
    """DRF authentication class that validates admin Bearer tokens."""

    keyword = "Bearer"

    def authenticate(self, request):
        """Return ``(AdminUser, token)`` or ``None`` (no credentials)."""
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header:
            return None

        token = self._extract_token(header)
        capability = read_admin_token(token)
        return (AdminUser(capability), token)

    def authenticate_header(self, request):
        """Value for the ``WWW-Authenticate`` response header on 401."""
        return f'{self.keyword} realm="api"'

    @staticmethod
    def _extract_token(header: str) -> str:
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationFailed("Invalid Authorization header format.")
        return parts[1]


class IsAdminConsole(BasePermission):
    """Allow only requests authenticated with an admin token."""

    message = "Admin access required."

    def has_permission(self, request, view) -> bool:
        return bool(getattr(request.user, "is_admin_console", False))
