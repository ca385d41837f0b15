"""Admin gate.

Turns the shared admin password into an explicit ``AdminCapability``
that the admin session must be constructed with.  This is a UI gate, not
an authentication system.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from modules.shipments.exceptions import AdminAccessDenied

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AdminCapability:
    """Proof that the admin password was presented to a given gate."""

    issued_at: datetime
    nonce: str = field(repr=False)


class AdminGate:
    def __init__(self, password: str) -> None:
        self._password = password

    def unlock(self, candidate: str) -> AdminCapability:
        """Return a capability if ``candidate`` matches the admin password.

        Raises:
            AdminAccessDenied: no password configured, or mismatch.
        """
        if not self._password:
            logger.warning("admin_gate.not_configured")
            raise AdminAccessDenied("Admin access is not configured.")
        if not hmac.compare_digest(
            (candidate or "").encode("utf-8"), self._password.encode("utf-8")
        ):
            logger.warning("admin_gate.denied")
            raise AdminAccessDenied("Incorrect password.")
        logger.info("admin_gate.unlocked")
        return AdminCapability(
            issued_at=datetime.now(timezone.utc),
            nonce=secrets.token_hex(8),
        )

    @staticmethod
    def check(capability: object) -> AdminCapability:
        if not isinstance(capability, AdminCapability):
            raise AdminAccessDenied("A valid admin capability is required.")
        return capability
