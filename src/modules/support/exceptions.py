"""Support chat exceptions."""

from __future__ import annotations


class ChatServiceError(Exception):
    """The chat-completion service could not produce a reply.

    ``not_configured`` is set when no API key is available, so callers
    can tell a setup problem from a transient failure.
    """

    def __init__(self, message: str, not_configured: bool = False) -> None:
        super().__init__(message)
        self.not_configured = not_configured
