"""Composition root for the support chat."""

from __future__ import annotations

from django.conf import settings

from modules.support.chat import GeminiChatBridge, SupportChatService


def build_chat_service() -> SupportChatService:
    return SupportChatService(
        GeminiChatBridge(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout=settings.GEMINI_TIMEOUT,
        )
    )
