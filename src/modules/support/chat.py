"""Support chat bridge to the Gemini ``generateContent`` REST endpoint.

The bridge is stateless: the caller sends the whole transcript with every
prompt.  ``SupportChatService`` wraps it and degrades every failure to a
fixed apology, so the chat endpoint never errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests
import structlog

from modules.support.exceptions import ChatServiceError

logger = structlog.get_logger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

SYSTEM_INSTRUCTION = (
    'You are a friendly and professional customer service chatbot for a logistics '
    'company called "Orchid Malaysia".\n'
    "Your goal is to assist users with their tracking inquiries and other questions "
    "about Orchid Malaysia's services.\n"
    "Do not invent tracking information. If a user asks for tracking status, politely "
    "ask them to use the tracking tool on the website using their 'OM' tracking number.\n"
    "You can answer general questions about shipping, services (Air Freight, Ocean "
    "Freight, Door-to-Door), and company information.\n"
    "Keep your responses concise, helpful, and maintain a positive tone. You can speak "
    "in Myanmar language if user asks."
)

NOT_CONFIGURED_REPLY = (
    "I'm sorry, the AI assistant is not configured correctly. Please contact support."
)
GENERIC_ERROR_REPLY = "I'm sorry, I encountered an error. Please try asking again."

ROLE_USER = "user"
ROLE_MODEL = "model"
ROLES = (ROLE_USER, ROLE_MODEL)


@dataclass(frozen=True)
class ChatTurn:
    role: str
    text: str


class GeminiChatBridge:
    """Thin client for one ``generateContent`` call per prompt."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def build_payload(self, transcript: Sequence[ChatTurn], prompt: str) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = [
            {"role": turn.role, "parts": [{"text": turn.text}]} for turn in transcript
        ]
        contents.append({"role": ROLE_USER, "parts": [{"text": prompt}]})
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": contents,
        }

    def complete(self, transcript: Sequence[ChatTurn], prompt: str) -> str:
        """Return the model's reply to ``prompt`` given ``transcript``.

        Raises:
            ChatServiceError: not configured, transport failure, HTTP error
                or a response without text.
        """
        if not self.configured:
            raise ChatServiceError("GEMINI_API_KEY is not set.", not_configured=True)

        url = GEMINI_ENDPOINT.format(model=self._model)
        try:
            response = self._http.post(
                url,
                headers={"x-goog-api-key": self._api_key},
                json=self.build_payload(transcript, prompt),
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout as exc:
            logger.error("support_chat.timeout", model=self._model)
            raise ChatServiceError("Chat service timed out.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("support_chat.request_failed", model=self._model, error=str(exc))
            raise ChatServiceError("Chat service request failed.") from exc
        except ValueError as exc:
            logger.error("support_chat.invalid_json", model=self._model)
            raise ChatServiceError("Chat service returned invalid JSON.") from exc

        text = self._extract_text(body)
        if not text:
            logger.warning("support_chat.empty_reply", model=self._model)
            raise ChatServiceError("Chat service returned no text.")
        return text

    @staticmethod
    def _extract_text(body: Any) -> str:
        """First non-blank candidate text; malformed entries are skipped."""
        if not isinstance(body, dict):
            logger.error("support_chat.unexpected_response", body_type=type(body).__name__)
            raise ChatServiceError("Chat service returned an unexpected response.")
        candidates = body.get("candidates")
        if not isinstance(candidates, list):
            return ""
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            content = candidate.get("content")
            parts = content.get("parts") if isinstance(content, dict) else None
            if not isinstance(parts, list):
                continue
            text = "".join(
                part["text"]
                for part in parts
                if isinstance(part, dict) and isinstance(part.get("text"), str)
            )
            if text.strip():
                return text
        return ""


class SupportChatService:
    """Never raises: every bridge failure becomes an apology message."""

    def __init__(self, bridge: GeminiChatBridge) -> None:
        self._bridge = bridge

    def reply(self, transcript: Sequence[ChatTurn], prompt: str) -> str:
        try:
            return self._bridge.complete(transcript, prompt)
        except ChatServiceError as exc:
            if exc.not_configured:
                logger.warning("support_chat.not_configured")
                return NOT_CONFIGURED_REPLY
            logger.warning("support_chat.degraded", error=str(exc))
            return GENERIC_ERROR_REPLY
        except Exception:
            logger.exception("support_chat.unexpected_failure")
            return GENERIC_ERROR_REPLY
