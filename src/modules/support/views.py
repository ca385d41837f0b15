"""Support chat API view."""

from __future__ import annotations

from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.support.chat import ChatTurn
from modules.support.serializers import ChatReplySerializer, ChatRequestSerializer
from modules.support.services import build_chat_service


class SupportChatView(APIView):
    """POST /api/v1/support/chat/

    Stateless: the client sends the transcript so far with every message.
    Always answers 200; service failures come back as an apology.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "support_chat"

    def post(self, request: Request) -> Response:
        serializer = ChatRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        transcript = [ChatTurn(role=turn["role"], text=turn["text"]) for turn in data["history"]]
        reply = build_chat_service().reply(transcript, data["message"])
        return Response(ChatReplySerializer({"reply": reply}).data)
