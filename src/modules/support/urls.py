"""Support URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.support.views import SupportChatView

urlpatterns = [
    path("support/chat/", SupportChatView.as_view(), name="support_chat"),
]
