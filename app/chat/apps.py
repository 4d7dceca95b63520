"""
Chat application configuration.

This app provides the messaging core:
- Direct (1:1) and group conversations
- Message log with cursor paging and per-user read/delete state
- Message requests gating first contact
- Real-time fan-out over Django Channels
- Migration of legacy flat messages into conversations
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
