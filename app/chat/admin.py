"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management
- Member viewing
- Message moderation
- Message request and legacy message inspection
- Group invite links
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    ConversationInviteLink,
    ConversationMember,
    LegacyMessage,
    Message,
    MessageRequest,
)


def _truncate(text: str, max_length: int = 50) -> str:
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


class ConversationMemberInline(admin.TabularInline):
    """Inline display of members in conversation admin."""

    model = ConversationMember
    extra = 0
    readonly_fields = ["username", "avatar", "is_verified", "joined_at", "left_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "conversation_type",
        "name",
        "direct_key",
        "is_deleted",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["conversation_type", "is_deleted", "created_at"]
    search_fields = ["name", "direct_key", "id"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "deleted_at",
        "participants_normalized",
        "direct_key",
        "last_message_id",
        "last_message_content",
        "last_message_at",
    ]
    raw_id_fields = ["created_by", "last_message_sender", "deleted_by"]
    inlines = [ConversationMemberInline]
    ordering = ["-created_at"]


@admin.register(ConversationMember)
class ConversationMemberAdmin(admin.ModelAdmin):
    """Admin interface for ConversationMember model."""

    list_display = ["id", "conversation", "user", "role", "joined_at", "left_at"]
    list_filter = ["role", "joined_at"]
    search_fields = ["user__email", "username", "conversation__name"]
    readonly_fields = ["created_at", "updated_at", "joined_at"]
    raw_id_fields = ["conversation", "user"]
    ordering = ["-joined_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "message_type",
        "content_preview",
        "created_at",
    ]
    list_filter = ["message_type", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender", "reply_to", "read_by", "deleted_by"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        return _truncate(obj.content)


@admin.register(MessageRequest)
class MessageRequestAdmin(admin.ModelAdmin):
    """Admin interface for MessageRequest model."""

    list_display = [
        "id",
        "sender",
        "receiver",
        "status",
        "last_message_timestamp",
        "responded_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["sender__email", "receiver__email"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "pending_message_ids",
        "last_message_content",
        "last_message_timestamp",
        "responded_at",
    ]
    raw_id_fields = ["sender", "receiver"]
    ordering = ["-created_at"]


@admin.register(ConversationInviteLink)
class ConversationInviteLinkAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "conversation",
        "is_active",
        "used_count",
        "max_uses",
        "expires_at",
        "created_at",
    ]
    list_filter = ["is_active", "created_at"]
    search_fields = ["token", "conversation__name"]
    readonly_fields = ["token", "used_count", "created_at", "updated_at", "revoked_at"]
    raw_id_fields = ["conversation", "created_by", "revoked_by"]
    ordering = ["-created_at"]


@admin.register(LegacyMessage)
class LegacyMessageAdmin(admin.ModelAdmin):
    """Read-mostly view of deprecated flat messages."""

    list_display = [
        "id",
        "sender",
        "receiver",
        "content_preview",
        "is_read",
        "conversation",
        "created_at",
    ]
    list_filter = ["is_read", "created_at"]
    search_fields = ["content", "sender__email", "receiver__email"]
    readonly_fields = ["created_at", "updated_at", "conversation"]
    raw_id_fields = ["sender", "receiver", "read_by"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: LegacyMessage) -> str:
        return _truncate(obj.content)
