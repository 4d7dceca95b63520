"""
Constants and configuration for the messaging core.

This module centralizes configuration values for:
- Message content limits and paging
- Preview text used for message requests and conversation lists
- Channel layer group naming and real-time event types

Import example:
    from chat.constants import MESSAGE_CONFIG, PREVIEW_CONFIG, REALTIME_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # Paging for list_by_conversation (overridable via settings)
    DEFAULT_PAGE_SIZE: Final[int] = 20
    MAX_PAGE_SIZE: Final[int] = 100


# =============================================================================
# Preview Configuration
# =============================================================================


class PREVIEW_CONFIG:
    """
    Preview text for message requests and conversation lists.

    TEXT previews use the raw content; every other type uses a fixed
    localized placeholder. PLACEHOLDERS must cover every non-text
    MessageType, which chat.services checks at import time.
    """

    PLACEHOLDERS: Final[dict] = {
        "image": "Đã gửi một ảnh",
        "video": "Đã gửi một video",
        "audio": "Đã gửi một tin nhắn thoại",
        "post_share": "Đã chia sẻ một bài viết",
    }

    # Used when a message carries no type at all
    UNTYPED: Final[str] = "[Message]"

    # Conversation list preview for media without caption
    MEDIA: Final[str] = "[Media]"


# =============================================================================
# Real-time Configuration
# =============================================================================


class REALTIME_CONFIG:
    """Channel layer naming and event types."""

    CONVERSATION_GROUP_PREFIX: Final[str] = "chat_"
    USER_GROUP_PREFIX: Final[str] = "user_"

    # Events delivered to clients (channel layer "type" uses dots)
    EVENT_MESSAGE: Final[str] = "chat.message"
    EVENT_REQUEST_MESSAGE: Final[str] = "chat.request_message"
    EVENT_NOTICE: Final[str] = "chat.notice"

    # Membership changes relayed to sockets opened on one conversation
    EVENT_MEMBER_REMOVED: Final[str] = "chat.member_removed"
    EVENT_CONVERSATION_ARCHIVED: Final[str] = "chat.conversation_archived"

    NOTICE_REQUEST_ACCEPTED: Final[str] = "request_accepted"
    NOTICE_CONVERSATION_DELETED: Final[str] = "conversation_deleted"
    NOTICE_CONVERSATION_ARCHIVED: Final[str] = "conversation_archived"
    NOTICE_MESSAGE_READ: Final[str] = "message_read"
    NOTICE_MEMBER_REMOVED: Final[str] = "member_removed"
    NOTICE_MEMBER_JOINED: Final[str] = "member_joined"
    NOTICE_INVITE_LINK_CREATED: Final[str] = "invite_link_created"
    NOTICE_INVITE_LINK_REVOKED: Final[str] = "invite_link_revoked"

    # WebSocket close codes
    CLOSE_UNAUTHENTICATED: Final[int] = 4001
    CLOSE_FORBIDDEN: Final[int] = 4003
    CLOSE_NOT_FOUND: Final[int] = 4004


def conversation_group(conversation_id) -> str:
    """Broadcast topic for a conversation."""
    return f"{REALTIME_CONFIG.CONVERSATION_GROUP_PREFIX}{conversation_id}"


def user_group(user_id) -> str:
    """Private delivery address for a user (all of their sessions)."""
    return f"{REALTIME_CONFIG.USER_GROUP_PREFIX}{user_id}"
