"""
Serializers for chat API.

This module provides serializers for the chat system:
- Conversation serializers (list/detail, direct and group creation, updates)
- Member serializers
- Message serializers (read, send)
- Message request serializers
- Group invite link serializers

Serializer Hierarchy:
    ConversationSerializer: Conversation with members and cached preview
    DirectConversationCreateSerializer: Find-or-create with another user
    GroupConversationCreateSerializer: New group
    GroupInfoUpdateSerializer / ThemeSerializer / MembersAddSerializer

    MemberSerializer: Membership with denormalized display data

    MessageSerializer: Message as returned by the API and pushed over sockets
    MessageSendSerializer: Send to a user (gatekeeper) or to a conversation

    MessageRequestSerializer: Request with sender/receiver summary

    InviteLinkSerializer: Group invite link
    InviteLinkCreateSerializer / InviteLinkActiveSerializer: Link management

Design Decisions:
    - Read and write serializers are separate
    - Write serializers validate shape only; services own the rules
    - Per-user sets (read_by) are rendered as lists of user ids
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.constants import MESSAGE_CONFIG
from chat.models import (
    Conversation,
    ConversationInviteLink,
    ConversationMember,
    Message,
    MessageRequest,
    MessageType,
)


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message as returned by the REST API and carried by real-time events.

    Output is plain JSON types only, so the same data can go through the
    channel layer.
    """

    conversation_id = serializers.UUIDField(read_only=True, allow_null=True)
    sender_id = serializers.IntegerField(read_only=True, allow_null=True)
    reply_to_id = serializers.UUIDField(read_only=True, allow_null=True)
    read_by = serializers.SerializerMethodField(
        help_text="Ids of users who have read the message"
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender_id",
            "message_type",
            "content",
            "media_url",
            "reply_to_id",
            "read_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_read_by(self, obj: Message) -> list[int]:
        return [user.id for user in obj.read_by.all()]


class MessageSendSerializer(serializers.Serializer):
    """
    Input for sending a message.

    Exactly one target: receiver_id (direct, goes through the message
    request gatekeeper) or conversation_id (existing conversation).
    """

    receiver_id = serializers.IntegerField(required=False)
    conversation_id = serializers.UUIDField(required=False)
    message_type = serializers.ChoiceField(
        choices=MessageType.choices, default=MessageType.TEXT
    )
    content = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
    )
    media_url = serializers.URLField(required=False, allow_blank=True, default="")
    reply_to_id = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, attrs):
        has_receiver = attrs.get("receiver_id") is not None
        has_conversation = attrs.get("conversation_id") is not None
        if has_receiver == has_conversation:
            raise serializers.ValidationError(
                "Provide exactly one of receiver_id or conversation_id."
            )
        return attrs


class MessagePageSerializer(serializers.Serializer):
    """One page of history, newest first."""

    results = MessageSerializer(many=True, source="messages")
    next_cursor = serializers.CharField(allow_null=True)


# =============================================================================
# Conversation Serializers
# =============================================================================


class MemberSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ConversationMember
        fields = [
            "user_id",
            "username",
            "avatar",
            "is_verified",
            "role",
            "joined_at",
            "left_at",
        ]
        read_only_fields = fields


class LastMessageSerializer(serializers.Serializer):
    """Cached preview of the newest message."""

    id = serializers.UUIDField(source="last_message_id")
    content = serializers.CharField(source="last_message_content")
    sender_id = serializers.IntegerField(source="last_message_sender_id", allow_null=True)
    created_at = serializers.DateTimeField(source="last_message_at")


class ConversationSerializer(serializers.ModelSerializer):
    """Conversation with active members and last-message preview."""

    members = serializers.SerializerMethodField()
    admins = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    created_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "name",
            "avatar",
            "theme",
            "created_by_id",
            "participants_normalized",
            "members",
            "admins",
            "last_message",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_members(self, obj: Conversation) -> list[dict]:
        # Filter in Python so a prefetched members cache is reused
        active = [member for member in obj.members.all() if member.left_at is None]
        active.sort(key=lambda member: (member.joined_at, member.id))
        return MemberSerializer(active, many=True).data

    def get_admins(self, obj: Conversation) -> list[int]:
        return [
            member.user_id
            for member in obj.members.all()
            if member.left_at is None and member.is_admin
        ]

    def get_last_message(self, obj: Conversation) -> dict | None:
        if obj.last_message_id is None:
            return None
        return LastMessageSerializer(obj).data


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(help_text="The other participant")


class GroupConversationCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    avatar = serializers.URLField(max_length=500, required=False, allow_blank=True, default="")
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        min_length=1,
        help_text="Users to add besides the creator",
    )


class GroupInfoUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    avatar = serializers.URLField(max_length=500, required=False, allow_blank=True)


class MembersAddSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), min_length=1)


class ThemeSerializer(serializers.Serializer):
    """Display customization; every key is optional."""

    theme_key = serializers.CharField(max_length=50, required=False, allow_blank=True)
    bubble_in = serializers.CharField(max_length=20, required=False, allow_blank=True)
    bubble_out = serializers.CharField(max_length=20, required=False, allow_blank=True)
    bubble_text = serializers.CharField(max_length=20, required=False, allow_blank=True)
    header_bg = serializers.CharField(max_length=20, required=False, allow_blank=True)
    header_text = serializers.CharField(max_length=20, required=False, allow_blank=True)
    tint = serializers.CharField(max_length=20, required=False, allow_blank=True)
    fab_bg = serializers.CharField(max_length=20, required=False, allow_blank=True)
    wallpaper_url = serializers.URLField(max_length=500, required=False, allow_blank=True)


# =============================================================================
# Message Request Serializers
# =============================================================================


class MessageRequestSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)

    class Meta:
        model = MessageRequest
        fields = [
            "id",
            "sender",
            "receiver",
            "status",
            "pending_message_ids",
            "last_message_content",
            "last_message_timestamp",
            "responded_at",
            "created_at",
        ]
        read_only_fields = fields


# =============================================================================
# Invite Link Serializers
# =============================================================================


class InviteLinkSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = ConversationInviteLink
        fields = [
            "id",
            "conversation",
            "token",
            "created_by",
            "expires_at",
            "max_uses",
            "used_count",
            "is_active",
            "revoked_at",
            "created_at",
        ]
        read_only_fields = fields


class InviteLinkCreateSerializer(serializers.Serializer):
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    max_uses = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )


class InviteLinkActiveSerializer(serializers.Serializer):
    active = serializers.BooleanField()
