"""
Chat system models.

This module defines the data models for the messaging core:
- Direct (1:1) conversations, deduplicated per unordered user pair
- Group conversations with ADMIN/MEMBER roles
- Message requests gating first contact between unconnected users
- The legacy flat message shape kept until the chat migration has run

Models:
    Conversation: Container for messages between participants
    ConversationMember: A user's membership (with denormalized display data)
    Message: Conversation-centric message (conversation is null while pending)
    MessageRequest: First-contact request with its pending message ids
    LegacyMessage: Deprecated sender/receiver message shape
    ConversationInviteLink: Shareable link for joining a group

Design Decisions:
    - Direct uniqueness is a partial unique constraint on direct_key, so
      find-or-create resolves races by re-reading instead of locking
    - Membership ends by setting left_at; rows are never deleted
    - Messages are append-only; read_by/deleted_by and the one-time reparent
      of a null conversation are the only mutations
    - created_at on Conversation, Message and LegacyMessage is settable so the
      migration can carry historical timestamps over
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from authentication.models import User


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, deduplicated by normalized pair
    GROUP: Two or more participants with role-based membership
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class MemberRole(models.TextChoices):
    """
    Role within a conversation.

    ADMIN: May change membership and group info (checked by the caller)
    MEMBER: May send messages and leave
    """

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class MessageType(models.TextChoices):
    """
    Type of message content.

    TEXT: content is raw text
    IMAGE / VIDEO / AUDIO: content or media_url reference the media
    POST_SHARE: content is the shared post id
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    POST_SHARE = "post_share", "Post Share"


class RequestStatus(models.TextChoices):
    """
    Message request lifecycle.

    PENDING -> ACCEPTED | REJECTED | IGNORED. The three outcomes are terminal
    for that record; a later first contact opens a fresh PENDING request.
    """

    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    IGNORED = "ignored", "Ignored"


def normalize_participants(*user_ids) -> list[str]:
    """Participant ids as strings, sorted lexicographically."""
    return sorted(str(user_id) for user_id in user_ids)


def direct_key_for(user_a_id, user_b_id) -> str:
    """Normalized key for an unordered user pair, e.g. "12_7"."""
    return "_".join(normalize_participants(user_a_id, user_b_id))


class Conversation(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 members, unique per user pair via direct_key.
        GROUP: 2+ members, optional name/avatar, ADMIN/MEMBER roles.

    Deletion:
        deleted_by holds users who removed the conversation from their own
        list; everybody else still sees it and the message log is untouched.
        is_deleted (SoftDeleteMixin) archives the conversation for everybody
        and releases the direct_key for a new conversation.

    Fields:
        conversation_type: direct or group
        name / avatar: Group display info
        theme: Optional display customization (JSON)
        created_by: User who started the conversation
        participants_normalized: Sorted participant ids (strings)
        direct_key: participants_normalized joined with "_" (direct only)
        last_message_*: Cached preview of the newest message
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.DIRECT,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Group name (empty for direct conversations)",
    )

    avatar = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Group avatar URL (empty for direct conversations)",
    )

    theme = models.JSONField(
        null=True,
        blank=True,
        help_text="Display customization (theme_key, bubble colors, wallpaper_url, ...)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    participants_normalized = models.JSONField(
        default=list,
        blank=True,
        help_text="Participant ids as strings, sorted lexicographically",
    )

    direct_key = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Normalized participant key (direct conversations only)",
    )

    deleted_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_conversations",
        help_text="Users who deleted this conversation from their own list",
    )

    last_message_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Id of the most recent message",
    )

    last_message_content = models.TextField(
        blank=True,
        default="",
        help_text="Preview text of the most recent message",
    )

    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Sender of the most recent message",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp when this conversation was created",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["conversation_type", "is_deleted"],
                name="chat_conv_type_deleted_idx",
            ),
        ]
        constraints = [
            # At most one live direct conversation per unordered pair
            models.UniqueConstraint(
                fields=["direct_key"],
                condition=Q(conversation_type="direct", is_deleted=False),
                name="unique_active_direct_conversation",
            ),
        ]

    def __str__(self) -> str:
        if self.is_direct:
            return f"Direct({self.direct_key})"
        if self.name:
            return f"Group: {self.name}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    def active_members(self):
        """Members whose left_at is NULL, in join order."""
        return self.members.filter(left_at__isnull=True).order_by("joined_at", "id")

    def participant_ids(self) -> list:
        """User ids of active members."""
        return list(self.active_members().values_list("user_id", flat=True))

    def admin_ids(self) -> list:
        return list(
            self.active_members()
            .filter(role=MemberRole.ADMIN)
            .values_list("user_id", flat=True)
        )

    def get_active_member(self, user: User) -> ConversationMember | None:
        user_id = getattr(user, "id", user)
        return self.members.filter(user_id=user_id, left_at__isnull=True).first()

    def is_member(self, user: User) -> bool:
        user_id = getattr(user, "id", user)
        return self.members.filter(user_id=user_id, left_at__isnull=True).exists()


class ConversationMember(BaseModel):
    """
    A user's membership in a conversation.

    username, avatar and is_verified are copies of the user's profile taken
    when the member was added and refreshed lazily afterwards.

    Membership Lifecycle:
        1. User joins: row created with left_at=NULL
        2. User leaves or is removed: left_at set, row kept for attribution
        3. User is added again: NEW row created
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="members",
        help_text="Conversation this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_memberships",
        help_text="Member user",
    )

    username = models.CharField(max_length=150, blank=True, default="")
    avatar = models.URLField(max_length=500, blank=True, default="")
    is_verified = models.BooleanField(default=False)

    role = models.CharField(
        max_length=10,
        choices=MemberRole.choices,
        default=MemberRole.MEMBER,
        db_index=True,
        help_text="Role in the conversation",
    )

    joined_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the user joined this conversation",
    )

    left_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the user left (null if still active)",
    )

    class Meta:
        db_table = "chat_conversation_member"
        ordering = ["joined_at", "id"]
        indexes = [
            models.Index(
                fields=["user", "left_at"],
                name="chat_member_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                condition=Q(left_at__isnull=True),
                name="unique_active_membership",
            ),
        ]

    def __str__(self) -> str:
        status = "active" if self.is_active else "left"
        return f"Member: {self.user_id} in {self.conversation_id} ({self.role}) [{status}]"

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN


class Message(UUIDPrimaryKeyMixin, BaseModel):
    """
    A message in the conversation-centric shape.

    conversation is NULL while the message waits behind a PENDING message
    request; it is set exactly once (reparent) and never overwritten.

    Fields:
        conversation: Owning conversation (null while pending)
        sender: User who sent the message
        message_type: text, image, video, audio or post_share
        content: Raw text, media reference or shared post id
        media_url: Optional media location
        reply_to: Optional message this one replies to
        read_by: Users who have read the message
        deleted_by: Users who hid the message for themselves
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="messages",
        help_text="Conversation this message belongs to (null while pending)",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    message_type = models.CharField(
        max_length=12,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Type of message content",
    )

    content = models.TextField(
        blank=True,
        default="",
        help_text="Text, media reference or shared post id depending on type",
    )

    media_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Media location for image/video/audio messages",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )

    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="read_messages",
        help_text="Users who have read this message",
    )

    deleted_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_messages",
        help_text="Users who deleted this message for themselves",
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp when this message was created",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["conversation", "-created_at", "-id"],
                name="chat_msg_conv_page_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
        ]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"User {self.sender_id}: {preview}"

    @property
    def is_pending(self) -> bool:
        return self.conversation_id is None

    @property
    def is_media(self) -> bool:
        return self.message_type in (
            MessageType.IMAGE,
            MessageType.VIDEO,
            MessageType.AUDIO,
        )


class MessageRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A first-contact request between two users without an open conversation.

    Messages the sender writes while the request is PENDING are stored with
    a null conversation and listed, in order, in pending_message_ids. On
    acceptance they are reparented onto the direct conversation.

    Use MessageRequest.open() to create one; it enforces the required
    fields and the PENDING starting state.
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_message_requests",
        help_text="User who initiated contact",
    )

    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_message_requests",
        help_text="User being contacted",
    )

    status = models.CharField(
        max_length=10,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
        db_index=True,
        help_text="Lifecycle state of the request",
    )

    pending_message_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered ids of messages written before acceptance",
    )

    last_message_content = models.TextField(
        blank=True,
        default="",
        help_text="Preview text of the newest pending message",
    )

    last_message_timestamp = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the newest pending message",
    )

    responded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the receiver accepted, rejected or ignored the request",
    )

    class Meta:
        db_table = "chat_message_request"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["receiver", "status"],
                name="chat_req_receiver_status_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["sender", "receiver"],
                condition=Q(status="pending"),
                name="unique_pending_message_request",
            ),
        ]

    def __str__(self) -> str:
        return f"Request {self.sender_id} -> {self.receiver_id} [{self.status}]"

    @classmethod
    def open(cls, sender: User, receiver: User, message: Message, preview: str):
        """
        Create a PENDING request whose only pending entry is message.

        Raises:
            ValueError: If sender, receiver or message is missing
        """
        if sender is None or receiver is None or message is None:
            raise ValueError("MessageRequest requires sender, receiver and message")
        return cls.objects.create(
            sender=sender,
            receiver=receiver,
            status=RequestStatus.PENDING,
            pending_message_ids=[str(message.id)],
            last_message_content=preview,
            last_message_timestamp=message.created_at,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


class LegacyMessage(UUIDPrimaryKeyMixin, BaseModel):
    """
    Deprecated flat message addressed from sender to receiver.

    Kept only until the chat migration has backfilled conversations. The
    migration creates a Message with the same id for every row it handles
    and records the conversation here; cleanup then clears receiver and
    is_read on migrated rows.
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="legacy_sent_messages",
    )

    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="legacy_received_messages",
    )

    message_type = models.CharField(
        max_length=12,
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )

    content = models.TextField(blank=True, default="")

    media_url = models.URLField(max_length=500, blank=True, default="")

    is_read = models.BooleanField(
        default=False,
        help_text="Deprecated read flag (receiver has read the message)",
    )

    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="legacy_read_messages",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="legacy_messages",
        help_text="Conversation assigned by the chat migration",
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "chat_legacy_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at"],
                name="chat_legacy_conv_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Legacy {self.sender_id} -> {self.receiver_id} ({self.created_at:%Y-%m-%d})"


class ConversationInviteLink(UUIDPrimaryKeyMixin, BaseModel):
    """
    Shareable link that lets a user join a group conversation.

    A group has at most one active link: creating a new one (rotation)
    deactivates the previous ones. A link stops working when it is revoked,
    passes expires_at, or has been used max_uses times.

    Fields:
        conversation: Group the link joins
        token: Opaque value carried by the link
        expires_at / max_uses: Optional limits (null means unlimited)
        used_count: Successful joins through this link
        is_active: Whether the link still accepts joins
        revoked_by / revoked_at: Who switched the link off, and when
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="invite_links",
        help_text="Group conversation this link joins",
    )

    token = models.CharField(
        max_length=64,
        unique=True,
        help_text="Opaque token carried by the invite link",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_invite_links",
        help_text="Admin who created the link",
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the link stops working (null for never)",
    )

    max_uses = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Number of joins allowed (null for unlimited)",
    )

    used_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of users who joined through this link",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the link still accepts joins",
    )

    revoked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who deactivated the link",
    )

    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the link was deactivated",
    )

    class Meta:
        db_table = "chat_conversation_invite_link"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["conversation", "is_active"],
                name="chat_invite_conv_active_idx",
            ),
        ]

    def __str__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"Invite {self.token[:8]} to {self.conversation_id} [{status}]"

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= timezone.now()

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses
