"""
Chat system service layer.

This module provides the business logic of the messaging core, encapsulating
all operations on conversations, messages and message requests.

Services:
    ConversationService: Conversation store (direct find-or-create, groups, lists)
    ConversationInviteService: Group invite links (rotate, revoke, join)
    MessageService: Message store (append, paging, read receipts, reparent)
    MessageRequestService: Request gatekeeper (accept, reject, ignore, previews)
    SendMessageService: Entry point deciding direct delivery vs. message request
    AIChatService: Conversations with the AI assistant user

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures raise exceptions
    - Multi-step writes run in one transaction; real-time fan-out happens
      on commit (see chat.dispatch)
    - Direct conversation uniqueness is enforced by the database, and races
      are resolved by re-reading the winner

Usage:
    from chat.services import SendMessageService

    result = SendMessageService.send(
        sender=user,
        receiver_id=other_user.id,
        message_type=MessageType.TEXT,
        content="Hello!",
    )
    if result.success and result.data.request is not None:
        # Message is waiting behind a message request
        ...
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult

from authentication.services import AIUserService, UserDirectoryService
from chat.constants import MESSAGE_CONFIG, PREVIEW_CONFIG, REALTIME_CONFIG
from chat.dispatch import MessageDispatcher
from chat.exceptions import DirectConversationConflictError
from chat.models import (
    Conversation,
    ConversationInviteLink,
    ConversationMember,
    ConversationType,
    MemberRole,
    Message,
    MessageRequest,
    MessageType,
    RequestStatus,
    direct_key_for,
    normalize_participants,
)
from chat.signals import message_reparent_skipped

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


def _check_preview_coverage() -> None:
    """Every non-text message type needs a request preview placeholder."""
    missing = [
        value
        for value in MessageType.values
        if value != MessageType.TEXT and value not in PREVIEW_CONFIG.PLACEHOLDERS
    ]
    if missing:
        raise ImportError(f"No preview placeholder for message types: {missing}")


_check_preview_coverage()


def _parse_uuid(value) -> UUID | None:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


# =============================================================================
# Conversation Store
# =============================================================================


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        find_or_create_direct: Exactly one live direct conversation per pair
        find_direct: Look up the live direct conversation of a pair
        get_by_id: Resolve a live conversation
        get_for_member: Resolve a conversation the actor belongs to
        list_for_user: Conversations a user sees, newest activity first
        update_last_message: Move the cached preview forward (never back)
        soft_delete_for_user: Hide a conversation from one user's list
        restore_for_users: Un-hide a conversation for the given users
        create_group / add_members / remove_member: Group membership
        archive_group: Disband a group for everybody
        update_group_info / update_theme: Group display settings
        refresh_member_profile: Re-copy a user's profile onto memberships
    """

    @classmethod
    def find_or_create_direct(
        cls,
        user_a: User,
        user_b: User,
        created_at: datetime | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Return the live direct conversation for a pair, creating it if needed.

        Implementation:
            1. Look up by normalized key
            2. If absent, create conversation and both memberships inside a
               savepoint
            3. If the unique key rejects the insert, another caller won the
               race: re-read once and return the winner

        Args:
            user_a: Creator of a new conversation (first contact sender)
            user_b: The other participant
            created_at: Historical creation time (migration backfill)

        Returns:
            ServiceResult with Conversation (existing or new)

        Error codes:
            SAME_USER: user_a and user_b are the same user

        Raises:
            DirectConversationConflictError: Insert conflicted and re-lookup
                still found nothing
        """
        if user_a.id == user_b.id:
            return ServiceResult.failure(
                "Cannot create a direct conversation with yourself",
                error_code="SAME_USER",
                details={"user_id": str(user_a.id)},
            )

        key = direct_key_for(user_a.id, user_b.id)
        existing = cls.find_by_key(key)
        if existing is not None:
            return ServiceResult.success(existing)

        created_at = created_at or timezone.now()
        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    created_by=user_a,
                    participants_normalized=normalize_participants(
                        user_a.id, user_b.id
                    ),
                    direct_key=key,
                    created_at=created_at,
                )
                for user in (user_a, user_b):
                    cls._add_member(
                        conversation, user, MemberRole.MEMBER, joined_at=created_at
                    )
        except IntegrityError:
            cls.get_logger().info(
                f"Direct conversation {key} created concurrently, re-reading"
            )
            winner = cls.find_by_key(key)
            if winner is None:
                raise DirectConversationConflictError(
                    "Could not create or find the direct conversation",
                    details={"direct_key": key},
                )
            return ServiceResult.success(winner)

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} for pair {key}"
        )
        return ServiceResult.success(conversation)

    @staticmethod
    def find_by_key(key: str) -> Conversation | None:
        return Conversation.objects.filter(
            direct_key=key,
            conversation_type=ConversationType.DIRECT,
            is_deleted=False,
        ).first()

    @classmethod
    def find_direct(cls, user_a: User, user_b: User) -> Conversation | None:
        return cls.find_by_key(direct_key_for(user_a.id, user_b.id))

    @staticmethod
    def get_by_id(conversation_id) -> ServiceResult[Conversation]:
        """
        Error codes:
            CONVERSATION_NOT_FOUND: Unknown, malformed or archived id
        """
        parsed = _parse_uuid(conversation_id)
        conversation = (
            Conversation.objects.filter(id=parsed, is_deleted=False).first()
            if parsed is not None
            else None
        )
        if conversation is None:
            return ServiceResult.failure(
                f"Conversation {conversation_id} not found",
                error_code="CONVERSATION_NOT_FOUND",
                details={"conversation_id": str(conversation_id)},
            )
        return ServiceResult.success(conversation)

    @classmethod
    def get_for_member(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Resolve a conversation and require the actor to be an active member.

        Error codes:
            CONVERSATION_NOT_FOUND: Unknown conversation
            NOT_PARTICIPANT: user is not an active member
        """
        result = cls.get_by_id(conversation_id)
        if not result.success:
            return result
        if not result.data.is_member(user):
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code="NOT_PARTICIPANT",
                details={"conversation_id": str(result.data.id)},
            )
        return result

    @staticmethod
    def list_for_user(user: User) -> QuerySet[Conversation]:
        """
        Live conversations where user is an active member and has not hidden
        the conversation, newest activity first.
        """
        return (
            Conversation.objects.filter(
                is_deleted=False,
                members__user=user,
                members__left_at__isnull=True,
            )
            .exclude(deleted_by=user)
            .select_related("last_message_sender")
            .prefetch_related("members")
            .distinct()
            .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        )

    @classmethod
    def update_last_message(
        cls,
        conversation: Conversation,
        message: Message,
        preview: str | None = None,
    ) -> bool:
        """
        Cache message as the conversation's newest message.

        The update is conditional on the cached timestamp, so a slower writer
        holding an older message can never move the preview backwards.
        updated_at follows the newest message time.

        Returns:
            True if the cache moved to this message
        """
        if preview is None:
            preview = cls.list_preview(message)
        timestamp = message.created_at

        updated = (
            Conversation.objects.filter(pk=conversation.pk)
            .filter(Q(last_message_at__isnull=True) | Q(last_message_at__lte=timestamp))
            .update(
                last_message_id=message.id,
                last_message_content=preview,
                last_message_sender_id=message.sender_id,
                last_message_at=timestamp,
                updated_at=timestamp,
            )
        )
        if updated:
            conversation.last_message_id = message.id
            conversation.last_message_content = preview
            conversation.last_message_sender_id = message.sender_id
            conversation.last_message_at = timestamp
            conversation.updated_at = timestamp
        return bool(updated)

    @staticmethod
    def list_preview(message: Message) -> str:
        """
        Conversation list preview: text and captions as written, "[Media]"
        for uncaptioned media, the request placeholder for other types.
        """
        if message.is_media:
            return message.content or PREVIEW_CONFIG.MEDIA
        return MessageRequestService.resolve_preview(
            message.message_type, message.content
        )

    @classmethod
    def soft_delete_for_user(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Hide a conversation from one user's list.

        Other participants are unaffected and no message is removed. Repeating
        the call is a no-op.

        Error codes:
            CONVERSATION_NOT_FOUND: Unknown conversation
            NOT_PARTICIPANT: user is not an active member
        """
        result = cls.get_for_member(conversation_id, user)
        if not result.success:
            return result

        conversation = result.data
        conversation.deleted_by.add(user)

        cls.get_logger().info(
            f"User {user.id} deleted conversation {conversation.id} for themselves"
        )
        MessageDispatcher.dispatch_event(
            [user.id],
            REALTIME_CONFIG.NOTICE_CONVERSATION_DELETED,
            {"conversation_id": str(conversation.id)},
        )
        return ServiceResult.success(conversation)

    @staticmethod
    def restore_for_users(conversation: Conversation, user_ids: Iterable) -> None:
        """A new message brings a hidden conversation back to these users."""
        user_ids = list(user_ids)
        if user_ids:
            conversation.deleted_by.remove(*user_ids)

    @classmethod
    def create_group(
        cls,
        creator: User,
        member_ids: Iterable,
        name: str = "",
        avatar: str = "",
    ) -> ServiceResult[Conversation]:
        """
        Create a group conversation with creator as ADMIN.

        Error codes:
            USER_NOT_FOUND: A member id does not resolve to a user
            GROUP_TOO_SMALL: Fewer than two participants in total
        """
        users = UserDirectoryService.get_users(member_ids)
        if not users.success:
            return users

        members = [user for user in users.data if user.id != creator.id]
        if not members:
            return ServiceResult.failure(
                "A group needs at least one member besides the creator",
                error_code="GROUP_TOO_SMALL",
            )

        with transaction.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name.strip(),
                avatar=avatar,
                created_by=creator,
                participants_normalized=normalize_participants(
                    creator.id, *(user.id for user in members)
                ),
            )
            cls._add_member(conversation, creator, MemberRole.ADMIN)
            for user in members:
                cls._add_member(conversation, user, MemberRole.MEMBER)

        cls.get_logger().info(
            f"Created group {conversation.id} with {len(members) + 1} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def add_members(
        cls, conversation: Conversation, user_ids: Iterable
    ) -> ServiceResult[list[ConversationMember]]:
        """
        Add users to a group. Users already active are skipped.

        Error codes:
            NOT_GROUP: conversation is a direct conversation
            USER_NOT_FOUND: An id does not resolve to a user
        """
        not_group = cls._group_only(conversation)
        if not_group is not None:
            return not_group

        users = UserDirectoryService.get_users(user_ids)
        if not users.success:
            return users

        added = []
        with transaction.atomic():
            for user in users.data:
                if conversation.is_member(user):
                    continue
                added.append(cls._add_member(conversation, user, MemberRole.MEMBER))
            cls._sync_participants(conversation)

        return ServiceResult.success(added)

    @classmethod
    def remove_member(
        cls, conversation: Conversation, user_id
    ) -> ServiceResult[ConversationMember]:
        """
        End a user's group membership. The row is kept with left_at set.

        Once committed, sockets the user opened on the conversation are
        closed and the remaining members are notified.

        Error codes:
            NOT_GROUP: conversation is a direct conversation
            MEMBER_NOT_FOUND: user is not an active member
        """
        not_group = cls._group_only(conversation)
        if not_group is not None:
            return not_group

        member = conversation.get_active_member(user_id)
        if member is None:
            return ServiceResult.failure(
                "User is not a member of this conversation",
                error_code="MEMBER_NOT_FOUND",
                details={"user_id": str(user_id)},
            )

        with transaction.atomic():
            member.left_at = timezone.now()
            member.save(update_fields=["left_at", "updated_at"])
            cls._sync_participants(conversation)
            MessageDispatcher.dispatch_member_removed(
                conversation, member.user_id, conversation.participant_ids()
            )

        cls.get_logger().info(
            f"User {user_id} removed from conversation {conversation.id}"
        )
        return ServiceResult.success(member)

    @classmethod
    def archive_group(cls, conversation: Conversation) -> ServiceResult[Conversation]:
        """
        Disband a group for everybody.

        The conversation is archived (is_deleted), its invite links stop
        working and open sockets on it are closed. Messages are kept.

        Error codes:
            NOT_GROUP: conversation is a direct conversation
        """
        not_group = cls._group_only(conversation)
        if not_group is not None:
            return not_group

        with transaction.atomic():
            member_ids = conversation.participant_ids()
            conversation.soft_delete()
            ConversationInviteLink.objects.filter(
                conversation=conversation, is_active=True
            ).update(is_active=False, revoked_at=timezone.now(), updated_at=timezone.now())
            MessageDispatcher.dispatch_conversation_archived(conversation, member_ids)

        cls.get_logger().info(f"Archived group {conversation.id}")
        return ServiceResult.success(conversation)

    @classmethod
    def update_group_info(
        cls,
        conversation: Conversation,
        name: str | None = None,
        avatar: str | None = None,
    ) -> ServiceResult[Conversation]:
        not_group = cls._group_only(conversation)
        if not_group is not None:
            return not_group

        update_fields = ["updated_at"]
        if name is not None:
            conversation.name = name.strip()
            update_fields.append("name")
        if avatar is not None:
            conversation.avatar = avatar
            update_fields.append("avatar")
        conversation.save(update_fields=update_fields)
        return ServiceResult.success(conversation)

    @classmethod
    def update_theme(
        cls, conversation_id, user: User, theme: dict | None
    ) -> ServiceResult[Conversation]:
        """Store display customization. Any active member may change it."""
        result = cls.get_for_member(conversation_id, user)
        if not result.success:
            return result

        conversation = result.data
        conversation.theme = theme or None
        conversation.save(update_fields=["theme", "updated_at"])
        return ServiceResult.success(conversation)

    @staticmethod
    def refresh_member_profile(user: User) -> int:
        """Copy the user's current profile display fields onto active memberships."""
        snapshot = UserDirectoryService.member_snapshot(user)
        return ConversationMember.objects.filter(
            user=user, left_at__isnull=True
        ).update(**snapshot, updated_at=timezone.now())

    @staticmethod
    def _add_member(
        conversation: Conversation,
        user: User,
        role: str,
        joined_at: datetime | None = None,
    ) -> ConversationMember:
        return ConversationMember.objects.create(
            conversation=conversation,
            user=user,
            role=role,
            joined_at=joined_at or timezone.now(),
            **UserDirectoryService.member_snapshot(user),
        )

    @staticmethod
    def _sync_participants(conversation: Conversation) -> None:
        conversation.participants_normalized = normalize_participants(
            *conversation.participant_ids()
        )
        conversation.save(update_fields=["participants_normalized", "updated_at"])

    @staticmethod
    def _group_only(conversation: Conversation) -> ServiceResult | None:
        if conversation.is_group:
            return None
        return ServiceResult.failure(
            "This operation is only available for group conversations",
            error_code="NOT_GROUP",
            details={"conversation_id": str(conversation.id)},
        )


# =============================================================================
# Group Invite Links
# =============================================================================


class ConversationInviteService(BaseService):
    """
    Shareable links for joining a group.

    Role checks (who may create or revoke a link) are done by the caller;
    these methods only require the actor to be an active member.

    Methods:
        create_or_rotate: New active link, deactivating the previous ones
        get_latest: Most recent link, active or not
        revoke: Deactivate every active link
        set_active: Switch the most recent link on or off
        join_by_token: Join the group behind a link
    """

    @classmethod
    def create_or_rotate(
        cls,
        conversation: Conversation,
        actor: User,
        expires_at: datetime | None = None,
        max_uses: int | None = None,
    ) -> ServiceResult[ConversationInviteLink]:
        """
        Error codes:
            NOT_GROUP: conversation is a direct conversation
            NOT_PARTICIPANT: actor is not an active member
            INVALID_EXPIRY: expires_at is not in the future
        """
        failure = cls._check_member(conversation, actor)
        if failure is not None:
            return failure
        if expires_at is not None and expires_at <= timezone.now():
            return ServiceResult.failure(
                "expires_at must be in the future",
                error_code="INVALID_EXPIRY",
            )

        with transaction.atomic():
            cls._deactivate_all(conversation, actor)
            link = ConversationInviteLink.objects.create(
                conversation=conversation,
                token=uuid.uuid4().hex,
                created_by=actor,
                expires_at=expires_at,
                max_uses=max_uses,
            )
            MessageDispatcher.dispatch_event(
                conversation.participant_ids(),
                REALTIME_CONFIG.NOTICE_INVITE_LINK_CREATED,
                {"conversation_id": str(conversation.id), "created_by": str(actor.id)},
            )

        cls.get_logger().info(
            f"User {actor.id} created invite link {link.id} for group {conversation.id}"
        )
        return ServiceResult.success(link)

    @classmethod
    def get_latest(
        cls, conversation: Conversation, actor: User
    ) -> ServiceResult[ConversationInviteLink]:
        """
        Error codes:
            NOT_PARTICIPANT: actor is not an active member
            INVITE_LINK_NOT_FOUND: The group never had a link
        """
        failure = cls._check_member(conversation, actor)
        if failure is not None:
            return failure
        return cls._latest(conversation)

    @classmethod
    def revoke(cls, conversation: Conversation, actor: User) -> ServiceResult[int]:
        """
        Deactivate every active link of the group.

        Returns:
            ServiceResult with the number of links deactivated
        """
        failure = cls._check_member(conversation, actor)
        if failure is not None:
            return failure

        with transaction.atomic():
            revoked = cls._deactivate_all(conversation, actor)
            if revoked:
                MessageDispatcher.dispatch_event(
                    conversation.participant_ids(),
                    REALTIME_CONFIG.NOTICE_INVITE_LINK_REVOKED,
                    {"conversation_id": str(conversation.id), "revoked_by": str(actor.id)},
                )

        cls.get_logger().info(
            f"User {actor.id} revoked {revoked} invite link(s) of group {conversation.id}"
        )
        return ServiceResult.success(revoked)

    @classmethod
    def set_active(
        cls, conversation: Conversation, actor: User, active: bool
    ) -> ServiceResult[ConversationInviteLink]:
        """
        Switch the most recent link on or off.

        Error codes:
            NOT_PARTICIPANT: actor is not an active member
            INVITE_LINK_NOT_FOUND: There is no link to switch
        """
        failure = cls._check_member(conversation, actor)
        if failure is not None:
            return failure

        latest = cls._latest(conversation)
        if not latest.success:
            return latest

        link = latest.data
        link.is_active = active
        if active:
            link.revoked_by = None
            link.revoked_at = None
        else:
            link.revoked_by = actor
            link.revoked_at = timezone.now()
        link.save(update_fields=["is_active", "revoked_by", "revoked_at", "updated_at"])
        return ServiceResult.success(link)

    @classmethod
    def join_by_token(cls, token: str, user: User) -> ServiceResult[Conversation]:
        """
        Add user to the group behind an invite link.

        An expired or used-up link is switched off on the way. Joining a
        group the user is already in returns the group without using the
        link.

        Error codes:
            INVALID_INVITE_LINK: Unknown, inactive, or not pointing at a live group
            INVITE_LINK_EXPIRED: expires_at has passed
            INVITE_LINK_EXHAUSTED: max_uses reached
        """
        with transaction.atomic():
            link = (
                ConversationInviteLink.objects.select_for_update()
                .select_related("conversation")
                .filter(token=token, is_active=True)
                .first()
            )
            if link is None:
                return cls._invalid_link()

            if link.is_expired or link.is_exhausted:
                link.is_active = False
                link.revoked_at = timezone.now()
                link.save(update_fields=["is_active", "revoked_at", "updated_at"])
                if link.is_expired:
                    return ServiceResult.failure(
                        "This invite link has expired",
                        error_code="INVITE_LINK_EXPIRED",
                    )
                return ServiceResult.failure(
                    "This invite link has reached its usage limit",
                    error_code="INVITE_LINK_EXHAUSTED",
                )

            conversation = link.conversation
            if conversation.is_deleted or not conversation.is_group:
                return cls._invalid_link()
            if conversation.is_member(user):
                return ServiceResult.success(conversation)

            added = ConversationService.add_members(conversation, [user.id])
            if not added.success:
                transaction.set_rollback(True)
                return added

            link.used_count += 1
            if link.is_exhausted:
                link.is_active = False
            link.save(update_fields=["used_count", "is_active", "updated_at"])
            MessageDispatcher.dispatch_event(
                conversation.participant_ids(),
                REALTIME_CONFIG.NOTICE_MEMBER_JOINED,
                {"conversation_id": str(conversation.id), "user_id": str(user.id)},
            )

        cls.get_logger().info(
            f"User {user.id} joined group {conversation.id} through invite link {link.id}"
        )
        return ServiceResult.success(conversation)

    @staticmethod
    def _check_member(conversation: Conversation, actor: User) -> ServiceResult | None:
        not_group = ConversationService._group_only(conversation)
        if not_group is not None:
            return not_group
        if not conversation.is_member(actor):
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code="NOT_PARTICIPANT",
                details={"conversation_id": str(conversation.id)},
            )
        return None

    @staticmethod
    def _latest(conversation: Conversation) -> ServiceResult[ConversationInviteLink]:
        link = conversation.invite_links.order_by("-created_at").first()
        if link is None:
            return ServiceResult.failure(
                "No invite link found. Please create one first.",
                error_code="INVITE_LINK_NOT_FOUND",
            )
        return ServiceResult.success(link)

    @staticmethod
    def _deactivate_all(conversation: Conversation, actor: User) -> int:
        now = timezone.now()
        return ConversationInviteLink.objects.filter(
            conversation=conversation, is_active=True
        ).update(is_active=False, revoked_by=actor, revoked_at=now, updated_at=now)

    @staticmethod
    def _invalid_link() -> ServiceResult:
        return ServiceResult.failure(
            "Invalid or expired invite link",
            error_code="INVALID_INVITE_LINK",
        )


# =============================================================================
# Message Store
# =============================================================================


@dataclass
class MessagePage:
    """One page of a conversation's messages, newest first."""

    messages: list[Message]
    next_cursor: str | None


def encode_cursor(message: Message) -> str:
    raw = json.dumps({"t": message.created_at.isoformat(), "id": str(message.id)})
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, UUID] | None:
    """Position encoded by encode_cursor, or None for anything else."""
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        timestamp = datetime.fromisoformat(data["t"])
        message_id = UUID(data["id"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        return None
    return timestamp, message_id


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        append: Persist a message in a conversation
        create_pending: Persist a message waiting behind a request
        validate: Check type and content before anything is written
        list_by_conversation: Cursor-paged history, newest first
        get_for_reader: Resolve a message the actor may see
        mark_read / mark_conversation_read: Read receipts (idempotent)
        reparent: Attach pending messages to a conversation exactly once
        delete_for_user: Hide a message for one user
    """

    @classmethod
    def append(
        cls,
        conversation_id,
        sender: User,
        message_type: str = MessageType.TEXT,
        content: str = "",
        media_url: str = "",
        reply_to_id=None,
    ) -> ServiceResult[Message]:
        """
        Persist a new message in a conversation.

        Does not touch the conversation's cached preview and does not check
        membership; SendMessageService composes those.

        Error codes:
            CONVERSATION_NOT_FOUND: Unknown or archived conversation
            INVALID_MESSAGE_TYPE / CONTENT_TOO_LONG / EMPTY_MESSAGE: Bad input
            INVALID_REPLY: Reply target is not in this conversation
        """
        found = ConversationService.get_by_id(conversation_id)
        if not found.success:
            return found
        conversation = found.data

        invalid = cls.validate(message_type, content, media_url)
        if invalid is not None:
            return invalid

        reply_to = None
        if reply_to_id:
            reply_uuid = _parse_uuid(reply_to_id)
            if reply_uuid is not None:
                reply_to = Message.objects.filter(
                    id=reply_uuid, conversation=conversation
                ).first()
            if reply_to is None:
                return ServiceResult.failure(
                    "Reply target is not in this conversation",
                    error_code="INVALID_REPLY",
                    details={"reply_to_id": str(reply_to_id)},
                )

        message = Message.objects.create(
            conversation=conversation,
            sender=sender,
            message_type=message_type,
            content=content,
            media_url=media_url,
            reply_to=reply_to,
        )
        return ServiceResult.success(message)

    @classmethod
    def create_pending(
        cls,
        sender: User,
        message_type: str = MessageType.TEXT,
        content: str = "",
        media_url: str = "",
    ) -> ServiceResult[Message]:
        """Persist a message that has no conversation yet."""
        invalid = cls.validate(message_type, content, media_url)
        if invalid is not None:
            return invalid

        message = Message.objects.create(
            conversation=None,
            sender=sender,
            message_type=message_type,
            content=content,
            media_url=media_url,
        )
        return ServiceResult.success(message)

    @classmethod
    def list_by_conversation(
        cls,
        conversation_id,
        cursor: str | None = None,
        limit: int | None = None,
        viewer: User | None = None,
    ) -> ServiceResult[MessagePage]:
        """
        Page through a conversation's messages, newest first.

        Order is (created_at desc, id desc), so messages sharing a timestamp
        still page deterministically. The cursor is opaque to clients.

        Error codes:
            CONVERSATION_NOT_FOUND: Unknown conversation
            INVALID_CURSOR: Malformed cursor
        """
        found = ConversationService.get_by_id(conversation_id)
        if not found.success:
            return found

        default_size = getattr(
            settings, "CHAT_MESSAGE_PAGE_SIZE", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE
        )
        max_size = getattr(settings, "CHAT_MESSAGE_PAGE_MAX", MESSAGE_CONFIG.MAX_PAGE_SIZE)
        limit = max(1, min(limit or default_size, max_size))

        queryset = (
            Message.objects.filter(conversation=found.data)
            .select_related("sender__profile", "reply_to")
            .prefetch_related("read_by")
        )
        if viewer is not None:
            queryset = queryset.exclude(deleted_by=viewer)
        if cursor:
            position = decode_cursor(cursor)
            if position is None:
                return ServiceResult.failure(
                    "Invalid pagination cursor",
                    error_code="INVALID_CURSOR",
                )
            timestamp, message_id = position
            queryset = queryset.filter(
                Q(created_at__lt=timestamp) | Q(created_at=timestamp, id__lt=message_id)
            )

        rows = list(queryset.order_by("-created_at", "-id")[: limit + 1])
        has_more = len(rows) > limit
        messages = rows[:limit]
        next_cursor = encode_cursor(messages[-1]) if has_more else None
        return ServiceResult.success(MessagePage(messages=messages, next_cursor=next_cursor))

    @classmethod
    def get_for_reader(cls, message_id, user: User) -> ServiceResult[Message]:
        """
        Resolve a message the user may see.

        Conversation messages require active membership. Pending messages
        are visible to their sender only.

        Error codes:
            MESSAGE_NOT_FOUND: Unknown message
            NOT_PARTICIPANT: user may not see it
        """
        parsed = _parse_uuid(message_id)
        message = (
            Message.objects.select_related("conversation").filter(id=parsed).first()
            if parsed is not None
            else None
        )
        if message is None:
            return ServiceResult.failure(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": str(message_id)},
            )

        if message.is_pending:
            allowed = message.sender_id == user.id
        else:
            allowed = message.conversation.is_member(user)
        if not allowed:
            return ServiceResult.failure(
                "You cannot access this message",
                error_code="NOT_PARTICIPANT",
                details={"message_id": str(message.id)},
            )
        return ServiceResult.success(message)

    @classmethod
    def mark_read(cls, message_id, reader: User) -> ServiceResult[Message]:
        """
        Record that reader has read the message. Repeating is a no-op.

        Error codes:
            MESSAGE_NOT_FOUND: Unknown message
            NOT_PARTICIPANT: reader is not a member of its conversation
            MESSAGE_PENDING: Message is still pending behind a request
        """
        result = cls.get_for_reader(message_id, reader)
        if not result.success:
            return result

        message = result.data
        if message.is_pending:
            return ServiceResult.failure(
                "Pending messages cannot be marked as read",
                error_code="MESSAGE_PENDING",
                details={"message_id": str(message.id)},
            )

        if not message.read_by.filter(pk=reader.pk).exists():
            message.read_by.add(reader)
            if message.sender_id and message.sender_id != reader.id:
                MessageDispatcher.dispatch_event(
                    [message.sender_id],
                    REALTIME_CONFIG.NOTICE_MESSAGE_READ,
                    {
                        "message_id": str(message.id),
                        "conversation_id": str(message.conversation_id),
                        "reader_id": str(reader.id),
                    },
                )
        return ServiceResult.success(message)

    @classmethod
    def mark_conversation_read(cls, conversation_id, reader: User) -> ServiceResult[int]:
        """
        Mark every message of a conversation as read by reader.

        Returns:
            ServiceResult with the number of messages newly marked
        """
        result = ConversationService.get_for_member(conversation_id, reader)
        if not result.success:
            return result

        unread_ids = list(
            Message.objects.filter(conversation=result.data)
            .exclude(read_by=reader)
            .values_list("id", flat=True)
        )
        through = Message.read_by.through
        through.objects.bulk_create(
            [through(message_id=message_id, user_id=reader.id) for message_id in unread_ids],
            ignore_conflicts=True,
        )
        return ServiceResult.success(len(unread_ids))

    @classmethod
    def reparent(cls, message_ids: Iterable, conversation: Conversation) -> int:
        """
        Attach pending messages to a conversation.

        A message whose conversation is already set keeps it: the update is
        conditional on conversation IS NULL. A message already owned by a
        different conversation is reported (log and signal) and skipped.
        Messages are processed in creation order.

        Returns:
            Number of messages attached by this call
        """
        ids = [str(message_id) for message_id in message_ids]
        messages = Message.objects.filter(id__in=ids).order_by("created_at", "id")

        found = 0
        reparented = 0
        for message in messages:
            found += 1
            if message.conversation_id is None:
                reparented += Message.objects.filter(
                    pk=message.pk, conversation__isnull=True
                ).update(conversation=conversation)
            elif message.conversation_id != conversation.id:
                cls.get_logger().warning(
                    f"Message {message.id} already belongs to conversation "
                    f"{message.conversation_id}, not moving it to {conversation.id}"
                )
                message_reparent_skipped.send(
                    sender=cls,
                    message_id=message.id,
                    current_conversation_id=message.conversation_id,
                    target_conversation_id=conversation.id,
                )

        if found < len(set(ids)):
            cls.get_logger().warning(
                f"Reparent onto {conversation.id}: {len(set(ids)) - found} "
                f"message id(s) no longer exist"
            )
        return reparented

    @classmethod
    def delete_for_user(cls, message_id, user: User) -> ServiceResult[Message]:
        """Hide a message for one user. Other participants still see it."""
        result = cls.get_for_reader(message_id, user)
        if not result.success:
            return result
        result.data.deleted_by.add(user)
        return result

    @staticmethod
    def validate(message_type: str, content: str, media_url: str) -> ServiceResult | None:
        """Return a failure for an invalid message, None when it may be stored."""
        if message_type not in MessageType.values:
            return ServiceResult.failure(
                f"Unknown message type '{message_type}'",
                error_code="INVALID_MESSAGE_TYPE",
                details={"message_type": str(message_type)},
            )
        if len(content or "") > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        if message_type == MessageType.TEXT and not (content or "").strip():
            return ServiceResult.failure(
                "Text messages cannot be empty",
                error_code="EMPTY_MESSAGE",
            )
        if message_type != MessageType.TEXT and not (content or media_url):
            return ServiceResult.failure(
                "Media and share messages need content or media_url",
                error_code="EMPTY_MESSAGE",
            )
        return None


# =============================================================================
# Request Gatekeeper
# =============================================================================


@dataclass
class AcceptResult:
    """Accepted request and the direct conversation its messages moved to."""

    request: MessageRequest
    conversation: Conversation


class MessageRequestService(BaseService):
    """
    Service gating first contact between users without an open conversation.

    State machine:
        PENDING -> ACCEPTED (direct conversation created, messages reparented)
        PENDING -> REJECTED
        PENDING -> IGNORED
    Only the receiver may transition a request, and only from PENDING.

    Methods:
        resolve_preview: Preview text for a message type
        open_or_append: Record a pending message on the pair's request
        accept / reject / ignore: Receiver decisions
        pending_requests_for_receiver / pending_count / sent_requests: Listings
        get_request / pending_messages: Single request and its messages
    """

    @staticmethod
    def resolve_preview(message_type: str | None, content: str | None) -> str:
        """
        Preview text for a message.

        TEXT returns the content itself; other types return their localized
        placeholder.

        Raises:
            ValidationError: message_type is not a known type. Stored
                messages are validated on the way in, so this only fires
                for corrupt rows.
        """
        if not message_type:
            return PREVIEW_CONFIG.UNTYPED
        if message_type == MessageType.TEXT:
            return content or ""
        try:
            return PREVIEW_CONFIG.PLACEHOLDERS[message_type]
        except KeyError:
            raise ValidationError(
                f"Unknown message type '{message_type}'",
                error_code="INVALID_MESSAGE_TYPE",
                details={"message_type": str(message_type)},
            )

    @staticmethod
    def find_pending(sender: User, receiver: User) -> MessageRequest | None:
        return MessageRequest.objects.filter(
            sender=sender, receiver=receiver, status=RequestStatus.PENDING
        ).first()

    @staticmethod
    def has_active_request(sender: User, receiver: User) -> bool:
        return MessageRequest.objects.filter(
            sender=sender, receiver=receiver, status=RequestStatus.PENDING
        ).exists()

    @classmethod
    def open_or_append(
        cls, sender: User, receiver: User, message: Message
    ) -> MessageRequest:
        """
        Attach a pending message to the pair's PENDING request, opening one
        if none exists.

        Two first messages racing to open a request both end on the same
        record: the partial unique constraint rejects the second insert and
        that caller appends to the winner instead.
        """
        preview = cls.resolve_preview(message.message_type, message.content)

        existing = (
            MessageRequest.objects.select_for_update()
            .filter(sender=sender, receiver=receiver, status=RequestStatus.PENDING)
            .first()
        )
        if existing is not None:
            cls._append(existing, message, preview)
            return existing

        try:
            with transaction.atomic():
                message_request = MessageRequest.open(sender, receiver, message, preview)
        except IntegrityError:
            existing = (
                MessageRequest.objects.select_for_update()
                .filter(sender=sender, receiver=receiver, status=RequestStatus.PENDING)
                .first()
            )
            if existing is None:
                raise
            cls._append(existing, message, preview)
            return existing

        cls.get_logger().info(
            f"Opened message request {message_request.id} "
            f"from {sender.id} to {receiver.id}"
        )
        return message_request

    @classmethod
    def accept(cls, request_id, actor: User) -> ServiceResult[AcceptResult]:
        """
        Accept a request: create (or reuse) the direct conversation and move
        the pending messages into it, oldest first.

        A PENDING request the other way round (receiver -> sender) is
        accepted in the same transaction, so both sides' pending messages
        land in the conversation and neither request is left behind.

        Error codes:
            MESSAGE_REQUEST_NOT_FOUND: Unknown request
            NOT_PARTICIPANT: actor is not the receiver
            INVALID_REQUEST_STATE: Request is not PENDING
        """
        with transaction.atomic():
            found = cls._get_for_transition(request_id, actor, "accept")
            if not found.success:
                return found
            message_request = found.data

            conversation = ConversationService.find_or_create_direct(
                message_request.sender, message_request.receiver
            ).data

            reverse = (
                MessageRequest.objects.select_for_update()
                .filter(
                    sender_id=message_request.receiver_id,
                    receiver_id=message_request.sender_id,
                    status=RequestStatus.PENDING,
                )
                .first()
            )
            accepted = [message_request] if reverse is None else [message_request, reverse]

            pending_ids = []
            for decided in accepted:
                MessageService.reparent(decided.pending_message_ids, conversation)
                pending_ids.extend(decided.pending_message_ids)
                decided.status = RequestStatus.ACCEPTED
                decided.responded_at = timezone.now()
                decided.save(update_fields=["status", "responded_at", "updated_at"])

            last_message = (
                Message.objects.filter(id__in=pending_ids, conversation=conversation)
                .order_by("-created_at", "-id")
                .first()
            )
            if last_message is not None:
                ConversationService.update_last_message(conversation, last_message)

            for decided in accepted:
                MessageDispatcher.dispatch_event(
                    [decided.sender_id, decided.receiver_id],
                    REALTIME_CONFIG.NOTICE_REQUEST_ACCEPTED,
                    {
                        "request_id": str(decided.id),
                        "conversation_id": str(conversation.id),
                    },
                )

        cls.get_logger().info(
            f"Message request {message_request.id} accepted, "
            f"conversation {conversation.id}"
            f"{f' (also accepted {reverse.id})' if reverse is not None else ''}"
        )
        return ServiceResult.success(
            AcceptResult(request=message_request, conversation=conversation)
        )

    @classmethod
    def reject(cls, request_id, actor: User) -> ServiceResult[MessageRequest]:
        return cls._close(request_id, actor, RequestStatus.REJECTED, "reject")

    @classmethod
    def ignore(cls, request_id, actor: User) -> ServiceResult[MessageRequest]:
        """Ignore a request. Pending messages stay unattached."""
        return cls._close(request_id, actor, RequestStatus.IGNORED, "ignore")

    @staticmethod
    def pending_requests_for_receiver(user: User) -> QuerySet[MessageRequest]:
        """PENDING requests addressed to user, most recent activity first."""
        return (
            MessageRequest.objects.filter(receiver=user, status=RequestStatus.PENDING)
            .select_related("sender__profile")
            .annotate(last_activity=Coalesce("last_message_timestamp", "created_at"))
            .order_by("-last_activity", "-created_at")
        )

    @staticmethod
    def pending_count(user: User) -> int:
        return MessageRequest.objects.filter(
            receiver=user, status=RequestStatus.PENDING
        ).count()

    @staticmethod
    def sent_requests(user: User) -> QuerySet[MessageRequest]:
        return (
            MessageRequest.objects.filter(sender=user)
            .select_related("receiver__profile")
            .order_by("-created_at")
        )

    @classmethod
    def get_request(cls, request_id) -> ServiceResult[MessageRequest]:
        return cls._find(
            MessageRequest.objects.select_related("sender__profile", "receiver__profile"),
            request_id,
        )

    @classmethod
    def pending_messages(cls, request_id, viewer: User) -> ServiceResult[list[Message]]:
        """
        Messages held by a request, oldest first.

        Error codes:
            MESSAGE_REQUEST_NOT_FOUND: Unknown request
            NOT_PARTICIPANT: viewer is neither sender nor receiver
        """
        found = cls.get_request(request_id)
        if not found.success:
            return found

        message_request = found.data
        if viewer.id not in (message_request.sender_id, message_request.receiver_id):
            return ServiceResult.failure(
                "You are not a party to this message request",
                error_code="NOT_PARTICIPANT",
                details={"request_id": str(message_request.id)},
            )
        return ServiceResult.success(
            list(
                Message.objects.filter(id__in=message_request.pending_message_ids)
                .select_related("sender__profile")
                .order_by("created_at", "id")
            )
        )

    @classmethod
    def _close(
        cls, request_id, actor: User, status: str, action: str
    ) -> ServiceResult[MessageRequest]:
        with transaction.atomic():
            found = cls._get_for_transition(request_id, actor, action)
            if not found.success:
                return found

            message_request = found.data
            message_request.status = status
            message_request.responded_at = timezone.now()
            message_request.save(update_fields=["status", "responded_at", "updated_at"])

        cls.get_logger().info(f"Message request {message_request.id} {status}")
        return ServiceResult.success(message_request)

    @classmethod
    def _get_for_transition(
        cls, request_id, actor: User, action: str
    ) -> ServiceResult[MessageRequest]:
        """Lock the request and check the actor may move it out of PENDING."""
        found = cls._find(
            MessageRequest.objects.select_for_update().select_related("sender", "receiver"),
            request_id,
        )
        if not found.success:
            return found

        message_request = found.data
        if message_request.receiver_id != actor.id:
            return ServiceResult.failure(
                f"Only the receiver can {action} a message request",
                error_code="NOT_PARTICIPANT",
                details={"request_id": str(message_request.id)},
            )
        if not message_request.is_pending:
            return ServiceResult.failure(
                f"Cannot {action} a request in '{message_request.status}' state",
                error_code="INVALID_REQUEST_STATE",
                details={"current_state": message_request.status, "action": action},
            )
        return found

    @staticmethod
    def _find(queryset, request_id) -> ServiceResult[MessageRequest]:
        parsed = _parse_uuid(request_id)
        message_request = queryset.filter(id=parsed).first() if parsed is not None else None
        if message_request is None:
            return ServiceResult.failure(
                f"Message request {request_id} not found",
                error_code="MESSAGE_REQUEST_NOT_FOUND",
                details={"request_id": str(request_id)},
            )
        return ServiceResult.success(message_request)

    @staticmethod
    def _append(message_request: MessageRequest, message: Message, preview: str) -> None:
        message_request.pending_message_ids = [
            *message_request.pending_message_ids,
            str(message.id),
        ]
        message_request.last_message_content = preview
        message_request.last_message_timestamp = message.created_at
        message_request.save(
            update_fields=[
                "pending_message_ids",
                "last_message_content",
                "last_message_timestamp",
                "updated_at",
            ]
        )


# =============================================================================
# Send Flow
# =============================================================================


@dataclass
class SendResult:
    """
    Outcome of a send.

    Exactly one of conversation / request is set: the message either went
    into a conversation or waits behind a message request.
    """

    message: Message
    conversation: Conversation | None = None
    request: MessageRequest | None = None


class SendMessageService(BaseService):
    """
    Decides where a new message goes.

    Methods:
        send: Message to a user (direct conversation or message request)
        send_to_conversation: Message to a conversation the sender belongs to
    """

    @classmethod
    def send(
        cls,
        sender: User,
        receiver_id,
        message_type: str = MessageType.TEXT,
        content: str = "",
        media_url: str = "",
        reply_to_id=None,
    ) -> ServiceResult[SendResult]:
        """
        Send a message to another user.

        Implementation:
            1. Open direct conversation exists: append to it
            2. Either side is the AI assistant: create the conversation
            3. Receiver already asked sender (PENDING the other way): replying
               accepts that request, then append
            4. Otherwise the message waits behind the pair's message request

        A failure after step 2 or 3 rolls those writes back, so a rejected
        message never creates a conversation or accepts a request.

        Error codes:
            USER_NOT_FOUND: Unknown receiver
            SAME_USER: Self-send
            INVALID_MESSAGE_TYPE / CONTENT_TOO_LONG / EMPTY_MESSAGE: Bad input
            INVALID_REPLY: Reply target is not in the conversation
        """
        found = UserDirectoryService.get_user(receiver_id)
        if not found.success:
            return found

        receiver = found.data
        if receiver.id == sender.id:
            return ServiceResult.failure(
                "Cannot send a message to yourself",
                error_code="SAME_USER",
            )

        invalid = MessageService.validate(message_type, content, media_url)
        if invalid is not None:
            return invalid

        with transaction.atomic():
            conversation = ConversationService.find_direct(sender, receiver)

            if conversation is None and (sender.is_ai or receiver.is_ai):
                conversation = ConversationService.find_or_create_direct(
                    sender, receiver
                ).data

            if conversation is None:
                incoming = MessageRequestService.find_pending(
                    sender=receiver, receiver=sender
                )
                if incoming is not None:
                    accepted = MessageRequestService.accept(incoming.id, actor=sender)
                    if not accepted.success:
                        return accepted
                    conversation = accepted.data.conversation

            if conversation is not None:
                delivered = cls._deliver(
                    conversation, sender, message_type, content, media_url, reply_to_id
                )
                if not delivered.success:
                    transaction.set_rollback(True)
                    return delivered
                return ServiceResult.success(
                    SendResult(message=delivered.data, conversation=conversation)
                )

            message = MessageService.create_pending(
                sender, message_type, content, media_url
            ).data
            message_request = MessageRequestService.open_or_append(
                sender, receiver, message
            )
            MessageDispatcher.dispatch_request_message(message, message_request)

        return ServiceResult.success(SendResult(message=message, request=message_request))

    @classmethod
    def send_to_conversation(
        cls,
        sender: User,
        conversation_id,
        message_type: str = MessageType.TEXT,
        content: str = "",
        media_url: str = "",
        reply_to_id=None,
    ) -> ServiceResult[SendResult]:
        """
        Send a message into an existing conversation.

        Error codes:
            CONVERSATION_NOT_FOUND: Unknown conversation
            NOT_PARTICIPANT: sender is not an active member
            plus the message validation codes of send()
        """
        with transaction.atomic():
            found = ConversationService.get_for_member(conversation_id, sender)
            if not found.success:
                return found

            conversation = found.data
            delivered = cls._deliver(
                conversation, sender, message_type, content, media_url, reply_to_id
            )
            if not delivered.success:
                return delivered
        return ServiceResult.success(
            SendResult(message=delivered.data, conversation=conversation)
        )

    @classmethod
    def _deliver(
        cls,
        conversation: Conversation,
        sender: User,
        message_type: str,
        content: str,
        media_url: str,
        reply_to_id,
    ) -> ServiceResult[Message]:
        appended = MessageService.append(
            conversation.id,
            sender,
            message_type=message_type,
            content=content,
            media_url=media_url,
            reply_to_id=reply_to_id,
        )
        if not appended.success:
            return appended

        message = appended.data
        message.conversation = conversation
        ConversationService.update_last_message(conversation, message)
        ConversationService.restore_for_users(conversation, conversation.participant_ids())
        MessageDispatcher.dispatch_message(message)
        return appended


# =============================================================================
# AI Assistant
# =============================================================================


class AIChatService(BaseService):
    """
    Conversations with the AI assistant.

    The assistant is a regular participant: its replies go through the same
    send pipeline, so they are persisted, previewed and dispatched like any
    other message. Generating reply text is out of scope here.
    """

    @classmethod
    def get_or_create_conversation(cls, user: User) -> ServiceResult[Conversation]:
        ai_user = AIUserService.ensure_ai_user()
        existing = ConversationService.find_direct(user, ai_user)
        if existing is not None:
            return ServiceResult.success(existing)

        result = ConversationService.find_or_create_direct(user, ai_user)
        if result.success:
            cls.get_logger().info(f"Started AI conversation for user {user.id}")
        return result

    @classmethod
    def post_reply(
        cls,
        conversation_id,
        content: str,
        message_type: str = MessageType.TEXT,
    ) -> ServiceResult[Message]:
        """Post a message from the assistant into one of its conversations."""
        ai_user = AIUserService.ensure_ai_user()
        result = SendMessageService.send_to_conversation(
            ai_user, conversation_id, message_type=message_type, content=content
        )
        if not result.success:
            return result
        return ServiceResult.success(result.data.message)
