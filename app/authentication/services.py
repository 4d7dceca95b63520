"""
Authentication services.

The messaging core treats this app as its user directory: it reads ids,
usernames, avatars and verified badges, and it owns the AI assistant
identity that chats with users through the normal conversation pipeline.

Related files:
    - models.py: User, Profile
    - signals.py: Profile auto-creation
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from authentication.models import Profile, User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class UserDirectoryService(BaseService):
    """
    Read-only lookups the chat services need from the user directory.

    Methods:
        get_user: Resolve an active user by id
        get_users: Resolve several ids, preserving request order
        member_snapshot: Display fields copied onto conversation members

    Lookups report unknown or inactive users as a USER_NOT_FOUND failure.
    """

    @classmethod
    def get_user(cls, user_id) -> ServiceResult[User]:
        try:
            user = User.objects.select_related("profile").get(
                id=user_id, is_active=True
            )
        except (User.DoesNotExist, ValueError, TypeError):
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
                details={"user_id": str(user_id)},
            )
        return ServiceResult.success(user)

    @classmethod
    def get_users(cls, user_ids: Iterable) -> ServiceResult[list[User]]:
        """
        Resolve user ids in the order given, dropping duplicates.

        Error codes:
            USER_NOT_FOUND: Any id does not resolve to an active user
        """
        ordered_ids = []
        for user_id in user_ids:
            if str(user_id) not in {str(i) for i in ordered_ids}:
                ordered_ids.append(user_id)

        users = {
            str(u.id): u
            for u in User.objects.select_related("profile").filter(
                id__in=ordered_ids, is_active=True
            )
        }
        missing = [str(i) for i in ordered_ids if str(i) not in users]
        if missing:
            return ServiceResult.failure(
                "One or more users not found",
                error_code="USER_NOT_FOUND",
                details={"user_ids": missing},
            )
        return ServiceResult.success([users[str(i)] for i in ordered_ids])

    @staticmethod
    def member_snapshot(user: User) -> dict:
        """Return the display fields copied onto ConversationMember rows."""
        try:
            profile = user.profile
        except Profile.DoesNotExist:
            return {"username": user.display_name, "avatar": "", "is_verified": False}
        return {
            "username": user.display_name,
            "avatar": profile.avatar_url,
            "is_verified": profile.is_verified,
        }


class AIUserService(BaseService):
    """
    Owns the AI assistant sender identity.

    The assistant is an ordinary User whose profile has is_ai=True. It has
    no usable password and is created on first use.
    """

    @classmethod
    def ensure_ai_user(cls) -> User:
        """
        Return the AI assistant user, creating it if needed.

        Concurrent first calls race on the unique email; the loser re-reads.
        """
        email = settings.AI_USER_EMAIL
        user = User.objects.filter(email=email).select_related("profile").first()
        if user is None:
            try:
                with transaction.atomic():
                    user = User.objects.create_user(email=email)
            except IntegrityError:
                user = User.objects.get(email=email)

        profile, _ = Profile.objects.get_or_create(user=user)
        if not profile.is_ai:
            profile.is_ai = True
            profile.is_verified = True
            profile.username = settings.AI_USER_USERNAME
            profile.save(update_fields=["is_ai", "is_verified", "username", "updated_at"])
            cls.get_logger().info(f"Provisioned AI assistant user {user.id}")

        # Keep user.profile in step with the row just written
        user.profile = profile
        return user

    @staticmethod
    def is_ai_user(user: User) -> bool:
        return bool(user) and user.is_ai
