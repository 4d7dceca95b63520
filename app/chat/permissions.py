"""
Permission classes for chat API.

This module provides DRF permission classes for the chat system:
- IsConversationMember: User is an active member
- IsConversationAdmin: User is an active member with the ADMIN role

Role Hierarchy:
    ADMIN can:
        - All MEMBER permissions
        - Update group name/avatar
        - Add and remove members
        - Create, rotate, switch off and revoke invite links
        - Archive the group

    MEMBER can:
        - View the conversation, its messages and the current invite link
        - Send messages
        - Leave the conversation

Design Decisions:
    - Permissions check against ConversationMember, not User
    - Active member = left_at IS NULL
    - Services do not check roles; views compose these classes
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, ConversationMember, MemberRole

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsConversationMember(permissions.BasePermission):
    """Allows access only to active members of the conversation."""

    message = "You are not a member of this conversation."

    def has_object_permission(
        self, request: Request, view: APIView, obj: Conversation
    ) -> bool:
        if not request.user.is_authenticated:
            return False

        return ConversationMember.objects.filter(
            conversation=obj,
            user=request.user,
            left_at__isnull=True,
        ).exists()


class IsConversationAdmin(permissions.BasePermission):
    """
    Allows access to group admins.

    Used for management operations:
    - Updating group name/avatar
    - Adding members
    - Removing other members
    """

    message = "Only conversation admins can perform this action."

    def has_object_permission(
        self, request: Request, view: APIView, obj: Conversation
    ) -> bool:
        if not request.user.is_authenticated:
            return False

        return ConversationMember.objects.filter(
            conversation=obj,
            user=request.user,
            role=MemberRole.ADMIN,
            left_at__isnull=True,
        ).exists()
