"""
Views for chat API.

This module provides REST API endpoints for the messaging core:
- ConversationViewSet: Conversation list, detail, per-user delete, groups,
  group invite links
- MessageViewSet: Send, read receipts, per-user delete
- MessageRequestViewSet: Request inbox and receiver decisions
- AIConversationView: Conversation with the AI assistant
- Migration views: Admin triggers for the legacy chat migration

URL Structure:
    /api/v1/chat/conversations/                            GET
    /api/v1/chat/conversations/direct/                     POST
    /api/v1/chat/conversations/group/                      POST
    /api/v1/chat/conversations/join/{token}/               POST
    /api/v1/chat/conversations/{id}/                       GET, DELETE (?userId=)
    /api/v1/chat/conversations/{id}/group/                 PATCH, DELETE
    /api/v1/chat/conversations/{id}/members/               POST
    /api/v1/chat/conversations/{id}/members/{user_id}/     DELETE
    /api/v1/chat/conversations/{id}/invite-link/           GET, POST, DELETE
    /api/v1/chat/conversations/{id}/invite-link/active/    PUT
    /api/v1/chat/conversations/{id}/theme/                 PUT
    /api/v1/chat/conversations/{id}/messages/              GET (?cursor=&limit=)
    /api/v1/chat/conversations/{id}/read/                  POST
    /api/v1/chat/messages/                                 POST
    /api/v1/chat/messages/{id}/                            DELETE
    /api/v1/chat/messages/{id}/read/                       POST
    /api/v1/chat/message-requests/                         GET
    /api/v1/chat/message-requests/count/                   GET
    /api/v1/chat/message-requests/sent/                    GET
    /api/v1/chat/message-requests/{id}/messages/           GET
    /api/v1/chat/message-requests/{id}/accept|reject|ignore/  POST
    /api/v1/chat/ai/conversation/                          POST
    /api/v1/conversations/{id}?userId=                     DELETE
    /api/v1/admin/migration/chat/to-conversations          POST
    /api/v1/admin/migration/chat/cleanup                   POST

Design Decisions:
    - All business rules live in chat.services; views translate HTTP
    - Failed service results become responses through failure_response:
      *_NOT_FOUND is 404, FORBIDDEN_ERROR_CODES are 403, the rest 400
    - Exceptions raised by services (conflicts) go through
      application_error_response
    - Role checks use chat.permissions against the resolved conversation
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.services import ServiceResult

from authentication.services import UserDirectoryService
from chat.migration import ChatMigrationService
from chat.pagination import ConversationPagination, MessageRequestPagination
from chat.permissions import IsConversationAdmin, IsConversationMember
from chat.serializers import (
    ConversationSerializer,
    DirectConversationCreateSerializer,
    GroupConversationCreateSerializer,
    GroupInfoUpdateSerializer,
    InviteLinkActiveSerializer,
    InviteLinkCreateSerializer,
    InviteLinkSerializer,
    MemberSerializer,
    MembersAddSerializer,
    MessagePageSerializer,
    MessageRequestSerializer,
    MessageSendSerializer,
    MessageSerializer,
    ThemeSerializer,
)
from chat.services import (
    AIChatService,
    ConversationInviteService,
    ConversationService,
    MessageRequestService,
    MessageService,
    SendMessageService,
)

logger = logging.getLogger(__name__)

FORBIDDEN_ERROR_CODES = frozenset({"NOT_PARTICIPANT", "NOT_ADMIN", "PERMISSION_DENIED"})


def failure_response(result: ServiceResult) -> Response:
    """HTTP response for a failed service result."""
    code = result.error_code or ""
    if code in FORBIDDEN_ERROR_CODES:
        response_status = status.HTTP_403_FORBIDDEN
    elif code.endswith("NOT_FOUND"):
        response_status = status.HTTP_404_NOT_FOUND
    else:
        response_status = status.HTTP_400_BAD_REQUEST

    body = {"error": result.error, "error_code": result.error_code}
    if result.details:
        body["details"] = result.details
    return Response(body, status=response_status)


def application_error_response(exc: BaseApplicationError) -> Response:
    return Response(exc.to_dict(), status=exc.http_status)


class ApplicationErrorMixin:
    """Routes core.exceptions raised by services through application_error_response."""

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            return application_error_response(exc)
        return super().handle_exception(exc)


def soft_delete_conversation(request, conversation_id) -> Response:
    """
    Delete a conversation from one user's list.

    userId defaults to the caller; acting for somebody else requires staff.
    """
    user_id = request.query_params.get("userId")
    target = request.user
    if user_id and str(user_id) != str(request.user.id):
        if not request.user.is_staff:
            return failure_response(
                ServiceResult.failure(
                    "You can only delete conversations for yourself",
                    error_code="PERMISSION_DENIED",
                    details={"user_id": str(user_id)},
                )
            )
        found = UserDirectoryService.get_user(user_id)
        if not found.success:
            return failure_response(found)
        target = found.data

    result = ConversationService.soft_delete_for_user(conversation_id, target)
    if not result.success:
        return failure_response(result)
    return Response(status=status.HTTP_204_NO_CONTENT)


USER_ID_PARAMETER = OpenApiParameter(
    name="userId",
    type=OpenApiTypes.INT,
    location=OpenApiParameter.QUERY,
    required=False,
    description="User deleting the conversation for themselves (defaults to caller)",
)


# =============================================================================
# Conversations
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        tags=["Chat - Conversations"],
        responses={200: ConversationSerializer(many=True)},
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
        responses={200: ConversationSerializer},
    ),
    destroy=extend_schema(
        operation_id="delete_conversation_for_user",
        summary="Delete conversation for the current user",
        tags=["Chat - Conversations"],
        parameters=[USER_ID_PARAMETER],
        responses={204: None},
    ),
)
class ConversationViewSet(ApplicationErrorMixin, viewsets.GenericViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations the user is an active member of, excluding ones the
        user deleted for themselves, most recent activity first.

    retrieve:
        Conversation details including active members. Members only.

    destroy:
        Remove the conversation from the user's own list. Other members are
        unaffected and no message is deleted.

    direct:
        Find or create the direct conversation with another user.

    group / group_info / members / remove_member:
        Group creation and admin-only management. Members may remove
        themselves (leave). DELETE on group_info archives the group.

    invite_link / invite_link_active / join:
        Group invite links. Admins manage them, members can read the
        current one, and any user holding a token can join.
    """

    serializer_class = ConversationSerializer
    pagination_class = ConversationPagination
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def get_queryset(self):
        return ConversationService.list_for_user(self.request.user)

    def get_permissions(self):
        if self.action in ("group_info", "members", "invite_link_active"):
            return [IsAuthenticated(), IsConversationMember(), IsConversationAdmin()]
        if self.action == "invite_link" and self.request.method != "GET":
            return [IsAuthenticated(), IsConversationMember(), IsConversationAdmin()]
        if self.action in ("retrieve", "theme", "messages", "read", "invite_link"):
            return [IsAuthenticated(), IsConversationMember()]
        return [IsAuthenticated()]

    def get_conversation(self) -> ServiceResult:
        """Resolve the conversation in the URL and apply object permissions."""
        result = ConversationService.get_by_id(self.kwargs["pk"])
        if result.success:
            self.check_object_permissions(self.request, result.data)
        return result

    def list(self, request):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(ConversationSerializer(page, many=True).data)
        return Response(ConversationSerializer(queryset, many=True).data)

    def retrieve(self, request, pk=None):
        result = self.get_conversation()
        if not result.success:
            return failure_response(result)
        return Response(ConversationSerializer(result.data).data)

    def destroy(self, request, pk=None):
        return soft_delete_conversation(request, pk)

    @extend_schema(
        operation_id="create_direct_conversation",
        summary="Find or create direct conversation",
        tags=["Chat - Conversations"],
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationSerializer,
            201: ConversationSerializer,
            404: OpenApiResponse(description="User not found"),
        },
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        found = UserDirectoryService.get_user(serializer.validated_data["user_id"])
        if not found.success:
            return failure_response(found)

        existing = ConversationService.find_direct(request.user, found.data)
        result = ConversationService.find_or_create_direct(request.user, found.data)
        if not result.success:
            return failure_response(result)

        return Response(
            ConversationSerializer(result.data).data,
            status=status.HTTP_200_OK if existing else status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="create_group_conversation",
        summary="Create group conversation",
        tags=["Chat - Groups"],
        request=GroupConversationCreateSerializer,
        responses={201: ConversationSerializer},
    )
    @action(detail=False, methods=["post"])
    def group(self, request):
        serializer = GroupConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ConversationService.create_group(
            creator=request.user,
            member_ids=data["member_ids"],
            name=data["name"],
            avatar=data["avatar"],
        )
        if not result.success:
            return failure_response(result)

        return Response(
            ConversationSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="update_group_info",
        summary="Update group name/avatar (PATCH) or archive the group (DELETE)",
        tags=["Chat - Groups"],
        request=GroupInfoUpdateSerializer,
        responses={200: ConversationSerializer, 204: None},
    )
    @action(detail=True, methods=["patch", "delete"], url_path="group")
    def group_info(self, request, pk=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)

        if request.method == "DELETE":
            result = ConversationService.archive_group(found.data)
            if not result.success:
                return failure_response(result)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = GroupInfoUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.update_group_info(
            found.data,
            name=serializer.validated_data.get("name"),
            avatar=serializer.validated_data.get("avatar"),
        )
        if not result.success:
            return failure_response(result)
        return Response(ConversationSerializer(result.data).data)

    @extend_schema(
        operation_id="add_group_members",
        summary="Add members to group",
        tags=["Chat - Groups"],
        request=MembersAddSerializer,
        responses={201: MemberSerializer(many=True)},
    )
    @action(detail=True, methods=["post"])
    def members(self, request, pk=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)

        serializer = MembersAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.add_members(
            found.data, serializer.validated_data["user_ids"]
        )
        if not result.success:
            return failure_response(result)
        return Response(
            MemberSerializer(result.data, many=True).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="remove_group_member",
        summary="Remove member from group (or leave)",
        tags=["Chat - Groups"],
        responses={204: None},
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"members/(?P<user_id>[0-9]+)",
    )
    def remove_member(self, request, pk=None, user_id=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)

        conversation = found.data
        if str(user_id) != str(request.user.id):
            # Removing somebody else is an admin action; leaving is not
            if not IsConversationAdmin().has_object_permission(request, self, conversation):
                return failure_response(
                    ServiceResult.failure(IsConversationAdmin.message, error_code="NOT_ADMIN")
                )

        result = ConversationService.remove_member(conversation, int(user_id))
        if not result.success:
            return failure_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="group_invite_link",
        summary="Current invite link (GET), new link (POST) or revoke links (DELETE)",
        tags=["Chat - Groups"],
        request=InviteLinkCreateSerializer,
        responses={200: InviteLinkSerializer, 201: InviteLinkSerializer, 204: None},
    )
    @action(detail=True, methods=["get", "post", "delete"], url_path="invite-link")
    def invite_link(self, request, pk=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)
        conversation = found.data

        if request.method == "GET":
            result = ConversationInviteService.get_latest(conversation, request.user)
            if not result.success:
                return failure_response(result)
            return Response(InviteLinkSerializer(result.data).data)

        if request.method == "DELETE":
            result = ConversationInviteService.revoke(conversation, request.user)
            if not result.success:
                return failure_response(result)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = InviteLinkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationInviteService.create_or_rotate(
            conversation,
            request.user,
            expires_at=serializer.validated_data["expires_at"],
            max_uses=serializer.validated_data["max_uses"],
        )
        if not result.success:
            return failure_response(result)
        return Response(InviteLinkSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="set_group_invite_link_active",
        summary="Switch the current invite link on or off",
        tags=["Chat - Groups"],
        request=InviteLinkActiveSerializer,
        responses={200: InviteLinkSerializer},
    )
    @action(detail=True, methods=["put"], url_path="invite-link/active")
    def invite_link_active(self, request, pk=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)

        serializer = InviteLinkActiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationInviteService.set_active(
            found.data, request.user, serializer.validated_data["active"]
        )
        if not result.success:
            return failure_response(result)
        return Response(InviteLinkSerializer(result.data).data)

    @extend_schema(
        operation_id="join_group_by_invite_link",
        summary="Join a group through an invite link",
        tags=["Chat - Groups"],
        request=None,
        responses={200: ConversationSerializer},
    )
    @action(detail=False, methods=["post"], url_path=r"join/(?P<token>[0-9a-f]{32})")
    def join(self, request, token=None):
        result = ConversationInviteService.join_by_token(token, request.user)
        if not result.success:
            return failure_response(result)
        return Response(ConversationSerializer(result.data).data)

    @extend_schema(
        operation_id="update_conversation_theme",
        summary="Update conversation theme",
        tags=["Chat - Conversations"],
        request=ThemeSerializer,
        responses={200: ConversationSerializer},
    )
    @action(detail=True, methods=["put"])
    def theme(self, request, pk=None):
        serializer = ThemeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.update_theme(
            pk, request.user, dict(serializer.validated_data)
        )
        if not result.success:
            return failure_response(result)
        return Response(ConversationSerializer(result.data).data)

    @extend_schema(
        operation_id="list_conversation_messages",
        summary="List messages (newest first)",
        tags=["Chat - Messages"],
        parameters=[
            OpenApiParameter("cursor", OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter("limit", OpenApiTypes.INT, OpenApiParameter.QUERY),
        ],
        responses={200: MessagePageSerializer},
    )
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        found = self.get_conversation()
        if not found.success:
            return failure_response(found)

        limit = request.query_params.get("limit")
        try:
            limit = int(limit) if limit else None
        except ValueError:
            return Response(
                {"error": "limit must be an integer", "error_code": "INVALID_LIMIT"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = MessageService.list_by_conversation(
            found.data.id,
            cursor=request.query_params.get("cursor"),
            limit=limit,
            viewer=request.user,
        )
        if not result.success:
            return failure_response(result)
        return Response(MessagePageSerializer(result.data).data)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        tags=["Chat - Messages"],
        request=None,
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = MessageService.mark_conversation_read(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response({"status": "read", "marked": result.data})


class ConversationDeleteView(APIView):
    """
    DELETE /api/v1/conversations/{id}?userId=

    Same operation as ConversationViewSet.destroy, on the short path.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="delete_conversation_for_user_short",
        summary="Delete conversation for the current user",
        tags=["Chat - Conversations"],
        parameters=[USER_ID_PARAMETER],
        responses={204: None},
    )
    def delete(self, request, conversation_id):
        return soft_delete_conversation(request, conversation_id)


# =============================================================================
# Messages
# =============================================================================


@extend_schema_view(
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        description=(
            "Send to a user (receiver_id) or into a conversation "
            "(conversation_id). Messages to a user without an open "
            "conversation wait behind a message request."
        ),
        tags=["Chat - Messages"],
        request=MessageSendSerializer,
        responses={201: MessageSerializer},
    ),
    destroy=extend_schema(
        operation_id="delete_message_for_user",
        summary="Delete message for the current user",
        tags=["Chat - Messages"],
        responses={204: None},
    ),
)
class MessageViewSet(ApplicationErrorMixin, viewsets.ViewSet):
    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def create(self, request):
        serializer = MessageSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        fields = {
            "message_type": data["message_type"],
            "content": data["content"],
            "media_url": data["media_url"],
            "reply_to_id": data.get("reply_to_id"),
        }
        if data.get("conversation_id") is not None:
            result = SendMessageService.send_to_conversation(
                request.user, data["conversation_id"], **fields
            )
        else:
            result = SendMessageService.send(request.user, data["receiver_id"], **fields)

        if not result.success:
            return failure_response(result)

        sent = result.data
        return Response(
            {
                "message": MessageSerializer(sent.message).data,
                "conversation_id": str(sent.conversation.id) if sent.conversation else None,
                "request": (
                    MessageRequestSerializer(sent.request).data if sent.request else None
                ),
            },
            status=status.HTTP_201_CREATED,
        )

    def destroy(self, request, pk=None):
        result = MessageService.delete_for_user(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="mark_message_read",
        summary="Mark message as read",
        tags=["Chat - Messages"],
        request=None,
        responses={200: MessageSerializer},
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = MessageService.mark_read(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(MessageSerializer(result.data).data)


# =============================================================================
# Message Requests
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_message_requests",
        summary="Pending message requests",
        tags=["Chat - Message Requests"],
        responses={200: MessageRequestSerializer(many=True)},
    ),
)
class MessageRequestViewSet(ApplicationErrorMixin, viewsets.GenericViewSet):
    """
    list:
        PENDING requests addressed to the user, most recent activity first.

    accept / reject / ignore:
        Receiver decisions. Only PENDING requests can be decided.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = MessageRequestSerializer
    pagination_class = MessageRequestPagination
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def get_queryset(self):
        return MessageRequestService.pending_requests_for_receiver(self.request.user)

    def list(self, request):
        return self._paginated(self.get_queryset())

    @extend_schema(
        operation_id="count_message_requests",
        summary="Number of pending message requests",
        tags=["Chat - Message Requests"],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=["get"])
    def count(self, request):
        return Response({"count": MessageRequestService.pending_count(request.user)})

    @extend_schema(
        operation_id="list_sent_message_requests",
        summary="Message requests sent by the current user",
        tags=["Chat - Message Requests"],
        responses={200: MessageRequestSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def sent(self, request):
        return self._paginated(MessageRequestService.sent_requests(request.user))

    @extend_schema(
        operation_id="list_message_request_messages",
        summary="Messages held by a request",
        tags=["Chat - Message Requests"],
        responses={200: MessageSerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        result = MessageRequestService.pending_messages(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(MessageSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="accept_message_request",
        summary="Accept message request",
        tags=["Chat - Message Requests"],
        request=None,
        responses={200: ConversationSerializer},
    )
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        result = MessageRequestService.accept(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(
            {
                "request": MessageRequestSerializer(result.data.request).data,
                "conversation": ConversationSerializer(result.data.conversation).data,
            }
        )

    @extend_schema(
        operation_id="reject_message_request",
        summary="Reject message request",
        tags=["Chat - Message Requests"],
        request=None,
        responses={200: MessageRequestSerializer},
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        result = MessageRequestService.reject(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(MessageRequestSerializer(result.data).data)

    @extend_schema(
        operation_id="ignore_message_request",
        summary="Ignore message request",
        tags=["Chat - Message Requests"],
        request=None,
        responses={200: MessageRequestSerializer},
    )
    @action(detail=True, methods=["post"])
    def ignore(self, request, pk=None):
        result = MessageRequestService.ignore(pk, request.user)
        if not result.success:
            return failure_response(result)
        return Response(MessageRequestSerializer(result.data).data)

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(
                MessageRequestSerializer(page, many=True).data
            )
        return Response(MessageRequestSerializer(queryset, many=True).data)


# =============================================================================
# AI Assistant
# =============================================================================


class AIConversationView(ApplicationErrorMixin, APIView):
    """
    POST: Find or create the current user's conversation with the assistant.

    URL: /api/v1/chat/ai/conversation/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_or_create_ai_conversation",
        summary="Conversation with the AI assistant",
        tags=["Chat - AI"],
        request=None,
        responses={200: ConversationSerializer},
    )
    def post(self, request):
        result = AIChatService.get_or_create_conversation(request.user)
        if not result.success:
            return failure_response(result)
        return Response(ConversationSerializer(result.data).data)


# =============================================================================
# Chat Migration (admin)
# =============================================================================


class MigrationToConversationsView(APIView):
    """
    POST: Run phase 1 of the chat migration (backfill conversations).

    Responds with plain text, as operators trigger it from a terminal.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="migrate_chat_to_conversations",
        summary="Backfill conversations from legacy messages",
        tags=["Admin - Migration"],
        request=None,
        responses={200: OpenApiTypes.STR, 500: OpenApiTypes.STR},
    )
    def post(self, request):
        try:
            report = ChatMigrationService.migrate_to_conversations()
        except (DatabaseError, BaseApplicationError) as e:
            result = ChatMigrationService.handle_exception(e, "Chat migration failed")
        else:
            result = ServiceResult.success(report)

        if not result:
            return HttpResponse(
                f"Migration failed: {result.error}",
                content_type="text/plain",
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return HttpResponse(
            f"Migration completed successfully! {result.data.summary()}",
            content_type="text/plain",
        )


class MigrationCleanupView(APIView):
    """POST: Run phase 2 of the chat migration (clear deprecated fields)."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="cleanup_legacy_chat_fields",
        summary="Clear deprecated legacy message fields",
        tags=["Admin - Migration"],
        request=None,
        responses={200: OpenApiTypes.STR, 500: OpenApiTypes.STR},
    )
    def post(self, request):
        try:
            report = ChatMigrationService.cleanup_deprecated_fields()
        except (DatabaseError, BaseApplicationError) as e:
            result = ChatMigrationService.handle_exception(e, "Chat cleanup failed")
        else:
            result = ServiceResult.success(report)

        if not result:
            return HttpResponse(
                f"Migration failed: {result.error}",
                content_type="text/plain",
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return HttpResponse(
            f"Cleanup completed successfully! {result.data.summary()}",
            content_type="text/plain",
        )
