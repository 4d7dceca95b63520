"""
WebSocket consumers for the chat application.

This module implements the WebSocket surface of the real-time dispatcher:
sockets join channel layer groups, and chat.dispatch sends persisted
messages to those groups after commit.

Consumers:
    UserInboxConsumer: ws/inbox/ - every message and notice for the user,
        across all of their conversations and message requests
    ChatConsumer: ws/chat/<conversation_id>/ - one conversation

Authentication:
    chat.middleware.JWTAuthMiddleware attaches the user to self.scope["user"]
    before connect() runs.

Close Codes:
    4001: Not authenticated
    4003: Not a member of the conversation
    4004: Conversation does not exist

Message Types (from client):
    - message: Send a new message ({"type": "message", "content": "Hi"})
    - typing: Typing indicator (ChatConsumer only)
    - read: Mark one message, or the whole conversation, as read

Message Types (to client):
    - message: New message in a conversation
    - request_message: New message waiting behind a message request
    - notice: Request accepted, conversation deleted, message read
    - typing: Another member is typing
    - member_removed: A member left the group (ChatConsumer only)
    - error: The last client frame failed

A ChatConsumer whose user is removed from the group is closed with 4003;
one whose group is archived is closed with 4004.
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from core.exceptions import BaseApplicationError

from core.services import ServiceResult

from chat.constants import REALTIME_CONFIG, conversation_group, user_group
from chat.models import MessageType
from chat.services import ConversationService, MessageService, SendMessageService

logger = logging.getLogger(__name__)


def _is_authenticated(user) -> bool:
    return bool(user) and not isinstance(user, AnonymousUser) and user.is_authenticated


class ChatEventsMixin:
    """Relays channel layer events to the WebSocket client."""

    async def chat_message(self, event):
        await self.send_json(
            {
                "type": "message",
                "conversation_id": event["conversation_id"],
                "message": event["message"],
            }
        )

    async def chat_request_message(self, event):
        await self.send_json(
            {
                "type": "request_message",
                "request": event["request"],
                "message": event["message"],
            }
        )

    async def chat_notice(self, event):
        await self.send_json(
            {
                "type": "notice",
                "event": event["event"],
                "data": event["data"],
            }
        )

    async def send_error(self, error: str, error_code: str = "INVALID_FRAME"):
        await self.send_json({"type": "error", "error": error, "error_code": error_code})

    async def send_result_error(self, result: ServiceResult):
        """Report a failed service call on the socket. Successes send nothing."""
        if not result.success:
            await self.send_error(result.error, result.error_code)


class UserInboxConsumer(ChatEventsMixin, AsyncJsonWebsocketConsumer):
    """
    Private per-user socket.

    Joins the user's private group, so every device the user has connected
    receives the user's messages, request messages and notices. Clients may
    also send first-contact messages here:
        {"type": "message", "receiver_id": 7, "content": "Hi"}
    """

    group_name: str | None = None

    async def connect(self):
        user = self.scope.get("user")
        if not _is_authenticated(user):
            logger.warning("Rejected unauthenticated inbox connection")
            await self.close(code=REALTIME_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"User {user.id} connected to inbox")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(f"User {self.scope['user'].id} disconnected from inbox")

    async def receive_json(self, content, **kwargs):
        frame_type = content.get("type")
        if frame_type != "message":
            await self.send_error(f"Unknown message type: {frame_type}")
            return

        receiver_id = content.get("receiver_id")
        if not receiver_id:
            await self.send_error("receiver_id is required")
            return

        try:
            await self.send_result_error(await self._send(receiver_id, content))
        except BaseApplicationError as e:
            await self.send_json({"type": "error", **e.to_dict()})

    @database_sync_to_async
    def _send(self, receiver_id, content: dict):
        return SendMessageService.send(
            sender=self.scope["user"],
            receiver_id=receiver_id,
            message_type=content.get("message_type") or MessageType.TEXT,
            content=content.get("content", ""),
            media_url=content.get("media_url") or "",
            reply_to_id=content.get("reply_to_id"),
        )


class ChatConsumer(ChatEventsMixin, AsyncJsonWebsocketConsumer):
    """
    Socket bound to one conversation.

    Attributes:
        conversation_id: UUID of the connected conversation
        room_group_name: Broadcast topic of the conversation
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.conversation_id = None
        self.room_group_name: str | None = None

    async def connect(self):
        """
        Validates:
            1. User is authenticated
            2. Conversation exists
            3. User is an active member

        On success, joins the conversation topic and accepts.
        """
        self.conversation_id = self.scope["url_route"]["kwargs"]["conversation_id"]
        user = self.scope.get("user")

        if not _is_authenticated(user):
            logger.warning(
                f"Rejected unauthenticated connection to conversation {self.conversation_id}"
            )
            await self.close(code=REALTIME_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        access = await self._check_access(user)
        if access == "missing":
            logger.warning(
                f"User {user.id} tried to connect to non-existent "
                f"conversation {self.conversation_id}"
            )
            await self.close(code=REALTIME_CONFIG.CLOSE_NOT_FOUND)
            return
        if access == "forbidden":
            logger.warning(
                f"User {user.id} is not a member of conversation {self.conversation_id}"
            )
            await self.close(code=REALTIME_CONFIG.CLOSE_FORBIDDEN)
            return

        self.room_group_name = conversation_group(self.conversation_id)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()
        logger.info(f"User {user.id} connected to conversation {self.conversation_id}")

    async def disconnect(self, close_code):
        if self.room_group_name:
            await self.channel_layer.group_discard(
                self.room_group_name,
                self.channel_name,
            )
            logger.info(
                f"User {self.scope['user'].id} disconnected from "
                f"conversation {self.conversation_id}"
            )

    async def receive_json(self, content, **kwargs):
        """
        Expected frames:
            {"type": "message", "content": "Hello!"}
            {"type": "message", "content": "Reply", "reply_to_id": "<uuid>"}
            {"type": "typing", "is_typing": true}
            {"type": "read", "message_id": "<uuid>"}
            {"type": "read"}  (whole conversation)
        """
        frame_type = content.get("type")
        user = self.scope["user"]

        try:
            if frame_type == "message":
                # Fan-out (including the echo to this socket) comes from the
                # dispatcher once the message is committed.
                await self.send_result_error(await self._send_message(user, content))
            elif frame_type == "typing":
                await self.channel_layer.group_send(
                    self.room_group_name,
                    {
                        "type": "chat.typing",
                        "user_id": user.id,
                        "is_typing": bool(content.get("is_typing", False)),
                    },
                )
            elif frame_type == "read":
                await self.send_result_error(
                    await self._mark_read(user, content.get("message_id"))
                )
            else:
                await self.send_error(f"Unknown message type: {frame_type}")
        except BaseApplicationError as e:
            await self.send_json({"type": "error", **e.to_dict()})

    async def chat_typing(self, event):
        """Typing indicator, not echoed to the typist."""
        user = self.scope.get("user")
        if user and user.id == event["user_id"]:
            return

        await self.send_json(
            {
                "type": "typing",
                "user_id": event["user_id"],
                "is_typing": event["is_typing"],
            }
        )

    async def chat_message(self, event):
        if self.room_group_name is None:
            return
        await super().chat_message(event)

    async def chat_member_removed(self, event):
        """
        A member left the group. The removed user's socket leaves the topic
        and closes; everybody else is told who left.
        """
        user = self.scope.get("user")
        if str(event["user_id"]) != str(user.id):
            await self.send_json({"type": "member_removed", "user_id": event["user_id"]})
            return

        await self._leave_room()
        logger.info(
            f"User {user.id} removed from conversation {self.conversation_id}, "
            f"closing socket"
        )
        await self.close(code=REALTIME_CONFIG.CLOSE_FORBIDDEN)

    async def chat_conversation_archived(self, event):
        await self._leave_room()
        await self.close(code=REALTIME_CONFIG.CLOSE_NOT_FOUND)

    async def _leave_room(self):
        if self.room_group_name:
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)
            self.room_group_name = None

    @database_sync_to_async
    def _check_access(self, user) -> str:
        result = ConversationService.get_by_id(self.conversation_id)
        if not result.success:
            return "missing"
        return "ok" if result.data.is_member(user) else "forbidden"

    @database_sync_to_async
    def _send_message(self, user, content: dict):
        return SendMessageService.send_to_conversation(
            user,
            self.conversation_id,
            message_type=content.get("message_type") or MessageType.TEXT,
            content=content.get("content", ""),
            media_url=content.get("media_url") or "",
            reply_to_id=content.get("reply_to_id"),
        )

    @database_sync_to_async
    def _mark_read(self, user, message_id):
        if message_id:
            return MessageService.mark_read(message_id, user)
        return MessageService.mark_conversation_read(self.conversation_id, user)
