"""
Real-time fan-out of persisted messages.

Delivery goes through the Channels layer:
    - user_<id>: private address of a user, joined by every inbox socket
      the user has open (all devices)
    - chat_<conversation_id>: broadcast topic, joined by sockets opened on
      one conversation

Guarantees:
    - Fan-out is registered with transaction.on_commit, so the message is
      committed before anybody is told about it and a delivery failure can
      never roll the write back.
    - Each address is sent to separately. A failing send is logged and
      skipped; the other addresses still receive the event.
    - Sends for one message are issued sequentially and messages are
      dispatched in commit order, so one session sees a conversation's
      messages in persistence order.
    - Best effort only: offline users read the message on next fetch.

Usage:
    from chat.dispatch import MessageDispatcher

    MessageDispatcher.dispatch_message(message)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from core.services import BaseService

from chat.constants import REALTIME_CONFIG, conversation_group, user_group

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Conversation, Message, MessageRequest

logger = logging.getLogger(__name__)


class MessageDispatcher(BaseService):
    """
    Fans out persisted messages and chat notices to connected sessions.

    Methods:
        dispatch_message: Conversation message to every member and the topic
        dispatch_request_message: Pending message to sender and receiver
        dispatch_event: Small event (accepted request, read receipt, ...)
        dispatch_member_removed: Membership ended; the member's sockets close
        dispatch_conversation_archived: Group disbanded; every socket closes
    """

    @classmethod
    def dispatch_message(cls, message: Message) -> None:
        """
        Deliver a conversation message after the surrounding transaction
        commits.

        Every active member's private address receives the event, the
        sender's included, which echoes the message to the sender's other
        devices.
        """
        from chat.serializers import MessageSerializer

        conversation = message.conversation
        recipient_ids = conversation.participant_ids()
        payload = dict(MessageSerializer(message).data)
        event = {
            "type": REALTIME_CONFIG.EVENT_MESSAGE,
            "conversation_id": str(conversation.id),
            "message": payload,
        }
        groups = [user_group(user_id) for user_id in recipient_ids]
        groups.append(conversation_group(conversation.id))

        message_id = str(message.id)
        transaction.on_commit(
            lambda: cls._fan_out(groups, event, message_id, recipient_ids)
        )

    @classmethod
    def dispatch_request_message(
        cls, message: Message, message_request: MessageRequest
    ) -> None:
        """Deliver a message waiting behind a request to both parties."""
        from chat.serializers import MessageRequestSerializer, MessageSerializer

        event = {
            "type": REALTIME_CONFIG.EVENT_REQUEST_MESSAGE,
            "request": dict(MessageRequestSerializer(message_request).data),
            "message": dict(MessageSerializer(message).data),
        }
        groups = [
            user_group(message_request.sender_id),
            user_group(message_request.receiver_id),
        ]
        message_id = str(message.id)
        transaction.on_commit(
            lambda: cls._fan_out(
                groups, event, message_id, [message_request.receiver_id]
            )
        )

    @classmethod
    def dispatch_event(cls, user_ids: Iterable, event_type: str, payload: dict) -> None:
        """Send a small chat event to the private address of each user."""
        event = {
            "type": REALTIME_CONFIG.EVENT_NOTICE,
            "event": event_type,
            "data": payload,
        }
        groups = [user_group(user_id) for user_id in dict.fromkeys(user_ids)]
        transaction.on_commit(lambda: cls._send_all(groups, event))

    @classmethod
    def dispatch_member_removed(
        cls, conversation: Conversation, user_id, notify_ids: Iterable
    ) -> None:
        """
        Announce that user_id left the conversation.

        The conversation topic hears it first, so sockets the removed user
        opened on the conversation leave the topic before any later message
        is fanned out. The removed user and notify_ids then get a notice.
        """
        event = {
            "type": REALTIME_CONFIG.EVENT_MEMBER_REMOVED,
            "conversation_id": str(conversation.id),
            "user_id": str(user_id),
        }
        group = conversation_group(conversation.id)
        transaction.on_commit(lambda: cls._send_all([group], event))
        cls.dispatch_event(
            [user_id, *notify_ids],
            REALTIME_CONFIG.NOTICE_MEMBER_REMOVED,
            {"conversation_id": str(conversation.id), "user_id": str(user_id)},
        )

    @classmethod
    def dispatch_conversation_archived(
        cls, conversation: Conversation, member_ids: Iterable
    ) -> None:
        """Close every socket on an archived conversation and notify its members."""
        event = {
            "type": REALTIME_CONFIG.EVENT_CONVERSATION_ARCHIVED,
            "conversation_id": str(conversation.id),
        }
        group = conversation_group(conversation.id)
        transaction.on_commit(lambda: cls._send_all([group], event))
        cls.dispatch_event(
            member_ids,
            REALTIME_CONFIG.NOTICE_CONVERSATION_ARCHIVED,
            {"conversation_id": str(conversation.id)},
        )

    @classmethod
    def _fan_out(
        cls, groups: list[str], event: dict, message_id: str, recipient_ids: list
    ) -> None:
        delivered = cls._send_all(groups, event)
        cls.get_logger().debug(
            f"Message {message_id} fanned out to {delivered}/{len(groups)} addresses"
        )
        cls._hand_off_push(message_id, recipient_ids)

    @classmethod
    def _send_all(cls, groups: list[str], event: dict) -> int:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            cls.get_logger().warning("No channel layer configured, skipping fan-out")
            return 0

        delivered = 0
        for group in groups:
            if cls._send(channel_layer, group, event):
                delivered += 1
        return delivered

    @classmethod
    def _send(cls, channel_layer, group: str, event: dict) -> bool:
        """Send to one address; a failure here must not reach the sender."""
        try:
            async_to_sync(channel_layer.group_send)(group, event)
        except Exception as e:
            cls.get_logger().warning(
                f"Failed to deliver {event['type']} to {group}: {type(e).__name__}: {e}"
            )
            return False
        return True

    @classmethod
    def _hand_off_push(cls, message_id: str, recipient_ids: list) -> None:
        from chat.tasks import send_message_notifications

        try:
            send_message_notifications.delay(
                message_id, [str(user_id) for user_id in recipient_ids]
            )
        except Exception as e:
            cls.get_logger().warning(
                f"Could not queue push hand-off for message {message_id}: {e}"
            )
