"""
Celery tasks for chat app.

This module defines async tasks for:
- Push-notification hand-off after a message was fanned out
- Lazy refresh of member display data after a profile change
- Background runs of the chat migration

Related files:
    - dispatch.py: Queues send_message_notifications after fan-out
    - signals.py: message_delivery_requested
    - migration.py: ChatMigrationService

Usage:
    from chat.tasks import send_message_notifications

    send_message_notifications.delay(message_id, recipient_ids)
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def send_message_notifications(message_id: str, recipient_ids: list[str]) -> int:
    """
    Hand a delivered message over to push notification collaborators.

    Sends message_delivery_requested once per recipient other than the
    sender. Delivering the push itself is not done here. A failing receiver
    is logged and does not stop the remaining recipients.

    Args:
        message_id: ID of the message
        recipient_ids: Users whose sessions the message was fanned out to

    Returns:
        Number of recipients handed off
    """
    from chat.models import Message
    from chat.services import ConversationService
    from chat.signals import message_delivery_requested

    try:
        message = Message.objects.get(id=message_id)
    except Message.DoesNotExist:
        logger.error(f"Message {message_id} not found for push hand-off")
        return 0

    preview = ConversationService.list_preview(message)
    handed_off = 0
    for recipient_id in recipient_ids:
        if str(recipient_id) == str(message.sender_id):
            continue
        responses = message_delivery_requested.send_robust(
            sender=Message,
            message_id=str(message.id),
            conversation_id=str(message.conversation_id) if message.conversation_id else None,
            recipient_id=str(recipient_id),
            preview=preview,
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.warning(
                    f"Push receiver {receiver} failed for message {message_id} "
                    f"to user {recipient_id}: {response}"
                )
        handed_off += 1

    logger.debug(f"Push hand-off for message {message_id}: {handed_off} recipient(s)")
    return handed_off


@shared_task
def refresh_member_profiles(user_id: int) -> int:
    """
    Copy a user's current username/avatar/verified badge onto their
    active conversation memberships.

    Returns:
        Number of membership rows updated
    """
    from authentication.models import User
    from chat.services import ConversationService

    try:
        user = User.objects.select_related("profile").get(id=user_id)
    except User.DoesNotExist:
        logger.warning(f"User {user_id} not found for member profile refresh")
        return 0

    updated = ConversationService.refresh_member_profile(user)
    logger.info(f"Refreshed {updated} chat membership(s) for user {user_id}")
    return updated


@shared_task
def run_chat_migration(cleanup: bool = False) -> dict:
    """
    Run the chat migration in the background.

    Args:
        cleanup: Run phase 2 (clear deprecated legacy fields) instead of
            phase 1 (backfill conversations)

    Returns:
        The report counters as a dict
    """
    from dataclasses import asdict

    from chat.migration import ChatMigrationService

    if cleanup:
        report = ChatMigrationService.cleanup_deprecated_fields()
    else:
        report = ChatMigrationService.migrate_to_conversations()
    return asdict(report)
