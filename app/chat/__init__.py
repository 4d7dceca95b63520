"""
Chat app for direct and group messaging.

This app handles:
- Conversations (direct and group) and their member lists
- Message sending, history and read receipts
- Message requests between users without an open conversation
- WebSocket real-time updates
- The legacy chat migration (admin endpoints and migrate_chat command)

Related apps:
    - authentication: User model and profile display data for members

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.
    See dispatch.py for server-side fan-out.

Usage:
    from chat.services import SendMessageService

    # Delivers directly when a conversation is open, otherwise
    # files the message behind a message request
    result = SendMessageService.send(
        sender=user,
        receiver_id=other_user.id,
        message_type="text",
        content="Hello!",
    )
"""
