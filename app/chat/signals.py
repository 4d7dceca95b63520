"""
Django signals for the chat app.

Custom signals:
    message_delivery_requested: Push-notification hand-off point. Sent once
        per recipient by chat.tasks.send_message_notifications. Collaborators
        that deliver push notifications connect here; nothing in this project
        delivers pushes itself.
        kwargs: message_id, conversation_id, recipient_id, preview

    message_reparent_skipped: A reparent found a message already owned by a
        different conversation and left it untouched.
        kwargs: message_id, current_conversation_id, target_conversation_id

Related files:
    - tasks.py: Sends message_delivery_requested
    - services.py: Sends message_reparent_skipped
"""

from django.dispatch import Signal

message_delivery_requested = Signal()

message_reparent_skipped = Signal()
