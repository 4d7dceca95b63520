"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/inbox/ - Private socket for everything addressed to the user
    ws/chat/<conversation_id>/ - Connect to a specific conversation

Authentication:
    JWT token is passed as query parameter (?token=<jwt_access_token>) or
    as an Authorization: Bearer header. JWTAuthMiddleware validates it and
    attaches the user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path(
        "ws/inbox/",
        consumers.UserInboxConsumer.as_asgi(),
    ),
    path(
        "ws/chat/<uuid:conversation_id>/",
        consumers.ChatConsumer.as_asgi(),
    ),
]
