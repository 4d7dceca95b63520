"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections. The handshake is
authenticated before any consumer sees the connection.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods (in order of precedence):
    1. Query string: ws://host/ws/chat/<id>/?token=<jwt_token>
    2. Header: Authorization: Bearer <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def get_token_from_query(scope) -> str | None:
    """Extract token from the query string."""
    query_string = scope.get("query_string", b"").decode()
    token_list = parse_qs(query_string).get("token", [])
    return token_list[0] if token_list and token_list[0] else None


def get_token_from_header(scope) -> str | None:
    """Extract token from an "Authorization: Bearer <token>" header."""
    for name, value in scope.get("headers", []):
        if name.lower() != b"authorization":
            continue
        parts = value.decode("latin-1").split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return None


@database_sync_to_async
def get_user_from_token(token: str):
    """
    Validate a JWT access token and load its user.

    Returns:
        User instance if the token is valid and the user is active,
        AnonymousUser otherwise
    """
    User = get_user_model()

    try:
        access_token = AccessToken(token)
        user_id = access_token[api_settings.USER_ID_CLAIM]
        user = User.objects.get(id=user_id)
    except TokenError as e:
        logger.warning(f"Invalid JWT token on WebSocket handshake: {e}")
        return AnonymousUser()
    except KeyError:
        logger.warning("JWT token on WebSocket handshake has no user claim")
        return AnonymousUser()
    except User.DoesNotExist:
        logger.warning("User not found for WebSocket token")
        return AnonymousUser()

    if not user.is_active:
        logger.warning(f"Inactive user attempted WebSocket connection: {user.id}")
        return AnonymousUser()

    return user


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the bearer token, validates it and attaches the user to the
    scope. Consumers reject AnonymousUser with close code 4001.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = get_token_from_query(scope) or get_token_from_header(scope)

        if token:
            scope["user"] = await get_user_from_token(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)
