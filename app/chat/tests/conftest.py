"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures for the usual cast (alice, bob, carol)
- Conversation fixtures (direct and group)
- API client helpers for authenticated requests
- Channel layer helpers for asserting real-time fan-out

Usage:
    def test_example(direct_conversation, alice_client):
        response = alice_client.get(f'/api/v1/chat/conversations/{direct_conversation.id}/')
        assert response.status_code == 200
"""

import pytest
from asgiref.sync import async_to_sync
from channels.layers import channel_layers, get_channel_layer
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import DirectConversationFactory, GroupConversationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(profile__username="alice")


@pytest.fixture
def bob(db):
    return UserFactory(profile__username="bob")


@pytest.fixture
def carol(db):
    return UserFactory(profile__username="carol")


@pytest.fixture
def staff_user(db):
    """Staff user for admin-only endpoints."""
    return UserFactory(is_staff=True, profile__username="staff")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct_conversation(alice, bob):
    """Direct conversation created by alice with bob."""
    return DirectConversationFactory(created_by=alice, other=bob)


@pytest.fixture
def group_conversation(alice, bob, carol):
    """Group with alice as ADMIN and bob, carol as members."""
    return GroupConversationFactory(
        created_by=alice, members=[bob, carol], name="Weekend plans"
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
            response = client.get('/api/v1/chat/conversations/')
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def alice_client(authenticated_client_factory, alice):
    return authenticated_client_factory(alice)


@pytest.fixture
def bob_client(authenticated_client_factory, bob):
    return authenticated_client_factory(bob)


@pytest.fixture
def carol_client(authenticated_client_factory, carol):
    return authenticated_client_factory(carol)


@pytest.fixture
def staff_client(authenticated_client_factory, staff_user):
    return authenticated_client_factory(staff_user)


# =============================================================================
# Channel Layer Fixtures
# =============================================================================


@pytest.fixture
def channel_layer():
    """
    Fresh in-memory channel layer for the test.

    The layer is a process-wide singleton, so it is reset before and after
    each test that uses it.
    """
    channel_layers.backends.clear()
    layer = get_channel_layer()
    yield layer
    channel_layers.backends.clear()


@pytest.fixture
def subscribe(channel_layer):
    """
    Join a group on a new channel and return a reader for it.

    Usage:
        read = subscribe("user_1")
        ...
        event = read()
    """

    def _subscribe(group):
        channel = async_to_sync(channel_layer.new_channel)()
        async_to_sync(channel_layer.group_add)(group, channel)

        def _read():
            return async_to_sync(channel_layer.receive)(channel)

        def _pending():
            queue = channel_layer.channels.get(channel)
            return queue.qsize() if queue is not None else 0

        _read.pending = _pending
        return _read

    return _subscribe
