"""
Tests for WebSocket JWT authentication middleware.
"""

from datetime import timedelta

import pytest
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.middleware import (
    get_token_from_header,
    get_token_from_query,
    get_user_from_token,
)


class TestTokenExtraction:
    def test_query_string(self):
        scope = {"query_string": b"token=abc.def.ghi&foo=bar"}

        assert get_token_from_query(scope) == "abc.def.ghi"

    def test_empty_query_token(self):
        assert get_token_from_query({"query_string": b"token="}) is None

    def test_missing_query_string(self):
        assert get_token_from_query({}) is None

    def test_bearer_header(self):
        scope = {"headers": [(b"Authorization", b"Bearer abc.def.ghi")]}

        assert get_token_from_header(scope) == "abc.def.ghi"

    @pytest.mark.parametrize(
        "value", [b"Token abc", b"Bearer", b"Bearer a b"]
    )
    def test_malformed_header(self, value):
        assert get_token_from_header({"headers": [(b"authorization", value)]}) is None


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestGetUserFromToken:
    async def test_valid_token(self, alice):
        user = await get_user_from_token(str(AccessToken.for_user(alice)))

        assert user.id == alice.id

    async def test_garbage_token(self):
        assert isinstance(await get_user_from_token("garbage"), AnonymousUser)

    async def test_expired_token(self, alice):
        token = AccessToken.for_user(alice)
        token.set_exp(lifetime=-timedelta(minutes=1))

        assert isinstance(await get_user_from_token(str(token)), AnonymousUser)

    async def test_inactive_user(self, inactive_user):
        token = str(AccessToken.for_user(inactive_user))

        assert isinstance(await get_user_from_token(token), AnonymousUser)

    async def test_deleted_user(self, deleted_user_token):
        assert isinstance(await get_user_from_token(deleted_user_token), AnonymousUser)


@pytest.fixture
def inactive_user(db):
    return UserFactory(is_active=False)


@pytest.fixture
def deleted_user_token(db):
    user = UserFactory()
    token = str(AccessToken.for_user(user))
    user.delete()
    return token
