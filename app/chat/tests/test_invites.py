"""
Tests for group invite links (ConversationInviteService).

This module tests:
- create_or_rotate: one active link per group, validation
- get_latest / set_active / revoke
- join_by_token: joining, usage limits, expiry, dead groups
"""

from datetime import timedelta

from django.utils import timezone
from freezegun import freeze_time

from authentication.tests.factories import UserFactory
from chat.constants import REALTIME_CONFIG, user_group
from chat.models import ConversationInviteLink
from chat.services import ConversationInviteService, ConversationService


class TestCreateOrRotate:
    def test_creates_active_link(self, group_conversation, alice):
        result = ConversationInviteService.create_or_rotate(
            group_conversation, alice, max_uses=3
        )

        assert result.success is True
        link = result.data
        assert link.is_active is True
        assert link.created_by == alice
        assert link.max_uses == 3
        assert link.used_count == 0
        assert len(link.token) == 32

    def test_rotating_deactivates_previous_link(self, group_conversation, alice):
        old = ConversationInviteService.create_or_rotate(group_conversation, alice).data

        new = ConversationInviteService.create_or_rotate(group_conversation, alice).data

        old.refresh_from_db()
        assert old.is_active is False
        assert old.revoked_by == alice
        assert new.token != old.token
        assert ConversationInviteLink.objects.filter(is_active=True).get() == new

    def test_expiry_must_be_in_the_future(self, group_conversation, alice):
        result = ConversationInviteService.create_or_rotate(
            group_conversation, alice, expires_at=timezone.now() - timedelta(minutes=1)
        )

        assert result.error_code == "INVALID_EXPIRY"
        assert not ConversationInviteLink.objects.exists()

    def test_direct_conversations_have_no_links(self, direct_conversation, alice):
        result = ConversationInviteService.create_or_rotate(direct_conversation, alice)

        assert result.error_code == "NOT_GROUP"

    def test_outsider_cannot_create(self, group_conversation):
        result = ConversationInviteService.create_or_rotate(group_conversation, UserFactory())

        assert result.error_code == "NOT_PARTICIPANT"

    def test_members_are_notified(
        self, group_conversation, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        bob_inbox = subscribe(user_group(bob.id))

        with django_capture_on_commit_callbacks(execute=True):
            ConversationInviteService.create_or_rotate(group_conversation, alice)

        assert bob_inbox()["event"] == REALTIME_CONFIG.NOTICE_INVITE_LINK_CREATED


class TestLatestAndSwitches:
    def test_get_latest_without_link(self, group_conversation, bob):
        result = ConversationInviteService.get_latest(group_conversation, bob)

        assert result.error_code == "INVITE_LINK_NOT_FOUND"

    def test_get_latest_returns_inactive_link_too(self, group_conversation, alice, bob):
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data
        ConversationInviteService.revoke(group_conversation, alice)

        result = ConversationInviteService.get_latest(group_conversation, bob)

        assert result.data.id == link.id
        assert result.data.is_active is False

    def test_set_active_needs_a_link(self, group_conversation, alice):
        result = ConversationInviteService.set_active(group_conversation, alice, True)

        assert result.error_code == "INVITE_LINK_NOT_FOUND"
        assert result.error == "No invite link found. Please create one first."

    def test_set_active_toggles_revocation_fields(self, group_conversation, alice):
        ConversationInviteService.create_or_rotate(group_conversation, alice)

        off = ConversationInviteService.set_active(group_conversation, alice, False).data
        assert off.is_active is False
        assert off.revoked_by == alice
        assert off.revoked_at is not None

        on = ConversationInviteService.set_active(group_conversation, alice, True).data
        assert on.is_active is True
        assert on.revoked_by is None
        assert on.revoked_at is None

    def test_revoke_counts_deactivated_links(self, group_conversation, alice):
        ConversationInviteService.create_or_rotate(group_conversation, alice)

        assert ConversationInviteService.revoke(group_conversation, alice).data == 1
        assert ConversationInviteService.revoke(group_conversation, alice).data == 0


class TestJoinByToken:
    def test_joins_group(self, group_conversation, alice):
        dave = UserFactory()
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data

        result = ConversationInviteService.join_by_token(link.token, dave)

        link.refresh_from_db()
        group_conversation.refresh_from_db()
        assert result.data == group_conversation
        assert group_conversation.is_member(dave)
        assert str(dave.id) in group_conversation.participants_normalized
        assert link.used_count == 1

    def test_existing_member_does_not_use_the_link(self, group_conversation, alice, bob):
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data

        result = ConversationInviteService.join_by_token(link.token, bob)

        link.refresh_from_db()
        assert result.success is True
        assert link.used_count == 0

    def test_last_use_switches_link_off(self, group_conversation, alice):
        link = ConversationInviteService.create_or_rotate(
            group_conversation, alice, max_uses=1
        ).data

        ConversationInviteService.join_by_token(link.token, UserFactory())
        result = ConversationInviteService.join_by_token(link.token, UserFactory())

        link.refresh_from_db()
        assert link.is_active is False
        assert link.used_count == 1
        assert result.error_code == "INVALID_INVITE_LINK"

    def test_exhausted_link_is_reported_and_switched_off(self, group_conversation, alice):
        link = ConversationInviteService.create_or_rotate(
            group_conversation, alice, max_uses=2
        ).data
        ConversationInviteLink.objects.filter(pk=link.pk).update(used_count=2)

        result = ConversationInviteService.join_by_token(link.token, UserFactory())

        link.refresh_from_db()
        assert result.error_code == "INVITE_LINK_EXHAUSTED"
        assert link.is_active is False

    def test_expired_link(self, group_conversation, alice):
        with freeze_time("2025-03-01 09:00:00"):
            link = ConversationInviteService.create_or_rotate(
                group_conversation,
                alice,
                expires_at=timezone.now() + timedelta(hours=1),
            ).data

        with freeze_time("2025-03-01 11:00:00"):
            result = ConversationInviteService.join_by_token(link.token, UserFactory())

        link.refresh_from_db()
        assert result.error_code == "INVITE_LINK_EXPIRED"
        assert link.is_active is False

    def test_unknown_token(self, db):
        result = ConversationInviteService.join_by_token("0" * 32, UserFactory())

        assert result.error_code == "INVALID_INVITE_LINK"
        assert result.error == "Invalid or expired invite link"

    def test_archived_group_cannot_be_joined(self, group_conversation, alice):
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data
        ConversationInviteLink.objects.filter(pk=link.pk).update(is_active=True)
        group_conversation.soft_delete()

        result = ConversationInviteService.join_by_token(link.token, UserFactory())

        assert result.error_code == "INVALID_INVITE_LINK"

    def test_members_hear_about_the_join(
        self, group_conversation, alice, subscribe, django_capture_on_commit_callbacks
    ):
        dave = UserFactory()
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data
        alice_inbox = subscribe(user_group(alice.id))

        with django_capture_on_commit_callbacks(execute=True):
            ConversationInviteService.join_by_token(link.token, dave)

        notice = alice_inbox()
        assert notice["event"] == REALTIME_CONFIG.NOTICE_MEMBER_JOINED
        assert notice["data"]["user_id"] == str(dave.id)

    def test_left_member_can_rejoin(self, group_conversation, alice, bob):
        ConversationService.remove_member(group_conversation, bob.id)
        link = ConversationInviteService.create_or_rotate(group_conversation, alice).data

        ConversationInviteService.join_by_token(link.token, bob)

        assert group_conversation.is_member(bob)
