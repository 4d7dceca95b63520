"""
Tests for chat API views.

This module tests:
- Conversation endpoints (list, detail, direct, group, delete, theme)
- Message endpoints (send, history, read receipts)
- Message request endpoints (inbox, decisions)
- Short DELETE /api/v1/conversations/{id}?userId=
- Group archive and invite link endpoints
- Admin migration endpoints
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.utils import timezone
from rest_framework import status

from authentication.tests.factories import UserFactory
from chat.models import (
    Conversation,
    ConversationInviteLink,
    LegacyMessage,
    Message,
    MessageRequest,
    RequestStatus,
)
from chat.services import ConversationService, SendMessageService
from chat.tests.factories import (
    DirectConversationFactory,
    LegacyMessageFactory,
    MessageFactory,
)

CHAT_URL = "/api/v1/chat"


# =============================================================================
# Conversations
# =============================================================================


class TestConversationList:
    def test_requires_authentication(self, api_client):
        response = api_client.get(f"{CHAT_URL}/conversations/")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_lists_own_conversations(
        self, alice_client, direct_conversation, group_conversation
    ):
        DirectConversationFactory()  # someone else's

        response = alice_client.get(f"{CHAT_URL}/conversations/")

        assert response.status_code == status.HTTP_200_OK
        ids = {item["id"] for item in response.data["results"]}
        assert ids == {str(direct_conversation.id), str(group_conversation.id)}

    def test_includes_members_and_preview(self, alice_client, direct_conversation, bob):
        message = MessageFactory(conversation=direct_conversation, sender=bob, content="yo")
        ConversationService.update_last_message(direct_conversation, message)

        response = alice_client.get(f"{CHAT_URL}/conversations/")

        item = response.data["results"][0]
        assert item["last_message"]["content"] == "yo"
        assert item["last_message"]["sender_id"] == bob.id
        assert {m["username"] for m in item["members"]} == {"alice", "bob"}


class TestConversationDetail:
    def test_member_can_view(self, bob_client, group_conversation, alice):
        response = bob_client.get(f"{CHAT_URL}/conversations/{group_conversation.id}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["name"] == "Weekend plans"
        assert response.data["admins"] == [alice.id]

    def test_non_member_is_forbidden(self, carol_client, direct_conversation):
        response = carol_client.get(f"{CHAT_URL}/conversations/{direct_conversation.id}/")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_conversation(self, alice_client):
        response = alice_client.get(
            f"{CHAT_URL}/conversations/00000000-0000-0000-0000-000000000000/"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CONVERSATION_NOT_FOUND"


class TestDirectConversation:
    def test_creates_then_returns_existing(self, alice_client, bob):
        url = f"{CHAT_URL}/conversations/direct/"

        first = alice_client.post(url, {"user_id": bob.id}, format="json")
        second = alice_client.post(url, {"user_id": bob.id}, format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_200_OK
        assert first.data["id"] == second.data["id"]
        assert Conversation.objects.count() == 1

    def test_with_self(self, alice_client, alice):
        response = alice_client.post(
            f"{CHAT_URL}/conversations/direct/", {"user_id": alice.id}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "SAME_USER"

    def test_unknown_user(self, alice_client):
        response = alice_client.post(
            f"{CHAT_URL}/conversations/direct/", {"user_id": 987654}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "USER_NOT_FOUND"


class TestGroupEndpoints:
    def test_create_group(self, alice_client, alice, bob, carol):
        response = alice_client.post(
            f"{CHAT_URL}/conversations/group/",
            {"name": "Book club", "member_ids": [bob.id, carol.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation_type"] == "group"
        assert response.data["admins"] == [alice.id]
        assert len(response.data["members"]) == 3

    def test_admin_renames_group(self, alice_client, group_conversation):
        response = alice_client.patch(
            f"{CHAT_URL}/conversations/{group_conversation.id}/group/",
            {"name": "Road trip"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["name"] == "Road trip"

    def test_member_cannot_rename_group(self, bob_client, group_conversation):
        response = bob_client.patch(
            f"{CHAT_URL}/conversations/{group_conversation.id}/group/",
            {"name": "Mine now"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_adds_member(self, alice_client, group_conversation):
        dave = UserFactory()

        response = alice_client.post(
            f"{CHAT_URL}/conversations/{group_conversation.id}/members/",
            {"user_ids": [dave.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert [m["user_id"] for m in response.data] == [dave.id]

    def test_member_can_leave(self, bob_client, group_conversation, bob):
        response = bob_client.delete(
            f"{CHAT_URL}/conversations/{group_conversation.id}/members/{bob.id}/"
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not group_conversation.is_member(bob)

    def test_member_cannot_remove_others(self, bob_client, group_conversation, carol):
        response = bob_client.delete(
            f"{CHAT_URL}/conversations/{group_conversation.id}/members/{carol.id}/"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_ADMIN"
        assert group_conversation.is_member(carol)


class TestTheme:
    def test_member_sets_theme(self, bob_client, direct_conversation):
        response = bob_client.put(
            f"{CHAT_URL}/conversations/{direct_conversation.id}/theme/",
            {"theme_key": "sunset", "bubble_out": "#ff8800"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["theme"] == {"theme_key": "sunset", "bubble_out": "#ff8800"}


# =============================================================================
# Conversation delete (per user)
# =============================================================================


class TestConversationDelete:
    def test_viewset_delete_hides_for_caller(self, alice_client, direct_conversation, bob):
        response = alice_client.delete(f"{CHAT_URL}/conversations/{direct_conversation.id}/")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert direct_conversation.deleted_by.filter(id=bob.id).count() == 0
        listed = alice_client.get(f"{CHAT_URL}/conversations/")
        assert listed.data["results"] == []

    def test_short_path_with_user_id(self, alice_client, alice, bob, direct_conversation):
        message = MessageFactory(conversation=direct_conversation, sender=bob)

        response = alice_client.delete(
            f"/api/v1/conversations/{direct_conversation.id}?userId={alice.id}"
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert direct_conversation not in ConversationService.list_for_user(alice)
        assert direct_conversation in ConversationService.list_for_user(bob)
        assert Message.objects.filter(id=message.id).exists()

    def test_cannot_delete_for_someone_else(self, alice_client, bob, direct_conversation):
        response = alice_client.delete(
            f"/api/v1/conversations/{direct_conversation.id}?userId={bob.id}"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not direct_conversation.deleted_by.exists()

    def test_staff_can_delete_on_behalf_of_member(
        self, staff_client, bob, direct_conversation
    ):
        response = staff_client.delete(
            f"/api/v1/conversations/{direct_conversation.id}?userId={bob.id}"
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert list(direct_conversation.deleted_by.all()) == [bob]

    def test_non_member(self, carol_client, direct_conversation):
        response = carol_client.delete(f"/api/v1/conversations/{direct_conversation.id}")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_PARTICIPANT"


# =============================================================================
# Messages
# =============================================================================


class TestSendMessage:
    def test_first_contact_creates_request(self, alice_client, bob):
        response = alice_client.post(
            f"{CHAT_URL}/messages/",
            {"receiver_id": bob.id, "content": "hi"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation_id"] is None
        assert response.data["request"]["status"] == RequestStatus.PENDING
        assert response.data["message"]["conversation_id"] is None

    def test_into_conversation(self, alice_client, direct_conversation):
        response = alice_client.post(
            f"{CHAT_URL}/messages/",
            {"conversation_id": str(direct_conversation.id), "content": "hello"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation_id"] == str(direct_conversation.id)
        assert response.data["request"] is None

    def test_requires_exactly_one_target(self, alice_client, bob, direct_conversation):
        response = alice_client.post(
            f"{CHAT_URL}/messages/",
            {
                "receiver_id": bob.id,
                "conversation_id": str(direct_conversation.id),
                "content": "both",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_empty_text(self, alice_client, direct_conversation):
        response = alice_client.post(
            f"{CHAT_URL}/messages/",
            {"conversation_id": str(direct_conversation.id), "content": "  "},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "EMPTY_MESSAGE"


class TestMessageHistory:
    def test_pages_with_cursor(self, alice_client, direct_conversation, alice):
        start = timezone.now() - timedelta(hours=1)
        for i in range(3):
            MessageFactory(
                conversation=direct_conversation,
                sender=alice,
                content=f"m{i}",
                created_at=start + timedelta(minutes=i),
            )
        url = f"{CHAT_URL}/conversations/{direct_conversation.id}/messages/"

        first = alice_client.get(url, {"limit": 2})
        second = alice_client.get(url, {"limit": 2, "cursor": first.data["next_cursor"]})

        assert [m["content"] for m in first.data["results"]] == ["m2", "m1"]
        assert [m["content"] for m in second.data["results"]] == ["m0"]
        assert second.data["next_cursor"] is None

    def test_bad_limit(self, alice_client, direct_conversation):
        response = alice_client.get(
            f"{CHAT_URL}/conversations/{direct_conversation.id}/messages/",
            {"limit": "lots"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_LIMIT"

    def test_bad_cursor(self, alice_client, direct_conversation):
        response = alice_client.get(
            f"{CHAT_URL}/conversations/{direct_conversation.id}/messages/",
            {"cursor": "not-a-cursor"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_CURSOR"

    def test_non_member(self, carol_client, direct_conversation):
        response = carol_client.get(
            f"{CHAT_URL}/conversations/{direct_conversation.id}/messages/"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestReadReceipts:
    def test_mark_message_read(self, bob_client, direct_conversation, alice, bob):
        message = MessageFactory(conversation=direct_conversation, sender=alice)

        response = bob_client.post(f"{CHAT_URL}/messages/{message.id}/read/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["read_by"] == [bob.id]

    def test_mark_conversation_read(self, bob_client, direct_conversation, alice):
        MessageFactory(conversation=direct_conversation, sender=alice)
        MessageFactory(conversation=direct_conversation, sender=alice)

        response = bob_client.post(f"{CHAT_URL}/conversations/{direct_conversation.id}/read/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "read", "marked": 2}

    def test_delete_message_for_self(self, bob_client, direct_conversation, alice, bob):
        message = MessageFactory(conversation=direct_conversation, sender=alice)

        response = bob_client.delete(f"{CHAT_URL}/messages/{message.id}/")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert message.deleted_by.filter(id=bob.id).exists()


# =============================================================================
# Message Requests
# =============================================================================


class TestMessageRequestEndpoints:
    @pytest.fixture
    def pending_request(self, alice, bob):
        SendMessageService.send(alice, bob.id, content="hi")
        SendMessageService.send(alice, bob.id, content="there")
        return MessageRequest.objects.get()

    def test_inbox_and_count(self, bob_client, pending_request):
        inbox = bob_client.get(f"{CHAT_URL}/message-requests/")
        count = bob_client.get(f"{CHAT_URL}/message-requests/count/")

        assert [r["id"] for r in inbox.data["results"]] == [str(pending_request.id)]
        assert inbox.data["results"][0]["last_message_content"] == "there"
        assert count.data == {"count": 1}

    def test_sent_list(self, alice_client, pending_request):
        response = alice_client.get(f"{CHAT_URL}/message-requests/sent/")

        assert response.data["results"][0]["receiver"]["username"] == "bob"

    def test_pending_messages(self, bob_client, pending_request):
        response = bob_client.get(
            f"{CHAT_URL}/message-requests/{pending_request.id}/messages/"
        )

        assert [m["content"] for m in response.data] == ["hi", "there"]

    def test_accept(self, bob_client, pending_request):
        response = bob_client.post(
            f"{CHAT_URL}/message-requests/{pending_request.id}/accept/"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["request"]["status"] == RequestStatus.ACCEPTED
        conversation_id = response.data["conversation"]["id"]
        assert Message.objects.filter(conversation_id=conversation_id).count() == 2

    def test_sender_cannot_accept(self, alice_client, pending_request):
        response = alice_client.post(
            f"{CHAT_URL}/message-requests/{pending_request.id}/accept/"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_PARTICIPANT"

    def test_accept_twice(self, bob_client, pending_request):
        bob_client.post(f"{CHAT_URL}/message-requests/{pending_request.id}/accept/")

        response = bob_client.post(
            f"{CHAT_URL}/message-requests/{pending_request.id}/accept/"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_REQUEST_STATE"

    @pytest.mark.parametrize(
        "action, expected",
        [("reject", RequestStatus.REJECTED), ("ignore", RequestStatus.IGNORED)],
    )
    def test_reject_and_ignore(self, bob_client, pending_request, action, expected):
        response = bob_client.post(
            f"{CHAT_URL}/message-requests/{pending_request.id}/{action}/"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == expected

    def test_unknown_request(self, bob_client):
        response = bob_client.post(
            f"{CHAT_URL}/message-requests/00000000-0000-0000-0000-000000000000/accept/"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "MESSAGE_REQUEST_NOT_FOUND"


class TestAIConversationEndpoint:
    def test_returns_same_conversation(self, alice_client):
        first = alice_client.post(f"{CHAT_URL}/ai/conversation/")
        second = alice_client.post(f"{CHAT_URL}/ai/conversation/")

        assert first.status_code == status.HTTP_200_OK
        assert first.data["id"] == second.data["id"]


# =============================================================================
# Admin migration
# =============================================================================


class TestMigrationEndpoints:
    URL = "/api/v1/admin/migration/chat/to-conversations"
    CLEANUP_URL = "/api/v1/admin/migration/chat/cleanup"

    def test_requires_staff(self, alice_client):
        response = alice_client.post(self.URL)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_reports_counts_as_text(self, staff_client, alice, bob):
        LegacyMessageFactory(sender=alice, receiver=bob)
        LegacyMessageFactory(sender=bob, receiver=alice)

        response = staff_client.post(self.URL)

        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"].startswith("text/plain")
        assert response.content.decode() == (
            "Migration completed successfully! Processed: 2, Skipped: 0, "
            "Conversations created: 1, Messages migrated: 2, Failed: 0"
        )

    def test_failure_returns_500(self, staff_client):
        with patch(
            "chat.views.ChatMigrationService.migrate_to_conversations",
            side_effect=DatabaseError("connection lost"),
        ):
            response = staff_client.post(self.URL)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.content.decode() == "Migration failed: connection lost"

    def test_cleanup(self, staff_client, alice, bob):
        LegacyMessageFactory(sender=alice, receiver=bob, is_read=True)
        staff_client.post(self.URL)

        response = staff_client.post(self.CLEANUP_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.content.decode() == (
            "Cleanup completed successfully! Processed: 1, Cleaned: 1"
        )
        assert LegacyMessage.objects.filter(receiver__isnull=True, is_read=False).count() == 1


# =============================================================================
# Group archive and invite links
# =============================================================================


class TestGroupArchiveEndpoint:
    def test_admin_archives_group(self, alice_client, bob_client, group_conversation):
        response = alice_client.delete(
            f"{CHAT_URL}/conversations/{group_conversation.id}/group/"
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        group_conversation.refresh_from_db()
        assert group_conversation.is_deleted is True
        listed = bob_client.get(f"{CHAT_URL}/conversations/")
        assert listed.data["results"] == []

    def test_member_cannot_archive(self, bob_client, group_conversation):
        response = bob_client.delete(
            f"{CHAT_URL}/conversations/{group_conversation.id}/group/"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        group_conversation.refresh_from_db()
        assert group_conversation.is_deleted is False

    def test_archived_group_is_gone(self, alice_client, group_conversation):
        alice_client.delete(f"{CHAT_URL}/conversations/{group_conversation.id}/group/")

        response = alice_client.get(f"{CHAT_URL}/conversations/{group_conversation.id}/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CONVERSATION_NOT_FOUND"


class TestInviteLinkEndpoints:
    def url(self, conversation):
        return f"{CHAT_URL}/conversations/{conversation.id}/invite-link/"

    def test_admin_creates_link(self, alice_client, alice, group_conversation):
        response = alice_client.post(
            self.url(group_conversation), {"max_uses": 5}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["is_active"] is True
        assert response.data["max_uses"] == 5
        assert response.data["created_by"]["id"] == alice.id
        assert len(response.data["token"]) == 32

    def test_member_cannot_create_link(self, bob_client, group_conversation):
        response = bob_client.post(self.url(group_conversation), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not ConversationInviteLink.objects.exists()

    def test_member_reads_current_link(self, alice_client, bob_client, group_conversation):
        created = alice_client.post(self.url(group_conversation), {}, format="json")

        response = bob_client.get(self.url(group_conversation))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["token"] == created.data["token"]

    def test_no_link_yet(self, bob_client, group_conversation):
        response = bob_client.get(self.url(group_conversation))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "INVITE_LINK_NOT_FOUND"

    def test_past_expiry_is_rejected(self, alice_client, group_conversation):
        response = alice_client.post(
            self.url(group_conversation),
            {"expires_at": (timezone.now() - timedelta(hours=1)).isoformat()},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_EXPIRY"

    def test_direct_conversation_has_no_links(self, alice_client, direct_conversation):
        response = alice_client.get(self.url(direct_conversation))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NOT_GROUP"

    def test_admin_revokes_links(self, alice_client, group_conversation):
        alice_client.post(self.url(group_conversation), {}, format="json")

        response = alice_client.delete(self.url(group_conversation))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not ConversationInviteLink.objects.filter(is_active=True).exists()

    def test_admin_switches_link_off_and_on(self, alice_client, group_conversation):
        alice_client.post(self.url(group_conversation), {}, format="json")
        url = f"{self.url(group_conversation)}active/"

        off = alice_client.put(url, {"active": False}, format="json")
        on = alice_client.put(url, {"active": True}, format="json")

        assert off.data["is_active"] is False
        assert off.data["revoked_at"] is not None
        assert on.data["is_active"] is True
        assert on.data["revoked_at"] is None

    def test_join_by_token(
        self, alice_client, authenticated_client_factory, group_conversation
    ):
        dave = UserFactory()
        created = alice_client.post(self.url(group_conversation), {}, format="json")
        dave_client = authenticated_client_factory(dave)
        token = created.data["token"]

        response = dave_client.post(f"{CHAT_URL}/conversations/join/{token}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(group_conversation.id)
        assert group_conversation.is_member(dave)

    def test_join_with_unknown_token(self, carol_client):
        response = carol_client.post(f"{CHAT_URL}/conversations/join/{'0' * 32}/")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_INVITE_LINK"
