"""
Tests for real-time fan-out (chat.dispatch).

Uses the in-memory channel layer configured in app/conftest.py. Fan-out is
registered with transaction.on_commit, so every send runs inside
django_capture_on_commit_callbacks(execute=True).
"""

from unittest.mock import patch

from chat.constants import REALTIME_CONFIG, conversation_group, user_group
from chat.dispatch import MessageDispatcher
from chat.services import MessageRequestService, MessageService, SendMessageService
from chat.tests.factories import MessageFactory


class TestDispatchMessage:
    def test_reaches_every_member_and_the_topic(
        self, direct_conversation, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        alice_inbox = subscribe(user_group(alice.id))
        bob_inbox = subscribe(user_group(bob.id))
        topic = subscribe(conversation_group(direct_conversation.id))

        with patch("chat.tasks.send_message_notifications.delay"):
            with django_capture_on_commit_callbacks(execute=True):
                result = SendMessageService.send_to_conversation(
                    alice, direct_conversation.id, content="hello"
                )

        for reader in (alice_inbox, bob_inbox, topic):
            assert reader.pending() == 1
            event = reader()
            assert event["type"] == REALTIME_CONFIG.EVENT_MESSAGE
            assert event["conversation_id"] == str(direct_conversation.id)
            assert event["message"]["id"] == str(result.data.message.id)
            assert event["message"]["content"] == "hello"

    def test_nothing_is_sent_before_commit(
        self, direct_conversation, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        bob_inbox = subscribe(user_group(bob.id))

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            SendMessageService.send_to_conversation(
                alice, direct_conversation.id, content="wait for it"
            )

        assert len(callbacks) == 1
        assert bob_inbox.pending() == 0

    def test_one_failing_address_does_not_block_others(
        self, direct_conversation, alice, bob, channel_layer, subscribe,
        django_capture_on_commit_callbacks,
    ):
        alice_inbox = subscribe(user_group(alice.id))
        topic = subscribe(conversation_group(direct_conversation.id))
        real_group_send = channel_layer.group_send

        async def flaky_group_send(group, event):
            if group == user_group(bob.id):
                raise ConnectionError("layer unavailable")
            await real_group_send(group, event)

        with (
            patch.object(channel_layer, "group_send", flaky_group_send),
            patch("chat.tasks.send_message_notifications.delay") as mock_delay,
        ):
            with django_capture_on_commit_callbacks(execute=True):
                result = SendMessageService.send_to_conversation(
                    alice, direct_conversation.id, content="still delivered"
                )

        assert alice_inbox.pending() == 1
        assert topic.pending() == 1
        mock_delay.assert_called_once()
        assert result.data.message.conversation_id == direct_conversation.id

    def test_hands_off_to_push_after_fan_out(
        self, direct_conversation, alice, bob, channel_layer, django_capture_on_commit_callbacks
    ):
        with patch("chat.tasks.send_message_notifications.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                result = SendMessageService.send_to_conversation(
                    alice, direct_conversation.id, content="ping"
                )

        message_id, recipient_ids = mock_delay.call_args.args
        assert message_id == str(result.data.message.id)
        assert sorted(recipient_ids) == sorted([str(alice.id), str(bob.id)])

    def test_queue_failure_is_not_raised(
        self, direct_conversation, alice, channel_layer, django_capture_on_commit_callbacks
    ):
        with patch(
            "chat.tasks.send_message_notifications.delay",
            side_effect=ConnectionError("broker down"),
        ):
            with django_capture_on_commit_callbacks(execute=True):
                SendMessageService.send_to_conversation(
                    alice, direct_conversation.id, content="ok"
                )

    def test_messages_arrive_in_persistence_order(
        self, direct_conversation, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        bob_inbox = subscribe(user_group(bob.id))

        with patch("chat.tasks.send_message_notifications.delay"):
            with django_capture_on_commit_callbacks(execute=True):
                for text in ("one", "two", "three"):
                    SendMessageService.send_to_conversation(
                        alice, direct_conversation.id, content=text
                    )

        assert bob_inbox.pending() == 3
        assert [bob_inbox()["message"]["content"] for _ in range(3)] == [
            "one",
            "two",
            "three",
        ]


class TestDispatchRequestMessage:
    def test_reaches_sender_and_receiver(
        self, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        alice_inbox = subscribe(user_group(alice.id))
        bob_inbox = subscribe(user_group(bob.id))

        with patch("chat.tasks.send_message_notifications.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                result = SendMessageService.send(alice, bob.id, content="hi")

        for reader in (alice_inbox, bob_inbox):
            event = reader()
            assert event["type"] == REALTIME_CONFIG.EVENT_REQUEST_MESSAGE
            assert event["request"]["id"] == str(result.data.request.id)
            assert event["message"]["content"] == "hi"
        mock_delay.assert_called_once_with(str(result.data.message.id), [str(bob.id)])


class TestDispatchEvent:
    def test_accept_notifies_both_parties(
        self, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        with patch("chat.tasks.send_message_notifications.delay"):
            request = SendMessageService.send(alice, bob.id, content="hi").data.request
        alice_inbox = subscribe(user_group(alice.id))
        bob_inbox = subscribe(user_group(bob.id))

        with django_capture_on_commit_callbacks(execute=True):
            conversation = MessageRequestService.accept(request.id, bob).data.conversation

        for reader in (alice_inbox, bob_inbox):
            event = reader()
            assert event["type"] == REALTIME_CONFIG.EVENT_NOTICE
            assert event["event"] == REALTIME_CONFIG.NOTICE_REQUEST_ACCEPTED
            assert event["data"]["conversation_id"] == str(conversation.id)

    def test_read_receipt_notifies_sender(
        self, direct_conversation, alice, bob, subscribe, django_capture_on_commit_callbacks
    ):
        message = MessageFactory(conversation=direct_conversation, sender=alice)
        alice_inbox = subscribe(user_group(alice.id))

        with django_capture_on_commit_callbacks(execute=True):
            MessageService.mark_read(message.id, bob)

        event = alice_inbox()
        assert event["event"] == REALTIME_CONFIG.NOTICE_MESSAGE_READ
        assert event["data"]["reader_id"] == str(bob.id)

    def test_duplicate_user_ids_are_sent_once(
        self, alice, subscribe, django_capture_on_commit_callbacks
    ):
        alice_inbox = subscribe(user_group(alice.id))

        with django_capture_on_commit_callbacks(execute=True):
            MessageDispatcher.dispatch_event(
                [alice.id, alice.id], REALTIME_CONFIG.NOTICE_CONVERSATION_DELETED, {}
            )

        assert alice_inbox.pending() == 1
