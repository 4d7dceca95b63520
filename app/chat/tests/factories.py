"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Conversation: Direct and group conversations with members
- ConversationMember: User membership in conversations
- Message: Conversation and pending messages
- MessageRequest: First-contact requests
- LegacyMessage: Flat sender -> receiver rows awaiting migration

Usage:
    from chat.tests.factories import (
        DirectConversationFactory,
        GroupConversationFactory,
        MessageFactory,
    )

    # Direct conversation between two new users
    conversation = DirectConversationFactory()

    # Direct conversation between given users
    conversation = DirectConversationFactory(created_by=alice, other=bob)

    # Message in a conversation
    message = MessageFactory(conversation=conversation, sender=alice)
"""

import factory
from django.utils import timezone

from authentication.models import User
from authentication.tests.factories import UserFactory
from chat.models import (
    Conversation,
    ConversationMember,
    ConversationType,
    LegacyMessage,
    MemberRole,
    Message,
    MessageRequest,
    MessageType,
    RequestStatus,
    direct_key_for,
    normalize_participants,
)


class ConversationMemberFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ConversationMember

    conversation = None
    user = factory.SubFactory(UserFactory)
    username = factory.LazyAttribute(lambda obj: obj.user.display_name)
    role = MemberRole.MEMBER
    joined_at = factory.LazyFunction(timezone.now)
    left_at = None


class DirectConversationFactory(factory.django.DjangoModelFactory):
    """
    Direct conversation with both members.

    Examples:
        conversation = DirectConversationFactory()
        conversation = DirectConversationFactory(created_by=alice, other=bob)
    """

    class Meta:
        model = Conversation
        skip_postgeneration_save = True

    class Params:
        other = factory.SubFactory(UserFactory)

    conversation_type = ConversationType.DIRECT
    created_by = factory.SubFactory(UserFactory)
    participants_normalized = factory.LazyAttribute(
        lambda obj: normalize_participants(obj.created_by.id, obj.other.id)
    )
    direct_key = factory.LazyAttribute(
        lambda obj: direct_key_for(obj.created_by.id, obj.other.id)
    )

    @factory.post_generation
    def members(obj, create, extracted, **kwargs):
        if not create:
            return
        user_ids = [int(user_id) for user_id in obj.participants_normalized]
        users = User.objects.filter(id__in=user_ids).order_by("id")
        # Creator joins first
        for user in sorted(users, key=lambda u: u.id != obj.created_by_id):
            ConversationMemberFactory(conversation=obj, user=user)


class GroupConversationFactory(factory.django.DjangoModelFactory):
    """
    Group conversation with the creator as ADMIN.

    Pass members=[...] to add regular members.

    Examples:
        group = GroupConversationFactory(created_by=alice, members=[bob, carol])
    """

    class Meta:
        model = Conversation
        skip_postgeneration_save = True

    conversation_type = ConversationType.GROUP
    name = factory.Sequence(lambda n: f"Group Chat {n}")
    created_by = factory.SubFactory(UserFactory)
    direct_key = None

    @factory.post_generation
    def members(obj, create, extracted, **kwargs):
        if not create:
            return
        ConversationMemberFactory(
            conversation=obj, user=obj.created_by, role=MemberRole.ADMIN
        )
        for user in extracted or []:
            ConversationMemberFactory(conversation=obj, user=user)
        obj.participants_normalized = normalize_participants(*obj.participant_ids())
        obj.save(update_fields=["participants_normalized"])


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Message in a conversation.

    Examples:
        message = MessageFactory(conversation=conversation, sender=alice)
        pending = MessageFactory(conversation=None, sender=alice)
    """

    class Meta:
        model = Message

    conversation = factory.SubFactory(DirectConversationFactory)
    sender = factory.LazyAttribute(lambda obj: obj.conversation.created_by)
    message_type = MessageType.TEXT
    content = factory.Sequence(lambda n: f"Message {n}")
    created_at = factory.LazyFunction(timezone.now)


class MessageRequestFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MessageRequest

    sender = factory.SubFactory(UserFactory)
    receiver = factory.SubFactory(UserFactory)
    status = RequestStatus.PENDING
    pending_message_ids = factory.LazyFunction(list)


class LegacyMessageFactory(factory.django.DjangoModelFactory):
    """
    Flat legacy message waiting for the chat migration.

    Examples:
        LegacyMessageFactory(sender=alice, receiver=bob, content="hi")
    """

    class Meta:
        model = LegacyMessage

    sender = factory.SubFactory(UserFactory)
    receiver = factory.SubFactory(UserFactory)
    message_type = MessageType.TEXT
    content = factory.Sequence(lambda n: f"Legacy message {n}")
    is_read = False
    conversation = None
    created_at = factory.LazyFunction(timezone.now)
