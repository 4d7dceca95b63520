"""
Tests for authentication signal handlers.

- Profile auto-creation on user creation
- Chat member refresh queued after a profile change commits
"""

from unittest.mock import patch

from authentication.models import Profile
from authentication.tests.factories import UserFactory


class TestCreateUserProfile:
    def test_profile_created_with_user(self, db):
        user = UserFactory()

        assert Profile.objects.filter(user=user).exists()


class TestRefreshChatMembersOnProfileChange:
    def test_profile_update_queues_member_refresh_on_commit(
        self, db, django_capture_on_commit_callbacks
    ):
        user = UserFactory()

        with patch("chat.tasks.refresh_member_profiles.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                user.profile.username = "renamed"
                user.profile.save()

        mock_delay.assert_called_once_with(user.id)

    def test_profile_creation_does_not_queue_refresh(
        self, db, django_capture_on_commit_callbacks
    ):
        with patch("chat.tasks.refresh_member_profiles.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                UserFactory()

        mock_delay.assert_not_called()
