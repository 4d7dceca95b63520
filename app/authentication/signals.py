"""
Django signals for authentication.

This module defines signal handlers for:
- Auto-creating Profile when User is created
- Queuing a refresh of denormalized chat member data when a Profile changes

Related files:
    - models.py: User and Profile models
    - apps.py: Signal import in ready()
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """Create a Profile for newly created users."""
    if created:
        from authentication.models import Profile

        Profile.objects.get_or_create(user=instance)
        logger.debug(f"Profile created for user: {instance.email}")


@receiver(post_save, sender="authentication.Profile")
def refresh_chat_members_on_profile_change(sender, instance, created, **kwargs):
    """
    Queue a refresh of the username/avatar copies held by chat members.

    Copies are allowed to be stale, so the refresh runs in Celery after the
    profile change commits.
    """
    if created:
        return

    from chat.tasks import refresh_member_profiles

    user_id = instance.user_id
    transaction.on_commit(lambda: refresh_member_profiles.delay(user_id))
