"""
Authentication models.

This module defines the user directory consumed by the messaging core:
- User: Custom user model with email-based authentication (slim, auth-focused)
- Profile: Display data (username, avatar, verified badge) plus the AI flag

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: UserDirectoryService and AIUserService
    - signals.py: Auto-create profile on user creation
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower

from core.models import BaseModel
from authentication.managers import UserManager


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + - + ."""
    if not re.match(r"^[a-zA-Z0-9_.-]{3,30}$", value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, dots, underscores, and hyphens."
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Profile data (username, avatar, verified badge) lives on Profile.

    Fields:
        email: Primary identifier, unique, used for login
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin and admin APIs
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        """Username from profile, falling back to the email local part."""
        try:
            return self.profile.username or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]

    @property
    def is_ai(self):
        """Whether this user is the AI assistant identity."""
        try:
            return self.profile.is_ai
        except Profile.DoesNotExist:
            return False


class Profile(BaseModel):
    """
    Display data for a user.

    Conversation members copy username, avatar and is_verified from here.
    The copies are refreshed lazily, so they may be briefly stale.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        username: Unique username (case-insensitive)
        first_name / last_name: Optional names
        avatar_url: Public URL of the profile picture
        is_verified: Verified badge shown next to the username
        is_ai: Marks the AI assistant sender identity
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )

    username = models.CharField(
        max_length=30,
        blank=True,
        db_index=True,
        validators=[validate_username_format],
        help_text="Unique username (3-30 chars)",
    )
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)

    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Public URL of the user's profile picture",
    )

    is_verified = models.BooleanField(
        default=False,
        help_text="Whether the account carries a verified badge",
    )

    is_ai = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this profile belongs to the AI assistant",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"
        constraints = [
            models.UniqueConstraint(
                Lower("username"),
                name="unique_username_case_insensitive",
                condition=models.Q(username__gt=""),
            ),
        ]

    def __str__(self):
        return self.username or str(self.user)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def save(self, *args, **kwargs):
        """Normalize username before saving."""
        if self.username:
            self.username = self.username.lower()
        super().save(*args, **kwargs)
