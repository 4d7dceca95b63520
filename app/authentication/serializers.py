"""
Authentication serializers.

Related files:
    - views.py: ProfileView
    - chat/serializers.py: reuses UserSummarySerializer for senders
"""

from rest_framework import serializers

from authentication.models import Profile, User


class UserSummarySerializer(serializers.ModelSerializer):
    """Public identity of a user as shown inside chats."""

    username = serializers.CharField(source="display_name", read_only=True)
    avatar = serializers.CharField(source="profile.avatar_url", read_only=True)
    is_verified = serializers.BooleanField(source="profile.is_verified", read_only=True)
    is_ai = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "avatar", "is_verified", "is_ai"]
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    """Serializer for reading and updating the current user's profile."""

    email = serializers.EmailField(source="user.email", read_only=True)
    user_id = serializers.IntegerField(source="user.id", read_only=True)

    class Meta:
        model = Profile
        fields = [
            "user_id",
            "email",
            "username",
            "first_name",
            "last_name",
            "avatar_url",
            "is_verified",
            "is_ai",
            "updated_at",
        ]
        read_only_fields = ["user_id", "email", "is_verified", "is_ai", "updated_at"]

    def validate_username(self, value):
        """Ensure username is unique (case-insensitive)."""
        if not value:
            return value
        queryset = Profile.objects.filter(username__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("This username is already taken.")
        return value.lower()
