"""
Authentication views.

This module provides API views for:
- JWT issuance (simplejwt token obtain/refresh)
- Profile management for the current user

Note:
    The chat WebSocket handshake validates the same access tokens, see
    chat/middleware.py.
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.models import Profile
from authentication.serializers import ProfileSerializer


class ProfileView(APIView):
    """
    GET: Retrieve current user's profile
    PATCH: Update username, names or avatar

    URL: /api/v1/auth/profile/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user's profile",
        tags=["Auth - Profile"],
        responses={200: ProfileSerializer},
    )
    def get(self, request):
        profile, _ = Profile.objects.get_or_create(user=request.user)
        return Response(ProfileSerializer(profile).data)

    @extend_schema(
        summary="Partially update profile",
        tags=["Auth - Profile"],
        request=ProfileSerializer,
        responses={200: ProfileSerializer},
    )
    def patch(self, request):
        profile, _ = Profile.objects.get_or_create(user=request.user)
        serializer = ProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
