"""
Authentication application.

This app is the user directory for the messaging core: email-based users,
display profiles (username, avatar, verified badge) and the AI assistant
identity.

Usage:
    from authentication.models import User, Profile
    from authentication.services import AIUserService, UserDirectoryService
"""
