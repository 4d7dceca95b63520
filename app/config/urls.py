"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair
        token/refresh/             - Refresh access token
        profile/                   - User profile
    /api/v1/chat/                  - Chat endpoints (see chat/urls.py)
    /api/v1/conversations/{id}     - Delete conversation for a user (?userId=)
    /api/v1/admin/migration/chat/  - Legacy chat migration (admin only)
        to-conversations           - Phase 1: backfill conversations
        cleanup                    - Phase 2: clear deprecated fields

WebSocket routes live in chat/routing.py (see config/asgi.py).

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from chat.views import ConversationDeleteView
from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (JWT + profile)
    path("auth/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
    path(
        "conversations/<uuid:conversation_id>",
        ConversationDeleteView.as_view(),
        name="conversation-delete",
    ),
    # Admin jobs
    path("admin/migration/chat/", include("chat.admin_urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Messaging Admin"
admin.site.site_title = "Messaging Admin Portal"
admin.site.index_title = "Welcome to the Messaging Admin Portal"
