"""
Admin-only chat routes, mounted at /api/v1/admin/migration/chat/.

    to-conversations  POST  Phase 1: backfill conversations
    cleanup           POST  Phase 2: clear deprecated legacy fields
"""

from django.urls import path

from chat.views import MigrationCleanupView, MigrationToConversationsView

urlpatterns = [
    path(
        "to-conversations",
        MigrationToConversationsView.as_view(),
        name="chat-migration-to-conversations",
    ),
    path("cleanup", MigrationCleanupView.as_view(), name="chat-migration-cleanup"),
]
