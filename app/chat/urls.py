"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                               GET
        /conversations/direct/                        POST
        /conversations/group/                         POST
        /conversations/join/{token}/                  POST
        /conversations/{id}/                          GET, DELETE (?userId=)
        /conversations/{id}/group/                    PATCH, DELETE
        /conversations/{id}/members/                  POST
        /conversations/{id}/members/{user_id}/        DELETE
        /conversations/{id}/invite-link/              GET, POST, DELETE
        /conversations/{id}/invite-link/active/       PUT
        /conversations/{id}/theme/                    PUT
        /conversations/{id}/messages/                 GET
        /conversations/{id}/read/                     POST

    Messages:
        /messages/                                    POST
        /messages/{id}/                               DELETE
        /messages/{id}/read/                          POST

    Message requests:
        /message-requests/                            GET
        /message-requests/count/                      GET
        /message-requests/sent/                       GET
        /message-requests/{id}/messages/              GET
        /message-requests/{id}/accept/                POST
        /message-requests/{id}/reject/                POST
        /message-requests/{id}/ignore/                POST

    AI assistant:
        /ai/conversation/                             POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
The short DELETE /api/v1/conversations/{id} and the admin migration routes
are mounted in config/urls.py.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    AIConversationView,
    ConversationViewSet,
    MessageRequestViewSet,
    MessageViewSet,
)

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")
router.register(r"messages", MessageViewSet, basename="message")
router.register(r"message-requests", MessageRequestViewSet, basename="message-request")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path("ai/conversation/", AIConversationView.as_view(), name="ai-conversation"),
]
