"""
Pagination classes for chat API.

- ConversationPagination: conversation lists (most recent activity first)
- MessageRequestPagination: message request inbox and sent lists

Message history is not paginated here: MessageService.list_by_conversation
issues its own (created_at, id) cursor, so pages stay stable while new
messages arrive.

Design Decisions:
    - Page numbers rather than DRF cursors, because conversation lists sort
      on a nullable last_message_at
    - Page sizes balanced for mobile performance
"""

from rest_framework.pagination import PageNumberPagination


class ConversationPagination(PageNumberPagination):
    """
    Default: 20 conversations per page
    Maximum: 50 conversations per page

    Query parameters:
        page: Page number
        page_size: Number of conversations (optional override)
    """

    page_size = 20
    max_page_size = 50
    page_size_query_param = "page_size"


class MessageRequestPagination(PageNumberPagination):
    page_size = 20
    max_page_size = 50
    page_size_query_param = "page_size"
