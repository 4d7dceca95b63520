"""
Chat-specific exceptions.

Expected failures (unknown ids, wrong actor, bad input, request state) are
returned as ServiceResult failures by chat.services. Exceptions remain for
states the service cannot resolve.

Exception Hierarchy:
    ConflictError (409)
    └── DirectConversationConflictError - unique-key race not resolved by re-lookup
"""

from core.exceptions import ConflictError


class DirectConversationConflictError(ConflictError):
    """
    Raised when creating a direct conversation hit the unique key and the
    follow-up lookup still found nothing. Concurrent creates normally resolve
    to the winner's conversation, so this surfaces only in odd states such as
    an archive racing the create.
    """

    default_error_code: str = "DIRECT_CONVERSATION_CONFLICT"
