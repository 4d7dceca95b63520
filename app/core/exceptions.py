"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- A single HTTP status per error family

Exception Hierarchy:
    BaseApplicationError (base, 500)
    ├── ValidationError - Bad input or an action invalid for the current state (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Actor may not address the resource (403)
    └── ConflictError - Unresolvable state conflicts such as unique-key races (409)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise NotFoundError("Conversation not found")

    # Raise with error code and details
    raise ValidationError(
        "Cannot start a direct conversation with yourself",
        error_code="SAME_USER",
        details={"user_id": str(user.id)},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors raised by services.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, states, etc.)
        http_status: Status code used when the error reaches a view
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "CONVERSATION_NOT_FOUND",
                "details": {"conversation_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails or an action is invalid for the
    current state of a resource (the BadRequest family).

    Example:
        if request.status != RequestStatus.PENDING:
            raise ValidationError(
                "Message request is no longer pending",
                error_code="REQUEST_NOT_PENDING",
                details={"status": request.status},
            )

    Note:
        For DRF serializer validation, use DRF's built-in validation.
        Use this for service-layer validation logic.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if not conversation:
            raise NotFoundError(
                f"Conversation {conversation_id} not found",
                error_code="CONVERSATION_NOT_FOUND",
                details={"conversation_id": str(conversation_id)},
            )

    Note:
        Return empty results for list queries. Use NotFoundError for
        single-resource lookups where existence is expected.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user may not address a resource, for example a
    user who is not a member of the conversation they write to.

    Note:
        For authentication failures (missing/invalid token), use DRF's
        AuthenticationFailed. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Unique constraint races that could not be resolved by a re-lookup
    - Concurrent modification conflicts

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409
