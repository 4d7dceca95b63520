"""
Tests for core service utilities and application exceptions.
"""

import logging

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult


class SampleService(BaseService):
    pass


class TestServiceResult:
    def test_success_is_truthy(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.to_response() == {"success": True, "data": {"id": 1}}

    def test_failure_is_falsy(self):
        result = ServiceResult.failure("Nope", error_code="NOPE")

        assert not result
        assert result.to_response() == {
            "success": False,
            "error": "Nope",
            "error_code": "NOPE",
        }

    def test_failure_details_are_part_of_the_response(self):
        result = ServiceResult.failure(
            "Message not found",
            error_code="MESSAGE_NOT_FOUND",
            details={"message_id": "abc"},
        )

        assert result.to_response()["details"] == {"message_id": "abc"}

    def test_from_exception_uses_class_name(self):
        result = ServiceResult.from_exception(KeyError("missing"))

        assert result.error_code == "KEYERROR"


class TestBaseService:
    def test_logger_is_named_after_service(self):
        assert SampleService.get_logger().name == f"{__name__}.SampleService"

    def test_handle_exception_logs_and_wraps(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = SampleService.handle_exception(RuntimeError("boom"), "Nightly job")

        assert not result
        assert result.error == "boom"
        assert "Nightly job: boom" in caplog.text


class TestApplicationErrors:
    def test_to_dict_includes_details_when_present(self):
        error = NotFoundError(
            "Conversation not found",
            error_code="CONVERSATION_NOT_FOUND",
            details={"conversation_id": "abc"},
        )

        assert error.to_dict() == {
            "error": "Conversation not found",
            "error_code": "CONVERSATION_NOT_FOUND",
            "details": {"conversation_id": "abc"},
        }

    def test_to_dict_omits_empty_details(self):
        assert "details" not in ValidationError("Bad").to_dict()

    def test_default_codes_and_statuses(self):
        cases = [
            (BaseApplicationError("x"), "APPLICATION_ERROR", 500),
            (ValidationError("x"), "VALIDATION_ERROR", 400),
            (NotFoundError("x"), "NOT_FOUND", 404),
            (PermissionDeniedError("x"), "PERMISSION_DENIED", 403),
            (ConflictError("x"), "CONFLICT", 409),
        ]
        for error, code, http_status in cases:
            assert error.error_code == code
            assert error.http_status == http_status

    def test_str_includes_code(self):
        assert str(ConflictError("Taken", error_code="DUPLICATE")) == "[DUPLICATE] Taken"
