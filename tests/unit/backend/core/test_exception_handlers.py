"""
Unit Tests for Exception Handlers.

Tests the exception handler functions in isolation.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import Request
from fastapi.exceptions import RequestValidationError

from notesync.backend.core.exception_handlers import (
    EXCEPTION_STATUS_MAP,
    _get_request_id,
    application_error_handler,
    status_for,
    unhandled_exception_handler,
    validation_error_handler,
)
from notesync.backend.core.exceptions import (
    ApplicationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


def make_request(path: str = "/api/v1/notes/99", method: str = "GET", request_id: str | None = None):
    request = MagicMock(spec=Request)
    request.url.path = path
    request.method = method
    request.headers = {"x-request-id": request_id} if request_id else {}
    del request.state.request_id
    return request


class TestExceptionStatusMapping:
    """Tests for exception to HTTP status code mapping."""

    @pytest.mark.parametrize(
        ("exc_class", "status"),
        [
            (NotFoundError, 404),
            (ValidationError, 400),
            (ConflictError, 409),
            (ExternalServiceError, 502),
            (DatabaseError, 503),
        ],
    )
    def test_mapped_statuses(self, exc_class, status):
        assert EXCEPTION_STATUS_MAP[exc_class] == status

    def test_subclass_resolves_through_hierarchy(self):
        """A subclass of a mapped error should inherit its status."""

        class NoteNotFound(NotFoundError):
            pass

        assert status_for(NoteNotFound("Note 5 not found")) == 404

    def test_unmapped_error_is_500(self):
        assert status_for(ApplicationError("boom")) == 500


class TestGetRequestId:
    """Tests for request ID extraction."""

    def test_extracts_from_request_state(self):
        request = MagicMock(spec=Request)
        request.state.request_id = "state-123"
        request.headers = {}

        assert _get_request_id(request) == "state-123"

    def test_extracts_from_header(self):
        assert _get_request_id(make_request(request_id="header-456")) == "header-456"

    def test_returns_none_when_not_present(self):
        assert _get_request_id(make_request()) is None


class TestApplicationErrorHandler:
    """Tests for application_error_handler."""

    @pytest.mark.asyncio
    async def test_not_found_envelope(self):
        """NotFoundError should produce the standard error envelope."""
        response = await application_error_handler(
            make_request(request_id="test-123"),
            NotFoundError("Note 99 not found"),
        )

        assert response.status_code == 404
        body = json.loads(response.body)
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "RES_NOT_FOUND"
        assert body["error"]["message"] == "Note 99 not found"
        assert body["metadata"]["request_id"] == "test-123"

    @pytest.mark.asyncio
    async def test_validation_includes_details(self):
        exc = ValidationError("Validation failed", details={"color": "Expected #RRGGBB"})

        response = await application_error_handler(make_request(method="POST"), exc)

        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["error"]["details"] == {"color": "Expected #RRGGBB"}

    @pytest.mark.asyncio
    async def test_client_errors_log_warning(self):
        with patch("notesync.backend.core.exception_handlers.logger") as mock_logger:
            await application_error_handler(make_request(), ConflictError("duplicate"))
            mock_logger.warning.assert_called_once()
            mock_logger.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_errors_log_error(self):
        with patch("notesync.backend.core.exception_handlers.logger") as mock_logger:
            response = await application_error_handler(make_request(), DatabaseError())
            assert response.status_code == 503
            mock_logger.error.assert_called_once()


class TestValidationErrorHandler:
    """Tests for validation_error_handler."""

    @pytest.mark.asyncio
    async def test_returns_422_with_field_errors(self):
        exc = MagicMock(spec=RequestValidationError)
        exc.errors.return_value = [
            {"loc": ("body", "color"), "msg": "String should match pattern", "type": "string_pattern_mismatch"},
            {"loc": ("body", "bogus"), "msg": "Extra inputs are not permitted", "type": "extra_forbidden"},
        ]

        response = await validation_error_handler(make_request("/api/v1/tags", "POST"), exc)

        assert response.status_code == 422
        body = json.loads(response.body)
        assert body["error"]["code"] == "VAL_REQUEST_INVALID"
        fields = [err["field"] for err in body["error"]["details"]["validation_errors"]]
        assert fields == ["body.color", "body.bogus"]


class TestUnhandledExceptionHandler:
    """Tests for unhandled_exception_handler."""

    @pytest.mark.asyncio
    async def test_hides_internal_details(self):
        """Response should not expose internal error details."""
        exc = RuntimeError("database is locked: /var/data/notesync.db")

        response = await unhandled_exception_handler(make_request(), exc)

        assert response.status_code == 500
        body = response.body.decode()
        assert "notesync.db" not in body
        assert "SYS_INTERNAL_ERROR" in body
        assert "unexpected error" in body.lower()
