"""
Integration Test Fixtures.

Fixtures for integration tests - real database, real application, real
HTTP client. The FastAPI app is served in-process through ASGITransport,
which does not run the lifespan, so the root `database` fixture creates
the schema itself.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from notesync.backend.core.database import Database
from notesync.backend.main import create_app
from notesync.client.api_client import NotesApiClient

BASE_URL = "http://test"


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def app(database: Database) -> FastAPI:
    """Application bound to the per-test database, without default tags."""
    return create_app(database=database, seed_default_tags=False)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Raw HTTP client against the in-process application.

    Usage:
        async def test_health_endpoint(client: AsyncClient):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url=BASE_URL,
        headers={"X-Frontend-ID": "web"},
    ) as test_client:
        yield test_client


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncGenerator[NotesApiClient, None]:
    """The offline client's NotesApiClient talking to the in-process application."""
    async with NotesApiClient(
        base_url=f"{BASE_URL}/api/v1",
        timeout=5,
        transport=ASGITransport(app=app),
    ) as remote:
        yield remote


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_success(response: Any, expected_status: int = 200) -> Any:
        """
        Assert the response is a successful envelope.

        Returns:
            The envelope's data field
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        body = response.json()
        assert body.get("success") is True, f"Response not successful: {body}"
        assert body.get("error") is None
        return body["data"]

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert the response is an error envelope.

        Returns:
            The envelope's error field
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        body = response.json()
        assert body.get("success") is False, f"Response should be error: {body}"
        assert body.get("data") is None
        assert body.get("error") is not None, f"Missing error details: {body}"

        if expected_code:
            actual_code = body["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )
        return body["error"]

    @staticmethod
    def assert_validation_error(response: Any, field: str | None = None) -> dict[str, Any]:
        """Assert a 422 request validation error, optionally naming a field."""
        error = ApiAssertions.assert_error(response, 422, "VAL_REQUEST_INVALID")

        if field:
            fields = [e.get("field", "") for e in error["details"]["validation_errors"]]
            assert any(field in f for f in fields), (
                f"Expected validation error for field '{field}', got errors for: {fields}"
            )
        return error


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()
