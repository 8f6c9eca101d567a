"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from socialhub.core.errors import (
    AdmissionRejected,
    AppError,
    AuthenticationAppError,
    BrokerUnavailable,
    NotFoundAppError,
    PermissionAppError,
    StoreUnavailable,
    ValidationAppError,
)
from socialhub.core.exception_handlers import setup_exception_handlers, status_code_for


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAdmissionRejectedHandler:
    def test_rejection_body_is_exact(self, client: TestClient, app_with_handlers: FastAPI):
        """429 body carries only success and message."""
        @app_with_handlers.get("/limited")
        async def limited():
            raise AdmissionRejected(
                code="too_many_requests",
                message="Too many requests",
                details={
                    "tier": "sensitive",
                    "client_ip": "1.2.3.4",
                    "retry_after": 30.0,
                    "context": {"limit": 50, "remaining": 0, "reset_at": 2000},
                },
            )

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.json() == {"success": False, "message": "Too many requests"}
        assert response.headers["Retry-After"] == "30"
        assert response.headers["X-RateLimit-Limit"] == "50"
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="empty_content",
                message="Post content must not be empty",
                details={"field": "content"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "empty_content"
        assert data["message"] == "Post content must not be empty"
        assert data["details"] == {"field": "content"}
        assert "request_id" in data

    def test_error_without_details_omits_key(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/missing")
        async def test_endpoint():
            raise NotFoundAppError(code="post_not_found", message="Post not found")

        response = client.get("/missing")

        assert response.status_code == 404
        assert "details" not in response.json()

    @pytest.mark.parametrize(
        "error, status",
        [
            (ValidationAppError(code="x", message="x"), 400),
            (AuthenticationAppError(code="x", message="x"), 401),
            (PermissionAppError(code="x", message="x"), 403),
            (NotFoundAppError(code="x", message="x"), 404),
            (AdmissionRejected(code="x", message="x"), 429),
            (StoreUnavailable(code="x", message="x"), 503),
            (BrokerUnavailable(code="x", message="x"), 503),
            (AppError(code="x", message="x"), 400),
        ],
    )
    def test_status_mapping(self, error: AppError, status: int):
        assert status_code_for(error) == status


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_never_leaks_details(self):
        from socialhub.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis password=hunter2")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["code"] == "internal_server_error"
        assert data["message"] == "Internal server error"
        assert "hunter2" not in response.body.decode()
        assert "RuntimeError" not in response.body.decode()

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AdmissionRejected in app_with_handlers.exception_handlers
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
