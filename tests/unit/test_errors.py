"""Unit tests for AppError hierarchy and the exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    CredentialExpiredError,
    ForbiddenError,
    InvalidCodeError,
    InvalidOrExpiredTokenError,
    LockedOutError,
    MalformedCodeError,
    MalformedTokenError,
    NoActiveCredentialError,
    NotFoundError,
    RateLimitedError,
    RateLimitError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    ValidationError,
    WeakPasswordError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    def test_validation_error(self):
        e = ValidationError("bad input")
        assert e.status_code == 400
        assert e.error_code == "validation_error"
        assert e.message == "bad input"

    def test_authentication_error(self):
        e = AuthenticationError("not authenticated")
        assert e.status_code == 401
        assert e.error_code == "authentication_error"

    def test_forbidden_error(self):
        assert ForbiddenError("not allowed").status_code == 403

    def test_not_found_error(self):
        e = NotFoundError("resource missing")
        assert e.status_code == 404
        assert e.error_code == "not_found"

    def test_conflict_error(self):
        assert ConflictError("already exists").status_code == 409

    def test_rate_limit_error(self):
        e = RateLimitError("slow down")
        assert e.status_code == 429
        assert e.error_code == "rate_limit_exceeded"


class TestCredentialErrors:
    @pytest.mark.parametrize(
        "error, status, code",
        [
            (MalformedCodeError(), 400, "malformed_code"),
            (NoActiveCredentialError(), 404, "no_active_credential"),
            (CredentialExpiredError(), 400, "credential_expired"),
            (LockedOutError(), 429, "locked_out"),
            (InvalidCodeError(3), 400, "invalid_code"),
            (MalformedTokenError(), 400, "malformed_token"),
            (WeakPasswordError(), 400, "weak_password"),
            (InvalidOrExpiredTokenError(), 400, "invalid_or_expired_token"),
            (TokenAlreadyUsedError(), 400, "token_already_used"),
            (TokenExpiredError(), 400, "token_expired"),
        ],
    )
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.error_code == code

    def test_malformed_code_names_length(self):
        e = MalformedCodeError(8)
        assert "8 digits" in e.message
        assert e.field == "otp"

    def test_invalid_code_carries_remaining(self):
        e = InvalidCodeError(2)
        assert e.remaining_attempts == 2
        assert e.message == "Invalid verification code. 2 attempts remaining."
        assert e.to_dict()["details"] == {"remaining_attempts": 2}

    def test_rate_limited_rounds_minutes_up(self):
        e = RateLimitedError("slow down", retry_after_seconds=61)
        assert e.retry_after_minutes == 2
        assert e.details == {"retry_after_seconds": 61, "retry_after_minutes": 2}

    def test_rate_limited_retry_after_floor(self):
        assert RateLimitedError("x", retry_after_seconds=0).retry_after_seconds == 1

    def test_weak_password_explains_policy(self):
        assert "special character" in WeakPasswordError().details["message"]


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("user not found")
        assert e.to_dict() == {"error": "user not found", "code": "not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": {"min": 1, "max": 10}}, "details", {"min": 1, "max": 10}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_keys(self, kwargs, key, value):
        assert ValidationError("bad", **kwargs).to_dict()[key] == value

    def test_base_error_is_500(self):
        assert AppError("boom").status_code == 500


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    email: str


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/typed")
    async def typed():
        raise InvalidCodeError(4)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @app.post("/body")
    async def body(payload: _Body):
        return {"ok": True}

    return app


class TestErrorHandlers:
    def test_app_error_rendered(self):
        with TestClient(_app()) as client:
            resp = client.get("/typed")
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_code"
        assert resp.json()["details"]["remaining_attempts"] == 4

    def test_unhandled_error_is_generic_500(self):
        with TestClient(_app(), raise_server_exceptions=False) as client:
            resp = client.get("/boom")
        assert resp.status_code == 500
        assert resp.json() == {
            "error": "An internal server error occurred.",
            "code": "internal_error",
        }
        assert "secret" not in resp.text

    def test_request_validation_uses_envelope(self):
        with TestClient(_app()) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["field"] == "email"
