"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Credential lifecycle failures each carry a stable ``error_code`` so clients
can branch on the kind without parsing messages. Non-AppError exceptions
collapse to a generic 500 with no internal detail.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


# ── Verification (OTP) ────────────────────────────────────────────────────────


class MalformedCodeError(ValidationError):
    error_code = "malformed_code"

    def __init__(self, length: int = 6) -> None:
        super().__init__(
            f"Invalid OTP format. Must be {length} digits.", field="otp"
        )


class NoActiveCredentialError(NotFoundError):
    error_code = "no_active_credential"

    def __init__(self) -> None:
        super().__init__("No verification code found. Please request a new one.")


class CredentialExpiredError(ValidationError):
    error_code = "credential_expired"

    def __init__(self) -> None:
        super().__init__("Verification code has expired. Please request a new one.")


class LockedOutError(RateLimitError):
    error_code = "locked_out"

    def __init__(self) -> None:
        super().__init__("Maximum attempts exceeded. Please request a new code.")


class InvalidCodeError(ValidationError):
    error_code = "invalid_code"

    def __init__(self, remaining_attempts: int) -> None:
        super().__init__(
            f"Invalid verification code. {remaining_attempts} attempts remaining.",
            details={"remaining_attempts": remaining_attempts},
        )
        self.remaining_attempts = remaining_attempts


class RateLimitedError(RateLimitError):
    error_code = "rate_limited"

    def __init__(self, message: str, retry_after_seconds: int) -> None:
        self.retry_after_seconds = max(int(retry_after_seconds), 1)
        self.retry_after_minutes = math.ceil(self.retry_after_seconds / 60)
        super().__init__(
            message,
            details={
                "retry_after_seconds": self.retry_after_seconds,
                "retry_after_minutes": self.retry_after_minutes,
            },
        )


# ── Password reset ────────────────────────────────────────────────────────────


class MalformedTokenError(ValidationError):
    error_code = "malformed_token"

    def __init__(self) -> None:
        super().__init__("Invalid token format", field="token")


class WeakPasswordError(ValidationError):
    error_code = "weak_password"

    def __init__(self) -> None:
        super().__init__(
            "Password too weak",
            field="password",
            details={
                "message": (
                    "Password must be at least 8 characters long and contain at "
                    "least one uppercase letter, one lowercase letter, one number, "
                    "and one special character."
                )
            },
        )


class InvalidOrExpiredTokenError(ValidationError):
    error_code = "invalid_or_expired_token"

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


class TokenAlreadyUsedError(ValidationError):
    error_code = "token_already_used"

    def __init__(self) -> None:
        super().__init__("Token has already been used")


class TokenExpiredError(ValidationError):
    error_code = "token_expired"

    def __init__(self) -> None:
        super().__init__("Token has expired")


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Malformed bodies use the same envelope as every other input error
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        error = ValidationError(
            first.get("msg", "Invalid request"),
            field=".".join(loc) or None,
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "An internal server error occurred.",
                "code": "internal_error",
            },
        )
