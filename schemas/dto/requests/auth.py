"""
Request DTOs for the credential endpoints.

SendVerificationRequest   — POST /auth/send-verification, /auth/resend-verification
VerifyEmailRequest        — POST /auth/verify-email
ForgotPasswordRequest     — POST /auth/forgot-password
ResetPasswordRequest      — POST /auth/reset-password
LogoutRequest             — POST /auth/logout

Shape checks on ``otp`` and ``token`` are left to the services so the
error kinds stay the same whichever caller drives them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SendVerificationRequest(BaseModel):
    """Request body for POST /auth/send-verification and /auth/resend-verification."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    email: str = Field(min_length=1)
    name: str | None = None


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email.

    ``otp`` is the 6-digit code sent to the user's email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    otp: str


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """Request body for POST /auth/logout."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken", min_length=1)
