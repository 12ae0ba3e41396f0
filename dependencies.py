"""
FastAPI dependency providers.

Everything is built once in the app lifespan and stored on ``app.state``;
these providers only hand it to route handlers, so tests can swap any
piece by setting a different object on the state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from errors import AuthenticationError
from infrastructure.access_tokens import AccessTokenClaims, AccessTokenVerifier
from repositories.refresh_token_repository import RefreshTokenRepository
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_otp_service(request: Request) -> OtpService:
    return request.app.state.otp_service


def get_password_reset_service(request: Request) -> PasswordResetService:
    return request.app.state.password_reset_service


def get_refresh_token_repository(request: Request) -> RefreshTokenRepository:
    return request.app.state.refresh_tokens


def require_access_token(request: Request) -> AccessTokenClaims:
    """Resolve the caller from ``Authorization: Bearer <access token>`` or raise 401."""
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Unauthorized: Missing or invalid token format")

    verifier: AccessTokenVerifier = request.app.state.access_tokens
    claims = verifier.verify(token.strip())
    if claims is None:
        raise AuthenticationError("Unauthorized: Invalid or expired access token")
    return claims
