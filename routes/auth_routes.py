"""
Credential endpoints.

POST /auth/send-verification    — issue an email OTP, rate limited per user
POST /auth/resend-verification  — same, also reporting remaining issuances
POST /auth/verify-email         — redeem the OTP
POST /auth/forgot-password      — start a password reset (generic reply)
POST /auth/reset-password       — redeem a reset token
POST /auth/logout               — revoke one refresh token

Handlers stay thin: every rule lives in the services, and failures surface
as AppError subclasses rendered by the global exception handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dependencies import (
    get_otp_service,
    get_password_reset_service,
    get_refresh_token_repository,
    require_access_token,
)
from infrastructure.access_tokens import AccessTokenClaims
from repositories.refresh_token_repository import RefreshTokenRepository
from schemas.dto.requests.auth import (
    ForgotPasswordRequest,
    LogoutRequest,
    ResetPasswordRequest,
    SendVerificationRequest,
    VerifyEmailRequest,
)
from schemas.dto.responses.auth import VerificationSentResponse
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.otp_service import IssueResult, OtpService
from services.password_reset_service import PasswordResetService
from shared.ip_utils import get_client_ip
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={
        code: {"model": ErrorResponse} for code in (400, 401, 404, 429, 500)
    },
)

ALREADY_VERIFIED_MESSAGE = "Email already verified"


def _issued_body(result: IssueResult, message: str) -> dict:
    if result.already_verified:
        return MessageResponse(
            success=True, message=ALREADY_VERIFIED_MESSAGE
        ).model_dump()
    return VerificationSentResponse(
        message=message,
        expires_in=result.expires_in,
        remaining_resends=result.remaining_resends,
    ).model_dump(exclude_none=True)


@router.post("/send-verification")
async def send_verification(
    body: SendVerificationRequest,
    request: Request,
    otp: OtpService = Depends(get_otp_service),
) -> dict:
    result = await otp.issue(
        body.user_id, body.email, body.name, client_ip=get_client_ip(request)
    )
    return _issued_body(result, "Verification code sent successfully")


@router.post("/resend-verification")
async def resend_verification(
    body: SendVerificationRequest,
    request: Request,
    otp: OtpService = Depends(get_otp_service),
) -> dict:
    result = await otp.resend(
        body.user_id, body.email, body.name, client_ip=get_client_ip(request)
    )
    return _issued_body(result, "New verification code sent successfully")


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    request: Request,
    otp: OtpService = Depends(get_otp_service),
) -> dict:
    await otp.verify(body.user_id, body.otp, client_ip=get_client_ip(request))
    return MessageResponse(
        success=True, message="Email verified successfully!"
    ).model_dump()


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    resets: PasswordResetService = Depends(get_password_reset_service),
) -> dict:
    message = await resets.request_reset(body.email, get_client_ip(request))
    return MessageResponse(success=True, message=message).model_dump()


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    resets: PasswordResetService = Depends(get_password_reset_service),
) -> dict:
    message = await resets.consume(
        body.token, body.password, client_ip=get_client_ip(request)
    )
    return MessageResponse(success=True, message=message).model_dump()


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    claims: AccessTokenClaims = Depends(require_access_token),
    refresh_tokens: RefreshTokenRepository = Depends(get_refresh_token_repository),
) -> dict:
    revoked = await refresh_tokens.revoke_one(body.refresh_token)
    log.info("logout", user_id=claims.user_id, revoked=revoked)
    return MessageResponse(
        success=True, message="Logged out successfully"
    ).model_dump()
