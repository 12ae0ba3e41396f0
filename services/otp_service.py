"""
Email verification OTP lifecycle.

A user's current credential moves Issued → Verified | Expired | Locked |
Superseded. Every state but Issued is terminal; only issue() creates a new
Issued credential, superseding whatever came before.

- issue()  — generate a code, store its argon2 hash, supersede older codes,
             hand delivery to the background dispatcher.
- verify() — check shape, expiry, lockout and the code itself; count
             failures atomically; consume at most once.
- resend() — issue() that also reports how many issuances remain.

Every issuance, whichever path it comes from, counts against one per-user
fixed window.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

from config import VerificationSettings
from errors import (
    CredentialExpiredError,
    InvalidCodeError,
    LockedOutError,
    MalformedCodeError,
    NoActiveCredentialError,
    NotFoundError,
    RateLimitedError,
)
from infrastructure.email.protocol import EmailProvider
from infrastructure.notifications import NotificationDispatcher
from infrastructure.rate_limit.protocol import RateLimiter
from repositories.user_repository import UserRepository
from repositories.verification_repository import VerificationRepository
from schemas.models.base import to_object_id
from schemas.models.user import USER_STATUS_ACTIVE
from schemas.models.verification import EmailVerificationDoc
from services.audit import (
    OUTCOME_FAILURE,
    OUTCOME_LOCKED_OUT,
    OUTCOME_RATE_LIMITED,
    OUTCOME_SKIPPED,
    OUTCOME_SUCCESS,
    AuditLog,
)
from shared.crypto import hash_secret, verify_secret
from shared.datetime_utils import Clock, is_expired, utcnow
from shared.generators import generate_otp_code
from shared.validators import validate_otp_format


@dataclass(frozen=True)
class IssueResult:
    already_verified: bool = False
    expires_in_seconds: int = 0
    remaining_resends: Optional[int] = None

    @property
    def expires_in(self) -> str:
        return f"{self.expires_in_seconds // 60} minutes"


class OtpService:
    def __init__(
        self,
        users: UserRepository,
        verifications: VerificationRepository,
        email_provider: EmailProvider,
        dispatcher: NotificationDispatcher,
        rate_limiter: RateLimiter,
        settings: VerificationSettings,
        audit: Optional[AuditLog] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._verifications = verifications
        self._email = email_provider
        self._dispatcher = dispatcher
        self._rate_limiter = rate_limiter
        self._settings = settings
        self._audit = audit or AuditLog()
        self._clock = clock

    async def issue(
        self,
        user_id: str,
        email: str,
        user_name: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> IssueResult:
        """Issue a fresh code for *user_id* and send it to *email*.

        Every issuance counts against the user's ``otp_resend_limit`` window.
        Already-verified users get ``IssueResult(already_verified=True)`` and
        nothing is stored or sent. The code itself is never returned.

        Raises:
            RateLimitedError: window exhausted; carries the retry-after estimate.
            NotFoundError: unknown user.
        """
        issued = await self._issue("otp_issue", user_id, email, user_name, client_ip)
        return replace(issued, remaining_resends=None)

    async def resend(
        self,
        user_id: str,
        email: str,
        user_name: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> IssueResult:
        """issue() for the resend path; also reports ``remaining_resends``."""
        return await self._issue("otp_resend", user_id, email, user_name, client_ip)

    async def _issue(
        self,
        action: str,
        user_id: str,
        email: str,
        user_name: Optional[str],
        client_ip: Optional[str],
    ) -> IssueResult:
        window = await self._rate_limiter.hit(
            f"otp:issue:user:{user_id}",
            limit=self._settings.otp_resend_limit,
            window_seconds=self._settings.otp_resend_window_seconds,
        )
        if not window.allowed:
            minutes = max(math.ceil(window.retry_after_seconds / 60), 1)
            self._audit.record(
                action,
                outcome=OUTCOME_RATE_LIMITED,
                user_id=user_id,
                client_ip=client_ip,
                retry_after_seconds=window.retry_after_seconds,
            )
            raise RateLimitedError(
                "Too many verification codes requested. "
                f"Please try again in {minutes} minutes.",
                retry_after_seconds=window.retry_after_seconds,
            )

        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_verified:
            self._audit.record(
                action,
                outcome=OUTCOME_SKIPPED,
                user_id=user_id,
                client_ip=client_ip,
                reason="already_verified",
            )
            return IssueResult(already_verified=True)

        code = generate_otp_code(self._settings.otp_length)
        code_hash = await asyncio.to_thread(hash_secret, code)
        now = self._clock()
        credential = EmailVerificationDoc(
            user_id=user.id,
            code_hash=code_hash,
            created_at=now,
            expires_at=now + timedelta(seconds=self._settings.otp_ttl_seconds),
            attempts=0,
            is_used=False,
        )
        credential_id = await self._verifications.insert_and_supersede(credential)

        # Delivery failures are logged by the dispatcher; the stored code stays valid
        self._dispatcher.dispatch(
            "verification_email",
            lambda: self._email.send_verification_email(email, user_name, code),
            user_id=user_id,
        )

        self._audit.record(
            action,
            outcome=OUTCOME_SUCCESS,
            user_id=user_id,
            client_ip=client_ip,
            credential_id=str(credential_id),
        )
        return IssueResult(
            expires_in_seconds=self._settings.otp_ttl_seconds,
            remaining_resends=window.remaining,
        )

    async def verify(
        self, user_id: str, code: str, client_ip: Optional[str] = None
    ) -> None:
        """Consume the user's current code if *code* matches.

        Raises:
            MalformedCodeError: *code* is not exactly ``otp_length`` digits.
            NoActiveCredentialError: nothing outstanding (or lost a race).
            CredentialExpiredError: past ``expires_at``; attempts untouched.
            LockedOutError: ``otp_max_attempts`` failures already recorded.
            InvalidCodeError: wrong code; carries ``remaining_attempts``.
        """
        length = self._settings.otp_length
        if not validate_otp_format(code, length):
            raise MalformedCodeError(length)

        oid = to_object_id(user_id)
        credential = (
            await self._verifications.find_latest_unused(oid) if oid else None
        )
        if credential is None:
            self._audit.record(
                "otp_verify",
                outcome=OUTCOME_FAILURE,
                user_id=user_id,
                client_ip=client_ip,
                reason="no_active_credential",
            )
            raise NoActiveCredentialError()

        if is_expired(credential.expires_at, self._clock()):
            self._audit.record(
                "otp_verify",
                outcome=OUTCOME_FAILURE,
                user_id=user_id,
                client_ip=client_ip,
                reason="expired",
            )
            raise CredentialExpiredError()

        max_attempts = self._settings.otp_max_attempts
        if credential.attempts >= max_attempts:
            self._audit.record(
                "otp_verify",
                outcome=OUTCOME_LOCKED_OUT,
                user_id=user_id,
                client_ip=client_ip,
                credential_id=str(credential.id),
            )
            raise LockedOutError()

        matches = await asyncio.to_thread(verify_secret, code, credential.code_hash)
        if not matches:
            attempts = await self._verifications.increment_attempts(credential.id)
            remaining = max(max_attempts - attempts, 0)
            self._audit.record(
                "otp_verify",
                outcome=OUTCOME_LOCKED_OUT if remaining == 0 else OUTCOME_FAILURE,
                user_id=user_id,
                client_ip=client_ip,
                reason="invalid_code",
                attempts=attempts,
            )
            raise InvalidCodeError(remaining)

        if not await self._verifications.mark_used(credential.id):
            # A concurrent verify consumed it first
            raise NoActiveCredentialError()

        await self._users.update_status(user_id, USER_STATUS_ACTIVE)
        self._audit.record(
            "otp_verify",
            outcome=OUTCOME_SUCCESS,
            user_id=user_id,
            client_ip=client_ip,
            credential_id=str(credential.id),
        )
