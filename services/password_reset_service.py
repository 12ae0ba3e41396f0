"""
Password reset lifecycle.

request_reset() is enumeration-resistant: it is rate limited per client IP
(not per account, since the email may match nothing) and returns the same
message whether or not an account exists.

consume() checks token shape and password policy before touching the
store, then changes the password, burns the token and revokes every
refresh token of the account in one transaction. A password change that
leaves old sessions alive must never be observable.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Optional

from pymongo.asynchronous.client_session import AsyncClientSession

from config import VerificationSettings
from errors import (
    InvalidOrExpiredTokenError,
    MalformedTokenError,
    RateLimitedError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    ValidationError,
    WeakPasswordError,
)
from infrastructure.email.protocol import EmailProvider
from infrastructure.notifications import NotificationDispatcher
from infrastructure.rate_limit.protocol import RateLimiter
from repositories.password_reset_repository import PasswordResetRepository
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.transaction import TransactionRunner
from repositories.user_repository import UserRepository
from schemas.models.verification import PasswordResetDoc
from services.audit import (
    OUTCOME_FAILURE,
    OUTCOME_RATE_LIMITED,
    OUTCOME_SKIPPED,
    OUTCOME_SUCCESS,
    AuditLog,
)
from shared.crypto import hash_password
from shared.datetime_utils import Clock, is_expired, utcnow
from shared.generators import generate_reset_token
from shared.logging import hash_ip
from shared.validators import (
    normalize_email,
    validate_email,
    validate_password_strength,
    validate_reset_token_format,
)

GENERIC_RESET_MESSAGE = (
    "If an account exists with that email, a password reset link has been sent."
)
RESET_SUCCESS_MESSAGE = "Password has been reset successfully."


class PasswordResetService:
    def __init__(
        self,
        users: UserRepository,
        resets: PasswordResetRepository,
        refresh_tokens: RefreshTokenRepository,
        transactions: TransactionRunner,
        email_provider: EmailProvider,
        dispatcher: NotificationDispatcher,
        rate_limiter: RateLimiter,
        settings: VerificationSettings,
        audit: Optional[AuditLog] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._resets = resets
        self._refresh_tokens = refresh_tokens
        self._transactions = transactions
        self._email = email_provider
        self._dispatcher = dispatcher
        self._rate_limiter = rate_limiter
        self._settings = settings
        self._audit = audit or AuditLog()
        self._clock = clock

    async def request_reset(self, email: str, client_ip: str) -> str:
        """Start a reset for *email*; always returns GENERIC_RESET_MESSAGE.

        Raises:
            RateLimitedError: too many requests from *client_ip*.
            ValidationError: *email* is not a syntactically valid address.
        """
        limit = await self._rate_limiter.hit(
            f"reset:request:ip:{client_ip}",
            limit=self._settings.reset_request_limit,
            window_seconds=self._settings.reset_request_window_seconds,
        )
        if not limit.allowed:
            self._audit.record(
                "password_reset_request",
                outcome=OUTCOME_RATE_LIMITED,
                client_ip=client_ip,
            )
            raise RateLimitedError(
                "Too many requests. Please try again later.",
                retry_after_seconds=limit.retry_after_seconds,
            )

        normalized = normalize_email(email)
        if not validate_email(normalized):
            raise ValidationError("Invalid email format", field="email")

        user = await self._users.find_by_email(normalized)
        # Generated on both paths so the unknown-email path does the same work
        token = generate_reset_token()
        now = self._clock()

        if user is None:
            # Stands in for the insert so both paths cost one store round-trip
            await self._resets.find_by_token(token)
            self._audit.record(
                "password_reset_request",
                outcome=OUTCOME_SKIPPED,
                client_ip=client_ip,
                reason="unknown_email",
                email=normalized,
            )
            return GENERIC_RESET_MESSAGE

        await self._resets.insert(
            PasswordResetDoc(
                user_id=user.id,
                token=token,
                created_at=now,
                expires_at=now
                + timedelta(seconds=self._settings.reset_token_ttl_seconds),
                used_at=None,
                origin_ip=client_ip,
            )
        )
        self._dispatcher.dispatch(
            "password_reset_email",
            lambda: self._email.send_password_reset_email(
                user.email, user.user_name, token
            ),
            user_id=str(user.id),
        )
        self._audit.record(
            "password_reset_request",
            outcome=OUTCOME_SUCCESS,
            user_id=str(user.id),
            client_ip=client_ip,
        )
        return GENERIC_RESET_MESSAGE

    async def consume(
        self, token: str, new_password: str, client_ip: Optional[str] = None
    ) -> str:
        """Redeem *token* and set *new_password*, signing out every session.

        Raises:
            MalformedTokenError: not a canonical UUID; no store access.
            WeakPasswordError: password fails the strength policy.
            InvalidOrExpiredTokenError: no such token.
            TokenAlreadyUsedError: consumed before (or concurrently).
            TokenExpiredError: past ``expires_at``.
        """
        if not validate_reset_token_format(token):
            raise MalformedTokenError()
        if not validate_password_strength(new_password):
            raise WeakPasswordError()

        reset = await self._resets.find_by_token(token.lower())
        if reset is None:
            self._audit.record(
                "password_reset_consume",
                outcome=OUTCOME_FAILURE,
                client_ip=client_ip,
                reason="not_found",
            )
            raise InvalidOrExpiredTokenError()

        user_id = str(reset.user_id)
        if reset.used_at is not None:
            self._audit.record(
                "password_reset_consume",
                outcome=OUTCOME_FAILURE,
                user_id=user_id,
                client_ip=client_ip,
                reason="already_used",
            )
            raise TokenAlreadyUsedError()

        now = self._clock()
        if is_expired(reset.expires_at, now):
            self._audit.record(
                "password_reset_consume",
                outcome=OUTCOME_FAILURE,
                user_id=user_id,
                client_ip=client_ip,
                reason="expired",
            )
            raise TokenExpiredError()

        password_hash = await asyncio.to_thread(hash_password, new_password)

        async def _txn(session: Optional[AsyncClientSession]) -> int:
            if not await self._resets.mark_used(reset.id, now, session=session):
                raise TokenAlreadyUsedError()
            if not await self._users.update_password_hash(
                reset.user_id, password_hash, session=session
            ):
                # Account deleted since the token was issued
                raise InvalidOrExpiredTokenError()
            return await self._refresh_tokens.revoke_all(
                reset.user_id, session=session
            )

        revoked = await self._transactions.run(_txn)

        user = await self._users.find_by_id(reset.user_id)
        if user is not None:
            self._dispatcher.dispatch(
                "password_reset_confirmation_email",
                lambda: self._email.send_password_reset_confirmation_email(
                    user.email, user.user_name
                ),
                user_id=user_id,
            )

        self._audit.record(
            "password_reset_consume",
            outcome=OUTCOME_SUCCESS,
            user_id=user_id,
            client_ip=client_ip,
            origin_ip_hash=hash_ip(reset.origin_ip),
            sessions_revoked=revoked,
        )
        return RESET_SUCCESS_MESSAGE
