"""Index bootstrap for every collection the service owns. Safe to re-run."""

from __future__ import annotations

from pymongo.asynchronous.database import AsyncDatabase

from repositories.password_reset_repository import PasswordResetRepository
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.transaction import TransactionRunner
from repositories.user_repository import UserRepository
from repositories.verification_repository import VerificationRepository
from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db: AsyncDatabase, transactions: TransactionRunner) -> None:
    await UserRepository(db).ensure_indexes()
    await VerificationRepository(db, transactions).ensure_indexes()
    await PasswordResetRepository(db).ensure_indexes()
    await RefreshTokenRepository(db).ensure_indexes()
    log.info("indexes_ensured")
