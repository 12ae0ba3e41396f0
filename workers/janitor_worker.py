"""
Standalone janitor worker.

Runs the credential cleanup sweep outside the API process, for deployments
that scale the API horizontally and want exactly one sweeper
(set ``JANITOR_INTERVAL_SECONDS=0`` on the API instances).
"""

from __future__ import annotations

from typing import Optional

from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from repositories.password_reset_repository import PasswordResetRepository
from repositories.transaction import MongoTransactionRunner
from repositories.verification_repository import VerificationRepository
from services.janitor import Janitor, SweepResult
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)

# Used when the API-side interval is 0 (disabled there)
DEFAULT_INTERVAL_SECONDS = 3600


def build_janitor(client: AsyncMongoClient, settings: AppSettings) -> Janitor:
    db = client[settings.db.db_name]
    transactions = MongoTransactionRunner(client)
    return Janitor(
        VerificationRepository(db, transactions),
        PasswordResetRepository(db),
        stale_after_seconds=settings.verification.stale_after_seconds,
    )


async def run_janitor(
    settings: Optional[AppSettings] = None,
    *,
    once: bool = False,
    interval_seconds: Optional[int] = None,
) -> Optional[SweepResult]:
    """Run one sweep (``once=True``) or sweep forever until cancelled."""
    settings = settings or AppSettings()
    setup_logging(settings.logging, production=settings.is_production)

    client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
    try:
        janitor = build_janitor(client, settings)
        if once:
            return await janitor.sweep()
        interval = (
            interval_seconds
            or settings.verification.janitor_interval_seconds
            or DEFAULT_INTERVAL_SECONDS
        )
        await janitor.run_forever(interval)
        return None
    finally:
        await client.close()
        log.info("janitor_worker_stopped")
