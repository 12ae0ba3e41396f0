"""
FastAPI application factory.
create_app() is the single entry point for building the app.

The lifespan builds every long-lived object once (clients, repositories,
services) and stores it on ``app.state``; dependencies.py reads it back.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.access_tokens import AccessTokenVerifier
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.notifications import NotificationDispatcher
from infrastructure.rate_limit.redis_limiter import build_rate_limiter
from repositories.indexes import ensure_indexes
from repositories.password_reset_repository import PasswordResetRepository
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.transaction import MongoTransactionRunner
from repositories.user_repository import UserRepository
from repositories.verification_repository import VerificationRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.janitor import Janitor
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, production=settings.is_production)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        # Redis is optional; without it rate limits are per process
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = aioredis.from_url(
                settings.redis.redis_uri,
                encoding="utf-8",
                decode_responses=True,
            )
        app.state.redis = redis_client

        verification = settings.verification
        transactions = MongoTransactionRunner(mongo_client)
        users = UserRepository(db)
        verifications = VerificationRepository(db, transactions)
        resets = PasswordResetRepository(db)
        refresh_tokens = RefreshTokenRepository(db)
        rate_limiter = build_rate_limiter(redis_client)
        dispatcher = NotificationDispatcher()

        http_client = HttpClient()
        email_provider = ZeptoMailProvider(
            settings.email,
            http_client,
            app_url=settings.app_url,
            app_name=settings.app_name,
            reset_url_path=verification.reset_url_path,
            otp_ttl_minutes=verification.otp_ttl_seconds // 60,
            reset_ttl_minutes=verification.reset_token_ttl_seconds // 60,
        )

        app.state.dispatcher = dispatcher
        app.state.refresh_tokens = refresh_tokens
        app.state.access_tokens = AccessTokenVerifier(settings.jwt)
        app.state.otp_service = OtpService(
            users,
            verifications,
            email_provider,
            dispatcher,
            rate_limiter,
            verification,
        )
        app.state.password_reset_service = PasswordResetService(
            users,
            resets,
            refresh_tokens,
            transactions,
            email_provider,
            dispatcher,
            rate_limiter,
            verification,
        )

        await ensure_indexes(db, transactions)

        janitor_task: Optional[asyncio.Task] = None
        if verification.janitor_interval_seconds > 0:
            janitor = Janitor(
                verifications,
                resets,
                stale_after_seconds=verification.stale_after_seconds,
            )
            janitor_task = asyncio.create_task(
                janitor.run_forever(verification.janitor_interval_seconds)
            )

        log.info("app_started", env=settings.env, redis=redis_client is not None)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if janitor_task is not None:
            janitor_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await janitor_task
        await dispatcher.drain()
        await http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
