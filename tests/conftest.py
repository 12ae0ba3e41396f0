"""
Shared fixtures.

In-memory stand-ins for the Mongo repositories, with the same atomicity the
real ones get from single-document updates and transactions: conditional
updates run without an await in between, and FakeTransactionRunner rolls
every registered store back when the wrapped function raises.
"""

import copy
import os
from datetime import datetime, timedelta, timezone

import pytest
from argon2 import PasswordHasher
from bson import ObjectId

import shared.crypto
from config import VerificationSettings
from infrastructure.notifications import NotificationDispatcher
from infrastructure.rate_limit.in_memory import InMemoryRateLimiter
from schemas.models.user import USER_STATUS_ACTIVE, USER_STATUS_PENDING, UserDoc
from schemas.models.verification import EmailVerificationDoc, PasswordResetDoc
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fast_hasher(monkeypatch):
    """Cheap argon2 parameters so tests don't spend seconds per hash."""
    monkeypatch.setattr(
        shared.crypto,
        "_hasher",
        PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1),
    )


# ── Clock ─────────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ── Stores ────────────────────────────────────────────────────────────────────


class _SnapshotStore:
    def snapshot(self):
        return copy.deepcopy(self.__dict__)

    def restore(self, state) -> None:
        self.__dict__.clear()
        self.__dict__.update(state)


class FakeUserRepository(_SnapshotStore):
    def __init__(self) -> None:
        self.users: dict[ObjectId, dict] = {}

    def add(
        self,
        email="user@example.com",
        user_name="Test User",
        status=USER_STATUS_PENDING,
        password_hash="old-hash",
    ) -> UserDoc:
        oid = ObjectId()
        self.users[oid] = {
            "_id": oid,
            "email": email,
            "user_name": user_name,
            "status": status,
            "password_hash": password_hash,
        }
        return UserDoc.from_mongo(self.users[oid])

    async def find_by_id(self, user_id):
        oid = user_id if isinstance(user_id, ObjectId) else None
        if oid is None and ObjectId.is_valid(str(user_id)):
            oid = ObjectId(str(user_id))
        return UserDoc.from_mongo(copy.deepcopy(self.users.get(oid)))

    async def find_by_email(self, email):
        for raw in self.users.values():
            if raw["email"] == email:
                return UserDoc.from_mongo(copy.deepcopy(raw))
        return None

    async def update_status(self, user_id, status):
        raw = self.users.get(ObjectId(str(user_id)))
        if raw is None:
            return False
        raw["status"] = status
        return True

    async def update_password_hash(self, user_id, password_hash, session=None):
        raw = self.users.get(ObjectId(str(user_id)))
        if raw is None:
            return False
        raw["password_hash"] = password_hash
        return True


class FakeVerificationRepository(_SnapshotStore):
    def __init__(self) -> None:
        self.docs: dict[ObjectId, dict] = {}

    async def insert_and_supersede(self, doc: EmailVerificationDoc):
        for raw in self.docs.values():
            if raw["user_id"] == doc.user_id and not raw["is_used"]:
                raw["is_used"] = True
        oid = ObjectId()
        payload = doc.to_mongo()
        payload["_id"] = oid
        self.docs[oid] = payload
        return oid

    async def find_latest_unused(self, user_id):
        live = [
            raw
            for raw in self.docs.values()
            if raw["user_id"] == user_id and not raw["is_used"]
        ]
        if not live:
            return None
        latest = max(live, key=lambda raw: raw["created_at"])
        return EmailVerificationDoc.from_mongo(copy.deepcopy(latest))

    def unused_for(self, user_id) -> int:
        return sum(
            1
            for raw in self.docs.values()
            if raw["user_id"] == user_id and not raw["is_used"]
        )

    async def increment_attempts(self, credential_id):
        raw = self.docs.get(credential_id)
        if raw is None:
            return 0
        raw["attempts"] += 1
        return raw["attempts"]

    async def mark_used(self, credential_id):
        raw = self.docs.get(credential_id)
        if raw is None or raw["is_used"]:
            return False
        raw["is_used"] = True
        return True

    async def delete_stale(self, now, stale_before):
        dead = [
            oid
            for oid, raw in self.docs.items()
            if raw["expires_at"] < now
            or raw["is_used"]
            or raw["created_at"] < stale_before
        ]
        for oid in dead:
            del self.docs[oid]
        return len(dead)

    def only(self) -> dict:
        assert len(self.docs) == 1
        return next(iter(self.docs.values()))


class FakePasswordResetRepository(_SnapshotStore):
    def __init__(self) -> None:
        self.docs: dict[ObjectId, dict] = {}

    async def insert(self, doc: PasswordResetDoc):
        oid = ObjectId()
        payload = doc.to_mongo()
        payload["_id"] = oid
        self.docs[oid] = payload
        return oid

    async def find_by_token(self, token):
        for raw in self.docs.values():
            if raw["token"] == token:
                return PasswordResetDoc.from_mongo(copy.deepcopy(raw))
        return None

    async def mark_used(self, reset_id, used_at, session=None):
        raw = self.docs.get(reset_id)
        if raw is None or raw["used_at"] is not None:
            return False
        raw["used_at"] = used_at
        return True

    async def delete_stale(self, now, stale_before):
        dead = [
            oid
            for oid, raw in self.docs.items()
            if raw["expires_at"] < now
            or raw["used_at"] is not None
            or raw["created_at"] < stale_before
        ]
        for oid in dead:
            del self.docs[oid]
        return len(dead)


class FakeRefreshTokenRepository(_SnapshotStore):
    def __init__(self) -> None:
        self.tokens: dict[str, ObjectId] = {}
        self.fail_revoke_all = False

    def add(self, user_id: ObjectId, token: str) -> None:
        self.tokens[token] = user_id

    async def revoke_all(self, user_id, session=None):
        if self.fail_revoke_all:
            raise RuntimeError("session store unavailable")
        doomed = [t for t, owner in self.tokens.items() if owner == user_id]
        for token in doomed:
            del self.tokens[token]
        return len(doomed)

    async def revoke_one(self, token):
        return self.tokens.pop(token, None) is not None


class FakeTransactionRunner:
    """Runs fn with session=None and restores every store if it raises."""

    def __init__(self, *stores: _SnapshotStore) -> None:
        self._stores = stores
        self.runs = 0

    async def run(self, fn):
        self.runs += 1
        snapshots = [store.snapshot() for store in self._stores]
        try:
            return await fn(None)
        except Exception:
            for store, state in zip(self._stores, snapshots):
                store.restore(state)
            raise


# ── Email ─────────────────────────────────────────────────────────────────────


class RecordingEmailProvider:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.sent: list[tuple] = []

    async def send_verification_email(self, email, user_name, otp_code):
        self.sent.append(("verification", email, user_name, otp_code))
        return self.result

    async def send_password_reset_email(self, email, user_name, reset_token):
        self.sent.append(("password_reset", email, user_name, reset_token))
        return self.result

    async def send_password_reset_confirmation_email(self, email, user_name):
        self.sent.append(("password_reset_confirmation", email, user_name))
        return self.result

    def of_kind(self, kind: str) -> list[tuple]:
        return [item for item in self.sent if item[0] == kind]


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verification_settings():
    return VerificationSettings()


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def verifications():
    return FakeVerificationRepository()


@pytest.fixture
def resets():
    return FakePasswordResetRepository()


@pytest.fixture
def refresh_tokens():
    return FakeRefreshTokenRepository()


@pytest.fixture
def transactions(users, resets, refresh_tokens):
    return FakeTransactionRunner(users, resets, refresh_tokens)


@pytest.fixture
def email_provider():
    return RecordingEmailProvider()


@pytest.fixture
def dispatcher():
    async def no_sleep(_delay):
        return None

    return NotificationDispatcher(jitter=False, sleep=no_sleep)


@pytest.fixture
def rate_limiter(clock):
    return InMemoryRateLimiter(clock=clock)


@pytest.fixture
def pending_user(users):
    return users.add()


@pytest.fixture
def active_user(users):
    return users.add(email="active@example.com", status=USER_STATUS_ACTIVE)


@pytest.fixture
def otp_service(
    users,
    verifications,
    email_provider,
    dispatcher,
    rate_limiter,
    verification_settings,
    clock,
):
    return OtpService(
        users,
        verifications,
        email_provider,
        dispatcher,
        rate_limiter,
        verification_settings,
        clock=clock,
    )


@pytest.fixture
def reset_service(
    users,
    resets,
    refresh_tokens,
    transactions,
    email_provider,
    dispatcher,
    rate_limiter,
    verification_settings,
    clock,
):
    return PasswordResetService(
        users,
        resets,
        refresh_tokens,
        transactions,
        email_provider,
        dispatcher,
        rate_limiter,
        verification_settings,
        clock=clock,
    )
