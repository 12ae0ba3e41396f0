"""Email verification (OTP) credential store.

Collection: ``email-verifications``.

Atomicity guarantees the OTP lifecycle relies on:
- insert_and_supersede: one transaction that first bumps a per-user guard
  document, then flags every unused credential of the user as used, then
  inserts the new one. The guard write makes concurrent issuances for the
  same user conflict, so the transaction retry serialises them and exactly
  one credential stays unused.
- increment_attempts: a single ``$inc``; concurrent failed guesses are
  never lost.
- mark_used: conditional on ``is_used == False``; only one caller can win.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from repositories.transaction import TransactionRunner
from schemas.models.verification import EmailVerificationDoc

COLLECTION = "email-verifications"
GUARD_COLLECTION = "email-verification-guards"


class VerificationRepository:
    def __init__(self, db: AsyncDatabase, transactions: TransactionRunner) -> None:
        self._col = db[COLLECTION]
        self._guards = db[GUARD_COLLECTION]
        self._transactions = transactions

    async def insert_and_supersede(self, doc: EmailVerificationDoc) -> ObjectId:
        """Supersede the user's unused credentials and insert *doc*, atomically."""
        payload = doc.to_mongo()

        async def _txn(session: Optional[AsyncClientSession]) -> ObjectId:
            await self._guards.update_one(
                {"_id": doc.user_id},
                {"$inc": {"issued": 1}, "$set": {"last_issued_at": doc.created_at}},
                upsert=True,
                session=session,
            )
            await self._col.update_many(
                {"user_id": doc.user_id, "is_used": False},
                {"$set": {"is_used": True}},
                session=session,
            )
            result = await self._col.insert_one(dict(payload), session=session)
            return result.inserted_id

        return await self._transactions.run(_txn)

    async def find_latest_unused(
        self, user_id: ObjectId
    ) -> Optional[EmailVerificationDoc]:
        raw = await self._col.find_one(
            {"user_id": user_id, "is_used": False},
            sort=[("created_at", DESCENDING)],
        )
        return EmailVerificationDoc.from_mongo(raw)

    async def increment_attempts(self, credential_id: ObjectId) -> int:
        """Atomically add one failed attempt; return the new count.

        Returns 0 if the credential vanished (swept concurrently).
        """
        raw = await self._col.find_one_and_update(
            {"_id": credential_id},
            {"$inc": {"attempts": 1}},
            projection={"attempts": 1},
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            return 0
        return int(raw.get("attempts", 0))

    async def mark_used(self, credential_id: ObjectId) -> bool:
        """Flip ``is_used``; True only for the caller that actually flipped it."""
        result = await self._col.update_one(
            {"_id": credential_id, "is_used": False},
            {"$set": {"is_used": True}},
        )
        return result.modified_count == 1

    async def delete_stale(self, now: datetime, stale_before: datetime) -> int:
        """Delete expired, used, or stale credentials; return how many went."""
        result = await self._col.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lt": now}},
                    {"is_used": True},
                    {"created_at": {"$lt": stale_before}},
                ]
            }
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("user_id", ASCENDING), ("is_used", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._col.create_index([("expires_at", ASCENDING)])
