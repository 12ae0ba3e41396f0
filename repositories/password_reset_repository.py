"""Password reset credential store.

Collection: ``password-resets``. The reset token is its own lookup key
(unique index on ``token``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.verification import PasswordResetDoc

COLLECTION = "password-resets"


class PasswordResetRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION]

    async def insert(self, doc: PasswordResetDoc) -> ObjectId:
        result = await self._col.insert_one(doc.to_mongo())
        return result.inserted_id

    async def find_by_token(self, token: str) -> Optional[PasswordResetDoc]:
        raw = await self._col.find_one({"token": token})
        return PasswordResetDoc.from_mongo(raw)

    async def mark_used(
        self,
        reset_id: ObjectId,
        used_at: datetime,
        session: Optional[AsyncClientSession] = None,
    ) -> bool:
        """Set ``used_at`` once; False if another caller already consumed it."""
        result = await self._col.update_one(
            {"_id": reset_id, "used_at": None},
            {"$set": {"used_at": used_at}},
            session=session,
        )
        return result.modified_count == 1

    async def delete_stale(self, now: datetime, stale_before: datetime) -> int:
        result = await self._col.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lt": now}},
                    {"used_at": {"$ne": None}},
                    {"created_at": {"$lt": stale_before}},
                ]
            }
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token", ASCENDING)], unique=True)
        await self._col.create_index([("user_id", ASCENDING)])
        await self._col.create_index([("expires_at", ASCENDING)])
