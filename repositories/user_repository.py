"""Account store: the slice of ``users`` the credential flows touch."""

from __future__ import annotations

from typing import Any, Optional

from pymongo import ASCENDING
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.base import to_object_id
from schemas.models.user import UserDoc
from shared.datetime_utils import utcnow

COLLECTION = "users"


class UserRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION]

    async def find_by_id(self, user_id: Any) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        raw = await self._col.find_one({"_id": oid})
        return UserDoc.from_mongo(raw)

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        raw = await self._col.find_one({"email": email})
        return UserDoc.from_mongo(raw)

    async def update_status(self, user_id: Any, status: str) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid},
            {"$set": {"status": status, "updated_at": utcnow()}},
        )
        return result.matched_count == 1

    async def update_password_hash(
        self,
        user_id: Any,
        password_hash: str,
        session: Optional[AsyncClientSession] = None,
    ) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid},
            {"$set": {"password_hash": password_hash, "updated_at": utcnow()}},
            session=session,
        )
        return result.matched_count == 1

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
