"""Session store — refresh tokens in the ``refresh-tokens`` collection."""

from __future__ import annotations

from typing import Any, Optional

from pymongo import ASCENDING
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.base import to_object_id

COLLECTION = "refresh-tokens"


class RefreshTokenRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION]

    async def revoke_all(
        self, user_id: Any, session: Optional[AsyncClientSession] = None
    ) -> int:
        """Delete every refresh token of *user_id*; return how many were revoked."""
        oid = to_object_id(user_id)
        if oid is None:
            return 0
        result = await self._col.delete_many({"user_id": oid}, session=session)
        return result.deleted_count

    async def revoke_one(self, token: str) -> bool:
        """Delete a single refresh token. A token already gone is not an error."""
        result = await self._col.delete_one({"token": token})
        return result.deleted_count == 1

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token", ASCENDING)], unique=True)
        await self._col.create_index([("user_id", ASCENDING)])
