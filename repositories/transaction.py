"""Multi-document transactions.

Repositories that must change several documents atomically accept an
optional ``session`` argument; services group those calls with
TransactionRunner.run(), which commits them all or none.

MongoDB transactions need a replica set (a single-node replica set is
enough for development).
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.mongo_client import AsyncMongoClient

T = TypeVar("T")

TransactionFn = Callable[[Optional[AsyncClientSession]], Awaitable[T]]


class TransactionRunner(Protocol):
    async def run(self, fn: TransactionFn) -> Any: ...


class MongoTransactionRunner:
    """Runs *fn* inside ``with_transaction``.

    ``with_transaction`` re-invokes *fn* on TransientTransactionError and
    retries the commit on UnknownTransactionCommitResult, so *fn* must be
    safe to run more than once. Any other exception aborts and propagates.
    """

    def __init__(self, client: AsyncMongoClient) -> None:
        self._client = client

    async def run(self, fn: TransactionFn) -> Any:
        async with self._client.start_session() as session:
            return await session.with_transaction(fn)
