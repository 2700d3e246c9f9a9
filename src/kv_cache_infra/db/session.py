"""Connection and transaction scopes over the cache's async engine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager, nullcontext

from sqlalchemy import MetaData
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from kv_cache_core.exceptions import StorageError


class StorageHandle:
    """The single storage handle an adapter owns.

    ``connect()`` opens a read scope, ``begin()`` an atomic write scope that
    commits on success and rolls back on any error. Engine failures surface as
    :class:`StorageError` with the driver exception as the cause.

    When ``serialize`` is set (single shared connection, as for in-memory
    databases) scopes run one at a time so interleaved coroutines cannot end
    each other's transactions.
    """

    def __init__(self, engine: AsyncEngine, *, serialize: bool = False) -> None:
        """Wrap an engine; ``serialize`` guards a single shared connection."""
        self.engine = engine
        self._lock = asyncio.Lock() if serialize else None

    def _guard(self) -> AbstractAsyncContextManager[object]:
        return self._lock if self._lock is not None else nullcontext()

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection for reads."""
        async with self._guard():
            try:
                async with self.engine.connect() as conn:
                    yield conn
            except SQLAlchemyError as e:
                msg = f"Storage engine failed: {e}"
                raise StorageError(msg) from e

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection inside one transaction."""
        async with self._guard():
            try:
                async with self.engine.begin() as conn:
                    yield conn
            except SQLAlchemyError as e:
                msg = f"Storage engine failed: {e}"
                raise StorageError(msg) from e

    async def create_schema(self, metadata: MetaData) -> None:
        """Create every table and index in ``metadata`` that does not exist yet."""
        async with self.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def dispose(self) -> None:
        """Close pooled connections."""
        await self.engine.dispose()
