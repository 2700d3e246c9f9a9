"""SQLite-backed implementation of CacheStore."""

from __future__ import annotations

import inspect
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, cast

import structlog
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine

from kv_cache_core import clock
from kv_cache_core.config.settings import Settings
from kv_cache_core.exceptions import ConfigurationError
from kv_cache_core.interfaces.serializer import Serializer
from kv_cache_core.models.row import CacheRow, KeyTTL, Missing
from kv_cache_infra.db.engine import create_engine
from kv_cache_infra.db.session import StorageHandle
from kv_cache_infra.lookup import BatchedLookup
from kv_cache_infra.schema import SpaceStatements, build_space_table
from kv_cache_infra.serializers import decode_value, resolve_serializer
from kv_cache_infra.sweeper import ExpirySweeper
from kv_cache_infra.writer import BatchedWriter

logger = structlog.get_logger()

ReadyCallback = Callable[[AsyncEngine], Awaitable[Any] | Any]


class SqliteCacheAdapter:
    """TTL-aware key-value cache stored in one SQLite table.

    Reads never return expired rows. A read that sees one schedules a
    background sweep and returns without waiting for it.

    Example::

        async with SqliteCacheAdapter(Settings(path="cache.db")) as cache:
            await cache.mset([("a", 1), ("b", 2)], ttl=60)
            await cache.mget("a", "missing", "b")  # [1, None, 2]
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        serializer: str | Serializer | None = None,
        is_cacheable: Callable[[Any], bool] | None = None,
        on_ready: ReadyCallback | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        """Build the adapter; call :meth:`initialize` before first use.

        Args:
            settings: Space configuration; defaults are read from the environment.
            serializer: Built-in name or custom serializer, overriding settings.
            is_cacheable: Predicate a value must pass to be written.
            on_ready: Called with the engine once the schema exists.
            engine: Pre-built engine to use instead of one derived from settings.
        """
        self.settings = settings if settings is not None else Settings()
        self.name = self.settings.name
        self._default_ttl = self.settings.default_ttl_seconds
        self._serializer = resolve_serializer(
            serializer if serializer is not None else self.settings.serializer
        )
        self._on_ready = on_ready
        self._log = logger.bind(space=self.name)
        self._ready = False

        self.engine = engine if engine is not None else create_engine(self.settings)
        self._storage = StorageHandle(self.engine, serialize=self.settings.in_memory)
        self._metadata = MetaData()
        self._statements = SpaceStatements(build_space_table(self.name, self._metadata))
        self._lookup = BatchedLookup(self._storage, self._statements)
        self._writer = BatchedWriter(
            self._storage, self._statements, self._serializer, is_cacheable
        )
        self._sweeper = ExpirySweeper(self._storage, self._statements)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the space's table and index, then fire ``on_ready`` once."""
        if self._ready:
            return
        await self._storage.create_schema(self._metadata)
        self._ready = True
        self._log.info("cache_space_ready", path=self.settings.path)
        if self._on_ready is not None:
            result = self._on_ready(self.engine)
            if inspect.isawaitable(result):
                await result

    async def drain(self) -> None:
        """Wait for scheduled background sweeps to finish."""
        await self._sweeper.drain()

    async def close(self) -> None:
        """Finish pending sweeps and release the engine's connections."""
        await self.drain()
        await self._storage.dispose()
        self._log.info("cache_closed")

    async def __aenter__(self) -> SqliteCacheAdapter:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key, or None if missing or expired."""
        values = await self.mget(key)
        return values[0]

    async def mget(self, *keys: str) -> list[Any | None]:
        """Retrieve values for ``keys`` in order, None in every absent slot.

        Duplicate keys each get their own slot.
        """
        now = clock.now_ms()
        rows = await self._lookup.lookup(keys)
        values = [self._present_value(row, now) for row in rows]
        if any(isinstance(row, CacheRow) and row.is_expired(now) for row in rows):
            self._sweeper.schedule()
        return values

    async def ttl(self, key: str) -> float:
        """Milliseconds until ``key`` expires.

        Returns ``math.inf`` both for keys that never expire and for keys that
        do not exist. Use :meth:`ttl_status` to tell those apart. An expired
        row that has not been swept yet reports a non-positive value.
        """
        status = await self.ttl_status(key)
        return status.remaining_ms

    async def ttl_status(self, key: str) -> KeyTTL:
        """Remaining lifetime of ``key`` together with whether it is stored."""
        async with self._storage.connect() as conn:
            result = await conn.execute(self._statements.expiry_of(key))
            row = result.first()
        if row is None:
            return KeyTTL(exists=False, remaining_ms=math.inf)
        if row.expire_at is None:
            return KeyTTL(exists=True, remaining_ms=math.inf)
        return KeyTTL(exists=True, remaining_ms=row.expire_at - clock.now_ms())

    async def keys(self, pattern: str | None = None) -> list[str]:
        """List stored keys in creation order, expired ones included.

        ``pattern`` is a SQL LIKE pattern: ``%`` matches any run of
        characters, ``_`` exactly one.
        """
        async with self._storage.connect() as conn:
            result = await conn.execute(self._statements.list_keys(pattern))
            return list(result.scalars().all())

    async def count(self) -> int:
        """Number of physically stored rows, including expired, unswept ones."""
        async with self._storage.connect() as conn:
            result = await conn.execute(self._statements.count())
            return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value; ``ttl`` in seconds, None for the space's default."""
        await self.mset([(key, value)], ttl)

    async def mset(self, pairs: Sequence[tuple[str, Any]], ttl: float | None = None) -> None:
        """Store all pairs atomically with one shared TTL.

        ``ttl=math.inf`` stores rows that never expire.
        """
        ttl_seconds = self._default_ttl if ttl is None else ttl
        await self._writer.write_all(list(pairs), ttl_seconds)

    async def delete(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        await self.mdel(key)

    async def mdel(self, *keys: str) -> None:
        """Delete several keys in one transaction."""
        if not keys:
            return
        async with self._storage.begin() as conn:
            for key in keys:
                await conn.execute(self._statements.delete_key(key))

    async def reset(self) -> None:
        """Remove every row in the space."""
        async with self._storage.begin() as conn:
            await conn.execute(self._statements.truncate())
        self._log.info("cache_reset")

    async def sweep(self) -> int:
        """Purge expired rows now and return how many were removed."""
        return await self._sweeper.sweep()

    async def wrap(
        self,
        key: str,
        fn: Callable[[], Awaitable[Any] | Any],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = fn()
        if inspect.isawaitable(value):
            value = await value
        await self.set(key, value, ttl)
        return value

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _present_value(self, row: CacheRow | Missing, now: int) -> Any | None:
        if isinstance(row, Missing) or not row.is_fresh(now):
            return None
        return decode_value(self._serializer, cast(bytes, row.val))


async def open_cache(
    settings: Settings | None = None,
    *,
    serializer: str | Serializer | None = None,
    is_cacheable: Callable[[Any], bool] | None = None,
    on_ready: ReadyCallback | None = None,
    **options: Any,
) -> SqliteCacheAdapter:
    """Build and initialize a cache; keyword ``options`` override settings fields.

    Example::

        cache = await open_cache(name="sessions", path="/tmp/cache.db", serializer="json")
    """
    if options:
        unknown = sorted(set(options) - set(Settings.model_fields))
        if unknown:
            msg = f"Unknown cache options: {', '.join(unknown)}"
            raise ConfigurationError(msg)
        base = settings if settings is not None else Settings()
        settings = Settings(**{**base.model_dump(), **options})
    cache = SqliteCacheAdapter(
        settings,
        serializer=serializer,
        is_cacheable=is_cacheable,
        on_ready=on_ready,
    )
    await cache.initialize()
    return cache
