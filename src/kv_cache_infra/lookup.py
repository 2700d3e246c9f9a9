"""Order-preserving batched key lookup."""

from __future__ import annotations

from collections.abc import Sequence

from kv_cache_core.models.row import MISSING, CacheRow, Missing
from kv_cache_infra.db.session import StorageHandle
from kv_cache_infra.schema import SpaceStatements


class BatchedLookup:
    """Fetch rows for an ordered list of keys in one round trip.

    The result always has one entry per requested key, in request order:
    a :class:`CacheRow` when the key is stored (fresh or not) and
    :data:`MISSING` when it is not. Freshness is left to the caller.
    """

    def __init__(self, storage: StorageHandle, statements: SpaceStatements) -> None:
        """Initialize with the space's storage handle and statements."""
        self._storage = storage
        self._statements = statements

    async def lookup(self, keys: Sequence[str]) -> list[CacheRow | Missing]:
        """Return rows or MISSING markers aligned with ``keys``."""
        if not keys:
            return []
        async with self._storage.connect() as conn:
            result = await conn.execute(self._statements.select_many(keys))
            rows = result.all()
        return [
            CacheRow(
                key=row.key,
                val=row.val,
                created_at=row.created_at,
                expire_at=row.expire_at,
            )
            if row.stored_key is not None
            else MISSING
            for row in rows
        ]
