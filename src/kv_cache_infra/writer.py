"""Atomic batched writes."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from kv_cache_core import clock
from kv_cache_core.exceptions import CacheableRejectedError
from kv_cache_core.interfaces.serializer import Serializer
from kv_cache_infra.db.session import StorageHandle
from kv_cache_infra.schema import SpaceStatements
from kv_cache_infra.serializers import encode_value

logger = structlog.get_logger()

_MAX_EXPIRE_AT = 2**63 - 1
_MIN_EXPIRE_AT = -(2**63)


class BatchedWriter:
    """Apply an ordered batch of key/value writes as one all-or-nothing unit."""

    def __init__(
        self,
        storage: StorageHandle,
        statements: SpaceStatements,
        serializer: Serializer,
        is_cacheable: Callable[[Any], bool] | None = None,
    ) -> None:
        """Initialize with storage, statements and value policy."""
        self._storage = storage
        self._statements = statements
        self._serializer = serializer
        self._is_cacheable = is_cacheable
        self._log = logger.bind(space=statements.table.name)

    async def write_all(
        self, pairs: Sequence[tuple[str, Any]], ttl_seconds: float | None
    ) -> None:
        """Upsert every pair with one shared timestamp and expiry.

        ``ttl_seconds`` of None or infinity stores rows that never expire; zero
        or a negative value, negative infinity included, stores rows that are
        already expired. NaN raises ValueError. Every value is checked and
        serialized before the transaction opens, so a rejection or serialization
        failure leaves the space untouched.
        """
        if not pairs:
            return

        if ttl_seconds is not None and math.isnan(ttl_seconds):
            msg = "ttl must be a number of seconds, not NaN"
            raise ValueError(msg)

        now = clock.now_ms()
        expire_at = _expiry(now, ttl_seconds)

        params: list[dict[str, Any]] = []
        for key, value in pairs:
            if self._is_cacheable is not None and not self._is_cacheable(value):
                self._log.info("cache_batch_rejected", key=key, batch_size=len(pairs))
                raise CacheableRejectedError(value)
            params.append(
                {
                    "key": key,
                    "val": encode_value(self._serializer, value),
                    "created_at": now,
                    "expire_at": expire_at,
                }
            )

        async with self._storage.begin() as conn:
            await conn.execute(self._statements.upsert(), params)
        self._log.debug("cache_batch_written", batch_size=len(params), expire_at=expire_at)


def _expiry(now: int, ttl_seconds: float | None) -> int | None:
    """Absolute expiry in epoch ms for a TTL, clamped to SQLite's INTEGER range."""
    if ttl_seconds is None or ttl_seconds == math.inf:
        return None
    if ttl_seconds == -math.inf:
        return now
    expire_at = now + int(ttl_seconds * 1000)
    return max(_MIN_EXPIRE_AT, min(expire_at, _MAX_EXPIRE_AT))
