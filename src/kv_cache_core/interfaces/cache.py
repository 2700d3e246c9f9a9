"""Abstract cache store interface."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Uniform cache interface; implementations can be swapped.

    ``ttl`` arguments are in seconds; ``None`` means the store's default.
    """

    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key, or None if missing or expired."""
        ...

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value with optional TTL."""
        ...

    async def mget(self, *keys: str) -> list[Any | None]:
        """Retrieve values in request order, None in each absent slot."""
        ...

    async def mset(self, pairs: Sequence[tuple[str, Any]], ttl: float | None = None) -> None:
        """Store all pairs atomically with one shared TTL."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a key from the cache."""
        ...

    async def mdel(self, *keys: str) -> None:
        """Delete several keys atomically."""
        ...

    async def ttl(self, key: str) -> float:
        """Milliseconds left for a key; infinity when unbounded or absent."""
        ...

    async def keys(self, pattern: str | None = None) -> list[str]:
        """List stored keys, optionally filtered by a LIKE pattern."""
        ...

    async def reset(self) -> None:
        """Remove every key."""
        ...
