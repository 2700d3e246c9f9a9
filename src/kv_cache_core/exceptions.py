"""Custom exception hierarchy for sqlite-kv-cache."""

from __future__ import annotations

from typing import Any


class KVCacheError(Exception):
    """Base exception for all sqlite-kv-cache errors."""


class ConfigurationError(KVCacheError):
    """Raised when cache options are invalid (bad space name, unknown serializer)."""


class SerializationError(KVCacheError):
    """Raised when a value cannot be encoded to, or decoded from, its payload."""


class CacheableRejectedError(KVCacheError):
    """Raised when a value fails the configured cacheability predicate.

    The whole batch that contained the value is aborted.
    """

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"no cacheable value {value!r}")


class StorageError(KVCacheError):
    """Raised when the storage engine fails to execute a statement.

    The engine's own exception is kept as ``__cause__``.
    """
