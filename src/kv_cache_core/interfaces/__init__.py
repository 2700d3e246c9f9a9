"""Public interface re-exports for kv_cache_core."""

from kv_cache_core.interfaces.cache import CacheStore
from kv_cache_core.interfaces.serializer import Serializer

__all__ = [
    "CacheStore",
    "Serializer",
]
