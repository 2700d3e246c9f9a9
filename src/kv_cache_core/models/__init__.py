"""Domain models for sqlite-kv-cache."""

from kv_cache_core.models.row import MISSING, CacheRow, KeyTTL, Missing

__all__ = [
    "MISSING",
    "CacheRow",
    "KeyTTL",
    "Missing",
]
