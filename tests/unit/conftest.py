"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest

from kv_cache_core.config.settings import Settings
from kv_cache_infra.adapter import SqliteCacheAdapter
from tests.mocks.mock_settings import make_settings


@pytest.fixture
def settings() -> Settings:
    """Return in-memory Settings with default TTL and CBOR values."""
    return make_settings()


@pytest.fixture
async def cache(settings: Settings) -> AsyncGenerator[SqliteCacheAdapter, None]:
    """Yield an initialized in-memory cache, closed after the test."""
    adapter = SqliteCacheAdapter(settings)
    await adapter.initialize()
    yield adapter
    await adapter.close()


@pytest.fixture
async def make_cache() -> AsyncGenerator[Callable[..., Awaitable[SqliteCacheAdapter]], None]:
    """Return a factory for extra caches; all are closed after the test."""
    created: list[SqliteCacheAdapter] = []

    async def _make(settings: Settings | None = None, **kwargs: Any) -> SqliteCacheAdapter:
        adapter = SqliteCacheAdapter(settings or make_settings(), **kwargs)
        await adapter.initialize()
        created.append(adapter)
        return adapter

    yield _make
    for adapter in created:
        await adapter.close()
