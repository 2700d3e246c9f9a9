"""Integration test fixtures: real SQLite database files."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from kv_cache_infra.adapter import SqliteCacheAdapter
from tests.mocks.mock_settings import make_file_settings

OpenCache = Callable[..., Awaitable[SqliteCacheAdapter]]


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of the database file shared by every cache in one test."""
    return tmp_path / "cache.db"


@pytest.fixture
async def open_file_cache(db_path: Path) -> AsyncGenerator[OpenCache, None]:
    """Return a factory opening caches on ``db_path``; all are closed afterwards."""
    opened: list[SqliteCacheAdapter] = []

    async def _open(**overrides: Any) -> SqliteCacheAdapter:
        adapter_kwargs = {
            k: overrides.pop(k) for k in ("serializer", "is_cacheable", "on_ready") if k in overrides
        }
        settings = make_file_settings(db_path.parent, path=str(db_path), **overrides)
        adapter = SqliteCacheAdapter(settings, **adapter_kwargs)
        await adapter.initialize()
        opened.append(adapter)
        return adapter

    yield _open
    for adapter in opened:
        await adapter.close()
