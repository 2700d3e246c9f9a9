"""Async SQLite engine factory."""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from kv_cache_core.config.settings import Settings
from kv_cache_core.constants import CONNECTION_PRAGMAS


def create_engine(settings: Settings, **engine_options: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the cache's SQLite database.

    An in-memory database exists only on the connection that created it, so
    that case pins a single connection with ``StaticPool``.
    """
    connect_args = {
        "check_same_thread": False,
        "timeout": settings.busy_timeout_seconds,
    }
    if settings.in_memory:
        engine_options.setdefault("poolclass", StaticPool)
    engine = create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        connect_args=connect_args,
        **engine_options,
    )
    event.listen(engine.sync_engine, "connect", _apply_pragmas)
    return engine


def _apply_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    """Set durability and journaling pragmas on each new connection."""
    cursor = dbapi_connection.cursor()
    try:
        for pragma, value in CONNECTION_PRAGMAS:
            cursor.execute(f"PRAGMA main.{pragma} = {value}")
    finally:
        cursor.close()
