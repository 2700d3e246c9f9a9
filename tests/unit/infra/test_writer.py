"""Tests for the atomic batched writer."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kv_cache_core.exceptions import CacheableRejectedError, SerializationError
from kv_cache_infra.schema import SpaceStatements, build_space_table
from kv_cache_infra.serializers import JSONSerializer
from kv_cache_infra.writer import BatchedWriter
from tests.mocks.mock_factories import BrokenSerializer


def _recording_storage() -> tuple[MagicMock, AsyncMock]:
    """A storage double whose begin() yields a connection recording executes."""
    conn = AsyncMock()
    storage = MagicMock()

    @asynccontextmanager
    async def begin() -> AsyncGenerator[AsyncMock, None]:
        yield conn

    storage.begin = MagicMock(side_effect=begin)
    return storage, conn


def _writer(storage: MagicMock, **kwargs: Any) -> BatchedWriter:
    statements = SpaceStatements(build_space_table("kv"))
    kwargs.setdefault("serializer", JSONSerializer())
    return BatchedWriter(storage, statements, **kwargs)


def _written_params(conn: AsyncMock) -> list[dict[str, Any]]:
    conn.execute.assert_awaited_once()
    return conn.execute.await_args.args[1]  # type: ignore[no-any-return]


@pytest.mark.unit
class TestBatchedWriter:
    """Tests for BatchedWriter.write_all."""

    @pytest.mark.asyncio
    async def test_one_timestamp_and_expiry_per_batch(self) -> None:
        """Every row in a batch shares created_at and expire_at."""
        storage, conn = _recording_storage()
        with patch("kv_cache_core.clock.now_ms", return_value=10_000):
            await _writer(storage).write_all([("a", 1), ("b", 2), ("c", 3)], 60)

        params = _written_params(conn)
        assert [p["key"] for p in params] == ["a", "b", "c"]
        assert {p["created_at"] for p in params} == {10_000}
        assert {p["expire_at"] for p in params} == {70_000}
        assert [p["val"] for p in params] == [b"1", b"2", b"3"]

    @pytest.mark.asyncio
    async def test_fractional_ttl_is_converted_to_ms(self) -> None:
        """TTL seconds become whole milliseconds."""
        storage, conn = _recording_storage()
        with patch("kv_cache_core.clock.now_ms", return_value=0):
            await _writer(storage).write_all([("a", 1)], 1.5)
        assert _written_params(conn)[0]["expire_at"] == 1_500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [None, float("inf")])
    async def test_unbounded_ttl_stores_null_expiry(self, ttl: float | None) -> None:
        """No TTL, or an infinite one, stores a never-expiring row."""
        storage, conn = _recording_storage()
        await _writer(storage).write_all([("a", 1)], ttl)
        assert _written_params(conn)[0]["expire_at"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("ttl", "expected"), [(0, 5_000), (-5, 0)])
    async def test_non_positive_ttl_stores_expired_row(self, ttl: float, expected: int) -> None:
        """Zero or negative TTLs are accepted and yield an already-dead row."""
        storage, conn = _recording_storage()
        with patch("kv_cache_core.clock.now_ms", return_value=5_000):
            await _writer(storage).write_all([("a", 1)], ttl)
        assert _written_params(conn)[0]["expire_at"] == expected

    @pytest.mark.asyncio
    async def test_negative_infinite_ttl_stores_expired_row(self) -> None:
        """Negative infinity expires the row at the write timestamp."""
        storage, conn = _recording_storage()
        with patch("kv_cache_core.clock.now_ms", return_value=5_000):
            await _writer(storage).write_all([("a", 1)], float("-inf"))
        assert _written_params(conn)[0]["expire_at"] == 5_000

    @pytest.mark.asyncio
    async def test_huge_ttl_is_clamped_to_integer_range(self) -> None:
        """A finite TTL beyond SQLite's INTEGER range is clamped, not overflowed."""
        storage, conn = _recording_storage()
        with patch("kv_cache_core.clock.now_ms", return_value=5_000):
            await _writer(storage).write_all([("a", 1)], 1e300)
        assert _written_params(conn)[0]["expire_at"] == 2**63 - 1

    @pytest.mark.asyncio
    async def test_nan_ttl_raises_before_transaction(self) -> None:
        """A NaN TTL is rejected and nothing is written."""
        storage, _conn = _recording_storage()
        with pytest.raises(ValueError, match="NaN"):
            await _writer(storage).write_all([("a", 1)], float("nan"))
        storage.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self) -> None:
        """No transaction is opened for an empty batch."""
        storage, _conn = _recording_storage()
        await _writer(storage).write_all([], 60)
        storage.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejection_aborts_before_transaction(self) -> None:
        """The first rejected value aborts the batch; nothing is written."""
        storage, _conn = _recording_storage()
        is_cacheable = MagicMock(side_effect=lambda v: v % 2 != 0)
        writer = _writer(storage, is_cacheable=is_cacheable)

        with pytest.raises(CacheableRejectedError, match="no cacheable value 2") as exc_info:
            await writer.write_all([("foo", 1), ("bar", 2), ("baz", 3)], 60)

        assert exc_info.value.value == 2
        assert is_cacheable.call_count == 2
        storage.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_serialization_failure_aborts_before_transaction(self) -> None:
        """A value that cannot be serialized fails the whole batch."""
        storage, _conn = _recording_storage()
        writer = _writer(storage, serializer=BrokenSerializer())
        with pytest.raises(SerializationError):
            await writer.write_all([("a", 1), ("b", 2)], 60)
        storage.begin.assert_not_called()
