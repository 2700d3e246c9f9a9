"""Best-effort removal of expired rows."""

from __future__ import annotations

import asyncio

import structlog

from kv_cache_core import clock
from kv_cache_infra.db.session import StorageHandle
from kv_cache_infra.schema import SpaceStatements

logger = structlog.get_logger()


class ExpirySweeper:
    """Purge expired rows space-wide, either on demand or detached.

    ``schedule()`` starts a sweep as a task on the running event loop and
    returns immediately; the task runs on a later loop iteration, so it never
    affects the result or latency of the read that scheduled it. Scheduled
    sweeps log and discard their failures.
    """

    def __init__(self, storage: StorageHandle, statements: SpaceStatements) -> None:
        """Initialize with the space's storage handle and statements."""
        self._storage = storage
        self._statements = statements
        self._pending: set[asyncio.Task[int]] = set()
        self._log = logger.bind(space=statements.table.name)

    async def sweep(self) -> int:
        """Delete every expired row now and return how many were removed."""
        async with self._storage.begin() as conn:
            result = await conn.execute(self._statements.purge_expired(clock.now_ms()))
        removed = result.rowcount or 0
        self._log.debug("cache_sweep_completed", removed=removed)
        return removed

    def schedule(self) -> None:
        """Fire a sweep without waiting for it."""
        task = asyncio.get_running_loop().create_task(self._sweep_quietly())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._log.debug("cache_sweep_scheduled", pending=len(self._pending))

    async def drain(self) -> None:
        """Wait until every scheduled sweep has finished or been cancelled."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @property
    def pending(self) -> int:
        """Number of scheduled sweeps still running."""
        return len(self._pending)

    async def _sweep_quietly(self) -> int:
        try:
            return await self.sweep()
        except Exception as e:
            self._log.debug("cache_sweep_failed", error=str(e))
            return 0
