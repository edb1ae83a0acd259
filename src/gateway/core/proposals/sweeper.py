"""Periodic removal of expired proposals.

Provides:
- ExpirySweeper: Schedulable sweep task with injectable sleep
"""

import asyncio
import contextlib
from typing import Awaitable, Callable

import structlog

from .store import ProposalStore

logger = structlog.get_logger()


class ExpirySweeper:
    """Low-priority background task that calls ``ProposalStore.sweep``.

    The interval never exceeds half the store TTL. Only one sweep is in
    flight at a time: a run requested while another is still going is skipped.

    Args:
        store: Store to sweep
        interval_seconds: Delay between sweeps (defaults to half the TTL)
        sleep: Awaitable sleep function, replaceable in tests
    """

    def __init__(
        self,
        store: ProposalStore,
        interval_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        half_ttl = store.ttl_seconds / 2
        if interval_seconds is None or interval_seconds > half_ttl:
            interval_seconds = half_ttl
        self.store = store
        self.interval = interval_seconds
        self._sleep = sleep
        self._in_flight = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run a single sweep unless one is already in flight.

        Returns:
            Number of proposals removed (0 when skipped)
        """
        if self._in_flight.locked():
            logger.debug("sweep_skipped", reason="in_flight")
            return 0
        async with self._in_flight:
            return await self.store.sweep()

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("sweep_failed", error=str(e))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("sweeper_started", interval_seconds=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
