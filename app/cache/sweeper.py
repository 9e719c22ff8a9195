"""
Background sweep of expired cache entries.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .core import Duration, to_seconds, DEFAULT_CLEANUP_INTERVAL
from .invalidation import Invalidator

logger = logging.getLogger("cache.sweeper")


class Sweeper:
    """
    Periodically purges expired entries.

    At most one sweep task runs per Sweeper; start() while running is a
    no-op and stop() while stopped is safe. A sweep never raises.
    """

    def __init__(
        self,
        invalidator: Invalidator,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            invalidator: Performs the actual purge
            sleep: Awaited between sweeps (swap for a fake in tests)
        """
        self._invalidator = invalidator
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Task] = None
        self._period: float = DEFAULT_CLEANUP_INTERVAL
        self.last_purged: int = 0
        self.total_purged: int = 0
        self.cycles: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def period(self) -> float:
        return self._period

    def sweep(self) -> int:
        """
        Run one purge pass.

        Returns:
            Number of entries purged (0 if the pass failed)
        """
        try:
            purged = self._invalidator.purge_expired()
        except Exception:
            logger.exception("Cache sweep failed")
            purged = 0

        self.cycles += 1
        self.last_purged = purged
        self.total_purged += purged
        if purged > 0:
            logger.info(f"Cleaned up {purged} expired cache entries")
        return purged

    def start(self, period: Duration = DEFAULT_CLEANUP_INTERVAL) -> bool:
        """
        Start sweeping every `period` on the running event loop.

        Returns:
            False if a sweep task was already running
        """
        if self.running:
            return False
        seconds = to_seconds(period)
        if seconds <= 0:
            raise ValueError(f"Sweep period must be positive, got {seconds}")
        self._period = seconds
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="cache-sweeper"
        )
        logger.info(f"Started cache sweeper [period={seconds:.0f}s]")
        return True

    def stop(self) -> bool:
        """
        Cancel the sweep task.

        Returns:
            True if a task was running
        """
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        self._stopping = task
        logger.info("Stopped cache sweeper")
        return True

    async def aclose(self) -> None:
        """Stop and wait for the sweep task to finish unwinding."""
        self.stop()
        task, self._stopping = self._stopping, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await self._sleep(self._period)
            self.sweep()
