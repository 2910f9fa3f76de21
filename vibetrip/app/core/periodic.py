"""Background tasks that run on a fixed interval.

Used for housekeeping sweeps (idle rate-limit buckets, expired cache
entries) that must run regardless of request traffic.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from vibetrip.app.core.logging import get_logger

logger = get_logger(__name__)

SweepCallback = Callable[[], Union[Awaitable[Any], Any]]


class PeriodicTask:
    """Runs a callback every ``interval`` seconds until stopped.

    Usage:
        task = PeriodicTask("cache-sweep", 60.0, cache.cleanup_expired)
        await task.start()
        ...
        await task.stop()
    """

    def __init__(self, name: str, interval: float, callback: SweepCallback):
        """Initialize the task.

        Args:
            name: Identifier used in logs
            interval: Seconds between runs
            callback: Sync or async callable to invoke
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self._interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            logger.debug(f"Periodic task '{self.name}' already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=f"periodic:{self.name}")
        logger.debug(f"Started periodic task '{self.name}' (interval: {self._interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"Periodic task '{self.name}' did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None

    async def run_once(self) -> Any:
        result = self._callback()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error during periodic task '{self.name}': {e}")
