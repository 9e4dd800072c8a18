"""
Debounced background work.

A DebouncedTask coalesces bursts of schedule() calls into one execution:
every call cancels the pending timer and starts a new one, so only the last
call within the window fires. A run that has already started is never
cancelled; runs are serialized, and the next schedule() queues behind it.
drain() is the opposite of flush(): it drops the pending run and waits out
one in progress.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class DebouncedTask:
    def __init__(
        self,
        action: Callable[[], Awaitable[None]],
        delay: float = 2.0,
        name: str = "debounced",
    ):
        self.action = action
        self.delay = delay
        self.name = name
        self._timer: Optional[asyncio.Task] = None  # only set while sleeping
        self._lock = asyncio.Lock()
        self._dirty = False

    @property
    def pending(self) -> bool:
        """True when a run is owed but has not started yet."""
        return self._dirty

    def schedule(self) -> None:
        """(Re)start the timer. Earlier pending timers are dropped, not run."""
        self._dirty = True
        self._cancel_timer()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync caller): stays dirty until flush()
            logger.debug("%s: no running loop, deferring until flush", self.name)
            return

        self._timer = loop.create_task(self._wait_then_run())

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        self._dirty = False
        self._cancel_timer()

    async def drain(self) -> None:
        """Drop the pending run and wait out a run already in progress."""
        self.cancel()
        async with self._lock:
            self._dirty = False

    async def flush(self) -> None:
        """Run now if something is pending; waits for a run in progress."""
        self._cancel_timer()
        await self._run()

    def _cancel_timer(self) -> None:
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._timer is asyncio.current_task():
            self._timer = None
        await self._run()

    async def _run(self) -> None:
        async with self._lock:
            if not self._dirty:
                return
            self._dirty = False
            try:
                await self.action()
            except Exception as e:
                logger.warning("%s failed: %s", self.name, e)
