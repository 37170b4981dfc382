from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)


class RecurringTask:
    """
    Self-rescheduling asyncio timer.

    `interval` is asked for a fresh delay (seconds) before every run, so a
    randomized interval is re-drawn each time. Errors raised by the callback
    are logged and the timer re-arms; only cancellation stops it.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[None]],
        interval: Callable[[], float],
        clock: Callable[[], datetime],
    ) -> None:
        self.name = name
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.next_run_at: Optional[datetime] = None
        self.runs = 0
        # Used until the interval callable first succeeds.
        self._delay = 60.0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        self.next_run_at = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while True:
            delay = self._next_delay()
            self.next_run_at = self._clock() + timedelta(seconds=delay)
            log.debug("Next %s in %.1fs", self.name, delay)
            await asyncio.sleep(delay)
            self.next_run_at = None
            self.runs += 1
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Error in %s (run #%d); will retry next tick", self.name, self.runs)

    def _next_delay(self) -> float:
        try:
            self._delay = float(self._interval())
        except Exception:
            log.exception("Could not draw the next %s delay; reusing %.1fs", self.name, self._delay)
        return self._delay
