from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Set

from .logging_utils import RichLogger

TickFunction = Callable[[], Awaitable[None]]


class TickScheduler:
    """Fire ``tick`` once after ``offset_ms`` and then every ``interval_ms``.

    Ticks run as independent tasks and are never awaited before the next one is
    armed. When a tick takes longer than ``interval_ms`` two ticks are in flight at
    once; pick an interval above the worst-case tick duration to avoid that.
    Deadlines missed while the event loop was blocked are skipped (counted in
    ``skipped``) rather than fired back to back.
    """

    def __init__(
        self,
        tick: TickFunction,
        interval_ms: int,
        offset_ms: int = 0,
        logger: Optional[RichLogger] = None,
        max_ticks: Optional[int] = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if offset_ms < 0:
            raise ValueError("offset_ms must not be negative")
        self.tick = tick
        self.interval_ms = interval_ms
        self.offset_ms = offset_ms
        self.logger = logger
        self.max_ticks = max_ticks
        self.fired = 0
        self.skipped = 0
        self._tasks: Set[asyncio.Task] = set()
        self._stopping: Optional[asyncio.Event] = None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    async def run(self) -> None:
        self._stopping = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            if await self._sleep_or_stop(self.offset_ms / 1000):
                return
            interval = self.interval_ms / 1000
            first_at = loop.time()
            slot = 0
            while True:
                self._spawn()
                if self.max_ticks is not None and self.fired >= self.max_ticks:
                    return
                slot += 1
                next_at = first_at + slot * interval
                now = loop.time()
                if next_at <= now:
                    # the loop stalled past one or more deadlines; fire once, not once per slot
                    missed_to = int((now - first_at) // interval) + 1
                    self.skipped += missed_to - slot
                    slot = missed_to
                    next_at = first_at + slot * interval
                if await self._sleep_or_stop(next_at - now):
                    return
        finally:
            await self._drain()

    def _spawn(self) -> None:
        self.fired += 1
        task = asyncio.create_task(self.tick(), name=f"tick-{self.fired}")
        self._tasks.add(task)
        task.add_done_callback(self._on_tick_done)

    def _on_tick_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and self.logger is not None:
            self.logger.log_exception(error, "TICK ERROR")

    async def _sleep_or_stop(self, delay: float) -> bool:
        """Wait ``delay`` seconds; return True if :meth:`stop` was called meanwhile."""

        assert self._stopping is not None
        if self._stopping.is_set():
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
