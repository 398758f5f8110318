"""Polling scheduler with a single wall-clock deadline.

The countdown shown to the user and the moment the next tick fires are both
derived from one `deadline`, so they cannot drift apart.

Lifecycle:
- `start(interval_s, on_tick)` spawns one background task.
- On expiry it awaits `on_tick()` and moves the deadline one interval ahead.
- `stop()` cancels the task; no tick runs after it returns.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from core.domain.models import Countdown

logger = logging.getLogger(__name__)

Tick = Callable[[], Awaitable[object]]


class PollingScheduler:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        resolution_s: float = 1.0,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._resolution_s = resolution_s
        self._task: asyncio.Task | None = None
        self._interval_s: float | None = None
        self._on_tick: Tick | None = None
        self.deadline: float | None = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_s(self) -> float | None:
        return self._interval_s

    def start(self, interval_s: float, on_tick: Tick) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.stop()
        self._interval_s = interval_s
        self._on_tick = on_tick
        self.deadline = self._clock() + interval_s
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("polling every %ss", interval_s)

    def stop(self) -> None:
        task = self._task
        self._task = None
        self.deadline = None
        if task is not None and not task.done():
            task.cancel()

    def set_enabled(self, enabled: bool, interval_s: float | None = None, on_tick: Tick | None = None) -> None:
        """Auto-update toggle: turning it off always releases the timer."""

        if not enabled:
            self.stop()
            return
        interval = interval_s or self._interval_s
        callback = on_tick or self._on_tick
        if interval is None or callback is None:
            raise ValueError("no interval/callback to resume polling with")
        if not self.is_running:
            self.start(interval, callback)

    def remaining(self) -> float:
        if self.deadline is None:
            return 0.0
        return max(0.0, self.deadline - self._clock())

    def countdown(self) -> Countdown:
        return Countdown.from_seconds(self.remaining())

    def reset_deadline(self) -> None:
        """A manual refresh restarts the wait for the next tick."""

        if self._interval_s is not None and self.deadline is not None:
            self.deadline = self._clock() + self._interval_s

    async def _run(self) -> None:
        # `stop()` clears the deadline, possibly from inside `on_tick`.
        while self.deadline is not None:
            remaining = self.remaining()
            if remaining > 0:
                await self._sleep(min(remaining, self._resolution_s))
                continue

            assert self._on_tick is not None and self._interval_s is not None
            self.deadline = self._clock() + self._interval_s
            self.ticks += 1
            try:
                await self._on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("polling tick failed")
