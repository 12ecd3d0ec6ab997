"""Cancellable, pausable one-second countdown driven by the asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from quiz_engine.constants.quiz_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

TickListener = Callable[[int], None]
ExpiryListener = Callable[[], Awaitable[None]]


class CountdownClock:
    """Counts down a whole-minute budget and fires expiry exactly once.

    Each tick reports the remaining seconds, down to and including zero.
    After the zero tick the expiry listener is awaited and the clock stops
    for good. ``cancel()`` suppresses every later tick and expiry, including
    ones whose sleep has already elapsed.

    With ``auto_tick=False`` no background task is created and ticks are
    delivered only through ``step()``.
    """

    def __init__(
        self,
        duration_minutes: int,
        *,
        is_active: bool = True,
        on_tick: TickListener | None = None,
        on_expire: ExpiryListener | None = None,
        interval: float = TICK_INTERVAL_SECONDS,
        auto_tick: bool = True,
    ) -> None:
        if not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValueError("Duration must be a positive whole number of minutes.")
        self._duration_seconds = duration_minutes * 60
        self._remaining = self._duration_seconds
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._interval = interval
        self._auto_tick = auto_tick
        self._resume_event = asyncio.Event()
        if is_active:
            self._resume_event.set()
        self._task: asyncio.Task[None] | None = None
        self._started = False
        self._expired = False
        self._cancelled = False

    @property
    def duration_seconds(self) -> int:
        return self._duration_seconds

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def is_active(self) -> bool:
        return self._resume_event.is_set()

    @property
    def is_expired(self) -> bool:
        return self._expired

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_finished(self) -> bool:
        return self._expired or self._cancelled

    def set_on_tick(self, listener: TickListener | None) -> None:
        self._on_tick = listener

    def set_on_expire(self, listener: ExpiryListener | None) -> None:
        self._on_expire = listener

    def set_active(self, active: bool) -> None:
        """Pause or resume ticking. Remaining time is kept as it is."""
        if active:
            self._resume_event.set()
        else:
            self._resume_event.clear()

    def start(self) -> None:
        """Begin counting down. Requires a running event loop when auto-ticking."""
        if self._started:
            raise RuntimeError("Countdown clock has already been started.")
        if self._auto_tick:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name="CountdownClock"
            )
        self._started = True

    def cancel(self) -> None:
        """Stop permanently. No tick or expiry is delivered afterwards."""
        if self._cancelled:
            return
        self._cancelled = True
        self._resume_event.set()
        task = self._task
        self._task = None
        # The expiry listener may cancel the clock from inside its own task.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def step(self) -> bool:
        """Advance one second. Returns False when nothing was delivered."""
        if self.is_finished or not self.is_active:
            return False
        self._remaining -= 1
        if self._on_tick is not None:
            self._on_tick(self._remaining)
        if self._remaining > 0:
            return True
        if self._cancelled:
            return True
        self._expired = True
        logger.info("Countdown expired after %s seconds", self._duration_seconds)
        if self._on_expire is not None:
            await self._on_expire()
        return True

    async def wait_finished(self) -> None:
        """Wait until the background task has exited."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self) -> None:
        while not self.is_finished:
            await self._resume_event.wait()
            if self.is_finished:
                break
            await asyncio.sleep(self._interval)
            # Paused during the sleep: drop this tick and wait again.
            if not self.is_active:
                continue
            await self.step()
