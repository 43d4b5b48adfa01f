"""Local per-question countdown, decremented once per second."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional


def _is_current(task: asyncio.Task) -> bool:
    try:
        return task is asyncio.current_task()
    except RuntimeError:
        return False


class Countdown:
    """Whole-second countdown with a single expiry callback.

    `period=None` disables the background timer; time then only moves when
    tick() is awaited, which is how tests drive it.
    """

    def __init__(self, on_tick: Optional[Callable[[int], Any]] = None,
                 on_expire: Optional[Callable[[], Any]] = None,
                 *, period: Optional[float] = 1.0) -> None:
        self.on_tick = on_tick
        self.on_expire = on_expire
        self.period = period
        self.duration = 0
        self.remaining = 0
        self._expired = False
        self._active = False
        self._task: Optional[asyncio.Task] = None

    # ----- public API ------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.remaining > 0 and not self._expired and self._active

    def start(self, seconds: int) -> None:
        """(Re)start from `seconds`, discarding any previous run."""
        self._cancel_task()
        self.duration = max(0, int(seconds))
        self.remaining = self.duration
        self._expired = False
        self._active = True
        if self.period is not None and self.remaining > 0:
            self._task = asyncio.create_task(self._run(), name="countdown")

    def stop(self) -> int:
        """Freeze the countdown and return the seconds left."""
        self._active = False
        self._cancel_task()
        return self.remaining

    @property
    def fraction_remaining(self) -> float:
        if self.duration <= 0:
            return 0.0
        return self.remaining / self.duration

    async def tick(self) -> None:
        """Advance one second. Fires on_expire exactly once on reaching zero."""
        if not self._active or self._expired or self.remaining <= 0:
            return
        self.remaining -= 1
        await self._call(self.on_tick, self.remaining)
        if self.remaining == 0 and not self._expired:
            self._expired = True
            self._active = False
            await self._call(self.on_expire)

    # ----- internals -------------------------------------------------------

    async def _run(self) -> None:
        while self._active and self.remaining > 0:
            await asyncio.sleep(self.period)
            await self.tick()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and not _is_current(task):
            task.cancel()

    @staticmethod
    async def _call(callback, *args) -> None:
        if callback is None:
            return
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
