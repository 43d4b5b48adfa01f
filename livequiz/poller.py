"""Repeating async timer that owns one screen's network polling."""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from livequiz.common import logger
from livequiz.errors import QuizClientError

ErrorHandler = Callable[[QuizClientError], Any]


class Poller:
    """Call `tick` every `interval` seconds until stopped.

    - The first tick fires immediately on start().
    - If the previous tick is still waiting on the network, the new one is
      skipped rather than stacked.
    - A failing tick is reported to `on_error` and the loop keeps going; one
      bad poll is never fatal.
    - stop() is synchronous and final: no tick starts and no error is
      reported after it returns. A request already in flight is not
      cancelled; its owner discards the result.

    Use as `async with Poller(...)` or call start()/stop() from a screen's
    mount/unmount hooks.
    """

    def __init__(self, tick: Callable[[], Awaitable[None]], interval: float, *,
                 name: str = "poller", on_error: Optional[ErrorHandler] = None) -> None:
        self._tick = tick
        self.interval = interval
        self.name = name
        self.on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._stopped = True
        self.ticks_started = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug(f"[{self.name}] polling every {self.interval}s")

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug(f"[{self.name}] polling stopped")

    def set_interval(self, interval: float) -> None:
        """Takes effect from the next sleep."""
        if interval != self.interval:
            logger.debug(f"[{self.name}] interval {self.interval}s -> {interval}s")
            self.interval = interval

    async def __aenter__(self) -> "Poller":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()

    # ----- internals -------------------------------------------------------

    async def _run(self) -> None:
        while not self._stopped:
            if self._inflight is None or self._inflight.done():
                self.ticks_started += 1
                self._inflight = asyncio.create_task(self._tick_once())
            else:
                self.ticks_skipped += 1
                logger.debug(f"[{self.name}] previous poll still in flight, skipping tick")
            await asyncio.sleep(self.interval)

    async def _tick_once(self) -> None:
        try:
            await self._tick()
        except QuizClientError as e:
            if self._stopped:
                return
            logger.info(f"[{self.name}] poll failed: {e.message}")
            await self._report(e)
        except Exception as e:
            if self._stopped:
                return
            logger.exception(f"[{self.name}] unexpected error during poll")
            await self._report(QuizClientError(f"Unexpected error: {e}"))

    async def _report(self, error: QuizClientError) -> None:
        if self.on_error is None:
            return
        result = self.on_error(error)
        if inspect.isawaitable(result):
            await result
