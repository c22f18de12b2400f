"""CountdownTicker, an asyncio Task based one-second countdown."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from types import TracebackType

import structlog

from .clock import Clock, SystemClock

logger = structlog.stdlib.get_logger(__name__)


class CountdownTicker:
    """Counts remaining seconds down while a cooldown is active.

    The task exists only while remaining > 0. Each tick decrements the
    value and then, when ``resync`` is given, replaces it with a fresh
    reconciliation so dropped ticks cannot cause drift. Reaching 0 stops
    the task and calls ``on_elapsed``.
    """

    def __init__(
        self,
        on_elapsed: Callable[[], None],
        resync: Callable[[], int] | None = None,
        clock: Clock | None = None,
        interval: float = 1.0,
    ) -> None:
        self._on_elapsed = on_elapsed
        self._resync = resync
        self._clock = clock or SystemClock()
        self._interval = interval
        self._remaining = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, remaining: int) -> None:
        """Start counting from ``remaining``, replacing any running countdown."""
        await self.stop()
        self._remaining = max(0, remaining)
        if self._remaining > 0:
            self._task = asyncio.create_task(self._run())

    def set_remaining(self, remaining: int) -> None:
        """Overwrite the value of a running countdown without restarting it."""
        self._remaining = max(0, remaining)

    async def stop(self) -> None:
        """Cancel the countdown task. Safe to call when not running."""
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> CountdownTicker:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def _run(self) -> None:
        while self._remaining > 0:
            await self._clock.sleep(self._interval)
            self._remaining -= 1
            if self._resync is not None:
                self._remaining = max(0, self._resync())
        self._task = None
        logger.debug("cooldown elapsed")
        self._on_elapsed()
