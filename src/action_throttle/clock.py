"""Wall clock and sleep capability."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Protocol


class Clock(Protocol):
    """Time source used by the reconciler and the ticker."""

    def now_ms(self) -> int: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real wall clock backed by time.time and asyncio.sleep."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Clock for tests whose time only moves when advance() is called.

    Coroutines blocked in sleep() are woken in deadline order while the
    clock is advanced, so a ticker observes every intermediate second.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self._now_ms = start_ms
        self._waiters: list[tuple[int, int, asyncio.Future[None]]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        """Jump to an absolute time without waking sleepers."""
        self._now_ms = now_ms

    async def sleep(self, seconds: float) -> None:
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        deadline = self._now_ms + int(seconds * 1000)
        heapq.heappush(self._waiters, (deadline, next(self._seq), fut))
        await fut

    async def advance(self, seconds: float) -> None:
        """Move time forward, running every sleeper that becomes due."""
        target = self._now_ms + int(seconds * 1000)
        await _settle()
        while self._waiters and self._waiters[0][0] <= target:
            deadline, _, fut = heapq.heappop(self._waiters)
            self._now_ms = max(self._now_ms, deadline)
            if not fut.done():
                fut.set_result(None)
            await _settle()
        self._now_ms = target

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, fut in self._waiters if not fut.done())


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)
