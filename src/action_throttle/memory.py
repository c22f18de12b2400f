"""Scripted in-memory ActionClient used by the test suite."""

from __future__ import annotations

import asyncio
from collections import deque

from .client import ActionClient
from .models import DispatchOutcome, DispatchSuccess, ProbeResult


class InMemoryActionClient(ActionClient):
    """Scripted ActionClient for testing.

    Dispatch outcomes are served from a queue (DispatchSuccess once it is
    empty). Queued exceptions are raised instead of returned. While a hold
    is set, the held calls block until release() is called.
    """

    def __init__(self) -> None:
        self._outcomes: deque[DispatchOutcome | Exception] = deque()
        self._probe: ProbeResult | Exception = ProbeResult(limited=False)
        self._probe_hold: asyncio.Event | None = None
        self._dispatch_hold: asyncio.Event | None = None
        self.dispatch_calls = 0
        self.probe_calls = 0

    def queue_outcome(self, outcome: DispatchOutcome | Exception) -> None:
        """Queue the result of a future dispatch_action call."""
        self._outcomes.append(outcome)

    def set_probe(self, result: ProbeResult | Exception) -> None:
        """Set what probe_status returns (or raises)."""
        self._probe = result

    def hold(self, probe: bool = True, dispatch: bool = True) -> None:
        """Block subsequent status and/or dispatch calls until release()."""
        if probe:
            self._probe_hold = asyncio.Event()
        if dispatch:
            self._dispatch_hold = asyncio.Event()

    def release(self) -> None:
        for event in (self._probe_hold, self._dispatch_hold):
            if event is not None:
                event.set()
        self._probe_hold = None
        self._dispatch_hold = None

    async def probe_status(self) -> ProbeResult:
        self.probe_calls += 1
        if self._probe_hold is not None:
            await self._probe_hold.wait()
        if isinstance(self._probe, Exception):
            raise self._probe
        return self._probe

    async def dispatch_action(self) -> DispatchOutcome:
        self.dispatch_calls += 1
        if self._dispatch_hold is not None:
            await self._dispatch_hold.wait()
        outcome = self._outcomes.popleft() if self._outcomes else DispatchSuccess()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
