"""Capabilities consumed from the server side."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import DispatchOutcome, ProbeResult


class StatusProbe(ABC):
    """Read-only rate-limit status check."""

    @abstractmethod
    async def probe_status(self) -> ProbeResult:
        """Report whether the server currently limits the action.

        Must not consume an attempt. May raise; callers treat any error
        as "not limited".
        """
        ...


class ActionDispatcher(ABC):
    """The mutating, rate-limited action."""

    @abstractmethod
    async def dispatch_action(self) -> DispatchOutcome:
        """Perform the action and map the response to an outcome."""
        ...


class ActionClient(StatusProbe, ActionDispatcher):
    """Probe and dispatcher served by the same backend."""
