"""Cooldown reconciliation between the persisted timestamp and the clock."""

from __future__ import annotations

import math

import structlog

from .clock import Clock
from .models import CooldownWindow
from .storage import PersistedTimestampStore

logger = structlog.stdlib.get_logger(__name__)


def remaining_seconds(now_ms: int, dispatched_at_ms: int | None, cooldown_ms: int) -> int:
    """Seconds left in the cooldown, rounded up. 0 means ready."""
    if dispatched_at_ms is None:
        return 0
    elapsed = now_ms - dispatched_at_ms
    if elapsed >= cooldown_ms:
        return 0
    return math.ceil((cooldown_ms - elapsed) / 1000)


def infer_dispatched_at(now_ms: int, cooldown_ms: int, remaining: int) -> int:
    """Dispatch time that reconciles to ``remaining`` seconds at ``now_ms``.

    Used to store a server-reported remaining time in the same form as a
    locally observed dispatch.
    """
    return now_ms - (cooldown_ms - remaining * 1000)


class CooldownReconciler:
    """Derives the remaining cooldown from the persisted dispatch time.

    The window's ``dispatched_at`` mirrors the store. When the last write to
    the store failed, the mirror is used instead so the cooldown still holds
    for the current session.
    """

    def __init__(
        self,
        store: PersistedTimestampStore,
        window: CooldownWindow,
        key: str,
        clock: Clock,
    ) -> None:
        self._store = store
        self._window = window
        self._key = key
        self._clock = clock
        self._durable = True

    @property
    def window(self) -> CooldownWindow:
        return self._window

    @property
    def durable(self) -> bool:
        """False when the last write could not be persisted."""
        return self._durable

    def read_dispatched_at(self) -> int | None:
        raw = self._store.get(self._key)
        if raw is None:
            return None if self._durable else self._window.dispatched_at
        try:
            return int(float(raw))
        except (ValueError, OverflowError):
            logger.warning("discarding unparseable dispatch timestamp", key=self._key, value=raw)
            self.clear()
            return None

    def reconcile(self) -> int:
        """Return the remaining seconds, clearing the record once elapsed."""
        now = self._clock.now_ms()
        dispatched_at = self.read_dispatched_at()
        if dispatched_at is None:
            self._window.dispatched_at = None
            return 0
        if dispatched_at - now > self._window.reset_period * 1000:
            logger.warning(
                "discarding dispatch timestamp beyond the reset period",
                key=self._key,
                dispatched_at=dispatched_at,
            )
            self.clear()
            return 0
        remaining = remaining_seconds(now, dispatched_at, self._window.cooldown_ms)
        if remaining == 0:
            self.clear()
            return 0
        self._window.dispatched_at = dispatched_at
        return remaining

    def record_dispatch(self, at_ms: int | None = None) -> bool:
        """Persist a dispatch time (now by default). Returns durability."""
        at = self._clock.now_ms() if at_ms is None else at_ms
        self._window.dispatched_at = at
        self._durable = self._store.set(self._key, str(at))
        return self._durable

    def adopt_remaining(self, remaining: int) -> int:
        """Persist a server-reported remaining time as an inferred dispatch."""
        at = infer_dispatched_at(self._clock.now_ms(), self._window.cooldown_ms, remaining)
        self.record_dispatch(at)
        return at

    def clear(self) -> bool:
        self._window.dispatched_at = None
        self._durable = self._store.remove(self._key)
        return self._durable
