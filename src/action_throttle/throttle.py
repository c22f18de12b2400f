"""ActionThrottle: wires store, reconciler, ticker, probe and invoker."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from types import TracebackType

import structlog

from .client import ActionClient
from .clock import Clock, SystemClock
from .config import ThrottleConfig
from .exceptions import ThrottleError, ThrottleErrorCodes
from .http_client import HttpActionClient
from .invoker import ActionInvoker
from .models import (
    AttemptInfo,
    InvokerState,
    ProbeResult,
    ThrottleSnapshot,
    ThrottleStatus,
)
from .reconciler import CooldownReconciler
from .storage import InMemoryStorageBackend, PersistedTimestampStore, StorageBackend
from .ticker import CountdownTicker
from .visibility import VisibilityController

logger = structlog.stdlib.get_logger(__name__)


class ActionThrottle:
    """Client-side throttle for one rate-limited server action.

    Usage::

        async with ActionThrottle(config, client, store) as throttle:
            await throttle.set_eligibility(True)
            snapshot = await throttle.trigger()

    Closing cancels the countdown and any probe in flight; network results
    that arrive afterwards are discarded.
    """

    def __init__(
        self,
        config: ThrottleConfig,
        client: ActionClient,
        store: PersistedTimestampStore,
        clock: Clock | None = None,
        visibility: VisibilityController | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._clock = clock or SystemClock()
        self._reconciler = CooldownReconciler(
            store, config.new_window(), config.storage_key, self._clock
        )
        self._ticker = CountdownTicker(
            on_elapsed=self._on_elapsed,
            resync=self._reconciler.reconcile,
            clock=self._clock,
            interval=config.tick_interval,
        )
        self._invoker = ActionInvoker(client, self._reconciler, self, self._clock)
        self._visibility = visibility or VisibilityController(
            policy=config.dismiss_policy, store=store, key=config.dismiss_key
        )
        self._probe_task: asyncio.Task[ProbeResult | None] | None = None
        self._reset_time: datetime | None = None
        self._attempts: AttemptInfo | None = None
        self._error: str | None = None
        self._message = ""
        self._dispatches = 0
        self._active = False
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: ThrottleConfig,
        backend: StorageBackend | None = None,
    ) -> ActionThrottle:
        """Build a throttle talking HTTP to ``config.http``."""
        store = PersistedTimestampStore(backend or InMemoryStorageBackend())
        return cls(config, HttpActionClient(config), store)

    @property
    def visibility(self) -> VisibilityController:
        return self._visibility

    @property
    def reconciler(self) -> CooldownReconciler:
        return self._reconciler

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> ActionThrottle:
        await self.activate()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def activate(self) -> ThrottleSnapshot:
        """Reconcile with the store and, when ready, probe the server once.

        Does nothing while the throttle UI is hidden. Calling it again (for
        example on window focus) re-synchronises a running countdown.
        """
        self._ensure_open()
        if not self._visibility.visible:
            return self.snapshot()
        self._active = True
        remaining = self._reconciler.reconcile()
        if remaining > 0:
            if self._ticker.running:
                self._ticker.set_remaining(remaining)
            else:
                await self._ticker.start(remaining)
        else:
            await self._ticker.start(0)
            await self.probe()
        return self.snapshot()

    async def probe(self) -> ProbeResult | None:
        """Consult the server status probe. Failures are logged and ignored.

        The result is dropped when a dispatch was triggered while the probe
        was pending, or when local state is no longer ready.
        """
        dispatches = self._dispatches
        try:
            result = await self._client.probe_status()
        except Exception as e:
            logger.warning("status probe failed, assuming ready", error=str(e))
            return None
        if self._closed or not self._active:
            logger.debug("discarding probe result for inactive throttle")
            return result
        if self._invoker.state == InvokerState.DISPATCHING or self._dispatches != dispatches:
            logger.debug("discarding probe result superseded by a dispatch")
            return result
        if self._reconciler.reconcile() > 0:
            return result
        if result.limited and result.signal is not None:
            await self._invoker.apply_signal(result.signal)
        return result

    async def trigger(self) -> ThrottleSnapshot:
        """Dispatch the action.

        Raises ThrottleError when the UI is hidden, the cooldown is still
        running, a dispatch is in flight or the throttle is closed.
        """
        self._ensure_open()
        if not self._visibility.visible:
            raise ThrottleError(
                code=ThrottleErrorCodes.NOT_VISIBLE,
                message="throttle UI is not shown",
            )
        self._active = True
        await self._cancel_probe()
        self._dispatches += 1
        await self._invoker.invoke()
        return self.snapshot()

    async def set_eligibility(self, eligible: bool) -> ThrottleSnapshot:
        visible = self._visibility.set_eligibility(eligible)
        await self._sync_visibility(visible)
        return self.snapshot()

    async def dismiss(self) -> ThrottleSnapshot:
        self._visibility.dismiss()
        await self._sync_visibility(self._visibility.visible)
        return self.snapshot()

    async def restore(self) -> ThrottleSnapshot:
        self._visibility.restore()
        await self._sync_visibility(self._visibility.visible)
        return self.snapshot()

    def snapshot(self) -> ThrottleSnapshot:
        """Return the outward state without touching the store."""
        if self._reset_time is not None and self._reset_time <= self._now():
            self._reset_time = None
            self._message = ""
        remaining = self._ticker.remaining
        if not self._visibility.visible:
            status = ThrottleStatus.HIDDEN
        elif self._invoker.state == InvokerState.DISPATCHING:
            status = ThrottleStatus.DISPATCHING
        elif self._reset_time is not None:
            status = ThrottleStatus.ATTEMPTS_EXHAUSTED
        elif remaining > 0:
            status = ThrottleStatus.COUNTING_DOWN
        elif self._error is not None:
            status = ThrottleStatus.FAILED
        else:
            status = ThrottleStatus.READY
        return ThrottleSnapshot(
            status=status,
            remaining_seconds=remaining,
            reset_time=self._reset_time,
            attempts=self._attempts,
            error=self._error,
            message=self._message,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._active = False
        self._invoker.close()
        await self._ticker.stop()
        await self._cancel_probe()

    # CooldownSink

    async def engage(self, remaining: int, message: str = "") -> None:
        self._error = None
        self._message = message
        if self._active:
            await self._ticker.start(remaining)
        else:
            self._ticker.set_remaining(remaining)

    async def disengage(self) -> None:
        await self._ticker.stop()
        self._ticker.set_remaining(0)
        self._message = ""

    def exhaust(self, reset_time: datetime, message: str = "") -> None:
        self._reset_time = reset_time
        self._message = message

    def succeed(self, attempts: AttemptInfo | None) -> None:
        self._error = None
        self._reset_time = None
        if attempts is not None:
            self._attempts = attempts

    def fail(self, reason: str) -> None:
        self._error = reason

    def _on_elapsed(self) -> None:
        self._reconciler.clear()
        self._message = ""
        if self._active and not self._closed:
            self._probe_task = asyncio.create_task(self.probe())

    async def _sync_visibility(self, visible: bool) -> None:
        if self._closed:
            return
        if visible and not self._active:
            await self.activate()
        elif not visible and self._active:
            self._active = False
            await self._ticker.stop()
            await self._cancel_probe()

    async def _cancel_probe(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _ensure_open(self) -> None:
        if self._closed:
            raise ThrottleError(
                code=ThrottleErrorCodes.THROTTLE_CLOSED,
                message="throttle is closed",
            )

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock.now_ms() / 1000, tz=timezone.utc)
