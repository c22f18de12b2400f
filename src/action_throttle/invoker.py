"""Action invoker state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

import structlog

from .client import ActionDispatcher
from .clock import Clock
from .exceptions import ThrottleError, ThrottleErrorCodes
from .models import (
    AttemptInfo,
    DispatchFailure,
    DispatchOutcome,
    DispatchSuccess,
    InvokeResult,
    InvokerState,
    RateLimitSignal,
)
from .reconciler import CooldownReconciler

logger = structlog.stdlib.get_logger(__name__)


class CooldownSink(Protocol):
    """In-memory throttle state driven by the invoker."""

    async def engage(self, remaining: int, message: str = "") -> None: ...

    async def disengage(self) -> None: ...

    def exhaust(self, reset_time: datetime, message: str = "") -> None: ...

    def succeed(self, attempts: AttemptInfo | None) -> None: ...

    def fail(self, reason: str) -> None: ...


class ActionInvoker:
    """Dispatches the action with an optimistic cooldown.

    idle -> dispatching -> (succeeded | rate_limited | failed) -> idle.
    The persisted record is written before the call and then kept on
    success, rewritten from the server's remaining time on a short rate
    limit, left alone when the attempt cap is exhausted, and removed on
    any other failure.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        reconciler: CooldownReconciler,
        sink: CooldownSink,
        clock: Clock,
    ) -> None:
        self._dispatcher = dispatcher
        self._reconciler = reconciler
        self._sink = sink
        self._clock = clock
        self._state = InvokerState.IDLE
        self._closed = False

    @property
    def state(self) -> InvokerState:
        return self._state

    def close(self) -> None:
        """Discard the result of any dispatch still in flight."""
        self._closed = True

    async def invoke(self) -> InvokeResult:
        if self._closed:
            raise ThrottleError(
                code=ThrottleErrorCodes.THROTTLE_CLOSED,
                message="throttle is closed",
            )
        if self._state == InvokerState.DISPATCHING:
            raise ThrottleError(
                code=ThrottleErrorCodes.DISPATCH_IN_FLIGHT,
                message="a dispatch is already in flight",
            )
        remaining = self._reconciler.reconcile()
        if remaining > 0:
            raise ThrottleError(
                code=ThrottleErrorCodes.COOLDOWN_ACTIVE,
                message=f"cooldown active, retry in {remaining}s",
            )

        if not self._reconciler.record_dispatch():
            logger.warning("dispatch time not durably recorded, tracking in memory")
        self._state = InvokerState.DISPATCHING
        try:
            await self._sink.engage(self._reconciler.window.cooldown_seconds)
            try:
                outcome = await self._dispatcher.dispatch_action()
            except Exception as e:
                logger.warning("dispatch raised", error=str(e), error_type=type(e).__name__)
                outcome = DispatchFailure(reason=str(e) or type(e).__name__)
            if self._closed:
                logger.info("discarding dispatch result after close")
                return InvokeResult(state=InvokerState.IDLE, outcome=outcome, discarded=True)
            return InvokeResult(state=await self._settle(outcome), outcome=outcome)
        finally:
            self._state = InvokerState.IDLE

    async def _settle(self, outcome: DispatchOutcome) -> InvokerState:
        if isinstance(outcome, DispatchSuccess):
            self._sink.succeed(outcome.attempts)
            logger.info("dispatch succeeded")
            return InvokerState.SUCCEEDED
        if isinstance(outcome, RateLimitSignal):
            await self.apply_signal(outcome)
            return InvokerState.RATE_LIMITED
        await self.rollback(outcome.reason)
        return InvokerState.FAILED

    async def apply_signal(self, signal: RateLimitSignal) -> None:
        """Reconcile a server rate-limit signal into local state.

        Shared by dispatch rejections and status probe results.
        """
        if signal.remaining_seconds is not None:
            self._reconciler.adopt_remaining(signal.remaining_seconds)
            await self._sink.engage(signal.remaining_seconds, signal.message)
            logger.info("server cooldown adopted", remaining_seconds=signal.remaining_seconds)
            return
        if signal.reset_time is None:
            return
        now = datetime.fromtimestamp(self._clock.now_ms() / 1000, tz=timezone.utc)
        ceiling = now + timedelta(seconds=self._reconciler.window.reset_period)
        reset_time = min(signal.reset_time, ceiling)
        self._sink.exhaust(reset_time, signal.message)
        logger.info("attempt limit exhausted", reset_time=reset_time.isoformat())

    async def rollback(self, reason: str) -> None:
        """Undo the optimistic cooldown after a non rate-limit failure."""
        self._reconciler.clear()
        await self._sink.disengage()
        self._sink.fail(reason)
        logger.warning("dispatch failed, cooldown rolled back", reason=reason)
