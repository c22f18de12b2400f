"""ActionInvoker unit tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from action_throttle import (
    ActionInvoker,
    AttemptInfo,
    CooldownReconciler,
    DispatchFailure,
    DispatchSuccess,
    InMemoryActionClient,
    InMemoryStorageBackend,
    InvokerState,
    ManualClock,
    PersistedTimestampStore,
    RateLimitSignal,
    ThrottleConfig,
    ThrottleError,
    ThrottleErrorCodes,
)

KEY = "email_verification_last_sent"
T0 = 1_700_000_000_000


class RecordingSink:
    def __init__(self) -> None:
        self.remaining = 0
        self.reset_time: datetime | None = None
        self.attempts: AttemptInfo | None = None
        self.error: str | None = None
        self.message = ""

    async def engage(self, remaining: int, message: str = "") -> None:
        self.remaining = remaining
        self.message = message

    async def disengage(self) -> None:
        self.remaining = 0

    def exhaust(self, reset_time: datetime, message: str = "") -> None:
        self.reset_time = reset_time
        self.message = message

    def succeed(self, attempts: AttemptInfo | None) -> None:
        self.attempts = attempts

    def fail(self, reason: str) -> None:
        self.error = reason


def make_invoker() -> tuple[
    ActionInvoker, InMemoryActionClient, RecordingSink, InMemoryStorageBackend, ManualClock
]:
    backend = InMemoryStorageBackend()
    clock = ManualClock(start_ms=T0)
    reconciler = CooldownReconciler(
        PersistedTimestampStore(backend), ThrottleConfig().new_window(), KEY, clock
    )
    client = InMemoryActionClient()
    sink = RecordingSink()
    return ActionInvoker(client, reconciler, sink, clock), client, sink, backend, clock


async def test_success_keeps_optimistic_cooldown() -> None:
    """Success keeps the full optimistic cooldown."""
    invoker, client, sink, backend, _ = make_invoker()
    client.queue_outcome(DispatchSuccess(attempts=AttemptInfo(1, 5)))
    result = await invoker.invoke()
    assert result.state == InvokerState.SUCCEEDED
    assert invoker.state == InvokerState.IDLE
    assert sink.remaining == 60
    assert sink.attempts == AttemptInfo(1, 5)
    assert backend.get(KEY) == str(T0)


async def test_rejected_while_cooling_down() -> None:
    """Invoking during a cooldown raises COOLDOWN_ACTIVE."""
    invoker, client, _, _, clock = make_invoker()
    await invoker.invoke()
    clock.set(T0 + 30_000)
    with pytest.raises(ThrottleError) as exc_info:
        await invoker.invoke()
    assert exc_info.value.code == ThrottleErrorCodes.COOLDOWN_ACTIVE
    assert client.dispatch_calls == 1


async def test_accepted_again_after_cooldown() -> None:
    """Invoking works again once the cooldown has passed."""
    invoker, client, _, _, clock = make_invoker()
    await invoker.invoke()
    clock.set(T0 + 60_000)
    result = await invoker.invoke()
    assert result.state == InvokerState.SUCCEEDED
    assert client.dispatch_calls == 2


async def test_rate_limited_adopts_server_remaining() -> None:
    """A short-window signal replaces the local remaining time."""
    invoker, client, sink, backend, _ = make_invoker()
    client.queue_outcome(RateLimitSignal(remaining_seconds=45, message="wait"))
    result = await invoker.invoke()
    assert result.state == InvokerState.RATE_LIMITED
    assert sink.remaining == 45
    assert sink.message == "wait"
    assert backend.get(KEY) == str(T0 - 15_000)


async def test_attempts_exhausted_leaves_cooldown_untouched() -> None:
    """An exhaustion signal leaves the stored dispatch time alone."""
    invoker, client, sink, backend, _ = make_invoker()
    now = datetime.fromtimestamp(T0 / 1000, tz=timezone.utc)
    client.queue_outcome(RateLimitSignal(reset_time=now + timedelta(minutes=40)))
    result = await invoker.invoke()
    assert result.state == InvokerState.RATE_LIMITED
    assert sink.remaining == 60
    assert backend.get(KEY) == str(T0)
    assert sink.reset_time == now + timedelta(minutes=40)


async def test_attempts_exhausted_reset_time_capped_at_reset_period() -> None:
    """A far reset time is capped at now plus the reset period."""
    invoker, client, sink, _, _ = make_invoker()
    now = datetime.fromtimestamp(T0 / 1000, tz=timezone.utc)
    client.queue_outcome(RateLimitSignal(reset_time=now + timedelta(days=2)))
    await invoker.invoke()
    assert sink.reset_time == now + timedelta(hours=1)


async def test_failure_rolls_back() -> None:
    """A plain failure clears the optimistic cooldown."""
    invoker, client, sink, backend, _ = make_invoker()
    client.queue_outcome(DispatchFailure(reason="HTTP 500", status_code=500))
    result = await invoker.invoke()
    assert result.state == InvokerState.FAILED
    assert sink.remaining == 0
    assert sink.error == "HTTP 500"
    assert backend.snapshot() == {}


async def test_dispatcher_exception_rolls_back() -> None:
    """An exception from the dispatcher rolls back like a failure."""
    invoker, client, sink, backend, _ = make_invoker()
    client.queue_outcome(ConnectionError("network unreachable"))
    result = await invoker.invoke()
    assert result.state == InvokerState.FAILED
    assert sink.error == "network unreachable"
    assert backend.snapshot() == {}


async def test_dispatch_in_flight_rejects_second_trigger() -> None:
    """A second invoke during a dispatch raises DISPATCH_IN_FLIGHT."""
    invoker, client, _, _, _ = make_invoker()
    client.hold()
    first = asyncio.create_task(invoker.invoke())
    await asyncio.sleep(0)
    assert invoker.state == InvokerState.DISPATCHING
    with pytest.raises(ThrottleError) as exc_info:
        await invoker.invoke()
    assert exc_info.value.code == ThrottleErrorCodes.DISPATCH_IN_FLIGHT
    client.release()
    assert (await first).state == InvokerState.SUCCEEDED


async def test_result_after_close_is_discarded() -> None:
    """A result arriving after close does not touch the sink."""
    invoker, client, sink, backend, _ = make_invoker()
    client.queue_outcome(DispatchFailure(reason="boom"))
    client.hold()
    pending = asyncio.create_task(invoker.invoke())
    await asyncio.sleep(0)
    invoker.close()
    client.release()
    result = await pending
    assert result.discarded is True
    assert sink.error is None
    assert backend.get(KEY) == str(T0)


async def test_closed_invoker_rejects() -> None:
    """A closed invoker raises THROTTLE_CLOSED."""
    invoker, _, _, _, _ = make_invoker()
    invoker.close()
    with pytest.raises(ThrottleError) as exc_info:
        await invoker.invoke()
    assert exc_info.value.code == ThrottleErrorCodes.THROTTLE_CLOSED
