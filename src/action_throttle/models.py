"""action_throttle data models."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Union

from .exceptions import ThrottleError, ThrottleErrorCodes


class DismissPolicy(StrEnum):
    """How long a dismissal of the throttle UI lasts."""

    PERSISTENT = "persistent"
    SESSION_ONLY = "session_only"
    EPHEMERAL = "ephemeral"


class InvokerState(StrEnum):
    """Action invoker states."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    SUCCEEDED = "succeeded"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


class ThrottleStatus(StrEnum):
    """User-facing throttle state."""

    HIDDEN = "hidden"
    READY = "ready"
    DISPATCHING = "dispatching"
    COUNTING_DOWN = "counting_down"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    FAILED = "failed"


@dataclass
class CooldownWindow:
    """Cooldown parameters plus the last dispatch time.

    ``dispatched_at`` is epoch milliseconds and is the only field that is
    ever persisted. The remaining time is always derived from it.
    """

    cooldown_period: float
    reset_period: float
    max_attempts: int
    dispatched_at: int | None = None

    @property
    def cooldown_ms(self) -> int:
        return int(self.cooldown_period * 1000)

    @property
    def cooldown_seconds(self) -> int:
        return math.ceil(self.cooldown_period)


def _parse_reset_time(raw: Any) -> datetime:
    if isinstance(raw, bool):
        raise ValueError(f"invalid resetTime: {raw!r}")
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
    if isinstance(raw, str):
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"invalid resetTime: {raw!r}")


@dataclass(frozen=True)
class RateLimitSignal:
    """Authoritative rate-limit disagreement reported by the server.

    Exactly one of ``remaining_seconds`` (per-action cooldown still running)
    or ``reset_time`` (attempt cap exhausted until then) is set.
    """

    remaining_seconds: int | None = None
    reset_time: datetime | None = None
    message: str = ""

    def __post_init__(self) -> None:
        if (self.remaining_seconds is None) == (self.reset_time is None):
            raise ValueError("exactly one of remaining_seconds or reset_time must be set")
        if self.remaining_seconds is not None and self.remaining_seconds <= 0:
            raise ValueError("remaining_seconds must be positive")

    @property
    def is_cooldown(self) -> bool:
        return self.remaining_seconds is not None

    @property
    def is_exhausted(self) -> bool:
        return self.reset_time is not None

    @classmethod
    def from_dict(cls, data: Any) -> RateLimitSignal:
        """Build a signal from a 429 response body.

        Raises ThrottleError(MALFORMED_RESPONSE) when the body carries
        neither a positive ``remainingSeconds`` nor a usable ``resetTime``.
        """
        if not isinstance(data, dict):
            raise ThrottleError(
                code=ThrottleErrorCodes.MALFORMED_RESPONSE,
                message=f"rate limit body is not an object: {data!r}",
            )
        message = data.get("message") or ""
        remaining = data.get("remainingSeconds")
        if (
            isinstance(remaining, (int, float))
            and not isinstance(remaining, bool)
            and remaining > 0
        ):
            return cls(remaining_seconds=math.ceil(remaining), message=message)
        raw_reset = data.get("resetTime")
        if raw_reset:
            try:
                reset_time = _parse_reset_time(raw_reset)
            except (ValueError, OverflowError, OSError) as e:
                raise ThrottleError(
                    code=ThrottleErrorCodes.MALFORMED_RESPONSE,
                    message=f"unparseable resetTime: {raw_reset!r}",
                    cause=e,
                ) from e
            return cls(reset_time=reset_time, message=message)
        raise ThrottleError(
            code=ThrottleErrorCodes.MALFORMED_RESPONSE,
            message="rate limit body has neither remainingSeconds nor resetTime",
        )


@dataclass(frozen=True)
class AttemptInfo:
    """Attempt usage within the reset period, as reported on success."""

    attempts_used: int
    attempts_max: int

    @property
    def attempts_left(self) -> int:
        return max(0, self.attempts_max - self.attempts_used)

    @classmethod
    def from_dict(cls, data: Any, default_max: int) -> AttemptInfo | None:
        """Parse a ``rateLimitInfo`` object; None when absent or unusable."""
        if not isinstance(data, dict):
            return None
        used = data.get("attemptsUsed")
        if not isinstance(used, int) or isinstance(used, bool):
            return None
        attempts_max = data.get("attemptsMax")
        if not isinstance(attempts_max, int) or isinstance(attempts_max, bool):
            attempts_max = default_max
        return cls(attempts_used=used, attempts_max=attempts_max)


@dataclass(frozen=True)
class ProbeResult:
    """Server rate-limit status probe result."""

    limited: bool
    signal: RateLimitSignal | None = None

    @property
    def remaining_seconds(self) -> int | None:
        if self.signal is None:
            return None
        return self.signal.remaining_seconds


@dataclass(frozen=True)
class DispatchSuccess:
    """The action reached the server and was accepted."""

    attempts: AttemptInfo | None = None


@dataclass(frozen=True)
class DispatchFailure:
    """The action failed for a reason other than rate limiting."""

    reason: str
    status_code: int | None = None


DispatchOutcome = Union[DispatchSuccess, RateLimitSignal, DispatchFailure]


@dataclass(frozen=True)
class InvokeResult:
    """Terminal state of one dispatch cycle."""

    state: InvokerState
    outcome: DispatchOutcome | None = None
    discarded: bool = False


@dataclass(frozen=True)
class ThrottleSnapshot:
    """Outward view of the throttle."""

    status: ThrottleStatus
    remaining_seconds: int = 0
    reset_time: datetime | None = None
    attempts: AttemptInfo | None = None
    error: str | None = None
    message: str = ""

    @property
    def can_trigger(self) -> bool:
        return self.status in (
            ThrottleStatus.READY,
            ThrottleStatus.FAILED,
            ThrottleStatus.ATTEMPTS_EXHAUSTED,
        ) and self.remaining_seconds == 0
