"""Client-side throttle for rate-limited server actions."""

from .client import ActionClient, ActionDispatcher, StatusProbe
from .clock import Clock, ManualClock, SystemClock
from .config import HttpSection, LogSection, ThrottleConfig, load_config
from .exceptions import ThrottleError, ThrottleErrorCodes
from .http_client import HttpActionClient
from .invoker import ActionInvoker, CooldownSink
from .logger import configure_logging
from .memory import InMemoryActionClient
from .models import (
    AttemptInfo,
    CooldownWindow,
    DismissPolicy,
    DispatchFailure,
    DispatchOutcome,
    DispatchSuccess,
    InvokeResult,
    InvokerState,
    ProbeResult,
    RateLimitSignal,
    ThrottleSnapshot,
    ThrottleStatus,
)
from .reconciler import CooldownReconciler, infer_dispatched_at, remaining_seconds
from .storage import (
    FileStorageBackend,
    InMemoryStorageBackend,
    PersistedTimestampStore,
    StorageBackend,
    UnavailableStorageBackend,
)
from .throttle import ActionThrottle
from .ticker import CountdownTicker
from .visibility import VisibilityController

__all__ = [
    "ActionClient",
    "ActionDispatcher",
    "ActionInvoker",
    "ActionThrottle",
    "AttemptInfo",
    "Clock",
    "CooldownReconciler",
    "CooldownSink",
    "CooldownWindow",
    "CountdownTicker",
    "DismissPolicy",
    "DispatchFailure",
    "DispatchOutcome",
    "DispatchSuccess",
    "FileStorageBackend",
    "HttpActionClient",
    "HttpSection",
    "InMemoryActionClient",
    "InMemoryStorageBackend",
    "InvokeResult",
    "InvokerState",
    "LogSection",
    "ManualClock",
    "PersistedTimestampStore",
    "ProbeResult",
    "RateLimitSignal",
    "StatusProbe",
    "StorageBackend",
    "SystemClock",
    "ThrottleConfig",
    "ThrottleError",
    "ThrottleErrorCodes",
    "ThrottleSnapshot",
    "ThrottleStatus",
    "UnavailableStorageBackend",
    "VisibilityController",
    "configure_logging",
    "infer_dispatched_at",
    "load_config",
    "remaining_seconds",
]
