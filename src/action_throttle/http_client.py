"""httpx-backed ActionClient talking to the verification endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from .client import ActionClient
from .config import ThrottleConfig
from .exceptions import ThrottleError, ThrottleErrorCodes
from .models import (
    AttemptInfo,
    DispatchFailure,
    DispatchOutcome,
    DispatchSuccess,
    ProbeResult,
    RateLimitSignal,
)

logger = structlog.stdlib.get_logger(__name__)

_TOO_MANY_REQUESTS = 429


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


class HttpActionClient(ActionClient):
    """ActionClient over httpx.

    ``probe_status`` raises ThrottleError(PROBE_FAILED) on transport
    errors. ``dispatch_action`` never raises; every failure is returned as
    a DispatchFailure.
    """

    def __init__(self, config: ThrottleConfig) -> None:
        self._config = config
        headers: dict[str, str] = {"Accept": "application/json"}
        if config.http.api_key:
            headers["X-API-Key"] = config.http.api_key
        self._headers = headers

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.http.base_url,
            headers=self._headers,
            timeout=self._config.http.timeout_seconds,
        )

    async def probe_status(self) -> ProbeResult:
        try:
            async with self._make_client() as client:
                resp = await client.get(self._config.http.status_path)
        except httpx.HTTPError as e:
            raise ThrottleError(
                code=ThrottleErrorCodes.PROBE_FAILED,
                message=f"Failed to probe rate limit status: {e}",
                cause=e,
            ) from e
        if resp.status_code != _TOO_MANY_REQUESTS:
            return ProbeResult(limited=False)
        try:
            signal = RateLimitSignal.from_dict(_json_or_none(resp))
        except ThrottleError as e:
            logger.info("probe reported a limit without usable details", error=str(e))
            return ProbeResult(limited=True)
        return ProbeResult(limited=True, signal=signal)

    async def dispatch_action(self) -> DispatchOutcome:
        try:
            async with self._make_client() as client:
                resp = await client.post(self._config.http.dispatch_path)
        except httpx.HTTPError as e:
            return DispatchFailure(reason=f"transport error: {e}")

        if resp.status_code == _TOO_MANY_REQUESTS:
            try:
                return RateLimitSignal.from_dict(_json_or_none(resp))
            except ThrottleError as e:
                return DispatchFailure(reason=str(e), status_code=resp.status_code)

        if not resp.is_success:
            body = _json_or_none(resp)
            detail = body.get("message") if isinstance(body, dict) else None
            return DispatchFailure(
                reason=detail or f"HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        body = _json_or_none(resp)
        info = body.get("rateLimitInfo") if isinstance(body, dict) else None
        return DispatchSuccess(
            attempts=AttemptInfo.from_dict(info, default_max=self._config.max_attempts)
        )
