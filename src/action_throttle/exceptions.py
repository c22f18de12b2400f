"""action_throttle exceptions."""

from __future__ import annotations


class ThrottleError(Exception):
    """Base error of the action_throttle library."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ThrottleErrorCodes:
    """ThrottleError code constants."""

    COOLDOWN_ACTIVE: str = "COOLDOWN_ACTIVE"
    DISPATCH_IN_FLIGHT: str = "DISPATCH_IN_FLIGHT"
    THROTTLE_CLOSED: str = "THROTTLE_CLOSED"
    NOT_VISIBLE: str = "NOT_VISIBLE"
    PROBE_FAILED: str = "PROBE_FAILED"
    MALFORMED_RESPONSE: str = "MALFORMED_RESPONSE"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
