"""Throttle configuration (pydantic BaseModel) and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ThrottleError, ThrottleErrorCodes
from .models import CooldownWindow, DismissPolicy


class HttpSection(BaseModel):
    """Endpoints of the rate-limited action and its status probe."""

    base_url: str = "http://localhost:8080"
    status_path: str = "/api/verification-status"
    dispatch_path: str = "/api/resend-verification"
    timeout_seconds: float = Field(default=10.0, gt=0)
    api_key: str = ""


class LogSection(BaseModel):
    """Log settings."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class ThrottleConfig(BaseModel):
    """Throttle settings. Periods are in seconds."""

    cooldown_period: float = Field(default=60.0, gt=0)
    reset_period: float = Field(default=3600.0, gt=0)
    max_attempts: int = Field(default=5, ge=1)
    tick_interval: float = Field(default=1.0, gt=0)
    storage_key: str = Field(default="email_verification_last_sent", min_length=1)
    dismiss_key: str = Field(default="email_verification_dismissed", min_length=1)
    dismiss_policy: DismissPolicy = DismissPolicy.SESSION_ONLY
    http: HttpSection = Field(default_factory=HttpSection)
    log: LogSection = Field(default_factory=LogSection)

    @model_validator(mode="after")
    def _check_keys(self) -> ThrottleConfig:
        if self.storage_key == self.dismiss_key:
            raise ValueError("storage_key and dismiss_key must differ")
        if self.reset_period < self.cooldown_period:
            raise ValueError("reset_period must not be shorter than cooldown_period")
        return self

    def new_window(self) -> CooldownWindow:
        """Return an empty CooldownWindow with these periods."""
        return CooldownWindow(
            cooldown_period=self.cooldown_period,
            reset_period=self.reset_period,
            max_attempts=self.max_attempts,
        )


def load_config(path: Path) -> ThrottleConfig:
    """Read a YAML file and validate it into a ThrottleConfig.

    The throttle settings may sit at the top level or under a ``throttle:``
    key, so the file can be shared with other application settings.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ThrottleError(
            code=ThrottleErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data: Any = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ThrottleError(
            code=ThrottleErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if isinstance(data, dict) and isinstance(data.get("throttle"), dict):
        data = data["throttle"]
    try:
        return ThrottleConfig.model_validate(data)
    except ValidationError as e:
        raise ThrottleError(
            code=ThrottleErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
