from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .commands import DEFAULT_COMMAND
from .controller import POLL_SECONDS
from .models import DeviceIdentifier

DEFAULT_TARGET = "445a:1121"

_ENV_MAP = {
    "KBSWITCH_TARGET": "target",
    "KBSWITCH_LAYOUT_A": "layout_a",
    "KBSWITCH_LAYOUT_B": "layout_b",
    "KBSWITCH_COMMAND": "command",
    "KBSWITCH_INTERVAL": "interval",
    "KBSWITCH_RETRY_DELAY": "retry_delay",
    "KBSWITCH_BACKEND": "backend",
    "KBSWITCH_DRY_RUN": "dry_run",
    "KBSWITCH_SWITCH_TIMEOUT": "switch_timeout",
    "KBSWITCH_LOG_LEVEL": "log_level",
    "KBSWITCH_LOG_FILE": "log_file",
}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    target: DeviceIdentifier = Field(default_factory=lambda: DeviceIdentifier.parse(DEFAULT_TARGET))
    layout_a: str = Field("fr", min_length=1, description="Layout used while the target is detached")
    layout_b: str = Field("us", min_length=1, description="Layout used while the target is attached")
    command: str = Field(DEFAULT_COMMAND, min_length=1, description="Layout command; {layout} is substituted")
    interval: float = Field(POLL_SECONDS, gt=0)
    retry_delay: float = Field(0.0, ge=0)
    backend: Literal["usb", "serial"] = "usb"
    dry_run: bool = False
    switch_timeout: float = Field(10.0, gt=0)
    log_level: str = "DEBUG"
    log_file: Optional[str] = None

    @field_validator("target", mode="before")
    @classmethod
    def _parse_target(cls, value: Any) -> Any:
        if isinstance(value, str):
            return DeviceIdentifier.parse(value)
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Read ``KBSWITCH_*`` env vars; non-None ``overrides`` take precedence."""
    values: Dict[str, Any] = {}
    for env_key, field_name in _ENV_MAP.items():
        raw = os.environ.get(env_key)
        if raw is None or raw == "":
            continue
        values[field_name] = _env_flag(raw) if field_name == "dry_run" else raw
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    return Settings(**values)
