"""
Configuration for the auto-close engine.

Settings come from AUTOCLOSE_* environment variables with typed defaults.
Validation happens once, at startup, through pydantic.
"""

import os
from typing import Dict, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "AUTOCLOSE_"

ENV_MAPPING: Dict[str, str] = {
    "DATABASE_PATH": "database_path",
    "TIMEZONE": "timezone",
    "STORE_TIMEOUT": "store_timeout_seconds",
    "MAX_CONCURRENT_RULES": "max_concurrent_rules",
    "MAX_CONCURRENT_CLOSES": "max_concurrent_closes",
    "PREVIEW_LIMIT": "preview_limit",
    "COUNTER_MODE": "counter_mode",
    "SCHEDULE_ENABLED": "schedule_enabled",
    "SCHEDULE_INTERVAL": "schedule_interval_seconds",
    "LOG_LEVEL": "log_level",
}


class EngineSettings(BaseModel):
    """
    Engine configuration.

    counter_mode:
    - "closed": rule.tickets_closed grows by successful closes
    - "matched": grows by matched tickets, failures included
    """
    database_path: Optional[str] = None  # None = in-memory store
    timezone: str = "UTC"

    store_timeout_seconds: float = Field(default=30.0, gt=0)
    max_concurrent_rules: int = Field(default=1, ge=1)
    max_concurrent_closes: int = Field(default=1, ge=1)
    preview_limit: int = Field(default=10, ge=0)
    counter_mode: Literal["closed", "matched"] = "closed"

    schedule_enabled: bool = False
    schedule_interval_seconds: float = Field(default=3600.0, gt=0)

    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EngineSettings":
        """Build settings from AUTOCLOSE_* variables; unset ones keep defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for suffix, field_name in ENV_MAPPING.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw is not None and raw != "":
                values[field_name] = raw
        return cls(**values)
