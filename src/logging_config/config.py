"""Logging Configuration.

Level, output format and field selection for Helmsman's structured logs.
Values come from Settings (HELMSMAN_LOG_LEVEL / HELMSMAN_LOG_FORMAT) or the
CLI flags; unknown values fall back to the defaults instead of failing
startup.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping, Optional, Tuple


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["LogLevel"] = None) -> Optional["LogLevel"]:
        name = (value or "").strip().upper()
        return cls[name] if name in cls.__members__ else default


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["LogFormat"] = None) -> Optional["LogFormat"]:
        name = (value or "").strip().lower()
        for fmt in cls:
            if fmt.value == name:
                return fmt
        return default


# Record attributes copied into log output when passed via `extra=`
DEFAULT_EXTRA_FIELDS = (
    "duration_ms",
    "status_code",
    "method",
    "path",
    "alert_id",
    "rule_id",
    "severity",
    "channel",
    "extra_data",
)

# aiohttp.access logs every health probe; asyncio logs slow callbacks
DEFAULT_QUIET_LOGGERS = ("asyncio", "aiohttp.access", "httpx", "uvicorn.access")


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    slow_threshold_ms: float = 1000.0
    exclude_paths: list[str] = field(default_factory=lambda: ["/health"])
    service_name: str = "helmsman"
    extra_fields: Tuple[str, ...] = DEFAULT_EXTRA_FIELDS
    quiet_loggers: Tuple[str, ...] = DEFAULT_QUIET_LOGGERS

    @classmethod
    def from_settings(cls, settings) -> "LoggingConfig":
        return cls(
            level=LogLevel.parse(settings.log_level, LogLevel.INFO),
            format=LogFormat.parse(settings.log_format, LogFormat.JSON),
            service_name=settings.service_name,
        )

    def with_env_overrides(
        self,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = "HELMSMAN_",
    ) -> "LoggingConfig":
        """Apply `<prefix>LOG_LEVEL` / `<prefix>LOG_FORMAT` when they parse."""
        environ = os.environ if environ is None else environ
        return replace(
            self,
            level=LogLevel.parse(environ.get(f"{prefix}LOG_LEVEL"), self.level),
            format=LogFormat.parse(environ.get(f"{prefix}LOG_FORMAT"), self.format),
        )


DEFAULT_LOGGING_CONFIG = LoggingConfig()
