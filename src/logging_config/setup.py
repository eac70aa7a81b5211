"""Logging Setup.

Installs one root handler for the process. JSON lines carry the service
name, the bound deployment context and any whitelisted `extra=` fields so
a single deployment can be traced across orchestrator, rollback and
notification logs; the console format is meant for `main.py` runs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Iterable, Optional

from src.logging_config.config import (
    DEFAULT_EXTRA_FIELDS,
    DEFAULT_LOGGING_CONFIG,
    LogFormat,
    LoggingConfig,
)
from src.logging_config.context import get_context_dict


def _extras(record: logging.LogRecord, names: Iterable[str]) -> dict:
    return {name: getattr(record, name) for name in names if hasattr(record, name)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Key order: timestamp, level, logger, message, service, caller fields,
    deployment context, exception, extras. Later keys never overwrite the
    base fields.
    """

    def __init__(
        self,
        service_name: str = "helmsman",
        include_caller: bool = True,
        extra_fields: Iterable[str] = DEFAULT_EXTRA_FIELDS,
    ):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller
        self.extra_fields = tuple(extra_fields)

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if self.include_caller:
            entry.update(module=record.module, function=record.funcName, line=record.lineno)

        for key, value in get_context_dict().items():
            entry.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in _extras(record, self.extra_fields).items():
            entry.setdefault(key, value)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for terminal runs."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, extra_fields: Iterable[str] = ("duration_ms", "rule_id", "channel")):
        super().__init__()
        self.extra_fields = tuple(extra_fields)

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        line = (
            f"{color}{clock} {record.levelname:8s}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )

        tags = {**get_context_dict(), **_extras(record, self.extra_fields)}
        if tags:
            line += " [" + ", ".join(f"{k}={v}" for k, v in tags.items()) + "]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format is LogFormat.CONSOLE:
        return ConsoleFormatter()
    return StructuredFormatter(
        service_name=config.service_name,
        include_caller=config.include_caller,
        extra_fields=config.extra_fields,
    )


def configure_logging(config: Optional[LoggingConfig] = None) -> LoggingConfig:
    """Replace the root handlers with a single stdout handler.

    HELMSMAN_LOG_LEVEL and HELMSMAN_LOG_FORMAT take precedence over
    `config`. Returns the configuration actually applied.
    """
    config = (config or DEFAULT_LOGGING_CONFIG).with_env_overrides()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(config))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.getLevelName(config.level.value))

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
    return config


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
