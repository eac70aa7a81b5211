"""Structured Logging & Log Context.

Provides structured JSON logging, deployment-scoped context binding,
and performance timing for Helmsman.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import LogContext, generate_correlation_id
from src.logging_config.performance import PerformanceTimer, log_performance
from src.logging_config.setup import configure_logging, get_logger

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "LogContext",
    "PerformanceTimer",
    "configure_logging",
    "generate_correlation_id",
    "get_logger",
    "log_performance",
]
