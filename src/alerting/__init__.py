"""Alerting.

Threshold rules over infrastructure metrics, alert lifecycle management
and notification dispatch to named channels.
"""

from .channels import (
    DeliveryResult,
    LoggingChannel,
    NotificationChannel,
    NotificationDispatcher,
    NotificationPayload,
    WebhookChannel,
)
from .config import AlertCondition, AlertConfig, AlertSeverity, AlertStatus
from .manager import Alert, AlertEngine, AlertTransition, TransitionKind
from .rules import AlertRule, default_rules, resolve_metric_path

__all__ = [
    "Alert",
    "AlertCondition",
    "AlertConfig",
    "AlertEngine",
    "AlertRule",
    "AlertSeverity",
    "AlertStatus",
    "AlertTransition",
    "DeliveryResult",
    "LoggingChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "NotificationPayload",
    "TransitionKind",
    "WebhookChannel",
    "default_rules",
    "resolve_metric_path",
]
