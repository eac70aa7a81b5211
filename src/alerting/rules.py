"""Alerting - Threshold Rules.

Rules compare one metric, addressed by a dotted path into the metrics
snapshot, against a fixed threshold.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from .config import AlertCondition, AlertSeverity

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(segment: str) -> str:
    """systemHealth -> system_health; already-snake names pass through."""
    return _CAMEL_BOUNDARY.sub("_", segment).lower()


def resolve_metric_path(snapshot: Mapping[str, Any], path: str) -> float:
    """Look up a dotted metric path, returning 0.0 when it does not resolve.

    Each segment is tried verbatim first, then in snake_case, so
    `systemHealth.errorRate` and `system_health.error_rate` are equivalent.
    """
    current: Any = snapshot
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return 0.0
        if segment in current:
            current = current[segment]
            continue
        snake = to_snake(segment)
        if snake not in current:
            return 0.0
        current = current[snake]
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        return 0.0
    return float(current)


@dataclass
class AlertRule:
    """A metric threshold rule."""

    rule_id: str
    name: str
    metric: str
    condition: AlertCondition = AlertCondition.GT
    threshold: float = 0.0
    severity: AlertSeverity = AlertSeverity.WARNING
    duration_seconds: int = 0
    enabled: bool = True
    notification_channels: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.condition = AlertCondition.parse(self.condition)
        if not isinstance(self.severity, AlertSeverity):
            self.severity = AlertSeverity(self.severity)

    def matches(self, value: float) -> bool:
        return self.condition.holds(value, self.threshold)

    def describe(self, value: float) -> str:
        return f"{self.name}: {self.metric} is {value:g} (threshold: {self.threshold:g})"

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "metric": self.metric,
            "condition": self.condition.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "duration_seconds": self.duration_seconds,
            "enabled": self.enabled,
            "notification_channels": list(self.notification_channels),
        }


def default_rules() -> List[AlertRule]:
    """Fresh copies of the built-in rule set."""
    return [
        AlertRule(
            rule_id="high_error_rate",
            name="High Error Rate",
            metric="system_health.error_rate",
            condition=AlertCondition.GT,
            threshold=1.0,
            severity=AlertSeverity.CRITICAL,
            duration_seconds=300,
            notification_channels=["email", "slack", "pagerduty"],
        ),
        AlertRule(
            rule_id="high_response_time",
            name="High Response Time",
            metric="application_metrics.response_time",
            condition=AlertCondition.GT,
            threshold=200,
            severity=AlertSeverity.WARNING,
            duration_seconds=180,
            notification_channels=["email", "slack"],
        ),
        AlertRule(
            rule_id="low_conversion_rate",
            name="Low Conversion Rate",
            metric="business_metrics.conversion_rate",
            condition=AlertCondition.LT,
            threshold=50,
            severity=AlertSeverity.WARNING,
            duration_seconds=600,
            notification_channels=["email"],
        ),
        AlertRule(
            rule_id="high_cpu_usage",
            name="High CPU Usage",
            metric="system_health.cpu_usage",
            condition=AlertCondition.GT,
            threshold=80,
            severity=AlertSeverity.WARNING,
            duration_seconds=300,
            notification_channels=["email", "slack"],
        ),
        AlertRule(
            rule_id="database_slow_queries",
            name="Database Slow Queries",
            metric="database_metrics.query_time",
            condition=AlertCondition.GT,
            threshold=100,
            severity=AlertSeverity.WARNING,
            duration_seconds=180,
            notification_channels=["email"],
        ),
    ]
