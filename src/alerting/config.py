"""Alerting - Configuration."""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER[self]


SEVERITY_ORDER = {
    AlertSeverity.INFO: 1,
    AlertSeverity.WARNING: 2,
    AlertSeverity.CRITICAL: 3,
    AlertSeverity.EMERGENCY: 4,
}


class AlertStatus(Enum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertCondition(Enum):
    """Comparison applied between a metric value and a rule threshold."""

    GT = "gt"
    LT = "lt"
    EQ = "eq"
    NEQ = "neq"

    @classmethod
    def parse(cls, value) -> "AlertCondition":
        """Accept enum members, short forms and the long spellings."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        try:
            return cls(_LONG_FORMS.get(key, key))
        except ValueError:
            raise ValueError(f"Unknown alert condition: {value!r}") from None

    def holds(self, value: float, threshold: float) -> bool:
        if self is AlertCondition.GT:
            return value > threshold
        if self is AlertCondition.LT:
            return value < threshold
        if self is AlertCondition.EQ:
            return value == threshold
        return value != threshold


_LONG_FORMS = {
    "greater_than": "gt",
    "less_than": "lt",
    "equals": "eq",
    "not_equals": "neq",
    ">": "gt",
    "<": "lt",
    "==": "eq",
    "!=": "neq",
}


@dataclass
class AlertConfig:
    """Global alerting configuration."""

    # resolved alerts kept for history before oldest-first pruning
    max_alert_history: int = 1000
    load_default_rules: bool = True
    delivery_log_size: int = 1000
