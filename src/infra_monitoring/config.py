"""Infrastructure Monitoring: Configuration."""

import enum
from dataclasses import dataclass, field
from typing import Dict

# Default tick interval and metrics retention window
DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_RETENTION_HOURS = 24.0


class HealthStatus(enum.Enum):
    """Outcome of a single endpoint probe."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ComponentStatus(enum.Enum):
    """Graded status of a monitored component.

    Ordered by severity: UNHEALTHY dominates DEGRADED dominates HEALTHY.
    """

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ComponentStatus.HEALTHY: 0,
    ComponentStatus.DEGRADED: 1,
    ComponentStatus.UNHEALTHY: 2,
}

DEFAULT_COMPONENTS = ("api", "database", "cache", "cdn", "external")


@dataclass
class MonitorConfig:
    """Infrastructure monitor configuration."""

    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    retention_hours: float = DEFAULT_RETENTION_HOURS
    health_check_timeout_seconds: float = 5.0
    degraded_latency_ms: float = 1000.0
    health_history_size: int = 500
    # component name -> health endpoint URL
    component_endpoints: Dict[str, str] = field(default_factory=dict)

    @property
    def buffer_capacity(self) -> int:
        """Number of snapshots covering the retention window (2880 at 24h/30s)."""
        return capacity_for(self.retention_hours, self.interval_seconds)


def capacity_for(retention_hours: float, interval_seconds: float) -> int:
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    return max(1, int(retention_hours * 3600 / interval_seconds))
