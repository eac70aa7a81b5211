"""Infrastructure Monitoring: Data Models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from .config import ComponentStatus, HealthStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SystemHealthMetrics:
    uptime: float = 0.0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    disk_usage: float = 0.0
    network_latency: float = 0.0
    error_rate: float = 0.0


@dataclass
class ApplicationMetrics:
    response_time: float = 0.0
    throughput: float = 0.0
    active_connections: float = 0.0
    queue_length: float = 0.0
    cache_hit_rate: float = 0.0


@dataclass
class DatabaseMetrics:
    connection_count: float = 0.0
    query_time: float = 0.0
    lock_wait_time: float = 0.0
    replication_lag: float = 0.0
    index_efficiency: float = 0.0


@dataclass
class BusinessMetrics:
    active_users: float = 0.0
    conversion_rate: float = 0.0
    submission_rate: float = 0.0
    engagement_score: float = 0.0
    goal_progress: float = 0.0


@dataclass
class InfrastructureMetrics:
    """One monitoring tick's snapshot across the four metric groups."""

    system_health: SystemHealthMetrics = field(default_factory=SystemHealthMetrics)
    application_metrics: ApplicationMetrics = field(default_factory=ApplicationMetrics)
    database_metrics: DatabaseMetrics = field(default_factory=DatabaseMetrics)
    business_metrics: BusinessMetrics = field(default_factory=BusinessMetrics)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        """Nested mapping keyed by group then field, used for rule lookup."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class HealthRecord:
    """Result of one health probe. Immutable once created."""

    endpoint: str
    status: HealthStatus
    response_time_ms: float
    timestamp: datetime = field(default_factory=_utcnow)
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "status": self.status.value,
            "response_time_ms": round(self.response_time_ms, 2),
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
            "status_code": self.status_code,
        }


@dataclass
class ComponentHealth:
    """Graded health of one monitored component."""

    name: str
    status: ComponentStatus
    response_time_ms: float = 0.0
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "response_time_ms": round(self.response_time_ms, 2),
            "error": self.error,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass
class SystemStatus:
    """Rolled-up view of the whole system."""

    overall: ComponentStatus
    components: Dict[str, ComponentStatus]
    active_alerts: int
    uptime: float
    last_update: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall.value,
            "components": {name: s.value for name, s in self.components.items()},
            "active_alerts": self.active_alerts,
            "uptime": self.uptime,
            "last_update": self.last_update.isoformat(),
        }
