"""Infrastructure Monitoring.

Periodic metric sampling, bounded retention, parallel component health
checks and system status rollup.
"""

from .buffer import MetricsBuffer
from .config import (
    DEFAULT_COMPONENTS,
    ComponentStatus,
    HealthStatus,
    MonitorConfig,
    capacity_for,
)
from .health import HealthChecker, grade, rollup_status
from .models import (
    ApplicationMetrics,
    BusinessMetrics,
    ComponentHealth,
    DatabaseMetrics,
    HealthRecord,
    InfrastructureMetrics,
    SystemHealthMetrics,
    SystemStatus,
)
from .monitor import InfrastructureMonitor
from .sources import MetricsSource, StaticMetricsSource
from .ticker import CancellationToken, PeriodicTicker

__all__ = [
    # Config
    "DEFAULT_COMPONENTS",
    "ComponentStatus",
    "HealthStatus",
    "MonitorConfig",
    "capacity_for",
    # Models
    "ApplicationMetrics",
    "BusinessMetrics",
    "ComponentHealth",
    "DatabaseMetrics",
    "HealthRecord",
    "InfrastructureMetrics",
    "SystemHealthMetrics",
    "SystemStatus",
    # Components
    "CancellationToken",
    "HealthChecker",
    "InfrastructureMonitor",
    "MetricsBuffer",
    "MetricsSource",
    "PeriodicTicker",
    "StaticMetricsSource",
    "grade",
    "rollup_status",
]
