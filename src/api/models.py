"""API Request/Response Models.

Pydantic schemas for the operator endpoints. Response bodies for
deployments, alerts and metrics reuse the domain records' `to_dict()`.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.deployment import DeploymentConfig, Environment, Strategy


# ─── Common ──────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str = "ok"
    version: str = "1.0.0"
    monitoring: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ListResponse(BaseModel):
    data: list[Any]
    total: int


# ─── Monitoring ──────────────────────────────────────────────────────────


class MonitoringStartRequest(BaseModel):
    interval_seconds: Optional[float] = Field(default=None, gt=0)


class MonitoringStateResponse(BaseModel):
    running: bool
    interval_seconds: float
    tick_count: int


# ─── Alerts ──────────────────────────────────────────────────────────────


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str = Field(default="operator", min_length=1)


# ─── Deployments ─────────────────────────────────────────────────────────


class DeploymentRequest(BaseModel):
    """Trigger a deployment."""

    environment: Environment
    strategy: Strategy
    version: str = Field(min_length=1, max_length=128)
    health_check_endpoint: str
    rollback_threshold: float = Field(default=5.0, gt=0, le=100)
    monitoring_duration_seconds: float = Field(default=300.0, ge=0)
    notification_channels: list[str] = Field(default_factory=lambda: ["email", "slack"])
    idle_slot_endpoint: Optional[str] = None

    def to_config(self) -> DeploymentConfig:
        return DeploymentConfig(
            environment=self.environment,
            strategy=self.strategy,
            health_check_endpoint=self.health_check_endpoint,
            rollback_threshold=self.rollback_threshold,
            monitoring_duration_seconds=self.monitoring_duration_seconds,
            notification_channels=list(self.notification_channels),
            idle_slot_endpoint=self.idle_slot_endpoint,
        )


class RollbackRequest(BaseModel):
    reason: str = Field(default="Manual rollback", min_length=1)


class CancelRequest(BaseModel):
    reason: str = Field(default="Cancelled by operator", min_length=1)
