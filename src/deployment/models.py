"""Deployment Orchestration: Records."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from src.api_errors import InvalidTransitionError
from src.infra_monitoring import HealthRecord

from .config import DeploymentStatus, Environment, Strategy, ValidationStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Every permitted status change; anything else is rejected
ALLOWED_TRANSITIONS: Dict[DeploymentStatus, Tuple[DeploymentStatus, ...]] = {
    DeploymentStatus.PENDING: (DeploymentStatus.DEPLOYING, DeploymentStatus.FAILED),
    DeploymentStatus.DEPLOYING: (DeploymentStatus.MONITORING, DeploymentStatus.FAILED),
    DeploymentStatus.MONITORING: (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED),
    DeploymentStatus.SUCCESS: (DeploymentStatus.ROLLED_BACK,),
    DeploymentStatus.FAILED: (DeploymentStatus.ROLLED_BACK,),
    DeploymentStatus.ROLLED_BACK: (),
}


@dataclass
class DeploymentMetrics:
    """Latest health-derived metrics of a deployment under observation."""

    error_rate: float = 0.0
    response_time: float = 0.0
    throughput: float = 0.0
    user_satisfaction: float = 0.0
    conversion_rate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "error_rate": round(self.error_rate, 4),
            "response_time": round(self.response_time, 2),
            "throughput": self.throughput,
            "user_satisfaction": self.user_satisfaction,
            "conversion_rate": self.conversion_rate,
        }


@dataclass
class ValidationResult:
    """Outcome of one pre-deployment check."""

    name: str
    status: ValidationStatus
    message: str = ""
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status != ValidationStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class TrafficStep:
    """One canary ramp step."""

    percentage: int
    started_at: datetime = field(default_factory=_utcnow)
    error_rate: Optional[float] = None
    breached: bool = False

    def to_dict(self) -> dict:
        return {
            "percentage": self.percentage,
            "started_at": self.started_at.isoformat(),
            "error_rate": self.error_rate,
            "breached": self.breached,
        }


@dataclass
class DeploymentRecord:
    """One attempted release.

    Status changes go through `transition()`, which enforces
    ALLOWED_TRANSITIONS and keeps an audit trail in `status_history`.
    """

    environment: Environment
    strategy: Strategy
    version: str
    deployment_id: str = field(default_factory=lambda: f"deploy_{uuid.uuid4().hex}")
    status: DeploymentStatus = DeploymentStatus.PENDING
    started_at: datetime = field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    health_checks: List[HealthRecord] = field(default_factory=list)
    metrics: DeploymentMetrics = field(default_factory=DeploymentMetrics)
    rollback_available: bool = False
    validation_results: List[ValidationResult] = field(default_factory=list)
    traffic_history: List[TrafficStep] = field(default_factory=list)
    failure_reason: Optional[str] = None
    rollback_result: Optional[Any] = None
    status_history: List[Tuple[DeploymentStatus, datetime]] = field(default_factory=list)
    cancel_requested: bool = False

    def __post_init__(self):
        if not self.status_history:
            self.status_history.append((self.status, self.started_at))

    def transition(self, target: DeploymentStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, target.value)
        now = _utcnow()
        logger.info("Deployment %s: %s -> %s", self.deployment_id, self.status.value, target.value)
        self.status = target
        self.status_history.append((target, now))
        if target.is_terminal:
            self.ended_at = now

    def has_status(self, status: DeploymentStatus) -> bool:
        return any(s == status for s, _ in self.status_history)

    @property
    def duration_seconds(self) -> float:
        end = self.ended_at or _utcnow()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "deployment_id": self.deployment_id,
            "environment": self.environment.value,
            "strategy": self.strategy.value,
            "version": self.version,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "health_checks": [h.to_dict() for h in self.health_checks],
            "metrics": self.metrics.to_dict(),
            "rollback_available": self.rollback_available,
            "validation_results": [v.to_dict() for v in self.validation_results],
            "traffic_history": [t.to_dict() for t in self.traffic_history],
            "failure_reason": self.failure_reason,
            "rollback_result": self.rollback_result.to_dict() if self.rollback_result else None,
            "status_history": [
                {"status": s.value, "at": at.isoformat()} for s, at in self.status_history
            ],
            "cancel_requested": self.cancel_requested,
        }
