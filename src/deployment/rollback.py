"""Deployment Orchestration: Rollback Planning & Execution."""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from src.infra_monitoring import HealthChecker
from src.logging_config import PerformanceTimer

from .config import Environment, Strategy
from .operators import EnvironmentOperator

logger = logging.getLogger(__name__)

# Static estimate of rollback time per strategy, in seconds
ESTIMATED_ROLLBACK_SECONDS: Dict[Strategy, int] = {
    Strategy.BLUE_GREEN: 30,
    Strategy.INSTANT: 15,
    Strategy.CANARY: 120,
    Strategy.ROLLING: 180,
}
DEFAULT_ROLLBACK_SECONDS = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RollbackPlan:
    """How to return an environment to its pre-deployment version.

    Computed once, before any environment mutation, and never modified.
    """

    environment: Environment
    strategy: Strategy
    previous_version: str
    rollback_commands: Tuple[str, ...]
    estimated_time_seconds: int
    data_consistency_check: bool
    backup_required: bool
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "environment": self.environment.value,
            "strategy": self.strategy.value,
            "previous_version": self.previous_version,
            "rollback_commands": list(self.rollback_commands),
            "estimated_time_seconds": self.estimated_time_seconds,
            "data_consistency_check": self.data_consistency_check,
            "backup_required": self.backup_required,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RollbackResult:
    """Record of a rollback execution."""

    deployment_id: str
    from_version: str
    to_version: str
    reason: str
    triggered_by: str = "auto"
    rollback_id: str = field(default_factory=lambda: f"rollback_{uuid.uuid4().hex}")
    triggered_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None
    steps_completed: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "rollback_id": self.rollback_id,
            "deployment_id": self.deployment_id,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "reason": self.reason,
            "triggered_by": self.triggered_by,
            "triggered_at": self.triggered_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "error": self.error,
            "steps_completed": list(self.steps_completed),
            "duration_ms": round(self.duration_ms, 2),
        }


class RollbackPlanner:
    """Builds rollback plans from the environment's live version."""

    def __init__(self, operator: EnvironmentOperator):
        self._operator = operator

    async def plan(self, environment: Environment, strategy: Strategy) -> RollbackPlan:
        previous = await self._operator.current_version(environment.value)
        is_production = environment == Environment.PRODUCTION
        plan = RollbackPlan(
            environment=environment,
            strategy=strategy,
            previous_version=previous,
            rollback_commands=(
                f"rollback-to-{previous}",
                f"restart-services-{environment.value}",
            ),
            estimated_time_seconds=ESTIMATED_ROLLBACK_SECONDS.get(strategy, DEFAULT_ROLLBACK_SECONDS),
            data_consistency_check=is_production,
            backup_required=is_production,
        )
        logger.info(
            "Rollback plan for %s: previous version %s, est. %ds",
            environment.value, previous, plan.estimated_time_seconds,
        )
        return plan


class RollbackExecutor:
    """Runs a rollback plan and verifies the environment afterwards.

    Commands run strictly in order, each exactly once; the first failing
    command stops the rollback. Success requires a healthy post-rollback
    probe. Failures are reported on the returned RollbackResult.
    """

    def __init__(self, operator: EnvironmentOperator, health_checker: HealthChecker):
        self._operator = operator
        self._health_checker = health_checker
        self._history: List[RollbackResult] = []
        self._lock = threading.Lock()

    async def execute(
        self,
        plan: RollbackPlan,
        deployment_id: str,
        from_version: str,
        health_endpoint: str,
        reason: str,
        triggered_by: str = "auto",
    ) -> RollbackResult:
        result = RollbackResult(
            deployment_id=deployment_id,
            from_version=from_version,
            to_version=plan.previous_version,
            reason=reason,
            triggered_by=triggered_by,
        )
        logger.warning(
            "Rollback triggered for deployment %s: %s -> %s (reason: %s)",
            deployment_id, from_version, plan.previous_version, reason,
        )
        with PerformanceTimer(f"rollback {deployment_id}") as timer:
            result.error = await self._run(plan, health_endpoint, result)
        result.success = result.error is None
        result.completed_at = _utcnow()
        result.duration_ms = timer.duration_ms

        with self._lock:
            self._history.append(result)
        if result.success:
            logger.info("Rollback %s completed: now on %s", result.rollback_id, plan.previous_version)
        return result

    async def _run(self, plan: RollbackPlan, health_endpoint: str, result: RollbackResult) -> Optional[str]:
        for command in plan.rollback_commands:
            try:
                ok = await self._operator.run_command(command)
            except Exception as exc:
                return f"command '{command}' raised {type(exc).__name__}: {exc}"
            if not ok:
                return f"command '{command}' failed"
            result.steps_completed.append(command)

        record = await self._health_checker.check(health_endpoint)
        result.steps_completed.append("post_rollback_health_check")
        if not record.is_healthy:
            return f"post-rollback health check unhealthy: {record.error or 'unknown error'}"
        return None

    def list_rollbacks(self, deployment_id: Optional[str] = None) -> List[RollbackResult]:
        """Rollback results, newest first."""
        with self._lock:
            results = list(self._history)
        if deployment_id is not None:
            results = [r for r in results if r.deployment_id == deployment_id]
        results.sort(key=lambda r: r.triggered_at, reverse=True)
        return results

    def get_rollback_stats(self) -> dict:
        results = self.list_rollbacks()
        successful = sum(1 for r in results if r.success)
        durations = [r.duration_ms for r in results if r.completed_at is not None]
        return {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "avg_duration_ms": round(sum(durations) / len(durations), 2) if durations else 0.0,
        }
