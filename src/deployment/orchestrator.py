"""Deployment Orchestration: Orchestrator.

Drives one deployment at a time per environment through validation,
rollback planning, strategy execution and the monitoring window, rolling
back automatically when the run aborts.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional, Set

from src.alerting import AlertSeverity, NotificationDispatcher
from src.api_errors import (
    ConflictError,
    DeploymentAbort,
    DeploymentCancelledError,
    ErrorCode,
    NotFoundError,
    RollbackError,
    StrategyExecutionError,
    ThresholdBreachError,
    ValidationFailure,
)
from src.infra_monitoring import CancellationToken, HealthChecker, MetricsSource, PeriodicTicker
from src.logging_config import LogContext

from .config import DeploymentConfig, DeploymentStatus, OrchestratorConfig
from .models import DeploymentRecord
from .notifications import build_outcome_payload
from .operators import EnvironmentOperator
from .rollback import RollbackExecutor, RollbackPlan, RollbackPlanner, RollbackResult
from .strategies import StrategyContext, build_strategies
from .validation import DeploymentValidator

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """Manages deployment lifecycle from admission to success or rollback.

    At most one deployment (or manual rollback) is in flight per
    environment. Admission is synchronous, so of two runs started
    concurrently against one environment exactly one is rejected with
    ConflictError before it reaches the operator.

    Example:
        orchestrator = DeploymentOrchestrator(operator, HealthChecker(), dispatcher)
        record = await orchestrator.execute_deployment(config, "2.4.0")
    """

    def __init__(
        self,
        operator: EnvironmentOperator,
        health_checker: HealthChecker,
        dispatcher: NotificationDispatcher,
        metrics_source: Optional[MetricsSource] = None,
        validator: Optional[DeploymentValidator] = None,
        planner: Optional[RollbackPlanner] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self._config = config or OrchestratorConfig()
        self._operator = operator
        self._health_checker = health_checker
        self._dispatcher = dispatcher
        self._metrics_source = metrics_source
        self._validator = validator or DeploymentValidator()
        self._planner = planner or RollbackPlanner(operator)
        self._rollbacks = RollbackExecutor(operator, health_checker)
        self._strategies = build_strategies()

        self._deployments: Dict[str, DeploymentRecord] = {}
        self._plans: Dict[str, RollbackPlan] = {}
        self._configs: Dict[str, DeploymentConfig] = {}
        self._in_flight: Dict[str, str] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def validator(self) -> DeploymentValidator:
        return self._validator

    @property
    def rollbacks(self) -> RollbackExecutor:
        return self._rollbacks

    # -- Admission -------------------------------------------------------

    def _admit(
        self,
        config: DeploymentConfig,
        version: str,
        token: Optional[CancellationToken],
    ) -> DeploymentRecord:
        environment = config.environment.value
        with self._lock:
            holder = self._in_flight.get(environment)
            if holder is not None:
                raise ConflictError(
                    f"Environment {environment} already has deployment {holder} in flight"
                )
            record = DeploymentRecord(
                environment=config.environment,
                strategy=config.strategy,
                version=version,
            )
            self._in_flight[environment] = record.deployment_id
            self._deployments[record.deployment_id] = record
            self._configs[record.deployment_id] = config
            self._tokens[record.deployment_id] = token or CancellationToken()
        logger.info(
            "Admitted deployment %s: %s to %s (%s)",
            record.deployment_id, version, environment, config.strategy.value,
        )
        return record

    def _release(self, record: DeploymentRecord) -> None:
        with self._lock:
            if self._in_flight.get(record.environment.value) == record.deployment_id:
                del self._in_flight[record.environment.value]
            self._tokens.pop(record.deployment_id, None)
            self._prune()

    def _prune(self) -> None:
        finished = [
            r for r in self._deployments.values()
            if r.status.is_terminal and r.deployment_id not in self._tokens
        ]
        excess = len(finished) - self._config.history_size
        if excess <= 0:
            return
        finished.sort(key=lambda r: r.started_at)
        for record in finished[:excess]:
            del self._deployments[record.deployment_id]
            self._plans.pop(record.deployment_id, None)
            self._configs.pop(record.deployment_id, None)

    # -- Execution -------------------------------------------------------

    async def execute_deployment(
        self,
        config: DeploymentConfig,
        version: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DeploymentRecord:
        """Run a deployment to completion and return its terminal record.

        Raises:
            ConflictError: the environment already has a run in flight.
            RollbackError: the run aborted and the automatic rollback failed.
        """
        record = self._admit(config, version, cancel_token)
        return await self._run(record, config)

    def start_deployment(self, config: DeploymentConfig, version: str) -> DeploymentRecord:
        """Admit a deployment now and run it as a background task."""
        record = self._admit(config, version, None)
        task = asyncio.get_running_loop().create_task(self._run(record, config))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return record

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, RollbackError):
            logger.error("Background deployment crashed: %s", exc, exc_info=exc)

    async def wait_all(self) -> None:
        """Wait for background deployments to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, record: DeploymentRecord, config: DeploymentConfig) -> DeploymentRecord:
        token = self._tokens[record.deployment_id]
        with LogContext(deployment_id=record.deployment_id, environment=record.environment.value):
            try:
                plan = await self._prepare(record, config, token)
                if plan is None:
                    await self._notify(record, config)
                    return record

                try:
                    record.transition(DeploymentStatus.DEPLOYING)
                    strategy = self._strategies[config.strategy]
                    await strategy.run(StrategyContext(
                        record=record,
                        config=config,
                        operator=self._operator,
                        health_checker=self._health_checker,
                        token=token,
                        settings=self._config,
                    ))
                    record.transition(DeploymentStatus.MONITORING)
                    await self._monitor(record, config, token)
                except DeploymentAbort as exc:
                    await self._abort(record, config, plan, exc)
                    return record
                except Exception as exc:
                    logger.exception("Unexpected error during deployment")
                    abort = StrategyExecutionError("deployment", f"{type(exc).__name__}: {exc}", exc)
                    await self._abort(record, config, plan, abort)
                    return record

                record.rollback_available = True
                record.transition(DeploymentStatus.SUCCESS)
                logger.info(
                    "Deployment succeeded in %.1fs (error rate %.2f%%)",
                    record.duration_seconds, record.metrics.error_rate,
                )
                await self._notify(record, config)
                return record
            finally:
                self._release(record)

    async def _prepare(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        token: CancellationToken,
    ) -> Optional[RollbackPlan]:
        """Validate and plan. Returns None when the run failed before mutating anything."""
        try:
            results = await token.guard(self._validator.run_checks(config, record.version))
            record.validation_results = results
            failed = next((r for r in results if not r.passed), None)
            if failed is not None:
                failure = ValidationFailure(failed.name, failed.message)
                record.failure_reason = failure.message
                logger.warning("%s", failure.message)
                record.transition(DeploymentStatus.FAILED)
                return None

            plan = await token.guard(self._planner.plan(config.environment, config.strategy))
        except DeploymentCancelledError as exc:
            record.cancel_requested = True
            record.failure_reason = f"Cancelled before deployment: {exc.reason}"
            record.transition(DeploymentStatus.FAILED)
            return None
        except Exception as exc:
            record.failure_reason = f"Rollback planning failed: {type(exc).__name__}: {exc}"
            logger.error("%s", record.failure_reason)
            record.transition(DeploymentStatus.FAILED)
            return None

        self._plans[record.deployment_id] = plan
        return plan

    async def _monitor(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        token: CancellationToken,
    ) -> None:
        """Probe health until the window ends, aborting on a breach.

        The first probe runs immediately, then one per poll interval.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + config.monitoring_duration_seconds
        async with PeriodicTicker(self._config.poll_interval_seconds) as ticker:
            await self._sample(record, config, token)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    await token.guard(asyncio.wait_for(ticker.wait(), timeout=remaining))
                except asyncio.TimeoutError:
                    break
                await self._sample(record, config, token)

    async def _sample(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        token: CancellationToken,
    ) -> None:
        probe = await token.guard(self._health_checker.check(config.health_check_endpoint))
        record.health_checks.append(probe)

        window = record.health_checks[-self._config.health_window:]
        unhealthy = sum(1 for h in window if not h.is_healthy)
        record.metrics.error_rate = unhealthy / len(window) * 100
        record.metrics.response_time = sum(h.response_time_ms for h in window) / len(window)

        if self._metrics_source is not None:
            try:
                snapshot = await token.guard(self._metrics_source.sample())
            except DeploymentCancelledError:
                raise
            except Exception as exc:
                logger.warning("Metrics source failed during monitoring: %s", exc)
            else:
                record.metrics.throughput = snapshot.application_metrics.throughput
                record.metrics.user_satisfaction = snapshot.business_metrics.engagement_score
                record.metrics.conversion_rate = snapshot.business_metrics.conversion_rate

        logger.debug(
            "Monitoring probe %s: error rate %.2f%%, response time %.0fms",
            probe.status.value, record.metrics.error_rate, record.metrics.response_time,
        )
        if record.metrics.error_rate > config.rollback_threshold:
            raise ThresholdBreachError(record.metrics.error_rate, config.rollback_threshold)

    async def _abort(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        plan: RollbackPlan,
        cause: DeploymentAbort,
    ) -> None:
        if isinstance(cause, DeploymentCancelledError):
            record.cancel_requested = True
        record.failure_reason = cause.message
        logger.warning("Deployment aborted: %s", cause.message)
        record.transition(DeploymentStatus.FAILED)

        result = await self._rollbacks.execute(
            plan,
            deployment_id=record.deployment_id,
            from_version=record.version,
            health_endpoint=config.health_check_endpoint,
            reason=cause.message,
            triggered_by="auto",
        )
        record.rollback_result = result
        if result.success:
            record.transition(DeploymentStatus.ROLLED_BACK)
            self._strategies[config.strategy].revert(record)
            await self._notify(record, config)
            return

        await self._escalate(record, config, result)
        raise RollbackError(record.deployment_id, result.error or "unknown error", cause=cause)

    async def _notify(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        severity: Optional[AlertSeverity] = None,
        extra_channels: Optional[List[str]] = None,
    ) -> None:
        channels = list(config.notification_channels) + list(extra_channels or [])
        await self._dispatcher.dispatch(build_outcome_payload(record, severity), channels)

    async def _escalate(
        self,
        record: DeploymentRecord,
        config: DeploymentConfig,
        result: RollbackResult,
    ) -> None:
        logger.critical(
            "Rollback of deployment %s FAILED, manual intervention required: %s",
            record.deployment_id, result.error,
        )
        await self._notify(
            record, config,
            severity=AlertSeverity.EMERGENCY,
            extra_channels=self._config.escalation_channels,
        )

    # -- Operator actions ------------------------------------------------

    async def execute_rollback(
        self,
        deployment_id: str,
        reason: str = "Manual rollback",
        triggered_by: str = "manual",
    ) -> RollbackResult:
        """Roll a finished deployment back to its pre-deployment version.

        Raises:
            NotFoundError: unknown deployment or no rollback plan.
            ConflictError: the deployment is not finished, is already rolled
                back, or its environment has another run in flight.
            RollbackError: a command failed or the environment is unhealthy
                afterwards.
        """
        record = self._require(deployment_id)
        plan = self._plans.get(deployment_id)
        if plan is None:
            raise NotFoundError(
                f"No rollback plan for deployment {deployment_id}",
                ErrorCode.ROLLBACK_PLAN_NOT_FOUND,
                resource_type="rollback_plan",
                resource_id=deployment_id,
            )
        config = self._configs[deployment_id]
        environment = record.environment.value

        with self._lock:
            if record.status not in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED):
                raise ConflictError(
                    f"Deployment {deployment_id} is {record.status.value}; only finished "
                    "deployments can be rolled back"
                )
            holder = self._in_flight.get(environment)
            if holder is not None:
                raise ConflictError(f"Environment {environment} has deployment {holder} in flight")
            self._in_flight[environment] = deployment_id

        try:
            with LogContext(deployment_id=deployment_id, environment=environment):
                result = await self._rollbacks.execute(
                    plan,
                    deployment_id=deployment_id,
                    from_version=record.version,
                    health_endpoint=config.health_check_endpoint,
                    reason=reason,
                    triggered_by=triggered_by,
                )
                record.rollback_result = result
                if not result.success:
                    await self._escalate(record, config, result)
                    raise RollbackError(deployment_id, result.error or "unknown error")
                record.transition(DeploymentStatus.ROLLED_BACK)
                self._strategies[config.strategy].revert(record)
                await self._notify(record, config)
                return result
        finally:
            with self._lock:
                if self._in_flight.get(environment) == deployment_id:
                    del self._in_flight[environment]

    def cancel_deployment(self, deployment_id: str, reason: str = "Cancelled by operator") -> DeploymentRecord:
        """Signal a running deployment to abort and roll back."""
        record = self._require(deployment_id)
        with self._lock:
            token = self._tokens.get(deployment_id)
        if token is None or record.status.is_terminal:
            raise ConflictError(
                f"Deployment {deployment_id} is {record.status.value} and cannot be cancelled"
            )
        record.cancel_requested = True
        token.cancel(reason)
        logger.warning("Cancellation requested for deployment %s: %s", deployment_id, reason)
        return record

    # -- Queries ---------------------------------------------------------

    def _require(self, deployment_id: str) -> DeploymentRecord:
        record = self._deployments.get(deployment_id)
        if record is None:
            raise NotFoundError(
                f"Deployment {deployment_id} not found",
                ErrorCode.DEPLOYMENT_NOT_FOUND,
                resource_type="deployment",
                resource_id=deployment_id,
            )
        return record

    def get_deployment(self, deployment_id: str) -> Optional[DeploymentRecord]:
        return self._deployments.get(deployment_id)

    def get_rollback_plan(self, deployment_id: str) -> Optional[RollbackPlan]:
        return self._plans.get(deployment_id)

    def get_in_flight(self, environment: str) -> Optional[DeploymentRecord]:
        with self._lock:
            deployment_id = self._in_flight.get(environment)
        return self._deployments.get(deployment_id) if deployment_id else None

    def list_deployments(
        self,
        status: Optional[DeploymentStatus] = None,
        environment: Optional[str] = None,
        limit: int = 20,
    ) -> List[DeploymentRecord]:
        """List deployments newest first, optionally filtered."""
        deployments = list(self._deployments.values())
        if status is not None:
            deployments = [d for d in deployments if d.status == status]
        if environment is not None:
            deployments = [d for d in deployments if d.environment.value == environment]
        deployments.sort(key=lambda d: d.started_at, reverse=True)
        return deployments[:limit]

    def get_summary(self) -> dict:
        by_status: Dict[str, int] = {}
        for record in self._deployments.values():
            by_status[record.status.value] = by_status.get(record.status.value, 0) + 1
        with self._lock:
            in_flight = dict(self._in_flight)
        return {
            "total": len(self._deployments),
            "by_status": by_status,
            "in_flight": in_flight,
            "rollbacks": self._rollbacks.get_rollback_stats(),
        }
