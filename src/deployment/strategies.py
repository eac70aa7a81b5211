"""Deployment Orchestration: Release Strategies.

Each strategy drives the EnvironmentOperator for one run. Operator calls
that report failure or raise become StrategyExecutionError with the cause
preserved; every await is guarded by the run's cancellation token.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Dict, Tuple

from src.api_errors import DeploymentAbort, StrategyExecutionError, ThresholdBreachError
from src.infra_monitoring import CancellationToken, HealthChecker

from .config import DeploymentConfig, OrchestratorConfig, Strategy
from .models import DeploymentRecord, TrafficStep
from .operators import EnvironmentOperator

logger = logging.getLogger(__name__)


@dataclass
class StrategyContext:
    """Everything a strategy needs for one run."""

    record: DeploymentRecord
    config: DeploymentConfig
    operator: EnvironmentOperator
    health_checker: HealthChecker
    token: CancellationToken
    settings: OrchestratorConfig

    @property
    def environment(self) -> str:
        return self.config.environment.value

    async def call(self, operation: str, awaitable: Awaitable[bool]) -> None:
        """Run one operator call, treating False as failure."""
        try:
            ok = await self.token.guard(awaitable)
        except DeploymentAbort:
            raise
        except asyncio.TimeoutError as exc:
            raise StrategyExecutionError(operation, "timed out", exc) from exc
        except Exception as exc:
            raise StrategyExecutionError(operation, f"{type(exc).__name__}: {exc}", exc) from exc
        if not ok:
            raise StrategyExecutionError(operation, "operator reported failure")


class BaseStrategy:
    strategy: Strategy

    async def run(self, ctx: StrategyContext) -> None:
        raise NotImplementedError

    def revert(self, record: DeploymentRecord) -> None:
        """Undo strategy-held state after the run was rolled back."""


class BlueGreenStrategy(BaseStrategy):
    """Deploy to the idle slot, verify it, then switch all traffic.

    Slots are named `<env>-blue` and `<env>-green`; the live slot is
    tracked per environment and flips after each successful switch. A
    rolled-back run flips it back, as long as no later run has switched
    the environment since.
    """

    strategy = Strategy.BLUE_GREEN

    def __init__(self) -> None:
        self._live_slots: Dict[str, str] = {}
        # environment -> (deployment_id, previous live slot, new live slot)
        self._last_switch: Dict[str, Tuple[str, str, str]] = {}

    def live_slot(self, environment: str) -> str:
        return self._live_slots.get(environment, f"{environment}-blue")

    def idle_slot(self, environment: str) -> str:
        live = self.live_slot(environment)
        return f"{environment}-green" if live.endswith("-blue") else f"{environment}-blue"

    async def run(self, ctx: StrategyContext) -> None:
        live, idle = self.live_slot(ctx.environment), self.idle_slot(ctx.environment)
        logger.info("Blue-green: deploying %s to idle slot %s", ctx.record.version, idle)

        await ctx.call("deploy", ctx.operator.deploy(idle, ctx.record.version))
        await ctx.call("warmup", ctx.operator.warmup(idle))

        probe = await ctx.token.guard(ctx.health_checker.check(ctx.config.slot_endpoint))
        if not probe.is_healthy:
            raise StrategyExecutionError(
                "idle_slot_health_check",
                f"slot {idle} is unhealthy: {probe.error or 'unknown error'}",
            )

        await ctx.call("switch_traffic", ctx.operator.switch_traffic(live, idle))
        self._live_slots[ctx.environment] = idle
        self._last_switch[ctx.environment] = (ctx.record.deployment_id, live, idle)
        ctx.record.rollback_available = True
        logger.info("Blue-green: traffic switched %s -> %s", live, idle)

    def revert(self, record: DeploymentRecord) -> None:
        environment = record.environment.value
        switch = self._last_switch.get(environment)
        if switch is None or switch[0] != record.deployment_id:
            return
        _, previous, current = switch
        if self._live_slots.get(environment) != current:
            return
        self._live_slots[environment] = previous
        del self._last_switch[environment]
        logger.info("Blue-green: live slot restored %s -> %s", current, previous)


class CanaryStrategy(BaseStrategy):
    """Ramp traffic through fixed steps, observing error rate at each."""

    strategy = Strategy.CANARY

    async def run(self, ctx: StrategyContext) -> None:
        threshold = ctx.config.rollback_threshold
        for percentage in ctx.settings.canary_steps:
            step = TrafficStep(percentage=percentage)
            ctx.record.traffic_history.append(step)
            await ctx.call(
                "deploy_canary",
                ctx.operator.deploy_canary(ctx.environment, ctx.record.version, percentage),
            )
            ctx.record.rollback_available = True
            await ctx.token.sleep(ctx.settings.canary_observation_seconds)

            try:
                metrics = await ctx.token.guard(ctx.operator.canary_metrics(ctx.environment))
            except DeploymentAbort:
                raise
            except Exception as exc:
                raise StrategyExecutionError("canary_metrics", str(exc), exc) from exc

            step.error_rate = float(metrics.get("error_rate", 0.0))
            logger.info("Canary %d%%: error rate %.2f%%", percentage, step.error_rate)
            if step.error_rate > threshold:
                step.breached = True
                raise ThresholdBreachError(step.error_rate, threshold, phase=f"canary {percentage}%")


class RollingStrategy(BaseStrategy):
    """Single bounded deploy call; batching is left to the operator."""

    strategy = Strategy.ROLLING

    async def run(self, ctx: StrategyContext) -> None:
        await ctx.call(
            "deploy",
            asyncio.wait_for(
                ctx.operator.deploy(ctx.environment, ctx.record.version),
                timeout=ctx.settings.rolling_timeout_seconds,
            ),
        )
        ctx.record.rollback_available = True


class InstantStrategy(BaseStrategy):
    strategy = Strategy.INSTANT

    async def run(self, ctx: StrategyContext) -> None:
        await ctx.call("deploy", ctx.operator.deploy(ctx.environment, ctx.record.version))
        ctx.record.rollback_available = True


def build_strategies() -> Dict[Strategy, BaseStrategy]:
    """One instance per strategy; blue-green keeps slot state per environment."""
    return {
        Strategy.BLUE_GREEN: BlueGreenStrategy(),
        Strategy.CANARY: CanaryStrategy(),
        Strategy.ROLLING: RollingStrategy(),
        Strategy.INSTANT: InstantStrategy(),
    }

