"""Deployment Orchestration: Environment Operator Port.

The orchestrator never provisions anything itself; every environment
mutation goes through an EnvironmentOperator adapter.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Set, Tuple, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class EnvironmentOperator(Protocol):
    """Adapter to the platform that actually runs the releases.

    Every mutating call returns True on success. Rollback commands are not
    idempotent; callers run each exactly once.
    """

    async def deploy(self, environment: str, version: str) -> bool: ...

    async def warmup(self, environment: str) -> bool: ...

    async def switch_traffic(self, from_slot: str, to_slot: str) -> bool: ...

    async def run_command(self, command: str) -> bool: ...

    async def deploy_canary(self, environment: str, version: str, percentage: int) -> bool: ...

    async def canary_metrics(self, environment: str) -> dict: ...

    async def current_version(self, environment: str) -> str: ...


class InMemoryEnvironmentOperator:
    """Operator that tracks versions in memory.

    Intended for demos, dry runs and tests. Every call is recorded in
    `calls`; `fail_on` names operations that should report failure and
    `canary_error_rates` maps a canary percentage to the error rate that
    `canary_metrics` reports while that step is live.

    Example:
        operator = InMemoryEnvironmentOperator({"production": "1.4.0"})
        operator.fail_on.add("switch_traffic")
    """

    def __init__(
        self,
        versions: Optional[Dict[str, str]] = None,
        delay_seconds: float = 0.0,
    ):
        self.versions: Dict[str, str] = dict(versions or {})
        self.delay_seconds = delay_seconds
        self.fail_on: Set[str] = set()
        self.canary_error_rates: Dict[int, float] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self._canary_percent: Dict[str, int] = {}
        self._pending_rollback: Optional[str] = None

    def calls_to(self, operation: str) -> List[tuple]:
        return [args for name, args in self.calls if name == operation]

    async def _record(self, operation: str, *args) -> bool:
        self.calls.append((operation, args))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        ok = operation not in self.fail_on
        if not ok:
            logger.warning("Operator %s%r reporting failure", operation, args)
        return ok

    async def deploy(self, environment: str, version: str) -> bool:
        ok = await self._record("deploy", environment, version)
        if ok:
            self.versions[environment] = version
        return ok

    async def warmup(self, environment: str) -> bool:
        return await self._record("warmup", environment)

    async def switch_traffic(self, from_slot: str, to_slot: str) -> bool:
        ok = await self._record("switch_traffic", from_slot, to_slot)
        if ok and to_slot in self.versions:
            self.versions[to_slot.rsplit("-", 1)[0]] = self.versions[to_slot]
        return ok

    async def run_command(self, command: str) -> bool:
        ok = await self._record("run_command", command)
        if not ok:
            return False
        if command.startswith("rollback-to-"):
            self._pending_rollback = command[len("rollback-to-"):]
        elif command.startswith("restart-services-") and self._pending_rollback is not None:
            self.versions[command[len("restart-services-"):]] = self._pending_rollback
            self._pending_rollback = None
        return True

    async def deploy_canary(self, environment: str, version: str, percentage: int) -> bool:
        ok = await self._record("deploy_canary", environment, version, percentage)
        if ok:
            self._canary_percent[environment] = percentage
            if percentage >= 100:
                self.versions[environment] = version
        return ok

    async def canary_metrics(self, environment: str) -> dict:
        self.calls.append(("canary_metrics", (environment,)))
        percentage = self._canary_percent.get(environment, 0)
        return {
            "percentage": percentage,
            "error_rate": self.canary_error_rates.get(percentage, 0.0),
        }

    async def current_version(self, environment: str) -> str:
        self.calls.append(("current_version", (environment,)))
        return self.versions.get(environment, "unknown")
