"""Infrastructure Monitoring: Health Checks.

Single-endpoint HTTP probes and the status rollup used by both the
monitor's component sweep and the deployment orchestrator.
"""

import asyncio
import logging
import time
from typing import Iterable, Optional

import aiohttp

from .config import ComponentStatus, HealthStatus
from .models import ComponentHealth, HealthRecord

logger = logging.getLogger(__name__)


class HealthChecker:
    """Performs HTTP GET health probes.

    `check()` always returns a HealthRecord: non-2xx responses, transport
    errors and timeouts become UNHEALTHY records carrying the reason, and
    the elapsed wall-clock time is recorded in every case.
    """

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._session = session

    async def check(self, endpoint: str) -> HealthRecord:
        start = time.perf_counter()
        try:
            status_code = await self._get(endpoint)
        except asyncio.TimeoutError:
            return self._unhealthy(endpoint, start, f"Timed out after {self.timeout_seconds:.1f}s")
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            return self._unhealthy(endpoint, start, str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("Health probe %s raised unexpectedly", endpoint)
            return self._unhealthy(endpoint, start, str(exc) or type(exc).__name__)

        elapsed_ms = (time.perf_counter() - start) * 1000
        if 200 <= status_code < 300:
            return HealthRecord(
                endpoint=endpoint,
                status=HealthStatus.HEALTHY,
                response_time_ms=elapsed_ms,
                status_code=status_code,
            )

        logger.warning("Health probe %s returned HTTP %d", endpoint, status_code)
        return HealthRecord(
            endpoint=endpoint,
            status=HealthStatus.UNHEALTHY,
            response_time_ms=elapsed_ms,
            error=f"HTTP {status_code}",
            status_code=status_code,
        )

    async def _get(self, endpoint: str) -> int:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        if self._session is not None:
            async with self._session.get(endpoint, timeout=timeout) as resp:
                return resp.status
        async with aiohttp.ClientSession() as session:
            async with session.get(endpoint, timeout=timeout) as resp:
                return resp.status

    @staticmethod
    def _unhealthy(endpoint: str, start: float, error: str) -> HealthRecord:
        logger.warning("Health probe %s failed: %s", endpoint, error)
        return HealthRecord(
            endpoint=endpoint,
            status=HealthStatus.UNHEALTHY,
            response_time_ms=(time.perf_counter() - start) * 1000,
            error=error,
        )


def grade(name: str, record: HealthRecord, degraded_latency_ms: float) -> ComponentHealth:
    """Grade a probe result: slow but successful probes are DEGRADED."""
    if not record.is_healthy:
        status = ComponentStatus.UNHEALTHY
    elif record.response_time_ms > degraded_latency_ms:
        status = ComponentStatus.DEGRADED
    else:
        status = ComponentStatus.HEALTHY
    return ComponentHealth(
        name=name,
        status=status,
        response_time_ms=record.response_time_ms,
        error=record.error,
        checked_at=record.timestamp,
    )


def rollup_status(statuses: Iterable[ComponentStatus]) -> ComponentStatus:
    """Worst status wins; an empty set of components is HEALTHY."""
    return max(statuses, key=lambda s: s.rank, default=ComponentStatus.HEALTHY)
