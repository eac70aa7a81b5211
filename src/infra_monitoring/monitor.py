"""Infrastructure Monitoring: Monitor Loop.

Samples metrics on a fixed interval, sweeps component health in parallel,
stores snapshots in a bounded buffer and hands each snapshot to the alert
engine for rule evaluation.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from src.logging_config import log_performance

from .buffer import MetricsBuffer
from .config import ComponentStatus, MonitorConfig
from .health import HealthChecker, grade, rollup_status
from .models import ComponentHealth, HealthRecord, InfrastructureMetrics, SystemStatus
from .sources import MetricsSource
from .ticker import PeriodicTicker

logger = logging.getLogger(__name__)

ComponentCheck = Callable[[], Awaitable[HealthRecord]]


class InfrastructureMonitor:
    """Periodic infrastructure monitor.

    Features:
    - One background ticker per monitor; start/stop are idempotent
    - Per-component health checks run concurrently, each under a timeout,
      so one hung component never delays or hides the others
    - Metric history bounded by retention window / interval
    - Alert evaluation after every sample

    Example:
        monitor = InfrastructureMonitor(StaticMetricsSource(), AlertEngine())
        await monitor.start(interval_seconds=30)
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        metrics_source: MetricsSource,
        alert_engine,
        health_checker: Optional[HealthChecker] = None,
        config: Optional[MonitorConfig] = None,
    ):
        self.config = config or MonitorConfig()
        self.metrics_source = metrics_source
        self.alert_engine = alert_engine
        self.health_checker = health_checker or HealthChecker(
            timeout_seconds=self.config.health_check_timeout_seconds,
        )
        self._buffer = MetricsBuffer(self.config.buffer_capacity)
        self._health_history: deque = deque(maxlen=self.config.health_history_size)
        self._checks: Dict[str, ComponentCheck] = {}
        self._components: Dict[str, ComponentHealth] = {}
        self._ticker: Optional[PeriodicTicker] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._lifecycle_lock = asyncio.Lock()
        self._last_update: Optional[datetime] = None
        self.tick_count = 0

        for name, url in self.config.component_endpoints.items():
            if url:
                self.register_component_check(name, self._endpoint_check(url))

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def buffer(self) -> MetricsBuffer:
        return self._buffer

    def register_component_check(self, name: str, check_fn: ComponentCheck) -> None:
        """Register an async health check for a component.

        The check returns a HealthRecord; it is graded against the
        degraded-latency threshold during the sweep.
        """
        self._checks[name] = check_fn

    def _endpoint_check(self, url: str) -> ComponentCheck:
        async def check() -> HealthRecord:
            return await self.health_checker.check(url)
        return check

    # -- Lifecycle -------------------------------------------------------

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        """Run one tick immediately, then keep ticking in the background.

        Start and stop are serialised: a stop issued while the first tick
        is still running waits for start to finish, then stops the loop.
        """
        async with self._lifecycle_lock:
            if self.is_running:
                logger.warning("Infrastructure monitor already running; start ignored")
                return

            interval = interval_seconds or self.config.interval_seconds
            if interval != self.config.interval_seconds:
                self.config.interval_seconds = interval
                self._resize_buffer()

            ticker = PeriodicTicker(interval)
            await self._safe_tick()
            ticker.start()
            self._ticker = ticker
            self._loop_task = asyncio.get_running_loop().create_task(self._run())
            logger.info(
                "Infrastructure monitor started (interval=%.1fs, capacity=%d)",
                interval, self._buffer.capacity,
            )

    async def stop(self) -> None:
        """Stop ticking. Safe to call when not running."""
        async with self._lifecycle_lock:
            task, self._loop_task = self._loop_task, None
            ticker, self._ticker = self._ticker, None
            if ticker is not None:
                await ticker.stop()
            if task is None:
                return
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Infrastructure monitor stopped after %d ticks", self.tick_count)

    async def _run(self) -> None:
        while self._ticker is not None:
            await self._ticker.wait()
            await self._safe_tick()

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("Monitoring tick failed; continuing")

    def _resize_buffer(self) -> None:
        retained = self._buffer.snapshot()
        self._buffer = MetricsBuffer(self.config.buffer_capacity)
        for snapshot in retained:
            self._buffer.append(snapshot)

    # -- Tick ------------------------------------------------------------

    @log_performance(threshold_ms=5000)
    async def tick(self) -> InfrastructureMetrics:
        """Sample, store, sweep health, evaluate alert rules."""
        metrics = await self.metrics_source.sample()
        self._buffer.append(metrics)
        await self.check_components()
        await self.alert_engine.evaluate_and_notify(metrics.to_dict())
        self._last_update = metrics.timestamp
        self.tick_count += 1
        return metrics

    async def check_components(self) -> Dict[str, ComponentHealth]:
        """Run every registered component check concurrently."""
        names = list(self._checks)
        results = await asyncio.gather(
            *(self._run_check(name, self._checks[name]) for name in names)
        )
        for health in results:
            self._components[health.name] = health
        return dict(self._components)

    async def _run_check(self, name: str, check_fn: ComponentCheck) -> ComponentHealth:
        timeout = self.config.health_check_timeout_seconds
        try:
            record = await asyncio.wait_for(check_fn(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Health check for %s timed out after %.1fs", name, timeout)
            return ComponentHealth(
                name=name,
                status=ComponentStatus.UNHEALTHY,
                response_time_ms=timeout * 1000,
                error=f"Timed out after {timeout:.1f}s",
            )
        except Exception as exc:
            logger.warning("Health check for %s raised %s: %s", name, type(exc).__name__, exc)
            return ComponentHealth(
                name=name,
                status=ComponentStatus.UNHEALTHY,
                error=str(exc) or type(exc).__name__,
            )
        self._health_history.append(record)
        return grade(name, record, self.config.degraded_latency_ms)

    # -- Queries ---------------------------------------------------------

    def latest_metrics(self) -> Optional[InfrastructureMetrics]:
        return self._buffer.latest()

    def get_metrics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[InfrastructureMetrics]:
        """Stored snapshots within [start, end], oldest first."""
        items = self._buffer.snapshot()
        if not items or (start is None and end is None):
            return items
        return self._buffer.range(start or items[0].timestamp, end or items[-1].timestamp)

    def get_health_history(self, limit: int = 50) -> List[HealthRecord]:
        return list(self._health_history)[-limit:]

    def get_component_health(self) -> Dict[str, ComponentHealth]:
        return dict(self._components)

    def get_active_alerts(self):
        return self.alert_engine.get_active_alerts()

    async def get_system_status(self, refresh: bool = False) -> SystemStatus:
        """Roll component health up into one status.

        With `refresh=True` the component sweep is re-run first; otherwise
        the results of the last tick are used.
        """
        if refresh:
            await self.check_components()
        components = {name: h.status for name, h in self._components.items()}
        latest = self._buffer.latest()
        status = SystemStatus(
            overall=rollup_status(components.values()),
            components=components,
            active_alerts=len(self.alert_engine.get_active_alerts()),
            uptime=latest.system_health.uptime if latest else 0.0,
        )
        if self._last_update is not None:
            status.last_update = self._last_update
        return status
