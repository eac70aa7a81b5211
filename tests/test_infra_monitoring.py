"""Tests for the infrastructure monitor, health probes and ticker primitives."""

import asyncio
from datetime import timedelta

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import FakeHealthChecker, RecordingChannel
from src.alerting import AlertEngine, AlertRule, AlertSeverity, NotificationDispatcher
from src.api_errors import DeploymentCancelledError
from src.infra_monitoring import (
    CancellationToken,
    ComponentStatus,
    HealthChecker,
    HealthRecord,
    HealthStatus,
    InfrastructureMetrics,
    InfrastructureMonitor,
    MetricsBuffer,
    MonitorConfig,
    PeriodicTicker,
    StaticMetricsSource,
    capacity_for,
    grade,
    rollup_status,
)


def _record(healthy=True, latency=10.0):
    return HealthRecord(
        endpoint="http://svc/health",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        response_time_ms=latency,
        error=None if healthy else "HTTP 503",
    )


async def _start_server(handler):
    app = web.Application()
    app.router.add_get("/health", handler)
    server = TestServer(app)
    await server.start_server()
    return server


# ═══════════════════════════════════════════════════════════════════════
# Test: Config & Buffer
# ═══════════════════════════════════════════════════════════════════════


class TestMonitorConfig:

    def test_default_capacity_covers_one_day(self):
        assert MonitorConfig().buffer_capacity == 2880

    def test_capacity_for(self):
        assert capacity_for(1, 60) == 60
        assert capacity_for(0, 30) == 1

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            capacity_for(24, 0)


class TestMetricsBuffer:

    def test_evicts_oldest(self):
        buffer = MetricsBuffer(3)
        snapshots = [InfrastructureMetrics() for _ in range(5)]
        for snapshot in snapshots:
            buffer.append(snapshot)
        assert len(buffer) == 3
        assert buffer.snapshot() == snapshots[2:]
        assert buffer.latest() is snapshots[-1]

    def test_range_is_inclusive_and_ordered(self):
        buffer = MetricsBuffer(10)
        base = InfrastructureMetrics().timestamp
        for offset in (3, 1, 2, 0):
            buffer.append(InfrastructureMetrics(timestamp=base + timedelta(minutes=offset)))
        found = buffer.range(base + timedelta(minutes=1), base + timedelta(minutes=2))
        assert [m.timestamp for m in found] == [
            base + timedelta(minutes=1), base + timedelta(minutes=2),
        ]

    def test_empty_buffer(self):
        buffer = MetricsBuffer(2)
        assert buffer.latest() is None
        assert buffer.snapshot() == []

    def test_zero_capacity_rejected(self):
        with pytest.raises(ValueError):
            MetricsBuffer(0)


# ═══════════════════════════════════════════════════════════════════════
# Test: Health
# ═══════════════════════════════════════════════════════════════════════


class TestGrading:

    def test_grade_healthy_degraded_unhealthy(self):
        assert grade("api", _record(latency=10), 1000).status is ComponentStatus.HEALTHY
        assert grade("api", _record(latency=1500), 1000).status is ComponentStatus.DEGRADED
        unhealthy = grade("api", _record(healthy=False), 1000)
        assert unhealthy.status is ComponentStatus.UNHEALTHY
        assert unhealthy.error == "HTTP 503"

    def test_rollup_worst_wins(self):
        assert rollup_status([]) is ComponentStatus.HEALTHY
        assert rollup_status([ComponentStatus.HEALTHY, ComponentStatus.DEGRADED]) is ComponentStatus.DEGRADED
        assert rollup_status([
            ComponentStatus.DEGRADED, ComponentStatus.UNHEALTHY, ComponentStatus.HEALTHY,
        ]) is ComponentStatus.UNHEALTHY


class TestHealthChecker:

    @pytest.mark.asyncio
    async def test_ok_response_is_healthy(self):
        async def ok(request):
            return web.json_response({"status": "ok"})

        server = await _start_server(ok)
        try:
            record = await HealthChecker(timeout_seconds=2).check(str(server.make_url("/health")))
        finally:
            await server.close()

        assert record.is_healthy
        assert record.status_code == 200
        assert record.error is None
        assert record.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_error_status_is_unhealthy(self):
        async def unavailable(request):
            return web.Response(status=503)

        server = await _start_server(unavailable)
        try:
            record = await HealthChecker(timeout_seconds=2).check(str(server.make_url("/health")))
        finally:
            await server.close()

        assert record.status is HealthStatus.UNHEALTHY
        assert record.status_code == 503
        assert record.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_timeout_is_unhealthy(self):
        async def slow(request):
            await asyncio.sleep(2)
            return web.Response()

        server = await _start_server(slow)
        try:
            record = await HealthChecker(timeout_seconds=0.1).check(str(server.make_url("/health")))
        finally:
            await server.close()

        assert not record.is_healthy
        assert record.error == "Timed out after 0.1s"

    @pytest.mark.asyncio
    async def test_connection_refused_is_unhealthy(self):
        record = await HealthChecker(timeout_seconds=1).check("http://127.0.0.1:1/health")
        assert not record.is_healthy
        assert record.error
        assert record.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_url_is_unhealthy(self):
        record = await HealthChecker(timeout_seconds=1).check("not a url")
        assert not record.is_healthy

    @pytest.mark.asyncio
    async def test_closed_session_is_unhealthy(self):
        session = aiohttp.ClientSession()
        await session.close()

        record = await HealthChecker(timeout_seconds=1, session=session).check("http://127.0.0.1:1/health")

        assert not record.is_healthy
        assert "closed" in record.error.lower()


# ═══════════════════════════════════════════════════════════════════════
# Test: Ticker & Cancellation
# ═══════════════════════════════════════════════════════════════════════


class TestPeriodicTicker:

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTicker(0)

    @pytest.mark.asyncio
    async def test_ticks_until_exit(self):
        async with PeriodicTicker(0.01) as ticker:
            first = await ticker.wait()
            second = await ticker.wait()
            assert second >= first
            assert ticker.running
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_unconsumed_ticks_coalesce(self):
        async with PeriodicTicker(0.01) as ticker:
            await asyncio.sleep(0.1)
            assert ticker.ticks_emitted == 1

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        ticker = PeriodicTicker(0.01)
        await ticker.stop()
        ticker.start()
        await ticker.stop()
        await ticker.stop()
        assert not ticker.running


class TestCancellationToken:

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        token = CancellationToken()

        async def work():
            return 42

        assert await token.guard(work()) == 42

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel, "operator abort")

        with pytest.raises(DeploymentCancelledError) as exc_info:
            await token.sleep(5)

        assert token.cancelled
        assert exc_info.value.reason == "operator abort"

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        token = CancellationToken()
        token.cancel()
        token.cancel("second reason ignored")
        assert token.reason == "Cancelled by operator"
        with pytest.raises(DeploymentCancelledError):
            await token.sleep(0)


# ═══════════════════════════════════════════════════════════════════════
# Test: Monitor
# ═══════════════════════════════════════════════════════════════════════


class FlakySource(StaticMetricsSource):
    """Fails the first `failures` samples."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    async def sample(self):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("collector offline")
        return await super().sample()


class TestInfrastructureMonitor:

    def setup_method(self):
        self.source = StaticMetricsSource()
        self.channel = RecordingChannel()
        self.engine = AlertEngine(
            dispatcher=NotificationDispatcher(default_channel=self.channel),
            rules=[AlertRule(
                rule_id="high_error_rate",
                name="High Error Rate",
                metric="system_health.error_rate",
                threshold=1.0,
                severity=AlertSeverity.CRITICAL,
                notification_channels=["slack"],
            )],
        )
        self.checker = FakeHealthChecker()

    def _monitor(self, **config):
        config.setdefault("health_check_timeout_seconds", 0.05)
        return InfrastructureMonitor(
            self.source, self.engine, health_checker=self.checker, config=MonitorConfig(**config),
        )

    @pytest.mark.asyncio
    async def test_tick_stores_and_evaluates(self):
        monitor = self._monitor()
        self.source.update("system_health", error_rate=2.0, uptime=99.9)

        metrics = await monitor.tick()

        assert monitor.tick_count == 1
        assert monitor.latest_metrics() is metrics
        assert metrics.system_health.error_rate == 2.0
        assert len(monitor.get_active_alerts()) == 1
        assert self.channel.channels() == ["slack"]

        status = await monitor.get_system_status()
        assert status.active_alerts == 1
        assert status.uptime == 99.9
        assert status.last_update == metrics.timestamp

    @pytest.mark.asyncio
    async def test_start_runs_immediately_and_keeps_ticking(self):
        monitor = self._monitor()
        await monitor.start(interval_seconds=0.01)
        try:
            assert monitor.is_running
            assert monitor.tick_count >= 1
            await asyncio.sleep(0.1)
            assert monitor.tick_count > 1
        finally:
            await monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_second_start_is_ignored(self):
        monitor = self._monitor()
        await monitor.start(interval_seconds=0.05)
        try:
            ticks = monitor.tick_count
            await monitor.start(interval_seconds=0.05)
            assert monitor.tick_count == ticks
            assert monitor.is_running
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_is_safe_when_idle(self):
        monitor = self._monitor()
        await monitor.stop()
        await monitor.start(interval_seconds=0.05)
        await monitor.stop()
        await monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_stop_during_first_tick_waits_for_start(self):
        monitor = self._monitor(health_check_timeout_seconds=1)

        async def slow():
            await asyncio.sleep(0.2)
            return _record()

        monitor.register_component_check("database", slow)

        starting = asyncio.create_task(monitor.start(interval_seconds=0.05))
        await asyncio.sleep(0.05)
        await monitor.stop()
        await starting

        assert monitor.tick_count == 1
        assert not monitor.is_running
        ticks = monitor.tick_count
        await asyncio.sleep(0.1)
        assert monitor.tick_count == ticks

    @pytest.mark.asyncio
    async def test_concurrent_starts_run_one_loop(self):
        monitor = self._monitor()
        await asyncio.gather(
            monitor.start(interval_seconds=0.05),
            monitor.start(interval_seconds=0.05),
        )
        try:
            assert monitor.tick_count == 1
            assert monitor.is_running
        finally:
            await monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_stopped_monitor_does_not_tick(self):
        monitor = self._monitor()
        await monitor.start(interval_seconds=0.01)
        await monitor.stop()
        ticks = monitor.tick_count
        await asyncio.sleep(0.05)
        assert monitor.tick_count == ticks

    @pytest.mark.asyncio
    async def test_interval_change_resizes_buffer(self):
        monitor = self._monitor(retention_hours=1, interval_seconds=30)
        assert monitor.buffer.capacity == 120
        await monitor.start(interval_seconds=60)
        await monitor.stop()
        assert monitor.buffer.capacity == 60
        assert len(monitor.buffer) == 1

    @pytest.mark.asyncio
    async def test_tick_failure_does_not_stop_loop(self):
        self.source = FlakySource(failures=1)
        monitor = self._monitor()
        await monitor.start(interval_seconds=0.01)
        try:
            assert monitor.tick_count == 0
            await asyncio.sleep(0.1)
            assert monitor.tick_count >= 1
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_component_sweep_isolates_failures(self):
        monitor = self._monitor()

        async def boom():
            raise RuntimeError("probe crashed")

        async def hang():
            await asyncio.sleep(10)

        async def fine():
            return _record(latency=3)

        monitor.register_component_check("cache", boom)
        monitor.register_component_check("database", hang)
        monitor.register_component_check("api", fine)

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await monitor.check_components()
        assert loop.time() - started < 1

        assert results["api"].status is ComponentStatus.HEALTHY
        assert results["cache"].status is ComponentStatus.UNHEALTHY
        assert results["cache"].error == "probe crashed"
        assert results["database"].status is ComponentStatus.UNHEALTHY
        assert "Timed out" in results["database"].error

        status = await monitor.get_system_status()
        assert status.overall is ComponentStatus.UNHEALTHY
        assert status.components["api"] is ComponentStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_endpoint_components_are_probed(self):
        self.checker = FakeHealthChecker(latency_ms=1500)
        monitor = self._monitor(component_endpoints={
            "api": "http://api/health", "cdn": "",
        })

        status = await monitor.get_system_status(refresh=True)

        assert self.checker.probes == ["http://api/health"]
        assert status.components == {"api": ComponentStatus.DEGRADED}
        assert status.overall is ComponentStatus.DEGRADED
        assert len(monitor.get_health_history()) == 1

    @pytest.mark.asyncio
    async def test_get_metrics_window(self):
        monitor = self._monitor()
        first = await monitor.tick()
        await asyncio.sleep(0.002)
        second = await monitor.tick()

        assert monitor.get_metrics() == [first, second]
        assert monitor.get_metrics(start=second.timestamp) == [second]
        assert monitor.get_metrics(end=first.timestamp) == [first]
