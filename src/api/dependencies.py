"""Service Container & FastAPI Dependencies.

Builds the monitor, alert engine and orchestrator once per application
from Settings, and exposes them to route handlers via `Depends`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from src.alerting import (
    AlertConfig,
    AlertEngine,
    NotificationDispatcher,
    WebhookChannel,
)
from src.deployment import (
    DeploymentOrchestrator,
    EnvironmentOperator,
    InMemoryEnvironmentOperator,
    OrchestratorConfig,
)
from src.infra_monitoring import (
    HealthChecker,
    InfrastructureMonitor,
    MetricsSource,
    MonitorConfig,
    StaticMetricsSource,
)
from src.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Process-wide service objects."""

    settings: Settings
    dispatcher: NotificationDispatcher
    alert_engine: AlertEngine
    health_checker: HealthChecker
    metrics_source: MetricsSource
    monitor: InfrastructureMonitor
    operator: EnvironmentOperator
    orchestrator: DeploymentOrchestrator


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    dispatcher = NotificationDispatcher(log_size=settings.max_alert_history)
    webhook_urls = {name: url for name, url in settings.webhook_urls.items() if url}
    if webhook_urls:
        webhook = WebhookChannel(webhook_urls, timeout_seconds=settings.webhook_timeout_seconds)
        for name in webhook_urls:
            dispatcher.register(name, webhook)
        logger.info("Webhook transport configured for channels: %s", ", ".join(sorted(webhook_urls)))
    return dispatcher


def build_services(
    settings: Settings,
    operator: Optional[EnvironmentOperator] = None,
    metrics_source: Optional[MetricsSource] = None,
    health_checker: Optional[HealthChecker] = None,
) -> ServiceContainer:
    """Wire every subsystem from settings.

    Without an operator, deployments run against an in-memory operator;
    without a metrics source, the monitor samples a static snapshot.
    """
    dispatcher = build_dispatcher(settings)
    alert_engine = AlertEngine(
        config=AlertConfig(
            max_alert_history=settings.max_alert_history,
            load_default_rules=settings.load_default_alert_rules,
        ),
        dispatcher=dispatcher,
    )
    health_checker = health_checker or HealthChecker(timeout_seconds=settings.health_check_timeout_seconds)
    metrics_source = metrics_source or StaticMetricsSource()

    monitor = InfrastructureMonitor(
        metrics_source=metrics_source,
        alert_engine=alert_engine,
        health_checker=health_checker,
        config=MonitorConfig(
            interval_seconds=settings.monitor_interval_seconds,
            retention_hours=settings.metrics_retention_hours,
            health_check_timeout_seconds=settings.health_check_timeout_seconds,
            degraded_latency_ms=settings.degraded_latency_ms,
            health_history_size=settings.health_history_size,
            component_endpoints={
                "api": settings.api_health_url,
                "database": settings.database_health_url,
                "cache": settings.cache_health_url,
                "cdn": settings.cdn_health_url,
                "external": settings.external_health_url,
            },
        ),
    )

    if operator is None:
        logger.warning("No environment operator configured; using in-memory operator")
        operator = InMemoryEnvironmentOperator()
    orchestrator = DeploymentOrchestrator(
        operator=operator,
        health_checker=health_checker,
        dispatcher=dispatcher,
        metrics_source=metrics_source,
        config=OrchestratorConfig(
            poll_interval_seconds=settings.deployment_poll_interval_seconds,
            canary_observation_seconds=settings.canary_observation_seconds,
            rolling_timeout_seconds=settings.rolling_timeout_seconds,
            history_size=settings.deployment_history_size,
            escalation_channels=list(settings.escalation_channels),
        ),
    )

    return ServiceContainer(
        settings=settings,
        dispatcher=dispatcher,
        alert_engine=alert_engine,
        health_checker=health_checker,
        metrics_source=metrics_source,
        monitor=monitor,
        operator=operator,
        orchestrator=orchestrator,
    )


def get_services(request: Request) -> ServiceContainer:
    """Return the container attached to the running application."""
    return request.app.state.services


def get_monitor(request: Request) -> InfrastructureMonitor:
    return get_services(request).monitor


def get_alert_engine(request: Request) -> AlertEngine:
    return get_services(request).alert_engine


def get_orchestrator(request: Request) -> DeploymentOrchestrator:
    return get_services(request).orchestrator
