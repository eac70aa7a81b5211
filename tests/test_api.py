"""Tests for the operator API: monitoring, alerts and deployments."""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import FakeHealthChecker
from src.api import APIConfig, DEFAULT_API_CONFIG, build_services, create_app
from src.api.models import DeploymentRequest
from src.deployment import Environment, InMemoryEnvironmentOperator, Strategy
from src.settings import Settings

PREFIX = "/api/v1"
TERMINAL = {"success", "failed", "rolled_back"}


def _settings(**overrides):
    fields = dict(
        api_health_url="http://api.internal/health",
        monitor_interval_seconds=60,
        deployment_poll_interval_seconds=0.01,
        canary_observation_seconds=0,
    )
    fields.update(overrides)
    return Settings(**fields)


def _deployment_body(**overrides):
    body = {
        "environment": "staging",
        "strategy": "rolling",
        "version": "2.0.0",
        "health_check_endpoint": "http://app.internal/health",
        "monitoring_duration_seconds": 0,
    }
    body.update(overrides)
    return body


def _wait_for_terminal(client, deployment_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"{PREFIX}/deployments/{deployment_id}").json()
        if body["status"] in TERMINAL:
            return body
        time.sleep(0.02)
    raise AssertionError(f"deployment {deployment_id} did not finish")


# =============================================================================
# Config & Models
# =============================================================================


class TestAPIConfig:

    def test_defaults(self):
        assert DEFAULT_API_CONFIG.prefix == "/api/v1"
        assert DEFAULT_API_CONFIG.title == "Helmsman API"

    def test_from_settings(self):
        config = APIConfig.from_settings(_settings(api_prefix="/ops", api_title="Ops"))
        assert config.prefix == "/ops"
        assert config.title == "Ops"


class TestDeploymentRequest:

    def test_to_config(self):
        request = DeploymentRequest(**_deployment_body(strategy="canary", rollback_threshold=2.5))
        config = request.to_config()
        assert config.environment is Environment.STAGING
        assert config.strategy is Strategy.CANARY
        assert config.rollback_threshold == 2.5

    def test_threshold_bounds(self):
        with pytest.raises(ValueError):
            DeploymentRequest(**_deployment_body(rollback_threshold=0))


# =============================================================================
# Routes
# =============================================================================


class TestMonitoringRoutes:

    @pytest.fixture
    def services(self):
        return build_services(_settings(), health_checker=FakeHealthChecker())

    @pytest.fixture
    def client(self, services):
        with TestClient(create_app(services=services)) as client:
            yield client

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["monitoring"] is False
        assert "X-Correlation-ID" in resp.headers

    def test_start_and_stop(self, client):
        resp = client.post(f"{PREFIX}/monitoring/start", json={"interval_seconds": 60})
        assert resp.status_code == 200
        assert resp.json() == {"running": True, "interval_seconds": 60.0, "tick_count": 1}
        assert client.get("/health").json()["monitoring"] is True

        resp = client.post(f"{PREFIX}/monitoring/start")
        assert resp.json()["tick_count"] == 1

        resp = client.post(f"{PREFIX}/monitoring/stop")
        assert resp.json()["running"] is False
        assert client.post(f"{PREFIX}/monitoring/stop").status_code == 200

    def test_status_rolls_up_components(self, client):
        client.post(f"{PREFIX}/monitoring/start")
        body = client.get(f"{PREFIX}/status").json()
        assert body["overall"] == "healthy"
        assert body["components"] == {"api": "healthy"}
        assert body["monitoring"] is True

    def test_status_refresh_probes_components(self, client, services):
        body = client.get(f"{PREFIX}/status", params={"refresh": True}).json()
        assert body["components"] == {"api": "healthy"}
        assert services.health_checker.probes == ["http://api.internal/health"]

    def test_metrics(self, client):
        client.post(f"{PREFIX}/monitoring/start")
        body = client.get(f"{PREFIX}/metrics").json()
        assert body["total"] == 1
        assert set(body["data"][0]) >= {"system_health", "business_metrics", "timestamp"}

    def test_metrics_rejects_inverted_window(self, client):
        resp = client.get(f"{PREFIX}/metrics", params={
            "start": "2026-01-02T00:00:00", "end": "2026-01-01T00:00:00",
        })
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_metrics_window_with_naive_timestamps(self, client):
        client.post(f"{PREFIX}/monitoring/start")
        resp = client.get(f"{PREFIX}/metrics", params={"start": "2000-01-01T00:00:00"})
        assert resp.status_code == 200
        assert resp.json()["total"] == 1


class TestAlertRoutes:

    @pytest.fixture
    def client(self):
        services = build_services(_settings(), health_checker=FakeHealthChecker())
        with TestClient(create_app(services=services)) as client:
            # the static source reports 0% conversion, tripping the default rule
            client.post(f"{PREFIX}/monitoring/start")
            yield client

    def test_active_alerts(self, client):
        body = client.get(f"{PREFIX}/alerts/active").json()
        assert body["total"] == 1
        alert = body["data"][0]
        assert alert["rule_id"] == "low_conversion_rate"
        assert alert["status"] == "active"

    def test_acknowledge(self, client):
        alert_id = client.get(f"{PREFIX}/alerts/active").json()["data"][0]["alert_id"]

        resp = client.post(f"{PREFIX}/alerts/{alert_id}/acknowledge", json={"acknowledged_by": "oncall"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "acknowledged"
        assert resp.json()["acknowledged_by"] == "oncall"

        # still open, so still listed
        assert client.get(f"{PREFIX}/alerts/active").json()["total"] == 1

        resp = client.post(f"{PREFIX}/alerts/{alert_id}/acknowledge")
        assert resp.status_code == 409

    def test_acknowledge_unknown(self, client):
        resp = client.post(f"{PREFIX}/alerts/alert_missing/acknowledge")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ALERT_NOT_FOUND"


class TestDeploymentRoutes:

    @pytest.fixture
    def operator(self):
        return InMemoryEnvironmentOperator({"staging": "1.0.0", "production": "1.0.0"})

    @pytest.fixture
    def client(self, operator):
        services = build_services(_settings(), operator=operator, health_checker=FakeHealthChecker())
        with TestClient(create_app(services=services)) as client:
            yield client

    def test_deploy_and_poll(self, client, operator):
        resp = client.post(f"{PREFIX}/deployments", json=_deployment_body())
        assert resp.status_code == 202
        deployment_id = resp.json()["deployment_id"]

        body = _wait_for_terminal(client, deployment_id)

        assert body["status"] == "success"
        assert body["rollback_plan"]["previous_version"] == "1.0.0"
        assert body["rollback_plan"]["rollback_commands"] == [
            "rollback-to-1.0.0", "restart-services-staging",
        ]
        assert operator.versions["staging"] == "2.0.0"

        listing = client.get(f"{PREFIX}/deployments", params={"environment": "staging"}).json()
        assert listing["total"] == 1

    def test_manual_rollback(self, client, operator):
        deployment_id = client.post(f"{PREFIX}/deployments", json=_deployment_body()).json()["deployment_id"]
        _wait_for_terminal(client, deployment_id)

        resp = client.post(f"{PREFIX}/deployments/{deployment_id}/rollback", json={"reason": "regression"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["reason"] == "regression"
        assert operator.versions["staging"] == "1.0.0"

        assert client.get(f"{PREFIX}/deployments/{deployment_id}").json()["status"] == "rolled_back"
        assert client.post(f"{PREFIX}/deployments/{deployment_id}/rollback").status_code == 409

    def test_second_deployment_conflicts(self, client, operator):
        operator.delay_seconds = 0.1
        first = client.post(f"{PREFIX}/deployments", json=_deployment_body())
        second = client.post(f"{PREFIX}/deployments", json=_deployment_body(version="3.0.0"))

        assert first.status_code == 202
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "DEPLOYMENT_CONFLICT"
        _wait_for_terminal(client, first.json()["deployment_id"])

    def test_cancel(self, client, operator):
        operator.delay_seconds = 0.1
        deployment_id = client.post(f"{PREFIX}/deployments", json=_deployment_body()).json()["deployment_id"]

        resp = client.post(f"{PREFIX}/deployments/{deployment_id}/cancel", json={"reason": "wrong build"})
        assert resp.status_code == 202
        assert resp.json()["cancel_requested"] is True

        body = _wait_for_terminal(client, deployment_id)
        assert body["status"] in ("failed", "rolled_back")
        assert "wrong build" in body["failure_reason"]

        resp = client.post(f"{PREFIX}/deployments/{deployment_id}/cancel")
        assert resp.status_code == 409

    def test_failed_validation(self, client, operator):
        deployment_id = client.post(
            f"{PREFIX}/deployments", json=_deployment_body(version="not a version"),
        ).json()["deployment_id"]

        body = _wait_for_terminal(client, deployment_id)

        assert body["status"] == "failed"
        assert body["rollback_plan"] is None
        assert body["validation_results"][0]["status"] == "failed"
        assert operator.calls_to("deploy") == []

    def test_unknown_deployment(self, client):
        resp = client.get(f"{PREFIX}/deployments/deploy_missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "DEPLOYMENT_NOT_FOUND"
        assert client.post(f"{PREFIX}/deployments/deploy_missing/rollback").status_code == 404

    def test_invalid_request(self, client):
        resp = client.post(f"{PREFIX}/deployments", json=_deployment_body(strategy="big-bang"))
        assert resp.status_code == 422
