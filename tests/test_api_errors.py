"""Tests for structured error handling."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api_errors.config import (
    DEFAULT_ERROR_CONFIG,
    ERROR_SEVERITY_MAP,
    ERROR_STATUS_MAP,
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
)
from src.api_errors.exceptions import (
    ConflictError,
    DeploymentAbort,
    DeploymentCancelledError,
    HelmsmanError,
    InvalidTransitionError,
    NotFoundError,
    RollbackError,
    StrategyExecutionError,
    ThresholdBreachError,
    ValidationError,
    ValidationFailure,
)
from src.api_errors.handlers import (
    ErrorResponse,
    create_error_response,
    handle_helmsman_error,
    handle_unhandled_error,
    register_exception_handlers,
)


class TestErrorConfig:
    """Tests for error configuration."""

    def test_error_code_enum_values(self):
        assert ErrorCode.VALIDATION_ERROR.value == "VALIDATION_ERROR"
        assert ErrorCode.ROLLBACK_FAILED.value == "ROLLBACK_FAILED"

    def test_error_status_map_covers_all_codes(self):
        for code in ErrorCode:
            assert code in ERROR_STATUS_MAP

    def test_error_severity_map_covers_all_codes(self):
        for code in ErrorCode:
            assert code in ERROR_SEVERITY_MAP

    def test_default_config(self):
        config = DEFAULT_ERROR_CONFIG
        assert config.include_request_id is True
        assert config.suppress_internal_details is True
        assert config.log_all_errors is True

    def test_not_found_codes_map_to_404(self):
        for code in (ErrorCode.DEPLOYMENT_NOT_FOUND, ErrorCode.ALERT_NOT_FOUND, ErrorCode.ROLLBACK_PLAN_NOT_FOUND):
            assert ERROR_STATUS_MAP[code] == 404

    def test_rollback_failure_is_critical(self):
        assert ERROR_STATUS_MAP[ErrorCode.ROLLBACK_FAILED] == 500
        assert ERROR_SEVERITY_MAP[ErrorCode.ROLLBACK_FAILED] == ErrorSeverity.CRITICAL


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_base_error(self):
        exc = HelmsmanError("test error")
        assert str(exc) == "test error"
        assert exc.status_code == 500
        assert exc.error_code == ErrorCode.INTERNAL_ERROR
        assert exc.severity == ErrorSeverity.CRITICAL

    def test_validation_error(self):
        exc = ValidationError("bad input", field="version")
        assert exc.status_code == 400
        assert exc.details[0]["field"] == "version"

    def test_validation_failure(self):
        exc = ValidationFailure("security_scan", "3 critical CVEs")
        assert exc.status_code == 400
        assert "security_scan" in exc.message

    def test_not_found_error(self):
        exc = NotFoundError(resource_type="deployment", resource_id="deploy_1")
        assert exc.status_code == 404
        assert exc.details[0]["resource_type"] == "deployment"

    def test_conflict_and_transition(self):
        assert ConflictError("busy").status_code == 409
        exc = InvalidTransitionError("success", "deploying")
        assert isinstance(exc, ConflictError)
        assert exc.error_code == ErrorCode.INVALID_TRANSITION
        assert "success to deploying" in exc.message

    def test_abort_family(self):
        for exc in (
            StrategyExecutionError("switch_traffic", "operator reported failure"),
            ThresholdBreachError(12.5, 5.0),
            DeploymentCancelledError(),
        ):
            assert isinstance(exc, DeploymentAbort)
            assert isinstance(exc, HelmsmanError)

    def test_threshold_breach_message(self):
        exc = ThresholdBreachError(12.5, 5.0, phase="canary 25%")
        assert exc.message == "Error rate 12.50% exceeds threshold 5.00% during canary 25%"
        assert exc.details[0]["phase"] == "canary 25%"

    def test_strategy_error_keeps_cause(self):
        cause = TimeoutError()
        exc = StrategyExecutionError("deploy", "timed out", cause)
        assert exc.cause is cause
        assert exc.message == "deploy failed: timed out"

    def test_rollback_error_is_not_an_abort(self):
        exc = RollbackError("deploy_1", "post-rollback health check unhealthy")
        assert not isinstance(exc, DeploymentAbort)
        assert exc.deployment_id == "deploy_1"


class TestHandlers:
    """Tests for error response building."""

    def test_error_response_envelope(self):
        response = ErrorResponse(code="X", message="boom", request_id="req-1")
        body = response.to_dict()
        assert body["error"]["code"] == "X"
        assert body["error"]["request_id"] == "req-1"
        assert "details" not in body["error"]
        assert body["error"]["timestamp"]

    def test_create_error_response_status(self):
        response = create_error_response(ErrorCode.DEPLOYMENT_CONFLICT, "busy")
        assert response.status_code == 409

    def test_handle_helmsman_error(self):
        response = handle_helmsman_error(NotFoundError("gone", ErrorCode.ALERT_NOT_FOUND))
        assert response.status_code == 404
        assert response.code == "ALERT_NOT_FOUND"

    def test_unhandled_error_hides_details(self):
        response = handle_unhandled_error(RuntimeError("db password is hunter2"))
        assert response.status_code == 500
        assert "hunter2" not in response.message

    def test_unhandled_error_details_when_allowed(self):
        config = ErrorConfig(suppress_internal_details=False)
        response = handle_unhandled_error(RuntimeError("boom"), config)
        assert response.message == "RuntimeError: boom"


class TestRegisteredHandlers:
    """Tests for handlers mounted on a FastAPI app."""

    def setup_method(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("Environment staging already has deployment deploy_1 in flight")

        @app.get("/crash")
        async def crash():
            raise RuntimeError("unexpected")

        self.client = TestClient(app, raise_server_exceptions=False)

    def test_helmsman_error_is_structured(self):
        resp = self.client.get("/conflict")
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"]["code"] == "DEPLOYMENT_CONFLICT"
        assert "in flight" in body["error"]["message"]

    def test_unhandled_error_is_500(self):
        resp = self.client.get("/crash")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "INTERNAL_ERROR"
        assert resp.json()["error"]["message"] == "An internal error occurred"

    @pytest.mark.parametrize("path", ["/conflict", "/crash"])
    def test_error_body_has_timestamp(self, path):
        assert self.client.get(path).json()["error"]["timestamp"]
