"""Exception Hierarchy.

Typed exceptions raised by the deployment orchestrator, alert engine and
operator API. Each carries an error code that maps to an HTTP status and
a log severity.
"""

from typing import Any, Dict, List, Optional

from src.api_errors.config import ERROR_SEVERITY_MAP, ERROR_STATUS_MAP, ErrorCode, ErrorSeverity


class HelmsmanError(Exception):
    """Base exception for all Helmsman errors.

    All custom exceptions inherit from this, allowing a single
    exception handler to catch the entire hierarchy.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = ERROR_STATUS_MAP.get(error_code, 500)
        self.details = details or []

    @property
    def severity(self) -> ErrorSeverity:
        return ERROR_SEVERITY_MAP.get(self.error_code, ErrorSeverity.MEDIUM)


class ValidationError(HelmsmanError):
    """Raised when operator input fails validation."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
    ):
        details = [{"field": field, "issue": message}] if field else None
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class ValidationFailure(HelmsmanError):
    """Raised when a pre-deployment check fails.

    Nothing has touched the environment yet, so no rollback is needed.
    """

    def __init__(self, check_name: str, message: str):
        super().__init__(
            f"Pre-deployment check '{check_name}' failed: {message}",
            ErrorCode.PRE_DEPLOYMENT_CHECK_FAILED,
            [{"check": check_name, "issue": message}],
        )
        self.check_name = check_name


class NotFoundError(HelmsmanError):
    """Raised when a requested resource does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        details = []
        if resource_type or resource_id:
            details = [{"resource_type": resource_type, "resource_id": resource_id}]
        super().__init__(message, error_code, details)


class ConflictError(HelmsmanError):
    """Raised when an action conflicts with existing state."""

    def __init__(
        self,
        message: str = "Resource conflict",
        error_code: ErrorCode = ErrorCode.DEPLOYMENT_CONFLICT,
    ):
        super().__init__(message, error_code)


class InvalidTransitionError(ConflictError):
    """Raised on a deployment status change outside the allowed edges."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition deployment from {current} to {target}",
            ErrorCode.INVALID_TRANSITION,
        )
        self.current = current
        self.target = target


class DeploymentAbort(HelmsmanError):
    """Base for failures that abort a running deployment and trigger rollback."""


class StrategyExecutionError(DeploymentAbort):
    """Raised when an environment operation fails mid-strategy."""

    def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"{operation} failed: {message}",
            ErrorCode.STRATEGY_EXECUTION_FAILED,
            [{"operation": operation, "issue": message}],
        )
        self.operation = operation
        self.cause = cause


class ThresholdBreachError(DeploymentAbort):
    """Raised when the observed error rate exceeds the rollback threshold."""

    def __init__(self, error_rate: float, threshold: float, phase: str = "monitoring"):
        super().__init__(
            f"Error rate {error_rate:.2f}% exceeds threshold {threshold:.2f}% during {phase}",
            ErrorCode.THRESHOLD_BREACH,
            [{"error_rate": error_rate, "threshold": threshold, "phase": phase}],
        )
        self.error_rate = error_rate
        self.threshold = threshold
        self.phase = phase


class DeploymentCancelledError(DeploymentAbort):
    """Raised inside a run when an operator cancels it."""

    def __init__(self, reason: str = "Cancelled by operator"):
        super().__init__(reason, ErrorCode.DEPLOYMENT_CANCELLED)
        self.reason = reason


class RollbackError(HelmsmanError):
    """Raised when a rollback fails. Terminal: never retried automatically."""

    def __init__(
        self,
        deployment_id: str,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Rollback of deployment {deployment_id} failed: {message}",
            ErrorCode.ROLLBACK_FAILED,
            [{"deployment_id": deployment_id, "issue": message}],
        )
        self.deployment_id = deployment_id
        self.cause = cause
