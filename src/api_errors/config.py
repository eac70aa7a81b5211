"""Error Configuration.

Defines error codes, severity levels, and configuration for structured
error handling across deployments, alerting and the operator API.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class ErrorCode(Enum):
    """Standardized error codes."""

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PRE_DEPLOYMENT_CHECK_FAILED = "PRE_DEPLOYMENT_CHECK_FAILED"

    # Not found errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    DEPLOYMENT_NOT_FOUND = "DEPLOYMENT_NOT_FOUND"
    ROLLBACK_PLAN_NOT_FOUND = "ROLLBACK_PLAN_NOT_FOUND"
    ALERT_NOT_FOUND = "ALERT_NOT_FOUND"

    # Conflict errors (409)
    DEPLOYMENT_CONFLICT = "DEPLOYMENT_CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DEPLOYMENT_CANCELLED = "DEPLOYMENT_CANCELLED"

    # Deployment aborts
    THRESHOLD_BREACH = "THRESHOLD_BREACH"
    STRATEGY_EXECUTION_FAILED = "STRATEGY_EXECUTION_FAILED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"


class ErrorSeverity(Enum):
    """Severity levels for error logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.PRE_DEPLOYMENT_CHECK_FAILED: 400,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.DEPLOYMENT_NOT_FOUND: 404,
    ErrorCode.ROLLBACK_PLAN_NOT_FOUND: 404,
    ErrorCode.ALERT_NOT_FOUND: 404,
    ErrorCode.DEPLOYMENT_CONFLICT: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.DEPLOYMENT_CANCELLED: 409,
    ErrorCode.THRESHOLD_BREACH: 422,
    ErrorCode.STRATEGY_EXECUTION_FAILED: 502,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.ROLLBACK_FAILED: 500,
}

ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.VALIDATION_ERROR: ErrorSeverity.LOW,
    ErrorCode.PRE_DEPLOYMENT_CHECK_FAILED: ErrorSeverity.MEDIUM,
    ErrorCode.RESOURCE_NOT_FOUND: ErrorSeverity.LOW,
    ErrorCode.DEPLOYMENT_NOT_FOUND: ErrorSeverity.LOW,
    ErrorCode.ROLLBACK_PLAN_NOT_FOUND: ErrorSeverity.MEDIUM,
    ErrorCode.ALERT_NOT_FOUND: ErrorSeverity.LOW,
    ErrorCode.DEPLOYMENT_CONFLICT: ErrorSeverity.MEDIUM,
    ErrorCode.INVALID_TRANSITION: ErrorSeverity.MEDIUM,
    ErrorCode.DEPLOYMENT_CANCELLED: ErrorSeverity.MEDIUM,
    ErrorCode.THRESHOLD_BREACH: ErrorSeverity.HIGH,
    ErrorCode.STRATEGY_EXECUTION_FAILED: ErrorSeverity.HIGH,
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.ROLLBACK_FAILED: ErrorSeverity.CRITICAL,
}


@dataclass
class ErrorConfig:
    """Configuration for error handling."""

    include_request_id: bool = True
    log_all_errors: bool = True
    suppress_internal_details: bool = True


DEFAULT_ERROR_CONFIG = ErrorConfig()
