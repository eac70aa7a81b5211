"""Error Handling.

Error codes, the typed exception hierarchy shared by the deployment and
alerting subsystems, and structured error responses for the operator API.
"""

from src.api_errors.config import (
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
    register_exception_handlers,
)

__all__ = [
    # Config
    "ErrorCode",
    "ErrorConfig",
    "ErrorSeverity",
    # Exceptions
    "ConflictError",
    "DeploymentAbort",
    "DeploymentCancelledError",
    "HelmsmanError",
    "InvalidTransitionError",
    "NotFoundError",
    "RollbackError",
    "StrategyExecutionError",
    "ThresholdBreachError",
    "ValidationError",
    "ValidationFailure",
    # Handlers
    "ErrorResponse",
    "create_error_response",
    "register_exception_handlers",
]
