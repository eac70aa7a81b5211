"""Exception Handlers & Error Response Builder.

Provides FastAPI exception handlers and a standardized error
response builder for consistent error formatting.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api_errors.config import (
    DEFAULT_ERROR_CONFIG,
    ERROR_SEVERITY_MAP,
    ERROR_STATUS_MAP,
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
)
from src.api_errors.exceptions import HelmsmanError
from src.logging_config.context import get_correlation_id

logger = logging.getLogger(__name__)

_SEVERITY_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.CRITICAL,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.LOW: logging.INFO,
}


@dataclass
class ErrorResponse:
    """Structured error response envelope."""

    code: str
    message: str
    status_code: int = 500
    details: List[Dict[str, Any]] = field(default_factory=list)
    request_id: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp,
            }
        }
        if self.details:
            body["error"]["details"] = self.details
        if self.request_id:
            body["error"]["request_id"] = self.request_id
        return body


def create_error_response(
    error_code: ErrorCode,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
    request_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> ErrorResponse:
    """Build a standardized ErrorResponse from components."""
    return ErrorResponse(
        code=error_code.value,
        message=message,
        status_code=status_code or ERROR_STATUS_MAP.get(error_code, 500),
        details=details or [],
        request_id=request_id,
    )


def handle_helmsman_error(exc: HelmsmanError, config: Optional[ErrorConfig] = None) -> ErrorResponse:
    """Log a HelmsmanError at its severity and produce an ErrorResponse."""
    config = config or DEFAULT_ERROR_CONFIG
    if config.log_all_errors:
        severity = ERROR_SEVERITY_MAP.get(exc.error_code, ErrorSeverity.MEDIUM)
        logger.log(
            _SEVERITY_LOG_LEVELS[severity],
            "Error [%s] (%d): %s",
            exc.error_code.value,
            exc.status_code,
            exc.message,
        )

    return create_error_response(
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        request_id=get_correlation_id() if config.include_request_id else None,
        status_code=exc.status_code,
    )


def handle_unhandled_error(exc: Exception, config: Optional[ErrorConfig] = None) -> ErrorResponse:
    """Handle any unhandled exception with a safe 500 response."""
    config = config or DEFAULT_ERROR_CONFIG
    logger.error("Unhandled exception: %s: %s", type(exc).__name__, exc, exc_info=exc)

    message = "An internal error occurred"
    if not config.suppress_internal_details:
        message = f"{type(exc).__name__}: {exc}"

    return create_error_response(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        request_id=get_correlation_id() if config.include_request_id else None,
    )


def register_exception_handlers(app: FastAPI, config: Optional[ErrorConfig] = None) -> None:
    """Register the Helmsman exception handlers on a FastAPI application."""
    config = config or DEFAULT_ERROR_CONFIG

    async def _helmsman_error(request: Request, exc: HelmsmanError) -> JSONResponse:
        response = handle_helmsman_error(exc, config)
        return JSONResponse(status_code=response.status_code, content=response.to_dict())

    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        response = handle_unhandled_error(exc, config)
        return JSONResponse(status_code=response.status_code, content=response.to_dict())

    app.add_exception_handler(HelmsmanError, _helmsman_error)
    app.add_exception_handler(Exception, _unhandled_error)
    logger.info("Registered Helmsman exception handlers")
