"""Request Tracing Middleware.

Assigns a correlation ID to every operator API request, binds it to the
log context and echoes it back in the response headers.
"""

import logging
import time
from typing import Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG, LoggingConfig
from src.logging_config.context import LogContext, generate_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"


class RequestTracingMiddleware:
    """ASGI middleware that binds a correlation ID to each HTTP request.

    Usage:
        app.add_middleware(RequestTracingMiddleware)
    """

    def __init__(self, app, config: Optional[LoggingConfig] = None):
        self.app = app
        self.config = config or DEFAULT_LOGGING_CONFIG

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        raw = headers.get(CORRELATION_ID_HEADER.lower().encode())
        correlation_id = raw.decode("utf-8", errors="replace") if raw else generate_correlation_id()

        method = scope.get("method", "")
        path = scope.get("path", "")
        should_log = path not in self.config.exclude_paths
        start_time = time.perf_counter()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                response_headers = list(message.get("headers", []))
                response_headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": response_headers}
            await send(message)

        with LogContext(correlation_id=correlation_id):
            try:
                await self.app(scope, receive, send_wrapper)
            finally:
                if should_log:
                    duration_ms = (time.perf_counter() - start_time) * 1000
                    logger.log(
                        logging.WARNING if status_code >= 400 else logging.INFO,
                        "%s %s -> %d",
                        method,
                        path,
                        status_code,
                        extra={
                            "method": method,
                            "path": path,
                            "status_code": status_code,
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
