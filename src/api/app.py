"""FastAPI Application Factory.

Creates the Helmsman operator API with request tracing, structured
error handling and CORS, and owns the lifecycle of the service container.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.config import APIConfig
from src.api.dependencies import ServiceContainer, build_services
from src.api.models import HealthResponse
from src.api.routes import alerts, deployments, monitoring
from src.api_errors import register_exception_handlers
from src.logging_config import LoggingConfig, configure_logging
from src.logging_config.middleware import RequestTracingMiddleware
from src.settings import Settings, get_settings

logger = logging.getLogger(__name__)


# ── Lifespan (startup / shutdown) ────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging at startup; stop the monitor and drain runs at shutdown."""
    services: ServiceContainer = app.state.services
    configure_logging(LoggingConfig.from_settings(services.settings))
    logger.info("Helmsman API starting up")
    yield
    logger.info("Helmsman API shutting down")
    await services.monitor.stop()
    await services.orchestrator.wait_all()


# ── App Factory ──────────────────────────────────────────────────────


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
    config: Optional[APIConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Middleware stack (outermost → innermost):
        RequestTracing → CORS → App, with HelmsmanError handlers registered
        on the app itself.

    Args:
        settings: Process settings. Uses cached environment settings if not provided.
        services: Prebuilt service container (tests inject fakes here).
        config: API configuration. Derived from settings if not provided.
    """
    settings = settings or (services.settings if services else get_settings())
    config = config or APIConfig.from_settings(settings)

    app = FastAPI(
        title=config.title,
        version=config.version,
        description=config.description,
        docs_url=config.docs_url,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)

    cors_origins = os.environ.get("HELMSMAN_CORS_ORIGINS", "").split(",")
    cors_origins = [o.strip() for o in cors_origins if o.strip()] or config.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=config.cors_methods,
        allow_headers=config.cors_headers,
    )
    app.add_middleware(RequestTracingMiddleware)
    register_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            version=config.version,
            monitoring=app.state.services.monitor.is_running,
        )

    app.include_router(monitoring.router, prefix=config.prefix)
    app.include_router(alerts.router, prefix=config.prefix)
    app.include_router(deployments.router, prefix=config.prefix)

    logger.info("Helmsman API v%s initialized", config.version)
    return app
