"""Operator API.

REST surface for starting and stopping infrastructure monitoring,
inspecting status, alerts and metrics, and driving deployments.

Example:
    from src.api import create_app
    app = create_app()
"""

from src.api.app import create_app
from src.api.config import DEFAULT_API_CONFIG, APIConfig
from src.api.dependencies import ServiceContainer, build_services

__all__ = [
    "APIConfig",
    "DEFAULT_API_CONFIG",
    "ServiceContainer",
    "build_services",
    "create_app",
]
