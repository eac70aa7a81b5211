"""Centralized settings for the Helmsman platform.

Uses pydantic-settings to load from environment variables (prefixed HELMSMAN_)
with defaults suitable for a single-process deployment controller.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Helmsman settings loaded from environment variables."""

    # --- Service ---
    service_name: str = "helmsman"
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Infrastructure monitoring ---
    monitor_interval_seconds: float = 30.0
    metrics_retention_hours: float = 24.0
    health_check_timeout_seconds: float = 5.0
    degraded_latency_ms: float = 1000.0
    health_history_size: int = 500

    # Component health endpoints (empty string disables the HTTP probe)
    api_health_url: str = "http://localhost:8000/health"
    database_health_url: str = ""
    cache_health_url: str = ""
    cdn_health_url: str = ""
    external_health_url: str = ""

    # --- Deployment orchestration ---
    deployment_poll_interval_seconds: float = 30.0
    canary_observation_seconds: float = 300.0
    rolling_timeout_seconds: float = 600.0
    deployment_history_size: int = 200
    escalation_channels: list[str] = ["pagerduty", "slack"]

    # --- Alerting ---
    max_alert_history: int = 1000
    load_default_alert_rules: bool = True

    # --- Notification transport ---
    # channel name -> webhook URL; channels without a URL are logged only
    webhook_urls: dict[str, str] = {}
    webhook_timeout_seconds: float = 10.0

    # --- API ---
    api_title: str = "Helmsman API"
    api_prefix: str = "/api/v1"

    model_config = {
        "env_prefix": "HELMSMAN_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
