"""API Configuration."""

from dataclasses import dataclass, field

from src.settings import Settings


@dataclass
class APIConfig:
    """Core API settings."""

    title: str = "Helmsman API"
    version: str = "1.0.0"
    description: str = "Deployment orchestration and infrastructure monitoring"
    prefix: str = "/api/v1"
    docs_url: str = "/docs"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cors_methods: list[str] = field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    cors_headers: list[str] = field(default_factory=lambda: ["*"])
    default_page_size: int = 20
    max_page_size: int = 200

    @classmethod
    def from_settings(cls, settings: Settings) -> "APIConfig":
        return cls(title=settings.api_title, prefix=settings.api_prefix)


DEFAULT_API_CONFIG = APIConfig()
