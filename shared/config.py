"""
Shared configuration management for the Video Archiving access layer.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="development", validation_alias=AliasChoices("NODE_ENV", "ACCESS_ENV"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("ACCESS_LOG_LEVEL", "LOG_LEVEL"))

    # Backing store
    postgres_dsn: str = Field(
        default="postgresql://localhost:5432/video_archiving",
        validation_alias=AliasChoices("ACCESS_POSTGRES_DSN", "DATABASE_URL"),
    )
    postgres_min_pool_size: int = Field(default=2, validation_alias="ACCESS_POSTGRES_MIN_POOL_SIZE")
    postgres_max_pool_size: int = Field(default=10, validation_alias="ACCESS_POSTGRES_MAX_POOL_SIZE")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="ACCESS_REDIS_URL")

    # Inbound API keys, first non-empty wins
    video_archiving_api_key: Optional[str] = Field(default=None, validation_alias="VIDEO_ARCHIVING_API_KEY")
    external_api_key: Optional[str] = Field(default=None, validation_alias="EXTERNAL_API_KEY")

    # E-Filing downstream service
    efiling_api_url: str = Field(
        default="http://localhost:5000/api/external",
        validation_alias="EFILING_API_URL",
    )
    efiling_api_key: Optional[str] = Field(default=None, validation_alias="EFILING_API_KEY")
    efiling_timeout_seconds: float = Field(default=5.0, validation_alias="EFILING_TIMEOUT_SECONDS")

    # Rate limiting
    rate_limit_max_requests: int = Field(default=100, ge=1, validation_alias="ACCESS_RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_ms: int = Field(default=60000, ge=1, validation_alias="ACCESS_RATE_LIMIT_WINDOW_MS")
    rate_limit_backend: str = Field(default="memory", validation_alias="ACCESS_RATE_LIMIT_BACKEND")

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() == "production"

    @property
    def inbound_api_key(self) -> Optional[str]:
        """Expected X-API-Key value, or None when neither variable is set."""
        return self.video_archiving_api_key or self.external_api_key or None


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
