"""
Shared configuration management for the cache access service.
"""

from typing import Optional

from pydantic import Field
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
    env: str = Field(default="local", validation_alias="ACCESS_ENV")
    log_level: str = Field(default="info", validation_alias="ACCESS_LOG_LEVEL")

    # HTTP
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3033, validation_alias="PORT")
    cors_origin: str = Field(default="*", validation_alias="CORS_ORIGIN")

    # Redis connection
    redis_host: str = Field(default="localhost", validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")
    redis_key_prefix: str = Field(default="lbt:", validation_alias="REDIS_KEY_PREFIX")
    redis_connect_timeout: float = Field(default=5.0, validation_alias="REDIS_CONNECT_TIMEOUT")
    redis_socket_timeout: float = Field(default=5.0, validation_alias="REDIS_SOCKET_TIMEOUT")

    # Reconnect policy: linear backoff, capped per attempt, bounded attempts
    redis_max_reconnect_attempts: int = Field(default=10, validation_alias="REDIS_MAX_RECONNECT_ATTEMPTS")
    redis_reconnect_base_delay: float = Field(default=0.1, validation_alias="REDIS_RECONNECT_BASE_DELAY")
    redis_reconnect_max_delay: float = Field(default=3.0, validation_alias="REDIS_RECONNECT_MAX_DELAY")

    # Cache TTLs in seconds
    cache_default_ttl: int = Field(default=86400, validation_alias="CACHE_DEFAULT_TTL")
    cache_lichess_ttl: int = Field(default=604800, validation_alias="CACHE_LICHESS_TTL")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "cache"


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
