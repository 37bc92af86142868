"""
Shared configuration management for the UK Weather Gateway.
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ADMIN_KEY = "change-me-in-production"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every field can be overridden with a ``WEATHER_``-prefixed environment
    variable, e.g. ``WEATHER_FREE_TIER_QUOTA=50``.
    """

    model_config = SettingsConfigDict(
        env_prefix="WEATHER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Administrative credential compared by exact match
    admin_key: str = Field(default=DEFAULT_ADMIN_KEY)

    # key -> tier, e.g. '{"ukw_demo": "pro"}'
    static_api_keys: Dict[str, str] = Field(default_factory=dict)

    # Rate limiting
    free_tier_quota: int = Field(default=100, ge=1)
    pro_tier_quota: int = Field(default=1000, ge=1)
    rate_limit_window_seconds: float = Field(default=3600.0, gt=0)

    # Response cache
    cache_ttl_seconds: float = Field(default=900.0, gt=0)
    cache_sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # Upstream provider
    upstream_url: str = Field(default="https://api.open-meteo.com/v1/forecast")
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)
    upstream_timezone: str = Field(default="Europe/London")
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_recovery_timeout: float = Field(default=30.0, gt=0)


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
