"""
Shared configuration management for the roaming settings adapter.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ROAMING_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Microsoft Graph
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    graph_access_token: Optional[str] = Field(default=None)
    graph_timeout_seconds: float = Field(default=10.0)
    graph_retry_attempts: int = Field(default=3)
    graph_retry_base_delay: float = Field(default=1.0)
    graph_failure_threshold: int = Field(default=3)
    graph_recovery_timeout: float = Field(default=30.0)

    # Roaming settings store
    extension_id: str = Field(default="com.toolkit.roamingSettings")
    auto_sync: bool = Field(default=True)
    background_workers: int = Field(default=4)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "roaming-settings"

    def __init__(self, service_name: str = "roaming-settings", **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str = "roaming-settings", **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
