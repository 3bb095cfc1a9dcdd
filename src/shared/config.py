"""Configuration management for the Xero operation gateway.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached for performance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CORS_ORIGINS = [
    "https://copilotstudio.microsoft.com",
    "https://powerva.microsoft.com",
    "https://*.powerplatform.com",
    "https://*.dynamics.com",
]


class XeroSettings(BaseSettings):
    """Xero API connection configuration."""
    client_id: Optional[str] = Field(default=None, description="Custom connection client ID")
    client_secret: Optional[str] = Field(default=None, description="Custom connection client secret")
    client_bearer_token: Optional[str] = Field(default=None, description="Pre-issued bearer token")
    tenant_id: Optional[str] = Field(default=None, description="Xero tenant (organisation) ID")
    scopes: str = Field(
        default=(
            "accounting.transactions accounting.contacts accounting.settings "
            "accounting.reports.read payroll.employees payroll.timesheets payroll.settings"
        )
    )
    api_base: str = Field(default="https://api.xero.com")
    identity_url: str = Field(default="https://identity.xero.com/connect/token")
    timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="XERO_",
        env_file=".env",
        extra="ignore"
    )


class RateLimitSettings(BaseSettings):
    """Per-client rate limiting on the MCP route."""
    enabled: bool = Field(default=True)
    window_seconds: float = Field(default=60.0, gt=0)
    max_requests: int = Field(default=100, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        env_file=".env",
        extra="ignore"
    )


class TelemetrySettings(BaseSettings):
    """Session telemetry configuration."""
    max_sessions: int = Field(default=1000, gt=0)
    active_window_seconds: float = Field(default=300.0, gt=0)
    probe_on_startup: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_",
        env_file=".env",
        extra="ignore"
    )


class GatewaySettings(BaseSettings):
    """Gateway server configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    route_path: str = Field(default="/mcp")
    tool_name: str = Field(default="xero-api")
    expose_operations: bool = Field(default=False, description="Also advertise each operation as its own tool")
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    # Line item defaults applied by the normalizer
    default_account_code: str = Field(default="200")
    default_tax_type: str = Field(default="OUTPUT")

    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    xero: XeroSettings = Field(default_factory=XeroSettings)

    model_config = SettingsConfigDict(
        env_prefix="XERO_GATEWAY_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        data = load_yaml_config(path)
        return cls(**data)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("XERO_GATEWAY_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
