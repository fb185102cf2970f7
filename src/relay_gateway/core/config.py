"""Configuration management for the HTTP Relay Gateway."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with relay and diagnostics configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        frozen=True,
    )

    # Server configuration
    HOST: str = Field(default="127.0.0.1", description="Server host")
    PORT: int = Field(default=8000, description="Server port")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Logging format: json or text")

    # Security settings
    ALLOWED_HOSTS: list[str] = Field(default_factory=lambda: ["*"], description="Allowed hosts for TrustedHostMiddleware")

    # Authentication
    PROXY_API_KEY: Optional[str] = Field(
        default=None,
        description="Gateway secret; leave unset to run the relay in open mode"
    )

    # Outbound relay
    FORWARD_TIMEOUT: float = Field(default=25.0, gt=0, description="Deadline for one outbound call in seconds")
    GATEWAY_USER_AGENT: str = Field(default="HTTP-Relay-Gateway/1.0", description="User-Agent sent to targets")
    FOLLOW_REDIRECTS: bool = Field(default=False, description="Follow upstream redirects instead of relaying them")
    MAX_REDIRECTS: int = Field(default=3, ge=0, le=20, description="Redirect limit when following redirects")
    ENABLE_HTTP2: bool = Field(default=True, description="Negotiate HTTP/2 with targets")

    # Connectivity probe issued after a failed outbound call
    CONNECTIVITY_PROBE_ENABLED: bool = Field(default=True, description="Probe the base host after a transport failure")
    CONNECTIVITY_PROBE_TIMEOUT: float = Field(default=5.0, gt=0, description="Connectivity probe timeout in seconds")

    # Network diagnostics endpoint
    DIAGNOSE_HEAD_TIMEOUT: float = Field(default=10.0, gt=0, description="HEAD probe timeout in seconds")
    DIAGNOSE_GET_TIMEOUT: float = Field(default=15.0, gt=0, description="GET probe timeout in seconds")
    DIAGNOSE_BASE_TIMEOUT: float = Field(default=5.0, gt=0, description="Base host probe timeout in seconds")
    DIAGNOSTIC_USER_AGENT: str = Field(default="HTTP-Relay-Diagnostic/1.0", description="User-Agent for diagnostic probes")

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format"""
        valid_formats = ['json', 'text']
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}")
        return v.lower()

    @field_validator('PROXY_API_KEY')
    @classmethod
    def normalize_api_key(cls, v):
        """Treat a blank secret as unset so the relay falls back to open mode"""
        if v is None or not v.strip():
            return None
        return v

    @property
    def auth_enabled(self) -> bool:
        """Whether callers must present the gateway secret."""
        return self.PROXY_API_KEY is not None

    @property
    def allowed_hosts(self) -> list[str]:
        """Get allowed hosts for TrustedHostMiddleware."""
        return self.ALLOWED_HOSTS


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings (for dependency injection)"""
    return settings
