"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend API
    api_base_url: str = Field(
        description="Root URL of the ERP REST backend (e.g. https://acme.example.com/api)",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer access token sent with every backend request",
    )
    organization_id: int | None = Field(
        default=None,
        description="Active organization (tenant) ID, sent as X-Organization-ID",
    )
    request_timeout: float = Field(
        default=30.0,
        description="Backend request timeout in seconds",
        gt=0,
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = "api_base_url must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")

    # Export job tracking
    export_poll_interval: float = Field(
        default=2.0,
        description="Seconds between export status polls",
        gt=0,
    )
    export_poll_max_backoff: float = Field(
        default=30.0,
        description="Upper bound in seconds for the poll interval after repeated poll failures",
        gt=0,
    )
    export_max_tracking_seconds: float | None = Field(
        default=1800.0,
        description="Force-fail a tracked export after this many seconds (unset to track indefinitely)",
        gt=0,
    )

    # Export fallback (local generation)
    export_fallback_page_size: int = Field(
        default=500,
        description="Rows requested per page when fetching export data directly",
        gt=0,
    )
    export_fallback_concurrency: int = Field(
        default=5,
        description="Maximum concurrent page requests when fetching export data directly",
        gt=0,
        le=20,
    )
    export_dir: str = Field(
        default="./exports",
        description="Directory where generated and downloaded export files are written",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for the rotating log file and the export job events log (file logging is off when unset)",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
