"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ASYNC_DATABASE_SCHEMES = ("postgresql+asyncpg://", "sqlite+aiosqlite://")
GOOGLE_SECURE_TOKEN_JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async connection string (postgresql+asyncpg:// in production, sqlite+aiosqlite:// in tests)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(ASYNC_DATABASE_SCHEMES):
            msg = f"database_url must use an async driver: {', '.join(ASYNC_DATABASE_SCHEMES)}"
            raise ValueError(msg)
        return v

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Identity provider
    identity_project_id: str | None = Field(
        default=None,
        description="Identity provider project id (token audience)",
    )
    identity_jwks_url: str = Field(
        default=GOOGLE_SECURE_TOKEN_JWKS_URL,
        description="URL of the JSON Web Key Set used to verify identity tokens",
    )
    identity_issuer_prefix: str = Field(
        default="https://securetoken.google.com/",
        description="Expected token issuer, followed by the project id",
    )
    identity_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for fetching signing keys from the identity provider",
        gt=0,
    )
    identity_jwks_cache_seconds: int = Field(
        default=3600,
        description="How long fetched signing keys are reused",
        ge=0,
    )
    identity_shared_secret: str | None = Field(
        default=None,
        min_length=32,
        description="HS256 secret for development and test tokens (minimum 32 characters)",
    )
    identity_require_verified_email: bool = Field(
        default=False,
        description="Reject identity tokens whose email is not verified",
    )

    @field_validator("identity_jwks_url")
    @classmethod
    def validate_identity_jwks_url(cls, v: str) -> str:
        if not v.startswith("https://"):
            msg = "identity_jwks_url must use HTTPS"
            raise ValueError(msg)
        return v

    @property
    def identity_enabled(self) -> bool:
        """Whether any token verification mode is configured."""
        return bool(self.identity_shared_secret or self.identity_project_id)

    # Anti-fraud
    antifraud_max_attempts: int = Field(
        default=5,
        description="Failed attempts allowed per identity within the window",
        gt=0,
    )
    antifraud_window_minutes: int = Field(
        default=15,
        description="Rolling window for failed attempts in minutes",
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables the application and security log files)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit stderr logs as JSON lines",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins (e.g. https://.*\\.votopopular\\.com\\.br)",
    )

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    rate_limit_per_minute: int = Field(
        default=200,
        description="Maximum API requests per minute per IP address",
        gt=0,
    )
    mutation_rate_limit_per_minute: int = Field(
        default=60,
        description="Maximum POST operations per minute per IP address",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        return _split_csv(self.trusted_proxy_headers)

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
