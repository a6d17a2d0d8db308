import secrets
from typing import Final

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_PORT,
    DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
    MIN_SECRET_KEY_LENGTH,
)

_DEFAULT_JWT_SECRET: Final = "dev-jwt-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./modelvault.db", description="Database connection URL"
    )

    # Application configuration
    app_name: str = Field(default="ModelVault", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Security configuration
    jwt_secret: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="HMAC secret used to sign session tokens",
    )
    password_hash_rounds: int = Field(
        default=12, ge=4, le=31, description="bcrypt cost factor"
    )

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Validate and potentially generate a secure signing secret."""
        if v == _DEFAULT_JWT_SECRET:
            secure_key = secrets.token_urlsafe(64)
            print(
                "⚠️  WARNING: JWT_SECRET is not set. "
                "Generated a signing secret for this process; "
                "sessions will not survive a restart."
            )
            return secure_key

        if len(v) < MIN_SECRET_KEY_LENGTH:
            raise ValueError(
                f"JWT secret must be at least {MIN_SECRET_KEY_LENGTH} characters long"
            )

        return v

    # Asset storage configuration
    nextcloud_url: str | None = Field(
        default=None, description="Base URL of the Nextcloud server"
    )
    nextcloud_admin_user: str | None = Field(
        default=None, description="Nextcloud account that owns the asset tree"
    )
    nextcloud_admin_password: str | None = Field(
        default=None, description="Password or app token for the Nextcloud account"
    )
    nextcloud_timeout_seconds: float = Field(
        default=DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout applied to every WebDAV request",
    )
    local_uploads_dir: str = Field(
        default="uploads",
        description="Directory used for assets when Nextcloud is not configured",
    )

    # Observability
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )
    enable_telemetry: bool = Field(
        default=False, description="Enable OpenTelemetry tracing and metrics"
    )

    # Pydantic Settings configuration
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug

    @computed_field  # type: ignore[prop-decorator]
    @property
    def nextcloud_configured(self) -> bool:
        """True when all Nextcloud credentials are present."""
        return bool(
            self.nextcloud_url
            and self.nextcloud_admin_user
            and self.nextcloud_admin_password
        )


# Global settings instance
settings: Final = Settings()
