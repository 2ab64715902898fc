"""Application configuration."""

import base64
from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Key generation command for documentation (split for line length)
KEY_GEN_CMD = (
    'python -c "import secrets,base64;'
    'print(base64.b64encode(secrets.token_bytes(32)).decode())"'
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Access Lifecycle API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    organization_name: str = "Our company"

    # Database (required - no default for security)
    database_url: PostgresDsn = Field(
        description="PostgreSQL connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Security - Encryption of integration connection configs
    encryption_key: str = Field(min_length=32)
    # Legacy keys for decryption during key rotation (comma-separated, oldest to newest)
    encryption_key_legacy: str = ""

    # Connector HTTP settings
    connector_timeout_seconds: float = 30.0
    connector_connect_timeout_seconds: float = 10.0
    # Upper bound for one whole provision/deprovision call against a provider
    connector_call_timeout_seconds: float = 120.0
    connector_max_pages: int = 10
    connector_max_retries: int = 3

    # Google Workspace fallback credentials (used when a connection has none)
    google_workspace_domain: str | None = None
    google_workspace_admin_email: str | None = None
    google_service_account_key: str | None = None

    # Offboarding
    offboarding_schedule_interval_minutes: int = 15

    # CORS settings
    cors_origins: str = "http://localhost:3000"  # Comma-separated list

    # Audit settings
    audit_retention_days: int = 365

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for security requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose API documentation and detailed error messages."
            )

        url = str(self.database_url)
        if not url.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL starting with 'postgresql://' or 'postgres://'"
            )

        if self.environment == "production":
            try:
                decoded_key = base64.b64decode(self.encryption_key)
            except ValueError:
                decoded_key = b""
            if len(decoded_key) < 32 and len(self.encryption_key) < 32:
                raise ValueError(
                    "ENCRYPTION_KEY must be at least 32 characters or "
                    f"a base64-encoded 32-byte key. Generate with: {KEY_GEN_CMD}"
                )

        if self.connector_max_pages < 1:
            raise ValueError("CONNECTOR_MAX_PAGES must be at least 1")

        return self

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy with asyncpg.

        Converts sslmode parameter to ssl for asyncpg compatibility.
        """
        url = str(self.database_url)
        url = url.replace("postgresql://", "postgresql+asyncpg://")
        url = url.replace("sslmode=", "ssl=")
        return url

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
