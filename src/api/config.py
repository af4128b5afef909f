"""
Application Configuration
Environment-based settings for the nursing record API
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/

Billing engine knobs live in src.core.config (BILLING_ prefix).
"""

import json
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    API, database and logging settings.

    Values come from the environment or a .env file; names are case-insensitive.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # Application
    # ============================================================================
    APP_NAME: str = Field(default="Home Nursing Records API", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FILE: str | None = Field(default=None, description="Rotated log file path")
    LOG_JSON: bool | None = Field(
        default=None, description="JSON log lines; defaults to on in production"
    )

    # ============================================================================
    # Database
    # ============================================================================
    POSTGRES_HOST: str = Field(default="db", description="PostgreSQL host")
    POSTGRES_PORT: int = Field(default=5432, description="PostgreSQL port")
    POSTGRES_DB: str = Field(default="nursing_db", description="Database name")
    POSTGRES_USER: str = Field(default="nursing_user", description="Database user")
    POSTGRES_PASSWORD: str = Field(default="", description="Database password")

    DATABASE_URL: str | None = Field(
        default=None, description="Full SQLAlchemy async URL; overrides POSTGRES_*"
    )

    DB_POOL_SIZE: int = Field(default=10, ge=1, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=5, ge=0, description="Connections beyond the pool")
    DB_POOL_TIMEOUT: int = Field(default=30, ge=1, description="Pool checkout timeout (seconds)")
    DB_ECHO: bool = Field(default=False, description="Log every SQL statement")

    @property
    def database_url(self) -> str:
        """DATABASE_URL, or an asyncpg URL built from the POSTGRES_* parts."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ============================================================================
    # HTTP
    # ============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="Bind address")  # nosec B104
    API_PORT: int = Field(default=8000, description="Bind port")
    API_RELOAD: bool = Field(default=False, description="Reload on code changes")

    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Origins of the record entry front end",
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow credentials")
    CORS_METHODS: list[str] = Field(default=["GET", "POST", "PUT"], description="Allowed methods")
    CORS_HEADERS: list[str] = Field(default=["*"], description="Allowed headers")

    # Facility (tenant) resolution; set by the gateway in front of this service
    TENANT_HEADER: str = Field(
        default="X-Facility-ID", description="Header carrying the facility id"
    )

    @field_validator("CORS_ORIGINS", "CORS_METHODS", "CORS_HEADERS", mode="before")
    @classmethod
    def parse_list_fields(cls, v: Any) -> Any:
        """Accept a JSON array or a comma-separated string."""
        if not isinstance(v, str):
            return v
        stripped = v.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON list: {stripped}") from e
            return parsed
        return [item.strip() for item in stripped.split(",") if item.strip()]

    # ============================================================================
    # Helper Properties
    # ============================================================================
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_testing(self) -> bool:
        return self.ENVIRONMENT == "testing"

    @property
    def json_logs(self) -> bool:
        """Explicit LOG_JSON, else JSON only in production."""
        if self.LOG_JSON is not None:
            return self.LOG_JSON
        return self.is_production


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
