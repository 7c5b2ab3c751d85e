"""
Application Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
Verified: 2025-11-14
"""

import json
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field has a default so the core can run in demo mode
    (in-memory data store, local denial intelligence, mock clearinghouse)
    without any environment configured.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # ============================================================================
    # Application Settings
    # ============================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment: development, staging, production, testing"
    )
    DEBUG: bool = Field(default=False, description="Debug mode (NEVER enable in production)")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FILE: str | None = Field(default=None, description="Optional rotating log file path")
    TZ: str = Field(default="UTC", description="Timezone")

    # ============================================================================
    # Data Store Configuration
    # ============================================================================
    DATA_BACKEND: Literal["memory", "postgres"] = Field(
        default="memory", description="Row store backend: memory (demo/tests) or postgres"
    )

    POSTGRES_HOST: str = Field(default="db", description="PostgreSQL host")
    POSTGRES_PORT: int = Field(default=5432, description="PostgreSQL port")
    POSTGRES_DB: str = Field(default="billing_db", description="Database name")
    POSTGRES_USER: str = Field(default="billing_user", description="Database user")
    POSTGRES_PASSWORD: str = Field(default="", description="Database password")

    DATABASE_URL: str | None = Field(default=None, description="Full database URL")

    DB_POOL_SIZE: int = Field(default=20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Connection timeout (seconds)")

    @property
    def database_url(self) -> str:
        """Construct DATABASE_URL if not explicitly provided"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ============================================================================
    # External Capabilities
    # ============================================================================
    DENIAL_INTELLIGENCE_PROVIDER: Literal["local", "remote"] = Field(
        default="local", description="Denial triage/assessment/letter provider"
    )
    DENIAL_INTELLIGENCE_URL: str = Field(
        default="http://localhost:54321/functions/v1",
        description="Base URL of the hosted denial intelligence functions",
    )
    DENIAL_INTELLIGENCE_API_KEY: str = Field(default="", description="Bearer key for remote functions")

    CLEARINGHOUSE_PROVIDER: Literal["mock", "remote"] = Field(
        default="mock", description="Clearinghouse used for 276/837/835 exchanges"
    )
    CLEARINGHOUSE_URL: str = Field(
        default="https://api.edi-service.com", description="Clearinghouse base URL"
    )
    CLEARINGHOUSE_API_KEY: str = Field(default="", description="Clearinghouse API key")

    GATEWAY_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Upper bound for a single external call", gt=0
    )

    # ============================================================================
    # Denial Triage
    # ============================================================================
    DENIAL_FETCH_LIMIT: int = Field(default=200, description="Most recent denials loaded", gt=0)
    TRIAGE_BATCH_LIMIT: int = Field(default=80, description="Denials sent per triage call", gt=0)

    # ============================================================================
    # X12 Envelope
    # ============================================================================
    X12_SENDER_ID: str = Field(default="SENDER", description="ISA06/GS02 sender id")
    X12_RECEIVER_ID: str = Field(default="RECEIVER", description="ISA08/GS03 receiver id")
    X12_SUBMITTER_NAME: str = Field(default="BILLWISE AI NEXUS", description="NM1*41 submitter name")
    X12_USAGE_INDICATOR: Literal["P", "T"] = Field(default="P", description="ISA15 usage indicator")

    # ============================================================================
    # FastAPI Configuration
    # ============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="API host")  # nosec B104
    API_PORT: int = Field(default=8000, description="API port")

    # CORS Configuration
    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="CORS allowed origins",
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow credentials")
    CORS_METHODS: list[str] = Field(default=["*"], description="Allowed methods")
    CORS_HEADERS: list[str] = Field(default=["*"], description="Allowed headers")

    @staticmethod
    def _parse_list_field(value: Any) -> Any:
        """Allow JSON arrays or comma-separated strings for list settings."""
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith("[") and stripped.endswith("]"):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    # Fall back to CSV parsing below when JSON parse fails
                    pass
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @field_validator("CORS_ORIGINS", "CORS_METHODS", "CORS_HEADERS", mode="before")
    @classmethod
    def parse_cors_fields(cls, v: Any) -> Any:
        """Normalize CORS list fields from env strings."""
        return cls._parse_list_field(v)

    @field_validator("DENIAL_INTELLIGENCE_URL", "CLEARINGHOUSE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ============================================================================
    # Helper Properties
    # ============================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.ENVIRONMENT.lower() == "testing"

    @property
    def uses_database(self) -> bool:
        return self.DATA_BACKEND == "postgres"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()


settings = get_settings()
