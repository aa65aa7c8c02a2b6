"""
Application configuration settings.

Central configuration module using Pydantic BaseSettings with environment variable support.
Loads from .env file and environment variables.
"""
import json
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists (python-dotenv)
env_path = Path(".env")
if env_path.exists():
    load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App settings
    APP_NAME: str = "CardGate"
    APP_ENV: str = Field(default="local")
    DEBUG: bool = Field(default=False)

    # Database settings - generic connection string (highest priority)
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Database connection URL (full URL, e.g. postgresql+psycopg2://...)",
    )

    # Hosted Postgres raw vars (PG*)
    PGUSER: Optional[str] = None
    PGPASSWORD: Optional[str] = None
    PGHOST: Optional[str] = None
    PGPORT: Optional[str] = None
    PGDATABASE: Optional[str] = None

    # Local docker-compose Postgres settings (fallback for local dev)
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "cardgate"

    @property
    def sqlalchemy_database_uri(self) -> str:
        """
        Build SQLAlchemy database URI with priority:
        1. DATABASE_URL (full URL)
        2. PG* vars (hosted Postgres env vars)
        3. Local docker-compose Postgres (POSTGRES_*)
        4. SQLite (local development without Docker)
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            # Hosting providers hand out postgres:// which SQLAlchemy no longer accepts
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+psycopg2://", 1)
            return url

        if self.PGUSER and self.PGHOST and self.PGDATABASE:
            password = quote_plus(self.PGPASSWORD or "")
            port = self.PGPORT or "5432"
            return f"postgresql+psycopg2://{self.PGUSER}:{password}@{self.PGHOST}:{port}/{self.PGDATABASE}"

        # Only use if POSTGRES_HOST env var is explicitly set AND credentials are present
        if os.getenv("POSTGRES_HOST") and self.POSTGRES_USER and self.POSTGRES_PASSWORD:
            password = quote_plus(self.POSTGRES_PASSWORD)
            return (
                f"postgresql+psycopg2://"
                f"{self.POSTGRES_USER}:{password}@"
                f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        return "sqlite:///./cardgate.db"

    # CORS settings
    CORS_ORIGINS: Union[str, List[str]] = Field(
        default='["http://localhost:3000", "http://localhost:5173"]',
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not JSON, treat as comma-separated
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Admin authentication
    ADMIN_PASSWORD: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-Admin-Password header. Leave empty to disable admin authentication.",
    )

    # Access key defaults
    DEFAULT_MAX_USES: int = Field(default=100, description="Quota applied when a key is created without a valid max_uses")
    DEFAULT_DAYS_VALID: int = Field(default=30, description="Validity window applied when a key is created without a valid day count")
    MAX_DAYS_VALID: int = Field(default=36500, description="Largest validity window accepted on create; longer requests fall back to DEFAULT_DAYS_VALID")
    USAGE_LOG_LIMIT: int = Field(default=50, description="Number of recent usage log rows returned per key")
    ACCESS_KEY_PREFIX: str = "sk-"

    # Rejection messages
    EXPOSE_REJECTION_REASONS: bool = Field(
        default=True,
        description="Tell end users whether their key is invalid, expired or exhausted. When false a generic message is returned.",
    )
    SUPPORT_CONTACT: Optional[str] = Field(
        default=None,
        description="Contact appended to access-denied messages (e.g. an email address)",
    )

    # Card generation (OpenAI) - Optional
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenAI API key used to generate card content",
    )
    OPENAI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use for card generation",
    )

    def is_openai_available(self) -> bool:
        """Check if OpenAI API key is configured and not empty."""
        return (
            self.OPENAI_API_KEY is not None
            and isinstance(self.OPENAI_API_KEY, str)
            and self.OPENAI_API_KEY.strip() != ""
        )

    def is_admin_auth_enabled(self) -> bool:
        """Check if an admin password is configured."""
        return bool(self.ADMIN_PASSWORD and self.ADMIN_PASSWORD.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
