"""
Application configuration with environment-specific env files.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Settings are read once at import time and treated as immutable for the
lifetime of the process.
"""
import os
import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_DATABASE_URL = "sqlite:///./sports_tracker.db"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    # Application
    APP_NAME: str = "Sports Tracker API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 4000

    # Database
    DATABASE_URL: str = DEFAULT_DATABASE_URL

    # Polling
    POLL_INTERVAL_MS: int = Field(5000, gt=0)
    SYNC_ON_STARTUP: bool = True
    SCHEDULER_ENABLED: bool = True

    # Upstream feeds
    SOCCER_API_URL: str = "http://localhost:3001"
    TENNIS_API_URL: str = "http://localhost:3002"
    HOCKEY_API_URL: str = "http://localhost:3003"
    FEED_TIMEOUT_SECONDS: float = Field(5.0, gt=0)
    FEED_RETRY_ATTEMPTS: int = Field(2, ge=1)

    # Event log
    APPEND_MAX_RETRIES: int = Field(3, ge=1)

    # Circuit breakers (per feed)
    CIRCUIT_FAIL_MAX: int = 5
    CIRCUIT_RESET_TIMEOUT: int = 30

    # Rate limiting (in-memory, per client IP)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if self.is_production() and "*" in origins:
                logger.warning("Wildcard CORS origins (*) are not allowed in production")
                return [o for o in origins if o != "*"]
            return origins

        if self.is_production():
            logger.warning("CORS_ORIGINS_STR not set in production, CORS disabled")
            return []

        return [
            "http://localhost:3000",
            "http://localhost:4000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:4000",
        ]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required settings are present for the current environment.

        Returns:
            List of missing setting names (empty if all present)
        """
        missing = []

        # A local SQLite file is fine for development, never for production
        if self.is_production() and self.DATABASE_URL == DEFAULT_DATABASE_URL:
            missing.append("DATABASE_URL")

        return missing


def _load_env_file() -> Path:
    """
    Pick the environment file based on the ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT}
    2. .env
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required settings for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing settings: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
