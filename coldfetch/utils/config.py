"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from coldfetch.utils.config import settings

    interval = settings.POLLING_INTERVAL_MINUTES
    region = settings.AWS_REGION
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # AWS Configuration
    AWS_REGION: str = Field(default="us-east-1")
    AWS_ENDPOINT_URL: Optional[str] = Field(default=None)
    AWS_PROFILE: Optional[str] = Field(default=None)
    GLACIER_ACCOUNT_ID: str = Field(default="-")

    # Completion Polling Configuration
    POLLING_INTERVAL_MINUTES: float = Field(default=1.0, gt=0)
    FETCH_MAX_RETRIES: int = Field(default=5, ge=0)
    FETCH_RETRY_COOLDOWN_SECONDS: float = Field(default=60.0, ge=0)
    STRICT_JOB_MATCH: bool = Field(default=True)

    # Notification Channel Configuration
    CHANNEL_NAME_PREFIX: str = Field(default="GlacierDownload-")

    # Retrieval Configuration
    RETRIEVAL_TIER: Optional[Literal["Expedited", "Standard", "Bulk"]] = Field(default=None)
    DOWNLOAD_CHUNK_SIZE: int = Field(default=1024 * 1024, gt=0)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    ENVIRONMENT: str = Field(default="production")
    APP_NAME: str = Field(default="coldfetch")
    APP_VERSION: str = Field(default="0.1.0")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
