"""
@file: config.py
@description:
This module provides centralized configuration management for the ChunkVault backend.
It loads environment variables and provides typed access to configuration settings
used throughout the application.

The configuration includes settings for:
- Application general settings (debug mode, environment)
- Database connection and I/O timeout bound
- Chunked storage (chunk size, pending-upload grace period)
- Celery and Redis for the reconciliation schedule
- Logging parameters

@dependencies:
- pydantic: For settings validation
- pydantic_settings: For environment variable loading
- dotenv: Used by pydantic_settings to read the .env file

@notes:
- The chunk size is fixed per store; changing it only affects new uploads,
  since every finalized blob records the chunk size it was written with
- Default values are provided for everything so the service starts on SQLite
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Provides typed access to all configuration parameters used in the application.
    """
    # Application Settings
    APP_ENV: str = Field(default="development")
    DEBUG: bool = Field(default=True)
    CORS_ORIGINS: List[str] = Field(default_factory=list)

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./chunkvault.db")
    IO_TIMEOUT_SECONDS: float = Field(default=30.0)
    SQL_ECHO: bool = Field(default=False)

    # Chunked storage
    CHUNK_SIZE: int = Field(default=256 * 1024)
    DEFAULT_CONTENT_TYPE: str = Field(default="application/octet-stream")
    PENDING_GRACE_MINUTES: int = Field(default=60)
    RECONCILE_INTERVAL_MINUTES: int = Field(default=30)

    # Redis and Celery
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    CELERY_BROKER_URL: Optional[str] = Field(default=None, validate_default=True)
    CELERY_RESULT_BACKEND: Optional[str] = Field(default=None, validate_default=True)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CHUNK_SIZE")
    def check_chunk_size(cls, v: int) -> int:
        """
        Reject chunk sizes that cannot hold a single byte.
        """
        if v <= 0:
            raise ValueError("CHUNK_SIZE must be a positive number of bytes")
        return v

    @field_validator("IO_TIMEOUT_SECONDS")
    def check_io_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("IO_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("CELERY_BROKER_URL", mode="before")
    def set_celery_broker_url(cls, v: Optional[str], values: Dict[str, Any]) -> str:
        """
        Set the Celery broker URL to the Redis URL if not explicitly specified.
        """
        if v is not None:
            return v
        return values.data.get("REDIS_URL", "redis://localhost:6379/0")

    @field_validator("CELERY_RESULT_BACKEND", mode="before")
    def set_celery_result_backend(cls, v: Optional[str], values: Dict[str, Any]) -> str:
        """
        Set the Celery result backend to the Redis URL if not explicitly specified.
        """
        if v is not None:
            return v
        return values.data.get("REDIS_URL", "redis://localhost:6379/0")

    @property
    def PENDING_GRACE_DELTA(self) -> timedelta:
        """
        Age after which a PENDING upload is considered abandoned.
        """
        return timedelta(minutes=self.PENDING_GRACE_MINUTES)


# Create a global settings object
settings = Settings()


def get_settings() -> Settings:
    """
    Function to get the settings object for dependency injection in FastAPI.
    """
    return settings
