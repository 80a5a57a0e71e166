"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from deckstudy.config import settings

    ttl = settings.PARAMETER_CACHE_TTL_SECONDS
    window = settings.REVIEW_COUNT_WINDOW_HOURS
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Deck Study"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "deckstudy"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "deckstudy"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    # Compiled per-user schedulers are re-resolved after this many seconds
    PARAMETER_CACHE_TTL_SECONDS: int = 1800

    # Short-term steps used when a user's parameters enable short-term scheduling
    FSRS_LEARNING_STEPS_MINUTES: list[float] = [1.0, 10.0]
    FSRS_RELEARNING_STEPS_MINUTES: list[float] = [10.0]

    # =========================================================================
    # DAILY QUOTAS
    # =========================================================================

    # Trailing window over which submitted reviews count against the quota
    REVIEW_COUNT_WINDOW_HOURS: int = 24

    # Used only when a user has no learning limits stored
    DEFAULT_NEW_CARDS_PER_DAY: int = 5
    DEFAULT_MAX_REVIEWS_PER_DAY: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
