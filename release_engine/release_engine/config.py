"""Release query configuration loaded from environment variables."""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from release_engine.timeparse import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_ACCOUNT_URL = "https://aroreleases.blob.core.windows.net/"
DEFAULT_STORAGE_CONTAINER = "releases"
DEFAULT_SERVICE_GROUP_BASE = "Microsoft.Azure.ARO.HCP"
DEFAULT_SEARCH_STEP = timedelta(days=7)
DEFAULT_SEARCH_MAX_LOOKBACK = 12 * DEFAULT_SEARCH_STEP


class Environment(str, Enum):
    PROD = "prod"
    STG = "stg"
    INT = "int"


class Settings(BaseSettings):
    """Defaults for release queries, loaded from environment variables with RELQUERY_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="RELQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    storage_account_url: str = DEFAULT_STORAGE_ACCOUNT_URL
    storage_container: str = DEFAULT_STORAGE_CONTAINER

    # Query defaults
    environment: Environment = Environment.PROD
    service_group_base: str = DEFAULT_SERVICE_GROUP_BASE
    default_since: str = "7d"
    limit: int = Field(default=0, ge=0)

    # Backward search
    search_step: timedelta = DEFAULT_SEARCH_STEP
    search_max_lookback: timedelta = DEFAULT_SEARCH_MAX_LOOKBACK

    # Logging
    log_level: str = "WARNING"
    structured_logging: bool = False

    @field_validator("search_step", "search_max_lookback", mode="before")
    @classmethod
    def parse_duration_strings(cls, v: Any) -> Any:
        """Accept ``1w``/``3d``/``48h`` style durations as well as seconds."""
        if isinstance(v, str):
            text = v.strip()
            if text.isdigit():
                return timedelta(seconds=int(text))
            return parse_duration(text)
        return v


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]
    logger.debug("Loaded settings for environment: %s", settings.environment.value)
    return settings
