"""Engine configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mangamatch.core.matching.config import DEFAULT_SIMILARITY_CONFIG, SimilarityConfig

logger = structlog.get_logger("mangamatch.config")


def _default_data_dir() -> Path:
    return (Path.cwd() / "data").resolve()


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:  # noqa: ANN001
    """Load settings from settings.json file.

    This source has lowest priority - env vars will override JSON values.
    The file lives in ``<data_dir>/config/``, where the data directory comes
    from ``MANGAMATCH_DATA_DIR`` or defaults to ``./data``.

    Args:
        settings: The Settings class (not instance) being constructed.

    Returns:
        Dictionary with setting keys (lowercase) and values from JSON file.
        The ``matching`` section belongs to MatchingConfig and is skipped.
    """
    data_dir_env = os.environ.get("MANGAMATCH_DATA_DIR", "")
    data_dir = Path(data_dir_env) if data_dir_env else _default_data_dir()
    settings_file = data_dir / "config" / "settings.json"

    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read settings file", path=str(settings_file), error=str(e))
        return {}

    if not isinstance(data, dict):
        return {}

    return {k.lower(): v for k, v in data.items() if k.lower() != "matching"}


class Settings(BaseSettings):
    """Engine settings.

    Settings are loaded from:
    1. JSON file (settings.json in config directory) - lowest priority
    2. .env file
    3. Environment variables - highest priority (override JSON/.env)

    All settings are prefixed with MANGAMATCH_ (e.g., MANGAMATCH_CACHE_TTL_HOURS=12).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MANGAMATCH_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources - init values and env vars over the JSON file.

        Sources listed first win. Priority (highest to lowest):
        1. Init settings (values passed to Settings())
        2. Environment variables
        3. .env file
        4. JSON file (settings.json)
        """
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    env: Literal["development", "production", "testing"] = Field(
        default="production",
        description="Engine environment (development, production, testing)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Base directory for engine data (config, cache blobs, logs)",
    )

    # Candidate cache
    cache_ttl_hours: float = Field(
        default=24,
        gt=0,
        description="Hours a cached candidate list stays valid for reads",
    )

    cache_key_length: int = Field(
        default=30,
        ge=1,
        description="Maximum length of a candidate cache key",
    )

    # Similarity
    memo_max_size: int = Field(
        default=5000,
        ge=1,
        description="Entries per similarity memo before least-recently-used eviction",
    )

    enable_extended_matching: bool = Field(
        default=True,
        description="Run the meaningful-word overlap and initialism stages",
    )

    similarity_weights: dict[str, float] = Field(
        default_factory=dict,
        description="Overrides of SimilarityConfig weights by field name",
    )

    length_difference_threshold: float = Field(
        default=DEFAULT_SIMILARITY_CONFIG.length_difference_threshold,
        ge=0,
        le=1,
        description="Normalized length ratio below which the length penalty applies",
    )

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files (settings.json)."""
        return self.data_dir / "config"

    @property
    def cache_dir(self) -> Path:
        """Directory for persisted cache blobs."""
        return self.data_dir / "cache"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files (if file logging is enabled)."""
        return self.data_dir / "logs"

    @property
    def settings_file(self) -> Path:
        return self.config_dir / "settings.json"

    @property
    def is_debug(self) -> bool:
        """Check if running in debug/development mode."""
        return self.env == "development"

    def similarity_config(self) -> SimilarityConfig:
        """Build the similarity weights from the defaults and configured overrides.

        Raises:
            ValueError: If an override names an unknown field
        """
        overrides: dict[str, Any] = {"length_difference_threshold": self.length_difference_threshold}
        overrides.update(self.similarity_weights)
        return DEFAULT_SIMILARITY_CONFIG.with_overrides(**overrides)

    def model_post_init(self, __context: object) -> None:
        """Post-initialization: resolve the data directory.

        Directories are created lazily by the stores and log handlers that
        write into them.
        """
        self.data_dir = self.data_dir.resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    Creates and caches the settings instance on first call.
    Subsequent calls return the cached instance.

    Returns:
        Settings instance
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (JSON, .env, env vars).

    Clears the cache and creates a new Settings instance.

    Returns:
        New Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
