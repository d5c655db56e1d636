"""
Centralized settings for transit-spine.

Manifesto:
    One validated, cached settings object. Every command and manager reads
    ``get_settings()`` instead of parsing environment variables itself.

All fields can be set via ``TRANSIT_SPINE_*`` environment variables (e.g.
``TRANSIT_SPINE_MAX_CONCURRENCY=4``) or a ``.env`` file in the working
directory.

Tags:
    transit-spine, configuration, settings, pydantic, caching, validation
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_LOG_FORMATS = {"json", "console"}


class TransitSpineSettings(BaseSettings):
    """transit-spine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSIT_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str = Field(default="data/transit_spine.db")

    # ── Execution ────────────────────────────────────────────────
    max_concurrency: int = Field(default=10, ge=1, description="Partitions diffed/published at once")

    # ── Publishing ───────────────────────────────────────────────
    deleted_topic_prefix: str = Field(default="DELETED: ")
    topic_endpoint: str | None = Field(default=None, description="Base URL of the topic webhook")

    # ── Logging ──────────────────────────────────────────────────
    service_name: str = Field(default="transit-spine")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {sorted(_LOG_FORMATS)}")
        return fmt

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, TransitSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> TransitSpineSettings:
    """Load, validate, and cache a :class:`TransitSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = TransitSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
