"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class StoreConfig(BaseModel):
    """Where notes stores live and how their entries are summarised."""

    notes_dir: Path = Path("~/.marginalia")
    file_name: str = "marginalia.org"
    # "shared": every source writes to <notes_dir>/<file_name>.
    # "per_source": <source>-notes.org next to each file-backed source.
    policy: Literal["shared", "per_source"] = "shared"
    excerpt_limit: int = 200
    empty_body_marker: str = "<no annotation>"

    @field_validator("excerpt_limit")
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value <= 0:
            msg = "STORE__EXCERPT_LIMIT must be positive"
            raise ValueError(msg)
        return value


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Settings with automatic .env loading and type validation.

    Environment variables use the ``MARGINALIA_`` prefix and a
    double-underscore delimiter for nesting:
    ``MARGINALIA_STORE__NOTES_DIR``, ``MARGINALIA_APP__LOG_DIR``, etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="MARGINALIA_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    store: StoreConfig = StoreConfig()
    app: AppConfig = AppConfig()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()
    logger.debug("Settings loaded: notes_dir=%s", settings.store.notes_dir)
    return settings
