"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "default"

# Audit-tag vocabulary. The trailing whitespace class is stripped from the
# end offset of every match (see indexer.DocumentIndexer).
DEFAULT_WORDS: dict[str, list[str]] = {
    "red": [r"@audit\-issue[ \t\n]"],
    "green": [r"@audit\-ok[ \t\n]"],
    "blue": [r"@audit\-info[ \t\n]"],
    "purple": [r"@todo[ \t\n]", r"@audit[ \t\n]"],
}


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class StyleConfig(BaseModel):
    """Visual style attached to a category."""

    gutter_icon_path: str = ""
    overview_ruler_color: str | None = None
    background_color: str | None = None

    @property
    def is_whole_line(self) -> bool:
        """Background-coloured styles decorate the whole line."""
        return bool(self.background_color)


def _default_styles() -> dict[str, StyleConfig]:
    styles = {
        name: StyleConfig(
            gutter_icon_path=f"images/bookmark-{name}.svg",
            overview_ruler_color=name,
        )
        for name in DEFAULT_WORDS
    }
    styles[DEFAULT_STYLE] = StyleConfig(gutter_icon_path="images/bookmark.svg")
    return styles


class BookmarksConfig(BaseModel):
    """Pattern catalog source: category -> patterns and category -> style."""

    words: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_WORDS.items()}
    )
    styles: dict[str, StyleConfig] = Field(default_factory=_default_styles)
    ignore_prefixes: list[str] = Field(
        default_factory=lambda: ["extension-output-"]
    )


class StorageConfig(BaseModel):
    """Durable key-value slot configuration.

    ``state_file=None`` means no storage scope is active and persistence
    becomes a no-op.
    """

    state_file: Path | None = Path(".linemarks/state.json")
    state_key: str = "bookmarks.object"
    save_debounce_seconds: float = 0.0

    @field_validator("save_debounce_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            msg = "LINEMARKS_STORAGE__SAVE_DEBOUNCE_SECONDS must be >= 0"
            raise ValueError(msg)
        return value


class ScanConfig(BaseModel):
    """Document scanning knobs."""

    yield_every: int = 200

    @field_validator("yield_every")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            msg = "LINEMARKS_SCAN__YIELD_EVERY must be > 0"
            raise ValueError(msg)
        return value


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")
    log_level: str = "WARNING"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``LINEMARKS_BOOKMARKS__WORDS``, ``LINEMARKS_STORAGE__STATE_FILE``,
    ``LINEMARKS_SCAN__YIELD_EVERY``, etc. Dict and list values are JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="LINEMARKS_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    bookmarks: BookmarksConfig = BookmarksConfig()
    storage: StorageConfig = StorageConfig()
    scan: ScanConfig = ScanConfig()
    app: AppConfig = AppConfig()

    @model_validator(mode="after")
    def _ensure_default_style(self) -> Settings:
        """Categories without a style of their own fall back to ``default``."""
        if DEFAULT_STYLE not in self.bookmarks.styles:
            self.bookmarks.styles[DEFAULT_STYLE] = StyleConfig()
        return self


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` to pick up configuration changes.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
