"""Centralised application configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/arborist/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str | None = None
    echo: bool = False
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    connect_timeout: float = Field(default=10, gt=0)


class TreeConfig(BaseModel):
    """Tree engine behaviour.

    ``root_parent_value`` is how the store spells "no parent"; the browser
    always uses ``client_root_marker`` and the move processor translates.
    """

    max_depth: int | None = Field(default=10, ge=1)
    auto_save: bool = True
    root_parent_value: int | str | None = None
    client_root_marker: str = "-1"
    parent_column: str = "parent_id"
    order_column: str = "order"
    default_expanded: bool = True
    settle_delay: float = Field(default=0.05, ge=0)
    hitbox_before: float = Field(default=1 / 3, ge=0, le=1)
    hitbox_after: float = Field(default=1 / 3, ge=0, le=1)

    @model_validator(mode="after")
    def hitbox_fits(self) -> TreeConfig:
        if self.hitbox_before + self.hitbox_after > 1:
            msg = "TREE__HITBOX_BEFORE + TREE__HITBOX_AFTER must not exceed 1"
            raise ValueError(msg)
        return self


class AppConfig(BaseModel):
    """Application runtime configuration."""

    port: int = 8080
    storage_secret: SecretStr = SecretStr("dev-secret-change-me")
    title: str = "Arborist"
    log_dir: Path = Path("logs")


class DevConfig(BaseModel):
    """Development and testing toggles."""

    test_database_url: str | None = None
    reload: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``DATABASE__URL``, ``TREE__MAX_DEPTH``, ``APP__PORT``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseConfig = DatabaseConfig()
    tree: TreeConfig = TreeConfig()
    app: AppConfig = AppConfig()
    dev: DevConfig = DevConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
