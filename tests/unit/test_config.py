"""Tests for pydantic-settings configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from arborist.config import Settings, TreeConfig, get_settings

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """Remove nested settings variables inherited from the shell."""
    for key in list(os.environ):
        if key.startswith(("TREE__", "DATABASE__", "APP__", "DEV__")):
            monkeypatch.delenv(key, raising=False)
    yield monkeypatch


class TestTreeConfig:
    """TreeConfig sub-model tests."""

    def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        """Defaults give depth 10, auto-save and thirds."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.tree.max_depth == 10
        assert s.tree.auto_save is True
        assert s.tree.root_parent_value is None
        assert s.tree.client_root_marker == "-1"
        assert s.tree.hitbox_before == pytest.approx(1 / 3)

    def test_override_via_settings(self, clean_env: pytest.MonkeyPatch) -> None:
        """TREE__* env vars override the defaults."""
        clean_env.setenv("TREE__MAX_DEPTH", "4")
        clean_env.setenv("TREE__AUTO_SAVE", "false")
        clean_env.setenv("TREE__ROOT_PARENT_VALUE", "0")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.tree.max_depth == 4
        assert s.tree.auto_save is False
        assert s.tree.root_parent_value == 0

    def test_hitbox_must_fit(self) -> None:
        """Reorder zones cannot overlap."""
        with pytest.raises(ValidationError, match="must not exceed 1"):
            TreeConfig(hitbox_before=0.6, hitbox_after=0.5)

    def test_halves_allowed(self) -> None:
        """Exactly filling the box disables combine but is valid."""
        cfg = TreeConfig(hitbox_before=0.5, hitbox_after=0.5)
        assert cfg.hitbox_before + cfg.hitbox_after == 1

    def test_max_depth_positive(self) -> None:
        """A zero depth bound is rejected."""
        with pytest.raises(ValidationError):
            TreeConfig(max_depth=0)


class TestDatabaseConfig:
    """DatabaseConfig sub-model tests."""

    def test_url_from_env(self, clean_env: pytest.MonkeyPatch) -> None:
        """DATABASE__URL is read through the nested delimiter."""
        clean_env.setenv("DATABASE__URL", "postgresql+asyncpg://u:p@h/db")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.database.url == "postgresql+asyncpg://u:p@h/db"

    def test_pool_settings(self, clean_env: pytest.MonkeyPatch) -> None:
        """Pool sizing is configurable and validated."""
        clean_env.setenv("DATABASE__POOL_SIZE", "2")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert (s.database.pool_size, s.database.max_overflow) == (2, 10)
        clean_env.setenv("DATABASE__POOL_SIZE", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_get_settings_is_cached(self) -> None:
        """get_settings returns the same instance until cleared."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
