"""Shared pytest fixtures for Arborist tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from dotenv import load_dotenv

from arborist.config import get_settings
from arborist.db import run_alembic_upgrade

if TYPE_CHECKING:
    from collections.abc import Generator

load_dotenv()


@pytest.fixture(scope="session")
def db_schema_guard() -> Generator[None]:
    """Set up database schema once at session start.

    This fixture:
    1. Sets DATABASE__URL from TEST_DATABASE_URL for test isolation
    2. Runs Alembic migrations to ensure schema exists

    The database engine is initialized lazily on first use within each
    test's event loop context. Tests use a fresh tree key each so they
    don't interfere with each other.

    Note: Not autouse - only tests that need the DB should depend on this.
    """
    test_url = os.environ.get("TEST_DATABASE_URL")
    if not test_url:
        pytest.fail(
            "TEST_DATABASE_URL environment variable is required for tests. "
            "Set it to point to a test database (not production!)."
        )
        return

    os.environ["DATABASE__URL"] = test_url
    get_settings.cache_clear()

    try:
        run_alembic_upgrade()
    except RuntimeError as e:
        pytest.fail(str(e))

    yield
