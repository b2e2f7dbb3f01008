"""Integration test configuration.

Provides a per-test tree key and engine teardown for database tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest_asyncio

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest_asyncio.fixture
async def tree_key(db_schema_guard: None) -> AsyncIterator[str]:  # noqa: ARG001
    """A tree key unique to this test.

    Nodes of every tree whose key starts with it are removed afterwards.

    The engine is disposed at the end so the next test's event loop
    creates its own connections.
    """
    from sqlalchemy import delete
    from sqlmodel import col

    from arborist.db import Node, close_db, get_session

    key = f"test-{uuid4().hex}"
    yield key

    async with get_session() as session:
        stmt = delete(Node).where(col(Node.tree_key).startswith(key))
        await session.execute(stmt)
    await close_db()
