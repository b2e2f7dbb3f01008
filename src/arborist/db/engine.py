"""Async engine and sessions for the node store.

The engine is built from ``DATABASE__*`` settings on first use, in the
event loop that needs it, and disposed by ``close_db()``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from arborist.config import get_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


@dataclass
class _DatabaseState:
    engine: AsyncEngine | None = field(default=None)
    session_factory: async_sessionmaker[AsyncSession] | None = field(default=None)


_state = _DatabaseState()


def get_database_url() -> str:
    """Return ``DATABASE__URL``; raises ValueError when it is unset."""
    url = get_settings().database.url
    if not url:
        msg = "DATABASE__URL is not configured"
        raise ValueError(msg)
    return url


def get_engine() -> AsyncEngine | None:
    return _state.engine


async def init_db() -> None:
    """Create the engine and session factory (``app.on_startup``)."""
    config = get_settings().database
    engine = create_async_engine(
        get_database_url(),
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_pre_ping=True,
        connect_args={"timeout": config.connect_timeout},
    )

    @event.listens_for(engine.sync_engine.pool, "invalidate")
    def _on_invalidate(
        _dbapi_conn: object, _rec: object, exception: BaseException | None
    ) -> None:
        logger.warning(
            "Pooled connection invalidated: %s",
            type(exception).__name__ if exception else "no error",
        )

    _state.engine = engine
    _state.session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )


async def close_db() -> None:
    if _state.engine:
        await _state.engine.dispose()
        _state.engine = None
        _state.session_factory = None


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on success and rolls back on error.

    Every tree write of one move batch goes through a single session, so a
    failure leaves no partial reorder behind. Errors are logged and
    re-raised.
    """
    if _state.session_factory is None:
        await init_db()

    session_factory = _state.session_factory
    assert session_factory is not None

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.exception("Database session error, rolling back transaction")
            await session.rollback()
            raise
