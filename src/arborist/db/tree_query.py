"""Relational Tree Query over a SQLModel table.

The parent and order columns are configurable so legacy schemas (e.g. a
``sort_order`` column, or ``-1``/``0`` as the root parent value) can be used
unchanged. All statements go through SQLAlchemy Core on the model's table.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from arborist.db.engine import get_session
from arborist.db.models import Node
from arborist.tree.types import NodeRecord

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy import ColumnElement, Select
    from sqlmodel import SQLModel
    from sqlmodel.ext.asyncio.session import AsyncSession

    from arborist.config import TreeConfig
    from arborist.tree.types import NodeId

logger = logging.getLogger(__name__)


class SqlTreeQuery:
    """Tree Query bound to one table and one base query.

    ``where`` restricts every statement (the host's base query). ``batch()``
    shares one session, and therefore one transaction, across all calls made
    inside it; outside a batch each call commits on its own.
    """

    def __init__(
        self,
        model: type[SQLModel] = Node,
        *,
        id_column: str = "id",
        parent_column: str = "parent_id",
        order_column: str = "order",
        root_value: Any = None,
        where: Sequence[ColumnElement[bool]] = (),
        payload_columns: Sequence[str] = ("name",),
    ) -> None:
        table = model.__table__  # type: ignore[attr-defined]
        self.table = table
        self._id = table.c[id_column]
        self._parent = table.c[parent_column]
        self._order = table.c[order_column]
        self._payload = tuple(table.c[name] for name in payload_columns)
        self._root_value = root_value
        self._where = tuple(where)
        self._session: AsyncSession | None = None

    @classmethod
    def from_config(
        cls, config: TreeConfig, model: type[SQLModel] = Node, **kwargs: Any
    ) -> SqlTreeQuery:
        return cls(
            model,
            parent_column=config.parent_column,
            order_column=config.order_column,
            root_value=config.root_parent_value,
            **kwargs,
        )

    @property
    def root_value(self) -> Any:
        return self._root_value

    @asynccontextmanager
    async def _use_session(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            yield self._session
            return
        async with get_session() as session:
            yield session

    @asynccontextmanager
    async def batch(self) -> AsyncIterator[None]:
        """Run the enclosed calls in a single transaction."""
        if self._session is not None:
            yield
            return
        async with get_session() as session:
            self._session = session
            try:
                yield
            finally:
                self._session = None

    def _select(self) -> Select[Any]:
        return select(self._id, self._parent, self._order, *self._payload).where(
            *self._where
        )

    def _to_record(self, row: Any) -> NodeRecord:
        mapping = row._mapping
        return NodeRecord(
            id=mapping[self._id],
            parent_id=mapping[self._parent],
            order=mapping[self._order],
            payload={col.name: mapping[col] for col in self._payload},
        )

    async def _fetch(self, stmt: Select[Any]) -> list[NodeRecord]:
        async with self._use_session() as session:
            result = await session.execute(stmt)  # type: ignore[deprecated]
            return [self._to_record(row) for row in result.all()]

    async def fetch_all(self) -> list[NodeRecord]:
        return await self._fetch(self._select().order_by(self._order, self._id))

    async def fetch_by_id(self, node_id: NodeId) -> NodeRecord | None:
        records = await self._fetch(self._select().where(self._id == node_id))
        return records[0] if records else None

    async def fetch_siblings(self, parent_id: Any) -> list[NodeRecord]:
        stmt = (
            self._select()
            .where(self._parent == parent_id)
            .order_by(self._order, self._id)
        )
        return await self._fetch(stmt)

    async def save(self, record: NodeRecord) -> None:
        stmt = (
            update(self.table)
            .where(self._id == record.id, *self._where)
            .values({self._parent: record.parent_id, self._order: record.order})
        )
        async with self._use_session() as session:
            await session.execute(stmt)  # type: ignore[deprecated]
        logger.debug(
            "Saved node %s parent=%r order=%d",
            record.id,
            record.parent_id,
            record.order,
        )
