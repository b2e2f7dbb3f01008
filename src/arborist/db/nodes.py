"""CRUD operations for tree nodes.

Reordering is not done here: moves go through ``MoveProcessor`` with a
``SqlTreeQuery``. These functions create, rename and delete nodes while
keeping each sibling group's order dense.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from arborist.db.engine import get_session
from arborist.db.models import Node

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)


async def _next_order(
    session: AsyncSession, tree_key: str, parent_id: UUID | None
) -> int:
    result = await session.exec(
        select(func.coalesce(func.max(Node.order), 0)).where(
            Node.tree_key == tree_key, Node.parent_id == parent_id
        )
    )
    return int(result.one()) + 1


async def create_node(
    name: str,
    parent_id: UUID | None = None,
    tree_key: str = "default",
) -> Node:
    """Create a node as the last child of ``parent_id``.

    Args:
        name: Label for the node.
        parent_id: Parent node UUID, or None for a root node.
        tree_key: The tree the node belongs to.

    Returns:
        The created Node with generated ID.
    """
    async with get_session() as session:
        node = Node(
            tree_key=tree_key,
            parent_id=parent_id,
            name=name,
            order=await _next_order(session, tree_key, parent_id),
        )
        session.add(node)
        await session.flush()
        await session.refresh(node)
        return node


async def get_node(node_id: UUID) -> Node | None:
    async with get_session() as session:
        return await session.get(Node, node_id)


async def list_nodes(tree_key: str = "default") -> list[Node]:
    """List every node of a tree, ordered by ``(order, id)``."""
    async with get_session() as session:
        result = await session.exec(
            select(Node)
            .where(Node.tree_key == tree_key)
            .order_by(col(Node.order), col(Node.id))
        )
        return list(result.all())


async def list_tree_keys() -> list[str]:
    async with get_session() as session:
        result = await session.exec(
            select(Node.tree_key).distinct().order_by(Node.tree_key)
        )
        return list(result.all())


async def rename_node(node_id: UUID, name: str) -> Node | None:
    """Rename a node.

    Returns:
        The updated Node or None if not found.
    """
    async with get_session() as session:
        node = await session.get(Node, node_id)
        if not node:
            return None
        node.name = name
        session.add(node)
        await session.flush()
        await session.refresh(node)
        return node


async def delete_node(node_id: UUID) -> int:
    """Delete a node together with all of its descendants.

    The remaining siblings of the deleted node are renumbered ``1..N``.

    Returns:
        Number of rows deleted (0 if the node did not exist).
    """
    async with get_session() as session:
        node = await session.get(Node, node_id)
        if node is None:
            return 0
        tree_key, parent_id = node.tree_key, node.parent_id

        doomed = [node]
        frontier = [node_id]
        while frontier:
            result = await session.exec(
                select(Node).where(col(Node.parent_id).in_(frontier))
            )
            children = list(result.all())
            doomed.extend(children)
            frontier = [child.id for child in children]

        # Deepest first, so no row is removed by the FK cascade before the
        # session deletes it.
        for doomed_node in reversed(doomed):
            await session.delete(doomed_node)
            await session.flush()

        siblings = await session.exec(
            select(Node)
            .where(Node.tree_key == tree_key, Node.parent_id == parent_id)
            .order_by(col(Node.order), col(Node.id))
        )
        for position, sibling in enumerate(siblings.all(), start=1):
            if sibling.order != position:
                sibling.order = position
                session.add(sibling)

        logger.info("Deleted node %s and %d descendant(s)", node_id, len(doomed) - 1)
        return len(doomed)
