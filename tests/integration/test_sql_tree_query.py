"""Integration tests for the PostgreSQL Tree Query and node CRUD.

These tests require a running PostgreSQL instance. Set TEST_DATABASE_URL.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest

from arborist.tree import CLIENT_ROOT, MoveIntent, MoveOutcome, Position

if TYPE_CHECKING:
    from uuid import UUID

    from arborist.db import SqlTreeQuery

pytestmark = [
    pytest.mark.skipif(
        not os.environ.get("TEST_DATABASE_URL"),
        reason="TEST_DATABASE_URL not set - skipping database integration tests",
    ),
    pytest.mark.xdist_group("db_integration"),
]


async def _create(
    tree_key: str, shape: dict[str, Any], parent_id: UUID | None = None
) -> dict[str, UUID]:
    """Insert ``shape`` under ``parent_id``; returns name -> id."""
    from arborist.db import create_node

    ids: dict[str, UUID] = {}
    for name, children in shape.items():
        node = await create_node(name, parent_id=parent_id, tree_key=tree_key)
        ids[name] = node.id
        ids |= await _create(tree_key, children, node.id)
    return ids


def _query(tree_key: str) -> SqlTreeQuery:
    from arborist.db import Node, SqlTreeQuery

    return SqlTreeQuery(Node, where=[Node.tree_key == tree_key])


async def _names(query: SqlTreeQuery) -> list[str]:
    """Outline of the stored tree by node name."""
    records = await query.fetch_all()
    names = {r.id: r.payload["name"] for r in records}
    children: dict[Any, list[Any]] = {}
    for record in records:
        children.setdefault(record.parent_id, []).append(record)
    lines: list[str] = []
    stack = [(r, 0) for r in reversed(children.get(None, []))]
    while stack:
        record, depth = stack.pop()
        lines.append("  " * depth + names[record.id])
        stack.extend((c, depth + 1) for c in reversed(children.get(record.id, [])))
    return lines


class TestSqlTreeQuery:
    """Tests for reading and writing through SqlTreeQuery."""

    @pytest.mark.asyncio
    async def test_fetch_all_orders_and_scopes(self, tree_key: str) -> None:
        """Records come back ordered, with payload, limited to the tree."""
        ids = await _create(tree_key, {"X": {"x1": {}}, "Y": {}})
        await _create(f"{tree_key}-other", {"elsewhere": {}})

        query = _query(tree_key)
        records = await query.fetch_all()
        assert {r.payload["name"] for r in records} == {"X", "x1", "Y"}
        assert await _names(query) == ["X", "  x1", "Y"]

        child = await query.fetch_by_id(ids["x1"])
        assert child is not None
        assert child.parent_id == ids["X"]
        assert child.order == 1

    @pytest.mark.asyncio
    async def test_out_of_scope_node_is_invisible(self, tree_key: str) -> None:
        """A node from another tree cannot be fetched or moved."""
        other = await _create(f"{tree_key}-other", {"stranger": {}})
        await _create(tree_key, {"X": {}})

        from arborist.tree import MoveProcessor

        query = _query(tree_key)
        assert await query.fetch_by_id(other["stranger"]) is None
        outcomes = await MoveProcessor(query)(
            [MoveIntent(other["stranger"], CLIENT_ROOT, Position.AFTER)]
        )
        assert outcomes == [MoveOutcome.SKIPPED]


class TestMovesAgainstPostgres:
    """MoveProcessor driving SqlTreeQuery."""

    @pytest.mark.asyncio
    async def test_move_before_first_root(self, tree_key: str) -> None:
        """Y before X gives [Y=1, X=2, Z=3]."""
        from arborist.tree import MoveProcessor

        ids = await _create(tree_key, {"X": {}, "Y": {}, "Z": {}})
        query = _query(tree_key)
        await MoveProcessor(query)(
            [MoveIntent(ids["Y"], CLIENT_ROOT, Position.BEFORE, ids["X"])]
        )
        roots = await query.fetch_siblings(None)
        assert [(r.payload["name"], r.order) for r in roots] == [
            ("Y", 1),
            ("X", 2),
            ("Z", 3),
        ]

    @pytest.mark.asyncio
    async def test_batch_of_moves(self, tree_key: str) -> None:
        """Later moves in a batch see the layout of earlier ones."""
        from arborist.tree import MoveProcessor

        ids = await _create(tree_key, {"a": {"a1": {}, "a2": {}}, "b": {}})
        query = _query(tree_key)
        await MoveProcessor(query)(
            [
                MoveIntent(ids["a2"], ids["b"], Position.INSIDE),
                MoveIntent(ids["a1"], ids["b"], Position.AFTER, ids["a2"]),
                MoveIntent(ids["a"], CLIENT_ROOT, Position.AFTER, ids["b"]),
            ]
        )
        assert await _names(query) == ["b", "  a2", "  a1", "a"]

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, tree_key: str) -> None:
        """Moving a node inside its own descendant changes nothing."""
        from arborist.tree import MoveProcessor

        ids = await _create(tree_key, {"N": {"c": {"g": {}}}})
        query = _query(tree_key)
        outcomes = await MoveProcessor(query)(
            [MoveIntent(ids["N"], ids["g"], Position.INSIDE)]
        )
        assert outcomes == [MoveOutcome.REJECTED]
        assert await _names(query) == ["N", "  c", "    g"]

    @pytest.mark.asyncio
    async def test_failed_batch_rolls_back(self, tree_key: str) -> None:
        """A store error part-way through leaves every row untouched."""
        from arborist.db import Node, SqlTreeQuery
        from arborist.tree import MoveProcessor

        class FailingQuery(SqlTreeQuery):
            saves = 0

            async def save(self, record) -> None:
                self.saves += 1
                if self.saves > 2:
                    msg = "simulated failure"
                    raise RuntimeError(msg)
                await super().save(record)

        ids = await _create(tree_key, {"a": {}, "b": {}, "c": {}})
        query = FailingQuery(Node, where=[Node.tree_key == tree_key])
        with pytest.raises(RuntimeError, match="simulated"):
            await MoveProcessor(query)(
                [MoveIntent(ids["c"], CLIENT_ROOT, Position.BEFORE, ids["a"])]
            )
        assert await _names(_query(tree_key)) == ["a", "b", "c"]


class TestNodeCrud:
    """Tests for create_node and delete_node."""

    @pytest.mark.asyncio
    async def test_create_appends_last(self, tree_key: str) -> None:
        """New nodes get the next order in their group."""
        from arborist.db import create_node, list_nodes

        ids = await _create(tree_key, {"p": {"c1": {}}})
        extra = await create_node("c2", parent_id=ids["p"], tree_key=tree_key)
        assert extra.order == 2
        root = await create_node("q", tree_key=tree_key)
        assert root.order == 2
        assert len(await list_nodes(tree_key)) == 4

    @pytest.mark.asyncio
    async def test_delete_removes_descendants(self, tree_key: str) -> None:
        """Deleting A removes B and C transitively and closes the gap."""
        from arborist.db import delete_node, get_node

        ids = await _create(
            tree_key, {"first": {}, "A": {"B": {"B1": {}}, "C": {}}, "last": {}}
        )
        assert await delete_node(ids["A"]) == 4
        for name in ("A", "B", "B1", "C"):
            assert await get_node(ids[name]) is None

        roots = await _query(tree_key).fetch_siblings(None)
        assert [(r.payload["name"], r.order) for r in roots] == [
            ("first", 1),
            ("last", 2),
        ]

    @pytest.mark.asyncio
    async def test_foreign_key_cascades(self, tree_key: str) -> None:
        """The store itself cascades a parent delete to its children."""
        from sqlalchemy import delete

        from arborist.db import Node, get_node, get_session

        ids = await _create(tree_key, {"A": {"B": {}, "C": {}}})
        async with get_session() as session:
            stmt = delete(Node).where(Node.id == ids["A"])  # type: ignore[arg-type]
            await session.execute(stmt)
        assert await get_node(ids["B"]) is None
        assert await get_node(ids["C"]) is None

    @pytest.mark.asyncio
    async def test_rename(self, tree_key: str) -> None:
        """Renaming leaves position untouched."""
        from arborist.db import rename_node

        ids = await _create(tree_key, {"old": {}})
        node = await rename_node(ids["old"], "new")
        assert node is not None
        assert (node.name, node.order) == ("new", 1)
