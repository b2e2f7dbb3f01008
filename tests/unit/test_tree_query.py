"""Tests for the in-memory Tree Query."""

from __future__ import annotations

import pytest

from arborist.tree import InMemoryTreeQuery, NodeRecord
from tests.helpers.trees import orders_by_parent, query_from, record_outline


class TestDelete:
    """Tests for deleting nodes from the in-memory store."""

    @pytest.mark.asyncio
    async def test_descendants_removed_transitively(self) -> None:
        """Deleting A removes B, its child, and C; the gap is closed."""
        query = query_from({"first": {}, "A": {"B": {"B1": {}}, "C": {}}, "last": {}})
        deleted = query.delete("A")
        assert deleted[0] == "A"
        assert set(deleted) == {"A", "B", "B1", "C"}

        records = await query.fetch_all()
        assert record_outline(records) == ["first", "last"]
        assert orders_by_parent(records) == {None: [1, 2]}
        assert query.get("B1") is None

    @pytest.mark.asyncio
    async def test_nested_delete_renumbers_its_group(self, sample_query) -> None:
        """Only the deleted node's sibling group is renumbered."""
        assert sample_query.delete("2025") == ["2025"]
        assert sample_query.get("2026").order == 1
        assert sample_query.get("receipts").order == 2
        assert len(await sample_query.fetch_all()) == 5

    def test_unknown_node_deletes_nothing(self) -> None:
        """Deleting an id that is not stored is a no-op."""
        query = query_from({"a": {}})
        assert query.delete("ghost") == []
        assert query.get("a") is not None


class TestScope:
    """Tests for the scope filter."""

    @pytest.mark.asyncio
    async def test_out_of_scope_records_are_hidden(self) -> None:
        """Records failing the scope are invisible to every read."""
        query = InMemoryTreeQuery(
            [
                NodeRecord("a", None, 1, {"tree": "x"}),
                NodeRecord("b", None, 2, {"tree": "y"}),
            ],
            scope=lambda record: record.payload["tree"] == "x",
        )
        assert [r.id for r in await query.fetch_all()] == ["a"]
        assert await query.fetch_by_id("b") is None
        assert [r.id for r in await query.fetch_siblings(None)] == ["a"]
