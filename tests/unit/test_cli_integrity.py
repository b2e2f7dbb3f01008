"""Tests for the stored-tree integrity report used by arborist-check."""

from __future__ import annotations

from arborist.cli import integrity_problems
from arborist.tree import NodeRecord
from tests.helpers.trees import records_from


class TestIntegrityProblems:
    """Tests for integrity_problems()."""

    def test_clean_tree(self) -> None:
        """A dense, acyclic tree has no problems."""
        records = records_from({"a": {"a1": {}, "a2": {}}, "b": {}})
        assert integrity_problems(records, None) == []

    def test_custom_root_value(self) -> None:
        """Roots stored under -1 are not reported as orphans."""
        records = records_from({"a": {"a1": {}}}, root=-1)
        assert integrity_problems(records, -1) == []

    def test_missing_parent(self) -> None:
        """Dangling parent links are reported."""
        records = [NodeRecord("a", None, 1), NodeRecord("x", "gone", 1)]
        assert integrity_problems(records, None) == ["x: parent gone does not exist"]

    def test_gap_in_order(self) -> None:
        """Sibling orders must be exactly 1..N."""
        records = [NodeRecord("a", None, 1), NodeRecord("b", None, 3)]
        problems = integrity_problems(records, None)
        assert problems == ["children of root: order [1, 3] not dense"]

    def test_duplicate_order(self) -> None:
        """Ties are also a density problem."""
        records = [
            NodeRecord("p", None, 1),
            NodeRecord("x", "p", 1),
            NodeRecord("y", "p", 1),
        ]
        assert integrity_problems(records, None) == [
            "children of p: order [1, 1] not dense"
        ]

    def test_cycle_reported_once(self) -> None:
        """A parent loop is reported once, not per member."""
        records = [
            NodeRecord("x", "y", 1),
            NodeRecord("y", "x", 1),
        ]
        problems = integrity_problems(records, None)
        assert problems == ["x: parent chain contains a cycle"]
