"""Tests for move intents and their host payloads."""

from __future__ import annotations

from uuid import UUID

import pytest

from arborist.tree import (
    InvalidMoveError,
    MoveIntent,
    Operation,
    Position,
    is_client_root,
)


class TestMoveIntent:
    """Tests for MoveIntent construction and host payload parsing."""

    def test_inside_drops_reference(self) -> None:
        """The reference is meaningless for inside moves."""
        intent = MoveIntent("n", "p", Position.INSIDE, "r")
        assert intent.reference_id is None

    def test_from_payload_keeps_id_types(self) -> None:
        """UUIDs and ints are not coerced."""
        node = UUID("00000000-0000-0000-0000-00000000000a")
        intent = MoveIntent.from_payload(
            {"nodeId": node, "newParentId": 4, "position": "after", "referenceId": 9}
        )
        assert intent == MoveIntent(node, 4, Position.AFTER, 9)

    def test_from_payload_defaults(self) -> None:
        """A bare node id means append as the last root."""
        intent = MoveIntent.from_payload({"nodeId": 7}, root_marker="root")
        assert intent == MoveIntent(7, "root", Position.AFTER)

    def test_from_payload_requires_node(self) -> None:
        """nodeId is mandatory."""
        with pytest.raises(InvalidMoveError, match="nodeId"):
            MoveIntent.from_payload({"position": "after"})

    def test_from_payload_rejects_unknown_position(self) -> None:
        """Only before, after and inside are understood."""
        with pytest.raises(InvalidMoveError, match="sideways"):
            MoveIntent.from_payload({"nodeId": 1, "position": "sideways"})


class TestOperation:
    """Tests for the operation to position mapping."""

    @pytest.mark.parametrize(
        ("operation", "position"),
        [
            (Operation.REORDER_BEFORE, Position.BEFORE),
            (Operation.COMBINE, Position.INSIDE),
            (Operation.REORDER_AFTER, Position.AFTER),
        ],
    )
    def test_position(self, operation: Operation, position: Position) -> None:
        """Each drop operation maps to one intent position."""
        assert operation.position is position


class TestIsClientRoot:
    """Tests for recognising the client root marker."""

    @pytest.mark.parametrize("value", [None, "-1", -1])
    def test_default_marker(self, value: object) -> None:
        """None and the marker in either int or text form mean the root."""
        assert is_client_root(value)

    def test_custom_marker(self) -> None:
        """Deployments may pick their own marker."""
        assert is_client_root("root", "root")
        assert not is_client_root("-1", "root")
        assert not is_client_root(0)
