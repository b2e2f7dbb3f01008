"""Core value types shared by the client engine and the move processor.

Node identifiers are opaque: integers and UUIDs pass through unchanged and
are never coerced to another type. The "no parent" marker is configurable
per deployment, so it travels as a plain value rather than a fixed constant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from collections.abc import Hashable, Mapping, Sequence

NodeId = int | str | UUID
"""Identifier of a tree node. Type is preserved exactly through round trips."""

CLIENT_ROOT = "-1"
"""Default client-side RootMarker (the value a render attribute carries)."""


def is_client_root(value: Any, marker: Any = CLIENT_ROOT) -> bool:
    """True for ``None`` or anything equal to ``marker``, compared as text too."""
    return value is None or value == marker or str(value) == str(marker)


class TreeError(Exception):
    """Base class for tree engine errors."""


class InvalidMoveError(TreeError):
    """A move instruction is malformed or structurally impossible."""


class MovesRejectedError(TreeError):
    """The store refused one or more moves of an applied batch.

    The accepted moves of the batch are persisted; the rendered tree no
    longer matches the store and must be reloaded.
    """

    def __init__(self, intents: Sequence[MoveIntent]) -> None:
        self.intents = tuple(intents)
        ids = ", ".join(repr(intent.node_id) for intent in self.intents)
        super().__init__(f"Store refused move(s) of {ids}")


class DragStateError(TreeError):
    """A drag lifecycle method was called in the wrong state."""


class UnknownNodeError(TreeError, KeyError):
    """A node id is not present in the loaded tree."""

    def __init__(self, node_id: Hashable) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node {self.node_id!r} is not in the loaded tree"


class Position(StrEnum):
    """Where a moved node lands relative to its reference."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


class Operation(StrEnum):
    """Drop operation implied by the pointer position over a target."""

    REORDER_BEFORE = "reorder-before"
    COMBINE = "combine"
    REORDER_AFTER = "reorder-after"

    @property
    def position(self) -> Position:
        """Map the drop operation to a MoveIntent position."""
        return _OPERATION_POSITIONS[self]


_OPERATION_POSITIONS = {
    Operation.REORDER_BEFORE: Position.BEFORE,
    Operation.COMBINE: Position.INSIDE,
    Operation.REORDER_AFTER: Position.AFTER,
}


class PersistMode(StrEnum):
    """How committed moves reach the store."""

    IMMEDIATE = "immediate"
    BATCHED = "batched"


@dataclass(frozen=True, slots=True)
class MoveIntent:
    """A validated, not-yet-persisted instruction to relocate one node.

    ``new_parent_id`` carries the client RootMarker when the node becomes a
    root. Without a ``reference_id`` a ``before``/``after`` move appends the
    node as the last child of ``new_parent_id``; ``inside`` ignores it.
    """

    node_id: NodeId
    new_parent_id: Any
    position: Position = Position.AFTER
    reference_id: NodeId | None = None

    def __post_init__(self) -> None:
        if self.position is Position.INSIDE and self.reference_id is not None:
            object.__setattr__(self, "reference_id", None)

    @classmethod
    def from_payload(
        cls, data: Mapping[str, Any], *, root_marker: Any = CLIENT_ROOT
    ) -> MoveIntent:
        """Build an intent from a host payload.

        Missing ``newParentId`` means the root; missing ``position`` means
        ``after`` (which, with no reference, appends last).
        """
        try:
            node_id = data["nodeId"]
        except KeyError:
            msg = "Move payload has no nodeId"
            raise InvalidMoveError(msg) from None
        try:
            position = Position(data.get("position") or Position.AFTER)
        except ValueError:
            msg = f"Unknown move position: {data.get('position')!r}"
            raise InvalidMoveError(msg) from None
        return cls(
            node_id=node_id,
            new_parent_id=data.get("newParentId", root_marker),
            position=position,
            reference_id=data.get("referenceId"),
        )


@dataclass(slots=True, eq=False)
class TreeNode:
    """A node of the rendered tree.

    ``depth`` is derived by the builder and maintained by the optimistic
    mutator; it is never written back to the store by this engine.
    ``payload`` holds the host's record fields (name, etc.) untouched.
    """

    id: NodeId
    parent_id: Any
    order: int
    depth: int = 0
    children: list[TreeNode] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def __repr__(self) -> str:
        return (
            f"TreeNode(id={self.id!r}, parent_id={self.parent_id!r}, "
            f"order={self.order}, depth={self.depth}, children={len(self.children)})"
        )


@dataclass(frozen=True, slots=True)
class NodeRecord:
    """Flat persisted view of a node as returned by a Tree Query."""

    id: NodeId
    parent_id: Any
    order: int
    payload: dict[str, Any] = field(default_factory=dict)
