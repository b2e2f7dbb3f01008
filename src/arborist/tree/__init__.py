"""Tree reorder engine.

Pure, host-independent pieces: structural validation, drop classification,
the drag state machine, optimistic mutation, change accumulation and the
server-side move processor.
"""

from __future__ import annotations

from arborist.tree.accumulator import ChangeAccumulator
from arborist.tree.builder import RenderTree, TreeView, ViewDiff, ViewRow
from arborist.tree.controller import TreeController
from arborist.tree.expansion import ExpansionState
from arborist.tree.hitbox import DEFAULT_POLICY, HitboxPolicy, Point, Rect
from arborist.tree.interaction import (
    END_ZONE,
    DragPhase,
    DragSession,
    DropIndicator,
    HitTarget,
    Hover,
)
from arborist.tree.mutator import apply_move
from arborist.tree.processor import MoveOutcome, MoveProcessor
from arborist.tree.query import InMemoryTreeQuery, TreeQuery
from arborist.tree.types import (
    CLIENT_ROOT,
    DragStateError,
    InvalidMoveError,
    MoveIntent,
    MovesRejectedError,
    NodeRecord,
    Operation,
    PersistMode,
    Position,
    TreeError,
    TreeNode,
    UnknownNodeError,
    is_client_root,
)
from arborist.tree.validator import OperationState, is_move_allowed, operation_states

__all__ = [
    # Types
    "CLIENT_ROOT",
    "MoveIntent",
    "NodeRecord",
    "Operation",
    "PersistMode",
    "Position",
    "TreeNode",
    "is_client_root",
    # Exceptions
    "DragStateError",
    "InvalidMoveError",
    "MovesRejectedError",
    "TreeError",
    "UnknownNodeError",
    # Validation and geometry
    "DEFAULT_POLICY",
    "HitboxPolicy",
    "OperationState",
    "Point",
    "Rect",
    "is_move_allowed",
    "operation_states",
    # Client side
    "END_ZONE",
    "ChangeAccumulator",
    "DragPhase",
    "DragSession",
    "DropIndicator",
    "ExpansionState",
    "HitTarget",
    "Hover",
    "RenderTree",
    "TreeController",
    "TreeView",
    "ViewDiff",
    "ViewRow",
    "apply_move",
    # Server side
    "InMemoryTreeQuery",
    "MoveOutcome",
    "MoveProcessor",
    "TreeQuery",
]
