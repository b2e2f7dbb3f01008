"""Structural checks that decide whether a drop is legal.

All functions work on the rendered subtree only: collapsed or unloaded
descendants are not materialised client-side and are therefore not counted.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from arborist.tree.types import Operation

if TYPE_CHECKING:
    from collections.abc import Iterator

    from arborist.tree.types import TreeNode


class OperationState(StrEnum):
    AVAILABLE = "available"
    BLOCKED = "blocked"


def iter_descendants(node: TreeNode) -> Iterator[TreeNode]:
    """Yield every rendered descendant of ``node`` (not ``node`` itself)."""
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def subtree_depth(node: TreeNode) -> int:
    """Number of levels below ``node``: 0 for a leaf, else 1 + deepest child."""
    deepest = 0
    stack = [(child, 1) for child in node.children]
    while stack:
        current, level = stack.pop()
        deepest = max(deepest, level)
        stack.extend((child, level + 1) for child in current.children)
    return deepest


def is_descendant_of(candidate_ancestor: TreeNode, node: TreeNode) -> bool:
    """True iff ``node`` is anywhere below ``candidate_ancestor``."""
    return any(d is node for d in iter_descendants(candidate_ancestor))


def would_exceed_depth(
    target_depth: int, moving_subtree_depth: int, max_depth: int | None
) -> bool:
    """True iff nesting a subtree under a target at ``target_depth`` is too deep.

    The boundary level itself is invalid (``>=``): the subtree depth counts
    levels *below* the moved node, which lands at ``target_depth + 1``.
    """
    if max_depth is None:
        return False
    return target_depth + 1 + moving_subtree_depth >= max_depth


def operation_states(
    source: TreeNode, target: TreeNode, max_depth: int | None
) -> dict[Operation, OperationState]:
    """Tag each drop operation on ``target`` as available or blocked.

    Reordering is never depth-checked because it keeps the nesting level.
    """
    onto_self = source is target
    into_own_subtree = is_descendant_of(source, target)
    too_deep = would_exceed_depth(target.depth, subtree_depth(source), max_depth)

    reorder_blocked = onto_self or into_own_subtree
    combine_blocked = reorder_blocked or too_deep

    def _state(blocked: bool) -> OperationState:
        return OperationState.BLOCKED if blocked else OperationState.AVAILABLE

    return {
        Operation.REORDER_BEFORE: _state(reorder_blocked),
        Operation.COMBINE: _state(combine_blocked),
        Operation.REORDER_AFTER: _state(reorder_blocked),
    }


def is_move_allowed(
    source: TreeNode,
    target: TreeNode,
    operation: Operation,
    max_depth: int | None,
) -> bool:
    return (
        operation_states(source, target, max_depth)[operation]
        is OperationState.AVAILABLE
    )
