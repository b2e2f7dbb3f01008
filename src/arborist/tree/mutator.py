"""Optimistic, local-only application of a move to the rendered tree.

Nothing here touches the store. A full reload from the store is the only
way back (see ``ChangeAccumulator.cancel``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from arborist.tree.types import (
    InvalidMoveError,
    Operation,
    Position,
    is_client_root,
)
from arborist.tree.validator import is_descendant_of, is_move_allowed

if TYPE_CHECKING:
    from arborist.tree.builder import RenderTree
    from arborist.tree.types import MoveIntent, TreeNode

logger = logging.getLogger(__name__)


def set_depth(node: TreeNode, depth: int) -> None:
    """Set ``node``'s depth and propagate ``depth + 1`` down its subtree."""
    stack = [(node, depth)]
    while stack:
        current, level = stack.pop()
        current.depth = level
        stack.extend((child, level + 1) for child in current.children)


def apply_move(
    tree: RenderTree, intent: MoveIntent, *, max_depth: int | None = None
) -> bool:
    """Apply ``intent`` to ``tree`` in place.

    Returns False when the move is a no-op (a node placed relative to
    itself, or a root-level append with nothing to do). Raises
    ``InvalidMoveError`` instead of producing a cycle or an over-deep tree,
    so the visible tree never enters an invalid state.
    """
    source = tree.get(intent.node_id)

    if intent.position is Position.INSIDE:
        target = tree.get(intent.new_parent_id)
        _check(source, target, Operation.COMBINE, max_depth)
        _combine(tree, source, target)
        logger.debug("Moved %r inside %r", source.id, target.id)
        return True

    if intent.reference_id is None:
        if not is_client_root(intent.new_parent_id, tree.root_marker):
            target = tree.get(intent.new_parent_id)
            if source is target or is_descendant_of(source, target):
                msg = f"Cannot append {source.id!r} under {target.id!r}"
                raise InvalidMoveError(msg)
            _combine(tree, source, target)
            logger.debug("Moved %r to the end of %r", source.id, target.id)
            return True
        # Drop-at-end with no other root: the node becomes the last root.
        if tree.is_root(source) and tree.last_root(excluding=source) is None:
            return False
        _append_root(tree, source)
        logger.debug("Moved %r to the end of the root level", source.id)
        return True

    if intent.reference_id == source.id:
        return False

    target = tree.get(intent.reference_id)
    operation = (
        Operation.REORDER_BEFORE
        if intent.position is Position.BEFORE
        else Operation.REORDER_AFTER
    )
    _check(source, target, operation, max_depth)
    _reorder(tree, source, target, after=intent.position is Position.AFTER)
    logger.debug("Moved %r %s %r", source.id, intent.position.value, target.id)
    return True


def _check(
    source: TreeNode, target: TreeNode, operation: Operation, max_depth: int | None
) -> None:
    if not is_move_allowed(source, target, operation, max_depth):
        msg = f"Cannot {operation.value} {source.id!r} onto {target.id!r}"
        raise InvalidMoveError(msg)


def _combine(tree: RenderTree, source: TreeNode, target: TreeNode) -> None:
    old_parent = tree.parent_of(source)
    tree.detach(source)
    tree.insert(source, target)
    source.parent_id = target.id
    set_depth(source, target.depth + 1)
    _renumber_groups(tree, old_parent, target)


def _reorder(
    tree: RenderTree, source: TreeNode, target: TreeNode, *, after: bool
) -> None:
    old_parent = tree.parent_of(source)
    new_parent = tree.parent_of(target)
    tree.detach(source)
    siblings = tree.siblings_list(new_parent)
    index = next(i for i, n in enumerate(siblings) if n is target)
    tree.insert(source, new_parent, index + 1 if after else index)
    source.parent_id = target.parent_id
    set_depth(source, target.depth)
    _renumber_groups(tree, old_parent, new_parent)


def _append_root(tree: RenderTree, source: TreeNode) -> None:
    old_parent = tree.parent_of(source)
    tree.detach(source)
    tree.insert(source, None)
    source.parent_id = tree.root_marker
    set_depth(source, 0)
    _renumber_groups(tree, old_parent, None)


def _renumber_groups(
    tree: RenderTree, old_parent: TreeNode | None, new_parent: TreeNode | None
) -> None:
    # A parent whose list emptied simply reports has_children == False;
    # there is no separate container left behind.
    tree.renumber(old_parent)
    if new_parent is not old_parent:
        tree.renumber(new_parent)
