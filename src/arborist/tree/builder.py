"""Build the rendered tree from a flat node list and derive view models.

The store hands back a flat sequence ordered by ``(order, id)``. One pass
groups it by parent, a second walks from the roots with an explicit stack
assigning depth. The result is an arena of ``TreeNode`` objects plus a
parent-index map, so lookups never parse rendered attributes.

Root nodes carry the *client* RootMarker as their ``parent_id``; translating
back to the store's encoding is the move processor's job.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from arborist.tree.types import CLIENT_ROOT, TreeNode, UnknownNodeError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from arborist.tree.types import NodeId, NodeRecord

logger = logging.getLogger(__name__)


class RenderTree:
    """In-memory tree for one interaction cycle.

    Holds the root list, an id index and a child-to-parent map. Structural
    edits go through :meth:`detach` and :meth:`insert` so the indexes stay
    consistent with the nested ``children`` lists.
    """

    def __init__(
        self, roots: list[TreeNode] | None = None, *, root_marker: Any = CLIENT_ROOT
    ) -> None:
        self.root_marker = root_marker
        self.roots: list[TreeNode] = []
        self._index: dict[NodeId, TreeNode] = {}
        self._parent: dict[NodeId, TreeNode | None] = {}
        for root in roots or []:
            self.insert(root, None)

    # -- construction -------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Iterable[NodeRecord],
        *,
        store_root: Any = None,
        root_marker: Any = CLIENT_ROOT,
    ) -> RenderTree:
        """Nest a flat, ordered record list.

        Records whose parent is neither the store root value nor a loaded
        node are unreachable (e.g. outside the configured base query) and are
        left out, as are records caught in a parent cycle.
        """
        records = list(records)
        children_of: dict[Any, list[NodeRecord]] = defaultdict(list)
        known = {r.id for r in records}
        root_records: list[NodeRecord] = []
        for record in records:
            if _is_root_value(record.parent_id, store_root):
                root_records.append(record)
            elif record.parent_id in known:
                children_of[record.parent_id].append(record)
            else:
                logger.debug(
                    "Skipping node %r: parent %r not loaded",
                    record.id,
                    record.parent_id,
                )

        tree = cls(root_marker=root_marker)
        stack: list[tuple[NodeRecord, TreeNode | None, int]] = [
            (record, None, 0) for record in reversed(root_records)
        ]
        while stack:
            record, parent, depth = stack.pop()
            node = TreeNode(
                id=record.id,
                parent_id=root_marker if parent is None else parent.id,
                order=record.order,
                depth=depth,
                payload=dict(record.payload),
            )
            tree._attach(node, parent, len(tree.siblings_list(parent)))
            stack.extend(
                (child, node, depth + 1) for child in reversed(children_of[record.id])
            )

        skipped = len(records) - len(tree)
        if skipped:
            logger.info("Built tree with %d nodes (%d unreachable)", len(tree), skipped)
        return tree

    # -- lookups ------------------------------------------------------

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def get(self, node_id: NodeId) -> TreeNode:
        try:
            return self._index[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def find(self, node_id: NodeId) -> TreeNode | None:
        return self._index.get(node_id)

    def resolve_id(self, raw: object) -> NodeId | None:
        """Map an id as seen by the browser (often a string) to the typed id."""
        if raw in self._index:
            return raw  # type: ignore[return-value]
        text = str(raw)
        for node_id in self._index:
            if str(node_id) == text:
                return node_id
        return None

    def parent_of(self, node: TreeNode) -> TreeNode | None:
        return self._parent[node.id]

    def is_root(self, node: TreeNode) -> bool:
        return self._parent.get(node.id) is None

    def siblings_list(self, parent: TreeNode | None) -> list[TreeNode]:
        """The live child list of ``parent`` (the root list for ``None``)."""
        return self.roots if parent is None else parent.children

    def siblings_of(self, node: TreeNode) -> list[TreeNode]:
        return self.siblings_list(self.parent_of(node))

    def last_root(self, *, excluding: TreeNode | None = None) -> TreeNode | None:
        for root in reversed(self.roots):
            if root is not excluding:
                return root
        return None

    def iter_nodes(self) -> Iterator[TreeNode]:
        """Depth-first pre-order walk, i.e. visual top-to-bottom order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    # -- structural edits ---------------------------------------------

    def detach(self, node: TreeNode) -> int:
        """Remove ``node`` (with its subtree) from its sibling list.

        Returns the index it occupied. The node stays in the id index.
        """
        siblings = self.siblings_of(node)
        index = next(i for i, n in enumerate(siblings) if n is node)
        del siblings[index]
        self._parent[node.id] = None
        return index

    def insert(
        self, node: TreeNode, parent: TreeNode | None, index: int | None = None
    ) -> None:
        """Place ``node`` under ``parent`` at ``index`` (append when ``None``)."""
        siblings = self.siblings_list(parent)
        self._attach(node, parent, len(siblings) if index is None else index)
        stack = [node]
        while stack:
            current = stack.pop()
            for child in current.children:
                self._index[child.id] = child
                self._parent[child.id] = current
                stack.append(child)

    def _attach(self, node: TreeNode, parent: TreeNode | None, index: int) -> None:
        self.siblings_list(parent).insert(index, node)
        self._index[node.id] = node
        self._parent[node.id] = parent

    def renumber(self, parent: TreeNode | None) -> None:
        """Reassign dense ``order`` values 1..N to one sibling group."""
        for position, sibling in enumerate(self.siblings_list(parent), start=1):
            sibling.order = position


def _is_root_value(value: Any, store_root: Any) -> bool:
    if value is None or store_root is None:
        return value is store_root
    # Loose match so a -1 root also accepts "-1" coming from a text column.
    return value == store_root or str(value) == str(store_root)


# -- view model -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ViewRow:
    """Immutable render record for one node (the host's render contract)."""

    id: NodeId
    parent_id: Any
    order: int
    depth: int
    has_children: bool
    expanded: bool
    visible: bool
    payload: tuple[tuple[str, Any], ...] = ()

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True, slots=True)
class ViewDiff:
    added: tuple[NodeId, ...] = ()
    removed: tuple[NodeId, ...] = ()
    changed: tuple[NodeId, ...] = ()
    reordered: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed or self.reordered)


@dataclass(frozen=True, slots=True)
class TreeView:
    rows: tuple[ViewRow, ...] = field(default_factory=tuple)

    @property
    def ids(self) -> tuple[NodeId, ...]:
        return tuple(row.id for row in self.rows)

    def row(self, node_id: NodeId) -> ViewRow | None:
        return next((r for r in self.rows if r.id == node_id), None)


def snapshot(tree: RenderTree, is_expanded: Callable[[NodeId], bool]) -> TreeView:
    """Derive a fresh immutable view of the tree.

    Descendants of a collapsed node are kept but marked invisible so rows
    keep stable identities across expand/collapse.
    """
    rows: list[ViewRow] = []
    stack: list[tuple[TreeNode, bool]] = [
        (root, True) for root in reversed(tree.roots)
    ]
    while stack:
        node, visible = stack.pop()
        expanded = is_expanded(node.id)
        rows.append(
            ViewRow(
                id=node.id,
                parent_id=node.parent_id,
                order=node.order,
                depth=node.depth,
                has_children=node.has_children,
                expanded=expanded,
                visible=visible,
                payload=tuple(sorted(node.payload.items())),
            )
        )
        stack.extend((child, visible and expanded) for child in reversed(node.children))
    return TreeView(tuple(rows))


def diff_views(old: TreeView, new: TreeView) -> ViewDiff:
    """Compare two views by node identity."""
    old_rows = {row.id: row for row in old.rows}
    new_rows = {row.id: row for row in new.rows}
    added = tuple(i for i in new.ids if i not in old_rows)
    removed = tuple(i for i in old.ids if i not in new_rows)
    changed = tuple(
        i for i in new.ids if i in old_rows and old_rows[i] != new_rows[i]
    )
    kept_old = [i for i in old.ids if i in new_rows]
    kept_new = [i for i in new.ids if i in old_rows]
    return ViewDiff(
        added=added, removed=removed, changed=changed, reordered=kept_old != kept_new
    )
