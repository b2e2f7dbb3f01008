"""Builders for small test trees.

Trees are written as nested dicts of ``name -> children``; the names double
as node ids and dict order gives sibling order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from arborist.tree import CLIENT_ROOT, InMemoryTreeQuery, NodeRecord, RenderTree

if TYPE_CHECKING:
    from collections.abc import Iterable

Shape = dict[str, "Shape"]


def records_from(shape: Shape, *, root: Any = None) -> list[NodeRecord]:
    """Flatten a shape into records with dense 1-based orders."""
    records: list[NodeRecord] = []
    stack: list[tuple[Shape, Any]] = [(shape, root)]
    while stack:
        children, parent = stack.pop()
        for order, (name, grandchildren) in enumerate(children.items(), start=1):
            records.append(NodeRecord(name, parent, order, {"name": name}))
            stack.append((grandchildren, name))
    return records


def tree_from(shape: Shape, *, root_marker: Any = CLIENT_ROOT) -> RenderTree:
    return RenderTree.from_records(records_from(shape), root_marker=root_marker)


def query_from(shape: Shape, *, root: Any = None) -> InMemoryTreeQuery:
    return InMemoryTreeQuery(records_from(shape, root=root), root_value=root)


def outline(tree: RenderTree) -> list[str]:
    """Visual top-to-bottom listing, two spaces of indent per depth level."""
    return [f"{'  ' * node.depth}{node.id}" for node in tree.iter_nodes()]


def record_outline(records: Iterable[NodeRecord], *, root: Any = None) -> list[str]:
    """Same listing as ``outline`` but built from stored records.

    Sibling groups are ordered by ``(order, id)``, as the store returns them.
    """
    children: dict[Any, list[NodeRecord]] = {}
    for record in records:
        children.setdefault(record.parent_id, []).append(record)
    for group in children.values():
        group.sort(key=lambda r: (r.order, str(r.id)))

    lines: list[str] = []
    stack = [(record, 0) for record in reversed(children.get(root, []))]
    while stack:
        record, depth = stack.pop()
        lines.append(f"{'  ' * depth}{record.id}")
        kids = children.get(record.id, [])
        stack.extend((child, depth + 1) for child in reversed(kids))
    return lines


def orders_by_parent(records: Iterable[NodeRecord]) -> dict[Any, list[int]]:
    groups: dict[Any, list[int]] = {}
    for record in records:
        groups.setdefault(record.parent_id, []).append(record.order)
    return {parent: sorted(orders) for parent, orders in groups.items()}


def chain(depth: int, *, prefix: str = "n") -> Shape:
    """A single path of ``depth + 1`` nodes: n0 > n1 > ... > n{depth}."""
    shape: Shape = {}
    for level in reversed(range(depth + 1)):
        shape = {f"{prefix}{level}": shape}
    return shape
