"""The Tree Query interface the engine consumes, plus an in-memory version.

Implementations are scoped to a base query chosen by the host, so a tree
view may be restricted to a subset of the stored nodes.
"""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from arborist.tree.types import NodeRecord

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from arborist.tree.types import NodeId


@runtime_checkable
class TreeQuery(Protocol):
    """Store access used by the loader and the move processor."""

    @property
    def root_value(self) -> Any:
        """The store's encoding of "no parent" (``None``, ``-1``, ``0`` ...)."""
        ...

    async def fetch_all(self) -> list[NodeRecord]:
        """All nodes in scope, ordered by ``(order, id)``."""
        ...

    async def fetch_by_id(self, node_id: NodeId) -> NodeRecord | None: ...

    async def fetch_siblings(self, parent_id: Any) -> list[NodeRecord]:
        """Nodes whose parent is ``parent_id``, ordered by ``(order, id)``."""
        ...

    async def save(self, record: NodeRecord) -> None:
        """Persist ``record``'s parent and order."""
        ...

    def batch(self) -> Any:
        """Async context manager grouping calls into one unit of work."""
        ...


def sort_key(record: NodeRecord) -> tuple[int, str]:
    # Ids are compared as text so mixed int/UUID keys cannot raise.
    return (record.order, str(record.id))


class InMemoryTreeQuery:
    """Dict-backed Tree Query.

    Used by tests and the demo page when no database is configured. A
    ``batch()`` works on a copy and only publishes it on success, so a
    failure part-way through leaves the data untouched.
    """

    def __init__(
        self,
        records: Iterable[NodeRecord] = (),
        *,
        root_value: Any = None,
        scope: Callable[[NodeRecord], bool] | None = None,
    ) -> None:
        self._root_value = root_value
        self._scope = scope
        self._rows: dict[NodeId, NodeRecord] = {r.id: r for r in records}
        self._pending: dict[NodeId, NodeRecord] | None = None
        self.save_count = 0

    @property
    def root_value(self) -> Any:
        return self._root_value

    @property
    def _data(self) -> dict[NodeId, NodeRecord]:
        return self._rows if self._pending is None else self._pending

    def _in_scope(self, record: NodeRecord) -> bool:
        return self._scope is None or self._scope(record)

    async def fetch_all(self) -> list[NodeRecord]:
        return sorted(
            (r for r in self._data.values() if self._in_scope(r)), key=sort_key
        )

    async def fetch_by_id(self, node_id: NodeId) -> NodeRecord | None:
        record = self._data.get(node_id)
        if record is None or not self._in_scope(record):
            return None
        return record

    async def fetch_siblings(self, parent_id: Any) -> list[NodeRecord]:
        return sorted(
            (
                r
                for r in self._data.values()
                if r.parent_id == parent_id and self._in_scope(r)
            ),
            key=sort_key,
        )

    async def save(self, record: NodeRecord) -> None:
        self._data[record.id] = record
        self.save_count += 1

    @asynccontextmanager
    async def batch(self) -> AsyncIterator[None]:
        if self._pending is not None:
            yield
            return
        self._pending = copy.copy(self._rows)
        try:
            yield
        except BaseException:
            self._pending = None
            raise
        self._rows, self._pending = self._pending, None

    # Storage-side helpers (not part of the engine interface).

    def delete(self, node_id: NodeId) -> list[NodeId]:
        """Delete ``node_id`` and, transitively, all of its descendants.

        The remaining siblings of ``node_id`` are renumbered ``1..N``.
        Returns the deleted ids, ``node_id`` first.
        """
        record = self._rows.get(node_id)
        if record is None:
            return []
        doomed = [node_id]
        frontier = [node_id]
        while frontier:
            current = frontier.pop()
            children = [r.id for r in self._rows.values() if r.parent_id == current]
            doomed.extend(children)
            frontier.extend(children)
        for doomed_id in doomed:
            self._rows.pop(doomed_id, None)

        siblings = sorted(
            (r for r in self._rows.values() if r.parent_id == record.parent_id),
            key=sort_key,
        )
        for order, sibling in enumerate(siblings, start=1):
            if sibling.order != order:
                self._rows[sibling.id] = replace(sibling, order=order)
        return doomed

    def get(self, node_id: NodeId) -> NodeRecord | None:
        return self._rows.get(node_id)
