"""Per-node expand/collapse state for one tree view."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arborist.tree.types import NodeId


class ExpansionState:
    """Boolean per node id, falling back to a configurable default."""

    def __init__(self, default_expanded: bool = True) -> None:
        self.default_expanded = default_expanded
        self._state: dict[NodeId, bool] = {}

    def is_expanded(self, node_id: NodeId) -> bool:
        return self._state.get(node_id, self.default_expanded)

    def toggle(self, node_id: NodeId) -> bool:
        expanded = not self.is_expanded(node_id)
        self._state[node_id] = expanded
        return expanded

    def set_all(self, expanded: bool) -> None:
        """Expand or collapse every node, including ones loaded later."""
        self._state.clear()
        self.default_expanded = expanded
