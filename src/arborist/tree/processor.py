"""Server-side application of move intents to the store.

Each move reassigns the node's parent, then rewrites a dense ``1..N`` order
for the sibling group it left and the group it joined. Moves of one batch
run strictly one after another inside a single unit of work: later moves
may reference siblings positioned by earlier ones.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from arborist.tree.types import CLIENT_ROOT, MoveIntent, Position, is_client_root

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence

    from arborist.tree.query import TreeQuery
    from arborist.tree.types import NodeId, NodeRecord

    MovesListener = Callable[[Sequence[MoveIntent]], Awaitable[None]]

logger = logging.getLogger(__name__)


class MoveOutcome(StrEnum):
    MOVED = "moved"
    APPENDED = "appended"
    """Moved, but the reference sibling was gone so it was placed last."""
    SKIPPED = "skipped"
    """The node no longer exists."""
    REJECTED = "rejected"
    """Refused on re-validation: a cycle, a missing parent or, for inside
    moves, the depth bound."""


class MoveProcessor:
    """Applies ``MoveIntent`` batches through a ``TreeQuery``.

    ``max_depth`` enables depth re-validation of ``inside`` moves against the
    full persisted tree. Reorders keep their nesting level and are not
    depth-checked. Cycles are always re-checked. Listeners are awaited after
    every successful batch (the "tree reordered" notification).
    """

    def __init__(
        self,
        query: TreeQuery,
        *,
        client_root_marker: Any = CLIENT_ROOT,
        max_depth: int | None = None,
        listeners: Iterable[MovesListener] = (),
    ) -> None:
        self.query = query
        self.client_root_marker = client_root_marker
        self.max_depth = max_depth
        self._listeners: list[MovesListener] = list(listeners)

    def add_listener(self, listener: MovesListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MovesListener) -> None:
        self._listeners.remove(listener)

    async def submit_moves(
        self, moves: Sequence[MoveIntent | Mapping[str, Any]]
    ) -> list[MoveOutcome]:
        """Process ``moves`` in order as one batch.

        Host payloads (``nodeId``, ``newParentId``, ``position``,
        ``referenceId``) are accepted alongside ``MoveIntent`` objects; a
        malformed payload raises ``InvalidMoveError`` before anything is
        written. Store errors propagate unchanged and abort the whole batch.
        """
        if not moves:
            return []
        intents = [self._intent(move) for move in moves]
        outcomes: list[MoveOutcome] = []
        async with self.query.batch():
            for intent in intents:
                outcomes.append(await self.process(intent))
        logger.info(
            "Processed %d move(s): %s",
            len(intents),
            ", ".join(outcome.value for outcome in outcomes),
        )
        for listener in list(self._listeners):
            await listener(intents)
        return outcomes

    async def __call__(
        self, moves: Sequence[MoveIntent | Mapping[str, Any]]
    ) -> list[MoveOutcome]:
        return await self.submit_moves(moves)

    def _intent(self, move: MoveIntent | Mapping[str, Any]) -> MoveIntent:
        if isinstance(move, MoveIntent):
            return move
        return MoveIntent.from_payload(move, root_marker=self.client_root_marker)

    async def process(self, intent: MoveIntent) -> MoveOutcome:
        record = await self.query.fetch_by_id(intent.node_id)
        if record is None:
            logger.info("Move of %r skipped: node not found", intent.node_id)
            return MoveOutcome.SKIPPED

        new_parent = self._store_parent(intent.new_parent_id)
        if not await self._parent_is_valid(record, new_parent, intent.position):
            return MoveOutcome.REJECTED

        old_parent = record.parent_id
        await self.query.save(replace(record, parent_id=new_parent))

        if old_parent != new_parent:
            await self._renumber(await self.query.fetch_siblings(old_parent))

        return await self._place(intent, new_parent)

    def _store_parent(self, client_parent: Any) -> Any:
        if is_client_root(client_parent, self.client_root_marker):
            return self.query.root_value
        return client_parent

    def _is_store_root(self, value: Any) -> bool:
        return value == self.query.root_value

    async def _parent_is_valid(
        self, record: NodeRecord, new_parent: Any, position: Position
    ) -> bool:
        if self._is_store_root(new_parent):
            return True
        if new_parent == record.id:
            logger.warning("Move of %r rejected: node cannot parent itself", record.id)
            return False

        records = {r.id: r for r in await self.query.fetch_all()}
        if new_parent not in records:
            logger.warning(
                "Move of %r rejected: parent %r not found", record.id, new_parent
            )
            return False

        ancestors = self._ancestors(new_parent, records)
        if record.id in ancestors:
            logger.warning(
                "Move of %r rejected: %r is its descendant", record.id, new_parent
            )
            return False

        if self.max_depth is not None and position is Position.INSIDE:
            parent_depth = len(ancestors)
            moving_depth = self._subtree_depth(record.id, records.values())
            if parent_depth + 1 + moving_depth >= self.max_depth:
                logger.warning(
                    "Move of %r rejected: depth bound %d exceeded",
                    record.id,
                    self.max_depth,
                )
                return False
        return True

    def _ancestors(
        self, node_id: NodeId, records: dict[NodeId, NodeRecord]
    ) -> list[NodeId]:
        """Ids from ``node_id``'s parent up to its root."""
        chain: list[NodeId] = []
        seen = {node_id}
        current = records[node_id].parent_id
        while not self._is_store_root(current) and current in records:
            if current in seen:
                break
            seen.add(current)
            chain.append(current)
            current = records[current].parent_id
        return chain

    @staticmethod
    def _subtree_depth(node_id: NodeId, records: Iterable[NodeRecord]) -> int:
        children: dict[Any, list[NodeId]] = {}
        for r in records:
            children.setdefault(r.parent_id, []).append(r.id)
        deepest = 0
        stack = [(child, 1) for child in children.get(node_id, [])]
        seen: set[NodeId] = {node_id}
        while stack:
            current, level = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            deepest = max(deepest, level)
            stack.extend((c, level + 1) for c in children.get(current, []))
        return deepest

    async def _place(self, intent: MoveIntent, new_parent: Any) -> MoveOutcome:
        siblings = await self.query.fetch_siblings(new_parent)
        moved = next((s for s in siblings if s.id == intent.node_id), None)
        others = [s for s in siblings if s.id != intent.node_id]
        outcome = MoveOutcome.MOVED

        reference = None
        if intent.position is not Position.INSIDE and intent.reference_id is not None:
            reference = next((s for s in others if s.id == intent.reference_id), None)
            if reference is None:
                logger.info(
                    "Reference %r of move %r is gone; appending",
                    intent.reference_id,
                    intent.node_id,
                )
                outcome = MoveOutcome.APPENDED

        if moved is None:
            # Out of scope of the base query: nothing to position.
            await self._renumber(others)
            return outcome

        if reference is None:
            ordered = [*others, moved]
        else:
            ordered = []
            for sibling in others:
                if intent.position is Position.BEFORE and sibling is reference:
                    ordered.append(moved)
                ordered.append(sibling)
                if intent.position is Position.AFTER and sibling is reference:
                    ordered.append(moved)

        await self._renumber(ordered)
        return outcome

    async def _renumber(self, ordered: Sequence[NodeRecord]) -> None:
        for position, record in enumerate(ordered, start=1):
            if record.order != position:
                await self.query.save(replace(record, order=position))
