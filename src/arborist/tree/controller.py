"""Per-view owner of the client-side tree engine.

A ``TreeController`` is constructed when a tree view mounts and closed when
it unmounts. It wires the drag session, the optimistic mutator and the
change accumulator together, and publishes immutable ``TreeView`` snapshots
(with a diff against the previous one) to the host for rendering.

Persistence runs in background tasks so dragging never waits on the store.
Republishing the view is deferred by a short settle delay and never happens
mid-gesture.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from arborist.tree.accumulator import ChangeAccumulator
from arborist.tree.builder import RenderTree, TreeView, diff_views, snapshot
from arborist.tree.expansion import ExpansionState
from arborist.tree.hitbox import DEFAULT_POLICY, HitboxPolicy
from arborist.tree.interaction import DragSession
from arborist.tree.mutator import apply_move
from arborist.tree.processor import MoveOutcome, MoveProcessor
from arborist.tree.types import (
    CLIENT_ROOT,
    InvalidMoveError,
    MovesRejectedError,
    PersistMode,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from arborist.config import TreeConfig
    from arborist.tree.builder import ViewDiff
    from arborist.tree.hitbox import Point, Rect
    from arborist.tree.interaction import DragPayload, HitTarget, Hover
    from arborist.tree.query import TreeQuery
    from arborist.tree.types import MoveIntent, NodeId

    ViewListener = Callable[[TreeView, ViewDiff], None]
    ErrorListener = Callable[[BaseException], None]
    MoveSink = Callable[[Sequence[MoveIntent]], Awaitable[object]]

logger = logging.getLogger(__name__)


class TreeController:
    def __init__(
        self,
        query: TreeQuery,
        *,
        sink: MoveSink | None = None,
        mode: PersistMode = PersistMode.IMMEDIATE,
        max_depth: int | None = 10,
        policy: HitboxPolicy = DEFAULT_POLICY,
        default_expanded: bool = True,
        settle_delay: float = 0.05,
        client_root_marker: Any = CLIENT_ROOT,
    ) -> None:
        self.query = query
        self.max_depth = max_depth
        self.settle_delay = settle_delay
        self.client_root_marker = client_root_marker
        self.sink: MoveSink = sink or MoveProcessor(
            query, client_root_marker=client_root_marker, max_depth=max_depth
        )
        self.expansion = ExpansionState(default_expanded)
        self.tree = RenderTree(root_marker=client_root_marker)
        self.session = DragSession(self.tree, max_depth=max_depth, policy=policy)
        self.accumulator = ChangeAccumulator(
            self._persist, mode=mode, reload=self.load
        )
        self.view = TreeView()

        self._view_listeners: list[ViewListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._persist_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._settle_task: asyncio.Task[None] | None = None
        self._reload_task: asyncio.Task[None] | None = None
        self._needs_refresh = False
        self._closed = False

    @classmethod
    def from_config(
        cls, query: TreeQuery, config: TreeConfig, **kwargs: Any
    ) -> TreeController:
        """Build a controller from the ``TREE__*`` settings."""
        return cls(
            query,
            mode=PersistMode.IMMEDIATE if config.auto_save else PersistMode.BATCHED,
            max_depth=config.max_depth,
            policy=HitboxPolicy(config.hitbox_before, config.hitbox_after),
            default_expanded=config.default_expanded,
            settle_delay=config.settle_delay,
            client_root_marker=config.client_root_marker,
            **kwargs,
        )

    # -- subscriptions --------------------------------------------------

    def on_view(self, listener: ViewListener) -> None:
        self._view_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def on_dirty_change(self, listener: Callable[[bool], None]) -> None:
        self.accumulator.on_dirty_change(listener)

    @property
    def dirty(self) -> bool:
        return self.accumulator.dirty

    @property
    def is_batched(self) -> bool:
        return self.accumulator.is_batched

    # -- loading and publishing ------------------------------------------

    async def load(self) -> TreeView:
        """(Re)load the persisted tree, discarding all optimistic state."""
        records = await self.query.fetch_all()
        self.session.cancel()
        self.tree = RenderTree.from_records(
            records,
            store_root=self.query.root_value,
            root_marker=self.client_root_marker,
        )
        self.session.rebind(self.tree)
        self._needs_refresh = False
        return self._publish()

    def _publish(self) -> TreeView:
        new_view = snapshot(self.tree, self.expansion.is_expanded)
        diff = diff_views(self.view, new_view)
        self.view = new_view
        if not diff.is_empty:
            for listener in list(self._view_listeners):
                listener(new_view, diff)
        return new_view

    # -- drag gestures ----------------------------------------------------

    def resolve(self, raw_id: object) -> NodeId | None:
        return self.tree.resolve_id(raw_id)

    def start_drag(self, node_id: NodeId) -> DragPayload:
        return self.session.start(node_id)

    def hover(self, chain: Sequence[HitTarget], pointer: Point) -> Hover | None:
        return self.session.hover(chain, pointer)

    def hover_target(
        self, target_id: NodeId, pointer: Point, bounds: Rect
    ) -> Hover | None:
        return self.session.hover_target(target_id, pointer, bounds)

    def hover_end_zone(self, bounds: Rect) -> Hover:
        return self.session.hover_end_zone(bounds)

    def leave(self, target_id: NodeId | str | None = None) -> None:
        self.session.leave(target_id)

    def cancel_drag(self) -> None:
        self.session.cancel()
        if self._needs_refresh:
            self._schedule_settle()

    def drop(self) -> MoveIntent | None:
        """Finish the gesture: mutate optimistically, then persist or queue.

        Runs synchronously so a ``dragend`` handled right after the drop
        finds the session already finished.
        """
        if not self.session.is_dragging:
            return None
        intent = self.session.drop()
        if intent is None:
            if self._needs_refresh:
                self._schedule_settle()
            return None
        try:
            changed = apply_move(self.tree, intent, max_depth=self.max_depth)
        except InvalidMoveError:
            logger.warning("Discarding invalid move %s", intent, exc_info=True)
            changed = False
        finally:
            self.session.finish()
        if not changed:
            return None

        self._needs_refresh = True
        if not self.accumulator.stage(intent):
            self._spawn(self.accumulator.commit(intent))
        self._schedule_settle()
        return intent

    # -- save / cancel / expansion ---------------------------------------

    async def save(self) -> int:
        """Send queued moves. A refused move reloads the tree and re-raises."""
        try:
            return await self.accumulator.save()
        except MovesRejectedError:
            await self.load()
            raise

    async def cancel(self) -> int:
        return await self.accumulator.cancel()

    def toggle(self, node_id: NodeId) -> bool:
        expanded = self.expansion.toggle(node_id)
        self._publish()
        return expanded

    def expand_all(self) -> None:
        self.expansion.set_all(True)
        self._publish()

    def collapse_all(self) -> None:
        self.expansion.set_all(False)
        self._publish()

    # -- background work --------------------------------------------------

    async def _persist(self, intents: Sequence[MoveIntent]) -> object:
        # One client never interleaves two of its own persistence calls.
        async with self._persist_lock:
            outcomes = await self.sink(intents)
        if isinstance(outcomes, list):
            rejected = [
                intent
                for intent, outcome in zip(intents, outcomes, strict=False)
                if outcome == MoveOutcome.REJECTED
            ]
            if rejected:
                raise MovesRejectedError(rejected)
        return outcomes

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Persisting tree move failed", exc_info=exc)
        for listener in list(self._error_listeners):
            listener(exc)
        if not self._closed:
            self._reload_task = asyncio.ensure_future(self._reload())

    async def _reload(self) -> None:
        try:
            await self.load()
        except Exception:
            logger.exception("Reloading the tree after a failed move failed")

    def _schedule_settle(self) -> None:
        if self._closed:
            return
        if self._settle_task is not None and not self._settle_task.done():
            self._settle_task.cancel()
        self._settle_task = asyncio.ensure_future(self._settle())

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_delay)
        if self.session.is_dragging or not self._needs_refresh:
            return
        self._needs_refresh = False
        self._publish()

    async def wait_idle(self) -> None:
        """Wait for persistence, any reload it triggers, and the settle step."""
        while True:
            pending = [
                task
                for task in (*self._tasks, self._settle_task, self._reload_task)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
            await asyncio.sleep(0)

    async def close(self) -> None:
        """Release listeners and background work (view unmounted)."""
        self._closed = True
        self.session.cancel()
        for task in (self._settle_task, self._reload_task):
            if task is not None:
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._view_listeners.clear()
        self._error_listeners.clear()
        self.accumulator.clear_callbacks()
