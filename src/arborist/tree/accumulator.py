"""Immediate vs batched persistence of committed moves.

In immediate mode every committed intent goes straight to the move sink.
In batched mode intents queue up until ``save()``; ``cancel()`` drops the
queue and reloads, since optimistic edits cannot be undone in place.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from arborist.tree.types import MovesRejectedError, PersistMode

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from arborist.tree.types import MoveIntent

    MoveSink = Callable[[Sequence[MoveIntent]], Awaitable[object]]
    Reload = Callable[[], Awaitable[None]]

logger = logging.getLogger(__name__)


class ChangeAccumulator:
    """Holds the persistence mode and, when batched, the pending queue.

    ``on_dirty_change`` callbacks fire whenever the dirty flag flips; hosts
    use them to enable or disable their Save/Cancel affordances.
    """

    def __init__(
        self,
        sink: MoveSink,
        *,
        mode: PersistMode = PersistMode.IMMEDIATE,
        reload: Reload | None = None,
    ) -> None:
        self._sink = sink
        self._reload = reload
        self.mode = mode
        self._pending: list[MoveIntent] = []
        self._dirty = False
        self._dirty_callbacks: list[Callable[[bool], None]] = []

    @property
    def is_batched(self) -> bool:
        return self.mode is PersistMode.BATCHED

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def pending(self) -> tuple[MoveIntent, ...]:
        return tuple(self._pending)

    def on_dirty_change(self, callback: Callable[[bool], None]) -> None:
        self._dirty_callbacks.append(callback)

    def clear_callbacks(self) -> None:
        self._dirty_callbacks.clear()

    def _set_dirty(self, dirty: bool) -> None:
        if dirty == self._dirty:
            return
        self._dirty = dirty
        for callback in list(self._dirty_callbacks):
            callback(dirty)

    def stage(self, intent: MoveIntent) -> bool:
        """Queue ``intent`` in batched mode. Returns True if it was queued."""
        if not self.is_batched:
            return False
        self._pending.append(intent)
        logger.debug("Queued move %s (%d pending)", intent, len(self._pending))
        self._set_dirty(True)
        return True

    async def commit(self, intent: MoveIntent) -> None:
        """Persist now (immediate) or queue (batched)."""
        if self.stage(intent):
            return
        await self._sink([intent])

    async def save(self) -> int:
        """Send the whole queue, in order, as one batch.

        Returns the number of moves sent. On a store error the queue and the
        dirty flag are kept so the user can retry or cancel. A batch the
        store applied but partly refused is not retried: the queue is dropped
        and ``MovesRejectedError`` propagates.
        """
        if not self.is_batched or not self._pending:
            return 0
        batch = list(self._pending)
        try:
            await self._sink(batch)
        except MovesRejectedError:
            del self._pending[: len(batch)]
            self._set_dirty(bool(self._pending))
            raise
        del self._pending[: len(batch)]
        self._set_dirty(bool(self._pending))
        logger.info("Saved %d queued move(s)", len(batch))
        return len(batch)

    async def cancel(self) -> int:
        """Discard the queue and reload the persisted tree."""
        if not self.is_batched:
            return 0
        dropped = len(self._pending)
        self._pending.clear()
        self._set_dirty(False)
        logger.info("Discarded %d queued move(s)", dropped)
        if self._reload is not None:
            await self._reload()
        return dropped
