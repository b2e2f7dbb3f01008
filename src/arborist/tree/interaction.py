"""Drag lifecycle for one tree view.

Phases run ``IDLE -> DRAGGING -> (HOVERING)* -> DROPPED -> IDLE``, with
``cancel()`` returning to ``IDLE`` from anywhere without side effects. The
session only decides; it never mutates the tree. A successful drop yields a
``MoveIntent`` for the mutator and the change accumulator.

Callbacks are synchronous and single-threaded: at most one drag is active
per session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from arborist.tree.hitbox import DEFAULT_POLICY, Point, Rect, classify_drop
from arborist.tree.types import DragStateError, MoveIntent, Operation, Position
from arborist.tree.validator import OperationState, operation_states

if TYPE_CHECKING:
    from collections.abc import Sequence

    from arborist.tree.builder import RenderTree
    from arborist.tree.hitbox import HitboxPolicy
    from arborist.tree.types import NodeId

logger = logging.getLogger(__name__)

END_ZONE = "__drop_at_end__"
"""Target key of the always-present root-level drop-at-end zone."""


class DragPhase(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING = "hovering"
    DROPPED = "dropped"


class IndicatorKind(StrEnum):
    LINE_BEFORE = "line-before"
    LINE_AFTER = "line-after"
    OUTLINE = "outline"
    END_LINE = "end-line"


@dataclass(frozen=True, slots=True)
class DragPayload:
    """Captured once at drag start; never re-derived during the drag."""

    id: NodeId
    depth: int
    parent_id: Any


@dataclass(frozen=True, slots=True)
class HitTarget:
    target_id: NodeId
    bounds: Rect


@dataclass(frozen=True, slots=True)
class DropIndicator:
    """Where and how to draw the drop-position marker.

    ``rect`` is in the same coordinate space as the target bounds passed to
    the session. Blocked operations are still shown, in the danger colour.
    """

    kind: IndicatorKind
    rect: Rect
    blocked: bool = False

    LINE_THICKNESS = 3.0
    LINE_GAP = 3.0
    OUTLINE_INSET = 4.0

    @property
    def color(self) -> str:
        return "danger" if self.blocked else "primary"

    def style(self) -> dict[str, str]:
        """CSS declarations for a fixed-position overlay element."""
        color = f"var(--arborist-{self.color})"
        style = {
            "left": f"{self.rect.left}px",
            "top": f"{self.rect.top}px",
            "width": f"{self.rect.width}px",
            "height": f"{self.rect.height}px",
        }
        if self.kind is IndicatorKind.OUTLINE:
            style |= {
                "background-color": "transparent",
                "border": f"3px dashed {color}",
                "border-radius": "8px",
            }
        else:
            style |= {
                "background-color": color,
                "border": "none",
                "border-radius": "3px",
            }
        if self.kind is IndicatorKind.END_LINE:
            style["box-shadow"] = f"0 0 8px {color}"
        return style


def indicator_for(
    operation: Operation, bounds: Rect, *, blocked: bool
) -> DropIndicator:
    """Geometry of the marker for ``operation`` over a target box."""
    thickness = DropIndicator.LINE_THICKNESS
    if operation is Operation.COMBINE:
        return DropIndicator(
            IndicatorKind.OUTLINE, bounds.inset(DropIndicator.OUTLINE_INSET), blocked
        )
    if operation is Operation.REORDER_BEFORE:
        top = bounds.top - DropIndicator.LINE_GAP - thickness
        kind = IndicatorKind.LINE_BEFORE
    else:
        top = bounds.bottom + DropIndicator.LINE_GAP
        kind = IndicatorKind.LINE_AFTER
    line = Rect(bounds.left, top, bounds.width, thickness)
    return DropIndicator(kind, line, blocked)


def end_zone_indicator(bounds: Rect) -> DropIndicator:
    return DropIndicator(
        IndicatorKind.END_LINE,
        Rect(bounds.left, bounds.top, bounds.width, DropIndicator.LINE_THICKNESS),
    )


@dataclass(frozen=True, slots=True)
class Hover:
    """Result of hit-testing the pointer against the nearest target."""

    target_id: NodeId | str
    operation: Operation
    states: dict[Operation, OperationState] = field(default_factory=dict)
    indicator: DropIndicator | None = None

    @property
    def blocked(self) -> bool:
        return self.states.get(self.operation) is OperationState.BLOCKED


class DragSession:
    """Owns the drag state of one tree view (no module-level state)."""

    def __init__(
        self,
        tree: RenderTree,
        *,
        max_depth: int | None = 10,
        policy: HitboxPolicy = DEFAULT_POLICY,
    ) -> None:
        self.tree = tree
        self.max_depth = max_depth
        self.policy = policy
        self._phase = DragPhase.IDLE
        self._payload: DragPayload | None = None
        self._hover: Hover | None = None

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def is_dragging(self) -> bool:
        return self._phase in (DragPhase.DRAGGING, DragPhase.HOVERING)

    @property
    def payload(self) -> DragPayload | None:
        return self._payload

    @property
    def hover_state(self) -> Hover | None:
        return self._hover

    def rebind(self, tree: RenderTree) -> None:
        """Point the session at a freshly loaded tree (only while idle)."""
        if self.is_dragging:
            msg = "Cannot swap the tree during a drag"
            raise DragStateError(msg)
        self.tree = tree

    def start(self, node_id: NodeId) -> DragPayload:
        if self._phase is not DragPhase.IDLE:
            msg = f"Cannot start a drag while {self._phase.value}"
            raise DragStateError(msg)
        node = self.tree.get(node_id)
        self._payload = DragPayload(
            id=node.id, depth=node.depth, parent_id=node.parent_id
        )
        self._hover = None
        self._phase = DragPhase.DRAGGING
        logger.debug("Drag start: %r", node.id)
        return self._payload

    def hover(self, chain: Sequence[HitTarget], pointer: Point) -> Hover | None:
        """Hit-test the pointer against the nearest enclosing target.

        ``chain`` lists the drop targets under the pointer, innermost first;
        only the first one counts.
        """
        self._require_dragging("hover")
        if not chain:
            self.leave()
            return None
        nearest = chain[0]
        target = self.tree.find(nearest.target_id)
        if target is None:
            self.leave()
            return None
        source = self.tree.get(self._payload.id)  # type: ignore[union-attr]
        states = operation_states(source, target, self.max_depth)
        operation = classify_drop(pointer, nearest.bounds, self.policy)
        blocked = states[operation] is OperationState.BLOCKED
        self._hover = Hover(
            target_id=target.id,
            operation=operation,
            states=states,
            indicator=indicator_for(operation, nearest.bounds, blocked=blocked),
        )
        self._phase = DragPhase.HOVERING
        return self._hover

    def hover_target(
        self, target_id: NodeId, pointer: Point, bounds: Rect
    ) -> Hover | None:
        return self.hover([HitTarget(target_id, bounds)], pointer)

    def hover_end_zone(self, bounds: Rect) -> Hover:
        """Pointer is over the root-level drop-at-end zone."""
        self._require_dragging("hover the end zone")
        self._hover = Hover(
            target_id=END_ZONE,
            operation=Operation.REORDER_AFTER,
            states={Operation.REORDER_AFTER: OperationState.AVAILABLE},
            indicator=end_zone_indicator(bounds),
        )
        self._phase = DragPhase.HOVERING
        return self._hover

    def leave(self, target_id: NodeId | str | None = None) -> None:
        """Pointer left a target; ignore stale leaves from other targets."""
        if not self.is_dragging:
            return
        if (
            target_id is not None
            and self._hover is not None
            and self._hover.target_id != target_id
        ):
            return
        self._hover = None
        self._phase = DragPhase.DRAGGING

    def drop(self) -> MoveIntent | None:
        """Finish the gesture and build the resulting intent.

        Returns None (and returns to idle) when released outside every
        target or over a blocked operation.
        """
        self._require_dragging("drop")
        hover, payload = self._hover, self._payload
        if hover is None or payload is None:
            logger.debug("Drop outside any target, cancelling")
            self.cancel()
            return None
        if hover.blocked:
            logger.debug(
                "Drop blocked: %s %r onto %r",
                hover.operation.value,
                payload.id,
                hover.target_id,
            )
            self.cancel()
            return None

        intent = self._build_intent(payload, hover)
        self._phase = DragPhase.DROPPED
        self._hover = None
        logger.debug("Drop: %s", intent)
        return intent

    def finish(self) -> None:
        """Return to idle after the caller has consumed a dropped intent."""
        if self._phase is not DragPhase.DROPPED:
            msg = f"Nothing to finish while {self._phase.value}"
            raise DragStateError(msg)
        self._reset()

    def cancel(self) -> None:
        if self._phase is not DragPhase.IDLE:
            logger.debug("Drag cancelled")
        self._reset()

    def _reset(self) -> None:
        self._phase = DragPhase.IDLE
        self._payload = None
        self._hover = None

    def _require_dragging(self, action: str) -> None:
        if not self.is_dragging:
            msg = f"Cannot {action} while {self._phase.value}"
            raise DragStateError(msg)

    def _build_intent(self, payload: DragPayload, hover: Hover) -> MoveIntent:
        if hover.target_id == END_ZONE:
            source = self.tree.get(payload.id)
            last = self.tree.last_root(excluding=source)
            return MoveIntent(
                node_id=payload.id,
                new_parent_id=self.tree.root_marker,
                position=Position.AFTER,
                reference_id=None if last is None else last.id,
            )

        target = self.tree.get(hover.target_id)
        if hover.operation is Operation.COMBINE:
            return MoveIntent(
                node_id=payload.id,
                new_parent_id=target.id,
                position=Position.INSIDE,
            )
        return MoveIntent(
            node_id=payload.id,
            new_parent_id=target.parent_id,
            position=hover.operation.position,
            reference_id=target.id,
        )
