"""Pointer hit-testing against a drop target's bounding box.

``classify_drop`` is independent of any rendering technology: it takes a
pointer position and the target's bounds in the same coordinate space and
returns the drop operation the pointer implies.
"""

from __future__ import annotations

from dataclasses import dataclass

from arborist.tree.types import Operation


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned bounding box (``top`` grows downwards, as in the DOM)."""

    left: float
    top: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    def inset(self, amount: float) -> Rect:
        """Shrink the box by ``amount`` on every side (never below zero size)."""
        return Rect(
            left=self.left + amount,
            top=self.top + amount,
            width=max(self.width - 2 * amount, 0.0),
            height=max(self.height - 2 * amount, 0.0),
        )


@dataclass(frozen=True, slots=True)
class HitboxPolicy:
    """Vertical zone split of a drop target.

    ``before`` is the fraction of the height (from the top) that means
    reorder-before, ``after`` the fraction (from the bottom) that means
    reorder-after; whatever remains in the middle means combine. The
    default is an even three-way split.
    """

    before: float = 1 / 3
    after: float = 1 / 3

    def __post_init__(self) -> None:
        if not (0.0 <= self.before <= 1.0 and 0.0 <= self.after <= 1.0):
            msg = f"Hitbox fractions must be within [0, 1]: {self!r}"
            raise ValueError(msg)
        if self.before + self.after > 1.0 + 1e-9:
            msg = f"Hitbox before + after must not exceed 1: {self!r}"
            raise ValueError(msg)

    @property
    def allows_combine(self) -> bool:
        return self.before + self.after < 1.0


DEFAULT_POLICY = HitboxPolicy()


def relative_offset(pointer: Point, bounds: Rect) -> float:
    """Pointer height within ``bounds`` as a fraction, clamped to [0, 1]."""
    if bounds.height <= 0:
        return 0.5
    fraction = (pointer.y - bounds.top) / bounds.height
    return min(max(fraction, 0.0), 1.0)


def classify_drop(
    pointer: Point, bounds: Rect, policy: HitboxPolicy = DEFAULT_POLICY
) -> Operation:
    fraction = relative_offset(pointer, bounds)
    if fraction < policy.before:
        return Operation.REORDER_BEFORE
    if fraction >= 1.0 - policy.after:
        return Operation.REORDER_AFTER
    return Operation.COMBINE
