"""Tests for drop classification against synthetic geometry."""

from __future__ import annotations

import pytest

from arborist.tree import HitboxPolicy, Operation, Point, Rect
from arborist.tree.hitbox import classify_drop, relative_offset

BOX = Rect(left=0, top=100, width=200, height=30)


def _at(y: float) -> Point:
    return Point(50, y)


class TestClassifyDrop:
    """Tests for classify_drop with the default three-way split."""

    @pytest.mark.parametrize(
        ("y", "expected"),
        [
            (100, Operation.REORDER_BEFORE),
            (109, Operation.REORDER_BEFORE),
            (110, Operation.COMBINE),
            (115, Operation.COMBINE),
            (119.9, Operation.COMBINE),
            (121, Operation.REORDER_AFTER),
            (130, Operation.REORDER_AFTER),
        ],
    )
    def test_thirds(self, y: float, expected: Operation) -> None:
        """Top third before, middle combine, bottom third after."""
        assert classify_drop(_at(y), BOX) is expected

    def test_pointer_above_box_clamps_to_before(self) -> None:
        """Positions outside the box clamp to the nearest edge."""
        assert classify_drop(_at(0), BOX) is Operation.REORDER_BEFORE

    def test_pointer_below_box_clamps_to_after(self) -> None:
        """Positions below the box count as the bottom edge."""
        assert classify_drop(_at(500), BOX) is Operation.REORDER_AFTER

    def test_zero_height_box_is_combine(self) -> None:
        """A collapsed box reports the middle."""
        assert classify_drop(_at(100), Rect(0, 100, 200, 0)) is Operation.COMBINE


class TestHitboxPolicy:
    """Tests for HitboxPolicy."""

    def test_custom_split(self) -> None:
        """Narrow reorder zones widen the combine zone."""
        policy = HitboxPolicy(before=0.1, after=0.1)
        assert classify_drop(_at(104), BOX, policy) is Operation.COMBINE
        assert classify_drop(_at(102), BOX, policy) is Operation.REORDER_BEFORE

    def test_halves_disable_combine(self) -> None:
        """before + after == 1 leaves no combine zone."""
        policy = HitboxPolicy(before=0.5, after=0.5)
        assert not policy.allows_combine
        ops = {classify_drop(_at(y), BOX, policy) for y in range(100, 131)}
        assert Operation.COMBINE not in ops

    @pytest.mark.parametrize(("before", "after"), [(-0.1, 0.2), (0.2, 1.5), (0.6, 0.6)])
    def test_rejects_invalid_fractions(self, before: float, after: float) -> None:
        """Fractions must fit in the box."""
        with pytest.raises(ValueError):
            HitboxPolicy(before=before, after=after)


class TestGeometry:
    """Tests for Rect helpers and relative_offset."""

    def test_relative_offset(self) -> None:
        """Offset is measured from the top of the box."""
        assert relative_offset(_at(115), BOX) == pytest.approx(0.5)

    def test_inset_never_negative(self) -> None:
        """Insetting a tiny box leaves an empty box, not a negative one."""
        shrunk = Rect(0, 0, 6, 6).inset(4)
        assert shrunk.width == 0
        assert shrunk.height == 0

    def test_bottom_and_right(self) -> None:
        """Derived edges."""
        assert BOX.bottom == 130
        assert BOX.right == 200
