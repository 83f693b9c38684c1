"""Tests for the drag-and-drop interaction controller."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from stagecue.engine.interaction import (
    DraggingMark,
    DraggingSegment,
    Idle,
    InteractionController,
    InteractionError,
)
from stagecue.engine.ledger import OrderViolation, TimeAssignmentLedger
from stagecue.models.schema import AssignmentTarget, Mark, Segment


@pytest.fixture
def ledger() -> TimeAssignmentLedger:
    return TimeAssignmentLedger(
        [
            Segment(id="ranged", start=10, end=20),
            Segment(id="open", start=30),
            Segment(id="loose"),
        ]
    )


def start_of(segment_id: str) -> AssignmentTarget:
    return AssignmentTarget(kind="part", segment_id=segment_id, boundary="start")


class TestSegmentDrag:
    """Tests for dragging segments."""

    def test_drop_keeps_duration(self, ledger: TimeAssignmentLedger) -> None:
        """Grabbing 3s into the segment and dropping moves both boundaries."""
        controller = InteractionController(ledger)
        state = controller.begin_segment_drag("part", "ranged", grab_time=13.0)

        assert isinstance(state, DraggingSegment)
        assert state.offset == 3.0
        assert state.duration == 10.0

        controller.drop_segment(43.0)

        assert ledger.effective_time(start_of("ranged")) == 40.0
        assert ledger.effective_time(start_of("ranged").opposite()) == 50.0
        assert isinstance(controller.state, Idle)

    def test_preview(self, ledger: TimeAssignmentLedger) -> None:
        """The preview shows where the drop would land, clamped at zero."""
        controller = InteractionController(ledger)
        controller.begin_segment_drag("part", "ranged", grab_time=15.0)

        preview = controller.preview(2.0)
        assert (preview.start, preview.end) == (0.0, 10.0)

    def test_open_segment_moves_start_only(self, ledger: TimeAssignmentLedger) -> None:
        """A segment with no end only gets its start persisted."""
        controller = InteractionController(ledger, default_duration=10)
        controller.begin_segment_drag("part", "open", grab_time=30.0)
        controller.drop_segment(60.0)

        assert ledger.effective_time(start_of("open")) == 60.0
        assert ledger.effective_time(start_of("open").opposite()) is None

    def test_unanchored_segment(self, ledger: TimeAssignmentLedger) -> None:
        """An unanchored segment is placed at the drop point."""
        controller = InteractionController(ledger)
        controller.begin_segment_drag("part", "loose", grab_time=99.0)
        controller.drop_segment(5.0)

        assert ledger.effective_time(start_of("loose")) == 5.0

    def test_drop_without_drag(self, ledger: TimeAssignmentLedger) -> None:
        """Dropping while idle is an error."""
        with pytest.raises(InteractionError):
            InteractionController(ledger).drop_segment(1.0)

    def test_one_gesture_at_a_time(self, ledger: TimeAssignmentLedger) -> None:
        """A second gesture cannot begin while one is in progress."""
        controller = InteractionController(ledger)
        controller.begin_segment_drag("part", "ranged", grab_time=10.0)

        with pytest.raises(InteractionError):
            controller.begin_mark_drag(Mark(time=1.0))


class TestMarkDrag:
    """Tests for dragging marks onto boundaries."""

    def test_drop_mark(self, ledger: TimeAssignmentLedger) -> None:
        """Dropping a mark assigns its captured time."""
        mark = Mark(time=12.0)
        controller = InteractionController(ledger)
        state = controller.begin_mark_drag(mark)
        mark.time = 50.0

        assert isinstance(state, DraggingMark)
        controller.drop_mark(start_of("ranged"))

        assert ledger.effective_time(start_of("ranged")) == 12.0

    def test_rejected_drop_still_ends_gesture(self, ledger: TimeAssignmentLedger) -> None:
        """An order violation leaves the controller idle."""
        on_idle = MagicMock()
        controller = InteractionController(ledger, on_idle=on_idle)
        controller.begin_mark_drag(Mark(time=25.0))

        with pytest.raises(OrderViolation):
            controller.drop_mark(start_of("ranged"))

        assert controller.active is False
        on_idle.assert_called_once()

    def test_cancel(self, ledger: TimeAssignmentLedger) -> None:
        """Cancelling commits nothing."""
        on_idle = MagicMock()
        controller = InteractionController(ledger, on_idle=on_idle)
        controller.begin_mark_drag(Mark(time=1.0))
        controller.cancel()

        assert ledger.dirty is False
        on_idle.assert_called_once()
