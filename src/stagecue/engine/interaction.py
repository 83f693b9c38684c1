"""Drag-and-drop interaction as an explicit state machine.

Idle -> DraggingSegment | DraggingMark -> Idle. Everything a gesture needs
(the segment's range, the mark's time) is captured when it begins, so a
snapshot refresh mid-gesture cannot change what gets committed. The commit
happens once, on drop, through the ledger.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from stagecue.engine.ledger import TimeAssignmentLedger
from stagecue.models.schema import Assignment, AssignmentTarget, Mark, SegmentKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class DraggingSegment:
    kind: SegmentKind
    segment_id: str
    offset: float  # grab point relative to the segment start
    duration: float
    has_end: bool


@dataclass(frozen=True)
class DraggingMark:
    mark: Mark


InteractionState = Union[Idle, DraggingSegment, DraggingMark]


@dataclass(frozen=True)
class DragPreview:
    segment_id: str
    start: float
    end: float


class InteractionError(Exception):
    """Operation not valid in the current interaction state."""

    pass


class InteractionController:
    """Owns the in-progress gesture and commits it on drop.

    Args:
        ledger: Ledger receiving the committed assignment.
        default_duration: Duration assumed for segments with no end.
        on_idle: Called whenever a gesture ends (drop or cancel).
    """

    def __init__(
        self,
        ledger: TimeAssignmentLedger,
        default_duration: float = 10.0,
        on_idle: Callable[[], None] | None = None,
    ) -> None:
        self.ledger = ledger
        self.default_duration = default_duration
        self.on_idle = on_idle
        self.state: InteractionState = Idle()

    @property
    def active(self) -> bool:
        return not isinstance(self.state, Idle)

    def begin_segment_drag(self, kind: SegmentKind, segment_id: str, grab_time: float) -> DraggingSegment:
        """Start dragging a segment grabbed at timeline position ``grab_time``.

        Unanchored segments are grabbed at their (future) start.
        """
        self._require_idle()
        start_target = AssignmentTarget(kind=kind, segment_id=segment_id, boundary="start")
        start = self.ledger.effective_time(start_target)
        end = self.ledger.effective_time(start_target.opposite())

        if start is None:
            offset, duration = 0.0, self.default_duration
        else:
            offset = max(0.0, grab_time - start)
            duration = (end if end is not None else start + self.default_duration) - start

        self.state = DraggingSegment(
            kind=kind,
            segment_id=segment_id,
            offset=offset,
            duration=duration,
            has_end=end is not None,
        )
        return self.state

    def begin_mark_drag(self, mark: Mark) -> DraggingMark:
        self._require_idle()
        self.state = DraggingMark(mark=mark.model_copy())
        return self.state

    def preview(self, t: float) -> DragPreview | None:
        """Where the dragged segment would land if dropped at ``t``."""
        if not isinstance(self.state, DraggingSegment):
            return None
        start = max(0.0, t - self.state.offset)
        return DragPreview(segment_id=self.state.segment_id, start=start, end=start + self.state.duration)

    def drop_segment(self, t: float) -> tuple[Assignment, ...]:
        """Commit the dragged segment at ``t``, keeping its duration.

        A segment without an explicit end only gets its start moved; the
        assumed display duration is never persisted.

        Raises:
            InteractionError: If no segment is being dragged.
        """
        state = self.state
        if not isinstance(state, DraggingSegment):
            raise InteractionError("No segment drag in progress")
        preview = self.preview(t)
        try:
            if state.has_end:
                return self.ledger.assign_range(state.kind, state.segment_id, preview.start, preview.end)
            target = AssignmentTarget(kind=state.kind, segment_id=state.segment_id, boundary="start")
            return (self.ledger.assign(target, preview.start),)
        finally:
            self._finish()

    def drop_mark(self, target: AssignmentTarget) -> Assignment:
        """Commit the dragged mark onto a boundary.

        Raises:
            InteractionError: If no mark is being dragged.
        """
        state = self.state
        if not isinstance(state, DraggingMark):
            raise InteractionError("No mark drag in progress")
        try:
            return self.ledger.assign(target, state.mark)
        finally:
            self._finish()

    def cancel(self) -> None:
        if self.active:
            self._finish()

    def _require_idle(self) -> None:
        if self.active:
            raise InteractionError(f"Gesture already in progress: {self.state}")

    def _finish(self) -> None:
        self.state = Idle()
        if self.on_idle is not None:
            self.on_idle()
