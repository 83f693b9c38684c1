"""Time assignment ledger: bind marks or typed times to segment boundaries.

Every mutation of a target (assign, clear) first pushes the previous value
onto that target's bounded history stack, newest first, so undo can walk it
back. Assignments that change a boundary mark the target dirty; the session
drains dirty targets into TimepointUpdate intents for the external store.

An assignment is rejected when it would put a start after the segment's
effective end, or an end before its effective start. The effective value of
a boundary is the in-session assignment if there is one, else the value
persisted in the store. Undo is held to the same rule.

A part always covers its subparts: a part start later than its earliest
subpart start is pulled back to it, and a part end earlier than its latest
subpart end is pushed out to it. When the track length is known, times
beyond it are rejected.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime, timezone

from stagecue.engine.marks import MarkBoard
from stagecue.engine.segments import format_time, parse_time_string, subpart_bounds
from stagecue.models.schema import (
    Assignment,
    AssignmentTarget,
    HistoryEntry,
    Mark,
    Segment,
    SegmentKind,
    TimepointUpdate,
)

logger = logging.getLogger(__name__)

UNASSIGNED_LABEL = "Unassigned"


class LedgerError(Exception):
    """Error raised by the time assignment ledger."""

    pass


class OrderViolation(LedgerError):
    """The assignment would invert a segment's start and end."""

    def __init__(self, target: AssignmentTarget, time: float, opposite_time: float) -> None:
        self.target = target
        self.time = time
        self.opposite_time = opposite_time
        if target.boundary == "start":
            message = f"Start time cannot be after end time ({time:g}s > {opposite_time:g}s)"
        else:
            message = f"End time cannot be before start time ({time:g}s < {opposite_time:g}s)"
        super().__init__(message)


class UnknownTarget(LedgerError):
    """No segment of that kind and id is known."""

    pass


class UnknownMark(LedgerError):
    """No mark with that id exists on the board."""

    pass


class InvalidTime(LedgerError):
    """The supplied time is negative, non-finite, or not parseable."""

    pass


class OutOfRange(InvalidTime):
    """The time lies beyond the end of the music track."""

    def __init__(self, time: float, media_duration: float) -> None:
        self.time = time
        self.media_duration = media_duration
        super().__init__(
            f"Time exceeds music length ({time:g}s > {media_duration:g}s). "
            "Use a time within the track."
        )


class TimeAssignmentLedger:
    """Tracks in-session boundary assignments with per-target undo history.

    Args:
        segments: Current segment snapshot (persisted boundary values).
        history_limit: Maximum undo entries kept per target.
        marks: Board used to resolve mark ids in assign_mark().
        media_duration: Track length in seconds. None or 0 disables the
            upper bound.
    """

    def __init__(
        self,
        segments: Iterable[Segment] = (),
        history_limit: int = 6,
        marks: MarkBoard | None = None,
        media_duration: float | None = None,
    ) -> None:
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self.history_limit = history_limit
        self.marks = marks
        self.media_duration = media_duration
        self._segments: dict[tuple[SegmentKind, str], Segment] = {}
        self._assignments: dict[AssignmentTarget, Assignment] = {}
        self._history: dict[AssignmentTarget, list[HistoryEntry]] = {}
        self._dirty: set[AssignmentTarget] = set()
        self.update_segments(segments)

    # Snapshot

    def update_segments(self, segments: Iterable[Segment]) -> None:
        """Replace the persisted snapshot. Assignments and history are kept."""
        self._segments = {(s.kind, s.id): s for s in segments}

    def segment(self, kind: SegmentKind, segment_id: str) -> Segment:
        try:
            return self._segments[(kind, segment_id)]
        except KeyError:
            raise UnknownTarget(f"Unknown {kind}: {segment_id}") from None

    def effective_segments(self) -> list[Segment]:
        """The snapshot with in-session assignments applied."""
        result: list[Segment] = []
        for segment in self._segments.values():
            start_target = AssignmentTarget(kind=segment.kind, segment_id=segment.id, boundary="start")
            end_target = start_target.opposite()
            if start_target in self._assignments or end_target in self._assignments:
                segment = segment.with_times(
                    self.effective_time(start_target), self.effective_time(end_target)
                )
            result.append(segment)
        return result

    # Reads

    def persisted_time(self, target: AssignmentTarget) -> float | None:
        segment = self.segment(target.kind, target.segment_id)
        return segment.start if target.boundary == "start" else segment.end

    def assignment(self, target: AssignmentTarget) -> Assignment | None:
        return self._assignments.get(target)

    def effective_time(self, target: AssignmentTarget) -> float | None:
        """The in-session assignment if any, else the persisted value."""
        current = self._assignments.get(target)
        if current is not None:
            return current.time
        return self.persisted_time(target)

    def history(self, target: AssignmentTarget) -> list[HistoryEntry]:
        """Undo entries for a target, newest first."""
        return list(self._history.get(target, []))

    # Mutations

    def assign(self, target: AssignmentTarget, source: Mark | float | str) -> Assignment:
        """Bind a mark's time (captured by value) or a plain time to a target.

        Strings are read as typed input, either seconds or ``m:ss``.

        Part boundaries are widened to cover the part's subparts. A mark
        whose time had to be widened is no longer recorded as the source.

        Raises:
            UnknownTarget: If the segment is not in the snapshot.
            InvalidTime: If the time is negative or not finite.
            OutOfRange: If the time is past the end of the track.
            OrderViolation: If the new time would invert start and end. The
                target is left unchanged.
        """
        mark_id: str | None = None
        if isinstance(source, Mark):
            time, mark_id = source.time, source.id
        elif isinstance(source, str):
            seconds = parse_time_string(source)
            if seconds is None:
                raise InvalidTime(f"Not a time: {source!r}")
            time = seconds
        else:
            time = self._validate_time(source)

        self.segment(target.kind, target.segment_id)
        widened = self._cover_subparts(target, time)
        if widened != time:
            logger.debug(f"Widened {target.key} from {time:.2f}s to {widened:.2f}s to cover subparts")
            mark_id = None
        self._check_range(widened)
        self._check_order(target, widened, self.effective_time(target.opposite()))

        new = Assignment(time=widened, mark_id=mark_id)
        self._push_history(target)
        self._assignments[target] = new
        self._dirty.add(target)
        logger.debug(f"Assigned {target.key} = {new.time:.2f}s")
        return new

    def assign_mark(self, target: AssignmentTarget, mark_id: str) -> Assignment:
        """Assign the mark with ``mark_id`` from the board.

        Raises:
            UnknownMark: If there is no board or no such mark.
        """
        mark = self.marks.find_mark(mark_id) if self.marks is not None else None
        if mark is None:
            raise UnknownMark(f"Unknown mark: {mark_id}")
        return self.assign(target, mark)

    def assign_text(self, target: AssignmentTarget, text: str) -> Assignment:
        """Assign a typed time such as ``"72.5"`` or ``"1:12.5"``."""
        return self.assign(target, str(text))

    def assign_range(
        self,
        kind: SegmentKind,
        segment_id: str,
        start: float,
        end: float,
    ) -> tuple[Assignment, Assignment]:
        """Assign both boundaries at once, as when a segment is dragged.

        Raises:
            OutOfRange: If either time is past the end of the track.
            OrderViolation: If ``end < start``. Nothing is changed.
        """
        start_target = AssignmentTarget(kind=kind, segment_id=segment_id, boundary="start")
        end_target = start_target.opposite()
        self.segment(kind, segment_id)
        start = self._cover_subparts(start_target, self._validate_time(start))
        end = self._cover_subparts(end_target, self._validate_time(end))
        self._check_range(start)
        self._check_range(end)
        self._check_order(start_target, start, end)

        new_start = Assignment(time=start)
        new_end = Assignment(time=end)
        self._push_history(start_target)
        self._push_history(end_target)
        self._assignments[start_target] = new_start
        self._assignments[end_target] = new_end
        self._dirty.update((start_target, end_target))
        logger.debug(f"Assigned {kind}:{segment_id} range {start:.2f}s-{end:.2f}s")
        return new_start, new_end

    def clear(self, target: AssignmentTarget) -> None:
        """Drop the in-session assignment so the persisted value applies again."""
        self.segment(target.kind, target.segment_id)
        self._push_history(target)
        self._assignments.pop(target, None)
        self._dirty.discard(target)

    def undo(self, target: AssignmentTarget) -> bool:
        """Restore the value before the latest change.

        Returns:
            False when the history is empty (nothing changes).

        Raises:
            OrderViolation: If the restored value would invert start and end
                given the other boundary's current value. The history is
                left as it was.
        """
        stack = self._history.get(target)
        if not stack:
            return False
        entry = stack[0]
        restored = entry.previous.time if entry.previous is not None else self.persisted_time(target)
        if restored is not None:
            self._check_order(target, restored, self.effective_time(target.opposite()))
        stack.pop(0)
        if entry.previous is None:
            self._assignments.pop(target, None)
            self._dirty.discard(target)
        else:
            self._assignments[target] = entry.previous
            self._dirty.add(target)
        logger.debug(f"Undo {target.key} -> {entry.label}")
        return True

    # Persistence

    @property
    def dirty(self) -> bool:
        return bool(self._dirty)

    def pending_updates(self) -> list[TimepointUpdate]:
        """One update per segment with dirty boundaries."""
        grouped: dict[tuple[SegmentKind, str], dict[str, float]] = {}
        for target in self._dirty:
            assignment = self._assignments.get(target)
            if assignment is None:
                continue
            fields = grouped.setdefault((target.kind, target.segment_id), {})
            fields[target.boundary] = assignment.time
        return [
            TimepointUpdate(segment_id=segment_id, kind=kind, **fields)
            for (kind, segment_id), fields in sorted(grouped.items())
        ]

    def mark_saved(self, updates: Iterable[TimepointUpdate]) -> None:
        """Clear dirty flags for values the store has accepted.

        A target reassigned while the save was in flight stays dirty.
        """
        for update in updates:
            for boundary, value in update.payload().items():
                target = AssignmentTarget(
                    kind=update.kind, segment_id=update.segment_id, boundary=boundary
                )
                current = self._assignments.get(target)
                if current is not None and current.time == value:
                    self._dirty.discard(target)

    # Internals

    def _validate_time(self, value: float) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidTime(f"Not a time: {value!r}") from None
        if not math.isfinite(value) or value < 0:
            raise InvalidTime(f"Time must be a finite number >= 0, got {value}")
        return value

    def _check_range(self, time: float) -> None:
        if self.media_duration and time > self.media_duration:
            raise OutOfRange(time, self.media_duration)

    def _cover_subparts(self, target: AssignmentTarget, time: float) -> float:
        if target.kind != "part":
            return time
        subparts = [s for s in self.effective_segments() if s.kind == "subpart"]
        min_start, max_end = subpart_bounds(subparts, target.segment_id)
        if target.boundary == "start" and min_start is not None:
            return min(time, min_start)
        if target.boundary == "end" and max_end is not None:
            return max(time, max_end)
        return time

    def _check_order(self, target: AssignmentTarget, time: float, opposite: float | None) -> None:
        if opposite is None:
            return
        if target.boundary == "start" and time > opposite:
            raise OrderViolation(target, time, opposite)
        if target.boundary == "end" and time < opposite:
            raise OrderViolation(target, time, opposite)

    def _push_history(self, target: AssignmentTarget) -> None:
        previous = self._assignments.get(target)
        shown = previous.time if previous is not None else self.persisted_time(target)
        entry = HistoryEntry(
            previous=previous,
            label=format_time(shown) if shown is not None else UNASSIGNED_LABEL,
            at=datetime.now(timezone.utc),
        )
        stack = self._history.setdefault(target, [])
        stack.insert(0, entry)
        del stack[self.history_limit :]
