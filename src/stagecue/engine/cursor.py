"""Playback cursor: which segment is current and which is next at time t.

Resolution is last-start-dominant. The current segment is the last one whose
start is at or before t, and it stays current past its own end until the
next segment starts. Explicit ends only matter for display spans.
"""

from __future__ import annotations

import bisect
import math
from collections.abc import Sequence
from dataclasses import dataclass

from stagecue.models.schema import Segment

# Shortest span drawn for a segment on the playback timeline
MIN_SPAN = 0.1


@dataclass(frozen=True)
class CursorState:
    """Output of resolve()."""

    current_index: int
    current: Segment | None
    next: Segment | None
    time_to_next: float | None

    @classmethod
    def empty(cls) -> CursorState:
        return cls(current_index=-1, current=None, next=None, time_to_next=None)


def resolve(segments: Sequence[Segment], t: float | None) -> CursorState:
    """Resolve the current and next segment at time ``t``.

    Args:
        segments: Anchored segments sorted by start, ties by order (see
            ``segments.anchored``).
        t: Media clock time in seconds, or None when no clock is available.

    Returns:
        CursorState. ``current`` is None before the first start; ``next`` is
        then the first segment. With no clock everything is None.
    """
    if t is None or not math.isfinite(t):
        return CursorState.empty()

    starts = [s.start for s in segments]
    # largest i with start <= t
    current_index = bisect.bisect_right(starts, t) - 1
    current = segments[current_index] if current_index >= 0 else None

    next_index = current_index + 1
    next_segment = segments[next_index] if next_index < len(segments) else None
    time_to_next = None
    if next_segment is not None:
        time_to_next = max(0.0, next_segment.start - t)  # type: ignore[operator]

    return CursorState(
        current_index=current_index,
        current=current,
        next=next_segment,
        time_to_next=time_to_next,
    )


@dataclass(frozen=True)
class DisplaySpan:
    """A segment's drawn extent on the playback timeline."""

    segment: Segment
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


def display_spans(segments: Sequence[Segment]) -> list[DisplaySpan]:
    """Spans for drawing sorted anchored segments back to back.

    A span ends at the explicit end if there is one, else at the next
    segment's start, else one second after its own start. Every span is at
    least MIN_SPAN long.
    """
    spans: list[DisplaySpan] = []
    for i, segment in enumerate(segments):
        start = segment.start or 0.0
        if segment.end is not None:
            end = segment.end
        elif i < len(segments) - 1:
            end = segments[i + 1].start or start
        else:
            end = start + 1
        spans.append(DisplaySpan(segment=segment, start=start, end=max(end, start + MIN_SPAN)))
    return spans


def timeline_duration(spans: Sequence[DisplaySpan], media_duration: float | None = None) -> float:
    """Length of the drawn timeline: the media length or the last span end, at least 1s."""
    last = max((span.end for span in spans), default=0.0)
    return max(media_duration or 0.0, last, 1.0)


@dataclass(frozen=True)
class LoopRange:
    """An A-B rehearsal loop over part of the track."""

    start: float
    end: float

    def __post_init__(self) -> None:
        # accept the bounds in either order
        lo, hi = sorted((self.start, self.end))
        object.__setattr__(self, "start", lo)
        object.__setattr__(self, "end", hi)

    @classmethod
    def for_span(cls, span: DisplaySpan) -> LoopRange:
        return cls(start=span.start, end=span.end)

    def seek_target(self, t: float | None) -> float | None:
        """Where to seek when the clock reaches the end of the loop, else None."""
        if t is None or t < self.end:
            return None
        return self.start
