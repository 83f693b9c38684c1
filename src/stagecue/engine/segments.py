"""Segment model helpers: ordering, grouping and time formatting."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from stagecue.models.schema import Segment

PLACEHOLDER = "--:--"

_NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")


def sort_key(segment: Segment) -> tuple[float, int]:
    """Sort by start ascending, ties by order; unanchored segments sort last."""
    start = segment.start if segment.start is not None else math.inf
    return (start, segment.order)


def order_segments(segments: Iterable[Segment]) -> list[Segment]:
    """All segments in timeline order, unanchored ones at the end by order."""
    return sorted(segments, key=sort_key)


def anchored(segments: Iterable[Segment]) -> list[Segment]:
    """The anchored subset, sorted for the playback cursor."""
    return sorted((s for s in segments if s.anchored), key=sort_key)


def parts_only(segments: Iterable[Segment]) -> list[Segment]:
    return [s for s in segments if s.kind == "part"]


def subparts_only(segments: Iterable[Segment]) -> list[Segment]:
    return [s for s in segments if s.kind == "subpart"]


def subpart_bounds(segments: Iterable[Segment], parent_id: str) -> tuple[float | None, float | None]:
    """Earliest subpart start and latest subpart end under a part.

    Returns:
        ``(min_start, max_end)``; either is None when no subpart carries it.
    """
    starts: list[float] = []
    ends: list[float] = []
    for sub in segments:
        if sub.parent_id != parent_id:
            continue
        if sub.start is not None:
            starts.append(sub.start)
        if sub.end is not None:
            ends.append(sub.end)
    return (min(starts) if starts else None, max(ends) if ends else None)


def format_time(seconds: float | None) -> str:
    """Format seconds as ``m:ss``, or ``h:mm:ss`` past an hour.

    Missing or non-finite values render as the ``--:--`` placeholder.
    """
    if seconds is None or not math.isfinite(seconds):
        return PLACEHOLDER
    total = max(0, math.floor(seconds))
    hours, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def parse_time_string(value: str) -> float | None:
    """Parse typed input as plain seconds (``"72.5"``) or ``m:ss`` (``"1:12.5"``).

    Returns:
        Seconds (never negative), or None when the text is not a time.
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if _NUMERIC_RE.match(text):
        return max(0.0, float(text))
    pieces = text.split(":")
    if len(pieces) == 2:
        try:
            mins = int(pieces[0])
            secs = float(pieces[1])
        except ValueError:
            return None
        if not math.isfinite(secs):
            return None
        return max(0.0, mins * 60 + secs)
    return None
