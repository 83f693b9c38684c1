"""Row packing: lay out time-ranged segments on non-overlapping display rows.

The automatic pass is the classical greedy interval-graph coloring: walk
segments by start time and put each into the first row whose last item has
already ended, opening a new row only when none has. Without pins this
yields the minimum number of rows.

Manual pins are applied afterwards as a separate pass. A pinned segment is
dropped into its row without any overlap check; use Layout.conflicts() to
find the overlaps that pinning produced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from stagecue.engine.segments import anchored, order_segments
from stagecue.models.schema import Segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowItem:
    """A segment placed on a row with its display range."""

    segment: Segment
    start: float
    end: float  # explicit end, or start + default duration
    missing_end: bool

    @classmethod
    def from_segment(cls, segment: Segment, default_duration: float) -> RowItem:
        if segment.start is None:
            raise ValueError(f"Segment {segment.id!r} has no start and cannot be placed")
        return cls(
            segment=segment,
            start=segment.start,
            end=segment.effective_end(default_duration),  # type: ignore[arg-type]
            missing_end=segment.end is None,
        )

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Row:
    """One display row. Items are kept sorted by start."""

    index: int
    items: list[RowItem] = field(default_factory=list)
    pinned: bool = False  # holds at least one manually pinned item
    manual: bool = False  # empty padding row requested by the caller

    @property
    def segment_ids(self) -> list[str]:
        return [item.segment.id for item in self.items]


@dataclass
class Layout:
    """Result of pack()."""

    rows: list[Row]
    unassigned: list[Segment]
    auto_row_count: int

    def row_of(self, segment_id: str) -> int | None:
        """Index of the row holding a segment, or None if it is unassigned."""
        for row in self.rows:
            if segment_id in row.segment_ids:
                return row.index
        return None

    def conflicts(self) -> list[tuple[Segment, Segment]]:
        """Pairs of segments whose ranges overlap within the same row."""
        pairs: list[tuple[Segment, Segment]] = []
        for row in self.rows:
            for i, a in enumerate(row.items):
                for b in row.items[i + 1 :]:
                    if b.start >= a.end:
                        break
                    pairs.append((a.segment, b.segment))
        return pairs


def pack(
    segments: Iterable[Segment],
    pinned: Mapping[str, int] | None = None,
    default_duration: float = 10.0,
    min_rows: int = 0,
) -> Layout:
    """Assign segments to display rows.

    Args:
        segments: Segments to lay out. Unanchored ones go to ``unassigned``
            in order.
        pinned: Segment id to row index overrides. Takes precedence over a
            segment's own ``pinned_row``.
        default_duration: Display duration for segments with no end.
        min_rows: Pad the layout with empty manual rows up to this count.

    Returns:
        Layout with rows in creation order and the unassigned bucket.

    Raises:
        ValueError: If a pin for a placed segment names a negative row.
    """
    segments = list(segments)
    unassigned = order_segments(s for s in segments if not s.anchored)
    ordered = anchored(segments)
    present = {s.id for s in ordered}

    pins: dict[str, int] = {s.id: s.pinned_row for s in ordered if s.pinned_row is not None}
    # pins for segments not being placed are ignored
    pins.update((k, v) for k, v in (pinned or {}).items() if k in present)
    for segment_id, row_index in pins.items():
        if row_index < 0:
            raise ValueError(f"Pinned row for {segment_id!r} must be >= 0, got {row_index}")

    rows: list[Row] = []

    # Automatic pass over unpinned segments only
    for segment in ordered:
        if segment.id in pins:
            continue
        item = RowItem.from_segment(segment, default_duration)
        for row in rows:
            if row.items[-1].end <= item.start:
                row.items.append(item)
                break
        else:
            rows.append(Row(index=len(rows), items=[item]))

    # Pin pass
    for segment in ordered:
        row_index = pins.get(segment.id)
        if row_index is None:
            continue
        while len(rows) <= row_index:
            rows.append(Row(index=len(rows)))
        rows[row_index].items.append(RowItem.from_segment(segment, default_duration))
        rows[row_index].pinned = True

    for row in rows:
        row.items.sort(key=lambda item: (item.start, item.segment.order))

    auto_row_count = len(rows)
    while len(rows) < min_rows:
        rows.append(Row(index=len(rows), manual=True))

    logger.debug(
        f"Packed {len(ordered)} segments into {auto_row_count} rows "
        f"({len(pins)} pinned, {len(unassigned)} unassigned)"
    )
    return Layout(rows=rows, unassigned=unassigned, auto_row_count=auto_row_count)
