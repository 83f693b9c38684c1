"""Segment stores for stagecue."""

from stagecue.store.snapshot import (
    SegmentStore,
    SnapshotError,
    SnapshotFileStore,
    StoreError,
    load_snapshot,
    parse_snapshot,
)

__all__ = [
    "SegmentStore",
    "SnapshotError",
    "SnapshotFileStore",
    "StoreError",
    "load_snapshot",
    "parse_snapshot",
]
