"""Data models for stagecue."""

from stagecue.models.schema import (
    Assignment,
    AssignmentTarget,
    HistoryEntry,
    Mark,
    MarkRow,
    PartRecord,
    Segment,
    ShowSnapshot,
    SubpartRecord,
    TimepointUpdate,
)

__all__ = [
    "Assignment",
    "AssignmentTarget",
    "HistoryEntry",
    "Mark",
    "MarkRow",
    "PartRecord",
    "Segment",
    "ShowSnapshot",
    "SubpartRecord",
    "TimepointUpdate",
]
