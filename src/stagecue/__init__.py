"""stagecue: keep rehearsal views in step with the music."""

from stagecue.config import AlertOptions, EngineConfig, TimerOptions
from stagecue.engine.cursor import CursorState, resolve
from stagecue.engine.ledger import LedgerError, OrderViolation, TimeAssignmentLedger
from stagecue.engine.packer import Layout, pack
from stagecue.models.schema import (
    AssignmentTarget,
    Mark,
    Segment,
    ShowSnapshot,
    TimepointUpdate,
)
from stagecue.session import MediaClock, RehearsalSession, TickResult
from stagecue.store.snapshot import SegmentStore, SnapshotError, SnapshotFileStore, StoreError

__version__ = "0.1.0"

__all__ = [
    "AlertOptions",
    "AssignmentTarget",
    "CursorState",
    "EngineConfig",
    "Layout",
    "LedgerError",
    "Mark",
    "MediaClock",
    "OrderViolation",
    "RehearsalSession",
    "Segment",
    "SegmentStore",
    "ShowSnapshot",
    "SnapshotError",
    "SnapshotFileStore",
    "StoreError",
    "TickResult",
    "TimeAssignmentLedger",
    "TimepointUpdate",
    "TimerOptions",
    "pack",
    "resolve",
    "__version__",
]
