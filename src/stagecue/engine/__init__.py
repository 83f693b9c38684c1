"""Timeline synchronization engine.

Each module covers one piece of the engine:
- segments: ordering, grouping and time formatting helpers
- packer: greedy row packing with manual pins
- cursor: current/next resolution for a clock time
- alerts: ring, countdown label and flash-on-entry
- countdown: cancellable jump countdown
- marks: captured marks grouped into rows
- ledger: validated boundary assignments with undo
- interaction: drag/drop gesture state machine
"""

__all__ = [
    "segments",
    "packer",
    "cursor",
    "alerts",
    "countdown",
    "marks",
    "ledger",
    "interaction",
]
