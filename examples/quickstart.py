#!/usr/bin/env python3
"""stagecue Quickstart Example.

This script loads an exported rehearsal snapshot, lays out its parts on
timeline rows, and simulates playback with a fake clock so the cursor and
the "get ready" alerts can be seen without any media player.

Usage:
    python examples/quickstart.py path/to/show.json [--step SECONDS]
"""

from __future__ import annotations

import math
import sys
from pathlib import Path


class SimulatedClock:
    """A media clock that only moves when told to."""

    def __init__(self) -> None:
        self.t = 0.0

    def current_time(self) -> float:
        return self.t

    def seek(self, t: float) -> None:
        self.t = t

    def play(self) -> None:
        pass


def main() -> None:
    """Run the quickstart example."""
    import stagecue
    from stagecue.engine.segments import format_time
    from stagecue.store import SnapshotFileStore

    if len(sys.argv) < 2:
        print("Usage: python quickstart.py <show.json> [--step SECONDS]")
        sys.exit(1)

    path = Path(sys.argv[1])
    try:
        step = float(sys.argv[sys.argv.index("--step") + 1]) if "--step" in sys.argv else 1.0
    except (IndexError, ValueError):
        print("Error: --step needs a number of seconds")
        sys.exit(1)
    if not math.isfinite(step) or step <= 0:
        print(f"Error: --step must be a positive number of seconds, got {step}")
        sys.exit(1)

    if not path.exists():
        print(f"Error: File not found: {path}")
        sys.exit(1)

    print(f"stagecue v{stagecue.__version__}")
    print(f"Snapshot: {path}")
    print("-" * 50)

    store = SnapshotFileStore(path)
    clock = SimulatedClock()
    session = stagecue.RehearsalSession(
        store.fetch_segments(),
        clock=clock,
        on_ring=lambda seg: print(f"  ** ring: {seg.name if seg else '?'} is next **"),
    )

    layout = session.layout()
    print(f"\nRows: {len(layout.rows)}")
    for row in layout.rows:
        names = ", ".join(item.segment.name for item in row.items)
        print(f"  Row {row.index}: {names}")
    if layout.unassigned:
        print(f"  Unassigned: {', '.join(s.name for s in layout.unassigned)}")

    end = session.timeline_length

    print("\nPlayback:")
    while clock.t <= end:
        result = session.poll()
        current = result.cursor.current.name if result.cursor.current else "-"
        label = f" {result.alerts.get_ready} {result.alerts.countdown}" if result.alerts.countdown else ""
        print(f"  {format_time(clock.t)}  {current}{label}")
        clock.t += step

    print("\n" + "=" * 50)
    print("Done!")


if __name__ == "__main__":
    main()
