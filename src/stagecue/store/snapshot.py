"""Segment stores: where snapshots come from and where updates go.

The engine never persists anything itself. It reads segments through
``SegmentStore.fetch_segments`` and hands ``TimepointUpdate`` intents to
``SegmentStore.update_segment_timepoints``. SnapshotFileStore implements the
contract on top of an exported rehearsal JSON file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from stagecue.models.schema import Segment, ShowSnapshot, TimepointUpdate

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Error while reading from or writing to a segment store."""

    pass


class SnapshotError(StoreError):
    """The export snapshot is missing or malformed."""

    pass


@runtime_checkable
class SegmentStore(Protocol):
    """Contract for the external persistence service.

    Either method may be a coroutine function; the session awaits results
    that are awaitable.
    """

    def fetch_segments(self) -> list[Segment]: ...

    def update_segment_timepoints(self, update: TimepointUpdate) -> None: ...


def parse_snapshot(text: str) -> ShowSnapshot:
    """Parse an export snapshot JSON string.

    Raises:
        SnapshotError: If the text is not a JSON object of the expected shape.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    try:
        return ShowSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(f"Snapshot has an unexpected shape: {e}") from e


def load_snapshot(path: str | Path) -> ShowSnapshot:
    """Read an export snapshot from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        SnapshotError: If it cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")
    return parse_snapshot(path.read_text(encoding="utf-8"))


class SnapshotFileStore:
    """A SegmentStore backed by an export snapshot file.

    Updates rewrite the file, preserving every field the engine does not own.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._snapshot = load_snapshot(self.path)

    @property
    def snapshot(self) -> ShowSnapshot:
        return self._snapshot

    def fetch_segments(self) -> list[Segment]:
        self._snapshot = load_snapshot(self.path)
        return self._snapshot.segments()

    def update_segment_timepoints(self, update: TimepointUpdate) -> None:
        """Apply one update and write the snapshot back.

        Raises:
            StoreError: If the segment is unknown or the file cannot be written.
        """
        try:
            snapshot = self._snapshot.with_update(update)
        except KeyError as e:
            raise StoreError(str(e)) from e
        try:
            self.path.write_text(snapshot.to_json(), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to write snapshot {self.path}: {e}") from e
        self._snapshot = snapshot
        logger.info(f"Saved {update.kind} {update.segment_id}: {update.payload()}")
