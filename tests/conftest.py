"""Pytest configuration and fixtures for stagecue tests."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

import pytest

from stagecue.models.schema import Segment


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def package_logger() -> logging.Logger:
    """The stagecue package logger, restored after the test."""
    logger = logging.getLogger("stagecue")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def overlapping_parts() -> list[Segment]:
    """A(0,30), B(20,50), C(50,80): B overlaps A, C touches B."""
    return [
        Segment(id="a", name="A", start=0, end=30),
        Segment(id="b", name="B", start=20, end=50),
        Segment(id="c", name="C", start=50, end=80),
    ]


@pytest.fixture
def cursor_parts() -> list[Segment]:
    """Parts starting at 0, 20 and 50 with no explicit ends."""
    return [
        Segment(id="a", name="A", start=0),
        Segment(id="b", name="B", start=20),
        Segment(id="c", name="C", start=50),
    ]


@pytest.fixture
def snapshot_data() -> dict:
    """A small export snapshot with extra fields the engine must keep."""
    return {
        "parts": [
            {"id": 1, "name": "Opening", "order": 1, "timepoint_seconds": 0, "timepoint_end_seconds": 30},
            {"id": 2, "name": "Verse", "order": 2, "timepoint_seconds": 30, "color": "#ff0000"},
            {"id": 3, "name": "Finale", "order": 3, "timepoint_seconds": None},
        ],
        "positionsByPart": {"1": [{"dancer": "d1", "x": 0.5, "y": 0.5}]},
        "subpartsByPart": {
            "2": [
                {"id": 20, "title": "Lift", "order": 1, "timepoint_seconds": 35},
                {"id": 21, "title": "Turn", "order": 2, "timepoint_seconds": 40},
            ]
        },
        "musicUrl": "https://example.com/track.mp3",
        "embeddedAudioDataUrl": "",
        "contacts": ["stage manager"],
    }


@pytest.fixture
def snapshot_path(temp_dir: Path, snapshot_data: dict) -> Path:
    """Write the snapshot fixture to disk."""
    path = temp_dir / "show.json"
    path.write_text(json.dumps(snapshot_data), encoding="utf-8")
    return path


@pytest.fixture
def clean_env():
    """Ensure no STAGECUE_* variables leak into config tests."""
    names = ["STAGECUE_RING_THRESHOLD", "STAGECUE_DEFAULT_DURATION", "STAGECUE_AUTOSAVE_INTERVAL"]
    original = {name: os.environ.get(name) for name in names}
    for name in names:
        os.environ.pop(name, None)
    yield
    for name, value in original.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value
