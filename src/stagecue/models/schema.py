"""Pydantic models defining the stagecue data schema.

Segments are the read-only view of time-anchored parts and subparts that
the engine works on. Marks, assignments and history entries live only for
the length of an authoring session. ShowSnapshot mirrors the exported
rehearsal JSON object and round-trips it without loss.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

SegmentKind = Literal["part", "subpart"]
Boundary = Literal["start", "end"]


def coerce_time(value: Any) -> float | None:
    """Coerce a raw timepoint into seconds, or None when it is unusable.

    Numeric strings are accepted. NaN, infinities, negatives, booleans and
    anything non-numeric become None so the segment is treated as unanchored.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Segment(BaseModel):
    """A named, optionally time-anchored part or subpart on the timeline."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifier shared with the external store")
    name: str = Field(default="", description="Display name (part name or subpart title)")
    kind: SegmentKind = Field(default="part", description="Whether this is a part or a subpart")
    parent_id: str | None = Field(default=None, description="Parent part id for subparts")
    start: float | None = Field(default=None, ge=0, description="Start time in seconds")
    end: float | None = Field(default=None, ge=0, description="End time in seconds")
    order: int = Field(default=0, description="Tie-break when two segments share a start")
    pinned_row: int | None = Field(default=None, ge=0, description="Manual layout row override")

    @model_validator(mode="before")
    @classmethod
    def _normalize_times(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        start = coerce_time(data.get("start"))
        end = coerce_time(data.get("end"))
        if start is not None and end is not None and end < start:
            logger.warning(
                f"Dropping end {end} before start {start} on segment {data.get('id')!r}"
            )
            end = None
        data["start"] = start
        data["end"] = end
        if data.get("order") is None:
            data["order"] = 0
        return data

    @property
    def anchored(self) -> bool:
        """True when the segment has a start time."""
        return self.start is not None

    @property
    def missing_end(self) -> bool:
        return self.start is not None and self.end is None

    def effective_end(self, default_duration: float) -> float | None:
        """End time for display: the explicit end, or start plus a default duration."""
        if self.start is None:
            return None
        if self.end is not None:
            return self.end
        return self.start + default_duration

    def with_times(self, start: float | None, end: float | None) -> Segment:
        """Return a copy with new boundary values (re-validated)."""
        return Segment.model_validate({**self.model_dump(), "start": start, "end": end})


class Mark(BaseModel):
    """A user-captured timestamp not yet bound to a segment boundary."""

    id: str = Field(default_factory=_new_id, description="Mark identifier")
    time: float = Field(..., ge=0, description="Captured media time in seconds")
    created_at: datetime = Field(default_factory=_utcnow, description="Capture wall-clock time")


class MarkRow(BaseModel):
    """An ordered collection of marks, used only for authoring organization."""

    id: str = Field(default_factory=_new_id)
    label: str = Field(default="Row 1")
    note: str = Field(default="")
    marks: list[Mark] = Field(default_factory=list)


class AssignmentTarget(BaseModel):
    """One boundary of one segment, e.g. ``part:p1:start``."""

    model_config = ConfigDict(frozen=True)

    kind: SegmentKind = "part"
    segment_id: str
    boundary: Boundary

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.segment_id}:{self.boundary}"

    def opposite(self) -> AssignmentTarget:
        """The other boundary of the same segment."""
        boundary: Boundary = "end" if self.boundary == "start" else "start"
        return AssignmentTarget(kind=self.kind, segment_id=self.segment_id, boundary=boundary)

    @classmethod
    def parse(cls, key: str) -> AssignmentTarget:
        """Parse a ``kind:id:boundary`` key.

        Raises:
            ValueError: If the key is not in that form.
        """
        parts = key.split(":")
        if len(parts) != 3:
            raise ValueError(f"Invalid assignment target key: {key!r}")
        kind, segment_id, boundary = parts
        try:
            return cls(kind=kind, segment_id=segment_id, boundary=boundary)
        except ValidationError as e:
            raise ValueError(f"Invalid assignment target key: {key!r}") from e

    def __str__(self) -> str:
        return self.key


class Assignment(BaseModel):
    """A time bound to a target, captured by value."""

    model_config = ConfigDict(frozen=True)

    time: float = Field(..., ge=0, description="Assigned time in seconds")
    mark_id: str | None = Field(default=None, description="Mark the time was taken from")


class HistoryEntry(BaseModel):
    """Undo record pushed before every mutation of a target."""

    model_config = ConfigDict(frozen=True)

    previous: Assignment | None = Field(default=None, description="Assignment before the change")
    label: str = Field(..., description="Display label of the previous value")
    at: datetime = Field(default_factory=_utcnow)


class TimepointUpdate(BaseModel):
    """Mutation intent: update one or both boundaries of a segment."""

    model_config = ConfigDict(frozen=True)

    segment_id: str
    kind: SegmentKind = "part"
    start: float | None = None
    end: float | None = None

    def payload(self) -> dict[str, float]:
        """Only the boundary fields being changed."""
        fields: dict[str, float] = {}
        if self.start is not None:
            fields["start"] = self.start
        if self.end is not None:
            fields["end"] = self.end
        return fields


class PartRecord(BaseModel):
    """A part as fetched from the store or the export snapshot."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    name: str = ""
    order: int | None = 0
    start: float | None = Field(
        default=None, validation_alias=AliasChoices("timepoint_seconds", "start")
    )
    end: float | None = Field(
        default=None, validation_alias=AliasChoices("timepoint_end_seconds", "end")
    )
    timeline_row: int | None = Field(
        default=None, validation_alias=AliasChoices("timeline_row", "pinnedRow", "pinned_row")
    )

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float | None:
        return coerce_time(value)

    @field_validator("timeline_row", mode="before")
    @classmethod
    def _coerce_row(cls, value: Any) -> int | None:
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        return None

    def to_segment(self) -> Segment:
        return Segment(
            id=self.id,
            name=self.name,
            kind="part",
            start=self.start,
            end=self.end,
            order=self.order or 0,
            pinned_row=self.timeline_row,
        )


class SubpartRecord(BaseModel):
    """A subpart as fetched from the store or the export snapshot."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    part_id: str = Field(..., validation_alias=AliasChoices("part_id", "partId"))
    title: str = ""
    order: int | None = 0
    start: float | None = Field(
        default=None, validation_alias=AliasChoices("timepoint_seconds", "start")
    )
    end: float | None = Field(
        default=None, validation_alias=AliasChoices("timepoint_end_seconds", "end")
    )

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float | None:
        return coerce_time(value)

    def to_segment(self) -> Segment:
        return Segment(
            id=self.id,
            name=self.title,
            kind="subpart",
            parent_id=self.part_id,
            start=self.start,
            end=self.end,
            order=self.order or 0,
        )


# Record keys the engine writes back when applying an update.
START_KEY = "timepoint_seconds"
END_KEY = "timepoint_end_seconds"


class ShowSnapshot(BaseModel):
    """The exported rehearsal snapshot.

    Records are kept as raw dictionaries so that every field the engine does
    not read (positions, media, contacts) survives a round trip untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    parts: list[dict[str, Any]] = Field(default_factory=list)
    positions_by_part: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict, alias="positionsByPart"
    )
    subparts_by_part: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict, alias="subpartsByPart"
    )
    music_url: str = Field(default="", alias="musicUrl")
    embedded_audio_data_url: str = Field(default="", alias="embeddedAudioDataUrl")

    def part_records(self) -> list[PartRecord]:
        return [r for r in (_parse(PartRecord, raw) for raw in self.parts) if r is not None]

    def subpart_records(self) -> list[SubpartRecord]:
        records: list[SubpartRecord] = []
        for part_id, items in self.subparts_by_part.items():
            for raw in items or []:
                data = raw if ("part_id" in raw or "partId" in raw) else {**raw, "part_id": part_id}
                record = _parse(SubpartRecord, data)
                if record is not None:
                    records.append(record)
        return records

    def segments(self) -> list[Segment]:
        """All parts followed by all subparts, as Segments."""
        parts = [r.to_segment() for r in self.part_records()]
        subparts = [r.to_segment() for r in self.subpart_records()]
        return parts + subparts

    def with_update(self, update: TimepointUpdate) -> ShowSnapshot:
        """Return a copy with one segment's timepoints replaced.

        Raises:
            KeyError: If no record with that id exists.
        """
        data = self.model_dump(by_alias=True, exclude_unset=True)
        data.setdefault("parts", [])
        data.setdefault("subpartsByPart", {})
        if update.kind == "part":
            candidates = data["parts"]
        else:
            candidates = [s for items in data["subpartsByPart"].values() for s in items or []]
        for record in candidates:
            if str(record.get("id")) == update.segment_id:
                if update.start is not None:
                    record[START_KEY] = update.start
                if update.end is not None:
                    record[END_KEY] = update.end
                return ShowSnapshot.model_validate(data)
        raise KeyError(f"No {update.kind} with id {update.segment_id!r} in snapshot")

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_unset=True, indent=indent)


def _parse(model: type[BaseModel], raw: Any):
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed {model.__name__}: {e.error_count()} error(s)")
        return None
