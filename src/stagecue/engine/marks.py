"""Mark board: captured timestamps grouped into rows while authoring.

Rows only organize marks for the person marking the track; they have no
effect on playback or on how marks are assigned.
"""

from __future__ import annotations

import logging

from stagecue.models.schema import Mark, MarkRow

logger = logging.getLogger(__name__)


class MarkBoardError(Exception):
    """Invalid operation on the mark board."""

    pass


class MarkBoard:
    """Ordered rows of marks with one active row receiving new captures."""

    def __init__(self, rows: list[MarkRow] | None = None) -> None:
        self._rows: list[MarkRow] = list(rows) if rows else [MarkRow(label="Row 1")]
        self._active_row_id = self._rows[0].id

    @property
    def rows(self) -> list[MarkRow]:
        return list(self._rows)

    @property
    def active_row(self) -> MarkRow:
        return self._row(self._active_row_id)

    def set_active(self, row_id: str) -> None:
        self._active_row_id = self._row(row_id).id

    def capture(self, t: float, row_id: str | None = None) -> Mark:
        """Capture a mark at media time ``t`` into a row (the active one by default)."""
        row = self._row(row_id) if row_id is not None else self.active_row
        mark = Mark(time=max(0.0, t))
        row.marks.append(mark)
        logger.debug(f"Captured mark {mark.id} at {mark.time:.2f}s in {row.label}")
        return mark

    def add_row(self, label: str | None = None) -> MarkRow:
        """Insert a new row after the active one and make it active."""
        row = MarkRow(label=label or f"Row {len(self._rows) + 1}")
        index = self._index(self._active_row_id)
        self._rows.insert(index + 1, row)
        self._active_row_id = row.id
        return row

    def remove_row(self, row_id: str) -> MarkRow:
        """Remove a row and its marks. The last remaining row cannot be removed.

        Raises:
            MarkBoardError: If the row is unknown or is the only row.
        """
        if len(self._rows) <= 1:
            raise MarkBoardError("Cannot remove the only mark row")
        index = self._index(row_id)
        row = self._rows.pop(index)
        if self._active_row_id == row_id:
            self._active_row_id = self._rows[max(0, index - 1)].id
        return row

    def move_mark(self, mark_id: str, row_id: str) -> Mark:
        """Move a mark to the end of another row."""
        target = self._row(row_id)
        mark = self.remove_mark(mark_id)
        target.marks.append(mark)
        return mark

    def remove_mark(self, mark_id: str) -> Mark:
        for row in self._rows:
            for i, mark in enumerate(row.marks):
                if mark.id == mark_id:
                    return row.marks.pop(i)
        raise MarkBoardError(f"Unknown mark: {mark_id}")

    def find_mark(self, mark_id: str) -> Mark | None:
        for row in self._rows:
            for mark in row.marks:
                if mark.id == mark_id:
                    return mark
        return None

    def marks(self) -> list[Mark]:
        return [mark for row in self._rows for mark in row.marks]

    def _index(self, row_id: str) -> int:
        for i, row in enumerate(self._rows):
            if row.id == row_id:
                return i
        raise MarkBoardError(f"Unknown mark row: {row_id}")

    def _row(self, row_id: str) -> MarkRow:
        return self._rows[self._index(row_id)]
