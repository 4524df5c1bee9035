"""Live span markers that re-anchor as the document text is edited.

A marker covers the half-open range ``[beg, end)``.  Insertion exactly at
``beg`` pushes the marker right (the new text is not taken into the span);
insertion exactly at ``end`` leaves the marker alone.  Deleting text that
covers a boundary collapses that boundary onto the start of the deletion,
so a marker whose text is fully deleted ends up with ``beg == end``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class Marker:
    """A pair of offsets tracked by a Document."""

    beg: int
    end: int
    detached: bool = False

    @property
    def is_degenerate(self) -> bool:
        return self.beg == self.end

    def on_insert(self, pos: int, length: int) -> None:
        if self.beg >= pos:
            self.beg += length
        if self.end > pos:
            self.end += length
        self.end = max(self.end, self.beg)

    def on_delete(self, beg: int, end: int) -> None:
        self.beg = _shift_for_delete(self.beg, beg, end)
        self.end = _shift_for_delete(self.end, beg, end)

    def clamp(self, length: int) -> None:
        self.beg = min(max(self.beg, 0), length)
        self.end = min(max(self.end, self.beg), length)


def _shift_for_delete(offset: int, beg: int, end: int) -> int:
    if offset <= beg:
        return offset
    if offset < end:
        return beg
    return offset - (end - beg)
