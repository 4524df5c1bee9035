"""Per-document tracking of live highlights.

The SpanTracker owns the ordered set of Highlights for one Document.
Spans follow text edits through the document's markers; the tracker adds
identity, ordering, lookup, navigation and housekeeping on top.
"""

from __future__ import annotations

import logging
from itertools import count
from typing import TYPE_CHECKING

from marginalia.exc import DocumentNotSupported, NoHighlights, NoVisibleHighlights
from marginalia.highlights.models import EMPTY_STYLE, Highlight, Style
from marginalia.notes.naming import generate_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from marginalia.document import Document

logger = logging.getLogger(__name__)


class SpanTracker:
    """The live set of Highlights for one document.

    Attributes:
        document: The document whose text the spans index into.
        id_generator: Callable producing new highlight ids.
    """

    def __init__(
        self,
        document: Document,
        id_generator: Callable[[], str] = generate_id,
    ) -> None:
        self.document = document
        self.id_generator = id_generator
        self._highlights: list[Highlight] = []
        self._seq = count(1)
        # Store entries of pruned highlights still waiting for a writable pass
        self._pending_removals: list[str] = []
        self.hidden = False

    def __iter__(self) -> Iterator[Highlight]:
        return iter(list(self._highlights))

    def __len__(self) -> int:
        return len(self._highlights)

    @property
    def highlights(self) -> list[Highlight]:
        return list(self._highlights)

    @property
    def pending_removals(self) -> list[str]:
        return list(self._pending_removals)

    def _new_id(self) -> str:
        existing = {h.id for h in self._highlights}
        new_id = self.id_generator()
        while new_id in existing:
            new_id = self.id_generator()
        return new_id

    # --- Lifecycle ---

    def create(
        self,
        beg: int,
        end: int,
        label: str | None = None,
        style: Style = EMPTY_STYLE,
        properties: Mapping[str, str] | None = None,
        id: str | None = None,  # noqa: A002
    ) -> Highlight:
        """Start tracking ``[beg, end)`` as a new Highlight.

        Args:
            beg: Start offset (inclusive).
            end: End offset (exclusive).  Swapped with ``beg`` if smaller.
            label: Name of the pen that made the highlight.
            style: Rendering attributes.
            properties: Initial property set.
            id: Reuse this id instead of generating one.

        Returns:
            The new Highlight.

        Raises:
            DocumentNotSupported: The document has no canonical name.
        """
        if not self.document.canonical_name:
            logger.warning("Cannot highlight in unnamed document %r", self.document)
            raise DocumentNotSupported(self.document)

        beg, end = sorted((beg, end))
        marker = self.document.add_marker(beg, end)
        highlight = Highlight(
            id=id or self._new_id(),
            marker=marker,
            label=label,
            style=style,
            properties=dict(properties or {}),
            seq=next(self._seq),
        )
        if self.hidden:
            highlight.hide()
        self._highlights.append(highlight)
        logger.debug(
            "Tracking %s [%d, %d) in %s", highlight.id, beg, end, self.document.name
        )
        return highlight

    def remove(self, highlight: Highlight) -> None:
        """Stop tracking ``highlight``; the notes store is left alone."""
        self.document.remove_marker(highlight.marker)
        if highlight in self._highlights:
            self._highlights.remove(highlight)

    def clear(self) -> None:
        for highlight in list(self._highlights):
            self.remove(highlight)

    def get(self, highlight_id: str) -> Highlight | None:
        return next((h for h in self._highlights if h.id == highlight_id), None)

    # --- Housekeeping ---

    def housekeep(self, on_prune: Callable[[str], object] | None = None) -> int:
        """Drop highlights whose text has been deleted.

        Any Highlight whose span has collapsed to ``beg == end`` is removed.
        When the document is writable, ``on_prune`` is called with each
        pruned id (and with ids left over from earlier read-only passes) so
        the caller can drop the notes entry.  Otherwise the ids are kept for
        the next pass.

        Returns:
            Number of highlights removed from the tracker.
        """
        pruned = [h for h in self._highlights if h.is_degenerate]
        for highlight in pruned:
            self.remove(highlight)
            self._pending_removals.append(highlight.id)
        if pruned:
            logger.info(
                "Pruned %d collapsed highlight(s) from %s",
                len(pruned),
                self.document.name,
            )

        if self._pending_removals and on_prune is not None:
            if self.document.writable:
                for highlight_id in self._pending_removals:
                    on_prune(highlight_id)
                self._pending_removals.clear()
            else:
                logger.debug(
                    "%s is read-only; deferring removal of %d notes entr(ies)",
                    self.document.name,
                    len(self._pending_removals),
                )
        return len(pruned)

    def sort(self) -> None:
        """Order highlights by start offset; ties keep their current order."""
        self._highlights.sort(key=lambda h: h.beg)

    # --- Lookup ---

    def find_at(self, offset: int) -> Highlight | None:
        """Most recently created highlight covering ``offset``."""
        matches = [h for h in self._highlights if h.beg <= offset < h.end]
        return max(matches, key=lambda h: h.seq, default=None)

    def find_in(
        self, beg: int, end: int, highlight_id: str | None = None
    ) -> Highlight | None:
        """Most recently created highlight overlapping ``[beg, end)``.

        With ``highlight_id`` only an exact match on span and id counts.
        """
        if highlight_id is not None:
            matches = [
                h
                for h in self._highlights
                if h.id == highlight_id and h.span == (beg, end)
            ]
        else:
            matches = [
                h
                for h in self._highlights
                if (h.beg < end and beg < h.end) or h.span == (beg, end)
            ]
        return max(matches, key=lambda h: h.seq, default=None)

    # --- Navigation ---

    def positions_visible(self, reverse: bool = False) -> list[int]:
        """Start offsets of highlights in the unfolded part of the document."""
        positions = sorted(
            h.beg for h in self._highlights if self.document.is_visible(h.beg)
        )
        if reverse:
            positions.reverse()
        return positions

    def _positions_or_raise(self, reverse: bool) -> list[int]:
        if not self._highlights:
            raise NoHighlights(self.document.name)
        positions = self.positions_visible(reverse=reverse)
        if not positions:
            raise NoVisibleHighlights(self.document.name)
        return positions

    def next(self, cursor: int) -> int:
        """Start of the next visible highlight after ``cursor``, wrapping."""
        positions = self._positions_or_raise(reverse=False)
        return next((p for p in positions if p > cursor), positions[0])

    def prev(self, cursor: int) -> int:
        """Start of the previous visible highlight before ``cursor``, wrapping."""
        positions = self._positions_or_raise(reverse=True)
        return next((p for p in positions if p < cursor), positions[0])

    # --- Display ---

    def toggle_visibility(self) -> bool:
        """Hide every highlight, or show them again.

        Returns:
            True if the highlights are now hidden.
        """
        self.hidden = not self.hidden
        for highlight in self._highlights:
            if self.hidden:
                highlight.hide()
            else:
                highlight.show()
        return self.hidden
