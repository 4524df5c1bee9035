"""Operations the surrounding command layer calls.

An Annotator binds one DocumentView to the shared pen registry and sync
engine.  Key bindings, menus and prompts live outside this package; they
call these methods and supply a confirmation callback where one exists.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from marginalia.exc import DocumentNotSupported, NoHighlights, NoVisibleHighlights
from marginalia.highlights.pens import Mode

if TYPE_CHECKING:
    from collections.abc import Callable

    from marginalia.document import Document, DocumentView
    from marginalia.highlights.models import Highlight
    from marginalia.highlights.pens import PenRegistry
    from marginalia.notes.outline import Section
    from marginalia.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class Direction(StrEnum):
    NEXT = "next"
    PREV = "prev"


class Annotator:
    """Highlight commands for one view of a document.

    Attributes:
        view: The view whose cursor navigation moves.
        engine: Sync engine shared by every open document.
        confirm: Asks the user before an annotation body is destroyed.
            None in non-interactive use, where such deletions are refused.
    """

    def __init__(
        self,
        view: DocumentView,
        engine: SyncEngine,
        confirm: Callable[[Section], bool] | None = None,
    ) -> None:
        self.view = view
        self.engine = engine
        self.confirm = confirm

    @property
    def document(self) -> Document:
        return self.view.document

    @property
    def pens(self) -> PenRegistry:
        return self.engine.pens

    def _require_name(self) -> str:
        name = self.document.canonical_name
        if not name:
            logger.warning("Highlighting not supported in %r", self.document)
            raise DocumentNotSupported(self.document)
        return name

    def create_highlight(self, beg: int, end: int, pen_label: str | None = None) -> str:
        """Mark ``[beg, end)`` with a pen and record it in the notes store.

        Returns:
            The new highlight's id.

        Raises:
            DocumentNotSupported: The document has no canonical name.
        """
        self._require_name()
        self.engine.ensure_store(self.document)
        highlight = self.pens.create(
            self.document.tracker, pen_label, beg, end, mode=Mode.NEW
        )
        logger.info(
            "Marked [%d, %d) in %s with %s",
            highlight.beg,
            highlight.end,
            self.document.name,
            pen_label or "default pen",
        )
        return highlight.id

    def remove_highlight(self, at_offset: int, hard_delete: bool = False) -> bool:
        """Remove the highlight at ``at_offset``.

        The notes entry loses its marginalia properties.  With
        ``hard_delete`` the entry is deleted outright; if that is refused
        (non-empty body, no confirmation) the entry is kept as plain notes
        so the highlight is not rebuilt on the next pull.

        Returns:
            True if a highlight was removed.
        """
        highlight = self.document.tracker.find_at(at_offset)
        if highlight is None:
            return False
        self.document.tracker.remove(highlight)

        store = self.engine.store_for(self.document)
        if store is not None:
            name = self.document.canonical_name
            removed = store.remove(
                highlight.id, hard_delete, self.confirm, source_name=name
            )
            if hard_delete and not removed:
                store.remove(highlight.id, source_name=name)
        return True

    def navigate(self, direction: Direction | str = Direction.NEXT) -> bool:
        """Move the cursor to the next or previous highlight, wrapping.

        Returns:
            False (with a log message) when there is nowhere to go.
        """
        tracker = self.document.tracker
        tracker.sort()
        try:
            if Direction(direction) is Direction.NEXT:
                self.view.cursor = tracker.next(self.view.cursor)
            else:
                self.view.cursor = tracker.prev(self.view.cursor)
        except (NoHighlights, NoVisibleHighlights) as exc:
            logger.info("%s", exc)
            return False
        return True

    def toggle_visibility(self) -> bool:
        """Hide or show every highlight; returns True if now hidden."""
        return self.document.tracker.toggle_visibility()

    def change_pen(self, at_offset: int, new_label: str | None) -> Highlight | None:
        """Redraw the highlight at ``at_offset`` with another pen."""
        highlight = self.document.tracker.find_at(at_offset)
        if highlight is None:
            return None
        return self.pens.change_pen(self.document.tracker, highlight, new_label)

    def open_annotation(
        self, at_offset: int, view_only: bool = False
    ) -> DocumentView | None:
        """Open the notes store at the annotation of the highlight here.

        The entry is brought up to date first.  The returned view's cursor
        sits at the start of the annotation body; ``view_only`` makes the
        view read-only.
        """
        highlight = self.document.tracker.find_at(at_offset)
        if highlight is None:
            return None
        store = self.engine.ensure_store(self.document)
        store.upsert(self.document, highlight)
        view = store.document.open_view(read_only=view_only)
        offset = store.body_offset(highlight.id, self.document.canonical_name)
        view.cursor = offset or 0
        return view

    def view_next(self) -> DocumentView | None:
        """Move to the next highlight and show its annotation read-only."""
        if not self.navigate(Direction.NEXT):
            return None
        return self.open_annotation(self.view.cursor, view_only=True)

    def view_prev(self) -> DocumentView | None:
        """Move to the previous highlight and show its annotation read-only."""
        if not self.navigate(Direction.PREV):
            return None
        return self.open_annotation(self.view.cursor, view_only=True)
