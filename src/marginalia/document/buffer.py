"""Editable text documents backed by a pycrdt Text.

A Document is the shared state for one piece of text: its content, its
live markers, its highlight tracker and its save hooks.  Any number of
DocumentView objects may present it, each with its own cursor.  The
document counts its open views and is closed when the last one goes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pycrdt import Doc, Text

from marginalia.document.markers import Marker
from marginalia.exc import ReadOnlyDocument

if TYPE_CHECKING:
    from collections.abc import Callable

    from marginalia.highlights.tracker import SpanTracker

logger = logging.getLogger(__name__)


class Document:
    """A named, optionally file-backed text buffer.

    Attributes:
        name: Canonical name (absolute path, URL, ...).  ``None`` for
            scratch documents that cannot carry highlights.
        path: File the text is read from and saved to, if any.
        title: Display title; resolvers fall back to the name.
        writable: False for read-only documents.
        alive: False once the last view has been closed.
        sync_initialized: True once subscribed to a notes store.
        visible_ranges: Unfolded regions as ``(beg, end)`` pairs, or None
            when the whole document is visible.
    """

    def __init__(
        self,
        name: str | None = None,
        text: str = "",
        *,
        path: Path | None = None,
        title: str | None = None,
        writable: bool = True,
    ) -> None:
        from marginalia.highlights.tracker import SpanTracker

        self.path = path
        self.name = name if name is not None else (str(path) if path else None)
        self.title = title
        self.writable = writable
        self.alive = True
        self.sync_initialized = False
        self.visible_ranges: list[tuple[int, int]] | None = None

        self.doc = Doc()
        self.doc["text"] = Text()
        if text:
            content = self.content
            content += text

        self._markers: list[Marker] = []
        self._view_count = 0
        self._before_save_hooks: list[Callable[[Document], None]] = []
        self._after_save_hooks: list[Callable[[Document], None]] = []
        self.tracker: SpanTracker = SpanTracker(self)

    @classmethod
    def load(cls, path: Path, *, writable: bool = True) -> Document:
        """Open a file-backed document; a missing file starts empty."""
        path = path.expanduser().resolve()
        text = path.read_text(encoding="utf-8") if path.exists() else ""
        logger.debug("Loaded %s (%d chars)", path, len(text))
        return cls(str(path), text, path=path, writable=writable)

    def __repr__(self) -> str:
        return f"Document({self.name!r})"

    @property
    def content(self) -> Text:
        """Get the underlying pycrdt Text."""
        return self.doc["text"]

    @property
    def canonical_name(self) -> str | None:
        return self.name

    @property
    def text(self) -> str:
        return str(self.content)

    def __len__(self) -> int:
        return len(self.content)

    def substring(self, beg: int, end: int) -> str:
        return self.text[beg:end]

    def line_number(self, offset: int) -> int:
        """1-based line number of ``offset``."""
        return self.text.count("\n", 0, max(offset, 0)) + 1

    # --- Editing ---

    def _check_writable(self) -> None:
        if not self.writable:
            raise ReadOnlyDocument(self.name)

    def insert(self, pos: int, text: str) -> None:
        """Insert ``text`` at ``pos`` and re-anchor every marker."""
        self._check_writable()
        pos = min(max(pos, 0), len(self))
        if not text:
            return
        self.content.insert(pos, text)
        for marker in self._markers:
            marker.on_insert(pos, len(text))

    def delete(self, beg: int, end: int) -> None:
        """Delete ``[beg, end)`` and re-anchor every marker."""
        self._check_writable()
        beg, end = sorted((beg, end))
        beg = max(beg, 0)
        end = min(end, len(self))
        if beg >= end:
            return
        del self.content[beg:end]
        for marker in self._markers:
            marker.on_delete(beg, end)

    def set_text(self, text: str) -> None:
        """Replace the whole text, touching only the region that changed.

        The common prefix and suffix are kept, so markers outside the
        changed region stay where they are.
        """
        old = self.text
        if old == text:
            return
        prefix = 0
        limit = min(len(old), len(text))
        while prefix < limit and old[prefix] == text[prefix]:
            prefix += 1
        suffix = 0
        while (
            suffix < limit - prefix
            and old[len(old) - 1 - suffix] == text[len(text) - 1 - suffix]
        ):
            suffix += 1
        writable = self.writable
        self.writable = True
        try:
            self.delete(prefix, len(old) - suffix)
            self.insert(prefix, text[prefix : len(text) - suffix])
        finally:
            self.writable = writable

    # --- Markers ---

    def add_marker(self, beg: int, end: int) -> Marker:
        marker = Marker(beg, end)
        marker.clamp(len(self))
        self._markers.append(marker)
        return marker

    def remove_marker(self, marker: Marker) -> None:
        marker.detached = True
        if marker in self._markers:
            self._markers.remove(marker)

    # --- Folding ---

    def fold(self, beg: int, end: int) -> None:
        """Hide ``[beg, end)`` from view."""
        ranges = self.visible_ranges or [(0, len(self))]
        visible: list[tuple[int, int]] = []
        for vbeg, vend in ranges:
            if vend <= beg or vbeg >= end:
                visible.append((vbeg, vend))
                continue
            if vbeg < beg:
                visible.append((vbeg, beg))
            if vend > end:
                visible.append((end, vend))
        self.visible_ranges = visible

    def unfold_all(self) -> None:
        self.visible_ranges = None

    def is_visible(self, offset: int) -> bool:
        if self.visible_ranges is None:
            return 0 <= offset <= len(self)
        return any(vbeg <= offset < vend for vbeg, vend in self.visible_ranges)

    # --- Saving ---

    def add_before_save_hook(self, hook: Callable[[Document], None]) -> None:
        """Register ``hook`` to run before the text is written; no duplicates."""
        if hook not in self._before_save_hooks:
            self._before_save_hooks.append(hook)

    def add_after_save_hook(self, hook: Callable[[Document], None]) -> None:
        """Register ``hook`` to run after every save; duplicates are ignored."""
        if hook not in self._after_save_hooks:
            self._after_save_hooks.append(hook)

    def save(self) -> None:
        """Write the text to ``path`` (if any), with save hooks either side."""
        for hook in list(self._before_save_hooks):
            hook(self)
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.text, encoding="utf-8")
            logger.debug("Saved %s", self.path)
        for hook in list(self._after_save_hooks):
            hook(self)

    # --- Views ---

    def open_view(self, *, read_only: bool = False) -> DocumentView:
        self._view_count += 1
        self.alive = True
        return DocumentView(self, read_only=read_only)

    def _release_view(self) -> None:
        self._view_count = max(self._view_count - 1, 0)
        if self._view_count == 0:
            self.close()

    def close(self) -> None:
        """Mark the document dead; subscribers drop it on the next pull."""
        self.alive = False
        logger.debug("Closed %s", self.name)


class DocumentView:
    """One presentation of a Document with its own cursor."""

    def __init__(self, document: Document, *, read_only: bool = False) -> None:
        self.document = document
        self.read_only = read_only
        self.cursor = 0
        self.closed = False

    def __repr__(self) -> str:
        return f"DocumentView({self.document.name!r}, cursor={self.cursor})"

    def insert(self, text: str) -> None:
        """Insert at the cursor and move the cursor past the new text."""
        if self.read_only:
            raise ReadOnlyDocument(self.document.name)
        self.document.insert(self.cursor, text)
        self.cursor += len(text)

    def delete(self, beg: int, end: int) -> None:
        if self.read_only:
            raise ReadOnlyDocument(self.document.name)
        self.document.delete(beg, end)
        self.cursor = min(self.cursor, len(self.document))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.document._release_view()
