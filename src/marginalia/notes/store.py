"""The notes store: durable, human-editable state for highlights.

A NotesStore wraps a Document holding an org outline.  Each source
document gets a top-level section keyed by its canonical name; each
highlight gets a child section keyed by its id, carrying the position,
label and persisted properties in a property drawer, followed by the
user's annotation body.  The store document's text is the authority:
if it was edited since the outline was last parsed, it is re-read
before any change is applied.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from marginalia.config import StoreConfig, get_settings
from marginalia.document import Document
from marginalia.highlights.models import NAMESPACE, is_persisted_key
from marginalia.notes.naming import resolve_locator, resolve_title
from marginalia.notes.outline import Outline, Section

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from marginalia.highlights.models import Highlight

logger = logging.getLogger(__name__)

SOURCE_KEY = f"{NAMESPACE}source"
ID_KEY = f"{NAMESPACE}id"
BEG_KEY = f"{NAMESPACE}beg"
END_KEY = f"{NAMESPACE}end"
LABEL_KEY = f"{NAMESPACE}label"
LINK_KEY = f"{NAMESPACE}link"

#: Keys written by the store itself rather than taken from highlight properties.
STRUCTURAL_KEYS = frozenset({SOURCE_KEY, ID_KEY, BEG_KEY, END_KEY, LABEL_KEY, LINK_KEY})


@dataclass(frozen=True)
class StoredHighlight:
    """A highlight as recorded in the notes store."""

    id: str
    beg: int
    end: int
    label: str | None
    body_excerpt: str
    properties: dict[str, str] = field(default_factory=dict)

    @property
    def span(self) -> tuple[int, int]:
        return (self.beg, self.end)


def collapse_lines(text: str) -> str:
    """Collapse embedded line breaks (and the space around them) to one space."""
    return " ".join(part.strip() for part in text.splitlines() if part.strip())


class NotesStore:
    """Highlight database kept in an org outline document.

    Attributes:
        document: The store's own Document.
        listeners: Source documents subscribed to this store's saves, in
            registration order.
    """

    def __init__(
        self,
        document: Document,
        config: StoreConfig | None = None,
        *,
        title_resolver: Callable[[Document], str] = resolve_title,
        locator: Callable[[Document, int], str] = resolve_locator,
    ) -> None:
        self.document = document
        self.config = config or get_settings().store
        self.title_resolver = title_resolver
        self.locator = locator
        self.listeners: list[Document] = []
        self._outline = Outline()
        self._rendered: str | None = None
        # Nesting depth of batch(); changes are flushed when it drops to 0
        self._batch_depth = 0
        self.reload()

    @classmethod
    def open(cls, path: Path, config: StoreConfig | None = None) -> NotesStore:
        """Open (or start) the store kept in ``path``."""
        return cls(Document.load(path), config)

    def __repr__(self) -> str:
        return f"NotesStore({self.document.name!r})"

    @property
    def path(self) -> Path | None:
        return self.document.path

    @property
    def outline(self) -> Outline:
        self._refresh()
        return self._outline

    # --- Outline <-> document text ---

    def reload(self) -> None:
        """Re-parse the outline from the store document's current text."""
        text = self.document.text
        self._outline = Outline.parse(text)
        self._rendered = text

    def _refresh(self) -> None:
        if self.document.text != self._rendered:
            logger.debug("%s edited directly; re-reading outline", self.document.name)
            self.reload()

    def _flush(self) -> None:
        if self._batch_depth:
            return
        text = self._outline.render()
        self.document.set_text(text)
        self._rendered = self.document.text

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Apply several changes, writing the store text once at the end."""
        self._refresh()
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if not self._batch_depth:
                self._flush()

    # --- Lookup ---

    def find_source_section(self, source_name: str) -> Section | None:
        self._refresh()
        return next(
            (s for s in self._outline.sections if s.get(SOURCE_KEY) == source_name),
            None,
        )

    def find_entry(
        self, highlight_id: str, source_name: str | None = None
    ) -> Section | None:
        """Child section recording ``highlight_id``.

        Searches under ``source_name`` when given, else the whole store.
        """
        if source_name is not None:
            parent = self.find_source_section(source_name)
            if parent is None:
                return None
            candidates = parent.children
        else:
            self._refresh()
            candidates = [s for s in self._outline.walk() if s.parent is not None]
        return next((s for s in candidates if s.get(ID_KEY) == highlight_id), None)

    def body(self, highlight_id: str, source_name: str | None = None) -> str:
        """Full annotation body of an entry (empty if there is none)."""
        section = self.find_entry(highlight_id, source_name)
        return section.body_text if section else ""

    def body_offset(
        self, highlight_id: str, source_name: str | None = None
    ) -> int | None:
        """Offset in the store text where an entry's body begins."""
        section = self.find_entry(highlight_id, source_name)
        if section is None:
            return None
        return self._outline.body_offset(section)

    def _excerpt(self, section: Section) -> str:
        body = section.body_text
        if not body:
            return self.config.empty_body_marker
        return body[: self.config.excerpt_limit]

    # --- Mutation ---

    def upsert(
        self, source: Document, highlight: Highlight, excerpt: str | None = None
    ) -> str:
        """Record ``highlight`` under ``source``, creating sections as needed.

        A new entry's heading is the highlighted text (or ``excerpt``) on
        one line.  An existing entry only has its position and persisted
        properties rewritten; its heading and body are the user's.

        Returns:
            The entry's annotation body, truncated, or the empty-body marker.
        """
        source_name = source.canonical_name
        if not source_name:
            msg = f"Cannot record highlights for unnamed document {source!r}"
            raise ValueError(msg)

        parent = self.find_source_section(source_name)
        if parent is None:
            parent = self._outline.add_section(
                Section(level=1, heading=self.title_resolver(source))
            )
            parent.set(SOURCE_KEY, source_name)
            logger.debug("New notes section for %s", source_name)

        entry = next(
            (s for s in parent.children if s.get(ID_KEY) == highlight.id), None
        )
        if entry is None:
            if excerpt is None:
                excerpt = source.substring(highlight.beg, highlight.end)
            entry = parent.add_child(
                Section(level=parent.level + 1, heading=collapse_lines(excerpt))
            )
            entry.set(ID_KEY, highlight.id)

        self._write_position(source, entry, highlight)
        self._flush()
        return self._excerpt(entry)

    def _write_position(
        self, source: Document, entry: Section, highlight: Highlight
    ) -> None:
        entry.set(BEG_KEY, str(highlight.beg))
        entry.set(END_KEY, str(highlight.end))
        if highlight.label is not None:
            entry.set(LABEL_KEY, highlight.label)
        else:
            entry.delete(LABEL_KEY)
        entry.set(LINK_KEY, self.locator(source, highlight.beg))
        persisted = {
            k: v
            for k, v in highlight.persisted_properties().items()
            if k not in STRUCTURAL_KEYS
        }
        stale = [
            k
            for k in entry.properties
            if is_persisted_key(k) and k not in STRUCTURAL_KEYS and k not in persisted
        ]
        for key in stale:
            entry.delete(key)
        for key, value in persisted.items():
            entry.set(key, value)

    def remove(
        self,
        highlight_id: str,
        hard_delete: bool = False,
        confirm: Callable[[Section], bool] | None = None,
        source_name: str | None = None,
    ) -> bool:
        """Remove an entry from the store.

        By default only the marginalia properties are cleared, so the
        heading and body stay in the file as plain notes.  ``hard_delete``
        removes the whole section, but an entry with a non-empty body is
        only deleted if ``confirm(section)`` agrees.  Without a ``confirm``
        channel such a deletion is refused.

        Returns:
            True if the entry was found and changed.
        """
        entry = self.find_entry(highlight_id, source_name)
        if entry is None:
            logger.debug("No notes entry for %s", highlight_id)
            return False

        if hard_delete:
            if entry.body_text and (confirm is None or not confirm(entry)):
                logger.info(
                    "Refusing to delete notes for %s: annotation body not empty",
                    highlight_id,
                )
                return False
            self._outline.remove(entry)
            logger.debug("Deleted notes entry %s", highlight_id)
        else:
            for key in [k for k in entry.properties if k.startswith(NAMESPACE)]:
                entry.delete(key)
            logger.debug("Cleared notes properties of %s", highlight_id)

        self._flush()
        return True

    def prune_orphans(self, source_name: str, live_ids: set[str]) -> int:
        """Soft-remove entries under ``source_name`` whose id is not live."""
        parent = self.find_source_section(source_name)
        if parent is None:
            return 0
        orphans = [
            s.get(ID_KEY)
            for s in parent.children
            if s.get(ID_KEY) and s.get(ID_KEY) not in live_ids
        ]
        with self.batch():
            for highlight_id in orphans:
                self.remove(highlight_id, source_name=source_name)
        return len(orphans)

    # --- Queries ---

    def get_all(self, source_name: str) -> list[StoredHighlight]:
        """Every highlight recorded for ``source_name``, in file order."""
        parent = self.find_source_section(source_name)
        if parent is None:
            logger.debug("No notes section for %s", source_name)
            return []

        entries: list[StoredHighlight] = []
        for section in parent.children:
            stored = self._to_stored(section)
            if stored is not None:
                entries.append(stored)
        return entries

    def _to_stored(self, section: Section) -> StoredHighlight | None:
        highlight_id = section.get(ID_KEY)
        beg, end = section.get(BEG_KEY), section.get(END_KEY)
        if not highlight_id or beg is None or end is None:
            return None
        try:
            beg_i, end_i = int(beg), int(end)
        except ValueError:
            logger.warning(
                "Ignoring notes entry %s with bad position %r-%r",
                highlight_id,
                beg,
                end,
            )
            return None
        properties = {
            k: v
            for k, v in section.properties.items()
            if is_persisted_key(k) and k not in STRUCTURAL_KEYS
        }
        return StoredHighlight(
            id=highlight_id,
            beg=beg_i,
            end=end_i,
            label=section.get(LABEL_KEY),
            body_excerpt=self._excerpt(section),
            properties=properties,
        )

    def source_names(self) -> list[str]:
        self._refresh()
        return [
            name for s in self._outline.sections if (name := s.get(SOURCE_KEY))
        ]

    # --- Persistence ---

    def save(self, requester: Document | None = None) -> None:
        """Persist the store.

        Skipped when ``requester`` is the store document itself: its own
        save is already writing this text.
        """
        if requester is self.document:
            logger.debug("Store %s is the saving document; skipping", self.path)
            return
        self.document.save()


class NotesStoreRegistry:
    """Open notes stores, one per path."""

    def __init__(self, config: StoreConfig | None = None) -> None:
        self.config = config
        self._stores: dict[str, NotesStore] = {}

    def get_or_open(self, path: Path, document: Document | None = None) -> NotesStore:
        """The store kept at ``path``, opening it if needed.

        Args:
            path: Location of the notes file.
            document: An already-open document for ``path`` to use as the
                store's text (a source document that is its own store).
        """
        key = str(path.expanduser().resolve())
        store = self._stores.get(key)
        if store is not None and (document is None or store.document is document):
            return store
        if document is None:
            document = Document.load(Path(key))
        store = NotesStore(document, self.config)
        self._stores[key] = store
        logger.info("Opened notes store %s", key)
        return store

    def for_document(self, document: Document) -> NotesStore | None:
        return next(
            (s for s in self._stores.values() if s.document is document), None
        )

    def stores(self) -> list[NotesStore]:
        return list(self._stores.values())
