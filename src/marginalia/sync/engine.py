"""Keep source documents and their shared notes stores consistent.

Saving a source document pushes every tracked highlight into its notes
store and persists the store.  Saving a notes store pulls its recorded
positions back into every live document subscribed to it.  A store save
caused by a source save skips the document that started the cycle, so a
save never re-enters its own sync.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from marginalia.config import get_settings
from marginalia.exc import DocumentNotSupported
from marginalia.highlights.pens import Mode
from marginalia.notes.naming import store_path_for
from marginalia.notes.store import NotesStoreRegistry

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from marginalia.config import StoreConfig
    from marginalia.document import Document
    from marginalia.highlights.models import Highlight
    from marginalia.highlights.pens import PenRegistry
    from marginalia.notes.store import NotesStore

logger = logging.getLogger(__name__)


class SyncEngine:
    """Push highlights on source save; pull them back on store save.

    Attributes:
        pens: Registry used to rebuild highlights pulled from a store.
        stores: Open notes stores, by path.
        config: Store configuration handed to the path resolver.
    """

    def __init__(
        self,
        pens: PenRegistry,
        stores: NotesStoreRegistry | None = None,
        config: StoreConfig | None = None,
        *,
        path_resolver: Callable[[Document, StoreConfig], Path] = store_path_for,
    ) -> None:
        self.pens = pens
        self.config = config or get_settings().store
        self.stores = stores or NotesStoreRegistry(self.config)
        self.path_resolver = path_resolver
        self._store_of: dict[Document, NotesStore] = {}
        # Document whose save started the cycle in progress
        self._originator: Document | None = None
        pens.attach_sink(self.push_highlight)

    # --- Wiring ---

    def resolve_store_path(self, source: Document) -> Path:
        return self.path_resolver(source, self.config)

    def store_for(self, source: Document) -> NotesStore | None:
        """The store ``source`` is subscribed to, if any."""
        return self._store_of.get(source)

    def ensure_store(self, source: Document) -> NotesStore:
        """Open the store for ``source`` and subscribe to it if needed.

        Raises:
            DocumentNotSupported: ``source`` has no canonical name.
        """
        store = self._store_of.get(source)
        if store is not None:
            return store
        if not source.canonical_name:
            raise DocumentNotSupported(source)

        path = self.resolve_store_path(source)
        own = source.path is not None and source.path.resolve() == path.resolve()
        store = self.stores.get_or_open(path, source if own else None)
        self.subscribe(source, store)
        return store

    def subscribe(self, source: Document, store: NotesStore) -> None:
        """Register ``source`` as a listener on ``store``'s saves (idempotent)."""
        if source not in store.listeners:
            store.listeners.append(source)
            logger.debug("%s subscribed to %s", source.name, store.path)
        self._store_of[source] = store
        source.sync_initialized = True
        source.add_before_save_hook(self._before_source_save)
        store.document.add_after_save_hook(self._after_store_save)

    def _before_source_save(self, document: Document) -> None:
        self.on_source_save(document)

    def _after_store_save(self, document: Document) -> None:
        store = self.stores.for_document(document)
        if store is not None:
            self.on_store_save(store)

    # --- Push ---

    def push_highlight(self, source: Document, highlight: Highlight) -> str:
        """Record one new or changed highlight in the source's store."""
        return self.ensure_store(source).upsert(source, highlight)

    def on_source_save(self, source: Document) -> None:
        """Housekeep, then write every tracked highlight to the store."""
        if source is self._originator:
            logger.debug("Ignoring re-entrant save of %s", source.name)
            return
        store = self.store_for(source)
        if store is None and source.sync_initialized:
            # Dropped as a dead subscriber, then reopened
            logger.debug("Re-subscribing %s to its notes store", source.name)
            store = self.ensure_store(source)
        if store is None:
            logger.debug("%s has no notes store; nothing to push", source.name)
            return

        self._originator = source
        try:
            tracker = source.tracker
            with store.batch():
                tracker.housekeep(
                    on_prune=lambda hid: store.remove(
                        hid, source_name=source.canonical_name
                    )
                )
                tracker.sort()
                for highlight in tracker:
                    store.upsert(source, highlight)
            logger.info(
                "Pushed %d highlight(s) from %s to %s",
                len(tracker),
                source.name,
                store.path,
            )
            store.save(requester=source)
        finally:
            self._originator = None

    # --- Pull ---

    def on_store_save(self, store: NotesStore) -> None:
        """Apply the store's recorded highlights to every live subscriber."""
        dead = [d for d in store.listeners if not d.alive]
        for document in dead:
            store.listeners.remove(document)
            self._store_of.pop(document, None)
            logger.debug("Dropped closed subscriber %s", document.name)

        store.reload()
        for document in list(store.listeners):
            if document is self._originator:
                continue
            self.apply(document, store)

    def apply(self, document: Document, store: NotesStore) -> int:
        """Bring ``document``'s tracker in line with ``store``.

        Entries whose id, span or label differ from the tracked highlight
        are rebuilt in LOAD mode.  Tracked highlights with no entry are
        stale and dropped.

        Returns:
            Number of highlights rebuilt.
        """
        tracker = document.tracker
        entries = store.get_all(document.canonical_name or "")
        stored_ids = {entry.id for entry in entries}

        for highlight in tracker:
            if highlight.id not in stored_ids:
                logger.debug(
                    "Dropping %s from %s: not in notes store",
                    highlight.id,
                    document.name,
                )
                tracker.remove(highlight)

        applied = 0
        length = len(document)
        for entry in entries:
            current = tracker.get(entry.id)
            if (
                current is not None
                and current.span == entry.span
                and current.label == entry.label
            ):
                continue
            if current is not None:
                tracker.remove(current)
            if not 0 <= entry.beg <= entry.end <= length:
                logger.warning(
                    "Skipping %s in %s: span [%d, %d) outside text",
                    entry.id,
                    document.name,
                    entry.beg,
                    entry.end,
                )
                continue
            self.pens.create(
                tracker,
                entry.label,
                entry.beg,
                entry.end,
                id=entry.id,
                mode=Mode.LOAD,
                properties=entry.properties,
            )
            applied += 1

        tracker.sort()
        if applied:
            logger.info("Applied %d highlight(s) to %s", applied, document.name)
        return applied

    def load(self, source: Document) -> int:
        """Subscribe ``source`` to its store and load its highlights.

        Returns:
            Number of highlights loaded.
        """
        store = self.ensure_store(source)
        return self.apply(source, store)
