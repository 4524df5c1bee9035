"""Shared pytest fixtures for marginalia tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from marginalia.config import StoreConfig, get_settings
from marginalia.document import Document
from marginalia.highlights.pens import PenRegistry
from marginalia.notes.store import NotesStore
from marginalia.sync.engine import SyncEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

# Offsets used throughout the tests:
#   "quick" 4-9, "brown" 10-15, "fox" 16-19, "lazy" 35-39, "dog" 40-43,
#   "Pack" 45-49, "jugs" 80-84.  Length 86.
SAMPLE_TEXT = (
    "The quick brown fox jumps over the lazy dog.\n"
    "Pack my box with five dozen liquor jugs.\n"
)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Reset the cached Settings around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store_config(tmp_path: Path) -> StoreConfig:
    return StoreConfig(notes_dir=tmp_path / "notes")


@pytest.fixture
def pens() -> PenRegistry:
    return PenRegistry.with_defaults()


@pytest.fixture
def engine(pens: PenRegistry, store_config: StoreConfig) -> SyncEngine:
    return SyncEngine(pens, config=store_config)


@pytest.fixture
def make_document(tmp_path: Path) -> Callable[..., Document]:
    """Factory writing ``text`` to ``tmp_path/name`` and loading it."""

    def _make(name: str = "essay.txt", text: str = SAMPLE_TEXT) -> Document:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return Document.load(path)

    return _make


@pytest.fixture
def memory_store(store_config: StoreConfig) -> NotesStore:
    """A notes store that lives only in memory."""
    return NotesStore(Document("notes.org"), store_config)
