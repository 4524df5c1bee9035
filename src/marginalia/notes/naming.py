"""Pluggable resolvers the core consumes from its surroundings.

Each function here is a default: the tracker, store and sync engine all
accept a replacement callable with the same signature.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    from marginalia.config import StoreConfig
    from marginalia.document import Document

ID_LENGTH = 8


def generate_id() -> str:
    """Return a short, collision-resistant highlight id."""
    return uuid4().hex[:ID_LENGTH]


def resolve_title(document: Document) -> str:
    """Display title for a document's top-level notes section."""
    if document.title:
        return document.title
    if document.path is not None:
        return document.path.name
    return document.name or ""


def resolve_locator(document: Document, offset: int) -> str:
    """Link from a notes entry back to ``offset`` in ``document``.

    File-backed documents get an org file link with a line number.  Other
    documents (URLs and the like) are linked by name.
    """
    if document.path is not None:
        return f"[[file:{document.path}::{document.line_number(offset)}]]"
    return f"[[{document.name}]]"


def store_path_for(document: Document, config: StoreConfig) -> Path:
    """Map a source document to the notes file that records its highlights."""
    if config.policy == "per_source" and document.path is not None:
        return document.path.with_name(f"{document.path.stem}-notes.org")
    return (config.notes_dir.expanduser() / config.file_name).resolve()
