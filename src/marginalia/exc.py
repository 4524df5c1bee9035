"""Exceptions raised by the highlight and notes core."""

from __future__ import annotations


class DocumentNotSupported(Exception):  # noqa: N818
    """Raised when a document has no canonical name to key its notes by."""

    def __init__(self, document: object) -> None:
        self.document = document
        super().__init__(f"Document {document!r} is not supported: it has no name")


class ReadOnlyDocument(Exception):  # noqa: N818
    """Raised when an edit is attempted on a read-only document or view."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        super().__init__(f"Document {name or '<unnamed>'} is read-only")


class NoHighlights(Exception):  # noqa: N818
    """Raised by navigation when the document has no highlights."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        super().__init__(f"No highlights in {name or '<unnamed>'}")


class NoVisibleHighlights(Exception):  # noqa: N818
    """Raised by navigation when every highlight is folded out of view."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        super().__init__(f"No visible highlights in {name or '<unnamed>'}")
