"""Editable documents, their views and live markers."""

from marginalia.document.buffer import Document, DocumentView
from marginalia.document.markers import Marker

__all__ = ["Document", "DocumentView", "Marker"]
