"""Pens: named styles and default properties that make highlights.

A PenRegistry is created once and handed to the sync engine and the
command surface.  Pens are looked up by label when a highlight is made,
with the default pen standing in for missing or unknown labels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from marginalia.highlights.models import Highlight, Style

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from marginalia.document import Document
    from marginalia.highlights.tracker import SpanTracker

logger = logging.getLogger(__name__)

#: Receives highlights made in NEW or CHANGE mode (the sync engine's upsert).
type HighlightSink = Callable[[Document, Highlight], object]


class Mode(StrEnum):
    """Why a highlight is being made."""

    NEW = "new"  # user marked new text
    LOAD = "load"  # rebuilt from notes store state
    CHANGE = "change"  # existing highlight switched to another pen


@dataclass(frozen=True)
class Pen:
    """A label with its style and default properties."""

    label: str | None
    style: Style
    properties: Mapping[str, str] = field(default_factory=dict)


DEFAULT_PEN = Pen(label=None, style=Style(face="highlight", color="yellow"))

# Colorblind-friendly defaults, matching the notes file CATEGORY convention
BUILTIN_PENS: tuple[Pen, ...] = (
    Pen("yellow", Style(color="#f5d76e"), {"CATEGORY": "important"}),
    Pen("red-line", Style(color="#d62728", underline=True), {"CATEGORY": "review"}),
    Pen("green", Style(color="#2ca02c"), {"CATEGORY": "idea"}),
    Pen("blue", Style(color="#1f77b4"), {"CATEGORY": "reference"}),
)


class PenRegistry:
    """Label-to-pen lookup and factory for highlights."""

    def __init__(self) -> None:
        self._pens: dict[str, Pen] = {}
        self._sink: HighlightSink | None = None

    @classmethod
    def with_defaults(cls) -> PenRegistry:
        """A registry with the built-in pens installed."""
        registry = cls()
        for pen in BUILTIN_PENS:
            registry.register(pen.label or "", pen.style, pen.properties)
        return registry

    def attach_sink(self, sink: HighlightSink | None) -> None:
        """Set where NEW and CHANGE highlights are pushed (None to detach)."""
        self._sink = sink

    def register(
        self,
        label: str,
        style: Style,
        properties: Mapping[str, str] | None = None,
    ) -> Callable[..., Highlight]:
        """Register a pen under ``label``, replacing any previous one.

        Returns:
            A mark function ``mark(tracker, beg, end, id=None, mode=NEW)``
            that makes highlights with this pen.
        """
        if label in self._pens:
            logger.debug("Replacing pen %r", label)
        self._pens[label] = Pen(label, style, dict(properties or {}))

        def mark(
            tracker: SpanTracker,
            beg: int,
            end: int,
            id: str | None = None,  # noqa: A002
            mode: Mode = Mode.NEW,
        ) -> Highlight:
            return self.create(tracker, label, beg, end, id=id, mode=mode)

        mark.__name__ = f"mark_{label}"
        return mark

    def get(self, label: str | None) -> Pen:
        """Pen for ``label``; the default pen if unknown or None."""
        if label is None:
            return DEFAULT_PEN
        pen = self._pens.get(label)
        if pen is None:
            logger.debug("Unknown pen %r, using default", label)
            return DEFAULT_PEN
        return pen

    def labels(self) -> list[str]:
        return list(self._pens)

    def __contains__(self, label: object) -> bool:
        return label in self._pens

    def create(
        self,
        tracker: SpanTracker,
        label: str | None,
        beg: int,
        end: int,
        id: str | None = None,  # noqa: A002
        mode: Mode = Mode.NEW,
        properties: Mapping[str, str] | None = None,
    ) -> Highlight:
        """Make a highlight with the pen for ``label``.

        Args:
            tracker: Tracker of the document being highlighted.
            label: Pen label.  An unknown label keeps its name but is drawn
                with the default pen.
            beg: Start offset.
            end: End offset.
            id: Existing id to reuse (LOAD and CHANGE).
            mode: NEW and CHANGE push the result to the sink; LOAD does not.
            properties: Extra properties layered over the pen's defaults.

        Returns:
            The tracked Highlight.
        """
        pen = self.get(label)
        merged = {**pen.properties, **(properties or {})}
        highlight = tracker.create(
            beg, end, label=label, style=pen.style, properties=merged, id=id
        )
        if mode != Mode.LOAD and self._sink is not None:
            self._sink(tracker.document, highlight)
        return highlight

    def change_pen(
        self, tracker: SpanTracker, highlight: Highlight, new_label: str | None
    ) -> Highlight:
        """Redraw ``highlight`` with another pen, keeping its id and span.

        Pen-defined properties are replaced by the new pen's; other
        properties carried by the highlight survive.
        """
        old_pen = self.get(highlight.label)
        carried = {
            k: v
            for k, v in highlight.properties.items()
            if k not in old_pen.properties
        }
        beg, end = highlight.span
        tracker.remove(highlight)
        return self.create(
            tracker,
            new_label,
            beg,
            end,
            id=highlight.id,
            mode=Mode.CHANGE,
            properties=carried,
        )
