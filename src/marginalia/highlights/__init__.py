"""Highlights: tracked spans, their pens and the per-document tracker."""

from marginalia.highlights.models import Highlight, Style
from marginalia.highlights.pens import Mode, Pen, PenRegistry
from marginalia.highlights.tracker import SpanTracker

__all__ = ["Highlight", "Mode", "Pen", "PenRegistry", "SpanTracker", "Style"]
