"""Highlight data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marginalia.document.markers import Marker

#: Prefix of property keys owned by marginalia in the notes store.
NAMESPACE = "marginalia-"

#: Non-namespaced property keys that are persisted too.
PERSISTED_KEYS = frozenset({"CATEGORY"})


def is_persisted_key(key: str) -> bool:
    return key.startswith(NAMESPACE) or key in PERSISTED_KEYS


@dataclass(frozen=True)
class Style:
    """Rendering attributes for a highlight.

    Attributes:
        face: Named face or CSS-like class (e.g. "highlight").
        color: Background or underline colour.
        underline: Draw an underline instead of a background.
    """

    face: str | None = None
    color: str | None = None
    underline: bool = False

    def is_empty(self) -> bool:
        return self == EMPTY_STYLE


EMPTY_STYLE = Style()


@dataclass(eq=False)
class Highlight:
    """A tracked span with identity, style and properties.

    The span lives on the marker, which the owning document moves as its
    text is edited.
    """

    id: str
    marker: Marker
    label: str | None = None
    style: Style = EMPTY_STYLE
    properties: dict[str, str] = field(default_factory=dict)
    hidden: bool = False
    seq: int = 0
    _saved_style: Style | None = field(default=None, repr=False)

    @property
    def beg(self) -> int:
        return self.marker.beg

    @property
    def end(self) -> int:
        return self.marker.end

    @property
    def span(self) -> tuple[int, int]:
        return (self.marker.beg, self.marker.end)

    @property
    def is_degenerate(self) -> bool:
        return self.marker.is_degenerate

    def persisted_properties(self) -> dict[str, str]:
        """Properties that are written to the notes store."""
        return {k: v for k, v in self.properties.items() if is_persisted_key(k)}

    def hide(self) -> None:
        if self.hidden:
            return
        self._saved_style = self.style
        self.style = EMPTY_STYLE
        self.hidden = True

    def show(self) -> None:
        if not self.hidden:
            return
        self.style = self._saved_style or EMPTY_STYLE
        self._saved_style = None
        self.hidden = False
