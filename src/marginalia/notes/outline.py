"""Parse and render the org-style outline the notes store is kept in.

Only the parts of org syntax the store relies on are understood:
headings (``*`` repeated per level), a ``:PROPERTIES:`` drawer directly
below a heading, and free text.  Everything else is carried through as
body text.  Drawers that were not modified are written back exactly as
they were read, so editing one entry never reformats its siblings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

HEADING_RE = re.compile(r"^(\*+)\s+(.*?)\s*$")
PROPERTY_RE = re.compile(r"^\s*:([^:\s]+):\s*(.*?)\s*$")
DRAWER_BEGIN = ":PROPERTIES:"
DRAWER_END = ":END:"


@dataclass(eq=False)
class Section:
    """One heading with its properties, body lines and child sections."""

    level: int
    heading: str
    properties: dict[str, str] = field(default_factory=dict)
    body: list[str] = field(default_factory=list)
    children: list[Section] = field(default_factory=list)
    parent: Section | None = field(default=None, repr=False)
    _raw_drawer: list[str] | None = field(default=None, repr=False)
    # Drawer lines that are not "key: value" pairs, kept through rewrites
    _drawer_extras: list[str] = field(default_factory=list, repr=False)

    def get(self, key: str) -> str | None:
        return self.properties.get(key)

    def set(self, key: str, value: str) -> None:
        if self.properties.get(key) != value:
            self.properties[key] = value
            self._raw_drawer = None

    def delete(self, key: str) -> None:
        if key in self.properties:
            del self.properties[key]
            self._raw_drawer = None

    @property
    def body_text(self) -> str:
        """The free text under the heading, without surrounding blank lines."""
        return "\n".join(self.body).strip()

    def add_child(self, child: Section) -> Section:
        child.parent = self
        self.children.append(child)
        return child

    def walk(self) -> Iterator[Section]:
        yield self
        for child in self.children:
            yield from child.walk()

    def header_lines(self) -> list[str]:
        lines = [f"{'*' * self.level} {self.heading}"]
        if self._raw_drawer is not None:
            lines.extend(self._raw_drawer)
        elif self.properties or self._drawer_extras:
            lines.append(DRAWER_BEGIN)
            lines.extend(f":{key}: {value}" for key, value in self.properties.items())
            lines.extend(self._drawer_extras)
            lines.append(DRAWER_END)
        return lines


@dataclass
class Outline:
    """A parsed notes file: free preamble text, then top-level sections."""

    preamble: list[str] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> Outline:
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        outline = cls()
        stack: list[Section] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            match = HEADING_RE.match(line)
            if match is None:
                target = stack[-1].body if stack else outline.preamble
                target.append(line)
                i += 1
                continue

            section = Section(level=len(match.group(1)), heading=match.group(2))
            i += 1
            i = _read_drawer(lines, i, section)

            while stack and stack[-1].level >= section.level:
                stack.pop()
            if stack:
                stack[-1].add_child(section)
            else:
                outline.sections.append(section)
            stack.append(section)
        return outline

    def walk(self) -> Iterator[Section]:
        for section in self.sections:
            yield from section.walk()

    def add_section(self, section: Section) -> Section:
        section.parent = None
        self.sections.append(section)
        return section

    def remove(self, section: Section) -> None:
        siblings = section.parent.children if section.parent else self.sections
        siblings.remove(section)
        section.parent = None

    def _lines(self) -> Iterator[tuple[Section | None, list[str]]]:
        yield None, list(self.preamble)
        for section in self.walk():
            yield section, section.header_lines() + section.body

    def render(self) -> str:
        lines = [line for _, chunk in self._lines() for line in chunk]
        return "\n".join(lines) + "\n" if lines else ""

    def body_offset(self, target: Section) -> int | None:
        """Offset in the rendered text where ``target``'s body begins."""
        offset = 0
        for section, chunk in self._lines():
            if section is target:
                return offset + sum(len(line) + 1 for line in target.header_lines())
            offset += sum(len(line) + 1 for line in chunk)
        return None


def _read_drawer(lines: list[str], i: int, section: Section) -> int:
    """Consume a property drawer starting at ``lines[i]``, if there is one."""
    if i >= len(lines) or lines[i].strip() != DRAWER_BEGIN:
        return i
    j = i + 1
    properties: dict[str, str] = {}
    extras: list[str] = []
    while j < len(lines) and lines[j].strip() != DRAWER_END:
        if HEADING_RE.match(lines[j]):
            # Unterminated drawer: treat it as body text
            return i
        match = PROPERTY_RE.match(lines[j])
        if match:
            properties[match.group(1)] = match.group(2)
        else:
            extras.append(lines[j])
        j += 1
    if j >= len(lines):
        return i
    section.properties = properties
    section._drawer_extras = extras
    section._raw_drawer = lines[i : j + 1]
    return j + 1
