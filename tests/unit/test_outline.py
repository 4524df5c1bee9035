"""Tests for the org outline parser and renderer."""

from __future__ import annotations

from marginalia.notes.outline import Outline, Section

NOTES = """#+TITLE: Reading notes

* essay.txt
:PROPERTIES:
:marginalia-source:   /tmp/essay.txt
:END:
** brown fox
:PROPERTIES:
:marginalia-id: abc12345
:marginalia-beg: 10
:marginalia-end: 20
:END:
A note about the fox.

** lazy dog
:PROPERTIES:
:marginalia-id: def67890
:marginalia-beg: 35
:marginalia-end: 43
:END:
"""


class TestParse:
    """Parsing headings, drawers and bodies."""

    def test_structure(self) -> None:
        """Preamble, top-level section and children are recognised."""
        outline = Outline.parse(NOTES)

        assert outline.preamble == ["#+TITLE: Reading notes", ""]
        (top,) = outline.sections
        assert top.heading == "essay.txt"
        assert top.get("marginalia-source") == "/tmp/essay.txt"
        assert [c.heading for c in top.children] == ["brown fox", "lazy dog"]
        assert top.children[0].parent is top

    def test_body_text_strips_blank_lines(self) -> None:
        """body_text drops surrounding blank lines."""
        fox = Outline.parse(NOTES).sections[0].children[0]
        assert fox.body_text == "A note about the fox."

    def test_unterminated_drawer_is_body(self) -> None:
        """A drawer without :END: is kept as body text."""
        outline = Outline.parse("* Heading\n:PROPERTIES:\n:key: value\n")

        (section,) = outline.sections
        assert section.properties == {}
        assert section.body == [":PROPERTIES:", ":key: value"]

    def test_bold_text_is_not_a_heading(self) -> None:
        """Stars without a following space are not a heading."""
        outline = Outline.parse("* Heading\n*bold* words\n")
        assert outline.sections[0].body == ["*bold* words"]


class TestRender:
    """Rendering reproduces untouched text exactly."""

    def test_unmodified_round_trip_is_exact(self) -> None:
        """Parsing then rendering reproduces the text byte for byte."""
        assert Outline.parse(NOTES).render() == NOTES

    def test_editing_one_drawer_leaves_siblings_untouched(self) -> None:
        """Only the edited drawer is reformatted."""
        outline = Outline.parse(NOTES)
        top = outline.sections[0]
        top.children[1].set("marginalia-beg", "36")

        rendered = outline.render()

        assert ":marginalia-source:   /tmp/essay.txt" in rendered
        assert ":marginalia-beg: 36" in rendered
        assert ":marginalia-beg: 10" in rendered

    def test_rewritten_drawer_keeps_unparsed_lines(self) -> None:
        """Hand-written drawer lines that are not properties survive a rewrite."""
        text = "* doc\n:PROPERTIES:\n:foo bar: x\n:marginalia-beg: 1\n:END:\n"
        outline = Outline.parse(text)
        section = outline.sections[0]

        section.set("marginalia-beg", "2")

        assert outline.render() == (
            "* doc\n:PROPERTIES:\n:marginalia-beg: 2\n:foo bar: x\n:END:\n"
        )

    def test_new_sections_rendered_with_drawer(self) -> None:
        """New sections render with a property drawer."""
        outline = Outline()
        top = outline.add_section(Section(level=1, heading="doc"))
        top.set("marginalia-source", "doc")
        child = top.add_child(Section(level=2, heading="excerpt"))
        child.set("marginalia-id", "x")

        assert outline.render() == (
            "* doc\n:PROPERTIES:\n:marginalia-source: doc\n:END:\n"
            "** excerpt\n:PROPERTIES:\n:marginalia-id: x\n:END:\n"
        )

    def test_remove_section(self) -> None:
        """Removing a child drops it from the rendered text."""
        outline = Outline.parse(NOTES)
        top = outline.sections[0]

        outline.remove(top.children[0])

        assert "brown fox" not in outline.render()
        assert "lazy dog" in outline.render()

    def test_empty_outline_renders_empty(self) -> None:
        """An empty outline renders as an empty string."""
        assert Outline.parse("").render() == ""

    def test_body_offset_points_at_body(self) -> None:
        """body_offset is the offset of the first body line."""
        outline = Outline.parse(NOTES)
        fox = outline.sections[0].children[0]

        offset = outline.body_offset(fox)

        assert offset == NOTES.index("A note about the fox.")
