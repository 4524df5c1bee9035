"""Tests for SpanTracker: lifecycle, lookup, navigation and housekeeping."""

from __future__ import annotations

import pytest

from marginalia.document import Document
from marginalia.exc import DocumentNotSupported, NoHighlights, NoVisibleHighlights
from marginalia.highlights.models import EMPTY_STYLE, Style
from tests.conftest import SAMPLE_TEXT


def _doc() -> Document:
    return Document("essay.txt", SAMPLE_TEXT)


class TestCreate:
    """Creating and removing tracked highlights."""

    def test_create_generates_eight_char_id(self) -> None:
        """New highlights get an 8-character id and are retrievable."""
        tracker = _doc().tracker

        highlight = tracker.create(10, 20, label="yellow")

        assert len(highlight.id) == 8
        assert highlight.span == (10, 20)
        assert highlight.label == "yellow"
        assert tracker.get(highlight.id) is highlight

    def test_create_reuses_given_id(self) -> None:
        """An explicit id is used as given."""
        tracker = _doc().tracker

        highlight = tracker.create(10, 20, id="fixed-id")

        assert highlight.id == "fixed-id"

    def test_create_swaps_reversed_span(self) -> None:
        """A reversed span is stored in ascending order."""
        highlight = _doc().tracker.create(20, 10)
        assert highlight.span == (10, 20)

    def test_generated_ids_do_not_collide(self) -> None:
        """A generator returning a taken id is asked again."""
        ids = iter(["aaaaaaaa", "aaaaaaaa", "bbbbbbbb"])
        doc = _doc()
        doc.tracker.id_generator = lambda: next(ids)

        first = doc.tracker.create(0, 3)
        second = doc.tracker.create(4, 9)

        assert (first.id, second.id) == ("aaaaaaaa", "bbbbbbbb")

    def test_unnamed_document_not_supported(self) -> None:
        """Highlighting an unnamed document raises."""
        tracker = Document(None, SAMPLE_TEXT).tracker

        with pytest.raises(DocumentNotSupported):
            tracker.create(0, 3)
        assert len(tracker) == 0

    def test_span_follows_edits(self) -> None:
        """A highlight's span moves with edits before it."""
        doc = _doc()
        highlight = doc.tracker.create(10, 15)  # "brown"

        doc.insert(0, "Oh! ")

        assert highlight.span == (14, 19)
        assert doc.substring(*highlight.span) == "brown"

    def test_remove_detaches_marker(self) -> None:
        """Removing a highlight detaches its marker."""
        doc = _doc()
        highlight = doc.tracker.create(10, 15)

        doc.tracker.remove(highlight)
        doc.insert(0, "xx")

        assert len(doc.tracker) == 0
        assert highlight.span == (10, 15)


class TestOrderAndLookup:
    """Sorting and find_at / find_in."""

    def test_sort_orders_by_start(self) -> None:
        """sort orders highlights by beg."""
        tracker = _doc().tracker
        for beg, end in [(45, 49), (4, 9), (16, 19), (10, 15)]:
            tracker.create(beg, end)

        tracker.sort()

        begs = [h.beg for h in tracker]
        assert all(a <= b for a, b in zip(begs, begs[1:], strict=False))

    def test_find_at_prefers_most_recent(self) -> None:
        """Overlapping highlights resolve to the newest."""
        tracker = _doc().tracker
        outer = tracker.create(10, 20)
        inner = tracker.create(12, 18)

        assert tracker.find_at(15) is inner
        assert tracker.find_at(11) is outer
        assert tracker.find_at(20) is None

    def test_find_in_overlap_and_exact_id(self) -> None:
        """find_in matches overlaps, or an exact span and id."""
        tracker = _doc().tracker
        first = tracker.create(10, 15)
        second = tracker.create(16, 19)

        assert tracker.find_in(14, 17) is second
        assert tracker.find_in(10, 15, first.id) is first
        assert tracker.find_in(10, 16, first.id) is None


class TestNavigation:
    """next/prev wrap around and honour folding."""

    def _tracker_with_three(self) -> tuple[Document, list[int]]:
        doc = _doc()
        for beg, end in [(16, 19), (4, 9), (45, 49)]:
            doc.tracker.create(beg, end)
        return doc, [4, 16, 45]

    def test_next_moves_forward_and_wraps(self) -> None:
        """next visits starts in order and wraps to the first."""
        doc, positions = self._tracker_with_three()

        assert doc.tracker.next(0) == positions[0]
        assert doc.tracker.next(4) == positions[1]
        assert doc.tracker.next(45) == positions[0]

    def test_prev_moves_backward_and_wraps(self) -> None:
        """prev visits starts in reverse and wraps to the last."""
        doc, positions = self._tracker_with_three()

        assert doc.tracker.prev(45) == positions[1]
        assert doc.tracker.prev(4) == positions[-1]

    def test_positions_visible_reverse(self) -> None:
        """Visible positions can be listed in reverse."""
        doc, positions = self._tracker_with_three()
        assert doc.tracker.positions_visible(reverse=True) == positions[::-1]

    def test_folded_highlights_skipped(self) -> None:
        """Folded highlights are skipped by navigation."""
        doc, _ = self._tracker_with_three()

        doc.fold(0, 44)

        assert doc.tracker.positions_visible() == [45]
        assert doc.tracker.next(0) == 45

    def test_empty_tracker_raises_no_highlights(self) -> None:
        """Navigating an empty tracker raises NoHighlights."""
        with pytest.raises(NoHighlights):
            _doc().tracker.next(0)

    def test_all_folded_raises_no_visible_highlights(self) -> None:
        """Navigating with everything folded raises NoVisibleHighlights."""
        doc, _ = self._tracker_with_three()
        doc.fold(0, len(doc))

        with pytest.raises(NoVisibleHighlights):
            doc.tracker.prev(10)


class TestVisibility:
    """toggle_visibility keeps spans, ids and properties."""

    def test_toggle_hides_and_restores_style(self) -> None:
        """Hiding clears the style; showing restores it."""
        tracker = _doc().tracker
        style = Style(color="#f5d76e")
        highlight = tracker.create(10, 15, style=style, properties={"CATEGORY": "x"})

        assert tracker.toggle_visibility() is True
        assert highlight.hidden
        assert highlight.style == EMPTY_STYLE
        assert highlight.span == (10, 15)

        assert tracker.toggle_visibility() is False
        assert not highlight.hidden
        assert highlight.style == style
        assert highlight.properties == {"CATEGORY": "x"}

    def test_new_highlight_hidden_while_toggled_off(self) -> None:
        """Highlights made while hidden start hidden."""
        tracker = _doc().tracker
        tracker.toggle_visibility()

        highlight = tracker.create(4, 9, style=Style(color="red"))

        assert highlight.hidden
        tracker.toggle_visibility()
        assert highlight.style == Style(color="red")


class TestHousekeep:
    """Collapsed highlights are pruned."""

    def test_degenerate_highlight_pruned(self) -> None:
        """Collapsed highlights are removed and reported to on_prune."""
        doc = _doc()
        doomed = doc.tracker.create(10, 15)
        kept = doc.tracker.create(40, 43)
        pruned_ids: list[str] = []

        doc.delete(8, 16)
        count = doc.tracker.housekeep(on_prune=pruned_ids.append)

        assert count == 1
        assert doc.tracker.get(doomed.id) is None
        assert doc.tracker.get(kept.id) is kept
        assert pruned_ids == [doomed.id]

    def test_read_only_defers_store_removal(self) -> None:
        """Store removal waits for a pass where the document is writable."""
        doc = _doc()
        doomed = doc.tracker.create(10, 15)
        doc.delete(10, 15)
        doc.writable = False
        pruned_ids: list[str] = []

        assert doc.tracker.housekeep(on_prune=pruned_ids.append) == 1
        assert pruned_ids == []
        assert doc.tracker.pending_removals == [doomed.id]

        doc.writable = True
        assert doc.tracker.housekeep(on_prune=pruned_ids.append) == 0
        assert pruned_ids == [doomed.id]
        assert doc.tracker.pending_removals == []
