"""Tests for the inline link editing engine."""

import pytest

from solo_newsletter.core.links import (
    SelectionInfo,
    detect_selection,
    find_links,
    insert_or_edit_link,
    remove_link,
    render_plain,
    toggle_bold,
)

RAW = "Hello [AI](https://ai.example) world"
LITERAL = "[AI](https://ai.example)"


class TestDetectSelection:
    def test_existing_link_display_text(self):
        selection = detect_selection(RAW, "AI")

        assert selection.is_existing_link
        assert selection.start == RAW.index(LITERAL)
        assert selection.end == RAW.index(LITERAL) + len(LITERAL)
        assert selection.link_text == "AI"
        assert selection.url == "https://ai.example"

    def test_full_literal_selection(self):
        selection = detect_selection(RAW, LITERAL)

        assert selection.is_existing_link
        assert RAW[selection.start:selection.end] == LITERAL
        assert selection.link_text == "AI"
        assert selection.url == "https://ai.example"

    def test_plain_text_selection(self):
        selection = detect_selection(RAW, "world")

        assert not selection.is_existing_link
        assert RAW[selection.start:selection.end] == "world"
        assert selection.url == ""

    def test_first_occurrence_wins(self):
        selection = detect_selection("cats and cats", "cats")
        assert selection.start == 0

    def test_surrounding_whitespace_is_ignored(self):
        selection = detect_selection(RAW, "  world ")
        assert RAW[selection.start:selection.end] == "world"

    @pytest.mark.parametrize("selected", ["", "   ", "missing"])
    def test_unresolvable_selection(self, selected):
        assert detect_selection(RAW, selected) is None

    def test_empty_raw_text(self):
        assert detect_selection("", "AI") is None

    def test_arabic_offsets_are_code_points(self):
        raw = "مرحبا [عالم](https://x.example) جميل"
        selection = detect_selection(raw, "عالم")

        assert raw[selection.start:selection.end] == "[عالم](https://x.example)"
        assert remove_link(raw, selection) == "مرحبا عالم جميل"


class TestRenderedOffsets:
    def test_rendered_offset_picks_later_occurrence(self):
        raw = "cats and **dogs** and cats"
        rendered, _ = render_plain(raw)
        assert rendered == "cats and dogs and cats"

        selection = detect_selection(raw, "cats", rendered_start=rendered.rindex("cats"))

        assert selection.start == raw.rindex("cats")
        assert raw[selection.start:selection.end] == "cats"

    def test_rendered_offset_on_link_text(self):
        raw = "see [docs](https://d.example) or docs"
        rendered, _ = render_plain(raw)

        on_link = detect_selection(raw, "docs", rendered_start=rendered.index("docs"))
        plain = detect_selection(raw, "docs", rendered_start=rendered.rindex("docs"))

        assert on_link.is_existing_link
        assert raw[on_link.start:on_link.end] == "[docs](https://d.example)"
        assert not plain.is_existing_link
        assert plain.start == raw.rindex("docs")

    def test_mismatched_hint_falls_back_to_first_match(self):
        assert detect_selection(RAW, "world", rendered_start=99) == detect_selection(
            RAW, "world"
        )

    def test_partial_link_overlap_falls_back(self):
        raw = "Hello [AI tools](https://ai.example)"
        rendered, _ = render_plain(raw)

        selection = detect_selection(raw, "Hello AI", rendered_start=0)

        # Not a substring of the raw text, so nothing sensible can be edited
        assert rendered.startswith("Hello AI")
        assert selection is None

    def test_selection_ending_in_bold_covers_whole_bold_run(self):
        raw = "a **b** c"

        selection = detect_selection(raw, "a b", rendered_start=0)

        assert (selection.start, selection.end) == (0, 7)
        assert selection.link_text == "a **b**"
        assert insert_or_edit_link(raw, selection, "https://x") == "[a **b**](https://x) c"

    def test_selection_starting_in_bold_covers_whole_bold_run(self):
        raw = "a **b c** d"

        selection = detect_selection(raw, "c d", rendered_start=4)

        assert raw[selection.start:selection.end] == "**b c** d"

    def test_selection_inside_bold_keeps_markers(self):
        raw = "a **bold words** c"

        selection = detect_selection(raw, "bold", rendered_start=2)

        assert raw[selection.start:selection.end] == "bold"
        assert insert_or_edit_link(raw, selection, "https://x") == (
            "a **[bold](https://x) words** c"
        )


class TestInsertOrEditLink:
    def test_insert_on_plain_text(self):
        raw = "Read the docs today"
        selection = detect_selection(raw, "docs")

        result = insert_or_edit_link(raw, selection, "https://docs.example", "docs")

        assert result == "Read the [docs](https://docs.example) today"
        assert result.count("[docs](https://docs.example)") == 1

    def test_display_text_defaults_to_selection(self):
        raw = "Read the docs today"
        result = insert_or_edit_link(raw, detect_selection(raw, "docs"), "https://d.example")
        assert result == "Read the [docs](https://d.example) today"

    def test_edit_existing_link(self):
        selection = detect_selection(RAW, "AI")
        result = insert_or_edit_link(RAW, selection, "https://new.example")

        assert result == "Hello [AI](https://new.example) world"

    def test_edit_existing_link_display_text(self):
        selection = detect_selection(RAW, "AI")
        result = insert_or_edit_link(RAW, selection, "https://ai.example", "AI news")

        assert result == "Hello [AI news](https://ai.example) world"

    def test_url_is_normalized(self):
        raw = "click here"
        result = insert_or_edit_link(raw, detect_selection(raw, "here"), " https://x.example/a b ")
        assert result == "click [here](https://x.example/a%20b)"

    def test_empty_url_is_noop(self):
        raw = "click here"
        assert insert_or_edit_link(raw, detect_selection(raw, "here"), "  ") == raw

    def test_stale_selection_is_noop(self):
        selection = detect_selection(RAW, "world")
        changed = "Goodbye " + RAW

        assert insert_or_edit_link(changed, selection, "https://x.example") == changed

    def test_out_of_range_selection_is_noop(self):
        selection = SelectionInfo(start=10, end=500, is_existing_link=False, link_text="x")
        assert insert_or_edit_link(RAW, selection, "https://x.example") == RAW


class TestRemoveLink:
    def test_remove_link_keeps_words(self):
        assert remove_link(RAW, detect_selection(RAW, "AI")) == "Hello AI world"

    def test_remove_requires_existing_link(self):
        assert remove_link(RAW, detect_selection(RAW, "world")) == RAW

    def test_remove_with_stale_selection_is_noop(self):
        selection = detect_selection(RAW, "AI")
        assert remove_link("Hello AI world", selection) == "Hello AI world"


class TestHelpers:
    def test_find_links(self):
        links = find_links("[a](https://a.example) and [b](https://b.example)")

        assert [(link.text, link.url) for link in links] == [
            ("a", "https://a.example"),
            ("b", "https://b.example"),
        ]
        assert links[1].text_start == links[1].start + 1

    def test_render_plain_strips_markup(self):
        rendered, positions = render_plain("**Hi** [there](https://x.example)!")

        assert rendered == "Hi there!"
        assert positions[0] == 2
        assert len(positions) == len(rendered)

    def test_toggle_bold_wraps(self):
        assert toggle_bold("make this bold", 5, 9) == "make **this** bold"

    def test_toggle_bold_unwraps(self):
        raw = "make **this** bold"
        assert toggle_bold(raw, 5, 13) == "make this bold"

    def test_toggle_bold_empty_range_inserts_markers(self):
        assert toggle_bold("ab", 1, 1) == "a****b"

    def test_toggle_bold_invalid_range(self):
        assert toggle_bold("ab", 1, 5) == "ab"
