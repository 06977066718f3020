"""
Unit tests for the page index.
"""

import pytest

from chaptertutor.extractors import PageIndex


class TestBuild:
    """Test break table construction."""

    def test_no_markers_is_one_page(self):
        """Text without breaks is a single page."""
        index = PageIndex.build("just some text")
        assert index.breaks == [0, 14]
        assert index.page_count == 1

    def test_form_feeds(self):
        """Pages start right after each form feed."""
        text = "page one\fpage two\fpage three"
        index = PageIndex.build(text)
        assert index.page_count == 3
        assert index.breaks == [0, 9, 18, len(text)]

    def test_ocr_markers_take_priority(self):
        """OCR markers win over form feeds."""
        text = "\n\n--- Page 1 ---\nA\f\n\n--- Page 2 ---\nB"
        index = PageIndex.build(text)
        assert index.page_count == 2
        assert index.breaks[1] == text.index("--- Page 2 ---")

    def test_leading_ocr_marker_starts_page_one(self):
        """The first marker after leading whitespace does not add a page."""
        text = "\n\n--- Page 1 ---\nfirst\n\n--- Page 2 ---\nsecond"
        index = PageIndex.build(text, marker_style="ocr")
        assert index.page_count == 2
        assert index.page_for_offset(text.index("first")) == 1
        assert index.page_for_offset(text.index("second")) == 2

    def test_explicit_offsets_used_without_ocr_markers(self):
        """Producer offsets are used when the text has no OCR markers."""
        index = PageIndex.build("aaaabbbbcccc", page_break_offsets=[4, 8])
        assert index.page_count == 3
        assert index.offset_for_page(3) == 8

    def test_form_feed_style_ignores_ocr_markers(self):
        """marker_style='form_feed' looks only at form feeds."""
        text = "x\n--- Page 2 ---\ny\fz"
        index = PageIndex.build(text, marker_style="form_feed")
        assert index.page_count == 2

    def test_out_of_range_breaks_dropped(self):
        """Breaks outside the text are ignored, duplicates merged."""
        index = PageIndex([0, 5, 5, -3, 99], text_length=10)
        assert index.breaks == [0, 5, 10]

    def test_unknown_style_rejected(self):
        """Unknown marker styles raise ValueError."""
        with pytest.raises(ValueError, match="marker style"):
            PageIndex.build("text", marker_style="pdf")


class TestLookups:
    """Test offset and page lookups."""

    @pytest.fixture
    def index(self) -> PageIndex:
        return PageIndex([10, 20], text_length=30)

    def test_page_for_offset(self, index):
        """Offsets map to the half-open page range containing them."""
        assert index.page_for_offset(0) == 1
        assert index.page_for_offset(9) == 1
        assert index.page_for_offset(10) == 2
        assert index.page_for_offset(29) == 3

    def test_page_for_offset_is_total(self, index):
        """Every offset in [0, len] maps to a page in [1, page_count]."""
        for offset in range(-5, 40):
            assert 1 <= index.page_for_offset(offset) <= index.page_count

    def test_end_of_text_is_last_page(self, index):
        """len(text) maps to the last page."""
        assert index.page_for_offset(30) == 3

    def test_offset_for_page(self, index):
        """Pages map to their start offsets."""
        assert index.offset_for_page(1) == 0
        assert index.offset_for_page(2) == 10
        assert index.offset_for_page(3) == 20

    def test_offset_for_page_clamped(self, index):
        """Out-of-range pages clamp to the text bounds."""
        assert index.offset_for_page(0) == 0
        assert index.offset_for_page(-4) == 0
        assert index.offset_for_page(4) == 30
        assert index.offset_for_page(100) == 30

    def test_page_end_offset(self, index):
        """A page ends where the next begins."""
        assert index.page_end_offset(1) == 10
        assert index.page_end_offset(3) == 30

    def test_empty_text(self):
        """Empty text still has one page."""
        index = PageIndex.build("")
        assert index.page_count == 1
        assert index.page_for_offset(0) == 1
