"""
Unit tests for PDF reading and OCR text helpers.
"""

import pytest

from chaptertutor.exceptions import ExtractionError
from chaptertutor.extractors import PageIndex
from chaptertutor.models import OCRPage
from chaptertutor.readers import (
    POOR_PAGE_PLACEHOLDER,
    PDFReader,
    join_ocr_pages,
    needs_ocr,
    ocr_is_usable,
)


class TestPDFReader:
    """Test text extraction with PyMuPDF."""

    def test_missing_file(self, tmp_path):
        """A missing path is FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            PDFReader().read(tmp_path / "missing.pdf")

    def test_not_a_pdf(self, tmp_path):
        """Garbage on disk is an ExtractionError."""
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"this is not a pdf")
        with pytest.raises(ExtractionError):
            PDFReader().read(path)

    def test_pages_joined_with_form_feeds(self, make_pdf):
        """Each page's text is separated by a form feed."""
        path = make_pdf(["First page", "Second page", "Third page"])
        extracted = PDFReader().read(path)

        assert extracted.total_pages == 3
        assert extracted.text.count("\f") == 2
        assert "Second page" in extracted.text
        assert not extracted.used_ocr

    def test_offsets_match_pages(self, make_pdf):
        """Page break offsets locate each page's text."""
        path = make_pdf(["First page", "Second page", "Third page"])
        extracted = PDFReader().read(path)
        index = PageIndex.build(extracted.text, page_break_offsets=extracted.page_break_offsets)

        assert len(extracted.page_break_offsets) == 2
        assert index.page_count == 3
        assert index.page_for_offset(extracted.text.index("First")) == 1
        assert index.page_for_offset(extracted.text.index("Second")) == 2
        assert index.page_for_offset(extracted.text.index("Third")) == 3

    def test_read_bytes(self, make_pdf):
        """PDFs held in memory read the same as files."""
        path = make_pdf(["Only page"])
        extracted = PDFReader().read_bytes(path.read_bytes())
        assert extracted.total_pages == 1
        assert "Only page" in extracted.text
        assert extracted.page_break_offsets == ()

    def test_read_bytes_garbage(self):
        """Bytes that are not a PDF are an ExtractionError."""
        with pytest.raises(ExtractionError):
            PDFReader().read_bytes(b"garbage")


class TestNeedsOCR:
    """Test the sparse text check."""

    def test_empty_text(self):
        """No text on several pages needs OCR."""
        assert needs_ocr("\f\f", page_count=3)

    def test_dense_text(self):
        """Plenty of text per page does not."""
        assert not needs_ocr("word " * 200, page_count=2)

    def test_whitespace_not_counted(self):
        """Whitespace does not count towards the average."""
        assert needs_ocr(" " * 1000 + "x" * 50, page_count=1)

    def test_threshold_configurable(self):
        """The per-page minimum can be lowered."""
        assert not needs_ocr("x" * 50, page_count=1, min_chars_per_page=20)

    def test_no_pages(self):
        """Zero pages never needs OCR."""
        assert not needs_ocr("", page_count=0)


class TestOCRText:
    """Test OCR page rendering."""

    def test_markers_in_page_order(self):
        """Pages are sorted and marked."""
        text = join_ocr_pages([OCRPage(2, "Second"), OCRPage(1, "First")])
        assert text == "\n\n--- Page 1 ---\nFirst\n\n--- Page 2 ---\nSecond"

    def test_poor_pages_replaced(self):
        """Poor pages keep their slot with a placeholder."""
        text = join_ocr_pages([OCRPage(1, "Good"), OCRPage(2, "g@rb#ge", quality="poor")])
        assert POOR_PAGE_PLACEHOLDER in text
        assert "g@rb#ge" not in text

    def test_page_index_over_ocr_text(self):
        """OCR markers give one page per OCR page."""
        text = join_ocr_pages([OCRPage(n, f"Body {n}") for n in range(1, 5)])
        index = PageIndex.build(text)
        assert index.page_count == 4
        assert index.page_for_offset(text.index("Body 3")) == 3

    def test_usable(self):
        """At least one good page with letters is usable."""
        assert ocr_is_usable([OCRPage(1, "123"), OCRPage(2, "Words")])
        assert not ocr_is_usable([OCRPage(1, "Words", quality="poor")])
        assert not ocr_is_usable([OCRPage(1, "12 34")])
        assert not ocr_is_usable([])
