"""
Integration tests for document ingestion.

PDFs are generated on the fly with PyMuPDF.
"""

import pytest

from chaptertutor import (
    ExtractedText,
    InMemoryStore,
    OCRPage,
    OCRService,
    SQLStore,
    TutorSession,
    extract_structure,
    ingest_pdf,
    store_structure,
)
from chaptertutor.tutor import DirectiveMode

pytestmark = pytest.mark.integration

BODY = "\n".join(["Lift is produced by air flowing over the wing surfaces."] * 8)


class FakeOCR(OCRService):
    """OCR collaborator returning canned pages."""

    name = "fake"

    def __init__(self, pages):
        self.pages = pages
        self.calls = 0

    def recognize(self, path):
        self.calls += 1
        return self.pages


class TestExtractStructure:
    """Test structure derivation from extracted text."""

    def test_paged_book(self, paged_book):
        """A ToC book yields chapters, pages and topics."""
        text, total_pages = paged_book
        result = extract_structure(ExtractedText(text, total_pages))

        assert result.source == "toc_parser"
        assert result.has_chapters
        assert [(c.start_page, c.end_page) for c in result.chapters] == [(2, 3), (4, 5), (6, 6)]
        assert [t.title for t in result.topics[1]] == ["Why Fly"]
        assert [t.title for t in result.topics[2]] == ["Lift", "Drag"]
        assert [t.title for t in result.topics[3]] == ["Main Content"]

    def test_heading_book(self, heading_text):
        """Without a ToC, headings define the chapters."""
        result = extract_structure(ExtractedText(heading_text, total_pages=1))
        assert result.source == "heading_detection"
        assert [c.title for c in result.chapters] == ["Flight Basics", "Weather"]
        assert not [i for i in result.validation_issues if i.type == "gap"]

    def test_no_structure(self):
        """Unstructured text yields no chapters and no error."""
        result = extract_structure(ExtractedText("plain words only", total_pages=1))
        assert result.chapters == []
        assert result.topics == {}
        assert result.source == "none"
        assert not result.has_chapters

    def test_processing_log(self, paged_book):
        """The log explains what was found."""
        text, total_pages = paged_book
        result = extract_structure(ExtractedText(text, total_pages))
        assert any("table of contents" in line for line in result.processing_log)
        assert any("Segmented 3 chapters" in line for line in result.processing_log)


class TestIngestPdf:
    """Test PDF ingestion end to end."""

    @pytest.fixture
    def book_pdf(self, make_pdf):
        return make_pdf(
            [
                "Contents\n"
                "1. Principles of Flight ..... 2\n"
                "2. Meteorology ..... 3\n"
                "3. Navigation ..... 4\n",
                "Principles of Flight\n\n1.1 Lift\n" + BODY,
                "Meteorology\n\n2.1 Clouds\n" + BODY,
                "Navigation\n\n3.1 Charts\n" + BODY,
            ]
        )

    def test_text_pdf(self, book_pdf):
        """A text-layer PDF is structured from its ToC."""
        result = ingest_pdf(book_pdf)
        assert not result.used_ocr
        assert result.source == "toc_parser"
        assert [c.start_page for c in result.chapters] == [2, 3, 4]
        assert [t.title for t in result.topics[2]] == ["Clouds"]

    def test_dense_pdf_skips_ocr(self, book_pdf):
        """OCR is not called when the text layer is dense enough."""
        ocr = FakeOCR([])
        ingest_pdf(book_pdf, ocr=ocr)
        assert ocr.calls == 0

    def test_scanned_pdf_uses_ocr(self, make_pdf):
        """Blank pages are replaced by OCR text."""
        path = make_pdf(["", "", ""])
        ocr = FakeOCR(
            [
                OCRPage(1, "Chapter 1: Flight Basics\n" + BODY),
                OCRPage(2, BODY),
                OCRPage(3, "Chapter 2: Weather\n" + BODY),
            ]
        )
        result = ingest_pdf(path, ocr=ocr)

        assert ocr.calls == 1
        assert result.used_ocr
        assert result.processing_log[0].startswith("Using OCR text")
        assert [c.title for c in result.chapters] == ["Flight Basics", "Weather"]
        assert [c.start_page for c in result.chapters] == [1, 3]
        assert result.chapters[-1].end_page == 3

    def test_scanned_pdf_without_ocr(self, make_pdf):
        """Without an OCR service the sparse text layer is kept."""
        result = ingest_pdf(make_pdf(["", ""]))
        assert not result.used_ocr
        assert result.chapters == []
        assert "no OCR service" in result.processing_log[0]

    def test_unusable_ocr(self, make_pdf):
        """OCR output without good pages is ignored."""
        ocr = FakeOCR([OCRPage(1, "###", quality="poor")])
        result = ingest_pdf(make_pdf([""]), ocr=ocr)
        assert not result.used_ocr
        assert "no usable pages" in result.processing_log[0]

    def test_missing_file(self, tmp_path):
        """Missing PDFs raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ingest_pdf(tmp_path / "nope.pdf")


class TestStoreAndTutor:
    """Test ingestion feeding a tutoring session."""

    @pytest.mark.parametrize("store_factory", [InMemoryStore, SQLStore])
    def test_ingest_then_tutor(self, paged_book, store_factory):
        """Stored structure drives the session's directives."""
        text, total_pages = paged_book
        store = store_factory()
        store_structure(store, "book", extract_structure(ExtractedText(text, total_pages)))

        assert len(store.get_chapters("book")) == 3
        assert [t.title for t in store.get_topics("book", 2)] == ["Lift", "Drag"]

        session = TutorSession(store)
        plan = session.tutoring_turn("s-1", "book")
        assert plan.directive.mode is DirectiveMode.BOOK_INTRODUCTION

        # Chapter 1 has a single topic
        result = session.complete_topic("s-1", "book")
        assert result.state.phase.value == "quiz-ready"

    def test_reingest_replaces(self, paged_book, heading_text):
        """Storing a new derivation replaces the old chapters."""
        store = InMemoryStore()
        text, total_pages = paged_book
        store_structure(store, "book", extract_structure(ExtractedText(text, total_pages)))
        store_structure(store, "book", extract_structure(ExtractedText(heading_text, 1)))
        assert [c.title for c in store.get_chapters("book")] == ["Flight Basics", "Weather"]
        assert store.get_topics("book", 3) == []
