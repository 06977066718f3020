"""
PDF Reader using PyMuPDF (fitz).

Produces the linear text the extractors work on: one string with
pages separated by form feeds, plus the page start offsets.

Scanned PDFs yield little or no text. needs_ocr() decides when the
OCR collaborator should be used instead, and join_ocr_pages() renders
its per-page output with "--- Page N ---" markers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import fitz  # PyMuPDF

from chaptertutor.exceptions import ExtractionError
from chaptertutor.extractors.page_index import FORM_FEED
from chaptertutor.models import ExtractedText, OCRPage

logger = logging.getLogger(__name__)

POOR_PAGE_PLACEHOLDER = "[Page content could not be reliably extracted]"


class PDFReader:
    """Extracts plain text from PDFs using PyMuPDF.

    Usage:
        reader = PDFReader()
        extracted = reader.read("/path/to/book.pdf")
        # extracted.text, extracted.total_pages, extracted.page_break_offsets
    """

    def read(self, path: str | Path) -> ExtractedText:
        """Read a PDF file.

        Args:
            path: Path to PDF file.

        Returns:
            ExtractedText with form-feed separated pages.

        Raises:
            FileNotFoundError: If file doesn't exist.
            ExtractionError: If file is not a valid PDF.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"PDF not found: {path}")

        try:
            doc = fitz.open(path)
        except Exception as e:
            raise ExtractionError(f"Failed to open PDF: {e}") from e

        try:
            return self._extract(doc, str(path))
        finally:
            doc.close()

    def read_bytes(self, data: bytes, name: str = "<bytes>") -> ExtractedText:
        """Read a PDF held in memory.

        Raises:
            ExtractionError: If data is not a valid PDF.
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise ExtractionError(f"Failed to open PDF {name}: {e}") from e

        try:
            return self._extract(doc, name)
        finally:
            doc.close()

    def _extract(self, doc: fitz.Document, name: str) -> ExtractedText:
        """Join page texts and record where each page starts."""
        pages = []
        for page_idx in range(len(doc)):
            try:
                pages.append(doc[page_idx].get_text("text"))
            except Exception as e:
                raise ExtractionError(f"Failed to read page {page_idx + 1} of {name}: {e}") from e

        # Page i starts right after the form feed that precedes it
        offsets = []
        position = 0
        for text in pages[:-1]:
            position += len(text) + len(FORM_FEED)
            offsets.append(position)

        text = FORM_FEED.join(pages)
        logger.info(f"Read {len(pages)} pages ({len(text)} chars) from {name}")

        return ExtractedText(
            text=text,
            total_pages=len(pages),
            page_break_offsets=tuple(offsets),
        )


def needs_ocr(text: str, page_count: int, min_chars_per_page: int = 100) -> bool:
    """Whether extracted text is too sparse to be a text-layer PDF.

    True when the average page holds fewer than min_chars_per_page
    non-whitespace characters.
    """
    if page_count <= 0:
        return False
    chars = len("".join(text.split()))
    average = chars / page_count
    logger.debug(f"Average {average:.1f} chars per page over {page_count} pages")
    return average < min_chars_per_page


def join_ocr_pages(pages: Iterable[OCRPage]) -> str:
    """Render OCR output as one text with "--- Page N ---" markers.

    Pages flagged poor are replaced by a placeholder so that page
    numbering stays aligned with the PDF.
    """
    parts = []
    for page in sorted(pages, key=lambda p: p.page_number):
        body = page.text.strip() if page.is_good else POOR_PAGE_PLACEHOLDER
        parts.append(f"\n\n--- Page {page.page_number} ---\n{body}")
    return "".join(parts)


def ocr_is_usable(pages: Iterable[OCRPage]) -> bool:
    """Whether OCR produced at least one good page with letters on it."""
    return any(page.is_good and any(ch.isalpha() for ch in page.text) for page in pages)
