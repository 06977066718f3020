"""PDF reading module (PyMuPDF) and OCR text helpers."""

from chaptertutor.readers.pdf_reader import (
    POOR_PAGE_PLACEHOLDER,
    PDFReader,
    join_ocr_pages,
    needs_ocr,
    ocr_is_usable,
)

__all__ = [
    "PDFReader",
    "POOR_PAGE_PLACEHOLDER",
    "needs_ocr",
    "join_ocr_pages",
    "ocr_is_usable",
]
