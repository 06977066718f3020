"""
Page index: maps text offsets to pages and back.

The break table is an ascending list of page start offsets with
0 and len(text) as sentinels. Page i (1-based) covers the half-open
range [breaks[i-1], breaks[i]).
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from collections.abc import Sequence
from typing import Literal

logger = logging.getLogger(__name__)

OCR_PAGE_MARKER = re.compile(r"--- Page \d+ ---")
FORM_FEED = "\f"

MarkerStyle = Literal["auto", "ocr", "form_feed"]


class PageIndex:
    """Offset-to-page lookup over one document's text.

    Usage:
        index = PageIndex.build(text)
        index.page_for_offset(1234)  # -> 3
        index.offset_for_page(3)     # -> start offset of page 3
    """

    def __init__(self, breaks: Sequence[int], text_length: int):
        """Initialize from a break table.

        Args:
            breaks: Page start offsets. Sentinels are added if missing,
                out-of-range values are dropped.
            text_length: Length of the indexed text.
        """
        inner = sorted({b for b in breaks if 0 < b < text_length})
        self._breaks = [0, *inner, text_length]
        self._text_length = text_length

    @classmethod
    def build(
        cls,
        text: str,
        marker_style: MarkerStyle = "auto",
        page_break_offsets: Sequence[int] | None = None,
    ) -> PageIndex:
        """Scan text for page boundaries.

        Args:
            text: Full document text.
            marker_style: "ocr" uses only "--- Page N ---" markers,
                "form_feed" only form feed characters. "auto" prefers OCR
                markers, then explicit offsets, then form feeds.
            page_break_offsets: Offsets supplied by the text producer.

        Returns:
            PageIndex over the text.
        """
        if marker_style not in ("auto", "ocr", "form_feed"):
            raise ValueError(f"Unknown marker style: {marker_style!r}")

        if marker_style in ("auto", "ocr"):
            ocr_breaks = cls._ocr_breaks(text)
            if ocr_breaks or marker_style == "ocr":
                logger.debug(f"Found {len(ocr_breaks)} OCR page markers")
                return cls(ocr_breaks, len(text))

        if marker_style == "auto" and page_break_offsets:
            return cls(page_break_offsets, len(text))

        # A page starts right after the form feed that ends the previous one
        form_feeds = [m.end() for m in re.finditer(FORM_FEED, text)]
        return cls(form_feeds, len(text))

    @staticmethod
    def _ocr_breaks(text: str) -> list[int]:
        """Offsets of OCR page markers.

        OCR text usually opens with whitespace and then the first
        marker; that marker starts page 1 rather than page 2.
        """
        offsets = [m.start() for m in OCR_PAGE_MARKER.finditer(text)]
        if offsets and not text[: offsets[0]].strip():
            offsets = offsets[1:]
        return offsets

    @property
    def breaks(self) -> list[int]:
        """Copy of the break table including sentinels."""
        return list(self._breaks)

    @property
    def page_count(self) -> int:
        """Number of pages (at least 1)."""
        return max(1, len(self._breaks) - 1)

    @property
    def text_length(self) -> int:
        return self._text_length

    def page_for_offset(self, offset: int) -> int:
        """1-based page containing offset.

        Total: offsets before the text map to page 1, offsets at or
        past the end map to the last page.
        """
        page = bisect_right(self._breaks, offset)
        return min(max(page, 1), self.page_count)

    def offset_for_page(self, page: int) -> int:
        """Start offset of a 1-based page, clamped to [0, len(text)]."""
        if page <= 1:
            return 0
        if page >= len(self._breaks):
            return self._text_length
        return self._breaks[page - 1]

    def page_end_offset(self, page: int) -> int:
        """Exclusive end offset of a 1-based page."""
        return self.offset_for_page(page + 1)

    def __repr__(self) -> str:
        return f"PageIndex(pages={self.page_count}, length={self._text_length})"
