"""
Table of contents parser.

Finds a ToC heading in the front matter and parses the block after
it into (number, title, page) entries. Works on linearized text
only: layout is recovered from dot leaders, wide gaps, or, when
newlines were lost, by scanning the block as one blob.

A ToC with only one or two parsed entries is more likely a stray
"Contents" line than a real short ToC, so callers treat fewer than
TocConfig.min_entries entries as not found.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from chaptertutor.config import TocConfig
from chaptertutor.extractors.page_index import PageIndex
from chaptertutor.extractors.rules import LineContext, LineRule, RegexRule

logger = logging.getLogger(__name__)

TOC_HEADING = re.compile(
    r"(?:Table of Contents|CONTENTS|Index|Content)[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

END_OF_TOC = re.compile(r"^(?:Glossary|Index|Appendix)", re.IGNORECASE)

# "010.01 Title ...... 1" or "1. Title ...... 5" inside a single line of text;
# dot leaders are required so that body prose cannot match.
BLOB_ENTRY = re.compile(r"(?:^|\s)(\d+(?:[.-]\d+)*)[.:]?\s+([^.]+?)\s*\.{3,}\s*(\d+)(?=\s|$|\d)")

# "Chapter 3: Title ...... 40", "1.1.2 Title ... 5"
DOT_LEADER_RULE = RegexRule(
    "dot_leader",
    r"^(?:Chapter\s+)?(\w+(?:[.-]\d+)*)\s*[:.]?\s+(.*?)\.{3,}\s*(\d+)$",
    flags=re.IGNORECASE,
    page_group=3,
)

# "01.00 Title      24"
WIDE_GAP_RULE = RegexRule(
    "wide_gap",
    r"^(\w+(?:[.-]\d+)*)\.?\s+(.*?)\s{3,}(\d+)$",
    page_group=3,
)

DEFAULT_TOC_RULES: tuple[LineRule, ...] = (DOT_LEADER_RULE, WIDE_GAP_RULE)


@dataclass(frozen=True)
class TocEntry:
    """A parsed ToC line.

    chapter_number is the entry's position in the ToC (1..N); the
    source numbering stays in label.
    """

    chapter_number: int
    label: str
    title: str
    page: int

    @property
    def full_title(self) -> str:
        """Title with the source numbering kept in front."""
        return f"{self.label} {self.title}".strip()


def _clean_entry_title(title: str) -> str:
    return title.strip().rstrip(". ").strip()


class TocParser:
    """Locate and parse a table of contents.

    Usage:
        parser = TocParser()
        entries = parser.find_toc(text, total_pages=240)
        if parser.is_usable(entries):
            ...
    """

    name = "toc_parser"

    def __init__(
        self,
        config: TocConfig | None = None,
        rules: tuple[LineRule, ...] | None = None,
    ):
        """Initialize the parser.

        Args:
            config: Scan window and stopping thresholds.
            rules: Line layouts to try, in order (default: dot leaders,
                then wide gaps).
        """
        self.config = config or TocConfig()
        self.rules = rules or DEFAULT_TOC_RULES

    def find_toc(
        self,
        text: str,
        total_pages: int,
        page_index: PageIndex | None = None,
    ) -> list[TocEntry]:
        """Parse the ToC of a document.

        Args:
            text: Full document text.
            total_pages: Page count of the source document; entries
                pointing outside 1..total_pages are dropped.
            page_index: Index over text (built if not given).

        Returns:
            Entries in ToC order, empty if no ToC heading was found.
        """
        index = page_index or PageIndex.build(text)
        if total_pages <= 0:
            total_pages = index.page_count

        window = self._search_window(text, index)
        heading = TOC_HEADING.search(window)
        if not heading:
            logger.debug("No table of contents heading found")
            return []

        start = heading.end()
        block = window[start : start + self.config.scan_chars]
        lines = block.split("\n")

        if len(lines) < self.config.blob_line_threshold and len(block) > self.config.blob_min_chars:
            blob_entries = self._parse_blob(block, total_pages)
            if self.is_usable(blob_entries):
                logger.info(f"Extracted {len(blob_entries)} entries from single-block ToC")
                return blob_entries

        return self._parse_lines(lines, total_pages)

    def is_usable(self, entries: list[TocEntry]) -> bool:
        """Whether enough entries were parsed to trust the ToC."""
        return len(entries) >= self.config.min_entries

    def _search_window(self, text: str, index: PageIndex) -> str:
        """Text of the first scan_pages pages."""
        if index.page_count > self.config.scan_pages:
            return text[: index.offset_for_page(self.config.scan_pages + 1)]
        return text

    def _parse_blob(self, block: str, total_pages: int) -> list[TocEntry]:
        """Parse a ToC whose newlines were lost."""
        entries: list[TocEntry] = []
        for match in BLOB_ENTRY.finditer(block):
            page = int(match.group(3))
            if not 0 < page <= total_pages:
                continue
            entries.append(
                TocEntry(
                    chapter_number=len(entries) + 1,
                    label=match.group(1),
                    title=_clean_entry_title(match.group(2)),
                    page=page,
                )
            )
        return entries

    def _parse_lines(self, lines: list[str], total_pages: int) -> list[TocEntry]:
        """Parse a ToC block line by line."""
        cfg = self.config
        entries: list[TocEntry] = []
        misses = 0

        for i, raw in enumerate(lines):
            line = raw.strip()
            if not line:
                continue

            if END_OF_TOC.match(line) and len(entries) >= cfg.min_entries_before_end_marker:
                logger.debug(f"ToC ends at {line[:40]!r}")
                break

            entry = self._match_line(line, LineContext(lines, i), total_pages, len(entries) + 1)
            if entry is not None:
                entries.append(entry)
                misses = 0
                continue

            misses += 1
            if len(entries) >= cfg.min_entries_before_miss_stop and misses > cfg.miss_limit:
                logger.debug(f"Stopping ToC scan after {misses} unmatched lines")
                break

        return entries

    def _match_line(
        self,
        line: str,
        context: LineContext,
        total_pages: int,
        chapter_number: int,
    ) -> TocEntry | None:
        """First layout whose parse yields an in-range page."""
        for rule in self.rules:
            match = rule.try_match(line, context)
            if match is None or match.page is None:
                continue
            if not 0 < match.page <= total_pages:
                continue
            label, title = match.label, _clean_entry_title(match.title)
            if not title:
                # Unnumbered entry such as "Preface ..... 3"
                label, title = "", label
            return TocEntry(
                chapter_number=chapter_number,
                label=label,
                title=title,
                page=match.page,
            )
        return None
