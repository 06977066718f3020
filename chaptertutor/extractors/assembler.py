"""
Chapter assembly.

Implements the two-strategy cascade:
1. Primary: Table of contents (high precision, page numbers only)
2. Fallback: Heading detection (high recall, exact offsets)

Whichever list is used, chapters are then sorted by position, given
contiguous boundaries and renumbered 1..N. Source numbering survives
only inside titles, so documents whose numbering restarts per part
still get unique chapter numbers.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass, field

from chaptertutor.config import TutorConfig
from chaptertutor.extractors.headings import HeadingCandidate, HeadingDetector
from chaptertutor.extractors.page_index import PageIndex
from chaptertutor.extractors.toc import TocEntry, TocParser
from chaptertutor.models import Chapter

logger = logging.getLogger(__name__)


@dataclass
class _Boundary:
    """A chapter start before boundaries are filled in."""

    title: str
    start: int


@dataclass
class AssemblyResult:
    """Result of chapter assembly."""

    chapters: list[Chapter]
    source: str  # "toc_parser", "heading_detection" or "none"
    toc_entries: list[TocEntry] = field(default_factory=list)
    headings: list[HeadingCandidate] = field(default_factory=list)
    processing_log: list[str] = field(default_factory=list)


def extract_chapter_content(full_text: str, chapter: Chapter) -> str:
    """Text of a chapter, stripped of surrounding whitespace."""
    return full_text[chapter.start_offset : chapter.end_offset].strip()


class ChapterAssembler:
    """Turn a ToC or heading list into contiguous chapters.

    Usage:
        assembler = ChapterAssembler()
        result = assembler.extract(text, total_pages=240)
        for chapter in result.chapters:
            print(chapter.chapter_number, chapter.title, chapter.start_page)
    """

    def __init__(
        self,
        config: TutorConfig | None = None,
        *,
        toc_parser: TocParser | None = None,
        heading_detector: HeadingDetector | None = None,
    ):
        """Initialize the assembler.

        Args:
            config: Tutor configuration (ToC and heading sections are used).
            toc_parser: Primary source (default creates one).
            heading_detector: Fallback source (default creates one).
        """
        self.config = config or TutorConfig()
        self.toc_parser = toc_parser or TocParser(self.config.toc)
        self.heading_detector = heading_detector or HeadingDetector(self.config.headings)

    def extract(
        self,
        text: str,
        total_pages: int,
        page_index: PageIndex | None = None,
    ) -> AssemblyResult:
        """Detect and assemble chapters using the cascade.

        Args:
            text: Full document text.
            total_pages: Page count reported by the text producer.
            page_index: Index over text (built if not given).

        Returns:
            AssemblyResult; chapters is empty when neither strategy
            found anything.
        """
        index = page_index or PageIndex.build(text)
        log: list[str] = []

        toc_entries = self.toc_parser.find_toc(text, total_pages, index)
        if self.toc_parser.is_usable(toc_entries):
            log.append(f"Found {len(toc_entries)} chapters from table of contents")
            logger.info(log[-1])
            chapters = self.assemble(toc_entries, text, index)
            if len(chapters) < len(toc_entries):
                log.append(
                    f"Dropped {len(toc_entries) - len(chapters)} entries starting "
                    "where an earlier entry starts"
                )
            return AssemblyResult(
                chapters=chapters,
                source=self.toc_parser.name,
                toc_entries=toc_entries,
                processing_log=log,
            )

        log.append(
            f"No reliable table of contents ({len(toc_entries)} entries), "
            "falling back to heading detection"
        )
        logger.info(log[-1])

        headings = self.heading_detector.detect_headings(text)
        if not headings:
            log.append("No chapter headings detected")
            logger.info(log[-1])
            return AssemblyResult(
                chapters=[], source="none", toc_entries=toc_entries, processing_log=log
            )

        log.append(f"Found {len(headings)} chapter headings")
        chapters = self.assemble(headings, text, index)
        return AssemblyResult(
            chapters=chapters,
            source=self.heading_detector.name,
            toc_entries=toc_entries,
            headings=headings,
            processing_log=log,
        )

    def assemble(
        self,
        entries: Sequence[TocEntry] | Sequence[HeadingCandidate],
        text: str,
        page_index: PageIndex,
    ) -> list[Chapter]:
        """Build chapters from ToC entries or heading candidates.

        Returns:
            Chapters numbered 1..N in text order, with
            chapters[i].end_offset + 1 == chapters[i + 1].start_offset
            and the last chapter ending at len(text).
        """
        boundaries = []
        for entry in entries:
            if isinstance(entry, TocEntry):
                boundaries.append(self._toc_boundary(entry, text, page_index))
            else:
                boundaries.append(_Boundary(title=entry.title, start=entry.offset))
        return self._finalize(boundaries, text, page_index)

    def _toc_boundary(self, entry: TocEntry, text: str, index: PageIndex) -> _Boundary:
        """Place a ToC entry at its page, snapped to the title if visible."""
        start = index.offset_for_page(entry.page)
        page_end = index.page_end_offset(entry.page)
        snippet = text[start : min(start + self.config.toc.title_search_chars, page_end)]

        title = entry.title.strip()
        if title:
            found = snippet.find(title)
            if found != -1:
                start += found

        return _Boundary(title=entry.full_title, start=start)

    def _finalize(
        self, boundaries: list[_Boundary], text: str, index: PageIndex
    ) -> list[Chapter]:
        """Sort, bound and renumber.

        Boundaries sharing a start offset collapse into the first one
        listed, so no chapter ends before it starts.
        """
        ordered: list[_Boundary] = []
        for boundary in sorted(boundaries, key=lambda b: b.start):
            if ordered and boundary.start == ordered[-1].start:
                logger.warning(
                    f"Dropping chapter {boundary.title!r}: starts at offset "
                    f"{boundary.start} like {ordered[-1].title!r}"
                )
                continue
            ordered.append(boundary)
        chapters = []

        for i, boundary in enumerate(ordered):
            start_page = index.page_for_offset(boundary.start)
            if i + 1 < len(ordered):
                end = ordered[i + 1].start - 1
                end_page = index.page_for_offset(end)
            else:
                end = len(text)
                end_page = index.page_count

            chapters.append(
                Chapter(
                    chapter_number=i + 1,
                    title=boundary.title,
                    start_offset=boundary.start,
                    end_offset=end,
                    start_page=start_page,
                    end_page=max(start_page, end_page),
                    content=text[boundary.start : end].strip(),
                )
            )

        return chapters


class ChapterOutline:
    """Position lookups over an assembled chapter list.

    Used to tag retrieval chunks with the chapter they fall in.
    """

    def __init__(self, chapters: Sequence[Chapter]):
        self.chapters = sorted(chapters, key=lambda c: c.start_offset)
        self._starts = [c.start_offset for c in self.chapters]
        self._start_pages = [c.start_page for c in self.chapters]

    def __len__(self) -> int:
        return len(self.chapters)

    def chapter_for_offset(self, offset: int) -> Chapter | None:
        """Chapter whose span contains offset, None before the first."""
        idx = bisect_right(self._starts, offset) - 1
        if idx < 0:
            return None
        return self.chapters[idx]

    def chapter_for_page(self, page: int) -> Chapter | None:
        """Last chapter starting on or before page."""
        idx = bisect_right(self._start_pages, page) - 1
        if idx < 0:
            return None
        return self.chapters[idx]

    def get(self, chapter_number: int) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.chapter_number == chapter_number:
                return chapter
        return None
