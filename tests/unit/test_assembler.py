"""
Unit tests for chapter assembly.
"""

import pytest

from chaptertutor.extractors import (
    ChapterAssembler,
    ChapterOutline,
    HeadingCandidate,
    PageIndex,
    TocEntry,
    extract_chapter_content,
)


@pytest.fixture
def assembler() -> ChapterAssembler:
    return ChapterAssembler()


class TestHeadingFallback:
    """Test assembly from detected headings."""

    def test_heading_scenario(self, assembler, heading_text):
        """Headings at 0 and 5000 give two contiguous chapters."""
        result = assembler.extract(heading_text, total_pages=1)

        assert result.source == "heading_detection"
        assert len(result.chapters) == 2

        first, second = result.chapters
        assert (first.start_offset, first.end_offset) == (0, 4999)
        assert (second.start_offset, second.end_offset) == (5000, 12000)
        assert first.title == "Flight Basics"
        assert second.title == "Weather"

    def test_log_records_fallback(self, assembler, heading_text):
        """The processing log says why headings were used."""
        result = assembler.extract(heading_text, total_pages=1)
        assert any("falling back" in line for line in result.processing_log)

    def test_nothing_found(self, assembler):
        """Without ToC or headings no chapters are produced."""
        result = assembler.extract("just a few plain words\nand some more", total_pages=1)
        assert result.chapters == []
        assert result.source == "none"

    def test_renumbered_in_text_order(self, assembler):
        """Source numbering is replaced by position."""
        text = "x" * 50
        headings = [
            HeadingCandidate(chapter_number=7, title="Later", offset=30, rule="chapter", confidence=1.0),
            HeadingCandidate(chapter_number=3, title="Earlier", offset=10, rule="chapter", confidence=1.0),
        ]
        chapters = assembler.assemble(headings, text, PageIndex.build(text))
        assert [c.chapter_number for c in chapters] == [1, 2]
        assert [c.title for c in chapters] == ["Earlier", "Later"]


class TestTocAssembly:
    """Test assembly from a parsed ToC."""

    def test_paged_book(self, assembler, paged_book):
        """ToC pages become chapter page ranges."""
        text, total_pages = paged_book
        result = assembler.extract(text, total_pages)

        assert result.source == "toc_parser"
        assert [c.title for c in result.chapters] == [
            "1 Introduction",
            "2 Basic Aerodynamics",
            "3 Navigation",
        ]
        assert [(c.start_page, c.end_page) for c in result.chapters] == [(2, 3), (4, 5), (6, 6)]

    def test_start_snapped_to_title(self, assembler, paged_book):
        """Chapters start where the title appears on the page."""
        text, total_pages = paged_book
        chapters = assembler.extract(text, total_pages).chapters
        for chapter in chapters:
            bare = chapter.title.split(" ", 1)[1]
            assert text.startswith(bare, chapter.start_offset)

    def test_title_missing_keeps_page_start(self, assembler):
        """Without the title on the page the page start is used."""
        text = "front\fpage two text\fpage three text"
        index = PageIndex.build(text)
        entries = [TocEntry(1, "1", "Nowhere", 2), TocEntry(2, "2", "Also Nowhere", 3)]
        chapters = assembler.assemble(entries, text, index)
        assert chapters[0].start_offset == index.offset_for_page(2)
        assert chapters[1].start_offset == index.offset_for_page(3)

    def test_entries_sharing_a_page(self, assembler):
        """Entries that land on the same offset keep only the first."""
        text = "front matter\fpage two text\fpage three text"
        index = PageIndex.build(text)
        entries = [
            TocEntry(1, "1", "Alpha", 2),
            TocEntry(2, "2", "Beta", 2),
            TocEntry(3, "3", "Gamma", 3),
        ]
        chapters = assembler.assemble(entries, text, index)

        assert [c.title for c in chapters] == ["1 Alpha", "3 Gamma"]
        assert [c.chapter_number for c in chapters] == [1, 2]
        assert all(c.end_offset >= c.start_offset for c in chapters)
        assert chapters[0].end_offset + 1 == chapters[1].start_offset
        assert chapters[0].content == "page two text"

    def test_shared_page_snapped_apart(self, assembler):
        """Two titles visible on one page become two chapters."""
        text = "front matter\fAlpha starts here. Beta starts here.\fGamma page"
        index = PageIndex.build(text)
        entries = [
            TocEntry(1, "1", "Alpha", 2),
            TocEntry(2, "2", "Beta", 2),
            TocEntry(3, "3", "Gamma", 3),
        ]
        chapters = assembler.assemble(entries, text, index)
        assert [c.title for c in chapters] == ["1 Alpha", "2 Beta", "3 Gamma"]
        assert text.startswith("Beta", chapters[1].start_offset)

    def test_contiguous_boundaries(self, assembler, paged_book):
        """Each chapter ends one before the next begins, the last at len(text)."""
        text, total_pages = paged_book
        chapters = assembler.extract(text, total_pages).chapters
        for current, following in zip(chapters, chapters[1:]):
            assert current.end_offset + 1 == following.start_offset
        assert chapters[-1].end_offset == len(text)

    def test_content_stripped(self, assembler, paged_book):
        """Chapter content is the stripped slice of the text."""
        text, total_pages = paged_book
        chapter = assembler.extract(text, total_pages).chapters[2]
        assert chapter.content == extract_chapter_content(text, chapter)
        assert chapter.content.startswith("Navigation")
        assert not chapter.content.endswith("\n")


class TestChapterOutline:
    """Test position lookups over chapters."""

    def test_chapter_for_offset(self, chapters):
        """Offsets resolve to the chapter containing them."""
        outline = ChapterOutline(chapters)
        assert outline.chapter_for_offset(0).chapter_number == 1
        assert outline.chapter_for_offset(999).chapter_number == 1
        assert outline.chapter_for_offset(1000).chapter_number == 2

    def test_before_first_chapter(self):
        """Front matter belongs to no chapter."""
        from chaptertutor.models import Chapter

        outline = ChapterOutline([Chapter(1, "Only", 100, 200, 2, 3)])
        assert outline.chapter_for_offset(50) is None
        assert outline.chapter_for_page(1) is None

    def test_chapter_for_page(self, chapters):
        """Pages resolve to the last chapter starting on or before them."""
        outline = ChapterOutline(chapters)
        assert outline.chapter_for_page(5).chapter_number == 1
        assert outline.chapter_for_page(6).chapter_number == 2
        assert outline.chapter_for_page(40).chapter_number == 2

    def test_get(self, chapters):
        """Chapters are found by number."""
        outline = ChapterOutline(chapters)
        assert len(outline) == 2
        assert outline.get(2).title == "Weather"
        assert outline.get(9) is None
