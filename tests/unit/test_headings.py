"""
Unit tests for chapter heading detection.
"""

import pytest

from chaptertutor.extractors import HeadingDetector, LineContext, is_strong_header
from chaptertutor.extractors.headings import DEFAULT_HEADING_RULES
from chaptertutor.extractors.rules import first_match


@pytest.fixture
def detector() -> HeadingDetector:
    return HeadingDetector()


def _context(*lines: str, index: int = 0) -> LineContext:
    return LineContext(list(lines), index)


class TestHeadingRules:
    """Test heading shapes."""

    @pytest.mark.parametrize(
        "line,rule,number,title",
        [
            ("Chapter 1: Flight Basics", "chapter", "1", "Flight Basics"),
            ("CHAPTER 12 - Weather", "chapter", "12", "Weather"),
            ("Unit 3 – Navigation", "unit", "3", "Navigation"),
            ("Module 2: Engines", "module", "2", "Engines"),
            ("Section 4: Radio Work", "section", "4", "Radio Work"),
            ("PART 2: Performance", "part", "2", "Performance"),
            ("5. Principles of Flight", "numbered", "5", "Principles of Flight"),
        ],
    )
    def test_recognized(self, line, rule, number, title):
        """Each supported shape yields number and title."""
        match = first_match(DEFAULT_HEADING_RULES, line)
        assert match.rule == rule
        assert match.label == number
        assert match.title == title

    def test_numbered_needs_capital(self):
        """Lowercase numbered list items are not headings."""
        assert first_match(DEFAULT_HEADING_RULES, "1. rate of decompression") is None

    def test_confidence_ordered(self):
        """'Chapter' lines carry the highest confidence."""
        match = first_match(DEFAULT_HEADING_RULES, "Chapter 1: Flight Basics")
        assert match.confidence == 1.0


class TestIsStrongHeader:
    """Test the strong header check."""

    def test_isolated_heading(self):
        """A heading with blank neighbours is strong."""
        assert is_strong_header(_context("", "Chapter 3: Weather", "", index=1))

    def test_back_reference_rejected(self):
        """'See Chapter 5' style references are never headings."""
        assert not is_strong_header(_context("", "see Chapter 5: Fuel", "", index=1))
        assert not is_strong_header(_context("", "Refer to Chapter 2: Lift", "", index=1))

    def test_clause_ending_in_running_text(self):
        """A line ending mid-clause between long lines is rejected."""
        ctx = _context(
            "The discussion of lift forces continues below",
            "Chapter 3: Weather and its effects,",
            "which are covered in detail in this part",
            index=1,
        )
        assert not is_strong_header(ctx)

    def test_clause_ending_but_isolated(self):
        """Isolation outweighs trailing punctuation."""
        ctx = _context("", "Chapter 3: Weather.", "The weather affects flight", index=1)
        assert is_strong_header(ctx)

    def test_no_clause_ending_between_text(self):
        """A clean heading between body lines is strong."""
        ctx = _context(
            "The discussion of lift forces ends here",
            "Chapter 3: Weather",
            "Clouds form when moist air cools",
            index=1,
        )
        assert is_strong_header(ctx)

    def test_empty_line(self):
        """Blank lines are never headings."""
        assert not is_strong_header(_context("   "))


class TestDetectHeadings:
    """Test full-text heading detection."""

    def test_offsets_are_line_starts(self, detector):
        """Offsets point at the heading line in the full text."""
        text = "Preface text here\n\nChapter 1: Flight Basics\nBody\n\nChapter 2: Weather\nMore"
        headings = detector.detect_headings(text)
        assert [h.chapter_number for h in headings] == [1, 2]
        assert headings[0].offset == text.index("Chapter 1")
        assert headings[1].offset == text.index("Chapter 2")
        assert headings[0].title == "Flight Basics"

    def test_running_headers_suppressed(self, detector):
        """Repeated chapter numbers keep only the first occurrence."""
        text = "Chapter 1: Lift\nbody\n\nChapter 1: Lift\nbody\n\nChapter 2: Drag\n"
        headings = detector.detect_headings(text)
        assert [h.chapter_number for h in headings] == [1, 2]
        assert headings[0].offset == 0

    def test_sorted_by_number(self, detector):
        """Output is sorted by chapter number, not position."""
        text = "Chapter 2: Drag\nbody\n\nChapter 1: Lift\nbody\n"
        headings = detector.detect_headings(text)
        assert [h.chapter_number for h in headings] == [1, 2]

    def test_overlong_lines_ignored(self, detector):
        """Lines over the length limit are not candidates."""
        text = "Chapter 1: " + "Very long title " * 10 + "\n"
        assert detector.detect_headings(text) == []

    def test_reference_does_not_claim_number(self, detector):
        """A rejected reference does not block the real heading."""
        text = "See Chapter 2: Drag\n\nChapter 1: Lift\nbody\n\nChapter 2: Drag\nbody\n"
        headings = detector.detect_headings(text)
        assert [h.chapter_number for h in headings] == [1, 2]
        assert headings[1].offset == text.index("Chapter 2: Drag\nbody")

    def test_scenario_offsets(self, detector, heading_text):
        """Headings at 0 and 5000 are found at their exact offsets."""
        headings = detector.detect_headings(heading_text)
        assert [(h.chapter_number, h.offset) for h in headings] == [(1, 0), (2, 5000)]
