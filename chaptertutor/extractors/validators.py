"""
Validation rules for assembled chapters.

Validators check chapter lists for consistency and quality.
Issues are reported but don't block extraction (graceful degradation).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chaptertutor.models import Chapter


@dataclass
class ValidationIssue:
    """A validation problem found in assembled chapters."""

    type: str  # "gap", "numbering", "page_range", "short_chapter", ...
    message: str
    severity: str  # "warning", "info"
    chapter_numbers: list[int]


class ValidationRule(ABC):
    """Abstract base for validation rules."""

    name: str = "base"

    @abstractmethod
    def check(self, chapters: list[Chapter], text_length: int) -> list[ValidationIssue]:
        """Check chapters for issues.

        Returns list of issues found (empty if all good).
        """
        pass


class ContiguityValidator(ValidationRule):
    """Chapters must tile the text without gaps or overlaps.

    Each chapter ends one before the next begins; the last ends at
    the end of the text.
    """

    name = "contiguity"

    def check(self, chapters: list[Chapter], text_length: int) -> list[ValidationIssue]:
        """Check boundary arithmetic."""
        issues = []

        for current, following in zip(chapters, chapters[1:]):
            if current.end_offset + 1 != following.start_offset:
                issues.append(
                    ValidationIssue(
                        type="gap",
                        message=f"Chapter {current.chapter_number} ends at "
                        f"{current.end_offset}, chapter {following.chapter_number} "
                        f"starts at {following.start_offset}",
                        severity="warning",
                        chapter_numbers=[current.chapter_number, following.chapter_number],
                    )
                )

        if chapters and chapters[-1].end_offset != text_length:
            last = chapters[-1]
            issues.append(
                ValidationIssue(
                    type="gap",
                    message=f"Last chapter ends at {last.end_offset}, text length is {text_length}",
                    severity="warning",
                    chapter_numbers=[last.chapter_number],
                )
            )

        return issues


class SequentialNumberingValidator(ValidationRule):
    """Chapter numbers must run 1..N without gaps."""

    name = "numbering"

    def check(self, chapters: list[Chapter], text_length: int) -> list[ValidationIssue]:
        """Check numbering."""
        issues = []
        for expected, chapter in enumerate(chapters, start=1):
            if chapter.chapter_number != expected:
                issues.append(
                    ValidationIssue(
                        type="numbering",
                        message=f"Expected chapter {expected}, found {chapter.chapter_number}",
                        severity="warning",
                        chapter_numbers=[chapter.chapter_number],
                    )
                )
        return issues


class EmptyChapterValidator(ValidationRule):
    """Flag chapters with little or no content.

    Two ToC entries on the same page, or a heading immediately
    followed by another, leave a chapter with nothing to teach.
    """

    name = "empty_chapter"

    def __init__(self, min_chars: int = 100):
        """Initialize validator.

        Args:
            min_chars: Minimum content characters for a useful chapter.
        """
        self.min_chars = min_chars

    def check(self, chapters: list[Chapter], text_length: int) -> list[ValidationIssue]:
        """Check content length."""
        issues = []
        for chapter in chapters:
            if len(chapter.content) < self.min_chars:
                issues.append(
                    ValidationIssue(
                        type="short_chapter",
                        message=f"Chapter {chapter.chapter_number} '{chapter.title}' is very "
                        f"short ({len(chapter.content)} chars < {self.min_chars})",
                        severity="info",
                        chapter_numbers=[chapter.chapter_number],
                    )
                )
        return issues


# Titles that are nothing but a chapter label: "2", "2.1", "IV", "Chapter 3"
NUMBERING_ONLY = re.compile(
    r"^(?:(?i:chapter|part|unit|module|lesson)\s+)?(?:\d+(?:\.\d+)*|[IVXLC]+)\.?$"
)

# Dot leaders or a wide-gap page number carried over from a ToC line
LEADER_RESIDUE = re.compile(r"(?:\.\s*){3,}|…|\s{2,}\d+$")

# Leading source numbering, ignored when comparing titles
LEADING_LABEL = re.compile(
    r"^(?:(?i:chapter|part|unit|module|lesson)\s+)?(?:\d+(?:\.\d+)*|[IVXLC]+)[.:]?\s+"
)


class TitleQualityValidator(ValidationRule):
    """Check chapter titles for detection leftovers.

    A title that is only a label means a heading was split from its
    text. Dot leaders mean a ToC line was not fully cleaned. Repeated
    titles usually come from running headers taken for chapter
    headings, and very long titles from body text joined to a heading.
    """

    name = "title_quality"

    def __init__(self, max_title_length: int = 120):
        self.max_title_length = max_title_length

    def check(self, chapters: list[Chapter], text_length: int) -> list[ValidationIssue]:
        """Check chapter titles."""
        issues = []
        seen: dict[str, list[int]] = {}

        for chapter in chapters:
            title = chapter.title.strip()
            number = chapter.chapter_number

            if not title or NUMBERING_ONLY.match(title):
                issues.append(
                    ValidationIssue(
                        type="numbering_only",
                        message=f"Chapter {number} has no title beyond its label {title!r}",
                        severity="warning",
                        chapter_numbers=[number],
                    )
                )
                continue

            if LEADER_RESIDUE.search(title):
                issues.append(
                    ValidationIssue(
                        type="leader_residue",
                        message=f"Chapter {number} title {title!r} keeps ToC leader text",
                        severity="info",
                        chapter_numbers=[number],
                    )
                )
            if len(title) > self.max_title_length:
                issues.append(
                    ValidationIssue(
                        type="long_title",
                        message=f"Chapter {number} title is {len(title)} chars, "
                        "body text may be joined to it",
                        severity="warning",
                        chapter_numbers=[number],
                    )
                )

            key = LEADING_LABEL.sub("", title).casefold()
            seen.setdefault(key, []).append(number)

        for numbers in seen.values():
            if len(numbers) > 1:
                title = next(c.title for c in chapters if c.chapter_number == numbers[0])
                issues.append(
                    ValidationIssue(
                        type="duplicate_title",
                        message=f"Chapters {numbers} share the title {title!r}",
                        severity="warning",
                        chapter_numbers=numbers,
                    )
                )

        return issues


DEFAULT_VALIDATORS: tuple[type[ValidationRule], ...] = (
    ContiguityValidator,
    SequentialNumberingValidator,
    EmptyChapterValidator,
    TitleQualityValidator,
)


def default_validators() -> list[ValidationRule]:
    """Fresh instances of the standard rule set."""
    return [rule() for rule in DEFAULT_VALIDATORS]
