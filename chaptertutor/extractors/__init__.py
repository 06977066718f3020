"""
Structure extraction module.

Implements the chapter detection cascade over linearized text:
- Primary: Table of contents parsing (page numbers, refined to offsets)
- Fallback: Heading detection (exact offsets)
- Nothing found: empty chapter list, the caller tutors the whole document

Chapters are then split into topics by the TopicSegmenter and
checked by the validators.
"""

from chaptertutor.extractors.assembler import (
    AssemblyResult,
    ChapterAssembler,
    ChapterOutline,
    extract_chapter_content,
)
from chaptertutor.extractors.headings import (
    DEFAULT_HEADING_RULES,
    HeadingCandidate,
    HeadingDetector,
    is_strong_header,
)
from chaptertutor.extractors.page_index import PageIndex
from chaptertutor.extractors.rules import LineContext, LineRule, RegexRule, RuleMatch
from chaptertutor.extractors.toc import TocEntry, TocParser
from chaptertutor.extractors.topics import (
    DEFAULT_TOPIC_RULES,
    TopicSegmenter,
    clean_topic_title,
    estimate_chapter_time,
    estimate_reading_time,
)
from chaptertutor.extractors.validators import (
    ContiguityValidator,
    EmptyChapterValidator,
    SequentialNumberingValidator,
    TitleQualityValidator,
    ValidationIssue,
    ValidationRule,
    default_validators,
)

__all__ = [
    # Assembly
    "ChapterAssembler",
    "AssemblyResult",
    "ChapterOutline",
    "extract_chapter_content",
    # Sources
    "PageIndex",
    "TocParser",
    "TocEntry",
    "HeadingDetector",
    "HeadingCandidate",
    "DEFAULT_HEADING_RULES",
    "is_strong_header",
    # Rules
    "LineRule",
    "RegexRule",
    "RuleMatch",
    "LineContext",
    # Topics
    "TopicSegmenter",
    "DEFAULT_TOPIC_RULES",
    "clean_topic_title",
    "estimate_reading_time",
    "estimate_chapter_time",
    # Validators
    "ValidationRule",
    "ValidationIssue",
    "ContiguityValidator",
    "SequentialNumberingValidator",
    "EmptyChapterValidator",
    "TitleQualityValidator",
    "default_validators",
]
