"""
Topic segmentation within a chapter.

Sub-headings split a chapter into topics. Mid-sentence numeric
references must not fragment the chapter, so a heading-shaped line
only counts when it is short and either follows a blank line or
carries explicit numbering.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from chaptertutor.config import TopicConfig
from chaptertutor.extractors.rules import LineContext, LineRule, RegexRule, first_match
from chaptertutor.models import Topic

logger = logging.getLogger(__name__)

DEFAULT_TOPIC_RULES: tuple[LineRule, ...] = (
    RegexRule("decimal", r"^(\d+\.?\d*)\s+(.+?)$"),  # "1.1 Introduction"
    RegexRule("lettered", r"^([A-Z])\.\s+(.+?)$"),  # "A. Overview"
    RegexRule("section", r"^(?:Section|SECTION)\s+(\d+)[\s:.-]*(.+?)$"),
    RegexRule("topic", r"^(?:Topic|TOPIC)\s+(\d+)[\s:.-]*(.+?)$"),
    RegexRule("markdown", r"^(#{1,3})\s+(.+?)$"),
    RegexRule("roman", r"^([IVX]+)\.\s+(.+?)$"),
)

EXPLICIT_NUMBERING = re.compile(r"^[\d.]+\s|^[A-Z]\.|^[IVX]+\.")

_TITLE_PREFIXES = (
    re.compile(r"^[\d.]+\s+"),
    re.compile(r"^[A-Z]\.\s+"),
    re.compile(r"^[IVX]+\.\s+"),
    re.compile(r"^(?:Section|SECTION|Topic|TOPIC)\s+\d+[\s:.-]*"),
    re.compile(r"^#+\s+"),
)


def clean_topic_title(title: str) -> str:
    """Strip the numbering token from a topic heading."""
    for prefix in _TITLE_PREFIXES:
        title = prefix.sub("", title)
    return title.strip()


def estimate_reading_time(text: str, words_per_minute: int = 200) -> int:
    """Minutes to read text, at least 1."""
    return max(1, math.ceil(len(text.split()) / words_per_minute))


def estimate_chapter_time(topics: Sequence[Topic]) -> int:
    """Total reading time of a chapter's topics."""
    return sum(topic.estimated_time_minutes for topic in topics)


@dataclass
class _Section:
    title: str
    lines: list[str] = field(default_factory=list)


class TopicSegmenter:
    """Split chapter content into topics.

    Usage:
        segmenter = TopicSegmenter()
        topics = segmenter.segment(chapter.content)
    """

    def __init__(
        self,
        config: TopicConfig | None = None,
        rules: tuple[LineRule, ...] | None = None,
    ):
        """Initialize the segmenter.

        Args:
            config: Title length limit, reading speed and fallback title.
            rules: Sub-heading shapes to try, in order.
        """
        self.config = config or TopicConfig()
        self.rules = rules or DEFAULT_TOPIC_RULES

    def is_likely_topic(self, context: LineContext) -> bool:
        """Whether a heading-shaped line is a real topic boundary."""
        line = context.line.strip()
        if len(line) >= self.config.max_title_length:
            return False
        return not context.previous or bool(EXPLICIT_NUMBERING.match(line))

    def segment(self, chapter_content: str) -> list[Topic]:
        """Split chapter content at topic headings.

        Text before the first heading is kept at the start of the first
        topic. Without any heading the whole chapter becomes one topic
        titled config.fallback_title.

        Returns:
            Topics numbered 1..N.
        """
        lines = chapter_content.split("\n")
        preamble: list[str] = []
        sections: list[_Section] = []

        for i, raw in enumerate(lines):
            line = raw.strip()
            context = LineContext(lines, i)

            if line and first_match(self.rules, line, context) and self.is_likely_topic(context):
                sections.append(_Section(title=line))
                continue

            if not line:
                continue
            if sections:
                sections[-1].lines.append(line)
            else:
                preamble.append(line)

        if not sections:
            sections.append(_Section(title=self.config.fallback_title))
        sections[0].lines[:0] = preamble

        logger.debug(f"Segmented chapter into {len(sections)} topics")

        topics = []
        for number, section in enumerate(sections, start=1):
            content = "\n".join(section.lines)
            title = clean_topic_title(section.title) or section.title
            topics.append(
                Topic(
                    topic_number=number,
                    title=title,
                    content=content,
                    estimated_time_minutes=estimate_reading_time(
                        content, self.config.words_per_minute
                    ),
                )
            )
        return topics
