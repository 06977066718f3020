"""
Chapter heading detection over the full text.

Fallback when no usable ToC exists. Lines shaped like
"Chapter 3: Title", "Unit 2 - Title" or "4. Title" are accepted
when they look like real headings rather than references or
running headers.

Confidence is carried through for tuning and diagnostics; it does
not affect which candidates are kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from chaptertutor.config import HeadingConfig
from chaptertutor.extractors.rules import LineContext, LineRule, RegexRule, first_match

logger = logging.getLogger(__name__)

_SEPARATOR = r"[\s:\-\u2013\u2014]+"


def _keyword_rule(keyword: str, confidence: float) -> RegexRule:
    return RegexRule(
        keyword.lower(),
        rf"^{keyword}\s+(\d+){_SEPARATOR}(.+)$",
        confidence=confidence,
        flags=re.IGNORECASE,
    )


# Ordered by confidence. The bare numbered form needs a capitalized title
# so that list items like "1. rate of decompression" are not chapters.
DEFAULT_HEADING_RULES: tuple[LineRule, ...] = (
    _keyword_rule("Chapter", 1.0),
    _keyword_rule("Unit", 0.9),
    _keyword_rule("Module", 0.9),
    RegexRule("numbered", r"^(\d+)\.\s+([A-Z][A-Za-z\s:,-]+)$", confidence=0.8),
    _keyword_rule("Section", 0.8),
    _keyword_rule("Part", 0.8),
)

REFERENCE_PREFIX = re.compile(r"^(?:see|refer to|in|read|shown in)\b", re.IGNORECASE)
CLAUSE_ENDING = re.compile(r"[.,;:]$")


@dataclass(frozen=True)
class HeadingCandidate:
    """A detected chapter heading at an exact text offset."""

    chapter_number: int  # As written in the source
    title: str
    offset: int
    rule: str
    confidence: float
    evidence: dict = field(default_factory=dict, compare=False)


def is_strong_header(context: LineContext, config: HeadingConfig | None = None) -> bool:
    """Whether a heading-shaped line stands on its own.

    Rejects back-references ("see Chapter 5"). Otherwise the line must
    be isolated (a neighbouring line is blank or very short) or not
    end mid-clause.
    """
    config = config or HeadingConfig()
    line = context.line.strip()
    if not line:
        return False

    if REFERENCE_PREFIX.match(line):
        return False

    short = config.isolation_line_length
    isolated = len(context.previous) < short or len(context.following) < short
    ends_clause = bool(CLAUSE_ENDING.search(line))

    return isolated or not ends_clause


class HeadingDetector:
    """Detect chapter headings line by line.

    Usage:
        detector = HeadingDetector()
        for heading in detector.detect_headings(text):
            print(heading.chapter_number, heading.title, heading.offset)
    """

    name = "heading_detection"

    def __init__(
        self,
        config: HeadingConfig | None = None,
        rules: tuple[LineRule, ...] | None = None,
    ):
        """Initialize the detector.

        Args:
            config: Line length limits and isolation threshold.
            rules: Heading shapes to try, in order.
        """
        self.config = config or HeadingConfig()
        self.rules = rules or DEFAULT_HEADING_RULES

    def detect_headings(self, text: str) -> list[HeadingCandidate]:
        """Scan every line of text for chapter headings.

        A chapter number is claimed by its first strong heading; later
        lines with the same number (running headers, cross references)
        are ignored.

        Returns:
            Candidates sorted by chapter number.
        """
        lines = text.split("\n")
        found: dict[int, HeadingCandidate] = {}
        offset = 0

        for i, raw in enumerate(lines):
            line_offset = offset
            offset += len(raw) + 1

            line = raw.strip()
            if not self.config.min_line_length <= len(line) <= self.config.max_line_length:
                continue

            context = LineContext(lines, i, line_offset)
            match = first_match(self.rules, line, context)
            if match is None:
                continue

            number = int(match.label)
            if number in found:
                logger.debug(f"Ignoring repeated heading for chapter {number} at {line_offset}")
                continue
            if not is_strong_header(context, self.config):
                continue

            found[number] = HeadingCandidate(
                chapter_number=number,
                title=match.title,
                offset=line_offset,
                rule=match.rule,
                confidence=match.confidence,
                evidence={"line": line, "line_index": i},
            )

        return sorted(found.values(), key=lambda c: c.chapter_number)
