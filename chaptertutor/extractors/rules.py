"""
Line rules shared by the structure detectors.

Each detection strategy is an ordered list of independent rules.
A rule looks at one line (plus its surroundings) and either
proposes a match or declines. Detectors own the policy that
decides what to do with matches; rules only recognize shapes.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class LineContext:
    """Where a line sits in the text being scanned."""

    lines: Sequence[str]
    index: int
    offset: int = 0  # Offset of the raw line start in the full text

    @property
    def line(self) -> str:
        return self.lines[self.index]

    @property
    def previous(self) -> str:
        """Stripped previous line, empty at the start."""
        if self.index == 0:
            return ""
        return self.lines[self.index - 1].strip()

    @property
    def following(self) -> str:
        """Stripped next line, empty at the end."""
        if self.index + 1 >= len(self.lines):
            return ""
        return self.lines[self.index + 1].strip()


@dataclass(frozen=True)
class RuleMatch:
    """A line recognized by a rule.

    label is the numbering token as written ("3", "2.1", "A", "IV"),
    empty when the shape carries none.
    """

    rule: str
    label: str
    title: str
    page: int | None = None
    confidence: float = 1.0


class LineRule(ABC):
    """Abstract base for line rules."""

    name: str = "base"
    confidence: float = 1.0

    @abstractmethod
    def try_match(self, line: str, context: LineContext | None = None) -> RuleMatch | None:
        """Return a match for the (stripped) line, or None.

        Should never raise on odd input; declining is always safe.
        """
        pass


class RegexRule(LineRule):
    """Rule backed by a single anchored regular expression.

    Groups are addressed by number: label_group holds the numbering
    token, title_group the title and page_group the page reference.
    """

    def __init__(
        self,
        name: str,
        pattern: str,
        *,
        confidence: float = 1.0,
        flags: int = 0,
        label_group: int | None = 1,
        title_group: int = 2,
        page_group: int | None = None,
    ):
        self.name = name
        self.pattern = re.compile(pattern, flags)
        self.confidence = confidence
        self.label_group = label_group
        self.title_group = title_group
        self.page_group = page_group

    def try_match(self, line: str, context: LineContext | None = None) -> RuleMatch | None:
        match = self.pattern.match(line)
        if not match:
            return None

        label = match.group(self.label_group) if self.label_group else ""
        title = (match.group(self.title_group) or "").strip()

        page = None
        if self.page_group is not None:
            try:
                page = int(match.group(self.page_group))
            except (TypeError, ValueError):
                return None

        return RuleMatch(
            rule=self.name,
            label=label or "",
            title=title,
            page=page,
            confidence=self.confidence,
        )

    def __repr__(self) -> str:
        return f"RegexRule({self.name!r})"


def first_match(
    rules: Sequence[LineRule], line: str, context: LineContext | None = None
) -> RuleMatch | None:
    """Apply rules in order and return the first match."""
    for rule in rules:
        match = rule.try_match(line, context)
        if match is not None:
            return match
    return None
