"""
Configuration for ChapterTutor.

Every component receives its settings at construction. Nothing is
read from the environment at call time.

Example:
    >>> config = TutorConfig(quiz=QuizConfig(pass_score=7))
    >>> session = TutorSession(store, config)

    >>> config = TutorConfig.from_yaml("tutor.yaml")
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from chaptertutor.exceptions import ConfigurationError


def _require_positive(owner: str, **values: int) -> None:
    for name, value in values.items():
        if value < 1:
            raise ConfigurationError(f"{owner}.{name} must be >= 1, got {value}")


@dataclass(frozen=True)
class TocConfig:
    """
    Table of contents parsing.

    Attributes:
        scan_pages: Only text before this page is searched for a ToC heading.
        scan_chars: Characters after the heading taken as the ToC block.
        blob_line_threshold: Blocks with fewer lines are treated as a
            single blob whose newlines were lost.
        blob_min_chars: Minimum block length before the blob strategy is tried.
        min_entries: Entries needed for the ToC to be trusted (default 3,
            i.e. more than two).
        miss_limit: Consecutive unmatched lines tolerated before stopping.
        min_entries_before_miss_stop: Entries required before miss_limit applies.
        min_entries_before_end_marker: Entries required before a
            Glossary/Index/Appendix line ends the ToC.
        title_search_chars: How far into a chapter's page to look for its title.
    """

    scan_pages: int = 30
    scan_chars: int = 8000
    blob_line_threshold: int = 5
    blob_min_chars: int = 200
    min_entries: int = 3
    miss_limit: int = 25
    min_entries_before_miss_stop: int = 5
    min_entries_before_end_marker: int = 3
    title_search_chars: int = 1000

    def __post_init__(self):
        """Validate configuration."""
        _require_positive(
            "toc",
            scan_pages=self.scan_pages,
            scan_chars=self.scan_chars,
            blob_line_threshold=self.blob_line_threshold,
            min_entries=self.min_entries,
            miss_limit=self.miss_limit,
        )
        if self.title_search_chars < 0:
            raise ConfigurationError(
                f"toc.title_search_chars must be >= 0, got {self.title_search_chars}"
            )


@dataclass(frozen=True)
class HeadingConfig:
    """Heading detection over the full text."""

    min_line_length: int = 4
    max_line_length: int = 100
    isolation_line_length: int = 5  # Neighbouring lines shorter than this isolate a heading

    def __post_init__(self):
        """Validate configuration."""
        if self.max_line_length < self.min_line_length:
            raise ConfigurationError(
                f"headings.max_line_length ({self.max_line_length}) must be >= "
                f"min_line_length ({self.min_line_length})"
            )


@dataclass(frozen=True)
class TopicConfig:
    """Topic segmentation inside a chapter."""

    max_title_length: int = 80
    words_per_minute: int = 200
    fallback_title: str = "Main Content"

    def __post_init__(self):
        """Validate configuration."""
        _require_positive(
            "topics",
            max_title_length=self.max_title_length,
            words_per_minute=self.words_per_minute,
        )
        if not self.fallback_title.strip():
            raise ConfigurationError("topics.fallback_title must not be empty")


@dataclass(frozen=True)
class QuizConfig:
    """
    Quiz generation and grading.

    The pass mark is a fixed score (6) against a reference quiz of
    10 questions. Quizzes of any other length are held to the same
    ratio, rounded up: see required_score().
    """

    pass_score: int = 6
    reference_question_count: int = 10
    question_count: int = 10

    def __post_init__(self):
        """Validate configuration."""
        _require_positive(
            "quiz",
            pass_score=self.pass_score,
            reference_question_count=self.reference_question_count,
            question_count=self.question_count,
        )
        if self.pass_score > self.reference_question_count:
            raise ConfigurationError(
                f"quiz.pass_score ({self.pass_score}) cannot exceed "
                f"reference_question_count ({self.reference_question_count})"
            )

    def required_score(self, total_questions: int) -> int:
        """Correct answers needed to pass a quiz of the given length."""
        if total_questions == self.reference_question_count:
            return self.pass_score
        return math.ceil(total_questions * self.pass_score / self.reference_question_count)


_SECTIONS = {
    "toc": TocConfig,
    "headings": HeadingConfig,
    "topics": TopicConfig,
    "quiz": QuizConfig,
}


@dataclass(frozen=True)
class TutorConfig:
    """
    Top-level configuration.

    All options have sensible defaults. Create a config only
    if you need to customize behavior.
    """

    toc: TocConfig = field(default_factory=TocConfig)
    headings: HeadingConfig = field(default_factory=HeadingConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    quiz: QuizConfig = field(default_factory=QuizConfig)

    # Sentinel the generator emits when it judges a topic mastered
    completion_token: str = "[TOPIC_COMPLETED]"

    # Optimistic-update retries per learning state mutation
    max_update_retries: int = 3

    # Passages requested from the retriever per tutoring turn
    retrieval_top_k: int = 5

    # Average characters per page below which a PDF is sent to OCR
    ocr_min_chars_per_page: int = 100

    def __post_init__(self):
        """Validate configuration."""
        if not self.completion_token:
            raise ConfigurationError("completion_token must not be empty")
        _require_positive(
            "tutor",
            max_update_retries=self.max_update_retries,
            retrieval_top_k=self.retrieval_top_k,
            ocr_min_chars_per_page=self.ocr_min_chars_per_page,
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> TutorConfig:
        """Build a config from nested dicts, e.g. parsed YAML."""
        raw = dict(raw or {})
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in raw.items():
            section = _SECTIONS.get(key)
            if section is None:
                kwargs[key] = value
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"Section {key!r} must be a mapping")
            section_fields = {f.name for f in fields(section)}
            bad = set(value) - section_fields
            if bad:
                raise ConfigurationError(f"Unknown keys in {key!r}: {sorted(bad)}")
            kwargs[key] = section(**value)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: os.PathLike | str) -> TutorConfig:
        """Load a config from a YAML file."""
        config_path = Path(path)
        try:
            with open(config_path, encoding="utf-8") as fp:
                raw = yaml.safe_load(fp)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        if raw is not None and not isinstance(raw, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        return cls.from_dict(raw)
