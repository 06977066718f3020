"""
Data models for ChapterTutor.

Structure (Chapter, Topic) is produced by the extractors and is
immutable once assembled. Tutoring records (LearningState,
StudentProgress, QuizQuestion, QuizAttempt) are read and written
through a RecordStore.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from chaptertutor.exceptions import ExtractionError, InvalidQuizError


def utcnow() -> datetime:
    """Timezone-aware current time used for interaction stamps."""
    return datetime.now(timezone.utc)


# =============================================================================
# TEXT EXTRACTION INPUT
# =============================================================================


@dataclass(frozen=True)
class ExtractedText:
    """
    Output of a PDF-to-text or OCR collaborator.

    OCR output marks pages with "--- Page N ---" lines; plain
    extraction separates pages with form feeds. Explicit offsets,
    when a producer has them, are used if no OCR markers are found.
    """

    text: str
    total_pages: int
    page_break_offsets: tuple[int, ...] | None = None
    used_ocr: bool = False

    def __post_init__(self):
        """Reject input that is not decoded text."""
        if not isinstance(self.text, str):
            raise ExtractionError(
                f"Extracted text must be str, got {type(self.text).__name__}"
            )
        if self.total_pages < 0:
            raise ExtractionError(f"total_pages must be >= 0, got {self.total_pages}")


@dataclass(frozen=True)
class OCRPage:
    """One page returned by the OCR collaborator."""

    page_number: int  # 1-based
    text: str
    quality: str = "good"  # "good" or "poor"

    @property
    def is_good(self) -> bool:
        return self.quality == "good"


@dataclass(frozen=True)
class RetrievedPassage:
    """A passage returned by the retrieval collaborator."""

    text: str
    page_number: int | None = None
    score: float = 0.0
    source_tag: str | None = None  # e.g. "OCR"


# =============================================================================
# DOCUMENT STRUCTURE
# =============================================================================


@dataclass(frozen=True)
class Chapter:
    """
    A chapter with its text span and page span.

    end_offset follows the assembler's boundary rule: one before the
    next chapter's start, or the text length for the last chapter.
    Content is fulltext[start_offset:end_offset].strip().
    """

    chapter_number: int
    title: str
    start_offset: int
    end_offset: int
    start_page: int
    end_page: int
    content: str = ""

    def __post_init__(self):
        """Validate chapter fields."""
        if self.chapter_number < 1:
            raise ValueError(f"chapter_number must be >= 1, got {self.chapter_number}")
        if self.end_offset < self.start_offset:
            raise ValueError(
                f"end_offset ({self.end_offset}) must be >= start_offset ({self.start_offset})"
            )
        if self.start_page < 1:
            raise ValueError(f"start_page must be >= 1, got {self.start_page}")
        if self.end_page < self.start_page:
            raise ValueError(
                f"end_page ({self.end_page}) must be >= start_page ({self.start_page})"
            )

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


@dataclass(frozen=True)
class Topic:
    """A topic inside a chapter."""

    topic_number: int
    title: str
    content: str
    estimated_time_minutes: int

    def __post_init__(self):
        """Validate topic fields."""
        if self.topic_number < 1:
            raise ValueError(f"topic_number must be >= 1, got {self.topic_number}")
        if self.estimated_time_minutes < 1:
            raise ValueError(
                f"estimated_time_minutes must be >= 1, got {self.estimated_time_minutes}"
            )


# =============================================================================
# LEARNING STATE
# =============================================================================


class LearningPhase(Enum):
    """Tutoring phase for the current chapter."""

    INTRODUCTION = "introduction"
    LEARNING = "learning"
    REVIEW = "review"
    QUIZ_READY = "quiz-ready"


@dataclass(frozen=True)
class LearningState:
    """
    Per-session tutoring position.

    Instances are immutable: transitions return a new state. The
    version counter is bumped by the store on every successful
    compare-and-update.
    """

    session_key: str
    document_id: str
    current_chapter: int = 1
    current_topic: int = 1
    phase: LearningPhase = LearningPhase.INTRODUCTION
    message_count: int = 0
    chapters_completed: tuple[int, ...] = ()
    quizzes_passed: tuple[int, ...] = ()
    needs_review: bool = False
    review_topics: tuple[str, ...] = ()
    last_interaction: datetime = field(default_factory=utcnow)
    last_attempt_id: str | None = None  # Most recent quiz attempt applied
    version: int = 0

    def __post_init__(self):
        """Validate pointers."""
        if self.current_chapter < 1:
            raise ValueError(f"current_chapter must be >= 1, got {self.current_chapter}")
        if self.current_topic < 1:
            raise ValueError(f"current_topic must be >= 1, got {self.current_topic}")
        if self.message_count < 0:
            raise ValueError(f"message_count must be >= 0, got {self.message_count}")

    def is_finished(self, total_chapters: int) -> bool:
        """Whether every chapter of the document has been passed."""
        return total_chapters > 0 and self.current_chapter > total_chapters


@dataclass(frozen=True)
class StudentProgress:
    """
    Document-level progress that outlives sessions.

    New sessions for the same document resume from its pointer.
    """

    document_id: str
    current_chapter: int = 1
    current_topic: int = 1
    completed_topics: tuple[str, ...] = ()  # "chapter.topic" identifiers
    last_interaction: datetime = field(default_factory=utcnow)


# =============================================================================
# QUIZZES
# =============================================================================


@dataclass(frozen=True)
class QuizQuestion:
    """
    A multiple-choice question for one chapter.

    The option text is the identity of a choice: grading compares
    the selected option with correct_answer by exact equality.
    """

    id: str
    document_id: str
    chapter_number: int
    question: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str = ""
    difficulty: str = "medium"
    topic_covered: str = "General"

    def __post_init__(self):
        """Validate options and answer."""
        if len(self.options) != 4:
            raise InvalidQuizError(
                f"Question {self.id!r} must have 4 options, got {len(self.options)}"
            )
        if self.correct_answer not in self.options:
            raise InvalidQuizError(
                f"Question {self.id!r}: correct answer {self.correct_answer!r} "
                f"is not one of its options"
            )


@dataclass(frozen=True)
class SubmittedAnswer:
    """An answer as submitted by the student."""

    question_id: str
    selected_answer: str


@dataclass(frozen=True)
class GradedAnswer:
    """An answer after grading.

    correct_answer and topic_covered are None when the question id
    was not found among the stored questions.
    """

    question_id: str
    selected_answer: str
    correct_answer: str | None
    is_correct: bool
    topic_covered: str | None

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "selectedAnswer": self.selected_answer,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
            "topicCovered": self.topic_covered,
        }

    @classmethod
    def from_dict(cls, data: dict) -> GradedAnswer:
        return cls(
            question_id=data["questionId"],
            selected_answer=data["selectedAnswer"],
            correct_answer=data.get("correctAnswer"),
            is_correct=bool(data["isCorrect"]),
            topic_covered=data.get("topicCovered"),
        )


@dataclass(frozen=True)
class QuizAttempt:
    """One graded quiz submission. Append-only."""

    document_id: str
    chapter_number: int
    session_key: str
    score: int
    total_questions: int
    answers: tuple[GradedAnswer, ...]
    weak_topics: tuple[str, ...]
    passed: bool
    id: str | None = None  # Assigned by the store
    created_at: datetime = field(default_factory=utcnow)
