"""
ChapterTutor: chapter-gated tutoring over PDF textbooks.

This library infers a textbook's chapter and topic structure from
linearized PDF text, and drives a tutoring session through it: topics
are taught in order, and each chapter is unlocked by passing the
previous chapter's quiz.

Example:
    >>> import chaptertutor
    >>> result = chaptertutor.ingest_pdf("aerodynamics.pdf")
    >>> store = chaptertutor.SQLStore("sqlite:///tutor.db")
    >>> chaptertutor.store_structure(store, "doc-1", result)

    >>> session = chaptertutor.TutorSession(store)
    >>> plan = session.tutoring_turn("session-1", "doc-1")
    >>> plan.directive.mode
    <DirectiveMode.BOOK_INTRODUCTION: 'book_introduction'>
"""

from chaptertutor.collaborators import OCRService, QuizGenerator, QuizRequest, Retriever
from chaptertutor.config import (
    HeadingConfig,
    QuizConfig,
    TocConfig,
    TopicConfig,
    TutorConfig,
)
from chaptertutor.exceptions import (
    ChapterTutorError,
    ConcurrentUpdateError,
    ConfigurationError,
    DuplicateRecordError,
    ExtractionError,
    InvalidQuizError,
    PersistenceError,
    RecordNotFoundError,
    StateNotFoundError,
)
from chaptertutor.extractors import (
    ChapterAssembler,
    ChapterOutline,
    HeadingDetector,
    PageIndex,
    TocParser,
    TopicSegmenter,
    estimate_chapter_time,
    extract_chapter_content,
)
from chaptertutor.ingest import StructureResult, extract_structure, ingest_pdf, store_structure
from chaptertutor.models import (
    Chapter,
    ExtractedText,
    GradedAnswer,
    LearningPhase,
    LearningState,
    OCRPage,
    QuizAttempt,
    QuizQuestion,
    RetrievedPassage,
    StudentProgress,
    SubmittedAnswer,
    Topic,
)
from chaptertutor.readers import PDFReader, join_ocr_pages, needs_ocr, ocr_is_usable
from chaptertutor.storage import InMemoryStore, RecordStore, SQLStore
from chaptertutor.tutor import (
    Directive,
    DirectiveMode,
    GradeResult,
    QuizBank,
    QuizGrader,
    TutorSession,
    TutorStateMachine,
    build_directive,
    describe_chapters,
    format_passages,
    retrieve_context,
    has_completion_signal,
)

__version__ = "0.1.0"
__all__ = [
    # Main API
    "ingest_pdf",
    "extract_structure",
    "store_structure",
    "StructureResult",
    "TutorSession",
    # Configuration
    "TutorConfig",
    "TocConfig",
    "HeadingConfig",
    "TopicConfig",
    "QuizConfig",
    # Extraction
    "PDFReader",
    "PageIndex",
    "TocParser",
    "HeadingDetector",
    "ChapterAssembler",
    "ChapterOutline",
    "TopicSegmenter",
    "extract_chapter_content",
    "estimate_chapter_time",
    "needs_ocr",
    "join_ocr_pages",
    "ocr_is_usable",
    # Tutoring
    "TutorStateMachine",
    "QuizGrader",
    "GradeResult",
    "QuizBank",
    "Directive",
    "DirectiveMode",
    "build_directive",
    "has_completion_signal",
    "format_passages",
    "retrieve_context",
    "describe_chapters",
    # Models
    "Chapter",
    "Topic",
    "ExtractedText",
    "OCRPage",
    "RetrievedPassage",
    "LearningPhase",
    "LearningState",
    "StudentProgress",
    "QuizQuestion",
    "SubmittedAnswer",
    "GradedAnswer",
    "QuizAttempt",
    # Collaborators
    "Retriever",
    "QuizGenerator",
    "QuizRequest",
    "OCRService",
    # Storage
    "RecordStore",
    "InMemoryStore",
    "SQLStore",
    # Exceptions
    "ChapterTutorError",
    "ConfigurationError",
    "ExtractionError",
    "RecordNotFoundError",
    "StateNotFoundError",
    "DuplicateRecordError",
    "ConcurrentUpdateError",
    "PersistenceError",
    "InvalidQuizError",
]
