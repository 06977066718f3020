"""
Exception classes for ChapterTutor.

All ChapterTutor exceptions inherit from ChapterTutorError,
making it easy to catch all library errors.

Structural-detection misses are NOT errors: the extractors return
empty lists and the caller degrades to whole-document tutoring.

Example:
    >>> try:
    ...     session.submit_quiz("doc-1", "unknown-session", 1, answers)
    ... except chaptertutor.StateNotFoundError as e:
    ...     print(f"No session: {e}")
    ... except chaptertutor.ChapterTutorError as e:
    ...     print(f"ChapterTutor error: {e}")
"""


class ChapterTutorError(Exception):
    """
    Base exception for all ChapterTutor errors.

    Catch this to handle any ChapterTutor-specific error.
    """

    pass


class ConfigurationError(ChapterTutorError, ValueError):
    """
    Raised for invalid configuration.

    Example:
        >>> QuizConfig(pass_score=0)
        ConfigurationError: pass_score must be >= 1, got 0
    """

    pass


class ExtractionError(ChapterTutorError):
    """
    Raised when text extraction input cannot be read or decoded.

    A document without detectable chapters does not raise this;
    it yields an empty chapter list.
    """

    pass


class RecordNotFoundError(ChapterTutorError):
    """Raised when a required record does not exist in the store."""

    pass


class StateNotFoundError(RecordNotFoundError):
    """
    Raised when an operation needs an existing learning state.

    Tutoring turns create state lazily; quiz submission does not.
    """

    pass


class DuplicateRecordError(ChapterTutorError):
    """Raised when a create would violate a uniqueness constraint."""

    pass


class ConcurrentUpdateError(ChapterTutorError):
    """
    Raised when a learning state changed underneath an update.

    The store compares the expected version with the stored one;
    TutorSession retries a few times before letting this propagate.
    """

    pass


class PersistenceError(ChapterTutorError):
    """
    Raised when the record store cannot be reached or fails.

    The original driver exception is chained as __cause__.
    """

    pass


class InvalidQuizError(ChapterTutorError, ValueError):
    """
    Raised when a generated quiz question is malformed.

    Every question needs exactly four options and a correct
    answer equal to one of them.
    """

    pass
