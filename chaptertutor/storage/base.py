"""
Record store interface.

Chapters, topics, learning states, progress, quiz questions and
quiz attempts are read and written through a RecordStore. Stores
enforce uniqueness on (document_id, chapter_number),
(chapter, topic_number) and session_key, and offer an atomic
compare-and-update for learning states.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chaptertutor.models import (
        Chapter,
        LearningState,
        QuizAttempt,
        QuizQuestion,
        StudentProgress,
        Topic,
    )


class RecordStore(ABC):
    """Abstract base for persistence backends.

    Backend failures surface as PersistenceError; the store never
    retries on its own.
    """

    name: str = "base"

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @abstractmethod
    def replace_chapters(
        self,
        document_id: str,
        chapters: Sequence[Chapter],
        topics: Mapping[int, Sequence[Topic]],
    ) -> None:
        """Discard a document's chapters and topics and store new ones.

        topics is keyed by chapter_number. The replacement is atomic.
        """
        pass

    @abstractmethod
    def get_chapters(self, document_id: str) -> list[Chapter]:
        """Chapters of a document ordered by chapter_number."""
        pass

    @abstractmethod
    def get_chapter(self, document_id: str, chapter_number: int) -> Chapter | None:
        pass

    @abstractmethod
    def get_topics(self, document_id: str, chapter_number: int) -> list[Topic]:
        """Topics of a chapter ordered by topic_number (empty if none)."""
        pass

    # ------------------------------------------------------------------
    # Learning state
    # ------------------------------------------------------------------

    @abstractmethod
    def get_learning_state(self, session_key: str) -> LearningState | None:
        pass

    @abstractmethod
    def create_learning_state(self, state: LearningState) -> LearningState:
        """Insert a new state.

        Raises:
            DuplicateRecordError: If the session key already has a state.
        """
        pass

    @abstractmethod
    def compare_and_update_state(
        self, state: LearningState, expected_version: int
    ) -> LearningState:
        """Write state if the stored version still equals expected_version.

        Returns:
            The stored state, with version = expected_version + 1.

        Raises:
            StateNotFoundError: If the session key has no state.
            ConcurrentUpdateError: If the stored version differs.
        """
        pass

    # ------------------------------------------------------------------
    # Student progress
    # ------------------------------------------------------------------

    @abstractmethod
    def get_progress(self, document_id: str) -> StudentProgress | None:
        pass

    @abstractmethod
    def save_progress(self, progress: StudentProgress) -> StudentProgress:
        """Insert or overwrite the progress record of a document."""
        pass

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    @abstractmethod
    def get_quiz_questions(self, document_id: str, chapter_number: int) -> list[QuizQuestion]:
        pass

    @abstractmethod
    def replace_quiz_questions(
        self,
        document_id: str,
        chapter_number: int,
        questions: Sequence[QuizQuestion],
    ) -> None:
        """Discard a chapter's cached questions and store new ones.

        Question ids are unique within a chapter. Other chapters and
        documents may reuse them.

        Raises:
            DuplicateRecordError: If two questions share an id.
        """
        pass

    @abstractmethod
    def add_quiz_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        """Append an attempt. Returns it with its id assigned."""
        pass

    @abstractmethod
    def list_quiz_attempts(
        self, session_key: str, chapter_number: int | None = None
    ) -> list[QuizAttempt]:
        """Attempts of a session, oldest first."""
        pass
