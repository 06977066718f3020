"""In-process record store, used in tests and single-process deployments."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import replace

from chaptertutor.exceptions import (
    ConcurrentUpdateError,
    DuplicateRecordError,
    StateNotFoundError,
)
from chaptertutor.models import (
    Chapter,
    LearningState,
    QuizAttempt,
    QuizQuestion,
    StudentProgress,
    Topic,
)
from chaptertutor.storage.base import RecordStore

logger = logging.getLogger(__name__)


def _check_unique_numbers(numbers: list[int], what: str) -> None:
    if len(set(numbers)) != len(numbers):
        raise DuplicateRecordError(f"Duplicate {what} numbers: {numbers}")


class InMemoryStore(RecordStore):
    """RecordStore backed by dicts.

    Records are frozen dataclasses, so they are shared rather than
    copied. A single lock makes every method atomic.
    """

    name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._chapters: dict[str, dict[int, Chapter]] = {}
        self._topics: dict[tuple[str, int], list[Topic]] = {}
        self._states: dict[str, LearningState] = {}
        self._progress: dict[str, StudentProgress] = {}
        self._questions: dict[tuple[str, int], list[QuizQuestion]] = {}
        self._attempts: list[QuizAttempt] = []

    def replace_chapters(
        self,
        document_id: str,
        chapters: Sequence[Chapter],
        topics: Mapping[int, Sequence[Topic]],
    ) -> None:
        _check_unique_numbers([c.chapter_number for c in chapters], "chapter")
        for number, chapter_topics in topics.items():
            _check_unique_numbers([t.topic_number for t in chapter_topics], f"chapter {number} topic")

        with self._lock:
            for key in [k for k in self._topics if k[0] == document_id]:
                del self._topics[key]
            self._chapters[document_id] = {c.chapter_number: c for c in chapters}
            for chapter in chapters:
                chapter_topics = topics.get(chapter.chapter_number, ())
                self._topics[(document_id, chapter.chapter_number)] = sorted(
                    chapter_topics, key=lambda t: t.topic_number
                )
        logger.debug(f"Stored {len(chapters)} chapters for {document_id}")

    def get_chapters(self, document_id: str) -> list[Chapter]:
        with self._lock:
            chapters = self._chapters.get(document_id, {})
            return [chapters[n] for n in sorted(chapters)]

    def get_chapter(self, document_id: str, chapter_number: int) -> Chapter | None:
        with self._lock:
            return self._chapters.get(document_id, {}).get(chapter_number)

    def get_topics(self, document_id: str, chapter_number: int) -> list[Topic]:
        with self._lock:
            return list(self._topics.get((document_id, chapter_number), []))

    def get_learning_state(self, session_key: str) -> LearningState | None:
        with self._lock:
            return self._states.get(session_key)

    def create_learning_state(self, state: LearningState) -> LearningState:
        with self._lock:
            if state.session_key in self._states:
                raise DuplicateRecordError(
                    f"Learning state already exists for session {state.session_key!r}"
                )
            self._states[state.session_key] = state
            return state

    def compare_and_update_state(
        self, state: LearningState, expected_version: int
    ) -> LearningState:
        with self._lock:
            current = self._states.get(state.session_key)
            if current is None:
                raise StateNotFoundError(f"No learning state for session {state.session_key!r}")
            if current.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Session {state.session_key!r} is at version {current.version}, "
                    f"expected {expected_version}"
                )
            stored = replace(state, version=expected_version + 1)
            self._states[state.session_key] = stored
            return stored

    def get_progress(self, document_id: str) -> StudentProgress | None:
        with self._lock:
            return self._progress.get(document_id)

    def save_progress(self, progress: StudentProgress) -> StudentProgress:
        with self._lock:
            self._progress[progress.document_id] = progress
            return progress

    def get_quiz_questions(self, document_id: str, chapter_number: int) -> list[QuizQuestion]:
        with self._lock:
            return list(self._questions.get((document_id, chapter_number), []))

    def replace_quiz_questions(
        self,
        document_id: str,
        chapter_number: int,
        questions: Sequence[QuizQuestion],
    ) -> None:
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise DuplicateRecordError(f"Duplicate question ids for chapter {chapter_number}")
        with self._lock:
            self._questions[(document_id, chapter_number)] = list(questions)

    def add_quiz_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        with self._lock:
            stored = replace(attempt, id=attempt.id or uuid.uuid4().hex)
            self._attempts.append(stored)
            return stored

    def list_quiz_attempts(
        self, session_key: str, chapter_number: int | None = None
    ) -> list[QuizAttempt]:
        with self._lock:
            return [
                a
                for a in self._attempts
                if a.session_key == session_key
                and (chapter_number is None or a.chapter_number == chapter_number)
            ]
