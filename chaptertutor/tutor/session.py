"""
Tutoring session service.

Applies state machine events to persisted learning states. Every
mutation for a session key runs under that key's lock and is written
with compare-and-update, so duplicate client requests cannot
interleave increments or phase changes. On a version conflict the
event is re-applied to the fresh state, a bounded number of times.

Quiz attempts are recorded before the state transition. If the
transition is lost, reconcile() replays the latest attempt; the
state remembers which attempt it last applied, so replay is
idempotent.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from chaptertutor.collaborators import Retriever
from chaptertutor.config import TutorConfig
from chaptertutor.exceptions import (
    ConcurrentUpdateError,
    DuplicateRecordError,
    StateNotFoundError,
)
from chaptertutor.models import (
    LearningState,
    QuizAttempt,
    StudentProgress,
    SubmittedAnswer,
    utcnow,
)
from chaptertutor.storage.base import RecordStore
from chaptertutor.tutor.grading import GradeResult, QuizGrader
from chaptertutor.tutor.guidance import (
    Directive,
    build_directive,
    has_completion_signal,
    retrieve_context,
)
from chaptertutor.tutor.state_machine import (
    QuizResult,
    SkipRequested,
    TopicCompleted,
    Transition,
    TutorEvent,
    TutoringTurn,
    TutorStateMachine,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnPlan:
    """What the prompt layer needs for one tutoring turn."""

    directive: Directive  # Derived from the state before the turn
    state: LearningState  # State after the turn
    context: str = ""  # Retrieved passages for the student's question


@dataclass(frozen=True)
class QuizSubmission:
    """Result of submitting a quiz."""

    attempt: QuizAttempt
    grade: GradeResult
    transition: Transition


class TutorSession:
    """Persisted, serialized tutoring state per session key.

    Usage:
        session = TutorSession(store)
        plan = session.tutoring_turn("session-1", "doc-1")
        ...  # build prompt from plan.directive, call the generator
        session.handle_generated_text("session-1", "doc-1", reply)
        submission = session.submit_quiz("doc-1", "session-1", 1, answers)
    """

    def __init__(
        self,
        store: RecordStore,
        config: TutorConfig | None = None,
        *,
        machine: TutorStateMachine | None = None,
        grader: QuizGrader | None = None,
        retriever: Retriever | None = None,
    ):
        """Initialize the session service.

        Args:
            store: Record store holding chapters, topics and states.
            config: Tutor configuration.
            machine: State machine (default creates one).
            grader: Quiz grader (default uses config.quiz).
            retriever: Passage search for tutoring turns (optional).
        """
        self.store = store
        self.config = config or TutorConfig()
        self.machine = machine or TutorStateMachine()
        self.grader = grader or QuizGrader(self.config.quiz)
        self.retriever = retriever
        # Entries vanish once no caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self, session_key: str, document_id: str) -> LearningState:
        """Current state of a session, created on first access."""
        with self._lock_for(session_key):
            return self._load(session_key, document_id, create=True)

    def total_topics(self, document_id: str, chapter_number: int) -> int:
        return len(self.store.get_topics(document_id, chapter_number))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def tutoring_turn(
        self,
        session_key: str,
        document_id: str,
        session_start: bool = False,
        query: str | None = None,
    ) -> TurnPlan:
        """Record a tutoring turn.

        The directive reflects the phase the turn was taken in, so an
        introduction turn gets introduction guidance even though the
        state moves on to learning. With a retriever and a student
        query, the plan also carries the retrieved context.
        """
        chapters = self.store.get_chapters(document_id)
        total_chapters = len(chapters)
        directives: list[Directive] = []

        def event_for(state: LearningState) -> TutorEvent:
            total = self.total_topics(document_id, state.current_chapter)
            directives.append(build_directive(state, total_chapters, total, session_start))
            return TutoringTurn()

        result = self._mutate(session_key, document_id, event_for)

        context = ""
        if self.retriever is not None and query:
            topics = {
                c.chapter_number: self.store.get_topics(document_id, c.chapter_number)
                for c in chapters
            }
            context = retrieve_context(
                self.retriever,
                query,
                document_id,
                chapters=chapters,
                topics=topics,
                top_k=self.config.retrieval_top_k,
            )
        return TurnPlan(directive=directives[-1], state=result.state, context=context)

    def complete_topic(
        self, session_key: str, document_id: str, topic_number: int | None = None
    ) -> Transition:
        """Mark the current topic complete.

        Advances to the next topic, or to quiz-ready after the last
        one, and records the topic in the document's progress.
        """
        completed: list[tuple[int, int]] = []

        def event_for(state: LearningState) -> TutorEvent:
            completed[:] = [(state.current_chapter, state.current_topic)]
            return TopicCompleted(
                total_topics=self.total_topics(document_id, state.current_chapter),
                topic_number=topic_number,
            )

        result = self._mutate(session_key, document_id, event_for)
        if result.accepted:
            chapter, topic = completed[-1]
            self._sync_progress(
                document_id,
                result.state.current_chapter,
                result.state.current_topic,
                completed=f"{chapter}.{topic}",
            )
        return result

    def handle_generated_text(
        self, session_key: str, document_id: str, text: str
    ) -> Transition | None:
        """Complete the current topic if generated text carries the completion token."""
        if not has_completion_signal(text, self.config.completion_token):
            return None
        logger.info(f"Session {session_key}: completion token detected")
        return self.complete_topic(session_key, document_id)

    def request_skip(self, session_key: str, document_id: str) -> Transition:
        """Evaluate a request to jump ahead. Never changes state."""
        with self._lock_for(session_key):
            state = self._load(session_key, document_id, create=True)
            total = self.total_topics(document_id, state.current_chapter)
            return self.machine.apply(state, SkipRequested(total_topics=total))

    def submit_quiz(
        self,
        document_id: str,
        session_key: str,
        chapter_number: int,
        answers: Sequence[SubmittedAnswer],
    ) -> QuizSubmission:
        """Grade a quiz, record the attempt and apply its outcome.

        Raises:
            StateNotFoundError: If the session has no learning state.
        """
        if self.store.get_learning_state(session_key) is None:
            raise StateNotFoundError(f"No learning state for session {session_key!r}")

        questions = self.store.get_quiz_questions(document_id, chapter_number)
        grade = self.grader.grade(questions, answers)
        attempt = self.store.add_quiz_attempt(
            QuizAttempt(
                document_id=document_id,
                chapter_number=chapter_number,
                session_key=session_key,
                score=grade.score,
                total_questions=grade.total_questions,
                answers=grade.graded_answers,
                weak_topics=grade.weak_topics,
                passed=grade.passed,
            )
        )
        logger.info(
            f"Session {session_key}: chapter {chapter_number} quiz "
            f"{grade.score}/{grade.total_questions} ({'passed' if grade.passed else 'failed'})"
        )

        result = self._apply_attempt(session_key, document_id, attempt)
        return QuizSubmission(attempt=attempt, grade=grade, transition=result)

    def reconcile(self, session_key: str) -> Transition | None:
        """Replay the latest quiz attempt if the state does not reflect it.

        Returns:
            The replayed transition, or None when there was nothing to do.

        Raises:
            StateNotFoundError: If the session has no learning state.
        """
        state = self.store.get_learning_state(session_key)
        if state is None:
            raise StateNotFoundError(f"No learning state for session {session_key!r}")

        attempts = self.store.list_quiz_attempts(session_key, state.current_chapter)
        if not attempts or attempts[-1].id == state.last_attempt_id:
            return None

        latest = attempts[-1]
        logger.warning(f"Session {session_key}: replaying quiz attempt {latest.id}")
        return self._apply_attempt(session_key, state.document_id, latest)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_attempt(
        self, session_key: str, document_id: str, attempt: QuizAttempt
    ) -> Transition:
        result = self._mutate(
            session_key,
            document_id,
            lambda state: QuizResult.from_attempt(attempt),
            create=False,
        )
        if result.accepted and attempt.passed:
            self._sync_progress(document_id, result.state.current_chapter, 1)
        return result

    def _lock_for(self, session_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_key)
            if lock is None:
                lock = self._locks[session_key] = threading.Lock()
            return lock

    def _load(self, session_key: str, document_id: str, create: bool) -> LearningState:
        state = self.store.get_learning_state(session_key)
        if state is not None:
            return state
        if not create:
            raise StateNotFoundError(f"No learning state for session {session_key!r}")

        progress = self.store.get_progress(document_id)
        state = self.machine.bootstrap(session_key, document_id, progress)
        try:
            return self.store.create_learning_state(state)
        except DuplicateRecordError:
            # Created by another process between the read and the insert
            existing = self.store.get_learning_state(session_key)
            if existing is None:
                raise
            return existing

    def _mutate(
        self,
        session_key: str,
        document_id: str,
        event_for: Callable[[LearningState], TutorEvent],
        create: bool = True,
    ) -> Transition:
        """Apply an event with optimistic retries under the session lock."""
        with self._lock_for(session_key):
            for attempt in range(1, self.config.max_update_retries + 1):
                state = self._load(session_key, document_id, create)
                event = event_for(state)
                result = self.machine.apply(state, event)
                if result.refused:
                    return result
                try:
                    stored = self.store.compare_and_update_state(result.state, state.version)
                except ConcurrentUpdateError:
                    logger.warning(
                        f"Session {session_key}: version conflict on attempt {attempt} "
                        f"of {self.config.max_update_retries}"
                    )
                    continue
                return replace(result, state=stored)

        raise ConcurrentUpdateError(
            f"Session {session_key!r} kept changing; gave up after "
            f"{self.config.max_update_retries} attempts"
        )

    def _sync_progress(
        self,
        document_id: str,
        chapter: int,
        topic: int,
        completed: str | None = None,
    ) -> StudentProgress:
        """Move the document-level pointer that new sessions resume from."""
        progress = self.store.get_progress(document_id) or StudentProgress(document_id=document_id)
        completed_topics = progress.completed_topics
        if completed and completed not in completed_topics:
            completed_topics = (*completed_topics, completed)
        return self.store.save_progress(
            replace(
                progress,
                current_chapter=chapter,
                current_topic=topic,
                completed_topics=completed_topics,
                last_interaction=utcnow(),
            )
        )

