"""
Tutoring state machine.

Pure transitions over an immutable LearningState:

    introduction -> learning -> quiz-ready -> (pass) introduction of next chapter
                                           -> (fail) review -> (pass) ...

Events are plain dataclasses. apply() never mutates its input and
never performs I/O; persistence and serialization per session are
handled by TutorSession.

Example:
    >>> machine = TutorStateMachine()
    >>> state = machine.bootstrap("session-1", "doc-1")
    >>> result = machine.apply(state, TutoringTurn())
    >>> result.state.phase
    <LearningPhase.LEARNING: 'learning'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Union

from chaptertutor.models import LearningPhase, LearningState, utcnow

if TYPE_CHECKING:
    from chaptertutor.models import QuizAttempt, StudentProgress

logger = logging.getLogger(__name__)


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class TutoringTurn:
    """The student sent a message and the tutor answered."""

    pass


@dataclass(frozen=True)
class TopicCompleted:
    """The current topic was mastered (completion token or explicit request).

    topic_number, when given, must equal the current topic; a stale
    completion for an earlier topic is ignored.
    """

    total_topics: int
    topic_number: int | None = None


@dataclass(frozen=True)
class SkipRequested:
    """The student asked to move on to the next chapter."""

    total_topics: int


@dataclass(frozen=True)
class QuizResult:
    """Outcome of a graded quiz attempt."""

    chapter_number: int
    passed: bool
    weak_topics: tuple[str, ...] = ()
    attempt_id: str | None = None

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt) -> QuizResult:
        return cls(
            chapter_number=attempt.chapter_number,
            passed=attempt.passed,
            weak_topics=tuple(attempt.weak_topics),
            attempt_id=attempt.id,
        )


TutorEvent = Union[TutoringTurn, TopicCompleted, SkipRequested, QuizResult]


@dataclass(frozen=True)
class Transition:
    """Result of applying an event.

    accepted is False when policy refused the event; reason then
    explains why, in words the prompt layer can relay.
    """

    state: LearningState
    accepted: bool = True
    reason: str = ""

    @property
    def refused(self) -> bool:
        return not self.accepted


# =============================================================================
# TRANSITIONS
# =============================================================================


def topics_remaining(state: LearningState, total_topics: int) -> int:
    """Topics after the current one in the current chapter."""
    if total_topics <= 0:
        return 0
    return max(0, total_topics - state.current_topic)


def _turn(state: LearningState, now: datetime) -> Transition:
    phase = state.phase
    if phase is LearningPhase.INTRODUCTION:
        phase = LearningPhase.LEARNING
    return Transition(
        replace(
            state,
            phase=phase,
            message_count=state.message_count + 1,
            last_interaction=now,
        )
    )


def _complete_topic(state: LearningState, event: TopicCompleted, now: datetime) -> Transition:
    if state.phase not in (LearningPhase.INTRODUCTION, LearningPhase.LEARNING):
        return Transition(
            state,
            accepted=False,
            reason=f"All topics of chapter {state.current_chapter} are already complete",
        )
    if event.topic_number is not None and event.topic_number != state.current_topic:
        return Transition(
            state,
            accepted=False,
            reason=f"Topic {event.topic_number} is not the current topic ({state.current_topic})",
        )

    if event.total_topics > 0 and state.current_topic >= event.total_topics:
        return Transition(
            replace(
                state,
                phase=LearningPhase.QUIZ_READY,
                message_count=0,
                last_interaction=now,
            )
        )

    return Transition(
        replace(
            state,
            phase=LearningPhase.LEARNING,
            current_topic=state.current_topic + 1,
            message_count=0,
            last_interaction=now,
        )
    )


def _skip(state: LearningState, event: SkipRequested) -> Transition:
    if state.phase is LearningPhase.REVIEW:
        return Transition(
            state,
            accepted=False,
            reason=f"Chapter {state.current_chapter} quiz must be passed before moving on; "
            "review the weak topics and retake it",
        )
    if state.phase is LearningPhase.QUIZ_READY:
        return Transition(
            state,
            accepted=False,
            reason=f"Chapter {state.current_chapter} is complete; "
            "pass its quiz to unlock the next chapter",
        )
    remaining = topics_remaining(state, event.total_topics)
    if remaining:
        return Transition(
            state,
            accepted=False,
            reason=f"{remaining} topic(s) of chapter {state.current_chapter} remain; "
            "finish them and pass the quiz first",
        )
    # Nothing to refuse, but skipping itself never changes state
    return Transition(state)


def _quiz_result(state: LearningState, event: QuizResult, now: datetime) -> Transition:
    if event.attempt_id is not None and event.attempt_id == state.last_attempt_id:
        return Transition(state, accepted=False, reason="Attempt already applied")
    if event.chapter_number != state.current_chapter:
        return Transition(
            state,
            accepted=False,
            reason=f"Quiz for chapter {event.chapter_number} does not match the current "
            f"chapter {state.current_chapter}",
        )
    if state.phase not in (LearningPhase.QUIZ_READY, LearningPhase.REVIEW):
        return Transition(
            state,
            accepted=False,
            reason=f"Chapter {state.current_chapter} still has topics to learn",
        )

    if event.passed:
        return Transition(
            replace(
                state,
                chapters_completed=(*state.chapters_completed, event.chapter_number),
                quizzes_passed=(*state.quizzes_passed, event.chapter_number),
                current_chapter=state.current_chapter + 1,
                current_topic=1,
                phase=LearningPhase.INTRODUCTION,
                needs_review=False,
                review_topics=(),
                message_count=0,
                last_interaction=now,
                last_attempt_id=event.attempt_id,
            )
        )

    return Transition(
        replace(
            state,
            phase=LearningPhase.REVIEW,
            needs_review=True,
            review_topics=tuple(event.weak_topics),
            last_interaction=now,
            last_attempt_id=event.attempt_id,
        )
    )


def transition(
    state: LearningState, event: TutorEvent, now: datetime | None = None
) -> Transition:
    """Apply one event to a state.

    Args:
        state: Current state (not modified).
        event: Event to apply.
        now: Interaction time stamp (default: current UTC time).

    Returns:
        Transition holding the new state, or the unchanged state
        with accepted=False when policy refuses the event.
    """
    now = now or utcnow()
    if isinstance(event, TutoringTurn):
        return _turn(state, now)
    if isinstance(event, TopicCompleted):
        return _complete_topic(state, event, now)
    if isinstance(event, SkipRequested):
        return _skip(state, event)
    if isinstance(event, QuizResult):
        return _quiz_result(state, event, now)
    raise TypeError(f"Unknown tutor event: {type(event).__name__}")


class TutorStateMachine:
    """Creates and advances learning states.

    Usage:
        machine = TutorStateMachine()
        state = machine.bootstrap(session_key, document_id, progress)
        result = machine.apply(state, TopicCompleted(total_topics=3))
    """

    def bootstrap(
        self,
        session_key: str,
        document_id: str,
        progress: StudentProgress | None = None,
    ) -> LearningState:
        """Initial state of a new session.

        With document progress from an earlier session, resume at its
        chapter and topic in the learning phase; otherwise start at
        chapter 1, topic 1 with an introduction.
        """
        if progress is not None:
            logger.info(
                f"Session {session_key}: resuming {document_id} at chapter "
                f"{progress.current_chapter}, topic {progress.current_topic}"
            )
            return LearningState(
                session_key=session_key,
                document_id=document_id,
                current_chapter=progress.current_chapter,
                current_topic=progress.current_topic,
                phase=LearningPhase.LEARNING,
            )
        return LearningState(session_key=session_key, document_id=document_id)

    def apply(
        self, state: LearningState, event: TutorEvent, now: datetime | None = None
    ) -> Transition:
        """Apply an event and log phase changes."""
        result = transition(state, event, now)
        if result.refused:
            logger.debug(f"Session {state.session_key}: {type(event).__name__} refused: {result.reason}")
        elif result.state.phase is not state.phase or (
            result.state.current_chapter != state.current_chapter
        ):
            logger.info(
                f"Session {state.session_key}: {state.phase.value} -> "
                f"{result.state.phase.value} (chapter {result.state.current_chapter}, "
                f"topic {result.state.current_topic})"
            )
        return result
