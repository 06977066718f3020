"""
Tutoring module.

- TutorStateMachine: pure phase transitions per learning state
- QuizGrader / QuizBank: grading and cached chapter quizzes
- Guidance: phase directives and context rendering for prompts
- TutorSession: persisted, serialized application of events
"""

from chaptertutor.tutor.grading import GradeResult, QuizBank, QuizGrader, question_from_dict
from chaptertutor.tutor.guidance import (
    Directive,
    DirectiveMode,
    build_directive,
    describe_chapters,
    format_passages,
    retrieve_context,
    has_completion_signal,
    strip_completion_signal,
)
from chaptertutor.tutor.session import QuizSubmission, TurnPlan, TutorSession
from chaptertutor.tutor.state_machine import (
    QuizResult,
    SkipRequested,
    TopicCompleted,
    Transition,
    TutorEvent,
    TutoringTurn,
    TutorStateMachine,
    topics_remaining,
    transition,
)

__all__ = [
    # State machine
    "TutorStateMachine",
    "Transition",
    "TutorEvent",
    "TutoringTurn",
    "TopicCompleted",
    "SkipRequested",
    "QuizResult",
    "transition",
    "topics_remaining",
    # Grading
    "QuizGrader",
    "GradeResult",
    "QuizBank",
    "question_from_dict",
    # Guidance
    "Directive",
    "DirectiveMode",
    "build_directive",
    "has_completion_signal",
    "strip_completion_signal",
    "format_passages",
    "retrieve_context",
    "describe_chapters",
    # Session
    "TutorSession",
    "TurnPlan",
    "QuizSubmission",
]
