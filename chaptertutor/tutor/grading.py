"""
Quiz grading and the per-chapter question cache.

Grading compares the selected option text with the stored correct
answer by exact equality. Unknown question ids grade as incorrect,
and the pass mark is taken against every stored question.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from chaptertutor.collaborators import QuizGenerator, QuizRequest
from chaptertutor.config import QuizConfig
from chaptertutor.exceptions import InvalidQuizError, RecordNotFoundError
from chaptertutor.models import GradedAnswer, QuizQuestion, SubmittedAnswer
from chaptertutor.storage.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one submission."""

    score: int
    total_questions: int
    passed: bool
    weak_topics: tuple[str, ...]
    graded_answers: tuple[GradedAnswer, ...] = field(default_factory=tuple)


class QuizGrader:
    """Grade submitted answers against stored questions.

    Usage:
        grader = QuizGrader()
        result = grader.grade(questions, answers)
        if not result.passed:
            print("Review:", result.weak_topics)
    """

    def __init__(self, config: QuizConfig | None = None):
        self.config = config or QuizConfig()

    def grade(
        self,
        questions: Iterable[QuizQuestion],
        answers: Sequence[SubmittedAnswer],
    ) -> GradeResult:
        """Grade answers.

        Args:
            questions: Stored questions of the chapter.
            answers: Submitted answers in display order.

        Returns:
            GradeResult. total_questions is the length of the stored
            quiz: unanswered questions count as incorrect, and only the
            first answer to each question is graded.
        """
        questions = list(questions)
        by_id = {q.id: q for q in questions}
        graded = []
        seen: set[str] = set()
        for answer in answers:
            if answer.question_id in seen:
                logger.debug(f"Ignoring repeated answer to {answer.question_id!r}")
                continue
            seen.add(answer.question_id)
            question = by_id.get(answer.question_id)
            if question is None:
                logger.debug(f"Unknown question id {answer.question_id!r}, graded incorrect")
            graded.append(
                GradedAnswer(
                    question_id=answer.question_id,
                    selected_answer=answer.selected_answer,
                    correct_answer=question.correct_answer if question else None,
                    is_correct=question is not None
                    and answer.selected_answer == question.correct_answer,
                    topic_covered=question.topic_covered if question else None,
                )
            )

        correct_ids = {g.question_id for g in graded if g.is_correct}
        score = len(correct_ids)
        total = len(questions)
        passed = total > 0 and score >= self.config.required_score(total)
        if len(seen) < total:
            logger.debug(f"{total - len(seen)} of {total} questions unanswered")

        # Wrong answers in answer order, then unanswered questions
        missed = [g.topic_covered for g in graded if not g.is_correct]
        missed += [q.topic_covered for q in questions if q.id not in seen]
        weak_topics: list[str] = []
        for topic in missed:
            if topic and topic not in weak_topics:
                weak_topics.append(topic)

        return GradeResult(
            score=score,
            total_questions=total,
            passed=passed,
            weak_topics=tuple(weak_topics),
            graded_answers=tuple(graded),
        )


def question_from_dict(raw: dict, document_id: str, chapter_number: int) -> QuizQuestion:
    """Build a QuizQuestion from generator output.

    Raises:
        InvalidQuizError: If required fields are missing or the
            question violates the option/answer invariants.
    """
    try:
        question = raw["question"]
        options = tuple(raw["options"])
        correct = raw["correctAnswer"]
    except (KeyError, TypeError) as e:
        raise InvalidQuizError(f"Generated question is missing a field: {e}") from e

    return QuizQuestion(
        id=raw.get("id") or uuid.uuid4().hex,
        document_id=document_id,
        chapter_number=chapter_number,
        question=question,
        options=options,
        correct_answer=correct,
        explanation=raw.get("explanation") or "",
        difficulty=raw.get("difficulty") or "medium",
        topic_covered=raw.get("topicCovered") or "General",
    )


class QuizBank:
    """Cached quiz questions per chapter, generated on demand.

    Usage:
        bank = QuizBank(store, generator)
        questions = bank.get_chapter_quiz("doc-1", 3)
        questions = bank.get_chapter_quiz("doc-1", 3, retry=True)  # fresh set
    """

    def __init__(
        self,
        store: RecordStore,
        generator: QuizGenerator,
        config: QuizConfig | None = None,
    ):
        self.store = store
        self.generator = generator
        self.config = config or QuizConfig()

    def get_chapter_quiz(
        self, document_id: str, chapter_number: int, retry: bool = False
    ) -> list[QuizQuestion]:
        """Questions for a chapter.

        The cached set is returned when it is complete and retry is
        not set; otherwise a new set is generated and replaces it.

        Raises:
            RecordNotFoundError: If the chapter does not exist.
            InvalidQuizError: If the generator returns a malformed question.
        """
        count = self.config.question_count
        if not retry:
            cached = self.store.get_quiz_questions(document_id, chapter_number)
            if len(cached) >= count:
                logger.debug(f"Using {len(cached)} cached questions for chapter {chapter_number}")
                return cached[:count]

        chapter = self.store.get_chapter(document_id, chapter_number)
        if chapter is None:
            raise RecordNotFoundError(f"Chapter {chapter_number} not found in {document_id}")
        topics = self.store.get_topics(document_id, chapter_number)

        request = QuizRequest(
            chapter_content=chapter.content,
            chapter_title=chapter.title,
            topics=tuple(t.title for t in topics),
            count=count,
            retry=retry,
        )
        raw_questions = self.generator.generate(request)
        questions = [question_from_dict(raw, document_id, chapter_number) for raw in raw_questions]
        if not questions:
            raise InvalidQuizError(f"Generator returned no questions for chapter {chapter_number}")

        self.store.replace_quiz_questions(document_id, chapter_number, questions)
        logger.info(f"Generated {len(questions)} questions for chapter {chapter_number}")
        return questions
