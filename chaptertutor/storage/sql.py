"""
SQLAlchemy record store.

Tables mirror the domain records. Uniqueness is enforced by the
database: (document_id, chapter_number) on chapters,
(chapter_id, topic_number) on topics, session_key on learning states,
and (document_id, chapter_number, question_id) on quiz questions.
Learning state updates are a single conditional UPDATE on version.

Example:
    >>> store = SQLStore("sqlite:///tutor.db")
    >>> store = SQLStore("postgresql://user:pw@host/tutor")
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from chaptertutor.exceptions import (
    ConcurrentUpdateError,
    DuplicateRecordError,
    PersistenceError,
    StateNotFoundError,
)
from chaptertutor.models import (
    Chapter,
    GradedAnswer,
    LearningPhase,
    LearningState,
    QuizAttempt,
    QuizQuestion,
    StudentProgress,
    Topic,
    utcnow,
)
from chaptertutor.storage.base import RecordStore

logger = logging.getLogger(__name__)

Base = declarative_base()


# =============================================================================
# TABLES
# =============================================================================


class ChapterRecord(Base):
    __tablename__ = "chapters"
    __table_args__ = (UniqueConstraint("document_id", "chapter_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String, nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    start_offset = Column(Integer, nullable=False)
    end_offset = Column(Integer, nullable=False)
    start_page = Column(Integer, nullable=False)
    end_page = Column(Integer, nullable=False)
    content = Column(Text, default="")

    topics = relationship(
        "TopicRecord",
        back_populates="chapter",
        cascade="all, delete-orphan",
        order_by="TopicRecord.topic_number",
    )


class TopicRecord(Base):
    __tablename__ = "topics"
    __table_args__ = (UniqueConstraint("chapter_id", "topic_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    topic_number = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, default="")
    estimated_time_minutes = Column(Integer, nullable=False)

    chapter = relationship("ChapterRecord", back_populates="topics")


class LearningStateRecord(Base):
    __tablename__ = "learning_states"

    session_key = Column(String, primary_key=True)
    document_id = Column(String, nullable=False, index=True)
    current_chapter = Column(Integer, nullable=False, default=1)
    current_topic = Column(Integer, nullable=False, default=1)
    phase = Column(String, nullable=False, default=LearningPhase.INTRODUCTION.value)
    message_count = Column(Integer, nullable=False, default=0)
    chapters_completed = Column(JSON, nullable=False, default=list)
    quizzes_passed = Column(JSON, nullable=False, default=list)
    needs_review = Column(Boolean, nullable=False, default=False)
    review_topics = Column(JSON, nullable=False, default=list)
    last_interaction = Column(DateTime(timezone=True), nullable=False)
    last_attempt_id = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=0)


class StudentProgressRecord(Base):
    __tablename__ = "student_progress"

    document_id = Column(String, primary_key=True)
    current_chapter = Column(Integer, nullable=False, default=1)
    current_topic = Column(Integer, nullable=False, default=1)
    completed_topics = Column(JSON, nullable=False, default=list)
    last_interaction = Column(DateTime(timezone=True), nullable=False)


class QuizQuestionRecord(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (
        UniqueConstraint("document_id", "chapter_number", "question_id"),
        Index("ix_quiz_questions_chapter", "document_id", "chapter_number"),
    )

    seq = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(String, nullable=False)
    document_id = Column(String, nullable=False)
    chapter_number = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text, default="")
    difficulty = Column(String, default="medium")
    topic_covered = Column(String, default="General")


class QuizAttemptRecord(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (Index("ix_quiz_attempts_session", "session_key", "chapter_number"),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(String, nullable=False, unique=True)
    document_id = Column(String, nullable=False)
    chapter_number = Column(Integer, nullable=False)
    session_key = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    answers = Column(JSON, nullable=False)
    weak_topics = Column(JSON, nullable=False)
    passed = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


# =============================================================================
# CONVERSION
# =============================================================================


def _aware(value: datetime | None) -> datetime:
    """SQLite drops tzinfo; stored times are UTC."""
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_chapter(row: ChapterRecord) -> Chapter:
    return Chapter(
        chapter_number=row.chapter_number,
        title=row.title,
        start_offset=row.start_offset,
        end_offset=row.end_offset,
        start_page=row.start_page,
        end_page=row.end_page,
        content=row.content or "",
    )


def _to_topic(row: TopicRecord) -> Topic:
    return Topic(
        topic_number=row.topic_number,
        title=row.title,
        content=row.content or "",
        estimated_time_minutes=row.estimated_time_minutes,
    )


def _state_columns(state: LearningState) -> dict:
    return {
        "document_id": state.document_id,
        "current_chapter": state.current_chapter,
        "current_topic": state.current_topic,
        "phase": state.phase.value,
        "message_count": state.message_count,
        "chapters_completed": list(state.chapters_completed),
        "quizzes_passed": list(state.quizzes_passed),
        "needs_review": state.needs_review,
        "review_topics": list(state.review_topics),
        "last_interaction": state.last_interaction,
        "last_attempt_id": state.last_attempt_id,
    }


def _to_state(row: LearningStateRecord) -> LearningState:
    return LearningState(
        session_key=row.session_key,
        document_id=row.document_id,
        current_chapter=row.current_chapter,
        current_topic=row.current_topic,
        phase=LearningPhase(row.phase),
        message_count=row.message_count,
        chapters_completed=tuple(row.chapters_completed or ()),
        quizzes_passed=tuple(row.quizzes_passed or ()),
        needs_review=bool(row.needs_review),
        review_topics=tuple(row.review_topics or ()),
        last_interaction=_aware(row.last_interaction),
        last_attempt_id=row.last_attempt_id,
        version=row.version,
    )


def _to_progress(row: StudentProgressRecord) -> StudentProgress:
    return StudentProgress(
        document_id=row.document_id,
        current_chapter=row.current_chapter,
        current_topic=row.current_topic,
        completed_topics=tuple(row.completed_topics or ()),
        last_interaction=_aware(row.last_interaction),
    )


def _to_question(row: QuizQuestionRecord) -> QuizQuestion:
    return QuizQuestion(
        id=row.question_id,
        document_id=row.document_id,
        chapter_number=row.chapter_number,
        question=row.question,
        options=tuple(row.options),
        correct_answer=row.correct_answer,
        explanation=row.explanation or "",
        difficulty=row.difficulty or "medium",
        topic_covered=row.topic_covered or "General",
    )


def _to_attempt(row: QuizAttemptRecord) -> QuizAttempt:
    return QuizAttempt(
        id=row.attempt_id,
        document_id=row.document_id,
        chapter_number=row.chapter_number,
        session_key=row.session_key,
        score=row.score,
        total_questions=row.total_questions,
        answers=tuple(GradedAnswer.from_dict(a) for a in row.answers),
        weak_topics=tuple(row.weak_topics),
        passed=bool(row.passed),
        created_at=_aware(row.created_at),
    )


# =============================================================================
# STORE
# =============================================================================


class SQLStore(RecordStore):
    """RecordStore on any SQLAlchemy-supported database.

    Usage:
        store = SQLStore("sqlite:///:memory:")
        store.replace_chapters("doc-1", chapters, topics)
    """

    name = "sql"

    def __init__(
        self,
        url: str = "sqlite:///:memory:",
        *,
        engine: Engine | None = None,
        create_tables: bool = True,
        echo: bool = False,
    ):
        """Initialize the store.

        Args:
            url: Database URL (ignored when engine is given).
            engine: Pre-configured engine to use.
            create_tables: Create missing tables on startup.
            echo: Log emitted SQL.
        """
        try:
            self.engine = engine or self._create_engine(url, echo)
            self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
            if create_tables:
                Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to initialize database: {e}") from e

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url.startswith("sqlite") and ":memory:" in url:
            # All connections must share the same in-memory database
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        return create_engine(url, connect_args=connect_args, echo=echo, pool_pre_ping=True)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Transaction scope; driver errors become ChapterTutor errors."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateRecordError(f"Uniqueness constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def replace_chapters(
        self,
        document_id: str,
        chapters: Sequence[Chapter],
        topics: Mapping[int, Sequence[Topic]],
    ) -> None:
        with self._session() as session:
            old = session.query(ChapterRecord).filter(ChapterRecord.document_id == document_id).all()
            for row in old:
                session.delete(row)
            # Deletes must reach the database before the replacement rows
            session.flush()

            for chapter in chapters:
                row = ChapterRecord(
                    document_id=document_id,
                    chapter_number=chapter.chapter_number,
                    title=chapter.title,
                    start_offset=chapter.start_offset,
                    end_offset=chapter.end_offset,
                    start_page=chapter.start_page,
                    end_page=chapter.end_page,
                    content=chapter.content,
                )
                row.topics = [
                    TopicRecord(
                        topic_number=topic.topic_number,
                        title=topic.title,
                        content=topic.content,
                        estimated_time_minutes=topic.estimated_time_minutes,
                    )
                    for topic in topics.get(chapter.chapter_number, ())
                ]
                session.add(row)
        logger.debug(f"Stored {len(chapters)} chapters for {document_id}")

    def get_chapters(self, document_id: str) -> list[Chapter]:
        with self._session() as session:
            rows = (
                session.query(ChapterRecord)
                .filter(ChapterRecord.document_id == document_id)
                .order_by(ChapterRecord.chapter_number)
                .all()
            )
            return [_to_chapter(row) for row in rows]

    def get_chapter(self, document_id: str, chapter_number: int) -> Chapter | None:
        with self._session() as session:
            row = self._chapter_row(session, document_id, chapter_number)
            return _to_chapter(row) if row is not None else None

    def get_topics(self, document_id: str, chapter_number: int) -> list[Topic]:
        with self._session() as session:
            row = self._chapter_row(session, document_id, chapter_number)
            if row is None:
                return []
            return [_to_topic(t) for t in row.topics]

    @staticmethod
    def _chapter_row(session: Session, document_id: str, chapter_number: int) -> ChapterRecord | None:
        return (
            session.query(ChapterRecord)
            .filter(
                ChapterRecord.document_id == document_id,
                ChapterRecord.chapter_number == chapter_number,
            )
            .first()
        )

    # ------------------------------------------------------------------
    # Learning state
    # ------------------------------------------------------------------

    def get_learning_state(self, session_key: str) -> LearningState | None:
        with self._session() as session:
            row = session.get(LearningStateRecord, session_key)
            return _to_state(row) if row is not None else None

    def create_learning_state(self, state: LearningState) -> LearningState:
        with self._session() as session:
            if session.get(LearningStateRecord, state.session_key) is not None:
                raise DuplicateRecordError(
                    f"Learning state already exists for session {state.session_key!r}"
                )
            session.add(
                LearningStateRecord(
                    session_key=state.session_key,
                    version=state.version,
                    **_state_columns(state),
                )
            )
        return state

    def compare_and_update_state(
        self, state: LearningState, expected_version: int
    ) -> LearningState:
        with self._session() as session:
            updated = (
                session.query(LearningStateRecord)
                .filter(
                    LearningStateRecord.session_key == state.session_key,
                    LearningStateRecord.version == expected_version,
                )
                .update(
                    {**_state_columns(state), "version": expected_version + 1},
                    synchronize_session=False,
                )
            )
            if updated == 0:
                current = session.get(LearningStateRecord, state.session_key)
                if current is None:
                    raise StateNotFoundError(f"No learning state for session {state.session_key!r}")
                raise ConcurrentUpdateError(
                    f"Session {state.session_key!r} is at version {current.version}, "
                    f"expected {expected_version}"
                )
        return replace(state, version=expected_version + 1)

    # ------------------------------------------------------------------
    # Student progress
    # ------------------------------------------------------------------

    def get_progress(self, document_id: str) -> StudentProgress | None:
        with self._session() as session:
            row = session.get(StudentProgressRecord, document_id)
            return _to_progress(row) if row is not None else None

    def save_progress(self, progress: StudentProgress) -> StudentProgress:
        with self._session() as session:
            session.merge(
                StudentProgressRecord(
                    document_id=progress.document_id,
                    current_chapter=progress.current_chapter,
                    current_topic=progress.current_topic,
                    completed_topics=list(progress.completed_topics),
                    last_interaction=progress.last_interaction,
                )
            )
        return progress

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    def get_quiz_questions(self, document_id: str, chapter_number: int) -> list[QuizQuestion]:
        with self._session() as session:
            rows = (
                session.query(QuizQuestionRecord)
                .filter(
                    QuizQuestionRecord.document_id == document_id,
                    QuizQuestionRecord.chapter_number == chapter_number,
                )
                .order_by(QuizQuestionRecord.position)
                .all()
            )
            return [_to_question(row) for row in rows]

    def replace_quiz_questions(
        self,
        document_id: str,
        chapter_number: int,
        questions: Sequence[QuizQuestion],
    ) -> None:
        with self._session() as session:
            session.query(QuizQuestionRecord).filter(
                QuizQuestionRecord.document_id == document_id,
                QuizQuestionRecord.chapter_number == chapter_number,
            ).delete(synchronize_session=False)
            for position, q in enumerate(questions):
                session.add(
                    QuizQuestionRecord(
                        question_id=q.id,
                        document_id=document_id,
                        chapter_number=chapter_number,
                        position=position,
                        question=q.question,
                        options=list(q.options),
                        correct_answer=q.correct_answer,
                        explanation=q.explanation,
                        difficulty=q.difficulty,
                        topic_covered=q.topic_covered,
                    )
                )

    def add_quiz_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        attempt_id = attempt.id or uuid.uuid4().hex
        with self._session() as session:
            session.add(
                QuizAttemptRecord(
                    attempt_id=attempt_id,
                    document_id=attempt.document_id,
                    chapter_number=attempt.chapter_number,
                    session_key=attempt.session_key,
                    score=attempt.score,
                    total_questions=attempt.total_questions,
                    answers=[a.to_dict() for a in attempt.answers],
                    weak_topics=list(attempt.weak_topics),
                    passed=attempt.passed,
                    created_at=attempt.created_at,
                )
            )
        return replace(attempt, id=attempt_id)

    def list_quiz_attempts(
        self, session_key: str, chapter_number: int | None = None
    ) -> list[QuizAttempt]:
        with self._session() as session:
            query = session.query(QuizAttemptRecord).filter(
                QuizAttemptRecord.session_key == session_key
            )
            if chapter_number is not None:
                query = query.filter(QuizAttemptRecord.chapter_number == chapter_number)
            return [_to_attempt(row) for row in query.order_by(QuizAttemptRecord.seq).all()]
