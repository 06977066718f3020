"""
Guidance for the prompt-construction layer.

The tutor's behaviour changes with the learning phase: the first turn
of a chapter is an orientation, teaching turns may signal topic
mastery, and review and quiz-ready turns must turn down requests to
move on. build_directive() condenses that policy into a Directive;
turning it into prompt text is left to the caller.

retrieve_context() asks the Retriever collaborator for passages and
renders them, with a chapter listing for questions about structure,
as one text block for the same caller.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from chaptertutor.collaborators import Retriever
from chaptertutor.models import Chapter, LearningPhase, LearningState, RetrievedPassage, Topic
from chaptertutor.tutor.state_machine import SkipRequested, topics_remaining, transition

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_TOKEN = "[TOPIC_COMPLETED]"

CHAPTER_QUERY = re.compile(r"chapter|topic|section|unit|module", re.IGNORECASE)
CHAPTER_NUMBER_QUERY = re.compile(r"chapter\s*(\d+)", re.IGNORECASE)


class DirectiveMode(Enum):
    """What the tutor should do on this turn."""

    BOOK_INTRODUCTION = "book_introduction"
    CHAPTER_INTRODUCTION = "chapter_introduction"
    RESUMING = "resuming"
    TEACHING = "teaching"
    REVIEW = "review"
    GATEKEEPER = "gatekeeper"
    FINISHED = "finished"


@dataclass(frozen=True)
class Directive:
    """Turn-level instructions derived from the learning state.

    allow_completion_token says whether the generator may emit the
    topic completion token on this turn. refuse_advancement says
    whether a request to move to the next chapter must be declined,
    with refusal_message as the explanation to give.
    """

    mode: DirectiveMode
    chapter_number: int
    topic_number: int
    topics_remaining: int
    allow_completion_token: bool
    refuse_advancement: bool
    refusal_message: str = ""
    review_topics: tuple[str, ...] = ()


def build_directive(
    state: LearningState,
    total_chapters: int,
    total_topics: int,
    session_start: bool = False,
) -> Directive:
    """Directive for the next tutoring turn.

    Args:
        state: State before the turn is applied.
        total_chapters: Chapters in the document.
        total_topics: Topics in the current chapter.
        session_start: First turn of a new client session.
    """
    remaining = topics_remaining(state, total_topics)
    skip = transition(state, SkipRequested(total_topics=total_topics), state.last_interaction)

    if state.is_finished(total_chapters):
        mode = DirectiveMode.FINISHED
    elif state.phase is LearningPhase.INTRODUCTION:
        if state.current_chapter == 1:
            mode = DirectiveMode.BOOK_INTRODUCTION
        else:
            mode = DirectiveMode.CHAPTER_INTRODUCTION
    elif state.phase is LearningPhase.LEARNING:
        mode = DirectiveMode.RESUMING if session_start else DirectiveMode.TEACHING
    elif state.phase is LearningPhase.REVIEW:
        mode = DirectiveMode.REVIEW
    else:
        mode = DirectiveMode.GATEKEEPER

    finished = mode is DirectiveMode.FINISHED
    return Directive(
        mode=mode,
        chapter_number=state.current_chapter,
        topic_number=state.current_topic,
        topics_remaining=remaining,
        allow_completion_token=mode is DirectiveMode.TEACHING,
        refuse_advancement=skip.refused and not finished,
        refusal_message="" if finished else skip.reason,
        review_topics=state.review_topics if mode is DirectiveMode.REVIEW else (),
    )


def has_completion_signal(text: str, token: str = DEFAULT_COMPLETION_TOKEN) -> bool:
    """Whether generated text marks the current topic as mastered."""
    return token in text


def strip_completion_signal(text: str, token: str = DEFAULT_COMPLETION_TOKEN) -> str:
    """Generated text with the completion token removed, for display."""
    return text.replace(token, "").strip()


def format_passages(passages: Sequence[RetrievedPassage]) -> str:
    """Render retrieval results with page citations.

    Each passage becomes "[Page N] text", or "[Page N] [OCR] text"
    for OCR-derived chunks. Empty passages are dropped.
    """
    blocks = []
    for passage in passages:
        if not passage.text.strip():
            continue
        page = f"[Page {passage.page_number}]" if passage.page_number else "[Page unknown]"
        tag = " [OCR]" if passage.source_tag == "OCR" else ""
        blocks.append(f"{page}{tag} {passage.text}")
    return "\n\n".join(blocks)


def describe_chapters(
    chapters: Sequence[Chapter],
    topics: Mapping[int, Sequence[Topic]],
    query: str,
) -> str:
    """Chapter listing for a student question about the book's structure.

    Returns an empty string unless the query mentions chapters,
    topics, sections, units or modules. "chapter N" describes that
    chapter and its topics; otherwise all chapters are listed.
    """
    if not chapters or not CHAPTER_QUERY.search(query):
        return ""

    number_match = CHAPTER_NUMBER_QUERY.search(query)
    if number_match:
        number = int(number_match.group(1))
        chapter = next((c for c in chapters if c.chapter_number == number), None)
        if chapter is None:
            return ""
        lines = [
            f"Chapter {chapter.chapter_number}: {chapter.title}",
            f"Pages: {chapter.start_page}-{chapter.end_page}",
        ]
        chapter_topics = topics.get(chapter.chapter_number, ())
        if chapter_topics:
            lines.append("")
            lines.append("Topics in this chapter:")
            for topic in chapter_topics:
                lines.append(
                    f"- Topic {topic.topic_number}: {topic.title} "
                    f"(Est. {topic.estimated_time_minutes} mins)"
                )
        return "\n".join(lines) + "\n"

    lines = ["Available Chapters:"]
    for chapter in chapters:
        lines.append(
            f"- Chapter {chapter.chapter_number}: {chapter.title} "
            f"(Pages {chapter.start_page}-{chapter.end_page})"
        )
    return "\n".join(lines) + "\n"


def retrieve_context(
    retriever: Retriever,
    query: str,
    document_id: str,
    chapters: Sequence[Chapter] = (),
    topics: Mapping[int, Sequence[Topic]] | None = None,
    top_k: int = 5,
) -> str:
    """Context block for a student question.

    Passages come from the retriever under the document's namespace.
    When the question is about the book's structure the chapter
    listing is placed in front of them.
    """
    blocks = []
    listing = describe_chapters(chapters, topics or {}, query)
    if listing:
        blocks.append(listing.rstrip("\n"))

    passages = retriever.search(query, document_id, top_k=top_k)
    logger.debug(f"{retriever.name} retriever returned {len(passages)} passages")
    rendered = format_passages(passages)
    if rendered:
        blocks.append(rendered)
    return "\n\n".join(blocks)
