"""
Interfaces of the services ChapterTutor depends on but does not implement.

- Retriever: semantic search over a document's indexed chunks
- QuizGenerator: produces multiple-choice questions for a chapter
- OCRService: per-page text for scanned PDFs

Implementations live in the surrounding application and bring their
own timeout and retry policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chaptertutor.models import OCRPage, RetrievedPassage


@dataclass(frozen=True)
class QuizRequest:
    """What the quiz generator is told about a chapter."""

    chapter_content: str
    chapter_title: str
    topics: tuple[str, ...] = field(default_factory=tuple)
    count: int = 10
    retry: bool = False  # Ask for different questions than last time


class Retriever(ABC):
    """Abstract base for passage retrieval."""

    name: str = "base"

    @abstractmethod
    def search(self, query: str, namespace: str, top_k: int = 5) -> list[RetrievedPassage]:
        """Return passages for query, best first.

        namespace is the document identifier the chunks were indexed under.
        """
        pass


class QuizGenerator(ABC):
    """Abstract base for quiz question generation."""

    name: str = "base"

    @abstractmethod
    def generate(self, request: QuizRequest) -> list[dict]:
        """Return request.count raw questions.

        Each dict carries "question", "options" (4 strings),
        "correctAnswer" and optionally "explanation", "difficulty"
        and "topicCovered".
        """
        pass


class OCRService(ABC):
    """Abstract base for OCR of a whole PDF."""

    name: str = "base"

    @abstractmethod
    def recognize(self, path: str | Path) -> list[OCRPage]:
        """Return one OCRPage per PDF page, flagged good or poor."""
        pass
