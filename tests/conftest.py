"""
Pytest configuration and fixtures for ChapterTutor tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chaptertutor.models import Chapter, QuizQuestion, Topic

FILLER = "Air moves over the wing and produces lift at every speed.\n"


def pad_to(text: str, length: int) -> str:
    """Extend text with filler lines to exactly length characters."""
    while len(text) < length:
        text += FILLER
    return text[:length]


def make_questions(
    document_id: str = "doc-1",
    chapter_number: int = 1,
    count: int = 10,
    topics: tuple[str, ...] = ("Lift", "Drag"),
) -> list[QuizQuestion]:
    """Questions whose correct answer is always the first option."""
    return [
        QuizQuestion(
            id=f"q{i}",
            document_id=document_id,
            chapter_number=chapter_number,
            question=f"Question {i}?",
            options=(f"right {i}", f"wrong {i}a", f"wrong {i}b", f"wrong {i}c"),
            correct_answer=f"right {i}",
            topic_covered=topics[i % len(topics)],
        )
        for i in range(count)
    ]


@pytest.fixture
def toc_text() -> str:
    """Three-entry dot-leader ToC."""
    return (
        "Table of Contents\n"
        "1. Introduction ..... 1\n"
        "2. Basic Aerodynamics ..... 15\n"
        "3. Navigation ..... 40\n"
    )


@pytest.fixture
def heading_text() -> str:
    """12000-character document with chapter headings at 0 and 5000."""
    first = pad_to("Chapter 1: Flight Basics\n", 4999) + "\n"
    second = pad_to("Chapter 2: Weather\n", 7000)
    return first + second


@pytest.fixture
def paged_book() -> tuple[str, int]:
    """Form-feed separated book with a ToC on page 1.

    Returns (text, total_pages).
    """
    pages = [
        "Table of Contents\n"
        "1. Introduction ..... 2\n"
        "2. Basic Aerodynamics ..... 4\n"
        "3. Navigation ..... 6\n",
        "Introduction\n\n1.1 Why Fly\n" + FILLER * 3,
        FILLER * 4,
        "Basic Aerodynamics\n\n2.1 Lift\n" + FILLER * 3 + "\n2.2 Drag\n" + FILLER * 2,
        FILLER * 4,
        "Navigation\n" + FILLER * 5,
    ]
    return "\f".join(pages), len(pages)


@pytest.fixture
def chapters() -> list[Chapter]:
    """Two contiguous chapters over a 2000-character text."""
    return [
        Chapter(1, "Flight Basics", 0, 999, 1, 5, content="Lift and drag."),
        Chapter(2, "Weather", 1000, 2000, 6, 10, content="Clouds and fronts."),
    ]


@pytest.fixture
def topics() -> dict[int, list[Topic]]:
    """Three topics in chapter 1, two in chapter 2."""
    return {
        1: [
            Topic(1, "Lift", "Lift text", 1),
            Topic(2, "Drag", "Drag text", 2),
            Topic(3, "Thrust", "Thrust text", 1),
        ],
        2: [
            Topic(1, "Clouds", "Cloud text", 3),
            Topic(2, "Fronts", "Front text", 2),
        ],
    }


@pytest.fixture
def make_pdf(tmp_path):
    """Factory writing a PDF with one page per string."""
    import fitz

    def _make(pages: list[str], name: str = "book.pdf") -> Path:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text, fontsize=10)
        path = tmp_path / name
        doc.save(path)
        doc.close()
        return path

    return _make
