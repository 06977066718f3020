"""
Document ingestion orchestrator.

Wires together:
- PDFReader (text extraction) and, for scanned PDFs, the OCR collaborator
- PageIndex (offset/page mapping)
- ChapterAssembler (ToC cascade with heading fallback)
- TopicSegmenter (per chapter)
- Validators (reported, never fatal)

A document without detectable chapters yields an empty chapter list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from chaptertutor.config import TutorConfig
from chaptertutor.extractors.assembler import ChapterAssembler
from chaptertutor.extractors.page_index import PageIndex
from chaptertutor.extractors.topics import TopicSegmenter
from chaptertutor.extractors.validators import ValidationIssue, default_validators
from chaptertutor.models import Chapter, ExtractedText, Topic
from chaptertutor.readers.pdf_reader import (
    PDFReader,
    join_ocr_pages,
    needs_ocr,
    ocr_is_usable,
)

if TYPE_CHECKING:
    from chaptertutor.collaborators import OCRService
    from chaptertutor.storage.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class StructureResult:
    """Chapters and topics of one document."""

    chapters: list[Chapter]
    topics: dict[int, list[Topic]]  # Keyed by chapter_number
    source: str  # "toc_parser", "heading_detection" or "none"
    validation_issues: list[ValidationIssue] = field(default_factory=list)
    processing_log: list[str] = field(default_factory=list)
    used_ocr: bool = False

    @property
    def has_chapters(self) -> bool:
        return bool(self.chapters)


def extract_structure(
    extracted: ExtractedText,
    config: TutorConfig | None = None,
) -> StructureResult:
    """Derive chapters and topics from extracted text.

    Args:
        extracted: Text and page information from the reader or OCR.
        config: Tutor configuration (uses defaults if None).

    Returns:
        StructureResult; chapters is empty when nothing was detected.

    Example:
        >>> result = extract_structure(ExtractedText(text, total_pages=60))
        >>> for chapter in result.chapters:
        ...     print(chapter.title, len(result.topics[chapter.chapter_number]))
    """
    config = config or TutorConfig()
    text = extracted.text

    index = PageIndex.build(text, page_break_offsets=extracted.page_break_offsets)
    total_pages = extracted.total_pages or index.page_count

    assembly = ChapterAssembler(config).extract(text, total_pages, index)
    log = list(assembly.processing_log)

    segmenter = TopicSegmenter(config.topics)
    topics = {
        chapter.chapter_number: segmenter.segment(chapter.content)
        for chapter in assembly.chapters
    }
    if assembly.chapters:
        topic_count = sum(len(t) for t in topics.values())
        log.append(f"Segmented {len(assembly.chapters)} chapters into {topic_count} topics")

    issues: list[ValidationIssue] = []
    for validator in default_validators():
        found = validator.check(assembly.chapters, len(text))
        for issue in found:
            level = logging.WARNING if issue.severity == "warning" else logging.INFO
            logger.log(level, f"[{validator.name}] {issue.message}")
        issues.extend(found)

    return StructureResult(
        chapters=assembly.chapters,
        topics=topics,
        source=assembly.source,
        validation_issues=issues,
        processing_log=log,
        used_ocr=extracted.used_ocr,
    )


def ingest_pdf(
    path: str | Path,
    config: TutorConfig | None = None,
    ocr: OCRService | None = None,
    reader: PDFReader | None = None,
) -> StructureResult:
    """Read a PDF and derive its structure.

    When the text layer is too sparse and an OCR service is given,
    the structure is derived from OCR text instead.

    Raises:
        FileNotFoundError: If path doesn't exist.
        ExtractionError: If the PDF can't be read.
    """
    path = Path(path)
    config = config or TutorConfig()
    reader = reader or PDFReader()

    extracted = reader.read(path)
    log = []

    if needs_ocr(extracted.text, extracted.total_pages, config.ocr_min_chars_per_page):
        if ocr is None:
            log.append("Text layer is sparse but no OCR service is configured")
            logger.warning(f"{path.name}: {log[-1]}")
        else:
            pages = ocr.recognize(path)
            if ocr_is_usable(pages):
                log.append(f"Using OCR text for {len(pages)} pages")
                logger.info(f"{path.name}: {log[-1]}")
                extracted = ExtractedText(
                    text=join_ocr_pages(pages),
                    total_pages=max(extracted.total_pages, len(pages)),
                    used_ocr=True,
                )
            else:
                log.append("OCR produced no usable pages, keeping text layer")
                logger.warning(f"{path.name}: {log[-1]}")

    result = extract_structure(extracted, config)
    result.processing_log[:0] = log
    return result


def store_structure(store: RecordStore, document_id: str, result: StructureResult) -> None:
    """Replace a document's chapters and topics with a new derivation."""
    store.replace_chapters(document_id, result.chapters, result.topics)
    logger.info(
        f"Stored {len(result.chapters)} chapters for {document_id} (source: {result.source})"
    )
