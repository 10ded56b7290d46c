"""
Chapter assembly.

Turns paragraph blocks into Paragraph and Sentence values and keeps the
derived fields of a chapter consistent: positions, sentence ids, word
counts and durations. The analyzer uses it to build chapters from detected
boundaries; the correction engine uses it to re-derive chapters after a
structural edit.
"""

from __future__ import annotations

import logging

from narrastruct.config import SegmentationConfig
from narrastruct.detection.sources import ChapterBoundary
from narrastruct.models import Chapter, DocumentStructure, Paragraph, ParagraphType, Sentence
from narrastruct.segmentation.paragraphs import ParagraphBlock, narration_text
from narrastruct.segmentation.sentences import SentenceSegmenter

logger = logging.getLogger(__name__)

# Block types whose text is rewritten before segmentation; their sentences
# cannot be mapped back onto source offsets.
TRANSFORMED_TYPES = frozenset({ParagraphType.HEADING, ParagraphType.QUOTE})

# Block types narrated (or skipped) as one unit rather than sentence-split.
UNSPLIT_TYPES = frozenset({ParagraphType.CODE, ParagraphType.TABLE})


def sentence_id(paragraph_id: str, index: int) -> str:
    return f"{paragraph_id}-s-{index}"


def paragraph_id(chapter_id: str, index: int) -> str:
    return f"{chapter_id}-p-{index}"


class ChapterAssembler:
    """Build chapters, paragraphs and sentences from segmented blocks.

    Usage:
        assembler = ChapterAssembler()
        chapter = assembler.build_chapter(boundary, blocks, "chapter-1", 0)
    """

    def __init__(
        self,
        config: SegmentationConfig | None = None,
        sentence_segmenter: SentenceSegmenter | None = None,
    ):
        self.config = config or SegmentationConfig()
        self.sentences = sentence_segmenter or SentenceSegmenter(self.config)

    def duration_for(self, word_count: int) -> float:
        return round(word_count * self.config.seconds_per_word, 3)

    def build_sentences(
        self, block: ParagraphBlock, paragraph_id: str, language: str | None = None
    ) -> list[Sentence]:
        """Segment a block into sentences with ids ``{paragraph_id}-s-{j}``."""
        if block.type in UNSPLIT_TYPES:
            text = block.text.strip()
            if not text:
                return []
            words = len(text.split())
            return [
                Sentence(
                    id=sentence_id(paragraph_id, 0),
                    text=text,
                    position=0,
                    word_count=words,
                    estimated_duration=self.duration_for(words),
                    has_formatting=True,
                    char_range=(block.start, block.end),
                )
            ]

        text = narration_text(block)
        keep_offsets = block.type not in TRANSFORMED_TYPES
        result = []
        for index, span in enumerate(self.sentences.segment(text, language)):
            words = span.word_count
            result.append(
                Sentence(
                    id=sentence_id(paragraph_id, index),
                    text=span.text,
                    position=index,
                    word_count=words,
                    estimated_duration=self.duration_for(words),
                    has_formatting=SentenceSegmenter.has_formatting(span.text),
                    char_range=(block.start + span.start, block.start + span.end)
                    if keep_offsets
                    else None,
                )
            )
        return result

    def build_paragraph(
        self,
        block: ParagraphBlock,
        paragraph_id: str,
        position: int,
        language: str | None = None,
    ) -> Paragraph:
        sentences = self.build_sentences(block, paragraph_id, language)
        return Paragraph(
            id=paragraph_id,
            type=block.type,
            sentences=sentences,
            position=position,
            word_count=sum(s.word_count for s in sentences),
            raw_text=block.text,
            include_in_audio=block.include_in_audio,
            start_position=block.start,
            end_position=block.end,
        )

    def build_chapter(
        self,
        boundary: ChapterBoundary,
        blocks: list[ParagraphBlock],
        chapter_id: str,
        position: int,
        language: str | None = None,
    ) -> Chapter:
        """Assemble one chapter from its boundary and body blocks."""
        paragraphs = [
            self.build_paragraph(block, paragraph_id(chapter_id, i), i, language)
            for i, block in enumerate(blocks)
        ]
        end = boundary.end if boundary.end is not None else boundary.body_start
        if paragraphs:
            end = max(end, paragraphs[-1].end_position)
        chapter = Chapter(
            id=chapter_id,
            title=boundary.title,
            level=boundary.level,
            paragraphs=paragraphs,
            position=position,
            word_count=0,
            start_position=boundary.start,
            end_position=max(end, boundary.start + 1),
            raw_title=boundary.raw_title,
            number=boundary.number,
            is_fallback=boundary.is_fallback,
            node_type=boundary.node_type,
            detection_source=boundary.source,
            detection_confidence=boundary.confidence,
        )
        self.rederive_chapter(chapter)
        return chapter

    def rederive_chapter(self, chapter: Chapter) -> None:
        """Recompute positions, sentence ids, word counts and duration."""
        for i, paragraph in enumerate(chapter.paragraphs):
            paragraph.position = i
            for j, sentence in enumerate(paragraph.sentences):
                sentence.position = j
                sentence.id = sentence_id(paragraph.id, j)
            paragraph.word_count = sum(s.word_count for s in paragraph.sentences)
        chapter.word_count = sum(p.word_count for p in chapter.paragraphs)
        chapter.estimated_duration = round(
            sum(
                s.estimated_duration
                for p in chapter.paragraphs
                if p.include_in_audio
                for s in p.sentences
            ),
            3,
        )


def renumber_chapters(structure: DocumentStructure) -> None:
    """Reset chapter positions to their list order and refresh totals."""
    for index, chapter in enumerate(structure.chapters):
        chapter.position = index
    structure.refresh_totals()


def word_count_mismatches(structure: DocumentStructure) -> list[str]:
    """Paragraphs whose text word count differs from their sentences'.

    Code and table paragraphs are narrated as one unit and always match.
    """
    problems = []
    for _, paragraph in structure.iter_paragraphs():
        if paragraph.type in UNSPLIT_TYPES or paragraph.type in TRANSFORMED_TYPES:
            continue
        expected = len(paragraph.raw_text.split())
        if expected != paragraph.word_count:
            problems.append(
                f"Paragraph {paragraph.id}: {paragraph.word_count} words in sentences, "
                f"{expected} in text"
            )
    return problems
