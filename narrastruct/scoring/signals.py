"""
Confidence signals.

A signal is a plain function ``(unit, ScoringContext) -> float`` returning
an independent score in [0, 1]. Signals are registered per unit kind;
their weights live in ScoringConfig so they can be tuned per corpus, and
callers can add their own through ConfidenceScorer(extra_signals=...).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from statistics import mean
from typing import Any

from narrastruct.config import ScoringConfig
from narrastruct.models import Chapter, DocumentStructure, Paragraph, ParagraphType, Sentence

Signal = Callable[[Any, "ScoringContext"], float]

TERMINAL_MARKS = frozenset(".!?…。！？؟।։።")
TRAILING_CLOSERS = "\"')]}»”’*_"
UNTITLED_TITLES = frozenset({"", "untitled document", "untitled section", "error document"})


@dataclass
class ScoringContext:
    """What a signal may know beyond the unit itself."""

    config: ScoringConfig = field(default_factory=ScoringConfig)
    is_final: bool = False  # sentence is the last of its paragraph
    paragraph_type: ParagraphType = ParagraphType.TEXT
    dominant_source: str = ""  # most common detection source among chapters
    chapter_levels: tuple[int, ...] = (1,)
    previous_level: int | None = None  # level of the preceding chapter


# =============================================================================
# SENTENCE SIGNALS
# =============================================================================


def sentence_terminator(sentence: Sentence, ctx: ScoringContext) -> float:
    """Ends in a sentence terminator, or is a legitimate unterminated unit."""
    if ctx.paragraph_type in (ParagraphType.CODE, ParagraphType.TABLE):
        return 0.8
    text = sentence.text.rstrip().rstrip(TRAILING_CLOSERS)
    if text and text[-1] in TERMINAL_MARKS:
        return 1.0
    if ctx.paragraph_type in (ParagraphType.HEADING, ParagraphType.LIST):
        return 0.9
    return 0.6 if ctx.is_final else 0.3


def sentence_length(sentence: Sentence, ctx: ScoringContext) -> float:
    words = sentence.word_count
    if words == 0:
        return 0.0
    if words == 1:
        return 0.8 if ctx.paragraph_type is ParagraphType.HEADING else 0.5
    limit = ctx.config.long_sentence_words
    if words <= limit:
        return 1.0
    return max(0.4, limit / words)


def sentence_alphanumeric(sentence: Sentence, ctx: ScoringContext) -> float:
    return 1.0 if any(ch.isalnum() for ch in sentence.text) else 0.0


# =============================================================================
# PARAGRAPH SIGNALS
# =============================================================================

TYPE_CLARITY: dict[ParagraphType, float] = {
    ParagraphType.TEXT: 1.0,
    ParagraphType.HEADING: 0.9,
    ParagraphType.LIST: 0.9,
    ParagraphType.QUOTE: 0.9,
    ParagraphType.CODE: 0.85,
    ParagraphType.TABLE: 0.85,
}


def paragraph_type_clarity(paragraph: Paragraph, ctx: ScoringContext) -> float:
    return TYPE_CLARITY.get(paragraph.type, 0.5)


def paragraph_length(paragraph: Paragraph, ctx: ScoringContext) -> float:
    words = paragraph.word_count
    if words == 0:
        return 0.0
    if paragraph.type is ParagraphType.HEADING:
        return 1.0 if words <= 20 else 0.5
    if words < 3:
        return 0.4
    limit = ctx.config.long_paragraph_words
    if words <= limit:
        return 1.0
    return max(0.5, limit / words)


def paragraph_sentence_regularity(paragraph: Paragraph, ctx: ScoringContext) -> float:
    """Mean confidence of the paragraph's sentences."""
    if not paragraph.sentences:
        return 0.0
    return mean(s.confidence for s in paragraph.sentences)


# =============================================================================
# CHAPTER SIGNALS
# =============================================================================


def chapter_title_clarity(chapter: Chapter, ctx: ScoringContext) -> float:
    """Readable, capitalized, reasonably sized titles score high.

    A title with no letters or digits at all ("?", "***") scores 0.
    """
    title = chapter.title.strip()
    if not title or not any(ch.isalnum() for ch in title):
        return 0.0

    score = 0.4
    first_alpha = next((ch for ch in title if ch.isalpha()), "")
    if first_alpha.isupper() or (not first_alpha and chapter.number is not None):
        score += 0.2
    if ctx.config.min_title_length <= len(title) <= ctx.config.max_title_length:
        score += 0.2
    if len(title.split()) >= 2 or chapter.number is not None:
        score += 0.2
    return min(score, 1.0)


def chapter_detection_source(chapter: Chapter, ctx: ScoringContext) -> float:
    """Raw confidence of the boundary source that found the chapter."""
    return chapter.detection_confidence


def chapter_length(chapter: Chapter, ctx: ScoringContext) -> float:
    words = chapter.word_count
    if words == 0:
        return 0.0
    short = ctx.config.short_chapter_words
    long = ctx.config.long_chapter_words
    if words < short:
        return words / short
    if words <= long:
        return 1.0
    return max(0.5, long / words)


def chapter_formatting_regularity(chapter: Chapter, ctx: ScoringContext) -> float:
    """Share of paragraphs that scored as regular (>= 0.5)."""
    if not chapter.paragraphs:
        return 0.0
    regular = sum(1 for p in chapter.paragraphs if p.confidence >= 0.5)
    return regular / len(chapter.paragraphs)


def chapter_heading_consistency(chapter: Chapter, ctx: ScoringContext) -> float:
    """Found by the same source as most other chapters."""
    if chapter.is_fallback:
        return 0.0
    if not ctx.dominant_source or chapter.detection_source == ctx.dominant_source:
        return 1.0
    return 0.5


def chapter_hierarchy_consistency(chapter: Chapter, ctx: ScoringContext) -> float:
    """At an expected chapter level, without skipping levels."""
    score = 1.0 if chapter.level in ctx.chapter_levels else 0.5
    if ctx.previous_level is not None and chapter.level > ctx.previous_level + 1:
        score = min(score, 0.5)
    return score


# =============================================================================
# DOCUMENT SIGNALS
# =============================================================================


def document_chapter_structure(structure: DocumentStructure, ctx: ScoringContext) -> float:
    if not structure.chapters:
        return 0.0
    return mean(c.confidence for c in structure.chapters)


def document_paragraph_distribution(structure: DocumentStructure, ctx: ScoringContext) -> float:
    scores = [p.confidence for _, p in structure.iter_paragraphs()]
    return mean(scores) if scores else 0.0


def document_sentence_structure(structure: DocumentStructure, ctx: ScoringContext) -> float:
    scores = [s.confidence for s in structure.iter_sentences()]
    return mean(scores) if scores else 0.0


def document_content_quality(structure: DocumentStructure, ctx: ScoringContext) -> float:
    """Share of paragraphs that carry narratable words."""
    paragraphs = [p for _, p in structure.iter_paragraphs()]
    if not paragraphs:
        return 0.0
    narratable = sum(1 for p in paragraphs if p.include_in_audio and p.word_count > 0)
    return narratable / len(paragraphs)


def document_metadata_quality(structure: DocumentStructure, ctx: ScoringContext) -> float:
    metadata = structure.metadata
    score = 0.0
    if (metadata.title or "").strip().lower() not in UNTITLED_TITLES:
        score += 0.6
    if metadata.language:
        score += 0.2
    if metadata.author:
        score += 0.2
    return score


# =============================================================================
# REGISTRY
# =============================================================================

SENTENCE_SIGNALS: dict[str, Signal] = {
    "terminator": sentence_terminator,
    "length_plausibility": sentence_length,
    "alphanumeric": sentence_alphanumeric,
}

PARAGRAPH_SIGNALS: dict[str, Signal] = {
    "type_clarity": paragraph_type_clarity,
    "length_plausibility": paragraph_length,
    "sentence_regularity": paragraph_sentence_regularity,
}

CHAPTER_SIGNALS: dict[str, Signal] = {
    "title_clarity": chapter_title_clarity,
    "detection_source": chapter_detection_source,
    "length_plausibility": chapter_length,
    "formatting_regularity": chapter_formatting_regularity,
    "heading_consistency": chapter_heading_consistency,
    "hierarchy_consistency": chapter_hierarchy_consistency,
}

DOCUMENT_SIGNALS: dict[str, Signal] = {
    "chapter_structure": document_chapter_structure,
    "paragraph_distribution": document_paragraph_distribution,
    "sentence_structure": document_sentence_structure,
    "content_quality": document_content_quality,
    "metadata_quality": document_metadata_quality,
}

SIGNAL_REGISTRY: dict[str, dict[str, Signal]] = {
    "sentence": SENTENCE_SIGNALS,
    "paragraph": PARAGRAPH_SIGNALS,
    "chapter": CHAPTER_SIGNALS,
    "document": DOCUMENT_SIGNALS,
}
