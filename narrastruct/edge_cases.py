"""
Edge-case detection.

Surfaces structural oddities a reviewer should look at. None of these are
validation failures; they are hints about where detection had to guess.
"""

from __future__ import annotations

import logging

from narrastruct.config import ScoringConfig
from narrastruct.detection.detector import DetectionResult
from narrastruct.models import (
    DocumentStructure,
    EdgeCase,
    FallbackStrategy,
    Location,
    Severity,
)

logger = logging.getLogger(__name__)

MISSING_HEADER = "missing_header"
IRREGULAR_PARAGRAPH = "irregular_paragraph"
UNUSUAL_SENTENCE_LENGTH = "unusual_sentence_length"
POTENTIAL_STRUCTURE_ISSUE = "potential_structure_issue"

HEURISTIC_SOURCES = frozenset({"chapter_line", "page_heading"})

# One chapter holding more than this share of all words is suspicious
DOMINANT_CHAPTER_SHARE = 0.5


def detect_edge_cases(
    structure: DocumentStructure,
    detection: DetectionResult | None = None,
    config: ScoringConfig | None = None,
) -> list[EdgeCase]:
    """List the edge cases in ``structure``, in document order per type."""
    config = config or ScoringConfig()
    cases: list[EdgeCase] = []

    for ci, chapter in enumerate(structure.chapters):
        if chapter.node_type == "paragraph-group":
            if chapter.detection_source == "preamble":
                description = "Text before the first heading was grouped as an introduction"
            else:
                description = "No chapter headings found; content grouped into one section"
            cases.append(
                EdgeCase(
                    type=MISSING_HEADER,
                    description=description,
                    location=Location(chapter_index=ci),
                    severity=Severity.MEDIUM,
                    suggestion="Add a heading or confirm the grouping during review",
                )
            )

    for ci, chapter in enumerate(structure.chapters):
        for pi, paragraph in enumerate(chapter.paragraphs):
            location = Location(chapter_index=ci, paragraph_index=pi)
            if paragraph.word_count == 0:
                cases.append(
                    EdgeCase(
                        type=IRREGULAR_PARAGRAPH,
                        description=f"Paragraph {paragraph.id} has no words",
                        location=location,
                        severity=Severity.LOW,
                        suggestion="Remove the empty block",
                    )
                )
            elif paragraph.word_count > config.long_paragraph_words:
                cases.append(
                    EdgeCase(
                        type=IRREGULAR_PARAGRAPH,
                        description=f"Paragraph {paragraph.id} has {paragraph.word_count} words",
                        location=location,
                        severity=Severity.LOW,
                        suggestion="Check for missing paragraph breaks",
                    )
                )
            if not paragraph.include_in_audio:
                cases.append(
                    EdgeCase(
                        type=IRREGULAR_PARAGRAPH,
                        description=f"{paragraph.type.value.capitalize()} block {paragraph.id} "
                        f"is excluded from narration",
                        location=location,
                        severity=Severity.LOW,
                        suggestion="Provide a spoken summary if the content matters",
                    )
                )

    for ci, chapter in enumerate(structure.chapters):
        for pi, paragraph in enumerate(chapter.paragraphs):
            if not paragraph.include_in_audio:
                continue
            for si, sentence in enumerate(paragraph.sentences):
                if sentence.word_count > config.long_sentence_words:
                    cases.append(
                        EdgeCase(
                            type=UNUSUAL_SENTENCE_LENGTH,
                            description=f"Sentence {sentence.id} has {sentence.word_count} words",
                            location=Location(ci, pi, si),
                            severity=Severity.LOW,
                            suggestion="Check for a missed sentence boundary",
                        )
                    )

    total_words = structure.total_word_count
    for ci, chapter in enumerate(structure.chapters):
        location = Location(chapter_index=ci)
        if chapter.signals.get("title_clarity", 1.0) < 0.5:
            cases.append(
                EdgeCase(
                    type=POTENTIAL_STRUCTURE_ISSUE,
                    description=f"Chapter title '{chapter.title}' carries little information",
                    location=location,
                    severity=Severity.MEDIUM,
                    suggestion="Rename the chapter or merge it with its neighbour",
                )
            )
        if chapter.word_count == 0:
            cases.append(
                EdgeCase(
                    type=POTENTIAL_STRUCTURE_ISSUE,
                    description=f"Chapter '{chapter.title}' has no content",
                    location=location,
                    severity=Severity.MEDIUM,
                    suggestion="Merge the heading into the following chapter",
                )
            )
        elif (
            len(structure.chapters) > 1
            and total_words
            and chapter.word_count / total_words > DOMINANT_CHAPTER_SHARE
        ):
            cases.append(
                EdgeCase(
                    type=POTENTIAL_STRUCTURE_ISSUE,
                    description=f"Chapter '{chapter.title}' holds "
                    f"{chapter.word_count / total_words:.0%} of the text",
                    location=location,
                    severity=Severity.LOW,
                    suggestion="Check for missed chapter headings",
                )
            )

    if cases:
        logger.debug("Found %d edge cases", len(cases))
    return cases


def describe_fallback(
    detection: DetectionResult | None, config: ScoringConfig | None = None
) -> FallbackStrategy | None:
    """How structure was inferred, or None when headings or hints were found."""
    config = config or ScoringConfig()
    if detection is None or detection.primary_source == "none":
        return FallbackStrategy(
            type="default_structure",
            description="No content to analyze; returned an empty structure",
            confidence=0.0,
        )
    if detection.is_fallback:
        return FallbackStrategy(
            type="content_based",
            description="No chapter boundaries found; paragraphs grouped into one section",
            confidence=config.fallback_confidence_ceiling,
        )
    if detection.primary_source in HEURISTIC_SOURCES:
        confidence = max((b.confidence for b in detection.boundaries if not b.is_fallback), default=0.0)
        return FallbackStrategy(
            type="heuristic",
            description=f"Chapters found from {detection.primary_source.replace('_', ' ')} patterns",
            confidence=confidence,
        )
    return None
