"""
Validation rules for analyzed structures.

Rules check a DocumentStructure for consistency and quality. Issues are
reported, never raised, and a rule never modifies the structure it checks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from narrastruct.config import ValidationConfig
from narrastruct.models import (
    DocumentStructure,
    Location,
    ParagraphType,
    Severity,
    ValidationError,
    ValidationWarning,
)

# Paragraph types whose sentences are real prose
PROSE_TYPES = frozenset({ParagraphType.TEXT, ParagraphType.QUOTE})


@dataclass
class RuleOutcome:
    """Issues found by one rule."""

    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)

    def error(self, code: str, message: str, severity: Severity, location: Location | None = None):
        self.errors.append(
            ValidationError(code=code, message=message, severity=severity, location=location or Location())
        )

    def warn(self, code: str, message: str, severity: Severity, location: Location | None = None):
        self.warnings.append(
            ValidationWarning(code=code, message=message, severity=severity, location=location or Location())
        )

    def score(self, config: ValidationConfig) -> float:
        """1 minus weighted issue counts, floored at 0."""
        penalty = len(self.errors) * config.error_weight + len(self.warnings) * config.warning_weight
        return max(0.0, 1.0 - penalty)


class ValidationRule(ABC):
    """Abstract base for validation rules."""

    name: str = "base"

    @abstractmethod
    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        """Check a structure for issues.

        Returns the issues found (empty if all good).
        """
        pass


class StructurePresenceRule(ValidationRule):
    """A document must have at least one chapter."""

    name = "structure_presence"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        if not structure.chapters:
            outcome.error("NO_CHAPTERS", "Document has no chapters", Severity.CRITICAL)
        return outcome


class ChapterTitleRule(ValidationRule):
    """Every chapter needs a readable title."""

    name = "chapter_title"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        for ci, chapter in enumerate(structure.chapters):
            title = chapter.title.strip()
            location = Location(chapter_index=ci)
            if not title:
                outcome.error(
                    "MISSING_TITLE", f"Chapter {ci + 1} has no title", Severity.CRITICAL, location
                )
            elif not any(ch.isalnum() for ch in title):
                outcome.warn(
                    "LOW_SIGNAL_TITLE",
                    f"Chapter {ci + 1} title '{title}' has no letters or digits",
                    Severity.MEDIUM,
                    location,
                )
        return outcome


class ChapterContentRule(ValidationRule):
    """Chapters should carry enough words to narrate.

    Very short chapters often mean a false-positive heading.
    """

    name = "chapter_content"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        for ci, chapter in enumerate(structure.chapters):
            location = Location(chapter_index=ci)
            if not chapter.paragraphs or chapter.word_count == 0:
                outcome.warn(
                    "EMPTY_CHAPTER",
                    f"Chapter '{chapter.title}' has no content",
                    Severity.MEDIUM,
                    location,
                )
            elif chapter.word_count < config.min_chapter_words:
                outcome.warn(
                    "SHORT_CHAPTER",
                    f"Chapter '{chapter.title}' has only {chapter.word_count} words",
                    Severity.LOW,
                    location,
                )
        return outcome


class ParagraphRule(ValidationRule):
    """Paragraphs should be non-empty and confidently segmented."""

    name = "paragraph"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        for ci, chapter in enumerate(structure.chapters):
            for pi, paragraph in enumerate(chapter.paragraphs):
                location = Location(chapter_index=ci, paragraph_index=pi)
                if paragraph.word_count == 0:
                    outcome.warn(
                        "EMPTY_PARAGRAPH", f"Paragraph {paragraph.id} is empty", Severity.LOW, location
                    )
                elif paragraph.confidence < config.paragraph_confidence_threshold:
                    outcome.warn(
                        "LOW_PARAGRAPH_CONFIDENCE",
                        f"Paragraph {paragraph.id} confidence {paragraph.confidence:.2f}",
                        Severity.MEDIUM,
                        location,
                    )
        return outcome


class SentenceLengthRule(ValidationRule):
    """Flag prose sentences that are suspiciously short or long."""

    name = "sentence_length"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        for ci, chapter in enumerate(structure.chapters):
            for pi, paragraph in enumerate(chapter.paragraphs):
                if paragraph.type not in PROSE_TYPES:
                    continue
                for si, sentence in enumerate(paragraph.sentences):
                    location = Location(chapter_index=ci, paragraph_index=pi, sentence_index=si)
                    if sentence.word_count < config.short_sentence_words:
                        outcome.warn(
                            "VERY_SHORT_SENTENCE",
                            f"Sentence {sentence.id} has {sentence.word_count} word(s)",
                            Severity.LOW,
                            location,
                        )
                    elif sentence.word_count > config.long_sentence_words:
                        outcome.warn(
                            "VERY_LONG_SENTENCE",
                            f"Sentence {sentence.id} has {sentence.word_count} words",
                            Severity.LOW,
                            location,
                        )
        return outcome


class ChapterConsistencyRule(ValidationRule):
    """Chapter lengths and confidences should be roughly even."""

    name = "chapter_consistency"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        lengths = [c.word_count for c in structure.chapters if c.word_count > 0]
        if len(lengths) >= 2 and max(lengths) / min(lengths) > config.chapter_length_ratio:
            outcome.warn(
                "INCONSISTENT_CHAPTER_LENGTHS",
                f"Chapter lengths range from {min(lengths)} to {max(lengths)} words",
                Severity.LOW,
            )
        for ci, chapter in enumerate(structure.chapters):
            if chapter.confidence < config.chapter_confidence_threshold:
                outcome.warn(
                    "LOW_CHAPTER_CONFIDENCE",
                    f"Chapter '{chapter.title}' confidence {chapter.confidence:.2f}",
                    Severity.MEDIUM,
                    Location(chapter_index=ci),
                )
        return outcome


class BoundaryIntegrityRule(ValidationRule):
    """Offsets, ordering, confidence ranges and totals must be consistent."""

    name = "boundary_integrity"

    def check(self, structure: DocumentStructure, config: ValidationConfig) -> RuleOutcome:
        outcome = RuleOutcome()
        previous = None
        for ci, chapter in enumerate(structure.chapters):
            location = Location(chapter_index=ci)
            if chapter.start_position >= chapter.end_position:
                outcome.error(
                    "INVALID_BOUNDARY",
                    f"Chapter '{chapter.title}' starts at {chapter.start_position} "
                    f"but ends at {chapter.end_position}",
                    Severity.HIGH,
                    location,
                )
            if previous is not None and (
                chapter.position <= previous.position
                or chapter.start_position < previous.start_position
            ):
                outcome.error(
                    "POSITION_ORDER",
                    f"Chapter '{chapter.title}' is out of order",
                    Severity.HIGH,
                    location,
                )
            previous = chapter

        units = [("document", structure.confidence, Location())]
        for ci, chapter in enumerate(structure.chapters):
            units.append((chapter.id, chapter.confidence, Location(chapter_index=ci)))
            for pi, paragraph in enumerate(chapter.paragraphs):
                units.append((paragraph.id, paragraph.confidence, Location(ci, pi)))
                for si, sentence in enumerate(paragraph.sentences):
                    units.append((sentence.id, sentence.confidence, Location(ci, pi, si)))
        for unit_id, confidence, location in units:
            if not 0.0 <= confidence <= 1.0:
                outcome.error(
                    "CONFIDENCE_RANGE",
                    f"{unit_id} confidence {confidence} is outside [0, 1]",
                    Severity.HIGH,
                    location,
                )

        if structure.total_chapters != len(structure.chapters) or structure.total_word_count != sum(
            c.word_count for c in structure.chapters
        ):
            outcome.error(
                "TOTALS_MISMATCH",
                "Document totals do not match its chapters",
                Severity.HIGH,
            )
        return outcome


BUILTIN_RULES: tuple[type[ValidationRule], ...] = (
    StructurePresenceRule,
    ChapterTitleRule,
    ChapterContentRule,
    ParagraphRule,
    SentenceLengthRule,
    ChapterConsistencyRule,
    BoundaryIntegrityRule,
)
