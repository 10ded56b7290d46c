"""
Data models for narrastruct.

These models represent the output of structure analysis: the scored
document hierarchy, its navigation tree, validation outcomes, corrections
and confidence reports.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from narrastruct.exceptions import UnsupportedFormatError

# =============================================================================
# ENUMS
# =============================================================================


class DocumentFormat(Enum):
    """Formats the analyzer dispatches on."""

    MARKDOWN = "markdown"
    PDF = "pdf"
    EPUB = "epub"

    @classmethod
    def parse(cls, value: DocumentFormat | str) -> DocumentFormat:
        """Resolve a format tag.

        Raises:
            UnsupportedFormatError: For anything outside the closed set.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower().lstrip(".")
            if key == "md":
                key = "markdown"
            for member in cls:
                if member.value == key:
                    return member
        supported = ", ".join(m.value for m in cls)
        raise UnsupportedFormatError(f"Format '{value}' is not supported. Supported: {supported}")


class ParagraphType(Enum):
    """Content type of a paragraph block."""

    TEXT = "text"
    CODE = "code"
    QUOTE = "quote"
    LIST = "list"
    TABLE = "table"
    HEADING = "heading"


class Severity(Enum):
    """Severity of a validation issue or edge case."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(Enum):
    """Coarse triage level for document-wide confidence."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NodeType(Enum):
    """Tree node types. Paragraph nodes are sections."""

    DOCUMENT = "document"
    CHAPTER = "chapter"
    SECTION = "section"
    SENTENCE = "sentence"


class CorrectionType(Enum):
    """Kinds of structure correction."""

    CHAPTER_SPLIT = "chapter_split"
    CHAPTER_MERGE = "chapter_merge"
    PARAGRAPH_ADJUST = "paragraph_adjust"
    CONFIDENCE_RECALIBRATE = "confidence_recalibrate"
    BOUNDARY_MOVE = "boundary_move"
    FIELD_EDIT = "field_edit"


class NodeStatus(Enum):
    """Review state of a node in a correction overlay."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"


# =============================================================================
# DOCUMENT STRUCTURE
# =============================================================================


@dataclass
class Sentence:
    """Smallest narration unit."""

    id: str
    text: str
    position: int  # 0-based within the paragraph
    word_count: int
    estimated_duration: float
    has_formatting: bool = False
    char_range: tuple[int, int] | None = None  # absolute offsets
    confidence: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "text": self.text,
            "position": self.position,
            "word_count": self.word_count,
            "estimated_duration": self.estimated_duration,
            "has_formatting": self.has_formatting,
            "char_range": list(self.char_range) if self.char_range else None,
            "confidence": self.confidence,
        }


@dataclass
class Paragraph:
    """A contiguous block of prose, code, list, table, quote or heading."""

    id: str
    type: ParagraphType
    sentences: list[Sentence]
    position: int
    word_count: int
    raw_text: str
    include_in_audio: bool = True
    confidence: float = 1.0
    start_position: int = 0
    end_position: int = 0
    detected_confidence: float | None = None  # kept when a user overrides

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "position": self.position,
            "word_count": self.word_count,
            "raw_text": self.raw_text,
            "include_in_audio": self.include_in_audio,
            "confidence": self.confidence,
            "start_position": self.start_position,
            "end_position": self.end_position,
            "detected_confidence": self.detected_confidence,
            "sentences": [s.to_dict() for s in self.sentences],
        }


@dataclass
class Chapter:
    """One top-level structural unit."""

    id: str
    title: str
    level: int
    paragraphs: list[Paragraph]
    position: int
    word_count: int
    start_position: int
    end_position: int
    confidence: float = 1.0
    raw_title: str = ""
    number: int | None = None  # from "Chapter 3", "3. Title", "CHAPTER III"
    estimated_duration: float = 0.0
    is_fallback: bool = False
    node_type: str = "chapter"  # "chapter" or "paragraph-group"
    detection_source: str = ""
    detection_confidence: float = 0.0  # raw score from the boundary source
    signals: dict[str, float] = field(default_factory=dict)
    is_manual_override: bool = False
    correction_applied: bool = False
    correction_source: str | None = None  # "user" or "saved-profile"
    detected_confidence: float | None = None  # kept when a user overrides

    @property
    def sentence_count(self) -> int:
        return sum(len(p.sentences) for p in self.paragraphs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "raw_title": self.raw_title,
            "number": self.number,
            "level": self.level,
            "position": self.position,
            "word_count": self.word_count,
            "start_position": self.start_position,
            "end_position": self.end_position,
            "confidence": self.confidence,
            "estimated_duration": self.estimated_duration,
            "is_fallback": self.is_fallback,
            "node_type": self.node_type,
            "detection_source": self.detection_source,
            "detection_confidence": self.detection_confidence,
            "signals": dict(self.signals),
            "is_manual_override": self.is_manual_override,
            "correction_applied": self.correction_applied,
            "correction_source": self.correction_source,
            "detected_confidence": self.detected_confidence,
            "paragraphs": [p.to_dict() for p in self.paragraphs],
        }


@dataclass
class DocumentMetadata:
    """Document metadata from front matter, hints or detected headings."""

    title: str | None = None
    author: str | None = None
    language: str = "en"
    format: str = ""
    source: str | None = None
    custom: dict[str, Any] = field(default_factory=dict)  # remaining front matter


@dataclass
class ProcessingMetrics:
    """Snapshot of a MetricsCollector at the end of one run."""

    started_at: datetime = field(default_factory=datetime.now)
    duration_ms: float = 0.0
    chunks_processed: int = 0
    characters_processed: int = 0
    counters: dict[str, int] = field(default_factory=dict)
    timings: dict[str, float] = field(default_factory=dict)  # milliseconds


@dataclass
class DocumentStructure:
    """
    A whole analyzed document.

    Created once per analysis call. Treat it as immutable: corrections
    produce a new value through CorrectionEngine.

    Use DocumentStructure.build() rather than the constructor so the
    totals are derived from the chapters.
    """

    metadata: DocumentMetadata
    chapters: list[Chapter]
    total_chapters: int
    total_paragraphs: int
    total_sentences: int
    total_word_count: int
    total_duration: float
    confidence: float
    processing_metrics: ProcessingMetrics = field(default_factory=ProcessingMetrics)
    processing_errors: list[str] = field(default_factory=list)
    processing_log: list[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        metadata: DocumentMetadata,
        chapters: list[Chapter],
        confidence: float = 0.0,
        processing_metrics: ProcessingMetrics | None = None,
        processing_errors: list[str] | None = None,
        processing_log: list[str] | None = None,
    ) -> DocumentStructure:
        """Create a structure with totals derived from its chapters."""
        structure = cls(
            metadata=metadata,
            chapters=chapters,
            total_chapters=0,
            total_paragraphs=0,
            total_sentences=0,
            total_word_count=0,
            total_duration=0.0,
            confidence=confidence,
            processing_metrics=processing_metrics or ProcessingMetrics(),
            processing_errors=processing_errors or [],
            processing_log=processing_log or [],
        )
        structure.refresh_totals()
        return structure

    @classmethod
    def error(
        cls,
        message: str,
        document_format: str = "",
        processing_metrics: ProcessingMetrics | None = None,
        processing_log: list[str] | None = None,
    ) -> DocumentStructure:
        """Zero-confidence structure for input that could not be analyzed."""
        return cls.build(
            metadata=DocumentMetadata(title="Error Document", format=document_format),
            chapters=[],
            confidence=0.0,
            processing_metrics=processing_metrics,
            processing_errors=[message],
            processing_log=processing_log,
        )

    def refresh_totals(self) -> None:
        """Recompute the derived totals from the chapter list."""
        self.total_chapters = len(self.chapters)
        self.total_paragraphs = sum(len(c.paragraphs) for c in self.chapters)
        self.total_sentences = sum(c.sentence_count for c in self.chapters)
        self.total_word_count = sum(c.word_count for c in self.chapters)
        self.total_duration = round(sum(c.estimated_duration for c in self.chapters), 3)

    def iter_paragraphs(self):
        """Yield (chapter_index, paragraph) pairs in document order."""
        for ci, chapter in enumerate(self.chapters):
            for paragraph in chapter.paragraphs:
                yield ci, paragraph

    def iter_sentences(self):
        """Yield every sentence in document order."""
        for chapter in self.chapters:
            for paragraph in chapter.paragraphs:
                yield from paragraph.sentences

    def find_chapter(self, chapter_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        metrics = asdict(self.processing_metrics)
        metrics["started_at"] = self.processing_metrics.started_at.isoformat()
        return {
            "metadata": asdict(self.metadata),
            "total_chapters": self.total_chapters,
            "total_paragraphs": self.total_paragraphs,
            "total_sentences": self.total_sentences,
            "total_word_count": self.total_word_count,
            "total_duration": self.total_duration,
            "confidence": self.confidence,
            "processing_metrics": metrics,
            "processing_errors": list(self.processing_errors),
            "chapters": [c.to_dict() for c in self.chapters],
        }


# =============================================================================
# VALIDATION
# =============================================================================


@dataclass(frozen=True)
class Location:
    """Where an issue or correction applies. Indices are 0-based."""

    chapter_index: int | None = None
    paragraph_index: int | None = None
    sentence_index: int | None = None

    def describe(self) -> str:
        parts = []
        if self.chapter_index is not None:
            parts.append(f"chapter {self.chapter_index}")
        if self.paragraph_index is not None:
            parts.append(f"paragraph {self.paragraph_index}")
        if self.sentence_index is not None:
            parts.append(f"sentence {self.sentence_index}")
        return ", ".join(parts) or "document"

    def to_dict(self) -> dict[str, int | None]:
        return {
            "chapter_index": self.chapter_index,
            "paragraph_index": self.paragraph_index,
            "sentence_index": self.sentence_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Location:
        data = data or {}
        return cls(
            chapter_index=data.get("chapter_index"),
            paragraph_index=data.get("paragraph_index"),
            sentence_index=data.get("sentence_index"),
        )


@dataclass
class ValidationIssue:
    """A problem found while validating a structure."""

    code: str  # "NO_CHAPTERS", "SHORT_CHAPTER", ...
    message: str
    severity: Severity
    location: Location = field(default_factory=Location)
    rule: str = ""  # name of the rule that raised it

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "rule": self.rule,
        }


@dataclass
class ValidationError(ValidationIssue):
    """An issue that makes the structure invalid."""


@dataclass
class ValidationWarning(ValidationIssue):
    """An issue worth reviewing that does not invalidate the structure."""


@dataclass
class ValidationResult:
    """Outcome of checking a structure."""

    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    score: float = 1.0
    meets_confidence_threshold: bool = True
    has_too_many_warnings: bool = False
    needs_manual_review: bool = False
    rule_scores: dict[str, float] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "score": self.score,
            "meets_confidence_threshold": self.meets_confidence_threshold,
            "has_too_many_warnings": self.has_too_many_warnings,
            "needs_manual_review": self.needs_manual_review,
            "rule_scores": dict(self.rule_scores),
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


# =============================================================================
# CORRECTIONS
# =============================================================================


@dataclass
class StructureCorrection:
    """
    One proposed or applied change to a structure.

    Operation arguments live in ``parameters``:

    - field_edit: {"field": "title", "value": "New Title"}
    - confidence_recalibrate: {"confidence": 0.9}
    - chapter_merge: {"title": "optional merged title"}
    - chapter_split: {"at_paragraph": 2, "title": "optional"}
    - paragraph_adjust: {"at_sentence": 1}
    - boundary_move: {"offset": 1}

    Targets are node ids in ``target_ids``; when empty, ``location`` is
    resolved against the structure instead.
    """

    type: CorrectionType
    location: Location = field(default_factory=Location)
    description: str = ""
    target_ids: list[str] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    confidence_delta: float = 0.0
    applied: bool = False
    error: str | None = None
    source: str = "user"  # "user" or "saved-profile"
    correction_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON/YAML serialization."""
        return {
            "type": self.type.value,
            "location": self.location.to_dict(),
            "description": self.description,
            "target_ids": list(self.target_ids),
            "parameters": dict(self.parameters),
            "confidence_delta": self.confidence_delta,
            "applied": self.applied,
            "error": self.error,
            "source": self.source,
            "correction_id": self.correction_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StructureCorrection:
        """Create from dictionary."""
        return cls(
            type=CorrectionType(data["type"]),
            location=Location.from_dict(data.get("location")),
            description=data.get("description", ""),
            target_ids=list(data.get("target_ids", [])),
            parameters=dict(data.get("parameters", {})),
            confidence_delta=data.get("confidence_delta", 0.0),
            applied=data.get("applied", False),
            error=data.get("error"),
            source=data.get("source", "user"),
            correction_id=data.get("correction_id", ""),
        )


@dataclass
class StructureCorrectionResult:
    """Result of applying a batch of corrections."""

    original_confidence: float
    corrected_confidence: float
    structure: DocumentStructure
    corrections: list[StructureCorrection]
    validation_passed: bool
    remaining_issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(1 for c in self.corrections if c.applied)

    @property
    def failed(self) -> list[StructureCorrection]:
        return [c for c in self.corrections if not c.applied]

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_confidence": self.original_confidence,
            "corrected_confidence": self.corrected_confidence,
            "applied_count": self.applied_count,
            "validation_passed": self.validation_passed,
            "corrections": [c.to_dict() for c in self.corrections],
            "remaining_issues": [issue.to_dict() for issue in self.remaining_issues],
        }


# =============================================================================
# CONFIDENCE REPORTS
# =============================================================================


@dataclass
class ConfidenceFactor:
    """One weighted signal contributing to a score."""

    name: str
    score: float
    weight: float
    description: str = ""


@dataclass
class ChapterConfidence:
    """Per-chapter confidence breakdown."""

    chapter_id: str
    title: str
    confidence: float
    level: str  # "high", "medium", "low"
    factors: list[ConfidenceFactor] = field(default_factory=list)
    is_fallback: bool = False


@dataclass
class StructureStatistics:
    """Summary numbers for a structure, used by reports and the CLI."""

    total_chapters: int
    total_paragraphs: int
    total_sentences: int
    total_words: int
    estimated_reading_minutes: float
    estimated_narration_seconds: float
    average_words_per_sentence: float
    complexity: str  # "simple", "moderate", "complex"
    structure_quality: str  # "good", "acceptable", "poor"


@dataclass
class ConfidenceReport:
    """Aggregated scoring summary for a structure."""

    overall: float
    chapters: list[ChapterConfidence]
    paragraph_distribution: dict[str, int]
    sentence_average: float
    structure_factors: list[ConfidenceFactor]
    risk_level: RiskLevel
    recommendations: list[str]
    statistics: StructureStatistics | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "risk_level": self.risk_level.value,
            "sentence_average": self.sentence_average,
            "paragraph_distribution": dict(self.paragraph_distribution),
            "structure_factors": [asdict(f) for f in self.structure_factors],
            "chapters": [asdict(c) for c in self.chapters],
            "recommendations": list(self.recommendations),
            "statistics": asdict(self.statistics) if self.statistics else None,
        }


# =============================================================================
# TREE
# =============================================================================


@dataclass
class NodeDisplay:
    """Display annotations for a tree node."""

    confidence: float
    icon: str
    expanded: bool = False
    has_issues: bool = False
    word_count: int | None = None
    is_fallback: bool = False
    is_placeholder: bool = False
    removed: bool = False
    is_manual_override: bool = False


@dataclass
class DocumentTreeNode:
    """
    Navigation node mirroring the structure.

    Parents are referenced by id only; resolve them through the flat node
    table of a DocumentTree.
    """

    id: str
    label: str
    type: NodeType
    level: int
    display: NodeDisplay
    parent_id: str | None = None
    children: list[DocumentTreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type.value,
            "level": self.level,
            "parent_id": self.parent_id,
            "display": asdict(self.display),
            "children": [child.to_dict() for child in self.children],
        }


# =============================================================================
# EDGE CASES
# =============================================================================


@dataclass
class EdgeCase:
    """A structural oddity worth surfacing to a reviewer."""

    type: str  # missing_header, irregular_paragraph, unusual_sentence_length, potential_structure_issue
    description: str
    location: Location
    severity: Severity
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "location": self.location.to_dict(),
            "severity": self.severity.value,
            "suggestion": self.suggestion,
        }


@dataclass
class FallbackStrategy:
    """How structure was inferred when detection came up short."""

    type: str  # default_structure, content_based, heuristic
    description: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# ANALYSIS RESULT
# =============================================================================


@dataclass
class StructureAnalysisResult:
    """Everything one analyze call produces."""

    document_structure: DocumentStructure
    confidence_report: ConfidenceReport | None = None
    validation: ValidationResult | None = None
    tree: DocumentTreeNode | None = None
    edge_cases: list[EdgeCase] = field(default_factory=list)
    fallback_strategy: FallbackStrategy | None = None
    meets_threshold: bool = False
    cancelled: bool = False
    correction_result: StructureCorrectionResult | None = None
    processing_log: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.document_structure.confidence

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "document_structure": self.document_structure.to_dict(),
            "confidence_report": self.confidence_report.to_dict() if self.confidence_report else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "tree": self.tree.to_dict() if self.tree else None,
            "edge_cases": [case.to_dict() for case in self.edge_cases],
            "fallback_strategy": self.fallback_strategy.to_dict() if self.fallback_strategy else None,
            "meets_threshold": self.meets_threshold,
            "cancelled": self.cancelled,
            "correction_result": self.correction_result.to_dict() if self.correction_result else None,
            "processing_log": list(self.processing_log),
        }
