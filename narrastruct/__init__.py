"""
narrastruct: Confidence-scored document structure for narration.

This library turns extracted document text (Markdown, PDF text, EPUB text)
into a hierarchy of chapters, paragraphs and sentences, each carrying a
confidence score, so a narration pipeline knows what it can trust and what
a human should review.

Example:
    >>> import narrastruct
    >>> result = narrastruct.analyze_structure(text, "markdown")
    >>> result.confidence
    0.91
    >>> for chapter in result.document_structure.chapters:
    ...     print(chapter.title, chapter.confidence)

    >>> # Review and correct
    >>> fixed = narrastruct.apply_corrections(result.document_structure, corrections)
"""

from narrastruct.analyzer import (
    StructureAnalyzer,
    analyze_structure,
    apply_corrections,
    generate_confidence_report,
    generate_structure_tree,
    meets_quality_threshold,
    validate_structure,
)
from narrastruct.config import (
    AnalysisOptions,
    AnalyzerConfig,
    ReportConfig,
    ScoringConfig,
    SegmentationConfig,
    StreamingOptions,
    TreeConfig,
    ValidationConfig,
)
from narrastruct.corrections import (
    CorrectionEngine,
    CorrectionHistory,
    CorrectionOverlay,
    CorrectionProfileStore,
    CorrectionSession,
    SavedCorrections,
)
from narrastruct.detection import FormatHints, NavigationEntry
from narrastruct.exceptions import (
    AnalysisCancelledError,
    ConfigurationError,
    CorrectionError,
    NarraStructError,
    UnsupportedFormatError,
)
from narrastruct.models import (
    # Structure
    Chapter,
    # Reports
    ChapterConfidence,
    ConfidenceFactor,
    ConfidenceReport,
    # Enums
    CorrectionType,
    DocumentFormat,
    DocumentMetadata,
    DocumentStructure,
    # Tree
    DocumentTreeNode,
    # Analysis
    EdgeCase,
    FallbackStrategy,
    # Validation
    Location,
    NodeDisplay,
    NodeStatus,
    NodeType,
    Paragraph,
    ParagraphType,
    ProcessingMetrics,
    RiskLevel,
    Sentence,
    Severity,
    StructureAnalysisResult,
    # Corrections
    StructureCorrection,
    StructureCorrectionResult,
    StructureStatistics,
    ValidationError,
    ValidationResult,
    ValidationWarning,
)
from narrastruct.profiles import AnalysisProfile, get_profile
from narrastruct.streaming import CancellationToken
from narrastruct.validation import ValidationOptions, ValidationRule, Validator

__version__ = "0.1.0"
__all__ = [
    # Main API
    "StructureAnalyzer",
    "analyze_structure",
    "validate_structure",
    "apply_corrections",
    "generate_confidence_report",
    "generate_structure_tree",
    "meets_quality_threshold",
    # Configuration
    "AnalyzerConfig",
    "AnalysisOptions",
    "StreamingOptions",
    "SegmentationConfig",
    "ScoringConfig",
    "TreeConfig",
    "ValidationConfig",
    "ReportConfig",
    "AnalysisProfile",
    "get_profile",
    # Hints
    "FormatHints",
    "NavigationEntry",
    # Structure
    "DocumentStructure",
    "DocumentMetadata",
    "Chapter",
    "Paragraph",
    "Sentence",
    "ProcessingMetrics",
    # Enums
    "DocumentFormat",
    "ParagraphType",
    "Severity",
    "RiskLevel",
    "NodeType",
    "NodeStatus",
    "CorrectionType",
    # Tree
    "DocumentTreeNode",
    "NodeDisplay",
    # Validation
    "Validator",
    "ValidationOptions",
    "ValidationRule",
    "ValidationResult",
    "ValidationError",
    "ValidationWarning",
    "Location",
    # Corrections
    "StructureCorrection",
    "StructureCorrectionResult",
    "CorrectionEngine",
    "CorrectionSession",
    "CorrectionOverlay",
    "CorrectionHistory",
    "CorrectionProfileStore",
    "SavedCorrections",
    # Reports
    "ConfidenceReport",
    "ConfidenceFactor",
    "ChapterConfidence",
    "StructureStatistics",
    # Analysis
    "StructureAnalysisResult",
    "EdgeCase",
    "FallbackStrategy",
    "CancellationToken",
    # Exceptions
    "NarraStructError",
    "UnsupportedFormatError",
    "ConfigurationError",
    "CorrectionError",
    "AnalysisCancelledError",
]
