"""
Configuration for narrastruct structure analysis.

Every option has a sensible default; create a config only when you need to
tune behaviour for a document corpus. Each dataclass validates itself in
__post_init__ and raises ValueError on bad values.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from narrastruct.detection.sources import FormatHints


# =============================================================================
# DEFAULTS
# =============================================================================

# Tokens that end in a period without ending a sentence. Matched
# case-insensitively against the token right before the terminator. Only
# words that are practically never sentence-final belong here.
DEFAULT_ABBREVIATIONS: frozenset[str] = frozenset(
    {
        # Titles before a name
        "mr.", "mrs.", "ms.", "dr.", "prof.", "st.", "rev.", "gen.", "col.",
        "capt.", "lt.", "sgt.", "gov.", "sen.", "rep.", "ave.", "rd.", "blvd.",
        # Latin and reference
        "e.g.", "i.e.", "vs.", "cf.", "et.",
    }
)

# Abbreviations that are also ordinary words or often end a sentence
# ("He sat.", "Smith et al."). They count as abbreviations only when the
# next token starts with a digit or a lowercase letter: "No. 5", "3 in. wide".
DEFAULT_CONTEXT_ABBREVIATIONS: frozenset[str] = frozenset(
    {
        "sr.", "jr.",
        # Months and days
        "jan.", "feb.", "mar.", "apr.", "jun.", "jul.", "aug.", "sep.",
        "sept.", "oct.", "nov.", "dec.", "mon.", "tue.", "wed.", "thu.",
        "fri.", "sat.", "sun.",
        # Units and measures
        "ft.", "in.", "lb.", "lbs.", "oz.", "mi.", "km.", "kg.", "mg.",
        "hr.", "hrs.", "min.", "sec.", "approx.", "no.", "vol.", "pp.",
        # Reference and organisations
        "etc.", "al.", "ca.", "fig.", "ch.", "ed.", "eds.", "inc.", "ltd.",
        "co.", "corp.", "dept.", "univ.",
    }
)

# Extra sentence terminators by language. Latin-script languages only use
# the base set (. ! ?).
DEFAULT_LOCALE_TERMINATORS: dict[str, str] = {
    "zh": "。！？",
    "ja": "。！？",
    "ar": "؟",
    "fa": "؟",
    "ur": "؟",
    "hi": "।",
    "hy": "։",
    "am": "።",
}

DEFAULT_SENTENCE_WEIGHTS: dict[str, float] = {
    "terminator": 0.4,
    "length_plausibility": 0.4,
    "alphanumeric": 0.2,
}

DEFAULT_PARAGRAPH_WEIGHTS: dict[str, float] = {
    "type_clarity": 0.3,
    "length_plausibility": 0.3,
    "sentence_regularity": 0.4,
}

DEFAULT_CHAPTER_WEIGHTS: dict[str, float] = {
    "title_clarity": 0.35,
    "detection_source": 0.2,
    "length_plausibility": 0.15,
    "formatting_regularity": 0.1,
    "heading_consistency": 0.1,
    "hierarchy_consistency": 0.1,
}

DEFAULT_DOCUMENT_WEIGHTS: dict[str, float] = {
    "chapter_structure": 0.4,
    "paragraph_distribution": 0.2,
    "sentence_structure": 0.15,
    "content_quality": 0.15,
    "metadata_quality": 0.1,
}

# A signal listed here limits the combined score to cap + signal score, so a
# title with nothing readable in it can never produce a trusted chapter.
DEFAULT_SIGNAL_CAPS: dict[str, float] = {
    "title_clarity": 0.25,
}

MAX_CONTENT_SIZE = 50 * 1024 * 1024  # 50MB of text


def _check_unit_interval(name: str, value: float) -> None:
    if value < 0.0 or value > 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")


# =============================================================================
# COMPONENT CONFIGS
# =============================================================================


@dataclass
class SegmentationConfig:
    """
    Configuration for paragraph and sentence segmentation.

    locale_abbreviations adds language-specific abbreviations on top of
    the base list; it is empty by default so locale only changes the
    terminator set.

    context_abbreviations are only abbreviations when the next token starts
    with a digit or a lowercase letter, so "He sat. She stood." still splits.

    Example:
        >>> config = SegmentationConfig(
        ...     locale_abbreviations={"de": frozenset({"z.b.", "usw."})}
        ... )
    """

    abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS
    context_abbreviations: frozenset[str] = DEFAULT_CONTEXT_ABBREVIATIONS
    locale_terminators: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_LOCALE_TERMINATORS)
    )
    locale_abbreviations: dict[str, frozenset[str]] = field(default_factory=dict)
    treat_initials_as_abbreviations: bool = True  # "J. R. R. Tolkien"
    seconds_per_word: float = 0.5
    excluded_paragraph_types: tuple[str, ...] = ("code", "table")

    def __post_init__(self):
        """Validate configuration."""
        if self.seconds_per_word <= 0:
            raise ValueError(f"seconds_per_word must be positive, got {self.seconds_per_word}")
        self.abbreviations = frozenset(a.lower() for a in self.abbreviations)
        self.context_abbreviations = frozenset(a.lower() for a in self.context_abbreviations)
        self.locale_abbreviations = {
            lang.lower(): frozenset(a.lower() for a in abbrevs)
            for lang, abbrevs in self.locale_abbreviations.items()
        }
        valid_types = {"text", "code", "quote", "list", "table", "heading"}
        unknown = set(self.excluded_paragraph_types) - valid_types
        if unknown:
            raise ValueError(
                f"excluded_paragraph_types has unknown type(s): {', '.join(sorted(unknown))}"
            )


@dataclass
class ScoringConfig:
    """
    Weights and calibration constants for confidence scoring.

    Weights are relative; each unit's score is the weight-normalized sum of
    its signals. Set a weight to 0 to switch a signal off.
    """

    sentence_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SENTENCE_WEIGHTS)
    )
    paragraph_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_PARAGRAPH_WEIGHTS)
    )
    chapter_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CHAPTER_WEIGHTS)
    )
    document_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_DOCUMENT_WEIGHTS)
    )
    signal_caps: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SIGNAL_CAPS))

    # Title clarity
    min_title_length: int = 3
    max_title_length: int = 80

    # Length plausibility
    short_chapter_words: int = 20
    long_chapter_words: int = 20000
    long_paragraph_words: int = 300
    long_sentence_words: int = 60

    # Fallback structure must always read as "inferred, not detected"
    fallback_confidence_ceiling: float = 0.3

    def __post_init__(self):
        """Validate configuration."""
        for group in ("sentence", "paragraph", "chapter", "document"):
            weights = getattr(self, f"{group}_weights")
            if any(w < 0 for w in weights.values()):
                raise ValueError(f"{group}_weights must be non-negative, got {weights}")
            if sum(weights.values()) <= 0:
                raise ValueError(f"{group}_weights must have a positive total")
        for name, cap in self.signal_caps.items():
            _check_unit_interval(f"signal_caps[{name!r}]", cap)
        if self.min_title_length < 1:
            raise ValueError(f"min_title_length must be >= 1, got {self.min_title_length}")
        if self.max_title_length < self.min_title_length:
            raise ValueError("max_title_length must be >= min_title_length")
        if self.short_chapter_words < 1 or self.long_chapter_words <= self.short_chapter_words:
            raise ValueError("chapter word bounds must satisfy 1 <= short < long")
        if not 0.0 <= self.fallback_confidence_ceiling < 0.5:
            raise ValueError(
                f"fallback_confidence_ceiling must be in [0.0, 0.5), "
                f"got {self.fallback_confidence_ceiling}"
            )


@dataclass
class TreeConfig:
    """Display settings for the navigation tree."""

    sentence_preview: int = 3
    expanded_chapters: int = 3
    document_issue_threshold: float = 0.7
    chapter_issue_threshold: float = 0.6
    paragraph_issue_threshold: float = 0.5
    sentence_issue_threshold: float = 0.5
    heading_label_length: int = 50
    sentence_label_length: int = 60

    def __post_init__(self):
        """Validate configuration."""
        if self.sentence_preview < 0:
            raise ValueError(f"sentence_preview must be >= 0, got {self.sentence_preview}")
        if self.expanded_chapters < 0:
            raise ValueError(f"expanded_chapters must be >= 0, got {self.expanded_chapters}")
        for name in (
            "document_issue_threshold",
            "chapter_issue_threshold",
            "paragraph_issue_threshold",
            "sentence_issue_threshold",
        ):
            _check_unit_interval(name, getattr(self, name))
        if self.heading_label_length < 4 or self.sentence_label_length < 4:
            raise ValueError("label lengths must be >= 4")


@dataclass
class ValidationConfig:
    """Thresholds used by the built-in validation rules."""

    min_chapter_words: int = 50
    short_sentence_words: int = 2
    long_sentence_words: int = 60
    paragraph_confidence_threshold: float = 0.5
    chapter_confidence_threshold: float = 0.6
    chapter_length_ratio: float = 10.0  # longest / shortest before flagging
    error_weight: float = 0.3
    warning_weight: float = 0.1

    def __post_init__(self):
        """Validate configuration."""
        _check_unit_interval("paragraph_confidence_threshold", self.paragraph_confidence_threshold)
        _check_unit_interval("chapter_confidence_threshold", self.chapter_confidence_threshold)
        if self.min_chapter_words < 0:
            raise ValueError(f"min_chapter_words must be >= 0, got {self.min_chapter_words}")
        if self.long_sentence_words <= self.short_sentence_words:
            raise ValueError("long_sentence_words must be greater than short_sentence_words")
        if self.chapter_length_ratio <= 1.0:
            raise ValueError(f"chapter_length_ratio must be > 1.0, got {self.chapter_length_ratio}")
        if self.error_weight < 0 or self.warning_weight < 0:
            raise ValueError("error_weight and warning_weight must be non-negative")


@dataclass
class ReportConfig:
    """Thresholds for confidence reports and risk levels."""

    good_threshold: float = 0.8
    acceptable_threshold: float = 0.6
    low_paragraph_share: float = 0.25  # recommend review above this share
    reading_words_per_minute: int = 200

    def __post_init__(self):
        """Validate configuration."""
        _check_unit_interval("good_threshold", self.good_threshold)
        _check_unit_interval("acceptable_threshold", self.acceptable_threshold)
        _check_unit_interval("low_paragraph_share", self.low_paragraph_share)
        if self.acceptable_threshold > self.good_threshold:
            raise ValueError(
                f"acceptable_threshold ({self.acceptable_threshold}) must not exceed "
                f"good_threshold ({self.good_threshold})"
            )
        if self.reading_words_per_minute < 1:
            raise ValueError("reading_words_per_minute must be >= 1")


# =============================================================================
# PER-CALL OPTIONS
# =============================================================================


@dataclass
class StreamingOptions:
    """
    Chunked processing for very large documents.

    Example:
        >>> options = AnalysisOptions(
        ...     streaming=StreamingOptions(
        ...         enabled=True, chunk_size=8192, on_progress=print
        ...     )
        ... )
    """

    enabled: bool = False
    chunk_size: int = 64 * 1024
    on_progress: Callable[[float], None] | None = None
    cancel: Any = None  # anything with is_set(), e.g. threading.Event

    def __post_init__(self):
        """Validate configuration."""
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")


@dataclass
class AnalysisOptions:
    """Options recognised by a single analyze call."""

    confidence_threshold: float = 0.7
    detailed_confidence: bool = True
    detect_edge_cases: bool = True
    validate_structure: bool = True
    generate_tree: bool = True
    streaming: StreamingOptions = field(default_factory=StreamingOptions)
    hints: FormatHints | None = None
    language: str | None = None  # None = front matter, hints, then "en"
    title: str | None = None
    profile: str | None = None  # profile name, or "auto"
    apply_saved_corrections: bool = False

    def __post_init__(self):
        """Validate configuration."""
        _check_unit_interval("confidence_threshold", self.confidence_threshold)


# =============================================================================
# ANALYZER CONFIG
# =============================================================================


@dataclass
class AnalyzerConfig:
    """
    Configuration for StructureAnalyzer.

    Groups the component configs. All options have sensible defaults.

    Example:
        >>> config = AnalyzerConfig(
        ...     scoring=ScoringConfig(chapter_weights={"title_clarity": 1.0}),
        ...     tree=TreeConfig(sentence_preview=5),
        ... )
        >>> analyzer = StructureAnalyzer(config)
    """

    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    default_confidence_threshold: float = 0.7
    max_content_size: int = MAX_CONTENT_SIZE
    default_profile: str = "default"

    def __post_init__(self):
        """Validate configuration."""
        _check_unit_interval("default_confidence_threshold", self.default_confidence_threshold)
        if self.max_content_size < 1:
            raise ValueError(f"max_content_size must be >= 1, got {self.max_content_size}")
