"""
Structure analysis orchestrator.

This module provides StructureAnalyzer, which turns extracted document
text into a confidence-scored DocumentStructure by wiring together:
- ParagraphSegmenter / StreamingSegmenter (paragraph blocks)
- StructureDetector (chapter boundaries)
- ChapterAssembler (paragraphs and sentences)
- ConfidenceScorer (confidence at every level)
- Validator, ConfidenceReportGenerator, TreeBuilder (review aids)
- CorrectionEngine (corrections and saved-profile replay)

The module-level functions build a fresh analyzer per call, so nothing is
shared between calls.
"""

from __future__ import annotations

import bisect
import codecs
import dataclasses
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import yaml

from narrastruct.assembly import ChapterAssembler, word_count_mismatches
from narrastruct.config import AnalysisOptions, AnalyzerConfig
from narrastruct.corrections.engine import CorrectionEngine, CorrectionSession
from narrastruct.corrections.history import CorrectionHistory
from narrastruct.corrections.profiles import CorrectionProfileStore, SavedCorrections
from narrastruct.detection.detector import DetectionResult, StructureDetector
from narrastruct.detection.sources import ChapterBoundary, FormatHints
from narrastruct.edge_cases import describe_fallback, detect_edge_cases
from narrastruct.exceptions import (
    AnalysisCancelledError,
    ConfigurationError,
    UnsupportedFormatError,
)
from narrastruct.metrics import MetricsCollector
from narrastruct.models import (
    Chapter,
    ConfidenceReport,
    DocumentFormat,
    DocumentMetadata,
    DocumentStructure,
    DocumentTreeNode,
    FallbackStrategy,
    ParagraphType,
    StructureAnalysisResult,
    StructureCorrection,
    StructureCorrectionResult,
    ValidationResult,
)
from narrastruct.profiles import AnalysisProfile, estimate_profile, get_profile
from narrastruct.reports import ConfidenceReportGenerator
from narrastruct.scoring.scorer import ConfidenceScorer
from narrastruct.scoring.scorer import meets_quality_threshold as _meets_quality_threshold
from narrastruct.segmentation.paragraphs import ParagraphBlock, ParagraphSegmenter, heading_text
from narrastruct.streaming import StreamingSegmenter, iter_chunks, normalize_newlines
from narrastruct.tree import DocumentTree, TreeBuilder
from narrastruct.validation.validator import ValidationOptions, Validator

logger = logging.getLogger(__name__)

FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)

DEFAULT_TITLE = "Untitled Document"
DEFAULT_LANGUAGE = "en"
AUTO_PROFILE = "auto"


# ═══════════════════════════════════════════════════════════════════════════════
# Analysis Context
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class AnalysisContext:
    """State accumulated during one analysis run."""

    text: str  # newline-normalized content
    format: DocumentFormat
    options: AnalysisOptions
    profile: AnalysisProfile
    hints: FormatHints
    processing_log: list[str] = field(default_factory=list)
    processing_errors: list[str] = field(default_factory=list)

    # Front matter
    base_offset: int = 0
    front_matter: dict[str, Any] = field(default_factory=dict)

    # Segmentation and detection results
    blocks: list[ParagraphBlock] = field(default_factory=list)
    detection: DetectionResult | None = None
    chapters: list[Chapter] = field(default_factory=list)
    language: str = DEFAULT_LANGUAGE


class StructureAnalyzer:
    """
    Analyze document structure with confidence scores.

    Usage:
        analyzer = StructureAnalyzer()
        result = analyzer.analyze(markdown_text, "markdown")
        print(result.confidence, result.document_structure.total_chapters)

    Streaming:
        options = AnalysisOptions(streaming=StreamingOptions(enabled=True, on_progress=print))
        result = analyzer.analyze(big_text, "markdown", options)

    Corrections:
        correction_result = analyzer.apply_corrections(result.document_structure, corrections)
        analyzer.save_corrections(result.document_structure, correction_result.corrections)
    """

    def __init__(
        self,
        config: AnalyzerConfig | None = None,
        *,
        store: CorrectionProfileStore | None = None,
        history: CorrectionHistory | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Component configuration (defaults if None).
            store: Correction profile store shared with the correction engine.
            history: Correction history log.
            metrics: Per-run metrics collector; reset at the start of every run.

        Raises:
            ConfigurationError: If the configured default profile does not exist.
        """
        self.config = config or AnalyzerConfig()
        self.store = store or CorrectionProfileStore()
        self.history = history or CorrectionHistory()
        self.metrics = metrics or MetricsCollector()
        self._build_components()

    def _build_components(self) -> None:
        config = self.config
        self.default_profile = _resolve_profile(config.default_profile)
        self.segmenter = ParagraphSegmenter(config.segmentation)
        self.assembler = ChapterAssembler(config.segmentation)
        self.scorer = ConfidenceScorer(config.scoring)
        self.validator = Validator(config.validation)
        self.reporter = ConfidenceReportGenerator(config.report, config.scoring)
        self.tree_builder = TreeBuilder(config.tree)
        self.engine = self._engine_for(self.default_profile)

    def configure(self, **changes: Any) -> AnalyzerConfig:
        """Swap configuration fields at runtime.

        Uses dataclasses.replace, so the new config is validated again.

        Example:
            >>> analyzer.configure(default_confidence_threshold=0.8)
        """
        try:
            self.config = dataclasses.replace(self.config, **changes)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration change: {e}") from e
        self._build_components()
        logger.debug("Reconfigured analyzer: %s", ", ".join(sorted(changes)))
        return self.config

    # ─────────────────────────────────────────────────────────────────────────
    # Analysis
    # ─────────────────────────────────────────────────────────────────────────

    def analyze(
        self,
        content: str | bytes | None,
        format: DocumentFormat | str,
        options: AnalysisOptions | None = None,
    ) -> StructureAnalysisResult:
        """
        Analyze one document.

        Args:
            content: Extracted document text (UTF-8 bytes are decoded).
            format: "markdown", "pdf" or "epub".
            options: Per-call options (defaults if None).

        Returns:
            StructureAnalysisResult. Bad input gives a zero-confidence
            structure with processing_errors set rather than an exception.

        Raises:
            ConfigurationError: If options name an unknown profile.
        """
        options = options or self._default_options()
        self.metrics.reset()
        log: list[str] = []

        # Step 1: Input checks
        if content is None:
            return self._error_result("No content provided", str(format), log)
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as e:
                return self._error_result(f"Content is not valid UTF-8: {e}", str(format), log)
        if not isinstance(content, str):
            return self._error_result(
                f"Content must be text, got {type(content).__name__}", str(format), log
            )
        if len(content) > self.config.max_content_size:
            return self._error_result(
                f"Content size {len(content)} exceeds limit of {self.config.max_content_size}",
                str(format),
                log,
            )

        # Step 2: Format dispatch
        try:
            fmt = DocumentFormat.parse(format)
        except UnsupportedFormatError as e:
            return self._error_result(str(e), str(format), log)

        # Step 3: Newline normalization
        text = normalize_newlines(content)
        log.append(f"Starting {fmt.value} analysis: {len(text)} characters")

        blocks = None
        if options.streaming.enabled:
            streaming = options.streaming
            try:
                _, blocks = self._streamer(options).run(
                    iter_chunks(text, streaming.chunk_size), total_size=len(text)
                )
            except AnalysisCancelledError as e:
                return self._cancelled_result(e, fmt.value, log)
        else:
            self.metrics.record_chunk(len(text))

        return self._run(text, fmt, options, log, blocks)

    def analyze_stream(
        self,
        chunks: Iterable[str | bytes],
        format: DocumentFormat | str,
        options: AnalysisOptions | None = None,
        total_size: int | None = None,
    ) -> StructureAnalysisResult:
        """Analyze a document delivered as an iterable of chunks.

        The result equals analyze() on the concatenated chunks. Progress and
        cancellation come from options.streaming.
        """
        options = options or self._default_options()
        self.metrics.reset()
        log: list[str] = []

        try:
            fmt = DocumentFormat.parse(format)
        except UnsupportedFormatError as e:
            return self._error_result(str(e), str(format), log)

        try:
            text, blocks = self._streamer(options).run(_decoded(chunks), total_size=total_size)
        except AnalysisCancelledError as e:
            return self._cancelled_result(e, fmt.value, log)
        except UnicodeDecodeError as e:
            return self._error_result(f"Content is not valid UTF-8: {e}", fmt.value, log)

        if len(text) > self.config.max_content_size:
            return self._error_result(
                f"Content size {len(text)} exceeds limit of {self.config.max_content_size}",
                fmt.value,
                log,
            )
        log.append(
            f"Starting {fmt.value} analysis: {len(text)} characters "
            f"in {self.metrics.chunks_processed} chunks"
        )
        return self._run(text, fmt, options, log, blocks)

    def _run(
        self,
        text: str,
        fmt: DocumentFormat,
        options: AnalysisOptions,
        log: list[str],
        blocks: list[ParagraphBlock] | None,
    ) -> StructureAnalysisResult:
        ctx = AnalysisContext(
            text=text,
            format=fmt,
            options=options,
            profile=self._profile_for(options, text),
            hints=self._hints_for(options),
            processing_log=log,
        )
        log.append(f"Profile: {ctx.profile.name}")
        if not text.strip():
            ctx.processing_errors.append("Empty content")
            log.append("Empty content: returning an empty structure")

        # Step 4: Front matter
        self._read_front_matter(ctx)

        # Step 5: Paragraph blocks
        with self.metrics.timer("segmentation"):
            ctx.blocks = blocks if blocks is not None else self.segmenter.segment(text)
        log.append(f"Segmented {len(ctx.blocks)} paragraph blocks")

        # Step 6: Detection
        with self.metrics.timer("detection"):
            ctx.detection = StructureDetector(
                profile=ctx.profile, scoring=self.config.scoring, segmenter=self.segmenter
            ).detect(text[ctx.base_offset :], fmt, ctx.hints, ctx.base_offset)
        log.extend(ctx.detection.processing_log)

        # Step 7: Chapter assembly
        ctx.language = self._language_for(ctx)
        with self.metrics.timer("assembly"):
            self._assemble_chapters(ctx)

        structure = DocumentStructure.build(
            metadata=self._build_metadata(ctx),
            chapters=ctx.chapters,
            processing_errors=ctx.processing_errors,
            processing_log=log,
        )

        # Step 8: Invariant logging
        for problem in word_count_mismatches(structure):
            logger.warning("Word count mismatch: %s", problem)
            log.append(f"Word count mismatch: {problem}")

        # Step 9: Scoring
        with self.metrics.timer("scoring"):
            self.scorer.score_structure(structure, ctx.profile.chapter_heading_levels)
        log.append(f"Document confidence: {structure.confidence:.3f}")

        # Step 10: Saved-correction replay
        correction_result = None
        if options.apply_saved_corrections and structure.chapters:
            correction_result = self._replay_saved(structure, ctx)
            if correction_result is not None:
                structure = correction_result.structure
                structure.processing_log = log

        # Step 11: Review aids
        return self._finish(structure, ctx, correction_result)

    # ─────────────────────────────────────────────────────────────────────────
    # Pipeline steps
    # ─────────────────────────────────────────────────────────────────────────

    def _read_front_matter(self, ctx: AnalysisContext) -> None:
        """Parse a leading YAML block in Markdown and exclude it from the body."""
        if ctx.format is not DocumentFormat.MARKDOWN:
            return
        match = FRONT_MATTER_RE.match(ctx.text)
        if not match:
            return
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            logger.warning("Unreadable front matter, keeping it as content: %s", e)
            ctx.processing_log.append(f"Front matter not parsed: {e}")
            return
        if data is None:
            data = {}
        if not isinstance(data, dict):
            ctx.processing_log.append("Front matter is not a mapping; kept as content")
            return
        ctx.front_matter = {str(k): v for k, v in data.items()}
        ctx.base_offset = match.end()
        ctx.processing_log.append(f"Front matter: {len(ctx.front_matter)} fields")

    def _assemble_chapters(self, ctx: AnalysisContext) -> None:
        """Distribute paragraph blocks over the detected boundaries."""
        boundaries = ctx.detection.boundaries if ctx.detection else []
        if not boundaries:
            return

        starts = [b.start for b in boundaries]
        grouped: list[list[ParagraphBlock]] = [[] for _ in boundaries]
        for block in self._cut_blocks(ctx, boundaries):
            if block.start < ctx.base_offset:
                continue
            index = bisect.bisect_right(starts, block.start) - 1
            if index < 0:
                continue  # a document title above the first chapter
            if block.end <= boundaries[index].body_start:
                continue  # the chapter heading itself
            grouped[index].append(block)

        taken: set[str] = set()
        number = 0
        for position, (boundary, blocks) in enumerate(zip(boundaries, grouped)):
            if boundary.node_type == "chapter":
                number += 1
                chapter_id = f"chapter-{number}"
            else:
                slug = boundary.evidence.get("slug") or str(position + 1)
                chapter_id = f"paragraph-group-{slug}"
            chapter_id = _unique(chapter_id, taken)
            ctx.chapters.append(
                self.assembler.build_chapter(boundary, blocks, chapter_id, position, ctx.language)
            )
        ctx.processing_log.append(
            f"Assembled {len(ctx.chapters)} chapters, "
            f"{sum(len(c.paragraphs) for c in ctx.chapters)} paragraphs"
        )

    def _cut_blocks(
        self, ctx: AnalysisContext, boundaries: list[ChapterBoundary]
    ) -> list[ParagraphBlock]:
        """Re-segment blocks that straddle a boundary or the front matter end."""
        cuts = {ctx.base_offset}
        for boundary in boundaries:
            cuts.update((boundary.start, boundary.body_start))
        result = []
        for block in ctx.blocks:
            inside = [c for c in cuts if block.start < c < block.end]
            if not inside:
                result.append(block)
                continue
            edges = [block.start, *inside, block.end]
            for start, end in zip(edges, edges[1:]):
                result.extend(self.segmenter.segment(ctx.text[start:end], start))
        return result

    def _build_metadata(self, ctx: AnalysisContext) -> DocumentMetadata:
        """Metadata from front matter, options, hints and the text itself."""
        front = ctx.front_matter
        title = (
            _text_value(front.get("title"))
            or ctx.options.title
            or ctx.hints.title
            or self._leading_title(ctx)
            or next((c.title for c in ctx.chapters if not c.is_fallback), None)
            or DEFAULT_TITLE
        )
        author = _text_value(front.get("author")) or ctx.hints.author
        custom = {k: v for k, v in front.items() if k not in ("title", "author", "language", "lang")}
        return DocumentMetadata(
            title=title,
            author=author,
            language=ctx.language,
            format=ctx.format.value,
            custom=custom,
        )

    def _leading_title(self, ctx: AnalysisContext) -> str | None:
        """A top-level heading before the first chapter that is not itself a chapter."""
        boundaries = ctx.detection.boundaries if ctx.detection else []
        starts = {b.start for b in boundaries}
        first = min(starts, default=None)
        for block in ctx.blocks:
            if block.start < ctx.base_offset:
                continue
            if first is not None and block.start >= first:
                return None
            if block.type is ParagraphType.HEADING and block.heading_level == 1:
                return heading_text(block) or None
            return None
        return None

    def _language_for(self, ctx: AnalysisContext) -> str:
        front = ctx.front_matter
        return (
            ctx.options.language
            or _text_value(front.get("language") or front.get("lang"))
            or ctx.hints.language
            or DEFAULT_LANGUAGE
        )

    def _replay_saved(
        self, structure: DocumentStructure, ctx: AnalysisContext
    ) -> StructureCorrectionResult | None:
        saved = self.store.find_matching(structure)
        if saved is None:
            ctx.processing_log.append("No saved corrections match this document")
            return None
        result = self._engine_for(ctx.profile).replay(structure, saved)
        applied = sum(1 for c in result.corrections if c.applied)
        ctx.processing_log.append(
            f"Replayed {applied}/{len(result.corrections)} saved corrections "
            f"from {saved.document_id}"
        )
        return result

    def _finish(
        self,
        structure: DocumentStructure,
        ctx: AnalysisContext,
        correction_result: StructureCorrectionResult | None,
    ) -> StructureAnalysisResult:
        options = ctx.options
        log = ctx.processing_log
        with self.metrics.timer("review"):
            report = self.reporter.generate(structure, detailed=options.detailed_confidence)
            validation = None
            if options.validate_structure:
                validation = self.validator.validate(
                    structure, self._validation_options(ctx.profile, options)
                )
                log.append(
                    f"Validation: {len(validation.errors)} errors, "
                    f"{len(validation.warnings)} warnings"
                )
            tree = self.tree_builder.build(structure).root if options.generate_tree else None
            edge_cases = (
                detect_edge_cases(structure, ctx.detection, self.config.scoring)
                if options.detect_edge_cases
                else []
            )

        meets = _meets_quality_threshold(structure, options.confidence_threshold)
        log.append(
            f"Analysis complete: {structure.total_chapters} chapters, "
            f"confidence {structure.confidence:.3f}"
        )
        self.metrics.increment("chapters", structure.total_chapters)
        self.metrics.increment("paragraphs", structure.total_paragraphs)
        self.metrics.increment("sentences", structure.total_sentences)
        structure.processing_metrics = self.metrics.snapshot()

        logger.info(
            "Analyzed %s document: %d chapters, confidence %.3f",
            ctx.format.value,
            structure.total_chapters,
            structure.confidence,
        )
        return StructureAnalysisResult(
            document_structure=structure,
            confidence_report=report,
            validation=validation,
            tree=tree,
            edge_cases=edge_cases,
            fallback_strategy=describe_fallback(ctx.detection, self.config.scoring),
            meets_threshold=meets,
            correction_result=correction_result,
            processing_log=list(log),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Review operations
    # ─────────────────────────────────────────────────────────────────────────

    def validate(
        self, structure: DocumentStructure, options: ValidationOptions | None = None
    ) -> ValidationResult:
        return self.validator.validate(
            structure, options or self._validation_options(self.default_profile)
        )

    def apply_corrections(
        self, structure: DocumentStructure, corrections: list[StructureCorrection]
    ) -> StructureCorrectionResult:
        """Apply corrections to a copy of ``structure``."""
        return self.engine.apply_corrections(structure, corrections)

    def review(
        self, structure: DocumentStructure, document_id: str | None = None, **permissions: bool
    ) -> CorrectionSession:
        """Start an interactive correction session."""
        return self.engine.start_session(structure, document_id, **permissions)

    def save_corrections(
        self, structure: DocumentStructure, corrections: list[StructureCorrection]
    ) -> SavedCorrections:
        """Persist applied corrections so later analyses can replay them."""
        return self.engine.save(structure, corrections)

    def generate_confidence_report(
        self, structure: DocumentStructure, detailed: bool = True
    ) -> ConfidenceReport:
        return self.reporter.generate(structure, detailed=detailed)

    def generate_tree(self, structure: DocumentStructure) -> DocumentTree:
        return self.tree_builder.build(structure)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _default_options(self) -> AnalysisOptions:
        return AnalysisOptions(confidence_threshold=self.config.default_confidence_threshold)

    def _profile_for(self, options: AnalysisOptions, text: str) -> AnalysisProfile:
        if options.profile is None:
            return self.default_profile
        if options.profile == AUTO_PROFILE:
            return _resolve_profile(estimate_profile(text))
        return _resolve_profile(options.profile)

    @staticmethod
    def _hints_for(options: AnalysisOptions) -> FormatHints:
        hints = options.hints or FormatHints()
        if options.title and not hints.title:
            hints = dataclasses.replace(hints, title=options.title)
        return hints

    def _validation_options(
        self, profile: AnalysisProfile, options: AnalysisOptions | None = None
    ) -> ValidationOptions:
        if options is None:
            min_confidence = self.config.default_confidence_threshold
        elif options.profile is not None:
            min_confidence = profile.min_confidence
        else:
            min_confidence = options.confidence_threshold
        return ValidationOptions(min_confidence=min_confidence, rule_names=profile.validators)

    def _engine_for(self, profile: AnalysisProfile) -> CorrectionEngine:
        return CorrectionEngine(
            self.scorer,
            self.config.segmentation,
            self.history,
            self.store,
            self.validator,
            chapter_levels=profile.chapter_heading_levels,
            validation_options=self._validation_options(profile),
        )

    def _streamer(self, options: AnalysisOptions) -> StreamingSegmenter:
        streaming = options.streaming
        return StreamingSegmenter(
            self.segmenter,
            chunk_size=streaming.chunk_size,
            on_progress=streaming.on_progress,
            cancel=streaming.cancel,
            metrics=self.metrics,
        )

    def _error_result(
        self, message: str, format_value: str, log: list[str]
    ) -> StructureAnalysisResult:
        logger.warning("Analysis failed: %s", message)
        log.append(f"Analysis failed: {message}")
        structure = DocumentStructure.error(
            message,
            format_value,
            processing_metrics=self.metrics.snapshot(),
            processing_log=log,
        )
        return StructureAnalysisResult(
            document_structure=structure,
            confidence_report=self.reporter.generate(structure),
            fallback_strategy=FallbackStrategy(
                type="default_structure",
                description="Input could not be analyzed; returned an empty structure",
                confidence=0.0,
            ),
            meets_threshold=False,
            processing_log=list(log),
        )

    def _cancelled_result(
        self, error: AnalysisCancelledError, format_value: str, log: list[str]
    ) -> StructureAnalysisResult:
        result = self._error_result(str(error), format_value, log)
        result.cancelled = True
        return result


def _resolve_profile(name: str) -> AnalysisProfile:
    try:
        return get_profile(name)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def _unique(base: str, taken: set[str]) -> str:
    candidate = base
    suffix = 2
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _text_value(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decoded(chunks: Iterable[str | bytes]):
    """Decode byte chunks incrementally so multi-byte characters may span chunks."""
    decoder = None
    for chunk in chunks:
        if isinstance(chunk, bytes):
            if decoder is None:
                decoder = codecs.getincrementaldecoder("utf-8")()
            text = decoder.decode(chunk)
            if text:
                yield text
        else:
            yield chunk
    if decoder is not None:
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


def analyze_structure(
    content: str | bytes | None,
    format: DocumentFormat | str,
    options: AnalysisOptions | None = None,
) -> StructureAnalysisResult:
    """
    Analyze a document with a fresh default analyzer.

    Example:
        >>> result = analyze_structure("# Chapter 1\\n\\nIt begins.", "markdown")
        >>> result.document_structure.total_chapters
        1
    """
    return StructureAnalyzer().analyze(content, format, options)


def validate_structure(
    structure: DocumentStructure, options: ValidationOptions | None = None
) -> ValidationResult:
    return StructureAnalyzer().validate(structure, options)


def apply_corrections(
    structure: DocumentStructure, corrections: list[StructureCorrection]
) -> StructureCorrectionResult:
    return StructureAnalyzer().apply_corrections(structure, corrections)


def generate_confidence_report(
    structure: DocumentStructure, detailed: bool = True
) -> ConfidenceReport:
    return StructureAnalyzer().generate_confidence_report(structure, detailed)


def generate_structure_tree(structure: DocumentStructure) -> DocumentTreeNode:
    """Root node of the navigation tree for ``structure``."""
    return StructureAnalyzer().generate_tree(structure).root


def meets_quality_threshold(structure: DocumentStructure, threshold: float) -> bool:
    """True when the document confidence reaches ``threshold``."""
    return _meets_quality_threshold(structure, threshold)
