"""
Structure detector.

Finds chapter boundaries with a cascade of sources chosen once per
document format:

- markdown: heading markers
- pdf: outline hints, page openings, heading markers, chapter lines
- epub: navigation hints, heading markers, chapter lines

The first source that proposes boundaries wins. When none does, a single
synthetic paragraph-group boundary covers the text with a depressed
confidence, so consumers know the structure was inferred, not detected.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from narrastruct.config import ScoringConfig
from narrastruct.detection.sources import (
    BoundarySource,
    ChapterBoundary,
    ChapterLineSource,
    FormatHints,
    HeadingMarkerSource,
    NavigationHintSource,
    PageHeadingSource,
)
from narrastruct.detection.titles import clean_title, slugify
from narrastruct.models import DocumentFormat, ParagraphType
from narrastruct.profiles import DEFAULT_PROFILE, AnalysisProfile
from narrastruct.segmentation.paragraphs import ParagraphSegmenter

logger = logging.getLogger(__name__)

FALLBACK_TITLE_LENGTH = 50
PREAMBLE_TITLE = "Introduction"
UNTITLED = "Untitled Section"


@dataclass
class DetectionResult:
    """Result of boundary detection."""

    boundaries: list[ChapterBoundary]
    primary_source: str  # which source produced the boundaries
    is_fallback: bool = False
    has_preamble: bool = False
    processing_log: list[str] = field(default_factory=list)


class StructureDetector:
    """Detect chapter boundaries for one document format.

    Usage:
        detector = StructureDetector()
        result = detector.detect(text, DocumentFormat.MARKDOWN)
        for boundary in result.boundaries:
            print(boundary.title, boundary.start, boundary.end)

    Profile-based usage:
        from narrastruct.profiles import ARTICLE_PROFILE
        detector = StructureDetector(profile=ARTICLE_PROFILE)
    """

    def __init__(
        self,
        *,
        profile: AnalysisProfile | None = None,
        scoring: ScoringConfig | None = None,
        segmenter: ParagraphSegmenter | None = None,
    ):
        """Initialize the detector.

        Args:
            profile: Analysis profile selecting chapter levels and hint sources.
            scoring: Scoring config (for the fallback confidence ceiling).
            segmenter: Block scanner shared with the heading source.
        """
        self.profile = profile or DEFAULT_PROFILE
        self.scoring = scoring or ScoringConfig()
        self.segmenter = segmenter or ParagraphSegmenter()

    def detect(
        self,
        text: str,
        document_format: DocumentFormat | str,
        hints: FormatHints | None = None,
        base_offset: int = 0,
    ) -> DetectionResult:
        """Detect boundaries in ``text``, which starts at ``base_offset``.

        Raises:
            UnsupportedFormatError: If the format tag is not recognised.
        """
        fmt = DocumentFormat.parse(document_format)
        detect_format = FORMAT_DETECTORS[fmt]
        return detect_format(self, text, hints or FormatHints(), base_offset)

    # -------------------------------------------------------------------------
    # Source construction
    # -------------------------------------------------------------------------

    def heading_source(self) -> HeadingMarkerSource:
        return HeadingMarkerSource(
            levels=self.profile.chapter_heading_levels, segmenter=self.segmenter
        )

    # -------------------------------------------------------------------------
    # Cascade
    # -------------------------------------------------------------------------

    def run_cascade(
        self,
        sources: list[BoundarySource],
        text: str,
        hints: FormatHints,
        base_offset: int,
    ) -> DetectionResult:
        """Try sources in order; fall back to a paragraph group."""
        log: list[str] = []
        if not text.strip():
            log.append("Empty content: no boundaries")
            return DetectionResult(boundaries=[], primary_source="none", processing_log=log)

        for source in sources:
            found = self._extract_safely(source, text, hints, base_offset)
            log.append(f"{source.name}: {len(found)} boundaries")
            if found:
                boundaries = self._deduplicate(found)
                preamble = self._preamble_boundary(text, base_offset, boundaries[0])
                if preamble:
                    boundaries.insert(0, preamble)
                    log.append("Preamble text before first boundary grouped as introduction")
                self._fill_ends(boundaries, base_offset + len(text))
                logger.info(
                    "Detected %d chapter boundaries via %s", len(boundaries), source.name
                )
                return DetectionResult(
                    boundaries=boundaries,
                    primary_source=source.name,
                    has_preamble=preamble is not None,
                    processing_log=log,
                )

        fallback = self._fallback_boundary(text, hints, base_offset)
        self._fill_ends([fallback], base_offset + len(text))
        log.append(f"No boundaries found; using fallback group '{fallback.title}'")
        logger.info("No chapter boundaries found; using fallback paragraph group")
        return DetectionResult(
            boundaries=[fallback],
            primary_source="fallback",
            is_fallback=True,
            processing_log=log,
        )

    def _extract_safely(
        self,
        source: BoundarySource,
        text: str,
        hints: FormatHints,
        base_offset: int,
    ) -> list[ChapterBoundary]:
        """Extract from source with error handling."""
        try:
            return source.extract(text, hints, base_offset)
        except Exception as e:
            logger.warning("Source %s failed: %s", source.name, e)
            return []

    @staticmethod
    def _deduplicate(boundaries: list[ChapterBoundary]) -> list[ChapterBoundary]:
        """Sort by start; keep the most confident boundary per offset."""
        by_start: dict[int, ChapterBoundary] = {}
        for boundary in boundaries:
            existing = by_start.get(boundary.start)
            if existing is None or boundary.confidence > existing.confidence:
                by_start[boundary.start] = boundary
        return [by_start[start] for start in sorted(by_start)]

    @staticmethod
    def _fill_ends(boundaries: list[ChapterBoundary], text_end: int) -> None:
        for current, following in zip(boundaries, boundaries[1:]):
            current.end = following.start
        if boundaries:
            boundaries[-1].end = text_end

    def _preamble_boundary(
        self, text: str, base_offset: int, first: ChapterBoundary
    ) -> ChapterBoundary | None:
        """Group non-heading text before the first boundary, if any."""
        preamble = text[: first.start - base_offset]
        if not preamble.strip():
            return None
        blocks = self.segmenter.segment(preamble, base_offset)
        if all(block.type is ParagraphType.HEADING for block in blocks):
            # A lone document title above the chapters is metadata, not content
            return None
        start = blocks[0].start
        return ChapterBoundary(
            start=start,
            body_start=start,
            end=first.start,
            title=PREAMBLE_TITLE,
            raw_title="",
            level=first.level,
            confidence=self.scoring.fallback_confidence_ceiling,
            source="preamble",
            is_fallback=True,
            node_type="paragraph-group",
            evidence={"slug": slugify(PREAMBLE_TITLE)},
        )

    def _fallback_boundary(
        self, text: str, hints: FormatHints, base_offset: int
    ) -> ChapterBoundary:
        """One synthetic paragraph group spanning all content."""
        title = clean_title(hints.title or "")
        if not title:
            first_line = next((line for line in text.splitlines() if line.strip()), "")
            title = clean_title(first_line.lstrip("#>*-+ "))
        if len(title) > FALLBACK_TITLE_LENGTH:
            title = title[: FALLBACK_TITLE_LENGTH - 3].rstrip() + "..."
        title = title or UNTITLED

        start = base_offset + (len(text) - len(text.lstrip()))
        return ChapterBoundary(
            start=start,
            body_start=start,
            end=None,
            title=title,
            raw_title=title,
            level=1,
            confidence=self.scoring.fallback_confidence_ceiling,
            source="fallback",
            is_fallback=True,
            node_type="paragraph-group",
            evidence={"slug": slugify(title)},
        )


# =============================================================================
# FORMAT DETECTORS
# =============================================================================


def detect_markdown(
    detector: StructureDetector, text: str, hints: FormatHints, base_offset: int
) -> DetectionResult:
    """Heading markers only."""
    return detector.run_cascade([detector.heading_source()], text, hints, base_offset)


def detect_pdf(
    detector: StructureDetector, text: str, hints: FormatHints, base_offset: int
) -> DetectionResult:
    """Outline hints, page openings, then the markdown heuristics."""
    profile = detector.profile
    sources: list[BoundarySource] = []
    if profile.use_navigation_hints:
        sources.append(NavigationHintSource())
    if profile.use_page_hints:
        sources.append(PageHeadingSource())
    sources.append(detector.heading_source())
    if profile.use_chapter_lines:
        sources.append(ChapterLineSource())
    return detector.run_cascade(sources, text, hints, base_offset)


def detect_epub(
    detector: StructureDetector, text: str, hints: FormatHints, base_offset: int
) -> DetectionResult:
    """Navigation hints, then the markdown heuristics."""
    profile = detector.profile
    sources: list[BoundarySource] = []
    if profile.use_navigation_hints:
        sources.append(NavigationHintSource())
    sources.append(detector.heading_source())
    if profile.use_chapter_lines:
        sources.append(ChapterLineSource())
    return detector.run_cascade(sources, text, hints, base_offset)


FORMAT_DETECTORS: dict[
    DocumentFormat, Callable[[StructureDetector, str, FormatHints, int], DetectionResult]
] = {
    DocumentFormat.MARKDOWN: detect_markdown,
    DocumentFormat.PDF: detect_pdf,
    DocumentFormat.EPUB: detect_epub,
}
