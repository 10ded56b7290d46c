"""
Chapter boundary detection.

This module provides:
- StructureDetector: format dispatch and source cascade with fallback
- Boundary sources (navigation hints, heading markers, page openings,
  chapter lines)
- Title normalization for "Chapter N" and "N. Title" prefixes
"""

from narrastruct.detection.detector import (
    FORMAT_DETECTORS,
    DetectionResult,
    StructureDetector,
    detect_epub,
    detect_markdown,
    detect_pdf,
)
from narrastruct.detection.sources import (
    BoundarySource,
    ChapterBoundary,
    ChapterLineSource,
    FormatHints,
    HeadingMarkerSource,
    NavigationEntry,
    NavigationHintSource,
    PageHeadingSource,
)
from narrastruct.detection.titles import normalize_title, slugify

__all__ = [
    # Detector
    "StructureDetector",
    "DetectionResult",
    "FORMAT_DETECTORS",
    "detect_markdown",
    "detect_pdf",
    "detect_epub",
    # Sources
    "BoundarySource",
    "ChapterBoundary",
    "ChapterLineSource",
    "HeadingMarkerSource",
    "NavigationHintSource",
    "PageHeadingSource",
    # Hints
    "FormatHints",
    "NavigationEntry",
    # Titles
    "normalize_title",
    "slugify",
]
