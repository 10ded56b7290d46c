"""
Chapter boundary sources.

Each source proposes chapter boundaries from a different kind of evidence:
- NavigationHintSource: EPUB navigation / PDF outline entries (high confidence)
- HeadingMarkerSource: Markdown heading markers (always available)
- PageHeadingSource: chapter openers at the top of PDF pages
- ChapterLineSource: standalone "Chapter N" lines in extracted text

Sources capture different things, so the detector cascades through them
rather than fusing their output.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field

from narrastruct.detection.titles import clean_title, is_chapter_line, normalize_title
from narrastruct.models import ParagraphType
from narrastruct.segmentation.paragraphs import ParagraphSegmenter, heading_text

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT HINTS
# =============================================================================


@dataclass
class NavigationEntry:
    """One entry of an EPUB nav tree or PDF outline."""

    title: str
    offset: int  # absolute offset of the entry in the extracted text
    level: int = 1


@dataclass
class FormatHints:
    """Optional per-format metadata supplied by the format adapter."""

    navigation: list[NavigationEntry] = field(default_factory=list)
    page_breaks: list[int] = field(default_factory=list)  # page start offsets (PDF)
    title: str | None = None
    author: str | None = None
    language: str | None = None


@dataclass
class ChapterBoundary:
    """A proposed chapter boundary.

    ``start`` is where the chapter's heading begins and ``body_start`` is
    where its content begins. ``end`` stays None until the detector fills
    it from the next boundary.
    """

    start: int
    body_start: int
    end: int | None
    title: str
    raw_title: str
    level: int
    confidence: float  # raw detection confidence, 0.0 to 1.0
    source: str  # "navigation", "heading_marker", "page_heading", "chapter_line", "fallback"
    number: int | None = None
    is_fallback: bool = False
    node_type: str = "chapter"
    evidence: dict = field(default_factory=dict)


# =============================================================================
# SOURCES
# =============================================================================


class BoundarySource(ABC):
    """Abstract base for chapter boundary sources."""

    name: str = "base"

    @abstractmethod
    def extract(self, text: str, hints: FormatHints, base_offset: int = 0) -> list[ChapterBoundary]:
        """Propose boundaries in ``text``, which starts at ``base_offset``.

        Should return empty list if the source can't detect anything
        (graceful degradation).
        """
        pass


class HeadingMarkerSource(BoundarySource):
    """Markdown ATX (``# Title``) and setext (``Title\\n===``) headings.

    Headings at the configured chapter levels become boundaries. Fenced
    code is skipped because block scanning never looks inside fences.
    """

    name = "heading_marker"

    def __init__(
        self,
        levels: tuple[int, ...] = (1,),
        confidence: float = 0.9,
        segmenter: ParagraphSegmenter | None = None,
    ):
        """Initialize heading source.

        Args:
            levels: Heading levels that open a chapter.
            confidence: Raw confidence assigned to each heading.
            segmenter: Block scanner (default creates one).
        """
        self.levels = levels
        self.confidence = confidence
        self.segmenter = segmenter or ParagraphSegmenter()

    def extract(self, text: str, hints: FormatHints, base_offset: int = 0) -> list[ChapterBoundary]:
        """Collect headings at chapter levels."""
        boundaries = []
        for block in self.segmenter.segment(text, base_offset):
            if block.type is not ParagraphType.HEADING or block.heading_level not in self.levels:
                continue
            raw = heading_text(block)
            title, number = normalize_title(raw)
            marker = "atx" if block.text.lstrip().startswith("#") else "setext"
            boundaries.append(
                ChapterBoundary(
                    start=block.start,
                    body_start=block.end,
                    end=None,
                    title=title,
                    raw_title=raw,
                    level=block.heading_level,
                    confidence=self.confidence,
                    source=self.name,
                    number=number,
                    evidence={"marker": marker, "heading_level": block.heading_level},
                )
            )
        return boundaries


class NavigationHintSource(BoundarySource):
    """Boundaries from navigation entries (EPUB nav, PDF outline).

    Only the shallowest level present is used for chapters. When the entry
    offset points at a line that repeats the entry title, that line is
    treated as the heading and excluded from the chapter body.
    """

    name = "navigation"

    def __init__(self, confidence: float = 0.95):
        self.confidence = confidence

    def extract(self, text: str, hints: FormatHints, base_offset: int = 0) -> list[ChapterBoundary]:
        """Map navigation entries that fall inside the text to boundaries."""
        if not hints.navigation:
            return []

        text_end = base_offset + len(text)
        entries = [e for e in hints.navigation if base_offset <= e.offset < text_end]
        skipped = len(hints.navigation) - len(entries)
        if skipped:
            logger.warning("Ignoring %d navigation entries outside the text", skipped)
        if not entries:
            return []

        top_level = min(e.level for e in entries)
        boundaries = []
        seen_offsets: set[int] = set()
        for entry in sorted(entries, key=lambda e: e.offset):
            if entry.level != top_level or entry.offset in seen_offsets:
                continue
            seen_offsets.add(entry.offset)

            relative = entry.offset - base_offset
            line_end = text.find("\n", relative)
            if line_end == -1:
                line_end = len(text)
            line = clean_title(text[relative:line_end].lstrip("# "))
            heading_matches = bool(line) and line.lower() == clean_title(entry.title).lower()
            body_start = base_offset + line_end if heading_matches else entry.offset

            title, number = normalize_title(entry.title)
            boundaries.append(
                ChapterBoundary(
                    start=entry.offset,
                    body_start=body_start,
                    end=None,
                    title=title,
                    raw_title=entry.title,
                    level=entry.level,
                    confidence=self.confidence,
                    source=self.name,
                    number=number,
                    evidence={"heading_line_matched": heading_matches},
                )
            )
        return boundaries


_LINE_RE = re.compile(r"[^\n]*")
_NON_SPACE_RE = re.compile(r"\S")


def _line_at(text: str, relative: int) -> tuple[int, int]:
    """(start, end) of the line containing ``relative``."""
    start = text.rfind("\n", 0, relative) + 1
    end = text.find("\n", relative)
    return start, (len(text) if end == -1 else end)


def _next_line(text: str, line_end: int) -> tuple[int, int]:
    """(start, end) of the line after the one ending at ``line_end``.

    Returns an empty span at the end of the text.
    """
    if line_end >= len(text):
        return len(text), len(text)
    start = line_end + 1
    end = text.find("\n", start)
    return start, (len(text) if end == -1 else end)


def _is_blank_line_before(text: str, line_start: int) -> bool:
    if line_start == 0:
        return True
    previous_start, previous_end = _line_at(text, line_start - 1)
    return not text[previous_start:previous_end].strip()


def _is_short_title_line(line: str, max_words: int) -> bool:
    stripped = line.strip()
    words = stripped.split()
    return 0 < len(words) <= max_words and not stripped.endswith((".", ",", ";", ":"))


class ChapterLineSource(BoundarySource):
    """Standalone "Chapter N" / "PART ONE" lines in extracted text.

    A bare opener ("Chapter 3") followed by a short title line merges the
    two: "Chapter 3: The Storm".
    """

    name = "chapter_line"

    def __init__(self, confidence: float = 0.7, max_title_words: int = 12):
        self.confidence = confidence
        self.max_title_words = max_title_words

    def extract(self, text: str, hints: FormatHints, base_offset: int = 0) -> list[ChapterBoundary]:
        """Scan lines for chapter openers preceded by a blank line."""
        boundaries = []
        for match in _LINE_RE.finditer(text):
            line = match.group(0)
            if not line.strip() or len(line.split()) > self.max_title_words:
                continue
            if not is_chapter_line(line) or not _is_blank_line_before(text, match.start()):
                continue

            raw = line.strip()
            body_start = match.end()
            evidence: dict = {"pattern": "chapter_line"}

            title, number = normalize_title(raw)
            if ":" not in title:
                subtitle_start, subtitle_end = _next_line(text, body_start)
                subtitle = text[subtitle_start:subtitle_end]
                after_start, after_end = _next_line(text, subtitle_end)
                after = text[after_start:after_end]
                if _is_short_title_line(subtitle, self.max_title_words) and not after.strip():
                    raw = f"{raw}: {subtitle.strip()}"
                    title, number = normalize_title(raw)
                    body_start = subtitle_end
                    evidence["subtitle_line"] = True

            boundaries.append(
                ChapterBoundary(
                    start=base_offset + match.start(),
                    body_start=base_offset + body_start,
                    end=None,
                    title=title,
                    raw_title=raw,
                    level=1,
                    confidence=self.confidence,
                    source=self.name,
                    number=number,
                    evidence=evidence,
                )
            )
        return boundaries


class PageHeadingSource(BoundarySource):
    """Chapter openers at the top of PDF pages.

    Looks at the first non-blank line of each page. Chapter-pattern lines
    score highest; short ALL-CAPS lines also count unless they repeat on
    other pages, which marks them as running headers.
    """

    name = "page_heading"

    def __init__(
        self,
        confidence: float = 0.75,
        caps_confidence: float = 0.6,
        max_title_words: int = 10,
    ):
        self.confidence = confidence
        self.caps_confidence = caps_confidence
        self.max_title_words = max_title_words

    def extract(self, text: str, hints: FormatHints, base_offset: int = 0) -> list[ChapterBoundary]:
        """Score the opening line of each page."""
        if not hints.page_breaks:
            return []

        openings: list[tuple[int, int, str]] = []
        for page_offset in sorted(set(hints.page_breaks)):
            relative = page_offset - base_offset
            if relative < 0 or relative >= len(text):
                continue
            match = _NON_SPACE_RE.search(text, relative)
            if not match:
                continue
            line_start, line_end = _line_at(text, match.start())
            openings.append((line_start, line_end, text[line_start:line_end].strip()))

        # Lines repeating across pages are running headers, not chapters
        repeated = Counter(re.sub(r"\d+", "", line).strip().lower() for _, _, line in openings)

        boundaries = []
        for line_start, line_end, line in openings:
            evidence: dict = {"page_opening": True}
            if is_chapter_line(line):
                confidence = self.confidence
                evidence["chapter_pattern"] = True
            elif (
                line.isupper()
                and _is_short_title_line(line, self.max_title_words)
                and repeated[re.sub(r"\d+", "", line).strip().lower()] == 1
            ):
                confidence = self.caps_confidence
                evidence["all_caps"] = True
            else:
                continue

            title, number = normalize_title(line)
            boundaries.append(
                ChapterBoundary(
                    start=base_offset + line_start,
                    body_start=base_offset + line_end,
                    end=None,
                    title=title,
                    raw_title=line,
                    level=1,
                    confidence=confidence,
                    source=self.name,
                    number=number,
                    evidence=evidence,
                )
            )
        return boundaries
