"""
Paragraph segmentation.

Splits chapter text into paragraph blocks on blank lines and classifies
each block by its block markers (fenced code, heading, table, quote, list).

Segmentation is purely local between blank lines that sit outside fenced
code: whatever precedes such a blank line never changes how the text after
it is split. The streaming segmenter relies on this to cut chunks safely.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from narrastruct.config import SegmentationConfig
from narrastruct.models import ParagraphType

logger = logging.getLogger(__name__)


# =============================================================================
# PATTERNS
# =============================================================================

FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
ATX_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")
SETEXT_UNDERLINE_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
THEMATIC_BREAK_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
TABLE_SEPARATOR_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)+\|?\s*$")
LIST_MARKER_RE = re.compile(r"^ {0,3}(?:[-*+]|\d{1,9}[.)])[ \t]+\S")
QUOTE_MARKER_RE = re.compile(r"^\s*>\s?")
INDENTED_CODE_RE = re.compile(r"^(?: {4}|\t)")


def _iter_lines(text: str):
    """Yield (start, content, terminated) for each "\\n"-separated line."""
    start = 0
    length = len(text)
    while start < length:
        newline = text.find("\n", start)
        if newline == -1:
            yield start, text[start:], False
            return
        yield start, text[start:newline], True
        start = newline + 1


@dataclass
class ParagraphBlock:
    """A paragraph-sized span of the source text."""

    text: str
    type: ParagraphType
    start: int  # absolute offset of the first character
    end: int  # absolute offset just past the last character
    include_in_audio: bool = True
    heading_level: int | None = None  # set for heading blocks


class ParagraphSegmenter:
    """Split text into classified paragraph blocks.

    Usage:
        segmenter = ParagraphSegmenter()
        for block in segmenter.segment(chapter_text, base_offset=1200):
            print(block.type, block.start, block.text[:40])
    """

    def __init__(self, config: SegmentationConfig | None = None):
        self.config = config or SegmentationConfig()
        self._excluded = {ParagraphType(t) for t in self.config.excluded_paragraph_types}

    def segment(self, text: str, base_offset: int = 0) -> list[ParagraphBlock]:
        """Split ``text`` into blocks with absolute offsets."""
        spans = self._scan(text)
        blocks = []
        for start, end in spans:
            block_text = text[start:end]
            lines = block_text.split("\n")
            if len(lines) == 1 and THEMATIC_BREAK_RE.match(lines[0]):
                logger.debug("Skipping thematic break at %d", base_offset + start)
                continue
            block_type, level = self._classify(lines)
            blocks.append(
                ParagraphBlock(
                    text=block_text,
                    type=block_type,
                    start=base_offset + start,
                    end=base_offset + end,
                    include_in_audio=block_type not in self._excluded,
                    heading_level=level,
                )
            )
        return blocks

    def safe_cut(self, text: str) -> int:
        """Offset just past the last blank line outside a fence.

        Only complete lines (terminated by a newline) are considered, so
        text after the returned offset may still grow. Returns 0 when no
        safe cut exists.
        """
        cut = 0
        fence: str | None = None
        for line_start, content, terminated in _iter_lines(text):
            if not terminated:
                break
            if fence:
                if content.strip().startswith(fence):
                    fence = None
                continue
            match = FENCE_RE.match(content)
            if match:
                fence = match.group(1)[:3]
            elif not content.strip():
                cut = line_start + len(content) + 1
        return cut

    def _scan(self, text: str) -> list[tuple[int, int]]:
        """Find (start, end) spans of blocks, relative to ``text``."""
        spans: list[tuple[int, int]] = []
        current_start: int | None = None
        current_end = 0
        fence: str | None = None

        def flush() -> None:
            nonlocal current_start
            if current_start is not None:
                spans.append((current_start, current_end))
                current_start = None

        for line_start, content, _terminated in _iter_lines(text):
            line_end = line_start + len(content)

            if fence:
                current_end = line_end
                if content.strip().startswith(fence):
                    fence = None
                    flush()
                continue

            if not content.strip():
                flush()
                continue

            match = FENCE_RE.match(content)
            if match:
                flush()
                fence = match.group(1)[:3]
                current_start, current_end = line_start, line_end
                continue

            if ATX_HEADING_RE.match(content):
                # ATX headings never share a block with the text below them
                flush()
                spans.append((line_start, line_end))
                continue

            if current_start is None:
                current_start = line_start
            current_end = line_end

        flush()
        return spans

    def _classify(self, lines: list[str]) -> tuple[ParagraphType, int | None]:
        """Classify a block by its markers. Returns (type, heading level)."""
        first = lines[0]

        if FENCE_RE.match(first):
            return ParagraphType.CODE, None

        atx = ATX_HEADING_RE.match(first)
        if atx and len(lines) == 1:
            return ParagraphType.HEADING, len(atx.group(1))

        if len(lines) >= 2 and SETEXT_UNDERLINE_RE.match(lines[-1]):
            return ParagraphType.HEADING, 1 if lines[-1].strip().startswith("=") else 2

        if all(INDENTED_CODE_RE.match(line) for line in lines):
            return ParagraphType.CODE, None

        if len(lines) >= 2 and (
            any("|" in line and TABLE_SEPARATOR_RE.match(line) for line in lines)
            or all(line.lstrip().startswith("|") for line in lines)
        ):
            return ParagraphType.TABLE, None

        if all(QUOTE_MARKER_RE.match(line) for line in lines):
            return ParagraphType.QUOTE, None

        if LIST_MARKER_RE.match(first):
            return ParagraphType.LIST, None

        return ParagraphType.TEXT, None


def heading_text(block: ParagraphBlock) -> str:
    """Title text of a heading block, without its markers."""
    lines = block.text.split("\n")
    atx = ATX_HEADING_RE.match(lines[0])
    if atx and len(lines) == 1:
        return atx.group(2).strip()
    return " ".join(line.strip() for line in lines[:-1]).strip()


def narration_text(block: ParagraphBlock) -> str:
    """Text of a block with heading and quote markers stripped.

    Other block types are returned unchanged.
    """
    if block.type is ParagraphType.HEADING:
        return heading_text(block)
    if block.type is ParagraphType.QUOTE:
        return "\n".join(QUOTE_MARKER_RE.sub("", line, count=1) for line in block.text.split("\n"))
    return block.text
