"""
Paragraph and sentence segmentation.

- ParagraphSegmenter: blank-line blocks classified by block markers
- SentenceSegmenter: punctuation boundaries that tolerate abbreviations,
  decimals and ellipses
"""

from narrastruct.segmentation.paragraphs import (
    ParagraphBlock,
    ParagraphSegmenter,
    heading_text,
    narration_text,
)
from narrastruct.segmentation.sentences import SentenceSegmenter, SentenceSpan

__all__ = [
    "ParagraphBlock",
    "ParagraphSegmenter",
    "SentenceSegmenter",
    "SentenceSpan",
    "heading_text",
    "narration_text",
]
