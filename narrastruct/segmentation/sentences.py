"""
Sentence segmentation.

Splits paragraph text on sentence-terminating punctuation while tolerating
abbreviations, decimals and ellipses. Locale only changes the terminator
set, unless the config supplies a locale-specific abbreviation list.

The spans cover the input exactly: rejoining each span's prefix, text and
separator reproduces the original paragraph text character for character.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from narrastruct.config import SegmentationConfig

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

BASE_TERMINATORS = ".!?…"
ELLIPSIS_CHAR = "…"

# Full-width terminators end a sentence without trailing whitespace.
NO_SPACE_TERMINATORS = frozenset("。！？")

# Closing quotes and brackets that belong to the sentence they end.
CLOSERS = frozenset("\"')]}»”’")

# Opening punctuation stripped before abbreviation matching: "(Dr." -> "Dr."
OPENERS = "\"'([{«“‘"

ACRONYM_RE = re.compile(r"^(?:[A-Za-z]\.){2,}$")  # U.S.A., e.g., i.e.
INITIAL_RE = re.compile(r"^[A-Z]\.$")  # J. in "J. R. R. Tolkien"
INLINE_MARKUP_RE = re.compile(r"\*\*?[^*\s][^*]*\*|__?[^_\s][^_]*_|`[^`]+`|\[[^\]]+\]\([^)]*\)")


@dataclass
class SentenceSpan:
    """One sentence located in its paragraph text."""

    text: str  # stripped of surrounding whitespace
    start: int  # offset in the segmented text
    end: int
    separator: str = ""  # whitespace up to the next sentence (or end of text)
    prefix: str = ""  # leading whitespace; only ever set on the first span

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class SentenceSegmenter:
    """Split paragraph text into sentences.

    Usage:
        segmenter = SentenceSegmenter()
        spans = segmenter.segment("Dr. Smith arrived. He sat down.")
        [s.text for s in spans]
        # ['Dr. Smith arrived.', 'He sat down.']
    """

    def __init__(self, config: SegmentationConfig | None = None):
        self.config = config or SegmentationConfig()

    def terminators_for(self, language: str | None) -> str:
        """Terminator characters for a language (base set plus locale marks)."""
        if not language:
            return BASE_TERMINATORS
        base_language = language.lower().split("-")[0].split("_")[0]
        return BASE_TERMINATORS + self.config.locale_terminators.get(base_language, "")

    def abbreviations_for(self, language: str | None) -> frozenset[str]:
        """Base abbreviations plus any supplied for the language."""
        if not language:
            return self.config.abbreviations
        base_language = language.lower().split("-")[0].split("_")[0]
        extra = self.config.locale_abbreviations.get(base_language)
        if not extra:
            return self.config.abbreviations
        return self.config.abbreviations | extra

    def segment(self, text: str, language: str | None = None) -> list[SentenceSpan]:
        """Split ``text`` into sentence spans."""
        terminators = self.terminators_for(language)
        abbreviations = self.abbreviations_for(language)
        length = len(text)

        ends: list[int] = []
        i = 0
        while i < length:
            if text[i] not in terminators:
                i += 1
                continue

            # Treat a run of terminators ("?!", "...") as one mark
            run_end = i
            while run_end < length and text[run_end] in terminators:
                run_end += 1
            close_end = run_end
            while close_end < length and text[close_end] in CLOSERS:
                close_end += 1

            if self._is_boundary(text, i, run_end, close_end, abbreviations):
                ends.append(close_end)
            i = close_end

        spans = self._build_spans(text, ends)
        logger.debug("Segmented %d chars into %d sentence(s)", length, len(spans))
        return spans

    def split(self, text: str, language: str | None = None) -> list[str]:
        """Convenience wrapper returning sentence strings."""
        return [span.text for span in self.segment(text, language)]

    @staticmethod
    def rejoin(spans: list[SentenceSpan]) -> str:
        """Reassemble the original text from its spans."""
        return "".join(span.prefix + span.text + span.separator for span in spans)

    @staticmethod
    def has_formatting(text: str) -> bool:
        """Whether text carries inline markup (emphasis, code, links)."""
        return bool(INLINE_MARKUP_RE.search(text))

    def _is_boundary(
        self,
        text: str,
        run_start: int,
        run_end: int,
        close_end: int,
        abbreviations: frozenset[str],
    ) -> bool:
        """Decide whether the terminator run at ``run_start`` ends a sentence."""
        run = text[run_start:run_end]
        length = len(text)

        if close_end >= length:
            return True

        if run[-1] in NO_SPACE_TERMINATORS:
            return True

        following = text[close_end]
        if not following.isspace():
            # Decimals (3.14), dotted acronyms mid-token (U.S.A), file.txt
            return False

        if ELLIPSIS_CHAR in run or run.count(".") >= 2:
            return self._ellipsis_ends_sentence(text, close_end)

        if run == ".":
            token = self._token_before(text, run_start)
            if self._is_abbreviation(token, abbreviations):
                return False
            if token.lower() in self.config.context_abbreviations:
                return not self._continues(text, close_end)

        return True

    @staticmethod
    def _continues(text: str, after: int) -> bool:
        """Whether the next token starts with a digit or a lowercase letter."""
        rest = text[after:].lstrip().lstrip(OPENERS)
        return bool(rest) and (rest[0].isdigit() or rest[0].islower())

    @staticmethod
    def _ellipsis_ends_sentence(text: str, after: int) -> bool:
        """An ellipsis splits only before whitespace and a capitalized clause."""
        pos = after
        length = len(text)
        while pos < length and text[pos].isspace():
            pos += 1
        while pos < length and text[pos] in OPENERS:
            pos += 1
        if pos >= length:
            return True
        return text[pos].isupper()

    @staticmethod
    def _token_before(text: str, period_index: int) -> str:
        """The whitespace-delimited token ending with the period."""
        start = period_index
        while start > 0 and not text[start - 1].isspace():
            start -= 1
        return text[start : period_index + 1].lstrip(OPENERS)

    def _is_abbreviation(self, token: str, abbreviations: frozenset[str]) -> bool:
        if not token or token == ".":
            return False
        if token.lower() in abbreviations:
            return True
        if ACRONYM_RE.match(token):
            return True
        return self.config.treat_initials_as_abbreviations and bool(INITIAL_RE.match(token))

    @staticmethod
    def _build_spans(text: str, ends: list[int]) -> list[SentenceSpan]:
        """Turn boundary offsets into stripped spans with separators."""
        length = len(text)
        if not ends or ends[-1] < length:
            ends = ends + [length]

        spans: list[SentenceSpan] = []
        cursor = 0
        for end in ends:
            start = cursor
            while start < end and text[start].isspace():
                start += 1
            stop = end
            while stop > start and text[stop - 1].isspace():
                stop -= 1
            cursor = end
            if start >= stop:
                continue
            spans.append(SentenceSpan(text=text[start:stop], start=start, end=stop))

        for index, span in enumerate(spans):
            next_start = spans[index + 1].start if index + 1 < len(spans) else length
            span.separator = text[span.end : next_start]
        if spans:
            spans[0].prefix = text[: spans[0].start]
        return spans
