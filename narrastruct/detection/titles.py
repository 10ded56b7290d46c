"""
Chapter title normalization.

Recognises numeric and textual chapter prefixes and rewrites them into a
canonical form. The prefix never affects where a boundary is detected,
only how the title reads:

    "Chapter 2"               -> "Chapter 2"
    "CHAPTER IV - The Storm"  -> "Chapter 4: The Storm"
    "chapter one: Arrival"    -> "Chapter 1: Arrival"
    "3. Methods"              -> "Chapter 3: Methods"
    "PART TWO"                -> "Part 2"
"""

from __future__ import annotations

import re
import unicodedata

# =============================================================================
# CONSTANTS
# =============================================================================

NUMBER_WORDS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14, "fifteen": 15,
    "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
}

ROMAN_RE = re.compile(r"^M{0,3}(CM|CD|D?C{0,3})(XC|XL|L?X{0,3})(IX|IV|V?I{0,3})$", re.IGNORECASE)
ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100, "d": 500, "m": 1000}

PREFIX_RE = re.compile(
    r"^(?P<kind>chapter|chap\.|ch\.|part)\s+(?P<num>[0-9]+|[a-z]+)\b\.?"
    r"\s*(?:[:.\-–—]\s*)?(?P<rest>.*)$",
    re.IGNORECASE,
)
NUMERIC_PREFIX_RE = re.compile(r"^(?P<num>\d{1,3})[.)]\s+(?P<rest>\S.*)$")
EMPHASIS_RE = re.compile(r"^(\*{1,2}|_{1,2})(.+)\1$")

SLUG_MAX_LENGTH = 60


def roman_to_int(value: str) -> int | None:
    """Convert a roman numeral, or return None if it is not a valid one."""
    if not value or not ROMAN_RE.match(value):
        return None
    total = 0
    previous = 0
    for char in reversed(value.lower()):
        current = ROMAN_VALUES[char]
        if current < previous:
            total -= current
        else:
            total += current
            previous = current
    return total


def parse_number(token: str) -> int | None:
    """Parse "3", "iv" or "three" into an int."""
    if token.isdigit():
        return int(token)
    lowered = token.lower()
    if lowered in NUMBER_WORDS:
        return NUMBER_WORDS[lowered]
    return roman_to_int(token)


def clean_title(raw: str) -> str:
    """Collapse whitespace and strip wrapping emphasis markers."""
    title = " ".join(raw.split())
    match = EMPHASIS_RE.match(title)
    if match:
        title = match.group(2).strip()
    return title


def normalize_title(raw: str) -> tuple[str, int | None]:
    """Canonicalise a chapter title.

    Returns:
        (title, number) where number is the chapter/part number if a
        prefix was recognised, else None.
    """
    title = clean_title(raw)

    match = PREFIX_RE.match(title)
    if match:
        number = parse_number(match.group("num"))
        if number is not None:
            kind = "Part" if match.group("kind").lower() == "part" else "Chapter"
            rest = match.group("rest").strip()
            canonical = f"{kind} {number}"
            return (f"{canonical}: {rest}" if rest else canonical), number

    match = NUMERIC_PREFIX_RE.match(title)
    if match:
        number = int(match.group("num"))
        return f"Chapter {number}: {match.group('rest').strip()}", number

    return title, None


def is_chapter_line(line: str) -> bool:
    """Whether a standalone line reads like a chapter/part opener."""
    match = PREFIX_RE.match(clean_title(line))
    return bool(match) and parse_number(match.group("num")) is not None


def slugify(value: str) -> str:
    """Lowercase ASCII slug: "Chapter 1: The Beginning" -> "chapter-1-the-beginning"."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "untitled"
