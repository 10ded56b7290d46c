"""Analysis profiles for structure detection.

Profiles enable document-type-specific configuration: which heading levels
mark chapters, which hint sources to trust, the acceptance threshold and
which validation rules apply.

Select one by name through AnalysisOptions(profile="book"), or pass
profile="auto" to let estimate_profile() pick from the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ALL_VALIDATORS: tuple[str, ...] = (
    "structure_presence",
    "chapter_title",
    "chapter_content",
    "paragraph",
    "sentence_length",
    "chapter_consistency",
    "boundary_integrity",
)


@dataclass(frozen=True)
class AnalysisProfile:
    """Configuration for document-type-specific structure analysis.

    Attributes:
        name: Profile identifier (e.g., "book", "article").
        description: Human-readable description.
        chapter_heading_levels: Markdown heading levels that open a chapter.
        use_navigation_hints: Trust EPUB navigation / PDF outline hints.
        use_page_hints: Look for chapter openings at PDF page starts.
        use_chapter_lines: Recognise standalone "Chapter N" lines in plain text.
        min_confidence: Acceptance threshold used when validating.
        validators: Names of the built-in validation rules to run.
    """

    name: str
    description: str
    chapter_heading_levels: tuple[int, ...] = (1,)
    use_navigation_hints: bool = True
    use_page_hints: bool = True
    use_chapter_lines: bool = True
    min_confidence: float = 0.7
    validators: tuple[str, ...] = ALL_VALIDATORS


BOOK_PROFILE = AnalysisProfile(
    name="book",
    description="Multi-chapter books with one top-level heading per chapter",
    chapter_heading_levels=(1,),
    min_confidence=0.7,
)

ARTICLE_PROFILE = AnalysisProfile(
    name="article",
    description="Articles with a single title heading and second-level sections",
    chapter_heading_levels=(2,),
    use_chapter_lines=False,  # articles rarely say "Chapter"
    min_confidence=0.6,
    validators=(
        "structure_presence",
        "chapter_title",
        "paragraph",
        "sentence_length",
        "boundary_integrity",
    ),
)

NOTES_PROFILE = AnalysisProfile(
    name="notes",
    description="Short notes and loosely structured text",
    chapter_heading_levels=(1, 2, 3),
    use_page_hints=False,
    min_confidence=0.5,  # more lenient - little structure expected
    validators=("structure_presence", "boundary_integrity"),
)

DEFAULT_PROFILE = AnalysisProfile(
    name="default",
    description="Balanced defaults for unknown document types",
)

PROFILES: dict[str, AnalysisProfile] = {
    "book": BOOK_PROFILE,
    "article": ARTICLE_PROFILE,
    "notes": NOTES_PROFILE,
    "default": DEFAULT_PROFILE,
}


def get_profile(name: str) -> AnalysisProfile:
    """Get a profile by name.

    Args:
        name: Profile name ("book", "article", "notes", "default").

    Returns:
        The requested AnalysisProfile.

    Raises:
        ValueError: If profile name is not recognized.
    """
    if name not in PROFILES:
        available = ", ".join(sorted(PROFILES.keys()))
        raise ValueError(f"Unknown profile '{name}'. Available: {available}")
    return PROFILES[name]


_H1_RE = re.compile(r"^ {0,3}#[ \t]+\S", re.MULTILINE)
_H2_RE = re.compile(r"^ {0,3}##[ \t]+\S", re.MULTILINE)

NOTES_MAX_WORDS = 1500


def estimate_profile(text: str) -> str:
    """Guess a profile name from heading counts and length.

    - "book": three or more top-level headings
    - "article": at most one top-level heading and several second-level ones
    - "notes": short text without top-level headings
    - "default": anything else
    """
    h1 = len(_H1_RE.findall(text))
    h2 = len(_H2_RE.findall(text))
    if h1 >= 3:
        return "book"
    if h1 <= 1 and h2 >= 2:
        return "article"
    if h1 == 0 and len(text.split()) < NOTES_MAX_WORDS:
        return "notes"
    return "default"
