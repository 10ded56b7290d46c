"""Tests for chapter boundary detection and title normalization."""

import pytest

from narrastruct.detection import (
    BoundarySource,
    ChapterLineSource,
    FormatHints,
    HeadingMarkerSource,
    NavigationEntry,
    NavigationHintSource,
    PageHeadingSource,
    StructureDetector,
    normalize_title,
    slugify,
)
from narrastruct.detection.titles import is_chapter_line, parse_number, roman_to_int
from narrastruct.exceptions import UnsupportedFormatError
from narrastruct.models import DocumentFormat
from narrastruct.profiles import ARTICLE_PROFILE

CHAPTER_LINES_TEXT = """Chapter 1
The Arrival

The train pulled into the station just after dark and nobody was waiting.

Chapter 2
The Departure

Three weeks later she left again, quietly and without a word to anyone.
"""


class TestNormalizeTitle:
    """Test canonical chapter titles."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Chapter 1: The Beginning", ("Chapter 1: The Beginning", 1)),
            ("Chapter 2", ("Chapter 2", 2)),
            ("CHAPTER IV - The Storm", ("Chapter 4: The Storm", 4)),
            ("chapter one: Arrival", ("Chapter 1: Arrival", 1)),
            ("3. Methods", ("Chapter 3: Methods", 3)),
            ("PART TWO", ("Part 2", 2)),
            ("The Storm", ("The Storm", None)),
            ("**Emphasised Title**", ("Emphasised Title", None)),
        ],
    )
    def test_normalize(self, raw, expected):
        """Prefixes are rewritten; plain titles pass through."""
        assert normalize_title(raw) == expected

    def test_number_parsing(self):
        """Digits, roman numerals and number words all parse."""
        assert parse_number("12") == 12
        assert parse_number("xiv") == 14
        assert parse_number("Seven") == 7
        assert parse_number("banana") is None
        assert roman_to_int("MCMXCIV") == 1994
        assert roman_to_int("IIII") is None

    def test_chapter_line(self):
        """Only recognised prefixes with a number are chapter lines."""
        assert is_chapter_line("Chapter 3")
        assert is_chapter_line("PART ONE")
        assert not is_chapter_line("Chapters of my life")
        assert not is_chapter_line("Chapter banana")

    def test_slugify(self):
        """Slugs are lowercase ASCII with hyphens."""
        assert slugify("Chapter 1: The Beginning") == "chapter-1-the-beginning"
        assert slugify("Café Society!") == "cafe-society"
        assert slugify("???") == "untitled"


class TestHeadingMarkers:
    """Test Markdown heading detection."""

    def test_markdown_chapters(self, book_markdown):
        """Top-level headings become chapter boundaries."""
        result = StructureDetector().detect(book_markdown, DocumentFormat.MARKDOWN)
        assert result.primary_source == "heading_marker"
        assert [b.title for b in result.boundaries] == [
            "Chapter 1: The Beginning",
            "Chapter 2: The Journey",
        ]
        assert not result.is_fallback

    def test_boundaries_cover_text(self, book_markdown):
        """Each boundary ends where the next starts; the last ends at the text end."""
        boundaries = StructureDetector().detect(book_markdown, "markdown").boundaries
        assert boundaries[0].end == boundaries[1].start
        assert boundaries[-1].end == len(book_markdown)
        for boundary in boundaries:
            assert boundary.start < boundary.body_start <= boundary.end

    def test_profile_levels(self):
        """The article profile treats second-level headings as chapters."""
        text = "# My Article\n\n## Introduction\n\nSome words.\n\n## Methods\n\nMore words."
        result = StructureDetector(profile=ARTICLE_PROFILE).detect(text, "markdown")
        assert [b.title for b in result.boundaries] == ["Introduction", "Methods"]
        # A lone title heading above the chapters is not a preamble
        assert not result.has_preamble

    def test_headings_inside_fences_are_ignored(self):
        """A # line inside fenced code is not a heading."""
        text = "```\n# not a chapter\n```\n\nPlain text follows."
        result = StructureDetector().detect(text, "markdown")
        assert result.is_fallback

    def test_setext_heading_evidence(self):
        """Setext headings are detected and recorded as such."""
        source = HeadingMarkerSource()
        (boundary,) = source.extract("Part One\n========\n\nBody.", FormatHints())
        assert boundary.evidence["marker"] == "setext"
        assert boundary.title == "Part 1"


class TestPreambleAndFallback:
    """Test preamble grouping and the fallback group."""

    def test_preamble(self):
        """Text before the first heading becomes an introduction group."""
        text = "Some opening words.\n\n# Chapter 1\n\nBody text."
        result = StructureDetector().detect(text, "markdown")
        preamble = result.boundaries[0]
        assert result.has_preamble
        assert preamble.source == "preamble"
        assert preamble.title == "Introduction"
        assert preamble.node_type == "paragraph-group"
        assert preamble.is_fallback

    def test_fallback_group(self, unheaded_markdown):
        """No boundaries gives one synthetic paragraph group below 0.5."""
        result = StructureDetector().detect(unheaded_markdown, "markdown")
        (boundary,) = result.boundaries
        assert result.is_fallback
        assert result.primary_source == "fallback"
        assert boundary.is_fallback
        assert boundary.node_type == "paragraph-group"
        assert boundary.confidence < 0.5
        assert boundary.title.startswith("The rain had not stopped")
        assert len(boundary.title) <= 50

    def test_fallback_title_from_hints(self, unheaded_markdown):
        """A hinted title names the fallback group."""
        result = StructureDetector().detect(
            unheaded_markdown, "markdown", FormatHints(title="Rain Notes")
        )
        assert result.boundaries[0].title == "Rain Notes"
        assert result.boundaries[0].evidence["slug"] == "rain-notes"

    def test_empty_text(self):
        """Empty text has no boundaries and no fallback."""
        result = StructureDetector().detect("  \n", "markdown")
        assert result.boundaries == []
        assert result.primary_source == "none"

    def test_unsupported_format(self):
        """Unknown format tags raise."""
        with pytest.raises(UnsupportedFormatError):
            StructureDetector().detect("text", "docx")


class TestExtractedTextSources:
    """Test PDF and EPUB sources."""

    def test_chapter_lines_with_subtitles(self):
        """A bare "Chapter N" line merges with a short title line below it."""
        result = StructureDetector().detect(CHAPTER_LINES_TEXT, "pdf")
        assert result.primary_source == "chapter_line"
        assert [b.title for b in result.boundaries] == [
            "Chapter 1: The Arrival",
            "Chapter 2: The Departure",
        ]
        assert result.boundaries[0].evidence["subtitle_line"] is True

    def test_article_profile_skips_chapter_lines(self):
        """Profiles can switch the chapter-line source off."""
        result = StructureDetector(profile=ARTICLE_PROFILE).detect(CHAPTER_LINES_TEXT, "pdf")
        assert result.is_fallback

    def test_page_openings(self):
        """Chapter lines at the top of PDF pages are boundaries."""
        page1 = "CHAPTER ONE\n\nThe first page holds the opening of the story.\n\n"
        page2 = "CHAPTER TWO\n\nThe second page continues with new events.\n"
        hints = FormatHints(page_breaks=[0, len(page1)])
        result = StructureDetector().detect(page1 + page2, "pdf", hints)
        assert result.primary_source == "page_heading"
        assert [b.title for b in result.boundaries] == ["Chapter 1", "Chapter 2"]

    def test_running_headers_are_not_chapters(self):
        """An ALL-CAPS line repeated on every page is a running header."""
        page = "THE LONG ROAD\n\nSome ordinary page text here.\n\n"
        hints = FormatHints(page_breaks=[0, len(page)])
        assert PageHeadingSource().extract(page + page, hints) == []

    def test_unique_caps_opening(self):
        """A unique ALL-CAPS opening scores lower than a chapter pattern."""
        page1 = "THE STORM\n\nRain fell all night.\n\n"
        page2 = "Ordinary text continues here.\n"
        hints = FormatHints(page_breaks=[0, len(page1)])
        (boundary,) = PageHeadingSource().extract(page1 + page2, hints)
        assert boundary.evidence["all_caps"] is True
        assert boundary.confidence == pytest.approx(0.6)

    def test_epub_navigation(self):
        """Navigation entries become boundaries; a matching heading line is skipped."""
        text = (
            "Prologue\nThe night was quiet and the town slept.\n\n"
            "The End\nMorning came and everyone went back to work.\n"
        )
        hints = FormatHints(
            navigation=[
                NavigationEntry("Prologue", 0),
                NavigationEntry("The End", text.index("The End")),
                NavigationEntry("Elsewhere", 10_000),
            ]
        )
        result = StructureDetector().detect(text, "epub", hints)
        assert result.primary_source == "navigation"
        first, second = result.boundaries
        assert (first.title, second.title) == ("Prologue", "The End")
        assert first.body_start == text.index("\n")
        assert first.evidence["heading_line_matched"] is True

    def test_navigation_uses_shallowest_level(self):
        """Deeper navigation entries do not become chapters."""
        text = "Part\nBody one.\n\nSection\nBody two.\n"
        hints = FormatHints(
            navigation=[
                NavigationEntry("Part", 0, level=1),
                NavigationEntry("Section", text.index("Section"), level=2),
            ]
        )
        boundaries = NavigationHintSource().extract(text, hints)
        assert [b.title for b in boundaries] == ["Part"]

    def test_chapter_line_needs_blank_line_before(self):
        """A chapter line inside running prose is not a boundary."""
        text = "As he said in\nChapter 3\nof the old book.\n"
        assert ChapterLineSource().extract(text, FormatHints()) == []


class TestCascade:
    """Test source ordering and graceful degradation."""

    def test_failing_source_is_skipped(self, book_markdown):
        """A source that raises is logged and the cascade continues."""

        class BrokenSource(BoundarySource):
            name = "broken"

            def extract(self, text, hints, base_offset=0):
                raise RuntimeError("boom")

        detector = StructureDetector()
        result = detector.run_cascade(
            [BrokenSource(), detector.heading_source()], book_markdown, FormatHints(), 0
        )
        assert result.primary_source == "heading_marker"
        assert "broken: 0 boundaries" in result.processing_log

    def test_base_offset(self, book_markdown):
        """Boundaries are reported in absolute offsets."""
        result = StructureDetector().detect(book_markdown, "markdown", base_offset=500)
        assert result.boundaries[0].start == 500
        assert result.boundaries[-1].end == 500 + len(book_markdown)
