"""Tests for paragraph segmentation and classification."""

import pytest

from narrastruct.config import SegmentationConfig
from narrastruct.models import ParagraphType
from narrastruct.segmentation.paragraphs import ParagraphSegmenter, heading_text, narration_text


@pytest.fixture
def segmenter():
    return ParagraphSegmenter()


def types_of(blocks):
    return [b.type for b in blocks]


class TestBlockSplitting:
    """Test splitting text on blank lines."""

    def test_blank_lines_separate_blocks(self, segmenter):
        """Each blank-line separated run is one block."""
        text = "First para.\n\nSecond para."
        blocks = segmenter.segment(text)
        assert [b.text for b in blocks] == ["First para.", "Second para."]

    def test_offsets_are_absolute(self, segmenter):
        """Offsets include the base offset and slice back to the block text."""
        text = "First para.\n\nSecond para."
        blocks = segmenter.segment(text, base_offset=100)
        assert blocks[0].start == 100
        assert blocks[1].start == 113
        for block in blocks:
            assert text[block.start - 100 : block.end - 100] == block.text

    def test_multiline_block(self, segmenter):
        """Lines without a blank between them stay together."""
        blocks = segmenter.segment("one\ntwo\nthree")
        assert len(blocks) == 1
        assert blocks[0].text == "one\ntwo\nthree"

    def test_thematic_break_is_skipped(self, segmenter):
        """A lone --- or *** line produces no block."""
        blocks = segmenter.segment("Before.\n\n---\n\nAfter.\n\n***")
        assert [b.text for b in blocks] == ["Before.", "After."]

    def test_empty_text(self, segmenter):
        """Empty text has no blocks."""
        assert segmenter.segment("") == []
        assert segmenter.segment("\n\n   \n") == []


class TestClassification:
    """Test block type classification."""

    def test_atx_heading(self, segmenter):
        """ATX headings carry their level and never share a block."""
        blocks = segmenter.segment("## Section\nBody right below.")
        assert types_of(blocks) == [ParagraphType.HEADING, ParagraphType.TEXT]
        assert blocks[0].heading_level == 2
        assert heading_text(blocks[0]) == "Section"

    def test_setext_headings(self, segmenter):
        """= underlines give level 1, - underlines give level 2."""
        first, second = segmenter.segment("Title\n=====\n\nSub\n---")
        assert (first.type, first.heading_level) == (ParagraphType.HEADING, 1)
        assert (second.type, second.heading_level) == (ParagraphType.HEADING, 2)
        assert heading_text(first) == "Title"

    def test_fenced_code_keeps_blank_lines(self, segmenter):
        """A fence is one block even with blank lines inside."""
        text = "```\ncode\n\n# not a heading\n```\n\nAfter."
        blocks = segmenter.segment(text)
        assert types_of(blocks) == [ParagraphType.CODE, ParagraphType.TEXT]
        assert "# not a heading" in blocks[0].text

    def test_indented_code(self, segmenter):
        """Blocks indented four spaces are code."""
        blocks = segmenter.segment("    x = 1\n    y = 2")
        assert types_of(blocks) == [ParagraphType.CODE]

    def test_list_quote_table(self, segmenter):
        """Lists, quotes and pipe tables are recognised."""
        text = "- one\n- two\n\n> quoted\n> more\n\n| a | b |\n|---|---|\n| 1 | 2 |"
        assert types_of(segmenter.segment(text)) == [
            ParagraphType.LIST,
            ParagraphType.QUOTE,
            ParagraphType.TABLE,
        ]

    def test_excluded_types_are_not_narrated(self, segmenter):
        """Code and tables are excluded from audio by default."""
        text = "```\nx\n```\n\nProse here."
        code, prose = segmenter.segment(text)
        assert code.include_in_audio is False
        assert prose.include_in_audio is True

    def test_excluded_types_are_configurable(self):
        """Excluded types come from SegmentationConfig."""
        segmenter = ParagraphSegmenter(SegmentationConfig(excluded_paragraph_types=("quote",)))
        quote, code = segmenter.segment("> said\n\n```\nx\n```")
        assert quote.include_in_audio is False
        assert code.include_in_audio is True

    def test_narration_text_strips_quote_markers(self, segmenter):
        """Quote markers are removed for narration."""
        (block,) = segmenter.segment("> quoted\n> more")
        assert narration_text(block) == "quoted\nmore"


class TestSafeCut:
    """Test the streaming cut point."""

    def test_cut_after_blank_line(self, segmenter):
        """The cut sits just past the last blank line."""
        assert segmenter.safe_cut("a\n\nb") == 3
        assert segmenter.safe_cut("a\n\nb\n") == 3

    def test_no_blank_line(self, segmenter):
        """Without a blank line there is no safe cut."""
        assert segmenter.safe_cut("a\nb\n") == 0

    def test_unterminated_blank_line_is_ignored(self, segmenter):
        """Only complete lines count."""
        assert segmenter.safe_cut("a\n  ") == 0

    def test_no_cut_inside_open_fence(self, segmenter):
        """Blank lines inside an unclosed fence are not safe."""
        assert segmenter.safe_cut("```\na\n\nb\n") == 0

    def test_cut_after_closed_fence(self, segmenter):
        """Once the fence closes, a following blank line is safe again."""
        text = "```\na\n\nb\n```\n\nc"
        assert segmenter.safe_cut(text) == text.index("c")
