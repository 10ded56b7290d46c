"""Tests for chunked segmentation and streaming analysis."""

import pytest

from narrastruct import AnalysisOptions, CancellationToken, StreamingOptions
from narrastruct.exceptions import AnalysisCancelledError
from narrastruct.segmentation.paragraphs import ParagraphSegmenter
from narrastruct.streaming import StreamingSegmenter, iter_chunks, normalize_newlines

FENCED_TEXT = "Intro line.\n\n```\ncode\n\nmore code\n```\n\nAfter the fence.\n\n- one\n- two\n"


class TestChunking:
    """Test the chunk helpers."""

    def test_iter_chunks(self):
        """Chunks cover the text in order."""
        assert list(iter_chunks("abcdefg", 3)) == ["abc", "def", "g"]
        assert list(iter_chunks("", 3)) == []

    def test_chunk_size_must_be_positive(self):
        """A chunk size below 1 is rejected."""
        with pytest.raises(ValueError):
            list(iter_chunks("abc", 0))

    def test_normalize_newlines(self):
        """CRLF and lone CR become LF."""
        assert normalize_newlines("a\r\nb\rc\n") == "a\nb\nc\n"


class TestStreamingSegmenter:
    """Test that chunked segmentation matches whole-text segmentation."""

    @pytest.mark.parametrize("chunk_size", [1, 5, 16, 1000])
    def test_blocks_match_whole_text(self, book_markdown, chunk_size):
        """Any chunk size gives the same blocks as one pass."""
        text, blocks = StreamingSegmenter().run(iter_chunks(book_markdown, chunk_size))
        assert text == book_markdown
        assert blocks == ParagraphSegmenter().segment(book_markdown)

    @pytest.mark.parametrize("chunk_size", [3, 8, 13])
    def test_fences_across_chunks(self, chunk_size):
        """Blank lines inside a fence never cut it in two."""
        _, blocks = StreamingSegmenter().run(iter_chunks(FENCED_TEXT, chunk_size))
        assert blocks == ParagraphSegmenter().segment(FENCED_TEXT)

    def test_crlf_split_across_chunks(self):
        """A CR at a chunk end and LF at the next start is one newline."""
        text, blocks = StreamingSegmenter().run(["First.\r", "\n\r", "\nSecond.\r"])
        assert text == "First.\n\nSecond.\n"
        assert [b.text for b in blocks] == ["First.", "Second."]

    def test_feed_and_finish(self):
        """The incremental interface holds back the incomplete tail."""
        streamer = StreamingSegmenter()
        assert streamer.feed("One.\n\nTw") == [streamer.segmenter.segment("One.\n\n")[0]]
        assert streamer.feed("o.") == []
        (block,) = streamer.finish()
        assert block.text == "Two."
        assert block.start == 6


class TestProgressAndCancel:
    """Test progress reporting and cooperative cancellation."""

    def test_progress_ends_at_100(self, book_markdown):
        """Progress is reported per chunk and finishes at 100."""
        seen = []
        StreamingSegmenter(on_progress=seen.append).run(
            iter_chunks(book_markdown, 50), total_size=len(book_markdown)
        )
        assert seen[-1] == 100.0
        assert seen == sorted(seen)
        assert len(seen) > 1

    def test_progress_without_total(self, book_markdown):
        """Without a total size progress is reported once, at the end."""
        seen = []
        StreamingSegmenter(on_progress=seen.append).run(iter_chunks(book_markdown, 50))
        assert seen == [100.0]

    def test_cancel_between_chunks(self, book_markdown):
        """Setting the token stops the run before the next chunk."""
        token = CancellationToken()
        streamer = StreamingSegmenter(on_progress=lambda _: token.cancel(), cancel=token)
        with pytest.raises(AnalysisCancelledError) as excinfo:
            streamer.run(iter_chunks(book_markdown, 50), total_size=len(book_markdown))
        assert excinfo.value.chunks_processed == 1

    def test_token_reset(self):
        """A token can be cleared for reuse."""
        token = CancellationToken()
        token.cancel()
        assert token.is_set()
        token.reset()
        assert not token.is_set()


class TestStreamingAnalysis:
    """Test streaming through the analyzer."""

    def test_streaming_matches_whole_text(self, analyzer, book_markdown):
        """Chapters are identical with and without streaming."""
        whole = analyzer.analyze(book_markdown, "markdown")
        options = AnalysisOptions(streaming=StreamingOptions(enabled=True, chunk_size=16))
        streamed = analyzer.analyze(book_markdown, "markdown", options)

        assert [c.to_dict() for c in streamed.document_structure.chapters] == [
            c.to_dict() for c in whole.document_structure.chapters
        ]
        assert streamed.confidence == whole.confidence
        metrics = streamed.document_structure.processing_metrics
        assert metrics.chunks_processed == len(list(iter_chunks(book_markdown, 16)))
        assert metrics.characters_processed == len(book_markdown)

    def test_non_streaming_is_one_chunk(self, book_result, book_markdown):
        """A plain analysis records a single chunk."""
        metrics = book_result.document_structure.processing_metrics
        assert metrics.chunks_processed == 1
        assert metrics.characters_processed == len(book_markdown)

    def test_analyze_stream_bytes(self, analyzer):
        """Byte chunks may split a multi-byte character."""
        text = "# Café Society\n\nThe café was full of émigrés every evening.\n"
        data = text.encode("utf-8")
        split = data.index("é".encode("utf-8")) + 1
        result = analyzer.analyze_stream([data[:split], data[split:]], "markdown")

        expected = analyzer.analyze(text, "markdown")
        assert [c.to_dict() for c in result.document_structure.chapters] == [
            c.to_dict() for c in expected.document_structure.chapters
        ]
        assert result.document_structure.chapters[0].title == "Café Society"

    def test_analyze_stream_invalid_utf8(self, analyzer):
        """Undecodable bytes give an error result."""
        result = analyzer.analyze_stream([b"\xff\xfe broken"], "markdown")
        assert result.document_structure.processing_errors[0].startswith(
            "Content is not valid UTF-8"
        )

    def test_cancelled_analysis(self, analyzer, book_markdown):
        """A cancelled run returns a flagged zero-confidence result."""
        token = CancellationToken()
        token.cancel()
        options = AnalysisOptions(
            streaming=StreamingOptions(enabled=True, chunk_size=32, cancel=token)
        )
        result = analyzer.analyze(book_markdown, "markdown", options)
        assert result.cancelled
        assert result.confidence == 0.0
        assert not result.meets_threshold
        assert "cancelled" in result.document_structure.processing_errors[0]

    def test_streaming_options_validate(self):
        """The chunk size must be positive."""
        with pytest.raises(ValueError):
            StreamingOptions(chunk_size=0)
