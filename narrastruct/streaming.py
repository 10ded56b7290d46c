"""
Chunked paragraph segmentation.

Large documents can be fed in pieces. The streaming segmenter buffers
incoming text, cuts it at the last blank line outside a fenced block and
segments only the complete prefix; the tail waits for the next chunk.
Because paragraph segmentation is local between such blank lines, the
blocks produced are identical to segmenting the whole text at once.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from narrastruct.exceptions import AnalysisCancelledError
from narrastruct.metrics import MetricsCollector
from narrastruct.segmentation.paragraphs import ParagraphBlock, ParagraphSegmenter

logger = logging.getLogger(__name__)


def normalize_newlines(text: str) -> str:
    """Convert "\\r\\n" and lone "\\r" line endings to "\\n"."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def iter_chunks(text: str, chunk_size: int) -> Iterator[str]:
    """Yield ``text`` in pieces of at most ``chunk_size`` characters."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    for start in range(0, len(text), chunk_size):
        yield text[start : start + chunk_size]


class CancellationToken:
    """Cooperative cancel flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def reset(self) -> None:
        self._event.clear()


class StreamingSegmenter:
    """
    Segment a document arriving in chunks.

    Usage:
        streamer = StreamingSegmenter(ParagraphSegmenter(), on_progress=print)
        text, blocks = streamer.run(iter_chunks(content, 8192), total_size=len(content))

    Or drive it by hand:
        blocks = []
        for chunk in chunks:
            blocks.extend(streamer.feed(chunk))
        blocks.extend(streamer.finish())
    """

    def __init__(
        self,
        segmenter: ParagraphSegmenter | None = None,
        chunk_size: int = 64 * 1024,
        on_progress: Callable[[float], None] | None = None,
        cancel: Any = None,
        metrics: MetricsCollector | None = None,
    ):
        self.segmenter = segmenter or ParagraphSegmenter()
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self.cancel = cancel
        self.metrics = metrics
        self._reset()

    def _reset(self) -> None:
        self._parts: list[str] = []
        self._buffer = ""
        self._consumed = 0  # offset of the first buffered character
        self._pending_cr = False

    @property
    def text(self) -> str:
        """Normalized text received so far, including the unsegmented tail."""
        return "".join(self._parts)

    # -------------------------------------------------------------------------
    # Incremental interface
    # -------------------------------------------------------------------------

    def feed(self, chunk: str) -> list[ParagraphBlock]:
        """Add a chunk; return the blocks that are now complete."""
        if self._pending_cr:
            chunk = "\r" + chunk
            self._pending_cr = False
        # A "\r" at the end may be the first half of "\r\n"
        if chunk.endswith("\r"):
            chunk = chunk[:-1]
            self._pending_cr = True
        chunk = normalize_newlines(chunk)
        self._parts.append(chunk)
        self._buffer += chunk

        cut = self.segmenter.safe_cut(self._buffer)
        if cut == 0:
            return []
        blocks = self.segmenter.segment(self._buffer[:cut], self._consumed)
        self._consumed += cut
        self._buffer = self._buffer[cut:]
        return blocks

    def finish(self) -> list[ParagraphBlock]:
        """Flush the tail; the segmenter is ready for a new document afterwards."""
        if self._pending_cr:
            self._parts.append("\n")
            self._buffer += "\n"
            self._pending_cr = False
        blocks = self.segmenter.segment(self._buffer, self._consumed) if self._buffer else []
        self._consumed += len(self._buffer)
        self._buffer = ""
        return blocks

    # -------------------------------------------------------------------------
    # Whole-document driver
    # -------------------------------------------------------------------------

    def run(
        self, chunks: Iterable[str], total_size: int | None = None
    ) -> tuple[str, list[ParagraphBlock]]:
        """Consume every chunk and return (normalized text, blocks).

        ``total_size`` (in characters) enables per-chunk progress; without
        it progress is only reported once, at the end.

        Raises:
            AnalysisCancelledError: If the cancel signal is set between chunks.
        """
        self._reset()
        if total_size is None and isinstance(chunks, (list, tuple)):
            total_size = sum(len(chunk) for chunk in chunks)

        blocks: list[ParagraphBlock] = []
        received = 0
        count = 0
        last_progress = 0.0
        for chunk in chunks:
            if self.cancel is not None and self.cancel.is_set():
                logger.info("Streaming cancelled after %d chunks", count)
                self._reset()
                raise AnalysisCancelledError(count)

            blocks.extend(self.feed(chunk))
            count += 1
            received += len(chunk)
            if self.metrics is not None:
                self.metrics.record_chunk(len(chunk))

            if total_size:
                last_progress = min(100.0, round(received / total_size * 100, 2))
                self._report(last_progress)

        blocks.extend(self.finish())
        if last_progress < 100.0:
            self._report(100.0)

        if self.metrics is not None:
            self.metrics.increment("blocks", len(blocks))
        logger.debug("Streamed %d chunks into %d blocks", count, len(blocks))
        return self.text, blocks

    def _report(self, percentage: float) -> None:
        if self.on_progress is not None:
            self.on_progress(percentage)
