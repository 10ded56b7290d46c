"""
Per-run processing metrics.

A MetricsCollector belongs to exactly one analysis run at a time. The
analyzer resets it at the start of every run and snapshots it into the
resulting DocumentStructure. There is no process-wide collector: pass one
in explicitly if you want to read timings from outside.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime

from narrastruct.models import ProcessingMetrics

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Counters and timers for one analysis run.

    Usage:
        metrics = MetricsCollector()
        metrics.reset()
        with metrics.timer("detection"):
            ...
        metrics.increment("chapters", 3)
        snapshot = metrics.snapshot()
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Start a new run, discarding everything recorded so far."""
        self.started_at = datetime.now()
        self._start = time.perf_counter()
        self.counters: dict[str, int] = defaultdict(int)
        self.timings: dict[str, float] = defaultdict(float)
        self.chunks_processed = 0
        self.characters_processed = 0

    def increment(self, name: str, n: int = 1) -> None:
        self.counters[name] += n

    def record_chunk(self, characters: int) -> None:
        """Count one streamed chunk."""
        self.chunks_processed += 1
        self.characters_processed += characters

    @contextmanager
    def timer(self, name: str):
        """Accumulate wall time (ms) spent inside the block under ``name``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name] += (time.perf_counter() - start) * 1000

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def snapshot(self) -> ProcessingMetrics:
        """Freeze the current values into a ProcessingMetrics."""
        metrics = ProcessingMetrics(
            started_at=self.started_at,
            duration_ms=round(self.elapsed_ms, 3),
            chunks_processed=self.chunks_processed,
            characters_processed=self.characters_processed,
            counters=dict(self.counters),
            timings={k: round(v, 3) for k, v in self.timings.items()},
        )
        logger.debug(
            "Metrics snapshot: %.1fms, %d chunks, counters=%s",
            metrics.duration_ms,
            metrics.chunks_processed,
            metrics.counters,
        )
        return metrics
