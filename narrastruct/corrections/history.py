"""
Correction history.

An append-only, versioned log of every correction attempt per document.
Superseded writes stay in the log; ``latest_for`` answers "what was the
last applied change to this node" (last write wins).
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from narrastruct.models import StructureCorrection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded correction attempt."""

    document_id: str
    version: int  # 1-based, per document
    correction: StructureCorrection  # private copy taken at append time
    node_ids: tuple[str, ...]
    applied: bool
    recorded_at: datetime = field(default_factory=datetime.now)


class CorrectionHistory:
    """
    Thread-safe correction log keyed by document id.

    Usage:
        history = CorrectionHistory()
        entry = history.append("profile-my-book", correction)
        history.version("profile-my-book")  # 1
        history.latest_for("profile-my-book", "chapter-2")
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, list[HistoryEntry]] = defaultdict(list)

    def append(
        self,
        document_id: str,
        correction: StructureCorrection,
        node_ids: list[str] | tuple[str, ...] | None = None,
    ) -> HistoryEntry:
        """Record a correction attempt and return its entry."""
        touched = tuple(node_ids) if node_ids is not None else tuple(correction.target_ids)
        with self._lock:
            entries = self._entries[document_id]
            entry = HistoryEntry(
                document_id=document_id,
                version=len(entries) + 1,
                correction=copy.deepcopy(correction),
                node_ids=touched,
                applied=correction.applied,
            )
            entries.append(entry)
        logger.debug(
            "History %s v%d: %s (%s)",
            document_id,
            entry.version,
            correction.type.value,
            "applied" if entry.applied else "failed",
        )
        return entry

    def snapshot(self, document_id: str) -> tuple[HistoryEntry, ...]:
        with self._lock:
            return tuple(self._entries.get(document_id, ()))

    def version(self, document_id: str) -> int:
        with self._lock:
            return len(self._entries.get(document_id, ()))

    def latest_for(self, document_id: str, node_id: str) -> HistoryEntry | None:
        """Most recent applied entry touching ``node_id``."""
        with self._lock:
            for entry in reversed(self._entries.get(document_id, ())):
                if entry.applied and node_id in entry.node_ids:
                    return entry
        return None

    def document_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)
