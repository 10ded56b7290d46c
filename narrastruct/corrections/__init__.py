"""
Structure corrections.

- overlay: review nodes with status, overrides and soft deletion
- history: append-only versioned correction log
- engine: correction sessions, batch application and replay
- profiles: saved corrections, fingerprints and the profile store
"""

from narrastruct.corrections.engine import CorrectionEngine, CorrectionSession
from narrastruct.corrections.history import CorrectionHistory, HistoryEntry
from narrastruct.corrections.overlay import CorrectionOverlay, ReviewNode
from narrastruct.corrections.profiles import (
    CorrectionPatterns,
    CorrectionProfileStore,
    SavedCorrections,
    StructureFingerprint,
    document_id_for,
)

__all__ = [
    # Engine
    "CorrectionEngine",
    "CorrectionSession",
    # Overlay
    "CorrectionOverlay",
    "ReviewNode",
    # History
    "CorrectionHistory",
    "HistoryEntry",
    # Profiles
    "CorrectionPatterns",
    "CorrectionProfileStore",
    "SavedCorrections",
    "StructureFingerprint",
    "document_id_for",
]
