"""
Confidence scoring.

- signals: independent [0, 1] signal functions per unit kind
- scorer: weighted combination, signal caps and the fallback ceiling
"""

from narrastruct.scoring.scorer import (
    ConfidenceScorer,
    ScoreBreakdown,
    SignalScore,
    clamp,
    dominant_source,
    meets_quality_threshold,
)
from narrastruct.scoring.signals import (
    CHAPTER_SIGNALS,
    DOCUMENT_SIGNALS,
    PARAGRAPH_SIGNALS,
    SENTENCE_SIGNALS,
    ScoringContext,
)

__all__ = [
    "ConfidenceScorer",
    "ScoreBreakdown",
    "SignalScore",
    "ScoringContext",
    "SENTENCE_SIGNALS",
    "PARAGRAPH_SIGNALS",
    "CHAPTER_SIGNALS",
    "DOCUMENT_SIGNALS",
    "clamp",
    "dominant_source",
    "meets_quality_threshold",
]
