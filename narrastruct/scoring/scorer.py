"""
Confidence scorer.

Combines weighted signals into a score in [0, 1] for every sentence,
paragraph, chapter and the document:

    score = sum(weight_i * signal_i) / sum(weight_i), clamped to [0, 1]

then, for each signal listed in ScoringConfig.signal_caps,

    score = min(score, cap + signal_score)

Fallback chapters are finally held at or below the fallback ceiling.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from narrastruct.config import ScoringConfig
from narrastruct.exceptions import ConfigurationError
from narrastruct.models import Chapter, DocumentStructure, Paragraph, ParagraphType, Sentence
from narrastruct.scoring.signals import SIGNAL_REGISTRY, ScoringContext, Signal

logger = logging.getLogger(__name__)

SCORE_PRECISION = 4


@dataclass
class SignalScore:
    """One signal's contribution."""

    name: str
    score: float
    weight: float


@dataclass
class ScoreBreakdown:
    """A combined score and the signals behind it."""

    score: float
    signals: list[SignalScore] = field(default_factory=list)
    capped_by: str | None = None  # signal cap or "fallback" that limited the score

    def as_dict(self) -> dict[str, float]:
        return {s.name: s.score for s in self.signals}


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def meets_quality_threshold(structure: DocumentStructure, threshold: float) -> bool:
    """Whether the document confidence reaches ``threshold``."""
    return structure.confidence >= threshold


class ConfidenceScorer:
    """Score units from weighted signals.

    Usage:
        scorer = ConfidenceScorer()
        scorer.score_structure(structure)  # scores every level in place
        print(structure.confidence)

    Custom signals:
        scorer = ConfidenceScorer(
            ScoringConfig(chapter_weights={**DEFAULT_CHAPTER_WEIGHTS, "has_number": 0.1}),
            extra_signals={"chapter": {"has_number": lambda ch, ctx: float(ch.number is not None)}},
        )
    """

    def __init__(
        self,
        config: ScoringConfig | None = None,
        extra_signals: dict[str, dict[str, Signal]] | None = None,
    ):
        """Initialize the scorer.

        Raises:
            ConfigurationError: If a weighted signal name is not registered.
        """
        self.config = config or ScoringConfig()
        self.signals: dict[str, dict[str, Signal]] = {
            kind: dict(signals) for kind, signals in SIGNAL_REGISTRY.items()
        }
        for kind, signals in (extra_signals or {}).items():
            if kind not in self.signals:
                raise ConfigurationError(f"Unknown unit kind for signals: {kind}")
            self.signals[kind].update(signals)

        for kind in self.signals:
            weights = self.weights_for(kind)
            unknown = sorted(set(weights) - set(self.signals[kind]))
            if unknown:
                raise ConfigurationError(f"Unknown {kind} signal(s): {', '.join(unknown)}")

    def weights_for(self, kind: str) -> dict[str, float]:
        return getattr(self.config, f"{kind}_weights")

    # -------------------------------------------------------------------------
    # Combination
    # -------------------------------------------------------------------------

    def combine(self, kind: str, unit, ctx: ScoringContext) -> ScoreBreakdown:
        """Weight-normalized combination of the unit's signals."""
        results: list[SignalScore] = []
        total_weight = 0.0
        weighted = 0.0
        for name, weight in self.weights_for(kind).items():
            if weight <= 0:
                continue
            value = clamp(float(self.signals[kind][name](unit, ctx)))
            results.append(SignalScore(name=name, score=round(value, SCORE_PRECISION), weight=weight))
            total_weight += weight
            weighted += weight * value

        score = clamp(weighted / total_weight) if total_weight else 0.0
        capped_by = None
        for signal in results:
            cap = self.config.signal_caps.get(signal.name)
            if cap is not None and score > cap + signal.score:
                score = clamp(cap + signal.score)
                capped_by = signal.name
        return ScoreBreakdown(score=round(score, SCORE_PRECISION), signals=results, capped_by=capped_by)

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    def score_sentence(
        self,
        sentence: Sentence,
        *,
        is_final: bool = False,
        paragraph_type: ParagraphType = ParagraphType.TEXT,
    ) -> ScoreBreakdown:
        ctx = ScoringContext(config=self.config, is_final=is_final, paragraph_type=paragraph_type)
        return self.combine("sentence", sentence, ctx)

    def score_paragraph(self, paragraph: Paragraph) -> ScoreBreakdown:
        return self.combine("paragraph", paragraph, ScoringContext(config=self.config))

    def score_chapter(
        self,
        chapter: Chapter,
        *,
        dominant_source: str = "",
        chapter_levels: tuple[int, ...] = (1,),
        previous_level: int | None = None,
    ) -> ScoreBreakdown:
        ctx = ScoringContext(
            config=self.config,
            dominant_source=dominant_source,
            chapter_levels=chapter_levels,
            previous_level=previous_level,
        )
        breakdown = self.combine("chapter", chapter, ctx)
        ceiling = self.config.fallback_confidence_ceiling
        if chapter.is_fallback and breakdown.score > ceiling:
            breakdown.score = ceiling
            breakdown.capped_by = "fallback"
        return breakdown

    def score_document(self, structure: DocumentStructure) -> ScoreBreakdown:
        if not structure.chapters:
            return ScoreBreakdown(score=0.0)
        return self.combine("document", structure, ScoringContext(config=self.config))

    # -------------------------------------------------------------------------
    # Whole structures
    # -------------------------------------------------------------------------

    def score_chapter_tree(
        self,
        chapter: Chapter,
        *,
        dominant_source: str = "",
        chapter_levels: tuple[int, ...] = (1,),
        previous_level: int | None = None,
    ) -> None:
        """Score a chapter's sentences, paragraphs and the chapter, in place.

        User overrides survive: when ``detected_confidence`` is set the
        fresh score goes there and ``confidence`` keeps the override.
        """
        for paragraph in chapter.paragraphs:
            last = len(paragraph.sentences) - 1
            for index, sentence in enumerate(paragraph.sentences):
                sentence.confidence = self.score_sentence(
                    sentence, is_final=index == last, paragraph_type=paragraph.type
                ).score
            _assign(paragraph, self.score_paragraph(paragraph).score)

        breakdown = self.score_chapter(
            chapter,
            dominant_source=dominant_source,
            chapter_levels=chapter_levels,
            previous_level=previous_level,
        )
        chapter.signals = breakdown.as_dict()
        _assign(chapter, breakdown.score)

    def score_structure(
        self, structure: DocumentStructure, chapter_levels: tuple[int, ...] = (1,)
    ) -> ScoreBreakdown:
        """Score every level of ``structure`` in place; returns the document breakdown."""
        dominant = dominant_source(structure.chapters)
        previous_level = None
        for chapter in structure.chapters:
            self.score_chapter_tree(
                chapter,
                dominant_source=dominant,
                chapter_levels=chapter_levels,
                previous_level=previous_level,
            )
            previous_level = chapter.level

        breakdown = self.score_document(structure)
        structure.confidence = breakdown.score
        logger.debug(
            "Scored %d chapters; document confidence %.3f", len(structure.chapters), breakdown.score
        )
        return breakdown


def dominant_source(chapters: list[Chapter]) -> str:
    """Most common detection source among detected (non-fallback) chapters."""
    counts = Counter(c.detection_source for c in chapters if not c.is_fallback and c.detection_source)
    if not counts:
        return ""
    return counts.most_common(1)[0][0]


def _assign(unit: Paragraph | Chapter, score: float) -> None:
    if unit.detected_confidence is not None:
        unit.detected_confidence = score
    else:
        unit.confidence = score
