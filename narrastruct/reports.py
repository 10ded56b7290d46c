"""Confidence reports.

This module provides:
1. ConfidenceReportGenerator - aggregate scores into a ConfidenceReport
2. render_report() - terminal-friendly table output

Reports are pure aggregation over an already-scored structure: the same
structure always produces the same report.
"""

from __future__ import annotations

from statistics import mean

from tabulate import tabulate

from narrastruct.config import ReportConfig, ScoringConfig
from narrastruct.models import (
    Chapter,
    ChapterConfidence,
    ConfidenceFactor,
    ConfidenceReport,
    DocumentStructure,
    RiskLevel,
    StructureStatistics,
)
from narrastruct.scoring.scorer import ConfidenceScorer

BUCKETS = ("0.0-0.2", "0.2-0.4", "0.4-0.6", "0.6-0.8", "0.8-1.0")

GOOD_STRUCTURE = "Document structure looks good!"

FACTOR_DESCRIPTIONS = {
    # Chapter signals
    "title_clarity": "Readable, capitalized title of plausible length",
    "detection_source": "Reliability of the source that found the boundary",
    "length_plausibility": "Word count within the expected range",
    "formatting_regularity": "Share of paragraphs that segmented cleanly",
    "heading_consistency": "Found the same way as the other chapters",
    "hierarchy_consistency": "Heading level fits the chapter hierarchy",
    # Document signals
    "chapter_structure": "Mean chapter confidence",
    "paragraph_distribution": "Mean paragraph confidence",
    "sentence_structure": "Mean sentence confidence",
    "content_quality": "Share of paragraphs with narratable words",
    "metadata_quality": "Title, language and author present",
}


def bucket_for(confidence: float) -> str:
    """Distribution bucket label; 1.0 falls in the last bucket."""
    index = min(int(confidence * len(BUCKETS)), len(BUCKETS) - 1)
    return BUCKETS[max(index, 0)]


class ConfidenceReportGenerator:
    """
    Build confidence reports.

    Usage:
        generator = ConfidenceReportGenerator()
        report = generator.generate(structure)
        print(render_report(report))
    """

    def __init__(
        self,
        config: ReportConfig | None = None,
        scoring: ScoringConfig | None = None,
    ):
        self.config = config or ReportConfig()
        self.scorer = ConfidenceScorer(scoring)

    def level_for(self, confidence: float) -> str:
        if confidence >= self.config.good_threshold:
            return "high"
        if confidence >= self.config.acceptable_threshold:
            return "medium"
        return "low"

    def risk_for(self, confidence: float) -> RiskLevel:
        if confidence >= self.config.good_threshold:
            return RiskLevel.LOW
        if confidence >= self.config.acceptable_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    def generate(self, structure: DocumentStructure, detailed: bool = True) -> ConfidenceReport:
        """Aggregate the scores already on ``structure`` into a report."""
        chapters = [self._chapter_confidence(c, detailed) for c in structure.chapters]

        distribution = dict.fromkeys(BUCKETS, 0)
        for _, paragraph in structure.iter_paragraphs():
            distribution[bucket_for(paragraph.confidence)] += 1

        sentence_scores = [s.confidence for s in structure.iter_sentences()]
        breakdown = self.scorer.score_document(structure)
        weights = self.scorer.weights_for("document")
        factors = [
            ConfidenceFactor(
                name=signal.name,
                score=signal.score,
                weight=weights.get(signal.name, signal.weight),
                description=FACTOR_DESCRIPTIONS.get(signal.name, ""),
            )
            for signal in breakdown.signals
        ]

        return ConfidenceReport(
            overall=structure.confidence,
            chapters=chapters,
            paragraph_distribution=distribution,
            sentence_average=round(mean(sentence_scores), 4) if sentence_scores else 0.0,
            structure_factors=factors,
            risk_level=self.risk_for(structure.confidence),
            recommendations=self.recommendations(structure, factors, distribution),
            statistics=self.statistics(structure) if detailed else None,
        )

    def _chapter_confidence(self, chapter: Chapter, detailed: bool) -> ChapterConfidence:
        factors = []
        if detailed:
            weights = self.scorer.weights_for("chapter")
            factors = [
                ConfidenceFactor(
                    name=name,
                    score=score,
                    weight=weights.get(name, 0.0),
                    description=FACTOR_DESCRIPTIONS.get(name, ""),
                )
                for name, score in chapter.signals.items()
            ]
        return ChapterConfidence(
            chapter_id=chapter.id,
            title=chapter.title,
            confidence=chapter.confidence,
            level=self.level_for(chapter.confidence),
            factors=factors,
            is_fallback=chapter.is_fallback,
        )

    def recommendations(
        self,
        structure: DocumentStructure,
        factors: list[ConfidenceFactor],
        distribution: dict[str, int],
    ) -> list[str]:
        """Deterministic, ordered review suggestions."""
        acceptable = self.config.acceptable_threshold
        result: list[str] = []

        if not structure.chapters:
            result.append("No chapters detected. Check the document format or add headings.")

        if any(c.is_fallback and c.node_type == "paragraph-group" for c in structure.chapters):
            if all(c.is_fallback for c in structure.chapters):
                result.append(
                    "No chapter headings were found; structure was inferred from paragraphs. "
                    "Add headings or navigation hints."
                )
            else:
                result.append(
                    "Text before the first heading was grouped as an introduction; "
                    "check that it belongs there."
                )

        # Consecutive low chapters are reported as one cluster
        runs: list[list[int]] = []
        for index, chapter in enumerate(structure.chapters):
            if chapter.confidence >= acceptable:
                continue
            if runs and runs[-1][-1] == index - 1:
                runs[-1].append(index)
            else:
                runs.append([index])
        clusters = [run for run in runs if len(run) >= 2]
        singles = [run[0] for run in runs if len(run) == 1]
        for run in clusters:
            first, last = structure.chapters[run[0]], structure.chapters[run[-1]]
            result.append(
                f"Chapters {run[0] + 1}-{run[-1] + 1} ('{first.title}' to '{last.title}') "
                f"have low confidence; review these boundaries together."
            )
        for index in singles:
            chapter = structure.chapters[index]
            result.append(
                f"Review chapter {index + 1} ('{chapter.title}'): "
                f"confidence {chapter.confidence:.2f}."
            )

        for factor in factors:
            if factor.score < acceptable:
                label = factor.name.replace("_", " ")
                result.append(f"Improve {label}: {factor.score:.2f} is below {acceptable:.2f}.")

        total = sum(distribution.values())
        if total:
            low = sum(
                count
                for bucket, count in distribution.items()
                if float(bucket.split("-")[1]) <= acceptable
            )
            share = low / total
            if share > self.config.low_paragraph_share:
                result.append(
                    f"{share:.0%} of paragraphs have low confidence; "
                    f"review paragraph segmentation."
                )

        return result or [GOOD_STRUCTURE]

    def statistics(self, structure: DocumentStructure) -> StructureStatistics:
        words = structure.total_word_count
        sentences = structure.total_sentences
        average = round(words / sentences, 2) if sentences else 0.0

        if average > 25 or structure.total_chapters > 30:
            complexity = "complex"
        elif average > 15 or structure.total_chapters > 10:
            complexity = "moderate"
        else:
            complexity = "simple"

        if structure.confidence >= self.config.good_threshold:
            quality = "good"
        elif structure.confidence >= self.config.acceptable_threshold:
            quality = "acceptable"
        else:
            quality = "poor"

        return StructureStatistics(
            total_chapters=structure.total_chapters,
            total_paragraphs=structure.total_paragraphs,
            total_sentences=sentences,
            total_words=words,
            estimated_reading_minutes=round(words / self.config.reading_words_per_minute, 2),
            estimated_narration_seconds=structure.total_duration,
            average_words_per_sentence=average,
            complexity=complexity,
            structure_quality=quality,
        )


# =============================================================================
# RENDERING
# =============================================================================


def render_report(report: ConfidenceReport, title: str = "Structure Confidence Report") -> str:
    """Generate a CLI-friendly report with tables.

    Args:
        report: Report to render
        title: Report title

    Returns:
        Formatted string for terminal output
    """
    lines = []
    lines.append("=" * 60)
    lines.append(title)
    lines.append("=" * 60)
    lines.append("")

    lines.append(f"Overall confidence: {report.overall:.3f}")
    lines.append(f"Risk level: {report.risk_level.value}")
    lines.append(f"Sentence average: {report.sentence_average:.3f}")
    stats = report.statistics
    if stats:
        lines.append(
            f"Chapters: {stats.total_chapters}  Paragraphs: {stats.total_paragraphs}  "
            f"Sentences: {stats.total_sentences}  Words: {stats.total_words}"
        )
        lines.append(
            f"Reading time: {stats.estimated_reading_minutes:.1f} min  "
            f"Narration: {stats.estimated_narration_seconds:.0f} s  "
            f"Complexity: {stats.complexity}"
        )
    lines.append("")

    if report.chapters:
        rows = [
            [
                index + 1,
                chapter.title[:40],
                f"{chapter.confidence:.3f}",
                chapter.level,
                "yes" if chapter.is_fallback else "",
            ]
            for index, chapter in enumerate(report.chapters)
        ]
        lines.append(
            tabulate(rows, headers=["#", "Chapter", "Confidence", "Level", "Fallback"], tablefmt="simple")
        )
        lines.append("")

    if report.structure_factors:
        rows = [[f.name, f"{f.score:.3f}", f"{f.weight:.2f}"] for f in report.structure_factors]
        lines.append(tabulate(rows, headers=["Factor", "Score", "Weight"], tablefmt="simple"))
        lines.append("")

    rows = [[bucket, count] for bucket, count in report.paragraph_distribution.items()]
    lines.append(tabulate(rows, headers=["Paragraph confidence", "Count"], tablefmt="simple"))
    lines.append("")

    lines.append("-" * 40)
    lines.append("Recommendations:")
    for recommendation in report.recommendations:
        lines.append(f"  - {recommendation}")

    lines.append("")
    return "\n".join(lines)
