"""Tests for confidence reports."""

import copy

import pytest

from narrastruct import ReportConfig, RiskLevel, generate_confidence_report
from narrastruct.reports import (
    BUCKETS,
    GOOD_STRUCTURE,
    ConfidenceReportGenerator,
    bucket_for,
    render_report,
)


@pytest.fixture
def generator():
    return ConfidenceReportGenerator()


class TestBuckets:
    """Test paragraph confidence buckets."""

    @pytest.mark.parametrize(
        "confidence,bucket",
        [
            (0.0, "0.0-0.2"),
            (0.19, "0.0-0.2"),
            (0.5, "0.4-0.6"),
            (0.8, "0.8-1.0"),
            (1.0, "0.8-1.0"),
        ],
    )
    def test_bucket_for(self, confidence, bucket):
        """Scores fall in fifths; 1.0 stays in the top bucket."""
        assert bucket_for(confidence) == bucket

    def test_distribution_counts_every_paragraph(self, generator, book_structure):
        """Bucket counts add up to the paragraph total."""
        report = generator.generate(book_structure)
        assert list(report.paragraph_distribution) == list(BUCKETS)
        assert sum(report.paragraph_distribution.values()) == book_structure.total_paragraphs


class TestReport:
    """Test report contents."""

    def test_good_book(self, generator, book_structure):
        """A clean book is low risk with the all-clear recommendation."""
        report = generator.generate(book_structure)
        assert report.overall == book_structure.confidence
        assert report.risk_level is RiskLevel.LOW
        assert report.recommendations == [GOOD_STRUCTURE]
        assert [c.chapter_id for c in report.chapters] == ["chapter-1", "chapter-2"]
        assert all(c.level == "high" for c in report.chapters)

    def test_detailed_factors(self, generator, book_structure):
        """Detailed reports carry chapter factors and statistics."""
        report = generator.generate(book_structure, detailed=True)
        names = [f.name for f in report.chapters[0].factors]
        assert "title_clarity" in names
        assert report.statistics is not None
        assert {f.name for f in report.structure_factors} >= {"chapter_structure", "metadata_quality"}

    def test_summary_report(self, generator, book_structure):
        """Non-detailed reports skip chapter factors and statistics."""
        report = generator.generate(book_structure, detailed=False)
        assert report.chapters[0].factors == []
        assert report.statistics is None

    def test_report_is_deterministic(self, generator, book_structure):
        """The same structure gives the same report."""
        first = generator.generate(book_structure).to_dict()
        second = generator.generate(book_structure).to_dict()
        assert first == second

    def test_fallback_recommendation(self, analyzer, unheaded_markdown, generator):
        """Inferred structure is called out and raises the risk."""
        structure = analyzer.analyze(unheaded_markdown, "markdown").document_structure
        report = generator.generate(structure)
        assert report.risk_level is RiskLevel.MEDIUM
        assert any("inferred from paragraphs" in r for r in report.recommendations)
        assert report.chapters[0].is_fallback

    def test_empty_structure(self, analyzer, generator):
        """No chapters gives a high-risk report suggesting headings."""
        structure = analyzer.analyze("", "markdown").document_structure
        report = generator.generate(structure)
        assert report.risk_level is RiskLevel.HIGH
        assert report.recommendations[0].startswith("No chapters detected")
        assert report.sentence_average == 0.0


class TestRecommendations:
    """Test chapter review recommendations."""

    def test_single_low_chapter(self, generator, book_structure):
        """One low chapter gets its own recommendation."""
        structure = copy.deepcopy(book_structure)
        structure.chapters[1].confidence = 0.2
        report = generator.generate(structure)
        assert any(r.startswith("Review chapter 2") for r in report.recommendations)

    def test_low_chapter_cluster(self, generator, analyzer, three_chapter_markdown):
        """Consecutive low chapters are reported together."""
        structure = analyzer.analyze(three_chapter_markdown, "markdown").document_structure
        structure.chapters[1].confidence = 0.2
        structure.chapters[2].confidence = 0.3
        report = generator.generate(structure)
        cluster = [r for r in report.recommendations if r.startswith("Chapters 2-3")]
        assert len(cluster) == 1
        assert "Chapter 2: The Journey" in cluster[0]
        assert not any(r.startswith("Review chapter") for r in report.recommendations)


class TestStatistics:
    """Test summary statistics."""

    def test_statistics(self, generator, book_structure):
        """Reading time is words / 200; narration is the total duration."""
        stats = generator.statistics(book_structure)
        assert stats.total_words == book_structure.total_word_count
        assert stats.estimated_reading_minutes == round(book_structure.total_word_count / 200, 2)
        assert stats.estimated_narration_seconds == book_structure.total_duration
        assert stats.complexity == "simple"
        assert stats.structure_quality == "good"

    def test_reading_speed_is_configurable(self, book_structure):
        """ReportConfig sets the reading speed."""
        generator = ConfidenceReportGenerator(ReportConfig(reading_words_per_minute=100))
        stats = generator.statistics(book_structure)
        assert stats.estimated_reading_minutes == round(book_structure.total_word_count / 100, 2)


class TestRendering:
    """Test text rendering."""

    def test_render_report(self, book_structure):
        """The rendered report lists the overall score, chapters and recommendations."""
        text = render_report(generate_confidence_report(book_structure), title="Book")
        assert "Overall confidence:" in text
        assert "Recommendations:" in text
        assert "Chapter 1: The Beginning" in text
        assert GOOD_STRUCTURE in text


class TestReportConfig:
    """Test ReportConfig validation."""

    def test_acceptable_above_good(self):
        """The acceptable threshold may not exceed the good threshold."""
        with pytest.raises(ValueError):
            ReportConfig(good_threshold=0.5, acceptable_threshold=0.6)
