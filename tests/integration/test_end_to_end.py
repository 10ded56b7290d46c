"""
Integration tests for the full analyze, review and replay cycle.

These tests write correction profiles to a temporary directory and read
them back through a second analyzer, as a separate process would.
"""

import pytest

from narrastruct import (
    AnalysisOptions,
    CorrectionProfileStore,
    StreamingOptions,
    StructureAnalyzer,
)
from narrastruct.cli import EXIT_OK, main


@pytest.fixture
def profiles_dir(tmp_path):
    return tmp_path / "profiles"


@pytest.fixture
def saved_profile(profiles_dir, book_markdown):
    """Analyze the book, rename chapter 2 and save the correction."""
    analyzer = StructureAnalyzer(store=CorrectionProfileStore(profiles_dir))
    result = analyzer.analyze(book_markdown, "markdown")

    session = analyzer.review(result.document_structure)
    session.edit_field("chapter-2", "title", "The Crossing")
    corrected = session.close()
    assert corrected.applied_count == 1

    return analyzer.save_corrections(result.document_structure, corrected.corrections)


class TestReviewAndReplay:
    """Test that saved corrections survive into later analyses."""

    def test_profile_written(self, saved_profile, profiles_dir):
        """Saving writes one YAML profile named after the document."""
        assert saved_profile.document_id == "profile-chapter-1-the-beginning"
        assert (profiles_dir / "profile-chapter-1-the-beginning.yaml").exists()

    def test_replay_in_new_analyzer(self, saved_profile, profiles_dir, book_markdown):
        """A fresh analyzer replays the saved rename."""
        analyzer = StructureAnalyzer(store=CorrectionProfileStore(profiles_dir))
        result = analyzer.analyze(
            book_markdown, "markdown", AnalysisOptions(apply_saved_corrections=True)
        )

        chapter = result.document_structure.chapters[1]
        assert chapter.title == "The Crossing"
        assert chapter.correction_applied
        assert chapter.correction_source == "saved-profile"
        assert result.correction_result is not None
        assert result.correction_result.applied_count == 1
        assert any(
            line.startswith("Replayed 1/1 saved corrections") for line in result.processing_log
        )
        assert result.tree.children[1].label.startswith("The Crossing")
        assert result.meets_threshold

    def test_replay_is_opt_in(self, saved_profile, profiles_dir, book_markdown):
        """Without apply_saved_corrections the profile is ignored."""
        analyzer = StructureAnalyzer(store=CorrectionProfileStore(profiles_dir))
        result = analyzer.analyze(book_markdown, "markdown")
        assert result.document_structure.chapters[1].title == "Chapter 2: The Journey"
        assert result.correction_result is None

    def test_replay_with_streaming(self, saved_profile, profiles_dir, book_markdown):
        """Streaming analysis replays the same corrections."""
        analyzer = StructureAnalyzer(store=CorrectionProfileStore(profiles_dir))
        options = AnalysisOptions(
            apply_saved_corrections=True,
            streaming=StreamingOptions(enabled=True, chunk_size=20),
        )
        result = analyzer.analyze(book_markdown, "markdown", options)
        assert result.document_structure.chapters[1].title == "The Crossing"

    def test_unrelated_document_gets_nothing(self, saved_profile, profiles_dir):
        """A document that matches no profile is left alone."""
        analyzer = StructureAnalyzer(store=CorrectionProfileStore(profiles_dir))
        text = "# Cooking\n\nBoil the water first.\n\n# Baking\n\nHeat the oven to two hundred."
        result = analyzer.analyze(text, "markdown", AnalysisOptions(apply_saved_corrections=True))
        assert result.correction_result is None
        assert "No saved corrections match this document" in result.processing_log

    def test_cli_replays_profiles(self, saved_profile, profiles_dir, tmp_path, book_markdown, capsys):
        """The command line replays profiles from --profiles-dir."""
        path = tmp_path / "book.md"
        path.write_text(book_markdown, encoding="utf-8")
        assert main(["analyze", str(path), "--profiles-dir", str(profiles_dir)]) == EXIT_OK
        assert "The Crossing" in capsys.readouterr().out
