"""Tests for correction sessions, overlays, history and saved profiles."""

import json

import pytest
import yaml

from narrastruct import (
    CorrectionEngine,
    CorrectionError,
    CorrectionHistory,
    CorrectionProfileStore,
    CorrectionType,
    Location,
    NodeStatus,
    StructureCorrection,
    apply_corrections,
)
from narrastruct.corrections import CorrectionOverlay, StructureFingerprint, document_id_for
from narrastruct.corrections.overlay import CHAPTER
from narrastruct.exceptions import ConfigurationError
from narrastruct.models import ParagraphType


@pytest.fixture
def engine():
    return CorrectionEngine()


@pytest.fixture
def session(engine, book_structure):
    return engine.start_session(book_structure)


class TestMerge:
    """Test chapter and paragraph merges."""

    def test_merge_chapters(self, session, book_structure):
        """Two adjacent chapters become one node; the originals are soft-deleted."""
        assert len(session.overlay.live_nodes()) == 6
        correction = session.merge(["chapter-1", "chapter-2"])

        assert correction.applied
        (merged,) = session.structure.chapters
        assert merged.id == "merged-chapter-1-chapter-2"
        assert merged.title == "Chapter 1: The Beginning + Chapter 2: The Journey"
        assert len(merged.paragraphs) == 4
        assert merged.word_count == book_structure.total_word_count
        assert merged.correction_applied
        assert merged.correction_source == "user"

        assert len(session.overlay.live_nodes()) == 5
        assert len(session.overlay.live_nodes(CHAPTER)) == 1
        original = session.overlay.get("chapter-1")
        assert original.removed
        assert original.replaced_by == merged.id
        assert session.overlay.get(merged.id).is_manual_override

    def test_merge_with_title(self, session):
        """A given title replaces the joined titles."""
        session.merge(["chapter-1", "chapter-2"], title="The Whole Story")
        assert session.structure.chapters[0].title == "The Whole Story"

    def test_merge_by_location(self, session):
        """A chapter location merges that chapter with the next one."""
        correction = session.apply(
            StructureCorrection(type=CorrectionType.CHAPTER_MERGE, location=Location(chapter_index=0))
        )
        assert correction.applied
        assert correction.target_ids == ["chapter-1", "chapter-2"]
        assert session.structure.total_chapters == 1

    def test_merge_paragraphs(self, session):
        """Adjacent paragraphs of one chapter merge into one."""
        correction = session.merge(["chapter-1-p-0", "chapter-1-p-1"])
        assert correction.applied
        chapter = session.structure.chapters[0]
        (paragraph,) = chapter.paragraphs
        assert paragraph.id == "merged-chapter-1-p-0-chapter-1-p-1"
        assert len(paragraph.sentences) == 4
        assert [s.position for s in paragraph.sentences] == [0, 1, 2, 3]

    def test_merge_failures(self, session, analyzer, three_chapter_markdown):
        """Bad merges are recorded as failed, never raised."""
        single = session.merge(["chapter-1"])
        assert not single.applied
        assert single.error == "Merge needs at least two nodes"

        mixed = session.merge(["chapter-1", "chapter-2-p-0"])
        assert mixed.error == "Cannot merge chapters with paragraphs"

        structure = analyzer.analyze(three_chapter_markdown, "markdown").document_structure
        other = CorrectionEngine().start_session(structure)
        gap = other.merge(["chapter-1", "chapter-3"])
        assert gap.error == "Only adjacent siblings can be merged"
        assert other.structure.total_chapters == 3

    def test_removed_node_cannot_be_targeted(self, session):
        """A merged-away chapter is no longer editable."""
        session.merge(["chapter-1", "chapter-2"])
        correction = session.edit_field("chapter-1", "title", "Again")
        assert not correction.applied
        assert "removed" in correction.error

    @pytest.mark.parametrize(
        "location",
        [Location(chapter_index=-1), Location(chapter_index=0, paragraph_index=-1)],
    )
    def test_negative_location_is_out_of_range(self, session, location):
        """Negative indexes fail instead of counting from the end."""
        correction = session.apply(
            StructureCorrection(
                type=CorrectionType.FIELD_EDIT,
                location=location,
                parameters={"field": "title", "value": "X"},
            )
        )
        assert not correction.applied
        assert "out of range" in correction.error
        assert [c.title for c in session.structure.chapters] == [
            "Chapter 1: The Beginning",
            "Chapter 2: The Journey",
        ]


class TestSplit:
    """Test chapter and paragraph splits."""

    def test_split_chapter(self, session):
        """The tail paragraphs move into a new continued chapter."""
        correction = session.split_chapter("chapter-1", 1)
        assert correction.applied
        first, new, second = session.structure.chapters
        assert new.id == "chapter-1-split"
        assert new.title == "Chapter 1: The Beginning (continued)"
        assert [p.id for p in first.paragraphs] == ["chapter-1-p-0"]
        assert [p.id for p in new.paragraphs] == ["chapter-1-p-1"]
        assert [c.position for c in session.structure.chapters] == [0, 1, 2]
        assert first.end_position == new.start_position

    def test_split_chapter_out_of_range(self, session):
        """The split point must leave both halves non-empty."""
        for at in (0, 2):
            correction = session.split_chapter("chapter-1", at)
            assert not correction.applied
        assert session.structure.total_chapters == 2

    def test_split_paragraph(self, session):
        """A paragraph splits at a sentence index into two paragraphs."""
        correction = session.split_paragraph("chapter-1-p-0", 1)
        assert correction.applied
        chapter = session.structure.chapters[0]
        head, tail = chapter.paragraphs[:2]
        assert tail.id == "chapter-1-p-0-split"
        assert head.raw_text == "The lighthouse keeper climbed the stairs every evening at six."
        assert tail.raw_text.startswith("He counted each step")
        assert tail.sentences[0].id == "chapter-1-p-0-split-s-0"
        assert head.word_count + tail.word_count == 24

    def test_split_paragraph_bad_index(self, session):
        """A one-piece split is refused."""
        assert not session.split_paragraph("chapter-1-p-0", 2).applied


class TestBoundaryMove:
    """Test moving a chapter boundary by whole paragraphs."""

    def test_move_back(self, session):
        """A negative offset hands trailing paragraphs to the next chapter."""
        correction = session.move_boundary("chapter-1", -1)
        assert correction.applied
        first, second = session.structure.chapters
        assert [p.id for p in first.paragraphs] == ["chapter-1-p-0"]
        assert second.paragraphs[0].id == "chapter-1-p-1"
        assert first.end_position == second.start_position

    def test_move_forward(self, session):
        """A positive offset pulls leading paragraphs from the next chapter."""
        session.move_boundary("chapter-1", 1)
        first, second = session.structure.chapters
        assert len(first.paragraphs) == 3
        assert len(second.paragraphs) == 1

    @pytest.mark.parametrize(
        "chapter_id,offset",
        [("chapter-1", 0), ("chapter-2", 1), ("chapter-1", 2), ("chapter-1", -2)],
    )
    def test_invalid_moves(self, session, chapter_id, offset):
        """Zero offsets, the last chapter and emptying moves all fail."""
        correction = session.move_boundary(chapter_id, offset)
        assert not correction.applied
        assert correction.error


class TestFieldEdits:
    """Test field edits and confidence overrides."""

    def test_edit_title(self, session):
        """Editing a title marks the node modified and keeps the original."""
        correction = session.edit_field("chapter-1", "title", "Prologue")
        assert correction.applied
        assert session.structure.chapters[0].title == "Prologue"
        node = session.overlay.get("chapter-1")
        assert node.status is NodeStatus.MODIFIED
        assert node.original_values["title"] == "Chapter 1: The Beginning"
        assert node.current_values["title"] == "Prologue"

    def test_edit_level(self, session):
        """Levels are limited to 1-6."""
        assert session.edit_field("chapter-1", "level", 2).applied
        assert not session.edit_field("chapter-1", "level", 7).applied
        assert session.structure.chapters[0].level == 2

    def test_unknown_field(self, session):
        """Only title and level are editable on chapters."""
        correction = session.edit_field("chapter-1", "word_count", 3)
        assert not correction.applied

    def test_paragraph_fields(self, session):
        """Paragraphs accept include_in_audio (bool) and type."""
        assert session.edit_field("chapter-1-p-0", "include_in_audio", False).applied
        assert not session.edit_field("chapter-1-p-1", "include_in_audio", "no").applied
        assert session.edit_field("chapter-1-p-1", "type", "quote").applied
        paragraphs = session.structure.chapters[0].paragraphs
        assert paragraphs[0].include_in_audio is False
        assert paragraphs[1].type is ParagraphType.QUOTE
        assert not session.edit_field("chapter-1-p-1", "type", "poem").applied

    def test_override_confidence(self, session):
        """An override survives rescoring by later corrections."""
        session.override_confidence("chapter-2", 0.4)
        session.edit_field("chapter-1", "title", "Prologue")
        chapter = session.structure.chapters[1]
        assert chapter.confidence == 0.4
        assert chapter.is_manual_override
        assert chapter.detected_confidence > 0.9
        assert session.overlay.get("chapter-2").confidence == 0.4

    def test_override_out_of_range(self, session):
        """Confidence overrides must be within [0, 1]."""
        assert not session.override_confidence("chapter-1", 1.5).applied


class TestSessions:
    """Test permissions, review state and session lifecycle."""

    def test_permissions(self, engine, book_structure):
        """A refused operation family fails with a clear error."""
        session = engine.start_session(book_structure, can_merge=False, can_edit=False)
        merge = session.merge(["chapter-1", "chapter-2"])
        assert merge.error == "This session does not allow merging"
        assert not session.edit_field("chapter-1", "title", "X").applied
        assert session.split_chapter("chapter-1", 1).applied

    def test_closed_session(self, session):
        """A closed session refuses further corrections."""
        result = session.close()
        assert not session.is_active
        assert result.structure.total_chapters == 2
        with pytest.raises(CorrectionError):
            session.edit_field("chapter-1", "title", "Late")

    def test_result_reports_confidences(self, session, book_structure):
        """Results carry the confidence before and after."""
        session.override_confidence("chapter-1", 0.1)
        result = session.result()
        assert result.original_confidence == book_structure.confidence
        assert result.corrected_confidence < result.original_confidence
        assert result.applied_count == 1

    def test_nodes_needing_review(self, session):
        """Low nodes are flagged high priority; approved nodes are skipped."""
        session.override_confidence("chapter-1", 0.2)
        session.override_confidence("chapter-2", 0.3)
        session.approve("chapter-2")
        flagged = session.nodes_needing_review(threshold=0.5)
        assert [n.node_id for n in flagged] == ["chapter-1"]
        assert flagged[0].priority == "high"
        assert flagged[0].requires_review

    def test_review_query_leaves_overlay_untouched(self, session):
        """Listing review items returns flagged copies, not the live nodes."""
        session.override_confidence("chapter-1", 0.2)
        before = session.overlay.get("chapter-1")
        (flagged,) = [
            n for n in session.nodes_needing_review(threshold=0.5) if n.node_id == "chapter-1"
        ]
        assert flagged is not before
        assert flagged.requires_review
        assert not before.requires_review
        assert before.priority == "normal"

    def test_input_is_not_mutated(self, book_structure):
        """apply_corrections works on a copy."""
        before = book_structure.to_dict()
        result = apply_corrections(
            book_structure,
            [
                StructureCorrection(
                    type=CorrectionType.CHAPTER_MERGE, target_ids=["chapter-1", "chapter-2"]
                ),
                StructureCorrection(
                    type=CorrectionType.FIELD_EDIT,
                    target_ids=["missing"],
                    parameters={"field": "title", "value": "X"},
                ),
            ],
        )
        assert book_structure.to_dict() == before
        assert result.structure.total_chapters == 1
        assert result.applied_count == 1
        assert len(result.failed) == 1


class TestOverlay:
    """Test review transitions on the overlay."""

    def test_transitions(self, book_structure):
        """Approved nodes can only move to modified."""
        overlay = CorrectionOverlay.from_structure(book_structure)
        overlay.approve("chapter-1")
        with pytest.raises(CorrectionError):
            overlay.approve("chapter-1")
        with pytest.raises(CorrectionError):
            overlay.reject("chapter-1")
        overlay.mark_modified("chapter-1", "title", "Old", "New")
        assert overlay.get("chapter-1").status is NodeStatus.MODIFIED
        overlay.reject("chapter-1")

    def test_unknown_and_removed_nodes(self, book_structure):
        """Unknown ids and removed nodes raise."""
        overlay = CorrectionOverlay.from_structure(book_structure)
        with pytest.raises(CorrectionError):
            overlay.get("missing")
        overlay.get("chapter-1").removed = True
        with pytest.raises(CorrectionError):
            overlay.live("chapter-1")
        assert [n.node_id for n in overlay.removed_nodes(CHAPTER)] == ["chapter-1"]


class TestHistory:
    """Test the versioned correction log."""

    def test_versions(self, engine, book_structure):
        """Every attempt is appended under the document id."""
        session = engine.start_session(book_structure)
        document_id = "profile-chapter-1-the-beginning"
        assert session.document_id == document_id

        session.edit_field("chapter-1", "title", "First")
        session.edit_field("chapter-1", "title", "Second")
        session.edit_field("missing", "title", "Nope")

        assert engine.history.version(document_id) == 3
        entries = engine.history.snapshot(document_id)
        assert [e.version for e in entries] == [1, 2, 3]
        assert entries[-1].applied is False
        latest = engine.history.latest_for(document_id, "chapter-1")
        assert latest.version == 2
        assert latest.correction.parameters["value"] == "Second"

    def test_entries_are_copies(self):
        """Changing a correction after appending does not change the log."""
        history = CorrectionHistory()
        correction = StructureCorrection(type=CorrectionType.FIELD_EDIT, target_ids=["a"])
        history.append("doc", correction)
        correction.target_ids.append("b")
        assert history.snapshot("doc")[0].correction.target_ids == ["a"]
        assert history.document_ids() == ["doc"]


class TestProfileStore:
    """Test saving, loading and matching correction profiles."""

    def test_save_yaml(self, engine, book_structure, profile_store):
        """Profiles are written as YAML named after the document id."""
        session = engine.start_session(book_structure)
        session.edit_field("chapter-1", "title", "Prologue")
        saved = engine.build_saved_corrections(book_structure, session.corrections)
        path = profile_store.save(saved)

        assert path.name == "profile-chapter-1-the-beginning.yaml"
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["patterns"]["title_patterns"] == {"Chapter 1: The Beginning": "Prologue"}
        assert data["corrections"][0]["applied"] is False

        fresh = CorrectionProfileStore(profile_store.directory)
        loaded = fresh.load(saved.document_id)
        assert loaded.fingerprint == saved.fingerprint
        assert loaded.corrections[0].parameters == {"field": "title", "value": "Prologue"}

    def test_save_json(self, engine, book_structure, tmp_path):
        """JSON stores write .json files."""
        store = CorrectionProfileStore(tmp_path, file_format="json")
        saved = engine.build_saved_corrections(book_structure, [])
        path = store.save(saved)
        assert path.suffix == ".json"
        assert json.loads(path.read_text(encoding="utf-8"))["document_id"] == saved.document_id
        assert CorrectionProfileStore(tmp_path, file_format="json").document_ids() == [
            saved.document_id
        ]

    def test_in_memory_store(self, engine, book_structure):
        """Without a directory profiles stay in memory."""
        store = CorrectionProfileStore()
        saved = engine.build_saved_corrections(book_structure, [])
        assert store.save(saved) is None
        assert store.load(saved.document_id) is saved
        assert store.delete(saved.document_id)
        assert store.load(saved.document_id) is None

    def test_malformed_file(self, tmp_path):
        """Unreadable or malformed files load as None."""
        store = CorrectionProfileStore(tmp_path)
        (tmp_path / "profile-bad.yaml").write_text("key: [unclosed", encoding="utf-8")
        (tmp_path / "profile-empty.yaml").write_text("just a string", encoding="utf-8")
        assert store.load("profile-bad") is None
        assert store.load("profile-empty") is None
        assert store.load("profile-missing") is None

    def test_unknown_format(self, tmp_path):
        """Only yaml and json are supported."""
        with pytest.raises(ConfigurationError):
            CorrectionProfileStore(tmp_path, file_format="toml")

    def test_find_matching(self, engine, book_structure, analyzer):
        """The profile for the same title matches; a different document does not."""
        store = CorrectionProfileStore()
        store.save(engine.build_saved_corrections(book_structure, []))
        assert store.find_matching(book_structure).document_id == document_id_for(
            "Chapter 1: The Beginning"
        )

        other = analyzer.analyze("# Cooking\n\nBoil the water first.", "markdown")
        assert store.find_matching(other.document_structure) is None

    def test_fingerprint_similarity(self, book_structure):
        """Identical fingerprints are fully similar."""
        fingerprint = StructureFingerprint.from_structure(book_structure)
        assert fingerprint.similarity(fingerprint) == 1.0
        assert fingerprint.chapter_count == 2


class TestReplay:
    """Test replaying saved corrections."""

    def test_replay_identical_structure(self, engine, book_structure):
        """The same structure gets the recorded corrections back."""
        session = engine.start_session(book_structure)
        session.merge(["chapter-1", "chapter-2"], title="Everything")
        saved = engine.build_saved_corrections(book_structure, session.corrections)

        result = engine.replay(book_structure, saved)
        (chapter,) = result.structure.chapters
        assert chapter.title == "Everything"
        assert chapter.correction_source == "saved-profile"
        assert all(c.source == "saved-profile" for c in result.corrections)

    def test_replay_patterns_on_changed_structure(
        self, engine, book_structure, analyzer, three_chapter_markdown
    ):
        """A changed structure only gets title and confidence patterns."""
        session = engine.start_session(book_structure)
        session.edit_field("chapter-2", "title", "The Crossing")
        session.override_confidence("chapter-1", 0.55)
        saved = engine.build_saved_corrections(book_structure, session.corrections)

        longer = analyzer.analyze(three_chapter_markdown, "markdown").document_structure
        result = engine.replay(longer, saved)
        titles = [c.title for c in result.structure.chapters]
        assert titles == ["Chapter 1: The Beginning", "The Crossing", "Chapter 3: The Return"]
        assert result.structure.chapters[0].confidence == 0.55
