"""Tests for the navigation tree."""

import pytest

from narrastruct import CorrectionEngine, TreeConfig
from narrastruct.models import NodeType
from narrastruct.tree import ROOT_ID, TreeBuilder, index_tree, render_tree, truncate


@pytest.fixture
def tree(book_structure):
    return TreeBuilder().build(book_structure)


class TestTreeShape:
    """Test levels, parents and node counts."""

    def test_levels(self, tree):
        """Root is level 0, chapters 1, sections 2, sentences 3."""
        expected = {
            NodeType.DOCUMENT: 0,
            NodeType.CHAPTER: 1,
            NodeType.SECTION: 2,
            NodeType.SENTENCE: 3,
        }
        for node in tree.walk():
            assert node.level == expected[node.type]

    def test_node_count(self, tree):
        """Root, two chapters, four paragraphs and eight sentences."""
        assert len(list(tree.walk())) == 15
        assert len(tree.nodes) == 15

    def test_parent_ids(self, tree, book_structure):
        """Chapters hang off the root; sections off their chapter."""
        assert tree.root.id == ROOT_ID
        assert tree.root.parent_id is None
        for chapter in book_structure.chapters:
            assert tree.get(chapter.id).parent_id == ROOT_ID
            for paragraph in chapter.paragraphs:
                assert tree.get(paragraph.id).parent_id == chapter.id
                for sentence in paragraph.sentences:
                    assert tree.get(sentence.id).parent_id == paragraph.id

    def test_ancestors(self, tree):
        """Ancestors run from the nearest parent up to the root."""
        ancestors = tree.ancestors("chapter-1-p-0-s-0")
        assert [n.id for n in ancestors] == ["chapter-1-p-0", "chapter-1", ROOT_ID]
        assert tree.ancestors(ROOT_ID) == []
        assert tree.parent("missing") is None

    def test_labels(self, tree):
        """Chapter nodes are labelled with their titles."""
        assert tree.get("chapter-1").label == "Chapter 1: The Beginning"
        assert tree.root.label == "Chapter 1: The Beginning"

    def test_index_tree_round_trip(self, tree):
        """Rebuilding the table from the root finds every node."""
        assert set(index_tree(tree.root).nodes) == set(tree.nodes)


class TestDisplay:
    """Test display annotations."""

    def test_confidence_mirrors_structure(self, tree, book_structure):
        """Node confidence equals the unit's confidence."""
        assert tree.root.display.confidence == book_structure.confidence
        chapter = book_structure.chapters[0]
        assert tree.get(chapter.id).display.confidence == chapter.confidence

    def test_placeholder_for_hidden_sentences(self, book_structure):
        """Sentences past the preview limit collapse into one placeholder."""
        tree = TreeBuilder(TreeConfig(sentence_preview=1)).build(book_structure)
        section = tree.get("chapter-1-p-0")
        assert len(section.children) == 2
        placeholder = section.children[-1]
        assert placeholder.id == "chapter-1-p-0-more"
        assert placeholder.label == "... and 1 more sentences"
        assert placeholder.display.is_placeholder

    def test_expanded_chapters(self, book_structure):
        """Only the first expanded_chapters chapters start expanded."""
        tree = TreeBuilder(TreeConfig(expanded_chapters=1)).build(book_structure)
        assert tree.get("chapter-1").display.expanded
        assert not tree.get("chapter-2").display.expanded

    def test_fallback_flag(self, analyzer, unheaded_markdown):
        """Paragraph groups are flagged as fallback in the tree."""
        structure = analyzer.analyze(unheaded_markdown, "markdown").document_structure
        tree = TreeBuilder().build(structure)
        (chapter,) = tree.root.children
        assert chapter.display.is_fallback
        assert chapter.display.has_issues

    def test_truncate(self):
        """Long labels end in an ellipsis within the limit."""
        assert truncate("short", 10) == "short"
        label = truncate("a fairly long label that will not fit", 12)
        assert len(label) <= 12
        assert label.endswith("...")


class TestRemovedNodes:
    """Test overlay-removed nodes in the tree."""

    def test_removed_nodes_are_flagged(self, book_structure):
        """Merged-away chapters appear only when asked for, flagged removed."""
        session = CorrectionEngine().start_session(book_structure)
        session.merge(["chapter-1", "chapter-2"])

        plain = TreeBuilder().build(session.structure, session.overlay)
        assert plain.get("chapter-1") is None

        tree = TreeBuilder().build(session.structure, session.overlay, include_removed=True)
        removed = tree.get("chapter-1")
        assert removed.display.removed
        visible = [n.id for n in tree.walk()]
        assert "merged-chapter-1-chapter-2" in visible
        assert "chapter-1" not in visible
        assert "chapter-1" in [n.id for n in tree.walk(include_removed=True)]


class TestRendering:
    """Test plain-text rendering and serialization."""

    def test_render_tree(self, tree):
        """Each visible node is one indented line with its icon."""
        text = render_tree(tree)
        lines = text.splitlines()
        assert len(lines) == 15
        assert lines[0].startswith("📄")
        assert "📖 Chapter 1: The Beginning" in text
        assert lines[1].startswith("  📖")

    def test_to_dict(self, tree):
        """The dictionary form nests children and records parents."""
        data = tree.to_dict()
        assert data["type"] == "document"
        chapter = data["children"][0]
        assert chapter["parent_id"] == ROOT_ID
        assert chapter["display"]["icon"] == "📖"
        assert chapter["children"][0]["type"] == "section"
