"""
Navigation tree.

Builds a display tree mirroring a DocumentStructure:

    root (document, level 0)
    └── chapter (level 1)
        └── section (one per paragraph, level 2)
            └── sentence (level 3, first few only, then a "more" placeholder)

Nodes reference their parent by id. A DocumentTree keeps a flat id -> node
table for lookups, so nodes never hold back-pointers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from narrastruct.config import TreeConfig
from narrastruct.corrections.overlay import CHAPTER, CorrectionOverlay
from narrastruct.models import (
    Chapter,
    DocumentStructure,
    DocumentTreeNode,
    NodeDisplay,
    NodeType,
    Paragraph,
    ParagraphType,
    Sentence,
)

logger = logging.getLogger(__name__)

ROOT_ID = "root"

ICONS = {
    "document": "📄",
    "chapter": "📖",
    "heading": "📑",
    "paragraph": "📝",
    "sentence": "💬",
    "more": "⋯",
}


def truncate(text: str, length: int) -> str:
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    return text[: length - 3].rstrip() + "..."


@dataclass
class DocumentTree:
    """A root node plus a flat id -> node table."""

    root: DocumentTreeNode
    nodes: dict[str, DocumentTreeNode] = field(default_factory=dict)

    def get(self, node_id: str) -> DocumentTreeNode | None:
        return self.nodes.get(node_id)

    def parent(self, node_id: str) -> DocumentTreeNode | None:
        node = self.nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self.nodes.get(node.parent_id)

    def ancestors(self, node_id: str) -> list[DocumentTreeNode]:
        """Parents of ``node_id`` from the nearest up to the root."""
        result = []
        current = self.parent(node_id)
        while current is not None:
            result.append(current)
            current = self.parent(current.id)
        return result

    def walk(self, include_removed: bool = False) -> Iterator[DocumentTreeNode]:
        """Depth-first, pre-order traversal."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.display.removed and not include_removed:
                continue
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict[str, Any]:
        return self.root.to_dict()


def index_tree(root: DocumentTreeNode) -> DocumentTree:
    """Rebuild the flat node table for a tree."""
    nodes: dict[str, DocumentTreeNode] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        nodes[node.id] = node
        stack.extend(node.children)
    return DocumentTree(root=root, nodes=nodes)


class TreeBuilder:
    """
    Build navigation trees.

    Usage:
        tree = TreeBuilder().build(structure)
        for node in tree.walk():
            print("  " * node.level, node.display.icon, node.label)
    """

    def __init__(self, config: TreeConfig | None = None):
        self.config = config or TreeConfig()

    def build(
        self,
        structure: DocumentStructure,
        overlay: CorrectionOverlay | None = None,
        include_removed: bool = False,
    ) -> DocumentTree:
        """Build the tree for ``structure``.

        Nodes the overlay marks removed are left out unless
        ``include_removed`` is set, in which case they hang off the root
        flagged ``display.removed``.
        """
        config = self.config
        root = DocumentTreeNode(
            id=ROOT_ID,
            label=structure.metadata.title or "Document",
            type=NodeType.DOCUMENT,
            level=0,
            display=NodeDisplay(
                confidence=structure.confidence,
                icon=ICONS["document"],
                expanded=True,
                has_issues=structure.confidence < config.document_issue_threshold,
                word_count=structure.total_word_count,
            ),
        )
        root.children = [
            self._chapter_node(chapter, index) for index, chapter in enumerate(structure.chapters)
        ]

        if overlay is not None and include_removed:
            for review in overlay.removed_nodes():
                root.children.append(
                    DocumentTreeNode(
                        id=review.node_id,
                        label=truncate(review.label, config.heading_label_length),
                        type=NodeType.CHAPTER if review.kind == CHAPTER else NodeType.SECTION,
                        level=1,
                        parent_id=ROOT_ID,
                        display=NodeDisplay(
                            confidence=review.confidence,
                            icon=ICONS["chapter"] if review.kind == CHAPTER else ICONS["paragraph"],
                            removed=True,
                            is_manual_override=review.is_manual_override,
                        ),
                    )
                )

        tree = index_tree(root)
        logger.debug("Built tree with %d nodes", len(tree.nodes))
        return tree

    def _chapter_node(self, chapter: Chapter, index: int) -> DocumentTreeNode:
        config = self.config
        label = chapter.title.strip() or f"Chapter {index + 1}"
        node = DocumentTreeNode(
            id=chapter.id,
            label=truncate(label, config.heading_label_length),
            type=NodeType.CHAPTER,
            level=1,
            parent_id=ROOT_ID,
            display=NodeDisplay(
                confidence=chapter.confidence,
                icon=ICONS["chapter"],
                expanded=index < config.expanded_chapters,
                has_issues=chapter.confidence < config.chapter_issue_threshold,
                word_count=chapter.word_count,
                is_fallback=chapter.is_fallback,
                is_manual_override=chapter.is_manual_override,
            ),
        )
        node.children = [self._paragraph_node(p, chapter.id) for p in chapter.paragraphs]
        return node

    def _paragraph_node(self, paragraph: Paragraph, parent_id: str) -> DocumentTreeNode:
        config = self.config
        is_heading = paragraph.type is ParagraphType.HEADING
        text = " ".join(s.text for s in paragraph.sentences) or paragraph.raw_text
        node = DocumentTreeNode(
            id=paragraph.id,
            label=truncate(text, config.heading_label_length) or f"Paragraph {paragraph.position + 1}",
            type=NodeType.SECTION,
            level=2,
            parent_id=parent_id,
            display=NodeDisplay(
                confidence=paragraph.confidence,
                icon=ICONS["heading"] if is_heading else ICONS["paragraph"],
                has_issues=paragraph.confidence < config.paragraph_issue_threshold,
                word_count=paragraph.word_count,
                is_manual_override=paragraph.detected_confidence is not None,
            ),
        )

        preview = paragraph.sentences[: config.sentence_preview]
        node.children = [self._sentence_node(s, paragraph.id) for s in preview]
        hidden = len(paragraph.sentences) - len(preview)
        if hidden > 0:
            node.children.append(
                DocumentTreeNode(
                    id=f"{paragraph.id}-more",
                    label=f"... and {hidden} more sentences",
                    type=NodeType.SENTENCE,
                    level=3,
                    parent_id=paragraph.id,
                    display=NodeDisplay(
                        confidence=paragraph.confidence,
                        icon=ICONS["more"],
                        is_placeholder=True,
                        word_count=sum(s.word_count for s in paragraph.sentences[len(preview) :]),
                    ),
                )
            )
        return node

    def _sentence_node(self, sentence: Sentence, parent_id: str) -> DocumentTreeNode:
        return DocumentTreeNode(
            id=sentence.id,
            label=truncate(sentence.text, self.config.sentence_label_length),
            type=NodeType.SENTENCE,
            level=3,
            parent_id=parent_id,
            display=NodeDisplay(
                confidence=sentence.confidence,
                icon=ICONS["sentence"],
                has_issues=sentence.confidence < self.config.sentence_issue_threshold,
                word_count=sentence.word_count,
            ),
        )


def render_tree(tree: DocumentTree, include_removed: bool = False) -> str:
    """Indented plain-text rendering used by the CLI."""
    lines = []
    for node in tree.walk(include_removed=include_removed):
        flag = " !" if node.display.has_issues else ""
        score = "" if node.display.is_placeholder else f" ({node.display.confidence:.2f})"
        lines.append(f"{'  ' * node.level}{node.display.icon} {node.label}{score}{flag}")
    return "\n".join(lines)
