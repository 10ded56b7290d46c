"""
Correction overlay.

A review layer over a DocumentStructure. Every chapter and paragraph gets a
ReviewNode keyed by id that tracks its review status, user overrides and
soft deletion. The structure the overlay was built from is never touched:
merged or replaced nodes stay in the overlay marked ``removed`` so a review
UI can still show them.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

from narrastruct.exceptions import CorrectionError
from narrastruct.models import DocumentStructure, NodeStatus

logger = logging.getLogger(__name__)

CHAPTER = "chapter"
PARAGRAPH = "paragraph"

# Allowed review transitions; edits may always move a live node to MODIFIED.
TRANSITIONS: dict[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.PENDING: frozenset({NodeStatus.APPROVED, NodeStatus.REJECTED, NodeStatus.MODIFIED}),
    NodeStatus.MODIFIED: frozenset({NodeStatus.APPROVED, NodeStatus.REJECTED, NodeStatus.MODIFIED}),
    NodeStatus.APPROVED: frozenset({NodeStatus.MODIFIED}),
    NodeStatus.REJECTED: frozenset({NodeStatus.MODIFIED}),
}


@dataclass
class ReviewNode:
    """Review state for one chapter or paragraph."""

    node_id: str
    kind: str  # "chapter" or "paragraph"
    parent_id: str | None
    label: str
    status: NodeStatus = NodeStatus.PENDING
    detected_confidence: float = 0.0
    override_confidence: float | None = None
    original_values: dict[str, Any] = field(default_factory=dict)
    current_values: dict[str, Any] = field(default_factory=dict)
    removed: bool = False
    is_manual_override: bool = False
    merged_from: list[str] = field(default_factory=list)
    replaced_by: str | None = None
    requires_review: bool = False
    priority: str = "normal"

    @property
    def confidence(self) -> float:
        if self.override_confidence is not None:
            return self.override_confidence
        return self.detected_confidence


class CorrectionOverlay:
    """
    Review nodes for a structure, keyed by node id.

    Usage:
        overlay = CorrectionOverlay.from_structure(structure)
        overlay.approve("chapter-1")
        for node in overlay.nodes_needing_review(threshold=0.5):
            print(node.node_id, node.confidence)
    """

    def __init__(self) -> None:
        self.nodes: dict[str, ReviewNode] = {}

    @classmethod
    def from_structure(cls, structure: DocumentStructure) -> CorrectionOverlay:
        overlay = cls()
        overlay.sync(structure)
        return overlay

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get(self, node_id: str) -> ReviewNode:
        """Any node, removed or not.

        Raises:
            CorrectionError: If the id is unknown.
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise CorrectionError(f"Unknown node '{node_id}'")
        return node

    def live(self, node_id: str) -> ReviewNode:
        """A node that has not been removed.

        Raises:
            CorrectionError: If the id is unknown or the node was removed.
        """
        node = self.get(node_id)
        if node.removed:
            replaced = f" (replaced by '{node.replaced_by}')" if node.replaced_by else ""
            raise CorrectionError(f"Node '{node_id}' was removed{replaced}")
        return node

    def live_nodes(self, kind: str | None = None) -> list[ReviewNode]:
        return [n for n in self.nodes.values() if not n.removed and (kind is None or n.kind == kind)]

    def removed_nodes(self, kind: str | None = None) -> list[ReviewNode]:
        return [n for n in self.nodes.values() if n.removed and (kind is None or n.kind == kind)]

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def _transition(self, node_id: str, status: NodeStatus) -> ReviewNode:
        node = self.live(node_id)
        if status not in TRANSITIONS[node.status]:
            raise CorrectionError(
                f"Cannot move node '{node_id}' from {node.status.value} to {status.value}"
            )
        node.status = status
        if status is not NodeStatus.MODIFIED:
            node.requires_review = False
        logger.debug("Node %s -> %s", node_id, status.value)
        return node

    def approve(self, node_id: str) -> ReviewNode:
        return self._transition(node_id, NodeStatus.APPROVED)

    def reject(self, node_id: str) -> ReviewNode:
        return self._transition(node_id, NodeStatus.REJECTED)

    def mark_modified(self, node_id: str, field_name: str, old: Any, new: Any) -> ReviewNode:
        """Record an edit. The first recorded value of a field is kept as original."""
        node = self._transition(node_id, NodeStatus.MODIFIED)
        node.original_values.setdefault(field_name, old)
        node.current_values[field_name] = new
        if field_name == "title":
            node.label = str(new)
        return node

    def override(self, node_id: str, confidence: float) -> ReviewNode:
        node = self.mark_modified(node_id, "confidence", self.live(node_id).confidence, confidence)
        node.override_confidence = confidence
        node.is_manual_override = True
        return node

    def nodes_needing_review(self, threshold: float = 0.5) -> list[ReviewNode]:
        """
        Copies of live nodes below ``threshold``, flagged as high-priority
        review items. The overlay's own nodes are left as they are.
        """
        return [
            dataclasses.replace(node, requires_review=True, priority="high")
            for node in self.live_nodes()
            if node.confidence < threshold and node.status is not NodeStatus.APPROVED
        ]

    # -------------------------------------------------------------------------
    # Structural bookkeeping
    # -------------------------------------------------------------------------

    def add(self, node: ReviewNode) -> ReviewNode:
        self.nodes[node.node_id] = node
        return node

    def replace(self, node_ids: list[str], replacement: ReviewNode) -> ReviewNode:
        """Soft-delete ``node_ids`` in favour of ``replacement``."""
        for node_id in node_ids:
            node = self.live(node_id)
            node.removed = True
            node.replaced_by = replacement.node_id
        replacement.merged_from = list(node_ids)
        replacement.is_manual_override = True
        replacement.status = NodeStatus.MODIFIED
        return self.add(replacement)

    def sync(self, structure: DocumentStructure) -> None:
        """Bring node labels, parents and scores in line with ``structure``.

        New units get pending nodes; live nodes whose unit disappeared are
        marked removed.
        """
        seen: set[str] = set()
        for chapter in structure.chapters:
            seen.add(chapter.id)
            node = self.nodes.get(chapter.id)
            if node is None:
                node = self.add(ReviewNode(node_id=chapter.id, kind=CHAPTER, parent_id=None, label=chapter.title))
            node.label = chapter.title
            node.removed = False
            node.detected_confidence = _detected(chapter.confidence, chapter.detected_confidence)
            for paragraph in chapter.paragraphs:
                seen.add(paragraph.id)
                child = self.nodes.get(paragraph.id)
                if child is None:
                    child = self.add(
                        ReviewNode(
                            node_id=paragraph.id,
                            kind=PARAGRAPH,
                            parent_id=chapter.id,
                            label=_paragraph_label(paragraph.raw_text),
                        )
                    )
                child.parent_id = chapter.id
                child.removed = False
                child.detected_confidence = _detected(
                    paragraph.confidence, paragraph.detected_confidence
                )

        for node_id, node in self.nodes.items():
            if node_id not in seen and not node.removed:
                node.removed = True
                logger.debug("Node %s no longer in structure; marked removed", node_id)


def _detected(confidence: float, detected: float | None) -> float:
    return confidence if detected is None else detected


def _paragraph_label(text: str, length: int = 40) -> str:
    label = " ".join(text.split())
    return label if len(label) <= length else label[: length - 3] + "..."
