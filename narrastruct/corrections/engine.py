"""
Correction engine.

Applies reviewer corrections to a working copy of a DocumentStructure:

    engine = CorrectionEngine()
    session = engine.start_session(structure)
    session.merge(["chapter-2", "chapter-3"])
    session.edit_field("chapter-1", "title", "Prologue")
    result = session.result()

Every operation returns the StructureCorrection it recorded. An operation
that cannot be applied is recorded with ``applied=False`` and an ``error``;
it never aborts the rest of a batch. Structural operations re-derive the
affected chapters and rescore the structure, keeping user overrides.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from narrastruct.assembly import ChapterAssembler, renumber_chapters
from narrastruct.config import SegmentationConfig
from narrastruct.corrections.history import CorrectionHistory
from narrastruct.corrections.overlay import CHAPTER, PARAGRAPH, CorrectionOverlay, ReviewNode
from narrastruct.corrections.profiles import (
    CorrectionPatterns,
    CorrectionProfileStore,
    SavedCorrections,
    StructureFingerprint,
    document_id_for,
)
from narrastruct.exceptions import CorrectionError
from narrastruct.models import (
    Chapter,
    CorrectionType,
    DocumentStructure,
    Location,
    NodeStatus,
    Paragraph,
    ParagraphType,
    StructureCorrection,
    StructureCorrectionResult,
)
from narrastruct.scoring.scorer import ConfidenceScorer
from narrastruct.validation.validator import ValidationOptions, Validator

logger = logging.getLogger(__name__)

CHAPTER_FIELDS = ("title", "level")
PARAGRAPH_FIELDS = ("include_in_audio", "type")
SAVED_PROFILE_SOURCE = "saved-profile"
MANUAL_SOURCE = "manual"


def _unique_id(base: str, taken: set[str]) -> str:
    candidate = base
    n = 2
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


class CorrectionSession:
    """
    One reviewer's pass over a structure.

    The session owns a deep copy of the structure and an overlay of review
    nodes. Permissions switch whole operation families off.
    """

    def __init__(
        self,
        engine: CorrectionEngine,
        structure: DocumentStructure,
        document_id: str,
        *,
        can_reorder: bool = True,
        can_split: bool = True,
        can_merge: bool = True,
        can_edit: bool = True,
    ):
        self.session_id = uuid.uuid4().hex[:12]
        self.document_id = document_id
        self.started_at = datetime.now()
        self.is_active = True
        self.can_reorder = can_reorder
        self.can_split = can_split
        self.can_merge = can_merge
        self.can_edit = can_edit

        self.original_confidence = structure.confidence
        self.structure = copy.deepcopy(structure)
        self.overlay = CorrectionOverlay.from_structure(self.structure)
        self.corrections: list[StructureCorrection] = []
        self._engine = engine

        self._handlers: dict[CorrectionType, Callable[[StructureCorrection], list[str]]] = {
            CorrectionType.FIELD_EDIT: self._apply_field_edit,
            CorrectionType.CONFIDENCE_RECALIBRATE: self._apply_confidence,
            CorrectionType.CHAPTER_MERGE: self._apply_merge,
            CorrectionType.CHAPTER_SPLIT: self._apply_chapter_split,
            CorrectionType.PARAGRAPH_ADJUST: self._apply_paragraph_split,
            CorrectionType.BOUNDARY_MOVE: self._apply_boundary_move,
        }

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def edit_field(self, node_id: str, field_name: str, value: Any) -> StructureCorrection:
        return self.apply(
            StructureCorrection(
                type=CorrectionType.FIELD_EDIT,
                description=f"Set {field_name} of {node_id}",
                target_ids=[node_id],
                parameters={"field": field_name, "value": value},
            )
        )

    def override_confidence(self, node_id: str, confidence: float) -> StructureCorrection:
        return self.apply(
            StructureCorrection(
                type=CorrectionType.CONFIDENCE_RECALIBRATE,
                description=f"Override confidence of {node_id}",
                target_ids=[node_id],
                parameters={"confidence": confidence},
            )
        )

    def merge(self, node_ids: list[str], title: str | None = None) -> StructureCorrection:
        parameters = {"title": title} if title is not None else {}
        return self.apply(
            StructureCorrection(
                type=CorrectionType.CHAPTER_MERGE,
                description=f"Merge {', '.join(node_ids)}",
                target_ids=list(node_ids),
                parameters=parameters,
            )
        )

    def split_chapter(
        self, chapter_id: str, at_paragraph: int, title: str | None = None
    ) -> StructureCorrection:
        parameters: dict[str, Any] = {"at_paragraph": at_paragraph}
        if title is not None:
            parameters["title"] = title
        return self.apply(
            StructureCorrection(
                type=CorrectionType.CHAPTER_SPLIT,
                description=f"Split {chapter_id} at paragraph {at_paragraph}",
                target_ids=[chapter_id],
                parameters=parameters,
            )
        )

    def split_paragraph(self, paragraph_id: str, at_sentence: int) -> StructureCorrection:
        return self.apply(
            StructureCorrection(
                type=CorrectionType.PARAGRAPH_ADJUST,
                description=f"Split {paragraph_id} at sentence {at_sentence}",
                target_ids=[paragraph_id],
                parameters={"at_sentence": at_sentence},
            )
        )

    def move_boundary(self, chapter_id: str, offset: int) -> StructureCorrection:
        return self.apply(
            StructureCorrection(
                type=CorrectionType.BOUNDARY_MOVE,
                description=f"Move the boundary after {chapter_id} by {offset}",
                target_ids=[chapter_id],
                parameters={"offset": offset},
            )
        )

    def apply(self, correction: StructureCorrection) -> StructureCorrection:
        """Apply one correction, recording success or failure on it."""
        self._require_active()
        if not correction.correction_id:
            correction.correction_id = f"{self.session_id}-{len(self.corrections) + 1}"

        touched: list[str] = []
        try:
            touched = self._handlers[correction.type](correction)
        except (CorrectionError, ValueError, TypeError) as e:
            correction.applied = False
            correction.error = str(e)
            logger.warning("Correction %s failed: %s", correction.correction_id, e)
        else:
            correction.applied = True
            correction.error = None
            self._refresh(touched, correction.source)
            logger.debug("Applied %s to %s", correction.type.value, ", ".join(touched))

        self.corrections.append(correction)
        self._engine.history.append(
            self.document_id, correction, node_ids=list(correction.target_ids) + touched
        )
        return correction

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def approve(self, node_id: str) -> ReviewNode:
        self._require_active()
        return self.overlay.approve(node_id)

    def reject(self, node_id: str) -> ReviewNode:
        self._require_active()
        return self.overlay.reject(node_id)

    def nodes_needing_review(self, threshold: float = 0.5) -> list[ReviewNode]:
        return self.overlay.nodes_needing_review(threshold)

    def result(self) -> StructureCorrectionResult:
        """Snapshot of the corrected structure with its validation outcome."""
        structure = copy.deepcopy(self.structure)
        validation = self._engine.validator.validate(structure, self._engine.validation_options)
        return StructureCorrectionResult(
            original_confidence=self.original_confidence,
            corrected_confidence=structure.confidence,
            structure=structure,
            corrections=list(self.corrections),
            validation_passed=validation.is_valid,
            remaining_issues=[*validation.errors, *validation.warnings],
        )

    def close(self) -> StructureCorrectionResult:
        result = self.result()
        self.is_active = False
        logger.info(
            "Closed correction session %s: %d/%d applied",
            self.session_id,
            result.applied_count,
            len(result.corrections),
        )
        return result

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _apply_field_edit(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_edit, "editing")
        node_id = self._single_target(correction)
        field_name = correction.parameters.get("field")
        value = correction.parameters.get("value")
        node = self.overlay.live(node_id)

        if node.kind == CHAPTER:
            if field_name not in CHAPTER_FIELDS:
                raise CorrectionError(f"Chapter field '{field_name}' cannot be edited")
            chapter = self._chapter(node_id)
            if field_name == "title":
                value = str(value or "").strip()
                if not value:
                    raise CorrectionError("Chapter title cannot be empty")
            else:
                value = int(value)
                if not 1 <= value <= 6:
                    raise CorrectionError(f"Chapter level must be 1-6, got {value}")
            old = getattr(chapter, field_name)
            setattr(chapter, field_name, value)
            self.overlay.mark_modified(node_id, field_name, old, value)
            return [chapter.id]

        if field_name not in PARAGRAPH_FIELDS:
            raise CorrectionError(f"Paragraph field '{field_name}' cannot be edited")
        chapter, index = self._paragraph(node_id)
        paragraph = chapter.paragraphs[index]
        if field_name == "type":
            new_type = ParagraphType(value)
            old, recorded = paragraph.type.value, new_type.value
            paragraph.type = new_type
        else:
            if not isinstance(value, bool):
                raise CorrectionError(f"include_in_audio must be a boolean, got {value!r}")
            old, recorded = paragraph.include_in_audio, value
            paragraph.include_in_audio = value
        self.overlay.mark_modified(node_id, field_name, old, recorded)
        return [chapter.id]

    def _apply_confidence(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_edit, "editing")
        node_id = self._single_target(correction)
        confidence = float(correction.parameters.get("confidence", correction.confidence_delta))
        if not 0.0 <= confidence <= 1.0:
            raise CorrectionError(f"Confidence must be between 0.0 and 1.0, got {confidence}")
        node = self.overlay.live(node_id)

        if node.kind == CHAPTER:
            unit: Chapter | Paragraph = self._chapter(node_id)
            owner = node_id
            unit.is_manual_override = True  # type: ignore[union-attr]
        else:
            chapter, index = self._paragraph(node_id)
            unit = chapter.paragraphs[index]
            owner = chapter.id
        if unit.detected_confidence is None:
            unit.detected_confidence = unit.confidence
        correction.confidence_delta = round(confidence - unit.confidence, 4)
        unit.confidence = confidence
        self.overlay.override(node_id, confidence)
        return [owner]

    def _apply_merge(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_merge, "merging")
        ids = self._targets(correction, pair=True)
        if len(ids) < 2:
            raise CorrectionError("Merge needs at least two nodes")
        nodes = [self.overlay.live(node_id) for node_id in ids]
        kinds = {n.kind for n in nodes}
        if len(kinds) != 1:
            raise CorrectionError("Cannot merge chapters with paragraphs")
        new_id = "merged-" + "-".join(ids)

        if kinds == {CHAPTER}:
            indices = sorted(self._chapter_index(node_id) for node_id in ids)
            _require_adjacent(indices)
            chapters = [self.structure.chapters[i] for i in indices]
            first, last = chapters[0], chapters[-1]
            title = correction.parameters.get("title") or " + ".join(c.title for c in chapters)
            merged = Chapter(
                id=new_id,
                title=title,
                level=first.level,
                paragraphs=[p for c in chapters for p in c.paragraphs],
                position=first.position,
                word_count=0,
                start_position=first.start_position,
                end_position=last.end_position,
                raw_title=title,
                number=first.number if "title" not in correction.parameters else None,
                is_fallback=all(c.is_fallback for c in chapters),
                node_type="chapter" if any(c.node_type == "chapter" for c in chapters) else first.node_type,
                detection_source=first.detection_source,
                detection_confidence=max(c.detection_confidence for c in chapters),
                is_manual_override=True,
            )
            self.structure.chapters[indices[0] : indices[-1] + 1] = [merged]
            self._engine.assembler.rederive_chapter(merged)
            self.overlay.replace(
                [c.id for c in chapters],
                ReviewNode(node_id=new_id, kind=CHAPTER, parent_id=None, label=title),
            )
            return [new_id]

        located = [self._paragraph(node_id) for node_id in ids]
        chapter = located[0][0]
        if any(c is not chapter for c, _ in located):
            raise CorrectionError("Paragraphs to merge must belong to the same chapter")
        indices = sorted(i for _, i in located)
        _require_adjacent(indices)
        paragraphs = [chapter.paragraphs[i] for i in indices]
        types = {p.type for p in paragraphs}
        merged_paragraph = Paragraph(
            id=new_id,
            type=types.pop() if len(types) == 1 else ParagraphType.TEXT,
            sentences=[s for p in paragraphs for s in p.sentences],
            position=paragraphs[0].position,
            word_count=0,
            raw_text="\n\n".join(p.raw_text for p in paragraphs),
            include_in_audio=any(p.include_in_audio for p in paragraphs),
            start_position=paragraphs[0].start_position,
            end_position=paragraphs[-1].end_position,
        )
        chapter.paragraphs[indices[0] : indices[-1] + 1] = [merged_paragraph]
        self._engine.assembler.rederive_chapter(chapter)
        self.overlay.replace(
            [p.id for p in paragraphs],
            ReviewNode(
                node_id=new_id,
                kind=PARAGRAPH,
                parent_id=chapter.id,
                label=paragraphs[0].raw_text[:40],
            ),
        )
        return [chapter.id]

    def _apply_chapter_split(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_split, "splitting")
        chapter_id = self._single_target(correction)
        self.overlay.live(chapter_id)
        index = self._chapter_index(chapter_id)
        chapter = self.structure.chapters[index]
        at = int(correction.parameters.get("at_paragraph", correction.location.paragraph_index or 0))
        if not 1 <= at < len(chapter.paragraphs):
            raise CorrectionError(
                f"Cannot split {chapter_id} at paragraph {at}: "
                f"it has {len(chapter.paragraphs)} paragraph(s)"
            )

        moved = chapter.paragraphs[at:]
        title = correction.parameters.get("title")
        if not title:
            lead = moved[0]
            if lead.type is ParagraphType.HEADING and lead.sentences:
                title = " ".join(s.text for s in lead.sentences)
            else:
                title = f"{chapter.title} (continued)"

        taken = {c.id for c in self.structure.chapters} | set(self.overlay.nodes)
        new_id = _unique_id(f"{chapter_id}-split", taken)
        new_chapter = Chapter(
            id=new_id,
            title=title,
            level=chapter.level,
            paragraphs=moved,
            position=chapter.position + 1,
            word_count=0,
            start_position=moved[0].start_position,
            end_position=chapter.end_position,
            raw_title=title,
            detection_source=MANUAL_SOURCE,
            detection_confidence=chapter.detection_confidence,
            is_manual_override=True,
        )
        chapter.paragraphs = chapter.paragraphs[:at]
        chapter.end_position = new_chapter.start_position
        self.structure.chapters.insert(index + 1, new_chapter)
        for unit in (chapter, new_chapter):
            self._engine.assembler.rederive_chapter(unit)

        self.overlay.mark_modified(chapter_id, "paragraphs", at + len(moved), at)
        self.overlay.add(
            ReviewNode(
                node_id=new_id,
                kind=CHAPTER,
                parent_id=None,
                label=title,
                status=NodeStatus.MODIFIED,
                is_manual_override=True,
            )
        )
        return [chapter_id, new_id]

    def _apply_paragraph_split(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_split, "splitting")
        paragraph_id = self._single_target(correction)
        self.overlay.live(paragraph_id)
        chapter, index = self._paragraph(paragraph_id)
        paragraph = chapter.paragraphs[index]
        at = int(correction.parameters.get("at_sentence", correction.location.sentence_index or 0))
        if not 1 <= at < len(paragraph.sentences):
            raise CorrectionError(
                f"Cannot split {paragraph_id} at sentence {at}: "
                f"it has {len(paragraph.sentences)} sentence(s)"
            )

        head, tail = paragraph.sentences[:at], paragraph.sentences[at:]
        cut = tail[0].char_range[0] if tail[0].char_range else None
        if cut is not None and paragraph.start_position <= cut <= paragraph.end_position:
            relative = cut - paragraph.start_position
            head_text = paragraph.raw_text[:relative].rstrip()
            tail_text = paragraph.raw_text[relative:]
        else:
            head_text = " ".join(s.text for s in head)
            tail_text = " ".join(s.text for s in tail)
            cut = paragraph.start_position + len(head_text)
        cut = min(max(cut, paragraph.start_position + 1), paragraph.end_position)

        taken = {p.id for _, p in self.structure.iter_paragraphs()} | set(self.overlay.nodes)
        new_id = _unique_id(f"{paragraph_id}-split", taken)
        new_paragraph = Paragraph(
            id=new_id,
            type=paragraph.type,
            sentences=tail,
            position=paragraph.position + 1,
            word_count=0,
            raw_text=tail_text,
            include_in_audio=paragraph.include_in_audio,
            start_position=cut,
            end_position=paragraph.end_position,
        )
        paragraph.sentences = head
        paragraph.raw_text = head_text
        paragraph.end_position = cut
        chapter.paragraphs.insert(index + 1, new_paragraph)
        self._engine.assembler.rederive_chapter(chapter)

        self.overlay.mark_modified(paragraph_id, "sentences", len(head) + len(tail), len(head))
        return [chapter.id]

    def _apply_boundary_move(self, correction: StructureCorrection) -> list[str]:
        self._require(self.can_reorder, "moving boundaries")
        chapter_id = self._single_target(correction)
        self.overlay.live(chapter_id)
        index = self._chapter_index(chapter_id)
        if index + 1 >= len(self.structure.chapters):
            raise CorrectionError(f"{chapter_id} is the last chapter; there is no boundary to move")
        offset = int(correction.parameters.get("offset", 0))
        if offset == 0:
            raise CorrectionError("Boundary offset must not be 0")

        current = self.structure.chapters[index]
        following = self.structure.chapters[index + 1]
        if offset > 0:
            if offset >= len(following.paragraphs):
                raise CorrectionError(f"Moving {offset} paragraph(s) would empty {following.id}")
            current.paragraphs.extend(following.paragraphs[:offset])
            following.paragraphs = following.paragraphs[offset:]
        else:
            count = -offset
            if count >= len(current.paragraphs):
                raise CorrectionError(f"Moving {count} paragraph(s) would empty {chapter_id}")
            following.paragraphs[:0] = current.paragraphs[-count:]
            current.paragraphs = current.paragraphs[:-count]

        following.start_position = following.paragraphs[0].start_position
        current.end_position = following.start_position
        current.start_position = min(current.start_position, current.end_position - 1)
        for unit in (current, following):
            self._engine.assembler.rederive_chapter(unit)
        self.overlay.mark_modified(chapter_id, "boundary", 0, offset)
        return [current.id, following.id]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_active(self) -> None:
        if not self.is_active:
            raise CorrectionError(f"Correction session {self.session_id} is closed")

    @staticmethod
    def _require(allowed: bool, operation: str) -> None:
        if not allowed:
            raise CorrectionError(f"This session does not allow {operation}")

    def _targets(self, correction: StructureCorrection, pair: bool = False) -> list[str]:
        """Target ids, resolving ``location`` when no ids were given."""
        if correction.target_ids:
            return list(correction.target_ids)
        location = correction.location
        if location.chapter_index is None:
            raise CorrectionError("Correction has neither target ids nor a location")
        if location.chapter_index < 0 or (location.paragraph_index or 0) < 0:
            raise CorrectionError(f"Location {location.describe()} is out of range")
        try:
            chapter = self.structure.chapters[location.chapter_index]
            if location.paragraph_index is None:
                ids = [chapter.id]
                if pair:
                    ids.append(self.structure.chapters[location.chapter_index + 1].id)
            else:
                ids = [chapter.paragraphs[location.paragraph_index].id]
                if pair:
                    ids.append(chapter.paragraphs[location.paragraph_index + 1].id)
        except IndexError:
            raise CorrectionError(f"Location {location.describe()} is out of range") from None
        correction.target_ids = ids
        return ids

    def _single_target(self, correction: StructureCorrection) -> str:
        ids = self._targets(correction)
        if len(ids) != 1:
            raise CorrectionError(f"{correction.type.value} takes one target, got {len(ids)}")
        return ids[0]

    def _chapter_index(self, chapter_id: str) -> int:
        for index, chapter in enumerate(self.structure.chapters):
            if chapter.id == chapter_id:
                return index
        raise CorrectionError(f"Unknown chapter '{chapter_id}'")

    def _chapter(self, chapter_id: str) -> Chapter:
        return self.structure.chapters[self._chapter_index(chapter_id)]

    def _paragraph(self, paragraph_id: str) -> tuple[Chapter, int]:
        for chapter in self.structure.chapters:
            for index, paragraph in enumerate(chapter.paragraphs):
                if paragraph.id == paragraph_id:
                    return chapter, index
        raise CorrectionError(f"Unknown paragraph '{paragraph_id}'")

    def _refresh(self, touched: list[str], source: str) -> None:
        """Rescore everything, mark touched chapters and resync the overlay."""
        renumber_chapters(self.structure)
        self._engine.scorer.score_structure(self.structure, self._engine.chapter_levels)
        for chapter in self.structure.chapters:
            if chapter.id in touched:
                chapter.correction_applied = True
                chapter.correction_source = source
        self.overlay.sync(self.structure)


def _require_adjacent(indices: list[int]) -> None:
    if indices != list(range(indices[0], indices[0] + len(indices))):
        raise CorrectionError("Only adjacent siblings can be merged")


class CorrectionEngine:
    """
    Starts correction sessions and replays saved corrections.

    Usage:
        engine = CorrectionEngine(store=CorrectionProfileStore("profiles"))
        result = engine.apply_corrections(structure, corrections)
        saved = engine.save(structure, result.corrections)
    """

    def __init__(
        self,
        scorer: ConfidenceScorer | None = None,
        segmentation: SegmentationConfig | None = None,
        history: CorrectionHistory | None = None,
        store: CorrectionProfileStore | None = None,
        validator: Validator | None = None,
        *,
        chapter_levels: tuple[int, ...] = (1,),
        validation_options: ValidationOptions | None = None,
    ):
        self.scorer = scorer or ConfidenceScorer()
        self.assembler = ChapterAssembler(segmentation)
        self.history = history or CorrectionHistory()
        self.store = store or CorrectionProfileStore()
        self.validator = validator or Validator()
        self.chapter_levels = chapter_levels
        self.validation_options = validation_options or ValidationOptions()

    def start_session(
        self,
        structure: DocumentStructure,
        document_id: str | None = None,
        **permissions: bool,
    ) -> CorrectionSession:
        document_id = document_id or document_id_for(structure.metadata.title)
        session = CorrectionSession(self, structure, document_id, **permissions)
        logger.debug("Started correction session %s for %s", session.session_id, document_id)
        return session

    def apply_corrections(
        self,
        structure: DocumentStructure,
        corrections: list[StructureCorrection],
        document_id: str | None = None,
    ) -> StructureCorrectionResult:
        """Apply a batch on a copy of ``structure``; the input is never mutated."""
        session = self.start_session(structure, document_id)
        for correction in corrections:
            session.apply(copy.deepcopy(correction))
        return session.close()

    # -------------------------------------------------------------------------
    # Saved corrections
    # -------------------------------------------------------------------------

    def build_saved_corrections(
        self, structure: DocumentStructure, corrections: list[StructureCorrection]
    ) -> SavedCorrections:
        """Collect applied corrections and their patterns for ``structure``.

        ``structure`` is the uncorrected structure the corrections were made on.
        """
        applied = [copy.deepcopy(c) for c in corrections if c.applied]
        titles = {c.id: c.title for c in structure.chapters}
        patterns = CorrectionPatterns()
        for correction in applied:
            targets = correction.target_ids
            if len(targets) != 1 or targets[0] not in titles:
                continue
            original_title = titles[targets[0]]
            if (
                correction.type is CorrectionType.FIELD_EDIT
                and correction.parameters.get("field") == "title"
            ):
                patterns.title_patterns[original_title] = str(correction.parameters["value"])
            elif correction.type is CorrectionType.CONFIDENCE_RECALIBRATE:
                patterns.confidence_adjustments[original_title] = float(
                    correction.parameters["confidence"]
                )
        for correction in applied:
            correction.applied = False
            correction.error = None

        return SavedCorrections(
            document_id=document_id_for(structure.metadata.title),
            corrections=applied,
            patterns=patterns,
            fingerprint=StructureFingerprint.from_structure(structure),
        )

    def save(
        self, structure: DocumentStructure, corrections: list[StructureCorrection]
    ) -> SavedCorrections:
        saved = self.build_saved_corrections(structure, corrections)
        self.store.save(saved)
        return saved

    def replay(
        self, structure: DocumentStructure, saved: SavedCorrections
    ) -> StructureCorrectionResult:
        """Reapply a saved profile to a fresh analysis of a document.

        An identical structure gets the recorded corrections; anything else
        only gets the title and confidence patterns.
        """
        fingerprint = StructureFingerprint.from_structure(structure)
        if fingerprint == saved.fingerprint:
            corrections = [copy.deepcopy(c) for c in saved.corrections]
            mode = "corrections"
        else:
            corrections = self._pattern_corrections(structure, saved.patterns)
            mode = "patterns"
        for correction in corrections:
            correction.source = SAVED_PROFILE_SOURCE
            correction.applied = False
            correction.error = None
            correction.correction_id = ""

        logger.info(
            "Replaying %d saved %s from %s", len(corrections), mode, saved.document_id
        )
        return self.apply_corrections(structure, corrections, saved.document_id)

    @staticmethod
    def _pattern_corrections(
        structure: DocumentStructure, patterns: CorrectionPatterns
    ) -> list[StructureCorrection]:
        titles = {k.lower(): v for k, v in patterns.title_patterns.items()}
        confidences = {k.lower(): v for k, v in patterns.confidence_adjustments.items()}
        corrections = []
        for index, chapter in enumerate(structure.chapters):
            key = chapter.title.lower()
            if key in titles and titles[key] != chapter.title:
                corrections.append(
                    StructureCorrection(
                        type=CorrectionType.FIELD_EDIT,
                        location=Location(chapter_index=index),
                        description=f"Rename '{chapter.title}' from saved pattern",
                        target_ids=[chapter.id],
                        parameters={"field": "title", "value": titles[key]},
                    )
                )
            if key in confidences:
                corrections.append(
                    StructureCorrection(
                        type=CorrectionType.CONFIDENCE_RECALIBRATE,
                        location=Location(chapter_index=index),
                        description=f"Confidence for '{chapter.title}' from saved pattern",
                        target_ids=[chapter.id],
                        parameters={"confidence": confidences[key]},
                    )
                )
        return corrections
