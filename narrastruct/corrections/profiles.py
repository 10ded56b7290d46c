"""
Saved correction profiles.

A profile records the corrections a reviewer made to one document plus the
reusable patterns behind them, so a later analysis of the same (or a very
similar) document can replay them. Profiles live in memory and, when the
store has a directory, as YAML or JSON files named after the document id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from difflib import SequenceMatcher
from pathlib import Path
from typing import Any

import yaml

from narrastruct.detection.titles import slugify
from narrastruct.exceptions import ConfigurationError
from narrastruct.models import DocumentStructure, StructureCorrection

logger = logging.getLogger(__name__)

PROFILE_PREFIX = "profile-"
FILE_SUFFIXES = {"yaml": ".yaml", "json": ".json"}


def document_id_for(title: str | None) -> str:
    """Stable profile id for a document title: "profile-my-book"."""
    return PROFILE_PREFIX + slugify(title or "")


@dataclass
class CorrectionPatterns:
    """Reusable lessons from a set of corrections.

    title_patterns maps a detected chapter title to the title a reviewer
    gave it; confidence_adjustments maps a chapter title to the confidence
    a reviewer assigned.
    """

    title_patterns: dict[str, str] = field(default_factory=dict)
    confidence_adjustments: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title_patterns": dict(self.title_patterns),
            "confidence_adjustments": dict(self.confidence_adjustments),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CorrectionPatterns:
        data = data or {}
        return cls(
            title_patterns=dict(data.get("title_patterns") or {}),
            confidence_adjustments={
                k: float(v) for k, v in (data.get("confidence_adjustments") or {}).items()
            },
        )


@dataclass(frozen=True)
class StructureFingerprint:
    """What a structure looked like when its corrections were recorded."""

    title: str
    chapter_count: int
    chapter_titles: tuple[str, ...]

    @classmethod
    def from_structure(cls, structure: DocumentStructure) -> StructureFingerprint:
        return cls(
            title=structure.metadata.title or "",
            chapter_count=len(structure.chapters),
            chapter_titles=tuple(c.title for c in structure.chapters),
        )

    def similarity(self, other: StructureFingerprint) -> float:
        """Similarity in [0, 1] of titles and chapter titles."""
        mine = "\n".join((self.title, *self.chapter_titles)).lower()
        theirs = "\n".join((other.title, *other.chapter_titles)).lower()
        if not mine and not theirs:
            return 1.0
        return SequenceMatcher(None, mine, theirs).ratio()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "chapter_count": self.chapter_count,
            "chapter_titles": list(self.chapter_titles),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StructureFingerprint:
        return cls(
            title=data.get("title", ""),
            chapter_count=int(data.get("chapter_count", 0)),
            chapter_titles=tuple(data.get("chapter_titles", ())),
        )


@dataclass
class SavedCorrections:
    """A persisted correction profile."""

    document_id: str
    corrections: list[StructureCorrection]
    patterns: CorrectionPatterns
    fingerprint: StructureFingerprint
    saved_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for YAML/JSON serialization."""
        return {
            "document_id": self.document_id,
            "saved_at": self.saved_at.isoformat(),
            "fingerprint": self.fingerprint.to_dict(),
            "patterns": self.patterns.to_dict(),
            "corrections": [c.to_dict() for c in self.corrections],
            "version": "1.0",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedCorrections:
        """Create from dictionary."""
        saved_at = data.get("saved_at")
        return cls(
            document_id=data["document_id"],
            corrections=[StructureCorrection.from_dict(c) for c in data.get("corrections", [])],
            patterns=CorrectionPatterns.from_dict(data.get("patterns")),
            fingerprint=StructureFingerprint.from_dict(data.get("fingerprint") or {}),
            saved_at=datetime.fromisoformat(saved_at) if saved_at else datetime.now(),
        )


class CorrectionProfileStore:
    """
    Keeps saved corrections in memory and optionally on disk.

    Usage:
        store = CorrectionProfileStore(Path("~/.narrastruct/profiles").expanduser())
        store.save(saved)
        match = store.find_matching(structure)
    """

    def __init__(
        self,
        directory: Path | str | None = None,
        file_format: str = "yaml",
        match_threshold: float = 0.8,
    ):
        """Initialize the store.

        Args:
            directory: Where profile files live. None keeps profiles in memory only.
            file_format: "yaml" (default) or "json".
            match_threshold: Minimum fingerprint similarity for find_matching().

        Raises:
            ConfigurationError: On an unknown file format or a threshold outside [0, 1].
        """
        if file_format not in FILE_SUFFIXES:
            raise ConfigurationError(
                f"Unknown profile file format '{file_format}'. "
                f"Available: {', '.join(sorted(FILE_SUFFIXES))}"
            )
        if not 0.0 <= match_threshold <= 1.0:
            raise ConfigurationError(
                f"match_threshold must be between 0.0 and 1.0, got {match_threshold}"
            )
        self.directory = Path(directory) if directory is not None else None
        self.file_format = file_format
        self.match_threshold = match_threshold
        self._memory: dict[str, SavedCorrections] = {}

    def path_for(self, document_id: str) -> Path | None:
        if self.directory is None:
            return None
        return self.directory / f"{document_id}{FILE_SUFFIXES[self.file_format]}"

    def save(self, saved: SavedCorrections) -> Path | None:
        """Keep ``saved`` in memory and write it to disk when a directory is set.

        Raises:
            OSError: If the file cannot be written.
        """
        self._memory[saved.document_id] = saved
        path = self.path_for(saved.document_id)
        if path is None:
            logger.debug("No profile directory set; kept %s in memory", saved.document_id)
            return None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                if self.file_format == "json":
                    json.dump(saved.to_dict(), f, indent=2, ensure_ascii=False)
                else:
                    yaml.safe_dump(saved.to_dict(), f, sort_keys=False, allow_unicode=True)
            logger.info(
                "Saved %d corrections for %s to %s",
                len(saved.corrections),
                saved.document_id,
                path,
            )
        except OSError as e:
            logger.error("Failed to save correction profile: %s", e)
            raise
        return path

    def load(self, document_id: str) -> SavedCorrections | None:
        """Saved corrections for ``document_id``, or None.

        Unreadable or malformed files are logged and treated as missing.
        """
        if document_id in self._memory:
            return self._memory[document_id]

        path = self.path_for(document_id)
        if path is None or not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                if self.file_format == "json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            saved = SavedCorrections.from_dict(data)
        except (yaml.YAMLError, json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load correction profile %s: %s", path, e)
            return None
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed correction profile %s: %s", path, e)
            return None

        self._memory[document_id] = saved
        logger.info("Loaded %d corrections from %s", len(saved.corrections), path)
        return saved

    def document_ids(self) -> list[str]:
        ids = set(self._memory)
        if self.directory is not None and self.directory.is_dir():
            suffix = FILE_SUFFIXES[self.file_format]
            ids.update(p.stem for p in self.directory.glob(f"{PROFILE_PREFIX}*{suffix}"))
        return sorted(ids)

    def delete(self, document_id: str) -> bool:
        """Forget a profile. Returns True if anything was removed."""
        removed = self._memory.pop(document_id, None) is not None
        path = self.path_for(document_id)
        if path is not None and path.exists():
            path.unlink()
            removed = True
        if removed:
            logger.info("Deleted correction profile %s", document_id)
        return removed

    def find_matching(self, structure: DocumentStructure) -> SavedCorrections | None:
        """Best saved profile for ``structure`` at or above the match threshold.

        The profile named after the document title is checked first.
        """
        fingerprint = StructureFingerprint.from_structure(structure)
        own = self.load(document_id_for(structure.metadata.title))
        if own is not None and own.fingerprint.similarity(fingerprint) >= self.match_threshold:
            return own

        best: SavedCorrections | None = None
        best_score = self.match_threshold
        for document_id in self.document_ids():
            saved = self.load(document_id)
            if saved is None:
                continue
            score = saved.fingerprint.similarity(fingerprint)
            if score >= best_score and (best is None or score > best_score):
                best, best_score = saved, score
        if best is not None:
            logger.info("Matched correction profile %s (similarity %.2f)", best.document_id, best_score)
        return best
