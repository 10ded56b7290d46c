"""
Structure validation.

- rules: built-in ValidationRule subclasses
- validator: rule registry, confidence floor, warning ceiling, custom rules
"""

from narrastruct.validation.rules import (
    BUILTIN_RULES,
    BoundaryIntegrityRule,
    ChapterConsistencyRule,
    ChapterContentRule,
    ChapterTitleRule,
    ParagraphRule,
    RuleOutcome,
    SentenceLengthRule,
    StructurePresenceRule,
    ValidationRule,
)
from narrastruct.validation.validator import ValidationOptions, Validator

__all__ = [
    # Validator
    "Validator",
    "ValidationOptions",
    # Rules
    "ValidationRule",
    "RuleOutcome",
    "BUILTIN_RULES",
    "StructurePresenceRule",
    "ChapterTitleRule",
    "ChapterContentRule",
    "ParagraphRule",
    "SentenceLengthRule",
    "ChapterConsistencyRule",
    "BoundaryIntegrityRule",
]
