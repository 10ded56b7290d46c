"""
Structure validator.

Runs, in order:
1. the built-in rules (optionally narrowed to a profile's rule names)
2. the confidence floor
3. the warning ceiling
4. custom rules

Each rule scores max(0, 1 - (errors * error_weight + warnings * warning_weight));
the result score is the mean of those scores.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from statistics import mean
from typing import Union

from narrastruct.config import ValidationConfig
from narrastruct.models import (
    DocumentStructure,
    Severity,
    ValidationResult,
    ValidationWarning,
)
from narrastruct.validation.rules import BUILTIN_RULES, RuleOutcome, ValidationRule

logger = logging.getLogger(__name__)

CustomRule = Union[ValidationRule, Callable[[DocumentStructure], ValidationResult]]

# Confidence this close above the floor still earns a warning
FLOOR_MARGIN = 0.1


@dataclass
class ValidationOptions:
    """Options for one validate() call."""

    min_confidence: float = 0.7
    max_warnings: int = 10
    strict: bool = False  # too many warnings becomes an error
    custom_rules: list[CustomRule] = field(default_factory=list)
    include_builtin_rules: bool = True
    rule_names: tuple[str, ...] | None = None  # None runs every registered rule

    def __post_init__(self):
        """Validate configuration."""
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be between 0.0 and 1.0, got {self.min_confidence}")
        if self.max_warnings < 0:
            raise ValueError(f"max_warnings must be >= 0, got {self.max_warnings}")


class Validator:
    """
    Check a structure against registered rules.

    Usage:
        validator = Validator()
        result = validator.validate(structure, ValidationOptions(strict=True))
        if not result.is_valid:
            for error in result.errors:
                print(error.code, error.location.describe())

    Custom rules:
        def has_author(structure):
            ...
            return ValidationResult(...)

        validator.validate(structure, ValidationOptions(custom_rules=[has_author]))
    """

    def __init__(
        self,
        config: ValidationConfig | None = None,
        rules: list[ValidationRule] | None = None,
    ):
        self.config = config or ValidationConfig()
        self.rules: dict[str, ValidationRule] = {}
        for rule in rules if rules is not None else [cls() for cls in BUILTIN_RULES]:
            self.register(rule)

    def register(self, rule: ValidationRule) -> None:
        """Add a rule, replacing any rule with the same name."""
        self.rules[rule.name] = rule

    def unregister(self, name: str) -> bool:
        """Remove a rule by name. Returns True if it was registered."""
        return self.rules.pop(name, None) is not None

    def validate(
        self, structure: DocumentStructure, options: ValidationOptions | None = None
    ) -> ValidationResult:
        """Validate ``structure``; the structure is not modified."""
        options = options or ValidationOptions()
        result = ValidationResult()
        scores: dict[str, float] = {}

        if options.include_builtin_rules:
            for name, rule in self.rules.items():
                if options.rule_names is not None and name not in options.rule_names:
                    continue
                outcome = rule.check(structure, self.config)
                self._merge(result, outcome, name)
                scores[name] = outcome.score(self.config)

        floor = self._confidence_floor(structure, options.min_confidence)
        self._merge(result, floor, "confidence_floor")
        scores["confidence_floor"] = floor.score(self.config)

        result.has_too_many_warnings = len(result.warnings) > options.max_warnings
        if result.has_too_many_warnings and options.strict:
            ceiling = RuleOutcome()
            ceiling.error(
                "TOO_MANY_WARNINGS",
                f"{len(result.warnings)} warnings exceed the limit of {options.max_warnings}",
                Severity.HIGH,
            )
            self._merge(result, ceiling, "warning_ceiling")
            scores["warning_ceiling"] = ceiling.score(self.config)

        for index, rule in enumerate(options.custom_rules):
            name = _rule_name(rule, index)
            score = self._run_custom_safely(rule, name, structure, result)
            if score is not None:
                scores[name] = score

        result.rule_scores = {k: round(v, 4) for k, v in scores.items()}
        result.score = round(mean(scores.values()), 4) if scores else 1.0
        result.meets_confidence_threshold = structure.confidence >= options.min_confidence
        result.needs_manual_review = (
            result.score < options.min_confidence
            or not result.meets_confidence_threshold
            or result.has_too_many_warnings
        )
        logger.debug(
            "Validation: %d errors, %d warnings, score %.3f",
            len(result.errors),
            len(result.warnings),
            result.score,
        )
        return result

    @staticmethod
    def _confidence_floor(structure: DocumentStructure, min_confidence: float) -> RuleOutcome:
        outcome = RuleOutcome()
        confidence = structure.confidence
        if confidence < min_confidence:
            outcome.error(
                "LOW_OVERALL_CONFIDENCE",
                f"Document confidence {confidence:.2f} is below {min_confidence:.2f}",
                Severity.HIGH,
            )
        elif confidence < min_confidence + FLOOR_MARGIN:
            outcome.warn(
                "MEDIUM_OVERALL_CONFIDENCE",
                f"Document confidence {confidence:.2f} is close to {min_confidence:.2f}",
                Severity.MEDIUM,
            )
        return outcome

    def _run_custom_safely(
        self,
        rule: CustomRule,
        name: str,
        structure: DocumentStructure,
        result: ValidationResult,
    ) -> float | None:
        """Run a custom rule; a rule that raises becomes a warning."""
        try:
            if isinstance(rule, ValidationRule):
                outcome = rule.check(structure, self.config)
                self._merge(result, outcome, name)
                return outcome.score(self.config)

            custom = rule(structure)
            if not isinstance(custom, ValidationResult):
                raise TypeError(f"expected ValidationResult, got {type(custom).__name__}")
            self._merge(result, RuleOutcome(list(custom.errors), list(custom.warnings)), name)
            return custom.score
        except Exception as e:
            logger.warning("Custom validation rule %s failed: %s", name, e)
            result.warnings.append(
                ValidationWarning(
                    code="CUSTOM_RULE_FAILED",
                    message=f"Custom rule '{name}' failed: {e}",
                    severity=Severity.MEDIUM,
                    rule=name,
                )
            )
            return None

    @staticmethod
    def _merge(result: ValidationResult, outcome: RuleOutcome, name: str) -> None:
        for error in outcome.errors:
            if not error.rule:
                error.rule = name
            result.errors.append(error)
        for warning in outcome.warnings:
            if not warning.rule:
                warning.rule = name
            result.warnings.append(warning)


def _rule_name(rule: CustomRule, index: int) -> str:
    name = getattr(rule, "name", None) or getattr(rule, "__name__", None)
    return name or f"custom_{index}"
