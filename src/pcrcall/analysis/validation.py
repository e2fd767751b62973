"""Static checks for a rule configuration, run before any plate is analyzed."""

from __future__ import annotations

import logging

from pcrcall.analysis.analyzer import (
    NEGATIVE_SENTINELS,
    NOT_APPLICABLE_SENTINELS,
    POSITIVE_SENTINELS,
)
from pcrcall.analysis.matcher import RuleMatcher
from pcrcall.core.exceptions import FormulaError, PatternError
from pcrcall.core.models import DASH_SENTINEL, AnalysisConfiguration, Plate
from pcrcall.core.wells import WellPattern
from pcrcall.formula.evaluator import FormulaEvaluator
from pcrcall.formula.normalize import is_numeric_literal

logger = logging.getLogger(__name__)

_DETECTION_SENTINELS = (
    POSITIVE_SENTINELS | NEGATIVE_SENTINELS | NOT_APPLICABLE_SENTINELS | {DASH_SENTINEL.upper()}
)
_CONCENTRATION_SENTINELS = NOT_APPLICABLE_SENTINELS | {DASH_SENTINEL.upper()}


def _formula_problem(
    evaluator: FormulaEvaluator, formula: str, sentinels: frozenset[str] | set[str],
) -> str | None:
    text = (formula or "").strip()
    if not text or text.upper() in sentinels or is_numeric_literal(text):
        return None
    try:
        evaluator.compile(text)
    except FormulaError as exc:
        return str(exc)
    return None


def validate_configuration(
    config: AnalysisConfiguration,
    evaluator: FormulaEvaluator | None = None,
    plate: Plate | None = None,
) -> list[str]:
    """Return a list of problems found in the configuration.

    Checks well patterns and formulas of every rule, propagation rule and
    override. When ``plate`` is given, (position, channel) pairs matched by
    more than one rule are reported too.

    Returns:
        Human-readable problem descriptions. Empty when the configuration
        is usable as-is.
    """
    evaluator = evaluator or FormulaEvaluator()
    problems: list[str] = []

    if not config.rules:
        problems.append("No rules defined")

    for i, rule in enumerate(config.rules, start=1):
        try:
            WellPattern.parse(rule.well_pattern)
        except PatternError as exc:
            problems.append(f"Rule {i}: {exc}")
        if not rule.channel.strip():
            problems.append(f"Rule {i}: channel is empty")
        problem = _formula_problem(evaluator, rule.detection_formula, _DETECTION_SENTINELS)
        if problem:
            problems.append(f"Rule {i} detection: {problem}")
        problem = _formula_problem(
            evaluator, rule.concentration_formula, _CONCENTRATION_SENTINELS,
        )
        if problem:
            problems.append(f"Rule {i} concentration: {problem}")

    for i, prop in enumerate(config.propagation, start=1):
        try:
            WellPattern.parse(prop.well_pattern)
        except PatternError as exc:
            problems.append(f"Propagation {i}: {exc}")

    for i, override in enumerate(config.overrides, start=1):
        if override.concentration_formula:
            problem = _formula_problem(
                evaluator, override.concentration_formula, _CONCENTRATION_SENTINELS,
            )
            if problem:
                problems.append(f"Override {i} concentration: {problem}")

    if plate is not None:
        matcher = RuleMatcher(config.rules)
        for amb in matcher.find_ambiguities((m.position, m.channel) for m in plate.measurements):
            problems.append(
                f"{amb.position}/{amb.channel} matched by rules "
                f"{', '.join(str(i + 1) for i in amb.rule_indexes)}"
            )

    logger.debug("Validated configuration %r: %d problem(s)", config.name, len(problems))
    return problems
