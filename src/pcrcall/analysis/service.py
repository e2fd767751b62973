"""Run a full plate analysis: index, decide, propagate, fill placeholders.

The run has three strictly ordered phases:

1. Build the ChannelCtIndex for the whole plate.
2. Decide every measurement (rule match, overrides, generic procedure).
3. Propagate calls between sibling channels, then append placeholder
   rows for assigned patients whose wells produced no data.

Configuration problems abort the run with an empty result; problems with
a single reading become that reading's classification.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from pcrcall.analysis.analyzer import Analyzer, synthesize_placeholders
from pcrcall.analysis.ct_index import ChannelCtIndex
from pcrcall.analysis.matcher import RuleAmbiguity, RuleMatcher
from pcrcall.analysis.overrides import OverrideRegistry
from pcrcall.analysis.propagation import propagate_channels
from pcrcall.core.exceptions import AmbiguousRuleError, ConfigurationError
from pcrcall.core.models import (
    UNKNOWN_CASE_NUMBER,
    UNKNOWN_PATIENT,
    AnalysisConfiguration,
    AnalysisResultItem,
    DetectionResult,
    Plate,
    WellMeasurement,
)
from pcrcall.formula.evaluator import FormulaEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisReport:
    """Outcome of one analysis run.

    Attributes:
        status: ``completed`` or ``aborted`` (configuration-level failure).
        items: Result items in output order (empty when aborted).
        message: Why the run aborted, or a short summary.
        matched: Measurements with a matching rule.
        unmatched: Measurements without a matching rule.
        formula_errors: Items classified as formula errors.
        propagated: Items whose call was copied from a sibling channel.
        placeholders: Synthesized rows for wells without data.
        ambiguities: (position, channel) pairs matched by several rules.
        elapsed_seconds: Wall-clock time in seconds.
    """

    status: str
    items: list[AnalysisResultItem] = field(default_factory=list)
    message: str = ""
    matched: int = 0
    unmatched: int = 0
    formula_errors: int = 0
    propagated: int = 0
    placeholders: int = 0
    ambiguities: list[RuleAmbiguity] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def aborted(self) -> bool:
        return self.status == "aborted"


def _aborted(message: str, start: float) -> AnalysisReport:
    logger.warning("Analysis aborted: %s", message)
    return AnalysisReport(
        status="aborted",
        message=message,
        elapsed_seconds=round(time.monotonic() - start, 3),
    )


def _check_configuration(configuration: AnalysisConfiguration | None) -> None:
    if configuration is None:
        raise ConfigurationError("No analysis configuration supplied")
    if not configuration.rules:
        raise ConfigurationError(
            f"Configuration {configuration.name!r} has no rules", key="rules",
        )


def _error_item(measurement: WellMeasurement) -> AnalysisResultItem:
    return AnalysisResultItem(
        patient_name=measurement.patient_name or UNKNOWN_PATIENT,
        patient_case_number=measurement.patient_case_number or UNKNOWN_CASE_NUMBER,
        well_position=measurement.well,
        channel=measurement.channel,
        target_name="-",
        ct_value=measurement.ct_value,
        special_mark=measurement.special_mark,
        concentration=None,
        detection_result=DetectionResult.FORMULA_ERROR,
    )


def build_analyzer(
    plate: Plate,
    configuration: AnalysisConfiguration,
    registry: OverrideRegistry | None = None,
    evaluator: FormulaEvaluator | None = None,
) -> Analyzer:
    """Analyzer for the plate's instrument type.

    Built-in overrides come first, then overrides declared in the
    configuration for the same instrument.
    """
    registry = (registry or OverrideRegistry()).copy()
    for override in configuration.overrides:
        try:
            registry.register(override.instrument, override)
        except ValueError as exc:
            raise ConfigurationError(
                f"Override {override.description or override.well_pattern!r}: {exc}",
                key="overrides",
            ) from exc
    overrides = registry.for_instrument(plate.instrument_type)
    if overrides:
        logger.info(
            "Using %d override(s) for instrument %s", len(overrides), plate.instrument_type,
        )
    return Analyzer(overrides=overrides, evaluator=evaluator)


def run_analysis(
    plate: Plate | None,
    configuration: AnalysisConfiguration | None,
    registry: OverrideRegistry | None = None,
    evaluator: FormulaEvaluator | None = None,
) -> AnalysisReport:
    """Analyze a plate against a rule configuration.

    Args:
        plate: Plate with measurements and patient layout.
        configuration: Rule table, propagation rules and overrides.
        registry: Instrument overrides. If None, the built-ins are used.
        evaluator: Optional FormulaEvaluator shared across runs.

    Returns:
        An AnalysisReport. Never raises for configuration or formula
        problems; those produce an aborted report or classified items.
    """
    start = time.monotonic()

    if plate is None:
        return _aborted("No plate supplied", start)
    try:
        _check_configuration(configuration)
    except ConfigurationError as exc:
        return _aborted(str(exc), start)

    logger.info(
        "Starting analysis of plate %s (%s) with %r: %d measurements, %d rules",
        plate.id, plate.instrument_type, configuration.name,
        len(plate.measurements), len(configuration.rules),
    )

    matcher = RuleMatcher(configuration.rules)
    ambiguities = matcher.find_ambiguities(
        (m.position, m.channel) for m in plate.measurements
    )
    for amb in ambiguities:
        logger.warning(
            "Rules %s all match %s/%s; using rule %d",
            ", ".join(str(i + 1) for i in amb.rule_indexes),
            amb.position, amb.channel, amb.rule_indexes[0] + 1,
        )
    if ambiguities and configuration.reject_ambiguous:
        first = ambiguities[0]
        exc = AmbiguousRuleError(
            first.position, first.channel, [i + 1 for i in first.rule_indexes],
        )
        return _aborted(str(exc), start)

    try:
        analyzer = build_analyzer(plate, configuration, registry, evaluator)
    except ConfigurationError as exc:
        return _aborted(str(exc), start)

    # Phase 1: every channel of every well, before any formula runs.
    ct_index = ChannelCtIndex.build(plate)

    # Phase 2
    items: list[AnalysisResultItem] = []
    matched = 0
    unmatched = 0
    for measurement in plate.measurements:
        rule = matcher.match(measurement.position, measurement.channel)
        if rule is None:
            unmatched += 1
            logger.debug("No rule for %s/%s", measurement.well, measurement.channel)
        else:
            matched += 1
        try:
            item = analyzer.evaluate(
                measurement, rule, ct_index, patient=plate.patient_at(measurement.position),
            )
        except Exception as exc:
            if isinstance(exc, (MemoryError, KeyboardInterrupt, SystemExit)):
                raise
            logger.warning(
                "Evaluation failed for %s/%s: %s",
                measurement.well, measurement.channel, exc, exc_info=True,
            )
            item = _error_item(measurement)
        items.append(item)

    # Phase 3
    items, propagated = propagate_channels(items, configuration.propagation)
    placeholders = synthesize_placeholders(plate, configuration.default_channels)
    items.extend(placeholders)

    formula_errors = sum(
        1 for i in items if i.detection_result is DetectionResult.FORMULA_ERROR
    )
    elapsed = round(time.monotonic() - start, 3)
    logger.info(
        "Analysis of plate %s finished: %d items, %d matched, %d unmatched, "
        "%d formula errors, %d propagated, %d placeholders",
        plate.id, len(items), matched, unmatched, formula_errors,
        propagated, len(placeholders),
    )
    return AnalysisReport(
        status="completed",
        items=items,
        message=f"{len(items)} results",
        matched=matched,
        unmatched=unmatched,
        formula_errors=formula_errors,
        propagated=propagated,
        placeholders=len(placeholders),
        ambiguities=ambiguities,
        elapsed_seconds=elapsed,
    )


def analyze(
    plate: Plate | None,
    configuration: AnalysisConfiguration | None,
    registry: OverrideRegistry | None = None,
) -> list[AnalysisResultItem]:
    """Result items for a plate; an empty list when the run aborts."""
    return run_analysis(plate, configuration, registry).items


def analyze_async(
    plate: Plate | None,
    configuration: AnalysisConfiguration | None,
    registry: OverrideRegistry | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> Future[list[AnalysisResultItem]]:
    """Run ``analyze`` on a background worker.

    Args:
        executor: Executor to submit to. If None, a single-use worker
            thread is started and shut down once the run completes.

    Returns:
        A Future resolving to the result items.
    """
    if executor is not None:
        return executor.submit(analyze, plate, configuration, registry)
    own = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pcrcall-analysis")
    future = own.submit(analyze, plate, configuration, registry)
    own.shutdown(wait=False)
    return future
