"""Analyzer — decide detection and concentration for each well/channel."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from pcrcall.analysis.context import (
    CONCENTRATION_CONSTANTS,
    EvaluationContext,
    finalize_concentration,
)
from pcrcall.analysis.ct_index import ChannelCtIndex
from pcrcall.analysis.overrides import InstrumentOverride
from pcrcall.core.exceptions import FormulaError
from pcrcall.core.models import (
    CT_UPPER_BOUND,
    DASH_SENTINEL,
    PLACEHOLDER_TARGET,
    UNKNOWN_CASE_NUMBER,
    UNKNOWN_PATIENT,
    UNKNOWN_TARGET,
    AnalysisResultItem,
    AnalysisRule,
    DetectionResult,
    PatientInfo,
    Plate,
    WellMeasurement,
)
from pcrcall.formula.evaluator import FormulaEvaluator
from pcrcall.formula.normalize import parse_numeric_literal

logger = logging.getLogger(__name__)

POSITIVE_SENTINELS = frozenset({"POS", "POSITIVE"})
NEGATIVE_SENTINELS = frozenset({"NEG", "NEGATIVE"})
NOT_APPLICABLE_SENTINELS = frozenset({"NA", "N/A"})


def _usable_ct(ct: float | None) -> float | None:
    if ct is None or math.isnan(ct):
        return None
    return ct


def _ct_state(ct: float | None) -> DetectionResult | None:
    """Short-circuit result for a missing or out-of-range CT, else None."""
    ct = _usable_ct(ct)
    if ct is None:
        return DetectionResult.NOT_DETECTED
    if ct <= 0:
        return DetectionResult.INVALID
    if ct > CT_UPPER_BOUND:
        return DetectionResult.NOT_DETECTED
    return None


class Analyzer:
    """Apply the per-reading decision procedure.

    Args:
        overrides: Instrument overrides consulted, in order, before the
            generic procedure for readings with a matched rule.
        evaluator: Optional FormulaEvaluator. If None, a fresh one is used.
    """

    def __init__(
        self,
        overrides: Sequence[InstrumentOverride] = (),
        evaluator: FormulaEvaluator | None = None,
    ) -> None:
        self._overrides = list(overrides)
        self._evaluator = evaluator or FormulaEvaluator()

    @property
    def overrides(self) -> list[InstrumentOverride]:
        return list(self._overrides)

    def evaluate(
        self,
        measurement: WellMeasurement,
        rule: AnalysisRule | None,
        ct_index: ChannelCtIndex,
        patient: PatientInfo | None = None,
    ) -> AnalysisResultItem:
        """Produce the result item for one measurement.

        Args:
            measurement: The reading to decide.
            rule: Matched rule, or None when no rule applies.
            ct_index: CT values of every channel on the plate.
            patient: Patient assigned to the well, used when the
                measurement carries no patient identity of its own.

        Returns:
            A fully populated AnalysisResultItem.
        """
        context = EvaluationContext(measurement=measurement, rule=rule, ct_index=ct_index)
        detection = self.detect(context)
        concentration = self.concentration(context)

        if rule is None:
            target = UNKNOWN_TARGET
        else:
            target = rule.target_name or PLACEHOLDER_TARGET

        patient_name = measurement.patient_name or (patient.name if patient else None)
        case_number = measurement.patient_case_number or (
            patient.case_number if patient else None
        )
        return AnalysisResultItem(
            patient_name=patient_name or UNKNOWN_PATIENT,
            patient_case_number=case_number or UNKNOWN_CASE_NUMBER,
            well_position=measurement.well,
            channel=measurement.channel,
            target_name=target,
            ct_value=measurement.ct_value,
            special_mark=measurement.special_mark,
            concentration=concentration,
            detection_result=detection,
        )

    def detect(self, context: EvaluationContext) -> DetectionResult:
        """Detection result for one reading."""
        rule = context.rule
        measurement = context.measurement
        if rule is None:
            if measurement.has_special_mark:
                return DetectionResult.DASH_MARKER
            return DetectionResult.NO_RULE

        for override in self._overrides:
            if override.matches(context):
                forced = override.detect(context)
                if forced is not None:
                    return forced

        formula = (rule.detection_formula or "").strip()
        sentinel = formula.upper()

        if measurement.has_special_mark:
            if sentinel in POSITIVE_SENTINELS:
                return DetectionResult.POSITIVE
            return DetectionResult.DASH_MARKER

        state = _ct_state(measurement.ct_value)
        if state is not None:
            return state

        if not formula:
            return DetectionResult.NO_RULE
        if sentinel in POSITIVE_SENTINELS:
            return DetectionResult.POSITIVE
        if sentinel in NEGATIVE_SENTINELS:
            return DetectionResult.NEGATIVE
        if sentinel in NOT_APPLICABLE_SENTINELS:
            return DetectionResult.NOT_DETECTED
        if sentinel == DASH_SENTINEL.upper():
            return DetectionResult.DASH_MARKER

        try:
            value = self._evaluator.evaluate(formula, context.variables())
        except FormulaError as exc:
            logger.warning(
                "Detection formula failed for %s/%s: %s",
                context.position, context.channel, exc,
            )
            return DetectionResult.FORMULA_ERROR

        if isinstance(value, bool):
            result = DetectionResult.POSITIVE if value else DetectionResult.NEGATIVE
        elif not math.isfinite(value):
            result = DetectionResult.UNDETERMINABLE
        else:
            result = DetectionResult.POSITIVE if value > 0 else DetectionResult.NEGATIVE
        logger.debug(
            "%s/%s CT=%s %r -> %s",
            context.position, context.channel, measurement.ct_value, formula, result.value,
        )
        return result

    def concentration(self, context: EvaluationContext) -> float | None:
        """Concentration for one reading, or None."""
        rule = context.rule
        measurement = context.measurement
        if rule is None:
            return None

        for override in self._overrides:
            if override.matches(context):
                forced = override.concentration(context, self._evaluator)
                if forced is not None:
                    return forced

        formula = (rule.concentration_formula or "").strip()
        literal = parse_numeric_literal(formula)

        # Special-marked wells may still carry a fixed, agreed concentration.
        if measurement.has_special_mark:
            return literal

        if _ct_state(measurement.ct_value) is not None:
            return None
        if not formula:
            return None
        sentinel = formula.upper()
        if sentinel in NOT_APPLICABLE_SENTINELS or sentinel == DASH_SENTINEL.upper():
            return None
        if literal is not None:
            return literal

        variables = {**CONCENTRATION_CONSTANTS, **context.variables()}
        try:
            value = self._evaluator.evaluate(formula, variables)
        except FormulaError as exc:
            logger.warning(
                "Concentration formula failed for %s/%s: %s",
                context.position, context.channel, exc,
            )
            return None

        concentration = finalize_concentration(value)
        if concentration is None:
            logger.warning(
                "Concentration formula %r gave %r for %s/%s",
                formula, value, context.position, context.channel,
            )
        return concentration


def synthesize_placeholders(
    plate: Plate,
    channels: Iterable[str],
) -> list[AnalysisResultItem]:
    """Rows for patients assigned to wells that produced no measurement.

    One NotDetected row per channel in ``channels`` is produced for every
    such well, in patient-layout order, so each expected patient appears in
    the report.
    """
    measured = set(plate.positions())
    channels = list(channels)
    items: list[AnalysisResultItem] = []
    for position, patient in plate.patients.items():
        if position in measured:
            continue
        logger.info("No data for %s (patient %s), adding placeholder rows", position, patient.name)
        for channel in channels:
            items.append(
                AnalysisResultItem(
                    patient_name=patient.name or UNKNOWN_PATIENT,
                    patient_case_number=patient.case_number or UNKNOWN_CASE_NUMBER,
                    well_position=position,
                    channel=channel,
                    target_name=PLACEHOLDER_TARGET,
                    ct_value=None,
                    special_mark=None,
                    concentration=None,
                    detection_result=DetectionResult.NOT_DETECTED,
                )
            )
    return items
