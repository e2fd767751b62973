"""Shared fixtures for analysis module tests."""

from __future__ import annotations

import pytest

from pcrcall.analysis.analyzer import Analyzer
from pcrcall.analysis.context import EvaluationContext
from pcrcall.analysis.ct_index import ChannelCtIndex
from pcrcall.core.models import AnalysisResultItem, AnalysisRule, DetectionResult, WellMeasurement


def _make_context(
    measurement: WellMeasurement,
    rule: AnalysisRule | None,
    siblings: list[WellMeasurement] | None = None,
) -> EvaluationContext:
    """Context for one measurement, indexed together with its siblings."""
    index = ChannelCtIndex([measurement, *(siblings or [])])
    return EvaluationContext(measurement=measurement, rule=rule, ct_index=index)


def _make_item(
    well: str,
    channel: str,
    result: DetectionResult,
    target: str = "Target",
) -> AnalysisResultItem:
    return AnalysisResultItem(
        patient_name="unknown patient",
        patient_case_number="-",
        well_position=well,
        channel=channel,
        target_name=target,
        ct_value=None,
        special_mark=None,
        concentration=None,
        detection_result=result,
    )


@pytest.fixture
def make_context():
    """Factory: ``make_context(measurement, rule, siblings=None)``."""
    return _make_context


@pytest.fixture
def make_item():
    """Factory: ``make_item(well, channel, result, target="Target")``."""
    return _make_item


@pytest.fixture
def analyzer() -> Analyzer:
    return Analyzer()


@pytest.fixture
def ct_rule() -> AnalysisRule:
    """FAM rule with a CT cutoff and an exponential concentration."""
    return AnalysisRule(
        well_pattern="*", channel="FAM", target_name="Influenza A",
        detection_formula="[CT]<36", concentration_formula="2**(36-[CT])",
    )
