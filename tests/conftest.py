"""Shared test fixtures for pcrcall."""

from __future__ import annotations

from pathlib import Path

import pytest

from pcrcall.core.models import (
    AnalysisConfiguration,
    AnalysisRule,
    PatientInfo,
    Plate,
    WellMeasurement,
)


@pytest.fixture
def basic_rules() -> list[AnalysisRule]:
    """FAM and VIC rules for every well, with a concentration on FAM."""
    return [
        AnalysisRule(
            well_pattern="*", channel="FAM", target_name="Influenza A",
            detection_formula="[CT]<36", concentration_formula="2^(36-[CT])",
        ),
        AnalysisRule(
            well_pattern="*", channel="VIC", target_name="RNase P (IC)",
            detection_formula="[CT]<38",
        ),
    ]


@pytest.fixture
def basic_config(basic_rules: list[AnalysisRule]) -> AnalysisConfiguration:
    return AnalysisConfiguration(name="Test panel", rules=basic_rules)


@pytest.fixture
def basic_plate() -> Plate:
    """Two wells on FAM and VIC with a patient layout.

    A1: FAM 30, VIC 28 (positive)
    A2: FAM 40, VIC 29 (negative on FAM)
    A3 has a patient but no data.
    """
    return Plate(
        id="plate-1",
        instrument_type="generic",
        measurements=[
            WellMeasurement("A1", "FAM", 30.0),
            WellMeasurement("A1", "VIC", 28.0),
            WellMeasurement("A2", "FAM", 40.0),
            WellMeasurement("A2", "VIC", 29.0),
        ],
        patients={
            "A1": PatientInfo("Jane Doe", "MRN-001"),
            "A2": PatientInfo("John Roe"),
            "A3": PatientInfo("Late Sample", "MRN-003"),
        },
    )


@pytest.fixture
def plate_csv(tmp_path: Path) -> Path:
    """A plate CSV in the command-line input format."""
    path = tmp_path / "plate.csv"
    path.write_text(
        "Well,Channel,CT\n"
        "A1,FAM,30\n"
        "A1,VIC,28.5\n"
        "A2,FAM,Undetermined\n"
        "A2,VIC,\n"
    )
    return path


@pytest.fixture
def rules_yaml(tmp_path: Path) -> Path:
    """A rule file matching ``basic_rules``."""
    path = tmp_path / "rules.yaml"
    path.write_text(
        "name: Test panel\n"
        "rules:\n"
        "  - well: '*'\n"
        "    channel: FAM\n"
        "    target: Influenza A\n"
        "    detection: '[CT]<36'\n"
        "    concentration: '2^(36-[CT])'\n"
        "  - well: '*'\n"
        "    channel: VIC\n"
        "    target: RNase P (IC)\n"
        "    detection: '[CT]<38'\n"
    )
    return path
