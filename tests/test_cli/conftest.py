"""Shared fixtures for CLI module tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def patients_csv(tmp_path: Path) -> Path:
    """Patient layout for the ``plate_csv`` fixture plus one unmeasured well."""
    path = tmp_path / "patients.csv"
    path.write_text(
        "Well,Patient,CaseNumber\n"
        "A1,Jane Doe,MRN-001\n"
        "A2,John Roe,MRN-002\n"
        "B1,Late Sample,MRN-003\n"
    )
    return path


@pytest.fixture
def slan_plate_csv(tmp_path: Path) -> Path:
    path = tmp_path / "slan.csv"
    path.write_text("Well,Channel,CT\nD1,FAM,30\nD1,VIC,30\n")
    return path


@pytest.fixture
def slan_rules_yaml(tmp_path: Path) -> Path:
    path = tmp_path / "slan.yaml"
    path.write_text(
        "name: SLAN panel\n"
        "rules:\n"
        "  - {well: D1, channel: FAM, target: Target, detection: NEG}\n"
        "  - {well: D1, channel: VIC, target: IC, detection: '[CT]<38'}\n"
    )
    return path
