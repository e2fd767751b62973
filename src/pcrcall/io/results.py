"""Tabulate and export analysis results."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from pcrcall.core.models import AnalysisResultItem

RESULT_COLUMNS = [
    "Patient",
    "CaseNumber",
    "Well",
    "Channel",
    "Target",
    "CT",
    "SpecialMark",
    "Concentration",
    "Result",
]


def results_to_frame(items: Sequence[AnalysisResultItem]) -> pd.DataFrame:
    """One row per result item, in item order."""
    records = [
        {
            "Patient": item.patient_name,
            "CaseNumber": item.patient_case_number,
            "Well": item.well_position,
            "Channel": item.channel,
            "Target": item.target_name,
            "CT": item.ct_value,
            "SpecialMark": item.special_mark,
            "Concentration": item.concentration,
            "Result": item.detection_result.value,
        }
        for item in items
    ]
    return pd.DataFrame.from_records(records, columns=RESULT_COLUMNS)


def write_results_csv(items: Sequence[AnalysisResultItem], path: Path) -> int:
    """Write result items to CSV.

    Returns:
        Number of rows written.
    """
    df = results_to_frame(items)
    df.to_csv(Path(path), index=False)
    return len(df)
