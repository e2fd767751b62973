"""Read plates and patient layouts from simple CSV tables.

Instrument exports are converted to this shape upstream; the engine only
needs one row per well and channel:

    Well,Channel,CT,Patient,CaseNumber
    A1,FAM,28.41,Jane Doe,MRN-001
    A1,VIC,Undetermined,Jane Doe,MRN-001
"""

from __future__ import annotations

import math
from pathlib import Path

import pandas as pd

from pcrcall.core.exceptions import PlateFormatError
from pcrcall.core.models import PatientInfo, Plate, WellMeasurement
from pcrcall.core.wells import normalize_position, split_position

_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "well": ("well", "position", "well position", "wellposition"),
    "channel": ("channel", "dye", "reporter", "fluor"),
    "ct": ("ct", "cq", "ct value", "ctvalue", "c(t)"),
    "patient": ("patient", "patient name", "patientname", "sample name"),
    "case_number": ("casenumber", "case number", "case", "mrn"),
}


def _resolve_columns(df: pd.DataFrame, required: tuple[str, ...], path: Path) -> dict[str, str]:
    """Map logical column names to the frame's actual headers."""
    headers = {str(c).strip().lower(): c for c in df.columns}
    resolved: dict[str, str] = {}
    for logical, aliases in _COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in headers:
                resolved[logical] = headers[alias]
                break
    missing = [name for name in required if name not in resolved]
    if missing:
        raise PlateFormatError(str(path), f"missing column(s): {', '.join(missing)}")
    return resolved


def _read_table(path: Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File does not exist: {path}")
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise PlateFormatError(str(path), str(exc)) from exc


def _cell(row: pd.Series, column: str | None) -> str:
    if column is None:
        return ""
    return str(row[column]).strip()


def parse_ct_cell(text: str | None) -> tuple[float | None, str | None]:
    """Split a CT cell into (ct_value, special_mark).

    Numbers become the CT value, blanks become (None, None) and any other
    text (``-``, ``Undetermined``, ``No Ct``) becomes the special mark.
    """
    if text is None:
        return None, None
    stripped = text.strip()
    if not stripped:
        return None, None
    try:
        value = float(stripped)
    except ValueError:
        return None, stripped
    if not math.isfinite(value):
        return None, stripped
    return value, None


def read_patients_csv(path: Path) -> dict[str, PatientInfo]:
    """Read a patient layout (Well, Patient, optional CaseNumber).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        PlateFormatError: If required columns are missing.
    """
    df = _read_table(path)
    cols = _resolve_columns(df, ("well", "patient"), Path(path))
    patients: dict[str, PatientInfo] = {}
    for _, row in df.iterrows():
        well = _cell(row, cols["well"])
        name = _cell(row, cols["patient"])
        if not well or not name:
            continue
        patients[normalize_position(well)] = PatientInfo(
            name=name, case_number=_cell(row, cols.get("case_number")) or None,
        )
    return patients


def read_plate_csv(
    path: Path,
    plate_id: str | None = None,
    instrument_type: str = "unknown",
    patients: dict[str, PatientInfo] | None = None,
) -> Plate:
    """Read a plate from a CSV table.

    Args:
        path: CSV file with Well, Channel and CT columns.
        plate_id: Plate identity. Defaults to the file stem.
        instrument_type: Instrument tag used to select overrides.
        patients: Optional patient layout keyed by well.

    Returns:
        A Plate with one WellMeasurement per row, in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        PlateFormatError: If required columns are missing.
    """
    path = Path(path)
    df = _read_table(path)
    cols = _resolve_columns(df, ("well", "channel", "ct"), path)

    measurements: list[WellMeasurement] = []
    for _, row in df.iterrows():
        well = _cell(row, cols["well"])
        channel = _cell(row, cols["channel"])
        if not well and not channel:
            continue
        ct_value, special_mark = parse_ct_cell(_cell(row, cols["ct"]))
        measurements.append(
            WellMeasurement(
                position=well,
                channel=channel,
                ct_value=ct_value,
                special_mark=special_mark,
                patient_name=_cell(row, cols.get("patient")) or None,
                patient_case_number=_cell(row, cols.get("case_number")) or None,
            )
        )

    rows, columns = 8, 12
    for m in measurements:
        parts = split_position(m.position)
        if parts is None:
            continue
        row_letters, column = parts
        row_number = 0
        for letter in row_letters:
            row_number = row_number * 26 + (ord(letter) - ord("A") + 1)
        rows = max(rows, row_number)
        columns = max(columns, column)

    return Plate(
        id=plate_id or path.stem,
        name=path.name,
        instrument_type=instrument_type,
        measurements=measurements,
        rows=rows,
        columns=columns,
        patients=dict(patients or {}),
    )
