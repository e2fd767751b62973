"""Data models for the pcrcall core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pcrcall.core.wells import normalize_position

if TYPE_CHECKING:
    from pcrcall.analysis.overrides import CombinedCutoffOverride

# CT values above this bound are treated as not detected.
CT_UPPER_BOUND = 45.0

DEFAULT_CHANNELS: tuple[str, ...] = ("FAM", "VIC", "ROX", "CY5")

UNKNOWN_PATIENT = "unknown patient"
UNKNOWN_CASE_NUMBER = "-"
UNKNOWN_TARGET = "unknown target"
PLACEHOLDER_TARGET = "-"

# Written in a formula cell to mean "report a dash".
DASH_SENTINEL = "#NaN#"


class DetectionResult(Enum):
    """Classification of one well/channel reading."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NOT_DETECTED = "not detected"
    INVALID = "invalid"
    UNDETERMINABLE = "undeterminable"
    NO_RULE = "no rule"
    FORMULA_ERROR = "formula error"
    DASH_MARKER = "-"


def normalize_channel(name: str | None) -> str:
    """Channel names compare case-insensitively: ``Cy5`` -> ``CY5``."""
    if name is None:
        return ""
    return name.strip().upper()


@dataclass(frozen=True)
class WellMeasurement:
    """One CT reading for one well on one fluorescence channel.

    ``special_mark`` is a non-numeric token from the instrument export
    (``-``, ``Undetermined``...). A mark may coexist with a retained
    ``ct_value``.
    """

    position: str
    channel: str
    ct_value: float | None = None
    special_mark: str | None = None
    patient_name: str | None = None
    patient_case_number: str | None = None

    @property
    def well(self) -> str:
        """Normalized well position."""
        return normalize_position(self.position)

    @property
    def channel_key(self) -> str:
        """Normalized channel name."""
        return normalize_channel(self.channel)

    @property
    def has_special_mark(self) -> bool:
        return bool(self.special_mark and self.special_mark.strip())


@dataclass(frozen=True)
class PatientInfo:
    """A patient assigned to a well by the sample-pairing step."""

    name: str
    case_number: str | None = None


@dataclass
class Plate:
    """One instrument run: its measurements and the patient layout."""

    id: str
    instrument_type: str = "unknown"
    measurements: list[WellMeasurement] = field(default_factory=list)
    rows: int = 8
    columns: int = 12
    name: str = ""
    patients: dict[str, PatientInfo] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Key the patient layout by normalized position."""
        self.patients = {
            normalize_position(pos): info for pos, info in self.patients.items()
        }

    def positions(self) -> list[str]:
        """Normalized positions that have at least one measurement, in first-seen order."""
        seen: dict[str, None] = {}
        for m in self.measurements:
            seen.setdefault(m.well, None)
        return list(seen)

    def patient_at(self, position: str) -> PatientInfo | None:
        return self.patients.get(normalize_position(position))


@dataclass(frozen=True)
class AnalysisRule:
    """One row of the rule table.

    Attributes:
        well_pattern: Well position pattern (see ``pcrcall.core.wells``).
        channel: Fluorescence channel the rule applies to.
        target_name: Analyte reported for matching wells.
        detection_formula: Expression or sentinel (POS, NEG, NA, #NaN#).
        concentration_formula: Expression or numeric literal.
    """

    well_pattern: str
    channel: str
    target_name: str
    detection_formula: str = ""
    concentration_formula: str = ""


PROPAGATION_CONDITIONS = frozenset({"always", "empty", "reference", "empty_or_reference"})


@dataclass(frozen=True)
class PropagationRule:
    """Copy a detection call from one channel to a sibling in the same well.

    Attributes:
        well_pattern: Wells the rule applies to.
        source_channel: Channel whose call is copied.
        target_channel: Channel that receives the call.
        condition: One of ``always``, ``empty``, ``reference``,
            ``empty_or_reference``.
        reference_markers: Substrings of a target name that flag it as a
            reference (internal control) target.
    """

    well_pattern: str
    source_channel: str
    target_channel: str
    condition: str = "empty_or_reference"
    reference_markers: tuple[str, ...] = ("reference", "internal control", "IC")

    def __post_init__(self) -> None:
        """Validate the condition name."""
        if self.condition not in PROPAGATION_CONDITIONS:
            raise ValueError(
                f"Invalid propagation condition: {self.condition!r}. "
                f"Must be one of {sorted(PROPAGATION_CONDITIONS)}"
            )


@dataclass
class AnalysisConfiguration:
    """A named rule table plus its post-processing and override entries."""

    name: str
    rules: list[AnalysisRule] = field(default_factory=list)
    description: str = ""
    propagation: list[PropagationRule] = field(default_factory=list)
    overrides: list[CombinedCutoffOverride] = field(default_factory=list)
    default_channels: tuple[str, ...] = DEFAULT_CHANNELS
    reject_ambiguous: bool = False


@dataclass(frozen=True)
class AnalysisResultItem:
    """The engine's output for one well/channel."""

    patient_name: str
    patient_case_number: str
    well_position: str
    channel: str
    target_name: str
    ct_value: float | None
    special_mark: str | None
    concentration: float | None
    detection_result: DetectionResult
