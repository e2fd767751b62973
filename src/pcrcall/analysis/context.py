"""Per-measurement evaluation context shared by the analyzer and overrides."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pcrcall.analysis.ct_index import ChannelCtIndex
from pcrcall.core.models import AnalysisRule, WellMeasurement
from pcrcall.formula.normalize import CT_VARIABLE

CONCENTRATION_DIGITS = 4

# Extra names bound when evaluating concentration formulas.
CONCENTRATION_CONSTANTS = {"E": math.e, "PI": math.pi}


@dataclass(frozen=True)
class EvaluationContext:
    """Everything needed to decide one well/channel."""

    measurement: WellMeasurement
    rule: AnalysisRule | None
    ct_index: ChannelCtIndex

    @property
    def position(self) -> str:
        return self.measurement.well

    @property
    def channel(self) -> str:
        return self.measurement.channel_key

    @property
    def ct_value(self) -> float | None:
        return self.measurement.ct_value

    def channel_ct(self, channel: str) -> float | None:
        """CT of another channel in the same well."""
        return self.ct_index.ct(self.position, channel)

    def variables(self) -> dict[str, float]:
        """Formula variables: ``CT`` for this reading, ``CT_<NAME>`` for siblings."""
        variables = self.ct_index.variables(self.position, self.channel)
        ct = self.measurement.ct_value
        variables[CT_VARIABLE] = 0.0 if ct is None else ct
        return variables


def finalize_concentration(value: bool | float) -> float | None:
    """Clamp and round an evaluated concentration.

    Booleans and non-finite numbers yield None, negatives clamp to 0 and
    finite results are rounded to four decimal places.
    """
    if isinstance(value, bool) or not math.isfinite(value):
        return None
    if value < 0:
        return 0.0
    return round(value, CONCENTRATION_DIGITS)
