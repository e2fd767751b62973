"""ChannelCtIndex — per-well lookup of every channel's CT value."""

from __future__ import annotations

from typing import Iterable

from pcrcall.core.models import Plate, WellMeasurement, normalize_channel
from pcrcall.core.wells import normalize_position
from pcrcall.formula.normalize import CT_VARIABLE, channel_variable


class ChannelCtIndex:
    """Map of well position -> {channel -> CT value} for one plate.

    Built in a single pass before any formula is evaluated, because a
    formula in one well may reference any sibling channel of that well.
    When the same (position, channel) pair appears more than once, the
    later measurement replaces the earlier one.
    """

    def __init__(self, measurements: Iterable[WellMeasurement] = ()) -> None:
        self._wells: dict[str, dict[str, float | None]] = {}
        for m in measurements:
            self._wells.setdefault(m.well, {})[m.channel_key] = m.ct_value

    @classmethod
    def build(cls, plate: Plate) -> ChannelCtIndex:
        """Index all measurements on a plate."""
        return cls(plate.measurements)

    def __contains__(self, position: str) -> bool:
        return normalize_position(position) in self._wells

    def __len__(self) -> int:
        return len(self._wells)

    def channels(self, position: str) -> dict[str, float | None]:
        """Copy of the {channel -> CT} map for one well (empty if unknown)."""
        return dict(self._wells.get(normalize_position(position), {}))

    def ct(self, position: str, channel: str) -> float | None:
        """CT value of one channel in one well, or None."""
        return self._wells.get(normalize_position(position), {}).get(
            normalize_channel(channel),
        )

    def variables(self, position: str, channel: str) -> dict[str, float]:
        """Formula variables for evaluating ``channel`` in ``position``.

        ``CT`` is this channel's value and ``CT_<NAME>`` each sibling's.
        Missing values are bound to 0 so evaluation stays total.
        """
        variables: dict[str, float] = {}
        for name, value in self._wells.get(normalize_position(position), {}).items():
            variables[channel_variable(name)] = 0.0 if value is None else value
        own = self.ct(position, channel)
        variables[CT_VARIABLE] = 0.0 if own is None else own
        return variables

    def to_dict(self) -> dict[str, dict[str, float | None]]:
        """Plain nested-dict copy of the index."""
        return {pos: dict(chs) for pos, chs in self._wells.items()}
