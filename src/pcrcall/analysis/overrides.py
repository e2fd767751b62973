"""Instrument-specific overrides consulted before the generic decision procedure.

Some instruments need a call that the rule table cannot express, such as
a well that is positive only when two channels are both below a cutoff.
Those quirks are data: each override says which readings it claims
(``matches``) and what it decides (``detect``, ``concentration``). Either
decision may return None to hand the reading back to the generic path.

Overrides are registered per instrument type in an ``OverrideRegistry``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Protocol

from pcrcall.analysis.context import (
    CONCENTRATION_CONSTANTS,
    EvaluationContext,
    finalize_concentration,
)
from pcrcall.core.exceptions import FormulaError
from pcrcall.core.models import DetectionResult, normalize_channel
from pcrcall.core.wells import WellPattern
from pcrcall.formula.evaluator import FormulaEvaluator

logger = logging.getLogger(__name__)


class InstrumentOverride(Protocol):
    """Interface every override implements."""

    def matches(self, context: EvaluationContext) -> bool:
        """Whether this override claims the reading."""

    def detect(self, context: EvaluationContext) -> DetectionResult | None:
        """Forced detection result, or None to fall through."""

    def concentration(
        self, context: EvaluationContext, evaluator: FormulaEvaluator,
    ) -> float | None:
        """Forced concentration, or None to fall through."""


@dataclass(frozen=True)
class CombinedCutoffOverride:
    """Call a reading when every listed channel is below a cutoff.

    Attributes:
        well_pattern: Wells the override applies to.
        channel: Channel the override applies to.
        cutoff_channels: Channels that must all have a CT below ``cutoff``.
        cutoff: CT cutoff (exclusive).
        result: Detection result when the condition holds.
        concentration_formula: Formula evaluated when the condition holds,
            or None to leave concentration to the generic path.
        description: Free text shown in logs.
        instrument: Instrument type the override belongs to when it is
            declared in a configuration file.
    """

    well_pattern: str
    channel: str
    cutoff_channels: tuple[str, ...]
    cutoff: float = 36.0
    result: DetectionResult = DetectionResult.POSITIVE
    concentration_formula: str | None = None
    description: str = ""
    instrument: str = ""
    _pattern: WellPattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Compile the well pattern and validate the cutoff channels."""
        if not self.cutoff_channels:
            raise ValueError("cutoff_channels must name at least one channel")
        object.__setattr__(self, "cutoff_channels", tuple(self.cutoff_channels))
        object.__setattr__(self, "_pattern", WellPattern.parse(self.well_pattern))

    def matches(self, context: EvaluationContext) -> bool:
        return (
            context.channel == normalize_channel(self.channel)
            and self._pattern.matches(context.position)
        )

    def condition_met(self, context: EvaluationContext) -> bool:
        for name in self.cutoff_channels:
            ct = context.channel_ct(name)
            if ct is None or not ct < self.cutoff:
                return False
        return True

    def detect(self, context: EvaluationContext) -> DetectionResult | None:
        if not self.condition_met(context):
            logger.debug(
                "Override %s not met for %s/%s",
                self.description or self.well_pattern, context.position, context.channel,
            )
            return None
        logger.debug(
            "Override %s forces %s for %s/%s",
            self.description or self.well_pattern, self.result.value,
            context.position, context.channel,
        )
        return self.result

    def concentration(
        self, context: EvaluationContext, evaluator: FormulaEvaluator,
    ) -> float | None:
        if self.concentration_formula is None or not self.condition_met(context):
            return None
        variables = {**CONCENTRATION_CONSTANTS, **context.variables()}
        try:
            value = evaluator.evaluate(self.concentration_formula, variables)
        except FormulaError as exc:
            logger.warning("Override concentration failed for %s/%s: %s",
                           context.position, context.channel, exc)
            return None
        return finalize_concentration(value)


@dataclass(frozen=True)
class PredicateOverride:
    """An override built from plain callables.

    ``detect_fn`` and ``concentration_fn`` may be omitted; a missing one
    always falls through.
    """

    predicate: Callable[[EvaluationContext], bool]
    detect_fn: Callable[[EvaluationContext], DetectionResult | None] | None = None
    concentration_fn: Callable[[EvaluationContext], float | None] | None = None
    description: str = ""

    def matches(self, context: EvaluationContext) -> bool:
        return self.predicate(context)

    def detect(self, context: EvaluationContext) -> DetectionResult | None:
        return self.detect_fn(context) if self.detect_fn else None

    def concentration(
        self, context: EvaluationContext, evaluator: FormulaEvaluator,
    ) -> float | None:
        return self.concentration_fn(context) if self.concentration_fn else None


def normalize_instrument(name: str | None) -> str:
    """Instrument tags compare without case or punctuation: ``SLAN-96S`` == ``slan96s``."""
    if not name:
        return ""
    return re.sub(r"[^A-Z0-9]", "", name.upper())


def _slan_d1_override() -> CombinedCutoffOverride:
    return CombinedCutoffOverride(
        well_pattern="D1",
        channel="FAM",
        cutoff_channels=("FAM", "VIC"),
        cutoff=36.0,
        result=DetectionResult.POSITIVE,
        concentration_formula="5.703*2^(36-{FAM})",
        description="SLAN D1 FAM+VIC",
    )


_BUILTIN_OVERRIDES: dict[str, Callable[[], list[InstrumentOverride]]] = {
    "SLAN96S": lambda: [_slan_d1_override()],
    "SLAN96P": lambda: [_slan_d1_override()],
}


class OverrideRegistry:
    """Overrides keyed by instrument type.

    Comes pre-loaded with the built-in SLAN entries unless
    ``include_builtins`` is False. Later registrations are consulted after
    earlier ones.
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._overrides: dict[str, list[InstrumentOverride]] = {}
        if include_builtins:
            for instrument, factory in _BUILTIN_OVERRIDES.items():
                self._overrides[instrument] = factory()

    def register(self, instrument: str, override: InstrumentOverride) -> None:
        """Add an override for one instrument type.

        Raises:
            ValueError: If instrument is empty.
        """
        key = normalize_instrument(instrument)
        if not key:
            raise ValueError("Instrument type must not be empty")
        self._overrides.setdefault(key, []).append(override)

    def for_instrument(self, instrument: str | None) -> list[InstrumentOverride]:
        """Overrides for an instrument type, in consultation order."""
        return list(self._overrides.get(normalize_instrument(instrument), []))

    def instruments(self) -> list[str]:
        """Sorted normalized instrument types that have overrides."""
        return sorted(self._overrides)

    def copy(self) -> OverrideRegistry:
        clone = OverrideRegistry(include_builtins=False)
        clone._overrides = {k: list(v) for k, v in self._overrides.items()}
        return clone
