"""RuleMatcher — find the configured rule for a well and channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from pcrcall.core.exceptions import PatternError
from pcrcall.core.models import AnalysisRule, normalize_channel
from pcrcall.core.wells import WellPattern, normalize_position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleAmbiguity:
    """More than one rule matches one (position, channel) pair.

    Attributes:
        position: Normalized well position.
        channel: Normalized channel name.
        rule_indexes: Zero-based indexes of every matching rule, in
            configuration order. The first one is applied.
    """

    position: str
    channel: str
    rule_indexes: tuple[int, ...]


class RuleMatcher:
    """Match (position, channel) pairs against an ordered rule list.

    The first matching rule in configuration order wins. Rules whose well
    pattern does not parse are kept in ``invalid_rules`` and never match.
    """

    def __init__(self, rules: Sequence[AnalysisRule]) -> None:
        self._rules = list(rules)
        self._compiled: list[tuple[int, WellPattern, str, AnalysisRule]] = []
        self.invalid_rules: list[tuple[int, PatternError]] = []

        for index, rule in enumerate(self._rules):
            try:
                pattern = WellPattern.parse(rule.well_pattern)
            except PatternError as exc:
                logger.warning("Rule %d ignored: %s", index + 1, exc)
                self.invalid_rules.append((index, exc))
                continue
            self._compiled.append((index, pattern, normalize_channel(rule.channel), rule))

    @property
    def rules(self) -> list[AnalysisRule]:
        return list(self._rules)

    def candidates(self, position: str, channel: str) -> list[int]:
        """Indexes of every rule matching the pair, in configuration order."""
        if not position or not channel:
            return []
        well = normalize_position(position)
        key = normalize_channel(channel)
        return [
            index
            for index, pattern, rule_channel, _ in self._compiled
            if rule_channel == key and pattern.matches(well)
        ]

    def match(self, position: str, channel: str) -> AnalysisRule | None:
        """The first rule matching the pair, or None."""
        if not position or not channel:
            return None
        well = normalize_position(position)
        key = normalize_channel(channel)
        for _, pattern, rule_channel, rule in self._compiled:
            if rule_channel == key and pattern.matches(well):
                return rule
        return None

    def find_ambiguities(
        self, pairs: Iterable[tuple[str, str]],
    ) -> list[RuleAmbiguity]:
        """Report every pair matched by more than one rule.

        Args:
            pairs: (position, channel) pairs to check, e.g. from a plate.

        Returns:
            One RuleAmbiguity per distinct ambiguous pair, in first-seen order.
        """
        seen: set[tuple[str, str]] = set()
        found: list[RuleAmbiguity] = []
        for position, channel in pairs:
            key = (normalize_position(position), normalize_channel(channel))
            if key in seen:
                continue
            seen.add(key)
            indexes = self.candidates(*key)
            if len(indexes) > 1:
                found.append(RuleAmbiguity(key[0], key[1], tuple(indexes)))
        return found
