"""Channel-relationship propagation between sibling channels of one well.

Runs after every reading has its own call. A propagation rule copies the
source channel's detection result onto the target channel of the same
well when the target has no usable call of its own or is a reference
(internal control) target. All rules read the calls as they stood before
propagation, so rules never feed one another.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Sequence

from pcrcall.core.exceptions import PatternError
from pcrcall.core.models import (
    AnalysisResultItem,
    DetectionResult,
    PropagationRule,
    normalize_channel,
)
from pcrcall.core.wells import WellPattern, normalize_position

logger = logging.getLogger(__name__)

# Results that count as "no call of its own".
EMPTY_RESULTS = frozenset({DetectionResult.NO_RULE, DetectionResult.DASH_MARKER})


def is_reference_target(target_name: str, markers: Sequence[str]) -> bool:
    """Whether a target name contains any reference marker as a whole word."""
    for marker in markers:
        if marker and re.search(rf"\b{re.escape(marker)}\b", target_name, re.IGNORECASE):
            return True
    return False


def _should_propagate(rule: PropagationRule, target: AnalysisResultItem) -> bool:
    if rule.condition == "always":
        return True
    empty = target.detection_result in EMPTY_RESULTS
    reference = is_reference_target(target.target_name, rule.reference_markers)
    if rule.condition == "empty":
        return empty
    if rule.condition == "reference":
        return reference
    return empty or reference


def propagate_channels(
    items: Sequence[AnalysisResultItem],
    rules: Sequence[PropagationRule],
) -> tuple[list[AnalysisResultItem], int]:
    """Apply propagation rules to a result list.

    Args:
        items: Per-reading results, in output order.
        rules: Propagation rules. When two rules update the same item the
            later rule wins.

    Returns:
        (new item list in the same order, number of items changed).
    """
    if not rules:
        return list(items), 0

    # (well, channel) -> last item index, the same reading ChannelCtIndex keeps
    snapshot: dict[tuple[str, str], int] = {}
    for index, item in enumerate(items):
        key = (normalize_position(item.well_position), normalize_channel(item.channel))
        snapshot[key] = index

    updates: dict[int, DetectionResult] = {}
    for rule in rules:
        try:
            pattern = WellPattern.parse(rule.well_pattern)
        except PatternError as exc:
            logger.warning("Propagation rule skipped: %s", exc)
            continue
        source_channel = normalize_channel(rule.source_channel)
        target_channel = normalize_channel(rule.target_channel)

        for index, item in enumerate(items):
            well = normalize_position(item.well_position)
            if normalize_channel(item.channel) != target_channel or not pattern.matches(well):
                continue
            source_index = snapshot.get((well, source_channel))
            if source_index is None:
                continue
            if not _should_propagate(rule, item):
                continue
            source = items[source_index]
            updates[index] = source.detection_result
            logger.debug(
                "Propagated %s from %s/%s to %s/%s",
                source.detection_result.value, well, source_channel, well, target_channel,
            )

    result = list(items)
    changed = 0
    for index, detection in updates.items():
        if result[index].detection_result is not detection:
            result[index] = replace(result[index], detection_result=detection)
            changed += 1
    return result, changed
