"""YAML serialization for AnalysisConfiguration.

Requires pyyaml. Raises ImportError with clear install instructions
if pyyaml is not available.

Layout::

    name: Respiratory panel
    description: ...
    reject_ambiguous: false
    default_channels: [FAM, VIC, ROX, CY5]
    rules:
      - {well: "*", channel: FAM, target: Influenza A,
         detection: "[CT]<36", concentration: "5.703*2^(36-[CT])"}
    propagation:
      - {well: "D:*", source: FAM, target: VIC, condition: empty_or_reference}
    overrides:
      - {instrument: SLAN-96S, well: D1, channel: FAM,
         cutoff_channels: [FAM, VIC], cutoff: 36, result: positive}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pcrcall.analysis.overrides import CombinedCutoffOverride
from pcrcall.core.exceptions import ConfigurationError, PatternError
from pcrcall.core.models import (
    DEFAULT_CHANNELS,
    AnalysisConfiguration,
    AnalysisRule,
    DetectionResult,
    PropagationRule,
)


def _require_yaml() -> Any:
    """Import and return the yaml module, or raise a helpful error."""
    try:
        import yaml

        return yaml
    except ImportError:
        raise ImportError(
            "pyyaml is required for rule configuration files. "
            "Install it with: pip install pyyaml"
        ) from None


def _text(value: Any) -> str:
    """Cell text; YAML turns ``100`` into an int and blanks into None."""
    if value is None:
        return ""
    return str(value).strip()


def _pick(entry: dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in entry:
            return entry[name]
    return default


def _require(entry: dict[str, Any], section: str, index: int, *names: str) -> Any:
    value = _pick(entry, *names)
    if value is None or _text(value) == "":
        raise ConfigurationError(
            f"{section}[{index}]: missing required key '{names[0]}'",
            key=f"{section}[{index}].{names[0]}",
        )
    return value


def _entries(data: dict[str, Any], section: str) -> list[dict[str, Any]]:
    entries = data.get(section) or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"'{section}' must be a list", key=section)
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigurationError(
                f"{section}[{i}]: expected a mapping, got {type(entry).__name__}",
                key=f"{section}[{i}]",
            )
    return entries


def _parse_rule(entry: dict[str, Any], index: int) -> AnalysisRule:
    return AnalysisRule(
        well_pattern=_text(_require(entry, "rules", index, "well", "well_pattern")),
        channel=_text(_require(entry, "rules", index, "channel")),
        target_name=_text(_pick(entry, "target", "target_name")),
        detection_formula=_text(_pick(entry, "detection", "detection_formula")),
        concentration_formula=_text(_pick(entry, "concentration", "concentration_formula")),
    )


def _parse_propagation(entry: dict[str, Any], index: int) -> PropagationRule:
    kwargs: dict[str, Any] = {
        "well_pattern": _text(_require(entry, "propagation", index, "well", "well_pattern")),
        "source_channel": _text(_require(entry, "propagation", index, "source", "source_channel")),
        "target_channel": _text(_require(entry, "propagation", index, "target", "target_channel")),
    }
    if "condition" in entry:
        kwargs["condition"] = _text(entry["condition"])
    if "reference_markers" in entry:
        markers = entry["reference_markers"] or []
        if isinstance(markers, str):
            markers = [markers]
        kwargs["reference_markers"] = tuple(_text(m) for m in markers)
    try:
        return PropagationRule(**kwargs)
    except ValueError as exc:
        raise ConfigurationError(f"propagation[{index}]: {exc}", key=f"propagation[{index}]") from exc


def _parse_result(value: Any, index: int) -> DetectionResult:
    text = _text(value).lower()
    for result in DetectionResult:
        if text in (result.value, result.name.lower()):
            return result
    raise ConfigurationError(
        f"overrides[{index}]: unknown result {value!r}", key=f"overrides[{index}].result",
    )


def _parse_override(entry: dict[str, Any], index: int) -> CombinedCutoffOverride:
    cutoff_channels = _require(entry, "overrides", index, "cutoff_channels")
    if isinstance(cutoff_channels, str):
        cutoff_channels = cutoff_channels.split(",")
    concentration = _pick(entry, "concentration", "concentration_formula")
    try:
        return CombinedCutoffOverride(
            instrument=_text(_require(entry, "overrides", index, "instrument")),
            well_pattern=_text(_require(entry, "overrides", index, "well", "well_pattern")),
            channel=_text(_require(entry, "overrides", index, "channel")),
            cutoff_channels=tuple(_text(c) for c in cutoff_channels),
            cutoff=float(entry.get("cutoff", 36.0)),
            result=_parse_result(entry.get("result", "positive"), index),
            concentration_formula=_text(concentration) or None,
            description=_text(entry.get("description")),
        )
    except PatternError as exc:
        raise ConfigurationError(f"overrides[{index}]: {exc}", key=f"overrides[{index}]") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"overrides[{index}]: {exc}", key=f"overrides[{index}]") from exc


def config_from_dict(data: Any) -> AnalysisConfiguration:
    """Build an AnalysisConfiguration from parsed YAML data.

    Raises:
        ConfigurationError: If the data is not a mapping or a required key
            is missing or malformed.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid configuration: expected a mapping, got {type(data).__name__}"
        )
    if not _text(data.get("name")):
        raise ConfigurationError("Invalid configuration: missing required key 'name'", key="name")

    channels = data.get("default_channels") or list(DEFAULT_CHANNELS)
    if not isinstance(channels, list):
        raise ConfigurationError("'default_channels' must be a list", key="default_channels")

    return AnalysisConfiguration(
        name=_text(data["name"]),
        description=_text(data.get("description")),
        rules=[_parse_rule(e, i) for i, e in enumerate(_entries(data, "rules"))],
        propagation=[
            _parse_propagation(e, i) for i, e in enumerate(_entries(data, "propagation"))
        ],
        overrides=[_parse_override(e, i) for i, e in enumerate(_entries(data, "overrides"))],
        default_channels=tuple(_text(c) for c in channels),
        reject_ambiguous=bool(data.get("reject_ambiguous", False)),
    )


def config_to_dict(config: AnalysisConfiguration) -> dict[str, Any]:
    """Plain-data form of a configuration, as written to YAML."""
    data: dict[str, Any] = {"name": config.name}
    if config.description:
        data["description"] = config.description
    data["reject_ambiguous"] = config.reject_ambiguous
    data["default_channels"] = list(config.default_channels)
    data["rules"] = [
        {
            "well": rule.well_pattern,
            "channel": rule.channel,
            "target": rule.target_name,
            "detection": rule.detection_formula,
            "concentration": rule.concentration_formula,
        }
        for rule in config.rules
    ]

    if config.propagation:
        data["propagation"] = [
            {
                "well": p.well_pattern,
                "source": p.source_channel,
                "target": p.target_channel,
                "condition": p.condition,
                "reference_markers": list(p.reference_markers),
            }
            for p in config.propagation
        ]

    if config.overrides:
        overrides = []
        for o in config.overrides:
            entry: dict[str, Any] = {
                "instrument": o.instrument,
                "well": o.well_pattern,
                "channel": o.channel,
                "cutoff_channels": list(o.cutoff_channels),
                "cutoff": o.cutoff,
                "result": o.result.value,
            }
            if o.concentration_formula is not None:
                entry["concentration"] = o.concentration_formula
            if o.description:
                entry["description"] = o.description
            overrides.append(entry)
        data["overrides"] = overrides
    return data


def config_to_yaml(config: AnalysisConfiguration, path: Path) -> None:
    """Serialize an AnalysisConfiguration to a YAML file.

    Args:
        config: The configuration to serialize.
        path: File path to write.
    """
    yaml = _require_yaml()
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            config_to_dict(config), f,
            default_flow_style=False, sort_keys=False, allow_unicode=True,
        )


def config_from_yaml(path: Path) -> AnalysisConfiguration:
    """Deserialize an AnalysisConfiguration from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        The configuration described by the file.

    Raises:
        FileNotFoundError: If the YAML file doesn't exist.
        ConfigurationError: If the YAML is invalid or missing required fields.
    """
    yaml = _require_yaml()

    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid configuration YAML in {path}: {exc}") from exc
    return config_from_dict(data)


def default_configuration() -> AnalysisConfiguration:
    """The stock template: well A1, four channels, ``[CT]<36``."""
    targets = {
        "FAM": "Target 1",
        "VIC": "Target 2",
        "ROX": "Target 3",
        "CY5": "Target 4",
    }
    return AnalysisConfiguration(
        name="Default",
        description="Template rule table; edit wells, targets and formulas.",
        rules=[
            AnalysisRule(
                well_pattern="A1",
                channel=channel,
                target_name=target,
                detection_formula="[CT]<36",
                concentration_formula="",
            )
            for channel, target in targets.items()
        ],
    )
