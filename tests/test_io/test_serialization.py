"""Tests for pcrcall.io.serialization — YAML rule configurations."""

import pytest
import yaml

from pcrcall.analysis.overrides import CombinedCutoffOverride
from pcrcall.core.exceptions import ConfigurationError
from pcrcall.core.models import (
    DEFAULT_CHANNELS,
    AnalysisConfiguration,
    AnalysisRule,
    DetectionResult,
    PropagationRule,
)
from pcrcall.io.serialization import (
    config_from_dict,
    config_from_yaml,
    config_to_dict,
    config_to_yaml,
    default_configuration,
)


def _make_config() -> AnalysisConfiguration:
    """A configuration using every section."""
    return AnalysisConfiguration(
        name="Respiratory panel",
        description="Flu A/B with internal control",
        rules=[
            AnalysisRule("*", "FAM", "Influenza A", "[CT]<36", "5.703*2^(36-[CT])"),
            AnalysisRule("B:1-6", "VIC", "RNase P (IC)", "{VIC}<38 && {FAM}>0", "100"),
        ],
        propagation=[PropagationRule("D:*", "FAM", "ROX", condition="empty")],
        overrides=[
            CombinedCutoffOverride(
                "D1", "FAM", ("FAM", "VIC"), cutoff=35.0,
                concentration_formula="5.703*2^(36-{FAM})",
                description="combined", instrument="SLAN-96S",
            ),
        ],
        default_channels=("FAM", "VIC", "ROX"),
        reject_ambiguous=True,
    )


class TestRoundTrip:
    def test_full_config_round_trips(self, tmp_path):
        config = _make_config()
        path = tmp_path / "rules.yaml"

        config_to_yaml(config, path)
        loaded = config_from_yaml(path)

        assert loaded.name == config.name
        assert loaded.description == config.description
        assert loaded.rules == config.rules
        assert loaded.propagation == config.propagation
        assert loaded.overrides == config.overrides
        assert loaded.default_channels == ("FAM", "VIC", "ROX")
        assert loaded.reject_ambiguous is True

    def test_yaml_layout(self, tmp_path):
        path = tmp_path / "rules.yaml"
        config_to_yaml(_make_config(), path)
        data = yaml.safe_load(path.read_text())
        assert list(data)[0] == "name"
        assert data["rules"][0] == {
            "well": "*",
            "channel": "FAM",
            "target": "Influenza A",
            "detection": "[CT]<36",
            "concentration": "5.703*2^(36-[CT])",
        }
        assert data["overrides"][0]["result"] == "positive"

    def test_minimal_dict_omits_empty_sections(self):
        data = config_to_dict(AnalysisConfiguration("Bare", rules=[AnalysisRule("A1", "FAM", "T")]))
        assert "propagation" not in data
        assert "overrides" not in data
        assert "description" not in data


class TestConfigFromDict:
    def test_defaults(self):
        config = config_from_dict({"name": "C", "rules": [{"well": "A1", "channel": "FAM"}]})
        assert config.default_channels == DEFAULT_CHANNELS
        assert config.reject_ambiguous is False
        rule = config.rules[0]
        assert rule.target_name == ""
        assert rule.detection_formula == ""

    def test_long_key_aliases(self):
        config = config_from_dict({
            "name": "C",
            "rules": [{
                "well_pattern": "A1", "channel": "FAM", "target_name": "T",
                "detection_formula": "POS", "concentration_formula": "NA",
            }],
        })
        assert config.rules[0] == AnalysisRule("A1", "FAM", "T", "POS", "NA")

    def test_numeric_cells_become_text(self):
        config = config_from_dict({
            "name": "C",
            "rules": [{"well": "A1", "channel": "FAM", "detection": "POS", "concentration": 100}],
        })
        assert config.rules[0].concentration_formula == "100"

    def test_empty_rules_allowed(self):
        assert config_from_dict({"name": "C"}).rules == []

    def test_single_reference_marker(self):
        config = config_from_dict({
            "name": "C",
            "propagation": [{
                "well": "*", "source": "FAM", "target": "VIC", "reference_markers": "IC",
            }],
        })
        assert config.propagation[0].reference_markers == ("IC",)

    def test_override_comma_channels_and_result(self):
        config = config_from_dict({
            "name": "C",
            "overrides": [{
                "instrument": "SLAN-96P", "well": "D1", "channel": "FAM",
                "cutoff_channels": "FAM, VIC", "result": "INVALID",
            }],
        })
        override = config.overrides[0]
        assert override.cutoff_channels == ("FAM", "VIC")
        assert override.result is DetectionResult.INVALID
        assert override.cutoff == 36.0
        assert override.concentration_formula is None

    @pytest.mark.parametrize("data,key", [
        ({"rules": []}, "name"),
        ({"name": "C", "rules": {"well": "A1"}}, "rules"),
        ({"name": "C", "rules": ["A1"]}, "rules[0]"),
        ({"name": "C", "rules": [{"channel": "FAM"}]}, "rules[0].well"),
        ({"name": "C", "rules": [{"well": "A1"}]}, "rules[0].channel"),
        ({"name": "C", "default_channels": "FAM"}, "default_channels"),
        ({"name": "C", "propagation": [{"well": "*", "source": "FAM"}]}, "propagation[0].target"),
        ({"name": "C", "propagation": [
            {"well": "*", "source": "FAM", "target": "VIC", "condition": "never"},
        ]}, "propagation[0]"),
        ({"name": "C", "overrides": [
            {"instrument": "X", "well": "D1", "channel": "FAM", "cutoff_channels": ["FAM"],
             "result": "maybe"},
        ]}, "overrides[0].result"),
        ({"name": "C", "overrides": [
            {"instrument": "X", "well": "D:", "channel": "FAM", "cutoff_channels": ["FAM"]},
        ]}, "overrides[0]"),
        ({"name": "C", "overrides": [
            {"instrument": "X", "well": "D1", "channel": "FAM", "cutoff_channels": ["FAM"],
             "cutoff": "high"},
        ]}, "overrides[0]"),
    ])
    def test_invalid(self, data, key):
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_dict(data)
        assert exc_info.value.key == key

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            config_from_dict(["name"])


class TestConfigFromYaml:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            config_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration YAML"):
            config_from_yaml(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError):
            config_from_yaml(path)

    def test_unicode_targets(self, tmp_path):
        path = tmp_path / "rules.yaml"
        config = AnalysisConfiguration("面板", rules=[AnalysisRule("A1", "FAM", "甲型流感", "[CT]<36")])
        config_to_yaml(config, path)
        assert "甲型流感" in path.read_text(encoding="utf-8")
        assert config_from_yaml(path).rules[0].target_name == "甲型流感"


class TestDefaultConfiguration:
    def test_template_rows(self):
        config = default_configuration()
        assert config.name == "Default"
        assert [r.channel for r in config.rules] == list(DEFAULT_CHANNELS)
        assert all(r.well_pattern == "A1" for r in config.rules)
        assert all(r.detection_formula == "[CT]<36" for r in config.rules)
        assert all(r.concentration_formula == "" for r in config.rules)
        assert config.rules[0].target_name == "Target 1"
