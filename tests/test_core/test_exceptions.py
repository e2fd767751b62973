"""Tests for pcrcall.core.exceptions."""

import pytest

from pcrcall.core.exceptions import (
    AmbiguousRuleError,
    AnalysisError,
    ConfigurationError,
    FormulaError,
    PatternError,
    PlateFormatError,
)


class TestExceptionHierarchy:
    def test_all_inherit_from_analysis_error(self):
        for exc_cls in (ConfigurationError, PatternError, AmbiguousRuleError,
                        FormulaError, PlateFormatError):
            assert issubclass(exc_cls, AnalysisError)

    def test_configuration_family(self):
        assert issubclass(PatternError, ConfigurationError)
        assert issubclass(AmbiguousRuleError, ConfigurationError)
        assert not issubclass(FormulaError, ConfigurationError)

    def test_catch_all_with_base(self):
        with pytest.raises(AnalysisError):
            raise FormulaError("[CT]<", "syntax error")

    def test_configuration_error_key(self):
        exc = ConfigurationError(key="rules")
        assert "rules" in str(exc)
        assert exc.key == "rules"

    def test_configuration_error_message(self):
        exc = ConfigurationError("No rules", key="rules")
        assert str(exc) == "No rules"

    def test_pattern_error_message(self):
        exc = PatternError("Z:", "bad column specification ''")
        assert "Z:" in str(exc)
        assert "bad column" in str(exc)
        assert exc.pattern == "Z:"

    def test_ambiguous_rule_error_message(self):
        exc = AmbiguousRuleError("A1", "FAM", [1, 3])
        assert "A1/FAM" in str(exc)
        assert "rules 1, 3" in str(exc)
        assert exc.rule_indexes == [1, 3]

    def test_ambiguous_rule_error_default(self):
        assert str(AmbiguousRuleError()) == "Ambiguous rules"

    def test_formula_error_carries_expression(self):
        exc = FormulaError("[CT]<", "syntax error")
        assert exc.expression == "[CT]<"
        assert exc.reason == "syntax error"
        assert "'[CT]<'" in str(exc)

    def test_plate_format_error_message(self):
        exc = PlateFormatError("plate.csv", "missing column(s): ct")
        assert "plate.csv" in str(exc)
        assert "missing column" in str(exc)
