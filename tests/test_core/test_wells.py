"""Tests for well position normalization and well patterns."""

import pytest

from pcrcall.core.exceptions import PatternError
from pcrcall.core.wells import WellPattern, normalize_position, split_position


class TestNormalizePosition:
    @pytest.mark.parametrize("raw,expected", [
        ("A1", "A1"),
        ("a01", "A1"),
        (" h12 ", "H12"),
        ("AA3", "AA3"),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_position(raw) == expected

    def test_unparseable_kept(self):
        assert normalize_position(" ntc-1 ") == "NTC-1"

    def test_none(self):
        assert normalize_position(None) == ""

    def test_split(self):
        assert split_position("b07") == ("B", 7)
        assert split_position("7B") is None
        assert split_position("A0") is None


class TestWellPattern:
    def test_star_matches_everything(self):
        pattern = WellPattern.parse("*")
        assert pattern.matches("A1")
        assert pattern.matches("H12")
        assert pattern.matches("NTC")

    def test_exact(self):
        pattern = WellPattern.parse("a1")
        assert pattern.matches("A01")
        assert not pattern.matches("A10")
        assert pattern.is_exact

    def test_row_wildcard(self):
        pattern = WellPattern.parse("D:*")
        assert pattern.matches("D1")
        assert pattern.matches("D12")
        assert not pattern.matches("E1")
        assert not pattern.is_exact

    def test_column_wildcard(self):
        pattern = WellPattern.parse("*:12")
        assert pattern.matches("A12")
        assert pattern.matches("H12")
        assert not pattern.matches("A1")

    def test_row_range(self):
        pattern = WellPattern.parse("B:1-6")
        assert pattern.matches("B1")
        assert pattern.matches("B6")
        assert not pattern.matches("B7")
        assert not pattern.matches("C3")

    def test_list(self):
        pattern = WellPattern.parse("A1, B:*, *:12")
        assert pattern.matches("A1")
        assert pattern.matches("B5")
        assert pattern.matches("G12")
        assert not pattern.matches("C1")

    def test_unparseable_position_needs_star(self):
        assert not WellPattern.parse("A:*").matches("NTC")

    def test_named_well(self):
        pattern = WellPattern.parse("ntc")
        assert pattern.is_exact
        assert pattern.matches("NTC")
        assert pattern.matches(" ntc ")
        assert not pattern.matches("NTC-2")
        assert not pattern.matches("A1")

    def test_named_well_in_list(self):
        pattern = WellPattern.parse("A:*, NTC-1")
        assert pattern.matches("A4")
        assert pattern.matches("ntc-1")
        assert not pattern.matches("NTC")

    @pytest.mark.parametrize("text", ["", "  ", "A1,", "A:x", "B:6-1", "A*", "ABC:1"])
    def test_malformed(self, text):
        with pytest.raises(PatternError):
            WellPattern.parse(text)
