"""Well positions and the rule-table well pattern grammar.

Supported pattern forms (case-insensitive):

- ``*`` matches every well.
- ``A1`` matches exactly one well.
- ``A:*`` matches every well in row A.
- ``*:12`` matches every well in column 12.
- ``B:1-6`` matches columns 1 through 6 of row B (inclusive).

- ``NTC`` (any other name) matches a well with that exact name.

A comma-separated list of forms matches when any element matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pcrcall.core.exceptions import PatternError

_POSITION_RE = re.compile(r"^([A-Za-z]{1,2})0*(\d+)$")
_RANGE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")


def split_position(position: str) -> tuple[str, int] | None:
    """Split a well position into (row, column).

    Returns None if the position is not a row letter followed by a
    column number.
    """
    m = _POSITION_RE.match(position.strip())
    if m is None:
        return None
    column = int(m.group(2))
    if column < 1:
        return None
    return m.group(1).upper(), column


def normalize_position(position: str | None) -> str:
    """Canonical form of a well position: ``a01`` -> ``A1``.

    Positions that do not parse are returned stripped and upper-cased so
    they still identify their well.
    """
    if position is None:
        return ""
    parts = split_position(position)
    if parts is None:
        return position.strip().upper()
    row, column = parts
    return f"{row}{column}"


@dataclass(frozen=True)
class _Term:
    """One comma-separated element of a well pattern.

    ``row`` None means any row; ``columns`` None means any column.
    A ``literal`` term names a well outside the row/column grid.
    """

    row: str | None
    columns: tuple[int, int] | None
    literal: str | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.literal is None and self.row is None and self.columns is None

    def matches(self, row: str, column: int) -> bool:
        if self.literal is not None:
            return False
        if self.row is not None and self.row != row:
            return False
        if self.columns is not None:
            start, end = self.columns
            return start <= column <= end
        return True


def _parse_column_spec(spec: str, pattern: str) -> tuple[int, int] | None:
    if spec == "*":
        return None
    if spec.isdigit():
        column = int(spec)
        return (column, column)
    m = _RANGE_RE.match(spec)
    if m is None:
        raise PatternError(pattern, f"bad column specification {spec!r}")
    start, end = int(m.group(1)), int(m.group(2))
    if start > end:
        raise PatternError(pattern, f"column range {start}-{end} is reversed")
    return (start, end)


def _parse_term(term: str, pattern: str) -> _Term:
    term = term.strip().upper()
    if not term:
        raise PatternError(pattern, "empty element")
    if term == "*":
        return _Term(row=None, columns=None)
    if ":" in term:
        row_spec, _, column_spec = term.partition(":")
        row_spec = row_spec.strip()
        column_spec = column_spec.strip()
        if row_spec == "*":
            row = None
        elif row_spec.isalpha() and len(row_spec) <= 2:
            row = row_spec
        else:
            raise PatternError(pattern, f"bad row specification {row_spec!r}")
        return _Term(row=row, columns=_parse_column_spec(column_spec, pattern))
    if "*" in term:
        raise PatternError(pattern, f"wildcard in {term!r} needs the row:column form")
    parts = split_position(term)
    if parts is None:
        return _Term(row=None, columns=None, literal=normalize_position(term))
    row, column = parts
    return _Term(row=row, columns=(column, column))


@dataclass(frozen=True)
class WellPattern:
    """A compiled well position pattern."""

    text: str
    terms: tuple[_Term, ...]

    @classmethod
    def parse(cls, text: str | None) -> WellPattern:
        """Compile a pattern string.

        Raises:
            PatternError: If the pattern is empty or malformed.
        """
        if text is None or not text.strip():
            raise PatternError(text, "pattern is empty")
        terms = tuple(_parse_term(t, text) for t in text.split(","))
        return cls(text=text.strip(), terms=terms)

    def matches(self, position: str) -> bool:
        """Whether ``position`` falls inside this pattern."""
        parts = split_position(position)
        if parts is None:
            # Off-grid positions match "*" or their own name.
            name = normalize_position(position)
            return any(t.is_wildcard or t.literal == name for t in self.terms)
        row, column = parts
        return any(t.matches(row, column) for t in self.terms)

    @property
    def is_exact(self) -> bool:
        """True when the pattern names exactly one well."""
        if len(self.terms) != 1:
            return False
        term = self.terms[0]
        if term.literal is not None:
            return True
        return (
            term.row is not None
            and term.columns is not None
            and term.columns[0] == term.columns[1]
        )
