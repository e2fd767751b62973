"""Rewrite rule-table formulas into evaluator syntax.

Rule tables are edited by lab staff in a spreadsheet-flavoured dialect:
``[CT]<36``, ``{FAM}<36 && {VIC}<36``, ``5.703*2^(36-[CT])``. The
evaluator parses Python expression syntax, so formulas pass through
``normalize_formula`` first.
"""

from __future__ import annotations

import math
import re

CT_VARIABLE = "CT"
_CHANNEL_PREFIX = "CT_"

# [CT], {CT}, {FAM}, [Texas Red]
_TOKEN_RE = re.compile(r"\[([^\[\]]+)\]|\{([^{}]+)\}")
_NON_IDENTIFIER_RE = re.compile(r"[^A-Z0-9]+")
_WORD_OPERATORS_RE = re.compile(r"\b(AND|OR|NOT)\b", re.IGNORECASE)
_IF_CALL_RE = re.compile(r"\bif\s*\(", re.IGNORECASE)
_LONE_EQUALS_RE = re.compile(r"(?<![<>=!])=(?!=)")
_LONE_BANG_RE = re.compile(r"!(?!=)")


def channel_variable(channel: str) -> str:
    """Evaluator variable name for a channel's CT value.

    >>> channel_variable("fam")
    'CT_FAM'
    >>> channel_variable("Texas Red")
    'CT_TEXAS_RED'
    """
    name = _NON_IDENTIFIER_RE.sub("_", channel.strip().upper()).strip("_")
    return f"{_CHANNEL_PREFIX}{name}"


def _replace_token(match: re.Match[str]) -> str:
    token = (match.group(1) or match.group(2)).strip()
    if token.upper() == CT_VARIABLE:
        return CT_VARIABLE
    return channel_variable(token)


def normalize_formula(expression: str) -> str:
    """Convert a rule-table formula to evaluator syntax.

    Args:
        expression: Formula text as written in the rule table.

    Returns:
        The equivalent expression in evaluator syntax.
    """
    text = expression.strip()
    text = _TOKEN_RE.sub(_replace_token, text)
    text = text.replace("&&", " and ").replace("||", " or ")
    text = text.replace("<>", "!=")
    text = _LONE_EQUALS_RE.sub("==", text)
    text = _LONE_BANG_RE.sub(" not ", text)
    text = text.replace("^", "**")
    text = _WORD_OPERATORS_RE.sub(lambda m: f" {m.group(1).lower()} ", text)
    text = _IF_CALL_RE.sub("iif(", text)
    return " ".join(text.split())


def is_numeric_literal(text: str | None) -> bool:
    """Whether ``text`` is a bare number such as ``100`` or ``1.5e3``."""
    return parse_numeric_literal(text) is not None


def parse_numeric_literal(text: str | None) -> float | None:
    """Parse a bare numeric literal, or return None."""
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    return value if math.isfinite(value) else None
