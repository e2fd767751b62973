"""pcrcall formula — normalize and evaluate rule-table expressions."""

from pcrcall.formula.evaluator import FormulaEvaluator, evaluate, is_finite_result
from pcrcall.formula.functions import FunctionRegistry, FunctionSpec
from pcrcall.formula.normalize import (
    CT_VARIABLE,
    channel_variable,
    is_numeric_literal,
    normalize_formula,
    parse_numeric_literal,
)

__all__ = [
    "CT_VARIABLE",
    "FormulaEvaluator",
    "FunctionRegistry",
    "FunctionSpec",
    "channel_variable",
    "evaluate",
    "is_finite_result",
    "is_numeric_literal",
    "normalize_formula",
    "parse_numeric_literal",
]
