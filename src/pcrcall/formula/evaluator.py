"""FormulaEvaluator — evaluate rule-table formulas over named CT values.

Formulas are normalized (see ``pcrcall.formula.normalize``), parsed with
the ``ast`` module in ``eval`` mode, checked against a whitelist of node
types, and walked directly. Nothing is handed to ``eval``.

Arithmetic runs on numpy float64 with floating-point errors suppressed:
``1/0`` is Infinity and ``ln(-1)`` is NaN. A comparison or logical
operator with a NaN operand yields NaN, so callers can tell "could not be
determined" apart from "false".
"""

from __future__ import annotations

import ast
import logging
import math
import operator
from typing import Any, Mapping

import numpy as np

from pcrcall.core.exceptions import FormulaError
from pcrcall.formula.functions import FunctionRegistry
from pcrcall.formula.normalize import normalize_formula

logger = logging.getLogger(__name__)

Value = bool | np.float64

_BINARY_OPERATORS: dict[type[ast.operator], Any] = {
    ast.Add: np.add,
    ast.Sub: np.subtract,
    ast.Mult: np.multiply,
    ast.Div: np.true_divide,
    ast.Pow: np.power,
    ast.Mod: np.mod,
}

_COMPARE_OPERATORS: dict[type[ast.cmpop], Any] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.UnaryOp,
    ast.UAdd,
    ast.USub,
    ast.Not,
    ast.BinOp,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.Compare,
    ast.Call,
    *_BINARY_OPERATORS,
    *_COMPARE_OPERATORS,
)

# Syntax tree depth accepted by compile; the walker recurses once per level.
MAX_NESTING_DEPTH = 200

_BOOLEAN_NAMES = {"TRUE": True, "FALSE": False}
_NON_FINITE_NAMES = {"NAN": np.nan, "INF": np.inf, "INFINITY": np.inf}


def _as_number(value: Value) -> np.float64:
    return np.float64(1.0 if value is True else 0.0 if value is False else value)


def _is_nan(value: Value) -> bool:
    return not isinstance(value, bool) and bool(np.isnan(value))


class FormulaEvaluator:
    """Parse and evaluate formulas.

    Args:
        functions: Optional FunctionRegistry. If None, uses default builtins.
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._functions = functions or FunctionRegistry()
        self._cache: dict[str, ast.Expression] = {}

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def compile(self, expression: str) -> ast.Expression:
        """Normalize, parse and validate a formula.

        Returns:
            The checked syntax tree (cached by normalized text).

        Raises:
            FormulaError: If the formula is empty, does not parse, or uses
                syntax or functions the evaluator does not support.
        """
        if expression is None or not str(expression).strip():
            raise FormulaError(expression, "formula is empty")
        normalized = normalize_formula(str(expression))
        tree = self._cache.get(normalized)
        if tree is not None:
            return tree

        try:
            tree = ast.parse(normalized, mode="eval")
        except SyntaxError as exc:
            raise FormulaError(expression, f"syntax error: {exc.msg}") from None
        except ValueError as exc:
            # null bytes on older interpreters
            raise FormulaError(expression, f"syntax error: {exc}") from None
        except (RecursionError, MemoryError):
            raise FormulaError(expression, "formula is too long or too deeply nested") from None
        self._check(tree, expression)
        self._cache[normalized] = tree
        return tree

    def evaluate(
        self,
        expression: str,
        variables: Mapping[str, float | None] | None = None,
    ) -> bool | float:
        """Evaluate a formula.

        Args:
            expression: Formula text (rule-table or evaluator syntax).
            variables: Variable values by name, matched case-insensitively.
                Unknown identifiers and None values evaluate to 0.

        Returns:
            A bool for comparisons and logical expressions, otherwise a
            float (which may be NaN or Infinity).

        Raises:
            FormulaError: If the formula cannot be parsed or evaluated.
        """
        tree = self.compile(expression)
        lookup = {
            name.upper(): (0.0 if value is None else value)
            for name, value in (variables or {}).items()
        }
        walker = _Walker(self._functions, lookup, expression)
        with np.errstate(all="ignore"):
            try:
                value = walker.visit(tree.body)
            except FormulaError:
                raise
            except RecursionError:
                raise FormulaError(expression, "formula is too deeply nested") from None
            except (TypeError, ValueError, OverflowError) as exc:
                raise FormulaError(expression, str(exc)) from exc
        if isinstance(value, bool):
            return value
        return float(value)

    def _check(self, tree: ast.Expression, expression: str) -> None:
        stack: list[tuple[ast.AST, int]] = [(tree, 0)]
        while stack:
            node, depth = stack.pop()
            if depth > MAX_NESTING_DEPTH:
                raise FormulaError(expression, "formula is too long or too deeply nested")
            stack.extend((child, depth + 1) for child in ast.iter_child_nodes(node))
            if not isinstance(node, _ALLOWED_NODES):
                raise FormulaError(
                    expression, f"unsupported syntax: {type(node).__name__}",
                )
            if isinstance(node, ast.Constant) and not isinstance(
                node.value, (bool, int, float),
            ):
                raise FormulaError(expression, f"unsupported literal: {node.value!r}")
            if isinstance(node, ast.Call):
                self._check_call(node, expression)

    def _check_call(self, node: ast.Call, expression: str) -> None:
        if not isinstance(node.func, ast.Name):
            raise FormulaError(expression, "only named functions can be called")
        if node.keywords:
            raise FormulaError(expression, "keyword arguments are not supported")
        name = node.func.id
        if name not in self._functions:
            raise FormulaError(expression, f"unknown function {name!r}")
        spec = self._functions.get(name)
        count = len(node.args)
        if not spec.min_args <= count <= spec.max_args:
            raise FormulaError(
                expression,
                f"{name}() takes {spec.min_args}-{spec.max_args} arguments, got {count}",
            )


class _Walker(ast.NodeVisitor):
    """Evaluate one checked tree against one set of variables."""

    def __init__(
        self,
        functions: FunctionRegistry,
        variables: dict[str, float],
        expression: str,
    ) -> None:
        self._functions = functions
        self._variables = variables
        self._expression = expression

    def generic_visit(self, node: ast.AST) -> Value:
        raise FormulaError(self._expression, f"unsupported syntax: {type(node).__name__}")

    def visit_Constant(self, node: ast.Constant) -> Value:
        if isinstance(node.value, bool):
            return node.value
        return np.float64(node.value)

    def visit_Name(self, node: ast.Name) -> Value:
        key = node.id.upper()
        if key in _BOOLEAN_NAMES:
            return _BOOLEAN_NAMES[key]
        if key in _NON_FINITE_NAMES:
            return np.float64(_NON_FINITE_NAMES[key])
        if key not in self._variables:
            logger.debug("Unknown identifier %r in %r, using 0", node.id, self._expression)
            return np.float64(0.0)
        value = self._variables[key]
        if isinstance(value, bool):
            return value
        return np.float64(value)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Value:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            if _is_nan(operand):
                return np.float64(np.nan)
            return not bool(operand)
        number = _as_number(operand)
        return np.negative(number) if isinstance(node.op, ast.USub) else number

    def visit_BinOp(self, node: ast.BinOp) -> Value:
        func = _BINARY_OPERATORS[type(node.op)]
        left = _as_number(self.visit(node.left))
        right = _as_number(self.visit(node.right))
        return np.float64(func(left, right))

    def visit_BoolOp(self, node: ast.BoolOp) -> Value:
        values = [self.visit(v) for v in node.values]
        if any(_is_nan(v) for v in values):
            return np.float64(np.nan)
        truth = [bool(v) for v in values]
        return all(truth) if isinstance(node.op, ast.And) else any(truth)

    def visit_Compare(self, node: ast.Compare) -> Value:
        operands = [self.visit(node.left)] + [self.visit(c) for c in node.comparators]
        if any(_is_nan(v) for v in operands):
            return np.float64(np.nan)
        numbers = [_as_number(v) for v in operands]
        for op, left, right in zip(node.ops, numbers, numbers[1:]):
            if not _COMPARE_OPERATORS[type(op)](left, right):
                return False
        return True

    def visit_Call(self, node: ast.Call) -> Value:
        spec = self._functions.get(node.func.id)  # type: ignore[attr-defined]
        args = [_as_number(self.visit(a)) for a in node.args]
        return np.float64(spec.func(*args))


_default_evaluator = FormulaEvaluator()


def evaluate(
    expression: str,
    variables: Mapping[str, float | None] | None = None,
) -> bool | float:
    """Evaluate a formula with the shared default evaluator."""
    return _default_evaluator.evaluate(expression, variables)


def is_finite_result(value: bool | float) -> bool:
    """Whether an evaluation result is a bool or a finite number."""
    return isinstance(value, bool) or math.isfinite(value)
