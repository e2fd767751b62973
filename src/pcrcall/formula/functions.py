"""Built-in formula functions and function registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

# Formula function signature: (*float64 arguments) -> float64
FormulaFunction = Callable[..., np.float64]

_MAX_VARIADIC = 64


@dataclass(frozen=True)
class FunctionSpec:
    """A callable plus the argument counts it accepts."""

    func: FormulaFunction
    min_args: int
    max_args: int


def _log(value: np.float64, base: np.float64 | None = None) -> np.float64:
    """Natural log, or log in ``base`` when given."""
    if base is None:
        return np.log(value)
    return np.log(value) / np.log(base)


def _iif(condition: np.float64, when_true: np.float64, when_false: np.float64) -> np.float64:
    """Spreadsheet-style ``if(condition, a, b)``."""
    if np.isnan(condition):
        return np.float64(np.nan)
    return when_true if condition else when_false


def _min(*values: np.float64) -> np.float64:
    return np.min(np.array(values, dtype=np.float64))


def _max(*values: np.float64) -> np.float64:
    return np.max(np.array(values, dtype=np.float64))


def _round(value: np.float64, digits: np.float64 | None = None) -> np.float64:
    return np.round(value, 0 if digits is None else int(digits))


_BUILTIN_FUNCTIONS: dict[str, FunctionSpec] = {
    "abs": FunctionSpec(np.abs, 1, 1),
    "exp": FunctionSpec(np.exp, 1, 1),
    "ln": FunctionSpec(np.log, 1, 1),
    "log": FunctionSpec(_log, 1, 2),
    "log10": FunctionSpec(np.log10, 1, 1),
    "pow": FunctionSpec(np.power, 2, 2),
    "power": FunctionSpec(np.power, 2, 2),
    "sqrt": FunctionSpec(np.sqrt, 1, 1),
    "min": FunctionSpec(_min, 1, _MAX_VARIADIC),
    "max": FunctionSpec(_max, 1, _MAX_VARIADIC),
    "round": FunctionSpec(_round, 1, 2),
    "iif": FunctionSpec(_iif, 3, 3),
}


class FunctionRegistry:
    """Registry of functions callable from formulas.

    Comes pre-loaded with the built-ins (abs, exp, ln, log, log10, pow,
    power, sqrt, min, max, round, iif). Names are case-insensitive.
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionSpec] = dict(_BUILTIN_FUNCTIONS)

    def register(
        self,
        name: str,
        func: FormulaFunction,
        min_args: int = 1,
        max_args: int | None = None,
    ) -> None:
        """Register a custom formula function.

        Args:
            name: Function name as written in formulas.
            func: Callable taking float64 arguments.
            min_args: Minimum number of arguments.
            max_args: Maximum number of arguments (defaults to ``min_args``).

        Raises:
            ValueError: If name is empty or not an identifier.
        """
        if not name or not name.isidentifier():
            raise ValueError(f"Invalid function name: {name!r}")
        self._functions[name.lower()] = FunctionSpec(
            func, min_args, min_args if max_args is None else max_args,
        )

    def get(self, name: str) -> FunctionSpec:
        """Look up a function by name.

        Raises:
            KeyError: If the function is not registered.
        """
        key = name.lower()
        if key not in self._functions:
            raise KeyError(
                f"Unknown function '{name}'. "
                f"Available: {sorted(self._functions)}"
            )
        return self._functions[key]

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._functions

    def list_functions(self) -> list[str]:
        """Return sorted list of registered function names."""
        return sorted(self._functions)
