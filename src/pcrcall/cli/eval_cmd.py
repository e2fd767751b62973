"""pcrcall eval — evaluate a single formula."""

from __future__ import annotations

import click
from rich.markup import escape

from pcrcall.cli.utils import console, error_handler


def _parse_var(text: str) -> tuple[str, float]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected NAME=VALUE, got {text!r}", param_hint="--var")
    try:
        return name.strip(), float(value)
    except ValueError:
        raise click.BadParameter(
            f"{value!r} is not a number", param_hint="--var",
        ) from None


@click.command("eval")
@click.argument("formula")
@click.option("--ct", type=float, default=None, help="Value bound to [CT].")
@click.option(
    "--var", "variables", multiple=True, metavar="CHANNEL=VALUE",
    help="CT of another channel, referenced as {CHANNEL}. Repeatable.",
)
@error_handler
def eval_cmd(formula: str, ct: float | None, variables: tuple[str, ...]) -> None:
    """Evaluate FORMULA the way rule tables are evaluated."""
    from pcrcall.formula.evaluator import FormulaEvaluator
    from pcrcall.formula.normalize import CT_VARIABLE, channel_variable, normalize_formula

    bindings: dict[str, float | None] = {}
    for text in variables:
        name, value = _parse_var(text)
        bindings[channel_variable(name)] = value
    bindings[CT_VARIABLE] = ct

    value = FormulaEvaluator().evaluate(formula, bindings)
    console.print(f"[dim]{escape(normalize_formula(formula))}[/dim]")
    if isinstance(value, bool):
        console.print("true" if value else "false", highlight=False)
    else:
        console.print(f"{value:g}", highlight=False)
