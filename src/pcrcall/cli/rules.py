"""pcrcall rules — create and check rule configurations."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from pcrcall.cli.utils import check_output_path, console, error_handler, load_configuration


@click.group()
def rules() -> None:
    """Create and check rule configurations."""


@rules.command()
@click.argument("output", type=click.Path())
@click.option(
    "--overwrite", is_flag=True,
    help="Overwrite output file if it exists.",
)
@error_handler
def init(output: str, overwrite: bool) -> None:
    """Write the default rule template to OUTPUT."""
    from pcrcall.io.serialization import config_to_yaml, default_configuration

    out_path = check_output_path(output, overwrite)
    config = default_configuration()
    config_to_yaml(config, out_path)
    console.print(
        f"[green]Wrote {len(config.rules)} template rules to {out_path}[/green]"
    )


@rules.command()
@click.argument("config_path", metavar="RULES", type=click.Path())
@click.option(
    "--plate", default=None, type=click.Path(exists=True, dir_okay=False),
    help="Plate CSV used to look for wells matched by several rules.",
)
@error_handler
def check(config_path: str, plate: str | None) -> None:
    """Validate well patterns and formulas in RULES."""
    from pcrcall.analysis.validation import validate_configuration
    from pcrcall.io.plate_csv import read_plate_csv

    config = load_configuration(config_path)
    plate_obj = read_plate_csv(Path(plate)) if plate else None

    table = Table(show_header=True, title=escape(config.name))
    table.add_column("#", justify="right", style="bold")
    table.add_column("Well")
    table.add_column("Channel")
    table.add_column("Target")
    table.add_column("Detection")
    table.add_column("Concentration")
    for i, rule in enumerate(config.rules, start=1):
        table.add_row(
            str(i),
            *(escape(text) for text in (
                rule.well_pattern, rule.channel, rule.target_name,
                rule.detection_formula, rule.concentration_formula,
            )),
        )
    console.print(table)

    problems = validate_configuration(config, plate=plate_obj)
    if problems:
        for problem in problems:
            console.print(f"[red]✗[/red] {escape(problem)}")
        console.print(f"[red]{len(problems)} problem(s) found[/red]")
        raise SystemExit(1)
    console.print("[green]Configuration OK[/green]")
