"""pcrcall analyze — call results for a plate against a rule table."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from pcrcall.cli.utils import check_output_path, console, error_handler, load_configuration
from pcrcall.core.models import AnalysisResultItem, DetectionResult

_RESULT_STYLES = {
    DetectionResult.POSITIVE: "bold red",
    DetectionResult.NEGATIVE: "green",
    DetectionResult.INVALID: "yellow",
    DetectionResult.UNDETERMINABLE: "yellow",
    DetectionResult.FORMULA_ERROR: "bold yellow",
    DetectionResult.NO_RULE: "dim",
    DetectionResult.DASH_MARKER: "dim",
}


def _fmt(value: float | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def render_results(items: list[AnalysisResultItem], title: str) -> None:
    """Print result items as a Rich table."""
    table = Table(show_header=True, title=title)
    table.add_column("Well", style="bold")
    table.add_column("Channel")
    table.add_column("Target")
    table.add_column("Patient")
    table.add_column("CT", justify="right")
    table.add_column("Conc.", justify="right")
    table.add_column("Result")
    for item in items:
        style = _RESULT_STYLES.get(item.detection_result, "")
        result = item.detection_result.value
        table.add_row(
            escape(item.well_position),
            escape(item.channel),
            escape(item.target_name),
            escape(item.patient_name),
            escape(item.special_mark or _fmt(item.ct_value)),
            _fmt(item.concentration),
            f"[{style}]{result}[/{style}]" if style else result,
        )
    console.print(table)


@click.command()
@click.argument("plate", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-r", "--rules", "rules_path", required=True, type=click.Path(),
    help="Rule configuration (YAML).",
)
@click.option(
    "-i", "--instrument", default="unknown", show_default=True,
    help="Instrument type, e.g. SLAN-96S (selects instrument overrides).",
)
@click.option(
    "-p", "--patients", "patients_path", default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Patient layout CSV (Well, Patient, CaseNumber).",
)
@click.option(
    "-o", "--output", default=None, type=click.Path(),
    help="Write results to this CSV file.",
)
@click.option(
    "--overwrite", is_flag=True,
    help="Overwrite output file if it exists.",
)
@click.option(
    "--quiet", "-q", is_flag=True,
    help="Skip the results table; print the summary only.",
)
@error_handler
def analyze(
    plate: str,
    rules_path: str,
    instrument: str,
    patients_path: str | None,
    output: str | None,
    overwrite: bool,
    quiet: bool,
) -> None:
    """Analyze a plate CSV (Well, Channel, CT) against a rule table."""
    from pcrcall.analysis.service import run_analysis
    from pcrcall.core.exceptions import ConfigurationError
    from pcrcall.io.plate_csv import read_patients_csv, read_plate_csv
    from pcrcall.io.results import write_results_csv

    out_path = check_output_path(output, overwrite) if output else None
    config = load_configuration(rules_path)
    patients = read_patients_csv(Path(patients_path)) if patients_path else None
    plate_obj = read_plate_csv(Path(plate), instrument_type=instrument, patients=patients)

    report = run_analysis(plate_obj, config)
    if report.aborted:
        raise ConfigurationError(f"Analysis aborted: {report.message}")

    if not quiet:
        render_results(report.items, f"{escape(plate_obj.name)}: {escape(config.name)}")

    positives = sum(
        1 for i in report.items if i.detection_result is DetectionResult.POSITIVE
    )
    console.print(
        f"[green]{len(report.items)} results[/green] "
        f"({positives} positive, {report.unmatched} without rule, "
        f"{report.formula_errors} formula errors, {report.propagated} propagated, "
        f"{report.placeholders} placeholders) in {report.elapsed_seconds:.2f}s"
    )
    for amb in report.ambiguities:
        console.print(
            f"[yellow]Warning:[/yellow] {amb.position}/{amb.channel} matched by rules "
            f"{', '.join(str(i + 1) for i in amb.rule_indexes)}; "
            f"used rule {amb.rule_indexes[0] + 1}"
        )

    if out_path is not None:
        rows = write_results_csv(report.items, out_path)
        console.print(f"[green]Wrote {rows} rows to {out_path}[/green]")
