"""Tests for the pcrcall analyze command."""

from pathlib import Path

import pandas as pd
from click.testing import CliRunner

from pcrcall.cli.main import cli
from pcrcall.io.results import RESULT_COLUMNS


class TestAnalyzeCommand:
    def test_analyze_prints_summary(self, runner: CliRunner, plate_csv: Path, rules_yaml: Path):
        result = runner.invoke(cli, ["analyze", str(plate_csv), "-r", str(rules_yaml)])
        assert result.exit_code == 0, result.output
        assert "4 results" in result.output
        assert "2 positive" in result.output

    def test_analyze_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["analyze", "--help"])
        assert result.exit_code == 0
        assert "Analyze a plate CSV" in result.output

    def test_writes_csv(
        self, runner: CliRunner, plate_csv: Path, rules_yaml: Path, tmp_path: Path,
    ):
        out_path = tmp_path / "results.csv"
        result = runner.invoke(
            cli, ["analyze", str(plate_csv), "-r", str(rules_yaml), "-o", str(out_path), "-q"],
        )
        assert result.exit_code == 0, result.output
        assert "Wrote 4 rows" in result.output
        df = pd.read_csv(out_path, keep_default_na=False, dtype=str)
        assert list(df.columns) == RESULT_COLUMNS
        assert list(df["Result"]) == ["positive", "positive", "-", "not detected"]
        assert float(df.iloc[0]["Concentration"]) == 64.0

    def test_patients_and_placeholders(
        self, runner: CliRunner, plate_csv: Path, rules_yaml: Path,
        patients_csv: Path, tmp_path: Path,
    ):
        out_path = tmp_path / "results.csv"
        result = runner.invoke(cli, [
            "analyze", str(plate_csv), "-r", str(rules_yaml),
            "-p", str(patients_csv), "-o", str(out_path), "--quiet",
        ])
        assert result.exit_code == 0, result.output
        df = pd.read_csv(out_path, keep_default_na=False, dtype=str)
        assert len(df) == 8
        assert df.iloc[0]["Patient"] == "Jane Doe"
        placeholders = df[df["Well"] == "B1"]
        assert list(placeholders["Channel"]) == ["FAM", "VIC", "ROX", "CY5"]
        assert set(placeholders["Result"]) == {"not detected"}

    def test_instrument_override(
        self, runner: CliRunner, slan_plate_csv: Path, slan_rules_yaml: Path, tmp_path: Path,
    ):
        out_path = tmp_path / "results.csv"
        args = ["analyze", str(slan_plate_csv), "-r", str(slan_rules_yaml), "-o", str(out_path)]

        result = runner.invoke(cli, [*args, "-i", "SLAN-96S"])
        assert result.exit_code == 0, result.output
        df = pd.read_csv(out_path, keep_default_na=False, dtype=str)
        assert df.iloc[0]["Result"] == "positive"

        result = runner.invoke(cli, [*args, "--overwrite"])
        assert result.exit_code == 0, result.output
        df = pd.read_csv(out_path, keep_default_na=False, dtype=str)
        assert df.iloc[0]["Result"] == "negative"

    def test_overwrite_protection(
        self, runner: CliRunner, plate_csv: Path, rules_yaml: Path, tmp_path: Path,
    ):
        out_path = tmp_path / "results.csv"
        out_path.write_text("existing data")

        result = runner.invoke(
            cli, ["analyze", str(plate_csv), "-r", str(rules_yaml), "-o", str(out_path)],
        )
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert out_path.read_text() == "existing data"

    def test_directory_output_rejected(
        self, runner: CliRunner, plate_csv: Path, rules_yaml: Path, tmp_path: Path,
    ):
        result = runner.invoke(
            cli, ["analyze", str(plate_csv), "-r", str(rules_yaml), "-o", str(tmp_path)],
        )
        assert result.exit_code == 1
        assert "directory" in result.output.lower()

    def test_missing_rules_file(self, runner: CliRunner, plate_csv: Path, tmp_path: Path):
        result = runner.invoke(
            cli, ["analyze", str(plate_csv), "-r", str(tmp_path / "missing.yaml")],
        )
        assert result.exit_code == 1
        assert "No rule file" in result.output

    def test_missing_plate(self, runner: CliRunner, rules_yaml: Path, tmp_path: Path):
        result = runner.invoke(
            cli, ["analyze", str(tmp_path / "missing.csv"), "-r", str(rules_yaml)],
        )
        assert result.exit_code == 2

    def test_empty_rule_table_aborts(self, runner: CliRunner, plate_csv: Path, tmp_path: Path):
        rules = tmp_path / "empty.yaml"
        rules.write_text("name: Empty\nrules: []\n")
        result = runner.invoke(cli, ["analyze", str(plate_csv), "-r", str(rules)])
        assert result.exit_code == 1
        assert "aborted" in result.output

    def test_bad_plate_columns(self, runner: CliRunner, rules_yaml: Path, tmp_path: Path):
        plate = tmp_path / "bad.csv"
        plate.write_text("Well,Value\nA1,30\n")
        result = runner.invoke(cli, ["analyze", str(plate), "-r", str(rules_yaml)])
        assert result.exit_code == 1
        assert "Error" in result.output
