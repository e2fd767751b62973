"""pcrcall CLI — top-level Click group."""

from __future__ import annotations

import click


@click.group()
@click.version_option(package_name="pcrcall")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and full tracebacks on errors.")
def cli(verbose: bool) -> None:
    """pcrcall — rule-based qPCR result calling."""
    from pcrcall.cli import utils

    utils.verbose = verbose
    utils.configure_logging(verbose)


def _register_commands() -> None:
    """Register all subcommands — imports deferred to keep startup light."""
    from pcrcall.cli.analyze import analyze
    from pcrcall.cli.eval_cmd import eval_cmd
    from pcrcall.cli.rules import rules

    cli.add_command(analyze)
    cli.add_command(eval_cmd)
    cli.add_command(rules)


_register_commands()
