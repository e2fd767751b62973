"""Shared CLI utilities — Rich console, logging, error handling, file helpers."""

from __future__ import annotations

import functools
import logging
import traceback
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

if TYPE_CHECKING:
    from pcrcall.core.models import AnalysisConfiguration

console = Console()

# Set by the --verbose flag on the top-level CLI group.
verbose: bool = False


def configure_logging(debug: bool) -> None:
    """Route pcrcall log records through a Rich handler on stderr."""
    logger = logging.getLogger("pcrcall")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True), show_path=False, rich_tracebacks=debug,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def load_configuration(path: str) -> AnalysisConfiguration:
    """Load a rule configuration with CLI-friendly error handling.

    Raises:
        SystemExit: With code 1 if the file does not exist.
    """
    from pcrcall.io.serialization import config_from_yaml

    config_path = Path(path).expanduser()
    if not config_path.is_file():
        console.print(f"[red]Error:[/red] No rule file found at {config_path}")
        raise SystemExit(1)
    return config_from_yaml(config_path)


def check_output_path(output: str, overwrite: bool) -> Path:
    """Validate an output file path before anything is written.

    Raises:
        SystemExit: With code 1 if the path is a directory, its parent is
            missing, or it exists and ``overwrite`` is not set.
    """
    out_path = Path(output).expanduser()

    if out_path.is_dir():
        console.print(
            f"[red]Error:[/red] Output path is a directory: {out_path}\n"
            f"Provide a file path, e.g. {out_path / 'results.csv'}"
        )
        raise SystemExit(1)

    if not out_path.parent.exists():
        console.print(
            f"[red]Error:[/red] Parent directory does not exist: {out_path.parent}"
        )
        raise SystemExit(1)

    if out_path.exists() and not overwrite:
        console.print(
            f"[red]Error:[/red] Output file already exists: {out_path}\n"
            "Use --overwrite to replace it."
        )
        raise SystemExit(1)
    return out_path


def error_handler(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator wrapping CLI commands with standard error handling.

    Catches AnalysisError (exit 1) and unexpected exceptions (exit 2).
    With --verbose, unexpected errors include the full traceback.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        from pcrcall.core.exceptions import AnalysisError

        try:
            return func(*args, **kwargs)
        except (SystemExit, click.ClickException):
            raise
        except AnalysisError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise SystemExit(1)
        except Exception as e:
            if verbose:
                console.print(f"[red]Internal error:[/red] {escape(str(e))}")
                console.print(traceback.format_exc())
            else:
                console.print(
                    f"[red]Internal error:[/red] {type(e).__name__}: {escape(str(e))}\n"
                    "[dim]Use --verbose for the full traceback.[/dim]"
                )
            raise SystemExit(2)

    return wrapper
