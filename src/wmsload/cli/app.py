"""Main Typer application: entry point for the ``wmsload`` CLI."""

from __future__ import annotations

import typer

from wmsload import __version__
from wmsload.cli.run import profiles_cmd, run_cmd

app = typer.Typer(
    name="wmsload",
    help="Load-test traffic generator for the warehouse-operations API.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a load profile.")(run_cmd)
app.command("profiles", help="List the built-in profiles.")(profiles_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"wmsload {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """wmsload: staged, weighted load profiles for the warehouse-operations API."""
