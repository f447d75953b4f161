"""
trunkline CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer

from trunkline import __version__
from trunkline.cli import clean, sync, undo
from trunkline.cli.errors import ExitCode
from trunkline.core.config.env import load_layered_env

app = typer.Typer(
    name="trunkline",
    help="Keep feature branches in sync with trunk, and undo what you did",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def configure_logging(debug: bool) -> None:
    """
    Configure logging for all commands.

    Args:
        debug: If True, log at DEBUG level (every git command is logged)
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"trunkline version {__version__}")
        raise typer.Exit(ExitCode.SUCCESS)


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    trunkline - a git workflow assistant.

    Keeps your branch rebased on trunk without losing uncommitted work,
    records what it did, and lets you undo it.

    Common Workflows:
        trunkline sync               # Rebase the current branch on trunk and push
        trunkline sync --continue    # Finish after resolving conflicts
        trunkline undo               # Undo the last operation
        trunkline undo --history     # See what can be undone
        trunkline clean --dry-run    # List merged branches
    """
    configure_logging(debug)

    # Precedence: OS env > project .env > user .env
    load_layered_env()

    ctx.obj = {"debug": debug}


app.command(name="sync")(sync.main)
app.command(name="undo")(undo.main)
app.command(name="clean")(clean.main)


def cli_main() -> None:
    """
    Main CLI entry point.

    Maps Ctrl+C to the conventional exit status instead of a traceback.
    """
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Interrupted", err=True)
        sys.exit(ExitCode.SIGINT)


__all__ = ["app", "cli_main"]
