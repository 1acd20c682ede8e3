"""Dotplate CLI Main Entry Point

Dotplate renders machine-specific configuration files from shared
templates plus per-machine variable overrides.

Usage:
    dotplate render                      # Render all stale templates
    dotplate render --force              # Re-render everything
    dotplate render gitconfig --stdout   # Print one rendered template
    dotplate vars                        # Show effective variables
    dotplate list                        # Show templates and status
    dotplate check                       # Validate template syntax
    dotplate diff -v                     # Show drift from generated files
    dotplate arrays                      # Show {{#each}} arrays
    dotplate init                        # Create _variables.local.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from ._version import __version__
from .commands import (
    arrays_command,
    check_command,
    diff_command,
    init_command,
    list_command,
    render_command,
    vars_command,
)
from .commands.utils import setup_logging
from .lib.context import CLIContext

typer_app = typer.Typer(
    help="Machine-specific config files from shared templates.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dotplate {__version__}")
        raise typer.Exit()


@typer_app.callback()
def cli(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None,
        "-r",
        "--root",
        envvar="DOTPLATE_DIR",
        help="Dotplate root directory (default: ~/.dotplate).",
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Show files as they are written."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    setup_logging(verbose)
    ctx.obj = CLIContext(root=root, verbose=verbose)


@typer_app.command("render")
def render(
    ctx: typer.Context,
    templates: Optional[List[str]] = typer.Argument(
        None, help="Templates to render (default: all)."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be rendered without writing."
    ),
    force: bool = typer.Option(
        False, "-f", "--force", help="Render even if output is newer than template."
    ),
    stdout: bool = typer.Option(
        False, "--stdout", help="Print rendered output instead of writing it."
    ),
) -> None:
    """Render templates to generated/."""
    render_command(ctx, templates, dry_run=dry_run, force=force, stdout=stdout)


@typer_app.command("vars")
def vars_(
    ctx: typer.Context,
    names_only: bool = typer.Option(
        False, "--names-only", help="Hide values (e.g. when sharing output)."
    ),
) -> None:
    """List all template variables and values."""
    vars_command(ctx, show_values=not names_only)


@typer_app.command("list")
def list_(ctx: typer.Context) -> None:
    """Show available templates and status."""
    list_command(ctx)


@typer_app.command("check")
def check(
    ctx: typer.Context,
    templates: Optional[List[str]] = typer.Argument(
        None, help="Templates to check (default: all)."
    ),
) -> None:
    """Validate template syntax."""
    check_command(ctx, templates)


@typer_app.command("diff")
def diff(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Show a unified diff for changed files."
    ),
) -> None:
    """Show differences from rendered files."""
    diff_command(ctx, verbose=verbose)


@typer_app.command("arrays")
def arrays(ctx: typer.Context) -> None:
    """List arrays available to {{#each}} loops."""
    arrays_command(ctx)


@typer_app.command("init")
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", help="Overwrite an existing local variables file."
    ),
) -> None:
    """Create templates/_variables.local.yaml for this machine."""
    init_command(ctx, force=force)


def app(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    # NOTE: Typer runs via Click under the hood and handles sys.exit codes for us.
    typer_app(args=argv)


if __name__ == "__main__":
    app()
