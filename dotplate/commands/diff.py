"""Diff command - report drift between templates and generated files"""

from __future__ import annotations

import typer
from rich.markup import escape

from dotplate.lib.batch import DriftStatus, diff_all
from dotplate.lib.errors import DotplateError, handle_error

from .utils import console, get_paths, load_variables


def diff_command(ctx: typer.Context, verbose: bool = False) -> None:
    """Show which generated files would change if templates were rendered."""
    paths = get_paths(ctx)
    try:
        variables, registry = load_variables(paths)
    except DotplateError as e:
        handle_error(e)

    console.print("[blue]Comparing templates with generated files...[/blue]")
    report = diff_all(paths, variables, registry)

    for entry in report.entries:
        name = escape(entry.output.name)
        if entry.status == DriftStatus.MISSING:
            console.print(f"[yellow]Not generated:[/yellow] {name}")
        elif entry.status == DriftStatus.CHANGED:
            console.print(f"[yellow]Changed:[/yellow] {name}")
            if verbose:
                console.print("".join(entry.diff), markup=False, highlight=False)
        elif entry.status == DriftStatus.ERROR:
            template = escape(entry.template.name)
            console.print(f"[red]Failed to render:[/red] {template}")
        else:
            console.print(f"[green]Up to date:[/green] {name}")

    if report.changed == 0 and report.missing == 0:
        console.print("[green]All generated files are up to date[/green]")
    else:
        console.print(
            f"{report.changed} file(s) changed, {report.missing} file(s) missing"
        )
