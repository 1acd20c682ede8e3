"""List command - show templates and whether their output is current"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from dotplate.lib.batch import TemplateState, list_templates

from .utils import console, get_paths


def list_command(ctx: typer.Context) -> None:
    """List templates and their generated files."""
    paths = get_paths(ctx)
    statuses = list_templates(paths)

    templates_dir = escape(str(paths.templates_dir))
    if not statuses:
        console.print(f"[yellow]No templates found in {templates_dir}[/yellow]")
        return

    table = Table()
    table.add_column("Template", style="cyan")
    table.add_column("Output")
    table.add_column("Status")

    state_colors = {
        TemplateState.RENDERED: "green",
        TemplateState.STALE: "yellow",
        TemplateState.NOT_RENDERED: "dim",
    }

    for status in statuses:
        color = state_colors[status.state]
        table.add_row(
            escape(status.template.name),
            escape(status.output.name),
            f"[{color}]{status.state.value}[/{color}]",
        )

    console.print(table)
    console.print(f"[dim]Total: {len(statuses)} templates in {templates_dir}[/dim]")
