"""Arrays command - list arrays available to {{#each}}"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from dotplate.lib.errors import DotplateError, handle_error
from dotplate.lib.layers import build_layers

from .utils import console, get_paths


def arrays_command(ctx: typer.Context) -> None:
    """List template arrays with their schema and record count."""
    paths = get_paths(ctx)
    try:
        _, registry = build_layers(paths)
    except DotplateError as e:
        handle_error(e)

    if not len(registry):
        console.print("[yellow]No arrays defined[/yellow]")
        return

    table = Table(title="Template Arrays")
    table.add_column("Array", style="cyan")
    table.add_column("Schema")
    table.add_column("Records", justify="right")

    for name in registry.names():
        schema = escape("|".join(registry.schema_for(name)))
        if not registry.has_schema(name):
            schema += " [dim](default)[/dim]"
        table.add_row(escape(name), schema, str(len(registry.get(name))))

    console.print(table)
