"""Vars command - show the effective template variables"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from dotplate.lib.errors import DotplateError, handle_error
from dotplate.lib.layers import LayerRole, build_layers, layer_sources, merge_layers

from .utils import console, get_paths

_LAYER_COLORS = {
    LayerRole.AUTO: "dim",
    LayerRole.DEFAULT: "white",
    LayerRole.MACHINE_TYPE: "magenta",
    LayerRole.LOCAL: "green",
    LayerRole.ENVIRONMENT: "yellow",
}


def vars_command(ctx: typer.Context, show_values: bool = True) -> None:
    """List all template variables, their values and source layer."""
    paths = get_paths(ctx)
    try:
        layers, _ = build_layers(paths)
    except DotplateError as e:
        handle_error(e)

    variables = merge_layers(layers)
    sources = layer_sources(layers)

    table = Table(title="Template Variables")
    table.add_column("Name", style="cyan")
    if show_values:
        table.add_column("Value")
    table.add_column("Layer")

    for name in sorted(variables):
        role = sources[name]
        color = _LAYER_COLORS[role]
        layer = f"[{color}]{role.value}[/{color}]"
        if show_values:
            value = variables[name]
            if len(value) > 60:
                value = value[:57] + "..."
            table.add_row(escape(name), escape(value), layer)
        else:
            table.add_row(escape(name), layer)

    console.print(table)
    console.print(f"[dim]Total: {len(variables)} variables[/dim]")
