"""Render command - render templates into generated/"""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.markup import escape

from dotplate.lib.batch import render_all, render_file
from dotplate.lib.errors import DotplateError, handle_error

from .utils import console, get_paths, load_variables, resolve_template

log = logging.getLogger(__name__)


def render_command(
    ctx: typer.Context,
    templates: Optional[list[str]] = None,
    dry_run: bool = False,
    force: bool = False,
    stdout: bool = False,
) -> None:
    """Render all templates, or only the named ones."""
    paths = get_paths(ctx)
    try:
        variables, registry = load_variables(paths)
    except DotplateError as e:
        handle_error(e)

    if not templates:
        if stdout:
            templates = [t.name for t in paths.list_templates()]
        else:
            _render_batch(paths, variables, registry, dry_run, force)
            return

    errors = 0
    for name in templates:
        template = resolve_template(paths, name)
        output = None if stdout else paths.output_for(template)
        try:
            result = render_file(
                template,
                output,
                variables=variables,
                registry=registry,
                dry_run=dry_run,
            )
        except (DotplateError, OSError, UnicodeDecodeError) as e:
            console.print(f"[red]✗[/red] {escape(name)}: {escape(str(e))}")
            errors += 1
            continue

        label = escape(template.name)
        if stdout:
            if len(templates) > 1:
                console.print(f"[dim]=== {label} ===[/dim]")
            typer.echo(result.text, nl=False)
        elif dry_run:
            console.print(
                f"[cyan]\\[dry-run][/cyan] {label} -> {escape(str(output))} "
                f"({len(result.text.encode())} bytes)"
            )
        else:
            console.print(f"[green]✓[/green] {label} -> {escape(str(output))}")

    if errors:
        raise typer.Exit(1)


def _render_batch(paths, variables, registry, dry_run: bool, force: bool) -> None:
    console.print("[blue]Rendering templates...[/blue]")
    machine_type = escape(variables.get("machine_type", "unknown"))
    console.print(f"[dim]Machine type:[/dim] {machine_type}")

    result = render_all(paths, variables, registry, dry_run=dry_run, force=force)

    if result.rendered == 0 and result.failed == 0:
        console.print("No templates to render (all up to date)")
    else:
        verb = "Would render" if dry_run else "Rendered"
        target = escape(str(paths.generated_dir))
        console.print(f"{verb} {result.rendered} template(s) to {target}")
    if result.skipped:
        console.print(f"[dim]Skipped {result.skipped} up-to-date template(s)[/dim]")

    if not result.ok:
        console.print(f"[red]Failed to render {result.failed} template(s)[/red]")
        raise typer.Exit(1)
