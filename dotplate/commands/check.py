"""Check command - validate template directive balance"""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape

from dotplate.lib.errors import TemplateNotFoundError
from dotplate.lib.validate import validate_file

from .utils import console, get_paths, resolve_template


def check_command(ctx: typer.Context, templates: Optional[list[str]] = None) -> None:
    """Validate template syntax. Exits 1 if any template has errors."""
    paths = get_paths(ctx)
    if templates:
        targets = [resolve_template(paths, name) for name in templates]
    else:
        targets = paths.list_templates()

    if not targets:
        templates_dir = escape(str(paths.templates_dir))
        console.print(f"[yellow]No templates found in {templates_dir}[/yellow]")
        return

    failed = 0
    for template in targets:
        name = escape(template.name)
        try:
            errors = validate_file(template)
        except TemplateNotFoundError as e:
            console.print(f"[red]✗[/red] {escape(e.message)}")
            failed += 1
            continue
        except (OSError, UnicodeDecodeError) as e:
            console.print(f"[red]✗[/red] {name}: {escape(str(e))}")
            failed += 1
            continue

        if errors:
            failed += 1
            console.print(f"[red]✗[/red] {name}")
            for error in errors:
                console.print(f"    {error}", markup=False)
        else:
            console.print(f"[green]✓[/green] {name}")

    if failed:
        console.print(f"\n[red]{failed} template(s) have errors[/red]")
        raise typer.Exit(1)
    console.print(f"\n[green]All {len(targets)} templates valid[/green]")
