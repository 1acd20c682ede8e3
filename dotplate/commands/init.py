"""Init command for dotplate."""

import socket

import typer

from dotplate.lib.config import scaffold_local_variables
from dotplate.lib.errors import handle_error

from .utils import get_paths


def init_command(ctx: typer.Context, force: bool = False) -> None:
    """Create templates/_variables.local.yaml for this machine."""
    paths = get_paths(ctx)
    try:
        hostname = socket.gethostname().split(".")[0] or "this machine"
        target = scaffold_local_variables(paths, hostname=hostname, force=force)
        typer.echo(f"Created {target}")
        typer.echo("Edit it, then run 'dotplate render' to apply.")
    except Exception as e:
        handle_error(e)
