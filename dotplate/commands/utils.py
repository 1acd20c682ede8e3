"""Shared utilities for CLI commands"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from dotplate.lib.arrays import ArrayRegistry
from dotplate.lib.config import ENV_DEBUG, DotplatePaths
from dotplate.lib.context import CLIContext
from dotplate.lib.layers import build_effective_variables

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the dotplate CLI.

    Log levels:
    - Normal: only warnings/errors (unresolved variables, failed renders)
    - Verbose (-v): INFO level - shows each file written
    - Debug (DOTPLATE_DEBUG=1): DEBUG level - layer loads, skips, conditions
    """
    if os.environ.get(ENV_DEBUG):
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=bool(os.environ.get(ENV_DEBUG)),
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("dotplate")
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False


def get_context(ctx: typer.Context) -> CLIContext:
    if isinstance(ctx.obj, CLIContext):
        return ctx.obj
    return CLIContext()


def get_paths(ctx: typer.Context) -> DotplatePaths:
    """Resolve the dotplate root from --root, $DOTPLATE_DIR or ~/.dotplate"""
    return DotplatePaths.resolve(get_context(ctx).root)


def load_variables(
    paths: DotplatePaths,
) -> tuple[Mapping[str, str], ArrayRegistry]:
    """Fresh effective variables for this invocation."""
    return build_effective_variables(paths)


def resolve_template(paths: DotplatePaths, name: str) -> Path:
    """Template path for a CLI argument: as given, else under templates/configs."""
    candidate = Path(name)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    candidate = paths.templates_dir / name
    if not candidate.exists() and not name.endswith(paths.template_ext):
        with_ext = paths.templates_dir / f"{name}{paths.template_ext}"
        if with_ext.exists():
            return with_ext
    return candidate
