"""Shared error handling for dotplate."""

import sys
from pathlib import Path
from typing import NoReturn

import typer


class DotplateError(Exception):
    """Base exception for dotplate operations."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


class TemplateNotFoundError(DotplateError):
    """Raised when a template file does not exist at render time."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Template not found: {path}", exit_code=1)


class VariablesFileError(DotplateError):
    """Raised when a variables file cannot be parsed or validated."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Invalid variables file {path}: {reason}", exit_code=2)


class AlreadyInitializedError(DotplateError):
    """Raised when the local variables file already exists."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"{path} already exists (use --force to overwrite)", exit_code=1
        )


def exit_with_error(message: str, exit_code: int = 1) -> NoReturn:
    """Exit the program with an error message."""
    typer.echo(f"Error: {message}", err=True)
    sys.exit(exit_code)


def handle_error(error: Exception) -> NoReturn:
    """Handle and exit on dotplate errors."""
    if isinstance(error, DotplateError):
        exit_with_error(error.message, error.exit_code)
    else:
        # Unexpected error
        typer.echo(f"Unexpected error: {error}", err=True)
        sys.exit(1)
