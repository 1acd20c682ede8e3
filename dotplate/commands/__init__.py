"""CLI commands"""

from .arrays import arrays_command
from .check import check_command
from .diff import diff_command
from .init import init_command
from .list import list_command
from .render import render_command
from .vars import vars_command

__all__ = [
    "arrays_command",
    "check_command",
    "diff_command",
    "init_command",
    "list_command",
    "render_command",
    "vars_command",
]
