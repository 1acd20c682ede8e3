"""CLI runtime context."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class CLIContext:
    """Runtime context from CLI flags/environment."""

    root: Optional[Path] = None
    verbose: bool = False
