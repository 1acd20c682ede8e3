"""Dotplate - machine-specific config files from shared templates"""

from ._version import __version__

# Re-export the engine
from dotplate.lib import (
    ArrayRegistry,
    DotplatePaths,
    Layers,
    Renderer,
    RenderResult,
    build_effective_variables,
    merge_layers,
    render,
    validate,
)

__all__ = [
    "__version__",
    "ArrayRegistry",
    "DotplatePaths",
    "Layers",
    "Renderer",
    "RenderResult",
    "build_effective_variables",
    "merge_layers",
    "render",
    "validate",
]
