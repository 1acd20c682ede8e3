"""Engine: variable layers, arrays, template rendering, validation, batches"""

from .arrays import DEFAULT_SCHEMA, ArrayRecord, ArrayRegistry
from .batch import (
    BatchResult,
    DiffReport,
    DriftStatus,
    TemplateState,
    diff_all,
    list_templates,
    render_all,
    render_file,
)
from .config import DotplatePaths, VariablesFile, load_variables_yaml
from .errors import (
    AlreadyInitializedError,
    DotplateError,
    TemplateNotFoundError,
    VariablesFileError,
)
from .layers import (
    LayerRole,
    Layers,
    build_effective_variables,
    build_layers,
    merge_layers,
)
from .template import RenderResult, Renderer, evaluate_condition, render
from .validate import validate, validate_file

__all__ = [
    "DEFAULT_SCHEMA",
    "AlreadyInitializedError",
    "ArrayRecord",
    "ArrayRegistry",
    "BatchResult",
    "DiffReport",
    "DotplateError",
    "DotplatePaths",
    "DriftStatus",
    "LayerRole",
    "Layers",
    "RenderResult",
    "Renderer",
    "TemplateNotFoundError",
    "TemplateState",
    "VariablesFile",
    "VariablesFileError",
    "build_effective_variables",
    "build_layers",
    "diff_all",
    "evaluate_condition",
    "list_templates",
    "load_variables_yaml",
    "merge_layers",
    "render",
    "render_all",
    "render_file",
    "validate",
    "validate_file",
]
