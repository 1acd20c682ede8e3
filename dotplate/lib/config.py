"""Configuration management for dotplate.

Directory layout under the dotplate root:
- templates/_variables.yaml        default values, machine-type overlays, arrays
- templates/_variables.local.yaml  machine-specific overrides (git-ignored)
- templates/configs/*.tmpl         template documents
- generated/                       one rendered file per template

Both variables files share the `VariablesFile` schema:
- vars: name -> value
- machine_types: machine type label -> (name -> value)
- arrays: array name -> list of records
- schemas: array name -> ordered field names
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import AlreadyInitializedError, VariablesFileError

ENV_ROOT = "DOTPLATE_DIR"
ENV_PREFIX = "DOTPLATE_TMPL_"
ENV_MACHINE_TYPE = "DOTPLATE_MACHINE_TYPE"
ENV_DEBUG = "DOTPLATE_DEBUG"

DEFAULTS_FILENAME = "_variables.yaml"
LOCAL_FILENAME = "_variables.local.yaml"
TEMPLATE_EXT = ".tmpl"

Record = Union[str, list[str], dict[str, str]]


def to_str(value: Any) -> str:
    """Coerce a YAML scalar to the string form templates see."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _coerce_mapping(value: Any) -> Any:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        return value
    return {str(k).lower(): to_str(v) for k, v in value.items()}


def _coerce_record(record: Any) -> Any:
    if isinstance(record, Mapping):
        return _coerce_mapping(record)
    if isinstance(record, (list, tuple)):
        return [to_str(v) for v in record]
    return to_str(record)


class VariablesFile(BaseModel):
    """Contents of `_variables.yaml` or `_variables.local.yaml`."""

    model_config = {"extra": "forbid"}

    vars: dict[str, str] = Field(
        default_factory=dict, description="Variable values for this layer"
    )
    machine_types: dict[str, dict[str, str]] = Field(
        default_factory=dict, description="Per machine type overrides"
    )
    arrays: dict[str, list[Record]] = Field(
        default_factory=dict, description="Named record lists for {{#each}}"
    )
    schemas: dict[str, list[str]] = Field(
        default_factory=dict, description="Field names per array"
    )

    @field_validator("vars", mode="before")
    @classmethod
    def coerce_vars(cls, value: Any) -> Any:
        return _coerce_mapping(value)

    @field_validator("machine_types", mode="before")
    @classmethod
    def coerce_machine_types(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        return {str(k).lower(): _coerce_mapping(v) for k, v in value.items()}

    @field_validator("arrays", mode="before")
    @classmethod
    def coerce_arrays(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        result: dict[str, Any] = {}
        for name, records in value.items():
            if records is None:
                records = []
            if isinstance(records, (list, tuple)):
                records = [_coerce_record(r) for r in records]
            result[str(name).lower()] = records
        return result

    @field_validator("schemas", mode="before")
    @classmethod
    def coerce_schemas(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        result: dict[str, Any] = {}
        for name, fields in value.items():
            # "name|hostname|user" is accepted as well as a YAML list
            if isinstance(fields, str):
                fields = fields.split("|")
            if isinstance(fields, (list, tuple)):
                fields = [str(f).strip().lower() for f in fields]
            result[str(name).lower()] = fields
        return result


def merge_variables_files(base: VariablesFile, local: VariablesFile) -> VariablesFile:
    """Overlay machine types, arrays and schemas from the local file.

    `vars` are not merged here: each file's `vars` is its own layer.
    """
    machine_types = {k: dict(v) for k, v in base.machine_types.items()}
    for label, values in local.machine_types.items():
        machine_types.setdefault(label, {}).update(values)

    return VariablesFile(
        vars=base.vars,
        machine_types=machine_types,
        arrays={**base.arrays, **local.arrays},
        schemas={**base.schemas, **local.schemas},
    )


def load_variables_yaml(path: Path) -> VariablesFile:
    """Load a variables file, returning an empty one if it does not exist."""
    if not path.exists():
        return VariablesFile()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise VariablesFileError(path, str(e)) from e

    if data is None:
        return VariablesFile()
    if not isinstance(data, dict):
        raise VariablesFileError(path, "top level must be a mapping")

    try:
        return VariablesFile(**data)
    except ValidationError as e:
        raise VariablesFileError(path, str(e)) from e


class DotplatePaths(BaseModel):
    """Filesystem locations derived from the dotplate root."""

    model_config = {"frozen": True}

    root: Path
    template_ext: str = TEMPLATE_EXT

    @property
    def variables_dir(self) -> Path:
        return self.root / "templates"

    @property
    def templates_dir(self) -> Path:
        return self.variables_dir / "configs"

    @property
    def generated_dir(self) -> Path:
        return self.root / "generated"

    @property
    def defaults_file(self) -> Path:
        return self.variables_dir / DEFAULTS_FILENAME

    @property
    def local_file(self) -> Path:
        return self.variables_dir / LOCAL_FILENAME

    def output_for(self, template: Path) -> Path:
        """Generated file path for a template: its name minus the extension."""
        name = template.name
        if name.endswith(self.template_ext):
            name = name[: -len(self.template_ext)]
        return self.generated_dir / name

    def list_templates(self) -> list[Path]:
        """Template files in directory-listing order."""
        if not self.templates_dir.is_dir():
            return []
        return [
            entry
            for entry in self.templates_dir.iterdir()
            if entry.is_file() and entry.name.endswith(self.template_ext)
        ]

    @classmethod
    def resolve(
        cls,
        root: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DotplatePaths":
        """Root from the argument, then $DOTPLATE_DIR, then ~/.dotplate."""
        if root is None:
            env = os.environ if environ is None else environ
            if env.get(ENV_ROOT):
                root = Path(env[ENV_ROOT])
            else:
                root = Path.home() / ".dotplate"
        return cls(root=root.expanduser())


_LOCAL_VARIABLES_TEMPLATE = """\
# Machine-specific template variables for {hostname}.
# This file is git-ignored; values here override templates/_variables.yaml.
#
# Precedence (highest first):
#   1. Environment variables ({prefix}*)
#   2. This file
#   3. machine_types.<type> in _variables.yaml
#   4. vars in _variables.yaml
#   5. Auto-detected values (hostname, os, arch, user, ...)

vars:
  git_name: ""
  git_email: ""
  # aws_profile: default

# machine_types:
#   work:
#     git_email: you@company.com

# arrays:
#   ssh_hosts:
#     - "github|github.com|git|~/.ssh/id_ed25519|"

# schemas:
#   ssh_hosts: [name, hostname, user, identity, extra]
"""

# Match the local file or generated/ at start of line or after /
_GITIGNORE_RE = {
    f"templates/{LOCAL_FILENAME}": re.compile(
        r"(^|/)" + re.escape(LOCAL_FILENAME) + r"$", re.MULTILINE
    ),
    "generated/": re.compile(r"(^|/)generated/?$", re.MULTILINE),
}


def ensure_gitignore(root: Path) -> Path:
    """Ensure `<root>/.gitignore` ignores local variables and generated output."""
    gitignore_path = root / ".gitignore"
    content = gitignore_path.read_text() if gitignore_path.exists() else ""

    missing = [entry for entry, rx in _GITIGNORE_RE.items() if rx.search(content) is None]
    if missing:
        if content and not content.endswith("\n"):
            content += "\n"
        content += "".join(f"{entry}\n" for entry in missing)
        gitignore_path.parent.mkdir(parents=True, exist_ok=True)
        gitignore_path.write_text(content)
    return gitignore_path


def scaffold_local_variables(
    paths: DotplatePaths, hostname: str = "this machine", force: bool = False
) -> Path:
    """Write a starter `_variables.local.yaml`. Returns its path."""
    target = paths.local_file
    if target.exists() and not force:
        raise AlreadyInitializedError(target)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        _LOCAL_VARIABLES_TEMPLATE.format(hostname=hostname, prefix=ENV_PREFIX)
    )
    ensure_gitignore(paths.root)
    return target
