"""Variable layers and the merge that collapses them.

Precedence (lowest to highest):
    auto < default < machine-type < local-override < environment

Each layer is a plain name -> value mapping. Layers are kept separate until
`merge_layers` overlays them; the last layer that defines a name wins, and an
empty string counts as a definition.
"""

from __future__ import annotations

import getpass
import logging
import os
import platform
import socket
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Optional

from .arrays import ArrayRegistry
from .config import (
    ENV_MACHINE_TYPE,
    ENV_PREFIX,
    DotplatePaths,
    load_variables_yaml,
    merge_variables_files,
)

log = logging.getLogger(__name__)

MACHINE_TYPES = ("work", "personal")
UNKNOWN = "unknown"

_WORK_HINTS = ("work", "corp", "office")
_PERSONAL_HINTS = ("personal", "home", "macbook", "imac")


class LayerRole(str, Enum):
    AUTO = "auto"
    DEFAULT = "default"
    MACHINE_TYPE = "machine-type"
    LOCAL = "local-override"
    ENVIRONMENT = "environment"


def _lower_keys(values: Mapping[str, str]) -> dict[str, str]:
    return {str(k).lower(): v for k, v in values.items()}


@dataclass(frozen=True)
class Layers:
    """The five variable layers for one render invocation."""

    auto: Mapping[str, str] = field(default_factory=dict)
    default: Mapping[str, str] = field(default_factory=dict)
    machine_types: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    local: Mapping[str, str] = field(default_factory=dict)
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("auto", "default", "local", "environment"):
            object.__setattr__(self, name, _lower_keys(getattr(self, name)))
        object.__setattr__(
            self,
            "machine_types",
            {k.lower(): _lower_keys(v) for k, v in self.machine_types.items()},
        )

    def selected_machine_type(self) -> str:
        """Machine type as seen after the default layer is applied."""
        return self.default.get("machine_type", self.auto.get("machine_type", ""))


# =============================================================================
# Auto-detection
# =============================================================================


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(errors="replace")
    except OSError:
        return ""


def detect_os(
    system: Optional[str] = None,
    hostname: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Normalized OS label: macos, linux, wsl, docker, lima, windows or unknown."""
    system = system or platform.system()
    env = os.environ if environ is None else environ

    if system == "Darwin":
        return "macos"
    if system == "Windows":
        return "windows"
    if system != "Linux":
        return UNKNOWN

    if "microsoft" in _read_text("/proc/version").lower():
        return "wsl"
    if Path("/.dockerenv").exists() or "docker" in _read_text("/proc/1/cgroup"):
        return "docker"
    host = hostname if hostname is not None else socket.gethostname()
    if host.startswith("lima-") or env.get("LIMA_INSTANCE"):
        return "lima"
    return "linux"


def detect_arch(machine: Optional[str] = None) -> str:
    machine = machine if machine is not None else platform.machine()
    lowered = machine.lower()
    if lowered in ("x86_64", "amd64"):
        return "amd64"
    if lowered in ("arm64", "aarch64"):
        return "arm64"
    return machine


def detect_machine_type(
    hostname: str,
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> str:
    """Classify this machine as work, personal or unknown.

    $DOTPLATE_MACHINE_TYPE wins, then hostname patterns, then marker
    directories in the home directory.
    """
    env = os.environ if environ is None else environ
    if env.get(ENV_MACHINE_TYPE):
        return env[ENV_MACHINE_TYPE]

    host = hostname.lower()
    if any(hint in host for hint in _WORK_HINTS):
        return "work"
    if any(hint in host for hint in _PERSONAL_HINTS):
        return "personal"

    home = home if home is not None else Path.home()
    if (home / "work").is_dir() or (home / "corp").is_dir():
        return "work"
    if (home / "personal").is_dir() or (home / ".personal-machine").is_file():
        return "personal"
    return UNKNOWN


def _current_user(env: Mapping[str, str]) -> str:
    if env.get("USER"):
        return env["USER"]
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return UNKNOWN


def build_auto_vars(
    paths: DotplatePaths,
    environ: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> dict[str, str]:
    """Detect host facts. Re-run on every build; nothing is cached."""
    env = os.environ if environ is None else environ
    now = now or datetime.now()

    hostname_full = socket.getfqdn() or socket.gethostname() or UNKNOWN
    hostname = socket.gethostname().split(".")[0] or UNKNOWN
    home = Path(env["HOME"]) if env.get("HOME") else Path.home()
    workspace = env.get("WORKSPACE") or str(home / "workspace")

    return {
        "hostname": hostname,
        "hostname_full": hostname_full,
        "os": detect_os(hostname=hostname, environ=env),
        "os_family": platform.system(),
        "arch": detect_arch(),
        "user": _current_user(env),
        "uid": str(os.getuid()) if hasattr(os, "getuid") else "",
        "home": str(home),
        "workspace": workspace,
        "dotplate_dir": str(paths.root),
        "machine_type": detect_machine_type(hostname, environ=env, home=home),
        "date": now.strftime("%Y-%m-%d"),
        "datetime": now.strftime("%Y-%m-%d %H:%M:%S"),
        "year": now.strftime("%Y"),
    }


def apply_computed_defaults(
    defaults: Mapping[str, str], auto: Mapping[str, str]
) -> dict[str, str]:
    """Fill empty path defaults from the auto-detected workspace."""
    result = dict(defaults)
    workspace = auto.get("workspace", "")
    if not workspace:
        return result
    for name, sub in (
        ("projects_dir", "projects"),
        ("notes_dir", "notes"),
        ("scripts_dir", "scripts"),
    ):
        if name in result and not result[name]:
            result[name] = f"{workspace}/{sub}"
    return result


def env_layer(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Variables from DOTPLATE_TMPL_* environment entries.

    DOTPLATE_TMPL_GIT_NAME=x becomes git_name = "x".
    """
    env = os.environ if environ is None else environ
    layer: dict[str, str] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX) or len(key) == len(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        layer[name] = value
        log.debug("Env override: %s = %s", name, value)
    return layer


# =============================================================================
# Merge
# =============================================================================


def iter_overlays(
    layers: Layers, machine_type: Optional[str] = None
) -> Iterator[tuple[LayerRole, Mapping[str, str]]]:
    """Yield layers lowest precedence first."""
    yield LayerRole.AUTO, layers.auto
    yield LayerRole.DEFAULT, layers.default

    selected = machine_type if machine_type is not None else layers.selected_machine_type()
    yield LayerRole.MACHINE_TYPE, layers.machine_types.get(selected.lower(), {})

    yield LayerRole.LOCAL, layers.local
    yield LayerRole.ENVIRONMENT, layers.environment


def merge_layers(
    layers: Layers, machine_type: Optional[str] = None
) -> Mapping[str, str]:
    """Collapse the layers into the read-only effective variable map."""
    merged: dict[str, str] = {}
    for _, values in iter_overlays(layers, machine_type):
        merged.update(values)
    return MappingProxyType(merged)


def layer_sources(
    layers: Layers, machine_type: Optional[str] = None
) -> dict[str, LayerRole]:
    """Which layer supplied each effective variable."""
    sources: dict[str, LayerRole] = {}
    for role, values in iter_overlays(layers, machine_type):
        for name in values:
            sources[name] = role
    return sources


def build_layers(
    paths: DotplatePaths,
    environ: Optional[Mapping[str, str]] = None,
    auto: Optional[Mapping[str, str]] = None,
) -> tuple[Layers, ArrayRegistry]:
    """Read every layer source once and return the layers plus arrays."""
    auto_vars = dict(auto) if auto is not None else build_auto_vars(paths, environ)

    defaults_file = load_variables_yaml(paths.defaults_file)
    if paths.defaults_file.exists():
        log.debug("Loaded: %s", paths.defaults_file)
    else:
        log.warning("Variables file not found: %s", paths.defaults_file)

    local_file = load_variables_yaml(paths.local_file)
    if paths.local_file.exists():
        log.debug("Loaded: %s", paths.local_file)

    combined = merge_variables_files(defaults_file, local_file)

    layers = Layers(
        auto=auto_vars,
        default=apply_computed_defaults(defaults_file.vars, auto_vars),
        machine_types=combined.machine_types,
        local=local_file.vars,
        environment=env_layer(environ),
    )
    return layers, ArrayRegistry.from_variables_file(combined)


def build_effective_variables(
    paths: DotplatePaths,
    environ: Optional[Mapping[str, str]] = None,
    machine_type: Optional[str] = None,
    auto: Optional[Mapping[str, str]] = None,
) -> tuple[Mapping[str, str], ArrayRegistry]:
    """Build the effective variable map and array registry for one pass."""
    layers, registry = build_layers(paths, environ=environ, auto=auto)
    variables = merge_layers(layers, machine_type)
    log.debug("Built %d template variables", len(variables))
    return variables, registry
