from typing import Any, Optional

import pytest
import yaml

from dotplate.lib.config import DotplatePaths

AUTO = {
    "hostname": "devbox",
    "os": "linux",
    "arch": "amd64",
    "user": "alice",
    "home": "/home/alice",
    "workspace": "/home/alice/workspace",
    "machine_type": "work",
}


@pytest.fixture
def make_root(tmp_path):
    """Build a dotplate root with templates and variables files."""

    def _make(
        templates: Optional[dict[str, str]] = None,
        defaults: Optional[dict[str, Any]] = None,
        local: Optional[dict[str, Any]] = None,
    ) -> DotplatePaths:
        paths = DotplatePaths(root=tmp_path / "dotplate")
        paths.templates_dir.mkdir(parents=True)
        for name, content in (templates or {}).items():
            (paths.templates_dir / name).write_text(content)
        if defaults is not None:
            paths.defaults_file.write_text(yaml.safe_dump(defaults))
        if local is not None:
            paths.local_file.write_text(yaml.safe_dump(local))
        return paths

    return _make


@pytest.fixture
def auto():
    """Fixed auto-detected values so tests do not depend on the host."""
    return dict(AUTO)
