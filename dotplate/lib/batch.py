"""Rendering template files to disk, in batches, and checking for drift.

Templates are processed sequentially in directory-listing order. A failure
in one template is logged and counted; the batch carries on.
"""

from __future__ import annotations

import difflib
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .arrays import ArrayRegistry
from .config import DotplatePaths
from .errors import DotplateError, TemplateNotFoundError
from .template import Renderer, RenderResult

log = logging.getLogger(__name__)


def write_atomic(path: Path, text: str) -> None:
    """Write via a temp file in the same directory, then rename over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = path.stat().st_mode & 0o777 if path.exists() else 0o644

    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", newline="") as f:
            f.write(text)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def render_file(
    template: Path,
    output: Optional[Path] = None,
    *,
    variables: Mapping[str, str],
    registry: Optional[ArrayRegistry] = None,
    dry_run: bool = False,
) -> RenderResult:
    """Render one template file.

    With no `output` (or with `dry_run`) nothing is written and the caller
    decides what to do with the text. A missing template raises
    TemplateNotFoundError before anything is written.
    """
    if not template.is_file():
        raise TemplateNotFoundError(template)

    result = Renderer(variables, registry).render(template.read_text())

    if result.unresolved:
        log.warning(
            "Unresolved variables in %s: %s",
            template.name,
            ", ".join(result.unresolved),
        )

    if output is None:
        return result
    if dry_run:
        log.info("Would write to: %s", output)
        return result

    write_atomic(output, result.text)
    log.info("Rendered: %s → %s", template.name, output)
    return result


def is_up_to_date(template: Path, output: Path) -> bool:
    """True when the output exists and is newer than its template."""
    return output.exists() and output.stat().st_mtime > template.stat().st_mtime


@dataclass
class BatchResult:
    rendered: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def render_all(
    paths: DotplatePaths,
    variables: Mapping[str, str],
    registry: Optional[ArrayRegistry] = None,
    *,
    dry_run: bool = False,
    force: bool = False,
) -> BatchResult:
    """Render every template in the templates directory."""
    result = BatchResult()

    if not dry_run:
        paths.generated_dir.mkdir(parents=True, exist_ok=True)

    for template in paths.list_templates():
        output = paths.output_for(template)

        if not force and is_up_to_date(template, output):
            log.debug("Skipping (up to date): %s", output.name)
            result.skipped += 1
            continue

        try:
            render_file(
                template, output, variables=variables, registry=registry, dry_run=dry_run
            )
        except (DotplateError, OSError, UnicodeDecodeError) as e:
            log.error("Failed to render %s: %s", template.name, e)
            result.failed += 1
            result.failures.append(template.name)
        else:
            result.rendered += 1

    return result


# =============================================================================
# Drift
# =============================================================================


class DriftStatus(str, Enum):
    MISSING = "missing"
    CHANGED = "changed"
    UP_TO_DATE = "up-to-date"
    ERROR = "error"


@dataclass(frozen=True)
class DriftEntry:
    template: Path
    output: Path
    status: DriftStatus
    diff: list[str] = field(default_factory=list)


@dataclass
class DiffReport:
    entries: list[DriftEntry] = field(default_factory=list)

    def count(self, status: DriftStatus) -> int:
        return sum(1 for e in self.entries if e.status == status)

    @property
    def changed(self) -> int:
        return self.count(DriftStatus.CHANGED)

    @property
    def missing(self) -> int:
        return self.count(DriftStatus.MISSING)


def _unified_diff(current: Path, fresh: Path) -> list[str]:
    return list(
        difflib.unified_diff(
            current.read_text(errors="replace").splitlines(keepends=True),
            fresh.read_text(errors="replace").splitlines(keepends=True),
            fromfile=str(current),
            tofile=f"{current} (rendered)",
        )
    )


def diff_all(
    paths: DotplatePaths,
    variables: Mapping[str, str],
    registry: Optional[ArrayRegistry] = None,
) -> DiffReport:
    """Compare a fresh render of every template with its generated file.

    Renders go to a scratch directory; generated files are never touched.
    """
    report = DiffReport()

    with tempfile.TemporaryDirectory(prefix="dotplate-diff-") as scratch_dir:
        scratch = Path(scratch_dir)

        for template in paths.list_templates():
            output = paths.output_for(template)

            if not output.exists():
                log.debug("Not generated: %s", output.name)
                report.entries.append(DriftEntry(template, output, DriftStatus.MISSING))
                continue

            fresh = scratch / output.name
            try:
                render_file(template, fresh, variables=variables, registry=registry)
            except (DotplateError, OSError, UnicodeDecodeError) as e:
                log.error("Failed to render %s: %s", template.name, e)
                report.entries.append(DriftEntry(template, output, DriftStatus.ERROR))
                continue

            if fresh.read_bytes() == output.read_bytes():
                report.entries.append(
                    DriftEntry(template, output, DriftStatus.UP_TO_DATE)
                )
            else:
                report.entries.append(
                    DriftEntry(
                        template,
                        output,
                        DriftStatus.CHANGED,
                        diff=_unified_diff(output, fresh),
                    )
                )

    return report


# =============================================================================
# Status listing
# =============================================================================


class TemplateState(str, Enum):
    RENDERED = "rendered"
    STALE = "stale"
    NOT_RENDERED = "not rendered"


@dataclass(frozen=True)
class TemplateStatus:
    template: Path
    output: Path
    state: TemplateState


def list_templates(paths: DotplatePaths) -> list[TemplateStatus]:
    """Each template with whether its generated file is current."""
    statuses = []
    for template in paths.list_templates():
        output = paths.output_for(template)
        if not output.exists():
            state = TemplateState.NOT_RENDERED
        elif is_up_to_date(template, output):
            state = TemplateState.RENDERED
        else:
            state = TemplateState.STALE
        statuses.append(TemplateStatus(template, output, state))
    return statuses
