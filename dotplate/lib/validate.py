"""Structural validation of template documents.

Only directive counts are compared; a document can pass and still nest
blocks incorrectly, which then shows up at render time as literal tags.
"""

from __future__ import annotations

from pathlib import Path

from .errors import TemplateNotFoundError

_PAIRS = (
    ("{{#if ", "{{/if}}", "if"),
    ("{{#unless ", "{{/unless}}", "unless"),
    ("{{#each ", "{{/each}}", "each"),
)


def _has_unclosed_tag(document: str) -> bool:
    pos = document.find("{{")
    while pos != -1:
        close = document.find("}}", pos + 2)
        if close == -1:
            return True
        pos = document.find("{{", close + 2)
    return False


def validate(document: str) -> list[str]:
    """Return structural errors; an empty list means the document is valid."""
    errors: list[str] = []

    for opener, closer, name in _PAIRS:
        opens = document.count(opener)
        closes = document.count(closer)
        if opens != closes:
            errors.append(
                f"Unmatched {{{{#{name}}}}}/{{{{/{name}}}}} blocks: "
                f"{opens} opens, {closes} closes"
            )

    if _has_unclosed_tag(document):
        errors.append("Unclosed {{ tag found")

    return errors


def validate_file(path: Path) -> list[str]:
    """Validate a template file. Raises TemplateNotFoundError if missing."""
    if not path.is_file():
        raise TemplateNotFoundError(path)
    return validate(path.read_text())
