"""Template language for dotplate.

Syntax:
    {{ name }} / {{name}}                 scalar substitution
    {{#if cond}}...{{#else}}...{{/if}}    conditional, nests to any depth
    {{#unless cond}}...{{/unless}}        negated conditional, no else
    {{#each array}}...{{/each}}           loop over an array's records

`cond` is `name`, `name == "value"` or `name != "value"` (either quote).

Documents are tokenized, parsed into a tree with an explicit stack and then
evaluated. Loops bind record fields into a scope that only the loop body
sees; conditions are always evaluated against the effective variables.
Anything that does not parse as a directive (orphan close tags, open tags
that are never closed, unknown tag bodies) is kept as literal text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Optional, Union

from .arrays import ArrayRegistry

log = logging.getLogger(__name__)

DEFAULT_MAX_BLOCKS = 1000

TAG_RE = re.compile(r"\{\{([^{}]*?)\}\}")

_OPEN_RE = re.compile(r"#(if|unless|each)\s+(.*?)\s*$", re.DOTALL)
_NAME_RE = re.compile(r"^@?[A-Za-z_][A-Za-z0-9_.\-]*$")
_COMPARE_RE = re.compile(
    r"""^([A-Za-z_][A-Za-z0-9_]*)\s*(==|!=)\s*["']([^"']*)["']$"""
)
_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")

# Token kinds
TEXT = "text"
VAR = "var"
IF = "if"
UNLESS = "unless"
EACH = "each"
ELSE = "else"
END_IF = "/if"
END_UNLESS = "/unless"
END_EACH = "/each"

_CLOSES = {END_IF: IF, END_UNLESS: UNLESS, END_EACH: EACH}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int
    end: int
    arg: str = ""


def _classify(inner: str) -> tuple[str, str]:
    match = _OPEN_RE.match(inner)
    if match and match.group(2):
        return match.group(1), match.group(2)
    if inner in _CLOSES:
        return inner, ""
    if inner.strip() == "#else":
        return ELSE, ""
    name = inner.strip()
    if _NAME_RE.match(name):
        return VAR, name
    return TEXT, ""


def tokenize(document: str) -> list[Token]:
    """Split a document into text runs and directive tags."""
    tokens: list[Token] = []
    pos = 0
    for match in TAG_RE.finditer(document):
        if match.start() > pos:
            tokens.append(Token(TEXT, document[pos : match.start()], pos, match.start()))
        kind, arg = _classify(match.group(1))
        tokens.append(Token(kind, match.group(0), match.start(), match.end(), arg))
        pos = match.end()
    if pos < len(document):
        tokens.append(Token(TEXT, document[pos:], pos, len(document)))
    return tokens


# =============================================================================
# Tree
# =============================================================================


@dataclass
class Text:
    value: str


@dataclass
class Scalar:
    name: str
    source: str


@dataclass
class Conditional:
    condition: str
    true_branch: list["Node"]
    false_branch: list["Node"]
    source: str
    negate: bool = False


@dataclass
class Loop:
    array: str
    body: list["Node"]
    source: str


Node = Union[Text, Scalar, Conditional, Loop]


@dataclass
class Template:
    nodes: list[Node]
    warnings: list[str] = field(default_factory=list)


@dataclass
class _Frame:
    opener: Optional[Token] = None
    children: list[Node] = field(default_factory=list)
    else_token: Optional[Token] = None
    else_children: list[Node] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.opener.kind if self.opener else ""

    def add(self, node: Node) -> None:
        if self.else_token is not None:
            self.else_children.append(node)
        else:
            self.children.append(node)

    def literal(self) -> list[Node]:
        """The frame's content with its own tags kept as text."""
        nodes: list[Node] = [Text(self.opener.text)] if self.opener else []
        nodes.extend(self.children)
        if self.else_token is not None:
            nodes.append(Text(self.else_token.text))
            nodes.extend(self.else_children)
        return nodes

    def close(self, closer: Token, document: str) -> Node:
        assert self.opener is not None
        source = document[self.opener.start : closer.end]
        if self.kind == EACH:
            return Loop(array=self.opener.arg, body=self.children, source=source)
        return Conditional(
            condition=self.opener.arg,
            true_branch=self.children,
            false_branch=self.else_children,
            source=source,
            negate=self.kind == UNLESS,
        )


def _unwind(stack: list[_Frame]) -> None:
    frame = stack.pop()
    for node in frame.literal():
        stack[-1].add(node)


def parse(document: str) -> Template:
    """Parse a document into a tree.

    `{{/if}}` closes the innermost open `{{#if}}`, so conditionals nest.
    A close tag whose opener sits deeper in the stack first turns the
    unterminated blocks above it back into text. `{{#each}}` inside a loop
    body is not a loop: it stays literal and the first `{{/each}}` ends the
    outer loop.
    """
    root = _Frame()
    stack: list[_Frame] = [root]
    warnings: list[str] = []

    for tok in tokenize(document):
        top = stack[-1]
        if tok.kind == TEXT:
            top.add(Text(tok.text))
        elif tok.kind == VAR:
            top.add(Scalar(name=tok.arg, source=tok.text))
        elif tok.kind == EACH and any(f.kind == EACH for f in stack):
            top.add(Text(tok.text))
            warnings.append(f"nested {{{{#each}}}} is not supported: {tok.text}")
        elif tok.kind in (IF, UNLESS, EACH):
            stack.append(_Frame(opener=tok))
        elif tok.kind == ELSE:
            if top.kind == IF and top.else_token is None:
                top.else_token = tok
            else:
                top.add(Text(tok.text))
        else:
            opener_kind = _CLOSES[tok.kind]
            depth = next(
                (i for i in range(len(stack) - 1, 0, -1) if stack[i].kind == opener_kind),
                None,
            )
            if depth is None:
                top.add(Text(tok.text))
                continue
            while len(stack) - 1 > depth:
                _unwind(stack)
            frame = stack.pop()
            stack[-1].add(frame.close(tok, document))

    while len(stack) > 1:
        _unwind(stack)

    return Template(nodes=root.children, warnings=warnings)


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_condition(condition: str, variables: Mapping[str, str]) -> bool:
    """Evaluate `name == "v"`, `name != "v"` or a bare `name` truthy check.

    Undefined names compare as ''. A value is truthy unless it is empty,
    "false" or "0".
    """
    condition = condition.strip()

    match = _COMPARE_RE.match(condition)
    if match:
        name, op, expected = match.groups()
        actual = variables.get(name.lower(), "")
        log.debug("Condition: %s %s '%s' (actual: '%s')", name, op, expected, actual)
        if op == "==":
            return actual == expected
        return actual != expected

    name = _NON_WORD_RE.sub("", condition).lower()
    value = variables.get(name, "")
    log.debug("Truthy check: %s = '%s'", name, value)
    return value not in ("", "false", "0")


def find_unresolved(text: str) -> list[str]:
    """Inner text of every `{{...}}` span left in rendered output."""
    return sorted({m.group(1).strip() for m in TAG_RE.finditer(text)})


@dataclass(frozen=True)
class RenderResult:
    text: str
    unresolved: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class _Pass:
    """State for a single render call."""

    def __init__(self, renderer: "Renderer", warnings: list[str]) -> None:
        self.renderer = renderer
        self.warnings = warnings
        self.loops = 0
        self.conditionals = 0
        self.out: list[str] = []

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def lookup(self, name: str, scope: Optional[Mapping[str, str]]) -> Optional[str]:
        key = name.lower()
        if scope is not None and key in scope:
            return scope[key]
        return self.renderer.variables.get(key)

    def emit(self, nodes: list[Node]) -> None:
        """Walk the tree with an explicit stack, so nesting depth is unbounded."""
        r = self.renderer
        stack: list[tuple[Iterator[Node], Optional[Mapping[str, str]]]] = [
            (iter(nodes), None)
        ]
        while stack:
            pending, scope = stack[-1]
            node = next(pending, None)
            if node is None:
                stack.pop()
            elif isinstance(node, Text):
                self.out.append(node.value)
            elif isinstance(node, Scalar):
                value = self.lookup(node.name, scope)
                self.out.append(node.source if value is None else value)
            elif isinstance(node, Conditional):
                if self.conditionals >= r.max_blocks:
                    self.warn(f"conditional limit ({r.max_blocks}) reached")
                    self.out.append(node.source)
                    continue
                self.conditionals += 1
                result = evaluate_condition(node.condition, r.variables)
                if node.negate:
                    result = not result
                branch = node.true_branch if result else node.false_branch
                stack.append((iter(branch), scope))
            elif isinstance(node, Loop):
                if self.loops >= r.max_blocks:
                    self.warn(f"loop expansion limit ({r.max_blocks}) reached")
                    self.out.append(node.source)
                    continue
                self.loops += 1
                count = len(r.registry.get(node.array))
                # Pushed last-first so iteration 0 is emitted first
                for index in reversed(range(count)):
                    stack.append(
                        (iter(node.body), r.registry.bind(node.array, index))
                    )


class Renderer:
    """Renders documents against one effective variable map."""

    def __init__(
        self,
        variables: Mapping[str, str],
        registry: Optional[ArrayRegistry] = None,
        max_blocks: int = DEFAULT_MAX_BLOCKS,
    ) -> None:
        self.variables = variables
        self.registry = registry if registry is not None else ArrayRegistry()
        self.max_blocks = max_blocks

    def render(self, document: str) -> RenderResult:
        """Render a document.

        Unknown names are left verbatim and reported in `unresolved`. Blocks
        past the safety limits are emitted as their source text.
        """
        template = parse(document)
        state = _Pass(self, list(template.warnings))
        state.emit(template.nodes)

        for warning in state.warnings:
            log.warning("%s", warning)

        text = "".join(state.out)
        return RenderResult(
            text=text, unresolved=find_unresolved(text), warnings=state.warnings
        )


def render(
    document: str,
    variables: Mapping[str, str],
    registry: Optional[ArrayRegistry] = None,
) -> RenderResult:
    """Render `document` with a fresh `Renderer`."""
    return Renderer(variables, registry).render(document)
