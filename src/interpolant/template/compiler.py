"""Compiler - turns template text into a reusable CompiledTemplate.

A compiler strategy decides which expression grammar is allowed inside
``${...}``; this module owns what both strategies share: identifier checks,
segment splitting and the render loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from interpolant.config import IDENT_RX
from interpolant.exceptions import CompileError, ExpressionError, InterpolantError
from interpolant.template.scanner import split_template
from interpolant.text import to_text


def assert_valid_identifier(name: str, label: str = "identifier") -> None:
    """Raise CompileError unless *name* is a simple identifier."""
    if not isinstance(name, str) or not IDENT_RX.fullmatch(name):
        raise CompileError(f'Invalid {label} "{name}". Use a simple identifier.')


def get_member(obj: Any, name: str) -> Any:
    """Look up *name* on *obj*: mapping key first, then public attribute."""
    if name.startswith("_"):
        raise AttributeError(f"Access to '{name}' is not allowed in templates")
    if isinstance(obj, Mapping) and name in obj:
        return obj[name]
    try:
        return getattr(obj, name)
    except AttributeError:
        raise AttributeError(
            f"'{type(obj).__name__}' object has no member '{name}'"
        ) from None


class Expression(Protocol):
    """A compiled ``${...}`` body."""

    source: str

    async def evaluate(self, scope: Mapping[str, Any]) -> Any: ...


class TemplateCallable(ABC):
    """Base for callables restricted templates are permitted to invoke."""

    @abstractmethod
    async def __call__(self, *args: Any, **kwargs: Any) -> str: ...


async def render_parts(
    parts: Sequence[str | Expression], scope: Mapping[str, Any]
) -> str:
    """Concatenate literal parts with evaluated expression parts."""
    out: list[str] = []
    for part in parts:
        if isinstance(part, str):
            out.append(part)
            continue
        try:
            value = await part.evaluate(scope)
        except InterpolantError:
            raise
        except Exception as e:
            raise ExpressionError(part.source, e) from e
        out.append(to_text(value))
    return "".join(out)


@dataclass
class CompiledTemplate:
    """An executable renderer for one (template, locals signature, ctx name)."""

    template: str
    keys: tuple[str, ...]
    ctx_name: str
    parts: list[str | Expression] = field(default_factory=list)

    async def render(self, ctx: Any, locals: Mapping[str, Any]) -> str:
        """Render against the shared context and per-call locals."""
        scope = dict(locals)
        scope[self.ctx_name] = ctx
        return await render_parts(self.parts, scope)

    @property
    def expressions(self) -> list[str]:
        """Source text of each expression span, in order."""
        return [p.source for p in self.parts if not isinstance(p, str)]


class TemplateCompiler(ABC):
    """Base class for expression-grammar strategies."""

    #: Human-readable grammar name used in diagnostics
    grammar: str = "abstract"

    def compile(
        self, source: str, keys: Iterable[str], ctx_name: str = "ctx"
    ) -> CompiledTemplate:
        """Compile *source* for the given local names and context binding.

        Raises:
            CompileError: On an invalid or colliding identifier, an unclosed
                ``${`` span, or an expression the grammar does not allow.
        """
        keys = tuple(keys)
        assert_valid_identifier(ctx_name, "ctx_name")
        if ctx_name in keys:
            raise CompileError(
                f'Local key "{ctx_name}" conflicts with ctx_name. '
                "Rename the local or choose a different ctx_name.",
                source,
            )
        for key in keys:
            assert_valid_identifier(key, "local key")

        parts: list[str | Expression] = []
        for segment in split_template(source):
            if segment.kind == "lit":
                parts.append(segment.value)
            else:
                parts.append(self.compile_expression(segment.value))

        return CompiledTemplate(
            template=source, keys=keys, ctx_name=ctx_name, parts=parts
        )

    @abstractmethod
    def compile_expression(self, text: str) -> Expression:
        """Compile the body of a single ``${...}`` span."""
        ...
