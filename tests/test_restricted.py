"""Tests for the restricted template grammar and engine."""

import pytest

from interpolant import (
    EngineConfig,
    PartialCollection,
    RestrictedInterpolationEngine,
    define_partial,
)
from interpolant.exceptions import CompileError, ExpressionError
from interpolant.template import RestrictedTemplateCompiler, TemplateCallable


class Echo(TemplateCallable):
    async def __call__(self, *args, **kwargs):
        return "|".join(str(a) for a in args)


async def render(template, ctx=None, **locals):
    compiled = RestrictedTemplateCompiler().compile(template, locals.keys())
    return await compiled.render(ctx or {}, locals)


@pytest.mark.asyncio
async def test_path_lookups():
    """Dotted, keyed and indexed lookups resolve."""
    out = await render(
        "${user.name} ${user['role']} ${tags[1]} ${ctx.app}",
        ctx={"app": "Spry"},
        user={"name": "Zoya", "role": "admin"},
        tags=["a", "b"],
    )
    assert out == "Zoya admin b Spry"


@pytest.mark.asyncio
async def test_call_arguments_are_literals_or_paths():
    """Strings, numbers, keywords, arrays, objects and paths are accepted."""
    out = await render(
        "${echo('s', 2, 1.5, true, null, [1, x], {k: x})}",
        echo=Echo(),
        x="v",
    )
    assert out == "s|2|1.5|True|None|[1, 'v']|{'k': 'v'}"


@pytest.mark.asyncio
async def test_plain_functions_cannot_be_called():
    """Only TemplateCallable instances are invokable."""
    with pytest.raises(ExpressionError, match="not a partial invoker"):
        await render("${fn()}", fn=lambda: "x")


@pytest.mark.parametrize(
    "expression",
    [
        "${a + b}",
        "${f(g(1))}",
        "${a.b()}",
        "${'literal'}",
        "${a[b]}",
        "${a; b}",
        "${}",
        "${f('a\nb')}",
        "${f('a\\N')}",
        "${a['x\\N']}",
        "${f({'\\N': 1})}",
    ],
)
def test_everything_else_fails_to_compile(expression):
    """Operators, nested calls, method calls, bare literals and bad strings are rejected."""
    with pytest.raises(CompileError):
        RestrictedTemplateCompiler().compile(expression, ["a", "b", "f", "g"])


class TestRestrictedEngine:
    @pytest.mark.asyncio
    async def test_partial_invocation(self):
        """Restricted templates can call partials with object locals."""
        partials = PartialCollection()
        partials.register(
            define_partial("footer", "echo footer: ${text}", {"text": "string"})
        )
        engine = RestrictedInterpolationEngine(partials=partials)

        result = await engine.interpolate_unsafely(
            {"source": "${partial('footer', {text: 'hi'})}"}
        )
        assert result.status == "mutated"
        assert result.source == "echo footer: hi"

    @pytest.mark.asyncio
    async def test_disallowed_construct_is_reported_not_raised(self):
        """A compile failure surfaces as status False."""
        engine = RestrictedInterpolationEngine()
        result = await engine.interpolate_unsafely({"source": "${1 + 1}"})
        assert result.status is False
        assert isinstance(result.error, CompileError)
        assert result.source == "${1 + 1}"

    @pytest.mark.asyncio
    async def test_context_and_self_reference(self):
        """Context and SELF lookups work in restricted mode."""
        engine = RestrictedInterpolationEngine(
            interp_ctx=lambda purpose, **_: {"app": "Spry"} if purpose == "default" else {},
            config=EngineConfig(ctx_name="globals"),
        )
        result = await engine.interpolate_unsafely(
            {"source": "${globals.app}:${SELF.name}", "name": "task-1"}
        )
        assert result.source == "Spry:task-1"
