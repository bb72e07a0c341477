"""Interpolation engines.

Two layers:

1. :class:`Interpolator` - binds a read-only shared context, compiles
   templates (cached per template, sorted local names and context name) and
   renders them with per-call locals. It also enforces the recursion limit for
   nested partial expansion.

2. :class:`InterpolationEngine` - wraps an Interpolator with a partial
   collection and a "prime" context. ``interpolate_unsafely`` never raises:
   it reports ``mutated``, ``unmodified`` or ``False`` with the error.

:class:`RestrictedInterpolationEngine` has the same contract but compiles
templates with the lookup/partial-call grammar, for untrusted authors.

Example:
    engine = InterpolationEngine(
        interp_ctx=lambda purpose, **_: {"app": "Spry"} if purpose == "default" else {},
        config=EngineConfig(ctx_name="globals"),
    )
    await engine.interpolate("Hello ${user} from ${globals.app}", {"user": "Zoya"})
    # -> "Hello Zoya from Spry"
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal

from interpolant.config import EngineConfig
from interpolant.partials.collection import PartialCollection
from interpolant.partials.fragment import PartialFragment
from interpolant.template.compiler import (
    CompiledTemplate,
    TemplateCallable,
    TemplateCompiler,
    assert_valid_identifier,
)
from interpolant.template.expressions import TrustedTemplateCompiler
from interpolant.template.restricted import RestrictedTemplateCompiler
from interpolant.text import safe_json_stringify

log = logging.getLogger(__name__)

Purpose = Literal["default", "prime", "partial"]
# (purpose, prime=..., partial=...) -> extra bindings for that purpose
ContextBuilder = Callable[..., "Mapping[str, Any] | None"]

JSON_HELPER_NAME = "safe_json_stringify"


@dataclass(frozen=True)
class RecursionFrame:
    """One in-flight partial expansion."""

    template: str


@dataclass
class InterpolationResult:
    """Outcome of :meth:`InterpolationEngine.interpolate_unsafely`."""

    status: Literal["mutated", "unmodified", False]
    source: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is not False


@dataclass(frozen=True)
class PartialNaming:
    """Names the partial helpers are bound to inside templates."""

    exec_fn_name: str = "partial"
    local_var_name: str = "PARTIAL"
    self_ref_key_name: str = "SELF"


class Interpolator:
    """Compiles and renders templates against one shared context."""

    def __init__(
        self,
        ctx: Any = None,
        *,
        compiler: TemplateCompiler | None = None,
        use_cache: bool = True,
        ctx_name: str = "ctx",
        recursion_limit: int = 9,
    ):
        assert_valid_identifier(ctx_name, "ctx_name")
        if ctx is None:
            ctx = {}
        self.ctx = MappingProxyType(dict(ctx)) if isinstance(ctx, Mapping) else ctx
        self.compiler = compiler or TrustedTemplateCompiler()
        self.use_cache = use_cache
        self.ctx_name = ctx_name
        self.recursion_limit = recursion_limit
        self.cache: dict[tuple[str, str, str], CompiledTemplate] = {}

    @classmethod
    def from_config(
        cls,
        ctx: Any,
        config: EngineConfig,
        compiler: TemplateCompiler | None = None,
    ) -> Interpolator:
        return cls(
            ctx,
            compiler=compiler,
            use_cache=config.use_cache,
            ctx_name=config.ctx_name,
            recursion_limit=config.recursion_limit,
        )

    def renderer_for(self, template: str, keys: Iterable[str]) -> CompiledTemplate:
        """Return a compiled renderer, reusing the cache when enabled.

        Raises:
            CompileError: If the template or a local name is invalid.
        """
        keys = list(keys)
        if not self.use_cache:
            return self.compiler.compile(template, keys, self.ctx_name)

        key = (template, "|".join(sorted(keys)), self.ctx_name)
        renderer = self.cache.get(key)
        if renderer is None:
            # compile() is synchronous, so no other task can interleave here
            renderer = self.compiler.compile(template, keys, self.ctx_name)
            self.cache[key] = renderer
            log.debug(f"Compiled template ({len(self.cache)} cached)")
        else:
            log.debug("Renderer cache hit")
        return renderer

    async def interpolate(
        self,
        template: str,
        locals: Mapping[str, Any] | None = None,
        stack: list[RecursionFrame] | None = None,
    ) -> str:
        """Render *template* with *locals*.

        When *stack* is deeper than the recursion limit a diagnostic string is
        returned instead of rendering.
        """
        if stack and len(stack) > self.recursion_limit:
            chain = " -> ".join(frame.template for frame in stack)
            log.warning(f"Recursion limit {self.recursion_limit} exceeded")
            return f"Recursion stack exceeded max: {self.recursion_limit} ({chain})"

        locals = dict(locals or {})
        renderer = self.renderer_for(template, locals.keys())
        return await renderer.render(self.ctx, locals)


class PartialInvoker(TemplateCallable):
    """The ``partial(name, locals?)`` helper bound inside templates."""

    def __init__(
        self,
        engine: InterpolationEngine,
        prime: Mapping[str, Any],
        stack: list[RecursionFrame],
        naming: PartialNaming,
    ):
        self.engine = engine
        self.prime = prime
        self.stack = stack
        self.naming = naming

    def __repr__(self) -> str:
        return f"<partial invoker depth={len(self.stack)}>"

    async def __call__(
        self, name: str, args: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> str:
        engine = self.engine
        found = engine.partials.get(name)
        if found is None:
            available = ", ".join(engine.partials.identities())
            log.debug(f"Partial '{name}' not found")
            return f"/* partial '{name}' not found (available: {available}) */"

        naming = self.naming
        partial_locals: dict[str, Any] = {
            JSON_HELPER_NAME: safe_json_stringify,
            **engine.purpose_ctx("partial", prime=self.prime, partial=found),
            **(args or {}),
            **kwargs,
            naming.local_var_name: found,
            naming.self_ref_key_name: self.prime,
        }

        result: Any = found.content(partial_locals)
        if inspect.isawaitable(result):
            result = await result

        # Validation failures are already rendered diagnostics
        if not result.interpolate:
            return result.content

        stack = [*self.stack, RecursionFrame(result.content)]
        nested_locals = {
            **result.locals,
            naming.exec_fn_name: PartialInvoker(engine, self.prime, stack, naming),
        }
        return await engine.interpolator.interpolate(result.content, nested_locals, stack)


class InterpolationEngine:
    """Trusted interpolation with partials and a prime context.

    Args:
        partials: Collection consulted by ``partial(name)``; empty by default.
        interp_ctx: Builds bindings per purpose. Called as
            ``interp_ctx(purpose, prime=..., partial=...)`` where purpose is
            ``"default"`` (once, the shared context), ``"prime"`` (per call)
            or ``"partial"`` (per partial invocation).
        config: Engine settings.
    """

    compiler_class: type[TemplateCompiler] = TrustedTemplateCompiler

    def __init__(
        self,
        partials: PartialCollection | None = None,
        interp_ctx: ContextBuilder | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.partials = partials if partials is not None else PartialCollection()
        self.interp_ctx = interp_ctx
        self.interpolator = Interpolator.from_config(
            self.purpose_ctx("default"), self.config, self.compiler_class()
        )

    def purpose_ctx(
        self,
        purpose: Purpose,
        prime: Mapping[str, Any] | None = None,
        partial: PartialFragment | None = None,
    ) -> dict[str, Any]:
        """Bindings the caller supplies for *purpose* (empty without a builder)."""
        if self.interp_ctx is None:
            return {}
        return dict(self.interp_ctx(purpose, prime=prime, partial=partial) or {})

    def naming_for(self, prime: Mapping[str, Any]) -> PartialNaming:
        """Resolve helper names from *prime* overrides, then config."""
        overrides = prime.get("partials") or {}
        return PartialNaming(
            exec_fn_name=overrides.get("exec_fn_name", self.config.exec_fn_name),
            local_var_name=overrides.get("local_var_name", self.config.local_var_name),
            self_ref_key_name=prime.get(
                "self_ref_key_name", self.config.self_ref_key_name
            ),
        )

    async def interpolate(
        self,
        template: str,
        locals: Mapping[str, Any] | None = None,
        stack: list[RecursionFrame] | None = None,
    ) -> str:
        """Render directly through the underlying Interpolator (may raise)."""
        return await self.interpolator.interpolate(template, locals, stack)

    async def interpolate_unsafely(self, prime: Mapping[str, Any]) -> InterpolationResult:
        """Render ``prime["source"]`` with partial support; never raises.

        *prime* carries ``source``, an optional ``interpolate`` flag (False
        skips rendering), optional ``partials`` naming overrides
        (``exec_fn_name``, ``local_var_name``) and ``self_ref_key_name``. The
        whole mapping is bound under the self-reference name.
        """
        source = prime["source"]
        if not prime.get("interpolate", True):
            return InterpolationResult(status="unmodified", source=source)

        try:
            naming = self.naming_for(prime)
            locals: dict[str, Any] = {
                **self.purpose_ctx("prime", prime=prime),
                JSON_HELPER_NAME: safe_json_stringify,
                naming.self_ref_key_name: prime,
                naming.exec_fn_name: PartialInvoker(self, prime, [], naming),
            }
            mutated = await self.interpolator.interpolate(source, locals, [])
        except Exception as e:
            log.debug(f"Interpolation failed: {e}")
            return InterpolationResult(status=False, source=source, error=e)

        if mutated != source:
            return InterpolationResult(status="mutated", source=mutated)
        return InterpolationResult(status="unmodified", source=source)


class RestrictedInterpolationEngine(InterpolationEngine):
    """Same contract as InterpolationEngine with the restricted grammar."""

    compiler_class = RestrictedTemplateCompiler
