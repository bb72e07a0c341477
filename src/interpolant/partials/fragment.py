"""Partial fragments - named, reusable template text.

A fragment may declare a locals schema (validated on every render) and an
injection rule that wraps it around other rendered artifacts whose path
matches one of its globs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from interpolant.exceptions import PartialDefinitionError, SchemaSpecError
from interpolant.partials.schema import (
    build_locals_model,
    format_validation_error,
    spec_to_text,
)

log = logging.getLogger(__name__)

InjectionMode = Literal["prepend", "append", "both"]

# (message, source, error) -> replacement content
ErrorRenderer = Callable[[str, str, Any], "str | None"]
# (message, source, error) -> None
IssueReporter = Callable[[str, str, Any], None]


@dataclass
class RenderResult:
    """Output of rendering a fragment (or composing one around content)."""

    content: str
    interpolate: bool
    locals: dict[str, Any] = field(default_factory=dict)


class Injection(BaseModel):
    """Where and how a fragment is injected around other content."""

    globs: list[str] = Field(min_length=1)
    mode: InjectionMode = "prepend"


def injection_mode(prepend: bool = False, append: bool = False) -> InjectionMode:
    """Derive the mode from flags; neither flag means ``prepend``."""
    if prepend and append:
        return "both"
    if append:
        return "append"
    return "prepend"


class PartialFragment(BaseModel):
    """A named fragment with optional locals validation and injection."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    identity: str = Field(min_length=1)
    source: str = Field(min_length=1)
    locals_schema_spec: str | None = Field(
        default=None, description="JSON text of the declared locals schema"
    )
    locals_model: type[BaseModel] | None = Field(default=None, repr=False)
    injection: Injection | None = None

    def content(
        self,
        locals: Mapping[str, Any],
        on_error: ErrorRenderer | None = None,
    ) -> RenderResult:
        """Validate *locals* and return the source for interpolation.

        On a schema violation the result carries a diagnostic instead of the
        source and ``interpolate`` is False, so callers must not render it.
        """
        locals = dict(locals)
        if self.locals_model is not None:
            try:
                self.locals_model.model_validate(locals)
            except ValidationError as e:
                message = (
                    f"Invalid arguments passed to partial '{self.identity}':\n"
                    f"{format_validation_error(e)}\n"
                    f"Partial '{self.identity}' expected arguments "
                    f"{self.locals_schema_spec}"
                )
                log.debug(f"Partial '{self.identity}' rejected its locals")
                replacement = on_error(message, self.source, e) if on_error else None
                return RenderResult(
                    content=replacement if replacement is not None else message,
                    interpolate=False,
                    locals=locals,
                )
        return RenderResult(content=self.source, interpolate=True, locals=locals)

    def wrap(self, text: str) -> str:
        """Place this fragment's source around *text* according to its mode."""
        if self.injection is None:
            return text
        result = text
        if self.injection.mode in ("prepend", "both"):
            result = f"{self.source}\n{result}"
        if self.injection.mode in ("append", "both"):
            result = f"{result}\n{self.source}"
        return result


def define_partial(
    identity: str,
    source: str,
    locals_schema_spec: dict[str, Any] | None = None,
    *,
    inject_globs: list[str] | None = None,
    prepend: bool = False,
    append: bool = False,
    register_issue: IssueReporter | None = None,
) -> PartialFragment:
    """Build a (possibly injectable) partial fragment.

    A schema spec that fails to compile is reported through *register_issue*
    and the fragment is built without validation.

    Raises:
        PartialDefinitionError: If *identity* or *source* is empty.
    """
    injection = (
        Injection(globs=list(inject_globs), mode=injection_mode(prepend, append))
        if inject_globs
        else None
    )

    spec_text = spec_to_text(locals_schema_spec)
    locals_model: type[BaseModel] | None = None
    if spec_text is not None:
        try:
            locals_model = build_locals_model(identity or "partial", locals_schema_spec or {})
        except SchemaSpecError as e:
            log.warning(f"Partial '{identity}' has an invalid locals schema: {e}")
            if register_issue is not None:
                register_issue(f"Invalid locals schema spec: {spec_text}", source, e)

    try:
        return PartialFragment(
            identity=identity,
            source=source,
            locals_schema_spec=spec_text,
            locals_model=locals_model,
            injection=injection,
        )
    except ValidationError as e:
        raise PartialDefinitionError(
            f"Invalid partial '{identity}': {format_validation_error(e)}"
        ) from e
