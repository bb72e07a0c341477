"""Build partials from extracted directives or YAML declaration files.

Directive form (what a document parser extracts from a fenced block)::

    identity='report_wrapper'
    flags={'inject': ['reports/**/*.sql'], 'prepend': True}
    attrs={'title': {'type': 'string'}}     # locals schema

YAML form::

    partials:
      - identity: footer
        source: "-- footer: ${text}"
        schema:
          text: {type: string}
        inject: "**/*.sql"
        append: true
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from interpolant.config import DuplicatePolicy
from interpolant.exceptions import PartialDefinitionError
from interpolant.partials.collection import PartialCollection
from interpolant.partials.fragment import IssueReporter, PartialFragment, define_partial

log = logging.getLogger(__name__)


def _as_list(value: Any) -> list[str]:
    if value is None or value is False:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _has_flag(flags: dict[str, Any], name: str) -> bool:
    return name in flags and flags[name] is not False and flags[name] is not None


def partial_from_directive(
    identity: str,
    flags: dict[str, Any],
    source: str,
    attrs: dict[str, Any] | None = None,
    register_issue: IssueReporter | None = None,
) -> PartialFragment:
    """Build a fragment from a parsed ``PARTIAL <identity> --inject ...`` directive.

    Args:
        identity: Partial name (second positional of the directive).
        flags: Parsed flags; ``inject`` may be a string or a list,
            ``prepend``/``append`` are presence flags.
        source: Body of the fenced block.
        attrs: Locals schema spec attached to the directive.
        register_issue: Receives schema compile problems.
    """
    return define_partial(
        identity,
        source,
        attrs,
        inject_globs=_as_list(flags.get("inject")),
        prepend=_has_flag(flags, "prepend"),
        append=_has_flag(flags, "append"),
        register_issue=register_issue,
    )


class PartialDeclaration(BaseModel):
    """One partial declared in a YAML file."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    identity: str
    source: str
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    inject: list[str] = Field(default_factory=list)
    prepend: bool = False
    append: bool = False

    @field_validator("inject", mode="before")
    @classmethod
    def _normalize_inject(cls, value: Any) -> list[str]:
        return _as_list(value)

    def to_fragment(self, register_issue: IssueReporter | None = None) -> PartialFragment:
        return define_partial(
            self.identity,
            self.source,
            self.schema_,
            inject_globs=self.inject,
            prepend=self.prepend,
            append=self.append,
            register_issue=register_issue,
        )


class PartialsDocument(BaseModel):
    """Top-level shape of a partials YAML file."""

    partials: list[PartialDeclaration] = Field(default_factory=list)


def load_partials_from_string(
    content: str,
    collection: PartialCollection | None = None,
    on_duplicate: DuplicatePolicy = "overwrite",
    register_issue: IssueReporter | None = None,
) -> PartialCollection:
    """Parse YAML partial declarations and register them.

    Raises:
        PartialDefinitionError: If the document is not valid.
        PartialAlreadyExistsError: If a duplicate is found under ``throw``.
    """
    try:
        data = yaml.safe_load(content) or {}
        document = PartialsDocument.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise PartialDefinitionError(f"Invalid partials document: {e}") from e

    collection = collection if collection is not None else PartialCollection()
    for declaration in document.partials:
        collection.register(declaration.to_fragment(register_issue), on_duplicate)
    log.info(f"Loaded {len(document.partials)} partial(s)")
    return collection


def load_partials(
    path: str | Path,
    collection: PartialCollection | None = None,
    on_duplicate: DuplicatePolicy = "overwrite",
    register_issue: IssueReporter | None = None,
) -> PartialCollection:
    """Load partial declarations from a YAML file."""
    with open(path) as f:
        content = f.read()
    return load_partials_from_string(content, collection, on_duplicate, register_issue)
