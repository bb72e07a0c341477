"""Partial fragments, their registry and declaration loaders."""

from interpolant.partials.collection import PartialCollection
from interpolant.partials.fragment import (
    Injection,
    PartialFragment,
    RenderResult,
    define_partial,
    injection_mode,
)
from interpolant.partials.loader import (
    PartialDeclaration,
    load_partials,
    load_partials_from_string,
    partial_from_directive,
)

__all__ = [
    "Injection",
    "PartialCollection",
    "PartialDeclaration",
    "PartialFragment",
    "RenderResult",
    "define_partial",
    "injection_mode",
    "load_partials",
    "load_partials_from_string",
    "partial_from_directive",
]
