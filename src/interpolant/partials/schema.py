"""Locals schema specs compiled into pydantic models.

A spec is a JSON-Schema style ``properties`` mapping:

    text:   {type: string}
    count:  {type: integer, default: 1}
    level:  {enum: [info, warn]}
    tags:   {type: array, items: {type: string}}
    note:   string                    # shorthand for {type: string}

Properties are required unless they have a ``default`` or ``required: false``.
Extra locals are always allowed; partials receive helpers alongside their
declared arguments.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from interpolant.exceptions import SchemaSpecError

JSON_TYPES: dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "null": type(None),
    "array": list,
    "object": dict,
}

KNOWN_KEYWORDS = {
    "type",
    "enum",
    "items",
    "properties",
    "default",
    "description",
    "required",
}


def _model_name(identity: str) -> str:
    words = re.split(r"[^A-Za-z0-9]+", identity)
    return "".join(w[:1].upper() + w[1:] for w in words if w) + "Locals"


def _annotation(spec: Any, where: str) -> Any:
    """Translate one property spec into a type annotation."""
    if isinstance(spec, str):
        spec = {"type": spec}
    if not isinstance(spec, dict):
        raise SchemaSpecError(f"Property spec at '{where}' must be a mapping or a type name")

    unknown = set(spec) - KNOWN_KEYWORDS
    if unknown:
        raise SchemaSpecError(
            f"Unsupported keyword(s) {sorted(unknown)} at '{where}'"
        )

    if "enum" in spec:
        values = spec["enum"]
        if not isinstance(values, list) or not values:
            raise SchemaSpecError(f"'enum' at '{where}' must be a non-empty list")
        return Literal[tuple(values)]  # type: ignore[valid-type]

    declared = spec.get("type")
    if declared is None:
        return Any
    if isinstance(declared, list):
        members = [_annotation({**spec, "type": t}, where) for t in declared]
        return Union[tuple(members)]  # type: ignore[valid-type]
    if declared not in JSON_TYPES:
        raise SchemaSpecError(f"Unknown type '{declared}' at '{where}'")

    if declared == "array" and "items" in spec:
        return list[_annotation(spec["items"], f"{where}[]")]  # type: ignore[misc]
    if declared == "object" and "properties" in spec:
        return build_locals_model(f"{where}", spec["properties"])
    if declared == "object":
        return dict[str, Any]
    return JSON_TYPES[declared]


def build_locals_model(identity: str, properties: dict[str, Any]) -> type[BaseModel]:
    """Compile a ``properties`` mapping into a pydantic model.

    Raises:
        SchemaSpecError: If a property uses an unknown type or keyword.
    """
    if not isinstance(properties, dict):
        raise SchemaSpecError("Locals schema spec must be a mapping of properties")

    fields: dict[str, Any] = {}
    for name, spec in properties.items():
        annotation = _annotation(spec, name)
        optional = isinstance(spec, dict) and (
            "default" in spec or spec.get("required") is False
        )
        if optional:
            default = spec.get("default") if isinstance(spec, dict) else None
            fields[name] = (Optional[annotation], default)
        else:
            fields[name] = (annotation, ...)

    try:
        return create_model(
            _model_name(identity),
            __config__=ConfigDict(extra="allow", strict=True),
            **fields,
        )
    except (NameError, TypeError, ValueError) as e:
        raise SchemaSpecError(f"Cannot build locals model: {e}") from e


def format_validation_error(error: ValidationError) -> str:
    """Render a pydantic ValidationError as one line per problem."""
    lines = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "(root)"
        lines.append(f"  - {loc}: {err['msg']}")
    return "\n".join(lines)


def spec_to_text(properties: dict[str, Any] | None) -> str | None:
    """Serialize a spec for diagnostics; ``None`` for an absent/empty spec."""
    if not properties:
        return None
    return json.dumps(properties, default=str)
