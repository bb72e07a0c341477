"""Small text helpers shared by templates and capture."""

from __future__ import annotations

import json
from typing import Any


def ensure_trailing_newline(text: str) -> str:
    """Return *text* ending in exactly one newline."""
    return text.rstrip("\n") + "\n"


def safe_json_stringify(value: Any, indent: int | None = None) -> str:
    """Serialize *value* to JSON without ever raising.

    Objects JSON cannot represent are rendered through ``str()``; circular
    structures fall back to the JSON string of ``str(value)``.
    """
    try:
        return json.dumps(value, indent=indent, default=str)
    except (TypeError, ValueError):
        return json.dumps(str(value))


def to_text(value: Any) -> str:
    """Convert an expression result to the text spliced into a template."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)
