"""Scanner - splits template text into literal and ``${...}`` segments.

The scanner is brace-balanced and quote-aware: braces inside ``'...'``,
``"..."`` or backtick strings never close an expression, and a ``${...}``
nested inside a backtick string tracks its own depth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from interpolant.exceptions import CompileError

QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class Segment:
    """A literal run or the text between ``${`` and its matching ``}``."""

    kind: Literal["lit", "expr"]
    value: str
    offset: int = 0


def split_template(source: str) -> list[Segment]:
    """Split *source* into ordered literal and expression segments.

    Raises:
        CompileError: If an expression span or a quoted string inside it
            is never closed.
    """
    parts: list[Segment] = []
    i = 0
    lit_start = 0
    n = len(source)

    while i < n:
        if source.startswith("${", i):
            if i > lit_start:
                parts.append(Segment("lit", source[lit_start:i], lit_start))
            start = i + 2
            end = scan_expression(source, start)
            parts.append(Segment("expr", source[start:end], start))
            i = lit_start = end + 1
            continue
        i += 1

    if lit_start < n:
        parts.append(Segment("lit", source[lit_start:], lit_start))
    return parts


def scan_expression(source: str, start: int) -> int:
    """Return the index of the ``}`` closing the expression opened before *start*."""
    depth = 1
    i = start
    n = len(source)

    while i < n:
        ch = source[i]
        if ch in QUOTES:
            i = skip_quoted(source, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1

    raise CompileError(
        f"Unterminated expression: '${{' at offset {start - 2} has no matching '}}'",
        source,
    )


def skip_quoted(source: str, start: int) -> int:
    """Return the index just past the quoted string starting at *start*."""
    quote = source[start]
    i = start + 1
    n = len(source)

    while i < n:
        c = source[i]
        if c == "\\":
            i += 2
            continue
        if c == quote:
            return i + 1
        if quote == "`" and source.startswith("${", i):
            i = scan_expression(source, i + 2) + 1
            continue
        i += 1

    raise CompileError(
        f"Unterminated {quote} string at offset {start} inside an expression",
        source,
    )
