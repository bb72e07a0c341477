"""Restricted expression grammar for untrusted template authors.

Only two forms are accepted inside ``${...}``::

    ${user.name}                     path lookup
    ${partial('footer', {text: x})}  partial invocation

Call arguments are literals (strings, numbers, true/false/null, arrays,
objects) or path lookups. There are no operators and no arbitrary calls: the
callee must resolve to a :class:`TemplateCallable` at render time.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from interpolant.exceptions import CompileError
from interpolant.template.compiler import TemplateCallable, TemplateCompiler, get_member

TOKEN_RX = re.compile(
    r"""
    (?P<ws>\s+)
   |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
   |(?P<number>-?\d+(?:\.\d+)?)
   |(?P<ident>[A-Za-z_$][\w$]*)
   |(?P<punct>[.\[\](){},:])
    """,
    re.VERBOSE | re.DOTALL,
)

KEYWORD_LITERALS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> list[Token]:
    """Split a restricted expression into tokens, dropping whitespace."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = TOKEN_RX.match(text, pos)
        if match is None:
            raise CompileError(
                f"Unexpected character {text[pos]!r} at {pos} "
                f"in restricted expression '${{{text}}}'",
                text,
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


# --- Nodes ---


@dataclass
class Literal:
    value: Any

    async def evaluate(self, scope: Mapping[str, Any]) -> Any:
        return self.value


@dataclass
class PathRef:
    root: str
    segments: list[str | int] = field(default_factory=list)

    async def evaluate(self, scope: Mapping[str, Any]) -> Any:
        if self.root not in scope:
            raise NameError(f"name '{self.root}' is not defined")
        value = scope[self.root]
        for seg in self.segments:
            if isinstance(seg, int):
                value = value[seg]
            else:
                value = get_member(value, seg)
        return value


@dataclass
class ObjectLit:
    items: list[tuple[str, Any]] = field(default_factory=list)

    async def evaluate(self, scope: Mapping[str, Any]) -> dict[str, Any]:
        return {key: await node.evaluate(scope) for key, node in self.items}


@dataclass
class ArrayLit:
    items: list[Any] = field(default_factory=list)

    async def evaluate(self, scope: Mapping[str, Any]) -> list[Any]:
        return [await node.evaluate(scope) for node in self.items]


@dataclass
class CallRef:
    callee: str
    args: list[Any] = field(default_factory=list)

    async def evaluate(self, scope: Mapping[str, Any]) -> Any:
        fn = scope.get(self.callee)
        if not isinstance(fn, TemplateCallable):
            raise TypeError(
                f"'{self.callee}' is not a partial invoker; "
                "restricted templates may only invoke partials"
            )
        args = [await arg.evaluate(scope) for arg in self.args]
        return await fn(*args)


@dataclass
class RestrictedExpression:
    source: str
    node: Any

    async def evaluate(self, scope: Mapping[str, Any]) -> Any:
        return await self.node.evaluate(scope)


# --- Parser ---


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def fail(self, message: str) -> CompileError:
        return CompileError(
            f"{message} in restricted expression '${{{self.text}}}'", self.text
        )

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise self.fail("Unexpected end of expression")
        self.pos += 1
        return tok

    def accept(self, text: str) -> bool:
        tok = self.peek()
        if tok is not None and tok.kind == "punct" and tok.text == text:
            self.pos += 1
            return True
        return False

    def expect(self, text: str) -> None:
        tok = self.next()
        if tok.kind != "punct" or tok.text != text:
            raise self.fail(f"Expected '{text}' but found '{tok.text}'")

    def string_value(self, tok: Token) -> str:
        try:
            return ast.literal_eval(tok.text)
        except (SyntaxError, ValueError) as e:
            raise self.fail(f"Invalid string literal {tok.text}") from e

    def parse(self) -> Any:
        if not self.tokens:
            raise self.fail("Empty expression")
        head = self.next()
        if head.kind != "ident":
            raise self.fail(f"Expected an identifier but found '{head.text}'")

        if self.accept("("):
            node: Any = CallRef(head.text, self.parse_args())
        else:
            node = self.parse_path(head)

        tok = self.peek()
        if tok is not None:
            raise self.fail(f"Unsupported construct starting at '{tok.text}'")
        return node

    def parse_args(self) -> list[Any]:
        args: list[Any] = []
        if self.accept(")"):
            return args
        while True:
            args.append(self.parse_value())
            if self.accept(")"):
                return args
            self.expect(",")

    def parse_path(self, head: Token) -> PathRef:
        if head.text in KEYWORD_LITERALS:
            raise self.fail(f"'{head.text}' is not a lookup")
        segments: list[str | int] = []
        while True:
            if self.accept("."):
                tok = self.next()
                if tok.kind != "ident":
                    raise self.fail(f"Expected a name after '.' but found '{tok.text}'")
                segments.append(tok.text)
            elif self.accept("["):
                tok = self.next()
                if tok.kind == "string":
                    segments.append(self.string_value(tok))
                elif tok.kind == "number" and "." not in tok.text:
                    segments.append(int(tok.text))
                else:
                    raise self.fail(f"Invalid index '{tok.text}'")
                self.expect("]")
            else:
                return PathRef(head.text, segments)

    def parse_value(self) -> Any:
        tok = self.next()
        if tok.kind == "string":
            return Literal(self.string_value(tok))
        if tok.kind == "number":
            return Literal(float(tok.text) if "." in tok.text else int(tok.text))
        if tok.kind == "ident":
            if tok.text in KEYWORD_LITERALS:
                return Literal(KEYWORD_LITERALS[tok.text])
            peek = self.peek()
            if peek is not None and peek.text == "(":
                raise self.fail("Nested calls are not allowed")
            return self.parse_path(tok)
        if tok.text == "{":
            return self.parse_object()
        if tok.text == "[":
            return self.parse_array()
        raise self.fail(f"Unexpected '{tok.text}'")

    def parse_object(self) -> ObjectLit:
        items: list[tuple[str, Any]] = []
        while not self.accept("}"):
            tok = self.next()
            if tok.kind == "ident":
                key = tok.text
            elif tok.kind == "string":
                key = self.string_value(tok)
            else:
                raise self.fail(f"Invalid object key '{tok.text}'")
            self.expect(":")
            items.append((key, self.parse_value()))
            if not self.accept(","):
                self.expect("}")
                break
        return ObjectLit(items)

    def parse_array(self) -> ArrayLit:
        items: list[Any] = []
        while not self.accept("]"):
            items.append(self.parse_value())
            if not self.accept(","):
                self.expect("]")
                break
        return ArrayLit(items)


class RestrictedTemplateCompiler(TemplateCompiler):
    """Compiles ``${...}`` bodies with the lookup/partial-call grammar."""

    grammar = "restricted"

    def compile_expression(self, text: str) -> RestrictedExpression:
        return RestrictedExpression(source=text, node=_Parser(text).parse())
