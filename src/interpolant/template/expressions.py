"""Trusted expression grammar.

Expressions inside ``${...}`` are Python expressions. They are parsed with
:mod:`ast` and walked by a small async interpreter; nothing is handed to
``eval``. Calls are awaited when they return an awaitable, which is how
``${partial("name")}`` suspends on nested rendering.

Supported:
  - constants, names, ``a.b`` (mapping key first, then public attribute)
  - ``a[k]``, slices, arithmetic, comparisons, ``and``/``or``/``not``
  - ``x if cond else y``, list/tuple/dict/set literals, f-strings, calls
  - backtick strings as nested templates: ``${`<${tag}>`}``
"""

from __future__ import annotations

import ast
import inspect
import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from interpolant.exceptions import CompileError
from interpolant.template.compiler import (
    Expression,
    TemplateCompiler,
    get_member,
    render_parts,
)
from interpolant.template.scanner import skip_quoted, split_template

DOLLAR = "__dollar__"
NESTED_PREFIX = "__interpolant_tmpl"

SAFE_BUILTINS: dict[str, Any] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sum": sum,
    "sorted": sorted,
    "list": list,
    "dict": dict,
    "tuple": tuple,
    "set": set,
    "range": range,
    "enumerate": enumerate,
    "zip": zip,
    "any": any,
    "all": all,
    "repr": repr,
}

BINARY_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

ALLOWED_NODES: tuple[type, ...] = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.keyword,
    ast.Starred,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Set,
    ast.JoinedStr,
    ast.FormattedValue,
    *BINARY_OPS,
    *UNARY_OPS,
    *COMPARE_OPS,
)


@dataclass
class NestedTemplate:
    """A backtick string inside an expression, rendered with the same scope."""

    parts: list[str | Expression] = field(default_factory=list)

    async def render(self, scope: Mapping[str, Any]) -> str:
        return await render_parts(self.parts, scope)


@dataclass
class PythonExpression:
    """A validated Python expression tree."""

    source: str
    tree: ast.Expression
    nested: dict[str, NestedTemplate] = field(default_factory=dict)

    async def evaluate(self, scope: Mapping[str, Any]) -> Any:
        return await _Evaluator(self.nested, scope).eval(self.tree.body)


class _Evaluator:
    """Walks one expression tree against a scope."""

    def __init__(self, nested: dict[str, NestedTemplate], scope: Mapping[str, Any]):
        self.nested = nested
        self.scope = scope

    async def eval(self, node: ast.AST) -> Any:
        method = getattr(self, f"_eval_{type(node).__name__}")
        return await method(node)

    async def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    async def _eval_Name(self, node: ast.Name) -> Any:
        if node.id in self.nested:
            return await self.nested[node.id].render(self.scope)
        name = node.id.replace(DOLLAR, "$")
        if name in self.scope:
            return self.scope[name]
        if name in SAFE_BUILTINS:
            return SAFE_BUILTINS[name]
        raise NameError(f"name '{name}' is not defined")

    async def _eval_Attribute(self, node: ast.Attribute) -> Any:
        obj = await self.eval(node.value)
        return get_member(obj, node.attr.replace(DOLLAR, "$"))

    async def _eval_Subscript(self, node: ast.Subscript) -> Any:
        obj = await self.eval(node.value)
        key = await self.eval(node.slice)
        return obj[key]

    async def _eval_Slice(self, node: ast.Slice) -> slice:
        lower = await self.eval(node.lower) if node.lower else None
        upper = await self.eval(node.upper) if node.upper else None
        step = await self.eval(node.step) if node.step else None
        return slice(lower, upper, step)

    async def _eval_BinOp(self, node: ast.BinOp) -> Any:
        left = await self.eval(node.left)
        right = await self.eval(node.right)
        return BINARY_OPS[type(node.op)](left, right)

    async def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return UNARY_OPS[type(node.op)](await self.eval(node.operand))

    async def _eval_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value in node.values:
            result = await self.eval(value)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    async def _eval_Compare(self, node: ast.Compare) -> bool:
        left = await self.eval(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = await self.eval(comparator)
            if not COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True

    async def _eval_IfExp(self, node: ast.IfExp) -> Any:
        if await self.eval(node.test):
            return await self.eval(node.body)
        return await self.eval(node.orelse)

    async def _eval_Call(self, node: ast.Call) -> Any:
        func = await self.eval(node.func)
        if not callable(func):
            raise TypeError(f"'{type(func).__name__}' object is not callable")
        args = await self._eval_elements(node.args)
        kwargs: dict[str, Any] = {}
        for kw in node.keywords:
            value = await self.eval(kw.value)
            if kw.arg is None:
                kwargs.update(value)
            else:
                kwargs[kw.arg] = value
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _eval_List(self, node: ast.List) -> list:
        return await self._eval_elements(node.elts)

    async def _eval_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(await self._eval_elements(node.elts))

    async def _eval_Set(self, node: ast.Set) -> set:
        return set(await self._eval_elements(node.elts))

    async def _eval_Dict(self, node: ast.Dict) -> dict:
        result: dict = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                result.update(await self.eval(value))
            else:
                result[await self.eval(key)] = await self.eval(value)
        return result

    async def _eval_JoinedStr(self, node: ast.JoinedStr) -> str:
        return "".join([str(await self.eval(v)) for v in node.values])

    async def _eval_FormattedValue(self, node: ast.FormattedValue) -> str:
        value = await self.eval(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        elif node.conversion == ord("s"):
            value = str(value)
        spec = await self.eval(node.format_spec) if node.format_spec else ""
        return format(value, spec)

    async def _eval_elements(self, nodes: list[ast.expr]) -> list:
        items: list = []
        for elt in nodes:
            if isinstance(elt, ast.Starred):
                items.extend(await self.eval(elt.value))
            else:
                items.append(await self.eval(elt))
        return items


class TrustedTemplateCompiler(TemplateCompiler):
    """Compiles ``${...}`` bodies as Python expressions.

    Intended for trusted template authors: any callable reachable from the
    scope can be invoked.
    """

    grammar = "trusted"

    def compile_expression(self, text: str) -> PythonExpression:
        if not text.strip():
            raise CompileError("Empty expression '${}'", text)

        prepared, nested = self._prepare(text)
        try:
            tree = ast.parse(f"(\n{prepared}\n)", mode="eval")
        except SyntaxError as e:
            raise CompileError(
                f"Malformed expression '${{{text}}}': {e.msg}", text
            ) from e

        for node in ast.walk(tree):
            if not isinstance(node, ALLOWED_NODES):
                raise CompileError(
                    f"Unsupported syntax ({type(node).__name__}) "
                    f"in expression '${{{text}}}'",
                    text,
                )
        return PythonExpression(source=text, tree=tree, nested=nested)

    def _prepare(self, text: str) -> tuple[str, dict[str, NestedTemplate]]:
        """Lift backtick templates out of *text* and mangle ``$`` in names."""
        out: list[str] = []
        nested: dict[str, NestedTemplate] = {}
        i = 0
        n = len(text)

        while i < n:
            ch = text[i]
            if ch in ("'", '"'):
                end = skip_quoted(text, i)
                out.append(text[i:end])
                i = end
            elif ch == "`":
                end = skip_quoted(text, i)
                name = f"{NESTED_PREFIX}{len(nested)}__"
                nested[name] = self._compile_nested(text[i + 1 : end - 1])
                out.append(name)
                i = end
            elif ch == "$":
                out.append(DOLLAR)
                i += 1
            else:
                out.append(ch)
                i += 1

        return "".join(out), nested

    def _compile_nested(self, body: str) -> NestedTemplate:
        parts: list[str | Expression] = []
        for segment in split_template(body):
            if segment.kind == "lit":
                parts.append(segment.value.replace("\\`", "`"))
            else:
                parts.append(self.compile_expression(segment.value))
        return NestedTemplate(parts=parts)
