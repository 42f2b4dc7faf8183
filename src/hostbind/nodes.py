"""Small builders for the syntax nodes the generators emit."""

from __future__ import annotations

import ast
import copy
from typing import Any


def name(id_: str) -> ast.Name:
    return ast.Name(id=id_, ctx=ast.Load())


def store(id_: str) -> ast.Name:
    return ast.Name(id=id_, ctx=ast.Store())


def const(value: Any) -> ast.Constant:
    return ast.Constant(value=value)


def dotted(path: str) -> ast.expr:
    """`a.b.c` -> Attribute(Attribute(Name(a), b), c)."""
    head, *rest = path.split(".")
    node: ast.expr = name(head)
    for part in rest:
        node = ast.Attribute(value=node, attr=part, ctx=ast.Load())
    return node


def call(func: ast.expr | str, *args: ast.expr, **kwargs: ast.expr) -> ast.Call:
    if isinstance(func, str):
        func = dotted(func)
    return ast.Call(
        func=func,
        args=list(args),
        keywords=[ast.keyword(arg=k, value=v) for k, v in kwargs.items()],
    )


def assign(target: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[store(target)], value=value, type_comment=None)


def ret(value: ast.expr | None) -> ast.Return:
    return ast.Return(value=value)


def clone(node: Any) -> Any:
    return copy.deepcopy(node)


def docstring_of(body: list[ast.stmt]) -> list[ast.stmt]:
    """Return the leading docstring statement of a body, if any, as a list."""
    if body and isinstance(body[0], ast.Expr):
        value = body[0].value
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            return [clone(body[0])]
    return []


def _with_type_params(cls: type, fields: dict[str, Any]) -> dict[str, Any]:
    # Python >= 3.12 carries PEP 695 generics on defs and classes.
    if "type_params" in cls._fields:
        fields.setdefault("type_params", [])
    return fields


def function_def(
    fn_name: str,
    args: ast.arguments,
    body: list[ast.stmt],
    *,
    is_async: bool,
    returns: ast.expr | None = None,
    decorators: list[ast.expr] | None = None,
) -> ast.FunctionDef | ast.AsyncFunctionDef:
    cls = ast.AsyncFunctionDef if is_async else ast.FunctionDef
    fields = _with_type_params(
        cls,
        {
            "name": fn_name,
            "args": args,
            "body": body,
            "decorator_list": decorators or [],
            "returns": returns,
            "type_comment": None,
        },
    )
    return cls(**fields)


def class_def(
    cls_name: str,
    body: list[ast.stmt],
    *,
    bases: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
    decorators: list[ast.expr] | None = None,
) -> ast.ClassDef:
    fields = _with_type_params(
        ast.ClassDef,
        {
            "name": cls_name,
            "bases": bases or [],
            "keywords": keywords or [],
            "body": body or [ast.Pass()],
            "decorator_list": decorators or [],
        },
    )
    return ast.ClassDef(**fields)


def arguments(*params: tuple[str, ast.expr | None]) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=p, annotation=a, type_comment=None) for p, a in params],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def match(subject: ast.expr, cases: list[ast.match_case]) -> ast.Match:
    return ast.Match(subject=subject, cases=cases)


def case(pattern: ast.pattern, body: list[ast.stmt]) -> ast.match_case:
    return ast.match_case(pattern=pattern, guard=None, body=body)


def class_pattern(cls: ast.expr, *captures: str) -> ast.MatchClass:
    """`Cls(a, b)` capturing positional sub-patterns by name."""
    return ast.MatchClass(
        cls=cls,
        patterns=[ast.MatchAs(pattern=None, name=c) for c in captures],
        kwd_attrs=[],
        kwd_patterns=[],
    )


def value_pattern(value: ast.expr) -> ast.MatchValue:
    return ast.MatchValue(value=value)
