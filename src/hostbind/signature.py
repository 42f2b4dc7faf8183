"""Signature parser: function definitions -> FunctionSignature."""

from __future__ import annotations

import ast
import copy

from .errors import GenerationError
from .model import FunctionSignature, Parameter, ParamKind, TypeDescriptor

_RECEIVER_NAMES = {"self", "cls"}


def tail_name(node: ast.expr) -> str | None:
    """`a.b.c` or `a.b.c(...)` -> "c"; a bare name -> itself."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def has_type_params(node: ast.AST) -> bool:
    """True when a def/class declares a PEP 695 generic parameter list."""
    return bool(getattr(node, "type_params", None))


def split_result(annotation: ast.expr) -> tuple[ast.expr, ast.expr] | None:
    """Split `Result[T, E]` into (T, E); None for any other annotation."""
    if not isinstance(annotation, ast.Subscript):
        return None
    if tail_name(annotation.value) != "Result":
        return None
    args = annotation.slice
    if isinstance(args, ast.Tuple) and len(args.elts) == 2:
        return args.elts[0], args.elts[1]
    return None


def _typed(arg: ast.arg, fn_name: str) -> TypeDescriptor:
    if arg.annotation is None:
        raise GenerationError.at(arg, f"{fn_name}: parameter `{arg.arg}` needs a type annotation")
    return TypeDescriptor.from_node(arg.annotation)


def parse_signature(node: ast.stmt, *, allow_generics: bool = False) -> FunctionSignature:
    """Parse one function definition.

    Rejects receiver parameters (`self`/`cls` or `@classmethod`), `*args` and
    `**kwargs` collectors, missing annotations and, unless `allow_generics`,
    generic parameter lists.
    """
    if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        raise GenerationError.at(node, "expected a function definition")
    name = node.name

    if has_type_params(node) and not allow_generics:
        raise GenerationError.at(node, f"{name}: generic parameters are not supported")
    for deco in node.decorator_list:
        if tail_name(deco) == "classmethod":
            raise GenerationError.at(deco, f"{name}: receiver arguments not supported")

    args = node.args
    positional = [*args.posonlyargs, *args.args]
    if positional and positional[0].arg in _RECEIVER_NAMES:
        raise GenerationError.at(positional[0], f"{name}: receiver arguments not supported")
    if args.vararg is not None:
        raise GenerationError.at(args.vararg, f"{name}: argument `*{args.vararg.arg}` not supported")
    if args.kwarg is not None:
        raise GenerationError.at(args.kwarg, f"{name}: argument `**{args.kwarg.arg}` not supported")

    # `defaults` aligns with the tail of the positional parameters.
    pos_defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults))
    pos_defaults.extend(args.defaults)

    params: list[Parameter] = []
    for i, (arg, default) in enumerate(zip(positional, pos_defaults)):
        kind = ParamKind.POSITIONAL_ONLY if i < len(args.posonlyargs) else ParamKind.POSITIONAL
        params.append(Parameter(name=arg.arg, type=_typed(arg, name), kind=kind, default=default))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(
            Parameter(name=arg.arg, type=_typed(arg, name), kind=ParamKind.KEYWORD_ONLY, default=default)
        )

    success: TypeDescriptor | None = None
    error: TypeDescriptor | None = None
    if node.returns is not None:
        parts = split_result(node.returns)
        if parts is None:
            success = TypeDescriptor.from_node(node.returns)
        else:
            success = TypeDescriptor.from_node(parts[0])
            error = TypeDescriptor.from_node(parts[1])

    return FunctionSignature(
        name=name,
        params=tuple(params),
        success_type=success,
        error_type=error,
        is_async=isinstance(node, ast.AsyncFunctionDef),
        node=node,
    )


def build_arguments(params: list[Parameter]) -> ast.arguments:
    """Rebuild an `ast.arguments` node from parameters, keeping defaults aligned."""
    posonly = [p for p in params if p.kind is ParamKind.POSITIONAL_ONLY]
    regular = [p for p in params if p.kind is ParamKind.POSITIONAL]
    kwonly = [p for p in params if p.kind is ParamKind.KEYWORD_ONLY]

    defaults: list[ast.expr] = []
    for p in [*posonly, *regular]:
        if p.default is not None:
            defaults.append(copy.deepcopy(p.default))
        elif defaults:
            # A default-less parameter after one with a default cannot be spelled.
            raise GenerationError.at(p.type.node, f"parameter `{p.name}` follows a parameter with a default")

    def arg(p: Parameter) -> ast.arg:
        return ast.arg(arg=p.name, annotation=copy.deepcopy(p.type.node), type_comment=None)

    return ast.arguments(
        posonlyargs=[arg(p) for p in posonly],
        args=[arg(p) for p in regular],
        vararg=None,
        kwonlyargs=[arg(p) for p in kwonly],
        kw_defaults=[copy.deepcopy(p.default) for p in kwonly],
        kwarg=None,
        defaults=defaults,
    )
