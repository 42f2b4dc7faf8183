"""Skeleton implementations: placeholder classes that satisfy an interface."""

from __future__ import annotations

import ast
import logging
from dataclasses import replace
from typing import Callable

from . import nodes as n
from .context import EmissionContext
from .errors import GenerationError
from .model import ImplementationCandidate, TypeDescriptor
from .sequence import ItemList
from .signature import build_arguments, parse_signature

logger = logging.getLogger(__name__)

IMPL_PREFIX = "__Impl"
IGNORE_PREFIX = "_"

HostPredicate = Callable[[TypeDescriptor], bool]


def host_namespace_predicate(namespace: str) -> HostPredicate:
    """Parameters typed under `namespace.` are supplied by the host, not the caller.

    Matching is by leading type-path segment only; an alias such as
    `from host import State` is not recognised.
    """

    def is_host_owned(tp: TypeDescriptor) -> bool:
        return tp.leading_segment == namespace

    return is_host_owned


def interface_name(expr: ast.expr) -> str:
    """Last segment of a dotted interface name expression."""
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        interface_name(expr.value)
        return expr.attr
    raise GenerationError.at(expr, "expected an interface name")


def parse_candidates(body: list[ast.stmt]) -> list[ImplementationCandidate]:
    candidates: list[ImplementationCandidate] = []
    for stmt in body:
        if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            raise GenerationError.at(stmt, "implementation block may only contain function definitions")
        # Placeholders are emitted without the generic parameter list.
        candidates.append(ImplementationCandidate(signature=parse_signature(stmt, allow_generics=True)))
    return candidates


def skeleton_name(iface: str) -> str:
    return f"{IMPL_PREFIX}{iface}"


def _placeholder(candidate: ImplementationCandidate, is_host_owned: HostPredicate) -> ast.stmt:
    sig = candidate.signature
    kept = [replace(p, name=IGNORE_PREFIX + p.name) for p in sig.params if not is_host_owned(p.type)]
    dropped = len(sig.params) - len(kept)
    if dropped:
        logger.debug("skeleton %s: dropped %d host-owned parameter(s)", sig.name, dropped)
    return n.function_def(
        sig.name,
        build_arguments(kept),
        [ast.Raise(exc=n.name("NotImplementedError"), cause=None)],
        is_async=sig.is_async,
        returns=n.clone(candidate.node.returns),
        decorators=[n.name("staticmethod")],
    )


def generate_skeleton(
    iface_expr: ast.expr,
    candidates: list[ImplementationCandidate],
    is_host_owned: HostPredicate,
    ctx: EmissionContext,
) -> ItemList[ast.stmt]:
    """Emit `__Impl<Interface>` followed by the original candidates, bodies intact."""
    iface = interface_name(iface_expr)
    ctx.claim(skeleton_name(iface), iface_expr)
    methods = [_placeholder(c, is_host_owned) for c in candidates]

    items: ItemList[ast.stmt] = ItemList()
    items.append(n.class_def(skeleton_name(iface), methods, bases=[n.clone(iface_expr)]))
    items.extend(c.node for c in candidates)
    logger.debug("skeleton %s: %d method(s)", skeleton_name(iface), len(methods))
    return items
