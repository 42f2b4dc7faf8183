"""Invocation stubs: one marshaling coroutine per interface function."""

from __future__ import annotations

import ast
import logging

from . import nodes as n
from .config import GenerationConfig
from .context import RUNTIME, EmissionContext
from .errors import GenerationError
from .model import FunctionSignature, InterfaceDescription, TypeDescriptor
from .runtime.bridge import CORE_NAMESPACE
from .runtime.wire import camel_case
from .sequence import ItemList
from .signature import has_type_params, parse_signature, tail_name

logger = logging.getLogger(__name__)

BRIDGE_NAME = "invoke"
_RESERVED = {BRIDGE_NAME, RUNTIME}


def _is_generic_base(base: ast.expr) -> bool:
    return isinstance(base, ast.Subscript) and tail_name(base.value) in {"Generic", "Protocol"}


def reject_generics(node: ast.ClassDef, what: str) -> None:
    if has_type_params(node):
        raise GenerationError.at(node, f"{what} `{node.name}`: generic parameters are not supported")
    for base in node.bases:
        if _is_generic_base(base):
            raise GenerationError.at(base, f"{what} `{node.name}`: generic parameters are not supported")


def parse_interface(node: ast.ClassDef) -> InterfaceDescription:
    reject_generics(node, "interface")
    functions: list[FunctionSignature] = []
    seen: set[str] = set()
    for stmt in node.body:
        if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        sig = parse_signature(stmt)
        if sig.name in seen:
            raise GenerationError.at(stmt, f"interface `{node.name}`: duplicate function `{sig.name}`")
        seen.add(sig.name)
        functions.append(sig)
    return InterfaceDescription(
        name=node.name,
        public=not node.name.startswith("_"),
        functions=tuple(functions),
    )


def _rt(attr: str) -> ast.expr:
    return n.dotted(f"{RUNTIME}.{attr}")


def _decode(value: str, tp: TypeDescriptor | None) -> ast.Call:
    target = n.clone(tp.node) if tp is not None else _rt("Any")
    return n.call(_rt("from_value"), n.name(value), target)


def _check_names(sig: FunctionSignature) -> None:
    if sig.name in _RESERVED:
        raise GenerationError.at(sig.node, f"function name `{sig.name}` collides with the bridge declaration")
    for p in sig.params:
        if p.name in _RESERVED:
            raise GenerationError.at(p.type.node, f"{sig.name}: parameter `{p.name}` shadows the bridge declaration")


def build_stub(sig: FunctionSignature, config: GenerationConfig) -> ast.AsyncFunctionDef:
    """Emit the marshaling coroutine for one interface function."""
    if not sig.is_async:
        raise GenerationError.at(sig.node, f"{sig.name}: invocation stubs must be declared `async`")
    _check_names(sig)
    command = config.command_for(sig.name)

    record = ast.Dict(
        keys=[n.const(camel_case(p.name)) for p in sig.params],
        values=[n.name(p.name) for p in sig.params],
    )
    bridge_call = ast.Await(value=n.call(n.name(BRIDGE_NAME), n.const(command), n.name("payload")))

    if sig.returns_result:
        on_ok = n.ret(n.call(_rt("Ok"), _decode("value", sig.success_type)))
        on_err: ast.stmt = n.ret(n.call(_rt("Err"), _decode("error", sig.error_type)))
    else:
        on_ok = n.ret(_decode("value", sig.success_type))
        failure = n.call(_rt("command_failed"), n.const(command), n.name("error"))
        on_err = ast.Raise(exc=failure, cause=None)

    body: list[ast.stmt] = [
        *n.docstring_of(sig.node.body),
        n.assign("args", record),
        n.assign("payload", n.call(_rt("to_value"), n.name("args"))),
        n.match(
            bridge_call,
            [
                n.case(n.class_pattern(_rt("Ok"), "value"), [on_ok]),
                n.case(n.class_pattern(_rt("Err"), "error"), [on_err]),
            ],
        ),
    ]
    logger.debug("stub %s -> command %r", sig.name, command)
    return n.function_def(
        sig.name,
        n.clone(sig.node.args),
        body,
        is_async=True,
        returns=n.clone(sig.node.returns),
    )


def bridge_declaration() -> ast.Assign:
    namespace = ast.Tuple(elts=[n.const(part) for part in CORE_NAMESPACE], ctx=ast.Load())
    return n.assign(BRIDGE_NAME, n.call(_rt("declare_bridge"), namespace, n.const(BRIDGE_NAME)))


def generate_invoke_stubs(
    iface: InterfaceDescription,
    config: GenerationConfig,
    ctx: EmissionContext,
    iface_node: ast.AST,
) -> ItemList[ast.stmt]:
    """Emit the bridge declaration (once per unit) and one stub per function."""
    stubs = [build_stub(sig, config) for sig in iface.functions]

    items: ItemList[ast.stmt] = ItemList()
    ctx.claim(iface.name, iface_node)
    ctx.require("runtime")
    if ctx.declare_once(BRIDGE_NAME):
        ctx.claim(BRIDGE_NAME, iface_node)
        items.append(bridge_declaration())
    for sig in iface.functions:
        ctx.claim(sig.name, sig.node)
    items.extend(stubs)
    logger.debug("interface %s: %d stub(s)", iface.name, len(stubs))
    return items
