"""Event metadata: name resolution, binding companions and subscriptions."""

from __future__ import annotations

import ast
import logging
import re

from . import nodes as n
from .context import RUNTIME, EmissionContext
from .errors import GenerationError
from .invoke import reject_generics
from .model import EventDescription, PayloadShape, TypeDescriptor, Variant
from .runtime.bridge import EVENT_NAMESPACE
from .sequence import ItemList
from .signature import has_type_params, tail_name

logger = logging.getLogger(__name__)

LISTEN_NAME = "listen"
SUBSCRIPTION_NAME = "Subscription"
# Methods of the generated types; a variant may not shadow them.
_RESERVED_MEMBERS = {"event_name", "as_str", "listen"}
# Names `enum.Enum` refuses or treats as something other than a member.
_ENUM_RESERVED = {"mro", "name", "value"}
_POSITIONAL_FIELD = re.compile(r"_\d+")


def _is_filler(stmt: ast.stmt) -> bool:
    """Docstrings, `pass` and `...` carry no variant information."""
    if isinstance(stmt, ast.Pass):
        return True
    return isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) and (
        isinstance(stmt.value.value, str) or stmt.value.value is Ellipsis
    )


def _tuple_types(base: ast.expr) -> tuple[TypeDescriptor, ...] | None:
    if not (isinstance(base, ast.Subscript) and tail_name(base.value) in {"tuple", "Tuple"}):
        return None
    elts = base.slice.elts if isinstance(base.slice, ast.Tuple) else [base.slice]
    return tuple(TypeDescriptor.from_node(e) for e in elts)


def parse_variant(node: ast.ClassDef) -> Variant:
    where = f"variant `{node.name}`"
    if has_type_params(node):
        raise GenerationError.at(node, f"{where}: generic parameters are not supported")
    if node.decorator_list:
        raise GenerationError.at(node.decorator_list[0], f"{where}: decorators are not supported")
    if node.keywords:
        raise GenerationError.at(node.keywords[0], f"{where}: class keywords are not supported")

    positional: tuple[TypeDescriptor, ...] | None = None
    if node.bases:
        positional = _tuple_types(node.bases[0]) if len(node.bases) == 1 else None
        if positional is None:
            raise GenerationError.at(node.bases[0], f"{where}: expected `tuple[...]` as the only base")
        if not positional:
            raise GenerationError.at(node.bases[0], f"{where}: positional payload needs at least one type")

    named: list[tuple[str, TypeDescriptor]] = []
    for stmt in node.body:
        if _is_filler(stmt):
            continue
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            if stmt.value is not None:
                raise GenerationError.at(stmt.value, f"{where}: field defaults are not supported")
            field = stmt.target.id
            if field == "event_name" or _POSITIONAL_FIELD.fullmatch(field):
                raise GenerationError.at(stmt.target, f"{where}: field name `{field}` is reserved")
            named.append((stmt.target.id, TypeDescriptor.from_node(stmt.annotation)))
            continue
        raise GenerationError.at(stmt, f"{where}: expected `name: type` fields only")

    if positional is not None:
        if named:
            raise GenerationError.at(node, f"{where}: mixes positional and named payload")
        return Variant(name=node.name, shape=PayloadShape.POSITIONAL, positional=positional)
    if named:
        return Variant(name=node.name, shape=PayloadShape.NAMED, named=tuple(named))
    return Variant(name=node.name, shape=PayloadShape.NONE)


def _enum_member_problem(name: str) -> str | None:
    if name.startswith("__"):
        return "names starting with `__` cannot be enum members"
    if len(name) > 1 and name.startswith("_") and name.endswith("_"):
        return "`_sunder_` names are reserved by enum"
    if name in _ENUM_RESERVED:
        return "the name is reserved by enum"
    return None


def parse_event(node: ast.ClassDef) -> EventDescription:
    reject_generics(node, "event")
    variants: list[Variant] = []
    seen: set[str] = set()
    for stmt in node.body:
        if _is_filler(stmt):
            continue
        if not isinstance(stmt, ast.ClassDef):
            raise GenerationError.at(stmt, f"event `{node.name}`: expected one nested class per variant")
        variant = parse_variant(stmt)
        if variant.name in _RESERVED_MEMBERS:
            raise GenerationError.at(stmt, f"event `{node.name}`: variant name `{variant.name}` is reserved")
        problem = _enum_member_problem(variant.name)
        if problem is not None:
            raise GenerationError.at(stmt, f"event `{node.name}`: variant name `{variant.name}`: {problem}")
        if variant.name in seen:
            raise GenerationError.at(stmt, f"event `{node.name}`: duplicate variant `{variant.name}`")
        seen.add(variant.name)
        variants.append(variant)
    if not variants:
        raise GenerationError.at(node, f"event `{node.name}`: no variants")
    return EventDescription(name=node.name, public=not node.name.startswith("_"), variants=tuple(variants))


def mixin_name(event: EventDescription) -> str:
    return f"_{event.name.lstrip('_')}Variant"


def binding_name(event: EventDescription) -> str:
    return f"{event.name}Binding"


def _name_match(subject: str, cases: list[tuple[ast.pattern, str]]) -> ast.Match:
    return n.match(n.name(subject), [n.case(pattern, [n.ret(n.const(lit))]) for pattern, lit in cases])


def build_mixin(event: EventDescription) -> ast.ClassDef:
    """`event_name()`: every variant resolves to its declared name, whatever its payload."""
    resolve = _name_match(
        "self",
        [(n.class_pattern(n.dotted(f"{event.name}.{v.name}")), v.name) for v in event.variants],
    )
    not_variant = ast.Raise(
        exc=n.call("TypeError", n.const(f"not a variant of {event.name}")),
        cause=None,
    )
    method = n.function_def(
        "event_name",
        n.arguments(("self", None)),
        [resolve, not_variant],
        is_async=False,
        returns=n.name("str"),
    )
    return n.class_def(mixin_name(event), [method])


def _variant_class(variant: Variant, source: ast.ClassDef, mixin: str) -> ast.ClassDef:
    fields: list[ast.stmt] = []
    if variant.shape is PayloadShape.NAMED:
        fields = [n.clone(stmt) for stmt in source.body if isinstance(stmt, ast.AnnAssign)]
    elif variant.shape is PayloadShape.POSITIONAL:
        fields = [
            ast.AnnAssign(target=n.store(field), annotation=n.clone(tp.node), value=None, simple=1)
            for field, tp in zip(variant.field_names, variant.positional)
        ]
    dataclass = n.call(n.dotted("_dataclasses.dataclass"), frozen=n.const(True))
    return n.class_def(
        variant.name,
        [*n.docstring_of(source.body), *fields],
        bases=[n.name(mixin)],
        decorators=[dataclass],
    )


def rewrite_event(node: ast.ClassDef, event: EventDescription, keep_decorators: list[ast.expr]) -> ast.ClassDef:
    """Re-emit the union: variants become frozen dataclasses sharing the mixin."""
    mixin = mixin_name(event)
    sources = {stmt.name: stmt for stmt in node.body if isinstance(stmt, ast.ClassDef)}
    body = [
        *n.docstring_of(node.body),
        *(_variant_class(v, sources[v.name], mixin) for v in event.variants),
    ]
    return n.class_def(
        event.name,
        body,
        bases=[n.name(mixin), *map(n.clone, node.bases)],
        keywords=[n.clone(kw) for kw in node.keywords],
        decorators=keep_decorators,
    )


def payload_type(event: EventDescription, variant: Variant) -> ast.expr:
    """Decode target handed to the listener callback for `variant`."""
    if variant.shape is PayloadShape.NONE:
        return n.const(None)
    if variant.shape is PayloadShape.NAMED:
        return n.dotted(f"{event.name}.{variant.name}")
    if len(variant.positional) == 1:
        return n.clone(variant.positional[0].node)
    elts = ast.Tuple(elts=[n.clone(tp.node) for tp in variant.positional], ctx=ast.Load())
    return ast.Subscript(value=n.name("tuple"), slice=elts, ctx=ast.Load())


def build_binding(event: EventDescription) -> ast.ClassDef:
    """Payload-free companion enum with `as_str()` and `listen()` per case."""
    binding = binding_name(event)
    members: list[ast.stmt] = [n.assign(v.name, n.call("_enum.auto")) for v in event.variants]

    def member(v: Variant) -> ast.pattern:
        return n.value_pattern(n.dotted(f"{binding}.{v.name}"))

    as_str = n.function_def(
        "as_str",
        n.arguments(("self", None)),
        [_name_match("self", [(member(v), v.name) for v in event.variants])],
        is_async=False,
        returns=n.name("str"),
    )

    register = [
        n.case(
            member(v),
            [
                n.ret(
                    ast.Await(
                        value=n.call(
                            f"{SUBSCRIPTION_NAME}.register",
                            n.const(v.name),
                            n.name("callback"),
                            payload_type(event, v),
                        )
                    )
                )
            ],
        )
        for v in event.variants
    ]
    callback_type = ast.Subscript(
        value=n.dotted("_typing.Callable"),
        slice=ast.Tuple(
            elts=[ast.List(elts=[n.dotted("_typing.Any")], ctx=ast.Load()), n.const(None)],
            ctx=ast.Load(),
        ),
        ctx=ast.Load(),
    )
    listen = n.function_def(
        "listen",
        n.arguments(("self", None), ("callback", callback_type)),
        [n.match(n.name("self"), register)],
        is_async=True,
        returns=n.name(SUBSCRIPTION_NAME),
    )
    return n.class_def(binding, [*members, as_str, listen], bases=[n.dotted("_enum.Enum")])


def _subscription_source() -> str:
    return f'''
{LISTEN_NAME} = {RUNTIME}.declare_bridge({EVENT_NAMESPACE!r}, {LISTEN_NAME!r})


class {SUBSCRIPTION_NAME}:
    """Active registration of a handler for one host event.

    Releasing it unlistens exactly once; no delivery reaches the callback
    after `unlisten()` returns. The host only holds a weak reference, so
    dropping the last reference releases the registration too.
    """

    def __init__(self, event_name: str, callback, payload_type) -> None:
        self.event_name = event_name
        self._callback = callback
        self._payload_type = payload_type
        self._lock = _threading.RLock()
        self._unlisten = None
        self._released = False

    @classmethod
    async def register(cls, event_name: str, callback, payload_type) -> "{SUBSCRIPTION_NAME}":
        sub = cls(event_name, callback, payload_type)
        ref = _weakref.ref(sub)

        def handler(value: bytes) -> None:
            target = ref()
            if target is not None:
                target._handle(value)

        match await {LISTEN_NAME}(event_name, handler):
            case {RUNTIME}.Ok(unlisten):
                sub._unlisten = unlisten
                return sub
            case {RUNTIME}.Err(error):
                sub._released = True
                raise {RUNTIME}.command_failed(f"listen {{event_name!r}}", error)

    def _handle(self, value: bytes) -> None:
        with self._lock:
            if self._released:
                return
            self._callback({RUNTIME}.decode_envelope(value, self._payload_type))

    @property
    def released(self) -> bool:
        return self._released

    def unlisten(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            unlisten, self._unlisten = self._unlisten, None
        if unlisten is not None:
            unlisten()

    def close(self) -> None:
        self.unlisten()

    def __enter__(self) -> "{SUBSCRIPTION_NAME}":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unlisten()

    def __del__(self) -> None:
        # Best-effort release; ignore errors at interpreter shutdown.
        try:
            self.unlisten()
        except Exception:
            return

    def __repr__(self) -> str:
        state = "released" if self._released else "active"
        return f"<{SUBSCRIPTION_NAME} {{self.event_name!r}} {{state}}>"
'''


def generate_event_bindings(
    node: ast.ClassDef,
    event: EventDescription,
    ctx: EmissionContext,
    *,
    keep_decorators: list[ast.expr] | None = None,
) -> ItemList[ast.stmt]:
    """Emit the mixin, the rewritten union, its binding enum and, once per unit,
    the `listen` declaration with the subscription type."""
    ctx.require("dataclasses", "enum", "threading", "typing", "weakref", "runtime")
    items: ItemList[ast.stmt] = ItemList()
    if ctx.declare_once(SUBSCRIPTION_NAME):
        ctx.claim(LISTEN_NAME, node)
        ctx.claim(SUBSCRIPTION_NAME, node)
        items.extend(ItemList.parse(_subscription_source()))
    for generated in (mixin_name(event), event.name, binding_name(event)):
        ctx.claim(generated, node)
    items.append(build_mixin(event))
    items.append(rewrite_event(node, event, keep_decorators or []))
    items.append(build_binding(event))
    logger.debug("event %s: %d variant(s)", event.name, len(event.variants))
    return items
