"""Generate bindings for every trigger found in a module's source."""

from __future__ import annotations

import ast
import logging
from pathlib import Path

from .config import GenerationConfig, apply_key_values, default_config, parse_key_values
from .context import EmissionContext
from .errors import GenerationError
from .events import generate_event_bindings, parse_event
from .invoke import generate_invoke_stubs, parse_interface
from .sequence import ItemList
from .signature import tail_name
from .skeleton import HostPredicate, generate_skeleton, host_namespace_predicate, parse_candidates

logger = logging.getLogger(__name__)

INVOKE_TRIGGER = "invoke_bindings"
EVENT_TRIGGER = "event_bindings"
IMPL_TRIGGER = "impl_interface"


def _split_triggers(node: ast.ClassDef) -> tuple[dict[str, ast.expr], list[ast.expr]]:
    triggers: dict[str, ast.expr] = {}
    rest: list[ast.expr] = []
    for deco in node.decorator_list:
        kind = tail_name(deco)
        if kind in (INVOKE_TRIGGER, EVENT_TRIGGER):
            if kind in triggers:
                raise GenerationError.at(deco, f"duplicate `@{kind}` on `{node.name}`")
            triggers[kind] = deco
        else:
            rest.append(deco)
    if len(triggers) > 1:
        raise GenerationError.at(node, f"`{node.name}` cannot be both an interface and an event")
    return triggers, rest


def _trigger_config(deco: ast.expr, base: GenerationConfig, *, skip_positional: int = 0) -> GenerationConfig:
    if not isinstance(deco, ast.Call):
        return base
    return apply_key_values(base, parse_key_values(deco, skip_positional=skip_positional))


def _impl_call(node: ast.With) -> ast.Call | None:
    calls = [
        item.context_expr
        for item in node.items
        if isinstance(item.context_expr, ast.Call) and tail_name(item.context_expr) == IMPL_TRIGGER
    ]
    if not calls:
        return None
    if len(node.items) != 1:
        raise GenerationError.at(node, f"`{IMPL_TRIGGER}` must be the only context manager")
    if node.items[0].optional_vars is not None:
        raise GenerationError.at(node.items[0].optional_vars, f"`{IMPL_TRIGGER}` does not bind a name")
    call = calls[0]
    if not call.args:
        raise GenerationError.at(call, f"`{IMPL_TRIGGER}` expects the interface name, then `,` and options")
    return call


class _Unit:
    def __init__(self, config: GenerationConfig, is_host_owned: HostPredicate | None):
        self.config = config
        self.is_host_owned = is_host_owned
        self.ctx = EmissionContext()

    def transform(self, stmt: ast.stmt) -> ItemList[ast.stmt]:
        if isinstance(stmt, ast.ClassDef):
            triggers, rest = _split_triggers(stmt)
            if INVOKE_TRIGGER in triggers:
                return self._interface(stmt, triggers[INVOKE_TRIGGER], rest)
            if EVENT_TRIGGER in triggers:
                return self._event(stmt, triggers[EVENT_TRIGGER], rest)
        elif isinstance(stmt, ast.With):
            call = _impl_call(stmt)
            if call is not None:
                return self._skeleton(stmt, call)
        return ItemList([stmt])

    def _interface(self, node: ast.ClassDef, deco: ast.expr, rest: list[ast.expr]) -> ItemList[ast.stmt]:
        config = _trigger_config(deco, self.config)
        iface = parse_interface(node)
        stubs = generate_invoke_stubs(iface, config, self.ctx, node)
        node.decorator_list = rest
        items: ItemList[ast.stmt] = ItemList([node])
        items.extend(stubs)
        return items

    def _event(self, node: ast.ClassDef, deco: ast.expr, rest: list[ast.expr]) -> ItemList[ast.stmt]:
        _trigger_config(deco, self.config)
        event = parse_event(node)
        return generate_event_bindings(node, event, self.ctx, keep_decorators=rest)

    def _skeleton(self, node: ast.With, call: ast.Call) -> ItemList[ast.stmt]:
        config = _trigger_config(call, self.config, skip_positional=1)
        predicate = self.is_host_owned or host_namespace_predicate(config.host_namespace)
        return generate_skeleton(call.args[0], parse_candidates(node.body), predicate, self.ctx)


def _header_index(body: list[ast.stmt]) -> int:
    """Position after the module docstring and `from __future__` imports."""
    i = 0
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant):
        if isinstance(body[0].value.value, str):
            i = 1
    while i < len(body) and isinstance(body[i], ast.ImportFrom) and body[i].module == "__future__":
        i += 1
    return i


def generate_source(
    text: str,
    *,
    filename: str = "<unit>",
    config: GenerationConfig | None = None,
    is_host_owned: HostPredicate | None = None,
) -> str:
    """Transform one generation unit and return the generated module text.

    Raises GenerationError (pinpointed to the offending construct) on the
    first malformed trigger; nothing is emitted in that case.
    """
    try:
        tree = ast.parse(text, filename=filename)
    except SyntaxError as e:
        raise GenerationError(
            e.msg,
            filename=filename,
            lineno=e.lineno,
            col_offset=(e.offset - 1) if e.offset else None,
        ) from e

    unit = _Unit(config or default_config(), is_host_owned)
    body: ItemList[ast.stmt] = ItemList()
    try:
        for stmt in tree.body:
            body.extend(unit.transform(stmt))
    except GenerationError as e:
        if e.filename is None:
            e.filename = filename
        logger.debug("generation failed: %s", e)
        raise

    items = list(body)
    at = _header_index(items)
    out = ItemList(items[:at])
    out.extend(unit.ctx.header())
    out.extend(items[at:])
    logger.debug("generated %s (%d top-level statements)", filename, len(out))
    return out.unparse()


def generate_file(
    in_file: str | Path,
    out_file: str | Path,
    *,
    config: GenerationConfig | None = None,
    is_host_owned: HostPredicate | None = None,
) -> Path:
    """Generate bindings from `in_file` into `out_file`.

    The output file is only written when generation succeeds.
    """
    in_file = Path(in_file)
    out_file = Path(out_file)
    text = in_file.read_text(encoding="utf-8")
    generated = generate_source(text, filename=str(in_file), config=config, is_host_owned=is_host_owned)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(generated, encoding="utf-8")
    return out_file
