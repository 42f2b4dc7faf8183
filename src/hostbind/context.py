"""Per-unit emission state shared by the generators."""

from __future__ import annotations

import ast
import logging

from .errors import GenerationError
from .sequence import ItemList

logger = logging.getLogger(__name__)

# Module alias the generated code uses for `hostbind.runtime`.
RUNTIME = "_hostbind"

# Import key -> statement, in the order the header emits them.
_IMPORTS = {
    "dataclasses": "import dataclasses as _dataclasses",
    "enum": "import enum as _enum",
    "threading": "import threading as _threading",
    "typing": "import typing as _typing",
    "weakref": "import weakref as _weakref",
    "runtime": f"import hostbind.runtime as {RUNTIME}",
}


class EmissionContext:
    """Tracks what a generation unit has already emitted.

    Unit-wide declarations (bridge operations, the subscription type) are
    emitted at most once; the imports they need are collected into a header.
    Every top-level name a generator emits is claimed here so two constructs
    of one unit can never rebind the same name.
    """

    def __init__(self) -> None:
        self._imports: set[str] = set()
        self._declared: set[str] = set()
        self._names: set[str] = set()

    def claim(self, name: str, node: ast.AST) -> None:
        """Reserve a top-level name; raise at `node` if it is already taken."""
        if name in self._names:
            raise GenerationError.at(node, f"`{name}` is already defined in this unit")
        self._names.add(name)

    def require(self, *modules: str) -> None:
        for module in modules:
            if module not in _IMPORTS:
                raise KeyError(module)
            self._imports.add(module)

    def declare_once(self, key: str) -> bool:
        """Return True the first time `key` is declared in this unit."""
        if key in self._declared:
            return False
        self._declared.add(key)
        logger.debug("emitting unit declaration %s", key)
        return True

    def header(self) -> ItemList:
        lines = [stmt for key, stmt in _IMPORTS.items() if key in self._imports]
        return ItemList.parse("\n".join(lines))
