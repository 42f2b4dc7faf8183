"""Ordered statement lists spliced back into one unit."""

from __future__ import annotations

import ast
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

S = TypeVar("S", bound=ast.stmt)


class ItemList(Generic[S]):
    """An ordered list of statement nodes.

    Generators collect the items they emit here; the unit driver splices the
    lists back into the module body in order.
    """

    def __init__(self, items: Iterable[S] = ()) -> None:
        self._items: list[S] = list(items)

    @classmethod
    def parse(cls, source: str) -> "ItemList[ast.stmt]":
        return ItemList(ast.parse(source).body)

    def append(self, item: S) -> None:
        self._items.append(item)

    def extend(self, items: Iterable[S]) -> None:
        self._items.extend(items)

    def __iter__(self) -> Iterator[S]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> S:
        return self._items[index]

    def to_module(self) -> ast.Module:
        module = ast.Module(body=list(self._items), type_ignores=[])
        return ast.fix_missing_locations(module)

    def unparse(self) -> str:
        if not self._items:
            return ""
        return ast.unparse(self.to_module()) + "\n"
