"""Trigger markers.

They do nothing at runtime so annotated sources stay importable before
generation; `hostbind.generate` recognises them by name.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator


def invoke_bindings(cls: type | None = None, **options: str) -> Any:
    """Mark a class as an interface: `@invoke_bindings` or `@invoke_bindings(cmd_prefix="app_")`."""
    if cls is not None:
        return cls

    def mark(target: type) -> type:
        return target

    return mark


def event_bindings(cls: type) -> type:
    """Mark a class whose nested classes are the variants of an event."""
    return cls


@contextmanager
def impl_interface(interface: Any, **options: str) -> Iterator[None]:
    """Mark a block of function definitions implementing `interface`."""
    yield
