"""Domain-specific errors for hostbind."""

from __future__ import annotations

import ast


class HostbindError(Exception):
    """Base error for hostbind."""


class GenerationError(HostbindError):
    """Raised when a generation unit cannot be transformed.

    Generation of the whole unit is aborted; no partial output is produced.
    """

    def __init__(
        self,
        message: str,
        *,
        filename: str | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.lineno = lineno
        self.col_offset = col_offset

    @classmethod
    def at(cls, node: ast.AST, message: str) -> "GenerationError":
        return cls(
            message,
            lineno=getattr(node, "lineno", None),
            col_offset=getattr(node, "col_offset", None),
        )

    def __str__(self) -> str:
        where = self.filename or "<unit>"
        if self.lineno is not None:
            where = f"{where}:{self.lineno}"
            if self.col_offset is not None:
                where = f"{where}:{self.col_offset + 1}"
        return f"{where}: {self.message}"


class MarshalError(HostbindError):
    """Raised when a value cannot be encoded to or decoded from the wire."""


class BridgeError(HostbindError):
    """Raised when the host bridge reports a failure or breaks its contract."""


class BridgeNotInstalledError(BridgeError):
    """Raised when generated code calls a bridge namespace with no host installed."""
