"""Typed descriptions parsed from a generation unit."""

from __future__ import annotations

import ast
import enum
from dataclasses import dataclass, field


def _leading_segment(node: ast.expr) -> str | None:
    """Return the root name of a dotted type path, or None for non-path types."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            node = ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return None
    while True:
        if isinstance(node, ast.Subscript):
            node = node.value
        elif isinstance(node, ast.Attribute):
            node = node.value
        elif isinstance(node, ast.Name):
            return node.id
        else:
            return None


@dataclass(frozen=True)
class TypeDescriptor:
    node: ast.expr = field(compare=False, repr=False)
    text: str

    @classmethod
    def from_node(cls, node: ast.expr) -> "TypeDescriptor":
        return cls(node=node, text=ast.unparse(node))

    @property
    def leading_segment(self) -> str | None:
        return _leading_segment(self.node)


class ParamKind(enum.Enum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL = "positional"
    KEYWORD_ONLY = "keyword_only"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: TypeDescriptor
    kind: ParamKind = ParamKind.POSITIONAL
    default: ast.expr | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    params: tuple[Parameter, ...]
    success_type: TypeDescriptor | None
    error_type: TypeDescriptor | None
    is_async: bool
    # The definition this signature was parsed from.
    node: ast.FunctionDef | ast.AsyncFunctionDef = field(compare=False, repr=False)

    @property
    def returns_result(self) -> bool:
        return self.error_type is not None


@dataclass(frozen=True)
class InterfaceDescription:
    name: str
    public: bool
    functions: tuple[FunctionSignature, ...]


@dataclass(frozen=True)
class ImplementationCandidate:
    """A function used only as a template for skeleton generation."""

    signature: FunctionSignature

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def node(self) -> ast.FunctionDef | ast.AsyncFunctionDef:
        return self.signature.node


class PayloadShape(enum.Enum):
    NONE = "none"
    POSITIONAL = "positional"
    NAMED = "named"


@dataclass(frozen=True)
class Variant:
    name: str
    shape: PayloadShape
    # POSITIONAL: element types; NAMED: (field name, type) pairs.
    positional: tuple[TypeDescriptor, ...] = ()
    named: tuple[tuple[str, TypeDescriptor], ...] = ()

    @property
    def field_names(self) -> list[str]:
        if self.shape is PayloadShape.NAMED:
            return [name for name, _ in self.named]
        if self.shape is PayloadShape.POSITIONAL:
            return [f"_{i}" for i in range(len(self.positional))]
        return []


@dataclass(frozen=True)
class EventDescription:
    name: str
    public: bool
    variants: tuple[Variant, ...]
