"""MessagePack wire codec used by generated code."""

from __future__ import annotations

import enum
import types
import typing
from dataclasses import MISSING, fields, is_dataclass
from typing import Any, Literal, Union, get_args, get_origin

import msgpack

from ..errors import MarshalError

_SCALARS = (bool, int, float, str, bytes)


def camel_case(name: str) -> str:
    """Translate a snake_case field name to the camelCase wire name."""
    parts = [p for p in name.split("_") if p]
    if not parts:
        return name
    head, *rest = parts
    return head[0].lower() + head[1:] + "".join(p[0].upper() + p[1:] for p in rest)


def _encode(v: Any) -> Any:
    if v is None or isinstance(v, _SCALARS):
        return v
    if isinstance(v, bytearray):
        return bytes(v)
    if isinstance(v, enum.Enum):
        return _encode(v.value)
    if is_dataclass(v) and not isinstance(v, type):
        return {f.name: _encode(getattr(v, f.name)) for f in fields(v)}
    if isinstance(v, (list, tuple)):
        return [_encode(item) for item in v]
    if isinstance(v, dict):
        return {_encode(k): _encode(vv) for k, vv in v.items()}
    raise MarshalError(f"cannot encode value of type {type(v).__name__}")


def to_value(v: Any) -> bytes:
    """Serialize a record (or any supported value) to the opaque wire value."""
    try:
        return msgpack.packb(_encode(v), use_bin_type=True)
    except MarshalError:
        raise
    except Exception as e:  # noqa: BLE001 - encode boundary
        raise MarshalError(str(e)) from e


def _unpack(payload: bytes) -> Any:
    if not isinstance(payload, (bytes, bytearray)):
        raise MarshalError(f"expected bytes on the wire, got {type(payload).__name__}")
    try:
        return msgpack.unpackb(payload, raw=False)
    except Exception as e:  # noqa: BLE001 - boundary decoding error
        raise MarshalError(str(e)) from e


def from_value(payload: bytes, tp: Any) -> Any:
    """Deserialize an opaque wire value into the declared type `tp`."""
    return _decode(_unpack(payload), tp, "value")


def decode_envelope(payload: bytes, tp: Any) -> Any:
    """Deserialize an event envelope `{payload: T}` and return the payload."""
    obj = _unpack(payload)
    if not isinstance(obj, dict) or "payload" not in obj:
        raise MarshalError("invalid event envelope")
    return _decode(obj["payload"], tp, "payload")


def _decode(v: Any, tp: Any, path: str) -> Any:
    if tp is Any or tp is object:
        return v
    if tp is None or tp is type(None):
        if v is not None:
            raise MarshalError(f"{path}: expected nil")
        return None

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is typing.Annotated:
        return _decode(v, args[0], path)
    if origin is Union or origin is types.UnionType:
        if v is None and type(None) in args:
            return None
        for arm in args:
            if arm is type(None):
                continue
            try:
                return _decode(v, arm, path)
            except MarshalError:
                continue
        raise MarshalError(f"{path}: value matches no member of {tp!r}")
    if origin is Literal:
        if v in args:
            return v
        raise MarshalError(f"{path}: expected one of {args!r}")
    if origin is list or tp is list:
        if not isinstance(v, list):
            raise MarshalError(f"{path}: expected list")
        inner = args[0] if args else Any
        return [_decode(item, inner, f"{path}[{i}]") for i, item in enumerate(v)]
    if origin is tuple or tp is tuple:
        if not isinstance(v, list):
            raise MarshalError(f"{path}: expected list")
        if not args:
            return tuple(v)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(_decode(item, args[0], f"{path}[{i}]") for i, item in enumerate(v))
        if len(v) != len(args):
            raise MarshalError(f"{path}: expected {len(args)} elements, got {len(v)}")
        return tuple(_decode(item, t, f"{path}[{i}]") for i, (item, t) in enumerate(zip(v, args)))
    if origin is dict or tp is dict:
        if not isinstance(v, dict):
            raise MarshalError(f"{path}: expected dict")
        kt, vt = args if args else (Any, Any)
        return {_decode(k, kt, path): _decode(vv, vt, f"{path}.{k}") for k, vv in v.items()}

    # Scalars
    if tp is bool:
        if not isinstance(v, bool):
            raise MarshalError(f"{path}: expected bool")
        return v
    if tp is int:
        if not isinstance(v, int) or isinstance(v, bool):
            raise MarshalError(f"{path}: expected int")
        return v
    if tp is float:
        if not isinstance(v, (int, float)) or isinstance(v, bool):
            raise MarshalError(f"{path}: expected float")
        return float(v)
    if tp is str:
        if not isinstance(v, str):
            raise MarshalError(f"{path}: expected str")
        return v
    if tp is bytes:
        if not isinstance(v, (bytes, bytearray)):
            raise MarshalError(f"{path}: expected bytes")
        return bytes(v)

    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        try:
            return tp(v)
        except ValueError as e:
            raise MarshalError(f"{path}: {e}") from None
    if isinstance(tp, type) and is_dataclass(tp):
        return _decode_record(v, tp, path)

    raise MarshalError(f"{path}: unsupported type {tp!r}")


def _decode_record(v: Any, cls: type, path: str) -> Any:
    if not isinstance(v, dict):
        raise MarshalError(f"{path}: expected dict for {cls.__name__}")
    try:
        hints = typing.get_type_hints(cls)
    except Exception as e:  # noqa: BLE001 - unresolved forward references
        raise MarshalError(f"{path}: cannot resolve field types of {cls.__name__}: {e}") from e

    values: dict[str, Any] = {}
    for f in fields(cls):
        if not f.init:
            continue
        if f.name in v:
            values[f.name] = _decode(v[f.name], hints.get(f.name, Any), f"{path}.{f.name}")
        elif f.default is MISSING and f.default_factory is MISSING:
            raise MarshalError(f"{path}: missing required field {f.name}")
    return cls(**values)
