"""Runtime contracts consumed by generated binding modules."""

from __future__ import annotations

from typing import Any

from ..errors import BridgeError, BridgeNotInstalledError, MarshalError
from .bridge import (
    CORE_NAMESPACE,
    EVENT_NAMESPACE,
    BridgeFunction,
    command_failed,
    declare_bridge,
    install_host,
    uninstall_host,
)
from .result import Err, Ok, Result
from .wire import camel_case, decode_envelope, from_value, to_value

__all__ = [
    "Any",
    "CORE_NAMESPACE",
    "EVENT_NAMESPACE",
    "BridgeError",
    "BridgeFunction",
    "BridgeNotInstalledError",
    "Err",
    "MarshalError",
    "Ok",
    "Result",
    "camel_case",
    "command_failed",
    "declare_bridge",
    "decode_envelope",
    "from_value",
    "install_host",
    "to_value",
    "uninstall_host",
]
