"""Bridge declarations resolved against an installed host."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from typing import Any, Callable

from ..errors import BridgeError, BridgeNotInstalledError
from .result import Err, Ok
from .wire import from_value

logger = logging.getLogger(__name__)

# Fixed namespace paths the generated declarations resolve under.
CORE_NAMESPACE = ("bridge", "core")
EVENT_NAMESPACE = ("bridge", "event")

_HOSTS: dict[tuple[str, ...], Any] = {}


def install_host(namespace: Sequence[str], host: Any) -> None:
    """Install the object serving bridge operations under `namespace`."""
    key = tuple(namespace)
    _HOSTS[key] = host
    logger.debug("installed bridge host for %s", ".".join(key))


def uninstall_host(namespace: Sequence[str]) -> None:
    _HOSTS.pop(tuple(namespace), None)


class BridgeFunction:
    """An asynchronous host operation declared by generated code."""

    def __init__(self, namespace: Sequence[str], name: str):
        self._namespace = tuple(namespace)
        self._name = name

    @property
    def qualified_name(self) -> str:
        return ".".join((*self._namespace, self._name))

    def _resolve(self) -> Callable[..., Any]:
        host = _HOSTS.get(self._namespace)
        if host is None:
            raise BridgeNotInstalledError(f"no bridge host installed for {'.'.join(self._namespace)}")
        fn = getattr(host, self._name, None)
        if fn is None:
            raise BridgeNotInstalledError(f"bridge host does not provide {self.qualified_name}")
        return fn

    async def __call__(self, *args: Any) -> Ok[Any] | Err[Any]:
        fn = self._resolve()
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, (Ok, Err)):
            raise BridgeError(f"{self.qualified_name} returned {type(result).__name__}, expected Ok or Err")
        return result

    def __repr__(self) -> str:
        return f"<bridge {self.qualified_name}>"


def declare_bridge(namespace: Sequence[str], name: str) -> BridgeFunction:
    return BridgeFunction(namespace, name)


def command_failed(command: str, error: bytes) -> BridgeError:
    """Error raised by generated code when `command` reports a failure it cannot return."""
    return BridgeError(f"{command} failed: {from_value(error, Any)!r}")
