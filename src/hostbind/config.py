"""Generation configuration and trigger key-value parsing."""

from __future__ import annotations

import ast
import logging
import os
from dataclasses import dataclass, replace

from .errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_HOST_NAMESPACE = "host"

# Trigger keyword -> GenerationConfig field.
_KNOWN_KEYS = {
    "cmd_prefix": "cmd_prefix",
    "host_namespace": "host_namespace",
}


@dataclass(frozen=True)
class GenerationConfig:
    # Prepended to every function name to form the wire command identifier.
    cmd_prefix: str = ""
    # Leading type-path segment marking host-owned skeleton parameters.
    host_namespace: str = DEFAULT_HOST_NAMESPACE

    def command_for(self, function_name: str) -> str:
        return self.cmd_prefix + function_name


def default_config() -> GenerationConfig:
    """Return the base configuration.

    Override with `HOSTBIND_CMD_PREFIX` and `HOSTBIND_HOST_NAMESPACE`.
    """
    return GenerationConfig(
        cmd_prefix=os.environ.get("HOSTBIND_CMD_PREFIX", ""),
        host_namespace=os.environ.get("HOSTBIND_HOST_NAMESPACE") or DEFAULT_HOST_NAMESPACE,
    )


def parse_key_values(call: ast.Call, *, skip_positional: int = 0) -> dict[str, str]:
    """Parse `key="value"` keywords of a trigger call.

    The first `skip_positional` positional arguments belong to the trigger
    itself; any further positional argument is malformed.
    """
    extra = call.args[skip_positional:]
    if extra:
        raise GenerationError.at(extra[0], "expected `key = \"value\"` argument")
    out: dict[str, str] = {}
    for kw in call.keywords:
        if kw.arg is None:
            raise GenerationError.at(kw.value, "expected `key = \"value\"` argument, got `**` expansion")
        if not (isinstance(kw.value, ast.Constant) and isinstance(kw.value.value, str)):
            raise GenerationError.at(kw.value, f"expected string literal for `{kw.arg}`")
        out[kw.arg] = kw.value.value
    return out


def apply_key_values(base: GenerationConfig, values: dict[str, str]) -> GenerationConfig:
    changes: dict[str, str] = {}
    for key, value in values.items():
        attr = _KNOWN_KEYS.get(key)
        if attr is None:
            logger.warning("ignoring unknown generation option %r", key)
            continue
        changes[attr] = value
    if not changes:
        return base
    return replace(base, **changes)
