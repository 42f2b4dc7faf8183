"""hostbind: generate typed invocation stubs, skeletons and event bindings for a host bridge."""

from __future__ import annotations

import logging

from . import errors, runtime
from .config import GenerationConfig, default_config
from .errors import BridgeError, GenerationError, HostbindError, MarshalError
from .generate import generate_file, generate_source
from .markers import event_bindings, impl_interface, invoke_bindings
from .skeleton import host_namespace_predicate

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BridgeError",
    "GenerationConfig",
    "GenerationError",
    "HostbindError",
    "MarshalError",
    "default_config",
    "errors",
    "event_bindings",
    "generate_file",
    "generate_source",
    "host_namespace_predicate",
    "impl_interface",
    "invoke_bindings",
    "runtime",
]
