from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import msgpack
import pytest


@pytest.fixture(autouse=True)
def _reset_bridge_hosts():
    # Tests run in one Python process; clear process-global host registrations between tests.
    import hostbind.runtime.bridge

    hostbind.runtime.bridge._HOSTS.clear()
    yield
    hostbind.runtime.bridge._HOSTS.clear()


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch):
    monkeypatch.delenv("HOSTBIND_CMD_PREFIX", raising=False)
    monkeypatch.delenv("HOSTBIND_HOST_NAMESPACE", raising=False)


_counter = 0


def import_generated(tmp_path: Path, text: str):
    """Write generated text into tmp_path and import it as a fresh module."""
    global _counter
    _counter += 1
    name = f"hostbind_generated_{_counter}"
    path = tmp_path / f"{name}.py"
    path.write_text(text, encoding="utf-8")
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None
    mod = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    sys.modules[spec.name] = mod
    spec.loader.exec_module(mod)  # type: ignore[attr-defined]
    return mod


def pack(value) -> bytes:
    return msgpack.packb(value, use_bin_type=True)


def unpack(payload: bytes):
    return msgpack.unpackb(payload, raw=False)


class FakeCore:
    """Bridge host for ("bridge", "core") replying from a command table."""

    def __init__(self, replies=None):
        self.calls: list[tuple[str, object]] = []
        self.replies = replies or {}

    async def invoke(self, command: str, payload: bytes):
        self.calls.append((command, unpack(payload)))
        return self.replies[command](unpack(payload))


class FakeEvents:
    """Bridge host for ("bridge", "event") that records handlers and unlistens."""

    def __init__(self):
        self.handlers: dict[str, object] = {}
        self.unlistened: list[str] = []

    async def listen(self, event_name: str, handler):
        from hostbind.runtime import Ok

        self.handlers[event_name] = handler

        def unlisten() -> None:
            self.unlistened.append(event_name)

        return Ok(unlisten)

    def emit(self, event_name: str, payload) -> None:
        self.handlers[event_name](pack({"payload": payload}))
