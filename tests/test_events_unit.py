from __future__ import annotations

import ast
import asyncio
import gc
import threading

import pytest

from conftest import FakeEvents, import_generated
from hostbind import generate_source
from hostbind.errors import BridgeError, GenerationError
from hostbind.runtime import EVENT_NAMESPACE, Err, install_host

EVENTS = '''
"""Events raised by the host."""

from hostbind import event_bindings


@event_bindings
class AppEvent:
    """Everything the host can tell us."""

    class SomethingHappened:
        payload: bytes

    class SomeoneSaidHello(tuple[str]):
        pass

    class Moved(tuple[int, int]):
        """Pointer moved."""

    class NoPayload:
        ...
'''


@pytest.fixture()
def events_mod(tmp_path):
    return import_generated(tmp_path, generate_source(EVENTS))


@pytest.fixture()
def host():
    h = FakeEvents()
    install_host(EVENT_NAMESPACE, h)
    return h


def test_event_name_maps_every_shape_to_its_declared_name(events_mod):
    AppEvent = events_mod.AppEvent
    assert AppEvent.SomethingHappened(payload=b"\x00").event_name() == "SomethingHappened"
    assert AppEvent.SomeoneSaidHello("hi").event_name() == "SomeoneSaidHello"
    assert AppEvent.Moved(1, 2).event_name() == "Moved"
    assert AppEvent.NoPayload().event_name() == "NoPayload"
    assert AppEvent.Moved(1, 2)._1 == 2
    assert AppEvent.Moved.__doc__ == "Pointer moved."


def test_binding_has_payload_free_cases_with_matching_names(events_mod):
    Binding = events_mod.AppEventBinding
    assert [m.name for m in Binding] == ["SomethingHappened", "SomeoneSaidHello", "Moved", "NoPayload"]
    assert [m.as_str() for m in Binding] == [m.name for m in Binding]


def test_variants_are_frozen_dataclasses(events_mod):
    ev = events_mod.AppEvent.SomeoneSaidHello("hi")
    assert ev == events_mod.AppEvent.SomeoneSaidHello("hi")
    with pytest.raises(AttributeError):
        ev._0 = "other"  # type: ignore[misc]


def test_header_goes_after_docstring_and_future_imports():
    src = '"""Doc."""\nfrom __future__ import annotations\n' + EVENTS.split('"""Events raised by the host."""', 1)[1]
    tree = ast.parse(generate_source(src))
    assert ast.get_docstring(tree) == "Doc."
    assert isinstance(tree.body[1], ast.ImportFrom) and tree.body[1].module == "__future__"
    assert [ast.unparse(s) for s in tree.body[2:8]] == [
        "import dataclasses as _dataclasses",
        "import enum as _enum",
        "import threading as _threading",
        "import typing as _typing",
        "import weakref as _weakref",
        "import hostbind.runtime as _hostbind",
    ]


def test_subscription_is_emitted_once_per_unit():
    src = EVENTS + '''

@event_bindings
class Other:
    class Ping:
        pass
'''
    out = generate_source(src)
    assert out.count("class Subscription") == 1
    assert out.count("declare_bridge(") == 1
    assert "class OtherBinding(_enum.Enum)" in out


def test_listen_delivers_decoded_payloads(events_mod, host):
    Binding = events_mod.AppEventBinding
    seen: list[object] = []

    async def subscribe():
        return [
            await Binding.SomethingHappened.listen(seen.append),
            await Binding.SomeoneSaidHello.listen(seen.append),
            await Binding.Moved.listen(seen.append),
            await Binding.NoPayload.listen(seen.append),
        ]

    subs = asyncio.run(subscribe())
    assert [s.event_name for s in subs] == [m.name for m in Binding]

    host.emit("SomethingHappened", {"payload": b"\x01\x02"})
    host.emit("SomeoneSaidHello", "world")
    host.emit("Moved", [3, 4])
    host.emit("NoPayload", None)
    assert seen == [
        events_mod.AppEvent.SomethingHappened(payload=b"\x01\x02"),
        "world",
        (3, 4),
        None,
    ]


def test_release_twice_unlistens_once(events_mod, host):
    sub = asyncio.run(events_mod.AppEventBinding.NoPayload.listen(lambda _: None))
    assert not sub.released
    sub.unlisten()
    assert sub.released
    with sub:
        pass
    sub.close()
    del sub
    gc.collect()
    assert host.unlistened == ["NoPayload"]


def test_finaliser_releases_dropped_subscription(events_mod, host):
    sub = asyncio.run(events_mod.AppEventBinding.NoPayload.listen(lambda _: None))
    del sub
    gc.collect()
    assert host.unlistened == ["NoPayload"]


def test_no_delivery_after_release(events_mod, host):
    seen: list[object] = []
    sub = asyncio.run(events_mod.AppEventBinding.SomeoneSaidHello.listen(seen.append))
    host.emit("SomeoneSaidHello", "before")
    sub.unlisten()
    host.emit("SomeoneSaidHello", "after")
    assert seen == ["before"]


def test_release_waits_for_in_flight_delivery(events_mod, host):
    entered = threading.Event()
    proceed = threading.Event()
    done: list[str] = []

    def slow(payload):
        entered.set()
        proceed.wait(5)
        done.append(payload)

    sub = asyncio.run(events_mod.AppEventBinding.SomeoneSaidHello.listen(slow))
    worker = threading.Thread(target=host.emit, args=("SomeoneSaidHello", "x"))
    worker.start()
    assert entered.wait(5)

    releaser = threading.Thread(target=sub.unlisten)
    releaser.start()
    releaser.join(0.1)
    assert releaser.is_alive()
    assert host.unlistened == []

    proceed.set()
    worker.join(5)
    releaser.join(5)
    assert done == ["x"]
    assert host.unlistened == ["SomeoneSaidHello"]


def test_failed_registration_raises_bridge_error(events_mod):
    from conftest import pack

    class Refusing:
        async def listen(self, event_name, handler):
            return Err(pack("denied"))

    install_host(EVENT_NAMESPACE, Refusing())
    with pytest.raises(BridgeError, match="listen 'NoPayload' failed: 'denied'"):
        asyncio.run(events_mod.AppEventBinding.NoPayload.listen(lambda _: None))


@pytest.mark.parametrize(
    "body, fragment",
    [
        ("class A(tuple[int]):\n        x: int", "mixes positional and named"),
        ("class A:\n        x: int = 1", "field defaults"),
        ("class A(Base):\n        pass", "expected `tuple[...]`"),
        ("class A:\n        pass\n    class A:\n        pass", "duplicate variant"),
        ("x: int", "one nested class per variant"),
        ("class listen:\n        pass", "is reserved"),
        ("class A:\n        def f(self): ...", "`name: type` fields only"),
        ("class A:\n        event_name: str", "field name `event_name` is reserved"),
        ("class A:\n        _0: int", "field name `_0` is reserved"),
        ("class _x_:\n        pass", "`_sunder_` names are reserved by enum"),
        ("class __x:\n        pass", "names starting with `__`"),
        ("class mro:\n        pass", "reserved by enum"),
        ("class value:\n        pass", "reserved by enum"),
        ('"""Only a docstring."""', "no variants"),
    ],
)
def test_malformed_events_are_rejected(body: str, fragment: str):
    src = f"@event_bindings\nclass AppEvent:\n    {body}\n"
    with pytest.raises(GenerationError) as ei:
        generate_source(src)
    assert fragment in ei.value.message


def test_event_and_interface_triggers_are_exclusive():
    src = "@invoke_bindings\n@event_bindings\nclass Both:\n    class A:\n        pass\n"
    with pytest.raises(GenerationError, match="both an interface and an event"):
        generate_source(src)


def test_other_decorators_are_kept():
    src = "@event_bindings\n@register\nclass Ev:\n    class A:\n        pass\n"
    tree = ast.parse(generate_source(src))
    ev = next(s for s in tree.body if isinstance(s, ast.ClassDef) and s.name == "Ev")
    assert [ast.unparse(d) for d in ev.decorator_list] == ["register"]


def test_events_sharing_a_mixin_name_are_rejected():
    src = "@event_bindings\nclass Foo:\n    class A:\n        pass\n\n@event_bindings\nclass _Foo:\n    class B:\n        pass\n"
    with pytest.raises(GenerationError, match="`_FooVariant` is already defined in this unit") as ei:
        generate_source(src)
    assert ei.value.lineno == 7


def test_event_may_not_reuse_the_subscription_name():
    src = "@event_bindings\nclass Subscription:\n    class A:\n        pass\n"
    with pytest.raises(GenerationError, match="`Subscription` is already defined"):
        generate_source(src)


def test_event_generation_is_idempotent():
    assert generate_source(EVENTS) == generate_source(EVENTS)
