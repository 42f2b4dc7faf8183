from __future__ import annotations

import ast
import sys

import pytest

from hostbind.errors import GenerationError
from hostbind.model import ParamKind
from hostbind.signature import build_arguments, parse_signature, split_result, tail_name


def _fn(src: str) -> ast.stmt:
    return ast.parse(src).body[0]


def test_parse_signature_splits_result_types():
    sig = parse_signature(_fn("async def hello(name: str, count: int = 2) -> Result[str, MyError]: ..."))
    assert sig.name == "hello"
    assert sig.is_async is True
    assert [p.name for p in sig.params] == ["name", "count"]
    assert [p.type.text for p in sig.params] == ["str", "int"]
    assert sig.params[0].default is None
    assert isinstance(sig.params[1].default, ast.Constant)
    assert sig.success_type is not None and sig.success_type.text == "str"
    assert sig.error_type is not None and sig.error_type.text == "MyError"
    assert sig.returns_result is True


def test_parse_signature_plain_return_has_no_error_type():
    sig = parse_signature(_fn("def ping() -> list[int]: ..."))
    assert sig.is_async is False
    assert sig.params == ()
    assert sig.success_type is not None and sig.success_type.text == "list[int]"
    assert sig.error_type is None
    assert sig.returns_result is False


def test_parse_signature_without_return_annotation():
    sig = parse_signature(_fn("async def fire(x: int): ..."))
    assert sig.success_type is None
    assert sig.error_type is None


def test_parse_signature_records_parameter_kinds():
    sig = parse_signature(_fn("def f(a: int, /, b: str, *, c: bool = True) -> None: ..."))
    assert [p.kind for p in sig.params] == [
        ParamKind.POSITIONAL_ONLY,
        ParamKind.POSITIONAL,
        ParamKind.KEYWORD_ONLY,
    ]


@pytest.mark.parametrize(
    "src",
    [
        "def f(self, x: int) -> int: ...",
        "def f(cls, x: int) -> int: ...",
        "@classmethod\ndef f(x: int) -> int: ...",
    ],
)
def test_parse_signature_rejects_receivers(src: str):
    with pytest.raises(GenerationError, match="receiver arguments not supported"):
        parse_signature(_fn(src))


@pytest.mark.parametrize(
    "src, fragment",
    [
        ("def f(*args: int) -> None: ...", "*args"),
        ("def f(**kwargs: int) -> None: ...", "**kwargs"),
    ],
)
def test_parse_signature_rejects_collectors(src: str, fragment: str):
    with pytest.raises(GenerationError) as ei:
        parse_signature(_fn(src))
    assert fragment in str(ei.value)


def test_parse_signature_requires_annotations():
    with pytest.raises(GenerationError, match="needs a type annotation") as ei:
        parse_signature(_fn("def f(a: int,\n      b) -> None: ..."))
    assert ei.value.lineno == 2


@pytest.mark.skipif(sys.version_info < (3, 12), reason="PEP 695 syntax")
def test_parse_signature_rejects_generics():
    node = _fn("def f[T](x: T) -> T: ...")
    with pytest.raises(GenerationError, match="generic parameters"):
        parse_signature(node)
    assert parse_signature(node, allow_generics=True).name == "f"


def test_split_result_only_matches_two_argument_result():
    expr = ast.parse("Result[int, str]", mode="eval").body
    ok, err = split_result(expr)
    assert ast.unparse(ok) == "int"
    assert ast.unparse(err) == "str"
    assert split_result(ast.parse("rt.Result[int, str]", mode="eval").body) is not None
    assert split_result(ast.parse("Result[int]", mode="eval").body) is None
    assert split_result(ast.parse("Optional[int]", mode="eval").body) is None


def test_tail_name():
    assert tail_name(ast.parse("a.b.c", mode="eval").body) == "c"
    assert tail_name(ast.parse("deco(x=1)", mode="eval").body) == "deco"
    assert tail_name(ast.parse("x[0]", mode="eval").body) is None


def test_build_arguments_keeps_defaults_aligned():
    sig = parse_signature(_fn("def f(a: int, b: int = 1, *, c: str, d: str = 'x') -> None: ..."))
    args = build_arguments(list(sig.params[1:]))
    fn = ast.FunctionDef(
        name="g",
        args=args,
        body=[ast.Pass()],
        decorator_list=[],
        returns=None,
        type_comment=None,
        **({"type_params": []} if "type_params" in ast.FunctionDef._fields else {}),
    )
    assert ast.unparse(ast.fix_missing_locations(fn)) == "def g(b: int=1, *, c: str, d: str='x'):\n    pass"


def test_build_arguments_rejects_unspellable_order():
    sig = parse_signature(_fn("def f(a: int = 1, b: int = 2) -> None: ..."))
    a, b = sig.params
    from dataclasses import replace

    with pytest.raises(GenerationError, match="follows a parameter with a default"):
        build_arguments([a, replace(b, default=None)])
