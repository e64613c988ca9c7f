"""Pytest configuration for the bridgegen test suite."""

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_DIR))

from bridgegen import (  # noqa: E402
    Function, HostLang, Module, OpaqueType, Param, Receiver, analyze,
)

NOTICE = "// File automatically generated by bridgegen."


def block(text: str, header: str) -> str:
    """Lines from `header` up to the next line that is a lone `}`"""
    lines = text.splitlines()
    start = lines.index(header)
    end = lines.index("}", start)
    return "\n".join(lines[start:end + 1])


@pytest.fixture
def some_type_module() -> Module:
    """Opaque Rust type with an initializer, an owned-self and a borrowed-self method."""
    return Module(
        types=[OpaqueType("SomeType")],
        functions=[
            Function("new", return_type="SomeType", owner="SomeType", is_init=True),
            Function("consume", receiver=Receiver.OWNED, owner="SomeType"),
            Function("peek", receiver=Receiver.REF, owner="SomeType", return_type="u32"),
            Function("poke", receiver=Receiver.REF_MUT, owner="SomeType",
                     params=[Param("value", "u32")]),
        ],
    )


@pytest.fixture
def swift_type_module() -> Module:
    """Swift implemented type with one method called from Rust."""
    return Module(
        types=[OpaqueType("Logger", host_lang=HostLang.SWIFT)],
        functions=[
            Function("log", receiver=Receiver.REF, owner="Logger", host_lang=HostLang.SWIFT,
                     params=[Param("msg", "&str")]),
        ],
    )


@pytest.fixture
def some_type_analysis(some_type_module):
    return analyze(some_type_module)
