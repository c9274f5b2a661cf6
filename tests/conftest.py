# tests/conftest.py
"""Shared fixtures: a fresh context per test and a C parser for round trips."""

import pytest
from pycparser import c_parser

from ccgenor import Context


def parse_c(text: str):
    """Parse emitted C with pycparser (which does not preprocess)."""
    source = "\n".join(line for line in text.splitlines() if not line.startswith("#"))
    return c_parser.CParser().parse(source, filename="<ccgenor>")


@pytest.fixture
def ctx():
    return Context(name="unit")


@pytest.fixture
def ints(ctx):
    """Globals a..e of type int and p of type int *, as references."""
    refs = {}
    for name in "abcde":
        ctx.declare_global(name, ctx.int_t)
        refs[name] = ctx.ref(name)
    ctx.declare_global("p", ctx.pointer(ctx.int_t))
    refs["p"] = ctx.ref("p")
    return refs
