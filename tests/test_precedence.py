# tests/test_precedence.py
"""Minimal parenthesization: parentheses appear exactly where C needs them."""

import pytest

from ccgenor.printer import expression
from ccgenor.semantics import operators as ops

# One operator per binary precedence level
LEVEL_OPERATORS = ["*", "+", "<<", "<", "==", "&", "^", "|", "&&", "||", "=", ","]


def _join(op: str, lhs: str, rhs: str) -> str:
    if op == ",":
        return f"{lhs}, {rhs}"
    return f"{lhs} {op} {rhs}"


def _needs_parens(outer: str, inner: str, side: str) -> bool:
    o = ops.BINARY_OPERATORS[outer]
    i = ops.BINARY_OPERATORS[inner]
    if i.precedence < o.precedence:
        return True
    if side == "lhs":
        # assignment targets must be unary expressions
        if o.is_assignment:
            return True
        return i.precedence == o.precedence and o.assoc is ops.Assoc.RIGHT
    return i.precedence == o.precedence and o.assoc is ops.Assoc.LEFT


PAIRS = [(outer, inner) for outer in LEVEL_OPERATORS for inner in LEVEL_OPERATORS]
PAIR_IDS = [f"{outer}_over_{inner}" for outer, inner in PAIRS]


class TestBinaryNesting:

    @pytest.mark.parametrize("outer,inner", PAIRS, ids=PAIR_IDS)
    def test_nested_on_left(self, ctx, ints, outer, inner):
        nested = ctx.binary(inner, ints["a"], ints["b"])
        text = _join(inner, "a", "b")
        if _needs_parens(outer, inner, "lhs"):
            text = f"({text})"
        assert expression(ctx.binary(outer, nested, ints["c"])) == _join(outer, text, "c")

    @pytest.mark.parametrize("outer,inner", PAIRS, ids=PAIR_IDS)
    def test_nested_on_right(self, ctx, ints, outer, inner):
        nested = ctx.binary(inner, ints["b"], ints["c"])
        text = _join(inner, "b", "c")
        if _needs_parens(outer, inner, "rhs"):
            text = f"({text})"
        assert expression(ctx.binary(outer, ints["a"], nested)) == _join(outer, "a", text)

    @pytest.mark.parametrize("op", ["-", "/", "%", "<<", "<"])
    def test_left_associative_chains(self, ctx, ints, op):
        a, b, c = ints["a"], ints["b"], ints["c"]
        assert expression(ctx.binary(op, ctx.binary(op, a, b), c)) == f"a {op} b {op} c"
        assert expression(ctx.binary(op, a, ctx.binary(op, b, c))) == f"a {op} (b {op} c)"

    def test_assignment_chain(self, ctx, ints):
        a, b, c = ints["a"], ints["b"], ints["c"]
        assert expression(ctx.assign(a, ctx.assign(b, c))) == "a = b = c"
        assert expression(ctx.assign(a, ctx.assign(b, c, "+="), "*=")) == "a *= b += c"

    def test_same_level_mixed_operators(self, ctx, ints):
        a, b, c = ints["a"], ints["b"], ints["c"]
        assert expression(ctx.binary("+", ctx.binary("-", a, b), c)) == "a - b + c"
        assert expression(ctx.binary("-", a, ctx.binary("+", b, c))) == "a - (b + c)"
        assert expression(ctx.binary("*", a, ctx.binary("/", b, c))) == "a * (b / c)"


class TestUnaryAndPostfix:

    def test_unary_over_binary(self, ctx, ints):
        assert expression(ctx.unary("-", ctx.binary("+", ints["a"], ints["b"]))) == "-(a + b)"
        assert expression(ctx.unary("!", ctx.binary("&&", ints["a"], ints["b"]))) == "!(a && b)"

    def test_binary_over_unary(self, ctx, ints):
        assert expression(ctx.binary("*", ctx.unary("-", ints["a"]), ints["b"])) == "-a * b"
        assert expression(ctx.binary("-", ints["a"], ctx.unary("-", ints["b"]))) == "a - -b"

    def test_dereference_and_increment(self, ctx, ints):
        p = ints["p"]
        assert expression(ctx.unary("*", ctx.postfix("++", p))) == "*p++"
        assert expression(ctx.postfix("++", ctx.unary("*", p))) == "(*p)++"
        assert expression(ctx.index(ctx.unary("*", p), 0)) == "(*p)[0]"

    @pytest.mark.parametrize("outer,inner,expected", [
        ("-", "-", "- -a"),
        ("-", "--", "- --a"),
        ("+", "+", "+ +a"),
        ("+", "++", "+ ++a"),
        ("&", "&", "& &a"),
        ("-", "+", "-+a"),
        ("!", "-", "!-a"),
        ("~", "~", "~~a"),
        ("*", "&", "*&a"),
    ], ids=[
        "neg_neg", "neg_predec", "plus_plus", "plus_preinc", "addr_addr",
        "neg_plus", "not_neg", "compl_compl", "deref_addr",
    ])
    def test_prefix_tokens_do_not_fuse(self, ctx, ints, outer, inner, expected):
        assert expression(ctx.unary(outer, ctx.unary(inner, ints["a"]))) == expected


class TestConditional:

    def test_nested_in_else_branch(self, ctx, ints):
        a, b, c, d, e = (ints[n] for n in "abcde")
        assert expression(ctx.conditional(a, b, ctx.conditional(c, d, e))) == "a ? b : c ? d : e"

    def test_nested_in_condition(self, ctx, ints):
        a, b, c, d, e = (ints[n] for n in "abcde")
        assert expression(ctx.conditional(ctx.conditional(a, b, c), d, e)) == "(a ? b : c) ? d : e"

    def test_nested_in_then_branch(self, ctx, ints):
        a, b, c, d, e = (ints[n] for n in "abcde")
        assert expression(ctx.conditional(a, ctx.conditional(b, c, d), e)) == "a ? b ? c : d : e"

    def test_comma_in_then_branch(self, ctx, ints):
        a, b, c, d = (ints[n] for n in "abcd")
        assert expression(ctx.conditional(a, ctx.comma(b, c), d)) == "a ? b, c : d"

    def test_assignment_operands(self, ctx, ints):
        a, b, c, d = (ints[n] for n in "abcd")
        assert expression(ctx.conditional(ctx.assign(a, b), c, d)) == "(a = b) ? c : d"
        assert expression(ctx.conditional(a, b, ctx.assign(c, d))) == "a ? b : (c = d)"
        assert expression(ctx.assign(a, ctx.conditional(b, c, d))) == "a = b ? c : d"

    def test_logical_or_condition(self, ctx, ints):
        a, b, c, d = (ints[n] for n in "abcd")
        assert expression(ctx.conditional(ctx.binary("||", a, b), c, d)) == "a || b ? c : d"

    def test_as_binary_operand(self, ctx, ints):
        a, b, c, d = (ints[n] for n in "abcd")
        assert expression(ctx.binary("+", ctx.conditional(a, b, c), d)) == "(a ? b : c) + d"


class TestCastsAndSizeof:

    def test_cast_operand(self, ctx, ints):
        assert expression(ctx.cast(ctx.long_t, ctx.binary("+", ints["a"], ints["b"]))) == "(long)(a + b)"
        assert expression(ctx.cast(ctx.long_t, ctx.unary("-", ints["a"]))) == "(long)-a"

    def test_cast_as_operand(self, ctx, ints):
        cast = ctx.cast(ctx.long_t, ints["a"])
        assert expression(ctx.binary("+", cast, ints["b"])) == "(long)a + b"
        assert expression(ctx.unary("-", cast)) == "-(long)a"
        assert expression(ctx.member(ctx.cast(ctx.pointer(ctx.int_t), ints["p"]), "x", arrow=True)) \
            == "((int *)p)->x"

    def test_sizeof_forms(self, ctx, ints):
        assert expression(ctx.sizeof(ctx.cast(ctx.long_t, ints["a"]))) == "sizeof((long)a)"
        assert expression(ctx.sizeof(ctx.unary("*", ints["p"]))) == "sizeof *p"
        assert expression(ctx.binary("*", ctx.sizeof(ctx.int_t), ints["a"])) == "sizeof(int) * a"
        assert expression(ctx.sizeof(ctx.sizeof(ints["a"]))) == "sizeof sizeof a"


class TestListPositions:

    def test_comma_inside_call_arguments(self, ctx, ints):
        ctx.declare_global("f", ctx.function_type(ctx.int_t, [ctx.int_t, ctx.int_t]))
        call = ctx.call("f", [ctx.comma(ints["a"], ints["b"]), ctx.assign(ints["c"], 1)])
        assert expression(call) == "f((a, b), c = 1)"

    def test_comma_inside_index(self, ctx, ints):
        assert expression(ctx.index(ints["p"], ctx.comma(ints["a"], ints["b"]))) == "p[a, b]"

    def test_callee_parenthesized(self, ctx, ints):
        fp = ctx.pointer(ctx.function_type(ctx.int_t))
        ctx.declare_global("x", fp)
        ctx.declare_global("y", fp)
        callee = ctx.conditional(ints["a"], ctx.ref("x"), ctx.ref("y"))
        assert expression(ctx.call(callee, [])) == "(a ? x : y)()"
