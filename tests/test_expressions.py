# tests/test_expressions.py
"""Expression construction: operand shapes, arity and literal spelling."""

import pytest

from ccgenor import ArityMismatch, InvalidOperand, UnknownSymbol
from ccgenor.printer import expression


class TestOperators:

    def test_apply_picks_form_by_count(self, ctx, ints):
        assert expression(ctx.apply("-", ints["a"])) == "-a"
        assert expression(ctx.apply("-", ints["a"], ints["b"])) == "a - b"
        assert expression(ctx.apply("*", ints["p"])) == "*p"
        assert expression(ctx.apply("?:", ints["a"], ints["b"], ints["c"])) == "a ? b : c"

    @pytest.mark.parametrize("op,count", [
        ("!", 2),
        ("/", 1),
        ("+", 3),
        ("~", 0),
    ])
    def test_wrong_operand_count(self, ctx, ints, op, count):
        operands = [ints[n] for n in "abc"[:count]]
        with pytest.raises(ArityMismatch) as err:
            ctx.apply(op, *operands)
        assert err.value.code == "CG0401"

    def test_binary_only_operator_used_as_unary(self, ctx, ints):
        with pytest.raises(ArityMismatch):
            ctx.unary("/", ints["a"])

    def test_unknown_operator(self, ctx, ints):
        with pytest.raises(InvalidOperand) as err:
            ctx.binary("**", ints["a"], ints["b"])
        assert err.value.code == "CG0411"

    def test_assign_requires_assignment_operator(self, ctx, ints):
        with pytest.raises(InvalidOperand):
            ctx.assign(ints["a"], 1, op="+")
        assert expression(ctx.assign(ints["a"], 1, op="<<=")) == "a <<= 1"

    def test_comma_needs_two(self, ctx, ints):
        with pytest.raises(ArityMismatch):
            ctx.comma(ints["a"])
        assert expression(ctx.comma(ints["a"], ints["b"], ints["c"])) == "a, b, c"

    def test_postfix(self, ctx, ints):
        assert expression(ctx.postfix("++", ints["a"])) == "a++"
        with pytest.raises(InvalidOperand):
            ctx.postfix("!", ints["a"])


class TestOperands:

    def test_python_values_become_literals(self, ctx, ints):
        assert expression(ctx.binary("+", ints["a"], 2)) == "a + 2"
        assert expression(ctx.binary("*", 1.5, ints["a"])) == "1.5 * a"
        assert expression(ctx.binary("==", ints["a"], True)) == "a == 1"

    def test_symbols_become_references(self, ctx):
        symbol = ctx.declare_global("total", ctx.int_t).symbol
        assert expression(ctx.binary("+", symbol, 1)) == "total + 1"

    @pytest.mark.parametrize("value", ["a", None, object(), [1, 2]],
                             ids=["string", "none", "object", "list"])
    def test_non_expressions_rejected(self, ctx, ints, value):
        with pytest.raises(InvalidOperand) as err:
            ctx.binary("+", ints["a"], value)
        assert err.value.code == "CG0412"
        assert err.value.detail["position"] == "second"

    @pytest.mark.parametrize("target", [
        lambda c: c.int_literal(3),
        lambda c: c.string_literal("s"),
    ], ids=["integer", "string"])
    def test_literals_are_not_assignable(self, ctx, target):
        with pytest.raises(InvalidOperand) as err:
            ctx.assign(target(ctx), 1)
        assert err.value.code == "CG0414"

    def test_enumerators_are_not_assignable(self, ctx):
        ctx.define_enum("Mode", ["OFF", "ON"])
        with pytest.raises(InvalidOperand):
            ctx.unary("++", ctx.ref("OFF"))

    def test_typedef_name_is_not_an_expression(self, ctx):
        ctx.typedef("size", ctx.ulong_t)
        with pytest.raises(InvalidOperand):
            ctx.ref("size")

    def test_initializer_list_only_in_declarations(self, ctx, ints):
        items = ctx.initializer([1, 2])
        with pytest.raises(InvalidOperand) as err:
            ctx.binary("+", ints["a"], items)
        assert err.value.code == "CG0413"

    def test_empty_initializer(self, ctx):
        with pytest.raises(InvalidOperand):
            ctx.initializer([])

    def test_unknown_name(self, ctx):
        with pytest.raises(UnknownSymbol):
            ctx.call("undefined_fn", [])


class TestPostfixForms:

    def test_call_by_name(self, ctx):
        ctx.declare_global("puts", ctx.function_type(ctx.int_t, [ctx.pointer(ctx.const(ctx.char_t))]))
        assert expression(ctx.call("puts", [ctx.string_literal("hi")])) == 'puts("hi")'

    def test_call_through_pointer(self, ctx):
        handler = ctx.pointer(ctx.function_type(ctx.void_t, [ctx.int_t]))
        ctx.declare_global("on_exit", handler)
        assert expression(ctx.call("on_exit", [0])) == "on_exit(0)"
        assert expression(ctx.call(ctx.unary("*", ctx.ref("on_exit")), [0])) == "(*on_exit)(0)"

    def test_non_callable(self, ctx, ints):
        with pytest.raises(InvalidOperand) as err:
            ctx.call(ints["a"], [])
        assert err.value.code == "CG0415"
        with pytest.raises(InvalidOperand):
            ctx.call(ctx.int_literal(0), [])

    def test_member_access(self, ctx):
        point = ctx.define_record("Point", [("x", ctx.int_t), ("y", ctx.int_t)])
        ctx.declare_global("origin", point)
        ctx.declare_global("cursor", ctx.pointer(point))
        assert expression(ctx.member(ctx.ref("origin"), "x")) == "origin.x"
        assert expression(ctx.member(ctx.ref("cursor"), "y", arrow=True)) == "cursor->y"
        with pytest.raises(InvalidOperand):
            ctx.member(ctx.ref("origin"), "not a name")

    def test_index(self, ctx):
        ctx.declare_global("table", ctx.array(ctx.int_t, 4))
        assert expression(ctx.index(ctx.ref("table"), ctx.binary("+", 1, 2))) == "table[1 + 2]"

    def test_cast_and_sizeof(self, ctx, ints):
        assert expression(ctx.cast(ctx.pointer(ctx.void_t), ints["p"])) == "(void *)p"
        assert expression(ctx.sizeof(ctx.array(ctx.int_t, 3))) == "sizeof(int[3])"
        assert expression(ctx.sizeof(ints["a"])) == "sizeof a"
        assert expression(ctx.sizeof(ctx.binary("+", ints["a"], 1))) == "sizeof(a + 1)"
        with pytest.raises(InvalidOperand):
            ctx.cast("int", ints["a"])
        with pytest.raises(InvalidOperand):
            ctx.sizeof("int")


class TestLiterals:

    @pytest.mark.parametrize("build,expected", [
        (lambda c: c.int_literal(255, base=16), "0xFF"),
        (lambda c: c.int_literal(8, base=8), "010"),
        (lambda c: c.int_literal(0, base=8), "0"),
        (lambda c: c.int_literal(10, "u"), "10u"),
        (lambda c: c.int_literal(7, "ULL"), "7ULL"),
        (lambda c: c.int_literal(-3), "-3"),
        (lambda c: c.float_literal(1.5, "f"), "1.5f"),
        (lambda c: c.float_literal(2.0), "2.0"),
        (lambda c: c.float_literal(1e300), "1e+300"),
        (lambda c: c.char_literal("\n"), "'\\n'"),
        (lambda c: c.char_literal("'"), "'\\''"),
        (lambda c: c.char_literal('"'), "'\"'"),
        (lambda c: c.string_literal("é"), '"\\303\\251"'),
        (lambda c: c.string_literal('say "hi"\t'), '"say \\"hi\\"\\t"'),
        (lambda c: c.string_literal("??="), '"?\\?="'),
        (lambda c: c.literal(True), "1"),
    ], ids=[
        "hex", "octal", "octal_zero", "unsigned", "upper_suffix", "negative",
        "float_suffix", "whole_float", "exponent", "newline", "quote", "double_quote_char",
        "utf8", "escapes", "trigraph", "bool",
    ])
    def test_spelling(self, ctx, build, expected):
        assert expression(build(ctx)) == expected

    @pytest.mark.parametrize("build", [
        lambda c: c.int_literal(1, "q"),
        lambda c: c.int_literal(1, base=2),
        lambda c: c.int_literal(1.0),
        lambda c: c.float_literal(float("inf")),
        lambda c: c.float_literal(float("nan")),
        lambda c: c.char_literal("ab"),
        lambda c: c.char_literal("é"),
        lambda c: c.literal(None),
    ], ids=["bad_suffix", "binary_base", "float_as_int", "inf", "nan", "two_chars", "non_ascii_char", "none"])
    def test_unspellable(self, ctx, build):
        with pytest.raises(InvalidOperand) as err:
            build(ctx)
        assert err.value.code == "CG0418"

    def test_negation_of_negative_literal(self, ctx):
        assert expression(ctx.unary("-", ctx.int_literal(-5))) == "- -5"
        assert expression(ctx.unary("-", ctx.unary("-", ctx.int_literal(5)))) == "- -5"
