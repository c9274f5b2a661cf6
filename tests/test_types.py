# tests/test_types.py
"""Type interning, nominal registries and structural validation."""

import pytest

from ccgenor import (
    ArrayType, DuplicateDefinition, Field, FunctionType, IntegerType, InvalidRecursiveLayout,
    InvalidType, NameCollision, PointerType, Qualifier, RecordKind, RecordType, TypeConflict,
)


class TestInterning:

    def test_pointer_is_interned(self, ctx):
        assert ctx.pointer(ctx.int_t) is ctx.pointer(ctx.int_t)

    def test_spec_and_helper_agree(self, ctx):
        spec = PointerType(ArrayType(IntegerType(32, True, "int"), 5))
        assert ctx.intern_type(spec) is ctx.pointer(ctx.array(ctx.int_t, 5))

    def test_function_types_are_interned(self, ctx):
        one = ctx.function_type(ctx.void_t, [ctx.int_t, ctx.pointer(ctx.char_t)])
        two = ctx.intern_type(FunctionType(ctx.void_t, (ctx.int_t, ctx.pointer(ctx.char_t))))
        assert one is two

    def test_different_lengths_are_different_types(self, ctx):
        assert ctx.array(ctx.int_t, 3) is not ctx.array(ctx.int_t, 4)

    def test_interning_is_per_context(self, ctx):
        from ccgenor import Context
        other = Context()
        assert ctx.pointer(ctx.int_t) == other.pointer(other.int_t)
        assert ctx.pointer(ctx.int_t) is not other.pointer(other.int_t)

    @pytest.mark.parametrize("spelling,attr", [
        ("int", "int_t"),
        ("signed", "int_t"),
        ("unsigned", "uint_t"),
        ("long int", "long_t"),
        ("unsigned  long", "ulong_t"),
        ("bool", "bool_t"),
        ("long double", "ldouble_t"),
    ])
    def test_primitive_spellings(self, ctx, spelling, attr):
        assert ctx.primitive(spelling) is getattr(ctx, attr)

    def test_unknown_primitive(self, ctx):
        with pytest.raises(InvalidType) as err:
            ctx.primitive("quad")
        assert err.value.code == "CG0122"

    def test_int_type_by_width(self, ctx):
        assert ctx.int_type(8, signed=False) is ctx.uchar_t
        assert ctx.int_type(16) is ctx.short_t
        assert ctx.int_type(1, signed=False) is ctx.bool_t
        assert str(ctx.int_type(64)) == "long long"

    def test_char_is_distinct_from_signed_char(self, ctx):
        assert ctx.char_t is not ctx.schar_t

    def test_unsupported_widths(self, ctx):
        with pytest.raises(InvalidType):
            ctx.int_type(24)
        with pytest.raises(InvalidType):
            ctx.float_type(16)


class TestQualifiers:

    def test_idempotent(self, ctx):
        assert ctx.const(ctx.const(ctx.int_t)) is ctx.const(ctx.int_t)

    def test_associative(self, ctx):
        stepwise = ctx.qualified(ctx.const(ctx.int_t), "volatile")
        at_once = ctx.qualified(ctx.int_t, Qualifier.VOLATILE, Qualifier.CONST)
        assert stepwise is at_once

    def test_array_qualifiers_move_to_elements(self, ctx):
        volatile_int = ctx.qualified(ctx.int_t, "volatile")
        outer = ctx.const(ctx.array(volatile_int, 3))
        inner = ctx.array(ctx.qualified(ctx.int_t, "const", "volatile"), 3)
        assert outer is inner
        assert ctx.const(ctx.array(ctx.int_t, 3)) is ctx.array(ctx.const(ctx.int_t), 3)

    def test_qualified_array_emits(self, ctx):
        ctx.declare_global("x", ctx.const(ctx.array(ctx.qualified(ctx.int_t, "volatile"), 3)))
        assert ctx.emit() == "const volatile int x[3];\n"

    def test_empty_set_returns_base(self, ctx):
        assert ctx.qualified(ctx.int_t) is ctx.int_t

    def test_restrict_needs_pointer(self, ctx):
        with pytest.raises(InvalidType):
            ctx.qualified(ctx.int_t, "restrict")
        assert str(ctx.qualified(ctx.pointer(ctx.int_t), "restrict")) == "int *restrict"

    def test_function_cannot_be_qualified(self, ctx):
        with pytest.raises(InvalidType):
            ctx.const(ctx.function_type(ctx.void_t))

    def test_unknown_qualifier(self, ctx):
        with pytest.raises(InvalidType):
            ctx.qualified(ctx.int_t, "_Atomic")


class TestStructuralValidation:

    @pytest.mark.parametrize("build", [
        lambda c: c.array(c.void_t, 3),
        lambda c: c.array(c.function_type(c.int_t), 3),
        lambda c: c.array(c.int_t, 0),
        lambda c: c.array(c.int_t, -2),
        lambda c: c.function_type(c.array(c.int_t, 3)),
        lambda c: c.function_type(c.function_type(c.int_t)),
        lambda c: c.function_type(c.int_t, [c.void_t]),
        lambda c: c.function_type(c.int_t, [], variadic=True),
    ], ids=[
        "array_of_void", "array_of_functions", "zero_length", "negative_length",
        "returns_array", "returns_function", "void_param", "variadic_without_params",
    ])
    def test_rejected(self, ctx, build):
        with pytest.raises(InvalidType):
            build(ctx)

    def test_str_spells_type_names(self, ctx):
        assert str(ctx.pointer(ctx.array(ctx.int_t, 5))) == "int (*)[5]"
        assert str(ctx.pointer(ctx.function_type(ctx.void_t, [ctx.int_t]))) == "void (*)(int)"


class TestRecords:

    def point_fields(self, ctx):
        return [("x", ctx.int_t), ("y", ctx.int_t)]

    def test_identical_redefinition_is_noop(self, ctx):
        first = ctx.define_record("Point", self.point_fields(ctx))
        second = ctx.define_record("Point", self.point_fields(ctx))
        assert first is second
        assert len(ctx.declarations) == 1

    def test_different_redefinition_fails(self, ctx):
        ctx.define_record("Point", self.point_fields(ctx))
        ctx.define_record("Point", self.point_fields(ctx))
        with pytest.raises(DuplicateDefinition) as err:
            ctx.define_record("Point", [("x", ctx.int_t)])
        assert err.value.detail["name"] == "Point"

    def test_records_are_nominal(self, ctx):
        a = ctx.define_record("A", [("v", ctx.int_t)])
        b = ctx.define_record("B", [("v", ctx.int_t)])
        assert a != b
        assert ctx.pointer(a) is not ctx.pointer(b)

    def test_kind_mismatch(self, ctx):
        ctx.declare_record("Value", RecordKind.UNION)
        with pytest.raises(TypeConflict):
            ctx.define_record("Value", [("i", ctx.int_t)], RecordKind.STRUCT)

    def test_tags_share_one_namespace(self, ctx):
        ctx.define_record("Shape", [("sides", ctx.int_t)])
        with pytest.raises(TypeConflict):
            ctx.define_enum("Shape", ["CIRCLE"])

    def test_intern_conflicting_spec(self, ctx):
        ctx.define_record("Point", self.point_fields(ctx))
        spec = RecordType(RecordKind.STRUCT, "Point", (Field("x", ctx.int_t),))
        with pytest.raises(TypeConflict):
            ctx.intern_type(spec)

    def test_intern_matching_spec(self, ctx):
        point = ctx.define_record("Point", self.point_fields(ctx))
        spec = RecordType(RecordKind.STRUCT, "Point", (Field("x", ctx.int_t), Field("y", ctx.int_t)))
        assert ctx.intern_type(spec) is point

    def test_two_phase_registration(self, ctx):
        node = ctx.declare_record("Node")
        assert not node.is_complete
        done = ctx.define_record("Node", [("value", ctx.int_t), ("next", ctx.pointer(node))])
        assert done is node
        assert node.get_field("next").type is ctx.pointer(node)

    def test_duplicate_member(self, ctx):
        with pytest.raises(NameCollision):
            ctx.define_record("Pair", [("a", ctx.int_t), ("a", ctx.int_t)])

    def test_empty_record(self, ctx):
        with pytest.raises(InvalidType):
            ctx.define_record("Empty", [])

    def test_bit_fields(self, ctx):
        flags = ctx.define_record("Flags", [Field("ready", ctx.uint_t, 1), ("mode", ctx.uint_t, 3)])
        assert [f.bit_width for f in flags.fields] == [1, 3]
        with pytest.raises(InvalidType):
            ctx.define_record("Bad", [Field("ratio", ctx.double_t, 2)])
        with pytest.raises(InvalidType):
            ctx.define_record("Bad", [Field("n", ctx.int_t, 0)])

    def test_flexible_array_member_must_be_last(self, ctx):
        ctx.define_record("Buf", [("len", ctx.int_t), ("data", ctx.array(ctx.char_t))])
        with pytest.raises(InvalidType):
            ctx.define_record("Bad", [("data", ctx.array(ctx.char_t)), ("len", ctx.int_t)])


class TestRecursiveLayout:

    def test_self_by_value(self, ctx):
        node = ctx.declare_record("Node")
        with pytest.raises(InvalidRecursiveLayout) as err:
            ctx.define_record("Node", [("next", node)])
        assert "Node.next" in err.value.message
        assert not node.is_complete

    def test_self_through_array(self, ctx):
        node = ctx.declare_record("Node")
        with pytest.raises(InvalidRecursiveLayout):
            ctx.define_record("Node", [("kids", ctx.array(node, 2))])

    def test_self_through_typedef(self, ctx):
        node = ctx.declare_record("Node")
        alias = ctx.typedef("node_t", node)
        with pytest.raises(InvalidRecursiveLayout):
            ctx.define_record("Node", [("inner", ctx.const(alias))])

    def test_cycle_through_other_record(self, ctx):
        a = ctx.declare_record("A")
        ctx.define_record("B", [("a", a)])
        with pytest.raises(InvalidRecursiveLayout) as err:
            ctx.define_record("A", [("b", ctx.types.records["B"])])
        assert err.value.detail["path"] == "A.b -> B.a -> A"

    def test_pointer_breaks_containment(self, ctx):
        node = ctx.declare_record("Node")
        ctx.define_record("Node", [("next", ctx.pointer(node))])
        assert node.is_complete


class TestEnumsAndTypedefs:

    def test_enumerators_bound_at_file_scope(self, ctx):
        color = ctx.define_enum("Color", ["RED", ("GREEN", 5), "BLUE"])
        assert color.value_of("BLUE") == 6
        symbol = ctx.resolve("RED")
        assert symbol.kind.value == "enumerator"
        assert symbol.type is ctx.int_t

    def test_enum_redefinition(self, ctx):
        first = ctx.define_enum("Color", ["RED", "GREEN"])
        assert ctx.define_enum("Color", ["RED", "GREEN"]) is first
        with pytest.raises(DuplicateDefinition):
            ctx.define_enum("Color", ["RED"])

    def test_enumerator_collision(self, ctx):
        ctx.declare_global("RED", ctx.int_t)
        with pytest.raises(NameCollision):
            ctx.define_enum("Color", ["RED"])
        assert "Color" not in ctx.types.enums

    def test_typedef_idempotent(self, ctx):
        first = ctx.typedef("u32", ctx.uint_t)
        assert ctx.typedef("u32", ctx.uint_t) is first
        with pytest.raises(DuplicateDefinition):
            ctx.typedef("u32", ctx.int_t)

    def test_typedef_lives_in_ordinary_namespace(self, ctx):
        ctx.declare_global("handle", ctx.int_t)
        with pytest.raises(NameCollision):
            ctx.typedef("handle", ctx.pointer(ctx.void_t))
