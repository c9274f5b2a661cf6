"""
Expression construction with shape validation.

This module handles:
- Coercion of Python values and symbols into expression nodes
- Literal construction (integer, float, character, string)
- Operator nodes, resolving unary/binary spellings by operand count
- Calls, member access, indexing, casts, sizeof and initializer lists

No C type checking happens here: operands are only checked for being
expressions of the right number and shape.
"""
from __future__ import annotations
import math
from typing import Any, Iterable, Sequence, TYPE_CHECKING

from ccgenor.internals import errors as er
from ccgenor.semantics import operators as ops
from ccgenor.semantics.ast import (
    BinaryOp, Call, Cast, CharLiteral, Conditional, Expr, FloatLiteral, Identifier,
    Index, InitializerList, IntegerLiteral, Member, SizeOf, StringLiteral, Symbol,
    SymbolKind, UnaryOp,
)
from ccgenor.semantics.identifiers import is_identifier, is_reserved
from ccgenor.semantics.typesys import TYPE_CLASSES, Type, is_callable

if TYPE_CHECKING:
    from ccgenor.context import Context


INTEGER_SUFFIXES = frozenset({"", "u", "l", "ul", "lu", "ll", "ull", "llu"})
FLOAT_SUFFIXES = frozenset({"", "f", "l"})
LITERALS = (IntegerLiteral, FloatLiteral, CharLiteral, StringLiteral)

_ORDINALS = ("first", "second", "third")


def is_type(value: Any) -> bool:
    return isinstance(value, TYPE_CLASSES)


class ExpressionBuilder:
    """Builds expression trees for one context."""

    def __init__(self, ctx: 'Context') -> None:
        self.ctx = ctx

    # ------------------------------------------------------------------
    # Operand coercion
    # ------------------------------------------------------------------

    def coerce(self, value: Any, op: str = "expression", position: int = 0) -> Expr:
        """Turn `value` into an expression operand.

        Python ints and floats become literals and symbols become
        identifier references. Strings are rejected; use `ref` for names
        and `string_literal` for text.

        Raises:
            InvalidOperand: If `value` cannot be an operand.
        """
        match value:
            case InitializerList():
                self.ctx.fail(er.ERR.CG0413)
            case Expr():
                return value
            case Symbol():
                return self.ref(value)
            case bool():
                return self.int_literal(int(value))
            case int():
                return self.int_literal(value)
            case float():
                return self.float_literal(value)
            case _:
                where = _ORDINALS[position] if position < len(_ORDINALS) else str(position + 1)
                self.ctx.fail(er.ERR.CG0412, position=where, op=op, got=type(value).__name__)

    def _operands(self, op: str, values: Sequence[Any]) -> list[Expr]:
        return [self.coerce(v, op, i) for i, v in enumerate(values)]

    # ------------------------------------------------------------------
    # Literals and references
    # ------------------------------------------------------------------

    def literal(self, value: Any) -> Expr:
        """Build the literal matching the Python type of `value`."""
        match value:
            case bool():
                return self.int_literal(int(value))
            case int():
                return self.int_literal(value)
            case float():
                return self.float_literal(value)
            case str():
                return self.string_literal(value)
            case _:
                self.ctx.fail(er.ERR.CG0418, value=value)

    def int_literal(self, value: int, suffix: str = "", base: int = 10) -> IntegerLiteral:
        if isinstance(value, bool) or not isinstance(value, int):
            self.ctx.fail(er.ERR.CG0418, value=value)
        if suffix.lower() not in INTEGER_SUFFIXES or base not in (8, 10, 16):
            self.ctx.fail(er.ERR.CG0418, value=f"{value}{suffix} (base {base})")
        self.ctx.tick()
        return IntegerLiteral(value, suffix, base)

    def float_literal(self, value: float, suffix: str = "") -> FloatLiteral:
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            self.ctx.fail(er.ERR.CG0418, value=value)
        if suffix.lower() not in FLOAT_SUFFIXES:
            self.ctx.fail(er.ERR.CG0418, value=f"{value}{suffix}")
        self.ctx.tick()
        return FloatLiteral(float(value), suffix)

    def char_literal(self, char: str) -> CharLiteral:
        if not isinstance(char, str) or len(char) != 1 or ord(char) > 0x7F:
            self.ctx.fail(er.ERR.CG0418, value=char)
        self.ctx.tick()
        return CharLiteral(char)

    def string_literal(self, value: str) -> StringLiteral:
        if not isinstance(value, str):
            self.ctx.fail(er.ERR.CG0418, value=value)
        self.ctx.tick()
        return StringLiteral(value)

    def ref(self, target: str | Symbol) -> Identifier:
        """Reference a visible name (or an already resolved symbol)."""
        symbol = target if isinstance(target, Symbol) else self.ctx.resolve(target)
        if symbol.kind is SymbolKind.TYPEDEF:
            self.ctx.fail(er.ERR.CG0412, position="first", op="reference", got=f"typedef '{symbol.name}'")
        self.ctx.tick()
        return Identifier(symbol)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def unary(self, op: str, operand: Any) -> UnaryOp:
        if op not in ops.PREFIX_OPERATORS:
            self._unknown(op, "prefix", 1)
        (value,) = self._operands(op, [operand])
        if op in ("++", "--"):
            self._check_assignable(value)
        self.ctx.tick()
        return UnaryOp(op, value)

    def postfix(self, op: str, operand: Any) -> UnaryOp:
        if op not in ops.POSTFIX_OPERATORS:
            self._unknown(op, "postfix", 1)
        (value,) = self._operands(op, [operand])
        self._check_assignable(value)
        self.ctx.tick()
        return UnaryOp(op, value, postfix=True)

    def binary(self, op: str, lhs: Any, rhs: Any) -> BinaryOp:
        info = ops.BINARY_OPERATORS.get(op)
        if info is None:
            self._unknown(op, "binary", 2)
        left, right = self._operands(op, [lhs, rhs])
        if info.is_assignment:
            self._check_assignable(left)
        self.ctx.tick()
        return BinaryOp(op, left, right)

    def assign(self, target: Any, value: Any, op: str = "=") -> BinaryOp:
        info = ops.BINARY_OPERATORS.get(op)
        if info is None or not info.is_assignment:
            self.ctx.fail(er.ERR.CG0411, form="assignment", op=op)
        return self.binary(op, target, value)

    def conditional(self, cond: Any, then: Any, otherwise: Any) -> Conditional:
        c, a, b = self._operands("?:", [cond, then, otherwise])
        self.ctx.tick()
        return Conditional(c, a, b)

    def comma(self, *exprs: Any) -> Expr:
        if len(exprs) < 2:
            self.ctx.fail(er.ERR.CG0401, op=",", expected="at least 2", got=len(exprs))
        values = self._operands(",", exprs)
        result = values[0]
        for value in values[1:]:
            self.ctx.tick()
            result = BinaryOp(",", result, value)
        return result

    def apply(self, op: str, *operands: Any) -> Expr:
        """Build the operator `op` over `operands`, picking its form by count.

        `apply("-", x)` is negation while `apply("-", a, b)` is subtraction.

        Raises:
            ArityMismatch: If `op` exists but not with this many operands.
            InvalidOperand: If `op` is not a C operator.
        """
        count = len(operands)
        if ops.lookup(op, count) is None:
            accepted = ops.arities(op)
            if not accepted:
                self.ctx.fail(er.ERR.CG0411, form="C", op=op)
            self.ctx.fail(er.ERR.CG0401, op=op, expected=" or ".join(map(str, accepted)), got=count)
        if count == 1:
            return self.unary(op, operands[0])
        if count == 2:
            return self.binary(op, *operands)
        return self.conditional(*operands)

    def _unknown(self, op: str, form: str, count: int):
        accepted = ops.arities(op)
        if accepted and count not in accepted:
            self.ctx.fail(er.ERR.CG0401, op=op, expected=" or ".join(map(str, accepted)), got=count)
        self.ctx.fail(er.ERR.CG0411, form=form, op=op)

    def _check_assignable(self, target: Expr) -> None:
        if isinstance(target, LITERALS):
            self.ctx.fail(er.ERR.CG0414, what="a literal")
        if isinstance(target, Identifier) and target.symbol.kind in (SymbolKind.ENUMERATOR, SymbolKind.FUNCTION):
            self.ctx.fail(er.ERR.CG0414, what=f"{target.symbol.kind.value} '{target.name}'")

    # ------------------------------------------------------------------
    # Postfix forms, casts and sizeof
    # ------------------------------------------------------------------

    def call(self, callee: Any, args: Iterable[Any] = ()) -> Call:
        """Build a call; `callee` may be a name, a symbol or an expression.

        Raises:
            InvalidOperand: If the callee can never denote a function.
        """
        if isinstance(callee, str):
            callee = self.ref(callee)
        target = self.coerce(callee, "call")
        if isinstance(target, LITERALS):
            self.ctx.fail(er.ERR.CG0415, callee=_describe(target))
        if isinstance(target, Identifier) and not is_callable(target.symbol.type):
            self.ctx.fail(er.ERR.CG0415, callee=target.name)
        arguments = tuple(self.coerce(a, "call", i + 1) for i, a in enumerate(args))
        self.ctx.tick()
        return Call(target, arguments)

    def member(self, base: Any, field: str, arrow: bool = False) -> Member:
        if not is_identifier(field) or is_reserved(field):
            self.ctx.fail(er.ERR.CG0416, field=field)
        value = self.coerce(base, "->" if arrow else ".")
        self.ctx.tick()
        return Member(value, field, bool(arrow))

    def index(self, base: Any, index: Any) -> Index:
        b, i = self._operands("[]", [base, index])
        self.ctx.tick()
        return Index(b, i)

    def cast(self, type: Type, operand: Any) -> Cast:
        if not is_type(type):
            self.ctx.fail(er.ERR.CG0417, op="cast", got=_describe(type))
        target = self.ctx.types.intern(type)
        value = self.coerce(operand, "cast")
        self.ctx.tick()
        return Cast(target, value)

    def sizeof(self, operand: Any) -> SizeOf:
        """`sizeof` of a type or of an expression."""
        if is_type(operand):
            value = self.ctx.types.intern(operand)
        elif isinstance(operand, str):
            self.ctx.fail(er.ERR.CG0417, op="sizeof", got=_describe(operand))
        else:
            value = self.coerce(operand, "sizeof")
        self.ctx.tick()
        return SizeOf(value)

    def initializer(self, items: Iterable[Any]) -> InitializerList:
        """Brace initializer; items may themselves be initializer lists."""
        values = []
        for i, item in enumerate(items):
            if isinstance(item, InitializerList):
                values.append(item)
            else:
                values.append(self.coerce(item, "{}", i))
        if not values:
            self.ctx.fail(er.ERR.CG0419)
        self.ctx.tick()
        return InitializerList(tuple(values))


def _describe(value: Any) -> str:
    if isinstance(value, LITERALS):
        from ccgenor.printer.expressions import expression
        return expression(value)
    if isinstance(value, str):
        return repr(value)
    return type(value).__name__
