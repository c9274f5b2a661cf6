"""Expression printing with minimal parenthesization.

Every operand position has a minimum precedence level; an operand whose
own level is lower is wrapped in parentheses. For a left-associative
binary operator at level L the left operand needs L and the right L + 1;
right-associative operators (assignment, the conditional) mirror that.
Assignment targets must additionally be unary expressions, as the C
grammar requires.
"""
from __future__ import annotations
import math

from ccgenor.semantics import operators as ops
from ccgenor.semantics.ast import (
    BinaryOp, Call, Cast, CharLiteral, Conditional, Expr, FloatLiteral, Identifier,
    Index, InitializerList, IntegerLiteral, Member, SizeOf, StringLiteral, UnaryOp,
)
from ccgenor.semantics.typesys import type_name

_SIMPLE_ESCAPES = {
    "\a": "\\a", "\b": "\\b", "\f": "\\f", "\n": "\\n", "\r": "\\r",
    "\t": "\\t", "\v": "\\v", "\\": "\\\\",
}

# Prefix operators that change meaning when glued to an operand starting
# with the same character: `- -x` is not `--x`
_GLUING_PREFIXES = frozenset({"+", "-", "&"})


def expression(expr: Expr, min_level: int = ops.COMMA) -> str:
    """Print `expr`, parenthesized if its level is below `min_level`."""
    text = _print(expr)
    if expr.precedence < min_level:
        return f"({text})"
    return text


def _print(expr: Expr) -> str:
    match expr:
        case IntegerLiteral():
            return integer_text(expr)
        case FloatLiteral():
            return float_text(expr)
        case CharLiteral():
            return char_text(expr.char)
        case StringLiteral():
            return string_text(expr.value)
        case Identifier():
            return expr.name
        case UnaryOp(postfix=True):
            return expression(expr.operand, ops.POSTFIX) + expr.op
        case UnaryOp():
            operand = expression(expr.operand, ops.UNARY)
            if expr.op in _GLUING_PREFIXES and operand.startswith(expr.op):
                return f"{expr.op} {operand}"
            return expr.op + operand
        case BinaryOp():
            return _binary(expr)
        case Conditional():
            cond = expression(expr.cond, ops.LOGICAL_OR)
            then = expression(expr.then, ops.COMMA)
            otherwise = expression(expr.otherwise, ops.CONDITIONAL)
            return f"{cond} ? {then} : {otherwise}"
        case Call():
            args = ", ".join(expression(a, ops.ASSIGNMENT) for a in expr.args)
            return f"{expression(expr.callee, ops.POSTFIX)}({args})"
        case Member():
            sep = "->" if expr.arrow else "."
            return f"{expression(expr.base, ops.POSTFIX)}{sep}{expr.field}"
        case Index():
            return f"{expression(expr.base, ops.POSTFIX)}[{expression(expr.index)}]"
        case Cast():
            return f"({type_name(expr.type)}){expression(expr.operand, ops.UNARY)}"
        case SizeOf():
            return _sizeof(expr)
        case InitializerList():
            return "{" + ", ".join(expression(i, ops.ASSIGNMENT) for i in expr.items) + "}"
        case _:
            raise TypeError(f"cannot print {expr!r}")


def _binary(expr: BinaryOp) -> str:
    info = expr.info
    level = info.precedence
    if info.is_assignment:
        lhs = _unary_operand(expr.lhs)
        rhs = expression(expr.rhs, ops.ASSIGNMENT)
    elif info.assoc is ops.Assoc.LEFT:
        lhs = expression(expr.lhs, level)
        rhs = expression(expr.rhs, level + 1)
    else:
        lhs = expression(expr.lhs, level + 1)
        rhs = expression(expr.rhs, level)
    if expr.op == ",":
        return f"{lhs}, {rhs}"
    return f"{lhs} {expr.op} {rhs}"


def _unary_operand(expr: Expr) -> str:
    # a cast-expression is not a unary-expression
    if isinstance(expr, Cast):
        return f"({_print(expr)})"
    return expression(expr, ops.UNARY)


def _sizeof(expr: SizeOf) -> str:
    if not isinstance(expr.operand, Expr):
        return f"sizeof({type_name(expr.operand)})"
    operand = _unary_operand(expr.operand)
    if operand.startswith("("):
        return f"sizeof{operand}"
    return f"sizeof {operand}"


def integer_text(lit: IntegerLiteral) -> str:
    sign = "-" if lit.value < 0 else ""
    magnitude = abs(lit.value)
    if lit.base == 16:
        digits = f"0x{magnitude:X}"
    elif lit.base == 8:
        digits = f"0{magnitude:o}" if magnitude else "0"
    else:
        digits = str(magnitude)
    return f"{sign}{digits}{lit.suffix}"


def float_text(lit: FloatLiteral) -> str:
    if not math.isfinite(lit.value):
        raise ValueError(f"{lit.value!r} has no C literal spelling")
    text = repr(float(lit.value))
    if "e" not in text and "." not in text:
        text += ".0"
    return text + lit.suffix


def char_text(char: str) -> str:
    if char == "'":
        return "'\\''"
    return f"'{_escape_char(char, quote=None)}'"


def string_text(value: str) -> str:
    out = []
    previous = ""
    for char in value:
        if char == "?" and previous == "?":
            # keep trigraph sequences from forming
            out.append("\\?")
        else:
            out.append(_escape_char(char, quote='"'))
        previous = char
    return '"' + "".join(out) + '"'


def _escape_char(char: str, quote: str | None) -> str:
    if char in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[char]
    if char == quote:
        return "\\" + char
    if " " <= char <= "~":
        return char
    # everything else as octal escapes of its UTF-8 bytes
    return "".join(f"\\{b:03o}" for b in char.encode("utf-8"))
