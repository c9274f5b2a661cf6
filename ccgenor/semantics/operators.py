"""C operator precedence and associativity.

Levels follow the C grammar (cppreference "C Operator Precedence"), with
higher numbers binding tighter. The builders never consult this table;
only the printer does.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Assoc(Enum):
    LEFT = "left"
    RIGHT = "right"


PRIMARY = 16
POSTFIX = 15        # a() a[] a.b a->b a++ a--
UNARY = 14          # ++a --a +a -a !a ~a *a &a sizeof (T)a
MULTIPLICATIVE = 13
ADDITIVE = 12
SHIFT = 11
RELATIONAL = 10
EQUALITY = 9
BITWISE_AND = 8
BITWISE_XOR = 7
BITWISE_OR = 6
LOGICAL_AND = 5
LOGICAL_OR = 4
CONDITIONAL = 3
ASSIGNMENT = 2
COMMA = 1


@dataclass(frozen=True)
class OperatorInfo:
    symbol: str
    arity: int
    precedence: int
    assoc: Assoc

    @property
    def is_assignment(self) -> bool:
        return self.precedence == ASSIGNMENT


def _binary(precedence: int, *symbols: str, assoc: Assoc = Assoc.LEFT) -> dict[str, OperatorInfo]:
    return {s: OperatorInfo(s, 2, precedence, assoc) for s in symbols}


BINARY_OPERATORS: dict[str, OperatorInfo] = {
    **_binary(MULTIPLICATIVE, "*", "/", "%"),
    **_binary(ADDITIVE, "+", "-"),
    **_binary(SHIFT, "<<", ">>"),
    **_binary(RELATIONAL, "<", "<=", ">", ">="),
    **_binary(EQUALITY, "==", "!="),
    **_binary(BITWISE_AND, "&"),
    **_binary(BITWISE_XOR, "^"),
    **_binary(BITWISE_OR, "|"),
    **_binary(LOGICAL_AND, "&&"),
    **_binary(LOGICAL_OR, "||"),
    **_binary(ASSIGNMENT, "=", "+=", "-=", "*=", "/=", "%=",
              "<<=", ">>=", "&=", "^=", "|=", assoc=Assoc.RIGHT),
    **_binary(COMMA, ","),
}

PREFIX_OPERATORS: dict[str, OperatorInfo] = {
    s: OperatorInfo(s, 1, UNARY, Assoc.RIGHT)
    for s in ("++", "--", "+", "-", "!", "~", "*", "&")
}

POSTFIX_OPERATORS: dict[str, OperatorInfo] = {
    s: OperatorInfo(s, 1, POSTFIX, Assoc.LEFT)
    for s in ("++", "--")
}

CONDITIONAL_OPERATOR = OperatorInfo("?:", 3, CONDITIONAL, Assoc.RIGHT)

# Symbols with both a unary and a binary meaning, resolved by operand count
AMBIGUOUS_SYMBOLS = frozenset({"+", "-", "*", "&"})


def lookup(symbol: str, arity: int) -> OperatorInfo | None:
    """Find the operator spelled `symbol` taking `arity` operands."""
    if arity == 1:
        return PREFIX_OPERATORS.get(symbol)
    if arity == 2:
        return BINARY_OPERATORS.get(symbol)
    if arity == 3 and symbol in ("?:", "?"):
        return CONDITIONAL_OPERATOR
    return None


def arities(symbol: str) -> tuple[int, ...]:
    """All operand counts `symbol` accepts (empty if it is not an operator)."""
    found = []
    if symbol in PREFIX_OPERATORS:
        found.append(1)
    if symbol in BINARY_OPERATORS:
        found.append(2)
    if symbol in ("?:", "?"):
        found.append(3)
    return tuple(found)
