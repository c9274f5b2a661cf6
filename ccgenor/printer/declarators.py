"""Spelling of C declarators.

C declarations are written inside out: the declared name sits in the
middle, pointers wrap it on the left and array or function suffixes on
the right. `declaration` walks the type from the outside in, growing the
declarator around the name, and parenthesizes a pointer declarator when
an array or function suffix would otherwise bind tighter.
"""
from __future__ import annotations
from typing import Optional, Sequence

from ccgenor.semantics.typesys import (
    ArrayType, EnumType, FloatType, FunctionType, IntegerType, NamedType,
    PointerType, QualifiedType, RecordType, Type, VoidType, QUALIFIER_ORDER,
)


def declaration(t: Type, name: str = "", param_names: Optional[Sequence[str]] = None) -> str:
    """Spell a declaration of `name` with type `t`.

    With an empty name the result is an abstract type name, as used by
    casts and sizeof (e.g. `int (*)[5]`).

    Args:
        t: The declared type.
        name: The declared identifier, or "" for a type name.
        param_names: Parameter names, used when `t` is a function type.

    Returns:
        The declaration text without storage class or trailing semicolon.
    """
    specifier, declarator = _split(t, name, param_names)
    if not declarator:
        return specifier
    if declarator.startswith("["):
        return f"{specifier}{declarator}"
    return f"{specifier} {declarator}"


def qualifier_prefix(qualifiers) -> str:
    return " ".join(q.value for q in QUALIFIER_ORDER if q in qualifiers)


def specifier_name(t: Type) -> str:
    """Spelling of a type usable as a declaration specifier."""
    match t:
        case VoidType():
            return "void"
        case IntegerType():
            return t.spelling
        case FloatType():
            return t.spelling
        case RecordType():
            return f"{t.kind.value} {t.name}"
        case EnumType():
            return f"enum {t.name}"
        case NamedType():
            return t.alias
        case _:
            raise TypeError(f"{t!r} is not a declaration specifier")


def _split(t: Type, declarator: str, param_names: Optional[Sequence[str]]) -> tuple[str, str]:
    """Return (specifier, declarator) for `t` declaring `declarator`."""
    while True:
        match t:
            case QualifiedType():
                quals = qualifier_prefix(t.qualifiers)
                base = t.base
                if isinstance(base, ArrayType):
                    # qualifiers apply to the element type of an array
                    element, merged = base.element, t.qualifiers
                    if isinstance(element, QualifiedType):
                        element, merged = element.base, merged | element.qualifiers
                    t = ArrayType(QualifiedType(element, merged), base.length)
                elif isinstance(base, PointerType):
                    declarator = f"*{quals} {declarator}" if declarator else f"*{quals}"
                    t = base.pointee
                else:
                    return f"{quals} {specifier_name(base)}", declarator
            case PointerType():
                declarator = f"*{declarator}"
                t = t.pointee
            case ArrayType():
                if declarator.startswith("*"):
                    declarator = f"({declarator})"
                length = "" if t.length is None else str(t.length)
                declarator = f"{declarator}[{length}]"
                t = t.element
            case FunctionType():
                if declarator.startswith("*"):
                    declarator = f"({declarator})"
                declarator = f"{declarator}({parameter_list(t, param_names)})"
                param_names = None
                t = t.return_type
            case _:
                return specifier_name(t), declarator


def parameter_list(fn: FunctionType, names: Optional[Sequence[str]] = None) -> str:
    """Spell the parameter list of `fn`, `void` when it has no parameters."""
    if not fn.params:
        return "void"
    names = list(names) if names is not None else [""] * len(fn.params)
    parts = [declaration(p, n) for p, n in zip(fn.params, names)]
    if fn.variadic:
        parts.append("...")
    return ", ".join(parts)
