from __future__ import annotations
from enum import Enum
from typing import Iterator, Optional, Union
from dataclasses import dataclass


class Qualifier(str, Enum):
    CONST = "const"
    VOLATILE = "volatile"
    RESTRICT = "restrict"

    def __str__(self) -> str:
        return self.value

# Printing order of qualifiers, independent of how they were requested
QUALIFIER_ORDER = (Qualifier.CONST, Qualifier.VOLATILE, Qualifier.RESTRICT)


class RecordKind(str, Enum):
    STRUCT = "struct"
    UNION = "union"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VoidType:
    def __str__(self) -> str:
        return "void"

@dataclass(frozen=True)
class IntegerType:
    """An integer type. `spelling` is the C keyword sequence used to print it.

    Width is nominal (LP64 is assumed for `long`); it only distinguishes
    spellings and is never used for layout.
    """
    width: int
    signed: bool
    spelling: str

    def __str__(self) -> str:
        return self.spelling

@dataclass(frozen=True)
class FloatType:
    width: int          # 32, 64 or 128 (long double)

    @property
    def spelling(self) -> str:
        return FLOAT_SPELLINGS[self.width]

    def __str__(self) -> str:
        return self.spelling

@dataclass(frozen=True)
class PointerType:
    pointee: "Type"

    def __str__(self) -> str:
        return type_name(self)

@dataclass(frozen=True)
class ArrayType:
    element: "Type"
    length: Optional[int] = None   # None for an incomplete array `T[]`

    def __str__(self) -> str:
        return type_name(self)

@dataclass(frozen=True)
class FunctionType:
    return_type: "Type"
    params: tuple["Type", ...] = ()
    variadic: bool = False

    def __str__(self) -> str:
        return type_name(self)

@dataclass(frozen=True)
class QualifiedType:
    base: "Type"
    qualifiers: frozenset[Qualifier]

    def __str__(self) -> str:
        return type_name(self)

@dataclass(frozen=True)
class Field:
    """Single member of a struct or union."""
    name: str
    type: "Type"
    bit_width: Optional[int] = None

@dataclass(frozen=True)
class Enumerator:
    name: str
    value: Optional[int] = None     # None continues from the previous enumerator

@dataclass(eq=False)
class RecordType:
    """A struct or union, identified by its tag.

    Records are nominal: two records with identical members are still
    different types, so equality and hashing are by identity. `fields`
    stays None while the record is only forward declared (opaque).
    """
    kind: RecordKind
    name: str
    fields: Optional[tuple[Field, ...]] = None

    @property
    def is_complete(self) -> bool:
        return self.fields is not None

    def get_field(self, name: str) -> Optional[Field]:
        """Get a member by name, or None if it doesn't exist (or the record is opaque)."""
        for f in self.fields or ():
            if f.name == name:
                return f
        return None

    def __str__(self) -> str:
        return f"{self.kind.value} {self.name}"

    def __repr__(self) -> str:
        state = "complete" if self.is_complete else "opaque"
        return f"RecordType({self.kind.value} {self.name}, {state})"

@dataclass(eq=False)
class EnumType:
    """A named enumeration; nominal like RecordType."""
    name: str
    variants: Optional[tuple[Enumerator, ...]] = None

    @property
    def is_complete(self) -> bool:
        return self.variants is not None

    def value_of(self, variant: str) -> Optional[int]:
        """Get the integer value of a variant, following C's implicit numbering."""
        for name, value in enumerator_values(self.variants or ()):
            if name == variant:
                return value
        return None

    def __str__(self) -> str:
        return f"enum {self.name}"

    def __repr__(self) -> str:
        return f"EnumType({self.name})"

@dataclass(eq=False)
class NamedType:
    """A typedef name referring to `target`."""
    alias: str
    target: "Type"

    def __str__(self) -> str:
        return self.alias

    def __repr__(self) -> str:
        return f"NamedType({self.alias} = {type_name(self.target)})"


Type = Union[
    VoidType, IntegerType, FloatType, PointerType, ArrayType, FunctionType,
    QualifiedType, RecordType, EnumType, NamedType,
]

TYPE_CLASSES = (
    VoidType, IntegerType, FloatType, PointerType, ArrayType, FunctionType,
    QualifiedType, RecordType, EnumType, NamedType,
)
NOMINAL_TYPES = (RecordType, EnumType, NamedType)
SCALAR_SPECIFIERS = (VoidType, IntegerType, FloatType)


FLOAT_SPELLINGS = {
    32: "float",
    64: "double",
    128: "long double",
}

# Canonical spelling for each (width, signed) pair
INTEGER_SPELLINGS = {
    (1, False): "_Bool",
    (8, True): "signed char",
    (8, False): "unsigned char",
    (16, True): "short",
    (16, False): "unsigned short",
    (32, True): "int",
    (32, False): "unsigned int",
    (64, True): "long long",
    (64, False): "unsigned long long",
}

# Every accepted primitive spelling -> (width, signed, canonical spelling)
PRIMITIVE_INTEGERS = {
    "char": (8, True, "char"),
    "signed char": (8, True, "signed char"),
    "unsigned char": (8, False, "unsigned char"),
    "short": (16, True, "short"),
    "short int": (16, True, "short"),
    "signed short": (16, True, "short"),
    "unsigned short": (16, False, "unsigned short"),
    "unsigned short int": (16, False, "unsigned short"),
    "int": (32, True, "int"),
    "signed": (32, True, "int"),
    "signed int": (32, True, "int"),
    "unsigned": (32, False, "unsigned int"),
    "unsigned int": (32, False, "unsigned int"),
    "long": (64, True, "long"),
    "long int": (64, True, "long"),
    "signed long": (64, True, "long"),
    "unsigned long": (64, False, "unsigned long"),
    "unsigned long int": (64, False, "unsigned long"),
    "long long": (64, True, "long long"),
    "long long int": (64, True, "long long"),
    "unsigned long long": (64, False, "unsigned long long"),
    "unsigned long long int": (64, False, "unsigned long long"),
    "_Bool": (1, False, "_Bool"),
    "bool": (1, False, "_Bool"),
}

PRIMITIVE_FLOATS = {
    "float": 32,
    "double": 64,
    "long double": 128,
}


def strip_typedefs(t: Type) -> Type:
    """Follow typedef names (and qualifiers on them) down to the underlying type."""
    while True:
        if isinstance(t, NamedType):
            t = t.target
        elif isinstance(t, QualifiedType) and isinstance(t.base, NamedType):
            t = t.base.target
        else:
            return t

def unqualified(t: Type) -> Type:
    """The type with typedefs resolved and top-level qualifiers removed."""
    t = strip_typedefs(t)
    while isinstance(t, QualifiedType):
        t = strip_typedefs(t.base)
    return t

def is_void(t: Type) -> bool:
    return isinstance(unqualified(t), VoidType)

def is_callable(t: Type) -> bool:
    """True for function types and pointers to functions."""
    t = unqualified(t)
    if isinstance(t, PointerType):
        t = unqualified(t.pointee)
    return isinstance(t, FunctionType)

def enumerator_values(variants: tuple[Enumerator, ...]) -> Iterator[tuple[str, int]]:
    """Yield (name, value) pairs, numbering implicit values like a C compiler."""
    next_value = 0
    for variant in variants:
        value = next_value if variant.value is None else variant.value
        yield variant.name, value
        next_value = value + 1

def value_members(t: Type) -> Iterator[Type]:
    """Yield the nominal types that `t` needs complete (contained by value).

    Pointers break containment; arrays, qualifiers and typedef names do not.
    """
    if isinstance(t, QualifiedType):
        yield from value_members(t.base)
    elif isinstance(t, ArrayType):
        yield from value_members(t.element)
    elif isinstance(t, NamedType):
        yield t
        yield from value_members(t.target)
    elif isinstance(t, (RecordType, EnumType)):
        yield t

def referenced_types(t: Type) -> Iterator[tuple[Type, bool]]:
    """Yield every nominal type mentioned by `t` with a by-value flag.

    The flag is False for nominal types reached through a pointer, which
    only need a name (a forward declaration) to be spelled.
    """
    def walk(node: Type, by_value: bool) -> Iterator[tuple[Type, bool]]:
        match node:
            case QualifiedType():
                yield from walk(node.base, by_value)
            case ArrayType():
                yield from walk(node.element, by_value)
            case PointerType():
                yield from walk(node.pointee, False)
            case FunctionType():
                yield from walk(node.return_type, False)
                for param in node.params:
                    yield from walk(param, False)
            case NamedType():
                yield node, True
                yield from walk(node.target, by_value)
            case RecordType() | EnumType():
                yield node, by_value
            case _:
                return
    yield from walk(t, True)

def type_name(t: Type) -> str:
    """Spell `t` as a C type name, e.g. `int (*)[5]`."""
    from ccgenor.printer.declarators import declaration
    return declaration(t, "")
