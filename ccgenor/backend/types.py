"""Type interning and nominal type registries.

Anonymous types (pointers, arrays, functions, qualified types, primitives)
are interned structurally: every equal spec maps to one canonical object.
Records, enums and typedef names are nominal and live in per-context
registries keyed by name, so two structurally identical records remain
different types.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional, Sequence, TYPE_CHECKING, Union

from ccgenor.internals import errors as er
from ccgenor.semantics.ast import EnumDecl, RecordDecl, Symbol, SymbolKind, TypeAliasDecl
from ccgenor.semantics.typesys import (
    ArrayType, EnumType, Enumerator, Field, FloatType, FunctionType, IntegerType,
    NamedType, PointerType, QualifiedType, Qualifier, RecordKind, RecordType, Type,
    VoidType, FLOAT_SPELLINGS, INTEGER_SPELLINGS, PRIMITIVE_FLOATS, PRIMITIVE_INTEGERS,
    strip_typedefs, unqualified, value_members,
)

if TYPE_CHECKING:
    from ccgenor.context import Context

logger = logging.getLogger(__name__)

_VALID_INTEGERS = frozenset(PRIMITIVE_INTEGERS.values())

FieldSpec = Union[Field, tuple]
EnumeratorSpec = Union[Enumerator, str, tuple]


class TypeSystem:
    """Owns every type of one context."""

    def __init__(self, ctx: 'Context') -> None:
        self.ctx = ctx
        self._interned: dict[Type, Type] = {}
        self.records: dict[str, RecordType] = {}
        self.enums: dict[str, EnumType] = {}
        self.typedefs: dict[str, NamedType] = {}

    # ------------------------------------------------------------------
    # Structural interning
    # ------------------------------------------------------------------

    def intern(self, spec: Type) -> Type:
        """Return the canonical type for `spec`, creating it if absent.

        Raises:
            InvalidType: If `spec` cannot be spelled in C.
            TypeConflict: If a nominal spec clashes with the registered type of that name.
        """
        match spec:
            case RecordType():
                return self._intern_record(spec)
            case EnumType():
                return self._intern_enum(spec)
            case NamedType():
                return self._intern_named(spec)
            case VoidType():
                canon = spec
            case IntegerType():
                if (spec.width, spec.signed, spec.spelling) not in _VALID_INTEGERS:
                    self.invalid(f"no C integer type is spelled '{spec.spelling}' "
                                  f"with width {spec.width}")
                canon = spec
            case FloatType():
                if spec.width not in FLOAT_SPELLINGS:
                    self.invalid(f"no floating type has width {spec.width}")
                canon = spec
            case PointerType():
                canon = PointerType(self.intern(spec.pointee))
            case ArrayType():
                canon = self._intern_array(spec)
            case FunctionType():
                canon = self._intern_function(spec)
            case QualifiedType():
                return self._intern_qualified(spec.base, spec.qualifiers)
            case _:
                self.invalid(f"{spec!r} is not a type")
        return self._interned.setdefault(canon, canon)

    def _intern_array(self, spec: ArrayType) -> ArrayType:
        element = self.intern(spec.element)
        bare = unqualified(element)
        if isinstance(bare, VoidType):
            self.invalid("array of void")
        if isinstance(bare, FunctionType):
            self.invalid("array of functions")
        length = spec.length
        if length is not None and (isinstance(length, bool) or not isinstance(length, int) or length < 1):
            self.invalid(f"array length must be a positive integer, got {length!r}")
        return ArrayType(element, length)

    def _intern_function(self, spec: FunctionType) -> FunctionType:
        ret = self.intern(spec.return_type)
        bare = unqualified(ret)
        if isinstance(bare, ArrayType):
            self.invalid("function returning an array")
        if isinstance(bare, FunctionType):
            self.invalid("function returning a function")
        params = tuple(self.intern(p) for p in spec.params)
        for p in params:
            if isinstance(unqualified(p), VoidType):
                self.invalid("void parameter (use an empty parameter list)")
        if spec.variadic and not params:
            self.invalid("variadic function needs at least one named parameter")
        return FunctionType(ret, params, bool(spec.variadic))

    def _intern_qualified(self, base: Type, qualifiers: Iterable[Union[Qualifier, str]]) -> Type:
        quals = set()
        for q in qualifiers:
            try:
                quals.add(Qualifier(q))
            except ValueError:
                self.invalid(f"unknown qualifier '{q}'")
        base = self.intern(base)
        # const const T == const T; merge nested qualifier sets
        if isinstance(base, QualifiedType):
            quals |= base.qualifiers
            base = base.base
        if not quals:
            return base
        if isinstance(base, ArrayType):
            # a qualified array is an array of qualified elements
            return self.intern(ArrayType(QualifiedType(base.element, frozenset(quals)), base.length))
        target = strip_typedefs(base)
        if isinstance(target, FunctionType):
            self.invalid("function types cannot be qualified")
        if Qualifier.RESTRICT in quals and not isinstance(unqualified(target), PointerType):
            self.invalid("restrict requires a pointer type")
        canon = QualifiedType(base, frozenset(quals))
        return self._interned.setdefault(canon, canon)

    def invalid(self, reason: str):
        self.ctx.fail(er.ERR.CG0121, reason=reason)

    # ------------------------------------------------------------------
    # Convenience constructors
    # ------------------------------------------------------------------

    def primitive(self, name: str) -> Type:
        spelling = " ".join(str(name).split())
        if spelling == "void":
            return self.intern(VoidType())
        if spelling in PRIMITIVE_INTEGERS:
            return self.intern(IntegerType(*PRIMITIVE_INTEGERS[spelling]))
        if spelling in PRIMITIVE_FLOATS:
            return self.intern(FloatType(PRIMITIVE_FLOATS[spelling]))
        self.ctx.fail(er.ERR.CG0122, name=name)

    def int_type(self, width: int = 32, signed: bool = True) -> Type:
        spelling = INTEGER_SPELLINGS.get((width, bool(signed)))
        if spelling is None:
            sign = "signed" if signed else "unsigned"
            self.invalid(f"no {sign} integer type of width {width}")
        return self.intern(IntegerType(width, bool(signed), spelling))

    def float_type(self, width: int = 64) -> Type:
        return self.intern(FloatType(width))

    def pointer(self, pointee: Type) -> Type:
        return self.intern(PointerType(pointee))

    def array(self, element: Type, length: Optional[int] = None) -> Type:
        return self.intern(ArrayType(element, length))

    def function(self, return_type: Type, params: Sequence[Type] = (), variadic: bool = False) -> Type:
        return self.intern(FunctionType(return_type, tuple(params), variadic))

    def qualified(self, base: Type, *qualifiers: Union[Qualifier, str]) -> Type:
        return self._intern_qualified(base, qualifiers)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def declare_record(self, name: str, kind: RecordKind = RecordKind.STRUCT) -> RecordType:
        """Register `name` as an opaque record (forward declaration)."""
        kind = RecordKind(kind)
        self.ctx.check_name(name)
        self._check_tag_free(name, kind.value)
        existing = self.records.get(name)
        if existing is not None:
            if existing.kind != kind:
                self.ctx.fail(er.ERR.CG0102, name=name, previous=existing.kind.value, requested=kind.value)
            return existing
        record = RecordType(kind, name)
        self.records[name] = record
        logger.debug("declared opaque %s %s", kind.value, name)
        return record

    def define_record(self, name: str, fields: Sequence[FieldSpec],
                      kind: RecordKind = RecordKind.STRUCT) -> RecordType:
        """Define (or complete) a record.

        Identical redefinition returns the existing record.

        Raises:
            DuplicateDefinition: If the record is already defined differently.
            TypeConflict: If the tag was declared with the other record kind.
            InvalidRecursiveLayout: If the record would contain itself by value.
        """
        kind = RecordKind(kind)
        self.ctx.check_name(name)
        self._check_tag_free(name, kind.value)
        members = self._normalize_fields(name, kind, fields)

        existing = self.records.get(name)
        if existing is not None:
            if existing.kind != kind:
                self.ctx.fail(er.ERR.CG0102, name=name, previous=existing.kind.value, requested=kind.value)
            if existing.is_complete:
                if existing.fields == members:
                    logger.debug("identical redefinition of %s %s", kind.value, name)
                    return existing
                self.ctx.fail(er.ERR.CG0111, tag=kind.value, name=name)
            record = existing
        else:
            record = RecordType(kind, name)

        path = self._containment_path(record, members)
        if path is not None:
            self.ctx.fail(er.ERR.CG0131, name=name, path=" -> ".join(path))

        record.fields = members
        self.records[name] = record
        self.ctx.register(RecordDecl(record))
        logger.debug("defined %s %s with %d member(s)", kind.value, name, len(members))
        return record

    def _normalize_fields(self, owner: str, kind: RecordKind, fields: Sequence[FieldSpec]) -> tuple[Field, ...]:
        members: list[Field] = []
        seen: set[str] = set()
        specs = list(fields)
        if not specs:
            self.invalid(f"{kind.value} '{owner}' has no members")
        for i, spec in enumerate(specs):
            if isinstance(spec, Field):
                f = spec
            elif isinstance(spec, tuple) and len(spec) in (2, 3):
                f = Field(*spec)
            else:
                self.invalid(f"member {i} of '{owner}' must be a Field or (name, type[, bits]), got {spec!r}")
            self.ctx.check_name(f.name)
            if f.name in seen:
                self.ctx.fail(er.ERR.CG0206, name=f.name, owner=owner)
            seen.add(f.name)
            ty = self.intern(f.type)
            bare = unqualified(ty)
            if isinstance(bare, VoidType):
                self.invalid(f"member '{f.name}' of '{owner}' has type void")
            if isinstance(bare, FunctionType):
                self.invalid(f"member '{f.name}' of '{owner}' has a function type")
            if isinstance(bare, ArrayType) and bare.length is None:
                # flexible array member: last member of a struct with other members
                if kind is not RecordKind.STRUCT or i != len(specs) - 1 or i == 0:
                    self.invalid(f"flexible array member '{f.name}' must be the last member of a struct")
            if f.bit_width is not None:
                if not isinstance(bare, (IntegerType, EnumType)):
                    self.invalid(f"bit-field '{f.name}' must have an integer type")
                if isinstance(f.bit_width, bool) or not isinstance(f.bit_width, int) or f.bit_width < 1:
                    self.invalid(f"bit-field '{f.name}' needs a positive width")
            members.append(Field(f.name, ty, f.bit_width))
        return tuple(members)

    def _containment_path(self, target: RecordType, members: tuple[Field, ...]) -> Optional[list[str]]:
        """Find a by-value containment chain from `members` back to `target`."""
        visited: set[int] = set()

        def visit(owner: str, fields: tuple[Field, ...], path: list[str]) -> Optional[list[str]]:
            for f in fields:
                for t in value_members(f.type):
                    if not isinstance(t, RecordType):
                        continue
                    step = path + [f"{owner}.{f.name}"]
                    if t is target:
                        return step + [target.name]
                    if t.is_complete and id(t) not in visited:
                        visited.add(id(t))
                        found = visit(t.name, t.fields, step)
                        if found is not None:
                            return found
            return None

        return visit(target.name, members, [])

    def _intern_record(self, spec: RecordType) -> RecordType:
        existing = self.records.get(spec.name)
        if existing is spec:
            return existing
        if existing is None:
            if spec.fields is None:
                return self.declare_record(spec.name, spec.kind)
            return self.define_record(spec.name, spec.fields, spec.kind)
        if existing.kind != spec.kind:
            self.ctx.fail(er.ERR.CG0102, name=spec.name, previous=existing.kind.value, requested=spec.kind.value)
        if spec.fields is None:
            return existing
        if not existing.is_complete:
            return self.define_record(spec.name, spec.fields, spec.kind)
        if existing.fields != self._normalize_fields(spec.name, spec.kind, spec.fields):
            self.ctx.fail(er.ERR.CG0101, tag=spec.kind.value, name=spec.name)
        return existing

    def _check_tag_free(self, name: str, requested: str) -> None:
        # struct, union and enum tags share one namespace
        if requested == "enum" and name in self.records:
            self.ctx.fail(er.ERR.CG0102, name=name, previous=self.records[name].kind.value, requested=requested)
        if requested != "enum" and name in self.enums:
            self.ctx.fail(er.ERR.CG0102, name=name, previous="enum", requested=requested)

    # ------------------------------------------------------------------
    # Enums
    # ------------------------------------------------------------------

    def define_enum(self, name: str, variants: Sequence[EnumeratorSpec]) -> EnumType:
        """Define an enum and bind its enumerators at file scope."""
        self.ctx.check_name(name)
        self._check_tag_free(name, "enum")
        members = self._normalize_enumerators(name, variants)

        existing = self.enums.get(name)
        if existing is not None:
            if existing.variants == members:
                return existing
            self.ctx.fail(er.ERR.CG0111, tag="enum", name=name)

        scopes = self.ctx.scopes
        for variant in members:
            if scopes.lookup_global(variant.name) is not None:
                self.ctx.fail(er.ERR.CG0201, name=variant.name)

        enum = EnumType(name, members)
        decl = EnumDecl(enum)
        int_t = self.int_type()
        for variant in members:
            scopes.bind_global(Symbol(variant.name, int_t, SymbolKind.ENUMERATOR, 0, decl, self.ctx))
        self.enums[name] = enum
        self.ctx.register(decl)
        logger.debug("defined enum %s with %d enumerator(s)", name, len(members))
        return enum

    def _normalize_enumerators(self, owner: str, variants: Sequence[EnumeratorSpec]) -> tuple[Enumerator, ...]:
        members: list[Enumerator] = []
        seen: set[str] = set()
        for spec in variants:
            if isinstance(spec, Enumerator):
                e = spec
            elif isinstance(spec, str):
                e = Enumerator(spec)
            elif isinstance(spec, tuple) and len(spec) == 2:
                e = Enumerator(*spec)
            else:
                self.invalid(f"enumerator of '{owner}' must be a name or (name, value), got {spec!r}")
            self.ctx.check_name(e.name)
            if e.name in seen:
                self.ctx.fail(er.ERR.CG0206, name=e.name, owner=owner)
            if e.value is not None and (isinstance(e.value, bool) or not isinstance(e.value, int)):
                self.invalid(f"enumerator '{e.name}' needs an integer value, got {e.value!r}")
            seen.add(e.name)
            members.append(e)
        if not members:
            self.invalid(f"enum '{owner}' has no enumerators")
        return tuple(members)

    def _intern_enum(self, spec: EnumType) -> EnumType:
        existing = self.enums.get(spec.name)
        if existing is spec:
            return existing
        if existing is None:
            if spec.variants is None:
                self.ctx.fail(er.ERR.CG0103, tag="enum", name=spec.name)
            return self.define_enum(spec.name, spec.variants)
        if spec.variants is not None and existing.variants != self._normalize_enumerators(spec.name, spec.variants):
            self.ctx.fail(er.ERR.CG0101, tag="enum", name=spec.name)
        return existing

    # ------------------------------------------------------------------
    # Typedefs
    # ------------------------------------------------------------------

    def typedef(self, alias: str, target: Type) -> NamedType:
        """Bind `alias` as a typedef name for `target`."""
        self.ctx.check_name(alias)
        target = self.intern(target)
        existing = self.typedefs.get(alias)
        if existing is not None:
            if existing.target == target:
                return existing
            self.ctx.fail(er.ERR.CG0112, name=alias, previous=str(existing.target), requested=str(target))

        named = NamedType(alias, target)
        symbol = Symbol(alias, named, SymbolKind.TYPEDEF, 0, None, self.ctx)
        decl = TypeAliasDecl(symbol, named)
        symbol.declaration = decl
        self.ctx.scopes.bind_global(symbol)
        self.typedefs[alias] = named
        self.ctx.register(decl)
        logger.debug("typedef %s = %s", alias, target)
        return named

    def _intern_named(self, spec: NamedType) -> NamedType:
        existing = self.typedefs.get(spec.alias)
        if existing is spec:
            return existing
        if existing is None:
            return self.typedef(spec.alias, spec.target)
        if existing.target != self.intern(spec.target):
            self.ctx.fail(er.ERR.CG0101, tag="typedef", name=spec.alias)
        return existing
