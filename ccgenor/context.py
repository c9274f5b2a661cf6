"""
Construction context for one C translation unit.

The Context owns every type, symbol and declaration of one generation
session and is the gateway for all construction operations. It composes
specialized managers for scoping, types and expressions, and hands out a
FunctionBuilder for each function definition.

API:
    from ccgenor import Context
    ctx = Context()
    with ctx.define_function("add", ctx.function_type(ctx.int_t, [ctx.int_t, ctx.int_t]),
                             ["a", "b"]) as fb:
        fb.ret(ctx.binary("+", fb.param("a"), fb.param("b")))
    print(ctx.emit())
"""
from __future__ import annotations
import logging
from typing import Any, Iterable, Optional, Sequence, TextIO, Union

from ccgenor.internals import errors as er
from ccgenor.internals.report import Reporter
from ccgenor.backend.expressions import ExpressionBuilder
from ccgenor.backend.functions import FunctionBuilder
from ccgenor.backend.scopes import ScopeManager
from ccgenor.backend.types import TypeSystem
from ccgenor.semantics.ast import (
    Decl, Expr, FunctionDecl, Identifier, IncludeDecl, InitializerList, RawDecl, Storage,
    Symbol, SymbolKind, VariableDecl, iter_identifiers,
)
from ccgenor.semantics.identifiers import is_identifier, is_reserved
from ccgenor.semantics.typesys import (
    FunctionType, Qualifier, RecordKind, Type, VoidType, strip_typedefs, unqualified,
)

logger = logging.getLogger(__name__)


class Context:
    """Owner of all nodes of one translation unit."""

    def __init__(self, name: str = "<context>", indent: str = "    ") -> None:
        """Initialize an empty translation unit.

        Args:
            name: Label used in diagnostics.
            indent: One level of indentation in the emitted text.
        """
        self.name = name
        self.indent = indent

        # Construction step counter, reported with every error
        self.step = 0
        self.reporter = Reporter(name)

        self.scopes = ScopeManager(self)
        self.types = TypeSystem(self)
        self.exprs = ExpressionBuilder(self)

        # Top-level declarations in registration order; includes are kept apart
        self.declarations: list[Decl] = []
        self.includes: list[IncludeDecl] = []

        self._open_function: Optional[FunctionBuilder] = None
        self._definitions: dict[str, FunctionDecl] = {}

        # Primitive types for convenient access
        self.void_t = self.types.primitive("void")
        self.bool_t = self.types.primitive("_Bool")
        self.char_t = self.types.primitive("char")
        self.schar_t = self.types.primitive("signed char")
        self.uchar_t = self.types.primitive("unsigned char")
        self.short_t = self.types.primitive("short")
        self.ushort_t = self.types.primitive("unsigned short")
        self.int_t = self.types.primitive("int")
        self.uint_t = self.types.primitive("unsigned int")
        self.long_t = self.types.primitive("long")
        self.ulong_t = self.types.primitive("unsigned long")
        self.llong_t = self.types.primitive("long long")
        self.ullong_t = self.types.primitive("unsigned long long")
        self.float_t = self.types.primitive("float")
        self.double_t = self.types.primitive("double")
        self.ldouble_t = self.types.primitive("long double")

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def tick(self) -> int:
        """Advance the construction step counter."""
        self.step += 1
        return self.step

    def fail(self, em: er.ErrorMessage, **kwargs):
        """Record `em` in the diagnostics and raise it."""
        er.emit(self.reporter, em, self.step, **kwargs)

    def check_name(self, name: Any) -> str:
        """Validate a C identifier.

        Raises:
            InvalidName: If `name` is not an identifier or is a reserved word.
        """
        if not is_identifier(name):
            self.fail(er.ERR.CG0221, name=name)
        if is_reserved(name):
            self.fail(er.ERR.CG0222, name=name)
        return name

    def register(self, decl: Decl) -> Decl:
        self.tick()
        self.declarations.append(decl)
        return decl

    @property
    def diagnostics(self) -> Reporter:
        return self.reporter

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def intern_type(self, spec: Type) -> Type:
        return self.types.intern(spec)

    @property
    def void(self) -> Type:
        return self.void_t

    def primitive(self, name: str) -> Type:
        return self.types.primitive(name)

    def int_type(self, width: int = 32, signed: bool = True) -> Type:
        return self.types.int_type(width, signed)

    def float_type(self, width: int = 64) -> Type:
        return self.types.float_type(width)

    def pointer(self, pointee: Type) -> Type:
        return self.types.pointer(pointee)

    def array(self, element: Type, length: Optional[int] = None) -> Type:
        return self.types.array(element, length)

    def function_type(self, return_type: Type, params: Sequence[Type] = (), variadic: bool = False) -> Type:
        return self.types.function(return_type, params, variadic)

    def qualified(self, base: Type, *qualifiers: Union[Qualifier, str]) -> Type:
        return self.types.qualified(base, *qualifiers)

    def const(self, base: Type) -> Type:
        return self.types.qualified(base, Qualifier.CONST)

    def declare_record(self, name: str, kind: RecordKind = RecordKind.STRUCT):
        return self.types.declare_record(name, kind)

    def define_record(self, name: str, fields: Sequence, kind: RecordKind = RecordKind.STRUCT):
        return self.types.define_record(name, fields, kind)

    def define_enum(self, name: str, variants: Sequence):
        return self.types.define_enum(name, variants)

    def typedef(self, alias: str, target: Type):
        return self.types.typedef(alias, target)

    # ------------------------------------------------------------------
    # Scopes and symbols
    # ------------------------------------------------------------------

    def enter_scope(self) -> None:
        self.tick()
        self.scopes.push_scope()
        logger.debug("entered scope %d", self.scopes.depth)

    def exit_scope(self) -> None:
        self.tick()
        self.scopes.pop_scope()
        logger.debug("left scope, depth is now %d", self.scopes.depth)

    def bind_local(self, name: str, type: Type) -> Symbol:
        """Bind `name` in the innermost scope without emitting a declaration.

        Raises:
            NameCollision: If the innermost scope already binds `name`.
        """
        self.check_name(name)
        ty = self.types.intern(type)
        self.tick()
        return self.scopes.bind(Symbol(name, ty, SymbolKind.VARIABLE, self.scopes.depth, None, self))

    def resolve(self, name: str) -> Symbol:
        """Find the innermost visible binding of `name`.

        Raises:
            UnknownSymbol: If no binding is visible.
        """
        symbol = self.scopes.lookup(name)
        if symbol is None:
            self.fail(er.ERR.CG0211, name=name)
        return symbol

    def bind_external(self, name: str, type: Type, header: Optional[str] = None,
                      system: bool = True) -> Symbol:
        """Bind a file-scope name provided by a header, such as `printf`.

        No declaration is printed for it; with `header` the include is
        registered instead.
        """
        self.check_name(name)
        ty = self.types.intern(type)
        existing = self.scopes.lookup_global(name)
        if existing is not None:
            if existing.kind is SymbolKind.EXTERNAL and existing.type == ty:
                if header is not None:
                    self.include(header, system)
                return existing
            self.fail(er.ERR.CG0202, name=name, requested=str(ty), previous=_describe_symbol(existing))
        if header is not None:
            self.include(header, system)
        self.tick()
        return self.scopes.bind_global(Symbol(name, ty, SymbolKind.EXTERNAL, 0, None, self))

    # ------------------------------------------------------------------
    # Top-level declarations
    # ------------------------------------------------------------------

    def include(self, header: str, system: bool = False) -> IncludeDecl:
        """Register `#include`; repeats of the same header are kept once."""
        header = header.strip()
        if header.startswith("<") and header.endswith(">"):
            header, system = header[1:-1], True
        elif header.startswith('"') and header.endswith('"'):
            header, system = header[1:-1], False
        if not header or "\n" in header or ">" in header or '"' in header:
            self.fail(er.ERR.CG0221, name=header)
        for existing in self.includes:
            if existing.header == header and existing.system == system:
                return existing
        self.tick()
        decl = IncludeDecl(header, system)
        self.includes.append(decl)
        return decl

    def raw(self, text: str) -> RawDecl:
        """Register verbatim top-level C text."""
        return self.register(RawDecl(text))

    def declare_global(self, name: str, type: Type, storage: Storage = Storage.NONE,
                       initializer: Any = None, param_names: Optional[Sequence[str]] = None,
                       inline: bool = False) -> Decl:
        """Declare a file-scope variable, or a prototype for function types.

        An identical repeat returns the existing declaration.

        Raises:
            NameCollision: If `name` is bound with another kind, type or
                storage, or a second initialized definition is attempted.
        """
        self.check_name(name)
        storage = Storage(storage)
        ty = self.types.intern(type)
        fn = strip_typedefs(ty)
        is_function = isinstance(fn, FunctionType)
        kind = SymbolKind.FUNCTION if is_function else SymbolKind.VARIABLE

        if is_function:
            if initializer is not None:
                self.types.invalid(f"function '{name}' cannot have an initializer")
            names = self._param_names(name, fn, param_names, required=False)
        else:
            if isinstance(unqualified(ty), VoidType):
                self.types.invalid(f"variable '{name}' has type void")
            if storage in (Storage.AUTO, Storage.REGISTER):
                self.types.invalid(f"'{storage.value}' is not allowed at file scope")
            names = None
        value = self._global_initializer(initializer)

        existing = self.scopes.lookup_global(name)
        if existing is not None:
            self._check_redeclaration(existing, kind, ty, storage)
            for decl in self.declarations:
                if getattr(decl, "symbol", None) is not existing:
                    continue
                if is_function and not decl.definition and decl.param_names == names \
                        and decl.storage is storage and decl.inline == inline:
                    return decl
                if not is_function and value is not None and decl.initializer is not None:
                    self.fail(er.ERR.CG0204, name=name)
                if not is_function and value is None and decl.storage is storage:
                    return decl
            symbol = existing
        else:
            symbol = Symbol(name, ty, kind, 0, None, self)

        if is_function:
            decl = FunctionDecl(symbol, fn, names, None, storage, inline)
        else:
            decl = VariableDecl(symbol, ty, value, storage)
        if existing is None:
            symbol.declaration = decl
            self.scopes.bind_global(symbol)
        self.register(decl)
        logger.debug("declared %s %s", kind.value, name)
        return decl

    def _global_initializer(self, initializer: Any) -> Optional[Expr]:
        if initializer is None:
            return None
        if isinstance(initializer, InitializerList):
            value = initializer
        else:
            value = self.exprs.coerce(initializer, "=")
        for ident in iter_identifiers(value):
            if not ident.symbol.is_global:
                self.fail(er.ERR.CG0212, name=ident.name)
        return value

    def _check_redeclaration(self, existing: Symbol, kind: SymbolKind, ty: Type, storage: Storage) -> None:
        previous_storage = Storage.NONE
        if isinstance(existing.declaration, (VariableDecl, FunctionDecl)):
            previous_storage = existing.declaration.storage
        if existing.kind is not kind or existing.type != ty \
                or (previous_storage is Storage.STATIC) != (storage is Storage.STATIC):
            requested = f"{storage.value} {ty}".strip()
            self.fail(er.ERR.CG0202, name=existing.name, requested=requested,
                      previous=_describe_symbol(existing))

    def _param_names(self, name: str, fn: FunctionType, names: Optional[Sequence[str]],
                     required: bool) -> Optional[tuple[str, ...]]:
        if names is None:
            if required and fn.params:
                self.fail(er.ERR.CG0402, name=name, expected=len(fn.params), got=0)
            return None
        names = tuple(names)
        if len(names) != len(fn.params):
            self.fail(er.ERR.CG0402, name=name, expected=len(fn.params), got=len(names))
        seen = set()
        for param in names:
            self.check_name(param)
            if param in seen:
                self.fail(er.ERR.CG0201, name=param)
            seen.add(param)
        return names

    def define_function(self, name: str, type: Type, param_names: Optional[Sequence[str]] = None,
                        storage: Storage = Storage.NONE, inline: bool = False) -> FunctionBuilder:
        """Register a function definition and open its scope.

        Returns:
            The builder for the function body.

        Raises:
            UnbalancedScope: If another function is still being built.
            ArityMismatch: If the parameter names do not match the type.
            NameCollision: If the name is bound incompatibly or already defined.
        """
        if self._open_function is not None:
            self.fail(er.ERR.CG0303, name=self._open_function.name)
        if self.scopes.depth != 0:
            self.fail(er.ERR.CG0304, depth=self.scopes.depth, expected=0)
        self.check_name(name)
        storage = Storage(storage)
        ty = self.types.intern(type)
        fn = strip_typedefs(ty)
        if not isinstance(fn, FunctionType):
            self.types.invalid(f"'{name}' is defined as a function but has type '{ty}'")
        names = self._param_names(name, fn, param_names, required=True) or ()

        existing = self.scopes.lookup_global(name)
        if existing is not None:
            self._check_redeclaration(existing, SymbolKind.FUNCTION, ty, storage)
            if name in self._definitions:
                self.fail(er.ERR.CG0203, name=name)
            symbol = existing
        else:
            symbol = Symbol(name, ty, SymbolKind.FUNCTION, 0, None, self)

        decl = FunctionDecl(symbol, fn, names, None, storage, inline, definition=True, finalized=False)
        if existing is None:
            symbol.declaration = decl
            self.scopes.bind_global(symbol)
        self._definitions[name] = decl
        self.register(decl)

        self.scopes.push_scope()
        params = [
            self.scopes.bind(Symbol(p, t, SymbolKind.PARAMETER, self.scopes.depth, decl, self))
            for p, t in zip(names, fn.params)
        ]
        builder = FunctionBuilder(self, decl, params)
        self._open_function = builder
        logger.debug("defining function %s", name)
        return builder

    def close_function(self, builder: FunctionBuilder) -> None:
        if self._open_function is builder:
            self._open_function = None

    def discard(self, target: Union[FunctionBuilder, FunctionDecl]) -> None:
        """Drop an unfinished function definition and restore file scope.

        The symbol stays bound only if an earlier prototype declared it.
        """
        builder = self._open_function
        decl = target.decl if isinstance(target, FunctionBuilder) else target
        if builder is None or builder.decl is not decl:
            self.fail(er.ERR.CG0531, name=decl.name)

        self.scopes.unwind_to(0)
        self.declarations = [d for d in self.declarations if d is not decl]
        self._definitions.pop(decl.name, None)
        if decl.symbol.declaration is decl:
            self.scopes.unbind_global(decl.symbol)
        builder.finalized = True
        builder.discarded = True
        self._open_function = None
        logger.debug("discarded unfinished definition of %s", decl.name)

    # ------------------------------------------------------------------
    # Expressions (delegated to ExpressionBuilder)
    # ------------------------------------------------------------------

    def literal(self, value: Any) -> Expr:
        return self.exprs.literal(value)

    def int_literal(self, value: int, suffix: str = "", base: int = 10) -> Expr:
        return self.exprs.int_literal(value, suffix, base)

    def float_literal(self, value: float, suffix: str = "") -> Expr:
        return self.exprs.float_literal(value, suffix)

    def char_literal(self, char: str) -> Expr:
        return self.exprs.char_literal(char)

    def string_literal(self, value: str) -> Expr:
        return self.exprs.string_literal(value)

    def ref(self, target: Union[str, Symbol]) -> Identifier:
        return self.exprs.ref(target)

    def unary(self, op: str, operand: Any) -> Expr:
        return self.exprs.unary(op, operand)

    def postfix(self, op: str, operand: Any) -> Expr:
        return self.exprs.postfix(op, operand)

    def binary(self, op: str, lhs: Any, rhs: Any) -> Expr:
        return self.exprs.binary(op, lhs, rhs)

    def assign(self, target: Any, value: Any, op: str = "=") -> Expr:
        return self.exprs.assign(target, value, op)

    def conditional(self, cond: Any, then: Any, otherwise: Any) -> Expr:
        return self.exprs.conditional(cond, then, otherwise)

    def comma(self, *exprs: Any) -> Expr:
        return self.exprs.comma(*exprs)

    def apply(self, op: str, *operands: Any) -> Expr:
        return self.exprs.apply(op, *operands)

    def call(self, callee: Any, args: Iterable[Any] = ()) -> Expr:
        return self.exprs.call(callee, args)

    def member(self, base: Any, field: str, arrow: bool = False) -> Expr:
        return self.exprs.member(base, field, arrow)

    def index(self, base: Any, index: Any) -> Expr:
        return self.exprs.index(base, index)

    def cast(self, type: Type, operand: Any) -> Expr:
        return self.exprs.cast(type, operand)

    def sizeof(self, operand: Any) -> Expr:
        return self.exprs.sizeof(operand)

    def initializer(self, items: Iterable[Any]) -> Expr:
        return self.exprs.initializer(items)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self) -> str:
        """Print the translation unit.

        Raises:
            IncompleteGraph: If a definition is unfinished or a record used
                by value was never defined.
        """
        from ccgenor.printer.emitter import emit
        return emit(self)

    def write(self, stream: TextIO) -> None:
        """Write the translation unit to a caller-provided text stream."""
        stream.write(self.emit())

    def __repr__(self) -> str:
        return f"Context({self.name}, {len(self.declarations)} declaration(s), step {self.step})"


def _describe_symbol(symbol: Symbol) -> str:
    return f"{symbol.kind.value} {symbol.type}"
