"""Dependency graph between top-level declarations.

Each declaration depends on the nominal types and file-scope symbols it
mentions. A dependency is either VALUE (the type must be complete, so its
definition has to be printed first), NAME (a forward declaration is
enough) or SOFT (VALUE when the record has a definition, NAME otherwise).
`emission_order` walks the declarations in registration order and hoists
what each one needs in front of it, inserting `struct T;` forward
declarations for records that are only needed by name.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Iterator, Optional, TYPE_CHECKING, Union

from ccgenor.internals import errors as er
from ccgenor.semantics.ast import (
    Decl, EnumDecl, FunctionDecl, RecordDecl, RecordForwardDecl, Storage, Symbol,
    SymbolKind, TypeAliasDecl, VariableDecl, DeclStmt, iter_expr_types,
    iter_identifiers, iter_statements, statement_expressions,
)
from ccgenor.semantics.typesys import EnumType, NamedType, RecordType, Type, referenced_types

if TYPE_CHECKING:
    from ccgenor.context import Context

logger = logging.getLogger(__name__)


class Requirement(Enum):
    VALUE = "value"
    NAME = "name"
    SOFT = "soft"


Target = Union[RecordType, EnumType, NamedType, Decl]


class DependencyGraph:
    """Tracks which declarations depend on which types and symbols."""

    def __init__(self, ctx: 'Context') -> None:
        self.ctx = ctx
        self.edges: dict[int, list[tuple[Target, Requirement]]] = {}
        self.definitions: dict[int, Decl] = {}
        self.registered: set[int] = {id(d) for d in ctx.declarations}

    def add_dependency(self, source: Decl, target: Target, requirement: Requirement) -> None:
        """Record that `source` needs `target` at `requirement` strength."""
        self.edges.setdefault(id(source), []).append((target, requirement))

    def get_dependencies(self, source: Decl) -> list[tuple[Target, Requirement]]:
        return self.edges.get(id(source), [])

    def definition_of(self, t: Union[RecordType, EnumType, NamedType]) -> Optional[Decl]:
        return self.definitions.get(id(t))

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_declaration(self, decl: Decl) -> None:
        """Collect the dependencies of one registered declaration."""
        match decl:
            case RecordDecl():
                self.definitions[id(decl.record)] = decl
                for f in decl.record.fields:
                    self._add_type(decl, f.type, Requirement.VALUE, Requirement.NAME)
            case EnumDecl():
                self.definitions[id(decl.enum)] = decl
            case TypeAliasDecl():
                self.definitions[id(decl.named)] = decl
                # typedef of an incomplete record is valid C
                self._add_type(decl, decl.named.target, Requirement.SOFT, Requirement.NAME)
            case VariableDecl():
                by_value = Requirement.SOFT if decl.storage is Storage.EXTERN else Requirement.VALUE
                self._add_type(decl, decl.type, by_value, Requirement.NAME)
                if decl.initializer is not None:
                    self._add_expression(decl, decl.initializer, Requirement.NAME)
            case FunctionDecl() if decl.definition:
                self._add_function_body(decl)
            case FunctionDecl():
                self._add_type(decl, decl.type, Requirement.VALUE, Requirement.NAME)
            case _:
                return

    def _add_type(self, decl: Decl, t: Type, by_value: Requirement, by_name: Requirement) -> None:
        for node, value in referenced_types(t):
            if isinstance(node, NamedType) and decl is self.definitions.get(id(node)):
                continue
            self.add_dependency(decl, node, by_value if value else by_name)

    def _add_expression(self, decl: Decl, expr, by_name: Requirement) -> None:
        for ident in iter_identifiers(expr):
            self._add_symbol(decl, ident.symbol)
        for t in iter_expr_types(expr):
            self._add_type(decl, t, Requirement.VALUE, by_name)

    def _add_symbol(self, decl: Decl, symbol: Symbol) -> None:
        if symbol.owner is not self.ctx:
            self.ctx.fail(er.ERR.CG0603, name=symbol.name)
        if symbol.kind in (SymbolKind.EXTERNAL, SymbolKind.TYPEDEF):
            return
        target = symbol.declaration
        if target is None:
            # bound with bind_local and never declared
            self.ctx.fail(er.ERR.CG0604, name=symbol.name)
        if not symbol.is_global or target is decl:
            return
        if id(target) not in self.registered:
            # its definition was discarded
            self.ctx.fail(er.ERR.CG0604, name=symbol.name)
        self.add_dependency(decl, target, Requirement.VALUE)

    def _add_function_body(self, decl: FunctionDecl) -> None:
        fn = decl.type
        # a definition needs complete parameter and return types
        for t in (fn.return_type, *fn.params):
            self._add_type(decl, t, Requirement.VALUE, Requirement.SOFT)
        for stmt in iter_statements(decl.body):
            if isinstance(stmt, DeclStmt):
                self._add_type(decl, stmt.decl.type, Requirement.VALUE, Requirement.SOFT)
            for expr in statement_expressions(stmt):
                for ident in iter_identifiers(expr):
                    self._add_symbol(decl, ident.symbol)
                    self._add_type(decl, ident.symbol.type, Requirement.SOFT, Requirement.SOFT)
                for t in iter_expr_types(expr):
                    self._add_type(decl, t, Requirement.VALUE, Requirement.SOFT)

    def __repr__(self) -> str:
        total_edges = sum(len(deps) for deps in self.edges.values())
        return f"DependencyGraph({len(self.edges)} declarations, {total_edges} edges)"


class _Orderer:
    """Places declarations so that each follows what it depends on."""

    def __init__(self, graph: DependencyGraph) -> None:
        self.graph = graph
        self.ctx = graph.ctx
        self.placed: set[int] = set()
        self.forwarded: set[int] = set()
        self.in_progress: list[Decl] = []
        self.order: list[Decl] = []

    def place(self, decl: Decl) -> None:
        if id(decl) in self.placed or any(d is decl for d in self.in_progress):
            return
        self.in_progress.append(decl)
        for target, requirement in self.graph.get_dependencies(decl):
            self.require(decl, target, requirement)
        self.in_progress.pop()
        self.placed.add(id(decl))
        self.order.append(decl)

    def require(self, source: Decl, target: Target, requirement: Requirement) -> None:
        match target:
            case RecordType():
                if isinstance(source, RecordDecl) and source.record is target:
                    return
                if requirement is Requirement.SOFT:
                    requirement = Requirement.VALUE if target.is_complete else Requirement.NAME
                if requirement is Requirement.NAME:
                    self.forward(target)
                    return
                definition = self.graph.definition_of(target)
                if definition is None:
                    self.ctx.fail(er.ERR.CG0602, tag=target.kind.value, name=target.name)
                if any(d is definition for d in self.in_progress):
                    self.forward(target)
                    return
                self.place(definition)
            case EnumType() | NamedType():
                definition = self.graph.definition_of(target)
                if definition is None:
                    self.ctx.fail(er.ERR.CG0603, name=str(target))
                self.place(definition)
            case FunctionDecl() if target.definition and any(d is target for d in self.in_progress):
                # mutual recursion: the callee's body is still being placed
                self.prototype(target)
            case _:
                self.place(target)

    def forward(self, record: RecordType) -> None:
        definition = self.graph.definition_of(record)
        if id(record) in self.forwarded or (definition is not None and id(definition) in self.placed):
            return
        self.forwarded.add(id(record))
        self.order.append(RecordForwardDecl(record))
        logger.debug("forward declaration inserted for %s %s", record.kind.value, record.name)

    def prototype(self, decl: FunctionDecl) -> None:
        if id(decl) in self.forwarded:
            return
        self.forwarded.add(id(decl))
        self.order.append(FunctionDecl(decl.symbol, decl.type, decl.param_names, None,
                                       decl.storage, decl.inline))
        logger.debug("prototype inserted for %s", decl.name)


def build_dependency_graph(ctx: 'Context') -> DependencyGraph:
    """Build the graph over every declaration registered with `ctx`.

    Raises:
        IncompleteGraph: If a function definition was never finalized, or a
            declaration references a symbol owned by another context or one
            with no declaration left to emit.
    """
    graph = DependencyGraph(ctx)
    for decl in ctx.declarations:
        if isinstance(decl, FunctionDecl) and not decl.finalized:
            ctx.fail(er.ERR.CG0601, name=decl.name)
        graph.add_declaration(decl)
    return graph


def emission_order(ctx: 'Context') -> Iterator[Decl]:
    """Yield the declarations of `ctx` in a compile-order-valid sequence.

    Registration order is kept except where a declaration must be hoisted
    in front of its first use.
    """
    graph = build_dependency_graph(ctx)
    orderer = _Orderer(graph)
    for decl in ctx.declarations:
        orderer.place(decl)
    yield from orderer.order
