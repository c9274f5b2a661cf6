# ccgenor/semantics/ast.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

from ccgenor.semantics.typesys import Type, FunctionType, RecordType, EnumType, NamedType
from ccgenor.semantics import operators as ops


# === Symbols ===

class SymbolKind(str, Enum):
    VARIABLE = "variable"
    FUNCTION = "function"
    PARAMETER = "parameter"
    TYPEDEF = "typedef"
    ENUMERATOR = "enumerator"
    EXTERNAL = "external"       # provided by a header, never declared by us


class Storage(str, Enum):
    NONE = ""
    AUTO = "auto"
    STATIC = "static"
    EXTERN = "extern"
    REGISTER = "register"

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False)
class Symbol:
    """A name bound to exactly one declaration in one scope."""
    name: str
    type: Type
    kind: SymbolKind
    depth: int                                    # 0 is file scope
    declaration: Optional["Decl"] = None
    owner: Optional[object] = field(default=None, repr=False)   # owning Context

    @property
    def is_global(self) -> bool:
        return self.depth == 0


# === Expressions ===

@dataclass(frozen=True)
class Expr:
    @property
    def precedence(self) -> int:
        return ops.PRIMARY

@dataclass(frozen=True)
class IntegerLiteral(Expr):
    value: int
    suffix: str = ""            # "", "u", "l", "ul", "ll", "ull" (any case)
    base: int = 10              # 8, 10 or 16

    @property
    def precedence(self) -> int:
        # A negative literal is spelled with unary minus
        return ops.UNARY if self.value < 0 else ops.PRIMARY

@dataclass(frozen=True)
class FloatLiteral(Expr):
    value: float
    suffix: str = ""            # "", "f" or "l"

    @property
    def precedence(self) -> int:
        return ops.UNARY if str(self.value).startswith("-") else ops.PRIMARY

@dataclass(frozen=True)
class CharLiteral(Expr):
    char: str

@dataclass(frozen=True)
class StringLiteral(Expr):
    value: str

@dataclass(frozen=True)
class Identifier(Expr):
    symbol: Symbol

    @property
    def name(self) -> str:
        return self.symbol.name

@dataclass(frozen=True)
class UnaryOp(Expr):
    op: str
    operand: Expr
    postfix: bool = False

    @property
    def precedence(self) -> int:
        return ops.POSTFIX if self.postfix else ops.UNARY

@dataclass(frozen=True)
class BinaryOp(Expr):
    op: str
    lhs: Expr
    rhs: Expr

    @property
    def info(self) -> ops.OperatorInfo:
        return ops.BINARY_OPERATORS[self.op]

    @property
    def precedence(self) -> int:
        return self.info.precedence

@dataclass(frozen=True)
class Conditional(Expr):
    cond: Expr
    then: Expr
    otherwise: Expr

    @property
    def precedence(self) -> int:
        return ops.CONDITIONAL

@dataclass(frozen=True)
class Call(Expr):
    callee: Expr
    args: tuple[Expr, ...] = ()

    @property
    def precedence(self) -> int:
        return ops.POSTFIX

@dataclass(frozen=True)
class Member(Expr):
    base: Expr
    field: str
    arrow: bool = False

    @property
    def precedence(self) -> int:
        return ops.POSTFIX

@dataclass(frozen=True)
class Index(Expr):
    base: Expr
    index: Expr

    @property
    def precedence(self) -> int:
        return ops.POSTFIX

@dataclass(frozen=True)
class Cast(Expr):
    type: Type
    operand: Expr

    @property
    def precedence(self) -> int:
        return ops.UNARY

@dataclass(frozen=True)
class SizeOf(Expr):
    operand: Union[Expr, Type]

    @property
    def precedence(self) -> int:
        return ops.UNARY

@dataclass(frozen=True)
class InitializerList(Expr):
    """Brace-enclosed initializer; only valid as the initializer of a declaration."""
    items: tuple[Expr, ...] = ()


def iter_children(expr: Expr) -> Iterator[Expr]:
    """Yield the direct operands of an expression."""
    match expr:
        case UnaryOp() | Cast():
            yield expr.operand
        case SizeOf():
            if isinstance(expr.operand, Expr):
                yield expr.operand
        case BinaryOp():
            yield expr.lhs
            yield expr.rhs
        case Conditional():
            yield expr.cond
            yield expr.then
            yield expr.otherwise
        case Call():
            yield expr.callee
            yield from expr.args
        case Member():
            yield expr.base
        case Index():
            yield expr.base
            yield expr.index
        case InitializerList():
            yield from expr.items
        case _:
            return

def iter_identifiers(expr: Expr) -> Iterator[Identifier]:
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Identifier):
            yield node
        stack.extend(iter_children(node))

def iter_expr_types(expr: Expr) -> Iterator[Type]:
    """Yield the types spelled inside an expression (casts and sizeof)."""
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Cast):
            yield node.type
        elif isinstance(node, SizeOf) and not isinstance(node.operand, Expr):
            yield node.operand
        stack.extend(iter_children(node))


# === Statements ===

@dataclass(frozen=True)
class Stmt:
    pass

@dataclass(frozen=True)
class ExprStmt(Stmt):
    expr: Expr

@dataclass(frozen=True)
class DeclStmt(Stmt):
    decl: "VariableDecl"

@dataclass(frozen=True)
class Block(Stmt):
    statements: tuple[Stmt, ...] = ()

@dataclass(frozen=True)
class If(Stmt):
    cond: Expr
    then: Block
    otherwise: Optional[Block] = None

@dataclass(frozen=True)
class While(Stmt):
    cond: Expr
    body: Block

@dataclass(frozen=True)
class DoWhile(Stmt):
    body: Block
    cond: Expr

@dataclass(frozen=True)
class For(Stmt):
    init: Optional[Union[DeclStmt, Expr]]
    cond: Optional[Expr]
    step: Optional[Expr]
    body: Block

@dataclass(frozen=True)
class Return(Stmt):
    value: Optional[Expr] = None

@dataclass(frozen=True)
class Break(Stmt):
    pass

@dataclass(frozen=True)
class Continue(Stmt):
    pass

@dataclass(frozen=True)
class Goto(Stmt):
    label: str

@dataclass(frozen=True)
class Label(Stmt):
    name: str
    stmt: Stmt

@dataclass(frozen=True)
class EmptyStmt(Stmt):
    pass

@dataclass(frozen=True)
class SwitchCase:
    value: Optional[Expr]       # None for `default`
    body: Block

@dataclass(frozen=True)
class Switch(Stmt):
    value: Expr
    cases: tuple[SwitchCase, ...] = ()


def iter_statements(stmt: Stmt) -> Iterator[Stmt]:
    """Yield `stmt` and every statement nested inside it, depth first."""
    yield stmt
    match stmt:
        case Block():
            for inner in stmt.statements:
                yield from iter_statements(inner)
        case If():
            yield from iter_statements(stmt.then)
            if stmt.otherwise is not None:
                yield from iter_statements(stmt.otherwise)
        case While() | DoWhile():
            yield from iter_statements(stmt.body)
        case For():
            if isinstance(stmt.init, DeclStmt):
                yield stmt.init
            yield from iter_statements(stmt.body)
        case Label():
            yield from iter_statements(stmt.stmt)
        case Switch():
            for case in stmt.cases:
                yield from iter_statements(case.body)

def statement_expressions(stmt: Stmt) -> Iterator[Expr]:
    """Yield the top-level expressions held directly by one statement."""
    match stmt:
        case ExprStmt():
            yield stmt.expr
        case DeclStmt():
            if stmt.decl.initializer is not None:
                yield stmt.decl.initializer
        case If() | While() | DoWhile():
            yield stmt.cond
        case For():
            for part in (stmt.init, stmt.cond, stmt.step):
                if isinstance(part, Expr):
                    yield part
        case Return():
            if stmt.value is not None:
                yield stmt.value
        case Switch():
            yield stmt.value
            for case in stmt.cases:
                if case.value is not None:
                    yield case.value


# === Declarations ===

class Decl:
    """Base of every top-level (file-scope) declaration node."""

@dataclass(frozen=True, eq=False)
class VariableDecl(Decl):
    symbol: Symbol
    type: Type
    initializer: Optional[Expr] = None
    storage: Storage = Storage.NONE

    @property
    def name(self) -> str:
        return self.symbol.name

@dataclass(eq=False)
class FunctionDecl(Decl):
    """A function prototype (`definition` False) or definition.

    A definition is filled in by its FunctionBuilder; `finalized` flips
    once the body is frozen, after which the node is never mutated.
    """
    symbol: Symbol
    type: FunctionType
    param_names: Optional[tuple[str, ...]] = None
    body: Optional[Block] = None
    storage: Storage = Storage.NONE
    inline: bool = False
    definition: bool = False
    finalized: bool = True

    @property
    def name(self) -> str:
        return self.symbol.name

@dataclass(frozen=True, eq=False)
class TypeAliasDecl(Decl):
    symbol: Symbol
    named: NamedType

    @property
    def name(self) -> str:
        return self.named.alias

@dataclass(frozen=True, eq=False)
class RecordDecl(Decl):
    record: RecordType

@dataclass(frozen=True, eq=False)
class RecordForwardDecl(Decl):
    record: RecordType

@dataclass(frozen=True, eq=False)
class EnumDecl(Decl):
    enum: EnumType

@dataclass(frozen=True, eq=False)
class IncludeDecl(Decl):
    header: str
    system: bool = False

@dataclass(frozen=True, eq=False)
class RawDecl(Decl):
    text: str
