"""
Statement construction for function bodies.

This module handles:
- The frame stack that mirrors nested compound statements
- Control-flow constructs as context managers that own their scopes
- Simple statements (expressions, declarations, jumps, labels)
- Duplicate case detection for switch statements

Every construct pushes its scope on entry and pops it on exit, also when
the body raises, so the scope stack can never be left unbalanced by a
construct.
"""
from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, TYPE_CHECKING, Union

from ccgenor.internals import errors as er
from ccgenor.semantics.ast import (
    Block, Break, Call, Cast, CharLiteral, Continue, DeclStmt, DoWhile, EmptyStmt, Expr,
    ExprStmt, For, Goto, Identifier, If, InitializerList, IntegerLiteral, Label, Return,
    Stmt, Storage, Switch, SwitchCase, Symbol, SymbolKind, UnaryOp, VariableDecl, While,
    iter_identifiers,
)
from ccgenor.printer.expressions import expression
from ccgenor.semantics.typesys import ArrayType, FunctionType, Type, VoidType, unqualified

if TYPE_CHECKING:
    from ccgenor.context import Context
    from ccgenor.semantics.ast import FunctionDecl


@dataclass
class Frame:
    """One open compound statement of the function being built."""
    kind: str
    depth: int                      # scope depth that is innermost while this frame is current
    loop: bool = False
    breakable: bool = False
    accepts: bool = True            # False for if/else and switch shells
    statements: list[Stmt] = field(default_factory=list)
    pending_labels: list[str] = field(default_factory=list)

    def close_labels(self) -> None:
        if self.pending_labels:
            self.statements.append(_labelled(self.pending_labels, EmptyStmt()))
            self.pending_labels = []


def _labelled(names: list[str], stmt: Stmt) -> Stmt:
    for name in reversed(names):
        stmt = Label(name, stmt)
    return stmt


def case_key(expr: Expr, text: Callable[[Expr], str]) -> tuple:
    """Key under which two case constants count as duplicates."""
    match expr:
        case IntegerLiteral():
            return ("int", expr.value)
        case CharLiteral():
            return ("int", ord(expr.char))
        case UnaryOp(op="-", postfix=False, operand=IntegerLiteral() | CharLiteral()):
            return ("int", -case_key(expr.operand, text)[1])
        case UnaryOp(op="+", postfix=False, operand=IntegerLiteral() | CharLiteral()):
            return case_key(expr.operand, text)
        case Cast():
            return case_key(expr.operand, text)
        case Identifier() if expr.symbol.kind is SymbolKind.ENUMERATOR:
            enum = expr.symbol.declaration.enum
            return ("int", enum.value_of(expr.name))
        case _:
            return ("text", text(expr))


class Branch:
    """One arm of an `if_else` construct, entered with `with`."""

    def __init__(self, builder: 'StatementBuilder', name: str, shell: Frame) -> None:
        self.builder = builder
        self.name = name
        self.shell = shell
        self.body: Optional[list[Stmt]] = None
        self._scope = None

    def __enter__(self) -> 'StatementBuilder':
        if self.body is not None or self._scope is not None:
            self.builder.ctx.fail(er.ERR.CG0543, branch=self.name, construct="if_else")
        if self.builder.current is not self.shell:
            self.builder.ctx.fail(er.ERR.CG0541, stmt=self.name, where="its if_else")
        self._scope = self.builder._construct(self.name)
        frame = self._scope.__enter__()
        self._frame = frame
        return self.builder

    def __exit__(self, exc_type, exc, tb) -> bool:
        scope, self._scope = self._scope, None
        scope.__exit__(exc_type, exc, tb)
        if exc_type is None:
            self.body = self._frame.statements
        return False


class SwitchBuilder:
    """Case dispatcher yielded by `switch`; each case is its own block."""

    def __init__(self, builder: 'StatementBuilder', shell: Frame) -> None:
        self.builder = builder
        self.shell = shell
        self.cases: list[SwitchCase] = []
        self._keys: set[tuple] = set()
        self._has_default = False

    @contextmanager
    def case(self, value: Any) -> Iterator['StatementBuilder']:
        """Open `case value:`; duplicates of an earlier constant fail."""
        ctx = self.builder.ctx
        if self.builder.current is not self.shell:
            ctx.fail(er.ERR.CG0541, stmt="case", where="a switch")
        label = self.builder._check_expr(ctx.exprs.coerce(value, "case"))
        key = case_key(label, expression)
        if key in self._keys:
            ctx.fail(er.ERR.CG0521, value=expression(label))
        self._keys.add(key)
        with self.builder._construct("case", breakable=True) as frame:
            yield self.builder
        self.cases.append(SwitchCase(label, Block(tuple(frame.statements))))

    @contextmanager
    def default(self) -> Iterator['StatementBuilder']:
        """Open `default:`; a switch takes at most one."""
        ctx = self.builder.ctx
        if self.builder.current is not self.shell:
            ctx.fail(er.ERR.CG0541, stmt="default", where="a switch")
        if self._has_default:
            ctx.fail(er.ERR.CG0522)
        self._has_default = True
        with self.builder._construct("default", breakable=True) as frame:
            yield self.builder
        self.cases.append(SwitchCase(None, Block(tuple(frame.statements))))


ForInit = Union[Expr, tuple, None]
Lazy = Union[Expr, Callable[[], Any], None]


class StatementBuilder:
    """Statement-level API of a function builder.

    Subclasses provide `ctx`, `decl` and the frame stack, and implement
    `_check_open()` which rejects mutation after finalization.
    """

    ctx: 'Context'
    decl: 'FunctionDecl'
    frames: list[Frame]
    labels: dict[str, int]
    gotos: list[tuple[str, int]]

    @property
    def current(self) -> Frame:
        return self.frames[-1]

    def _check_open(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @contextmanager
    def _construct(self, kind: str, *, scoped: bool = True, loop: bool = False,
                   breakable: bool = False, accepts: bool = True) -> Iterator[Frame]:
        """Open a frame (and its scope) for the duration of the `with` body."""
        self._check_open()
        self._check_depth()
        if scoped:
            self.ctx.scopes.push_scope()
        frame = Frame(kind, self.ctx.scopes.depth, loop=loop or self.current.loop,
                      breakable=breakable or loop or self.current.breakable, accepts=accepts)
        self.frames.append(frame)
        try:
            yield frame
        except BaseException:
            self._abandon(frame, scoped)
            raise
        if self.current is not frame:
            self.ctx.fail(er.ERR.CG0302, name=self.decl.name, count=len(self.frames) - 1)
        self._check_depth()
        frame.close_labels()
        self.frames.pop()
        if scoped:
            self.ctx.scopes.pop_scope()

    def _abandon(self, frame: Frame, scoped: bool) -> None:
        while self.frames and self.frames[-1] is not frame:
            self.frames.pop()
        if self.frames:
            self.frames.pop()
        self.ctx.scopes.unwind_to(frame.depth - 1 if scoped else frame.depth)

    def _begin(self) -> None:
        """Check that a statement can be placed at the cursor."""
        self._check_open()
        if not self.current.accepts:
            self.ctx.fail(er.ERR.CG0542, construct=self.current.kind)
        self._check_depth()

    def _check_depth(self) -> None:
        depth = self.ctx.scopes.depth
        if depth != self.current.depth:
            self.ctx.fail(er.ERR.CG0304, depth=depth, expected=self.current.depth)

    def _append(self, stmt: Stmt) -> Stmt:
        self._check_open()
        frame = self.current
        if not frame.accepts:
            self.ctx.fail(er.ERR.CG0542, construct=frame.kind)
        self._check_depth()
        frame.statements.append(_labelled(frame.pending_labels, stmt))
        frame.pending_labels = []
        self.ctx.tick()
        return stmt

    def _check_expr(self, expr: Expr) -> Expr:
        """Reject references to symbols whose scope has been closed."""
        scopes = self.ctx.scopes
        for ident in iter_identifiers(expr):
            symbol = ident.symbol
            if not symbol.is_global and not scopes.is_live(symbol):
                self.ctx.fail(er.ERR.CG0212, name=symbol.name)
        return expr

    def _value(self, value: Any, op: str) -> Expr:
        return self._check_expr(self.ctx.exprs.coerce(value, op))

    def _lazy(self, value: Lazy, op: str) -> Optional[Expr]:
        if value is None:
            return None
        if callable(value) and not isinstance(value, (Expr, Symbol)):
            value = value()
        return self._value(value, op)

    # ------------------------------------------------------------------
    # Compound statements
    # ------------------------------------------------------------------

    @contextmanager
    def block(self) -> Iterator['StatementBuilder']:
        """A nested `{ ... }` block with its own scope."""
        self._begin()
        with self._construct("block") as frame:
            yield self
        self._append(Block(tuple(frame.statements)))

    @contextmanager
    def if_then(self, cond: Any) -> Iterator['StatementBuilder']:
        """`if (cond) { ... }` without an else branch."""
        self._begin()
        test = self._value(cond, "if")
        with self._construct("if") as frame:
            yield self
        self._append(If(test, Block(tuple(frame.statements))))

    @contextmanager
    def if_else(self, cond: Any) -> Iterator[tuple[Branch, Branch]]:
        """`if (cond) { ... } else { ... }`, yielding the two branches.

        Example:
            with fb.if_else(cond) as (then, otherwise):
                with then:
                    fb.ret(1)
                with otherwise:
                    fb.ret(0)
        """
        self._begin()
        test = self._value(cond, "if")
        with self._construct("if_else", scoped=False, accepts=False) as shell:
            then, otherwise = Branch(self, "then", shell), Branch(self, "else", shell)
            yield then, otherwise
        then_block = Block(tuple(then.body or ()))
        else_block = Block(tuple(otherwise.body)) if otherwise.body is not None else None
        self._append(If(test, then_block, else_block))

    @contextmanager
    def while_(self, cond: Any) -> Iterator['StatementBuilder']:
        self._begin()
        test = self._value(cond, "while")
        with self._construct("while", loop=True) as frame:
            yield self
        self._append(While(test, Block(tuple(frame.statements))))

    @contextmanager
    def do_while(self, cond: Any) -> Iterator['StatementBuilder']:
        """`do { ... } while (cond);` where `cond` is built before the body."""
        self._begin()
        test = self._value(cond, "do")
        with self._construct("do", loop=True) as frame:
            yield self
        self._append(DoWhile(Block(tuple(frame.statements)), test))

    @contextmanager
    def for_(self, init: ForInit = None, cond: Lazy = None, step: Lazy = None) -> Iterator[Optional[Identifier]]:
        """`for (init; cond; step) { ... }`.

        `init` is an expression or a `(name, type[, value])` declaration
        scoped to the loop. `cond` and `step` may be callables, evaluated
        once the loop variable is visible. Yields the loop variable (or
        None when `init` declares nothing).
        """
        self._begin()
        with self._construct("for", accepts=False) as header:
            variable = None
            if isinstance(init, tuple):
                decl_stmt, variable = self._local(*init)
                start: Optional[Union[DeclStmt, Expr]] = decl_stmt
            else:
                start = self._lazy(init, "for")
            test = self._lazy(cond, "for")
            update = self._lazy(step, "for")
            with self._construct("for_body", loop=True) as frame:
                yield variable
        self._append(For(start, test, update, Block(tuple(frame.statements))))

    @contextmanager
    def switch(self, value: Any) -> Iterator[SwitchBuilder]:
        """`switch (value) { ... }`; open cases with `case()` and `default()`."""
        self._begin()
        scrutinee = self._value(value, "switch")
        with self._construct("switch", accepts=False, breakable=True) as shell:
            cases = SwitchBuilder(self, shell)
            yield cases
        self._append(Switch(scrutinee, tuple(cases.cases)))

    # ------------------------------------------------------------------
    # Simple statements
    # ------------------------------------------------------------------

    def expr(self, value: Any) -> Expr:
        """Append `value;` and return the expression."""
        if isinstance(value, InitializerList):
            self.ctx.fail(er.ERR.CG0413)
        e = self._value(value, "expression statement")
        self._append(ExprStmt(e))
        return e

    def call(self, callee: Any, *args: Any) -> Call:
        """Append a call statement, `callee(args...);`."""
        self._check_open()
        return self.expr(self.ctx.exprs.call(callee, args))

    def assign(self, target: Any, value: Any, op: str = "=") -> Expr:
        self._check_open()
        return self.expr(self.ctx.exprs.assign(target, value, op))

    def declare(self, name: str, type: Type, init: Any = None,
                storage: Storage = Storage.NONE) -> Identifier:
        """Declare a local variable in the current scope.

        Returns:
            A reference to the new variable.
        """
        self._begin()
        stmt, ref = self._local(name, type, init, storage)
        self._append(stmt)
        return ref

    def _local(self, name: str, type: Type, init: Any = None,
               storage: Storage = Storage.NONE) -> tuple[DeclStmt, Identifier]:
        storage = Storage(storage)
        ty = self.ctx.types.intern(type)
        bare = unqualified(ty)
        if isinstance(bare, VoidType):
            self.ctx.types.invalid(f"variable '{name}' has type void")
        if isinstance(bare, FunctionType):
            self.ctx.types.invalid(f"local '{name}' has a function type, declare it with declare_global")
        value = None
        if init is not None:
            if isinstance(init, InitializerList):
                value = self._check_expr(init)
            else:
                value = self._value(init, "=")
        elif isinstance(bare, ArrayType) and bare.length is None:
            self.ctx.types.invalid(f"array '{name}' needs a length or an initializer")
        symbol = self.ctx.bind_local(name, ty)
        decl = VariableDecl(symbol, ty, value, storage)
        symbol.declaration = decl
        return DeclStmt(decl), Identifier(symbol)

    def ret(self, value: Any = None) -> Return:
        """Append `return;` or `return value;`.

        Raises:
            ReturnTypeMismatch: If the value does not fit the function's void-ness.
        """
        self._check_open()
        void = isinstance(unqualified(self.decl.type.return_type), VoidType)
        if value is not None and void:
            self.ctx.fail(er.ERR.CG0501, name=self.decl.name)
        if value is None and not void:
            self.ctx.fail(er.ERR.CG0502, name=self.decl.name, type=str(self.decl.type.return_type))
        stmt = Return(None if value is None else self._value(value, "return"))
        self._append(stmt)
        return stmt

    def break_(self) -> Break:
        self._check_open()
        if not self.current.breakable:
            self.ctx.fail(er.ERR.CG0541, stmt="break", where="a loop or switch")
        return self._append(Break())

    def continue_(self) -> Continue:
        self._check_open()
        if not self.current.loop:
            self.ctx.fail(er.ERR.CG0541, stmt="continue", where="a loop")
        return self._append(Continue())

    def goto(self, label: str) -> Goto:
        """Append `goto label;`; the label may be placed later."""
        self._check_open()
        self.ctx.check_name(label)
        stmt = self._append(Goto(label))
        self.gotos.append((label, self.ctx.step))
        return stmt

    def label(self, name: str) -> None:
        """Place `name:` before the next statement of the current block."""
        self._check_open()
        self.ctx.check_name(name)
        if name in self.labels:
            self.ctx.fail(er.ERR.CG0205, name=name, function=self.decl.name)
        self._begin()
        self.labels[name] = self.ctx.step
        self.current.pending_labels.append(name)
