"""
Function definitions.

A FunctionBuilder is handed out by `Context.define_function` and owns the
body of exactly one definition until `finalize()` freezes it.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from ccgenor.internals import errors as er
from ccgenor.semantics.ast import Block, FunctionDecl, Identifier, Symbol
from ccgenor.backend.statements import Frame, StatementBuilder

if TYPE_CHECKING:
    from ccgenor.context import Context

logger = logging.getLogger(__name__)


class FunctionBuilder(StatementBuilder):
    """Builds the body of one function definition.

    The function scope (holding the parameters) is open from creation
    until `finalize()`. Used as a context manager the builder finalizes
    on normal exit and discards the definition when the body raises.
    """

    def __init__(self, ctx: 'Context', decl: FunctionDecl, params: list[Symbol]) -> None:
        self.ctx = ctx
        self.decl = decl
        self.params = params
        self.frames: list[Frame] = [Frame("function", ctx.scopes.depth)]
        self.labels: dict[str, int] = {}
        self.gotos: list[tuple[str, int]] = []
        self.finalized = False
        self.discarded = False

    @property
    def name(self) -> str:
        return self.decl.name

    def param(self, index_or_name: int | str) -> Identifier:
        """Reference a parameter by position or by name."""
        if isinstance(index_or_name, int):
            symbol = self.params[index_or_name]
        else:
            symbol = next((p for p in self.params if p.name == index_or_name), None)
            if symbol is None:
                self.ctx.fail(er.ERR.CG0211, name=index_or_name)
        return self.ctx.exprs.ref(symbol)

    def _check_open(self) -> None:
        if self.finalized:
            self.ctx.fail(er.ERR.CG0531, name=self.decl.name)

    def finalize(self) -> FunctionDecl:
        """Freeze the body and close the function scope.

        Returns:
            The completed function declaration.

        Raises:
            UnbalancedScope: If a nested construct or manual scope is still open.
            UnknownLabel: If a goto names a label that was never placed.
            AlreadyFinalized: If the function was already finalized.
        """
        self._check_open()
        if len(self.frames) != 1:
            self.ctx.fail(er.ERR.CG0302, name=self.decl.name, count=len(self.frames) - 1)
        self._check_depth()
        for label, _step in self.gotos:
            if label not in self.labels:
                self.ctx.fail(er.ERR.CG0511, label=label, name=self.decl.name)

        frame = self.frames[0]
        frame.close_labels()
        self.ctx.scopes.pop_scope()
        self.decl.body = Block(tuple(frame.statements))
        self.decl.finalized = True
        self.finalized = True
        self.ctx.close_function(self)
        logger.debug("finalized %s with %d statement(s)", self.decl.name, len(frame.statements))
        return self.decl

    def __enter__(self) -> 'FunctionBuilder':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            if self.finalized:
                return False
            try:
                self.finalize()
            except er.CCodegenError:
                self.ctx.discard(self)
                raise
        elif not self.finalized:
            self.ctx.discard(self)
        return False

    def __repr__(self) -> str:
        state = "finalized" if self.finalized else f"{len(self.frames)} open frame(s)"
        return f"FunctionBuilder({self.decl.name}, {state})"
