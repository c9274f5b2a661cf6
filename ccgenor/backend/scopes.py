"""
Lexical scope management with O(1) lookup.

This module handles:
- The scope stack, with file scope at depth 0
- Binding symbols in the innermost scope (collision checked per scope)
- O(1) name lookup via a flat cache honoring shadowing
- Liveness checks for symbols whose scope has been closed
"""
from __future__ import annotations
from typing import Dict, List, Optional, TYPE_CHECKING

from ccgenor.internals import errors as er

if TYPE_CHECKING:
    from ccgenor.context import Context
    from ccgenor.semantics.ast import Symbol


class ScopeManager:
    """Manages the ordinary-identifier namespace of one context."""

    def __init__(self, ctx: 'Context') -> None:
        """Initialize the scope manager with file scope open.

        Args:
            ctx: The owning Context, used for error reporting.
        """
        self.ctx = ctx

        # Scope stack; each scope maps name -> symbol
        self.scopes: List[Dict[str, 'Symbol']] = [{}]

        # O(1) lookup cache: maps name to stack of (depth, symbol)
        # Innermost binding is last
        self._flat_cache: Dict[str, List[tuple[int, 'Symbol']]] = {}

    @property
    def depth(self) -> int:
        """Current nesting depth (0 is file scope)."""
        return len(self.scopes) - 1

    def push_scope(self) -> None:
        """Open a new innermost scope."""
        self.scopes.append({})

    def pop_scope(self) -> None:
        """Close the innermost scope, making its names invisible.

        Raises:
            UnbalancedScope: If only file scope is open.
        """
        if self.depth == 0:
            self.ctx.fail(er.ERR.CG0301)

        level = self.depth
        for name in self.scopes[-1]:
            stack = self._flat_cache.get(name)
            if stack and stack[-1][0] == level:
                stack.pop()
                if not stack:
                    del self._flat_cache[name]
        self.scopes.pop()

    def unwind_to(self, depth: int) -> None:
        """Pop scopes until `depth` is the innermost one."""
        while self.depth > depth:
            self.pop_scope()

    def bind(self, symbol: 'Symbol') -> 'Symbol':
        """Bind `symbol` in the innermost scope.

        Raises:
            NameCollision: If the innermost scope already binds the name.
        """
        return self._bind_at(self.depth, symbol)

    def bind_global(self, symbol: 'Symbol') -> 'Symbol':
        """Bind `symbol` at file scope, whatever scope is currently open."""
        return self._bind_at(0, symbol)

    def _bind_at(self, level: int, symbol: 'Symbol') -> 'Symbol':
        scope = self.scopes[level]
        if symbol.name in scope:
            self.ctx.fail(er.ERR.CG0201, name=symbol.name)
        symbol.depth = level
        scope[symbol.name] = symbol

        stack = self._flat_cache.setdefault(symbol.name, [])
        # Keep the stack ordered by depth; a file-scope bind can arrive late
        index = len(stack)
        while index > 0 and stack[index - 1][0] > level:
            index -= 1
        stack.insert(index, (level, symbol))
        return symbol

    def unbind_global(self, symbol: 'Symbol') -> None:
        """Remove a file-scope binding (used when a definition is discarded)."""
        if self.scopes[0].get(symbol.name) is not symbol:
            return
        del self.scopes[0][symbol.name]
        stack = self._flat_cache.get(symbol.name, [])
        stack[:] = [entry for entry in stack if entry[1] is not symbol]
        if not stack:
            self._flat_cache.pop(symbol.name, None)

    def lookup(self, name: str) -> Optional['Symbol']:
        """Find the innermost visible symbol named `name`, or None."""
        stack = self._flat_cache.get(name)
        if stack:
            return stack[-1][1]
        return None

    def lookup_current(self, name: str) -> Optional['Symbol']:
        """Find `name` in the innermost scope only."""
        return self.scopes[-1].get(name)

    def lookup_global(self, name: str) -> Optional['Symbol']:
        """Find `name` at file scope only."""
        return self.scopes[0].get(name)

    def is_live(self, symbol: 'Symbol') -> bool:
        """True while the scope that bound `symbol` is still open."""
        return any(s is symbol for _, s in self._flat_cache.get(symbol.name, ()))
