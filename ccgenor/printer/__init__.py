"""C text printer: declarators, expressions and whole translation units."""
from __future__ import annotations

from .declarators import declaration
from .expressions import expression
from .emitter import Emitter, emit

__all__ = ["Emitter", "declaration", "emit", "expression"]
