"""C identifier rules shared by every naming operation."""
from __future__ import annotations
import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# C11 keywords plus the C23 spellings that compilers already reserve.
RESERVED_WORDS = frozenset({
    "auto", "break", "case", "char", "const", "continue", "default", "do",
    "double", "else", "enum", "extern", "float", "for", "goto", "if",
    "inline", "int", "long", "register", "restrict", "return", "short",
    "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
    "unsigned", "void", "volatile", "while",
    "_Alignas", "_Alignof", "_Atomic", "_Bool", "_Complex", "_Generic",
    "_Imaginary", "_Noreturn", "_Static_assert", "_Thread_local",
    "alignas", "alignof", "bool", "constexpr", "false", "nullptr",
    "static_assert", "thread_local", "true", "typeof", "typeof_unqual",
})


def is_identifier(name: object) -> bool:
    """True if `name` is spelled like a C identifier (keywords included)."""
    return isinstance(name, str) and _IDENTIFIER_RE.fullmatch(name) is not None


def is_reserved(name: str) -> bool:
    return name in RESERVED_WORDS
