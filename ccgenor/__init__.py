"""ccgenor - build C source text through an IR-builder-style API."""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ccgenor")
    __dev__ = False
except PackageNotFoundError:
    # Development mode - read from pyproject.toml
    import tomllib
    from pathlib import Path
    try:
        pyproject = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject, "rb") as f:
            __version__ = tomllib.load(f).get("project", {}).get("version", "unknown")
    except (OSError, ValueError):
        __version__ = "unknown"
    __dev__ = True

from ccgenor.context import Context
from ccgenor.backend.functions import FunctionBuilder
from ccgenor.internals.errors import (
    CCodegenError, TypeConflict, DuplicateDefinition, NameCollision, UnbalancedScope,
    UnknownSymbol, ArityMismatch, InvalidOperand, ReturnTypeMismatch, UnknownLabel,
    DuplicateCase, AlreadyFinalized, InvalidRecursiveLayout, IncompleteGraph,
    InvalidType, InvalidName, InvalidStatement,
)
from ccgenor.semantics.ast import Storage, SymbolKind
from ccgenor.semantics.typesys import (
    VoidType, IntegerType, FloatType, PointerType, ArrayType, FunctionType,
    QualifiedType, RecordType, EnumType, NamedType, Field, Enumerator,
    Qualifier, RecordKind,
)

__all__ = [
    "Context", "FunctionBuilder", "Storage", "SymbolKind",
    "VoidType", "IntegerType", "FloatType", "PointerType", "ArrayType", "FunctionType",
    "QualifiedType", "RecordType", "EnumType", "NamedType", "Field", "Enumerator",
    "Qualifier", "RecordKind",
    "CCodegenError", "TypeConflict", "DuplicateDefinition", "NameCollision",
    "UnbalancedScope", "UnknownSymbol", "ArityMismatch", "InvalidOperand",
    "ReturnTypeMismatch", "UnknownLabel", "DuplicateCase", "AlreadyFinalized",
    "InvalidRecursiveLayout", "IncompleteGraph", "InvalidType", "InvalidName",
    "InvalidStatement",
]
