# ccgenor/internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NoReturn, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from ccgenor.internals.report import Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    TYPE      = "type"
    NAME      = "name"
    SCOPE     = "scope"
    EXPR      = "expression"
    STMT      = "statement"
    LAYOUT    = "layout"
    EMIT      = "emit"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    kind: str
    category: Category
    doc: str = ""


REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)


#
# --- Exceptions
#

class CCodegenError(Exception):
    """Base class for every construction and emission failure.

    Attributes:
        code: Stable error code from the registry (e.g. "CG0201").
        kind: Error kind name, identical to the exception class name.
        detail: The format arguments of the message (offending names, types).
        step: Construction step of the owning context when the error was raised.
    """

    kind: str = "CCodegenError"

    def __init__(self, code: str, message: str, detail: Optional[Dict[str, Any]] = None,
                 step: Optional[int] = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.detail = dict(detail or {})
        self.step = step


class TypeConflict(CCodegenError):
    kind = "TypeConflict"

class DuplicateDefinition(CCodegenError):
    kind = "DuplicateDefinition"

class NameCollision(CCodegenError):
    kind = "NameCollision"

class UnbalancedScope(CCodegenError):
    kind = "UnbalancedScope"

class UnknownSymbol(CCodegenError):
    kind = "UnknownSymbol"

class ArityMismatch(CCodegenError):
    kind = "ArityMismatch"

class InvalidOperand(CCodegenError):
    kind = "InvalidOperand"

class ReturnTypeMismatch(CCodegenError):
    kind = "ReturnTypeMismatch"

class UnknownLabel(CCodegenError):
    kind = "UnknownLabel"

class DuplicateCase(CCodegenError):
    kind = "DuplicateCase"

class AlreadyFinalized(CCodegenError):
    kind = "AlreadyFinalized"

class InvalidRecursiveLayout(CCodegenError):
    kind = "InvalidRecursiveLayout"

class IncompleteGraph(CCodegenError):
    kind = "IncompleteGraph"

class InvalidType(CCodegenError):
    kind = "InvalidType"

class InvalidName(CCodegenError):
    kind = "InvalidName"

class InvalidStatement(CCodegenError):
    kind = "InvalidStatement"


KINDS: Dict[str, Type[CCodegenError]] = {
    cls.kind: cls for cls in (
        TypeConflict, DuplicateDefinition, NameCollision, UnbalancedScope,
        UnknownSymbol, ArityMismatch, InvalidOperand, ReturnTypeMismatch,
        UnknownLabel, DuplicateCase, AlreadyFinalized, InvalidRecursiveLayout,
        IncompleteGraph, InvalidType, InvalidName, InvalidStatement,
    )
}


def make_error(em: ErrorMessage, step: Optional[int] = None, **kwargs) -> CCodegenError:
    """Build (but do not raise) the exception for a registry entry."""
    text = _fmt(em.code, **kwargs)
    return KINDS[em.kind](em.code, text, kwargs, step)

def emit(r: Optional[Reporter], em: ErrorMessage, step: Optional[int], **kwargs) -> NoReturn:
    """Record the error with the reporter (when given) and raise it."""
    exc = make_error(em, step, **kwargs)
    if r is not None:
        if em.severity == Severity.ERROR:
            r.error(em.code, exc.message, step)
        else:
            r.warn(em.code, exc.message, step)
    raise exc


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    if msg.kind not in KINDS:
        raise ValueError(f"unknown error kind {msg.kind!r} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Types (CG01xx)
_add(ErrorMessage("CG0101", Severity.ERROR,
    "{tag} '{name}' is already registered with different contents",
    "TypeConflict", Category.TYPE,
    "A nominal type was interned again under the same name with another field or variant list."))

_add(ErrorMessage("CG0102", Severity.ERROR,
    "'{name}' was declared as {previous}, not {requested}",
    "TypeConflict", Category.TYPE,
    "A tag is reused with a different record kind (struct versus union)."))

_add(ErrorMessage("CG0103", Severity.ERROR,
    "{tag} '{name}' does not belong to this context",
    "TypeConflict", Category.TYPE,
    "Nominal types are owned by the context that registered them and cannot be shared."))

_add(ErrorMessage("CG0111", Severity.ERROR,
    "{tag} '{name}' is already defined with different contents",
    "DuplicateDefinition", Category.TYPE,
    "Redefinition is only accepted when it is identical to the first definition."))

_add(ErrorMessage("CG0112", Severity.ERROR,
    "typedef '{name}' already names '{previous}', cannot redefine it as '{requested}'",
    "DuplicateDefinition", Category.TYPE))

_add(ErrorMessage("CG0121", Severity.ERROR,
    "invalid type: {reason}",
    "InvalidType", Category.TYPE,
    "The requested type cannot be spelled in C."))

_add(ErrorMessage("CG0122", Severity.ERROR,
    "unknown primitive type '{name}'",
    "InvalidType", Category.TYPE))

_add(ErrorMessage("CG0131", Severity.ERROR,
    "record '{name}' contains itself by value ({path})",
    "InvalidRecursiveLayout", Category.LAYOUT,
    "A struct or union can only refer to itself through a pointer."))

# Names (CG02xx)
_add(ErrorMessage("CG0201", Severity.ERROR,
    "'{name}' is already declared in this scope",
    "NameCollision", Category.NAME))

_add(ErrorMessage("CG0202", Severity.ERROR,
    "'{name}' redeclared as '{requested}', previously declared as '{previous}'",
    "NameCollision", Category.NAME,
    "File-scope redeclarations must agree on kind, type and storage."))

_add(ErrorMessage("CG0203", Severity.ERROR,
    "function '{name}' already has a body",
    "NameCollision", Category.NAME))

_add(ErrorMessage("CG0204", Severity.ERROR,
    "variable '{name}' is already initialized",
    "NameCollision", Category.NAME))

_add(ErrorMessage("CG0205", Severity.ERROR,
    "label '{name}' is already defined in function '{function}'",
    "NameCollision", Category.NAME))

_add(ErrorMessage("CG0206", Severity.ERROR,
    "member '{name}' appears more than once in '{owner}'",
    "NameCollision", Category.NAME))

_add(ErrorMessage("CG0211", Severity.ERROR,
    "use of undeclared identifier '{name}'",
    "UnknownSymbol", Category.NAME))

_add(ErrorMessage("CG0212", Severity.ERROR,
    "'{name}' is not visible here, its scope has been closed",
    "UnknownSymbol", Category.NAME,
    "An expression built in one scope was used after that scope was left."))

_add(ErrorMessage("CG0221", Severity.ERROR,
    "'{name}' is not a valid C identifier",
    "InvalidName", Category.NAME))

_add(ErrorMessage("CG0222", Severity.ERROR,
    "'{name}' is a reserved word",
    "InvalidName", Category.NAME))

# Scopes (CG03xx)
_add(ErrorMessage("CG0301", Severity.ERROR,
    "exit_scope() without a matching enter_scope()",
    "UnbalancedScope", Category.SCOPE,
    "File scope cannot be popped."))

_add(ErrorMessage("CG0302", Severity.ERROR,
    "function '{name}' still has {count} open construct(s)",
    "UnbalancedScope", Category.SCOPE,
    "Every block(), loop and switch must be closed before finalize()."))

_add(ErrorMessage("CG0303", Severity.ERROR,
    "function '{name}' is still being built",
    "UnbalancedScope", Category.SCOPE,
    "C has no nested functions; finalize or discard the open function first."))

_add(ErrorMessage("CG0304", Severity.ERROR,
    "scope depth {depth} does not match the construct opened at depth {expected}",
    "UnbalancedScope", Category.SCOPE,
    "A manual enter_scope()/exit_scope() pair was left open inside a builder construct."))

# Expressions (CG04xx)
_add(ErrorMessage("CG0401", Severity.ERROR,
    "operator '{op}' takes {expected} operand(s), got {got}",
    "ArityMismatch", Category.EXPR))

_add(ErrorMessage("CG0402", Severity.ERROR,
    "function '{name}' has {expected} parameter(s) but {got} name(s) were given",
    "ArityMismatch", Category.EXPR))

_add(ErrorMessage("CG0411", Severity.ERROR,
    "unknown {form} operator '{op}'",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0412", Severity.ERROR,
    "operand {position} of '{op}' must be an expression, got {got}",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0413", Severity.ERROR,
    "initializer lists can only initialize declarations",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0419", Severity.ERROR,
    "an initializer list needs at least one item",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0414", Severity.ERROR,
    "cannot assign to {what}",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0415", Severity.ERROR,
    "'{callee}' cannot be called",
    "InvalidOperand", Category.EXPR,
    "The callee must be an expression that can denote a function or a function pointer."))

_add(ErrorMessage("CG0416", Severity.ERROR,
    "invalid member name '{field}'",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0417", Severity.ERROR,
    "{op} needs a type, got {got}",
    "InvalidOperand", Category.EXPR))

_add(ErrorMessage("CG0418", Severity.ERROR,
    "cannot spell {value!r} as a C literal",
    "InvalidOperand", Category.EXPR))

# Statements (CG05xx)
_add(ErrorMessage("CG0501", Severity.ERROR,
    "void function '{name}' cannot return a value",
    "ReturnTypeMismatch", Category.STMT))

_add(ErrorMessage("CG0502", Severity.ERROR,
    "function '{name}' must return a value of type '{type}'",
    "ReturnTypeMismatch", Category.STMT))

_add(ErrorMessage("CG0511", Severity.ERROR,
    "goto to undefined label '{label}' in function '{name}'",
    "UnknownLabel", Category.STMT))

_add(ErrorMessage("CG0521", Severity.ERROR,
    "duplicate case value '{value}' in switch",
    "DuplicateCase", Category.STMT))

_add(ErrorMessage("CG0522", Severity.ERROR,
    "multiple default labels in one switch",
    "DuplicateCase", Category.STMT))

_add(ErrorMessage("CG0531", Severity.ERROR,
    "function '{name}' is finalized and cannot be modified",
    "AlreadyFinalized", Category.STMT))

_add(ErrorMessage("CG0541", Severity.ERROR,
    "'{stmt}' statement not within {where}",
    "InvalidStatement", Category.STMT))

_add(ErrorMessage("CG0542", Severity.ERROR,
    "statements inside {construct} must be placed in one of its branches",
    "InvalidStatement", Category.STMT))

_add(ErrorMessage("CG0543", Severity.ERROR,
    "the {branch} branch of {construct} was already built",
    "InvalidStatement", Category.STMT))

# Emission (CG06xx)
_add(ErrorMessage("CG0601", Severity.ERROR,
    "function '{name}' was never finalized",
    "IncompleteGraph", Category.EMIT))

_add(ErrorMessage("CG0602", Severity.ERROR,
    "{tag} '{name}' is used by value but never defined",
    "IncompleteGraph", Category.EMIT))

_add(ErrorMessage("CG0603", Severity.ERROR,
    "'{name}' does not belong to this context",
    "IncompleteGraph", Category.EMIT))

_add(ErrorMessage("CG0604", Severity.ERROR,
    "'{name}' is referenced but has no declaration to emit",
    "IncompleteGraph", Category.EMIT))
