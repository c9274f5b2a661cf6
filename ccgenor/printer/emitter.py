"""Serialization of a finished context into C source text."""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from ccgenor.backend.dependency_graph import emission_order
from ccgenor.printer.declarators import declaration
from ccgenor.printer.expressions import expression
from ccgenor.semantics import operators as ops
from ccgenor.semantics.ast import (
    Block, Break, Continue, Decl, DeclStmt, DoWhile, EmptyStmt, EnumDecl, ExprStmt, For,
    FunctionDecl, Goto, If, IncludeDecl, Label, RawDecl, RecordDecl, RecordForwardDecl,
    Return, Stmt, Storage, Switch, TypeAliasDecl, VariableDecl, While,
)
from ccgenor.semantics.typesys import FunctionType, strip_typedefs

if TYPE_CHECKING:
    from ccgenor.context import Context

logger = logging.getLogger(__name__)


class Emitter:
    """Prints every declaration of one context.

    Output is deterministic: the same graph always prints the same text.
    The emitter only reads the graph.
    """

    def __init__(self, ctx: 'Context') -> None:
        self.ctx = ctx
        self.indent = ctx.indent

    def emit(self) -> str:
        chunks: list[list[str]] = []
        for include in self.ctx.includes:
            chunks.append([include_line(include)])
        ordered = list(emission_order(self.ctx))
        for decl in ordered:
            chunks.append(self.top_level(decl))

        out: list[str] = []
        previous: list[str] | None = None
        for chunk in chunks:
            if previous is not None and self._separate(previous, chunk):
                out.append("")
            out.extend(chunk)
            previous = chunk
        logger.debug("emitted %d include(s) and %d declaration(s)", len(self.ctx.includes), len(ordered))
        return "\n".join(out) + "\n" if out else ""

    @staticmethod
    def _separate(previous: list[str], chunk: list[str]) -> bool:
        # blank line around multi-line definitions and after the include block
        if len(previous) > 1 or len(chunk) > 1:
            return True
        return previous[0].startswith("#include") != chunk[0].startswith("#include")

    # ------------------------------------------------------------------
    # Top-level declarations
    # ------------------------------------------------------------------

    def top_level(self, decl: Decl) -> list[str]:
        match decl:
            case RecordForwardDecl():
                return [f"{decl.record.kind.value} {decl.record.name};"]
            case RecordDecl():
                return self.record(decl)
            case EnumDecl():
                return self.enum(decl)
            case TypeAliasDecl():
                return [f"typedef {declaration(decl.named.target, decl.named.alias)};"]
            case VariableDecl():
                return [self.variable(decl) + ";"]
            case FunctionDecl() if decl.definition:
                return self.function(decl)
            case FunctionDecl():
                return [self.prototype(decl) + ";"]
            case RawDecl():
                return decl.text.rstrip("\n").split("\n")
            case IncludeDecl():
                return [include_line(decl)]
            case _:
                raise TypeError(f"cannot print {decl!r}")

    def record(self, decl: RecordDecl) -> list[str]:
        record = decl.record
        lines = [f"{record.kind.value} {record.name} {{"]
        for f in record.fields:
            text = declaration(f.type, f.name)
            if f.bit_width is not None:
                text += f" : {f.bit_width}"
            lines.append(f"{self.indent}{text};")
        lines.append("};")
        return lines

    def enum(self, decl: EnumDecl) -> list[str]:
        enum = decl.enum
        items = []
        for variant in enum.variants:
            if variant.value is None:
                items.append(variant.name)
            else:
                items.append(f"{variant.name} = {variant.value}")
        lines = [f"enum {enum.name} {{"]
        lines.extend(f"{self.indent}{item}," for item in items[:-1])
        lines.append(f"{self.indent}{items[-1]}")
        lines.append("};")
        return lines

    def variable(self, decl: VariableDecl) -> str:
        text = declaration(decl.type, decl.name)
        if decl.storage is not Storage.NONE:
            text = f"{decl.storage.value} {text}"
        if decl.initializer is not None:
            text += f" = {expression(decl.initializer, ops.ASSIGNMENT)}"
        return text

    def prototype(self, decl: FunctionDecl) -> str:
        fn = decl.type
        if not isinstance(fn, FunctionType):
            fn = strip_typedefs(fn)
        text = declaration(fn, decl.name, decl.param_names)
        prefix = []
        if decl.storage is not Storage.NONE:
            prefix.append(decl.storage.value)
        if decl.inline:
            prefix.append("inline")
        return " ".join([*prefix, text])

    def function(self, decl: FunctionDecl) -> list[str]:
        lines = [self.prototype(decl) + " {"]
        for stmt in decl.body.statements:
            lines.extend(self.statement(stmt, 1))
        lines.append("}")
        return lines

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def statement(self, stmt: Stmt, level: int) -> list[str]:
        pad = self.indent * level
        match stmt:
            case ExprStmt():
                return [f"{pad}{expression(stmt.expr)};"]
            case DeclStmt():
                return [f"{pad}{self.variable(stmt.decl)};"]
            case Return(value=None):
                return [f"{pad}return;"]
            case Return():
                return [f"{pad}return {expression(stmt.value)};"]
            case Break():
                return [f"{pad}break;"]
            case Continue():
                return [f"{pad}continue;"]
            case Goto():
                return [f"{pad}goto {stmt.label};"]
            case EmptyStmt():
                return [f"{pad};"]
            case Label():
                return self.label(stmt, level)
            case Block():
                return [f"{pad}{{", *self.body(stmt, level), f"{pad}}}"]
            case If():
                return self.if_chain(stmt, level)
            case While():
                return [f"{pad}while ({expression(stmt.cond)}) {{", *self.body(stmt.body, level), f"{pad}}}"]
            case DoWhile():
                return [f"{pad}do {{", *self.body(stmt.body, level),
                        f"{pad}}} while ({expression(stmt.cond)});"]
            case For():
                return [f"{pad}for ({self.for_header(stmt)}) {{", *self.body(stmt.body, level), f"{pad}}}"]
            case Switch():
                return self.switch(stmt, level)
            case _:
                raise TypeError(f"cannot print {stmt!r}")

    def body(self, block: Block, level: int) -> list[str]:
        lines: list[str] = []
        for inner in block.statements:
            lines.extend(self.statement(inner, level + 1))
        return lines

    def label(self, stmt: Label, level: int) -> list[str]:
        pad = self.indent * level
        inner = stmt.stmt
        if isinstance(inner, EmptyStmt):
            return [f"{pad}{stmt.name}:;"]
        if isinstance(inner, DeclStmt):
            # a label cannot prefix a declaration before C23
            return [f"{pad}{stmt.name}:;", *self.statement(inner, level)]
        return [f"{pad}{stmt.name}:", *self.statement(inner, level)]

    def if_chain(self, stmt: If, level: int) -> list[str]:
        pad = self.indent * level
        lines = [f"{pad}if ({expression(stmt.cond)}) {{", *self.body(stmt.then, level)]
        otherwise = stmt.otherwise
        while otherwise is not None:
            nested = otherwise.statements
            if len(nested) == 1 and isinstance(nested[0], If):
                lines.append(f"{pad}}} else if ({expression(nested[0].cond)}) {{")
                lines.extend(self.body(nested[0].then, level))
                otherwise = nested[0].otherwise
            else:
                lines.append(f"{pad}}} else {{")
                lines.extend(self.body(otherwise, level))
                otherwise = None
        lines.append(f"{pad}}}")
        return lines

    def for_header(self, stmt: For) -> str:
        if isinstance(stmt.init, DeclStmt):
            init = self.variable(stmt.init.decl)
        elif stmt.init is not None:
            init = expression(stmt.init)
        else:
            init = ""
        cond = "" if stmt.cond is None else f" {expression(stmt.cond)}"
        step = "" if stmt.step is None else f" {expression(stmt.step)}"
        return f"{init};{cond};{step}"

    def switch(self, stmt: Switch, level: int) -> list[str]:
        pad = self.indent * level
        case_pad = self.indent * (level + 1)
        lines = [f"{pad}switch ({expression(stmt.value)}) {{"]
        for case in stmt.cases:
            if case.value is None:
                lines.append(f"{case_pad}default: {{")
            else:
                lines.append(f"{case_pad}case {expression(case.value, ops.CONDITIONAL)}: {{")
            lines.extend(self.body(case.body, level + 1))
            lines.append(f"{case_pad}}}")
        lines.append(f"{pad}}}")
        return lines


def include_line(decl: IncludeDecl) -> str:
    if decl.system:
        return f"#include <{decl.header}>"
    return f'#include "{decl.header}"'


def emit(ctx: 'Context') -> str:
    """Print `ctx` as one translation unit."""
    return Emitter(ctx).emit()
