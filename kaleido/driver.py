"""Kaleido driver — the read-eval-print loop around parser and code generator.

Prompts, dispatches on the current token to the matching top-level parse,
lowers each parsed unit and reports it. A failed unit is reported and
dropped; parsing resumes one token further on.
"""

from __future__ import annotations

import io
import logging
import sys
from typing import Optional, TextIO, Union

from kaleido.ast_nodes import Function, TopLevelUnit
from kaleido.codegen import CodeGenerator
from kaleido.config import KaleidoConfig
from kaleido.errors import CompileError, KaleidoError, codegen_error, unresolved_symbol
from kaleido.lexer import Lexer, TokenType
from kaleido.llvm_backend import LLVMBackend, UnresolvedSymbolError, evaluate
from kaleido.parser import OperatorPrecedence, Parser

logger = logging.getLogger(__name__)


class Session:
    """One interactive (or scripted) session over a single input stream."""

    def __init__(
        self,
        source: Union[str, TextIO],
        config: Optional[KaleidoConfig] = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        filename: str = "<stdin>",
        interactive: bool = True,
        parse_only: bool = False,
        jit: bool = False,
    ):
        self.config = config or KaleidoConfig()
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.interactive = interactive
        self.parse_only = parse_only
        self.jit = jit

        self.lexer = Lexer(source, filename)
        self.precedence = OperatorPrecedence(self.config.precedence)
        self.backend = LLVMBackend(self.config.module_name, verify=self.config.verify)
        self.codegen = CodeGenerator(self.backend, on_error=self._report)
        self.parser: Optional[Parser] = None

        self.units: list[TopLevelUnit] = []
        self.errors: list[KaleidoError] = []

    # -------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------

    def _prompt(self) -> None:
        if self.interactive:
            self.out.write(self.config.prompt)
            self.out.flush()

    def _status(self, line: str) -> None:
        print(line, file=self.out)

    def _report(self, error: KaleidoError) -> None:
        self.errors.append(error)
        print(f"Error: {error}", file=self.err)

    def _emit(self, fn) -> None:
        if self.config.emit_ir:
            print(self.backend.function_ir(fn), file=self.out)

    # -------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------

    def run(self) -> int:
        """Process the whole input. Returns the number of diagnostics reported."""
        self._prompt()
        self.parser = Parser(self.lexer, self.precedence, on_error=self._report)

        while True:
            tok = self.parser.current
            if tok.type is TokenType.EOF:
                break
            if tok.is_char(";"):
                self.parser.advance()
            elif tok.type is TokenType.DEF:
                self.handle_definition()
            elif tok.type is TokenType.EXTERN:
                self.handle_extern()
            else:
                self.handle_top_level_expr()
            self._prompt()

        if self.interactive:
            self.out.write("\n")
        if self.config.emit_ir and not self.parse_only:
            print(self.backend.module_ir(), file=self.out)
        return len(self.errors)

    def handle_definition(self) -> None:
        result = self.parser.parse_definition()
        if not result.ok:
            self.parser.advance()
            return
        self.units.append(result.value)
        if self.parse_only:
            self._status("Parsed a function definition.")
            return

        fn = self.codegen.codegen_function(result.value)
        if fn.ok:
            self._status("Read function definition:")
            self._emit(fn.value)

    def handle_extern(self) -> None:
        result = self.parser.parse_extern()
        if not result.ok:
            self.parser.advance()
            return
        self.units.append(result.value)
        if self.parse_only:
            self._status("Parsed an extern.")
            return

        fn = self.codegen.codegen_prototype(result.value)
        if fn.ok:
            self._status("Read extern:")
            self._emit(fn.value)

    def handle_top_level_expr(self) -> None:
        result = self.parser.parse_top_level_expr()
        if not result.ok:
            self.parser.advance()
            return
        self.units.append(result.value)
        if self.parse_only:
            self._status("Parsed a top-level expression.")
            return

        fn = self.codegen.codegen_function(result.value)
        if not fn.ok:
            return
        self._status("Read top-level expression:")
        self._emit(fn.value)
        if self.jit:
            self._evaluate(fn.value, result.value)
        # The anonymous wrapper is only needed long enough to show it.
        self.backend.remove_function(fn.value)

    def _evaluate(self, fn, unit: Function) -> None:
        try:
            value = evaluate(self.backend.module_ir(), fn.name)
        except UnresolvedSymbolError as e:
            for name in e.names:
                self._report(unresolved_symbol(name, unit.location))
            return
        except (LookupError, RuntimeError) as e:
            self._report(codegen_error(f"JIT evaluation failed: {e}", unit.location))
            return
        self._status(f"Evaluated to {value:f}")


# ---------------------------------------------------------------------------
# Non-interactive entry points
# ---------------------------------------------------------------------------

def parse_source(
    source: Union[str, TextIO],
    filename: str = "<stdin>",
    config: Optional[KaleidoConfig] = None,
) -> list[TopLevelUnit]:
    """Parse every top-level unit in *source*. Raises CompileError on any failure."""
    session = Session(
        source, config, out=io.StringIO(), err=io.StringIO(),
        filename=filename, interactive=False, parse_only=True,
    )
    session.run()
    if session.errors:
        raise CompileError(session.errors)
    return session.units


def compile_source(
    source: Union[str, TextIO],
    filename: str = "<stdin>",
    config: Optional[KaleidoConfig] = None,
) -> str:
    """Parse and lower all of *source*, returning the module's LLVM IR.

    Top-level expressions are checked but, as in the REPL, do not stay in the
    module. Raises CompileError listing every diagnostic if any unit failed.
    """
    session = Session(
        source, config, out=io.StringIO(), err=io.StringIO(),
        filename=filename, interactive=False,
    )
    session.run()
    if session.errors:
        raise CompileError(session.errors)
    logger.info("compiled %d unit(s) from %s", len(session.units), filename)
    return session.backend.module_ir()


def unit_kind(unit: TopLevelUnit) -> str:
    if not isinstance(unit, Function):
        return "extern"
    if unit.proto.is_anonymous:
        return "top-level expression"
    return "definition"
