"""Kaleido Parser — recursive descent with operator-precedence climbing.

The parser owns the lexer cursor and exactly one lookahead token. Every
``parse_*`` routine returns a ``Result``: failures are recorded, logged, and
handed back as values, never raised.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from kaleido.ast_nodes import (
    ANON_FUNCTION_NAME,
    BinaryExpr,
    CallExpr,
    Expr,
    Function,
    NumberExpr,
    Prototype,
    VariableExpr,
)
from kaleido.errors import KaleidoError, Result, syntax_error
from kaleido.lexer import Lexer, Token, TokenType

logger = logging.getLogger(__name__)


DEFAULT_PRECEDENCE: Mapping[str, int] = MappingProxyType({
    "<": 10,
    "+": 20,
    "-": 20,
    "*": 40,
})


class OperatorPrecedence:
    """Read-only table of binary operator precedences.

    Built once from the defaults plus any overrides; lookups of characters
    that are absent or carry a non-positive precedence return -1.
    """

    def __init__(self, overrides: Optional[Mapping[str, int]] = None):
        table = dict(DEFAULT_PRECEDENCE)
        if overrides:
            table.update(overrides)
        self._table: Mapping[str, int] = MappingProxyType(table)

    def __getitem__(self, op: str) -> int:
        prec = self._table.get(op, 0)
        return prec if prec > 0 else -1

    def __contains__(self, op: object) -> bool:
        return self._table.get(op, 0) > 0  # type: ignore[call-overload]

    def of(self, token: Token) -> int:
        if token.type is not TokenType.CHAR:
            return -1
        return self[token.value]

    def as_dict(self) -> dict[str, int]:
        return {op: prec for op, prec in self._table.items() if prec > 0}


class Parser:
    """Recursive-descent parser for Kaleido top-level units."""

    def __init__(
        self,
        lexer: Lexer,
        precedence: Optional[OperatorPrecedence] = None,
        on_error: Optional[Callable[[KaleidoError], None]] = None,
    ):
        self.lexer = lexer
        self.precedence = precedence or OperatorPrecedence()
        self.on_error = on_error
        self.errors: list[KaleidoError] = []
        self.current: Token = lexer.next_token()

    # -------------------------------------------------------------------
    # Cursor
    # -------------------------------------------------------------------

    def advance(self) -> Token:
        self.current = self.lexer.next_token()
        return self.current

    def at_eof(self) -> bool:
        return self.current.type is TokenType.EOF

    def _fail(self, message: str) -> Result:
        tok = self.current
        error = syntax_error(message, tok.location, found=tok.value or tok.type.name)
        self.errors.append(error)
        logger.debug("parse failure: %s", error)
        if self.on_error is not None:
            self.on_error(error)
        return Result.failure(error)

    # -------------------------------------------------------------------
    # Primary expressions
    # -------------------------------------------------------------------

    def parse_number_expr(self) -> Result[Expr]:
        tok = self.current
        self.advance()
        return Result.success(NumberExpr(tok.number or 0.0, tok.location))

    def parse_paren_expr(self) -> Result[Expr]:
        self.advance()  # eat '('
        inner = self.parse_expression()
        if not inner.ok:
            return inner
        if not self.current.is_char(")"):
            return self._fail("expected ')'")
        self.advance()  # eat ')'
        return inner

    def parse_identifier_expr(self) -> Result[Expr]:
        tok = self.current
        self.advance()
        if not self.current.is_char("("):
            return Result.success(VariableExpr(tok.value, tok.location))

        self.advance()  # eat '('
        args: list[Expr] = []
        if not self.current.is_char(")"):
            while True:
                arg = self.parse_expression()
                if not arg.ok:
                    return arg
                args.append(arg.value)
                if self.current.is_char(")"):
                    break
                if not self.current.is_char(","):
                    return self._fail("Expected ')' or ',' in argument list")
                self.advance()
        self.advance()  # eat ')'
        return Result.success(CallExpr(tok.value, args, tok.location))

    def parse_primary(self) -> Result[Expr]:
        tt = self.current.type
        if tt is TokenType.IDENT:
            return self.parse_identifier_expr()
        if tt is TokenType.NUMBER:
            return self.parse_number_expr()
        if self.current.is_char("("):
            return self.parse_paren_expr()
        return self._fail("unknown token when expecting an expression")

    # -------------------------------------------------------------------
    # Binary expressions
    # -------------------------------------------------------------------

    def parse_expression(self) -> Result[Expr]:
        lhs = self.parse_primary()
        if not lhs.ok:
            return lhs
        return self.parse_bin_op_rhs(0, lhs.value)

    def parse_bin_op_rhs(self, min_precedence: int, lhs: Expr) -> Result[Expr]:
        while True:
            tok_prec = self.precedence.of(self.current)
            if tok_prec < min_precedence:
                return Result.success(lhs)

            op_tok = self.current
            self.advance()  # eat the operator

            rhs = self.parse_primary()
            if not rhs.ok:
                return rhs

            next_prec = self.precedence.of(self.current)
            if tok_prec < next_prec:
                rhs = self.parse_bin_op_rhs(tok_prec + 1, rhs.value)
                if not rhs.ok:
                    return rhs

            lhs = BinaryExpr(op_tok.value, lhs, rhs.value, op_tok.location)

    # -------------------------------------------------------------------
    # Top-level units
    # -------------------------------------------------------------------

    def parse_prototype(self) -> Result[Prototype]:
        if self.current.type is not TokenType.IDENT:
            return self._fail("Expected function name in prototype")
        name_tok = self.current
        self.advance()

        if not self.current.is_char("("):
            return self._fail("Expected '(' in prototype")

        params: list[str] = []
        while self.advance().type is TokenType.IDENT:
            params.append(self.current.value)
        if not self.current.is_char(")"):
            return self._fail("Expected ')' in prototype")
        self.advance()  # eat ')'

        return Result.success(Prototype(name_tok.value, params, name_tok.location))

    def parse_definition(self) -> Result[Function]:
        loc = self.current.location
        self.advance()  # eat 'def'
        proto = self.parse_prototype()
        if not proto.ok:
            return proto  # type: ignore[return-value]
        body = self.parse_expression()
        if not body.ok:
            return body  # type: ignore[return-value]
        return Result.success(Function(proto.value, body.value, loc))

    def parse_extern(self) -> Result[Prototype]:
        self.advance()  # eat 'extern'
        return self.parse_prototype()

    def parse_top_level_expr(self) -> Result[Function]:
        loc = self.current.location
        body = self.parse_expression()
        if not body.ok:
            return body  # type: ignore[return-value]
        proto = Prototype(ANON_FUNCTION_NAME, [], loc)
        return Result.success(Function(proto, body.value, loc))
