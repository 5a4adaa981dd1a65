"""Kaleido Lexer — on-demand tokenizer with line/column tracking.

Reads its input one character at a time, so it works the same over a string,
a file, or an interactive stdin. Every call to ``next_token`` produces exactly
one token; end-of-input is sticky.
"""

from __future__ import annotations

import io
import logging
import re
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, TextIO, Union

from kaleido.errors import SourceLocation

logger = logging.getLogger(__name__)


class TokenType(Enum):
    EOF = auto()

    # Keywords
    DEF = auto()
    EXTERN = auto()

    # Primary
    IDENT = auto()
    NUMBER = auto()

    # Any other single character: operators, parens, comma, semicolon
    CHAR = auto()


KEYWORDS: dict[str, TokenType] = {
    "def": TokenType.DEF,
    "extern": TokenType.EXTERN,
}

_ALPHA = frozenset(string.ascii_letters)
_DIGITS = frozenset(string.digits)
_ALNUM = _ALPHA | _DIGITS
_SPACE = frozenset(string.whitespace)

# Longest prefix strtod would accept for a run of digits and periods.
_FLOAT_PREFIX = re.compile(r"\d+\.?\d*|\.\d+")


@dataclass
class Token:
    type: TokenType
    value: str
    location: SourceLocation
    number: Optional[float] = None

    def is_char(self, ch: str) -> bool:
        return self.type is TokenType.CHAR and self.value == ch

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.location})"


def parse_numeral(text: str) -> float:
    """Convert a digits-and-periods run the way C's strtod does.

    Conversion stops at the first character that cannot extend a decimal
    float, so ``1.2.3`` reads as 1.2 and a lone ``.`` reads as 0.0.
    """
    m = _FLOAT_PREFIX.match(text)
    if m is None:
        return 0.0
    return float(m.group(0))


class Lexer:
    """Tokenizer for Kaleido source, pulling characters lazily."""

    def __init__(self, source: Union[str, TextIO], filename: str = "<stdin>"):
        if isinstance(source, str):
            source = io.StringIO(source)
        self._stream = source
        self.filename = filename
        self.line = 1
        self.column = 0
        self._last_char = " "

    def _loc(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.filename)

    def _read(self) -> str:
        if self._last_char == "\n":
            self.line += 1
            self.column = 0
        ch = self._stream.read(1)
        if ch:
            self.column += 1
        return ch

    def _advance(self) -> str:
        self._last_char = self._read()
        return self._last_char

    def _skip_comment(self) -> None:
        while self._last_char not in ("", "\n", "\r"):
            self._advance()

    def _read_identifier(self) -> Token:
        loc = self._loc()
        value = self._last_char
        while self._advance() in _ALNUM:
            value += self._last_char
        token_type = KEYWORDS.get(value, TokenType.IDENT)
        return Token(token_type, value, loc)

    def _read_number(self) -> Token:
        loc = self._loc()
        value = ""
        while self._last_char in _DIGITS or self._last_char == ".":
            value += self._last_char
            self._advance()
        number = parse_numeral(value)
        if _FLOAT_PREFIX.fullmatch(value) is None:
            logger.warning("%s: numeral %r read leniently as %r", loc, value, number)
        return Token(TokenType.NUMBER, value, loc, number=number)

    def next_token(self) -> Token:
        while True:
            while self._last_char in _SPACE:
                self._advance()

            if self._last_char == "#":
                self._skip_comment()
                continue
            break

        ch = self._last_char
        if ch == "":
            return Token(TokenType.EOF, "", self._loc())
        if ch in _ALPHA:
            return self._read_identifier()
        if ch in _DIGITS or ch == ".":
            return self._read_number()

        loc = self._loc()
        self._advance()
        return Token(TokenType.CHAR, ch, loc)


def tokenize(source: Union[str, TextIO], filename: str = "<stdin>") -> list[Token]:
    """Convenience function returning every token up to and including EOF."""
    lexer = Lexer(source, filename)
    tokens: list[Token] = []
    while True:
        tok = lexer.next_token()
        tokens.append(tok)
        if tok.type is TokenType.EOF:
            return tokens
