"""Kaleido — a toy expression language front end: lexer, parser, LLVM codegen."""

__version__ = "0.3.0"
