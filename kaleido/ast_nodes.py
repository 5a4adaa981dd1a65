"""Kaleido AST node definitions.

Expressions form a closed union of four variants. Prototypes and functions
are the top-level units the parser hands to the code generator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from kaleido.errors import SourceLocation


ANON_FUNCTION_NAME = "__anon_expr"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass
class NumberExpr:
    value: float
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {"node": "number", "value": self.value}


@dataclass
class VariableExpr:
    name: str
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {"node": "variable", "name": self.name}


@dataclass
class BinaryExpr:
    op: str
    lhs: Expr
    rhs: Expr
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": "binary",
            "op": self.op,
            "lhs": self.lhs.to_dict(),
            "rhs": self.rhs.to_dict(),
        }


@dataclass
class CallExpr:
    callee: str
    args: list[Expr] = field(default_factory=list)
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": "call",
            "callee": self.callee,
            "args": [a.to_dict() for a in self.args],
        }


Expr = Union[NumberExpr, VariableExpr, BinaryExpr, CallExpr]


# ---------------------------------------------------------------------------
# Top-level units
# ---------------------------------------------------------------------------

@dataclass
class Prototype:
    """A function's name and parameter names, with or without a body."""
    name: str
    params: list[str] = field(default_factory=list)
    location: Optional[SourceLocation] = None

    @property
    def is_anonymous(self) -> bool:
        return self.name == ANON_FUNCTION_NAME

    def to_dict(self) -> dict[str, Any]:
        return {"node": "prototype", "name": self.name, "params": list(self.params)}

    def __str__(self) -> str:
        return f"{self.name}({' '.join(self.params)})"


@dataclass
class Function:
    proto: Prototype
    body: Expr
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": "function",
            "proto": self.proto.to_dict(),
            "body": self.body.to_dict(),
        }


TopLevelUnit = Union[Function, Prototype]
