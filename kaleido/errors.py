"""Structured diagnostics for the Kaleido front end.

Every failure is a value: parse and codegen routines hand back a ``Result``
carrying either the produced node/handle or a ``KaleidoError``. Callers that
prefer exceptions use ``Result.unwrap()``, which raises ``CompileError``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


class ErrorKind(Enum):
    LEX_ERROR = "lex_error"
    SYNTAX_ERROR = "syntax_error"
    NAME_ERROR = "name_error"
    ARITY_ERROR = "arity_error"
    CODEGEN_ERROR = "codegen_error"


@dataclass(frozen=True)
class SourceLocation:
    """Where a token starts. Shared by the token and every node built from it."""
    line: int
    column: int
    file: str = "<stdin>"

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class KaleidoError:
    kind: ErrorKind
    message: str
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.location is not None:
            d["location"] = self.location.to_dict()
        if self.details:
            d["details"] = dict(self.details)
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        where = "" if self.location is None else f" at {self.location}"
        return f"[{self.kind.value}]{where}: {self.message}"


def syntax_error(
    message: str,
    location: Optional[SourceLocation] = None,
    found: Optional[str] = None,
) -> KaleidoError:
    details: dict[str, Any] = {}
    if found is not None:
        details["found"] = found
    return KaleidoError(
        kind=ErrorKind.SYNTAX_ERROR,
        message=message,
        location=location,
        details=details,
    )


def unknown_variable(
    name: str,
    location: Optional[SourceLocation] = None,
) -> KaleidoError:
    return KaleidoError(
        kind=ErrorKind.NAME_ERROR,
        message=f"Unknown variable name '{name}'",
        location=location,
        details={"name": name},
    )


def unknown_function(
    name: str,
    location: Optional[SourceLocation] = None,
) -> KaleidoError:
    return KaleidoError(
        kind=ErrorKind.NAME_ERROR,
        message=f"Unknown function referenced '{name}'",
        location=location,
        details={"name": name},
    )


def unresolved_symbol(
    name: str,
    location: Optional[SourceLocation] = None,
) -> KaleidoError:
    return KaleidoError(
        kind=ErrorKind.NAME_ERROR,
        message=f"Unresolved external symbol '{name}'",
        location=location,
        details={"name": name},
    )


def arity_error(
    callee: str,
    expected: int,
    actual: int,
    location: Optional[SourceLocation] = None,
) -> KaleidoError:
    return KaleidoError(
        kind=ErrorKind.ARITY_ERROR,
        message=(
            f"Incorrect number of arguments passed to '{callee}': "
            f"expected {expected}, got {actual}"
        ),
        location=location,
        details={"callee": callee, "expected": expected, "actual": actual},
    )


def codegen_error(
    message: str,
    location: Optional[SourceLocation] = None,
    **details: Any,
) -> KaleidoError:
    return KaleidoError(
        kind=ErrorKind.CODEGEN_ERROR,
        message=message,
        location=location,
        details=dict(details),
    )


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a produced value or the diagnostic explaining why there is none."""
    value: Optional[T] = None
    error: Optional[KaleidoError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: KaleidoError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise CompileError(self.error)
        return self.value  # type: ignore[return-value]


class CompileError(Exception):
    """Exception wrapping one or more KaleidoErrors."""

    def __init__(self, errors: list[KaleidoError] | KaleidoError):
        if isinstance(errors, KaleidoError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)
