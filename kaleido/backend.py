"""Code-generation backend contract.

The code generator only ever passes opaque handles back into the backend;
values, functions and builder state are entirely the backend's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence


ARITHMETIC_OPS = ("add", "sub", "mul")


class Backend(ABC):
    """Operations the code generator needs from an IR builder."""

    @abstractmethod
    def const_float(self, value: float) -> Any:
        """Floating-point constant equal to *value*."""

    @abstractmethod
    def arithmetic(self, op: str, lhs: Any, rhs: Any) -> Any:
        """Float arithmetic; *op* is one of ``ARITHMETIC_OPS``."""

    @abstractmethod
    def compare_lt(self, lhs: Any, rhs: Any) -> Any:
        """Unordered less-than, producing a boolean-width value."""

    @abstractmethod
    def widen(self, flag: Any) -> Any:
        """Boolean-width value to the float value type (0.0 / 1.0)."""

    @abstractmethod
    def get_function(self, name: str) -> Optional[Any]:
        ...

    @abstractmethod
    def declare_function(self, name: str, params: Sequence[str]) -> Any:
        """Declare ``double name(double, ...)``, or return the existing declaration."""

    @abstractmethod
    def param_count(self, fn: Any) -> int:
        ...

    @abstractmethod
    def has_body(self, fn: Any) -> bool:
        ...

    @abstractmethod
    def call(self, fn: Any, args: Sequence[Any]) -> Any:
        ...

    @abstractmethod
    def begin_body(self, fn: Any, params: Sequence[str]) -> list[Any]:
        """Open an entry block in *fn* and return its parameter handles, in order."""

    @abstractmethod
    def finish_function(self, fn: Any, result: Any) -> None:
        """Return *result* from *fn* and close it."""

    @abstractmethod
    def discard_body(self, fn: Any) -> None:
        """Drop a partially built body, leaving *fn* a bare declaration."""

    @abstractmethod
    def remove_function(self, fn: Any) -> None:
        ...

    def check(self) -> Optional[str]:
        """Validate the module built so far; a message means it is malformed."""
        return None

    @abstractmethod
    def function_ir(self, fn: Any) -> str:
        ...

    @abstractmethod
    def module_ir(self) -> str:
        ...
