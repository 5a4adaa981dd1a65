"""Kaleido code generation — AST to backend IR.

A tree walk over the closed expression union. Parameters of the function
being generated are the only names in scope; they are rebound from scratch
for every function. Failures come back as ``Result`` values and leave no
half-built function in the module.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from kaleido.ast_nodes import (
    BinaryExpr,
    CallExpr,
    Expr,
    Function,
    NumberExpr,
    Prototype,
    TopLevelUnit,
    VariableExpr,
)
from kaleido.backend import Backend
from kaleido.errors import (
    KaleidoError,
    Result,
    arity_error,
    codegen_error,
    unknown_function,
    unknown_variable,
)

logger = logging.getLogger(__name__)


_ARITHMETIC = {
    "+": "add",
    "-": "sub",
    "*": "mul",
}


class CodeGenerator:
    """Lowers top-level units into a backend module."""

    def __init__(
        self,
        backend: Backend,
        on_error: Optional[Callable[[KaleidoError], None]] = None,
    ):
        self.backend = backend
        self.on_error = on_error
        self.errors: list[KaleidoError] = []
        self.named_values: dict[str, Any] = {}

    def _fail(self, error: KaleidoError) -> Result:
        self.errors.append(error)
        logger.debug("codegen failure: %s", error)
        if self.on_error is not None:
            self.on_error(error)
        return Result.failure(error)

    def codegen(self, unit: TopLevelUnit) -> Result[Any]:
        if isinstance(unit, Function):
            return self.codegen_function(unit)
        if isinstance(unit, Prototype):
            return self.codegen_prototype(unit)
        raise TypeError(f"not a top-level unit: {type(unit).__name__}")

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def codegen_expr(self, expr: Expr) -> Result[Any]:
        if isinstance(expr, NumberExpr):
            return Result.success(self.backend.const_float(expr.value))
        if isinstance(expr, VariableExpr):
            return self._codegen_variable(expr)
        if isinstance(expr, BinaryExpr):
            return self._codegen_binary(expr)
        if isinstance(expr, CallExpr):
            return self._codegen_call(expr)
        raise TypeError(f"not an expression node: {type(expr).__name__}")

    def _codegen_variable(self, expr: VariableExpr) -> Result[Any]:
        value = self.named_values.get(expr.name)
        if value is None:
            return self._fail(unknown_variable(expr.name, expr.location))
        return Result.success(value)

    def _codegen_binary(self, expr: BinaryExpr) -> Result[Any]:
        lhs = self.codegen_expr(expr.lhs)
        if not lhs.ok:
            return lhs
        rhs = self.codegen_expr(expr.rhs)
        if not rhs.ok:
            return rhs

        if expr.op in _ARITHMETIC:
            return Result.success(
                self.backend.arithmetic(_ARITHMETIC[expr.op], lhs.value, rhs.value)
            )
        if expr.op == "<":
            flag = self.backend.compare_lt(lhs.value, rhs.value)
            return Result.success(self.backend.widen(flag))
        return self._fail(codegen_error(
            f"invalid binary operator '{expr.op}'", expr.location, op=expr.op,
        ))

    def _codegen_call(self, expr: CallExpr) -> Result[Any]:
        callee = self.backend.get_function(expr.callee)
        if callee is None:
            return self._fail(unknown_function(expr.callee, expr.location))

        expected = self.backend.param_count(callee)
        if expected != len(expr.args):
            return self._fail(arity_error(
                expr.callee, expected, len(expr.args), expr.location,
            ))

        args: list[Any] = []
        for arg in expr.args:
            value = self.codegen_expr(arg)
            if not value.ok:
                return value
            args.append(value.value)
        return Result.success(self.backend.call(callee, args))

    # -------------------------------------------------------------------
    # Prototypes and functions
    # -------------------------------------------------------------------

    def codegen_prototype(self, proto: Prototype) -> Result[Any]:
        seen: set[str] = set()
        for name in proto.params:
            if name in seen:
                return self._fail(codegen_error(
                    f"Duplicate parameter name '{name}' in prototype '{proto.name}'",
                    proto.location, function=proto.name, param=name,
                ))
            seen.add(name)

        existing = self.backend.get_function(proto.name)
        if existing is not None and self.backend.param_count(existing) != len(proto.params):
            return self._fail(codegen_error(
                "Redefinition of function with different number of args",
                proto.location,
                function=proto.name,
                expected=self.backend.param_count(existing),
                actual=len(proto.params),
            ))
        return Result.success(self.backend.declare_function(proto.name, proto.params))

    def codegen_function(self, func: Function) -> Result[Any]:
        proto = func.proto
        existing = self.backend.get_function(proto.name)
        if existing is not None and self.backend.has_body(existing):
            return self._fail(codegen_error(
                f"Function cannot be redefined: '{proto.name}'",
                proto.location, function=proto.name,
            ))

        declared = self.codegen_prototype(proto)
        if not declared.ok:
            return declared
        fn = declared.value

        params = self.backend.begin_body(fn, proto.params)
        self.named_values = dict(zip(proto.params, params))

        body = self.codegen_expr(func.body)
        if body.ok:
            self.backend.finish_function(fn, body.value)
            problem = self.backend.check()
            if problem is None:
                logger.debug("generated %s", proto)
                return Result.success(fn)
            body = self._fail(codegen_error(
                f"Function '{proto.name}' failed verification: {problem}",
                proto.location, function=proto.name,
            ))

        # An earlier extern keeps its declaration; anything else goes.
        if existing is None:
            self.backend.remove_function(fn)
        else:
            self.backend.discard_body(fn)
        return body
