"""Kaleido LLVM backend.

Implements the code generator's backend contract with llvmlite: IR is built
through ``llvmlite.ir`` and checked, and optionally executed, through
``llvmlite.binding``. Every value in the language is a ``double``.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Any, Optional, Sequence

from llvmlite import binding as llvm_binding
from llvmlite import ir as llvm_ir

from kaleido.backend import ARITHMETIC_OPS, Backend

logger = logging.getLogger(__name__)

DOUBLE = llvm_ir.DoubleType()


class LLVMBackend(Backend):
    """Builds one LLVM module, one function at a time."""

    def __init__(self, module_name: str = "kaleido", verify: bool = True):
        self.module = llvm_ir.Module(name=module_name)
        self.module.triple = llvm_binding.get_default_triple()
        self.verify = verify
        self._builder: Optional[llvm_ir.IRBuilder] = None

    @property
    def builder(self) -> llvm_ir.IRBuilder:
        if self._builder is None:
            raise RuntimeError("no function body is open")
        return self._builder

    # -------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------

    def const_float(self, value: float) -> Any:
        return llvm_ir.Constant(DOUBLE, value)

    def arithmetic(self, op: str, lhs: Any, rhs: Any) -> Any:
        if op not in ARITHMETIC_OPS:
            raise ValueError(f"unsupported arithmetic op {op!r}")
        emit = getattr(self.builder, "f" + op)
        return emit(lhs, rhs, name=f"{op}tmp")

    def compare_lt(self, lhs: Any, rhs: Any) -> Any:
        return self.builder.fcmp_unordered("<", lhs, rhs, name="cmptmp")

    def widen(self, flag: Any) -> Any:
        return self.builder.uitofp(flag, DOUBLE, name="booltmp")

    def call(self, fn: Any, args: Sequence[Any]) -> Any:
        return self.builder.call(fn, list(args), name="calltmp")

    # -------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------

    def get_function(self, name: str) -> Optional[Any]:
        gv = self.module.globals.get(name)
        if isinstance(gv, llvm_ir.Function):
            return gv
        return None

    def declare_function(self, name: str, params: Sequence[str]) -> Any:
        existing = self.get_function(name)
        if existing is not None:
            return existing
        fn_type = llvm_ir.FunctionType(DOUBLE, [DOUBLE] * len(params))
        fn = llvm_ir.Function(self.module, fn_type, name=name)
        self._name_args(fn, params)
        logger.debug("declared %s/%d", name, len(params))
        return fn

    def param_count(self, fn: Any) -> int:
        return len(fn.args)

    def has_body(self, fn: Any) -> bool:
        return not fn.is_declaration

    def begin_body(self, fn: Any, params: Sequence[str]) -> list[Any]:
        self._name_args(fn, params)
        block = fn.append_basic_block(name="entry")
        self._builder = llvm_ir.IRBuilder(block)
        return list(fn.args)

    def finish_function(self, fn: Any, result: Any) -> None:
        self.builder.ret(result)
        self._builder = None

    def discard_body(self, fn: Any) -> None:
        fn.blocks = []
        self._builder = None

    def remove_function(self, fn: Any) -> None:
        del self.module.globals[fn.name]
        release_name(self.module.scope, fn.name)
        self._builder = None
        logger.debug("removed %s from module", fn.name)

    def check(self) -> Optional[str]:
        """Verify the module with LLVM. Returns the verifier message on failure."""
        if not self.verify:
            return None
        try:
            llvm_binding.parse_assembly(str(self.module)).verify()
        except RuntimeError as e:
            return str(e).strip()
        return None

    def function_ir(self, fn: Any) -> str:
        return str(fn)

    def module_ir(self) -> str:
        return str(self.module)

    @staticmethod
    def _name_args(fn: Any, params: Sequence[str]) -> None:
        for arg, name in zip(fn.args, params):
            if arg.name != name:
                arg.name = name


def release_name(scope: Any, name: str) -> None:
    """Forget *name* in an ``llvmlite.ir`` name scope so it can be reused.

    llvmlite only ever adds to a scope; the used names live in the private
    ``_useset`` attribute.
    """
    used = getattr(scope, "_useset", None)
    if not isinstance(used, set):
        raise RuntimeError(
            f"cannot release {name!r}: {type(scope).__name__} has no _useset"
        )
    used.discard(name)


# ---------------------------------------------------------------------------
# In-process execution
# ---------------------------------------------------------------------------

_native_ready = False


def _initialize_llvm() -> None:
    """Initialize the native target once per process."""
    global _native_ready
    if _native_ready:
        return
    llvm_binding.initialize_native_target()
    llvm_binding.initialize_native_asmprinter()
    _native_ready = True


class UnresolvedSymbolError(LookupError):
    """Called externs that the host process does not provide."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__("unresolved external symbol(s): " + ", ".join(self.names))


def unresolved_symbols(mod: Any) -> list[str]:
    """Names of called, declared-only functions with no address in this process.

    *mod* is a parsed ``llvmlite.binding`` module. Extern declarations that are
    never called do not count; MCJIT never looks them up.
    """
    called: set[str] = set()
    for fn in mod.functions:
        for block in fn.blocks:
            for instr in block.instructions:
                if instr.opcode == "call":
                    # the callee is the last operand of a call
                    called.add(list(instr.operands)[-1].name)

    missing = []
    for fn in mod.functions:
        if fn.is_declaration and fn.name in called:
            if not llvm_binding.address_of_symbol(fn.name):
                missing.append(fn.name)
    return missing


def evaluate(module_ir: str, fn_name: str, *args: float) -> float:
    """JIT-compile *module_ir* and call ``fn_name(*args)``, returning a float.

    Raises ``UnresolvedSymbolError`` before any machine code is linked if a
    called extern cannot be found in the running process.
    """
    _initialize_llvm()
    mod = llvm_binding.parse_assembly(module_ir)
    mod.verify()

    target = llvm_binding.Target.from_default_triple()
    target_machine = target.create_target_machine()
    # Creating the engine makes the process's own symbols searchable.
    engine = llvm_binding.create_mcjit_compiler(mod, target_machine)
    try:
        missing = unresolved_symbols(mod)
        if missing:
            raise UnresolvedSymbolError(missing)
        engine.finalize_object()
        engine.run_static_constructors()
        address = engine.get_function_address(fn_name)
        if not address:
            raise LookupError(f"function {fn_name!r} not found in module")
        fn_type = ctypes.CFUNCTYPE(ctypes.c_double, *([ctypes.c_double] * len(args)))
        return fn_type(address)(*args)
    finally:
        engine.close()
