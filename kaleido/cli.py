"""Kaleido CLI — command-line interface for the Kaleido front end.

Commands:
  kaleido repl                 — Interactive read-eval-print loop (default)
  kaleido ir <file.kal>        — Compile a file, print the module's LLVM IR
  kaleido ast <file.kal>       — Parse a file, print its top-level units (JSON)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from kaleido import __version__
from kaleido.config import KaleidoConfig, load_config
from kaleido.driver import Session, compile_source, parse_source, unit_kind
from kaleido.errors import CompileError


def _read_source(path: str) -> Optional[str]:
    if not os.path.exists(path):
        print(json.dumps({"error": f"File not found: {path}"}))
        return None
    with open(path, "r") as f:
        return f.read()


def cmd_repl(args: argparse.Namespace) -> int:
    """Run the interactive loop over stdin."""
    config: KaleidoConfig = args.config_obj
    if args.no_ir:
        config.emit_ir = False
    session = Session(
        sys.stdin,
        config,
        interactive=sys.stdin.isatty() or args.prompt,
        parse_only=args.parse_only,
        jit=args.jit,
    )
    errors = session.run()
    return 1 if errors and args.strict else 0


def cmd_ir(args: argparse.Namespace) -> int:
    """Compile a source file and print its LLVM IR."""
    source = _read_source(args.file)
    if source is None:
        return 1

    try:
        llvm_ir_str = compile_source(source, filename=args.file, config=args.config_obj)
    except CompileError as e:
        print(e.to_json())
        return 1

    if args.output:
        with open(args.output, "w") as f:
            f.write(llvm_ir_str)
        print(json.dumps({"status": "llvm_ir_emitted", "path": args.output}))
    else:
        print(llvm_ir_str)
    return 0


def cmd_ast(args: argparse.Namespace) -> int:
    """Parse a source file and print its top-level units as JSON."""
    source = _read_source(args.file)
    if source is None:
        return 1

    try:
        units = parse_source(source, filename=args.file, config=args.config_obj)
    except CompileError as e:
        print(e.to_json())
        return 1

    print(json.dumps(
        [{"kind": unit_kind(u), **u.to_dict()} for u in units],
        indent=2,
    ))
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kaleido",
        description="Kaleido — a toy expression language front end for LLVM",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a .kaleidorc.json file (default: search upward)")
    parser.add_argument("--log-level", dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # repl
    p_repl = subparsers.add_parser("repl", help="Interactive read-eval-print loop")
    p_repl.add_argument("--parse-only", action="store_true", dest="parse_only",
                        help="Only parse; report each unit without generating code")
    p_repl.add_argument("--no-ir", action="store_true", dest="no_ir", help="Do not print generated IR")
    p_repl.add_argument("--jit", action="store_true", help="Evaluate top-level expressions with the LLVM JIT")
    p_repl.add_argument("--prompt", action="store_true", help="Print prompts even when stdin is not a terminal")
    p_repl.add_argument("--strict", action="store_true", help="Exit with status 1 if any unit failed")
    p_repl.set_defaults(func=cmd_repl)

    # ir
    p_ir = subparsers.add_parser("ir", help="Compile a file and print its LLVM IR")
    p_ir.add_argument("file", help="Kaleido source file")
    p_ir.add_argument("-o", "--output", help="Write the IR to this path instead of stdout")
    p_ir.set_defaults(func=cmd_ir)

    # ast
    p_ast = subparsers.add_parser("ast", help="Parse a file and print its AST as JSON")
    p_ast.add_argument("file", help="Kaleido source file")
    p_ast.set_defaults(func=cmd_ast)

    args = parser.parse_args(argv)

    if not args.command:
        argv = sys.argv[1:] if argv is None else argv
        args = parser.parse_args([*argv, "repl"])

    args.config_obj = load_config(args.config)
    logging.basicConfig(
        level=args.log_level or args.config_obj.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
