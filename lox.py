"""Lox entrypoint module exposing the public API and CLI."""

import argparse
import logging
import os
import sys

from lox_lang import (
    ConsoleSink,
    LoxSession,
    RunConfig,
    RuntimeFailure,
    SyntaxErrors,
    parse,
)

EXIT_STATIC_ERROR = 65
EXIT_NO_INPUT = 66
EXIT_RUNTIME_ERROR = 70

__all__ = ["run_repl", "run_file", "main"]


def _report(session: LoxSession, result) -> None:
    if session.config.diagnostics == "sink":
        return
    diagnostics = [result.error] if isinstance(result, RuntimeFailure) else result.errors
    for diagnostic in diagnostics:
        print(diagnostic, file=sys.stderr)


def run_repl(session: LoxSession):  # pragma: no cover
    while True:
        try:
            line = input("> ")
        except EOFError:
            print()
            break
        if not line.strip():
            continue
        result = session.interpret(line)
        if not result.ok:
            _report(session, result)
        session.clear()


def run_file(session: LoxSession, path: str, dump_ast: bool = False) -> int:
    try:
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
    except OSError as e:
        print(f"Could not read {path}: {e}", file=sys.stderr)
        return EXIT_NO_INPUT

    if dump_ast:
        program, errors = parse(source)
        if not errors:
            print(program.pretty())

    result = session.interpret(source)
    if isinstance(result, SyntaxErrors):
        _report(session, result)
        return EXIT_STATIC_ERROR
    if isinstance(result, RuntimeFailure):
        _report(session, result)
        return EXIT_RUNTIME_ERROR
    return 0


def main():
    parser = argparse.ArgumentParser(description="Lox tree-walking interpreter")
    parser.add_argument("script", nargs="?", help="Path to the Lox script")
    parser.add_argument(
        "--diagnostics",
        choices=["result", "sink"],
        default=None,
        help="Also write error reports to the program output (default: stderr only)",
    )
    parser.add_argument(
        "--dump-ast", action="store_true", help="Print the parsed tree before running"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging on stderr"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = RunConfig.from_env()
    except ValueError as e:
        parser.error(str(e))
    if args.diagnostics:
        config.diagnostics = args.diagnostics

    session = LoxSession(sink=ConsoleSink(), config=config)

    if not args.script:
        run_repl(session)
        return

    status = run_file(session, os.path.abspath(args.script), dump_ast=args.dump_ast)
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
