"""Embedding API: run source text and get a structured result back.

A ``LoxSession`` owns one interpreter, so top-level declarations from one
``interpret`` call stay visible to the next until ``reset()`` is called.
Everything printed is also kept in an internal buffer for hosts that prefer
to pull output with ``out()`` instead of supplying a sink.
"""

import logging
from typing import Callable, List, Optional

from .exceptions import LoxRuntimeError
from .interfaces import BufferSink, OutputSink, TeeSink
from .interpreter import LoxInterpreter
from .models import RunConfig
from .parser import parse
from .resolver import Resolver
from .results import (
    Diagnostic,
    ResolutionErrors,
    RunResult,
    RuntimeFailure,
    Success,
    SyntaxErrors,
)
from .stdlib import StdLib

logger = logging.getLogger(__name__)


class LoxSession:
    def __init__(
        self,
        sink: Optional[OutputSink] = None,
        config: Optional[RunConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config if config is not None else RunConfig()
        self._buffer = BufferSink()
        sinks: List[OutputSink] = [self._buffer]
        if sink is not None:
            sinks.append(sink)
        self._sink = TeeSink(sinks)
        self._clock = clock
        self.interpreter = self._new_interpreter()

    def _new_interpreter(self) -> LoxInterpreter:
        return LoxInterpreter(
            sink=self._sink, stdlib=StdLib(self._clock), config=self.config
        )

    def interpret(self, source: str) -> RunResult:
        checked = self._front_end(source)
        if not isinstance(checked, tuple):
            return self._report(checked)

        program, resolved = checked
        self.interpreter.bind_locals(program, resolved)

        logger.debug("Evaluating %d top-level statements", len(program.children))
        try:
            self.interpreter.interpret(program)
        except LoxRuntimeError as e:
            logger.info("Runtime error on line %s: %s", e.line, e.message)
            return self._report(
                RuntimeFailure(Diagnostic(e.line, e.message, e.column))
            )
        except RecursionError:
            logger.info("Host recursion limit reached during evaluation")
            line = self.interpreter.current_line
            return self._report(RuntimeFailure(Diagnostic(line, "Stack overflow.")))
        logger.debug("Run finished successfully")
        return Success()

    def check(self, source: str) -> RunResult:
        """Scan, parse and resolve ``source`` without running it."""
        checked = self._front_end(source)
        return checked if not isinstance(checked, tuple) else Success()

    def _front_end(self, source: str):
        try:
            program, errors = parse(source)
        except RecursionError:
            errors = [Diagnostic(0, "Error: Program is nested too deeply.")]
        if errors:
            logger.debug("Parsing produced %d error(s)", len(errors))
            return SyntaxErrors(errors)

        resolver = Resolver()
        try:
            errors = resolver.resolve(program)
        except RecursionError:
            errors = [Diagnostic(0, "Error: Program is nested too deeply.")]
        if errors:
            logger.debug("Resolution produced %d error(s)", len(errors))
            return ResolutionErrors(errors)

        return program, resolver.locals

    def _report(self, result: RunResult) -> RunResult:
        if self.config.diagnostics != "sink":
            return result
        diagnostics = (
            [result.error] if isinstance(result, RuntimeFailure) else result.errors
        )
        try:
            for diagnostic in diagnostics:
                self._sink.write(f"{diagnostic}\n")
            self._sink.flush()
        except Exception:
            logger.exception("Could not write diagnostics to the output sink")
        return result

    def out(self) -> str:
        return self._buffer.getvalue()

    def clear(self) -> None:
        self._buffer.clear()

    def reset(self) -> None:
        """Forget every global defined by earlier runs."""
        self.interpreter = self._new_interpreter()


def interpret(
    source: str,
    sink: Optional[OutputSink] = None,
    config: Optional[RunConfig] = None,
) -> RunResult:
    return LoxSession(sink=sink, config=config).interpret(source)
