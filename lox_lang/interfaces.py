import io
import sys
from abc import ABC, abstractmethod
from typing import Iterable, Optional, TextIO


class OutputSink(ABC):
    """Abstracts program output so interpreters can be hosted in different frontends."""

    @abstractmethod
    def write(self, text: str) -> int: ...

    @abstractmethod
    def flush(self) -> None: ...


class ConsoleSink(OutputSink):
    """Console-backed output used by the CLI and REPL."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Looked up per write so redirect_stdout in a host still captures output.
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str) -> int:
        written = self.stream.write(text)
        return len(text) if written is None else written

    def flush(self) -> None:
        self.stream.flush()


class BufferSink(OutputSink):
    """Accumulates everything written until ``clear()``."""

    def __init__(self):
        self._buffer = io.StringIO()

    def write(self, text: str) -> int:
        return self._buffer.write(text)

    def flush(self) -> None:
        pass

    def getvalue(self) -> str:
        return self._buffer.getvalue()

    def clear(self) -> None:
        self._buffer = io.StringIO()


class TeeSink(OutputSink):
    def __init__(self, sinks: Iterable[OutputSink]):
        self.sinks = list(sinks)

    def write(self, text: str) -> int:
        accepted = len(text)
        for sink in self.sinks:
            accepted = min(accepted, sink.write(text))
        return accepted

    def flush(self) -> None:
        for sink in self.sinks:
            sink.flush()
