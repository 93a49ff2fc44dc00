from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Diagnostic:
    line: int
    message: str
    column: Optional[int] = None

    def __str__(self) -> str:
        return f"[line {self.line}] {self.message}"


@dataclass(frozen=True)
class Success:
    ok = True


@dataclass(frozen=True)
class SyntaxErrors:
    """Lexical or grammatical problems; nothing was evaluated."""

    errors: List[Diagnostic] = field(default_factory=list)
    ok = False


@dataclass(frozen=True)
class ResolutionErrors(SyntaxErrors):
    """Static scoping problems found after a clean parse; nothing was evaluated."""


@dataclass(frozen=True)
class RuntimeFailure:
    """Evaluation stopped at the statement that raised ``error``."""

    error: Diagnostic
    ok = False


RunResult = Union[Success, SyntaxErrors, RuntimeFailure]
