from .exceptions import LoxError, LoxSyntaxError, LoxRuntimeError
from .interfaces import OutputSink, ConsoleSink, BufferSink, TeeSink
from .lexer import Lexer, KEYWORDS, tokenize, literal_value
from .models import (
    RunConfig,
    ReturnValue,
    LoxCallable,
    LoxFunction,
    BoundMethod,
    NativeFunction,
    LoxClass,
    LoxInstance,
)
from .scope import Environment
from .parser import Parser, parse
from .resolver import Resolver
from .stdlib import StdLib
from .types import TypeCanon
from .interpreter import LoxInterpreter
from .results import (
    Diagnostic,
    Success,
    SyntaxErrors,
    ResolutionErrors,
    RuntimeFailure,
    RunResult,
)
from .session import LoxSession, interpret

__all__ = [
    "LoxError",
    "LoxSyntaxError",
    "LoxRuntimeError",
    "OutputSink",
    "ConsoleSink",
    "BufferSink",
    "TeeSink",
    "Lexer",
    "KEYWORDS",
    "tokenize",
    "literal_value",
    "RunConfig",
    "ReturnValue",
    "LoxCallable",
    "LoxFunction",
    "BoundMethod",
    "NativeFunction",
    "LoxClass",
    "LoxInstance",
    "Environment",
    "Parser",
    "parse",
    "Resolver",
    "StdLib",
    "TypeCanon",
    "LoxInterpreter",
    "Diagnostic",
    "Success",
    "SyntaxErrors",
    "ResolutionErrors",
    "RuntimeFailure",
    "RunResult",
    "LoxSession",
    "interpret",
]
