import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from lark import Token, Tree

from .exceptions import LoxRuntimeError
from .scope import Environment

DIAGNOSTIC_MODES = ("result", "sink")


@dataclass
class RunConfig:
    diagnostics: str = "result"
    max_call_depth: int = 1000

    def __post_init__(self) -> None:
        if self.diagnostics not in DIAGNOSTIC_MODES:
            raise ValueError(
                f"diagnostics must be one of {DIAGNOSTIC_MODES}, got {self.diagnostics!r}"
            )
        if self.max_call_depth < 1:
            raise ValueError("max_call_depth must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunConfig":
        environ = os.environ if environ is None else environ
        return cls(
            diagnostics=environ.get("LOX_DIAGNOSTICS", "result"),
            max_call_depth=int(environ.get("LOX_MAX_CALL_DEPTH", "1000")),
        )


@dataclass(frozen=True)
class ReturnValue:
    value: Any


class LoxCallable:
    """Marker base for every value that can appear before ``(...)``."""

    @property
    def arity(self) -> int:
        raise NotImplementedError


@dataclass(eq=False)
class LoxFunction(LoxCallable):
    name: Optional[str]
    params: List[Token]
    body: Tree
    closure: Environment
    is_initializer: bool = False

    @property
    def arity(self) -> int:
        return len(self.params)

    def bind(self, instance: "LoxInstance") -> "BoundMethod":
        env = Environment(self.closure)
        env.define("this", instance)
        return BoundMethod(
            self.name, self.params, self.body, env, self.is_initializer, instance
        )

    def __str__(self) -> str:
        return f"<fn {self.name}>" if self.name else "<fn>"


@dataclass(eq=False)
class BoundMethod(LoxFunction):
    receiver: Any = None


@dataclass(eq=False)
class NativeFunction(LoxCallable):
    name: str
    param_count: int
    func: Callable[..., Any]

    @property
    def arity(self) -> int:
        return self.param_count

    def __str__(self) -> str:
        return "<native fn>"


@dataclass(eq=False)
class LoxClass(LoxCallable):
    name: str
    superclass: Optional["LoxClass"] = None
    methods: Dict[str, LoxFunction] = field(default_factory=dict)

    def find_method(self, name: str) -> Optional[LoxFunction]:
        klass: Optional[LoxClass] = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    @property
    def arity(self) -> int:
        initializer = self.find_method("init")
        return initializer.arity if initializer else 0

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class LoxInstance:
    klass: LoxClass
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: Token) -> Any:
        if name in self.fields:
            return self.fields[name]
        method = self.klass.find_method(name)
        if method is not None:
            return method.bind(self)
        raise LoxRuntimeError(name, f"Undefined property '{name}'.")

    def set(self, name: Token, value: Any) -> None:
        self.fields[str(name)] = value

    def __str__(self) -> str:
        return f"{self.klass.name} instance"
