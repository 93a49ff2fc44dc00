from typing import Any, Dict, Optional

from lark import Token

from .exceptions import LoxRuntimeError


class Environment:
    """One scope's bindings plus the link to the scope that encloses it.

    Closures keep a reference to the environment they were created in, so an
    environment lives as long as any function or child scope still points at
    it and later assignments stay visible to every holder.
    """

    def __init__(self, enclosing: Optional["Environment"] = None):
        self.values: Dict[str, Any] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Any) -> None:
        self.values[name] = value

    def get(self, name: Token) -> Any:
        env: Optional[Environment] = self
        while env is not None:
            if name in env.values:
                return env.values[name]
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name}'.")

    def assign(self, name: Token, value: Any) -> None:
        env: Optional[Environment] = self
        while env is not None:
            if name in env.values:
                env.values[name] = value
                return
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name}'.")

    def ancestor(self, distance: int) -> "Environment":
        env = self
        for _ in range(distance):
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: Token) -> Any:
        values = self.ancestor(distance).values
        if name not in values:
            raise LoxRuntimeError(name, f"Undefined variable '{name}'.")
        return values[name]

    def assign_at(self, distance: int, name: Token, value: Any) -> None:
        self.ancestor(distance).values[name] = value
