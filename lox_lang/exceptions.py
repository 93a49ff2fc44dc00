from typing import Optional

from lark import Token


class LoxError(Exception):
    """Base exception for the runtime."""

    pass


class LoxSyntaxError(LoxError):
    """Raised by the parser to abandon the current declaration."""

    def __init__(self, token: Token, message: str):
        super().__init__(message)
        self.token = token
        self.message = message


class LoxRuntimeError(LoxError):
    """Raised when evaluation cannot continue."""

    def __init__(self, token: Token, message: str):
        super().__init__(message)
        self.token = token
        self.message = message

    @property
    def line(self) -> int:
        return getattr(self.token, "line", None) or 0

    @property
    def column(self) -> Optional[int]:
        return getattr(self.token, "column", None)
