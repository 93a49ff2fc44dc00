import math
from decimal import Decimal
from typing import Any


class TypeCanon:
    """Rules shared by every Lox value: kind names, truthiness, equality, text."""

    NIL = "nil"
    BOOL = "boolean"
    NUMBER = "number"
    TEXT = "string"
    CALLABLE = "callable"
    INSTANCE = "instance"

    @classmethod
    def get_type_of_value(cls, value: Any) -> str:
        from .models import LoxCallable, LoxInstance

        if value is None:
            return cls.NIL
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, float):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.TEXT
        if isinstance(value, LoxCallable):
            return cls.CALLABLE
        if isinstance(value, LoxInstance):
            return cls.INSTANCE
        raise TypeError(f"Not a Lox value: {value!r}")

    @classmethod
    def is_truthy(cls, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        return True

    @classmethod
    def are_equal(cls, left: Any, right: Any) -> bool:
        # bool is an int subclass and 1.0 == True in Python, so compare kinds first.
        if type(left) is not type(right):
            return False
        if left is None or isinstance(left, (bool, float, str)):
            return left == right
        return left is right

    @classmethod
    def format_number(cls, value: float) -> str:
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        if value == 0 and math.copysign(1.0, value) < 0:
            return "-0"
        # Shortest round-trip digits, written out without an exponent.
        text = format(Decimal(repr(value)), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    @classmethod
    def stringify(cls, value: Any) -> str:
        if value is None:
            return "nil"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return cls.format_number(value)
        return str(value)
