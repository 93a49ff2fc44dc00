"""Lazy scanner turning Lox source text into ``lark.Token`` objects.

Tokens are produced on demand while the parser pulls them, so a syntax
error near the top of a large script never pays for scanning the rest.
Lexical problems become ``ERROR`` tokens instead of exceptions; the parser
reports them and keeps going.
"""

import re
from typing import Any, Iterator

from lark import Token

KEYWORDS = {
    "and": "AND",
    "class": "CLASS",
    "else": "ELSE",
    "false": "FALSE",
    "for": "FOR",
    "fun": "FUN",
    "if": "IF",
    "nil": "NIL",
    "or": "OR",
    "print": "PRINT",
    "return": "RETURN",
    "super": "SUPER",
    "this": "THIS",
    "true": "TRUE",
    "var": "VAR",
    "while": "WHILE",
}

PUNCTUATION = {
    "(": "LEFT_PAREN",
    ")": "RIGHT_PAREN",
    "{": "LEFT_BRACE",
    "}": "RIGHT_BRACE",
    ",": "COMMA",
    ".": "DOT",
    "-": "MINUS",
    "+": "PLUS",
    ";": "SEMICOLON",
    "/": "SLASH",
    "*": "STAR",
    "!": "BANG",
    "=": "EQUAL",
    "<": "LESS",
    ">": "GREATER",
    "!=": "BANG_EQUAL",
    "==": "EQUAL_EQUAL",
    "<=": "LESS_EQUAL",
    ">=": "GREATER_EQUAL",
}

# Order matters: comments before SLASH, two-char operators before one-char.
TOKEN_SPEC = [
    ("NEWLINE", r"\n"),
    ("SKIP", r"[ \t\r]+"),
    ("COMMENT", r"//[^\n]*"),
    ("NUMBER", r"[0-9]+(?:\.[0-9]+)?"),
    ("STRING", r'"[^"]*"'),
    ("UNTERMINATED", r'"[^"]*\Z'),
    ("IDENTIFIER", r"[A-Za-z_][A-Za-z0-9_]*"),
    ("OPERATOR", r"[!=<>]=?"),
    ("PUNCT", r"[(){},.\-+;*/]"),
    ("MISMATCH", r"."),
]

_MASTER = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in TOKEN_SPEC))


class Lexer:
    """Single-use iterator over the tokens of ``source``, ending with ``EOF``."""

    def __init__(self, source: str):
        self.source = source
        self._tokens = self._scan()

    def __iter__(self) -> "Lexer":
        return self

    def __next__(self) -> Token:
        return next(self._tokens)

    def _scan(self) -> Iterator[Token]:
        line = 1
        line_start = 0
        for match in _MASTER.finditer(self.source):
            kind = match.lastgroup
            lexeme = match.group()
            start = match.start()
            column = start - line_start + 1

            if kind == "NEWLINE":
                line += 1
                line_start = match.end()
                continue
            if kind in ("SKIP", "COMMENT"):
                continue

            if kind == "IDENTIFIER":
                kind = KEYWORDS.get(lexeme, "IDENTIFIER")
            elif kind in ("OPERATOR", "PUNCT"):
                kind = PUNCTUATION[lexeme]
            elif kind in ("UNTERMINATED", "MISMATCH"):
                kind = "ERROR"

            yield Token(kind, lexeme, start, line, column)

            newlines = lexeme.count("\n")
            if newlines:
                line += newlines
                line_start = start + lexeme.rindex("\n") + 1

        end = len(self.source)
        yield Token("EOF", "", end, line, end - line_start + 1)


def literal_value(token: Token) -> Any:
    """Python value denoted by a literal token."""
    if token.type == "NUMBER":
        return float(token)
    if token.type == "STRING":
        return str(token)[1:-1]
    if token.type == "TRUE":
        return True
    if token.type == "FALSE":
        return False
    return None


def error_message(token: Token) -> str:
    """Describe the lexical problem carried by an ``ERROR`` token."""
    if token.startswith('"'):
        return "Unterminated string."
    return f"Unexpected character '{token}'."


def tokenize(source: str) -> list:
    return list(Lexer(source))
