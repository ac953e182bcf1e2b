from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


class PPPError(Exception):
    """Base class for interpreter errors."""

    def __init__(self, message: str, *, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


class PPPLexError(PPPError):
    """Raised when the source text cannot be split into tokens."""


class PPPSyntaxError(PPPError):
    """Raised when the token stream does not form a valid statement."""


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int


KEYWORDS = {
    "number",
    "write",
    "repeat",
    "times",
    "newline",
    "and",
}

# Structural tokens carry a fixed label rather than their source character.
SYMBOLS = {
    ";": ("SEMI", "EndOfLine"),
    "{": ("LBRACE", "OpenBlock"),
    "}": ("RBRACE", "CloseBlock"),
}

OPERATORS = {":=", "+=", "-="}

TOKEN_TYPES = (
    "KEYWORD",
    "IDENT",
    "OPERATOR",
    "NUMBER",
    "STRING",
    "LBRACE",
    "RBRACE",
    "SEMI",
    "UNKNOWN",
)

DIGITS = "0123456789"
LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
WHITESPACE = " \t\r\n\v\f"


def split_lines(text: str) -> List[str]:
    """Split on '\\n' only; other control characters stay inside the line."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class Lexer:
    def __init__(self, text: str, filename: str, *, max_token_length: Optional[int] = None) -> None:
        if max_token_length is not None and max_token_length < 1:
            raise ValueError("max_token_length must be >= 1")
        self.text = text
        self.filename = filename
        self.max_token_length = max_token_length

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        for line_number, line in enumerate(split_lines(self.text), start=1):
            tokens.extend(self.tokenize_line(line, line_number))
        return tokens

    def tokenize_line(self, line: str, line_number: int) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        make = self._make_token
        n = len(line)
        i = 0

        while i < n:
            ch = line[i]
            if ch in WHITESPACE:
                i += 1
                continue
            column = i + 1
            if ch in SYMBOLS:
                token_type, label = SYMBOLS[ch]
                tokens_append(Token(token_type, label, line_number, column))
                i += 1
                continue
            if ch == '"':
                end = line.find('"', i + 1)
                if end == -1:
                    raise PPPLexError(
                        f"Unterminated string at {self.filename}:{line_number}:{column}",
                        line=line_number,
                    )
                tokens_append(make("STRING", line[i + 1:end], line_number, column))
                i = end + 1
                continue
            # Compound operators take priority over a leading '-' on numbers.
            pair = line[i:i + 2]
            if pair in OPERATORS:
                tokens_append(Token("OPERATOR", pair, line_number, column))
                i += 2
                continue
            if ch == "-" and i + 1 < n and line[i + 1] in DIGITS:
                end = self._scan(line, i + 1, DIGITS)
                tokens_append(Token("NUMBER", line[i:end], line_number, column))
                i = end
                continue
            if ch in DIGITS:
                end = self._scan(line, i, DIGITS)
                tokens_append(Token("NUMBER", line[i:end], line_number, column))
                i = end
                continue
            if ch in LETTERS:
                end = self._scan(line, i, LETTERS + DIGITS + "_")
                word = line[i:end]
                token_type = "KEYWORD" if word in KEYWORDS else "IDENT"
                tokens_append(make(token_type, word, line_number, column))
                i = end
                continue
            raise PPPLexError(
                f"Unknown character '{ch}' at {self.filename}:{line_number}:{column}",
                line=line_number,
            )
        return tokens

    @staticmethod
    def _scan(line: str, start: int, allowed: str) -> int:
        end = start
        n = len(line)
        while end < n and line[end] in allowed:
            end += 1
        return end

    def _make_token(self, token_type: str, value: str, line: int, column: int) -> Token:
        limit = self.max_token_length
        if limit is not None and len(value) > limit:
            value = value[:limit]
        return Token(token_type, value, line, column)
