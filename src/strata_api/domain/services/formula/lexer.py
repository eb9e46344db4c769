# src/strata_api/domain/services/formula/lexer.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Tokenizer for the formula languages.

Purpose:
    Split formula text into number, string, name and operator tokens. Both
    dialects share this lexer; the arithmetic dialect only ever produces
    numbers and arithmetic operators after identifier substitution.

Layer:
    domain/services/formula

Notes:
    - ``//`` line comments and ``/* */`` block comments are skipped.
    - Each token records whether a line break preceded it so the parser can
      apply automatic statement termination.
    - ``++`` and ``--`` are lexed as single tokens and never accepted by the
      parser, so ``2--5`` is a syntax error rather than ``2 - (-5)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final


class FormulaSyntaxError(ValueError):
    """Raised when formula text cannot be tokenized or parsed."""

    def __init__(self, message: str, position: int) -> None:
        """Initialize with the offending character offset."""
        super().__init__(f"{message} at offset {position}")
        self.position = position


class TokenKind(str, Enum):
    """Lexical category of a token."""

    NUMBER = "NUMBER"
    STRING = "STRING"
    NAME = "NAME"
    OPERATOR = "OPERATOR"
    EOF = "EOF"


@dataclass(frozen=True, slots=True)
class Token:
    """Single lexical token."""

    kind: TokenKind
    text: str
    position: int
    newline_before: bool = False


# Longest operators first so that prefix matching picks the full operator.
_OPERATORS: Final[tuple[str, ...]] = (
    "===",
    "!==",
    "**=",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "**",
    "++",
    "--",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "+",
    "-",
    "*",
    "/",
    "%",
    "<",
    ">",
    "!",
    "=",
    "?",
    ":",
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
    ",",
    ";",
    ".",
)

_NUMBER_RE: Final = re.compile(r"(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_NAME_RE: Final = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_ESCAPES: Final[dict[str, str]] = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def _read_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    chars: list[str] = []
    pos = start + 1
    while pos < len(source):
        ch = source[pos]
        if ch == quote:
            return "".join(chars), pos + 1
        if ch == "\n":
            break
        if ch == "\\" and pos + 1 < len(source):
            nxt = source[pos + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            pos += 2
            continue
        chars.append(ch)
        pos += 1
    raise FormulaSyntaxError("Unterminated string literal", start)


def tokenize(source: str) -> list[Token]:
    """Return the tokens of ``source`` terminated by an EOF token.

    Raises:
        FormulaSyntaxError: On unknown characters or unterminated literals.
    """
    tokens: list[Token] = []
    pos = 0
    length = len(source)
    newline = False

    while pos < length:
        ch = source[pos]

        if ch.isspace():
            newline = newline or ch == "\n"
            pos += 1
            continue

        if source.startswith("//", pos):
            end = source.find("\n", pos)
            pos = length if end == -1 else end
            continue

        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end == -1:
                raise FormulaSyntaxError("Unterminated comment", pos)
            newline = newline or "\n" in source[pos:end]
            pos = end + 2
            continue

        match = _NUMBER_RE.match(source, pos)
        if match is not None:
            tokens.append(Token(TokenKind.NUMBER, match.group(), pos, newline))
            pos = match.end()
            newline = False
            continue

        match = _NAME_RE.match(source, pos)
        if match is not None:
            tokens.append(Token(TokenKind.NAME, match.group(), pos, newline))
            pos = match.end()
            newline = False
            continue

        if ch in ("'", '"'):
            text, pos_after = _read_string(source, pos)
            tokens.append(Token(TokenKind.STRING, text, pos, newline))
            pos = pos_after
            newline = False
            continue

        for op in _OPERATORS:
            if source.startswith(op, pos):
                tokens.append(Token(TokenKind.OPERATOR, op, pos, newline))
                pos += len(op)
                newline = False
                break
        else:
            raise FormulaSyntaxError(f"Unexpected character {ch!r}", pos)

    tokens.append(Token(TokenKind.EOF, "", length, newline))
    return tokens


__all__ = ["FormulaSyntaxError", "Token", "TokenKind", "tokenize"]
