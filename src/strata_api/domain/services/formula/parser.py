# src/strata_api/domain/services/formula/parser.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Recursive-descent parser for formula text.

Purpose:
    Build a small immutable syntax tree from formula tokens. The grammar is a
    JavaScript-flavoured subset: declarations, assignment, ``return``,
    ``if``/``else``, blocks and expressions with the usual precedence.
    There are no loops or function definitions, so every program terminates.

Layer:
    domain/services/formula

Precedence (lowest to highest):
    assignment, ternary, ``||``, ``&&``, equality, relational, additive,
    multiplicative, ``**`` (right associative), unary, member/call.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final, TypeAlias

from strata_api.domain.services.formula.lexer import (
    FormulaSyntaxError,
    Token,
    TokenKind,
    tokenize,
)

# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Literal:
    value: float | str | bool | None


@dataclass(frozen=True, slots=True)
class Identifier:
    name: str


@dataclass(frozen=True, slots=True)
class Unary:
    op: str
    operand: Expr


@dataclass(frozen=True, slots=True)
class Binary:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class Logical:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class Conditional:
    test: Expr
    consequent: Expr
    alternate: Expr


@dataclass(frozen=True, slots=True)
class Member:
    target: Expr
    prop: Expr
    computed: bool


@dataclass(frozen=True, slots=True)
class Call:
    callee: Expr
    args: tuple[Expr, ...]


@dataclass(frozen=True, slots=True)
class Assign:
    op: str
    target: Identifier | Member
    value: Expr


Expr: TypeAlias = (
    Literal | Identifier | Unary | Binary | Logical | Conditional | Member | Call | Assign
)

# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VarDecl:
    kind: str
    declarations: tuple[tuple[str, Expr | None], ...]


@dataclass(frozen=True, slots=True)
class ExprStmt:
    expr: Expr


@dataclass(frozen=True, slots=True)
class Return:
    value: Expr | None


@dataclass(frozen=True, slots=True)
class If:
    test: Expr
    consequent: Stmt
    alternate: Stmt | None


@dataclass(frozen=True, slots=True)
class Block:
    body: tuple[Stmt, ...]


@dataclass(frozen=True, slots=True)
class Empty:
    pass


Stmt: TypeAlias = VarDecl | ExprStmt | Return | If | Block | Empty


@dataclass(frozen=True, slots=True)
class Program:
    body: tuple[Stmt, ...]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

_KEYWORDS: Final[frozenset[str]] = frozenset(
    {"const", "let", "var", "return", "if", "else", "true", "false", "null", "undefined"}
)
_NAMED_LITERALS: Final[dict[str, float | bool | None]] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}
_GLOBAL_NUMBERS: Final[dict[str, float]] = {
    "NaN": float("nan"),
    "Infinity": float("inf"),
}
_ASSIGN_OPS: Final[frozenset[str]] = frozenset({"=", "+=", "-=", "*=", "/=", "%=", "**="})
_EQUALITY_OPS: Final[frozenset[str]] = frozenset({"==", "!=", "===", "!=="})
_RELATIONAL_OPS: Final[frozenset[str]] = frozenset({"<", ">", "<=", ">="})
_UNARY_OPS: Final[frozenset[str]] = frozenset({"-", "+", "!"})


class _Parser:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    # -- token helpers --------------------------------------------------

    @property
    def _current(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenKind.EOF:
            self._index += 1
        return token

    def _check_op(self, *ops: str) -> bool:
        token = self._current
        return token.kind is TokenKind.OPERATOR and token.text in ops

    def _check_keyword(self, word: str) -> bool:
        token = self._current
        return token.kind is TokenKind.NAME and token.text == word

    def _match_op(self, *ops: str) -> Token | None:
        if self._check_op(*ops):
            return self._advance()
        return None

    def _expect_op(self, op: str) -> Token:
        if not self._check_op(op):
            raise self._error(f"Expected {op!r}")
        return self._advance()

    def _error(self, message: str) -> FormulaSyntaxError:
        token = self._current
        found = token.text or "end of formula"
        return FormulaSyntaxError(f"{message}, found {found!r}", token.position)

    def _end_statement(self) -> None:
        # Semicolons are optional before '}', at the end, or after a line break.
        if self._match_op(";"):
            return
        token = self._current
        if token.kind is TokenKind.EOF or self._check_op("}") or token.newline_before:
            return
        raise self._error("Expected end of statement")

    # -- statements -----------------------------------------------------

    def parse_program(self) -> Program:
        body: list[Stmt] = []
        while self._current.kind is not TokenKind.EOF:
            body.append(self._statement())
        return Program(body=tuple(body))

    def _statement(self) -> Stmt:
        if self._match_op(";"):
            return Empty()
        if self._match_op("{"):
            body: list[Stmt] = []
            while not self._check_op("}"):
                if self._current.kind is TokenKind.EOF:
                    raise self._error("Expected '}'")
                body.append(self._statement())
            self._advance()
            return Block(body=tuple(body))
        if self._check_keyword("const") or self._check_keyword("let") or self._check_keyword("var"):
            return self._declaration()
        if self._check_keyword("return"):
            self._advance()
            token = self._current
            if (
                token.kind is TokenKind.EOF
                or token.newline_before
                or self._check_op(";", "}")
            ):
                self._end_statement()
                return Return(value=None)
            value = self._expression()
            self._end_statement()
            return Return(value=value)
        if self._check_keyword("if"):
            self._advance()
            self._expect_op("(")
            test = self._expression()
            self._expect_op(")")
            consequent = self._statement()
            alternate: Stmt | None = None
            if self._check_keyword("else"):
                self._advance()
                alternate = self._statement()
            return If(test=test, consequent=consequent, alternate=alternate)

        expr = self._expression()
        self._end_statement()
        return ExprStmt(expr=expr)

    def _declaration(self) -> VarDecl:
        kind = self._advance().text
        declarations: list[tuple[str, Expr | None]] = []
        while True:
            name = self._binding_name()
            init: Expr | None = None
            if self._match_op("="):
                init = self._assignment()
            elif kind == "const":
                raise self._error("Missing initializer in const declaration")
            declarations.append((name, init))
            if not self._match_op(","):
                break
        self._end_statement()
        return VarDecl(kind=kind, declarations=tuple(declarations))

    def _binding_name(self) -> str:
        token = self._current
        if token.kind is not TokenKind.NAME or token.text in _KEYWORDS:
            raise self._error("Expected identifier")
        self._advance()
        return token.text

    # -- expressions ----------------------------------------------------

    def _expression(self) -> Expr:
        return self._assignment()

    def _assignment(self) -> Expr:
        left = self._conditional()
        if self._check_op(*_ASSIGN_OPS):
            if not isinstance(left, (Identifier, Member)):
                raise self._error("Invalid assignment target")
            op = self._advance().text
            value = self._assignment()
            return Assign(op=op, target=left, value=value)
        return left

    def _conditional(self) -> Expr:
        test = self._logical_or()
        if self._match_op("?"):
            consequent = self._assignment()
            self._expect_op(":")
            alternate = self._assignment()
            return Conditional(test=test, consequent=consequent, alternate=alternate)
        return test

    def _logical_or(self) -> Expr:
        left = self._logical_and()
        while self._match_op("||"):
            left = Logical(op="||", left=left, right=self._logical_and())
        return left

    def _logical_and(self) -> Expr:
        left = self._equality()
        while self._match_op("&&"):
            left = Logical(op="&&", left=left, right=self._equality())
        return left

    def _equality(self) -> Expr:
        left = self._relational()
        while (token := self._match_op(*_EQUALITY_OPS)) is not None:
            left = Binary(op=token.text, left=left, right=self._relational())
        return left

    def _relational(self) -> Expr:
        left = self._additive()
        while (token := self._match_op(*_RELATIONAL_OPS)) is not None:
            left = Binary(op=token.text, left=left, right=self._additive())
        return left

    def _additive(self) -> Expr:
        left = self._multiplicative()
        while (token := self._match_op("+", "-")) is not None:
            left = Binary(op=token.text, left=left, right=self._multiplicative())
        return left

    def _multiplicative(self) -> Expr:
        left = self._exponent()
        while (token := self._match_op("*", "/", "%")) is not None:
            left = Binary(op=token.text, left=left, right=self._exponent())
        return left

    def _exponent(self) -> Expr:
        if self._check_op(*_UNARY_OPS):
            node = self._unary()
            if self._check_op("**"):
                raise self._error("Unary operator before '**' needs parentheses")
            return node
        base = self._postfix()
        if self._match_op("**"):
            return Binary(op="**", left=base, right=self._exponent())
        return base

    def _unary(self) -> Expr:
        op = self._advance().text
        operand = self._unary() if self._check_op(*_UNARY_OPS) else self._postfix()
        return Unary(op=op, operand=operand)

    def _postfix(self) -> Expr:
        expr = self._primary()
        while True:
            if self._match_op("."):
                token = self._current
                if token.kind is not TokenKind.NAME:
                    raise self._error("Expected property name")
                self._advance()
                expr = Member(target=expr, prop=Literal(token.text), computed=False)
            elif self._match_op("["):
                prop = self._expression()
                self._expect_op("]")
                expr = Member(target=expr, prop=prop, computed=True)
            elif self._match_op("("):
                args: list[Expr] = []
                if not self._check_op(")"):
                    while True:
                        args.append(self._assignment())
                        if not self._match_op(","):
                            break
                self._expect_op(")")
                expr = Call(callee=expr, args=tuple(args))
            else:
                return expr

    def _primary(self) -> Expr:
        token = self._current
        if token.kind is TokenKind.NUMBER:
            self._advance()
            return Literal(float(token.text))
        if token.kind is TokenKind.STRING:
            self._advance()
            return Literal(token.text)
        if token.kind is TokenKind.NAME:
            if token.text in _NAMED_LITERALS:
                self._advance()
                return Literal(_NAMED_LITERALS[token.text])
            if token.text in _GLOBAL_NUMBERS:
                self._advance()
                return Literal(_GLOBAL_NUMBERS[token.text])
            if token.text in _KEYWORDS:
                raise self._error("Unexpected keyword")
            self._advance()
            return Identifier(token.text)
        if self._match_op("("):
            expr = self._expression()
            self._expect_op(")")
            return expr
        raise self._error("Unexpected token")


def parse_program(source: str) -> Program:
    """Parse a statement sequence.

    Raises:
        FormulaSyntaxError: If ``source`` is not a valid program.
    """
    return _Parser(tokenize(source)).parse_program()


def parse_expression(source: str) -> Expr:
    """Parse a single expression spanning the whole of ``source``.

    Raises:
        FormulaSyntaxError: If ``source`` is not exactly one expression.
    """
    parser = _Parser(tokenize(source))
    expr = parser._expression()
    if parser._current.kind is not TokenKind.EOF:
        raise parser._error("Unexpected trailing input")
    return expr


__all__ = [
    "Assign",
    "Binary",
    "Block",
    "Call",
    "Conditional",
    "Empty",
    "Expr",
    "ExprStmt",
    "Identifier",
    "If",
    "Literal",
    "Logical",
    "Member",
    "Program",
    "Return",
    "Stmt",
    "Unary",
    "VarDecl",
    "parse_expression",
    "parse_program",
]
