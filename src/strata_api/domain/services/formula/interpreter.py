# src/strata_api/domain/services/formula/interpreter.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Tree-walking interpreter for parsed formulas.

Purpose:
    Evaluate the syntax tree produced by :mod:`.parser` with JavaScript-like
    value semantics, which is what existing formulas were authored against:

        * numbers are IEEE floats; division by zero yields ``±inf``/``nan``
          instead of raising,
        * ``||``/``&&`` return one of their operands,
        * ``+`` concatenates when either side is a string.

Layer:
    domain/services/formula

Notes:
    - Name resolution order for identifiers: local declarations, the
      ``vars``/``get``/``Math`` bindings, formula variables (tolerant of case
      and punctuation), then ``0``.
    - The five helpers ``abs``, ``sum``, ``avg``, ``min``, ``max`` are bound
      only in call position, so a variable called ``sum`` still resolves as
      a variable when used bare.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Final

from strata_api.domain.services.formula.parser import (
    Assign,
    Binary,
    Block,
    Call,
    Conditional,
    Empty,
    Expr,
    ExprStmt,
    Identifier,
    If,
    Literal,
    Logical,
    Member,
    Program,
    Return,
    Stmt,
    Unary,
    VarDecl,
)

KeyLookup = Callable[[str], float]

_NON_IDENTIFIER_CHARS: Final = re.compile(r"[^a-zA-Z0-9_]")
_NUMERIC_TEXT: Final = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class FormulaRuntimeError(Exception):
    """Raised when a parsed formula cannot be evaluated."""


def normalize_variable_name(name: str) -> str:
    """Strip characters outside ``[A-Za-z0-9_]`` and upper-case the rest."""
    return _NON_IDENTIFIER_CHARS.sub("", name).upper()


def format_number(value: float) -> str:
    """Render a number the way formula text expects it.

    Integral values print without a fractional part; everything else uses
    the shortest round-tripping representation.
    """
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


# ---------------------------------------------------------------------------
# Runtime values
# ---------------------------------------------------------------------------


class VarsBag:
    """The ``vars`` object exposed to extended formulas.

    Every variable is reachable through its original code, its lower-cased
    code, and its normalized code. Missing names read as ``0``.
    """

    __slots__ = ("_values",)

    def __init__(self, variables: Mapping[str, float]) -> None:
        """Index ``variables`` under all of their aliases."""
        self._values: dict[str, Any] = {}
        for code, raw in variables.items():
            number = float(raw) if _is_number(raw) and math.isfinite(raw) else 0.0
            self._values[code] = number
            self._values[normalize_variable_name(code)] = number
            self._values[code.lower()] = number

    def get(self, name: str) -> Any:
        """Return the value bound to ``name`` (or an alias), else ``0``."""
        if name in self._values:
            return self._values[name]
        return self._values.get(normalize_variable_name(name), 0.0)

    def set(self, name: str, value: Any) -> None:
        """Bind ``name`` for the rest of the evaluation."""
        self._values[name] = value


class _Function:
    __slots__ = ("name", "fn")

    def __init__(self, name: str, fn: Callable[..., Any]) -> None:
        self.name = name
        self.fn = fn


class _Namespace:
    __slots__ = ("name", "members")

    def __init__(self, name: str, members: Mapping[str, Any]) -> None:
        self.name = name
        self.members = dict(members)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Convert a runtime value to a float (``nan`` when not numeric)."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _NUMERIC_TEXT.fullmatch(text):
            return float(text)
        return math.nan
    return math.nan


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "undefined"
    if isinstance(value, (int, float)):
        number = float(value)
        if math.isnan(number):
            return "NaN"
        if math.isinf(number):
            return "Infinity" if number > 0 else "-Infinity"
        return format_number(number)
    return "[object]"


def truthy(value: Any) -> bool:
    """Return the JavaScript truthiness of ``value``."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _remainder(left: float, right: float) -> float:
    if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def _power(left: float, right: float) -> float:
    if math.isnan(right):
        return math.nan
    try:
        return math.pow(left, right)
    except OverflowError:
        negative = left < 0 and right.is_integer() and int(right) % 2 == 1
        return -math.inf if negative else math.inf
    except ValueError:
        return math.nan


def _multiply(left: float, right: float) -> float:
    return left * right


def _subtract(left: float, right: float) -> float:
    return left - right


_NUMERIC_OPS: Final[dict[str, Callable[[float, float], float]]] = {
    "-": _subtract,
    "*": _multiply,
    "/": _divide,
    "%": _remainder,
    "**": _power,
}


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return _to_text(left) + _to_text(right)
    return to_number(left) + to_number(right)


def _strict_equals(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    if type(left) is not type(right):
        return False
    return bool(left == right)


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, (str, int, float)) and isinstance(right, (str, int, float)):
        return to_number(left) == to_number(right)
    return left is right


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        a: Any = left
        b: Any = right
    else:
        a = to_number(left)
        b = to_number(right)
    if op == "<":
        return bool(a < b)
    if op == ">":
        return bool(a > b)
    if op == "<=":
        return bool(a <= b)
    return bool(a >= b)


def apply_binary(op: str, left: Any, right: Any) -> Any:
    """Apply a binary operator with JavaScript-like coercion."""
    if op == "+":
        return _add(left, right)
    if op in _NUMERIC_OPS:
        return _NUMERIC_OPS[op](to_number(left), to_number(right))
    if op == "===":
        return _strict_equals(left, right)
    if op == "!==":
        return not _strict_equals(left, right)
    if op == "==":
        return _loose_equals(left, right)
    if op == "!=":
        return not _loose_equals(left, right)
    if op in ("<", ">", "<=", ">="):
        return _compare(op, left, right)
    raise FormulaRuntimeError(f"Unsupported operator {op!r}")


# ---------------------------------------------------------------------------
# Built-ins
# ---------------------------------------------------------------------------


def _numbers(args: Sequence[Any]) -> list[float]:
    return [to_number(a) for a in args]


def _builtin_abs(*args: Any) -> float:
    return abs(to_number(args[0])) if args else math.nan


def _builtin_sum(*args: Any) -> float:
    return math.fsum(_numbers(args)) if args else 0.0


def _builtin_avg(*args: Any) -> float:
    if not args:
        return 0.0
    return math.fsum(_numbers(args)) / len(args)


def _builtin_min(*args: Any) -> float:
    values = _numbers(args)
    if any(math.isnan(v) for v in values):
        return math.nan
    return min(values, default=math.inf)


def _builtin_max(*args: Any) -> float:
    values = _numbers(args)
    if any(math.isnan(v) for v in values):
        return math.nan
    return max(values, default=-math.inf)


def _unary_math(fn: Callable[[float], float]) -> Callable[..., float]:
    def call(*args: Any) -> float:
        x = to_number(args[0]) if args else math.nan
        if math.isnan(x):
            return math.nan
        try:
            return fn(x)
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf

    return call


def _js_round(x: float) -> float:
    if math.isinf(x):
        return x
    return float(math.floor(x + 0.5))


def _js_truncate(x: float) -> float:
    return x if math.isinf(x) else float(math.trunc(x))


def _js_floor(x: float) -> float:
    return x if math.isinf(x) else float(math.floor(x))


def _js_ceil(x: float) -> float:
    return x if math.isinf(x) else float(math.ceil(x))


def _js_log(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log(x)


def _js_sign(x: float) -> float:
    if x == 0:
        return x
    return math.copysign(1.0, x)


def _js_pow(*args: Any) -> float:
    if len(args) < 2:
        return math.nan
    return _power(to_number(args[0]), to_number(args[1]))


HELPERS: Final[dict[str, Callable[..., float]]] = {
    "abs": _builtin_abs,
    "sum": _builtin_sum,
    "avg": _builtin_avg,
    "min": _builtin_min,
    "max": _builtin_max,
}

_MATH: Final = _Namespace(
    "Math",
    {
        "abs": _Function("abs", _builtin_abs),
        "min": _Function("min", _builtin_min),
        "max": _Function("max", _builtin_max),
        "round": _Function("round", _unary_math(_js_round)),
        "floor": _Function("floor", _unary_math(_js_floor)),
        "ceil": _Function("ceil", _unary_math(_js_ceil)),
        "trunc": _Function("trunc", _unary_math(_js_truncate)),
        "sign": _Function("sign", _unary_math(_js_sign)),
        "sqrt": _Function("sqrt", _unary_math(math.sqrt)),
        "exp": _Function("exp", _unary_math(math.exp)),
        "log": _Function("log", _unary_math(_js_log)),
        "pow": _Function("pow", _js_pow),
        "PI": math.pi,
        "E": math.e,
    },
)


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


class _Scope:
    __slots__ = ("_values", "_constants", "_lexical", "parent")

    def __init__(self, parent: _Scope | None = None) -> None:
        self._values: dict[str, Any] = {}
        self._constants: set[str] = set()
        self._lexical: set[str] = set()
        self.parent = parent

    @property
    def root(self) -> _Scope:
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def declare(self, name: str, value: Any, *, kind: str) -> None:
        if name in self._lexical or (kind != "var" and name in self._values):
            raise FormulaRuntimeError(f"Identifier {name!r} has already been declared")
        self._values[name] = value
        if kind != "var":
            self._lexical.add(name)
        if kind == "const":
            self._constants.add(name)

    def find(self, name: str) -> _Scope | None:
        scope: _Scope | None = self
        while scope is not None:
            if name in scope._values:
                return scope
            scope = scope.parent
        return None

    def read(self, name: str) -> Any:
        return self._values[name]

    def write(self, name: str, value: Any) -> None:
        if name in self._constants:
            raise FormulaRuntimeError(f"Assignment to constant {name!r}")
        self._values[name] = value


class _ReturnSignal:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------


class Interpreter:
    """Evaluate parsed formulas against variables and a ``get`` callback."""

    def __init__(
        self,
        variables: Mapping[str, float] | None = None,
        lookup: KeyLookup | None = None,
    ) -> None:
        """Bind the evaluation inputs.

        Args:
            variables: Variable values keyed by variable code.
            lookup: Callback resolving ``get("KEY")`` to another entity's value.
        """
        self._vars = VarsBag(variables or {})
        self._lookup = lookup
        self._get = _Function("get", self._call_get)

    def _call_get(self, *args: Any) -> float:
        if self._lookup is None:
            return 0.0
        key = _to_text(args[0]) if args else ""
        return self._lookup(key)

    # -- programs -------------------------------------------------------

    def run(self, program: Program) -> Any:
        """Execute ``program`` and return the value of its ``return``."""
        scope = _Scope()
        signal = self._exec_all(program.body, scope)
        return signal.value if signal is not None else None

    def evaluate(self, expr: Expr) -> Any:
        """Evaluate a standalone expression."""
        return self._eval(expr, _Scope())

    def _exec_all(self, body: Sequence[Stmt], scope: _Scope) -> _ReturnSignal | None:
        for stmt in body:
            signal = self._exec(stmt, scope)
            if signal is not None:
                return signal
        return None

    def _exec(self, stmt: Stmt, scope: _Scope) -> _ReturnSignal | None:
        if isinstance(stmt, ExprStmt):
            self._eval(stmt.expr, scope)
            return None
        if isinstance(stmt, Return):
            return _ReturnSignal(None if stmt.value is None else self._eval(stmt.value, scope))
        if isinstance(stmt, VarDecl):
            for name, init in stmt.declarations:
                value = None if init is None else self._eval(init, scope)
                target = scope.root if stmt.kind == "var" else scope
                target.declare(name, value, kind=stmt.kind)
            return None
        if isinstance(stmt, If):
            if truthy(self._eval(stmt.test, scope)):
                return self._exec(stmt.consequent, scope)
            if stmt.alternate is not None:
                return self._exec(stmt.alternate, scope)
            return None
        if isinstance(stmt, Block):
            return self._exec_all(stmt.body, _Scope(scope))
        if isinstance(stmt, Empty):
            return None
        raise FormulaRuntimeError(f"Unsupported statement {type(stmt).__name__}")

    # -- expressions ----------------------------------------------------

    def _eval(self, expr: Expr, scope: _Scope) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Identifier):
            return self._resolve(expr.name, scope)
        if isinstance(expr, Binary):
            left = self._eval(expr.left, scope)
            return apply_binary(expr.op, left, self._eval(expr.right, scope))
        if isinstance(expr, Logical):
            left = self._eval(expr.left, scope)
            if expr.op == "||":
                return left if truthy(left) else self._eval(expr.right, scope)
            return self._eval(expr.right, scope) if truthy(left) else left
        if isinstance(expr, Unary):
            operand = self._eval(expr.operand, scope)
            if expr.op == "!":
                return not truthy(operand)
            number = to_number(operand)
            return -number if expr.op == "-" else number
        if isinstance(expr, Conditional):
            branch = expr.consequent if truthy(self._eval(expr.test, scope)) else expr.alternate
            return self._eval(branch, scope)
        if isinstance(expr, Member):
            return self._member(expr, scope)
        if isinstance(expr, Call):
            return self._call(expr, scope)
        if isinstance(expr, Assign):
            return self._assign(expr, scope)
        raise FormulaRuntimeError(f"Unsupported expression {type(expr).__name__}")

    def _resolve(self, name: str, scope: _Scope) -> Any:
        owner = scope.find(name)
        if owner is not None:
            return owner.read(name)
        if name == "vars":
            return self._vars
        if name == "get":
            return self._get
        if name == "Math":
            return _MATH
        return self._vars.get(name)

    def _property_name(self, expr: Member, scope: _Scope) -> str:
        if not expr.computed and isinstance(expr.prop, Literal):
            return str(expr.prop.value)
        return _to_text(self._eval(expr.prop, scope))

    def _member(self, expr: Member, scope: _Scope) -> Any:
        target = self._eval(expr.target, scope)
        name = self._property_name(expr, scope)
        if isinstance(target, VarsBag):
            return target.get(name)
        if isinstance(target, _Namespace):
            return target.members.get(name)
        if target is None:
            raise FormulaRuntimeError(f"Cannot read property {name!r} of undefined")
        if isinstance(target, str) and name == "length":
            return float(len(target))
        return None

    def _call(self, expr: Call, scope: _Scope) -> Any:
        callee = expr.callee
        if (
            isinstance(callee, Identifier)
            and callee.name in HELPERS
            and scope.find(callee.name) is None
        ):
            fn: Callable[..., Any] = HELPERS[callee.name]
        else:
            target = self._eval(callee, scope)
            if not isinstance(target, _Function):
                raise FormulaRuntimeError("Value is not a function")
            fn = target.fn
        args = [self._eval(arg, scope) for arg in expr.args]
        return fn(*args)

    def _assign(self, expr: Assign, scope: _Scope) -> Any:
        target = expr.target
        if isinstance(target, Identifier):
            owner = scope.find(target.name)
            if expr.op == "=":
                value = self._eval(expr.value, scope)
            else:
                current = self._resolve(target.name, scope)
                value = apply_binary(expr.op[:-1], current, self._eval(expr.value, scope))
            if owner is None:
                # Undeclared names behave like formula parameters.
                scope.root.declare(target.name, value, kind="var")
            else:
                owner.write(target.name, value)
            return value

        holder = self._eval(target.target, scope)
        name = self._property_name(target, scope)
        if not isinstance(holder, VarsBag):
            raise FormulaRuntimeError(f"Cannot assign property {name!r}")
        if expr.op == "=":
            value = self._eval(expr.value, scope)
        else:
            value = apply_binary(expr.op[:-1], holder.get(name), self._eval(expr.value, scope))
        holder.set(name, value)
        return value


__all__ = [
    "HELPERS",
    "FormulaRuntimeError",
    "Interpreter",
    "KeyLookup",
    "VarsBag",
    "apply_binary",
    "format_number",
    "normalize_variable_name",
    "to_number",
    "truthy",
]
