# src/strata_api/domain/services/formula/arithmetic.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Arithmetic formula dialect.

Purpose:
    Evaluate legacy formulas such as ``(REVENUE - COST) / REVENUE * 100`` by
    substituting every identifier token with its mapped value (or ``0``) and
    evaluating the resulting purely numeric expression.

Layer:
    domain/services/formula

Notes:
    - Tokens are matched exactly against the value map; absent tokens read
      as ``0``.
    - Mapped values are substituted as-is: ``nan`` and ``inf`` render as
      text and are then rejected by the character whitelist.
    - After substitution only digits, ``+ - * / ( ) .`` and whitespace are
      allowed.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.services.formula.interpreter import Interpreter, format_number
from strata_api.domain.services.formula.outcome import FormulaOutcome, finite_number_outcome
from strata_api.domain.services.formula.parser import parse_expression

_IDENTIFIER_TOKEN: Final = re.compile(r"\b[A-Za-z_][A-Za-z0-9_]*\b")
_ALLOWED_TEXT: Final = re.compile(r"[0-9+\-*/().\s]+")


def substitute_identifiers(formula: str, values: Mapping[str, float]) -> str:
    """Replace identifier tokens in ``formula`` with their numeric values."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token in values:
            value = values[token]
            return format_number(float(value)) if value is not None else "0"
        return "0"

    return _IDENTIFIER_TOKEN.sub(_replace, formula)


def evaluate_arithmetic(formula: str, values: Mapping[str, float]) -> FormulaOutcome:
    """Evaluate an arithmetic-dialect formula.

    Args:
        formula: Formula text.
        values: Values keyed by identifier token.

    Returns:
        FormulaOutcome with the finite result, or a failure code among
        ``emptyFormula``, ``unsupportedFormulaCharacters``,
        ``invalidFormulaResult`` and ``failedToEvaluateFormula``.
    """
    trimmed = (formula or "").strip()
    if not trimmed:
        return FormulaOutcome.failure(ErrorCode.EMPTY_FORMULA)

    replaced = substitute_identifiers(trimmed, values)
    if not _ALLOWED_TEXT.fullmatch(replaced):
        return FormulaOutcome.failure(ErrorCode.UNSUPPORTED_FORMULA_CHARACTERS)

    try:
        result = Interpreter().evaluate(parse_expression(replaced))
    except Exception:  # noqa: BLE001 - any evaluation failure maps to one code
        return FormulaOutcome.failure(ErrorCode.FAILED_TO_EVALUATE_FORMULA)

    return finite_number_outcome(result)


__all__ = ["evaluate_arithmetic", "substitute_identifiers"]
