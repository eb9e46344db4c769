# src/strata_api/domain/services/formula/extended.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Extended formula dialect.

Purpose:
    Evaluate expression/statement formulas with named variables, the
    ``vars`` object, cross-entity ``get("KEY")`` references and the
    ``abs``/``sum``/``avg``/``min``/``max`` helpers, e.g.::

        const margin = get("REVENUE") - get("COST");
        return get("REVENUE") ? margin / get("REVENUE") * 100 : 0;

Layer:
    domain/services/formula

Notes:
    - Text without a ``return`` keyword is treated as a single expression.
    - The evaluator does not fetch anything itself; ``get`` delegates to the
      caller-supplied lookup.
    - Any failure while parsing or running, including one raised by the
      lookup callback, yields ``failedToEvaluateFormula``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.services.formula.interpreter import Interpreter, KeyLookup
from strata_api.domain.services.formula.outcome import FormulaOutcome, finite_number_outcome
from strata_api.domain.services.formula.parser import parse_program

_RETURN_KEYWORD: Final = re.compile(r"\breturn\b")


def wrap_body(formula: str) -> str:
    """Return ``formula`` as a statement body, adding ``return`` if absent."""
    if _RETURN_KEYWORD.search(formula):
        return formula
    return f"return ({formula});"


def evaluate_extended(
    formula: str,
    variables: Mapping[str, float],
    lookup: KeyLookup | None = None,
) -> FormulaOutcome:
    """Evaluate an extended-dialect formula.

    Args:
        formula: Formula text (expression or statement sequence).
        variables: Variable values keyed by variable code.
        lookup: Resolves ``get("KEY")``; missing lookup reads as ``0``.

    Returns:
        FormulaOutcome carrying a finite number or a failure code.
    """
    trimmed = (formula or "").strip()
    if not trimmed:
        return FormulaOutcome.failure(ErrorCode.EMPTY_FORMULA)

    try:
        program = parse_program(wrap_body(trimmed))
        result = Interpreter(variables, lookup).run(program)
    except Exception:  # noqa: BLE001 - uniform failure for parse/runtime/lookup errors
        return FormulaOutcome.failure(ErrorCode.FAILED_TO_EVALUATE_FORMULA)

    return finite_number_outcome(result)


__all__ = ["evaluate_extended", "wrap_body"]
