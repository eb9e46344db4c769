# src/strata_api/domain/services/formula/__init__.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Formula evaluation (domain services).

Purpose:
    Detect the dialect of a formula string and dispatch to the arithmetic or
    extended evaluator. Both evaluators are pure and never raise; failures
    come back as :class:`FormulaOutcome` values with an error code.

Exports:
    - evaluate_formula / detect_dialect
    - evaluate_arithmetic / evaluate_extended
    - extract_keys
    - FormulaDialect / FormulaOutcome
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

from .arithmetic import evaluate_arithmetic
from .dependencies import depends_on, extract_keys
from .extended import evaluate_extended
from .interpreter import KeyLookup
from .outcome import FormulaDialect, FormulaOutcome

_EXTENDED_MARKERS: Final = re.compile(r"\breturn\b|\bconst\b|\blet\b|\bvars\.|\bget\s*\(")


def detect_dialect(formula: str) -> FormulaDialect:
    """Return EXTENDED when the text uses any extended-dialect marker."""
    if _EXTENDED_MARKERS.search(formula or ""):
        return FormulaDialect.EXTENDED
    return FormulaDialect.ARITHMETIC


def evaluate_formula(
    formula: str,
    variables: Mapping[str, float],
    lookup: KeyLookup | None = None,
) -> FormulaOutcome:
    """Evaluate ``formula`` in whichever dialect it is written in.

    Args:
        formula: Formula text.
        variables: Variable values keyed by variable code.
        lookup: Resolves ``get("KEY")`` references (extended dialect only).

    Returns:
        FormulaOutcome with the value or a failure code.
    """
    if detect_dialect(formula) is FormulaDialect.EXTENDED:
        return evaluate_extended(formula, variables, lookup)
    return evaluate_arithmetic(formula, variables)


__all__ = [
    "FormulaDialect",
    "FormulaOutcome",
    "KeyLookup",
    "depends_on",
    "detect_dialect",
    "evaluate_arithmetic",
    "evaluate_extended",
    "evaluate_formula",
    "extract_keys",
]
