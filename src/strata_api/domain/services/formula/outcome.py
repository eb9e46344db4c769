# src/strata_api/domain/services/formula/outcome.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Formula evaluation result types.

Layer:
    domain/services/formula
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from strata_api.domain.enums.error_code import ErrorCode


class FormulaDialect(str, Enum):
    """Formula language variant, detected per formula string."""

    ARITHMETIC = "ARITHMETIC"
    EXTENDED = "EXTENDED"


@dataclass(frozen=True, slots=True)
class FormulaOutcome:
    """Result of evaluating a formula.

    Attributes:
        ok: True when ``value`` holds a finite number.
        value: Evaluated value on success.
        error: Failure code when ``ok`` is False.
    """

    ok: bool
    value: float | None = None
    error: ErrorCode | None = None

    @classmethod
    def success(cls, value: float) -> FormulaOutcome:
        """Build a successful outcome."""
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorCode) -> FormulaOutcome:
        """Build a failed outcome."""
        return cls(ok=False, error=error)


def finite_number_outcome(result: object) -> FormulaOutcome:
    """Accept ``result`` only when it is a finite, non-boolean number."""
    if isinstance(result, bool) or not isinstance(result, (int, float)):
        return FormulaOutcome.failure(ErrorCode.INVALID_FORMULA_RESULT)
    if not math.isfinite(result):
        return FormulaOutcome.failure(ErrorCode.INVALID_FORMULA_RESULT)
    return FormulaOutcome.success(float(result))


__all__ = ["FormulaDialect", "FormulaOutcome", "finite_number_outcome"]
