# src/strata_api/domain/exceptions/kpi.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""KPI value engine exceptions.

Purpose:
    Typed failures raised by value computation, persistence orchestration and
    the approval workflow. Every exception carries an :class:`ErrorCode`
    value in ``code`` which callers surface verbatim.

Layer:
    domain/exceptions

Notes:
    - Cycle and depth guards never raise; they are logged terminations.
    - Formula evaluators do not raise either; they return an outcome which
      the application layer converts into :class:`FormulaEvaluationError`
      for the primary entity only.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.base import DomainError


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Single field-level validation issue.

    Attributes:
        path: Location of the offending field, e.g. ``("variables", "REV")``.
        message: Human-readable description (or an error code).
    """

    path: tuple[str | int, ...]
    message: str


class KpiError(DomainError):
    """Base class for value engine errors."""

    code: str = ErrorCode.VALIDATION_FAILED.value

    def __init__(
        self,
        code: ErrorCode | None = None,
        message: str = "",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error from an :class:`ErrorCode`."""
        super().__init__(
            message,
            code=code.value if code is not None else None,
            details=details,
        )

    @property
    def error_code(self) -> ErrorCode:
        """Return the typed error code."""
        return ErrorCode(self.code)


class ValidationFailedError(KpiError):
    """Raised when input is malformed or required values are missing."""

    code = ErrorCode.VALIDATION_FAILED.value

    def __init__(
        self,
        issues: Sequence[ValidationIssue],
        message: str = "Validation failed",
        *,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ) -> None:
        """Initialize with the collected issues.

        Args:
            issues: Field-level issues, in discovery order.
            message: Human-readable summary.
            code: Overall code; missing required inputs use their own codes
                (for example ``variableRequired``) while keeping the issues.
        """
        super().__init__(code, message, details={"issues": len(issues)})
        self.issues: tuple[ValidationIssue, ...] = tuple(issues)


class FormulaEvaluationError(KpiError):
    """Raised when the primary entity's formula cannot be evaluated."""

    code = ErrorCode.FAILED_TO_EVALUATE_FORMULA.value


class EntityNotFoundError(KpiError):
    """Raised when an entity (or KPI) cannot be found in the organization."""

    code = ErrorCode.NOT_FOUND.value


class EntityStateError(KpiError):
    """Raised when an entity's configuration does not allow the operation.

    Used for ``notKpi``, ``noFormula`` and ``noExistingValue``.
    """

    code = ErrorCode.NOT_KPI.value


class ApprovalTransitionError(KpiError):
    """Raised when the approval state machine rejects a transition."""

    code = ErrorCode.KPI_VALUE_ALREADY_SUBMITTED.value


class UnauthorizedError(KpiError):
    """Raised when the caller lacks the role or assignment for an action."""

    code = ErrorCode.UNAUTHORIZED.value

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        """Initialize with the fixed ``unauthorized`` code."""
        super().__init__(ErrorCode.UNAUTHORIZED, message, details=details)


__all__ = [
    "ApprovalTransitionError",
    "EntityNotFoundError",
    "EntityStateError",
    "FormulaEvaluationError",
    "KpiError",
    "UnauthorizedError",
    "ValidationFailedError",
    "ValidationIssue",
]
