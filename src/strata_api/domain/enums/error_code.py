# src/strata_api/domain/enums/error_code.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Stable error codes surfaced to callers of the value engine.

Purpose:
    Callers (UI, API adapters) match on these codes verbatim, so the string
    values are part of the public contract and must not change.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Typed failure codes returned by value operations."""

    VALIDATION_FAILED = "validationFailed"

    # Formula evaluation
    EMPTY_FORMULA = "emptyFormula"
    UNSUPPORTED_FORMULA_CHARACTERS = "unsupportedFormulaCharacters"
    INVALID_FORMULA_RESULT = "invalidFormulaResult"
    FAILED_TO_EVALUATE_FORMULA = "failedToEvaluateFormula"

    # Missing input
    VARIABLE_REQUIRED = "variableRequired"
    STATIC_VARIABLE_REQUIRED = "staticVariableRequired"
    VALUE_IS_REQUIRED = "valueIsRequired"

    # Lookup
    NOT_FOUND = "notFound"
    KPI_NOT_FOUND = "kpiNotFound"
    ENTITY_NOT_FOUND = "entityNotFound"

    # Entity shape
    NOT_KPI = "notKpi"
    NO_FORMULA = "noFormula"
    NO_EXISTING_VALUE = "noExistingValue"

    # Approval workflow
    PERIOD_LOCKED_FOR_APPROVAL = "periodLockedForApproval"
    KPI_VALUE_ALREADY_SUBMITTED = "kpiValueAlreadySubmitted"
    UNAUTHORIZED = "unauthorized"
    ONLY_SUBMITTED_CAN_BE_RETURNED = "onlySubmittedCanBeReturned"
    NO_SUBMITTED_VALUE_FOUND = "noSubmittedValueFound"
    ONLY_APPROVED_CAN_BE_LOCKED = "onlyApprovedCanBeLocked"


__all__ = ["ErrorCode"]
