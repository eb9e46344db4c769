# src/strata_api/application/schemas/dto/values.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Application DTOs for period value operations.

Purpose:
    Request and response DTOs for saving, submitting, approving, returning,
    locking and recalculating period values, plus the uniform
    :class:`ActionResultDTO` envelope returned to in-process callers.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from strata_api.application.schemas.dto.base import BaseDTO
from strata_api.domain.entities.value_period import ApprovalState, ValuePeriod
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.domain.exceptions.kpi import ValidationIssue

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SaveEntityValueRequestDTO(BaseDTO):
    """Input for computing and saving an entity's value for the current period.

    Attributes:
        entity_id: Entity to save.
        values: Non-static variable values keyed by variable id.
        manual_value: Value for entities without formula and variables.
        note: Optional note stored with the period.
        as_of: Reference instant for the canonical period (defaults to now).
        skip_cascade: Do not recalculate dependents after saving.
    """

    entity_id: UUID
    values: dict[UUID, float] = Field(default_factory=dict)
    manual_value: float | None = None
    note: str | None = Field(default=None, max_length=4000)
    as_of: datetime | None = None
    skip_cascade: bool = False

    @field_validator("note")
    @classmethod
    def _blank_note_is_none(cls, value: str | None) -> str | None:
        return value or None


class SubmitEntityValueRequestDTO(SaveEntityValueRequestDTO):
    """Input for submitting a value for approval (same shape as save)."""


class ApproveEntityValueRequestDTO(SaveEntityValueRequestDTO):
    """Input for approving a value (same shape as save)."""


class RequestChangesRequestDTO(BaseDTO):
    """Input for returning a submitted value to its editor."""

    entity_id: UUID
    message: str = Field(min_length=1, max_length=4000)
    as_of: datetime | None = None


class LockEntityValueRequestDTO(BaseDTO):
    """Input for locking an approved value."""

    entity_id: UUID
    as_of: datetime | None = None


class RecalculateEntityValueRequestDTO(BaseDTO):
    """Input for recomputing an entity from its latest stored inputs."""

    entity_id: UUID
    as_of: datetime | None = None
    skip_cascade: bool = False


class ListEntityApprovalsRequestDTO(BaseDTO):
    """Input for the approvals inbox."""

    status: ValueStatus | None = None

    @field_validator("status")
    @classmethod
    def _only_reviewable(cls, value: ValueStatus | None) -> ValueStatus | None:
        if value is not None and value not in (ValueStatus.SUBMITTED, ValueStatus.APPROVED):
            raise ValueError("status must be SUBMITTED or APPROVED")
        return value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ValidationIssueDTO(BaseDTO):
    """Field-level validation issue."""

    path: tuple[str | int, ...]
    message: str


class ApprovalStateDTO(BaseDTO):
    """Approval status and audit stamps."""

    status: ValueStatus
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    changes_requested_by: str | None = None
    changes_requested_at: datetime | None = None
    changes_requested_message: str | None = None


class ValuePeriodDTO(BaseDTO):
    """Stored (or on-the-fly computed) value of an entity for one period.

    Attributes:
        is_computed: True for values computed on demand and never persisted.
    """

    id: UUID | None = None
    entity_id: UUID
    period_start: datetime
    period_end: datetime
    actual_value: float | None = None
    calculated_value: float | None = None
    final_value: float | None = None
    note: str | None = None
    entered_by: str | None = None
    approval: ApprovalStateDTO
    variable_values: dict[UUID, float] = Field(default_factory=dict)
    is_computed: bool = False


class CascadeReportDTO(BaseDTO):
    """Keys touched by a cascading recalculation."""

    recalculated: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


class ActionResultDTO(BaseDTO):
    """Uniform result of a value operation.

    Attributes:
        success: Whether the operation completed.
        error: Error code when ``success`` is False.
        issues: Field-level issues for validation failures.
        period: Resulting period on success.
        auto_approved: True when a submit was approved immediately.
        cascade: Dependents recalculated after the save.
    """

    success: bool
    error: str | None = None
    issues: tuple[ValidationIssueDTO, ...] = ()
    period: ValuePeriodDTO | None = None
    auto_approved: bool = False
    cascade: CascadeReportDTO | None = None


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def approval_to_dto(state: ApprovalState) -> ApprovalStateDTO:
    """Map an :class:`ApprovalState` to its DTO."""
    return ApprovalStateDTO(
        status=state.status,
        submitted_by=state.submitted_by,
        submitted_at=state.submitted_at,
        approved_by=state.approved_by,
        approved_at=state.approved_at,
        changes_requested_by=state.changes_requested_by,
        changes_requested_at=state.changes_requested_at,
        changes_requested_message=state.changes_requested_message,
    )


def period_to_dto(period: ValuePeriod, *, is_computed: bool = False) -> ValuePeriodDTO:
    """Map a :class:`ValuePeriod` to its DTO."""
    return ValuePeriodDTO(
        id=period.id,
        entity_id=period.entity_id,
        period_start=period.period_start,
        period_end=period.period_end,
        actual_value=period.actual_value,
        calculated_value=period.calculated_value,
        final_value=period.final_value,
        note=period.note,
        entered_by=period.entered_by,
        approval=approval_to_dto(period.approval),
        variable_values=dict(period.variable_values),
        is_computed=is_computed,
    )


def issue_to_dto(issue: ValidationIssue) -> ValidationIssueDTO:
    """Map a domain :class:`ValidationIssue` to its DTO."""
    return ValidationIssueDTO(path=issue.path, message=issue.message)


__all__ = [
    "ActionResultDTO",
    "ApprovalStateDTO",
    "ApproveEntityValueRequestDTO",
    "CascadeReportDTO",
    "ListEntityApprovalsRequestDTO",
    "LockEntityValueRequestDTO",
    "RecalculateEntityValueRequestDTO",
    "RequestChangesRequestDTO",
    "SaveEntityValueRequestDTO",
    "SubmitEntityValueRequestDTO",
    "ValidationIssueDTO",
    "ValuePeriodDTO",
    "approval_to_dto",
    "issue_to_dto",
    "period_to_dto",
]
