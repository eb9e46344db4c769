# src/strata_api/domain/services/approval_workflow.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Approval state machine for period values.

Purpose:
    Decide the next :class:`ApprovalState` of a period for save, submit,
    approve, request-changes and lock operations, or reject the transition.

Layer:
    domain/services

States::

    DRAFT ──submit──▶ SUBMITTED ──approve──▶ APPROVED ──lock──▶ LOCKED
      ▲                  │
      └─request changes──┘

Rules:
    - A user is an approver when their role rank is at least the rank of the
      organization's configured approval role.
    - Non-approvers cannot overwrite SUBMITTED, APPROVED or LOCKED periods
      (``kpiValueAlreadySubmitted``).
    - LOCKED periods are editable by administrators only
      (``periodLockedForApproval`` for other approvers); an administrator
      edit reopens them like an APPROVED period.
    - Submitting as an approver approves immediately.
    - Original submission stamps survive re-submission and approval.

Notes:
    Pure functions: no clock, no logging, no persistence. Callers pass the
    current instant in.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from strata_api.domain.entities.principal import Principal
from strata_api.domain.entities.value_period import ApprovalState
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.enums.role import DEFAULT_APPROVAL_ROLE, Role, resolve_role_rank
from strata_api.domain.enums.value_status import PROTECTED_STATUSES, ValueStatus
from strata_api.domain.exceptions.kpi import (
    ApprovalTransitionError,
    UnauthorizedError,
    ValidationFailedError,
    ValidationIssue,
)

DEFAULT_CHANGES_MESSAGE_MIN_LENGTH = 3


@dataclass(frozen=True, slots=True)
class ApprovalContext:
    """Who is acting, and what rank the organization requires to approve."""

    actor_id: str
    actor_rank: int
    required_rank: int
    is_admin: bool = False

    @property
    def is_approver(self) -> bool:
        """Return True when the actor may approve in this organization."""
        return self.actor_rank >= self.required_rank

    @classmethod
    def for_principal(
        cls,
        principal: Principal,
        approval_role: Role | str | None,
    ) -> ApprovalContext:
        """Build a context for ``principal`` under the org's approval role."""
        required = resolve_role_rank(approval_role or DEFAULT_APPROVAL_ROLE)
        if required == 0:
            required = resolve_role_rank(DEFAULT_APPROVAL_ROLE)
        return cls(
            actor_id=principal.user_id,
            actor_rank=principal.rank,
            required_rank=required,
            is_admin=principal.is_admin,
        )


def ensure_can_edit(current: ApprovalState | None, ctx: ApprovalContext) -> None:
    """Reject edits the actor may not make over the current state.

    Raises:
        ApprovalTransitionError: ``kpiValueAlreadySubmitted`` for non-approvers
            over protected states, ``periodLockedForApproval`` for
            non-admin approvers over LOCKED.
    """
    if current is None:
        return
    if current.status in PROTECTED_STATUSES and not ctx.is_approver:
        raise ApprovalTransitionError(
            ErrorCode.KPI_VALUE_ALREADY_SUBMITTED,
            f"Period is already {current.status.value}",
        )
    if current.status is ValueStatus.LOCKED and not ctx.is_admin:
        raise ApprovalTransitionError(
            ErrorCode.PERIOD_LOCKED_FOR_APPROVAL,
            "Period is locked",
        )


def save_draft(current: ApprovalState | None, ctx: ApprovalContext) -> ApprovalState:
    """Return the state after saving a draft value."""
    ensure_can_edit(current, ctx)
    if current is None:
        return ApprovalState()
    if current.status is ValueStatus.SUBMITTED:
        # Approver edits keep the pending submission intact.
        return current
    if current.status.is_finalized:
        return replace(
            current,
            status=ValueStatus.DRAFT,
            approved_by=None,
            approved_at=None,
        )
    return replace(current, status=ValueStatus.DRAFT)


def submit(current: ApprovalState | None, ctx: ApprovalContext, now: datetime) -> ApprovalState:
    """Return the state after submitting; approvers are auto-approved."""
    ensure_can_edit(current, ctx)
    submitted_by = current.submitted_by if current and current.submitted_by else ctx.actor_id
    submitted_at = current.submitted_at if current and current.submitted_at else now

    if ctx.is_approver:
        return ApprovalState(
            status=ValueStatus.APPROVED,
            submitted_by=submitted_by,
            submitted_at=submitted_at,
            approved_by=ctx.actor_id,
            approved_at=now,
        )
    return ApprovalState(
        status=ValueStatus.SUBMITTED,
        submitted_by=submitted_by,
        submitted_at=submitted_at,
    )


def approve(current: ApprovalState | None, ctx: ApprovalContext, now: datetime) -> ApprovalState:
    """Return the state after an explicit approval.

    Raises:
        UnauthorizedError: If the actor is not an approver.
        ApprovalTransitionError: If the period is LOCKED and the actor is not
            an administrator.
    """
    if not ctx.is_approver:
        raise UnauthorizedError("Approval requires approver rank")
    ensure_can_edit(current, ctx)
    return ApprovalState(
        status=ValueStatus.APPROVED,
        submitted_by=current.submitted_by if current and current.submitted_by else ctx.actor_id,
        submitted_at=current.submitted_at if current and current.submitted_at else now,
        approved_by=ctx.actor_id,
        approved_at=now,
    )


def request_changes(
    current: ApprovalState | None,
    ctx: ApprovalContext,
    now: datetime,
    message: str,
    *,
    min_message_length: int = DEFAULT_CHANGES_MESSAGE_MIN_LENGTH,
) -> ApprovalState:
    """Return a SUBMITTED period to DRAFT with a changes-requested note.

    Raises:
        UnauthorizedError: If the actor is not an approver.
        ValidationFailedError: If the message is shorter than allowed.
        ApprovalTransitionError: ``noSubmittedValueFound`` without a period,
            ``onlySubmittedCanBeReturned`` when it is not SUBMITTED.
    """
    if not ctx.is_approver:
        raise UnauthorizedError("Requesting changes requires approver rank")
    text = (message or "").strip()
    if len(text) < min_message_length:
        raise ValidationFailedError(
            [ValidationIssue(path=("message",), message="tooShort")],
        )
    if current is None:
        raise ApprovalTransitionError(
            ErrorCode.NO_SUBMITTED_VALUE_FOUND,
            "No value found for this period",
        )
    if current.status is not ValueStatus.SUBMITTED:
        raise ApprovalTransitionError(
            ErrorCode.ONLY_SUBMITTED_CAN_BE_RETURNED,
            f"Cannot return a {current.status.value} period",
        )
    return ApprovalState(
        status=ValueStatus.DRAFT,
        changes_requested_by=ctx.actor_id,
        changes_requested_at=now,
        changes_requested_message=text,
    )


def lock(current: ApprovalState | None, ctx: ApprovalContext) -> ApprovalState:
    """Return an APPROVED period as LOCKED (administrators only).

    Raises:
        UnauthorizedError: If the actor is not an administrator.
        ApprovalTransitionError: ``onlyApprovedCanBeLocked`` otherwise.
    """
    if not ctx.is_admin:
        raise UnauthorizedError("Locking requires an administrator")
    if current is None or current.status is not ValueStatus.APPROVED:
        raise ApprovalTransitionError(
            ErrorCode.ONLY_APPROVED_CAN_BE_LOCKED,
            "Only approved periods can be locked",
        )
    return replace(current, status=ValueStatus.LOCKED)


__all__ = [
    "DEFAULT_CHANGES_MESSAGE_MIN_LENGTH",
    "ApprovalContext",
    "approve",
    "ensure_can_edit",
    "lock",
    "request_changes",
    "save_draft",
    "submit",
]
