# src/strata_api/domain/entities/value_period.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Period value domain entities.

Purpose:
    Represent the stored result of an entity for one canonical period range,
    its approval audit trail and the per-period variable inputs.

Layer:
    domain/entities

Notes:
    - (entity_id, period_start, period_end) is the natural key of a period.
    - Periods are never hard-deleted; recomputation supersedes their values.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from strata_api.domain.enums.value_status import ValueStatus


@dataclass(frozen=True, slots=True)
class PeriodRange:
    """Inclusive canonical [start, end] range, both bounds in UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        """Reject inverted ranges."""
        if self.end < self.start:
            raise ValueError("PeriodRange end must not precede start")


@dataclass(frozen=True, slots=True)
class ApprovalState:
    """Approval status and audit stamps of a period value."""

    status: ValueStatus = ValueStatus.DRAFT
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    changes_requested_by: str | None = None
    changes_requested_at: datetime | None = None
    changes_requested_message: str | None = None


@dataclass(frozen=True, slots=True)
class ValuePeriod:
    """Computed and stored value of one entity for one canonical period.

    Attributes:
        entity_id: Owning entity.
        period_start: Inclusive canonical start (UTC).
        period_end: Inclusive canonical end (UTC).
        id: Persistence identifier, None for rows not yet stored or computed
            on the fly.
        actual_value: Raw manual input, if any.
        calculated_value: Formula output (or manual value).
        final_value: Value reported downstream; normally the calculated value.
        note: Free-form note attached on save.
        entered_by: User id of the last editor.
        approval: Approval status and audit stamps.
        variable_values: Non-static variable inputs keyed by variable id.
    """

    entity_id: UUID
    period_start: datetime
    period_end: datetime
    id: UUID | None = None
    actual_value: float | None = None
    calculated_value: float | None = None
    final_value: float | None = None
    note: str | None = None
    entered_by: str | None = None
    approval: ApprovalState = field(default_factory=ApprovalState)
    variable_values: Mapping[UUID, float] = field(default_factory=dict)

    @property
    def status(self) -> ValueStatus:
        """Return the approval status of this period."""
        return self.approval.status

    @property
    def period(self) -> PeriodRange:
        """Return the canonical range this row is keyed by."""
        return PeriodRange(start=self.period_start, end=self.period_end)

    @property
    def stored_value(self) -> float:
        """Return the first non-null of final, calculated, actual, else 0."""
        for candidate in (self.final_value, self.calculated_value, self.actual_value):
            if candidate is not None:
                return float(candidate)
        return 0.0
