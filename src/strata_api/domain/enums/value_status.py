# src/strata_api/domain/enums/value_status.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Approval status of a period value.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class ValueStatus(str, Enum):
    """Lifecycle state of a ValuePeriod in the approval workflow."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    LOCKED = "LOCKED"

    @property
    def is_finalized(self) -> bool:
        """Return True for states displayed as approved."""
        return self in (ValueStatus.APPROVED, ValueStatus.LOCKED)


# States a non-approver may no longer overwrite.
PROTECTED_STATUSES: frozenset[ValueStatus] = frozenset(
    {ValueStatus.SUBMITTED, ValueStatus.APPROVED, ValueStatus.LOCKED}
)

__all__ = ["PROTECTED_STATUSES", "ValueStatus"]
