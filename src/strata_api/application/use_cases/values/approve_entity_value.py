# src/strata_api/application/use_cases/values/approve_entity_value.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: approve an entity's value for the current period.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from strata_api.application.services.entity_value_pipeline import ValueOperation
from strata_api.application.use_cases.values.store_entity_value import StoreEntityValueUseCase


class ApproveEntityValueUseCase(StoreEntityValueUseCase):
    """Recompute and store the value as APPROVED (approvers only)."""

    operation = ValueOperation.APPROVE


__all__ = ["ApproveEntityValueUseCase"]
