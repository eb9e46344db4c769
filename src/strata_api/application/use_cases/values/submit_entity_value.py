# src/strata_api/application/use_cases/values/submit_entity_value.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: submit an entity's value for approval.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from strata_api.application.services.entity_value_pipeline import ValueOperation
from strata_api.application.use_cases.values.store_entity_value import StoreEntityValueUseCase


class SubmitEntityValueUseCase(StoreEntityValueUseCase):
    """Compute and store a SUBMITTED value (APPROVED when the caller is an approver)."""

    operation = ValueOperation.SUBMIT


__all__ = ["SubmitEntityValueUseCase"]
