# src/strata_api/application/use_cases/values/save_entity_value_draft.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: save an entity's value as a draft for the current period.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from strata_api.application.services.entity_value_pipeline import ValueOperation
from strata_api.application.use_cases.values.store_entity_value import StoreEntityValueUseCase


class SaveEntityValueDraftUseCase(StoreEntityValueUseCase):
    """Compute and store a DRAFT value, then cascade to dependents.

    Approvers editing a SUBMITTED period keep it SUBMITTED; approvers editing
    an APPROVED (or, as administrators, LOCKED) period revert it to DRAFT.
    """

    operation = ValueOperation.SAVE_DRAFT


__all__ = ["SaveEntityValueDraftUseCase"]
