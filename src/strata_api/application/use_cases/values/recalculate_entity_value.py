# src/strata_api/application/use_cases/values/recalculate_entity_value.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: recompute an entity's value from its latest stored inputs.

Purpose:
    Re-run the save-draft pipeline for a periodic formula entity, reusing the
    variable values, manual value and note of its most recent period, and
    cascade to dependents.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from strata_api.application.schemas.dto.values import (
    ActionResultDTO,
    RecalculateEntityValueRequestDTO,
)
from strata_api.application.services.cascade_recalculator import CascadeRecalculator
from strata_api.application.services.entity_value_pipeline import (
    EntityValuePipeline,
    ValueInput,
    ValueOperation,
)
from strata_api.application.uow import UnitOfWorkFactory, repositories_of
from strata_api.application.use_cases.values.store_entity_value import build_action_result
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.kpi import EntityNotFoundError, EntityStateError


class RecalculateEntityValueUseCase:
    """Recompute a formula entity for the current period."""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        pipeline: EntityValuePipeline,
        cascade: CascadeRecalculator,
    ) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork for the pre-checks.
            pipeline: Compute-and-save pipeline.
            cascade: Recalculator for dependents.
        """
        self._uow_factory = uow_factory
        self._pipeline = pipeline
        self._cascade = cascade

    async def execute(
        self,
        req: RecalculateEntityValueRequestDTO,
        *,
        principal: Principal,
    ) -> ActionResultDTO:
        """Recalculate and store the value.

        Raises:
            EntityNotFoundError: ``notFound``.
            EntityStateError: ``notKpi``, ``noFormula`` or ``noExistingValue``.
            KpiError: Any pipeline failure.
        """
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            entity = await repos.entities.get_by_id(principal.org_id, req.entity_id)
            if entity is None:
                raise EntityNotFoundError(ErrorCode.NOT_FOUND)
            if not entity.is_periodic:
                raise EntityStateError(ErrorCode.NOT_KPI)
            if not entity.has_formula:
                raise EntityStateError(ErrorCode.NO_FORMULA)
            latest = await repos.periods.get_latest(entity.id)
            if latest is None:
                raise EntityStateError(ErrorCode.NO_EXISTING_VALUE)

        result = await self._pipeline.run(
            principal=principal,
            entity_id=entity.id,
            operation=ValueOperation.SAVE_DRAFT,
            inputs=ValueInput(
                values=dict(latest.variable_values),
                manual_value=latest.actual_value,
                note=latest.note,
            ),
            as_of=req.as_of,
        )
        report = await self._cascade.after_save(principal, result, skip=req.skip_cascade)
        return build_action_result(result, report)


__all__ = ["RecalculateEntityValueUseCase"]
