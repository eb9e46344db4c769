# src/strata_api/application/use_cases/values/store_entity_value.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Shared flow for save, submit and approve.

Purpose:
    Run the entity value pipeline with the use case's approval operation,
    then cascade to dependents unless the request skips it.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from typing import ClassVar

from strata_api.application.schemas.dto.values import (
    ActionResultDTO,
    CascadeReportDTO,
    SaveEntityValueRequestDTO,
    period_to_dto,
)
from strata_api.application.services.cascade_recalculator import (
    CascadeRecalculator,
    CascadeReport,
)
from strata_api.application.services.entity_value_pipeline import (
    EntityValuePipeline,
    PipelineResult,
    ValueInput,
    ValueOperation,
)
from strata_api.domain.entities.principal import Principal


def build_action_result(
    result: PipelineResult,
    report: CascadeReport | None,
) -> ActionResultDTO:
    """Map a pipeline result and its cascade report to an ActionResultDTO."""
    return ActionResultDTO(
        success=True,
        period=period_to_dto(result.period),
        auto_approved=result.auto_approved,
        cascade=(
            CascadeReportDTO(
                recalculated=tuple(report.recalculated),
                failed=tuple(report.failed),
            )
            if report is not None
            else None
        ),
    )


class StoreEntityValueUseCase:
    """Base use case: compute, store and cascade one entity's value.

    Subclasses set :attr:`operation`.
    """

    operation: ClassVar[ValueOperation] = ValueOperation.SAVE_DRAFT

    def __init__(
        self,
        *,
        pipeline: EntityValuePipeline,
        cascade: CascadeRecalculator,
    ) -> None:
        """Initialize the use case.

        Args:
            pipeline: Compute-and-save pipeline.
            cascade: Recalculator for dependents of the saved entity.
        """
        self._pipeline = pipeline
        self._cascade = cascade

    async def execute(
        self,
        req: SaveEntityValueRequestDTO,
        *,
        principal: Principal,
    ) -> ActionResultDTO:
        """Store the value and cascade.

        Args:
            req: Entity, variable values, manual value and note.
            principal: Acting user.

        Returns:
            ActionResultDTO with the stored period and cascade report.

        Raises:
            KpiError: Any pipeline failure; nothing is stored in that case.
        """
        result = await self._pipeline.run(
            principal=principal,
            entity_id=req.entity_id,
            operation=self.operation,
            inputs=ValueInput(
                values=req.values,
                manual_value=req.manual_value,
                note=req.note,
            ),
            as_of=req.as_of,
        )
        report = await self._cascade.after_save(principal, result, skip=req.skip_cascade)
        return build_action_result(result, report)


__all__ = ["StoreEntityValueUseCase", "build_action_result"]
