# src/strata_api/application/use_cases/entities/get_entity_detail.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: entity detail for display.

Purpose:
    Return an entity's definition, its latest stored period, the canonical
    range containing ``as_of`` and the value stored for it, and the caller's
    approval authority. Entities without a period cadence but with a formula
    get a value computed on the fly (never stored).

Layer:
    application/use_cases/entities
"""

from __future__ import annotations

from datetime import datetime

from strata_api.application.schemas.dto.entities import (
    ApprovalContextDTO,
    EntityDetailDTO,
    GetEntityDetailRequestDTO,
    PeriodRangeDTO,
    variable_to_dto,
)
from strata_api.application.schemas.dto.values import ValuePeriodDTO, period_to_dto
from strata_api.application.services.entity_value_pipeline import EntityValuePipeline
from strata_api.application.services.value_graph_resolver import (
    ValueGraphResolver,
    stored_variable_values,
)
from strata_api.application.uow import UnitOfWorkFactory, ValueEngineRepositories, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.entities.strategic_entity import StrategicEntity
from strata_api.domain.entities.value_period import PeriodRange, ValuePeriod
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.kpi import EntityNotFoundError
from strata_api.domain.services.approval_workflow import ApprovalContext
from strata_api.domain.services.period_resolver import resolve_period


class GetEntityDetailUseCase:
    """Read an entity with its latest and current-period values."""

    def __init__(self, *, uow_factory: UnitOfWorkFactory, pipeline: EntityValuePipeline) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork scoping the reads.
            pipeline: Supplies the clock and approval settings.
        """
        self._uow_factory = uow_factory
        self._pipeline = pipeline

    async def execute(
        self,
        req: GetEntityDetailRequestDTO,
        *,
        principal: Principal,
    ) -> EntityDetailDTO:
        """Build the detail view.

        Raises:
            EntityNotFoundError: ``entityNotFound``.
        """
        now = self._pipeline.clock()
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            entity = await repos.entities.get_by_id(principal.org_id, req.entity_id)
            if entity is None:
                raise EntityNotFoundError(ErrorCode.ENTITY_NOT_FOUND)

            role = await self._pipeline.approval_role(repos, principal.org_id)
            ctx = ApprovalContext.for_principal(principal, role)
            can_edit = principal.is_admin or await repos.access.can_edit_values(
                principal.org_id, principal.user_id, entity.id
            )
            latest = await repos.periods.get_latest(entity.id)

            current_range: PeriodRange | None = None
            current: ValuePeriodDTO | None = None
            if entity.is_periodic:
                current_range = resolve_period(req.as_of or now, entity.granularity)
                stored = await repos.periods.get_for_period(entity.id, current_range)
                current = period_to_dto(stored) if stored is not None else None
            elif entity.has_formula:
                current = await self._compute_on_the_fly(repos, principal, entity, latest, now)

        return EntityDetailDTO(
            id=entity.id,
            key=entity.key,
            title=entity.title,
            entity_type_code=entity.entity_type_code,
            granularity=entity.granularity,
            formula=entity.formula,
            unit=entity.unit,
            target_value=entity.target_value,
            baseline_value=entity.baseline_value,
            weight=entity.weight,
            variables=tuple(variable_to_dto(v) for v in entity.variables),
            latest_period=period_to_dto(latest) if latest is not None else None,
            current_range=(
                PeriodRangeDTO(start=current_range.start, end=current_range.end)
                if current_range is not None
                else None
            ),
            current_period=current,
            approval_context=ApprovalContextDTO(
                org_approval_level=role.value,
                can_approve=ctx.is_approver,
            ),
            can_admin=principal.is_admin,
            can_edit_values=can_edit,
        )

    @staticmethod
    async def _compute_on_the_fly(
        repos: ValueEngineRepositories,
        principal: Principal,
        entity: StrategicEntity,
        latest: ValuePeriod | None,
        now: datetime,
    ) -> ValuePeriodDTO | None:
        resolver = ValueGraphResolver(
            org_id=principal.org_id,
            entities=repos.entities,
            periods=repos.periods,
        )
        outcome = await resolver.evaluate(entity, stored_variable_values(entity, latest))
        if not outcome.ok or outcome.value is None:
            return None
        computed = ValuePeriod(
            entity_id=entity.id,
            period_start=now,
            period_end=now,
            calculated_value=outcome.value,
            final_value=outcome.value,
        )
        return period_to_dto(computed, is_computed=True)


__all__ = ["GetEntityDetailUseCase"]
