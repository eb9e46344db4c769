# src/strata_api/application/use_cases/values/lock_entity_value.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: lock an approved value (administrators only).

Layer:
    application/use_cases/values
"""

from __future__ import annotations

import logging
from dataclasses import replace

from strata_api.application.schemas.dto.values import (
    ActionResultDTO,
    LockEntityValueRequestDTO,
    period_to_dto,
)
from strata_api.application.services.entity_value_pipeline import EntityValuePipeline
from strata_api.application.uow import UnitOfWorkFactory, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.kpi import (
    ApprovalTransitionError,
    EntityNotFoundError,
    EntityStateError,
)
from strata_api.domain.services.approval_workflow import lock
from strata_api.domain.services.period_resolver import resolve_period

logger = logging.getLogger(__name__)


class LockEntityValueUseCase:
    """Move the current period from APPROVED to LOCKED."""

    def __init__(self, *, uow_factory: UnitOfWorkFactory, pipeline: EntityValuePipeline) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork scoping the read and the upsert.
            pipeline: Supplies the clock and the caller's approval context.
        """
        self._uow_factory = uow_factory
        self._pipeline = pipeline

    async def execute(
        self,
        req: LockEntityValueRequestDTO,
        *,
        principal: Principal,
    ) -> ActionResultDTO:
        """Lock the entity's current period.

        Raises:
            EntityNotFoundError: Unknown entity.
            EntityStateError: Entity without a period cadence.
            UnauthorizedError: Caller is not an administrator.
            ApprovalTransitionError: The period is missing or not APPROVED.
        """
        now = self._pipeline.clock()
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            entity = await repos.entities.get_by_id(principal.org_id, req.entity_id)
            if entity is None:
                raise EntityNotFoundError(ErrorCode.NOT_FOUND)
            if not entity.is_periodic:
                raise EntityStateError(ErrorCode.NOT_KPI)

            ctx = await self._pipeline.approval_context(repos, principal)
            period = resolve_period(req.as_of or now, entity.granularity)
            current = await repos.periods.get_for_period(entity.id, period)
            state = lock(current.approval if current is not None else None, ctx)
            if current is None:
                raise ApprovalTransitionError(
                    ErrorCode.ONLY_APPROVED_CAN_BE_LOCKED,
                    "Only approved periods can be locked",
                )
            stored = await repos.periods.upsert(replace(current, approval=state))
            await tx.commit()

        logger.info(
            "values.locked",
            extra={"entity_id": str(entity.id), "period_start": period.start.isoformat()},
        )
        return ActionResultDTO(success=True, period=period_to_dto(stored))


__all__ = ["LockEntityValueUseCase"]
