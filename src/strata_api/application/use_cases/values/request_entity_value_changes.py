# src/strata_api/application/use_cases/values/request_entity_value_changes.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: return a submitted value to its editor with a message.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

import logging
from dataclasses import replace

from strata_api.application.schemas.dto.values import (
    ActionResultDTO,
    RequestChangesRequestDTO,
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
from strata_api.domain.services.approval_workflow import (
    DEFAULT_CHANGES_MESSAGE_MIN_LENGTH,
    request_changes,
)
from strata_api.domain.services.period_resolver import resolve_period

logger = logging.getLogger(__name__)


class RequestEntityValueChangesUseCase:
    """Move the current period from SUBMITTED back to DRAFT.

    Args:
        uow_factory: Builds a fresh UnitOfWork scoping the read and the upsert.
        pipeline: Supplies the clock and the caller's approval context.
        min_message_length: Minimum length of the changes-requested message.
    """

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        pipeline: EntityValuePipeline,
        min_message_length: int = DEFAULT_CHANGES_MESSAGE_MIN_LENGTH,
    ) -> None:
        """Initialize the use case."""
        self._uow_factory = uow_factory
        self._pipeline = pipeline
        self._min_message_length = min_message_length

    async def execute(
        self,
        req: RequestChangesRequestDTO,
        *,
        principal: Principal,
    ) -> ActionResultDTO:
        """Request changes on the entity's current period.

        Raises:
            EntityNotFoundError: Unknown entity.
            EntityStateError: Entity without a period cadence.
            UnauthorizedError: Caller is not an approver.
            ValidationFailedError: Message too short.
            ApprovalTransitionError: No period, or the period is not SUBMITTED.
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
            state = request_changes(
                current.approval if current is not None else None,
                ctx,
                now,
                req.message,
                min_message_length=self._min_message_length,
            )
            if current is None:
                raise ApprovalTransitionError(
                    ErrorCode.NO_SUBMITTED_VALUE_FOUND,
                    "No value found for this period",
                )
            stored = await repos.periods.upsert(replace(current, approval=state))
            await tx.commit()

        logger.info(
            "values.changes_requested",
            extra={"entity_id": str(entity.id), "period_start": period.start.isoformat()},
        )
        return ActionResultDTO(success=True, period=period_to_dto(stored))


__all__ = ["RequestEntityValueChangesUseCase"]
