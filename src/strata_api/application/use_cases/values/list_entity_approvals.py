# src/strata_api/application/use_cases/values/list_entity_approvals.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: approvals inbox.

Purpose:
    List the organization's SUBMITTED and APPROVED periods (optionally one
    status only), newest submission first, for approvers.

Layer:
    application/use_cases/values
"""

from __future__ import annotations

from strata_api.application.schemas.dto.entities import ApprovalInboxDTO, ApprovalInboxItemDTO
from strata_api.application.schemas.dto.values import (
    ListEntityApprovalsRequestDTO,
    period_to_dto,
)
from strata_api.application.services.entity_value_pipeline import EntityValuePipeline
from strata_api.application.uow import UnitOfWorkFactory, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.domain.exceptions.kpi import UnauthorizedError

_REVIEWABLE = (ValueStatus.SUBMITTED, ValueStatus.APPROVED)


class ListEntityApprovalsUseCase:
    """Return the approvals inbox of the caller's organization."""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        pipeline: EntityValuePipeline,
        limit: int = 200,
    ) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork scoping the reads.
            pipeline: Supplies the caller's approval context.
            limit: Maximum number of periods returned.
        """
        self._uow_factory = uow_factory
        self._pipeline = pipeline
        self._limit = limit

    async def execute(
        self,
        req: ListEntityApprovalsRequestDTO,
        *,
        principal: Principal,
    ) -> ApprovalInboxDTO:
        """List reviewable periods.

        Raises:
            UnauthorizedError: Caller is not an approver.
        """
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            ctx = await self._pipeline.approval_context(repos, principal)
            if not ctx.is_approver:
                raise UnauthorizedError("Approvals inbox requires approver rank")

            statuses = (req.status,) if req.status is not None else _REVIEWABLE
            periods = await repos.periods.list_by_status(
                principal.org_id, statuses, limit=self._limit
            )
            entity_ids = list(dict.fromkeys(p.entity_id for p in periods))
            entities = {
                e.id: e for e in await repos.entities.list_by_ids(principal.org_id, entity_ids)
            }

        items = []
        for period in periods:
            entity = entities.get(period.entity_id)
            if entity is None:
                # Soft-deleted since submission.
                continue
            items.append(
                ApprovalInboxItemDTO(
                    entity_id=entity.id,
                    entity_key=entity.key,
                    entity_title=entity.title,
                    entity_type_code=entity.entity_type_code,
                    granularity=entity.granularity,
                    status=period.status,
                    period=period_to_dto(period),
                )
            )
        return ApprovalInboxDTO(items=tuple(items))


__all__ = ["ListEntityApprovalsUseCase"]
