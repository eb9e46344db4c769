# src/strata_api/application/use_cases/entities/preview_entity_formula.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: preview a formula against the organization's current values.

Purpose:
    Let administrators try a formula before saving it on an entity. ``get()``
    references resolve through the value graph exactly as during a save;
    nothing is written.

Layer:
    application/use_cases/entities
"""

from __future__ import annotations

from strata_api.application.schemas.dto.entities import (
    PreviewFormulaRequestDTO,
    PreviewFormulaResponseDTO,
)
from strata_api.application.services.value_graph_resolver import (
    ValueGraphResolver,
    evaluate_with_metrics,
    lookup_from,
)
from strata_api.application.uow import UnitOfWorkFactory, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.exceptions.kpi import UnauthorizedError
from strata_api.domain.services.formula import detect_dialect, extract_keys


class PreviewEntityFormulaUseCase:
    """Evaluate an arbitrary formula without persisting anything."""

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork scoping the reads.
        """
        self._uow_factory = uow_factory

    async def execute(
        self,
        req: PreviewFormulaRequestDTO,
        *,
        principal: Principal,
    ) -> PreviewFormulaResponseDTO:
        """Evaluate ``req.formula``.

        Raises:
            UnauthorizedError: Caller is not an administrator.
        """
        if not principal.is_admin:
            raise UnauthorizedError("Formula preview requires an administrator")

        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            resolver = ValueGraphResolver(
                org_id=principal.org_id,
                entities=repos.entities,
                periods=repos.periods,
            )
            references = await resolver.resolve_many(extract_keys(req.formula))

        outcome = evaluate_with_metrics(req.formula, req.variables, lookup_from(references))
        return PreviewFormulaResponseDTO(
            ok=outcome.ok,
            value=outcome.value,
            error=outcome.error.value if outcome.error is not None else None,
            dialect=detect_dialect(req.formula).value,
            references=references,
        )


__all__ = ["PreviewEntityFormulaUseCase"]
