# src/strata_api/application/use_cases/entities/get_entity_dependency_tree.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Use case: dependency tree of an entity.

Purpose:
    Return the entities an entity's formula references through ``get()``,
    recursively. Each entity appears at most once (first visit wins), and the
    walk stops below ``max_depth``. Unknown keys are left out.

Layer:
    application/use_cases/entities
"""

from __future__ import annotations

from uuid import UUID

from strata_api.application.schemas.dto.entities import (
    DependencyNodeDTO,
    GetDependencyTreeRequestDTO,
)
from strata_api.application.uow import UnitOfWorkFactory, ValueEngineRepositories, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.kpi import EntityNotFoundError
from strata_api.domain.services.formula import extract_keys


class GetEntityDependencyTreeUseCase:
    """Build the ``get()`` dependency tree rooted at one entity."""

    def __init__(self, *, uow_factory: UnitOfWorkFactory, max_depth: int = 5) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Builds a fresh UnitOfWork scoping the reads.
            max_depth: Default depth limit when the request carries none.
        """
        self._uow_factory = uow_factory
        self._max_depth = max_depth

    async def execute(
        self,
        req: GetDependencyTreeRequestDTO,
        *,
        principal: Principal,
    ) -> DependencyNodeDTO:
        """Return the tree.

        Raises:
            EntityNotFoundError: ``entityNotFound`` for an unknown root.
        """
        max_depth = self._max_depth if req.max_depth is None else req.max_depth
        visited: set[UUID] = set()
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            root = await self._node(repos, principal.org_id, req.entity_id, 0, max_depth, visited)
        if root is None:
            raise EntityNotFoundError(ErrorCode.ENTITY_NOT_FOUND)
        return root

    async def _node(
        self,
        repos: ValueEngineRepositories,
        org_id: UUID,
        entity_id: UUID,
        depth: int,
        max_depth: int,
        visited: set[UUID],
    ) -> DependencyNodeDTO | None:
        if depth > max_depth or entity_id in visited:
            return None
        visited.add(entity_id)

        entity = await repos.entities.get_by_id(org_id, entity_id)
        if entity is None:
            return None

        node = DependencyNodeDTO(
            id=entity.id,
            key=entity.key or str(entity.id),
            title=entity.title,
            formula=entity.formula,
            entity_type_code=entity.entity_type_code,
        )
        keys = sorted(extract_keys(entity.formula))
        if not keys:
            return node

        for dependency in await repos.entities.list_by_keys(org_id, keys):
            child = await self._node(repos, org_id, dependency.id, depth + 1, max_depth, visited)
            if child is not None:
                node.dependencies.append(child)
        return node


__all__ = ["GetEntityDependencyTreeUseCase"]
