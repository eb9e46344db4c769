# src/strata_api/adapters/repositories/entities_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Strategic entities repository (SQLAlchemy).

Purpose:
    Read strategic entities and their variable definitions from the
    ``entities`` / ``entity_variables`` tables, scoped to one organization.

Design:
    - Soft-deleted rows are excluded from every query.
    - Keys are matched against their trimmed, upper-cased form so rows
      written without normalization are still found.
    - Variables load eagerly (``selectin``) and are mapped with the entity.

Layer:
    adapters / repositories
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strata_api.adapters.mappers.persistence_mappers import entity_to_domain
from strata_api.adapters.repositories.base_repository import BaseRepository
from strata_api.domain.entities.strategic_entity import StrategicEntity, normalize_entity_key
from strata_api.infrastructure.database.models.entities import Entity


class EntitiesRepository(BaseRepository[Entity]):
    """Repository for strategic entities persisted in ``entities``."""

    _MODEL_NAME = "entities"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the primary database.
        """
        super().__init__(session=session)

    @staticmethod
    def _active(org_id: UUID) -> Select[Any]:
        return select(Entity).where(Entity.org_id == org_id, Entity.deleted_at.is_(None))

    @staticmethod
    def _normalized_key() -> Any:
        return func.upper(func.trim(Entity.key))

    async def get_by_id(self, org_id: UUID, entity_id: UUID) -> StrategicEntity | None:
        """Return the entity with ``entity_id`` in ``org_id``, if any."""
        async with self._timed("get_entity_by_id"):
            row = await self.fetch_optional(self._active(org_id).where(Entity.id == entity_id))
        return entity_to_domain(row) if row is not None else None

    async def get_by_key(self, org_id: UUID, key: str) -> StrategicEntity | None:
        """Return the entity whose normalized key equals ``key``, if any."""
        normalized = normalize_entity_key(key)
        if not normalized:
            return None
        stmt = self._active(org_id).where(self._normalized_key() == normalized)
        stmt = self.order_by_created(stmt, Entity.created_at, Entity.id).limit(1)
        async with self._timed("get_entity_by_key"):
            row = await self.fetch_optional(stmt)
        return entity_to_domain(row) if row is not None else None

    async def list_by_keys(self, org_id: UUID, keys: Sequence[str]) -> list[StrategicEntity]:
        """Return the entities matching any of the normalized ``keys``."""
        normalized = sorted({k for k in (normalize_entity_key(raw) for raw in keys) if k})
        if not normalized:
            return []
        stmt = self._active(org_id).where(self._normalized_key().in_(normalized))
        stmt = self.order_by_created(stmt, Entity.created_at, Entity.id)
        async with self._timed("list_entities_by_keys"):
            rows = await self.fetch_all(stmt)
        return [entity_to_domain(row) for row in rows]

    async def list_by_ids(self, org_id: UUID, entity_ids: Sequence[UUID]) -> list[StrategicEntity]:
        """Return the entities of ``org_id`` whose ids are in ``entity_ids``."""
        if not entity_ids:
            return []
        stmt = self._active(org_id).where(Entity.id.in_(list(entity_ids)))
        async with self._timed("list_entities_by_ids"):
            rows = await self.fetch_all(stmt)
        return [entity_to_domain(row) for row in rows]

    async def list_with_formula(self, org_id: UUID) -> list[StrategicEntity]:
        """Return every entity in ``org_id`` carrying a non-blank formula.

        Ordered by creation time, then id.
        """
        stmt = self._active(org_id).where(
            Entity.formula.is_not(None),
            func.length(func.trim(Entity.formula)) > 0,
        )
        stmt = self.order_by_created(stmt, Entity.created_at, Entity.id)
        async with self._timed("list_entities_with_formula"):
            rows = await self.fetch_all(stmt)
        return [entity_to_domain(row) for row in rows]


__all__ = ["EntitiesRepository"]
