# src/strata_api/adapters/repositories/entity_access_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Entity access repository (SQLAlchemy).

Purpose:
    Decide whether a user may edit an entity's values from the
    ``user_entity_assignments`` table.

Layer:
    adapters / repositories
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from strata_api.adapters.repositories.base_repository import BaseRepository
from strata_api.infrastructure.database.models.entities import Entity, UserEntityAssignment


class EntityAccessRepository(BaseRepository[UserEntityAssignment]):
    """Assignment-based value-edit authorization."""

    _MODEL_NAME = "user_entity_assignments"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the primary database.
        """
        super().__init__(session=session)

    async def can_edit_values(self, org_id: UUID, user_id: str, entity_id: UUID) -> bool:
        """Return True when ``user_id`` holds an edit assignment on ``entity_id``."""
        stmt = select(
            exists()
            .where(
                UserEntityAssignment.entity_id == Entity.id,
                UserEntityAssignment.user_id == user_id,
                UserEntityAssignment.can_edit_values.is_(True),
                Entity.id == entity_id,
                Entity.org_id == org_id,
                Entity.deleted_at.is_(None),
            )
        )
        async with self._timed("can_edit_values"):
            result = await self._session.execute(stmt)
            return bool(result.scalar())


__all__ = ["EntityAccessRepository"]
