# src/strata_api/adapters/repositories/organizations_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Organization settings repository (SQLAlchemy).

Layer:
    adapters / repositories
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strata_api.adapters.repositories.base_repository import BaseRepository
from strata_api.infrastructure.database.models.entities import Organization


class OrganizationsRepository(BaseRepository[Organization]):
    """Read organization-level approval settings."""

    _MODEL_NAME = "organizations"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the primary database.
        """
        super().__init__(session=session)

    async def get_approval_role(self, org_id: UUID) -> str | None:
        """Return the organization's configured approval role, if any."""
        stmt = select(Organization.kpi_approval_role).where(
            Organization.id == org_id,
            Organization.deleted_at.is_(None),
        )
        async with self._timed("get_approval_role"):
            result = await self._session.execute(stmt)
            return result.scalar_one_or_none()


__all__ = ["OrganizationsRepository"]
