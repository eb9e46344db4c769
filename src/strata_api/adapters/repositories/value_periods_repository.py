# src/strata_api/adapters/repositories/value_periods_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Period values repository (SQLAlchemy).

Purpose:
    Persistence for ``entity_value_periods`` and ``entity_variable_values``:

      * Idempotent upsert by natural key (entity_id, period_start, period_end).
      * Idempotent upsert of variable inputs by (value_period_id, variable_id).
      * Latest-period and exact-period lookups.
      * Status listing for the approvals inbox.

Design:
    - Upserts use PostgreSQL ``ON CONFLICT`` with last-write-wins semantics
      for non-key columns; ``created_at`` and the row id are preserved.
    - Reads use ``populate_existing`` so rows upserted earlier in the same
      session are not served stale from the identity map.

Layer:
    adapters / repositories
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, nulls_last, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from strata_api.adapters.mappers.persistence_mappers import (
    value_period_columns,
    value_period_to_domain,
)
from strata_api.adapters.repositories.base_repository import BaseRepository
from strata_api.domain.entities.value_period import PeriodRange, ValuePeriod
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.infrastructure.database.models.entities import Entity
from strata_api.infrastructure.database.models.values import (
    EntityValuePeriod,
    EntityVariableValue,
)

_NATURAL_KEY = ("entity_id", "period_start", "period_end")


class ValuePeriodsRepository(BaseRepository[EntityValuePeriod]):
    """Repository for stored period values and their variable inputs."""

    _MODEL_NAME = "entity_value_periods"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the primary database.
        """
        super().__init__(session=session)

    @staticmethod
    def _fresh(stmt: Select[Any]) -> Select[Any]:
        return stmt.execution_options(populate_existing=True)

    async def get_latest(self, entity_id: UUID) -> ValuePeriod | None:
        """Return the entity's period with the latest ``period_end``."""
        stmt = select(EntityValuePeriod).where(EntityValuePeriod.entity_id == entity_id)
        stmt = self.order_by_latest(stmt, EntityValuePeriod.period_end, EntityValuePeriod.id)
        async with self._timed("get_latest_value_period"):
            row = await self.fetch_optional(self._fresh(stmt.limit(1)))
        return value_period_to_domain(row) if row is not None else None

    async def get_for_period(self, entity_id: UUID, period: PeriodRange) -> ValuePeriod | None:
        """Return the period stored under the exact canonical range, if any."""
        stmt = select(EntityValuePeriod).where(
            EntityValuePeriod.entity_id == entity_id,
            EntityValuePeriod.period_start == period.start,
            EntityValuePeriod.period_end == period.end,
        )
        async with self._timed("get_value_period"):
            row = await self.fetch_optional(self._fresh(stmt))
        return value_period_to_domain(row) if row is not None else None

    async def upsert(self, period: ValuePeriod) -> ValuePeriod:
        """Insert or update ``period`` by its natural key.

        Returns:
            ``period`` carrying the stored row id.
        """
        columns = value_period_columns(period, now=datetime.now(UTC))
        stmt = pg_insert(EntityValuePeriod).values(id=period.id or uuid.uuid4(), **columns)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_NATURAL_KEY),
            set_={
                name: getattr(stmt.excluded, name)
                for name in columns
                if name not in _NATURAL_KEY
            },
        ).returning(EntityValuePeriod.id)

        async with self._timed("upsert_value_period"):
            result = await self._session.execute(stmt)
            stored_id = result.scalar_one()
        return replace(period, id=stored_id)

    async def upsert_variable_values(
        self,
        value_period_id: UUID,
        values: Mapping[UUID, float],
    ) -> None:
        """Insert or update one row per (period, variable) pair in ``values``."""
        if not values:
            return
        now = datetime.now(UTC)
        payload = [
            {
                "id": uuid.uuid4(),
                "value_period_id": value_period_id,
                "variable_id": variable_id,
                "value": float(value),
                "updated_at": now,
            }
            for variable_id, value in values.items()
        ]
        stmt = pg_insert(EntityVariableValue).values(payload)
        stmt = stmt.on_conflict_do_update(
            index_elements=["value_period_id", "variable_id"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        async with self._timed("upsert_variable_values"):
            await self._session.execute(stmt)

    async def list_by_status(
        self,
        org_id: UUID,
        statuses: Sequence[ValueStatus],
        *,
        limit: int = 200,
    ) -> list[ValuePeriod]:
        """Return periods of the organization in any of ``statuses``.

        Ordered by ``submitted_at DESC NULLS LAST, updated_at DESC``.
        """
        if not statuses:
            return []
        stmt = (
            select(EntityValuePeriod)
            .join(Entity, Entity.id == EntityValuePeriod.entity_id)
            .where(
                Entity.org_id == org_id,
                Entity.deleted_at.is_(None),
                EntityValuePeriod.status.in_([s.value for s in statuses]),
            )
            .order_by(
                nulls_last(EntityValuePeriod.submitted_at.desc()),
                EntityValuePeriod.updated_at.desc(),
                EntityValuePeriod.id.asc(),
            )
            .limit(limit)
        )
        async with self._timed("list_value_periods_by_status"):
            rows = await self.fetch_all(self._fresh(stmt))
        return [value_period_to_domain(row) for row in rows]


__all__ = ["ValuePeriodsRepository"]
