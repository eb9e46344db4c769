# src/strata_api/domain/interfaces/repositories/value_periods_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Value periods repository interface.

Purpose:
    Read and write ValuePeriod rows and their per-variable inputs.

Layer:
    domain/interfaces/repositories

Notes:
    - (entity_id, period_start, period_end) is the natural key; ``upsert``
      must never create a second row for the same triple.
    - Repositories never commit; the unit of work owns the transaction.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol
from uuid import UUID

from strata_api.domain.entities.value_period import PeriodRange, ValuePeriod
from strata_api.domain.enums.value_status import ValueStatus


class ValuePeriodsRepository(Protocol):
    """Protocol for repositories managing period values."""

    async def get_latest(self, entity_id: UUID) -> ValuePeriod | None:
        """Return the entity's period with the latest ``period_end``.

        The returned period includes its ``variable_values``.
        """

    async def get_for_period(self, entity_id: UUID, period: PeriodRange) -> ValuePeriod | None:
        """Return the period stored under the exact canonical range, if any."""

    async def upsert(self, period: ValuePeriod) -> ValuePeriod:
        """Insert or update ``period`` by its natural key.

        Returns:
            The stored period, including its persistence id.
        """

    async def upsert_variable_values(
        self,
        value_period_id: UUID,
        values: Mapping[UUID, float],
    ) -> None:
        """Insert or update one row per (period, variable) pair in ``values``."""

    async def list_by_status(
        self,
        org_id: UUID,
        statuses: Sequence[ValueStatus],
        *,
        limit: int = 200,
    ) -> list[ValuePeriod]:
        """Return periods of the organization in any of ``statuses``.

        Ordered by submission time (newest first), then period end.
        """
