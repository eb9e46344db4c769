# src/strata_api/domain/interfaces/repositories/entities_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Strategic entities repository interface.

Purpose:
    Read access to strategic entities and their variable definitions, scoped
    to one organization.

Layer:
    domain/interfaces/repositories

Notes:
    - Soft-deleted entities are never returned.
    - Keys are compared case-insensitively against their normalized form.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from strata_api.domain.entities.strategic_entity import StrategicEntity


class EntitiesRepository(Protocol):
    """Protocol for repositories exposing strategic entities."""

    async def get_by_id(self, org_id: UUID, entity_id: UUID) -> StrategicEntity | None:
        """Return the entity with ``entity_id`` in ``org_id``, if any."""

    async def get_by_key(self, org_id: UUID, key: str) -> StrategicEntity | None:
        """Return the entity whose normalized key equals ``key``, if any."""

    async def list_by_keys(self, org_id: UUID, keys: Sequence[str]) -> list[StrategicEntity]:
        """Return the entities matching any of the normalized ``keys``."""

    async def list_by_ids(self, org_id: UUID, entity_ids: Sequence[UUID]) -> list[StrategicEntity]:
        """Return the entities of ``org_id`` whose ids are in ``entity_ids``."""

    async def list_with_formula(self, org_id: UUID) -> list[StrategicEntity]:
        """Return every entity in ``org_id`` that carries a formula.

        Implementations SHOULD return a deterministic order (for example by
        creation time, then id) so cascades are reproducible.
        """
