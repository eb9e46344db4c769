# src/strata_api/domain/interfaces/repositories/entity_access_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Entity access repository interface.

Purpose:
    Answer whether a (non-admin) user may edit an entity's values, based on
    the assignments maintained by the surrounding application.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID


class EntityAccessRepository(Protocol):
    """Protocol for value-edit authorization lookups."""

    async def can_edit_values(self, org_id: UUID, user_id: str, entity_id: UUID) -> bool:
        """Return True when ``user_id`` is assigned to edit ``entity_id``."""
