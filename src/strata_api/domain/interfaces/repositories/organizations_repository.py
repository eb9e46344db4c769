# src/strata_api/domain/interfaces/repositories/organizations_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Organization settings repository interface.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID


class OrganizationsRepository(Protocol):
    """Protocol exposing organization-level approval settings."""

    async def get_approval_role(self, org_id: UUID) -> str | None:
        """Return the minimum role allowed to approve values, if configured."""
