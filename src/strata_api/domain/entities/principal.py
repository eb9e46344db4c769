# src/strata_api/domain/entities/principal.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Principal (current user) as seen by the value engine.

Layer:
    domain/entities

Notes:
    Authentication and organization selection happen outside this package;
    callers construct a Principal from their session and pass it in.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from strata_api.domain.enums.role import Role, is_admin_role, resolve_role_rank


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated user acting within one organization."""

    user_id: str
    org_id: UUID
    role: Role | str | None

    @property
    def rank(self) -> int:
        """Return the user's role rank (0 for unknown roles)."""
        return resolve_role_rank(self.role)

    @property
    def is_admin(self) -> bool:
        """Return True when the user holds an administrative role."""
        return is_admin_role(self.role)
