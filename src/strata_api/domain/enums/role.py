# src/strata_api/domain/enums/role.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Organizational roles and their approval ranks.

Purpose:
    Map each organizational role onto an integer rank. Approval authority is
    decided by comparing a user's rank with the organization's configured
    minimum approval role.

Layer:
    domain/enums

Notes:
    - Unknown or missing roles rank 0, below every real role.
    - Role names are matched case-insensitively.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class Role(str, Enum):
    """Organizational role, ordered from lowest to highest authority."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    PMO = "PMO"
    EXECUTIVE = "EXECUTIVE"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ROLE_RANKS: Final[dict[Role, int]] = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.PMO: 3,
    Role.EXECUTIVE: 4,
    Role.ADMIN: 5,
    Role.SUPER_ADMIN: 6,
}

DEFAULT_APPROVAL_ROLE: Final[Role] = Role.MANAGER


def parse_role(raw: Role | str | None) -> Role | None:
    """Return the Role matching ``raw`` or None when it is not a known role."""
    if raw is None:
        return None
    if isinstance(raw, Role):
        return raw
    try:
        return Role(raw.strip().upper())
    except ValueError:
        return None


def resolve_role_rank(raw: Role | str | None) -> int:
    """Return the integer rank for a role name (0 when unknown)."""
    role = parse_role(raw)
    if role is None:
        return 0
    return ROLE_RANKS[role]


def is_admin_role(raw: Role | str | None) -> bool:
    """Return True when the role carries administrative rank."""
    return resolve_role_rank(raw) >= ROLE_RANKS[Role.ADMIN]


__all__ = [
    "DEFAULT_APPROVAL_ROLE",
    "ROLE_RANKS",
    "Role",
    "is_admin_role",
    "parse_role",
    "resolve_role_rank",
]
