# src/strata_api/domain/entities/strategic_entity.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Strategic entity domain entities.

Purpose:
    Immutable representations of a node in an organization's strategic
    hierarchy (pillar, objective, initiative, KPI, ...) together with the
    input variables its formula consumes.

Layer:
    domain/entities

Notes:
    - Keys are normalized (trimmed, upper-cased) on construction so that
      cross-formula ``get("key")`` references match case-insensitively.
    - Variable codes keep their original casing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from strata_api.domain.enums.period_granularity import PeriodGranularity


def normalize_entity_key(raw: str | None) -> str:
    """Return the canonical (trimmed, upper-case) form of an entity key."""
    if raw is None:
        return ""
    return raw.strip().upper()


@dataclass(frozen=True, slots=True)
class EntityVariable:
    """Named numeric input scoped to one entity.

    Attributes:
        id: Stable identifier of the variable definition.
        code: Code referenced from the formula (case preserved).
        display_name: Human-readable label.
        is_required: Whether a value must be present at computation time.
        is_static: Whether the value is fixed on the definition itself.
        static_value: Definition-level value for static variables.
    """

    id: UUID
    code: str
    display_name: str = ""
    is_required: bool = False
    is_static: bool = False
    static_value: float | None = None


@dataclass(frozen=True, slots=True)
class StrategicEntity:
    """A node of the strategic hierarchy that may carry periodic values."""

    id: UUID
    org_id: UUID
    title: str
    granularity: PeriodGranularity
    key: str | None = None
    entity_type_code: str = "KPI"
    formula: str | None = None
    variables: tuple[EntityVariable, ...] = ()
    unit: str | None = None
    target_value: float | None = None
    baseline_value: float | None = None
    weight: float | None = None
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        """Normalize the key and drop blank formulas."""
        key = normalize_entity_key(self.key)
        object.__setattr__(self, "key", key or None)
        if self.formula is not None and not self.formula.strip():
            object.__setattr__(self, "formula", None)

    @property
    def has_formula(self) -> bool:
        """Return True when the entity derives its value from a formula."""
        return self.formula is not None

    @property
    def is_periodic(self) -> bool:
        """Return True when values are stored per canonical period."""
        return self.granularity.is_periodic

    @property
    def input_variables(self) -> tuple[EntityVariable, ...]:
        """Return the non-static variables supplied per period."""
        return tuple(v for v in self.variables if not v.is_static)
