# src/strata_api/application/schemas/dto/entities.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Application DTOs for read-side entity operations.

Purpose:
    Entity detail, formula preview, dependency tree and approvals inbox
    DTOs.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from strata_api.application.schemas.dto.base import BaseDTO
from strata_api.application.schemas.dto.values import ValuePeriodDTO
from strata_api.domain.entities.strategic_entity import EntityVariable
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.enums.value_status import ValueStatus


class EntityVariableDTO(BaseDTO):
    """Variable definition of an entity."""

    id: UUID
    code: str
    display_name: str
    is_required: bool
    is_static: bool
    static_value: float | None = None


class PeriodRangeDTO(BaseDTO):
    """Inclusive canonical period bounds (UTC)."""

    start: datetime
    end: datetime


class ApprovalContextDTO(BaseDTO):
    """Approval authority of the caller in their organization.

    Attributes:
        org_approval_level: Minimum role the organization requires to approve.
        can_approve: Whether the caller meets it.
    """

    org_approval_level: str
    can_approve: bool


# ---------------------------------------------------------------------------
# Entity detail
# ---------------------------------------------------------------------------


class GetEntityDetailRequestDTO(BaseDTO):
    """Input for the entity detail read."""

    entity_id: UUID
    as_of: datetime | None = None


class EntityDetailDTO(BaseDTO):
    """Entity definition plus its latest and current-period values.

    Attributes:
        latest_period: Most recent stored period, if any.
        current_range: Canonical range containing ``as_of`` (periodic entities).
        current_period: Stored value for ``current_range``; for entities without
            a cadence but with a formula, a value computed on the fly.
        approval_context: Approval authority of the caller.
        can_admin: Whether the caller is an administrator.
        can_edit_values: Whether the caller may save values for this entity.
    """

    id: UUID
    key: str | None = None
    title: str
    entity_type_code: str
    granularity: PeriodGranularity
    formula: str | None = None
    unit: str | None = None
    target_value: float | None = None
    baseline_value: float | None = None
    weight: float | None = None
    variables: tuple[EntityVariableDTO, ...] = ()
    latest_period: ValuePeriodDTO | None = None
    current_range: PeriodRangeDTO | None = None
    current_period: ValuePeriodDTO | None = None
    approval_context: ApprovalContextDTO
    can_admin: bool = False
    can_edit_values: bool = False


# ---------------------------------------------------------------------------
# Formula preview
# ---------------------------------------------------------------------------


class PreviewFormulaRequestDTO(BaseDTO):
    """Input for evaluating an arbitrary formula without saving.

    Attributes:
        formula: Formula text in either dialect.
        variables: Variable values keyed by code.
    """

    formula: str = Field(min_length=1, max_length=20_000)
    variables: dict[str, float] = Field(default_factory=dict)


class PreviewFormulaResponseDTO(BaseDTO):
    """Result of a formula preview.

    Attributes:
        ok: Whether the formula produced a finite number.
        value: Result on success.
        error: Error code on failure.
        dialect: Detected dialect.
        references: Current values of the ``get()`` references, by key.
    """

    ok: bool
    value: float | None = None
    error: str | None = None
    dialect: str
    references: dict[str, float] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Dependency tree
# ---------------------------------------------------------------------------


class GetDependencyTreeRequestDTO(BaseDTO):
    """Input for the dependency tree read."""

    entity_id: UUID
    max_depth: int | None = Field(default=None, ge=0, le=50)


class DependencyNodeDTO(BaseDTO):
    """One entity in a dependency tree.

    Attributes:
        key: Entity key, or its id when the entity has no key.
        dependencies: Entities referenced through ``get()``, each visited once.
    """

    id: UUID
    key: str
    title: str
    formula: str | None = None
    entity_type_code: str
    dependencies: list[DependencyNodeDTO] = Field(default_factory=list)


DependencyNodeDTO.model_rebuild()


# ---------------------------------------------------------------------------
# Approvals inbox
# ---------------------------------------------------------------------------


class ApprovalInboxItemDTO(BaseDTO):
    """A period awaiting or holding approval, with its entity summary."""

    entity_id: UUID
    entity_key: str | None = None
    entity_title: str
    entity_type_code: str
    granularity: PeriodGranularity
    status: ValueStatus
    period: ValuePeriodDTO


class ApprovalInboxDTO(BaseDTO):
    """Approvals inbox of the caller's organization."""

    items: tuple[ApprovalInboxItemDTO, ...] = ()


def variable_to_dto(variable: EntityVariable) -> EntityVariableDTO:
    """Map an :class:`EntityVariable` to its DTO."""
    return EntityVariableDTO(
        id=variable.id,
        code=variable.code,
        display_name=variable.display_name,
        is_required=variable.is_required,
        is_static=variable.is_static,
        static_value=variable.static_value,
    )


__all__ = [
    "ApprovalContextDTO",
    "ApprovalInboxDTO",
    "ApprovalInboxItemDTO",
    "DependencyNodeDTO",
    "EntityDetailDTO",
    "EntityVariableDTO",
    "GetDependencyTreeRequestDTO",
    "GetEntityDetailRequestDTO",
    "PeriodRangeDTO",
    "PreviewFormulaRequestDTO",
    "PreviewFormulaResponseDTO",
    "variable_to_dto",
]
