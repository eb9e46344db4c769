# src/strata_api/adapters/mappers/persistence_mappers.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""ORM <-> domain mappers for the value engine.

Purpose:
    Translate SQLAlchemy rows into immutable domain entities and domain
    periods into column payloads for upserts.

Layer:
    adapters/mappers
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from strata_api.domain.entities.strategic_entity import EntityVariable, StrategicEntity
from strata_api.domain.entities.value_period import ApprovalState, ValuePeriod
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.infrastructure.database.models.entities import Entity
from strata_api.infrastructure.database.models.entities import (
    EntityVariable as EntityVariableRow,
)
from strata_api.infrastructure.database.models.values import EntityValuePeriod


def variable_to_domain(row: EntityVariableRow) -> EntityVariable:
    """Map an ``entity_variables`` row."""
    return EntityVariable(
        id=row.id,
        code=row.code,
        display_name=row.display_name or "",
        is_required=bool(row.is_required),
        is_static=bool(row.is_static),
        static_value=row.static_value,
    )


def entity_to_domain(row: Entity) -> StrategicEntity:
    """Map an ``entities`` row together with its (eagerly loaded) variables."""
    return StrategicEntity(
        id=row.id,
        org_id=row.org_id,
        title=row.title,
        granularity=PeriodGranularity(row.granularity or PeriodGranularity.NONE.value),
        key=row.key,
        entity_type_code=row.entity_type_code,
        formula=row.formula,
        variables=tuple(variable_to_domain(v) for v in row.variables),
        unit=row.unit,
        target_value=row.target_value,
        baseline_value=row.baseline_value,
        weight=row.weight,
        deleted_at=row.deleted_at,
    )


def value_period_to_domain(row: EntityValuePeriod) -> ValuePeriod:
    """Map an ``entity_value_periods`` row and its variable inputs."""
    return ValuePeriod(
        id=row.id,
        entity_id=row.entity_id,
        period_start=row.period_start,
        period_end=row.period_end,
        actual_value=row.actual_value,
        calculated_value=row.calculated_value,
        final_value=row.final_value,
        note=row.note,
        entered_by=row.entered_by,
        approval=ApprovalState(
            status=ValueStatus(row.status),
            submitted_by=row.submitted_by,
            submitted_at=row.submitted_at,
            approved_by=row.approved_by,
            approved_at=row.approved_at,
            changes_requested_by=row.changes_requested_by,
            changes_requested_at=row.changes_requested_at,
            changes_requested_message=row.changes_requested_message,
        ),
        variable_values={v.variable_id: v.value for v in row.variable_values},
    )


def value_period_columns(period: ValuePeriod, *, now: datetime) -> dict[str, Any]:
    """Return the column payload upserting ``period`` (natural key included)."""
    approval = period.approval
    return {
        "entity_id": period.entity_id,
        "period_start": period.period_start,
        "period_end": period.period_end,
        "actual_value": period.actual_value,
        "calculated_value": period.calculated_value,
        "final_value": period.final_value,
        "note": period.note,
        "entered_by": period.entered_by,
        "status": approval.status.value,
        "submitted_by": approval.submitted_by,
        "submitted_at": approval.submitted_at,
        "approved_by": approval.approved_by,
        "approved_at": approval.approved_at,
        "changes_requested_by": approval.changes_requested_by,
        "changes_requested_at": approval.changes_requested_at,
        "changes_requested_message": approval.changes_requested_message,
        "updated_at": now,
    }


__all__ = [
    "entity_to_domain",
    "value_period_columns",
    "value_period_to_domain",
    "variable_to_domain",
]
