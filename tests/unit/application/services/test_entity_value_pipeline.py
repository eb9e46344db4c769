# tests/unit/application/services/test_entity_value_pipeline.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
from fixtures.value_engine_testkit import (
    ORG_ID,
    InMemoryState,
    InMemoryUnitOfWorkFactory,
    make_entity,
    make_principal,
    make_variable,
)

from strata_api.application.services.entity_value_pipeline import (
    EntityValuePipeline,
    PipelineResult,
    ValueInput,
    ValueOperation,
    collect_inputs,
)
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.enums.role import Role
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.domain.exceptions.kpi import (
    ApprovalTransitionError,
    EntityNotFoundError,
    EntityStateError,
    FormulaEvaluationError,
    UnauthorizedError,
    ValidationFailedError,
)

ADMIN = make_principal(Role.ADMIN, user_id="admin")
MANAGER = make_principal(Role.MANAGER, user_id="manager")
EMPLOYEE = make_principal(Role.EMPLOYEE, user_id="employee")

MARCH = datetime(2025, 3, 1, tzinfo=UTC)


async def _save(
    pipeline: EntityValuePipeline,
    entity_id: UUID,
    *,
    principal: Principal = ADMIN,
    operation: ValueOperation = ValueOperation.SAVE_DRAFT,
    **inputs: Any,
) -> PipelineResult:
    return await pipeline.run(
        principal=principal,
        entity_id=entity_id,
        operation=operation,
        inputs=ValueInput(**inputs),
    )


@pytest.mark.asyncio
async def test_manual_value_is_stored_for_the_current_period(
    pipeline: EntityValuePipeline, state: InMemoryState, uow_factory: InMemoryUnitOfWorkFactory
) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))

    result = await _save(pipeline, revenue.id, manual_value=100.0, note="march close")

    assert result.period.period_start == MARCH
    assert result.period.id is not None
    stored = state.periods_of(revenue.id)
    assert len(stored) == 1
    assert stored[0].actual_value == 100.0
    assert stored[0].calculated_value == 100.0
    assert stored[0].final_value == 100.0
    assert stored[0].note == "march close"
    assert stored[0].entered_by == "admin"
    assert stored[0].status is ValueStatus.DRAFT
    assert uow_factory.commits == 1


@pytest.mark.asyncio
async def test_resaving_updates_the_same_period(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))

    first = await _save(pipeline, revenue.id, manual_value=100.0)
    second = await _save(pipeline, revenue.id, manual_value=200.0)

    assert first.period.id == second.period.id
    assert [p.final_value for p in state.periods_of(revenue.id)] == [200.0]


@pytest.mark.asyncio
async def test_as_of_selects_the_period(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    revenue = state.add_entity(make_entity("REVENUE", granularity=PeriodGranularity.QUARTERLY))

    result = await pipeline.run(
        principal=ADMIN,
        entity_id=revenue.id,
        operation=ValueOperation.SAVE_DRAFT,
        inputs=ValueInput(manual_value=1.0),
        as_of=datetime(2024, 11, 5, tzinfo=UTC),
    )

    assert result.range.start == datetime(2024, 10, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_variables_without_formula_are_summed(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    base = make_variable("BASE", static=True, static_value=10.0)
    north = make_variable("NORTH")
    south = make_variable("SOUTH")
    sales = state.add_entity(make_entity("SALES", variables=[base, north, south]))

    result = await _save(
        pipeline, sales.id, values={north.id: 2.0, south.id: 3.0}, manual_value=99.0
    )

    stored = state.periods_of(sales.id)[0]
    assert result.period.final_value == 15.0
    assert stored.actual_value is None
    assert stored.variable_values == {north.id: 2.0, south.id: 3.0}


@pytest.mark.asyncio
async def test_formula_reads_dependencies_and_inputs(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))
    cost = make_variable("COST")
    margin = state.add_entity(
        make_entity(
            "MARGIN_PCT",
            formula="return (get('REVENUE') - vars.COST) / get('REVENUE') * 100;",
            variables=[cost],
        )
    )
    await _save(pipeline, revenue.id, manual_value=100.0)

    result = await _save(pipeline, margin.id, values={cost.id: 60.0})

    assert result.period.calculated_value == pytest.approx(40.0)
    assert state.periods_of(margin.id)[0].variable_values == {cost.id: 60.0}


@pytest.mark.asyncio
async def test_formula_failure_writes_nothing(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    entity = state.add_entity(make_entity("RATIO", formula="return 1 / get('MISSING');"))

    with pytest.raises(FormulaEvaluationError) as exc_info:
        await _save(pipeline, entity.id)

    assert exc_info.value.code == ErrorCode.INVALID_FORMULA_RESULT.value
    assert state.periods_of(entity.id) == []


@pytest.mark.asyncio
async def test_manual_value_is_required_without_formula_or_variables(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    entity = state.add_entity(make_entity("HEADCOUNT"))

    with pytest.raises(ValidationFailedError) as exc_info:
        await _save(pipeline, entity.id, manual_value=math.nan)

    assert exc_info.value.code == ErrorCode.VALUE_IS_REQUIRED.value
    assert exc_info.value.issues[0].path == ("manualValue",)


@pytest.mark.asyncio
async def test_unknown_and_non_periodic_entities_are_rejected(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    pillar = state.add_entity(make_entity("PILLAR", granularity=PeriodGranularity.NONE))

    with pytest.raises(EntityNotFoundError) as missing:
        await _save(pipeline, uuid4(), manual_value=1.0)
    with pytest.raises(EntityStateError) as not_kpi:
        await _save(pipeline, pillar.id, manual_value=1.0)

    assert missing.value.code == ErrorCode.NOT_FOUND.value
    assert not_kpi.value.code == ErrorCode.NOT_KPI.value


@pytest.mark.asyncio
async def test_non_admin_needs_an_assignment(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    entity = state.add_entity(make_entity("REVENUE"))

    with pytest.raises(UnauthorizedError):
        await _save(pipeline, entity.id, principal=EMPLOYEE, manual_value=1.0)
    assert state.periods_of(entity.id) == []

    state.assign("employee", entity.id)
    result = await _save(pipeline, entity.id, principal=EMPLOYEE, manual_value=1.0)
    assert result.period.entered_by == "employee"


@pytest.mark.asyncio
async def test_submit_by_employee_waits_and_by_manager_auto_approves(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    first = state.add_entity(make_entity("FIRST"))
    second = state.add_entity(make_entity("SECOND"))
    state.assign("employee", first.id)
    state.assign("manager", second.id)

    waiting = await _save(
        pipeline, first.id, principal=EMPLOYEE, operation=ValueOperation.SUBMIT, manual_value=1.0
    )
    approved = await _save(
        pipeline, second.id, principal=MANAGER, operation=ValueOperation.SUBMIT, manual_value=1.0
    )

    assert waiting.period.status is ValueStatus.SUBMITTED
    assert not waiting.auto_approved
    assert approved.period.status is ValueStatus.APPROVED
    assert approved.auto_approved


@pytest.mark.asyncio
async def test_org_approval_role_raises_the_bar(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    state.approval_roles[ORG_ID] = "pmo"
    entity = state.add_entity(make_entity("REVENUE"))
    state.assign("manager", entity.id)

    result = await _save(
        pipeline, entity.id, principal=MANAGER, operation=ValueOperation.SUBMIT, manual_value=1.0
    )

    assert result.period.status is ValueStatus.SUBMITTED


@pytest.mark.asyncio
async def test_approve_relies_on_rank_not_assignment(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    entity = state.add_entity(make_entity("REVENUE"))

    result = await _save(
        pipeline, entity.id, principal=MANAGER, operation=ValueOperation.APPROVE, manual_value=5.0
    )

    assert result.period.status is ValueStatus.APPROVED
    assert result.period.approval.approved_by == "manager"
    with pytest.raises(UnauthorizedError):
        await _save(
            pipeline,
            entity.id,
            principal=EMPLOYEE,
            operation=ValueOperation.APPROVE,
            manual_value=5.0,
        )


@pytest.mark.asyncio
async def test_employee_cannot_overwrite_a_submitted_value(
    pipeline: EntityValuePipeline, state: InMemoryState
) -> None:
    entity = state.add_entity(make_entity("REVENUE"))
    state.assign("employee", entity.id)
    await _save(
        pipeline, entity.id, principal=EMPLOYEE, operation=ValueOperation.SUBMIT, manual_value=1.0
    )

    with pytest.raises(ApprovalTransitionError) as exc_info:
        await _save(pipeline, entity.id, principal=EMPLOYEE, manual_value=2.0)

    assert exc_info.value.code == ErrorCode.KPI_VALUE_ALREADY_SUBMITTED.value
    assert state.periods_of(entity.id)[0].final_value == 1.0


def test_collect_inputs_reports_every_missing_required_variable() -> None:
    static = make_variable("TARGET", required=True, static=True)
    required = make_variable("UNITS", required=True)
    optional = make_variable("BONUS")
    entity = make_entity("SALES", variables=[static, required, optional])

    with pytest.raises(ValidationFailedError) as exc_info:
        collect_inputs(entity, {required.id: math.inf})

    issues = {(issue.path, issue.message) for issue in exc_info.value.issues}
    assert issues == {
        (("values", str(static.id)), ErrorCode.STATIC_VARIABLE_REQUIRED.value),
        (("values", str(required.id)), ErrorCode.VARIABLE_REQUIRED.value),
    }


def test_collect_inputs_stores_only_supplied_dynamic_values() -> None:
    static = make_variable("TARGET", static=True, static_value=5.0)
    units = make_variable("UNITS")
    bonus = make_variable("BONUS")
    entity = make_entity("SALES", variables=[static, units, bonus])

    by_code, to_store = collect_inputs(entity, {units.id: 2.0, static.id: 100.0})

    assert by_code == {"TARGET": 5.0, "UNITS": 2.0, "BONUS": 0.0}
    assert to_store == {units.id: 2.0}
