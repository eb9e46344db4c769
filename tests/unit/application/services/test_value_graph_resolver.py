# tests/unit/application/services/test_value_graph_resolver.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest
from fixtures.value_engine_testkit import (
    ORG_ID,
    InMemoryEntitiesRepository,
    InMemoryState,
    InMemoryValuePeriodsRepository,
    make_entity,
    make_variable,
)

from strata_api.application.services.value_graph_resolver import (
    ValueGraphResolver,
    lookup_from,
    stored_variable_values,
)
from strata_api.domain.entities.strategic_entity import StrategicEntity
from strata_api.domain.entities.value_period import ValuePeriod
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.enums.period_granularity import PeriodGranularity

MARCH = datetime(2025, 3, 1, tzinfo=UTC)
MARCH_END = datetime(2025, 3, 31, 23, 59, 59, 999000, tzinfo=UTC)
FEB = datetime(2025, 2, 1, tzinfo=UTC)
FEB_END = datetime(2025, 2, 28, 23, 59, 59, 999000, tzinfo=UTC)


def _store(state: InMemoryState, entity: StrategicEntity, **values: object) -> ValuePeriod:
    period = ValuePeriod(
        entity_id=entity.id,
        period_start=MARCH,
        period_end=MARCH_END,
        **values,  # type: ignore[arg-type]
    )
    return state.add_period(period)


def _resolver(state: InMemoryState) -> ValueGraphResolver:
    return ValueGraphResolver(
        org_id=ORG_ID,
        entities=InMemoryEntitiesRepository(state),
        periods=InMemoryValuePeriodsRepository(state),
    )


@pytest.mark.asyncio
async def test_entity_without_formula_reads_latest_stored_value(state: InMemoryState) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))
    state.add_period(
        ValuePeriod(entity_id=revenue.id, period_start=FEB, period_end=FEB_END, final_value=80.0)
    )
    _store(state, revenue, actual_value=90.0, final_value=100.0)

    assert await _resolver(state).resolve("revenue") == 100.0


@pytest.mark.asyncio
async def test_stored_value_falls_back_through_calculated_and_actual(state: InMemoryState) -> None:
    only_actual = state.add_entity(make_entity("ONLY_ACTUAL"))
    state.add_entity(make_entity("NOTHING"))
    _store(state, only_actual, actual_value=12.0)

    resolver = _resolver(state)

    assert await resolver.resolve("ONLY_ACTUAL") == 12.0
    assert await resolver.resolve("NOTHING") == 0.0


@pytest.mark.asyncio
async def test_formula_dependencies_are_resolved_recursively(state: InMemoryState) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))
    cost = state.add_entity(make_entity("COST"))
    state.add_entity(make_entity("PROFIT", formula="return get('REVENUE') - get('COST');"))
    state.add_entity(make_entity("PROFIT_X2", formula="return get('profit') * 2;"))
    _store(state, revenue, final_value=100.0)
    _store(state, cost, final_value=30.0)

    resolver = _resolver(state)

    assert await resolver.resolve("PROFIT_X2") == 140.0
    assert resolver.cached == {"REVENUE": 100.0, "COST": 30.0, "PROFIT": 70.0, "PROFIT_X2": 140.0}


@pytest.mark.asyncio
async def test_dependency_formula_uses_static_and_latest_inputs(state: InMemoryState) -> None:
    rate = make_variable("RATE", static=True, static_value=3.0)
    units = make_variable("UNITS")
    sales = state.add_entity(make_entity("SALES", formula="RATE * UNITS", variables=[rate, units]))
    _store(state, sales, final_value=1.0, variable_values={units.id: 4.0})

    assert await _resolver(state).resolve("SALES") == 12.0


@pytest.mark.asyncio
async def test_missing_and_non_periodic_keys_read_zero(state: InMemoryState) -> None:
    state.add_entity(make_entity("PILLAR", granularity=PeriodGranularity.NONE))

    resolver = _resolver(state)

    assert await resolver.resolve("UNKNOWN") == 0.0
    assert await resolver.resolve("PILLAR") == 0.0
    assert await resolver.resolve("   ") == 0.0


@pytest.mark.asyncio
async def test_cycles_terminate_and_read_zero(state: InMemoryState) -> None:
    state.add_entity(make_entity("A", formula="return get('B') + 1;"))
    state.add_entity(make_entity("B", formula="return get('A') + 1;"))
    state.add_entity(make_entity("SELF", formula="return get('SELF') + 5;"))

    resolver = _resolver(state)

    assert await resolver.resolve("A") == 2.0
    assert resolver.cached["B"] == 1.0
    assert await resolver.resolve("SELF") == 5.0


@pytest.mark.asyncio
async def test_failing_dependency_formula_falls_back_to_stored_value(state: InMemoryState) -> None:
    broken = state.add_entity(make_entity("BROKEN", formula="return 1 / 0;"))
    _store(state, broken, calculated_value=7.0)

    assert await _resolver(state).resolve("BROKEN") == 7.0


@pytest.mark.asyncio
async def test_resolved_values_are_cached_for_the_resolver_lifetime(state: InMemoryState) -> None:
    revenue = state.add_entity(make_entity("REVENUE"))
    stored = _store(state, revenue, final_value=100.0)

    resolver = _resolver(state)
    assert await resolver.resolve("REVENUE") == 100.0

    state.add_period(replace(stored, final_value=500.0))

    assert await resolver.resolve("REVENUE") == 100.0
    assert await _resolver(state).resolve("REVENUE") == 500.0


@pytest.mark.asyncio
async def test_evaluate_reports_primary_formula_failures(state: InMemoryState) -> None:
    entity = state.add_entity(make_entity("TEXT", formula="return 'x';"))

    outcome = await _resolver(state).evaluate(entity, {})

    assert not outcome.ok
    assert outcome.error is ErrorCode.INVALID_FORMULA_RESULT


@pytest.mark.asyncio
async def test_evaluate_treats_self_reference_as_zero(state: InMemoryState) -> None:
    entity = state.add_entity(make_entity("GROWTH", formula="return get('GROWTH') + vars.X;"))
    _store(state, entity, final_value=1000.0)

    outcome = await _resolver(state).evaluate(entity, {"X": 3.0})

    assert outcome.value == 3.0


def test_lookup_from_normalizes_keys() -> None:
    lookup = lookup_from({"REVENUE": 5.0})

    assert lookup(" revenue ") == 5.0
    assert lookup("COST") == 0.0


def test_stored_variable_values_defaults_to_zero() -> None:
    static = make_variable("S", static=True)
    dynamic = make_variable("D")
    entity = make_entity("E", variables=[static, dynamic])

    assert stored_variable_values(entity, None) == {"S": 0.0, "D": 0.0}
