# tests/unit/application/use_cases/test_get_entity_dependency_tree.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from uuid import uuid4

import pytest
from fixtures.value_engine_testkit import InMemoryState, make_entity, make_principal

from strata_api.application.schemas.dto.entities import (
    DependencyNodeDTO,
    GetDependencyTreeRequestDTO,
)
from strata_api.dependencies.value_engine import ValueEngine
from strata_api.domain.entities.strategic_entity import StrategicEntity
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.enums.role import Role
from strata_api.domain.exceptions.kpi import EntityNotFoundError

VIEWER = make_principal(Role.EMPLOYEE)


def _shape(node: DependencyNodeDTO) -> dict[str, object]:
    return {node.key: sorted((_shape(child) for child in node.dependencies), key=str)}


def _seed(state: InMemoryState) -> StrategicEntity:
    state.add_entity(make_entity("C"))
    state.add_entity(make_entity("A", formula="return get('C');"))
    state.add_entity(make_entity("B", formula="return get('C') + 1;"))
    return state.add_entity(
        make_entity("ROOT", formula="return get('A') + get('B') + get('MISSING');")
    )


@pytest.mark.asyncio
async def test_tree_visits_each_entity_once(engine: ValueEngine, state: InMemoryState) -> None:
    root = _seed(state)

    tree = await engine.dependency_tree.execute(
        GetDependencyTreeRequestDTO(entity_id=root.id), principal=VIEWER
    )

    assert tree.key == "ROOT"
    assert tree.formula == root.formula
    assert [child.key for child in tree.dependencies] == ["A", "B"]
    a, b = tree.dependencies
    assert [child.key for child in a.dependencies] == ["C"]
    assert b.dependencies == []


@pytest.mark.asyncio
async def test_tree_respects_max_depth(engine: ValueEngine, state: InMemoryState) -> None:
    root = _seed(state)

    tree = await engine.dependency_tree.execute(
        GetDependencyTreeRequestDTO(entity_id=root.id, max_depth=1), principal=VIEWER
    )

    assert _shape(tree) == {"ROOT": [{"A": []}, {"B": []}]}


@pytest.mark.asyncio
async def test_tree_handles_cycles_and_unkeyed_roots(
    engine: ValueEngine, state: InMemoryState
) -> None:
    state.add_entity(make_entity("X", formula="return get('Y');"))
    state.add_entity(make_entity("Y", formula="return get('X');"))
    unkeyed = state.add_entity(make_entity(None, formula="return get('x') * 2;"))

    tree = await engine.dependency_tree.execute(
        GetDependencyTreeRequestDTO(entity_id=unkeyed.id), principal=VIEWER
    )

    assert tree.key == str(unkeyed.id)
    assert _shape(tree) == {str(unkeyed.id): [{"X": [{"Y": []}]}]}


@pytest.mark.asyncio
async def test_unknown_root(engine: ValueEngine) -> None:
    with pytest.raises(EntityNotFoundError) as exc_info:
        await engine.dependency_tree.execute(
            GetDependencyTreeRequestDTO(entity_id=uuid4()), principal=VIEWER
        )

    assert exc_info.value.code == ErrorCode.ENTITY_NOT_FOUND.value
