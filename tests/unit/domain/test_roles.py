# tests/unit/domain/test_roles.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from strata_api.domain.entities.strategic_entity import StrategicEntity, normalize_entity_key
from strata_api.domain.entities.value_period import ValuePeriod
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.enums.role import (
    ROLE_RANKS,
    Role,
    is_admin_role,
    parse_role,
    resolve_role_rank,
)

START = datetime(2025, 3, 1, tzinfo=UTC)


def test_ranks_are_strictly_increasing() -> None:
    ranks = [ROLE_RANKS[role] for role in Role]

    assert ranks == sorted(ranks)
    assert len(set(ranks)) == len(ranks)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(" manager ", Role.MANAGER), ("Super_Admin", Role.SUPER_ADMIN), (Role.PMO, Role.PMO)],
)
def test_parse_role_is_case_insensitive(raw: str, expected: Role) -> None:
    assert parse_role(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "owner"])
def test_unknown_roles_rank_zero(raw: str | None) -> None:
    assert parse_role(raw) is None
    assert resolve_role_rank(raw) == 0


def test_admin_roles() -> None:
    assert is_admin_role("ADMIN")
    assert is_admin_role(Role.SUPER_ADMIN)
    assert not is_admin_role(Role.EXECUTIVE)
    assert not is_admin_role(None)


def test_entity_keys_are_normalized_and_blank_formulas_dropped() -> None:
    entity = StrategicEntity(
        id=uuid4(),
        org_id=uuid4(),
        title="Revenue",
        granularity=PeriodGranularity.MONTHLY,
        key="  revenue ",
        formula="   ",
    )

    assert entity.key == "REVENUE"
    assert entity.formula is None
    assert not entity.has_formula
    assert normalize_entity_key(None) == ""


def test_stored_value_prefers_final_then_calculated_then_actual() -> None:
    entity_id = uuid4()

    def period(**values: float) -> ValuePeriod:
        return ValuePeriod(entity_id=entity_id, period_start=START, period_end=START, **values)

    assert period().stored_value == 0.0
    assert period(actual_value=3.0).stored_value == 3.0
    assert period(actual_value=3.0, calculated_value=4.0).stored_value == 4.0
    assert period(actual_value=3.0, calculated_value=4.0, final_value=5.0).stored_value == 5.0
