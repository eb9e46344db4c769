# tests/conftest.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
from __future__ import annotations

import pytest
from fixtures.value_engine_testkit import (
    FixedClock,
    InMemoryState,
    InMemoryUnitOfWorkFactory,
)

from strata_api.application.services.cascade_recalculator import CascadeRecalculator
from strata_api.application.services.entity_value_pipeline import EntityValuePipeline
from strata_api.config.settings import Settings, get_settings
from strata_api.dependencies.value_engine import ValueEngine, build_value_engine


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test against default settings in the TEST environment."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    get_settings.cache_clear()


@pytest.fixture
def state() -> InMemoryState:
    return InMemoryState()


@pytest.fixture
def uow_factory(state: InMemoryState) -> InMemoryUnitOfWorkFactory:
    return InMemoryUnitOfWorkFactory(state)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def pipeline(uow_factory: InMemoryUnitOfWorkFactory, clock: FixedClock) -> EntityValuePipeline:
    return EntityValuePipeline(uow_factory=uow_factory, clock=clock)


@pytest.fixture
def cascade(
    uow_factory: InMemoryUnitOfWorkFactory, pipeline: EntityValuePipeline
) -> CascadeRecalculator:
    return CascadeRecalculator(uow_factory=uow_factory, pipeline=pipeline)


@pytest.fixture
def engine(uow_factory: InMemoryUnitOfWorkFactory, clock: FixedClock) -> ValueEngine:
    return build_value_engine(Settings(), uow_factory=uow_factory, clock=clock)
