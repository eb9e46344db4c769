# tests/unit/adapters/uow/test_sqlalchemy_uow.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from typing import Any

import pytest

from strata_api.adapters.repositories.entities_repository import (
    EntitiesRepository as SqlAlchemyEntitiesRepository,
)
from strata_api.adapters.repositories.entity_access_repository import (
    EntityAccessRepository as SqlAlchemyEntityAccessRepository,
)
from strata_api.adapters.repositories.organizations_repository import (
    OrganizationsRepository as SqlAlchemyOrganizationsRepository,
)
from strata_api.adapters.repositories.value_periods_repository import (
    ValuePeriodsRepository as SqlAlchemyValuePeriodsRepository,
)
from strata_api.adapters.uow import SqlAlchemyUnitOfWork
from strata_api.application.uow import repositories_of
from strata_api.domain.interfaces.repositories.entities_repository import EntitiesRepository


class _FakeAsyncSession:
    """Minimal async-session stand-in recording transaction calls."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def commit(self) -> None:
        self.calls.append("commit")

    async def rollback(self) -> None:
        self.calls.append("rollback")

    async def close(self) -> None:
        self.calls.append("close")


class _SessionFactory:
    def __init__(self) -> None:
        self.sessions: list[_FakeAsyncSession] = []

    def __call__(self) -> _FakeAsyncSession:
        session = _FakeAsyncSession()
        self.sessions.append(session)
        return session


def _uow(**kwargs: Any) -> tuple[SqlAlchemyUnitOfWork, _SessionFactory]:
    factory = _SessionFactory()
    uow = SqlAlchemyUnitOfWork(session_factory=factory, **kwargs)  # type: ignore[arg-type]
    return uow, factory


@pytest.mark.asyncio
async def test_repositories_resolve_to_sqlalchemy_implementations() -> None:
    uow, _ = _uow()

    async with uow as tx:
        repos = repositories_of(tx)
        assert isinstance(repos.entities, SqlAlchemyEntitiesRepository)
        assert isinstance(repos.periods, SqlAlchemyValuePeriodsRepository)
        assert isinstance(repos.organizations, SqlAlchemyOrganizationsRepository)
        assert isinstance(repos.access, SqlAlchemyEntityAccessRepository)
        assert tx.get_repository(EntitiesRepository) is repos.entities


@pytest.mark.asyncio
async def test_commit_then_close() -> None:
    uow, factory = _uow()

    async with uow as tx:
        await tx.commit()
        await tx.commit()

    assert factory.sessions[0].calls == ["commit", "close"]


@pytest.mark.asyncio
async def test_exception_rolls_back_and_propagates() -> None:
    uow, factory = _uow()

    with pytest.raises(ValueError):
        async with uow:
            raise ValueError("boom")

    assert factory.sessions[0].calls == ["rollback", "close"]


@pytest.mark.asyncio
async def test_leaving_without_commit_only_closes() -> None:
    uow, factory = _uow()

    async with uow:
        pass

    assert factory.sessions[0].calls == ["close"]


@pytest.mark.asyncio
async def test_each_block_opens_a_fresh_session_and_nesting_is_rejected() -> None:
    uow, factory = _uow()

    async with uow:
        with pytest.raises(RuntimeError, match="nested"):
            async with uow:
                pass
    async with uow:
        pass

    assert len(factory.sessions) == 2


@pytest.mark.asyncio
async def test_outside_scope_and_unknown_repositories() -> None:
    uow, _ = _uow()

    with pytest.raises(RuntimeError):
        uow.get_repository(EntitiesRepository)
    with pytest.raises(RuntimeError):
        await uow.commit()

    async with uow as tx:
        with pytest.raises(KeyError):
            tx.get_repository(int)


@pytest.mark.asyncio
async def test_repo_factory_overrides() -> None:
    sentinel = object()
    uow, _ = _uow(repo_factories={EntitiesRepository: lambda _session: sentinel})

    async with uow as tx:
        assert tx.get_repository(EntitiesRepository) is sentinel
