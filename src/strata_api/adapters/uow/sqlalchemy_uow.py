# src/strata_api/adapters/uow/sqlalchemy_uow.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""SQLAlchemy-backed Unit of Work implementation.

Purpose:
    Implement the application-layer UnitOfWork protocol on top of one
    AsyncSession per ``async with`` block. Repository ports declared in
    ``strata_api.domain.interfaces.repositories`` resolve to the SQLAlchemy
    repositories in ``strata_api.adapters.repositories``.

Layer:
    adapters/uow
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from strata_api.adapters.repositories.entities_repository import EntitiesRepository
from strata_api.adapters.repositories.entity_access_repository import EntityAccessRepository
from strata_api.adapters.repositories.organizations_repository import (
    OrganizationsRepository,
)
from strata_api.adapters.repositories.value_periods_repository import ValuePeriodsRepository
from strata_api.application.uow import UnitOfWork
from strata_api.domain.interfaces.repositories.entities_repository import (
    EntitiesRepository as EntitiesRepositoryProtocol,
)
from strata_api.domain.interfaces.repositories.entity_access_repository import (
    EntityAccessRepository as EntityAccessRepositoryProtocol,
)
from strata_api.domain.interfaces.repositories.organizations_repository import (
    OrganizationsRepository as OrganizationsRepositoryProtocol,
)
from strata_api.domain.interfaces.repositories.value_periods_repository import (
    ValuePeriodsRepository as ValuePeriodsRepositoryProtocol,
)

RepoFactory = Callable[[AsyncSession], Any]


def default_repo_factories() -> dict[type[Any], RepoFactory]:
    """Return the interface -> implementation wiring for the value engine."""
    return {
        EntitiesRepositoryProtocol: lambda s: EntitiesRepository(session=s),
        ValuePeriodsRepositoryProtocol: lambda s: ValuePeriodsRepository(session=s),
        OrganizationsRepositoryProtocol: lambda s: OrganizationsRepository(session=s),
        EntityAccessRepositoryProtocol: lambda s: EntityAccessRepository(session=s),
    }


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy-based UnitOfWork implementation.

    Intended to be used via:

        async with uow as tx:
            repos = repositories_of(tx)
            ...
            await tx.commit()

    Each ``async with`` opens a fresh session; nesting is rejected.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        repo_factories: Mapping[type[Any], RepoFactory] | None = None,
    ) -> None:
        """Initialize the UnitOfWork.

        Args:
            session_factory:
                Factory for creating new AsyncSession instances.
            repo_factories:
                Optional overrides merged over ``default_repo_factories()``.
        """
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._repo_factories: dict[type[Any], RepoFactory] = {
            **default_repo_factories(),
            **(dict(repo_factories) if repo_factories is not None else {}),
        }
        self._repos: dict[type[Any], Any] = {}
        self._committed = False
        self._rolled_back = False

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        """Open a new AsyncSession.

        Raises:
            RuntimeError: If a session is already active (nested usage).
        """
        if self._session is not None:
            raise RuntimeError("UnitOfWork is already active; nested usage is not supported.")

        self._session = self._session_factory()
        self._committed = False
        self._rolled_back = False
        self._repos.clear()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Roll back on error, then close the session.

        Uncommitted work is discarded when the session closes.
        """
        try:
            if exc_type is not None and not self._rolled_back:
                await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
            self._repos.clear()
        return None

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        """Commit the current transaction (no-op once committed or rolled back).

        Raises:
            RuntimeError: If called without an active session.
        """
        if self._session is None:
            raise RuntimeError("Cannot commit: UnitOfWork has no active session.")
        if self._committed or self._rolled_back:
            return
        await self._session.commit()
        self._committed = True

    async def rollback(self) -> None:
        """Roll back the current transaction if one is active."""
        if self._session is None or self._rolled_back or self._committed:
            return
        await self._session.rollback()
        self._rolled_back = True

    # ------------------------------------------------------------------
    # Repository resolution
    # ------------------------------------------------------------------

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the repository bound to the active session for ``repo_type``.

        Raises:
            RuntimeError: If called outside of an active UnitOfWork context.
            KeyError: If no factory is registered for ``repo_type``.
        """
        if self._session is None:
            raise RuntimeError(
                "get_repository() called outside of an active UnitOfWork scope. "
                "Use 'async with uow:' before requesting repositories.",
            )

        if repo_type in self._repos:
            return self._repos[repo_type]

        try:
            factory = self._repo_factories[repo_type]
        except KeyError as exc:
            raise KeyError(f"No repository factory registered for type {repo_type!r}.") from exc

        repo = factory(self._session)
        self._repos[repo_type] = repo
        return repo


__all__ = ["SqlAlchemyUnitOfWork", "default_repo_factories"]
