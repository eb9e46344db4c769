# src/strata_api/application/uow.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Unit of Work (Application Layer).

Purpose:
    Define the Unit-of-Work boundary the value engine uses to scope each
    entity's read-compute-upsert pass, and resolve the repository ports the
    engine works against.

    Infrastructure-agnostic:
        * No SQLAlchemy / DB imports.
        * Only Protocols and helpers for services and use cases.

    The SQLAlchemy implementation lives in adapters/uow.

Layer:
    application
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Protocol, cast, runtime_checkable

from strata_api.domain.interfaces.repositories.entities_repository import EntitiesRepository
from strata_api.domain.interfaces.repositories.entity_access_repository import (
    EntityAccessRepository,
)
from strata_api.domain.interfaces.repositories.organizations_repository import (
    OrganizationsRepository,
)
from strata_api.domain.interfaces.repositories.value_periods_repository import (
    ValuePeriodsRepository,
)


@runtime_checkable
class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Abstract Unit-of-Work contract.

    A UnitOfWork instance is entered sequentially, never nested: each
    ``async with`` block is one atomic unit.
    """

    async def __aenter__(self) -> UnitOfWork:
        """Enter the transactional scope and return the active UoW."""
        raise NotImplementedError

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Exit the transactional scope, rolling back on error."""
        raise NotImplementedError

    async def commit(self) -> None:
        """Commit all pending changes for this UnitOfWork."""
        raise NotImplementedError

    async def rollback(self) -> None:
        """Roll back any pending changes for this UnitOfWork."""
        raise NotImplementedError

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return a repository instance for the given port type."""
        raise NotImplementedError


#: Builds a fresh, unentered UnitOfWork; services open one per transaction.
UnitOfWorkFactory = Callable[[], UnitOfWork]


@dataclass(frozen=True, slots=True)
class ValueEngineRepositories:
    """Repository ports bound to one active UnitOfWork."""

    entities: EntitiesRepository
    periods: ValuePeriodsRepository
    organizations: OrganizationsRepository
    access: EntityAccessRepository


def repositories_of(tx: UnitOfWork) -> ValueEngineRepositories:
    """Resolve the value engine's repository ports from an active UnitOfWork.

    Args:
        tx: Active UnitOfWork (real or test double).

    Returns:
        Bundle of the four repository ports.
    """
    return ValueEngineRepositories(
        entities=cast(EntitiesRepository, tx.get_repository(EntitiesRepository)),
        periods=cast(ValuePeriodsRepository, tx.get_repository(ValuePeriodsRepository)),
        organizations=cast(
            OrganizationsRepository, tx.get_repository(OrganizationsRepository)
        ),
        access=cast(EntityAccessRepository, tx.get_repository(EntityAccessRepository)),
    )


__all__ = ["UnitOfWork", "UnitOfWorkFactory", "ValueEngineRepositories", "repositories_of"]
