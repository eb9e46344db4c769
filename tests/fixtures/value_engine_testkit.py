"""
Value Engine Test Kit (Unit fixtures & helpers)

Purpose:
    In-memory implementations of the value engine's repository ports and
    Unit of Work, plus small builders for entities and principals, so use
    cases and services can be exercised without a database.

Layer: tests/fixtures

Notes:
    - Writes made inside ``async with uow`` become visible only after
      ``commit()``; leaving the block without committing discards them.
    - Nested ``async with`` is rejected like the SQLAlchemy Unit of Work.
    - ``InMemoryUnitOfWorkFactory`` builds one Unit of Work per transaction,
      matching how the engine is wired in production.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from types import TracebackType
from typing import Any
from uuid import UUID

from strata_api.application.uow import UnitOfWork
from strata_api.domain.entities.principal import Principal
from strata_api.domain.entities.strategic_entity import (
    EntityVariable,
    StrategicEntity,
    normalize_entity_key,
)
from strata_api.domain.entities.value_period import PeriodRange, ValuePeriod
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.enums.role import Role
from strata_api.domain.enums.value_status import ValueStatus
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

ORG_ID = UUID("00000000-0000-0000-0000-00000000a001")
MARCH_2025 = datetime(2025, 3, 15, 12, 0, tzinfo=UTC)

PeriodKey = tuple[UUID, datetime, datetime]


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime = MARCH_2025) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@dataclass
class InMemoryState:
    """Committed contents of the fake database."""

    entities: dict[UUID, StrategicEntity] = field(default_factory=dict)
    periods: dict[PeriodKey, ValuePeriod] = field(default_factory=dict)
    approval_roles: dict[UUID, str | None] = field(default_factory=dict)
    assignments: set[tuple[UUID, str, UUID]] = field(default_factory=set)
    created_order: list[UUID] = field(default_factory=list)

    def copy(self) -> InMemoryState:
        return InMemoryState(
            entities=dict(self.entities),
            periods=dict(self.periods),
            approval_roles=dict(self.approval_roles),
            assignments=set(self.assignments),
            created_order=list(self.created_order),
        )

    def absorb(self, other: InMemoryState) -> None:
        """Replace this state's contents with a copy of ``other``."""
        snapshot = other.copy()
        self.entities = snapshot.entities
        self.periods = snapshot.periods
        self.approval_roles = snapshot.approval_roles
        self.assignments = snapshot.assignments
        self.created_order = snapshot.created_order

    def apply_changes(self, before: InMemoryState, after: InMemoryState) -> None:
        """Apply the writes that turned ``before`` into ``after``."""
        for name in ("entities", "periods", "approval_roles"):
            target = getattr(self, name)
            old = getattr(before, name)
            new = getattr(after, name)
            for key, value in new.items():
                if key not in old or old[key] != value:
                    target[key] = value
            for key in old.keys() - new.keys():
                target.pop(key, None)
        self.assignments |= after.assignments - before.assignments
        self.assignments -= before.assignments - after.assignments
        self.created_order.extend(
            [eid for eid in after.created_order if eid not in self.created_order]
        )

    # -- seeding helpers -------------------------------------------------

    def add_entity(self, entity: StrategicEntity) -> StrategicEntity:
        self.entities[entity.id] = entity
        self.created_order.append(entity.id)
        return entity

    def add_period(self, period: ValuePeriod) -> ValuePeriod:
        stored = period if period.id is not None else replace(period, id=uuid.uuid4())
        self.periods[(stored.entity_id, stored.period_start, stored.period_end)] = stored
        return stored

    def assign(self, user_id: str, entity_id: UUID, org_id: UUID = ORG_ID) -> None:
        self.assignments.add((org_id, user_id, entity_id))

    def periods_of(self, entity_id: UUID) -> list[ValuePeriod]:
        return sorted(
            (p for p in self.periods.values() if p.entity_id == entity_id),
            key=lambda p: p.period_end,
        )

    def period_for(self, entity_id: UUID, period: PeriodRange) -> ValuePeriod | None:
        return self.periods.get((entity_id, period.start, period.end))


class InMemoryEntitiesRepository(EntitiesRepository):  # type: ignore[misc]
    def __init__(self, state: InMemoryState) -> None:
        self._state = state

    def _active(self, org_id: UUID) -> list[StrategicEntity]:
        return [
            self._state.entities[eid]
            for eid in self._state.created_order
            if eid in self._state.entities
            and self._state.entities[eid].org_id == org_id
            and self._state.entities[eid].deleted_at is None
        ]

    async def get_by_id(self, org_id: UUID, entity_id: UUID) -> StrategicEntity | None:
        return next((e for e in self._active(org_id) if e.id == entity_id), None)

    async def get_by_key(self, org_id: UUID, key: str) -> StrategicEntity | None:
        normalized = normalize_entity_key(key)
        return next((e for e in self._active(org_id) if e.key and e.key == normalized), None)

    async def list_by_keys(self, org_id: UUID, keys: Sequence[str]) -> list[StrategicEntity]:
        wanted = {normalize_entity_key(k) for k in keys}
        return [e for e in self._active(org_id) if e.key in wanted]

    async def list_by_ids(self, org_id: UUID, entity_ids: Sequence[UUID]) -> list[StrategicEntity]:
        wanted = set(entity_ids)
        return [e for e in self._active(org_id) if e.id in wanted]

    async def list_with_formula(self, org_id: UUID) -> list[StrategicEntity]:
        return [e for e in self._active(org_id) if e.has_formula]


class InMemoryValuePeriodsRepository(ValuePeriodsRepository):  # type: ignore[misc]
    def __init__(self, state: InMemoryState) -> None:
        self._state = state
        self.upserts: list[ValuePeriod] = []

    async def get_latest(self, entity_id: UUID) -> ValuePeriod | None:
        periods = self._state.periods_of(entity_id)
        return periods[-1] if periods else None

    async def get_for_period(self, entity_id: UUID, period: PeriodRange) -> ValuePeriod | None:
        return self._state.period_for(entity_id, period)

    async def upsert(self, period: ValuePeriod) -> ValuePeriod:
        key = (period.entity_id, period.period_start, period.period_end)
        existing = self._state.periods.get(key)
        stored = replace(
            period,
            id=existing.id if existing is not None else (period.id or uuid.uuid4()),
            variable_values=dict(existing.variable_values) if existing is not None else {},
        )
        self._state.periods[key] = stored
        self.upserts.append(stored)
        return replace(period, id=stored.id)

    async def upsert_variable_values(
        self,
        value_period_id: UUID,
        values: Mapping[UUID, float],
    ) -> None:
        for key, period in self._state.periods.items():
            if period.id == value_period_id:
                merged = {**period.variable_values, **values}
                self._state.periods[key] = replace(period, variable_values=merged)
                return
        raise KeyError(value_period_id)

    async def list_by_status(
        self,
        org_id: UUID,
        statuses: Sequence[ValueStatus],
        *,
        limit: int = 200,
    ) -> list[ValuePeriod]:
        org_entities = {
            e.id
            for e in self._state.entities.values()
            if e.org_id == org_id and e.deleted_at is None
        }
        matching = [
            p
            for p in self._state.periods.values()
            if p.entity_id in org_entities and p.status in statuses
        ]
        with_stamp = sorted(
            (p for p in matching if p.approval.submitted_at is not None),
            key=lambda p: p.approval.submitted_at or MARCH_2025,
            reverse=True,
        )
        without_stamp = [p for p in matching if p.approval.submitted_at is None]
        return (with_stamp + without_stamp)[:limit]


class InMemoryOrganizationsRepository(OrganizationsRepository):  # type: ignore[misc]
    def __init__(self, state: InMemoryState) -> None:
        self._state = state

    async def get_approval_role(self, org_id: UUID) -> str | None:
        return self._state.approval_roles.get(org_id)


class InMemoryEntityAccessRepository(EntityAccessRepository):  # type: ignore[misc]
    def __init__(self, state: InMemoryState) -> None:
        self._state = state

    async def can_edit_values(self, org_id: UUID, user_id: str, entity_id: UUID) -> bool:
        return (org_id, user_id, entity_id) in self._state.assignments


class InMemoryUnitOfWork(UnitOfWork):  # type: ignore[misc]
    """Unit of Work over :class:`InMemoryState` with commit/discard semantics.

    Each scope works on a private copy; ``commit()`` applies only the rows
    changed in that copy, so concurrent scopes on disjoint rows both land.
    """

    def __init__(self, state: InMemoryState | None = None) -> None:
        self.state = state or InMemoryState()
        self._base: InMemoryState | None = None
        self._working: InMemoryState | None = None
        self._repos: dict[type[Any], Any] = {}
        self.commits = 0
        self.rollbacks = 0
        self.entered = 0

    async def __aenter__(self) -> InMemoryUnitOfWork:  # type: ignore[override]
        if self._working is not None:
            raise RuntimeError("UnitOfWork is already active; nested usage is not supported.")
        self._base = self.state.copy()
        self._working = self.state.copy()
        self._repos = {
            EntitiesRepository: InMemoryEntitiesRepository(self._working),
            ValuePeriodsRepository: InMemoryValuePeriodsRepository(self._working),
            OrganizationsRepository: InMemoryOrganizationsRepository(self._working),
            EntityAccessRepository: InMemoryEntityAccessRepository(self._working),
        }
        self.entered += 1
        # Yield like a real session checkout so concurrent callers interleave.
        await asyncio.sleep(0)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:  # type: ignore[override]
        if exc_type is not None:
            self.rollbacks += 1
        self._base = None
        self._working = None
        self._repos = {}
        return None

    def get_repository(self, repo_type: type[Any]) -> Any:  # type: ignore[override]
        if self._working is None:
            raise RuntimeError("get_repository() called outside of an active UnitOfWork scope.")
        return self._repos[repo_type]

    async def commit(self) -> None:  # type: ignore[override]
        if self._working is None or self._base is None:
            raise RuntimeError("Cannot commit: UnitOfWork has no active session.")
        self.state.apply_changes(self._base, self._working)
        self._base = self._working.copy()
        self.commits += 1

    async def rollback(self) -> None:  # type: ignore[override]
        if self._working is not None and self._base is not None:
            self._working.absorb(self._base)
        self.rollbacks += 1


class InMemoryUnitOfWorkFactory:
    """Hands out a fresh :class:`InMemoryUnitOfWork` per call over one shared state."""

    def __init__(self, state: InMemoryState | None = None) -> None:
        self.state = state or InMemoryState()
        self.created: list[InMemoryUnitOfWork] = []

    def __call__(self) -> InMemoryUnitOfWork:
        uow = InMemoryUnitOfWork(self.state)
        self.created.append(uow)
        return uow

    @property
    def commits(self) -> int:
        return sum(uow.commits for uow in self.created)

    @property
    def rollbacks(self) -> int:
        return sum(uow.rollbacks for uow in self.created)

    @property
    def entered(self) -> int:
        return sum(uow.entered for uow in self.created)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_variable(
    code: str,
    *,
    required: bool = False,
    static: bool = False,
    static_value: float | None = None,
) -> EntityVariable:
    return EntityVariable(
        id=uuid.uuid4(),
        code=code,
        display_name=code.title(),
        is_required=required,
        is_static=static,
        static_value=static_value,
    )


def make_entity(
    key: str | None,
    *,
    formula: str | None = None,
    granularity: PeriodGranularity = PeriodGranularity.MONTHLY,
    variables: Sequence[EntityVariable] = (),
    entity_type_code: str = "KPI",
    org_id: UUID = ORG_ID,
    title: str | None = None,
) -> StrategicEntity:
    return StrategicEntity(
        id=uuid.uuid4(),
        org_id=org_id,
        title=title or (key or "Untitled").title(),
        granularity=granularity,
        key=key,
        entity_type_code=entity_type_code,
        formula=formula,
        variables=tuple(variables),
    )


def make_principal(
    role: Role | str | None = Role.EMPLOYEE,
    *,
    user_id: str = "user-1",
    org_id: UUID = ORG_ID,
) -> Principal:
    return Principal(user_id=user_id, org_id=org_id, role=role)


__all__ = [
    "MARCH_2025",
    "ORG_ID",
    "FixedClock",
    "InMemoryEntitiesRepository",
    "InMemoryEntityAccessRepository",
    "InMemoryOrganizationsRepository",
    "InMemoryState",
    "InMemoryUnitOfWork",
    "InMemoryUnitOfWorkFactory",
    "InMemoryValuePeriodsRepository",
    "make_entity",
    "make_principal",
    "make_variable",
]
