# src/strata_api/infrastructure/database/models/entities.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Organization and strategic entity ORM models.

Tables:
    organizations            Tenants and their approval role setting.
    entities                 Strategic entities (pillars, objectives, KPIs, ...).
    entity_variables         Formula input definitions per entity.
    user_entity_assignments  Users allowed to edit an entity's values.

Notes:
    - ``entities.key`` is stored normalized (trimmed, upper-case) and is
      unique per organization when present.
    - ``entities.granularity`` holds a PeriodGranularity value.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from strata_api.infrastructure.database.models.base import (
    BaseEntity,
    SoftDeleteMixin,
    qualified,
    table_args,
)


class Organization(SoftDeleteMixin, BaseEntity):
    """Tenant organization."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kpi_approval_role: Mapped[str | None] = mapped_column(String(32), nullable=True)


class Entity(SoftDeleteMixin, BaseEntity):
    """Strategic entity with an optional formula and period cadence."""

    __tablename__ = "entities"
    __table_args__ = table_args(
        UniqueConstraint("org_id", "key", name="uq_entities_org_key"),
    )

    org_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("organizations.id"), ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    entity_type_code: Mapped[str] = mapped_column(String(64), nullable=False, default="KPI")
    granularity: Mapped[str] = mapped_column(String(16), nullable=False, default="NONE")
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    baseline_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)

    variables: Mapped[list[EntityVariable]] = relationship(
        back_populates="entity",
        lazy="selectin",
        order_by="EntityVariable.code",
    )


class EntityVariable(BaseEntity):
    """Formula input definition of one entity."""

    __tablename__ = "entity_variables"
    __table_args__ = table_args(
        UniqueConstraint("entity_id", "code", name="uq_entity_variables_entity_code"),
    )

    entity_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("entities.id"), ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_static: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    static_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    entity: Mapped[Entity] = relationship(back_populates="variables")


class UserEntityAssignment(BaseEntity):
    """Assignment of a user to an entity."""

    __tablename__ = "user_entity_assignments"
    __table_args__ = table_args(
        UniqueConstraint("user_id", "entity_id", name="uq_user_entity_assignments_user_entity"),
    )

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("entities.id"), ondelete="CASCADE"),
        nullable=False,
    )
    can_edit_values: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


__all__ = ["Entity", "EntityVariable", "Organization", "UserEntityAssignment"]
