# src/strata_api/infrastructure/database/models/values.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Period value ORM models.

Tables:
    entity_value_periods    One stored value per (entity, period_start, period_end).
    entity_variable_values  One input per (value period, variable).

Notes:
    - Periods are never hard-deleted; upserts supersede their values.
    - ``status`` holds a ValueStatus value.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Float, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import DateTime

from strata_api.infrastructure.database.models.base import BaseEntity, qualified, table_args


class EntityValuePeriod(BaseEntity):
    """Stored value of one entity for one canonical period."""

    __tablename__ = "entity_value_periods"
    __table_args__ = table_args(
        UniqueConstraint(
            "entity_id",
            "period_start",
            "period_end",
            name="uq_entity_value_periods_entity_period",
        ),
        Index("ix_entity_value_periods_entity_end", "entity_id", "period_end"),
        Index("ix_entity_value_periods_status_submitted", "status", "submitted_at"),
    )

    entity_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("entities.id"), ondelete="CASCADE"),
        nullable=False,
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    actual_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    calculated_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    entered_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="DRAFT")
    submitted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    changes_requested_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    changes_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    changes_requested_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    variable_values: Mapped[list[EntityVariableValue]] = relationship(
        back_populates="value_period",
        lazy="selectin",
    )


class EntityVariableValue(BaseEntity):
    """Input value of one variable for one stored period."""

    __tablename__ = "entity_variable_values"
    __table_args__ = table_args(
        UniqueConstraint(
            "value_period_id",
            "variable_id",
            name="uq_entity_variable_values_period_variable",
        ),
    )

    value_period_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("entity_value_periods.id"), ondelete="CASCADE"),
        nullable=False,
    )
    variable_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(qualified("entity_variables.id"), ondelete="CASCADE"),
        nullable=False,
    )
    value: Mapped[float] = mapped_column(Float, nullable=False)

    value_period: Mapped[EntityValuePeriod] = relationship(back_populates="variable_values")


__all__ = ["EntityValuePeriod", "EntityVariableValue"]
