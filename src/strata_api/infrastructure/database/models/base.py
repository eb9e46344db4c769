# src/strata_api/infrastructure/database/models/base.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Declarative Base and persistence mixins for Strata.

This module defines:
    - The project-wide SQLAlchemy Declarative Base with deterministic naming
      conventions (for stable Alembic diffs) and the configured schema.
    - Persistence mixins for identity (UUIDv4), audit timestamps (UTC) and
      soft-delete.

Design Goals:
    * UTC everywhere.
    * Deterministic schema: naming conventions prevent Alembic churn.
    * Persistence-only; no domain behavior.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from strata_api.config.settings import get_settings

__all__ = [
    "DEFAULT_DB_SCHEMA",
    "NAMING_CONVENTIONS",
    "Base",
    "BaseEntity",
    "IdentityMixin",
    "SoftDeleteMixin",
    "TimestampMixin",
    "metadata",
    "qualified",
    "table_args",
]

#: Database schema for all tables (``DB_SCHEMA``; empty means the search path).
DEFAULT_DB_SCHEMA: str | None = get_settings().db_schema or None

#: Deterministic naming conventions for Alembic-friendly diffs.
#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)


def qualified(target: str) -> str:
    """Return ``table.column`` prefixed with the configured schema, for ForeignKey()."""
    return f"{DEFAULT_DB_SCHEMA}.{target}" if DEFAULT_DB_SCHEMA else target


def table_args(*items: Any) -> tuple[Any, ...]:
    """Return ``__table_args__`` for ``items`` plus the configured schema."""
    if DEFAULT_DB_SCHEMA:
        return (*items, {"schema": DEFAULT_DB_SCHEMA})
    return items


class Base(DeclarativeBase):
    """Declarative Base for all ORM models."""

    metadata = metadata

    @declared_attr.directive
    def __table_args__(cls) -> tuple[dict[str, Any]] | tuple[()]:
        """Attach the default schema when configured."""
        if DEFAULT_DB_SCHEMA:
            return ({"schema": DEFAULT_DB_SCHEMA},)
        return ()


class IdentityMixin:
    """Mixin providing a UUIDv4 primary key ``id`` column."""

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )


class TimestampMixin:
    """Mixin providing ``created_at`` and ``updated_at`` timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        server_default=func.now(),
    )


class SoftDeleteMixin:
    """Mixin providing a nullable ``deleted_at`` timestamp for soft-deletes."""

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    @property
    def is_deleted(self) -> bool:
        """Return True if the row has been soft-deleted."""
        return self.deleted_at is not None


class BaseEntity(IdentityMixin, TimestampMixin, Base):
    """Concrete base class for most tables."""

    __abstract__ = True
