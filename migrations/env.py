# migrations/env.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Alembic environment for the KPI value engine schema.

The connection comes from the application's own ``Settings`` so migrations
and the running service always agree on the database and schema. An optional
``.env.<ENVIRONMENT>`` file is layered under the process environment before
settings are read (``Settings`` itself only reads ``.env``).

Usage:
    ENVIRONMENT=development alembic upgrade head
    ENVIRONMENT=development alembic upgrade head --sql
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
import os
from pathlib import Path
from typing import Any

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from strata_api.config.settings import Settings, get_settings
from strata_api.infrastructure.database.models import entities as _entity_models  # noqa: F401
from strata_api.infrastructure.database.models import values as _value_models  # noqa: F401
from strata_api.infrastructure.database.models.base import metadata

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = metadata


def _load_environment_overlay() -> None:
    """Load ``.env.<ENVIRONMENT>`` without overriding exported variables."""
    environment = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if not environment:
        return
    overlay = Path(__file__).resolve().parents[1] / f".env.{environment}"
    if overlay.exists():
        load_dotenv(overlay, override=False)


def _settings() -> Settings:
    _load_environment_overlay()
    settings = get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL must be set to run migrations.")
    logger.info(
        "migrations.configured",
        extra={"environment": settings.environment.value, "db_schema": settings.db_schema},
    )
    return settings


def _configure(settings: Settings, **options: Any) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_schemas=settings.db_schema is not None,
        **options,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL instead of executing it."""
    settings = _settings()
    _configure(
        settings,
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection, settings: Settings) -> None:
    _configure(settings, connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def _run_async(settings: Settings) -> None:
    engine = create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection, settings)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    """Apply migrations over an async engine."""
    asyncio.run(_run_async(_settings()))


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
