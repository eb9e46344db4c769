# src/strata_api/infrastructure/database/session.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine and session factory.

This module owns the process-global async SQLAlchemy engine and
`async_sessionmaker` consumed by the SQLAlchemy Unit of Work.

Lifecycle:
    * Call `init_engine_and_sessionmaker(settings)` once at startup.
    * Hand `get_sessionmaker()` to `SqlAlchemyUnitOfWork`.
    * Call `dispose_engine()` during shutdown.

Notes:
    * `pool_pre_ping=True` surfaces dead connections before use.
    * `expire_on_commit=False` keeps mapped rows readable after commit.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from strata_api.config.settings import Settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def init_engine_and_sessionmaker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Initialize the global async engine and sessionmaker (idempotent).

    Args:
        settings: Application settings providing `database_url`.

    Returns:
        The global session factory.

    Raises:
        ValueError: If `database_url` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None and _sessionmaker is not None:
        return _sessionmaker

    _engine = create_async_engine(
        url=settings.database_url,
        pool_pre_ping=True,
        echo=settings.db_echo,
    )
    _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)
    logger.info("db.engine.initialized", extra={"db_schema": settings.db_schema})
    return _sessionmaker


async def dispose_engine() -> None:
    """Dispose the global engine at shutdown."""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized async sessionmaker.

    Raises:
        RuntimeError: If the sessionmaker is not yet initialized.
    """
    if _sessionmaker is None:
        raise RuntimeError("DB sessionmaker not initialized (call init_engine_and_sessionmaker)")
    return _sessionmaker


__all__ = ["dispose_engine", "get_sessionmaker", "init_engine_and_sessionmaker"]
